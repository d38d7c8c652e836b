"""
taxengine/schemas/tax_report.py

Output schemas of one tax computation. Everything here is created inside a single
calculate_tax_report() call and handed to the caller; nothing is retained.

- TaxableEvent: one disposal (proceeds, basis, gain/loss, holding period, wash sale)
- IncomeEvent: ordinary income recognized at fair value
- Form8949Entry: one Form 8949 line derived from a TaxableEvent
- Diagnostic: non-fatal data-quality warning or corrected defect
- TaxReport: aggregated totals plus all of the above
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

HoldingPeriod = Literal["short", "long"]
IncomeCategory = Literal["staking", "reward", "airdrop", "mining", "other"]


class TaxableEvent(BaseModel):
    transaction_id: str
    date: datetime
    date_acquired: Optional[datetime] = Field(
        default=None,
        description="Earliest contributing lot date, or the purchase date embedded in notes."
    )
    asset: str
    amount: Decimal
    proceeds: Decimal = Field(..., description="Net of fees.")
    cost_basis: Decimal
    gain_loss: Decimal = Field(..., description="Always proceeds - cost_basis.")
    holding_period: HoldingPeriod
    wash_sale: bool = False
    disallowed_loss: Decimal = Decimal("0.00")
    kind: str = Field(..., description="Transaction variant that produced the disposal.")
    chain: Optional[str] = None
    tx_hash: Optional[str] = None


class IncomeEvent(BaseModel):
    transaction_id: str
    date: datetime
    asset: str
    amount: Decimal
    value_usd: Decimal
    category: IncomeCategory
    chain: Optional[str] = None
    tx_hash: Optional[str] = None


class Form8949Entry(BaseModel):
    """
    Columns (a)-(h) of IRS Form 8949 plus the holding period and box.
    """
    description: str                 # (a)
    date_acquired: str               # (b)
    date_sold: str                   # (c)
    proceeds: Decimal                # (d)
    cost_basis: Decimal              # (e)
    code: str = ""                   # (f)
    adjustment: Decimal = Decimal("0.00")  # (g)
    gain_loss: Decimal               # (h)
    holding_period: HoldingPeriod
    box: Literal["A", "B", "C", "D", "E", "F"]


class Diagnostic(BaseModel):
    level: Literal["warning", "defect"]
    code: str
    transaction_id: Optional[str] = None
    message: str


class ScheduleDLine(BaseModel):
    proceeds: Decimal
    cost_basis: Decimal
    adjustment: Decimal
    gain_loss: Decimal


class ScheduleD(BaseModel):
    short_term: ScheduleDLine
    long_term: ScheduleDLine


class TaxReport(BaseModel):
    year: int
    method: str

    short_term_gains: Decimal
    short_term_losses: Decimal
    long_term_gains: Decimal
    long_term_losses: Decimal
    net_short_term: Decimal
    net_long_term: Decimal

    total_net_loss: Decimal
    deductible_losses: Decimal
    loss_carryover: Decimal
    total_taxable_gain: Decimal

    total_income: Decimal
    income_by_category: Dict[str, Decimal]
    wash_sale_disallowed_total: Decimal

    taxable_events: List[TaxableEvent]
    income_events: List[IncomeEvent]
    form_8949: List[Form8949Entry]
    diagnostics: List[Diagnostic]


class Form8949Report(BaseModel):
    """Form 8949 lines split by holding period, with Schedule D totals."""
    short_term: List[Form8949Entry]
    long_term: List[Form8949Entry]
    schedule_d: ScheduleD
