# FILE: taxengine/services/reports/form_8949.py

import logging
from decimal import Decimal
from typing import Dict, List, Literal, Optional

from taxengine.constants import WASH_SALE_CODE, round_usd
from taxengine.schemas.tax_report import Form8949Entry, Form8949Report, ScheduleD, ScheduleDLine, TaxableEvent

logger = logging.getLogger(__name__)

DATE_FORMAT = "%m/%d/%Y"


##############################################################################
# 1) FORM 8949 ROWS FROM TAXABLE EVENTS
##############################################################################
def describe_event(event: TaxableEvent) -> str:
    """
    Column (a): "0.5 ETH (ethereum) - 0xabc123... [Wash Sale]".
    Chain, hash and the wash-sale suffix only appear when known.
    """
    description = f"{event.amount} {event.asset}"
    if event.chain:
        description += f" ({event.chain})"
    if event.tx_hash:
        description += f" - {event.tx_hash[:8]}..."
    if event.wash_sale:
        description += " [Wash Sale]"
    return description


def build_form_8949_entries(
    events: List[TaxableEvent],
    basis_reported_flags: Optional[Dict[str, bool]] = None,
) -> List[Form8949Entry]:
    """
    One Form 8949 line per taxable event, in event order. Column (h) keeps the
    full loss for wash sales; code W and column (g) carry the disallowed part.
    """
    entries: List[Form8949Entry] = []
    for event in events:
        is_basis_reported = bool(basis_reported_flags and basis_reported_flags.get(event.transaction_id))
        acquired = event.date_acquired or event.date

        entries.append(Form8949Entry(
            description=describe_event(event),
            date_acquired=acquired.strftime(DATE_FORMAT),
            date_sold=event.date.strftime(DATE_FORMAT),
            proceeds=round_usd(event.proceeds),
            cost_basis=round_usd(event.cost_basis),
            code=WASH_SALE_CODE if event.wash_sale else "",
            adjustment=round_usd(event.disallowed_loss if event.wash_sale else 0),
            gain_loss=round_usd(event.gain_loss),
            holding_period=event.holding_period,
            box=_determine_box(event.holding_period, is_basis_reported),
        ))
    return entries


def _determine_box(holding_period: str, basis_reported: bool) -> Literal["A", "B", "C", "D", "E", "F"]:
    """
    short => A (if basis reported) or C (if not)
    long => D (if basis reported) or F (if not)
    """
    if holding_period == "long":
        return "D" if basis_reported else "F"
    return "A" if basis_reported else "C"


##############################################################################
# 2) SCHEDULE D TOTALS
##############################################################################
def _line(entries: List[Form8949Entry]) -> ScheduleDLine:
    return ScheduleDLine(
        proceeds=round_usd(sum((e.proceeds for e in entries), Decimal("0"))),
        cost_basis=round_usd(sum((e.cost_basis for e in entries), Decimal("0"))),
        adjustment=round_usd(sum((e.adjustment for e in entries), Decimal("0"))),
        gain_loss=round_usd(sum((e.gain_loss for e in entries), Decimal("0"))),
    )


def build_schedule_d(entries: List[Form8949Entry]) -> ScheduleD:
    """
    Summarize short vs. long for Schedule D (lines 1b/3 and 8b/10).
    """
    return ScheduleD(
        short_term=_line([e for e in entries if e.holding_period == "short"]),
        long_term=_line([e for e in entries if e.holding_period == "long"]),
    )


def build_form_8949_and_schedule_d(entries: List[Form8949Entry]) -> Form8949Report:
    """
    Splits entries by holding period (Part I / Part II) for a form-rendering
    collaborator and attaches the Schedule D totals.
    """
    short_rows = [e for e in entries if e.holding_period == "short"]
    long_rows = [e for e in entries if e.holding_period == "long"]
    logger.debug(f"Form 8949: {len(short_rows)} short-term rows, {len(long_rows)} long-term rows")

    return Form8949Report(
        short_term=short_rows,
        long_term=long_rows,
        schedule_d=build_schedule_d(entries),
    )
