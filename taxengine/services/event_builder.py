"""
taxengine/services/event_builder.py

Packages disposals into TaxableEvents and income into IncomeEvents, and holds
the reconciliation check that keeps gain_loss == proceeds - cost_basis.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from taxengine.constants import LONG_TERM_DAYS, round_usd
from taxengine.schemas.tax_report import Diagnostic, IncomeEvent, TaxableEvent
from taxengine.schemas.transaction import Transaction

logger = logging.getLogger(__name__)


def holding_period(acquired_at: datetime, disposed_at: datetime) -> str:
    """
    'long' iff at least 366 whole days separate acquisition and disposal.
    """
    days_held = (disposed_at - acquired_at).days
    return "long" if days_held >= LONG_TERM_DAYS else "short"


def build_taxable_event(
    tx: Transaction,
    *,
    asset: str,
    amount: Decimal,
    proceeds: Decimal,
    cost_basis: Decimal,
    acquired_at: Optional[datetime],
    kind: str,
    holding_override: Optional[str] = None,
) -> TaxableEvent:
    """
    Rounds proceeds and basis to cents first, then derives gain/loss from them,
    so the reported figures reconcile exactly.
    """
    proceeds_usd = round_usd(proceeds)
    basis_usd = round_usd(cost_basis)
    acquired = acquired_at or tx.timestamp

    return TaxableEvent(
        transaction_id=tx.id,
        date=tx.timestamp,
        date_acquired=acquired,
        asset=asset,
        amount=amount,
        proceeds=proceeds_usd,
        cost_basis=basis_usd,
        gain_loss=proceeds_usd - basis_usd,
        holding_period=holding_override or holding_period(acquired, tx.timestamp),
        kind=kind,
        chain=tx.chain,
        tx_hash=tx.tx_hash,
    )


def build_income_event(tx: Transaction, *, asset: str, value_usd: Decimal, category: str) -> IncomeEvent:
    return IncomeEvent(
        transaction_id=tx.id,
        date=tx.timestamp,
        asset=asset,
        amount=tx.amount,
        value_usd=round_usd(value_usd),
        category=category,
        chain=tx.chain,
        tx_hash=tx.tx_hash,
    )


def reconcile_events(events: List[TaxableEvent]) -> List[Diagnostic]:
    """
    Re-derives every gain/loss from proceeds and cost basis. A mismatch is
    overwritten in place and returned as a defect.
    """
    defects: List[Diagnostic] = []
    for event in events:
        event.proceeds = round_usd(event.proceeds)
        event.cost_basis = round_usd(event.cost_basis)
        expected = event.proceeds - event.cost_basis
        if event.gain_loss == expected:
            continue
        message = (
            f"gain/loss {event.gain_loss} != proceeds {event.proceeds} - cost basis "
            f"{event.cost_basis}; corrected to {expected}"
        )
        logger.error(f"Reconciliation defect on tx {event.transaction_id}: {message}")
        defects.append(Diagnostic(
            level="defect",
            code="gain_loss_mismatch",
            transaction_id=event.transaction_id,
            message=message,
        ))
        event.gain_loss = expected
    return defects
