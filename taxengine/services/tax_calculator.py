"""
taxengine/services/tax_calculator.py

Entry point of the engine: calculate_tax_report(transactions, year, method).

The whole account history up to the end of the filing year is replayed in
(timestamp, id) order through the classifier, so prior-year acquisitions supply
basis for current-year disposals. Only events dated inside the filing year are
captured. The call is pure: no I/O, no clock reads, nothing kept afterwards.

Caller mistakes (unknown method, bad year, unordered or duplicated input)
raise TaxEngineError before any lot is created.
"""

import logging
from typing import Iterable, List

from taxengine.exceptions import TaxEngineError
from taxengine.schemas.tax_report import TaxReport
from taxengine.schemas.transaction import Transaction
from taxengine.services.classifier import CalculationContext, process_transaction
from taxengine.services.event_builder import reconcile_events
from taxengine.services.lots import normalize_method
from taxengine.services.reports.aggregator import aggregate

logger = logging.getLogger(__name__)


def _validate_year(year: int) -> int:
    if isinstance(year, bool) or not isinstance(year, int) or not 1000 <= year <= 9999:
        raise TaxEngineError(f"Tax year must be a four-digit integer, got {year!r}.")
    return year


def _validate_input(transactions: List[Transaction]):
    """
    Timestamps must be non-decreasing and ids unique. Equal timestamps are
    allowed; they are ordered by id afterwards.
    """
    seen = set()
    previous = None
    for position, tx in enumerate(transactions):
        if tx.id in seen:
            raise TaxEngineError(f"Duplicate transaction id '{tx.id}' at position {position}.")
        seen.add(tx.id)
        if previous is not None and tx.timestamp < previous.timestamp:
            raise TaxEngineError(
                f"Transactions are not in chronological order: '{tx.id}' ({tx.timestamp.isoformat()}) "
                f"follows '{previous.id}' ({previous.timestamp.isoformat()})."
            )
        previous = tx


def _id_order(tx_id: str):
    """
    Tie-break key for equal timestamps. All-digit ids (datastore rows) compare
    numerically so "9" precedes "10"; other ids follow them in string order.
    """
    if tx_id.isascii() and tx_id.isdigit():
        return (0, int(tx_id), tx_id)
    return (1, 0, tx_id)


def calculate_tax_report(transactions: Iterable[Transaction], year: int, method: str = "FIFO") -> TaxReport:
    """
    Computes the TaxReport for `year` using `method` ('FIFO', 'LIFO' or 'HIFO').
    """
    method = normalize_method(method)
    year = _validate_year(year)
    transactions = list(transactions)
    _validate_input(transactions)

    ordered = sorted(transactions, key=lambda tx: (tx.timestamp, _id_order(tx.id)))
    ctx = CalculationContext(year=year, method=method)

    processed = 0
    for tx in ordered:
        if tx.timestamp.year > year:
            continue
        process_transaction(tx, ctx)
        processed += 1

    logger.info(
        f"Processed {processed} of {len(ordered)} transactions for {year} ({method}): "
        f"{len(ctx.taxable_events)} taxable, {len(ctx.income_events)} income events"
    )

    ctx.wash_sales.mark_wash_sales(ctx.taxable_events)
    ctx.diagnostics.extend(reconcile_events(ctx.taxable_events))

    return aggregate(
        year=year,
        method=method,
        taxable_events=ctx.taxable_events,
        income_events=ctx.income_events,
        diagnostics=ctx.diagnostics,
    )
