"""
taxengine/services/reports/aggregator.py

Rolls captured events into the TaxReport totals.

- Gains and losses are summed per holding period; a zero result counts nowhere.
- The disallowed part of a wash-sale loss counts as $0 here, although the event
  still shows the full loss for Form 8949.
- Net capital loss is capped at $3,000 per year; the rest carries over.
"""

import logging
from decimal import Decimal
from typing import Dict, List

from taxengine.constants import CAPITAL_LOSS_DEDUCTION_CAP, INCOME_CATEGORIES, round_usd
from taxengine.schemas.tax_report import Diagnostic, IncomeEvent, TaxableEvent, TaxReport
from taxengine.services.reports.form_8949 import build_form_8949_entries

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def recognized_gain_loss(event: TaxableEvent) -> Decimal:
    """
    The gain/loss that counts toward totals: a wash-sale loss minus its
    disallowed part, otherwise the event's own figure.
    """
    if event.wash_sale and event.gain_loss < ZERO:
        return min(ZERO, event.gain_loss + event.disallowed_loss)
    return event.gain_loss


def summarize_capital_gains(events: List[TaxableEvent]) -> Dict[str, Decimal]:
    totals = {
        "short_term_gains": ZERO,
        "short_term_losses": ZERO,
        "long_term_gains": ZERO,
        "long_term_losses": ZERO,
    }
    for event in events:
        amount = recognized_gain_loss(event)
        prefix = "long_term" if event.holding_period == "long" else "short_term"
        if amount > ZERO:
            totals[f"{prefix}_gains"] += amount
        elif amount < ZERO:
            totals[f"{prefix}_losses"] += -amount
    return {key: round_usd(value) for key, value in totals.items()}


def summarize_income(events: List[IncomeEvent]) -> Dict[str, Decimal]:
    by_category = {category: ZERO for category in INCOME_CATEGORIES}
    for event in events:
        by_category[event.category] += event.value_usd
    return {category: round_usd(value) for category, value in by_category.items()}


def _check_aggregate(events: List[TaxableEvent], totals: Dict[str, Decimal]) -> List[Diagnostic]:
    recognized = sum((recognized_gain_loss(e) for e in events), ZERO)
    expected = (totals["short_term_gains"] + totals["long_term_gains"]) - (
        totals["short_term_losses"] + totals["long_term_losses"]
    )
    if round_usd(recognized) == expected:
        return []
    message = f"sum of recognized gain/loss {recognized} != gains - losses {expected}"
    logger.error(f"Aggregate reconciliation defect: {message}")
    return [Diagnostic(level="defect", code="aggregate_mismatch", message=message)]


def aggregate(
    year: int,
    method: str,
    taxable_events: List[TaxableEvent],
    income_events: List[IncomeEvent],
    diagnostics: List[Diagnostic],
) -> TaxReport:
    totals = summarize_capital_gains(taxable_events)
    diagnostics = list(diagnostics) + _check_aggregate(taxable_events, totals)

    net_short = totals["short_term_gains"] - totals["short_term_losses"]
    net_long = totals["long_term_gains"] - totals["long_term_losses"]

    total_net_loss = max(ZERO, -(net_short + net_long))
    deductible = min(total_net_loss, CAPITAL_LOSS_DEDUCTION_CAP)
    carryover = max(ZERO, total_net_loss - CAPITAL_LOSS_DEDUCTION_CAP)

    income_by_category = summarize_income(income_events)
    wash_total = sum((e.disallowed_loss for e in taxable_events if e.wash_sale), ZERO)

    return TaxReport(
        year=year,
        method=method,
        **totals,
        net_short_term=net_short,
        net_long_term=net_long,
        total_net_loss=round_usd(total_net_loss),
        deductible_losses=round_usd(deductible),
        loss_carryover=round_usd(carryover),
        total_taxable_gain=round_usd(net_short + net_long - deductible),
        total_income=round_usd(sum(income_by_category.values(), ZERO)),
        income_by_category=income_by_category,
        wash_sale_disallowed_total=round_usd(wash_total),
        taxable_events=taxable_events,
        income_events=income_events,
        form_8949=build_form_8949_entries(taxable_events),
        diagnostics=diagnostics,
    )
