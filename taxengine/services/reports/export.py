"""
taxengine/services/reports/export.py

Tabular exports of a TaxReport for spreadsheets and tax software:

- capital_gains_csv: one row per taxable event
- income_csv: one row per income event
- capital_gains_by_asset_csv: per-asset totals, largest |gain/loss| first

Amounts are plain two-decimal numbers; no currency symbols.
"""

import csv
import io
import logging
from decimal import Decimal
from typing import Dict, List

from taxengine.constants import round_usd
from taxengine.schemas.tax_report import TaxReport

logger = logging.getLogger(__name__)

EXPORT_KINDS = ("capital_gains", "income", "by_asset")

CAPITAL_GAINS_HEADERS = [
    "Date",
    "Date Acquired",
    "Asset",
    "Amount",
    "Proceeds (USD)",
    "Cost Basis (USD)",
    "Gain/Loss (USD)",
    "Holding Period",
    "Wash Sale",
    "Disallowed Loss (USD)",
    "Chain",
    "Transaction Hash",
]

INCOME_HEADERS = [
    "Date",
    "Asset",
    "Amount",
    "Value (USD)",
    "Type",
    "Chain",
    "Transaction Hash",
]

BY_ASSET_HEADERS = [
    "Asset",
    "Total Proceeds (USD)",
    "Total Cost Basis (USD)",
    "Total Gain/Loss (USD)",
    "Transaction Count",
]


def _write(headers: List[str], rows: List[List[str]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows(rows)
    return buffer.getvalue()


def _usd(amount) -> str:
    return f"{round_usd(amount):.2f}"


def capital_gains_csv(report: TaxReport) -> str:
    rows = [
        [
            event.date.date().isoformat(),
            event.date_acquired.date().isoformat() if event.date_acquired else "",
            event.asset,
            str(event.amount),
            _usd(event.proceeds),
            _usd(event.cost_basis),
            _usd(event.gain_loss),
            event.holding_period,
            "yes" if event.wash_sale else "",
            _usd(event.disallowed_loss) if event.wash_sale else "",
            event.chain or "",
            event.tx_hash or "",
        ]
        for event in report.taxable_events
    ]
    return _write(CAPITAL_GAINS_HEADERS, rows)


def income_csv(report: TaxReport) -> str:
    rows = [
        [
            event.date.date().isoformat(),
            event.asset,
            str(event.amount),
            _usd(event.value_usd),
            event.category,
            event.chain or "",
            event.tx_hash or "",
        ]
        for event in report.income_events
    ]
    return _write(INCOME_HEADERS, rows)


def capital_gains_by_asset(report: TaxReport) -> List[Dict]:
    """
    Per-asset totals sorted by |total gain/loss| descending, then asset name.
    """
    by_asset: Dict[str, Dict] = {}
    for event in report.taxable_events:
        entry = by_asset.setdefault(event.asset, {
            "asset": event.asset,
            "proceeds": Decimal("0"),
            "cost_basis": Decimal("0"),
            "gain_loss": Decimal("0"),
            "count": 0,
        })
        entry["proceeds"] += event.proceeds
        entry["cost_basis"] += event.cost_basis
        entry["gain_loss"] += event.gain_loss
        entry["count"] += 1

    return sorted(by_asset.values(), key=lambda e: (-abs(e["gain_loss"]), e["asset"]))


def capital_gains_by_asset_csv(report: TaxReport) -> str:
    rows = [
        [a["asset"], _usd(a["proceeds"]), _usd(a["cost_basis"]), _usd(a["gain_loss"]), str(a["count"])]
        for a in capital_gains_by_asset(report)
    ]
    return _write(BY_ASSET_HEADERS, rows)


def export_report_csv(report: TaxReport, kind: str) -> str:
    """
    Dispatches on `kind` ('capital_gains', 'income' or 'by_asset').
    """
    if kind == "capital_gains":
        data = capital_gains_csv(report)
    elif kind == "income":
        data = income_csv(report)
    elif kind == "by_asset":
        data = capital_gains_by_asset_csv(report)
    else:
        raise ValueError(f"Unknown export kind '{kind}'. Expected one of {', '.join(EXPORT_KINDS)}.")
    logger.info(f"Exported {kind} CSV for {report.year}")
    return data
