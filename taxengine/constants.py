"""
Tax constants shared by the lot ledger, wash-sale tracker and report aggregator.
These model the US short/long-term and wash-sale rules only.
"""

from decimal import Decimal, ROUND_HALF_UP

# Cost basis methods accepted by calculate_tax_report
COST_BASIS_METHODS = ("FIFO", "LIFO", "HIFO")
DEFAULT_COST_BASIS_METHOD = "FIFO"

# Holding period: long-term iff days held >= 366
LONG_TERM_DAYS = 366

# Wash-sale window (either direction) around a loss sale
WASH_SALE_WINDOW_DAYS = 30

# Annual capital-loss deduction cap against ordinary income
CAPITAL_LOSS_DEDUCTION_CAP = Decimal("3000")

# Lots with remaining amount at or below this are removed from the ledger
LOT_EPSILON = Decimal("1e-12")

# USD rounding for every reported amount
USD_PLACES = Decimal("0.01")
USD_ROUNDING = ROUND_HALF_UP

# Source type whose values are already net of fees
SOURCE_CSV_IMPORT = "csv_import"

# Income categories reported on IncomeEvents
INCOME_CATEGORIES = ("staking", "reward", "airdrop", "mining", "other")

# Form 8949 adjustment code for a disallowed wash-sale loss
WASH_SALE_CODE = "W"


def round_usd(amount) -> Decimal:
    """Quantize a USD amount to cents."""
    return Decimal(amount).quantize(USD_PLACES, rounding=USD_ROUNDING)
