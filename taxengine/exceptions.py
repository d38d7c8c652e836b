"""
Errors raised by the tax engine when the caller breaks its contract
(unknown cost basis method, unordered or duplicated input). Data-quality
problems are reported as diagnostics instead and never raised.
"""


class TaxEngineError(ValueError):
    """Raised before any lot is touched; the computation produced nothing."""
    pass
