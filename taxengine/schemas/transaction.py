"""
taxengine/schemas/transaction.py

Pydantic v2 schemas for the raw transactions the tax engine consumes.

- TransactionBase: shared fields, UTC timestamp coercion, magnitude amounts
- TransactionCreate: body for storing a transaction through the API
- Transaction: immutable engine input; also reads stored rows (from_attributes)

Types are free-form strings ("buy", "Liquidity_Add", "NFT Sale", ...); the
classifier normalizes them, so nothing is rejected here for an unfamiliar type.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# -------------------------------------------------
# CUSTOM VALIDATORS
# -------------------------------------------------

def validate_usd_decimal(value: Decimal) -> Decimal:
    """
    Caps USD amounts at 16 integer digits.
    Extra fractional precision is accepted; reports quantize to cents.
    """
    integer_part = str(abs(value)).split(".", 1)[0]
    if len(integer_part) > 16:
        raise ValueError("USD amount cannot exceed 16 integer digits.")
    return value


class TransactionBase(BaseModel):
    """
    One ledger row as produced by upstream ingestion. Swap rows may also carry the
    incoming leg; sells may carry a pre-resolved cost basis inside `notes`.
    """
    timestamp: datetime
    type: str = Field(..., min_length=1, description="Declared type, e.g. 'buy', 'swap', 'staking'.")
    asset_symbol: str = Field(..., min_length=1, description="Asset ticker; swaps may use 'ETH/USDC'.")
    amount: Decimal = Field(..., description="Quantity of the asset, stored as a magnitude.")
    value_usd: Decimal = Field(..., description="Fair value in USD; sign is ignored by the engine.")
    fee_usd: Optional[Decimal] = None
    price_per_unit: Optional[Decimal] = Field(
        default=None,
        description="Explicit USD price per unit; derived from value/amount when absent."
    )
    chain: Optional[str] = None
    source_type: Optional[str] = Field(default=None, description="e.g. 'csv_import' or 'on_chain'.")
    tx_hash: Optional[str] = None
    notes: Optional[str] = None

    incoming_asset_symbol: Optional[str] = None
    incoming_amount: Optional[Decimal] = None
    incoming_value_usd: Optional[Decimal] = None

    @field_validator("timestamp")
    def force_utc_timestamp(cls, v: datetime) -> datetime:
        """
        Ensures timestamps are UTC so ordering and day counts are unambiguous.
        """
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @field_validator("amount", "incoming_amount")
    def magnitude(cls, v: Decimal | None) -> Decimal | None:
        if v is None:
            return v
        return abs(v)

    @field_validator("value_usd", "fee_usd", "incoming_value_usd")
    def validate_usd_fields(cls, v: Decimal | None) -> Decimal | None:
        if v is not None:
            return validate_usd_decimal(v)
        return v

    @field_validator("type", "asset_symbol")
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @property
    def unit_price(self) -> Decimal:
        """Explicit price per unit, or |value_usd| / amount (0 for a zero amount)."""
        if self.price_per_unit is not None:
            return self.price_per_unit
        if not self.amount:
            return Decimal("0")
        return abs(self.value_usd) / self.amount


class TransactionCreate(TransactionBase):
    """Body for POST /api/transactions/."""
    pass


class Transaction(TransactionBase):
    """
    Immutable engine input. `id` is a string so callers can use exchange ids or
    hashes; integer ids from the datastore are coerced.
    """
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str

    @field_validator("id", mode="before")
    def coerce_id(cls, v) -> str:
        return str(v)
