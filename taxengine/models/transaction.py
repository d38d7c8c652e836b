"""
transaction.py

Stored raw transactions, as delivered by upstream ingestion. The tax engine reads
these through services/transaction.py and never writes lots, disposals or
results back; every report is recomputed from this table.
"""

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Numeric, Text, Index

from taxengine.database import Base, UTCDateTime


def _utcnow():
    return datetime.now(timezone.utc)


class StoredTransaction(Base):
    """
    One ledger row. Amount columns keep 18 fractional digits for token
    quantities; USD columns keep cents plus headroom for upstream precision.
    """

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)

    timestamp = Column(
        UTCDateTime,
        nullable=False,
        doc="When the transaction occurred (UTC)."
    )
    type = Column(String, nullable=False, doc="Declared type: e.g. 'buy', 'swap', 'staking'")
    asset_symbol = Column(String, nullable=False, doc="Asset ticker, or a pair like 'ETH/USDC' for swaps.")

    amount = Column(Numeric(38, 18), nullable=False, doc="Asset quantity (magnitude).")
    value_usd = Column(Numeric(18, 8), nullable=False, doc="Fair value in USD.")
    fee_usd = Column(Numeric(18, 8), nullable=True)
    price_per_unit = Column(Numeric(38, 18), nullable=True)

    chain = Column(String, nullable=True)
    source_type = Column(String, nullable=True, doc="'csv_import' values are already net of fees.")
    tx_hash = Column(String, nullable=True)
    notes = Column(Text, nullable=True, doc="May embed a pre-resolved cost basis or swap legs.")

    incoming_asset_symbol = Column(String, nullable=True)
    incoming_amount = Column(Numeric(38, 18), nullable=True)
    incoming_value_usd = Column(Numeric(18, 8), nullable=True)

    created_at = Column(
        UTCDateTime,
        default=_utcnow,
        nullable=False,
        doc="Auto-set creation time."
    )

    __table_args__ = (
        Index("ix_transactions_timestamp_id", "timestamp", "id"),
    )

    def __repr__(self):
        return (
            f"<StoredTransaction(id={self.id}, type={self.type}, asset={self.asset_symbol}, "
            f"amount={self.amount}, timestamp={self.timestamp})>"
        )
