"""
taxengine/services/wash_sale.py

Tracks loss sales and moves disallowed loss into replacement lots.

A loss sale opens a LossSaleRecord whose capacity starts at the loss magnitude.
A later same-asset purchase within 30 days (either direction) of that sale draws
the remaining capacity into its own cost basis. Once all transactions have been
processed, mark_wash_sales() annotates the originating TaxableEvents; the
gain/loss figure itself is left untouched so Form 8949 still shows the loss
with code W.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from taxengine.constants import WASH_SALE_WINDOW_DAYS, round_usd
from taxengine.schemas.tax_report import TaxableEvent
from taxengine.services.lots import normalize_asset

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass
class LossSaleRecord:
    transaction_id: str
    asset: str
    disposed_at: datetime
    loss_amount: Decimal
    remaining_capacity: Decimal

    @property
    def disallowed_amount(self) -> Decimal:
        return self.loss_amount - self.remaining_capacity


class WashSaleTracker:
    """
    Loss-sale records for one report computation.
    """

    def __init__(self, window_days: int = WASH_SALE_WINDOW_DAYS):
        self.window = timedelta(days=window_days)
        self.records: List[LossSaleRecord] = []

    def record_loss(self, transaction_id: str, asset: str, disposed_at: datetime, loss: Decimal) -> Optional[LossSaleRecord]:
        """
        Opens a record for a realized loss. `loss` may be given signed or as a magnitude.
        """
        magnitude = abs(loss)
        if magnitude == ZERO:
            return None
        record = LossSaleRecord(
            transaction_id=transaction_id,
            asset=normalize_asset(asset),
            disposed_at=disposed_at,
            loss_amount=magnitude,
            remaining_capacity=magnitude,
        )
        self.records.append(record)
        return record

    def check_wash_sale(self, asset: str, acquired_at: datetime) -> Decimal:
        """
        Returns the disallowed loss to add to a new lot of `asset` acquired at
        `acquired_at`, drawing down every matching record's capacity.
        """
        key = normalize_asset(asset)
        disallowed = ZERO

        for record in self.records:
            if record.asset != key or record.remaining_capacity <= ZERO:
                continue
            if abs(acquired_at - record.disposed_at) > self.window:
                continue

            transfer = min(record.remaining_capacity, record.loss_amount)
            record.remaining_capacity -= transfer
            disallowed += transfer
            logger.info(
                f"Wash sale: {transfer} of loss from tx {record.transaction_id} "
                f"moved into {key} acquired {acquired_at.date()}"
            )

        return disallowed

    def mark_wash_sales(self, events: List[TaxableEvent]) -> Decimal:
        """
        Flags events whose loss was (partly) disallowed. Returns the total disallowed.
        """
        by_tx: Dict[str, LossSaleRecord] = {}
        for record in self.records:
            if record.disallowed_amount > ZERO:
                by_tx[record.transaction_id] = record

        total = ZERO
        for event in events:
            record = by_tx.get(event.transaction_id)
            if record is None or record.asset != normalize_asset(event.asset):
                continue
            event.wash_sale = True
            event.disallowed_loss = round_usd(record.disallowed_amount)
            total += event.disallowed_loss

        return total
