"""
taxengine/services/lots.py

Per-asset cost-basis lots and the FIFO / LIFO / HIFO selector.

- select_lots(): pure. Orders the open lots for a method and greedily takes
  portions until the required amount is covered. Lots are not mutated.
- LotLedger: one computation's map of normalized asset -> open lots. consume()
  applies a selection and drops lots whose remaining amount falls to epsilon.

Basis for a partial portion is always derived from the lot's ORIGINAL amount:
cost_basis * portion / original_amount. A shortfall (not enough lots) is never
an error here; the caller decides how to surface it.
"""

import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from taxengine.constants import COST_BASIS_METHODS, LOT_EPSILON
from taxengine.exceptions import TaxEngineError

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def normalize_asset(symbol: str) -> str:
    return symbol.strip().upper()


def normalize_method(method: str) -> str:
    """
    Returns 'FIFO', 'LIFO' or 'HIFO' for any casing; raises TaxEngineError otherwise.
    """
    normalized = (method or "").strip().upper()
    if normalized not in COST_BASIS_METHODS:
        raise TaxEngineError(
            f"Unknown cost basis method '{method}'. Expected one of {', '.join(COST_BASIS_METHODS)}."
        )
    return normalized


@dataclass
class CostBasisLot:
    """
    A quantity of one asset acquired at one time. cost_basis always refers to
    original_amount and already includes fees and any wash-sale addition.
    unit_price is the acquisition price per unit HIFO ranks by; without one the
    lot falls back to cost_basis / original_amount.
    """
    transaction_id: str
    asset: str
    acquired_at: datetime
    original_amount: Decimal
    cost_basis: Decimal
    sequence: int = 0
    remaining_amount: Decimal = field(default=None)
    unit_price: Optional[Decimal] = None

    def __post_init__(self):
        if self.remaining_amount is None:
            self.remaining_amount = self.original_amount

    @property
    def price_per_unit(self) -> Decimal:
        if self.unit_price is not None:
            return self.unit_price
        if not self.original_amount:
            return ZERO
        return self.cost_basis / self.original_amount

    @property
    def remaining_basis(self) -> Decimal:
        return self.basis_for(self.remaining_amount)

    def basis_for(self, portion: Decimal) -> Decimal:
        if not self.original_amount:
            return ZERO
        return self.cost_basis * portion / self.original_amount


@dataclass
class LotPortion:
    lot: CostBasisLot
    amount: Decimal

    @property
    def cost_basis(self) -> Decimal:
        return self.lot.basis_for(self.amount)


@dataclass
class LotSelection:
    """Result of select_lots(): which lots, how much of each, and what is missing."""
    required_amount: Decimal
    portions: List[LotPortion] = field(default_factory=list)

    @property
    def covered_amount(self) -> Decimal:
        return sum((p.amount for p in self.portions), ZERO)

    @property
    def shortfall(self) -> Decimal:
        missing = self.required_amount - self.covered_amount
        return missing if missing > LOT_EPSILON else ZERO

    @property
    def cost_basis(self) -> Decimal:
        return sum((p.cost_basis for p in self.portions), ZERO)

    @property
    def earliest_acquired(self) -> Optional[datetime]:
        if not self.portions:
            return None
        return min(p.lot.acquired_at for p in self.portions)


def _sort_lots_by_method(lots: List[CostBasisLot], method: str) -> List[CostBasisLot]:
    """
    FIFO: oldest first. LIFO: newest first. HIFO: highest acquisition price per unit first.
    Insertion sequence breaks ties so the order is total.
    """
    if method == "FIFO":
        return sorted(lots, key=lambda lot: (lot.acquired_at, lot.sequence))
    if method == "LIFO":
        return sorted(lots, key=lambda lot: (lot.acquired_at, lot.sequence), reverse=True)
    return sorted(lots, key=lambda lot: (-lot.price_per_unit, lot.acquired_at, lot.sequence))


def select_lots(lots: List[CostBasisLot], required_amount: Decimal, method: str) -> LotSelection:
    """
    Chooses the portions of `lots` that satisfy `required_amount` under `method`.
    The last lot taken may be partial. Returns whatever exists when lots run out.
    """
    method = normalize_method(method)
    selection = LotSelection(required_amount=required_amount)
    remaining = required_amount

    for lot in _sort_lots_by_method(lots, method):
        if remaining <= LOT_EPSILON:
            break
        if lot.remaining_amount <= LOT_EPSILON:
            continue
        take = min(lot.remaining_amount, remaining)
        selection.portions.append(LotPortion(lot=lot, amount=take))
        remaining -= take

    return selection


class LotLedger:
    """
    Open lots for every asset within one report computation.
    Assets are keyed by normalized symbol.
    """

    def __init__(self):
        self._lots: Dict[str, List[CostBasisLot]] = {}
        self._sequence = itertools.count()

    def add_lot(
        self,
        transaction_id: str,
        asset: str,
        acquired_at: datetime,
        amount: Decimal,
        cost_basis: Decimal,
        unit_price: Optional[Decimal] = None,
    ) -> Optional[CostBasisLot]:
        """
        Appends a lot. Zero-amount acquisitions carry no basis forward and are skipped.
        """
        if amount <= LOT_EPSILON:
            logger.debug(f"Skipping zero-amount lot for {asset} from tx {transaction_id}")
            return None
        key = normalize_asset(asset)
        lot = CostBasisLot(
            transaction_id=transaction_id,
            asset=key,
            acquired_at=acquired_at,
            original_amount=amount,
            cost_basis=cost_basis,
            sequence=next(self._sequence),
            unit_price=unit_price,
        )
        self._lots.setdefault(key, []).append(lot)
        return lot

    def open_lots(self, asset: str) -> List[CostBasisLot]:
        return list(self._lots.get(normalize_asset(asset), []))

    def total_remaining(self, asset: str) -> Decimal:
        return sum((lot.remaining_amount for lot in self.open_lots(asset)), ZERO)

    def assets(self) -> List[str]:
        return sorted(key for key, lots in self._lots.items() if lots)

    def consume(self, asset: str, amount: Decimal, method: str) -> LotSelection:
        """
        Selects lots for `amount` and draws them down. Exhausted lots are removed.
        """
        key = normalize_asset(asset)
        selection = select_lots(self._lots.get(key, []), amount, method)

        for portion in selection.portions:
            portion.lot.remaining_amount -= portion.amount

        if key in self._lots:
            self._lots[key] = [lot for lot in self._lots[key] if lot.remaining_amount > LOT_EPSILON]

        return selection
