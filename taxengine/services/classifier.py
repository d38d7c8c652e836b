"""
taxengine/services/classifier.py

Maps each transaction's declared type to the economic event it represents and
runs the matching handler against one computation's lot ledger and wash-sale
tracker.

classify() only answers "what kind of event is this" (acquisition, disposal,
swap pair, transfer, income recognition, no-op); the per-variant handlers in
HANDLERS answer "what does it do to lots and events". Declared types are
normalized first, so 'Liquidity_Add', 'liquidity-add' and 'LIQUIDITY ADD' all
land on the same handler.

Type effects:
- purchase (buy / dca / nft purchase): new lot at |value| + fee + wash-sale addition
- liquidity add: new LP-token lot at |value|
- sale (sell / nft sale): notes cost basis if present, else lots; loss opens a wash-sale record
- swap: outgoing leg disposed as a sale, incoming leg becomes a lot at incoming value + fee
- bridge / liquidity remove: lots disposed at |value|
- send / unstake: lots consumed, nothing recognized
- income types: IncomeEvent in the filing year and a lot at fair value
- borrow / repay: nothing
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Callable, Dict, List, Optional

from taxengine.constants import SOURCE_CSV_IMPORT
from taxengine.schemas.tax_report import Diagnostic, IncomeEvent, TaxableEvent
from taxengine.schemas.transaction import Transaction
from taxengine.services.event_builder import build_income_event, build_taxable_event
from taxengine.services.lots import LotLedger, normalize_asset
from taxengine.services.notes_parser import SwapLegs, parse_asset_pair, parse_cost_basis, parse_swap_notes
from taxengine.services.wash_sale import WashSaleTracker

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


# -------------------------------------------------
# CLASSIFICATION
# -------------------------------------------------

class TxKind(str, Enum):
    ACQUISITION = "acquisition"
    DISPOSAL = "disposal"
    SWAP_PAIR = "swap_pair"
    TRANSFER = "transfer"
    INCOME_RECOGNITION = "income_recognition"
    NO_OP = "no_op"


@dataclass(frozen=True)
class Classification:
    kind: TxKind
    variant: str
    income_category: Optional[str] = None


def _income(category: str) -> Classification:
    return Classification(TxKind.INCOME_RECOGNITION, "income", category)


TYPE_TABLE: Dict[str, Classification] = {
    "buy": Classification(TxKind.ACQUISITION, "purchase"),
    "dca": Classification(TxKind.ACQUISITION, "purchase"),
    "nft purchase": Classification(TxKind.ACQUISITION, "purchase"),
    "liquidity add": Classification(TxKind.ACQUISITION, "liquidity_add"),
    "sell": Classification(TxKind.DISPOSAL, "sale"),
    "nft sale": Classification(TxKind.DISPOSAL, "sale"),
    "bridge": Classification(TxKind.DISPOSAL, "bridge"),
    "liquidity remove": Classification(TxKind.DISPOSAL, "liquidity_remove"),
    "swap": Classification(TxKind.SWAP_PAIR, "swap"),
    "send": Classification(TxKind.TRANSFER, "send"),
    "unstake": Classification(TxKind.TRANSFER, "unstake"),
    "receive": _income("other"),
    "stake": _income("staking"),
    "staking": _income("staking"),
    "reward": _income("reward"),
    "airdrop": _income("airdrop"),
    "mining": _income("mining"),
    "yield": _income("reward"),
    "interest": _income("reward"),
    "liquidity providing": _income("reward"),
    "yield farming": _income("reward"),
    "farm reward": _income("reward"),
    "borrow": Classification(TxKind.NO_OP, "borrow"),
    "repay": Classification(TxKind.NO_OP, "repay"),
}

UNKNOWN = Classification(TxKind.NO_OP, "unknown")


def normalize_type(raw_type: str) -> str:
    """'Liquidity_Add' -> 'liquidity add'"""
    return re.sub(r"[\s_\-]+", " ", (raw_type or "").strip().lower()).strip()


def classify(tx: Transaction) -> Classification:
    return TYPE_TABLE.get(normalize_type(tx.type), UNKNOWN)


# -------------------------------------------------
# PER-COMPUTATION STATE
# -------------------------------------------------

@dataclass
class CalculationContext:
    """
    Everything one calculate_tax_report() call mutates. Never shared between calls.
    """
    year: int
    method: str
    ledger: LotLedger = field(default_factory=LotLedger)
    wash_sales: WashSaleTracker = field(default_factory=WashSaleTracker)
    taxable_events: List[TaxableEvent] = field(default_factory=list)
    income_events: List[IncomeEvent] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)

    def in_filing_year(self, when: datetime) -> bool:
        return when.year == self.year

    def warn(self, code: str, tx: Transaction, message: str):
        logger.warning(f"[{code}] tx {tx.id}: {message}")
        self.diagnostics.append(Diagnostic(level="warning", code=code, transaction_id=tx.id, message=message))


# -------------------------------------------------
# SHARED HELPERS
# -------------------------------------------------

def sale_proceeds(tx: Transaction) -> Decimal:
    """
    CSV-imported values are already net of fees; on-chain values have the fee
    subtracted here. Never negative.
    """
    gross = abs(tx.value_usd)
    if (tx.source_type or "").strip().lower() == SOURCE_CSV_IMPORT:
        return gross
    return max(ZERO, gross - (tx.fee_usd or ZERO))


def _dispose_from_lots(
    tx: Transaction,
    ctx: CalculationContext,
    *,
    asset: str,
    amount: Decimal,
    proceeds: Decimal,
    kind: str,
    track_loss: bool,
) -> TaxableEvent:
    """
    Consumes lots for a taxable disposal. The event is always built (a loss may
    wash against a purchase in the next year) but only captured in the filing year.
    """
    selection = ctx.ledger.consume(asset, amount, ctx.method)
    if selection.shortfall > ZERO:
        if selection.portions:
            message = f"only {selection.covered_amount} of {amount} {asset} found in open lots; missing part has basis 0"
        else:
            message = f"no open lots for {amount} {asset}; cost basis defaults to 0"
        ctx.warn("insufficient_lots", tx, message)

    event = build_taxable_event(
        tx,
        asset=asset,
        amount=amount,
        proceeds=proceeds,
        cost_basis=selection.cost_basis,
        acquired_at=selection.earliest_acquired,
        kind=kind,
    )
    _capture(tx, ctx, event, track_loss)
    return event


def _capture(tx: Transaction, ctx: CalculationContext, event: TaxableEvent, track_loss: bool):
    if track_loss and event.gain_loss < ZERO:
        ctx.wash_sales.record_loss(tx.id, event.asset, event.date, event.gain_loss)
    if ctx.in_filing_year(event.date):
        ctx.taxable_events.append(event)


def _consume_only(tx: Transaction, ctx: CalculationContext):
    asset = normalize_asset(tx.asset_symbol)
    selection = ctx.ledger.consume(asset, tx.amount, ctx.method)
    if selection.shortfall > ZERO:
        ctx.warn(
            "insufficient_lots", tx,
            f"{normalize_type(tx.type)} of {tx.amount} {asset} exceeds open lots by {selection.shortfall}",
        )


# -------------------------------------------------
# HANDLERS
# -------------------------------------------------

def _handle_purchase(tx: Transaction, classification: Classification, ctx: CalculationContext):
    asset = normalize_asset(tx.asset_symbol)
    cost_basis = abs(tx.value_usd) + (tx.fee_usd or ZERO)
    disallowed = ctx.wash_sales.check_wash_sale(asset, tx.timestamp)
    ctx.ledger.add_lot(tx.id, asset, tx.timestamp, tx.amount, cost_basis + disallowed, unit_price=tx.unit_price)


def _handle_liquidity_add(tx: Transaction, classification: Classification, ctx: CalculationContext):
    ctx.ledger.add_lot(
        tx.id, normalize_asset(tx.asset_symbol), tx.timestamp, tx.amount, abs(tx.value_usd),
        unit_price=tx.unit_price,
    )


def _handle_sale(tx: Transaction, classification: Classification, ctx: CalculationContext):
    asset = normalize_asset(tx.asset_symbol)
    proceeds = sale_proceeds(tx)

    embedded = parse_cost_basis(tx.notes)
    if embedded is not None and embedded.malformed:
        ctx.warn("malformed_cost_basis", tx, "notes carry 'Cost Basis:' without a readable amount; using lots")
        embedded = None

    if embedded is None:
        _dispose_from_lots(tx, ctx, asset=asset, amount=tx.amount, proceeds=proceeds, kind="sale", track_loss=True)
        return

    # Matched upstream; open lots are left as they are.
    event = build_taxable_event(
        tx,
        asset=asset,
        amount=tx.amount,
        proceeds=proceeds,
        cost_basis=embedded.cost_basis,
        acquired_at=embedded.purchased_at,
        kind="sale",
        holding_override=embedded.holding_period,
    )
    _capture(tx, ctx, event, track_loss=True)


def resolve_swap_legs(tx: Transaction) -> Optional[SwapLegs]:
    """
    Structured incoming fields win; otherwise notes, then an 'ETH/USDC' style
    asset symbol, then the incoming symbol field alone. Missing amounts fall
    back to the row's own fields.
    """
    if tx.incoming_asset_symbol and tx.incoming_amount:
        return SwapLegs(
            outgoing_asset=normalize_asset(tx.asset_symbol),
            incoming_asset=normalize_asset(tx.incoming_asset_symbol),
            outgoing_amount=tx.amount,
            incoming_amount=tx.incoming_amount,
        )

    parsed = parse_swap_notes(tx.notes) or parse_asset_pair(tx.asset_symbol)
    if parsed is None:
        if not tx.incoming_asset_symbol:
            return None
        parsed = SwapLegs(outgoing_asset=normalize_asset(tx.asset_symbol), incoming_asset=tx.incoming_asset_symbol)
    return SwapLegs(
        outgoing_asset=parsed.outgoing_asset,
        incoming_asset=normalize_asset(tx.incoming_asset_symbol or parsed.incoming_asset),
        outgoing_amount=parsed.outgoing_amount or tx.amount,
        incoming_amount=parsed.incoming_amount or tx.incoming_amount,
    )


def _handle_swap(tx: Transaction, classification: Classification, ctx: CalculationContext):
    legs = resolve_swap_legs(tx)
    if legs is None:
        ctx.warn("unparsed_swap", tx, "incoming leg not found in fields, notes or symbol; disposing outgoing leg only")
        _dispose_from_lots(
            tx, ctx,
            asset=normalize_asset(tx.asset_symbol),
            amount=tx.amount,
            proceeds=sale_proceeds(tx),
            kind="swap",
            track_loss=True,
        )
        return

    _dispose_from_lots(
        tx, ctx,
        asset=legs.outgoing_asset,
        amount=legs.outgoing_amount,
        proceeds=sale_proceeds(tx),
        kind="swap",
        track_loss=True,
    )

    if not legs.incoming_amount:
        ctx.warn("unparsed_swap", tx, f"incoming amount of {legs.incoming_asset} unknown; no lot created")
        return

    incoming_value = abs(tx.incoming_value_usd) if tx.incoming_value_usd is not None else abs(tx.value_usd)
    ctx.ledger.add_lot(
        tx.id,
        legs.incoming_asset,
        tx.timestamp,
        legs.incoming_amount,
        incoming_value + (tx.fee_usd or ZERO),
        unit_price=incoming_value / legs.incoming_amount,
    )


def _handle_fair_value_disposal(tx: Transaction, classification: Classification, ctx: CalculationContext):
    # Bridge and LP removal; the incoming side arrives as its own ledger row.
    _dispose_from_lots(
        tx, ctx,
        asset=normalize_asset(tx.asset_symbol),
        amount=tx.amount,
        proceeds=abs(tx.value_usd),
        kind=classification.variant,
        track_loss=False,
    )


def _handle_transfer(tx: Transaction, classification: Classification, ctx: CalculationContext):
    _consume_only(tx, ctx)


def _handle_income(tx: Transaction, classification: Classification, ctx: CalculationContext):
    asset = normalize_asset(tx.asset_symbol)
    value = abs(tx.value_usd)
    if value <= ZERO:
        logger.debug(f"Zero-value {normalize_type(tx.type)} tx {tx.id}; nothing recognized")
        return

    if ctx.in_filing_year(tx.timestamp):
        ctx.income_events.append(
            build_income_event(tx, asset=asset, value_usd=value, category=classification.income_category)
        )
    ctx.ledger.add_lot(tx.id, asset, tx.timestamp, tx.amount, value, unit_price=tx.unit_price)


def _handle_no_op(tx: Transaction, classification: Classification, ctx: CalculationContext):
    logger.debug(f"tx {tx.id} ({classification.variant}) has no lot or event effect")


def _handle_unknown(tx: Transaction, classification: Classification, ctx: CalculationContext):
    ctx.warn("unknown_type", tx, f"unrecognized transaction type '{tx.type}'; ignored")


HANDLERS: Dict[str, Callable[[Transaction, Classification, CalculationContext], None]] = {
    "purchase": _handle_purchase,
    "liquidity_add": _handle_liquidity_add,
    "sale": _handle_sale,
    "swap": _handle_swap,
    "bridge": _handle_fair_value_disposal,
    "liquidity_remove": _handle_fair_value_disposal,
    "send": _handle_transfer,
    "unstake": _handle_transfer,
    "income": _handle_income,
    "borrow": _handle_no_op,
    "repay": _handle_no_op,
    "unknown": _handle_unknown,
}


def process_transaction(tx: Transaction, ctx: CalculationContext) -> Classification:
    classification = classify(tx)
    HANDLERS[classification.variant](tx, classification, ctx)
    return classification
