"""
taxengine/services/notes_parser.py

Pulls structured facts out of free-text transaction notes.

Upstream ingestion sometimes resolves a sell against its buy ahead of time and
writes the result into notes, e.g.

    "Cost Basis: $1,234.56 | Purchased: 2023-02-01 | Long-term (400 days)"

and swap rows frequently describe both legs only in text, e.g.

    "Swapped 1.5 ETH for 3000 USDC"   "1.5 ETH -> 3000 USDC"   "ETH → USDC"

Every parser here is a pure function over strings. A result of None means the
notes simply do not contain that fact; NotesCostBasis.malformed means a
"Cost Basis:" marker exists but its value could not be read.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional

COST_BASIS_MARKER = re.compile(r"Cost Basis:", re.IGNORECASE)
COST_BASIS_PATTERN = re.compile(r"Cost Basis:\s*\$?([\d,]+(?:\.\d+)?)", re.IGNORECASE)
PURCHASED_PATTERN = re.compile(r"Purchased:\s*(\d{4}-\d{2}-\d{2})", re.IGNORECASE)
HOLDING_PERIOD_PATTERN = re.compile(r"(Long-term|Short-term)\s*\((\d+)\s*days?\)", re.IGNORECASE)

SWAP_PATTERNS = (
    # "1.5 ETH → 3000 USDC", "1.5 ETH for 3000 USDC"
    re.compile(r"([\d.,]+)\s*(\w+)\s*(?:→|->|-|for|to)\s*([\d.,]+)\s*(\w+)", re.IGNORECASE),
    # "Swapped 1.5 ETH for 3000 USDC"
    re.compile(
        r"(?:swapped|swap|exchanged|exchange)\s+([\d.,]+)\s+(\w+)\s+(?:for|to|→|->|-)\s+([\d.,]+)\s+(\w+)",
        re.IGNORECASE,
    ),
)
SWAP_SYMBOLS_PATTERN = re.compile(r"(\w+)\s*→\s*(\w+)", re.IGNORECASE)
ASSET_PAIR_PATTERN = re.compile(r"(\w+)\s*(?:/|→|->|-)\s*(\w+)", re.IGNORECASE)


@dataclass(frozen=True)
class NotesCostBasis:
    cost_basis: Optional[Decimal] = None
    purchased_at: Optional[datetime] = None
    holding_period: Optional[str] = None   # "short" / "long"
    holding_days: Optional[int] = None
    malformed: bool = False


@dataclass(frozen=True)
class SwapLegs:
    outgoing_asset: str
    incoming_asset: str
    outgoing_amount: Optional[Decimal] = None
    incoming_amount: Optional[Decimal] = None


def parse_decimal(text: str) -> Optional[Decimal]:
    """'1,234.50' -> Decimal('1234.50'); None when unreadable."""
    try:
        value = Decimal(text.replace(",", ""))
    except (InvalidOperation, AttributeError):
        return None
    if not value.is_finite():
        return None
    return value


def parse_cost_basis(notes: Optional[str]) -> Optional[NotesCostBasis]:
    """
    Reads an embedded cost basis with its purchase date and holding period.
    Returns None when there is no "Cost Basis:" marker at all.
    """
    if not notes or not COST_BASIS_MARKER.search(notes):
        return None

    match = COST_BASIS_PATTERN.search(notes)
    cost_basis = parse_decimal(match.group(1)) if match else None
    if cost_basis is None:
        return NotesCostBasis(malformed=True)

    purchased_at = None
    purchased = PURCHASED_PATTERN.search(notes)
    if purchased:
        try:
            purchased_at = datetime.strptime(purchased.group(1), "%Y-%m-%d").replace(tzinfo=timezone.utc)
        except ValueError:
            purchased_at = None

    holding_period = None
    holding_days = None
    held = HOLDING_PERIOD_PATTERN.search(notes)
    if held:
        holding_period = "long" if held.group(1).lower() == "long-term" else "short"
        holding_days = int(held.group(2))

    return NotesCostBasis(
        cost_basis=cost_basis,
        purchased_at=purchased_at,
        holding_period=holding_period,
        holding_days=holding_days,
    )


def parse_swap_notes(notes: Optional[str]) -> Optional[SwapLegs]:
    """
    Tries amount-bearing patterns first, then the bare "ETH → USDC" form.
    """
    if not notes:
        return None

    for pattern in SWAP_PATTERNS:
        match = pattern.search(notes)
        if not match:
            continue
        outgoing_amount = parse_decimal(match.group(1))
        incoming_amount = parse_decimal(match.group(3))
        return SwapLegs(
            outgoing_asset=match.group(2).upper(),
            incoming_asset=match.group(4).upper(),
            outgoing_amount=abs(outgoing_amount) if outgoing_amount else None,
            incoming_amount=abs(incoming_amount) if incoming_amount else None,
        )

    match = SWAP_SYMBOLS_PATTERN.search(notes)
    if match:
        return SwapLegs(outgoing_asset=match.group(1).upper(), incoming_asset=match.group(2).upper())
    return None


def parse_asset_pair(asset_symbol: Optional[str]) -> Optional[SwapLegs]:
    """'ETH/USDC', 'ETH->USDC' or 'ETH→USDC' -> SwapLegs without amounts."""
    if not asset_symbol:
        return None
    match = ASSET_PAIR_PATTERN.search(asset_symbol)
    if not match:
        return None
    return SwapLegs(outgoing_asset=match.group(1).upper(), incoming_asset=match.group(2).upper())
