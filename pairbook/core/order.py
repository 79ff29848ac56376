"""
Order, side entry and trade data structures for the matching engine.

This module defines the canonical order record, the denormalized entry
kept in each side collection, and the record of a matched bid/ask pair.
All amounts are integer token units so fixed-point arithmetic is exact.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Any

from .order_types import OrderSide, OrderStatus


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Order:
    """
    Canonical record of one limit order.

    Remaining amounts shrink as the order is filled and drop to zero when
    it is filled or cancelled. The price is fixed at creation and is never
    recomputed from the remaining amounts.
    """

    # Core order identification
    order_id: int
    owner: str
    side: OrderSide

    # What the owner gives up and what they expect in return (remaining)
    offered_asset: str
    offered_amount: int
    requested_asset: str
    requested_amount: int

    # Scaled requested/offered ratio at creation
    price: int

    # History
    original_offered_amount: int = 0
    original_requested_amount: int = 0
    cancelled_amount: int = 0  # remainder refunded by cancellation
    status: OrderStatus = OrderStatus.OPEN
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def __post_init__(self):
        """Validate order after initialization."""
        if not self.original_offered_amount:
            self.original_offered_amount = self.offered_amount
        if not self.original_requested_amount:
            self.original_requested_amount = self.requested_amount
        self._validate()

    def _validate(self) -> None:
        """
        Validate structural order fields.

        Raises:
            ValueError: If order fields are inconsistent
        """
        if self.order_id <= 0:
            raise ValueError(f"Order id must be positive, got: {self.order_id}")

        if not self.owner:
            raise ValueError("Owner cannot be empty")

        if self.offered_asset == self.requested_asset:
            raise ValueError(f"Offered and requested asset must differ: {self.offered_asset}")

        if self.offered_amount < 0 or self.requested_amount < 0:
            raise ValueError("Remaining amounts cannot be negative")

    @property
    def is_closed(self) -> bool:
        """An order with nothing left to offer is closed."""
        return self.offered_amount == 0

    @property
    def filled_offered_amount(self) -> int:
        """Offered amount given up through fills (excludes a cancelled remainder)."""
        return self.original_offered_amount - self.offered_amount - self.cancelled_amount

    def to_dict(self) -> Dict[str, Any]:
        """Convert order to dictionary for serialization."""
        return {
            "order_id": self.order_id,
            "owner": self.owner,
            "side": self.side.value,
            "offered_asset": self.offered_asset,
            "offered_amount": str(self.offered_amount),
            "requested_asset": self.requested_asset,
            "requested_amount": str(self.requested_amount),
            "price": str(self.price),
            "original_offered_amount": str(self.original_offered_amount),
            "original_requested_amount": str(self.original_requested_amount),
            "filled_offered_amount": str(self.filled_offered_amount),
            "cancelled_amount": str(self.cancelled_amount),
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class SideEntry:
    """
    Mirror of an order held in a side collection for matching scans.

    Only the fields the scan reads are kept. The engine updates
    ``remaining_offered`` whenever it mutates the canonical order.
    """

    order_id: int
    price: int
    remaining_offered: int


@dataclass
class Trade:
    """
    One executed pairing of a bid and an ask.

    ``base_amount`` is the fill delivered to the bid owner and
    ``quote_amount`` the counter amount delivered to the ask owner, valued
    at the ask's stored price.
    """

    bid_order_id: int
    ask_order_id: int
    bid_owner: str
    ask_owner: str
    base_asset: str
    quote_asset: str
    base_amount: int
    quote_amount: int
    price: int

    trade_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert trade to dictionary for serialization."""
        return {
            "trade_id": self.trade_id,
            "bid_order_id": self.bid_order_id,
            "ask_order_id": self.ask_order_id,
            "bid_owner": self.bid_owner,
            "ask_owner": self.ask_owner,
            "base_asset": self.base_asset,
            "quote_asset": self.quote_asset,
            "base_amount": str(self.base_amount),
            "quote_amount": str(self.quote_amount),
            "price": str(self.price),
            "timestamp": self.timestamp.isoformat(),
        }
