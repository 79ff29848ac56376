"""
Order store for a single trading pair.

Owns the identifier sequence, the canonical id -> Order mapping and the
two side collections used by matching scans. Side collections are plain
lists of SideEntry mirrors addressed by index, so removing an exhausted
order is an O(1) swap-remove.
"""

import copy
import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Any

from .exceptions import InvalidAmount, InvalidPair, InvariantViolation, NotFound
from .order import Order, SideEntry
from .order_types import OrderSide, OrderStatus, PRICE_SCALE, compute_price

logger = logging.getLogger(__name__)


class OrderStore:
    """
    Durable state of one order book.

    Holds no business rules beyond insert, index, decrement and remove.
    Several independent stores can live in the same process.
    """

    def __init__(self, base_asset: str, quote_asset: str, scale: int = PRICE_SCALE):
        """
        Initialize an empty store for a trading pair.

        Args:
            base_asset: Asset offered by asks and requested by bids
            quote_asset: Asset offered by bids and requested by asks
            scale: Fixed-point scale for stored prices
        """
        if base_asset == quote_asset:
            raise ValueError(f"Base and quote asset must differ: {base_asset}")

        self.base_asset = base_asset
        self.quote_asset = quote_asset
        self.scale = scale

        self.next_id = 1
        self.orders: Dict[int, Order] = {}
        self.bids: List[SideEntry] = []
        self.asks: List[SideEntry] = []

        logger.info(f"Initialized order store for {base_asset}/{quote_asset}")

    @property
    def symbol(self) -> str:
        return f"{self.base_asset}-{self.quote_asset}"

    def side_for(self, offered_asset: str, requested_asset: str) -> OrderSide:
        """
        Side an order joins given the assets it exchanges.

        Raises:
            InvalidPair: If the assets are not this store's pair in either direction
        """
        if (offered_asset, requested_asset) == (self.quote_asset, self.base_asset):
            return OrderSide.BID
        if (offered_asset, requested_asset) == (self.base_asset, self.quote_asset):
            return OrderSide.ASK
        raise InvalidPair(offered_asset, requested_asset)

    def create_order(
        self,
        owner: str,
        offered_asset: str,
        offered_amount: int,
        requested_asset: str,
        requested_amount: int,
    ) -> int:
        """
        Record a new order and place it on its side.

        Args:
            owner: Submitting account
            offered_asset: Asset given up
            offered_amount: Amount given up
            requested_asset: Asset expected in return
            requested_amount: Amount expected in return

        Returns:
            The new order id

        Raises:
            InvalidAmount: If either amount is not strictly positive
            InvalidPair: If the assets are not this store's pair
        """
        if offered_amount <= 0:
            raise InvalidAmount(f"offered amount must be positive, got {offered_amount}")
        if requested_amount <= 0:
            raise InvalidAmount(f"requested amount must be positive, got {requested_amount}")

        side = self.side_for(offered_asset, requested_asset)

        order_id = self.next_id
        price = compute_price(offered_amount, requested_amount, self.scale)

        order = Order(
            order_id=order_id,
            owner=owner,
            side=side,
            offered_asset=offered_asset,
            offered_amount=offered_amount,
            requested_asset=requested_asset,
            requested_amount=requested_amount,
            price=price,
        )

        self.next_id += 1
        self.orders[order_id] = order
        self.get_side(side).append(SideEntry(order_id=order_id, price=price, remaining_offered=offered_amount))

        logger.debug(f"Stored order {order_id} on {side.value} side at price {price}")
        return order_id

    def get_order(self, order_id: int) -> Order:
        """
        Get the canonical order record.

        Raises:
            NotFound: If no order was ever created with this id
        """
        order = self.orders.get(order_id) if order_id else None
        if order is None:
            raise NotFound(order_id)
        return order

    def get_side(self, side: OrderSide) -> List[SideEntry]:
        """Live side collection, in its current (unordered) sequence."""
        return self.bids if side == OrderSide.BID else self.asks

    def remove_from_side(self, index: int, side: OrderSide) -> None:
        """
        Swap-remove the entry at ``index``.

        The last entry overwrites the removed slot and the collection
        shrinks by one, so the order of the remaining entries changes.
        """
        entries = self.get_side(side)
        last = entries.pop()
        if index < len(entries):
            entries[index] = last
        logger.debug(f"Removed {side.value} entry at index {index}")

    def decrement_remaining(self, order_id: int, filled_offered: int, filled_requested: int) -> Order:
        """
        Reduce an order's remaining amounts after a fill.

        Raises:
            InvariantViolation: If either amount would drop below zero
        """
        order = self.get_order(order_id)
        if filled_offered > order.offered_amount or filled_requested > order.requested_amount:
            raise InvariantViolation(
                f"order {order_id} cannot give {filled_offered}/{order.offered_amount} "
                f"{order.offered_asset} and receive {filled_requested}/{order.requested_amount} "
                f"{order.requested_asset}"
            )

        order.offered_amount -= filled_offered
        order.requested_amount -= filled_requested
        order.status = OrderStatus.FILLED if order.is_closed else OrderStatus.PARTIALLY_FILLED
        order.updated_at = datetime.now(timezone.utc)
        return order

    def close_order(self, order_id: int) -> int:
        """
        Zero an order's remaining amounts on cancellation.

        The side entry is zeroed as well but stays in its collection until
        the next compaction.

        Returns:
            The offered amount that was remaining
        """
        order = self.get_order(order_id)
        remaining = order.offered_amount

        order.offered_amount = 0
        order.requested_amount = 0
        order.cancelled_amount = remaining
        order.status = OrderStatus.CANCELLED
        order.updated_at = datetime.now(timezone.utc)

        for entry in self.get_side(order.side):
            if entry.order_id == order_id:
                entry.remaining_offered = 0
                break

        return remaining

    def compact(self) -> int:
        """
        Drop closed entries from both side collections.

        Returns:
            Number of entries evicted
        """
        evicted = 0
        for side in OrderSide:
            entries = self.get_side(side)
            index = 0
            while index < len(entries):
                if entries[index].remaining_offered == 0:
                    self.remove_from_side(index, side)
                    evicted += 1
                else:
                    index += 1
        if evicted:
            logger.info(f"Compacted {evicted} closed entries from {self.symbol}")
        return evicted

    def total_remaining(self, asset: str) -> int:
        """Sum of remaining offered amounts of every order offering ``asset``."""
        return sum(order.offered_amount for order in self.orders.values() if order.offered_asset == asset)

    def snapshot(self, order_ids: Optional[Iterable[int]] = None) -> Dict[str, Any]:
        """
        Copy of the state an operation can change.

        Only the side collections and the given orders are copied; by
        default these are the orders still referenced by a side entry.
        Closed orders that have left the book are never copied.
        """
        if order_ids is None:
            order_ids = [entry.order_id for entry in self.bids + self.asks]
        return {
            "next_id": self.next_id,
            "orders": {order_id: copy.copy(self.orders[order_id]) for order_id in order_ids},
            "bids": [copy.copy(entry) for entry in self.bids],
            "asks": [copy.copy(entry) for entry in self.asks],
        }

    def restore(self, snapshot: Dict[str, Any]) -> None:
        """Reinstate a state taken with ``snapshot``."""
        for order_id in range(snapshot["next_id"], self.next_id):
            self.orders.pop(order_id, None)
        self.orders.update(snapshot["orders"])
        self.next_id = snapshot["next_id"]
        self.bids = snapshot["bids"]
        self.asks = snapshot["asks"]

    def get_statistics(self) -> Dict[str, Any]:
        """Get order store statistics."""
        open_orders = [order for order in self.orders.values() if not order.is_closed]
        return {
            "symbol": self.symbol,
            "next_order_id": self.next_id,
            "total_orders": len(self.orders),
            "open_orders": len(open_orders),
            "bid_entries": len(self.bids),
            "ask_entries": len(self.asks),
            "bid_remaining": str(self.total_remaining(self.quote_asset)),
            "ask_remaining": str(self.total_remaining(self.base_asset)),
        }

    def __len__(self) -> int:
        return len(self.orders)
