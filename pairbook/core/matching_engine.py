"""
Matching engine for a two-asset limit order book.

This module contains the MatchingEngine class that validates submissions,
runs the cross-matching scan over resting bids and asks, settles fills
through the ledger collaborator and handles cancellation.
"""

import logging
import threading
from contextlib import contextmanager, nullcontext
from datetime import datetime, timezone
from typing import Callable, Dict, Iterator, List, Optional, Any

from .events import EngineEvent, OrderCancelled, OrderCreated, OrderFilled
from .exceptions import (
    AlreadyClosed,
    InvalidAmount,
    ReentrantCall,
    TransferFailed,
    Unauthorized,
)
from .invariants import verify_custody
from .ledger import InMemoryLedger, Ledger
from .order import Order, SideEntry, Trade
from .order_store import OrderStore
from .order_types import OrderSide, PRICE_SCALE
from ..utils.logger import EngineLogger
from ..utils.performance import PerformanceMonitor, get_performance_monitor, measure_latency

logger = logging.getLogger(__name__)


class MatchingEngine:
    """
    Matching engine for one fixed trading pair.

    Features:
    - Deposit-on-submit custody through an injected ledger
    - Full bid x ask cross-matching scan with partial fills
    - Owner-only cancellation with refund of the remaining amount
    - Reentrancy guard around every mutating entry point
    - Ordered notifications for created, filled and cancelled orders

    Every mutating entry point is all-or-nothing with respect to the order
    store: an error raised part way restores the state it started from.
    """

    def __init__(
        self,
        store: OrderStore,
        ledger: Ledger,
        verify_invariants: bool = False,
        performance_monitor: Optional[PerformanceMonitor] = None,
    ):
        """
        Initialize the matching engine.

        Args:
            store: Order store owned by this engine
            ledger: Custody and settlement collaborator
            verify_invariants: Check the custody invariant after every operation
            performance_monitor: Records operation latency when given
        """
        self.store = store
        self.ledger = ledger
        self.verify_invariants = verify_invariants
        self.performance_monitor = performance_monitor
        self.engine_logger = EngineLogger()

        # Serializes callers on different threads; same-thread nesting is
        # left to the reentrancy guard
        self.lock = threading.RLock()

        # Name of the guarded operation currently executing
        self._active_operation: Optional[str] = None

        # Notifications
        self.event_callbacks: List[Callable[[EngineEvent], None]] = []
        self.events: List[EngineEvent] = []

        # Statistics
        self.total_orders_created = 0
        self.total_orders_cancelled = 0
        self.total_trades_executed = 0
        self.total_matching_passes = 0
        self.total_base_volume = 0
        self.total_quote_volume = 0
        self.start_time = datetime.now(timezone.utc)

        logger.info(f"Matching engine initialized for {store.symbol}")

    @classmethod
    def for_pair(
        cls,
        base_asset: str,
        quote_asset: str,
        ledger: Ledger,
        scale: int = PRICE_SCALE,
        **kwargs: Any,
    ) -> "MatchingEngine":
        """Create an engine with a fresh order store for a pair."""
        return cls(OrderStore(base_asset, quote_asset, scale), ledger, **kwargs)

    @classmethod
    def from_settings(cls, settings, ledger: Optional[Ledger] = None) -> "MatchingEngine":
        """
        Create an engine from a Settings instance.

        Args:
            settings: Configuration (pair, scale, custody, monitoring flags)
            ledger: Ledger to use; an in-memory one is created when omitted

        Returns:
            Configured MatchingEngine
        """
        if ledger is None:
            ledger = InMemoryLedger(custody_account=settings.custody_account)

        monitor = get_performance_monitor() if settings.enable_performance_monitoring else None
        return cls.for_pair(
            settings.base_asset,
            settings.quote_asset,
            ledger,
            scale=settings.price_scale,
            verify_invariants=settings.verify_invariants,
            performance_monitor=monitor,
        )

    @property
    def base_asset(self) -> str:
        return self.store.base_asset

    @property
    def quote_asset(self) -> str:
        return self.store.quote_asset

    # ------------------------------------------------------------------
    # Mutating entry points
    # ------------------------------------------------------------------

    def create_order(
        self,
        caller: str,
        offered_asset: str,
        offered_amount: int,
        requested_asset: str,
        requested_amount: int,
    ) -> int:
        """
        Submit a new resting order.

        The offered amount is pulled from the caller into custody before the
        order is recorded.

        Args:
            caller: Submitting account, becomes the order owner
            offered_asset: Asset given up
            offered_amount: Amount given up
            requested_asset: Asset expected in return
            requested_amount: Amount expected in return

        Returns:
            The new order id

        Raises:
            InvalidPair: If the assets are not the configured pair
            InvalidAmount: If either amount is not a positive integer
            TransferFailed: If the ledger refuses the deposit
            ReentrantCall: If another guarded call is in progress
        """
        with self._guard("create_order"), self._measure("create_order"):
            side = self.store.side_for(offered_asset, requested_asset)
            self._check_amount("offered", offered_amount)
            self._check_amount("requested", requested_amount)

            if not self.ledger.transfer_in(offered_asset, caller, offered_amount):
                logger.warning(f"Deposit of {offered_amount} {offered_asset} from {caller} refused")
                raise TransferFailed("in", offered_asset, caller, offered_amount)

            order_id = self.store.create_order(
                caller, offered_asset, offered_amount, requested_asset, requested_amount
            )
            order = self.store.get_order(order_id)
            self.total_orders_created += 1

            self.engine_logger.log_order_created(
                order_id, caller, side.value, offered_asset, offered_amount, requested_asset, requested_amount
            )
            self._emit([
                OrderCreated(
                    order_id=order_id,
                    owner=caller,
                    side=side.value,
                    offered_asset=offered_asset,
                    offered_amount=offered_amount,
                    requested_asset=requested_asset,
                    requested_amount=requested_amount,
                    price=order.price,
                )
            ])
            self._after_commit()
            return order_id

    def match_orders(self, caller: Optional[str] = None) -> List[Trade]:
        """
        Run one cross-matching pass over the book.

        Any caller may trigger a pass. Every bid is paired with every ask in
        collection order; a pair trades when the bid's stored price is at
        least the ask's and the fill, valued at the ask's price, fits within
        what both orders have left. A single pass is not guaranteed to find
        every eligible pair because swap-removal relocates entries mid-scan.

        Args:
            caller: Account triggering the pass (logged only)

        Returns:
            Trades executed, in scan order

        Raises:
            InvariantViolation: If the store detects an inconsistent fill;
                the store is restored and nothing is settled
            TransferFailed: If the ledger refuses a payout
            ReentrantCall: If another guarded call is in progress
        """
        with self._guard("match_orders"), self._measure("match_orders"):
            snapshot = self.store.snapshot()
            try:
                trades = self._scan()
            except Exception:
                self.store.restore(snapshot)
                logger.error(f"Matching pass on {self.store.symbol} aborted, book restored")
                raise

            self.total_matching_passes += 1
            if not trades:
                logger.debug(f"Matching pass by {caller or 'anonymous'}: no eligible pairs")
                return []

            self._settle(trades)

            events: List[EngineEvent] = []
            for trade in trades:
                self.total_trades_executed += 1
                self.total_base_volume += trade.base_amount
                self.total_quote_volume += trade.quote_amount
                self.engine_logger.log_trade(trade)
                events.extend(self._fill_events(trade))
            self._emit(events)

            logger.info(f"Matching pass by {caller or 'anonymous'}: {len(trades)} trades executed")
            self._after_commit()
            return trades

    def cancel_order(self, caller: str, order_id: int) -> int:
        """
        Cancel an order and refund its remaining offered amount.

        The order is closed in place; its side entry is zeroed and left for
        a later compaction.

        Args:
            caller: Account requesting the cancellation
            order_id: Order to cancel

        Returns:
            The refunded amount

        Raises:
            NotFound: If the order id was never issued
            Unauthorized: If the caller does not own the order
            AlreadyClosed: If nothing remains to cancel
            TransferFailed: If the ledger refuses the refund
            ReentrantCall: If another guarded call is in progress
        """
        with self._guard("cancel_order"), self._measure("cancel_order"):
            order = self.store.get_order(order_id)
            if order.owner != caller:
                logger.warning(f"Account {caller} tried to cancel order {order_id} owned by {order.owner}")
                raise Unauthorized(order_id, caller)
            if order.is_closed:
                raise AlreadyClosed(order_id)

            snapshot = self.store.snapshot([order_id])
            refund = self.store.close_order(order_id)
            try:
                self._transfer_out(order.offered_asset, order.owner, refund)
            except Exception:
                self.store.restore(snapshot)
                raise

            self.total_orders_cancelled += 1
            self.engine_logger.log_order_cancelled(order_id, caller, order.offered_asset, refund)
            self._emit([
                OrderCancelled(
                    order_id=order_id,
                    owner=order.owner,
                    refunded_asset=order.offered_asset,
                    refunded_amount=refund,
                )
            ])
            self._after_commit()
            return refund

    def cleanup(self) -> int:
        """
        Evict closed entries (cancelled orders) from both side collections.

        Returns:
            Number of entries evicted
        """
        with self._guard("cleanup"), self._measure("cleanup"):
            evicted = self.store.compact()
            self._after_commit()
            return evicted

    # ------------------------------------------------------------------
    # Matching internals
    # ------------------------------------------------------------------

    def _scan(self) -> List[Trade]:
        """
        Nested bid x ask scan.

        Indices are never rewound after a swap-remove: an ask moved into the
        current inner slot is skipped for the current bid, and a bid moved
        into the current outer slot resumes from the next ask.
        """
        bids = self.store.bids
        asks = self.store.asks
        trades: List[Trade] = []

        i = 0
        while i < len(bids):
            j = 0
            while j < len(asks) and i < len(bids):
                bid = bids[i]
                ask = asks[j]

                if bid.remaining_offered == 0 or ask.remaining_offered == 0:
                    j += 1
                    continue

                if bid.price >= ask.price:
                    fill = min(bid.remaining_offered, ask.remaining_offered)
                    # The ask's stored price values the quote leg for both parties
                    quote_amount = fill * ask.price // self.store.scale

                    if self._fillable(bid, ask, fill, quote_amount):
                        trades.append(self._execute(bid, ask, fill, quote_amount))

                        if ask.remaining_offered == 0:
                            self.store.remove_from_side(j, OrderSide.ASK)
                        if bid.remaining_offered == 0:
                            self.store.remove_from_side(i, OrderSide.BID)

                j += 1
            i += 1

        return trades

    def _fillable(self, bid: SideEntry, ask: SideEntry, fill: int, quote_amount: int) -> bool:
        """Whether a fill keeps every remaining amount of both orders non-negative."""
        bid_order = self.store.get_order(bid.order_id)
        ask_order = self.store.get_order(ask.order_id)
        if (quote_amount > bid.remaining_offered
                or fill > bid_order.requested_amount
                or quote_amount > ask_order.requested_amount):
            logger.debug(
                f"Skipped bid {bid.order_id} with ask {ask.order_id}: "
                f"{fill} {self.base_asset} would cost {quote_amount} {self.quote_asset}"
            )
            return False
        return True

    def _execute(self, bid: SideEntry, ask: SideEntry, fill: int, quote_amount: int) -> Trade:
        """Apply one fill to both orders and their side entries."""
        bid_order = self.store.decrement_remaining(bid.order_id, quote_amount, fill)
        ask_order = self.store.decrement_remaining(ask.order_id, fill, quote_amount)
        bid.remaining_offered = bid_order.offered_amount
        ask.remaining_offered = ask_order.offered_amount

        logger.debug(
            f"Matched bid {bid.order_id} with ask {ask.order_id}: "
            f"{fill} {self.base_asset} for {quote_amount} {self.quote_asset}"
        )

        return Trade(
            bid_order_id=bid_order.order_id,
            ask_order_id=ask_order.order_id,
            bid_owner=bid_order.owner,
            ask_owner=ask_order.owner,
            base_asset=self.base_asset,
            quote_asset=self.quote_asset,
            base_amount=fill,
            quote_amount=quote_amount,
            price=ask.price,
        )

    def _settle(self, trades: List[Trade]) -> None:
        """Pay out both legs of every trade from custody, in scan order."""
        for trade in trades:
            self._transfer_out(self.base_asset, trade.bid_owner, trade.base_amount)
            self._transfer_out(self.quote_asset, trade.ask_owner, trade.quote_amount)

    def _fill_events(self, trade: Trade) -> List[OrderFilled]:
        return [
            OrderFilled(
                order_id=trade.bid_order_id,
                owner=trade.bid_owner,
                counterparty_order_id=trade.ask_order_id,
                counterparty=trade.ask_owner,
                received_asset=self.base_asset,
                received_amount=trade.base_amount,
                given_asset=self.quote_asset,
                given_amount=trade.quote_amount,
                trade_id=trade.trade_id,
            ),
            OrderFilled(
                order_id=trade.ask_order_id,
                owner=trade.ask_owner,
                counterparty_order_id=trade.bid_order_id,
                counterparty=trade.bid_owner,
                received_asset=self.quote_asset,
                received_amount=trade.quote_amount,
                given_asset=self.base_asset,
                given_amount=trade.base_amount,
                trade_id=trade.trade_id,
            ),
        ]

    def _transfer_out(self, asset: str, account: str, amount: int) -> None:
        if not self.ledger.transfer_out(asset, account, amount):
            logger.critical(f"Ledger refused payout of {amount} {asset} to {account} from custody")
            raise TransferFailed("out", asset, account, amount)

    @staticmethod
    def _check_amount(name: str, amount: Any) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise InvalidAmount(f"{name} amount must be an integer, got {amount!r}")
        if amount <= 0:
            raise InvalidAmount(f"{name} amount must be positive, got {amount}")

    # ------------------------------------------------------------------
    # Guard, monitoring and notifications
    # ------------------------------------------------------------------

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        """
        Hold the engine lock and reject any guarded call made while another
        one is executing on the same thread.
        """
        with self.lock:
            if self._active_operation is not None:
                logger.warning(f"Rejected reentrant {operation} during {self._active_operation}")
                raise ReentrantCall(operation, self._active_operation)

            self._active_operation = operation
            try:
                yield
            finally:
                self._active_operation = None

    def _measure(self, operation: str):
        if self.performance_monitor is None:
            return nullcontext()
        self.performance_monitor.increment_counter(f"{operation}_calls")
        return measure_latency(self.performance_monitor, operation)

    def _after_commit(self) -> None:
        if self.verify_invariants:
            verify_custody(self)

    def add_event_callback(self, callback: Callable[[EngineEvent], None]) -> None:
        """Add callback for engine notifications."""
        self.event_callbacks.append(callback)

    def _emit(self, events: List[EngineEvent]) -> None:
        """Record events and notify callbacks, in order."""
        for event in events:
            event.sequence = len(self.events) + 1
            self.events.append(event)
            for callback in self.event_callbacks:
                try:
                    callback(event)
                except Exception as e:
                    logger.error(f"Error in event callback: {str(e)}")

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------
    # Reads take the engine lock so that another thread never observes a
    # book in the middle of a matching pass or a rollback.

    def get_order(self, order_id: int) -> Order:
        """Get order by ID, including closed orders."""
        with self.lock:
            return self.store.get_order(order_id)

    def get_side(self, side: OrderSide) -> List[Order]:
        """Orders referenced by a side collection, in collection order."""
        with self.lock:
            return [self.store.get_order(entry.order_id) for entry in self.store.get_side(side)]

    def get_book(self) -> Dict[str, Any]:
        """Both side collections, serialized."""
        with self.lock:
            return {
                "symbol": self.store.symbol,
                "base_asset": self.base_asset,
                "quote_asset": self.quote_asset,
                "bids": [order.to_dict() for order in self.get_side(OrderSide.BID)],
                "asks": [order.to_dict() for order in self.get_side(OrderSide.ASK)],
            }

    def get_events(self, since: int = 0) -> List[EngineEvent]:
        """Events with a sequence number greater than ``since``."""
        with self.lock:
            return self.events[since:]

    def get_statistics(self) -> Dict[str, Any]:
        """Get engine statistics."""
        with self.lock:
            uptime = datetime.now(timezone.utc) - self.start_time

            return {
                "uptime_seconds": uptime.total_seconds(),
                "symbol": self.store.symbol,
                "total_orders_created": self.total_orders_created,
                "total_orders_cancelled": self.total_orders_cancelled,
                "total_trades_executed": self.total_trades_executed,
                "total_matching_passes": self.total_matching_passes,
                "total_base_volume": str(self.total_base_volume),
                "total_quote_volume": str(self.total_quote_volume),
                "book": self.store.get_statistics(),
            }
