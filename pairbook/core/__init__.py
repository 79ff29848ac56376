"""
Core matching engine components.

This module contains the order store, the matching engine and the
ledger interface for a two-asset limit order book.
"""

from .order import Order, SideEntry, Trade
from .order_types import OrderSide, OrderStatus, PRICE_SCALE
from .order_store import OrderStore
from .ledger import Ledger, InMemoryLedger
from .events import EngineEvent, OrderCreated, OrderFilled, OrderCancelled
from .exceptions import (
    EngineError,
    InvalidPair,
    InvalidAmount,
    NotFound,
    Unauthorized,
    AlreadyClosed,
    TransferFailed,
    ReentrantCall,
    InvariantViolation,
)
from .matching_engine import MatchingEngine

__all__ = [
    "Order",
    "SideEntry",
    "Trade",
    "OrderSide",
    "OrderStatus",
    "PRICE_SCALE",
    "OrderStore",
    "Ledger",
    "InMemoryLedger",
    "EngineEvent",
    "OrderCreated",
    "OrderFilled",
    "OrderCancelled",
    "EngineError",
    "InvalidPair",
    "InvalidAmount",
    "NotFound",
    "Unauthorized",
    "AlreadyClosed",
    "TransferFailed",
    "ReentrantCall",
    "InvariantViolation",
    "MatchingEngine",
]
