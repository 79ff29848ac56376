"""
Order side and status definitions for the pair order book.

An order book trades exactly one pair of assets. Bids offer the quote
asset in exchange for the base asset; asks offer the base asset in
exchange for the quote asset.
"""

from enum import Enum

# Fixed-point scale applied to every stored price
PRICE_SCALE = 10 ** 18


class OrderSide(Enum):
    """
    Sides of the book.

    - BID: offers the quote asset, wants the base asset
    - ASK: offers the base asset, wants the quote asset
    """
    BID = "bid"
    ASK = "ask"


class OrderStatus(Enum):
    """
    Order status tracking throughout the lifecycle.

    - OPEN: Resting with its full amounts
    - PARTIALLY_FILLED: Resting after at least one fill
    - FILLED: Offered amount fully exchanged
    - CANCELLED: Remaining amount refunded to the owner
    """
    OPEN = "open"
    PARTIALLY_FILLED = "partially_filled"
    FILLED = "filled"
    CANCELLED = "cancelled"


def validate_order_side(side: str) -> OrderSide:
    """
    Validate and convert string order side to OrderSide enum.

    Args:
        side: String representation of order side ("bid"/"bids" or "ask"/"asks")

    Returns:
        OrderSide enum value

    Raises:
        ValueError: If side is invalid
    """
    normalized = side.lower().rstrip("s")
    try:
        return OrderSide(normalized)
    except ValueError:
        raise ValueError(f"Invalid order side: {side}. Must be one of: {[s.value for s in OrderSide]}")


def compute_price(offered_amount: int, requested_amount: int, scale: int = PRICE_SCALE) -> int:
    """
    Scaled ratio of requested to offered amount, rounded down.

    Args:
        offered_amount: Amount given up by the order owner
        requested_amount: Amount the owner expects in return
        scale: Fixed-point scale

    Returns:
        requested_amount * scale // offered_amount
    """
    return requested_amount * scale // offered_amount
