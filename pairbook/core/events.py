"""Notifications emitted by the matching engine for external consumers."""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Dict, Any


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class EngineEvent:
    """Base class; ``sequence`` is assigned by the engine on emission."""

    sequence: int = field(default=0, init=False)
    timestamp: datetime = field(default_factory=_now, init=False)

    event_type = "event"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key, value in data.items():
            # Amounts travel as strings, they can exceed JSON number precision
            if key.endswith("amount") or key == "price":
                data[key] = str(value)
        data["timestamp"] = self.timestamp.isoformat()
        data["type"] = self.event_type
        return data


@dataclass
class OrderCreated(EngineEvent):
    """Published when a submission is deposited and recorded."""

    order_id: int = 0
    owner: str = ""
    side: str = ""
    offered_asset: str = ""
    offered_amount: int = 0
    requested_asset: str = ""
    requested_amount: int = 0
    price: int = 0

    event_type = "order_created"


@dataclass
class OrderFilled(EngineEvent):
    """Published once per counterparty of every executed pairing."""

    order_id: int = 0
    owner: str = ""
    counterparty_order_id: int = 0
    counterparty: str = ""
    received_asset: str = ""
    received_amount: int = 0
    given_asset: str = ""
    given_amount: int = 0
    trade_id: str = ""

    event_type = "order_filled"


@dataclass
class OrderCancelled(EngineEvent):
    """Published when an owner cancels and the remainder is refunded."""

    order_id: int = 0
    owner: str = ""
    refunded_asset: str = ""
    refunded_amount: int = 0

    event_type = "order_cancelled"
