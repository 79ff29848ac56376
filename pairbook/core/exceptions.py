"""Error kinds raised by the order store and matching engine.

Every error carries a numeric code and the HTTP status the REST layer
answers with. Code ranges:
  1xxx: Request validation
  2xxx: Order lookup and ownership
  3xxx: Settlement
  9xxx: Engine integrity
"""


class EngineError(Exception):
    """Base matching engine error."""

    def __init__(self, code: int, message: str, http_status: int = 500) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


# --- 1xxx: Request validation ---

class InvalidPair(EngineError):
    def __init__(self, offered_asset: str, requested_asset: str) -> None:
        super().__init__(1001, f"Invalid asset pair: {offered_asset}/{requested_asset}", 400)


class InvalidAmount(EngineError):
    def __init__(self, detail: str) -> None:
        super().__init__(1002, f"Invalid amount: {detail}", 400)


# --- 2xxx: Order lookup and ownership ---

class NotFound(EngineError):
    def __init__(self, order_id: int) -> None:
        super().__init__(2001, f"Order not found: {order_id}", 404)


class Unauthorized(EngineError):
    def __init__(self, order_id: int, caller: str) -> None:
        super().__init__(2002, f"Account {caller} does not own order {order_id}", 403)


class AlreadyClosed(EngineError):
    def __init__(self, order_id: int) -> None:
        super().__init__(2003, f"Order {order_id} is already closed", 409)


# --- 3xxx: Settlement ---

class TransferFailed(EngineError):
    def __init__(self, direction: str, asset: str, account: str, amount: int) -> None:
        super().__init__(
            3001,
            f"Ledger rejected transfer {direction} of {amount} {asset} for {account}",
            422,
        )


# --- 9xxx: Engine integrity ---

class ReentrantCall(EngineError):
    def __init__(self, operation: str, active: str) -> None:
        super().__init__(9001, f"Reentrant call to {operation} while {active} is in progress", 409)


class InvariantViolation(EngineError):
    def __init__(self, detail: str) -> None:
        super().__init__(9002, f"Invariant violation: {detail}", 500)
