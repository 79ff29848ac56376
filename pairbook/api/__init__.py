"""
API layer for the matching engine.

This module provides REST and WebSocket APIs for order submission,
cancellation, matching passes and the notification feed.
"""

from .rest_api import create_app
from .websocket_api import WebSocketServer
from .validators import validate_order_request, validate_cancel_request

__all__ = [
    "create_app",
    "WebSocketServer",
    "validate_order_request",
    "validate_cancel_request",
]
