"""pairbook: matching engine for a two-asset limit order book."""

__version__ = "1.0.0"
