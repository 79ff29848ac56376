"""
Logging configuration for the matching engine.

This module provides logging setup with console and rotating file
handlers, a structured logger for order lifecycle records, and a
dedicated audit trail fed by engine notifications.
"""

import logging
import logging.handlers
import os
import sys
from typing import Optional


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    max_file_size: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5
) -> None:
    """
    Set up logging configuration for the matching engine.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file (optional)
        max_file_size: Maximum log file size in bytes
        backup_count: Number of backup files to keep
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    detailed_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    simple_formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(simple_formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_file_size,
            backupCount=backup_count
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(detailed_formatter)
        root_logger.addHandler(file_handler)

    # Third-party chatter
    logging.getLogger('websockets').setLevel(logging.WARNING)
    logging.getLogger('asyncio').setLevel(logging.WARNING)
    logging.getLogger('werkzeug').setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging initialized - Level: {level}, File: {log_file or 'Console only'}")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a specific module.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


class EngineLogger:
    """
    Structured logger for order lifecycle records.

    Emits pipe-delimited records on child loggers so they can be routed
    or filtered separately from diagnostic output.
    """

    def __init__(self, name: str = "pairbook"):
        self.logger = logging.getLogger(name)
        self.order_logger = logging.getLogger(f"{name}.orders")
        self.trade_logger = logging.getLogger(f"{name}.trades")

    def log_order_created(
        self,
        order_id: int,
        owner: str,
        side: str,
        offered_asset: str,
        offered_amount: int,
        requested_asset: str,
        requested_amount: int,
    ) -> None:
        """Log order creation."""
        self.order_logger.info(
            f"ORDER_CREATE|{order_id}|{owner}|{side}|{offered_amount} {offered_asset}|{requested_amount} {requested_asset}"
        )

    def log_order_cancelled(self, order_id: int, owner: str, asset: str, refunded_amount: int) -> None:
        """Log order cancellation."""
        self.order_logger.info(f"ORDER_CANCEL|{order_id}|{owner}|{refunded_amount} {asset}")

    def log_trade(self, trade) -> None:
        """Log a matched bid/ask pair."""
        self.trade_logger.info(
            f"ORDER_FILL|{trade.trade_id}|bid:{trade.bid_order_id}|ask:{trade.ask_order_id}|"
            f"{trade.base_amount} {trade.base_asset}|{trade.quote_amount} {trade.quote_asset}|{trade.price}"
        )


def create_audit_logger(log_file: str = "logs/audit.log") -> logging.Logger:
    """
    Create a dedicated audit logger.

    The logger is shared process-wide; a file handler is attached only on
    the first call.

    Args:
        log_file: Path to audit log file

    Returns:
        Audit logger instance
    """
    log_dir = os.path.dirname(log_file)
    if log_dir and not os.path.exists(log_dir):
        os.makedirs(log_dir)

    audit_logger = logging.getLogger("pairbook.audit")
    audit_logger.setLevel(logging.INFO)

    # Prevent propagation to root logger
    audit_logger.propagate = False

    if audit_logger.handlers:
        return audit_logger

    audit_handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=50 * 1024 * 1024,  # 50MB
        backupCount=10
    )

    # Structured for easy parsing
    audit_formatter = logging.Formatter(
        '%(asctime)s|%(levelname)s|%(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    audit_handler.setFormatter(audit_formatter)

    audit_logger.addHandler(audit_handler)

    return audit_logger


def log_event_audit(audit_logger: logging.Logger, event_data: dict) -> None:
    """
    Log an engine notification to the audit trail.

    Args:
        audit_logger: Audit logger instance
        event_data: Serialized event (``EngineEvent.to_dict()``)
    """
    fields = [f"{key.upper()}:{value}" for key, value in event_data.items() if key not in ("type", "timestamp")]
    audit_logger.info(f"{event_data.get('type', 'event').upper()}|" + "|".join(fields))
