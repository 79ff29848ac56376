#!/usr/bin/env python3
"""
Main entry point for the pair order book.

This script starts both the REST API and WebSocket servers
for one matching engine backed by an in-memory ledger.
"""

import asyncio
import signal
import sys
import threading
import time

from pairbook.core.matching_engine import MatchingEngine
from pairbook.api.rest_api import create_app
from pairbook.api.websocket_api import WebSocketServer
from pairbook.utils.logger import setup_logging, get_logger, create_audit_logger, log_event_audit
from pairbook.config.settings import get_settings

logger = get_logger(__name__)


class PairbookServer:
    """
    Main server class that manages both REST and WebSocket servers.
    """

    def __init__(self):
        """Initialize the server."""
        self.settings = get_settings()

        # Setup logging
        setup_logging(
            level=self.settings.log_level,
            log_file=self.settings.log_file
        )

        self.matching_engine = MatchingEngine.from_settings(self.settings)
        self.audit_logger = create_audit_logger(self.settings.audit_log_file)
        self.matching_engine.add_event_callback(
            lambda event: log_event_audit(self.audit_logger, event.to_dict())
        )

        self.rest_app = None
        self.websocket_server = None
        self.rest_thread = None

        logger.info(f"Pairbook server initialized for {self.matching_engine.store.symbol}")

    def start(self) -> None:
        """Start both REST and WebSocket servers."""
        try:
            logger.info("Starting pairbook server...")

            # Start REST API server in a separate thread
            self._start_rest_server()

            # Start WebSocket server in the main thread
            self._start_websocket_server()

        except KeyboardInterrupt:
            logger.info("Received interrupt signal, shutting down...")
            self.stop()
        except Exception as e:
            logger.error(f"Error starting server: {str(e)}")
            sys.exit(1)

    def _start_rest_server(self) -> None:
        """Start REST API server in a separate thread."""
        self.rest_app = create_app(self.matching_engine, self.settings)

        def run_rest_server():
            try:
                logger.info(f"Starting REST API server on {self.settings.rest_host}:{self.settings.rest_port}")
                self.rest_app.run(
                    host=self.settings.rest_host,
                    port=self.settings.rest_port,
                    debug=self.settings.debug,
                    use_reloader=False  # Disable reloader in production
                )
            except Exception as e:
                logger.error(f"Error starting REST server: {str(e)}")

        self.rest_thread = threading.Thread(target=run_rest_server, daemon=True)
        self.rest_thread.start()

        # Give the server time to start
        time.sleep(1)

    def _start_websocket_server(self) -> None:
        """Start WebSocket server."""
        self.websocket_server = WebSocketServer(
            self.matching_engine,
            host=self.settings.websocket_host,
            port=self.settings.websocket_port,
            ping_interval=self.settings.websocket_ping_interval,
            ping_timeout=self.settings.websocket_ping_timeout,
        )

        asyncio.run(self.websocket_server.start())

    def stop(self) -> None:
        """Stop the server; both servers exit with the process."""
        logger.info("Stopping pairbook server...")
        stats = self.matching_engine.get_statistics()
        logger.info(
            f"Final statistics: {stats['total_orders_created']} orders, "
            f"{stats['total_trades_executed']} trades, {stats['total_orders_cancelled']} cancellations"
        )
        logger.info("Server stopped")


def signal_handler(signum, frame):
    """Handle shutdown signals."""
    logger.info(f"Received signal {signum}, shutting down...")
    sys.exit(0)


def main():
    """Main entry point."""
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        server = PairbookServer()
        server.start()

    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {str(e)}")
        sys.exit(1)


if __name__ == "__main__":
    main()
