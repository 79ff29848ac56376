"""
REST API for the pair order book.

This module provides HTTP endpoints for order submission, cancellation,
matching passes, book queries and the notification feed.
"""

import logging
from datetime import datetime, timezone

from flask import Flask, request, jsonify
from flask_cors import CORS

from ..core.exceptions import EngineError
from ..core.ledger import InMemoryLedger
from ..core.matching_engine import MatchingEngine
from ..core.order_types import validate_order_side
from .validators import (
    validate_account,
    validate_amount,
    validate_asset,
    validate_cancel_request,
    validate_order_id,
    validate_order_request,
    validate_since,
)

logger = logging.getLogger(__name__)


def create_app(engine: MatchingEngine, settings=None) -> Flask:
    """
    Create and configure the Flask application.

    Args:
        engine: Matching engine served by this app
        settings: Optional Settings; enables CORS and the debug credit endpoint

    Returns:
        Configured Flask application
    """
    app = Flask(__name__)
    app.config['ENGINE'] = engine

    if settings is None or settings.enable_cors:
        origins = settings.cors_origins if settings is not None else "*"
        CORS(app, origins=origins)

    enable_credit = bool(settings is not None and settings.debug and isinstance(engine.ledger, InMemoryLedger))

    register_routes(app, engine, enable_credit)

    logger.info(f"REST API initialized for {engine.store.symbol}")
    return app


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def register_routes(app: Flask, engine: MatchingEngine, enable_credit: bool = False) -> None:
    """
    Register all API routes.

    Flask may serve requests on several threads. Each request holds the
    engine lock across its calls, so a submission and the read that
    follows it see the same book.
    """

    @app.route('/health', methods=['GET'])
    def health_check():
        """Health check endpoint."""
        return jsonify({
            'status': 'healthy',
            'symbol': engine.store.symbol,
            'timestamp': _timestamp(),
        })

    @app.route('/orders', methods=['POST'])
    def create_order():
        """
        Submit a new order.

        Request body:
        {
            "owner": "alice",
            "offered_asset": "QUOTE",
            "offered_amount": "100",
            "requested_asset": "BASE",
            "requested_amount": "200"
        }
        """
        data = request.get_json(silent=True)
        if not data:
            return jsonify({'error': 'Request body must be JSON'}), 400

        is_valid, error, validated = validate_order_request(data)
        if not is_valid:
            return jsonify({'error': error}), 400

        with engine.lock:
            order_id = engine.create_order(
                validated['owner'],
                validated['offered_asset'],
                validated['offered_amount'],
                validated['requested_asset'],
                validated['requested_amount'],
            )
            order = engine.get_order(order_id)

        logger.info(f"Order submitted: {order_id}")
        return jsonify(order.to_dict()), 201

    @app.route('/orders/<order_id>', methods=['GET'])
    def get_order(order_id: str):
        """Get order details by ID, including closed orders."""
        is_valid, error, parsed_id = validate_order_id(order_id)
        if not is_valid:
            return jsonify({'error': error}), 400

        with engine.lock:
            order = engine.get_order(parsed_id)
        return jsonify(order.to_dict()), 200

    @app.route('/orders/<order_id>', methods=['DELETE'])
    def cancel_order(order_id: str):
        """
        Cancel an order.

        Request body:
        {
            "owner": "alice"
        }
        """
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            data = {}
        data['order_id'] = order_id

        is_valid, error, validated = validate_cancel_request(data)
        if not is_valid:
            return jsonify({'error': error}), 400

        with engine.lock:
            refund = engine.cancel_order(validated['owner'], validated['order_id'])
            order = engine.get_order(validated['order_id'])

        return jsonify({
            'message': 'Order cancelled successfully',
            'refunded_amount': str(refund),
            'order': order.to_dict(),
        }), 200

    @app.route('/match', methods=['POST'])
    def match_orders():
        """Run one matching pass; any caller may trigger it."""
        data = request.get_json(silent=True) or {}
        caller = data.get('caller')
        if caller is not None:
            is_valid, error = validate_account(caller)
            if not is_valid:
                return jsonify({'error': error}), 400

        with engine.lock:
            trades = engine.match_orders(caller)

        return jsonify({
            'trades': [trade.to_dict() for trade in trades],
            'count': len(trades),
            'timestamp': _timestamp(),
        }), 200

    @app.route('/cleanup', methods=['POST'])
    def cleanup():
        """Evict closed orders from the side collections."""
        with engine.lock:
            evicted = engine.cleanup()
        return jsonify({'evicted': evicted}), 200

    @app.route('/orderbook', methods=['GET'])
    def get_order_book():
        """Both side collections, in collection order."""
        with engine.lock:
            book = engine.get_book()
        book['timestamp'] = _timestamp()
        return jsonify(book), 200

    @app.route('/orderbook/<side>', methods=['GET'])
    def get_order_book_side(side: str):
        """Resting orders of one side ("bids" or "asks"), in collection order."""
        try:
            order_side = validate_order_side(side)
        except ValueError as e:
            return jsonify({'error': str(e)}), 400

        with engine.lock:
            orders = [order.to_dict() for order in engine.get_side(order_side)]
        return jsonify({'side': order_side.value, 'orders': orders, 'count': len(orders)}), 200

    @app.route('/events', methods=['GET'])
    def get_events():
        """
        Notification feed.

        Query parameters:
        - since: Last sequence number already seen (default: 0)
        """
        is_valid, error, since = validate_since(request.args.get('since'))
        if not is_valid:
            return jsonify({'error': error}), 400

        with engine.lock:
            events = [event.to_dict() for event in engine.get_events(since)]
        return jsonify({'events': events, 'count': len(events)}), 200

    @app.route('/statistics', methods=['GET'])
    def get_statistics():
        """Get engine statistics."""
        with engine.lock:
            stats = engine.get_statistics()
        if engine.performance_monitor is not None:
            stats['performance'] = engine.performance_monitor.get_summary()
        return jsonify(stats), 200

    if enable_credit:
        @app.route('/dev/credit', methods=['POST'])
        def credit_account():
            """Fund an account on the in-memory ledger (debug only)."""
            data = request.get_json(silent=True) or {}

            is_valid, error = validate_account(data.get('account'))
            if not is_valid:
                return jsonify({'error': error}), 400
            is_valid, error = validate_asset(data.get('asset'))
            if not is_valid:
                return jsonify({'error': error}), 400
            is_valid, error, amount = validate_amount(data.get('amount'))
            if not is_valid or amount < 0:
                return jsonify({'error': error or 'Amount must not be negative'}), 400

            engine.ledger.credit(data['account'], data['asset'], amount)
            balance = engine.ledger.balance_of(data['account'], data['asset'])
            return jsonify({'account': data['account'], 'asset': data['asset'], 'balance': str(balance)}), 200

    @app.errorhandler(EngineError)
    def engine_error(error: EngineError):
        """Report engine errors with their code and status."""
        if error.http_status >= 500:
            logger.error(f"Engine error: {error.message}")
        else:
            logger.info(f"Request rejected: {error.message}")
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(404)
    def not_found(error):
        """Handle 404 errors."""
        return jsonify({'error': 'Endpoint not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        """Handle 405 errors."""
        return jsonify({'error': 'Method not allowed'}), 405

    @app.errorhandler(500)
    def internal_error(error):
        """Handle 500 errors."""
        logger.error(f"Internal server error: {str(error)}")
        return jsonify({'error': 'Internal server error'}), 500

