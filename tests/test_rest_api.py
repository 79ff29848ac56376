"""
Tests for the REST API.

Requests go through Flask's test client against an engine backed by a
funded in-memory ledger.
"""

import os
import threading
import unittest
from unittest.mock import patch

from pairbook.api.rest_api import create_app
from pairbook.config.settings import Settings
from pairbook.core.ledger import InMemoryLedger
from pairbook.core.matching_engine import MatchingEngine


class TestRestApi(unittest.TestCase):
    """Test cases for the REST endpoints."""

    def setUp(self):
        """Set up test fixtures."""
        self.ledger = InMemoryLedger()
        for account in ("alice", "bob"):
            self.ledger.credit(account, "BASE", 1000)
            self.ledger.credit(account, "QUOTE", 1000)
        self.engine = MatchingEngine.for_pair("BASE", "QUOTE", self.ledger)
        self.client = create_app(self.engine).test_client()

    def submit(self, owner, offered_asset, offered_amount, requested_asset, requested_amount):
        return self.client.post('/orders', json={
            'owner': owner,
            'offered_asset': offered_asset,
            'offered_amount': str(offered_amount),
            'requested_asset': requested_asset,
            'requested_amount': str(requested_amount),
        })

    def test_health(self):
        """Health reports the pair symbol."""
        response = self.client.get('/health')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['symbol'], 'BASE-QUOTE')

    def test_submit_order(self):
        """A valid submission returns the stored order."""
        response = self.submit('alice', 'QUOTE', 100, 'BASE', 200)

        self.assertEqual(response.status_code, 201)
        data = response.get_json()
        self.assertEqual(data['order_id'], 1)
        self.assertEqual(data['side'], 'bid')
        self.assertEqual(data['offered_amount'], '100')
        self.assertEqual(data['status'], 'open')

    def test_submit_requires_json(self):
        """A request without a JSON body is rejected."""
        response = self.client.post('/orders', data='owner=alice')

        self.assertEqual(response.status_code, 400)

    def test_submit_malformed_amount(self):
        """Malformed amounts are rejected by validation."""
        response = self.client.post('/orders', json={
            'owner': 'alice',
            'offered_asset': 'QUOTE',
            'offered_amount': '1.5',
            'requested_asset': 'BASE',
            'requested_amount': '2',
        })

        self.assertEqual(response.status_code, 400)
        self.assertIn('Invalid amount format', response.get_json()['error'])

    def test_engine_errors_carry_code(self):
        """Engine errors map to their code and HTTP status."""
        response = self.submit('alice', 'QUOTE', 100, 'OTHER', 200)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()['code'], 1001)

        response = self.submit('alice', 'QUOTE', 0, 'BASE', 200)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()['code'], 1002)

        response = self.submit('nobody', 'QUOTE', 100, 'BASE', 200)
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.get_json()['code'], 3001)

    def test_get_order(self):
        """Orders are readable by id; unknown ids are 404."""
        self.submit('alice', 'QUOTE', 100, 'BASE', 200)

        response = self.client.get('/orders/1')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['owner'], 'alice')

        response = self.client.get('/orders/99')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()['code'], 2001)

        response = self.client.get('/orders/abc')
        self.assertEqual(response.status_code, 400)

    def test_match_and_orderbook(self):
        """A matching pass returns its trades and updates the book."""
        self.submit('alice', 'QUOTE', 100, 'BASE', 200)
        self.submit('bob', 'BASE', 30, 'QUOTE', 45)

        response = self.client.post('/match', json={'caller': 'bob'})
        self.assertEqual(response.status_code, 200)
        data = response.get_json()
        self.assertEqual(data['count'], 1)
        self.assertEqual(data['trades'][0]['base_amount'], '30')
        self.assertEqual(data['trades'][0]['quote_amount'], '45')

        book = self.client.get('/orderbook').get_json()
        self.assertEqual(len(book['bids']), 1)
        self.assertEqual(book['bids'][0]['offered_amount'], '55')
        self.assertEqual(book['asks'], [])

    def test_orderbook_side(self):
        """One side of the book is readable by name."""
        self.submit('alice', 'QUOTE', 100, 'BASE', 200)
        self.submit('bob', 'BASE', 30, 'QUOTE', 45)

        data = self.client.get('/orderbook/bids').get_json()
        self.assertEqual(data['side'], 'bid')
        self.assertEqual([order['owner'] for order in data['orders']], ['alice'])

        data = self.client.get('/orderbook/ask').get_json()
        self.assertEqual(data['count'], 1)

        response = self.client.get('/orderbook/buy')
        self.assertEqual(response.status_code, 400)

    def test_match_without_body(self):
        """Anyone may trigger a pass without identifying themselves."""
        response = self.client.post('/match')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['count'], 0)

    def test_cancel_order(self):
        """The owner can cancel and receives the refund."""
        self.submit('alice', 'QUOTE', 100, 'BASE', 200)

        response = self.client.delete('/orders/1', json={'owner': 'bob'})
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.get_json()['code'], 2002)

        response = self.client.delete('/orders/1', json={'owner': 'alice'})
        self.assertEqual(response.status_code, 200)
        data = response.get_json()
        self.assertEqual(data['refunded_amount'], '100')
        self.assertEqual(data['order']['status'], 'cancelled')
        self.assertEqual(self.ledger.balance_of('alice', 'QUOTE'), 1000)

        response = self.client.delete('/orders/1', json={'owner': 'alice'})
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.get_json()['code'], 2003)

    def test_cancel_requires_owner(self):
        """A cancel request without an owner is rejected."""
        response = self.client.delete('/orders/1')

        self.assertEqual(response.status_code, 400)

    def test_cleanup(self):
        """Cleanup evicts cancelled entries."""
        self.submit('alice', 'QUOTE', 100, 'BASE', 200)
        self.client.delete('/orders/1', json={'owner': 'alice'})

        self.assertEqual(len(self.client.get('/orderbook').get_json()['bids']), 1)

        response = self.client.post('/cleanup')
        self.assertEqual(response.get_json()['evicted'], 1)
        self.assertEqual(self.client.get('/orderbook').get_json()['bids'], [])

    def test_requests_wait_for_engine_lock(self):
        """Requests share the engine's lock with every other caller."""
        self.submit('alice', 'QUOTE', 100, 'BASE', 200)
        self.submit('bob', 'BASE', 30, 'QUOTE', 45)
        responses = []

        reader = threading.Thread(target=lambda: responses.append(self.client.get('/orderbook').get_json()))
        with self.engine.lock:
            reader.start()
            reader.join(timeout=0.2)
            self.assertTrue(reader.is_alive())
            self.engine.match_orders()
        reader.join(timeout=5)

        self.assertEqual(len(responses), 1)
        self.assertEqual(responses[0]['asks'], [])
        self.assertEqual(responses[0]['bids'][0]['offered_amount'], '55')

    def test_events_feed(self):
        """The event feed is readable from a cursor."""
        self.submit('alice', 'QUOTE', 100, 'BASE', 200)
        self.submit('bob', 'BASE', 30, 'QUOTE', 45)
        self.client.post('/match')

        data = self.client.get('/events').get_json()
        self.assertEqual(data['count'], 4)
        self.assertEqual(
            [event['type'] for event in data['events']],
            ['order_created', 'order_created', 'order_filled', 'order_filled'],
        )

        data = self.client.get('/events?since=3').get_json()
        self.assertEqual([event['sequence'] for event in data['events']], [4])

        response = self.client.get('/events?since=-1')
        self.assertEqual(response.status_code, 400)

    def test_statistics(self):
        """Statistics include engine counters."""
        self.submit('alice', 'QUOTE', 100, 'BASE', 200)

        data = self.client.get('/statistics').get_json()
        self.assertEqual(data['total_orders_created'], 1)
        self.assertNotIn('performance', data)

    def test_unknown_endpoint(self):
        """Unknown routes return a JSON 404."""
        response = self.client.get('/nope')

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()['error'], 'Endpoint not found')

    def test_credit_endpoint_only_in_debug(self):
        """The funding endpoint exists only in debug mode."""
        response = self.client.post('/dev/credit', json={'account': 'carol', 'asset': 'BASE', 'amount': '5'})
        self.assertEqual(response.status_code, 404)

        with patch.dict(os.environ, {'DEBUG': 'true'}, clear=True):
            settings = Settings()
        client = create_app(self.engine, settings).test_client()

        response = client.post('/dev/credit', json={'account': 'carol', 'asset': 'BASE', 'amount': '5'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['balance'], '5')
        self.assertEqual(self.ledger.balance_of('carol', 'BASE'), 5)


if __name__ == '__main__':
    unittest.main()
