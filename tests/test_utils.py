"""
Tests for logging and performance utilities.
"""

import os
import tempfile
import unittest

from pairbook.core.ledger import InMemoryLedger
from pairbook.core.matching_engine import MatchingEngine
from pairbook.utils.logger import create_audit_logger, log_event_audit
from pairbook.utils.performance import LatencyTracker, PerformanceMonitor


class TestEngineLogging(unittest.TestCase):
    """Test cases for structured and audit logging."""

    def setUp(self):
        """Set up test fixtures."""
        self.ledger = InMemoryLedger()
        self.ledger.credit("alice", "QUOTE", 1000)
        self.ledger.credit("bob", "BASE", 1000)
        self.engine = MatchingEngine.for_pair("BASE", "QUOTE", self.ledger)

    def test_lifecycle_records(self):
        """Orders and fills are logged as pipe-delimited records."""
        with self.assertLogs("pairbook.orders", level="INFO") as orders:
            self.engine.create_order("alice", "QUOTE", 100, "BASE", 200)
        self.assertIn("ORDER_CREATE|1|alice|bid|100 QUOTE|200 BASE", orders.output[0])

        self.engine.create_order("bob", "BASE", 30, "QUOTE", 45)
        with self.assertLogs("pairbook.trades", level="INFO") as trades:
            self.engine.match_orders()
        self.assertIn("|bid:1|ask:2|30 BASE|45 QUOTE|", trades.output[0])

        with self.assertLogs("pairbook.orders", level="INFO") as orders:
            self.engine.cancel_order("alice", 1)
        self.assertIn("ORDER_CANCEL|1|alice|55 QUOTE", orders.output[0])

    def test_audit_trail(self):
        """Notifications routed to the audit logger are written to its file."""
        with tempfile.TemporaryDirectory() as directory:
            path = os.path.join(directory, "audit", "audit.log")
            audit_logger = create_audit_logger(path)
            try:
                self.engine.add_event_callback(lambda event: log_event_audit(audit_logger, event.to_dict()))
                self.engine.create_order("alice", "QUOTE", 100, "BASE", 200)

                for handler in audit_logger.handlers:
                    handler.flush()
                with open(path) as f:
                    content = f.read()
            finally:
                for handler in list(audit_logger.handlers):
                    handler.close()
                    audit_logger.removeHandler(handler)

        self.assertIn("ORDER_CREATED|", content)
        self.assertIn("OFFERED_AMOUNT:100", content)
        self.assertFalse(audit_logger.propagate)

    def test_audit_logger_created_once(self):
        """Creating the audit logger twice keeps a single file handler."""
        with tempfile.TemporaryDirectory() as directory:
            path = os.path.join(directory, "audit.log")
            audit_logger = create_audit_logger(path)
            try:
                self.assertIs(create_audit_logger(path), audit_logger)
                self.assertEqual(len(audit_logger.handlers), 1)

                log_event_audit(audit_logger, {"type": "order_created", "order_id": 1})
                audit_logger.handlers[0].flush()
                with open(path) as f:
                    lines = f.read().splitlines()
            finally:
                for handler in list(audit_logger.handlers):
                    handler.close()
                    audit_logger.removeHandler(handler)

        self.assertEqual(len(lines), 1)


class TestPerformance(unittest.TestCase):
    """Test cases for performance monitoring."""

    def test_engine_records_latency(self):
        """Engine operations are timed and counted when a monitor is attached."""
        monitor = PerformanceMonitor()
        ledger = InMemoryLedger()
        ledger.credit("alice", "QUOTE", 1000)
        engine = MatchingEngine.for_pair("BASE", "QUOTE", ledger, performance_monitor=monitor)

        engine.create_order("alice", "QUOTE", 100, "BASE", 200)
        engine.match_orders()

        self.assertEqual(monitor.get_counter("create_order_calls"), 1)
        self.assertEqual(monitor.get_counter("match_orders_calls"), 1)
        self.assertEqual(monitor.get_metric_stats("match_orders_latency_ms")["count"], 1)
        self.assertIn("match_orders_latency_ms", monitor.get_summary()["metrics"])

    def test_cleanup_is_measured(self):
        """Cleanup is timed and counted like the other operations."""
        monitor = PerformanceMonitor()
        ledger = InMemoryLedger()
        ledger.credit("alice", "QUOTE", 1000)
        engine = MatchingEngine.for_pair(
            "BASE", "QUOTE", ledger, verify_invariants=True, performance_monitor=monitor
        )
        order_id = engine.create_order("alice", "QUOTE", 100, "BASE", 200)
        engine.cancel_order("alice", order_id)

        self.assertEqual(engine.cleanup(), 1)

        self.assertEqual(monitor.get_counter("cleanup_calls"), 1)
        self.assertEqual(monitor.get_metric_stats("cleanup_latency_ms")["count"], 1)

    def test_latency_tracker_percentiles(self):
        """Percentiles come from the recorded samples."""
        tracker = LatencyTracker(max_samples=100)
        for value in range(1, 101):
            tracker.record(float(value))

        percentiles = tracker.get_percentiles()
        self.assertEqual(percentiles["p50"], 51.0)
        self.assertEqual(percentiles["p99"], 100.0)

    def test_latency_tracker_bounded(self):
        """Old samples are dropped beyond the limit."""
        tracker = LatencyTracker(max_samples=3)
        for value in (1.0, 2.0, 3.0, 4.0):
            tracker.record(value)

        self.assertEqual(tracker.samples, [2.0, 3.0, 4.0])


if __name__ == '__main__':
    unittest.main()
