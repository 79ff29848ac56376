"""
Tests for the in-memory ledger.
"""

import unittest

from pairbook.core.ledger import InMemoryLedger, Ledger


class TestInMemoryLedger(unittest.TestCase):
    """Test cases for the in-memory ledger."""

    def setUp(self):
        """Set up test fixtures."""
        self.ledger = InMemoryLedger(custody_account="custody")
        self.ledger.credit("alice", "QUOTE", 100)

    def test_is_ledger(self):
        """The in-memory ledger implements the ledger interface."""
        self.assertIsInstance(self.ledger, Ledger)
        self.assertEqual(self.ledger.custody_account, "custody")

    def test_transfer_in_and_out(self):
        """Deposits move funds into custody, payouts move them out."""
        self.assertTrue(self.ledger.transfer_in("QUOTE", "alice", 60))
        self.assertEqual(self.ledger.balance_of("alice", "QUOTE"), 40)
        self.assertEqual(self.ledger.custody_balance("QUOTE"), 60)

        self.assertTrue(self.ledger.transfer_out("QUOTE", "bob", 25))
        self.assertEqual(self.ledger.balance_of("bob", "QUOTE"), 25)
        self.assertEqual(self.ledger.custody_balance("QUOTE"), 35)
        self.assertEqual(self.ledger.transfer_count, 2)

    def test_overdraft_refused(self):
        """Transfers larger than the source balance return False."""
        self.assertFalse(self.ledger.transfer_in("QUOTE", "alice", 101))
        self.assertFalse(self.ledger.transfer_out("QUOTE", "alice", 1))
        self.assertEqual(self.ledger.balance_of("alice", "QUOTE"), 100)
        self.assertEqual(self.ledger.transfer_count, 0)

    def test_negative_refused(self):
        """Negative transfers return False."""
        self.assertFalse(self.ledger.transfer_in("QUOTE", "alice", -1))
        with self.assertRaises(ValueError):
            self.ledger.credit("alice", "QUOTE", -1)

    def test_zero_transfer_allowed(self):
        """A zero transfer succeeds without moving funds."""
        self.assertTrue(self.ledger.transfer_out("BASE", "bob", 0))
        self.assertEqual(self.ledger.balance_of("bob", "BASE"), 0)

    def test_unknown_account_has_zero_balance(self):
        """Unknown accounts and assets read as zero."""
        self.assertEqual(self.ledger.balance_of("nobody", "BASE"), 0)
        self.assertEqual(self.ledger.balance_of("alice", "BASE"), 0)

    def test_transfer_hooks(self):
        """Hooks see every successful transfer."""
        seen = []
        self.ledger.transfer_hooks.append(lambda *args: seen.append(args))

        self.ledger.transfer_in("QUOTE", "alice", 10)
        self.ledger.transfer_in("QUOTE", "alice", 1000)
        self.ledger.transfer_out("QUOTE", "bob", 5)

        self.assertEqual(seen, [("in", "QUOTE", "alice", 10), ("out", "QUOTE", "bob", 5)])

    def test_failing_hook_keeps_transfer(self):
        """A hook error is logged and kept; the transfer still reports success."""
        def broken(*args):
            raise RuntimeError("hook down")

        seen = []
        self.ledger.transfer_hooks.extend([broken, lambda *args: seen.append(args)])

        with self.assertLogs("pairbook.core.ledger", level="ERROR"):
            self.assertTrue(self.ledger.transfer_in("QUOTE", "alice", 10))

        self.assertEqual(self.ledger.custody_balance("QUOTE"), 10)
        self.assertEqual(self.ledger.balance_of("alice", "QUOTE"), 90)
        self.assertEqual(seen, [("in", "QUOTE", "alice", 10)])
        self.assertEqual([str(e) for e in self.ledger.hook_errors], ["hook down"])


if __name__ == '__main__':
    unittest.main()
