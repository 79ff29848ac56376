"""
Ledger collaborator used by the matching engine for custody and settlement.

The engine never moves value itself. It asks a ledger to pull offered
assets into its custody account on submission and to pay out of custody
on fills and refunds. Each call is all-or-nothing: it either moves the
whole amount and returns True, or moves nothing and returns False.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)

# (direction, asset, account, amount)
TransferHook = Callable[[str, str, str, int], None]


class Ledger(ABC):
    """
    Interface for asset custody and transfers.

    Implementations must make each transfer atomic. Once a transfer has
    moved funds it must report True; it must not raise afterwards.
    """

    def __init__(self, custody_account: str):
        self.custody_account = custody_account

    @abstractmethod
    def transfer_in(self, asset: str, from_account: str, amount: int) -> bool:
        """Move ``amount`` of ``asset`` from ``from_account`` into custody."""

    @abstractmethod
    def transfer_out(self, asset: str, to_account: str, amount: int) -> bool:
        """Move ``amount`` of ``asset`` from custody to ``to_account``."""

    @abstractmethod
    def balance_of(self, account: str, asset: str) -> int:
        """Current balance of ``account`` in ``asset``."""

    def custody_balance(self, asset: str) -> int:
        """Balance held in custody for ``asset``."""
        return self.balance_of(self.custody_account, asset)


class InMemoryLedger(Ledger):
    """
    In-memory ledger for testing and local serving.

    Transfers that would overdraw an account or carry a negative amount are
    refused. Hooks registered in ``transfer_hooks`` run after every
    successful transfer, which lets tests call back into the engine from
    inside a transfer. The transfer is already committed when a hook runs,
    so a hook error is logged and kept in ``hook_errors`` instead of being
    raised to the caller.
    """

    def __init__(self, custody_account: str = "pairbook-custody"):
        super().__init__(custody_account)
        self.balances: Dict[str, Dict[str, int]] = {}  # account -> {asset -> balance}
        self.transfer_hooks: List[TransferHook] = []
        self.hook_errors: List[Exception] = []
        self.transfer_count = 0
        self.lock = threading.RLock()

    def credit(self, account: str, asset: str, amount: int) -> None:
        """Fund an account out of thin air (tests and local development)."""
        if amount < 0:
            raise ValueError(f"Credit amount cannot be negative: {amount}")
        with self.lock:
            accounts = self.balances.setdefault(account, {})
            accounts[asset] = accounts.get(asset, 0) + amount
        logger.debug(f"Credited {amount} {asset} to {account}")

    def balance_of(self, account: str, asset: str) -> int:
        with self.lock:
            return self.balances.get(account, {}).get(asset, 0)

    def transfer_in(self, asset: str, from_account: str, amount: int) -> bool:
        return self._transfer("in", asset, from_account, self.custody_account, from_account, amount)

    def transfer_out(self, asset: str, to_account: str, amount: int) -> bool:
        return self._transfer("out", asset, self.custody_account, to_account, to_account, amount)

    def _transfer(
        self,
        direction: str,
        asset: str,
        source: str,
        destination: str,
        counterparty: str,
        amount: int,
    ) -> bool:
        with self.lock:
            if amount < 0:
                logger.warning(f"Refused negative transfer {direction} of {amount} {asset}")
                return False

            source_balance = self.balance_of(source, asset)
            if source_balance < amount:
                logger.warning(
                    f"Refused transfer {direction}: {source} holds {source_balance} {asset}, needs {amount}"
                )
                return False

            self.balances.setdefault(source, {})[asset] = source_balance - amount
            destination_accounts = self.balances.setdefault(destination, {})
            destination_accounts[asset] = destination_accounts.get(asset, 0) + amount
            self.transfer_count += 1

        logger.debug(f"Transfer {direction}: {amount} {asset} {source} -> {destination}")

        for hook in list(self.transfer_hooks):
            try:
                hook(direction, asset, counterparty, amount)
            except Exception as e:
                logger.error(f"Error in transfer hook after {direction} of {amount} {asset}: {str(e)}")
                self.hook_errors.append(e)

        return True
