"""Custody invariant verification for a matching engine."""

import logging

from .exceptions import InvariantViolation

logger = logging.getLogger(__name__)


def verify_custody(engine) -> None:
    """Verify assets in custody match the resting orders. Raises InvariantViolation if violated.

    For each asset of the pair, the ledger balance of the custody account
    equals the sum of remaining offered amounts of all orders offering it.
    """
    store = engine.store
    for asset in (store.base_asset, store.quote_asset):
        held = engine.ledger.custody_balance(asset)
        owed = store.total_remaining(asset)
        if held != owed:
            raise InvariantViolation(f"custody holds {held} {asset} but resting orders offer {owed}")

    logger.debug(
        "Custody OK: %s=%d, %s=%d",
        store.base_asset,
        store.total_remaining(store.base_asset),
        store.quote_asset,
        store.total_remaining(store.quote_asset),
    )
