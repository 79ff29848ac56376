"""
Input validation utilities for the API layer.

These checks cover request shape and formats only. Business rules
(pair membership, positive amounts, ownership) are enforced by the
engine, whose errors the API reports with their own codes.
"""

import re
from typing import Dict, Any, Optional, Tuple
import logging

logger = logging.getLogger(__name__)

# Asset symbols, e.g. BASE, USDC, WETH
ASSET_PATTERN = re.compile(r'^[A-Z0-9]{1,16}$')

# Account identifiers, e.g. alice, 0xabc123, desk:7
ACCOUNT_PATTERN = re.compile(r'^[A-Za-z0-9_.:@-]{1,64}$')

# Signed integer amounts in token base units
AMOUNT_PATTERN = re.compile(r'^-?\d{1,78}$')


def validate_asset(asset: Any) -> Tuple[bool, Optional[str]]:
    """
    Validate asset symbol format.

    Args:
        asset: Asset symbol to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not asset:
        return False, "Asset cannot be empty"

    if not isinstance(asset, str):
        return False, "Asset must be a string"

    if not ASSET_PATTERN.match(asset):
        return False, f"Invalid asset format: {asset}. Expected 1-16 uppercase letters or digits"

    return True, None


def validate_account(account: Any) -> Tuple[bool, Optional[str]]:
    """
    Validate account identifier format.

    Args:
        account: Account identifier to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not account:
        return False, "Account cannot be empty"

    if not isinstance(account, str):
        return False, "Account must be a string"

    if not ACCOUNT_PATTERN.match(account):
        return False, f"Invalid account format: {account}"

    return True, None


def validate_amount(amount: Any) -> Tuple[bool, Optional[str], Optional[int]]:
    """
    Parse an integer amount given as a JSON integer or a digit string.

    Sign is not checked here; the engine rejects non-positive amounts.

    Args:
        amount: Amount to validate

    Returns:
        Tuple of (is_valid, error_message, parsed_amount)
    """
    if amount is None:
        return False, "Amount is required", None

    if isinstance(amount, bool):
        return False, f"Invalid amount format: {amount}", None

    if isinstance(amount, int):
        return True, None, amount

    if isinstance(amount, str) and AMOUNT_PATTERN.match(amount.strip()):
        return True, None, int(amount.strip())

    return False, f"Invalid amount format: {amount}. Must be an integer in base units", None


def validate_order_id(order_id: Any) -> Tuple[bool, Optional[str], Optional[int]]:
    """
    Validate an order identifier.

    Args:
        order_id: Order id from a path or body

    Returns:
        Tuple of (is_valid, error_message, parsed_order_id)
    """
    try:
        parsed = int(order_id)
    except (ValueError, TypeError):
        return False, f"Invalid order id: {order_id}", None

    if parsed <= 0:
        return False, "Order id must be positive", None

    return True, None, parsed


def validate_order_request(data: Dict[str, Any]) -> Tuple[bool, Optional[str], Optional[Dict[str, Any]]]:
    """
    Validate an order submission request.

    Args:
        data: Order request data

    Returns:
        Tuple of (is_valid, error_message, parsed_data)
    """
    required_fields = ['owner', 'offered_asset', 'offered_amount', 'requested_asset', 'requested_amount']
    for field in required_fields:
        if field not in data:
            return False, f"Missing required field: {field}", None

    is_valid, error = validate_account(data['owner'])
    if not is_valid:
        return False, error, None

    validated_data: Dict[str, Any] = {'owner': data['owner']}

    for prefix in ('offered', 'requested'):
        asset = data[f'{prefix}_asset']
        is_valid, error = validate_asset(asset)
        if not is_valid:
            return False, error, None

        is_valid, error, amount = validate_amount(data[f'{prefix}_amount'])
        if not is_valid:
            return False, error, None

        validated_data[f'{prefix}_asset'] = asset
        validated_data[f'{prefix}_amount'] = amount

    return True, None, validated_data


def validate_cancel_request(data: Dict[str, Any]) -> Tuple[bool, Optional[str], Optional[Dict[str, Any]]]:
    """
    Validate an order cancellation request.

    Args:
        data: Cancel request data

    Returns:
        Tuple of (is_valid, error_message, parsed_data)
    """
    required_fields = ['order_id', 'owner']
    for field in required_fields:
        if field not in data:
            return False, f"Missing required field: {field}", None

    is_valid, error = validate_account(data['owner'])
    if not is_valid:
        return False, error, None

    is_valid, error, order_id = validate_order_id(data['order_id'])
    if not is_valid:
        return False, error, None

    return True, None, {'order_id': order_id, 'owner': data['owner']}


def validate_since(since: Any) -> Tuple[bool, Optional[str], Optional[int]]:
    """
    Validate the event feed cursor.

    Args:
        since: Last sequence number the client has seen

    Returns:
        Tuple of (is_valid, error_message, parsed_since)
    """
    if since is None:
        return True, None, 0

    try:
        parsed = int(since)
    except (ValueError, TypeError):
        return False, f"Invalid since format: {since}. Must be an integer", None

    if parsed < 0:
        return False, "Since must not be negative", None

    return True, None, parsed
