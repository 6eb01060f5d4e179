"""
Input Validation - sanitization of externally supplied values.

Used by the configuration layer to reject malformed:
- Private keys
- Addresses
- Integer amounts and prices
- Hex strings
"""

import re
from typing import Any, Optional, Tuple

# =============================================================================
# Constants
# =============================================================================

PRIVATE_KEY_SIZE = 32
ADDRESS_SIZE = 20

# EVM word bounds
MIN_UINT = 0
MAX_UINT256 = 2**256 - 1
MAX_UINT128 = 2**128 - 1

ADDRESS_PATTERN = r"^0x[0-9a-fA-F]{40}$"


# =============================================================================
# Validation Functions
# =============================================================================


def validate_integer(
    value: Any,
    name: str,
    min_val: int = MIN_UINT,
    max_val: int = MAX_UINT256,
) -> Tuple[bool, str]:
    """
    Validate integer within bounds.

    Args:
        value: Value to validate
        name: Field name for errors
        min_val: Minimum allowed value
        max_val: Maximum allowed value

    Returns:
        (is_valid, error_message)
    """
    if isinstance(value, bool) or not isinstance(value, int):
        return False, f"{name} must be int, got {type(value).__name__}"

    if value < min_val:
        return False, f"{name} must be >= {min_val}, got {value}"

    if value > max_val:
        return False, f"{name} must be <= {max_val}, got {value}"

    return True, ""


def validate_uint256(value: Any, name: str) -> Tuple[bool, str]:
    """Validate a uint256 value (prices, block numbers)."""
    return validate_integer(value, name, MIN_UINT, MAX_UINT256)


def validate_uint128(value: Any, name: str) -> Tuple[bool, str]:
    """Validate a uint128 value (bid amounts)."""
    return validate_integer(value, name, MIN_UINT, MAX_UINT128)


def validate_hex_string(value: Any, name: str, expected_bytes: Optional[int] = None) -> Tuple[bool, str]:
    """
    Validate a hex string (with or without 0x prefix).

    Args:
        value: Value to validate
        name: Field name
        expected_bytes: Expected byte length when decoded

    Returns:
        (is_valid, error_message)
    """
    if not isinstance(value, str):
        return False, f"{name} must be str, got {type(value).__name__}"

    hex_str = value[2:] if value.startswith("0x") else value

    if len(hex_str) % 2 != 0:
        return False, f"{name} has odd length, invalid hex"

    try:
        bytes.fromhex(hex_str)
    except ValueError:
        return False, f"{name} contains invalid hex characters"

    if expected_bytes is not None:
        actual_bytes = len(hex_str) // 2
        if actual_bytes != expected_bytes:
            return False, f"{name} must be {expected_bytes} bytes, got {actual_bytes}"

    return True, ""


def validate_private_key(value: Any, name: str = "PRIVATE_KEY") -> Tuple[bool, str]:
    """Validate a hex-encoded secp256k1 private key."""
    valid, err = validate_hex_string(value, name, PRIVATE_KEY_SIZE)
    if not valid:
        return False, err
    if int(value[2:] if value.startswith("0x") else value, 16) == 0:
        return False, f"{name} must not be zero"
    return True, ""


def validate_address(value: Any, name: str = "address") -> Tuple[bool, str]:
    """Validate a 0x-prefixed 20-byte address."""
    if not isinstance(value, str):
        return False, f"{name} must be str, got {type(value).__name__}"

    if not re.match(ADDRESS_PATTERN, value):
        return False, f"{name} is not a valid address: {value}"

    return True, ""


def parse_integer(value: Any, name: str) -> Tuple[Optional[int], str]:
    """
    Parse a decimal or 0x-prefixed integer from config input.

    Returns:
        (value, error_message) - value is None on failure
    """
    if isinstance(value, bool):
        return None, f"{name} must be an integer, got bool"
    if isinstance(value, int):
        return value, ""
    if not isinstance(value, str):
        return None, f"{name} must be an integer, got {type(value).__name__}"

    text = value.strip().replace("_", "")
    try:
        parsed = int(text, 16) if text.lower().startswith("0x") else int(text, 10)
    except ValueError:
        return None, f"{name} is not a valid integer: {value}"
    return parsed, ""


# =============================================================================
# Module Exports
# =============================================================================

__all__ = [
    "validate_integer",
    "validate_uint256",
    "validate_uint128",
    "validate_hex_string",
    "validate_private_key",
    "validate_address",
    "parse_integer",
    "MAX_UINT256",
    "MAX_UINT128",
]
