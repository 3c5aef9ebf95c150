"""
Input Validation - Bounds and format checks for external inputs.

Provides validation for all values crossing the engine boundary:
- Addresses (20 bytes)
- Amounts and block numbers (uint64)
- Hex strings from the command line
"""

from typing import Any, Optional, Tuple

from auctionstore.crypto import ADDRESS_SIZE, hex_to_bytes

# =============================================================================
# Constants
# =============================================================================

MAX_UINT64 = 2**64 - 1

# Field bounds
MIN_AMOUNT = 0
MAX_AMOUNT = MAX_UINT64
MIN_BLOCK = 0
MAX_BLOCK = MAX_UINT64


# =============================================================================
# Validation Functions
# =============================================================================


def validate_bytes(
    data: Any,
    name: str,
    expected_length: Optional[int] = None,
    max_length: Optional[int] = None,
) -> Tuple[bool, str]:
    """
    Validate bytes input.

    Args:
        data: Data to validate
        name: Field name for error messages
        expected_length: Exact expected length
        max_length: Maximum allowed length

    Returns:
        (is_valid, error_message)
    """
    if not isinstance(data, (bytes, bytearray)):
        return False, f"{name} must be bytes, got {type(data).__name__}"

    if expected_length is not None and len(data) != expected_length:
        return False, f"{name} must be {expected_length} bytes, got {len(data)}"

    if max_length is not None and len(data) > max_length:
        return False, f"{name} exceeds max length {max_length}, got {len(data)}"

    return True, ""


def validate_address(address: Any, name: str = "address") -> Tuple[bool, str]:
    """Validate an address."""
    return validate_bytes(address, name, expected_length=ADDRESS_SIZE)


def validate_integer(
    value: Any,
    name: str,
    min_val: int = MIN_AMOUNT,
    max_val: int = MAX_AMOUNT,
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
    # bool is an int subclass; True is not an amount
    if not isinstance(value, int) or isinstance(value, bool):
        return False, f"{name} must be int, got {type(value).__name__}"

    if value < min_val:
        return False, f"{name} must be >= {min_val}, got {value}"

    if value > max_val:
        return False, f"{name} must be <= {max_val}, got {value}"

    return True, ""


def validate_amount(amount: Any, name: str = "amount") -> Tuple[bool, str]:
    """Validate a currency amount (uint64)."""
    return validate_integer(amount, name, MIN_AMOUNT, MAX_AMOUNT)


def validate_block_number(block: Any, name: str = "block_number") -> Tuple[bool, str]:
    """Validate a block number (uint64)."""
    return validate_integer(block, name, MIN_BLOCK, MAX_BLOCK)


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


def parse_address(value: Any, name: str = "address") -> bytes:
    """
    Accept an address as 20 raw bytes or as a 0x-prefixed hex string.

    Raises:
        ValueError: if the value is neither
    """
    if isinstance(value, str):
        valid, err = validate_hex_string(value, name, ADDRESS_SIZE)
        if not valid:
            raise ValueError(err)
        return hex_to_bytes(value)

    valid, err = validate_address(value, name)
    if not valid:
        raise ValueError(err)
    return bytes(value)


# =============================================================================
# Module Exports
# =============================================================================

__all__ = [
    "validate_bytes",
    "validate_address",
    "validate_integer",
    "validate_amount",
    "validate_block_number",
    "validate_hex_string",
    "parse_address",
    "MAX_UINT64",
]
