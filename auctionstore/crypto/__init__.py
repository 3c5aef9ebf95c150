"""
Cryptographic primitives for auctionstore.

This module provides:
- Hashing (Keccak-256)
- Address derivation and formatting

Design Notes:
-------------
Addresses follow the Ethereum convention: 20 bytes taken from the end of a
Keccak-256 hash. Contract addresses (engine, asset registries) are derived
from the deployer and a nonce so they are stable across runs of the same
scenario.
"""

from Crypto.Hash import keccak


# =============================================================================
# Constants
# =============================================================================

ADDRESS_SIZE = 20

# The "no address" marker (unset bidder, unsold auction)
ZERO_ADDRESS = bytes(ADDRESS_SIZE)


# =============================================================================
# Hashing
# =============================================================================


def keccak256(data: bytes) -> bytes:
    """
    Compute Keccak-256 hash (Ethereum-style).

    Used for: account label addresses, contract address derivation.
    """
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


# =============================================================================
# Addresses
# =============================================================================


def address_from_label(label: str) -> bytes:
    """
    Deterministic address for a human label ("seller", "bidder-1").

    Only meant for demos and tests; nobody holds a key for these.
    """
    return keccak256(b"auctionstore:account:" + label.encode())[-ADDRESS_SIZE:]


def contract_address(deployer: bytes, nonce: int) -> bytes:
    """Address of the contract deployed by ``deployer`` at ``nonce``."""
    return keccak256(deployer + nonce.to_bytes(8, byteorder="big"))[-ADDRESS_SIZE:]


# =============================================================================
# Utility Functions
# =============================================================================


def bytes_to_hex(data: bytes) -> str:
    """Convert bytes to hex string with 0x prefix."""
    return "0x" + data.hex()


def hex_to_bytes(hex_str: str) -> bytes:
    """Convert hex string (with or without 0x prefix) to bytes."""
    if hex_str.startswith("0x") or hex_str.startswith("0X"):
        hex_str = hex_str[2:]
    return bytes.fromhex(hex_str)


def short(address: bytes) -> str:
    """Abbreviated hex for log lines."""
    return bytes_to_hex(address)[:10] + "..."
