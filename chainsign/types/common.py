"""Common type definitions for chainsign."""

from typing import NewType

__all__ = [
    "HexStr",
    "Address",
    "PublicKeyBytes",
]

HexStr = NewType("HexStr", str)
"""Hexadecimal string representation."""

Address = NewType("Address", str)
"""Chain-specific textual address (0x-hex, base58 or bech32)."""

PublicKeyBytes = NewType("PublicKeyBytes", bytes)
"""33-byte compressed secp256k1 point or 32-byte ed25519 key."""
