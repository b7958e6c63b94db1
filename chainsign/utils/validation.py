"""Validation utilities for chainsign."""

import re
from typing import Optional, Union

from ..constants import Curve, Network, SECP256K1_N
from ..exceptions import EncodingOverflowError, ValidationError
from ..types.common import Address
from ..utils.encoding import decode_address, decode_base58, hex_to_bytes, keccak256

__all__ = [
    "validate_uint",
    "is_valid_private_key",
    "validate_private_key",
    "is_valid_public_key",
    "validate_public_key",
    "is_valid_evm_address",
    "validate_evm_address",
    "to_checksum_address",
    "is_valid_solana_address",
    "validate_solana_address",
    "is_valid_bitcoin_address",
    "validate_bitcoin_address",
]

# Regex patterns
HEX_PATTERN = re.compile(r"^[0-9a-fA-F]*$")
EVM_ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")


def validate_uint(value: Optional[int], bits: int, field: str) -> int:
    """
    Check that an integer fits an unsigned field of the given width.

    Args:
        value: Integer to check
        bits: Field width in bits
        field: Field name for the error message

    Returns:
        The value unchanged

    Raises:
        ValidationError: If value is not a non-negative integer
        EncodingOverflowError: If value needs more than ``bits`` bits
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"Field '{field}' must be an integer, got {type(value).__name__}")
    if value < 0:
        raise ValidationError(f"Field '{field}' cannot be negative")
    if value >> bits:
        raise EncodingOverflowError(field, value, bits)
    return value


def _key_bytes(key: Union[str, bytes, bytearray], label: str) -> bytes:
    if isinstance(key, str):
        if key.startswith("0x"):
            key = key[2:]
        if not HEX_PATTERN.match(key):
            raise ValidationError(f"{label} must be hexadecimal")
        try:
            return bytes.fromhex(key)
        except ValueError as e:
            raise ValidationError(f"Invalid hex {label.lower()}") from e
    return bytes(key)


def is_valid_private_key(key: Union[str, bytes], curve: Curve = Curve.SECP256K1) -> bool:
    """Check if a private key is valid for the curve."""
    try:
        validate_private_key(key, curve)
        return True
    except ValidationError:
        return False


def validate_private_key(
    key: Union[str, bytes, bytearray],
    curve: Curve = Curve.SECP256K1
) -> bytes:
    """
    Validate private key and return as bytes.

    Error messages never include key material.

    Args:
        key: Private key as hex string or bytes
        curve: Curve the key belongs to

    Returns:
        Private key as 32 bytes

    Raises:
        ValidationError: If private key is invalid
    """
    key = _key_bytes(key, "Private key")

    if len(key) != 32:
        raise ValidationError(f"Private key must be 32 bytes, got {len(key)}")

    if curve == Curve.SECP256K1:
        key_int = int.from_bytes(key, "big")
        if key_int == 0:
            raise ValidationError("Private key cannot be zero")
        if key_int >= SECP256K1_N:
            raise ValidationError("Private key exceeds curve order")

    return key


def is_valid_public_key(key: Union[str, bytes], curve: Curve = Curve.SECP256K1) -> bool:
    """Check if public key format is valid."""
    try:
        validate_public_key(key, curve)
        return True
    except ValidationError:
        return False


def validate_public_key(
    key: Union[str, bytes, bytearray],
    curve: Curve = Curve.SECP256K1
) -> bytes:
    """
    Validate public key encoding and return as bytes.

    Args:
        key: Public key as hex string or bytes
        curve: Curve the key belongs to

    Returns:
        Public key bytes (33/65 for secp256k1, 32 for ed25519)

    Raises:
        ValidationError: If public key is invalid
    """
    key = _key_bytes(key, "Public key")

    if curve == Curve.ED25519:
        if len(key) != 32:
            raise ValidationError(f"Ed25519 public key must be 32 bytes, got {len(key)}")
        return key

    if len(key) == 33:
        if key[0] not in (0x02, 0x03):
            raise ValidationError("Compressed public key must start with 0x02 or 0x03")
    elif len(key) == 65:
        if key[0] != 0x04:
            raise ValidationError("Uncompressed public key must start with 0x04")
    else:
        raise ValidationError(f"Public key must be 33 or 65 bytes, got {len(key)}")

    return key


def to_checksum_address(address: Union[str, bytes]) -> Address:
    """
    Apply EIP-55 mixed-case checksum.

    Args:
        address: 20 raw bytes or 0x-prefixed hex

    Returns:
        Checksummed address
    """
    if isinstance(address, (bytes, bytearray)):
        raw = bytes(address)
    else:
        raw = hex_to_bytes(address)
    if len(raw) != 20:
        raise ValidationError(f"EVM address must be 20 bytes, got {len(raw)}")

    lower = raw.hex()
    digest = keccak256(lower.encode("ascii")).hex()
    checksummed = "".join(
        char.upper() if int(digest[i], 16) >= 8 else char
        for i, char in enumerate(lower)
    )
    return Address("0x" + checksummed)


def is_valid_evm_address(address: str) -> bool:
    """Check if EVM address is well-formed (and checksum-correct when mixed case)."""
    try:
        validate_evm_address(address)
        return True
    except ValidationError:
        return False


def validate_evm_address(address: str) -> Address:
    """
    Validate EVM address and return its checksummed form.

    Addresses must start with 0x and be 42 characters. Mixed-case input
    must carry a correct EIP-55 checksum.

    Raises:
        ValidationError: If address is invalid
    """
    if not isinstance(address, str) or not address.startswith("0x"):
        raise ValidationError("EVM address must start with 0x")
    if len(address) != 42:
        raise ValidationError("Invalid EVM address length, must be 42")
    if not EVM_ADDRESS_PATTERN.match(address):
        raise ValidationError("EVM address must be hexadecimal")

    checksummed = to_checksum_address(address)
    body = address[2:]
    if body != body.lower() and body != body.upper() and address != checksummed:
        raise ValidationError(f"Invalid EIP-55 checksum: {address}")
    return checksummed


def is_valid_solana_address(address: str) -> bool:
    """Check if Solana address decodes to a 32-byte key."""
    try:
        validate_solana_address(address)
        return True
    except ValidationError:
        return False


def validate_solana_address(address: str) -> bytes:
    """
    Validate a base58 Solana address and return the 32 key bytes.

    Raises:
        ValidationError: If address is invalid
    """
    if not address:
        raise ValidationError("Solana address cannot be empty")
    raw = decode_base58(address)
    if len(raw) != 32:
        raise ValidationError(f"Solana address must decode to 32 bytes, got {len(raw)}")
    return raw


def is_valid_bitcoin_address(address: str, network: Optional[Network] = None) -> bool:
    """
    Check if Bitcoin address format is valid.

    Args:
        address: Address to validate
        network: Optional network to validate against; both are tried if None

    Returns:
        True if valid, False otherwise
    """
    networks = [network] if network is not None else [Network.MAINNET, Network.TESTNET]
    for candidate in networks:
        try:
            decode_address(address, candidate)
            return True
        except ValidationError:
            continue
    return False


def validate_bitcoin_address(address: str, network: Optional[Network] = None) -> str:
    """
    Validate Bitcoin address and return normalized form.

    Raises:
        ValidationError: If address is invalid
    """
    if not address:
        raise ValidationError("Address cannot be empty")

    # Normalize Bech32 to lowercase
    if address.lower().startswith(("bc1", "tb1")):
        address = address.lower()

    if not is_valid_bitcoin_address(address, network):
        raise ValidationError(f"Invalid Bitcoin address: {address}")

    return address
