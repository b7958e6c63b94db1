"""EIP-712 typed structured data hashing, built on eth-account."""

from typing import Any, Mapping

from eth_abi.exceptions import EncodingError
from eth_account.messages import SignableMessage, encode_typed_data as _encode_full_message
from eth_utils import ValidationError as EthValidationError

from ..exceptions import MissingFieldError, ValidationError
from ..utils.encoding import hex_to_bytes, keccak256

__all__ = [
    "encode_typed_data",
    "hash_domain",
    "hash_struct",
    "hash_typed_data",
]

DOMAIN_TYPE = "EIP712Domain"


def _check_domain(domain: Mapping[str, Any]) -> None:
    contract = domain.get("verifyingContract")
    if contract is None:
        return
    raw = hex_to_bytes(contract) if isinstance(contract, str) else bytes(contract)
    if not any(raw):
        raise ValidationError("Verifying contract address is zero")


def _check_primary_fields(message) -> None:
    if message.primary_type == DOMAIN_TYPE:
        return
    fields = message.types.get(message.primary_type)
    if fields is None:
        raise ValidationError(f"Type '{message.primary_type}' is not declared")
    for field in fields:
        if field["name"] not in message.message:
            raise MissingFieldError(field["name"], message.primary_type)


def encode_typed_data(message) -> SignableMessage:
    """
    Encode a typed data message into its ``0x19 0x01`` signable form.

    ``EIP712Domain`` is inferred from the domain keys when the message
    does not declare it.

    Args:
        message: TypedDataMessage

    Raises:
        MissingFieldError: If the primary struct lacks a declared field
        ValidationError: If ``verifyingContract`` is the zero address or
            any value does not match its declared type
    """
    _check_domain(message.domain)
    _check_primary_fields(message)
    try:
        return _encode_full_message(full_message=message.to_dict())
    except (EncodingError, EthValidationError, KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"Invalid typed data: {e}") from e


def hash_domain(message) -> bytes:
    """Domain separator of ``message``."""
    return bytes(encode_typed_data(message).header)


def hash_struct(message) -> bytes:
    """``hashStruct`` of the primary value; empty when signing the domain itself."""
    return bytes(encode_typed_data(message).body)


def hash_typed_data(message) -> bytes:
    """
    Final EIP-712 digest ``keccak256(0x19 0x01 || domainSeparator || hashStruct(message))``.

    Returns:
        32-byte digest
    """
    signable = encode_typed_data(message)
    return keccak256(b"\x19" + signable.version + signable.header + signable.body)
