"""Off-chain message signing for every supported chain."""

import logging
from typing import Optional, Union

from ..constants import (
    BITCOIN_MESSAGE_MAGIC,
    Chain,
    ChainConfig,
    EVM_MESSAGE_PREFIX,
    SOLANA_OFFCHAIN_DOMAIN,
    SignatureScheme,
    get_chain_config,
)
from ..exceptions import (
    NotRecoverableError,
    UnsupportedChainError,
    ValidationError,
)
from ..types.message import RawMessage, SignableMessage, SignedMessage, TypedDataMessage
from ..types.signature import Signature
from ..utils.encoding import double_sha256, encode_address, encode_varint, hash160, keccak256
from .keys import KeyPair
from .signature import recover_public_key, sign, verify
from .typed_data import hash_typed_data

__all__ = [
    "hash_message",
    "encode_solana_offchain",
    "sign_message",
    "verify_message",
    "recover_message_signer",
]

logger = logging.getLogger(__name__)

# Solana off-chain message formats
SOLANA_FORMAT_ASCII = 0
SOLANA_FORMAT_UTF8 = 1
SOLANA_FORMAT_UTF8_EXTENDED = 2

SOLANA_HEADER_LENGTH = len(SOLANA_OFFCHAIN_DOMAIN) + 4
SOLANA_MAX_LEDGER_LENGTH = 1232 - SOLANA_HEADER_LENGTH
SOLANA_MAX_LENGTH = 0xffff - SOLANA_HEADER_LENGTH

# BIP-137 header byte bases
BITCOIN_HEADER_P2PKH = 31
BITCOIN_HEADER_P2SH_P2WPKH = 35
BITCOIN_HEADER_P2WPKH = 39


def encode_solana_offchain(data: bytes) -> bytes:
    """
    Wrap bytes in the Solana off-chain message envelope (version 0).

    The format byte is 0 for printable ASCII and 1 for UTF-8 up to the
    ledger limit, 2 for longer UTF-8.

    Raises:
        ValidationError: If the payload is empty, not UTF-8, or too long
    """
    if not data:
        raise ValidationError("Off-chain message cannot be empty")
    try:
        data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ValidationError("Off-chain message must be valid UTF-8") from e

    if len(data) <= SOLANA_MAX_LEDGER_LENGTH:
        if all(0x20 <= byte <= 0x7e for byte in data):
            message_format = SOLANA_FORMAT_ASCII
        else:
            message_format = SOLANA_FORMAT_UTF8
    elif len(data) <= SOLANA_MAX_LENGTH:
        message_format = SOLANA_FORMAT_UTF8_EXTENDED
    else:
        raise ValidationError(f"Off-chain message too long: {len(data)} bytes")

    return (
        SOLANA_OFFCHAIN_DOMAIN
        + bytes([0, message_format])
        + len(data).to_bytes(2, "little")
        + data
    )


def hash_message(message: SignableMessage, chain: Union[Chain, str]) -> bytes:
    """
    Compute what the signer signs for a message on a chain.

    - EVM raw: ``keccak256("\\x19Ethereum Signed Message:\\n" + len + data)``
    - EVM typed data: EIP-712 digest
    - Bitcoin raw: double-SHA256 of magic, varint length and data
    - Solana raw: the off-chain envelope itself (ed25519 signs it directly),
      or the bare bytes when ``message.offchain`` is False

    Raises:
        UnsupportedChainError: For typed data outside EVM
    """
    chain = get_chain_config(chain).chain

    if isinstance(message, TypedDataMessage):
        if chain is not Chain.EVM:
            raise UnsupportedChainError(f"Typed data signing is not supported on {chain.value}")
        return hash_typed_data(message)

    if not isinstance(message, RawMessage):
        raise ValidationError(f"Unsupported message type: {type(message).__name__}")

    data = message.data
    if chain is Chain.EVM:
        return keccak256(EVM_MESSAGE_PREFIX + str(len(data)).encode("ascii") + data)
    if chain is Chain.BITCOIN:
        return double_sha256(BITCOIN_MESSAGE_MAGIC + encode_varint(len(data)) + data)
    if chain is Chain.SOLANA:
        if not message.offchain:
            if not data:
                raise ValidationError("Message must not be empty")
            return data
        return encode_solana_offchain(data)
    raise UnsupportedChainError(f"Unsupported chain: {chain.value}")


def _adapter(chain: Chain, config: Optional[ChainConfig]):
    from ..adapters import get_adapter
    return get_adapter(chain, config)


def _bitcoin_header_base(address_type: str) -> int:
    if address_type == "p2wpkh":
        return BITCOIN_HEADER_P2WPKH
    return BITCOIN_HEADER_P2PKH


def sign_message(
    message: Union[SignableMessage, str, bytes],
    key_pair: KeyPair,
    config: Optional[ChainConfig] = None
) -> SignedMessage:
    """
    Sign a message with the conventions of the key pair's chain.

    Args:
        message: RawMessage, TypedDataMessage, or str/bytes for a raw message
        key_pair: Signing key; its chain selects prefix and encoding
        config: Optional chain config (Bitcoin address type for the header)

    Returns:
        SignedMessage whose ``encoded`` is ``r||s||v`` (v = 27 + recid) for
        EVM, the 65-byte BIP-137 form for Bitcoin, and the raw 64-byte
        signature for Solana
    """
    if not isinstance(message, (RawMessage, TypedDataMessage)):
        message = RawMessage(message)

    chain = key_pair.chain
    adapter = _adapter(chain, config)
    digest = hash_message(message, chain)
    signature = sign(digest, key_pair)

    if chain is Chain.EVM:
        encoded = signature.to_rsv(27)
    elif chain is Chain.BITCOIN:
        header = _bitcoin_header_base(adapter.address_type) + signature.recovery_id
        encoded = bytes([header]) + signature.compact()
    else:
        encoded = signature.value

    address = adapter.derive_address(key_pair.public_key)
    logger.debug(f"Signed {type(message).__name__} on {chain.value} for {address}")
    return SignedMessage(message=message, signature=signature, encoded=encoded, address=address)


def verify_message(signed: SignedMessage, public_key: bytes) -> bool:
    """
    Verify a signed message against a public key.

    The digest is recomputed from ``signed.message``, so a signature moved
    onto a different message fails.
    """
    try:
        digest = hash_message(signed.message, signed.signature.chain)
    except ValidationError:
        return False
    if digest != signed.signature.digest:
        return False
    return verify(digest, signed.signature, public_key)


def recover_message_signer(
    message: Union[SignableMessage, str, bytes],
    encoded: bytes,
    chain: Union[Chain, str],
    config: Optional[ChainConfig] = None
) -> str:
    """
    Recover the signer address from a wallet-style message signature.

    Args:
        message: The signed message
        encoded: 65-byte ``r||s||v`` (EVM) or BIP-137 signature (Bitcoin)
        chain: Chain the message was signed for
        config: Optional chain config (Bitcoin network)

    Returns:
        Signer address

    Raises:
        NotRecoverableError: For Solana (ed25519)
        ValidationError: If the signature encoding is malformed
    """
    if not isinstance(message, (RawMessage, TypedDataMessage)):
        message = RawMessage(message)
    config = config or get_chain_config(chain)
    chain = config.chain

    if chain is Chain.SOLANA:
        raise NotRecoverableError("ed25519 signatures do not support key recovery")

    encoded = bytes(encoded)
    if len(encoded) != 65:
        raise ValidationError(f"Recoverable signature must be 65 bytes, got {len(encoded)}")

    if chain is Chain.EVM:
        v = encoded[64]
        recovery_id = v - 27 if v >= 27 else v
        compact = encoded[:64]
        address_type = None
    else:
        header = encoded[0]
        if BITCOIN_HEADER_P2PKH <= header < BITCOIN_HEADER_P2SH_P2WPKH:
            address_type, base = "p2pkh", BITCOIN_HEADER_P2PKH
        elif BITCOIN_HEADER_P2SH_P2WPKH <= header < BITCOIN_HEADER_P2WPKH:
            address_type, base = "p2sh-p2wpkh", BITCOIN_HEADER_P2SH_P2WPKH
        elif BITCOIN_HEADER_P2WPKH <= header < BITCOIN_HEADER_P2WPKH + 4:
            address_type, base = "p2wpkh", BITCOIN_HEADER_P2WPKH
        else:
            raise ValidationError(f"Unsupported signature header: {header}")
        recovery_id = header - base
        compact = encoded[1:]

    if recovery_id not in (0, 1, 2, 3):
        raise ValidationError(f"Invalid recovery id: {recovery_id}")

    digest = hash_message(message, chain)
    signature = Signature(
        chain=chain,
        scheme=SignatureScheme.ECDSA_SECP256K1,
        value=compact + bytes([recovery_id]),
        digest=digest,
    )
    public_key = recover_public_key(digest, signature)

    if chain is Chain.EVM:
        return _adapter(chain, config).derive_address(public_key)
    if address_type == "p2sh-p2wpkh":
        redeem_script = b"\x00\x14" + hash160(public_key)
        return encode_address("p2sh", hash160(redeem_script), config.network)
    return _adapter(chain, config.with_overrides(address_type=address_type)).derive_address(public_key)
