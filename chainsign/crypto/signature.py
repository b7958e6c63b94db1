"""Signature production, verification and public key recovery."""

import logging
from typing import Optional, Tuple

from coincurve import PrivateKey as SecpPrivateKey, PublicKey as SecpPublicKey
from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

from ..constants import Curve, SECP256K1_N, SignatureScheme
from ..exceptions import (
    ChainSignError,
    NotRecoverableError,
    SigningError,
    ValidationError,
    VerificationError,
)
from ..types.common import PublicKeyBytes
from ..types.signature import Signature
from .keys import KeyPair

__all__ = [
    "sign",
    "verify",
    "verify_or_raise",
    "recover_public_key",
    "parse_der_signature",
    "encode_der_signature",
]

logger = logging.getLogger(__name__)


def sign(digest: bytes, key_pair: KeyPair) -> Signature:
    """
    Sign a digest with a key pair.

    ECDSA uses RFC 6979 nonces and low-S normalization (libsecp256k1), so the
    same digest and key always give the same signature. ed25519 is
    deterministic by construction and signs ``digest`` as the full message.

    Args:
        digest: 32-byte hash for ECDSA, message bytes for ed25519
        key_pair: Signing key pair

    Returns:
        Signature tagged with the key pair's chain

    Raises:
        SigningError: If the primitive rejects the input
    """
    digest = bytes(digest)

    if key_pair.curve == Curve.SECP256K1:
        if len(digest) != 32:
            raise SigningError(f"ECDSA digest must be 32 bytes, got {len(digest)}")
        try:
            value = SecpPrivateKey(bytes(key_pair.private_key)).sign_recoverable(digest, hasher=None)
        except ValueError as e:
            raise SigningError("secp256k1 signing failed") from e
        scheme = SignatureScheme.ECDSA_SECP256K1

    elif key_pair.curve == Curve.ED25519:
        try:
            value = SigningKey(bytes(key_pair.private_key)).sign(digest).signature
        except (ValueError, TypeError) as e:
            raise SigningError("ed25519 signing failed") from e
        scheme = SignatureScheme.ED25519

    else:
        raise SigningError(f"Unsupported curve: {key_pair.curve}")

    logger.debug(f"Signed {len(digest)}-byte digest for {key_pair.chain.value}")
    return Signature(chain=key_pair.chain, scheme=scheme, value=bytes(value), digest=digest)


def verify(digest: bytes, signature: Signature, public_key: bytes) -> bool:
    """
    Check a signature against a digest and public key.

    For ECDSA the recovery id must also recover ``public_key``, so a
    tampered recovery byte fails too.

    Returns:
        True if valid, False otherwise (never raises for bad signatures)
    """
    digest = bytes(digest)
    public_key = bytes(public_key)

    if signature.scheme == SignatureScheme.ED25519:
        if len(signature.value) != 64 or len(public_key) != 32:
            return False
        try:
            VerifyKey(public_key).verify(digest, signature.value)
            return True
        except (BadSignatureError, ValueError, TypeError):
            return False

    if len(digest) != 32 or len(signature.value) != 65:
        return False

    r = int.from_bytes(signature.value[:32], "big")
    s = int.from_bytes(signature.value[32:64], "big")
    if not (0 < r < SECP256K1_N and 0 < s < SECP256K1_N):
        return False

    try:
        secp_public = SecpPublicKey(public_key)
        if not secp_public.verify(encode_der_signature(r, s), digest, hasher=None):
            return False
        recovered = recover_public_key(digest, signature)
    except (ValueError, TypeError, ChainSignError):
        return False

    return recovered == secp_public.format(compressed=True)


def verify_or_raise(digest: bytes, signature: Signature, public_key: bytes) -> None:
    """
    Strict variant of :func:`verify`.

    Raises:
        VerificationError: If the signature does not validate
    """
    if not verify(digest, signature, public_key):
        raise VerificationError("Signature verification failed")


def recover_public_key(digest: bytes, signature: Signature) -> PublicKeyBytes:
    """
    Recover the compressed secp256k1 public key that produced a signature.

    Raises:
        NotRecoverableError: For schemes without recovery (ed25519)
        ValidationError: If the signature cannot be recovered
    """
    if not signature.is_recoverable:
        raise NotRecoverableError(f"{signature.scheme.value} signatures do not support key recovery")

    digest = bytes(digest)
    if len(digest) != 32:
        raise ValidationError(f"ECDSA digest must be 32 bytes, got {len(digest)}")
    if len(signature.value) != 65 or signature.value[64] > 3:
        raise ValidationError("Malformed recoverable signature")

    try:
        public_key = SecpPublicKey.from_signature_and_message(signature.value, digest, hasher=None)
    except (ValueError, TypeError) as e:
        raise ValidationError("Public key recovery failed") from e
    return PublicKeyBytes(public_key.format(compressed=True))


def parse_der_signature(signature: bytes, has_sighash: bool = False) -> Tuple[int, int, Optional[int]]:
    """
    Parse DER-encoded signature.

    Args:
        signature: DER-encoded signature
        has_sighash: Whether a trailing sighash type byte is present

    Returns:
        Tuple of (r, s, sighash_type)

    Raises:
        ValidationError: If signature format is invalid
    """
    try:
        if has_sighash:
            sighash_type = signature[-1]
            signature = signature[:-1]
        else:
            sighash_type = None

        if signature[0] != 0x30:
            raise ValueError("missing sequence tag")

        length = signature[1]
        if length + 2 != len(signature):
            raise ValueError("incorrect length")

        if signature[2] != 0x02:
            raise ValueError("missing r integer tag")

        r_length = signature[3]
        r = int.from_bytes(signature[4:4 + r_length], "big")

        s_offset = 4 + r_length
        if signature[s_offset] != 0x02:
            raise ValueError("missing s integer tag")

        s_length = signature[s_offset + 1]
        s_end = s_offset + 2 + s_length
        if s_end != len(signature):
            raise ValueError("trailing data")
        s = int.from_bytes(signature[s_offset + 2:s_end], "big")

        return r, s, sighash_type

    except (IndexError, ValueError) as e:
        raise ValidationError(f"Invalid DER signature: {e}") from e


def encode_der_signature(r: int, s: int, sighash_type: Optional[int] = None) -> bytes:
    """
    Encode signature as DER.

    Args:
        r: Signature r value
        s: Signature s value
        sighash_type: Optional sighash type to append

    Returns:
        DER-encoded signature
    """
    def _encode_int(value: int) -> bytes:
        raw = value.to_bytes(max(1, (value.bit_length() + 7) // 8), "big")
        if raw[0] & 0x80:
            raw = b"\x00" + raw
        return b"\x02" + bytes([len(raw)]) + raw

    sequence = _encode_int(r) + _encode_int(s)
    result = b"\x30" + bytes([len(sequence)]) + sequence

    if sighash_type is not None:
        result += bytes([sighash_type])

    return result
