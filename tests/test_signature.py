import hashlib

import pytest

from chainsign.constants import Chain, SECP256K1_N, SignatureScheme
from chainsign.crypto.keys import KeyManager
from chainsign.crypto.signature import recover_public_key, sign, verify, verify_or_raise
from chainsign.exceptions import (
    NotRecoverableError,
    SigningError,
    ValidationError,
    VerificationError,
)
from chainsign.types.signature import Signature

DIGEST = hashlib.sha256(b"chainsign").digest()


@pytest.fixture
def secp_key():
    return KeyManager().from_private_key("46" * 32, Chain.EVM)


@pytest.fixture
def ed_key():
    return KeyManager().from_private_key("9d" * 32, Chain.SOLANA)


def _flip(data: bytes, bit: int) -> bytes:
    changed = bytearray(data)
    changed[bit // 8] ^= 1 << (bit % 8)
    return bytes(changed)


def test_ecdsa_sign_verify_roundtrip(secp_key):
    signature = sign(DIGEST, secp_key)
    assert signature.chain == Chain.EVM
    assert signature.scheme == SignatureScheme.ECDSA_SECP256K1
    assert len(signature.value) == 65
    assert signature.digest == DIGEST
    assert verify(DIGEST, signature, secp_key.public_key)
    verify_or_raise(DIGEST, signature, secp_key.public_key)


def test_ecdsa_is_deterministic_and_low_s(secp_key):
    first = sign(DIGEST, secp_key)
    second = sign(DIGEST, secp_key)
    assert first == second
    assert first.s <= SECP256K1_N // 2


def test_ecdsa_tamper_detection(secp_key):
    signature = sign(DIGEST, secp_key)
    for bit in range(len(DIGEST) * 8):
        assert not verify(_flip(DIGEST, bit), signature, secp_key.public_key), bit

    # r, s and the recovery byte
    for bit in range(len(signature.value) * 8):
        tampered = Signature(signature.chain, signature.scheme, _flip(signature.value, bit), DIGEST)
        assert not verify(DIGEST, tampered, secp_key.public_key), bit

    wrong_recovery = Signature(
        signature.chain,
        signature.scheme,
        signature.compact() + bytes([signature.recovery_id ^ 1]),
        DIGEST,
    )
    assert not verify(DIGEST, wrong_recovery, secp_key.public_key)

    other = KeyManager().from_private_key("47" * 32, Chain.EVM)
    assert not verify(DIGEST, signature, other.public_key)
    with pytest.raises(VerificationError):
        verify_or_raise(DIGEST, signature, other.public_key)


def test_ecdsa_requires_32_byte_digest(secp_key):
    with pytest.raises(SigningError):
        sign(b"short", secp_key)


def test_recover_public_key(secp_key):
    signature = sign(DIGEST, secp_key)
    assert recover_public_key(DIGEST, signature) == secp_key.public_key

    malformed = Signature(signature.chain, signature.scheme, signature.value[:64] + b"\x07", DIGEST)
    with pytest.raises(ValidationError):
        recover_public_key(DIGEST, malformed)


def test_ed25519_sign_verify(ed_key):
    message = b"any length message"
    signature = sign(message, ed_key)
    assert signature.scheme == SignatureScheme.ED25519
    assert len(signature.value) == 64
    assert sign(message, ed_key) == signature
    assert verify(message, signature, ed_key.public_key)
    assert not verify(message + b"!", signature, ed_key.public_key)

    for bit in range(len(message) * 8):
        assert not verify(_flip(message, bit), signature, ed_key.public_key), bit

    for bit in range(len(signature.value) * 8):
        tampered = Signature(signature.chain, signature.scheme, _flip(signature.value, bit), message)
        assert not verify(message, tampered, ed_key.public_key), bit


def test_ed25519_is_not_recoverable(ed_key):
    signature = sign(b"message", ed_key)
    assert not signature.is_recoverable
    with pytest.raises(NotRecoverableError):
        recover_public_key(b"message", signature)
    with pytest.raises(AttributeError):
        signature.recovery_id


def test_sign_with_wiped_key_fails(secp_key):
    secp_key.wipe()
    with pytest.raises(SigningError):
        sign(DIGEST, secp_key)


def test_rsv_serialization(secp_key):
    signature = sign(DIGEST, secp_key)
    rsv = signature.to_rsv()
    assert rsv[:32] == signature.r.to_bytes(32, "big")
    assert rsv[32:64] == signature.s.to_bytes(32, "big")
    assert rsv[64] == 27 + signature.recovery_id
