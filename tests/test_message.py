import pytest

from chainsign.adapters import get_adapter
from chainsign.constants import Chain, get_chain_config
from chainsign.crypto.keys import KeyManager
from chainsign.crypto.message import (
    encode_solana_offchain,
    hash_message,
    recover_message_signer,
    sign_message,
    verify_message,
)
from chainsign.crypto.signature import verify
from chainsign.exceptions import NotRecoverableError, ValidationError
from chainsign.types.message import RawMessage, SignedMessage


@pytest.fixture
def manager():
    return KeyManager()


def test_evm_personal_message_hash():
    assert hash_message(RawMessage("Hello World"), Chain.EVM).hex() == (
        "a1de988600a42c4b4ab089b619297c17d53cffae5d5120d82d8a92d0bb3b78f2"
    )


def test_evm_sign_and_recover(manager):
    key_pair = manager.from_private_key("46" * 32, Chain.EVM)
    signed = sign_message("Hello World", key_pair)

    assert signed.address == get_adapter(Chain.EVM).derive_address(key_pair.public_key)
    assert len(signed.encoded) == 65
    assert signed.encoded[64] in (27, 28)
    assert signed.hex().startswith("0x")
    assert verify_message(signed, key_pair.public_key)
    assert recover_message_signer("Hello World", signed.encoded, Chain.EVM) == signed.address

    # v as a bare recovery id
    zero_based = signed.encoded[:64] + bytes([signed.encoded[64] - 27])
    assert recover_message_signer(b"Hello World", zero_based, "evm") == signed.address


def test_bitcoin_sign_and_recover(manager):
    key_pair = manager.from_private_key("01" * 32, Chain.BITCOIN)
    signed = sign_message("Hello World", key_pair)

    assert len(signed.encoded) == 65
    assert 39 <= signed.encoded[0] <= 42
    assert signed.address.startswith("bc1q")
    assert verify_message(signed, key_pair.public_key)
    assert recover_message_signer("Hello World", signed.encoded, Chain.BITCOIN) == signed.address


def test_bitcoin_p2pkh_header(manager):
    config = get_chain_config(Chain.BITCOIN).with_overrides(address_type="p2pkh")
    key_pair = manager.from_private_key("01" * 32, Chain.BITCOIN)
    signed = sign_message("Hello World", key_pair, config)

    assert 31 <= signed.encoded[0] <= 34
    assert signed.address.startswith("1")
    assert recover_message_signer("Hello World", signed.encoded, Chain.BITCOIN) == signed.address


def test_bitcoin_p2sh_p2wpkh_header_recovers_nested_address(manager):
    key_pair = manager.from_private_key("01" * 32, Chain.BITCOIN)
    signed = sign_message("Hello World", key_pair)
    nested = bytes([signed.encoded[0] - 4]) + signed.encoded[1:]
    assert recover_message_signer("Hello World", nested, Chain.BITCOIN).startswith("3")

    with pytest.raises(ValidationError):
        recover_message_signer("Hello World", bytes([27]) + signed.encoded[1:], Chain.BITCOIN)


def test_solana_offchain_envelope():
    envelope = encode_solana_offchain(b"Hello World")
    assert envelope[:16] == b"\xffsolana offchain"
    assert envelope[16] == 0
    assert envelope[17] == 0
    assert envelope[18:20] == (11).to_bytes(2, "little")
    assert envelope[20:] == b"Hello World"

    assert encode_solana_offchain("héllo".encode("utf-8"))[17] == 1
    assert encode_solana_offchain(b"a" * 2000)[17] == 2

    with pytest.raises(ValidationError):
        encode_solana_offchain(b"")
    with pytest.raises(ValidationError):
        encode_solana_offchain(b"\xff\xfe")
    with pytest.raises(ValidationError):
        encode_solana_offchain(b"a" * 70000)


def test_solana_sign_and_verify(manager):
    key_pair = manager.from_private_key("9d" * 32, Chain.SOLANA)
    signed = sign_message("Hello World", key_pair)

    assert len(signed.encoded) == 64
    assert signed.digest == encode_solana_offchain(b"Hello World")
    assert verify_message(signed, key_pair.public_key)
    with pytest.raises(NotRecoverableError):
        recover_message_signer("Hello World", signed.encoded, Chain.SOLANA)


def test_solana_bare_message_matches_wallet_sign_message(manager):
    key_pair = manager.from_private_key("9d" * 32, Chain.SOLANA)
    message = RawMessage("Hello World", offchain=False)
    signed = sign_message(message, key_pair)

    assert signed.digest == b"Hello World"
    assert verify(b"Hello World", signed.signature, key_pair.public_key)
    assert verify_message(signed, key_pair.public_key)

    enveloped = sign_message("Hello World", key_pair)
    assert enveloped.encoded != signed.encoded
    swapped = SignedMessage(
        message=RawMessage("Hello World"),
        signature=signed.signature,
        encoded=signed.encoded,
        address=signed.address,
    )
    assert not verify_message(swapped, key_pair.public_key)

    with pytest.raises(ValidationError):
        hash_message(RawMessage(b"", offchain=False), Chain.SOLANA)


def test_offchain_flag_only_affects_solana():
    for chain in (Chain.EVM, Chain.BITCOIN):
        assert hash_message(RawMessage("gm", offchain=False), chain) == hash_message(RawMessage("gm"), chain)


def test_signature_does_not_transfer_to_other_message(manager):
    for chain in Chain:
        key_pair = manager.generate(chain)
        signed = sign_message("original", key_pair)
        moved = SignedMessage(
            message=RawMessage("changed"),
            signature=signed.signature,
            encoded=signed.encoded,
            address=signed.address,
        )
        assert not verify_message(moved, key_pair.public_key)
        assert not verify_message(signed, manager.generate(chain).public_key)


def test_prefixes_differ_per_chain():
    message = RawMessage(b"same bytes")
    digests = {hash_message(message, chain) for chain in Chain}
    assert len(digests) == 3


def test_recover_rejects_malformed_signature():
    with pytest.raises(ValidationError):
        recover_message_signer("Hello World", bytes(64), Chain.EVM)
