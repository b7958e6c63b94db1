import copy

import pytest

from chainsign.constants import Chain
from chainsign.crypto.keys import KeyManager
from chainsign.crypto.message import hash_message, recover_message_signer, sign_message
from chainsign.crypto.typed_data import (
    encode_typed_data,
    hash_domain,
    hash_struct,
    hash_typed_data,
)
from chainsign.exceptions import MissingFieldError, UnsupportedChainError, ValidationError
from chainsign.types.message import TypedDataMessage
from chainsign.utils.encoding import keccak256

MAIL = {
    "types": {
        "EIP712Domain": [
            {"name": "name", "type": "string"},
            {"name": "version", "type": "string"},
            {"name": "chainId", "type": "uint256"},
            {"name": "verifyingContract", "type": "address"},
        ],
        "Person": [
            {"name": "name", "type": "string"},
            {"name": "wallet", "type": "address"},
        ],
        "Mail": [
            {"name": "from", "type": "Person"},
            {"name": "to", "type": "Person"},
            {"name": "contents", "type": "string"},
        ],
    },
    "primaryType": "Mail",
    "domain": {
        "name": "Ether Mail",
        "version": "1",
        "chainId": 1,
        "verifyingContract": "0xCcCCccccCCCCcCCCCCCcCcCccCcCCCcCcccccccC",
    },
    "message": {
        "from": {"name": "Cow", "wallet": "0xCD2a3d9F938E13CD947Ec05AbC7FE734Df8DD826"},
        "to": {"name": "Bob", "wallet": "0xbBbBBBBbbBBBbbbBbbBbbbbBBbBbbbbBbBbbBBbB"},
        "contents": "Hello, Bob!",
    },
}

MAIL_HASH = "be609aee343fb3c4b28e1df9e632fca64fcfaede20f02e86244efddf30957bd2"


def test_mail_example_hashes():
    message = TypedDataMessage.from_dict(MAIL)
    assert hash_domain(message).hex() == (
        "f2cee375fa42b42143804025fc449deafd50cc031ca257e0b194a650a912090f"
    )
    assert hash_struct(message).hex() == (
        "c52c0ee5d84264471806290a3f2c4cecfc5490626bf912d01f240d7a274b371e"
    )
    assert hash_typed_data(message).hex() == MAIL_HASH

    signable = encode_typed_data(message)
    assert signable.version == b"\x01"


def test_typed_data_dict_roundtrip():
    message = TypedDataMessage.from_dict(MAIL)
    assert TypedDataMessage.from_dict(message.to_dict()) == message
    assert message.to_dict()["primaryType"] == "Mail"


def test_domain_type_is_inferred_when_absent():
    data = copy.deepcopy(MAIL)
    del data["types"]["EIP712Domain"]
    assert hash_typed_data(TypedDataMessage.from_dict(data)).hex() == MAIL_HASH


def test_sign_and_recover_mail_example():
    cow = KeyManager().from_private_key(keccak256(b"cow"), Chain.EVM)
    message = TypedDataMessage.from_dict(MAIL)
    signed = sign_message(message, cow)
    assert signed.address == "0xCD2a3d9F938E13CD947Ec05AbC7FE734Df8DD826"
    assert signed.digest.hex() == MAIL_HASH
    assert signed.encoded[64] in (27, 28)
    assert recover_message_signer(message, signed.encoded, Chain.EVM) == signed.address


def _order(**overrides):
    order = {
        "ids": [1, 2],
        "flags": [True, False],
        "tag": bytes.fromhex("deadbeef"),
        "delta": -1,
        "payload": b"",
    }
    order.update(overrides)
    return TypedDataMessage(
        types={
            "Order": [
                {"name": "ids", "type": "uint256[]"},
                {"name": "flags", "type": "bool[2]"},
                {"name": "tag", "type": "bytes4"},
                {"name": "delta", "type": "int8"},
                {"name": "payload", "type": "bytes"},
            ],
        },
        primary_type="Order",
        domain={"name": "Shop"},
        message=order,
    )


def test_arrays_and_atomic_types():
    type_hash = keccak256(b"Order(uint256[] ids,bool[2] flags,bytes4 tag,int8 delta,bytes payload)")
    expected = keccak256(
        type_hash
        + keccak256((1).to_bytes(32, "big") + (2).to_bytes(32, "big"))
        + keccak256((1).to_bytes(32, "big") + bytes(32))
        + bytes.fromhex("deadbeef").ljust(32, b"\x00")
        + b"\xff" * 32
        + keccak256(b"")
    )
    assert hash_struct(_order()) == expected
    assert hash_struct(_order(ids=[2, 1])) != expected

    with pytest.raises(ValidationError):
        hash_struct(_order(delta=128))


def test_missing_field_and_unknown_type():
    data = copy.deepcopy(MAIL)
    del data["message"]["contents"]
    with pytest.raises(MissingFieldError):
        hash_typed_data(TypedDataMessage.from_dict(data))

    data = copy.deepcopy(MAIL)
    del data["message"]["to"]["wallet"]
    with pytest.raises(ValidationError):
        hash_typed_data(TypedDataMessage.from_dict(data))

    data = dict(MAIL, primaryType="Nope")
    with pytest.raises(ValidationError):
        hash_typed_data(TypedDataMessage.from_dict(data))

    with pytest.raises(MissingFieldError):
        TypedDataMessage.from_dict({"types": {}, "domain": {}, "message": {}})


def test_zero_verifying_contract_is_rejected():
    data = copy.deepcopy(MAIL)
    data["domain"]["verifyingContract"] = "0x" + "00" * 20
    with pytest.raises(ValidationError):
        hash_typed_data(TypedDataMessage.from_dict(data))


def test_typed_data_is_evm_only():
    message = TypedDataMessage.from_dict(MAIL)
    with pytest.raises(UnsupportedChainError):
        hash_message(message, Chain.SOLANA)
    with pytest.raises(UnsupportedChainError):
        hash_message(message, Chain.BITCOIN)
