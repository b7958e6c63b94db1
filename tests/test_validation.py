import pytest

from chainsign.utils import validation as v
from chainsign.constants import Curve, Network, SECP256K1_N
from chainsign.exceptions import EncodingOverflowError, ValidationError
from chainsign.utils.encoding import encode_address


def test_address_validation():
    h = bytes.fromhex("11" * 20)
    addr = encode_address("p2wpkh", h, Network.MAINNET)
    assert v.is_valid_bitcoin_address(addr, Network.MAINNET)
    assert not v.is_valid_bitcoin_address(addr, Network.TESTNET)
    assert v.validate_bitcoin_address(addr.upper(), Network.MAINNET) == addr
    with pytest.raises(ValidationError):
        v.validate_bitcoin_address("invalid")


def test_uint_width_checks():
    assert v.validate_uint(2**64 - 1, 64, "nonce") == 2**64 - 1
    with pytest.raises(EncodingOverflowError) as exc_info:
        v.validate_uint(2**64, 64, "nonce")
    assert exc_info.value.field == "nonce"
    assert exc_info.value.bits == 64
    with pytest.raises(ValidationError):
        v.validate_uint(-1, 64, "nonce")
    with pytest.raises(ValidationError):
        v.validate_uint(True, 64, "nonce")


def test_private_key_range():
    assert v.is_valid_private_key("01" * 32)
    assert v.is_valid_private_key((SECP256K1_N - 1).to_bytes(32, "big"))
    assert not v.is_valid_private_key(bytes(32))
    assert not v.is_valid_private_key(SECP256K1_N.to_bytes(32, "big"))
    assert not v.is_valid_private_key(b"\x01" * 31)
    assert v.is_valid_private_key(bytes(32), Curve.ED25519)


def test_private_key_errors_do_not_leak_key():
    key = SECP256K1_N.to_bytes(32, "big")
    with pytest.raises(ValidationError) as exc_info:
        v.validate_private_key(key)
    assert key.hex() not in str(exc_info.value)


def test_checksum_address():
    # EIP-55 examples
    for address in [
        "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed",
        "0xfB6916095ca1df60bB79Ce92cE3Ea74c37c5d359",
        "0xdbF03B407c01E7cD3CBea99509d93f8DDDC8C6FB",
        "0xD1220A0cf47c7B9Be7A2E6BA89F429762e7b9aDb",
    ]:
        assert v.to_checksum_address(address.lower()) == address
        assert v.validate_evm_address(address) == address

    assert v.is_valid_evm_address("0x5aaeb6053f3e94c9b9a09f33669435e7ef1beaed")
    assert not v.is_valid_evm_address("0x5AAeb6053F3E94C9b9A09f33669435E7Ef1BeAed")
    assert not v.is_valid_evm_address("5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed")
    assert not v.is_valid_evm_address("0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeA")


def test_solana_address():
    system_program = "11111111111111111111111111111111"
    assert v.validate_solana_address(system_program) == bytes(32)
    assert not v.is_valid_solana_address("1111")
    assert not v.is_valid_solana_address("0OIl")
