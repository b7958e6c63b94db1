import pytest
from chainsign.utils.encoding import (
    hex_to_bytes, bytes_to_hex, encode_varint, decode_varint,
    encode_compact_u16, decode_compact_u16,
    encode_base58, decode_base58, encode_base58_check, decode_base58_check,
    encode_bech32, decode_bech32, encode_bech32m, decode_bech32m,
    encode_address, decode_address, keccak256, rlp_encode, rlp_decode,
)
from chainsign.constants import Network
from chainsign.exceptions import SerializationError, ValidationError


def test_hex_bytes_roundtrip():
    data = b"\x00\x01deadbeef"
    hex_str = bytes_to_hex(data, prefix=True)
    assert hex_str.startswith("0x")
    assert hex_to_bytes(hex_str) == data
    with pytest.raises(ValidationError):
        hex_to_bytes("zzzz")


def test_varint_roundtrip():
    for value in [0, 1, 252, 253, 65535, 65536, 2**32 + 1]:
        encoded = encode_varint(value)
        decoded, offset = decode_varint(encoded)
        assert decoded == value
        assert offset == len(encoded)


def test_compact_u16_known_encodings():
    assert encode_compact_u16(0) == b"\x00"
    assert encode_compact_u16(0x7f) == b"\x7f"
    assert encode_compact_u16(0x80) == b"\x80\x01"
    assert encode_compact_u16(0x3fff) == b"\xff\x7f"
    assert encode_compact_u16(0x4000) == b"\x80\x80\x01"
    assert encode_compact_u16(0xffff) == b"\xff\xff\x03"
    assert decode_compact_u16(b"\xff\xff\x03") == (0xffff, 3)
    with pytest.raises(ValidationError):
        encode_compact_u16(0x10000)
    with pytest.raises(SerializationError):
        decode_compact_u16(b"\x80")


def test_base58_roundtrip():
    payload = b"hello world"
    encoded = encode_base58(payload)
    assert decode_base58(encoded) == payload
    assert encode_base58(b"\x00\x00\x01") == "112"
    assert encode_base58(bytes(32)) == "1" * 32


def test_base58check_roundtrip():
    payload = b"test payload"
    enc = encode_base58_check(payload)
    dec = decode_base58_check(enc)
    assert dec == payload
    with pytest.raises(ValidationError):
        decode_base58_check(enc[:-1] + ("1" if enc[-1] != "1" else "2"))


def test_bech32_and_bech32m_roundtrip():
    hrp = "bc"
    witprog = b"\x01" * 20
    addr = encode_bech32(hrp, 0, witprog)
    assert decode_bech32(addr) == (hrp, 0, witprog)

    prog_m = b"\x02" * 32
    addr_m = encode_bech32m(hrp, 1, prog_m)
    assert decode_bech32m(addr_m) == (hrp, 1, prog_m)


def test_encode_decode_address():
    hash20 = bytes.fromhex("11" * 20)
    hash32 = bytes.fromhex("22" * 32)

    for address_type, payload in [
        ("p2pkh", hash20),
        ("p2sh", hash20),
        ("p2wpkh", hash20),
        ("p2wsh", hash32),
        ("p2tr", hash32),
    ]:
        address = encode_address(address_type, payload, Network.TESTNET)
        assert decode_address(address, Network.TESTNET) == (address_type, payload)


def test_keccak256_is_not_sha3():
    assert keccak256(b"").hex() == (
        "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
    )


def test_rlp_known_encodings():
    assert rlp_encode(b"dog").hex() == "83646f67"
    assert rlp_encode([b"cat", b"dog"]).hex() == "c88363617483646f67"
    assert rlp_encode(b"") == b"\x80"
    assert rlp_encode([]) == b"\xc0"
    assert rlp_encode(0) == b"\x80"
    assert rlp_encode(15) == b"\x0f"
    assert rlp_encode(1024).hex() == "820400"
    assert rlp_encode([[], [[]], [[], [[]]]]).hex() == "c7c0c1c0c3c0c1c0"

    long_string = b"Lorem ipsum dolor sit amet, consectetur adipisicing elit"
    assert rlp_encode(long_string)[:2] == b"\xb8\x38"


def test_rlp_decode_nested_and_strict():
    encoded = rlp_encode([b"cat", [b"dog", b""], 1024])
    assert rlp_decode(encoded) == [b"cat", [b"dog", b""], b"\x04\x00"]

    with pytest.raises(SerializationError):
        rlp_decode(encoded + b"\x00")
    with pytest.raises(SerializationError):
        rlp_decode(b"\x83do")
    with pytest.raises(ValidationError):
        rlp_encode(True)
    with pytest.raises(ValidationError):
        rlp_encode(-1)
    with pytest.raises(ValidationError):
        rlp_encode([b"ok", "text"])


def test_rlp_decode_rejects_non_canonical_prefixes():
    # single byte below 0x80 wrapped in a string prefix
    with pytest.raises(SerializationError):
        rlp_decode(b"\x81\x05")
    # long form used for a one-byte payload
    with pytest.raises(SerializationError):
        rlp_decode(b"\xb8\x01\x41")
    # long-form list header for a short list
    with pytest.raises(SerializationError):
        rlp_decode(b"\xf8\x01\x80")
    assert rlp_decode(b"\x05") == b"\x05"
