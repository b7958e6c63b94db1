"""Encoding and hashing primitives shared by the chain adapters."""

import hashlib
import struct
from typing import List, Tuple, Union

import rlp
from rlp.exceptions import DecodingError, EncodingError, SerializationError as RlpSerializationError
from Crypto.Hash import RIPEMD160, keccak

from ..constants import ADDRESS_PREFIXES, BECH32_HRP, Network
from ..exceptions import SerializationError, ValidationError
from ..types.common import Address, HexStr

__all__ = [
    "hex_to_bytes",
    "bytes_to_hex",
    "int_to_bytes",
    "bytes_to_int",
    "int_to_min_bytes",
    "encode_varint",
    "decode_varint",
    "encode_compact_u16",
    "decode_compact_u16",
    "sha256",
    "double_sha256",
    "hash160",
    "keccak256",
    "encode_base58",
    "decode_base58",
    "encode_base58_check",
    "decode_base58_check",
    "encode_bech32",
    "decode_bech32",
    "encode_bech32m",
    "decode_bech32m",
    "encode_address",
    "decode_address",
    "serialize_script",
    "rlp_encode",
    "rlp_decode",
]

# Constants
BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
BECH32_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
BECH32_CONST = 1
BECH32M_CONST = 0x2bc830a3

RlpItem = Union[bytes, int, List["RlpItem"]]


def hex_to_bytes(value: Union[HexStr, str]) -> bytes:
    """
    Decode hex, accepting an optional ``0x``/``0X`` prefix.

    Raises:
        ValidationError: On odd length or non-hex characters. Only the
            first characters are echoed, since callers pass key material
    """
    body = value[2:] if value[:2] in ("0x", "0X") else value
    try:
        return bytes.fromhex(body)
    except ValueError as e:
        raise ValidationError(f"Invalid hex string starting {body[:8]!r}") from e


def bytes_to_hex(data: bytes, prefix: bool = False) -> HexStr:
    encoded = bytes(data).hex()
    return HexStr("0x" + encoded if prefix else encoded)


def int_to_bytes(
    value: int,
    length: int,
    byteorder: str = "big",
    signed: bool = False
) -> bytes:
    """Convert integer to bytes with specified length."""
    return value.to_bytes(length, byteorder=byteorder, signed=signed)


def bytes_to_int(
    data: bytes,
    byteorder: str = "big",
    signed: bool = False
) -> int:
    """Convert bytes to integer."""
    return int.from_bytes(data, byteorder=byteorder, signed=signed)


def int_to_min_bytes(value: int) -> bytes:
    """Big-endian encoding without leading zeros; zero encodes as empty."""
    if value < 0:
        raise ValidationError(f"Cannot encode negative integer: {value}")
    if value == 0:
        return b""
    return value.to_bytes((value.bit_length() + 7) // 8, "big")


# CompactSize marker -> little-endian struct format of the value that follows
_VARINT_FORMATS = {0xfd: "<H", 0xfe: "<I", 0xff: "<Q"}


def encode_varint(n: int) -> bytes:
    """
    Bitcoin CompactSize encoding.

    Values below 0xfd take one byte; larger ones get a marker byte
    followed by a 2, 4 or 8 byte little-endian integer.
    """
    if not 0 <= n < 2 ** 64:
        raise ValidationError(f"varint out of range: {n}")
    if n < 0xfd:
        return bytes([n])
    marker = 0xfd if n <= 0xffff else 0xfe if n <= 0xffffffff else 0xff
    return bytes([marker]) + struct.pack(_VARINT_FORMATS[marker], n)


def decode_varint(data: bytes, offset: int = 0) -> Tuple[int, int]:
    """Decode CompactSize at ``offset``, returning (value, new_offset)."""
    try:
        marker = data[offset]
        if marker < 0xfd:
            return marker, offset + 1
        fmt = _VARINT_FORMATS[marker]
        (value,) = struct.unpack_from(fmt, data, offset + 1)
    except (IndexError, struct.error) as e:
        raise SerializationError("Truncated varint") from e
    return value, offset + 1 + struct.calcsize(fmt)


def encode_compact_u16(n: int) -> bytes:
    """
    Encode integer in Solana's compact-u16 (shortvec) format.

    Seven bits per byte, least significant group first, high bit set on
    every byte except the last.
    """
    if not 0 <= n <= 0xffff:
        raise ValidationError(f"compact-u16 value out of range: {n}")
    out = bytearray()
    while True:
        byte = n & 0x7f
        n >>= 7
        if n:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def decode_compact_u16(data: bytes, offset: int = 0) -> Tuple[int, int]:
    """Decode compact-u16, returning (value, new_offset)."""
    value = 0
    for i in range(3):
        try:
            byte = data[offset + i]
        except IndexError as e:
            raise SerializationError("Truncated compact-u16") from e
        value |= (byte & 0x7f) << (7 * i)
        if not byte & 0x80:
            if value > 0xffff:
                raise SerializationError("compact-u16 overflow")
            return value, offset + i + 1
    raise SerializationError("compact-u16 longer than 3 bytes")


def sha256(data: bytes) -> bytes:
    """Single SHA256."""
    return hashlib.sha256(data).digest()


def double_sha256(data: bytes) -> bytes:
    """Perform double SHA256 hash."""
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def hash160(data: bytes) -> bytes:
    """Perform RIPEMD160(SHA256(data))."""
    return RIPEMD160.new(hashlib.sha256(data).digest()).digest()


def keccak256(data: bytes) -> bytes:
    """Original Keccak-256 as used by the EVM (not NIST SHA3-256)."""
    return keccak.new(digest_bits=256, data=bytes(data)).digest()


def encode_base58(data: bytes) -> str:
    """
    Bitcoin-alphabet Base58, used for Solana keys and signatures as well
    as legacy Bitcoin addresses. Each leading zero byte becomes a ``1``.
    """
    data = bytes(data)
    n = int.from_bytes(data, "big")
    digits = []
    while n:
        n, digit = divmod(n, 58)
        digits.append(BASE58_ALPHABET[digit])
    zeros = len(data) - len(data.lstrip(b"\x00"))
    return "1" * zeros + "".join(reversed(digits))


def decode_base58(text: str) -> bytes:
    """
    Inverse of :func:`encode_base58`.

    Raises:
        ValidationError: On a character outside the alphabet
    """
    n = 0
    for char in text:
        digit = BASE58_ALPHABET.find(char)
        if digit < 0:
            raise ValidationError(f"Invalid Base58 character: {char!r}")
        n = n * 58 + digit
    zeros = len(text) - len(text.lstrip("1"))
    return b"\x00" * zeros + int_to_min_bytes(n)


def encode_base58_check(payload: bytes) -> str:
    return encode_base58(payload + double_sha256(payload)[:4])


def decode_base58_check(text: str) -> bytes:
    """
    Decode Base58Check and strip the 4-byte checksum.

    Raises:
        ValidationError: If the string is too short or the checksum fails
    """
    raw = decode_base58(text)
    if len(raw) < 5:
        raise ValidationError("Base58Check string too short")
    payload, checksum = raw[:-4], raw[-4:]
    if double_sha256(payload)[:4] != checksum:
        raise ValidationError("Invalid Base58Check checksum")
    return payload


def _bech32_polymod(values: List[int]) -> int:
    """Compute Bech32 checksum polymod."""
    generator = [0x3b6a57b2, 0x26508e6d, 0x1ea119fa, 0x3d4233dd, 0x2a1462b3]
    chk = 1
    for value in values:
        top = chk >> 25
        chk = (chk & 0x1ffffff) << 5 ^ value
        for i in range(5):
            chk ^= generator[i] if ((top >> i) & 1) else 0
    return chk


def _bech32_hrp_expand(hrp: str) -> List[int]:
    """Expand human-readable part for Bech32."""
    return [ord(x) >> 5 for x in hrp] + [0] + [ord(x) & 31 for x in hrp]


def _convert_bits(data: bytes, from_bits: int, to_bits: int, pad: bool) -> List[int]:
    acc = 0
    bits = 0
    out = []
    maxv = (1 << to_bits) - 1
    for value in data:
        acc = (acc << from_bits) | value
        bits += from_bits
        while bits >= to_bits:
            bits -= to_bits
            out.append((acc >> bits) & maxv)
    if pad:
        if bits:
            out.append((acc << (to_bits - bits)) & maxv)
    elif bits >= from_bits or ((acc << (to_bits - bits)) & maxv):
        raise ValidationError("Invalid bech32 padding")
    return out


def _bech32_encode(hrp: str, witver: int, witprog: bytes, const: int) -> str:
    values = [witver] + _convert_bits(witprog, 8, 5, pad=True)
    polymod = _bech32_polymod(_bech32_hrp_expand(hrp) + values + [0] * 6) ^ const
    checksum = [(polymod >> 5 * (5 - i)) & 31 for i in range(6)]
    return hrp + "1" + "".join(BECH32_CHARSET[v] for v in values + checksum)


def _bech32_decode(address: str, const: int) -> Tuple[str, int, bytes]:
    if address.lower() != address and address.upper() != address:
        raise ValidationError("Invalid bech32 address: mixed case")
    address = address.lower()

    pos = address.rfind("1")
    if pos < 1 or pos + 7 > len(address):
        raise ValidationError("Invalid bech32 address: no separator")

    hrp = address[:pos]
    values = []
    for char in address[pos + 1:]:
        try:
            values.append(BECH32_CHARSET.index(char))
        except ValueError:
            raise ValidationError(f"Invalid bech32 character: {char}")

    if _bech32_polymod(_bech32_hrp_expand(hrp) + values) != const:
        raise ValidationError("Invalid bech32 checksum")

    witver = values[0]
    witprog = bytes(_convert_bits(bytes(values[1:-6]), 5, 8, pad=False))
    return hrp, witver, witprog


def encode_bech32(hrp: str, witver: int, witprog: bytes) -> str:
    """Encode as Bech32 address (SegWit v0)."""
    return _bech32_encode(hrp, witver, witprog, BECH32_CONST)


def decode_bech32(address: str) -> Tuple[str, int, bytes]:
    """Decode Bech32 address into (hrp, witness_version, witness_program)."""
    return _bech32_decode(address, BECH32_CONST)


def encode_bech32m(hrp: str, witver: int, witprog: bytes) -> str:
    """Encode as Bech32m address (SegWit v1+)."""
    return _bech32_encode(hrp, witver, witprog, BECH32M_CONST)


def decode_bech32m(address: str) -> Tuple[str, int, bytes]:
    """Decode Bech32m address into (hrp, witness_version, witness_program)."""
    return _bech32_decode(address, BECH32M_CONST)


# (witness version, program length) -> address type
_WITNESS_TYPES = {(0, 20): "p2wpkh", (0, 32): "p2wsh", (1, 32): "p2tr"}


def decode_address(address: str, network: Network = Network.MAINNET) -> Tuple[str, bytes]:
    """
    Split a Bitcoin address into its type and hash/program.

    Segwit v0 addresses must carry a bech32 checksum and v1 (taproot)
    addresses a bech32m one.

    Returns:
        ``(address_type, payload)`` where address_type is one of p2pkh,
        p2sh, p2wpkh, p2wsh, p2tr

    Raises:
        ValidationError: If the address does not belong to ``network`` or
            is malformed
    """
    if address.lower().startswith(BECH32_HRP[network] + "1"):
        try:
            _, witver, witprog = decode_bech32(address)
            if witver != 0:
                raise ValidationError("Witness v1+ addresses use bech32m")
        except ValidationError:
            _, witver, witprog = decode_bech32m(address)
            if witver == 0:
                raise
        address_type = _WITNESS_TYPES.get((witver, len(witprog)))
        if address_type is None:
            raise ValidationError(f"Unsupported witness program: v{witver}, {len(witprog)} bytes")
        return address_type, witprog

    decoded = decode_base58_check(address)
    if len(decoded) != 21:
        raise ValidationError(f"Base58 address payload must be 21 bytes, got {len(decoded)}")
    for address_type in ("p2pkh", "p2sh"):
        if decoded[:1] == ADDRESS_PREFIXES[address_type][network]:
            return address_type, decoded[1:]
    raise ValidationError(f"Address version {decoded[0]:#04x} is not valid on {network.value}")


def encode_address(
    address_type: str,
    hash_bytes: bytes,
    network: Network = Network.MAINNET
) -> Address:
    """
    Encode hash as Bitcoin address.

    Args:
        address_type: Type of address (p2pkh, p2sh, p2wpkh, p2wsh, p2tr)
        hash_bytes: Hash to encode
        network: Target network

    Returns:
        Encoded address

    Raises:
        ValidationError: If parameters are invalid
    """
    expected_lengths = {"p2pkh": 20, "p2sh": 20, "p2wpkh": 20, "p2wsh": 32, "p2tr": 32}
    if address_type not in expected_lengths:
        raise ValidationError(f"Unknown address type: {address_type}")
    if len(hash_bytes) != expected_lengths[address_type]:
        raise ValidationError(
            f"{address_type.upper()} requires {expected_lengths[address_type]}-byte hash"
        )

    if address_type in ("p2pkh", "p2sh"):
        prefix = ADDRESS_PREFIXES[address_type][network]
        return Address(encode_base58_check(prefix + hash_bytes))

    hrp = BECH32_HRP[network]
    if address_type == "p2tr":
        return Address(encode_bech32m(hrp, 1, hash_bytes))
    return Address(encode_bech32(hrp, 0, hash_bytes))


def _push_data(data: bytes) -> bytes:
    size = len(data)
    if size <= 75:
        return bytes([size]) + data
    if size <= 0xff:
        return b"\x4c" + bytes([size]) + data  # OP_PUSHDATA1
    if size <= 0xffff:
        return b"\x4d" + struct.pack("<H", size) + data  # OP_PUSHDATA2
    return b"\x4e" + struct.pack("<I", size) + data  # OP_PUSHDATA4


def serialize_script(script_ops: List[Union[int, bytes]]) -> bytes:
    """
    Assemble a script from opcodes (ints) and pushes (bytes).

    Pushes use the smallest PUSHDATA form for their length.
    """
    return b"".join(
        bytes([op]) if isinstance(op, int) else _push_data(bytes(op))
        for op in script_ops
    )


def _check_rlp_item(item: RlpItem) -> None:
    if isinstance(item, (list, tuple)):
        for child in item:
            _check_rlp_item(child)
    elif isinstance(item, bool) or not isinstance(item, (bytes, bytearray, int)):
        raise ValidationError(f"Cannot RLP encode {type(item).__name__}")
    elif isinstance(item, int) and item < 0:
        raise ValidationError("RLP does not encode negative integers")


def _as_lists(item):
    if isinstance(item, (list, tuple)):
        return [_as_lists(child) for child in item]
    return bytes(item)


def rlp_encode(item: RlpItem) -> bytes:
    """
    Recursive Length Prefix encoding.

    Integers are encoded as minimal big-endian byte strings, lists
    recursively. Booleans and text are refused rather than coerced.
    """
    _check_rlp_item(item)
    try:
        return rlp.encode(item)
    except (EncodingError, RlpSerializationError) as e:
        raise ValidationError(f"Cannot RLP encode item: {e}") from e


def rlp_decode(data: bytes) -> RlpItem:
    """
    Decode a single RLP item in strict mode.

    Trailing bytes, truncated payloads and non-canonical length prefixes
    are all rejected.
    """
    try:
        item = rlp.decode(bytes(data), strict=True)
    except DecodingError as e:
        raise SerializationError(f"Invalid RLP data: {e}") from e
    return _as_lists(item)
