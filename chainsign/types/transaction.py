"""Transaction model: one payload shape per chain variant."""

import base64
from dataclasses import dataclass, field
from enum import IntEnum
from typing import ClassVar, Optional, Tuple, Union

from ..constants import Chain, Network
from ..exceptions import MissingFieldError, ValidationError
from ..types.common import HexStr
from ..types.signature import Signature

__all__ = [
    "AccessListEntry",
    "EvmLegacyTransaction",
    "EvmEip1559Transaction",
    "AccountMeta",
    "SolanaInstruction",
    "SolanaTransaction",
    "SigHashType",
    "OutPoint",
    "BitcoinInput",
    "BitcoinOutput",
    "BitcoinTransaction",
    "UnsignedTransaction",
    "SignedTransaction",
    "system_transfer",
    "SYSTEM_PROGRAM_ID",
]

SYSTEM_PROGRAM_ID = "11111111111111111111111111111111"


def _as_bytes(value: Union[bytes, bytearray, str, None]) -> bytes:
    if value is None:
        return b""
    if isinstance(value, str):
        if value[:2] in ("0x", "0X"):
            value = value[2:]
        try:
            return bytes.fromhex(value)
        except ValueError as e:
            raise ValidationError(f"Invalid hex data: {value[:16]}") from e
    return bytes(value)


class _Required:
    """Mixin checking the variant's required fields at construction."""

    REQUIRED: ClassVar[Tuple[str, ...]] = ()
    VARIANT: ClassVar[str] = ""

    def _check_required(self) -> None:
        for name in self.REQUIRED:
            value = getattr(self, name)
            if value is None or (isinstance(value, (tuple, list)) and not value):
                raise MissingFieldError(name, self.VARIANT)


@dataclass(frozen=True)
class AccessListEntry:
    """EIP-2930 access list item."""
    address: str
    storage_keys: Tuple[str, ...] = ()


@dataclass(frozen=True)
class EvmLegacyTransaction(_Required):
    """
    Pre-typed EVM transaction.

    ``chain_id`` enables EIP-155 replay protection; leave it ``None`` only for
    pre-EIP-155 signing. ``to=None`` creates a contract.
    """
    nonce: Optional[int] = None
    gas_price: Optional[int] = None
    gas_limit: Optional[int] = None
    to: Optional[str] = None
    value: int = 0
    data: bytes = b""
    chain_id: Optional[int] = None

    chain: ClassVar[Chain] = Chain.EVM
    REQUIRED: ClassVar[Tuple[str, ...]] = ("nonce", "gas_price", "gas_limit")
    VARIANT: ClassVar[str] = "EVM legacy transaction"

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", _as_bytes(self.data))
        self._check_required()


@dataclass(frozen=True)
class EvmEip1559Transaction(_Required):
    """EIP-1559 (type 0x02) fee-market transaction."""
    chain_id: Optional[int] = None
    nonce: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None
    max_fee_per_gas: Optional[int] = None
    gas_limit: Optional[int] = None
    to: Optional[str] = None
    value: int = 0
    data: bytes = b""
    access_list: Tuple[AccessListEntry, ...] = ()

    chain: ClassVar[Chain] = Chain.EVM
    REQUIRED: ClassVar[Tuple[str, ...]] = (
        "chain_id",
        "nonce",
        "max_priority_fee_per_gas",
        "max_fee_per_gas",
        "gas_limit",
    )
    VARIANT: ClassVar[str] = "EIP-1559 transaction"

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", _as_bytes(self.data))
        object.__setattr__(self, "access_list", tuple(self.access_list))
        self._check_required()


@dataclass(frozen=True)
class AccountMeta:
    """Account reference inside a Solana instruction."""
    pubkey: str
    is_signer: bool = False
    is_writable: bool = False


@dataclass(frozen=True)
class SolanaInstruction:
    """Single program invocation."""
    program_id: str
    accounts: Tuple[AccountMeta, ...] = ()
    data: bytes = b""

    def __post_init__(self) -> None:
        object.__setattr__(self, "accounts", tuple(self.accounts))
        object.__setattr__(self, "data", bytes(self.data))


@dataclass(frozen=True)
class SolanaTransaction(_Required):
    """Unsigned Solana transaction (legacy message format)."""
    fee_payer: Optional[str] = None
    recent_blockhash: Optional[str] = None
    instructions: Tuple[SolanaInstruction, ...] = ()

    chain: ClassVar[Chain] = Chain.SOLANA
    REQUIRED: ClassVar[Tuple[str, ...]] = ("fee_payer", "recent_blockhash", "instructions")
    VARIANT: ClassVar[str] = "Solana transaction"

    def __post_init__(self) -> None:
        object.__setattr__(self, "instructions", tuple(self.instructions))
        self._check_required()


def system_transfer(from_pubkey: str, to_pubkey: str, lamports: int) -> SolanaInstruction:
    """
    Build a System Program transfer instruction.

    Args:
        from_pubkey: Funding account (signer, writable)
        to_pubkey: Recipient account (writable)
        lamports: Amount in lamports

    Returns:
        SolanaInstruction
    """
    if not 0 <= lamports < 2 ** 64:
        raise ValidationError(f"Lamports out of range: {lamports}")
    data = (2).to_bytes(4, "little") + lamports.to_bytes(8, "little")
    return SolanaInstruction(
        program_id=SYSTEM_PROGRAM_ID,
        accounts=(
            AccountMeta(from_pubkey, is_signer=True, is_writable=True),
            AccountMeta(to_pubkey, is_signer=False, is_writable=True),
        ),
        data=data,
    )


class SigHashType(IntEnum):
    """Signature hash types."""
    ALL = 0x01
    NONE = 0x02
    SINGLE = 0x03
    ANYONECANPAY = 0x80


@dataclass(frozen=True)
class OutPoint:
    """Transaction output reference."""
    txid: HexStr
    vout: int

    @property
    def bytes(self) -> bytes:
        """Get outpoint as bytes (txid + vout)."""
        txid_bytes = bytes.fromhex(self.txid)[::-1]  # Little-endian
        vout_bytes = self.vout.to_bytes(4, "little")
        return txid_bytes + vout_bytes

    def __str__(self) -> str:
        """String representation as txid:vout."""
        return f"{self.txid}:{self.vout}"


@dataclass(frozen=True)
class BitcoinInput:
    """
    Input spending a single-key output.

    ``value`` is the amount of the spent output; BIP-143 commits to it so it
    is required for P2WPKH inputs.
    """
    outpoint: OutPoint
    value: Optional[int] = None
    script_type: str = "p2wpkh"
    sequence: int = 0xFFFFFFFE  # final for RBF, locktime still enforced

    def __post_init__(self) -> None:
        if self.script_type not in ("p2wpkh", "p2pkh"):
            raise ValidationError(f"Unsupported input script type: {self.script_type}")
        if self.script_type == "p2wpkh" and self.value is None:
            raise MissingFieldError("value", "P2WPKH input")


@dataclass(frozen=True)
class BitcoinOutput:
    """Transaction output."""
    value: int
    script_pubkey: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "script_pubkey", _as_bytes(self.script_pubkey))

    @classmethod
    def to_address(
        cls,
        address: str,
        value: int,
        network: Network = Network.MAINNET
    ) -> "BitcoinOutput":
        """
        Build an output paying to an address.

        Args:
            address: P2PKH, P2SH, P2WPKH, P2WSH or P2TR address
            value: Amount in satoshis
            network: Network the address belongs to

        Returns:
            BitcoinOutput
        """
        from ..utils.encoding import decode_address, serialize_script

        address_type, program = decode_address(address, network)
        if address_type == "p2pkh":
            script = serialize_script([0x76, 0xa9, program, 0x88, 0xac])
        elif address_type == "p2sh":
            script = serialize_script([0xa9, program, 0x87])
        elif address_type in ("p2wpkh", "p2wsh"):
            script = serialize_script([0x00, program])
        else:
            script = serialize_script([0x51, program])
        return cls(value=value, script_pubkey=script)


@dataclass(frozen=True)
class BitcoinTransaction(_Required):
    """Unsigned Bitcoin transaction."""
    inputs: Tuple[BitcoinInput, ...] = ()
    outputs: Tuple[BitcoinOutput, ...] = ()
    version: int = 2
    locktime: int = 0

    chain: ClassVar[Chain] = Chain.BITCOIN
    REQUIRED: ClassVar[Tuple[str, ...]] = ("inputs", "outputs")
    VARIANT: ClassVar[str] = "Bitcoin transaction"

    def __post_init__(self) -> None:
        object.__setattr__(self, "inputs", tuple(self.inputs))
        object.__setattr__(self, "outputs", tuple(self.outputs))
        self._check_required()

    @property
    def has_witness(self) -> bool:
        return any(inp.script_type == "p2wpkh" for inp in self.inputs)


UnsignedTransaction = Union[
    EvmLegacyTransaction,
    EvmEip1559Transaction,
    SolanaTransaction,
    BitcoinTransaction,
]


@dataclass(frozen=True)
class SignedTransaction:
    """
    Signed transaction in its final wire format.

    Attributes:
        transaction: The unsigned transaction that was signed
        signatures: Signatures in the order they appear on the wire
        raw: Exact bytes the network expects
        tx_hash: Transaction hash/id as the chain's explorers show it
    """
    transaction: UnsignedTransaction
    signatures: Tuple[Signature, ...]
    raw: bytes
    tx_hash: str = field(default="")

    @property
    def chain(self) -> Chain:
        return self.transaction.chain

    def hex(self, prefix: bool = False) -> str:
        encoded = self.raw.hex()
        return f"0x{encoded}" if prefix else encoded

    def base58(self) -> str:
        from ..utils.encoding import encode_base58
        return encode_base58(self.raw)

    def base64(self) -> str:
        return base64.b64encode(self.raw).decode("ascii")

    def __repr__(self) -> str:
        return f"SignedTransaction({type(self.transaction).__name__}, tx_hash={self.tx_hash})"
