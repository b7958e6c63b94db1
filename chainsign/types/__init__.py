"""Type definitions for chainsign."""

# Common types
from ..types.common import (
    HexStr,
    Address,
    PublicKeyBytes,
)

from ..types.signature import Signature

# Transaction types
from ..types.transaction import (
    AccessListEntry,
    EvmLegacyTransaction,
    EvmEip1559Transaction,
    AccountMeta,
    SolanaInstruction,
    SolanaTransaction,
    SigHashType,
    OutPoint,
    BitcoinInput,
    BitcoinOutput,
    BitcoinTransaction,
    UnsignedTransaction,
    SignedTransaction,
    system_transfer,
    SYSTEM_PROGRAM_ID,
)

# Message types
from ..types.message import (
    RawMessage,
    TypedDataMessage,
    SignableMessage,
    SignedMessage,
)

__all__ = [
    # Common
    "HexStr",
    "Address",
    "PublicKeyBytes",
    "Signature",

    # Transaction
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

    # Message
    "RawMessage",
    "TypedDataMessage",
    "SignableMessage",
    "SignedMessage",
]
