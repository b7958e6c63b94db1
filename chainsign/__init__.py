"""
chainsign

Cross-chain key derivation and transaction/message signing for EVM chains,
Solana and Bitcoin behind one adapter-based API.
"""

from .client import SigningEngine
from .constants import (
    Chain,
    ChainConfig,
    Curve,
    DEFAULT_CHAIN_CONFIGS,
    Network,
    SignatureScheme,
)
from .exceptions import (
    ChainSignError,
    ValidationError,
    InvalidMnemonicError,
    InvalidDerivationPathError,
    KeyDerivationError,
    UnsupportedChainError,
    ChainMismatchError,
    MissingFieldError,
    UnsupportedFieldError,
    EncodingOverflowError,
    SigningError,
    VerificationError,
    NotRecoverableError,
    SerializationError,
)
from .adapters import ChainAdapter, EvmAdapter, SolanaAdapter, BitcoinAdapter, get_adapter
from .crypto import DerivationPath, KeyManager, KeyPair, Mnemonic
from .types import (
    AccessListEntry,
    AccountMeta,
    BitcoinInput,
    BitcoinOutput,
    BitcoinTransaction,
    EvmEip1559Transaction,
    EvmLegacyTransaction,
    OutPoint,
    RawMessage,
    Signature,
    SignedMessage,
    SignedTransaction,
    SolanaInstruction,
    SolanaTransaction,
    TypedDataMessage,
    system_transfer,
)

__version__ = "0.1.0"

__all__ = [
    # Engine
    "SigningEngine",

    # Configuration
    "Chain",
    "ChainConfig",
    "Curve",
    "DEFAULT_CHAIN_CONFIGS",
    "Network",
    "SignatureScheme",

    # Exceptions
    "ChainSignError",
    "ValidationError",
    "InvalidMnemonicError",
    "InvalidDerivationPathError",
    "KeyDerivationError",
    "UnsupportedChainError",
    "ChainMismatchError",
    "MissingFieldError",
    "UnsupportedFieldError",
    "EncodingOverflowError",
    "SigningError",
    "VerificationError",
    "NotRecoverableError",
    "SerializationError",

    # Adapters
    "ChainAdapter",
    "EvmAdapter",
    "SolanaAdapter",
    "BitcoinAdapter",
    "get_adapter",

    # Keys
    "DerivationPath",
    "KeyManager",
    "KeyPair",
    "Mnemonic",

    # Types
    "AccessListEntry",
    "AccountMeta",
    "BitcoinInput",
    "BitcoinOutput",
    "BitcoinTransaction",
    "EvmEip1559Transaction",
    "EvmLegacyTransaction",
    "OutPoint",
    "RawMessage",
    "Signature",
    "SignedMessage",
    "SignedTransaction",
    "SolanaInstruction",
    "SolanaTransaction",
    "TypedDataMessage",
    "system_transfer",
]
