"""Base chain adapter interface."""

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Optional, Sequence
import logging

from ..constants import Chain, ChainConfig, get_chain_config
from ..crypto.keys import KeyPair
from ..crypto.signature import sign, verify
from ..exceptions import ChainMismatchError, SigningError
from ..types.signature import Signature
from ..types.transaction import SignedTransaction, UnsignedTransaction

__all__ = ["ChainAdapter"]

logger = logging.getLogger(__name__)


class ChainAdapter(ABC):
    """
    Abstract base for per-chain encoding, hashing and assembly.

    Subclasses implement the four chain-specific steps; signing and
    verification are shared templates built on top of them::

        encode(tx) -> hash(encoded) -> sign(digest, key_pair) -> assemble_signed(...)

    Adapters hold no mutable state and can be shared between threads.
    """

    chain: ClassVar[Chain]

    def __init__(self, config: Optional[ChainConfig] = None) -> None:
        """
        Initialize adapter with a chain configuration.

        Args:
            config: Chain configuration (default: the chain's built-in config)

        Raises:
            ChainMismatchError: If the config belongs to another chain
        """
        self.config = config or get_chain_config(self.chain)
        if self.config.chain != self.chain:
            raise ChainMismatchError(self.chain, self.config.chain)
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @abstractmethod
    def derive_address(self, public_key: bytes) -> str:
        """
        Derive the chain's address for a public key.

        Args:
            public_key: 33-byte compressed secp256k1 or 32-byte ed25519 key

        Returns:
            Address string in the chain's native format
        """
        raise NotImplementedError

    @abstractmethod
    def encode(self, tx: UnsignedTransaction) -> bytes:
        """
        Canonical byte encoding of an unsigned transaction.

        Raises:
            ChainMismatchError: If ``tx`` belongs to another chain
            EncodingOverflowError: If a field does not fit its wire width
        """
        raise NotImplementedError

    @abstractmethod
    def hash(self, encoded: bytes) -> bytes:
        """Turn encoded bytes into the digest handed to the signer."""
        raise NotImplementedError

    @abstractmethod
    def assemble_signed(
        self,
        tx: UnsignedTransaction,
        signatures: Sequence[Signature],
        public_keys: Sequence[bytes]
    ) -> SignedTransaction:
        """
        Attach signatures and produce the final wire payload.

        Args:
            tx: Unsigned transaction
            signatures: Signatures, one per signing key
            public_keys: Public keys matching ``signatures``

        Returns:
            SignedTransaction
        """
        raise NotImplementedError

    def check_chain(self, *tagged: Any) -> None:
        """
        Reject entities tagged for another chain.

        Every argument must expose a ``chain`` attribute.

        Raises:
            ChainMismatchError: On the first foreign entity
        """
        for item in tagged:
            if item.chain != self.chain:
                raise ChainMismatchError(self.chain, item.chain)

    def address_of(self, key_pair: KeyPair) -> str:
        """Address of a key pair tagged for this chain."""
        self.check_chain(key_pair)
        return self.derive_address(key_pair.public_key)

    def sign_transaction(self, tx: UnsignedTransaction, key_pair: KeyPair) -> SignedTransaction:
        """
        Sign a transaction with a single key.

        Raises:
            ChainMismatchError: Before any cryptographic work, if ``tx`` or
                ``key_pair`` is tagged for another chain
            MissingFieldError: If the transaction lacks a required field
            EncodingOverflowError: If a field overflows its encoding
        """
        return self.sign_with(tx, [key_pair])

    def sign_with(self, tx: UnsignedTransaction, key_pairs: Sequence[KeyPair]) -> SignedTransaction:
        """Sign with one or more keys over the same digest."""
        if not key_pairs:
            raise SigningError("At least one key pair is required")
        self.check_chain(tx, *key_pairs)

        encoded = self.encode(tx)
        digest = self.hash(encoded)
        signatures = [sign(digest, key_pair) for key_pair in key_pairs]
        signed = self.assemble_signed(tx, signatures, [kp.public_key for kp in key_pairs])

        self._logger.debug(f"Signed {type(tx).__name__}, tx_hash={signed.tx_hash}")
        return signed

    def verify_transaction(self, signed: SignedTransaction, public_key: bytes) -> bool:
        """
        Check that ``public_key`` signed ``signed``.

        Returns:
            True if one of the signatures is valid for the key, False otherwise
        """
        self.check_chain(signed, *signed.signatures)
        digest = self.hash(self.encode(signed.transaction))
        return any(verify(digest, signature, public_key) for signature in signed.signatures)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(chain={self.chain.value})"
