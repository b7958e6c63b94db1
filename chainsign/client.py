"""Main chainsign engine."""

import logging
from typing import Dict, Mapping, Optional, Union

from .adapters import ChainAdapter, get_adapter
from .constants import Chain, ChainConfig, DEFAULT_CHAIN_CONFIGS, get_chain_config
from .crypto.bip39 import Mnemonic
from .crypto.keys import KeyManager, KeyPair
from .crypto.message import recover_message_signer, sign_message, verify_message
from .crypto.hd import DerivationPath
from .exceptions import ChainMismatchError
from .types.message import SignableMessage, SignedMessage
from .types.transaction import SignedTransaction, UnsignedTransaction

__all__ = ["SigningEngine"]

logger = logging.getLogger(__name__)


class SigningEngine:
    """
    Entry point tying key derivation, chain adapters and message signing
    together.

    One engine serves every supported chain; which adapter handles a
    request follows from the chain tag of the transaction or key pair::

        engine = SigningEngine()
        with engine.derive(phrase, Chain.EVM) as key_pair:
            signed = engine.sign_transaction(tx, key_pair)
    """

    def __init__(self, configs: Optional[Mapping[Chain, ChainConfig]] = None) -> None:
        """
        Initialize the engine.

        Args:
            configs: Per-chain overrides of :data:`DEFAULT_CHAIN_CONFIGS`

        Raises:
            ChainMismatchError: If a config is registered under another chain
        """
        self._configs: Dict[Chain, ChainConfig] = dict(DEFAULT_CHAIN_CONFIGS)
        for chain, config in (configs or {}).items():
            chain = get_chain_config(chain).chain
            if config.chain != chain:
                raise ChainMismatchError(chain, config.chain)
            self._configs[chain] = config

        self.keys = KeyManager(self._configs)
        self._adapters: Dict[Chain, ChainAdapter] = {}

        logger.info(f"Initialized SigningEngine for {', '.join(c.value for c in self._configs)}")

    def config(self, chain: Union[Chain, str]) -> ChainConfig:
        return get_chain_config(chain, self._configs)

    def adapter(self, chain: Union[Chain, str]) -> ChainAdapter:
        """Get the (cached) adapter for a chain."""
        config = self.config(chain)
        if config.chain not in self._adapters:
            self._adapters[config.chain] = get_adapter(config.chain, config)
        return self._adapters[config.chain]

    @staticmethod
    def generate_mnemonic(word_count: int = 12, language: str = "english") -> Mnemonic:
        return Mnemonic.generate(word_count, language)

    def derive(
        self,
        secret: Union[str, bytes, Mnemonic],
        chain: Union[Chain, str],
        path: Optional[Union[str, DerivationPath]] = None,
        passphrase: str = "",
        index: int = 0
    ) -> KeyPair:
        """
        Derive a key pair from a mnemonic or a raw seed.

        Args:
            secret: Mnemonic phrase, Mnemonic, or seed bytes
            chain: Target chain
            path: Derivation path (default: the chain's template at ``index``)
            passphrase: BIP-39 passphrase, ignored for seed bytes
            index: Address index for the default path

        Returns:
            KeyPair tagged with ``chain``
        """
        if isinstance(secret, (bytes, bytearray)):
            if path is None:
                path = self.config(chain).default_path(index)
            return self.keys.derive(bytes(secret), path, chain)
        return self.keys.derive_from_mnemonic(secret, chain, path, passphrase, index)

    def address(self, key_pair: KeyPair) -> str:
        return self.adapter(key_pair.chain).address_of(key_pair)

    def sign_transaction(self, tx: UnsignedTransaction, key_pair: KeyPair) -> SignedTransaction:
        """
        Sign a transaction with the adapter of the transaction's chain.

        Raises:
            ChainMismatchError: If ``key_pair`` is tagged for another chain
        """
        return self.adapter(tx.chain).sign_transaction(tx, key_pair)

    def verify_transaction(self, signed: SignedTransaction, public_key: bytes) -> bool:
        return self.adapter(signed.chain).verify_transaction(signed, public_key)

    def sign_message(
        self,
        message: Union[SignableMessage, str, bytes],
        key_pair: KeyPair
    ) -> SignedMessage:
        return sign_message(message, key_pair, self.config(key_pair.chain))

    def verify_message(self, signed: SignedMessage, public_key: bytes) -> bool:
        return verify_message(signed, public_key)

    def recover_message_signer(
        self,
        message: Union[SignableMessage, str, bytes],
        encoded: bytes,
        chain: Union[Chain, str]
    ) -> str:
        return recover_message_signer(message, encoded, chain, self.config(chain))

    def __repr__(self) -> str:
        return f"SigningEngine(chains={[c.value for c in self._configs]})"
