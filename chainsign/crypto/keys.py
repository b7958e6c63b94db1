"""Key pairs and the key manager."""

import hmac
import logging
import secrets
from typing import Mapping, Optional, Union

from coincurve import PrivateKey as SecpPrivateKey
from nacl.signing import SigningKey

from ..constants import (
    Chain,
    ChainConfig,
    Curve,
    Network,
    WIF_PREFIXES,
    get_chain_config,
)
from ..exceptions import (
    ChainMismatchError,
    KeyDerivationError,
    SigningError,
    ValidationError,
)
from ..types.common import PublicKeyBytes
from ..utils.encoding import (
    decode_base58,
    decode_base58_check,
    encode_base58,
    encode_base58_check,
)
from ..utils.validation import validate_private_key
from .bip39 import Mnemonic
from .hd import DerivationPath, HDNode, master_node, wipe

__all__ = ["KeyPair", "KeyManager", "public_key_from_private"]

logger = logging.getLogger(__name__)


def public_key_from_private(private_key: Union[bytes, bytearray], curve: Curve) -> PublicKeyBytes:
    """Compute the public key for a private key on the given curve."""
    if curve == Curve.SECP256K1:
        return PublicKeyBytes(SecpPrivateKey(bytes(private_key)).public_key.format(compressed=True))
    if curve == Curve.ED25519:
        return PublicKeyBytes(SigningKey(bytes(private_key)).verify_key.encode())
    raise KeyDerivationError(f"Unsupported curve: {curve}")


class KeyPair:
    """
    Chain-tagged key pair.

    The private key lives in a ``bytearray`` owned by this object. Use the
    key pair as a context manager, or call :meth:`wipe`, to zero it as soon
    as signing is done::

        with manager.derive(seed, "m/44'/60'/0'/0/0", Chain.EVM) as key_pair:
            signed = adapter.sign_transaction(tx, key_pair)
    """

    __slots__ = ("_private_key", "public_key", "chain", "curve", "path", "_wiped")

    def __init__(
        self,
        private_key: Union[bytes, bytearray],
        public_key: bytes,
        chain: Chain,
        curve: Curve,
        path: Optional[DerivationPath] = None
    ) -> None:
        self._private_key = bytearray(private_key)
        self.public_key = PublicKeyBytes(bytes(public_key))
        self.chain = chain
        self.curve = curve
        self.path = path
        self._wiped = False

    @property
    def private_key(self) -> bytearray:
        """
        Raw private key buffer.

        Raises:
            SigningError: If the key has already been wiped
        """
        if self._wiped:
            raise SigningError("Key material has been wiped")
        return self._private_key

    @property
    def is_wiped(self) -> bool:
        return self._wiped

    def ensure_chain(self, chain: Chain) -> None:
        """Raise ChainMismatchError unless this key pair is tagged for ``chain``."""
        if self.chain != chain:
            raise ChainMismatchError(chain, self.chain)

    def wipe(self) -> None:
        """Zero the private key in place."""
        wipe(self._private_key)
        self._wiped = True

    def __enter__(self) -> "KeyPair":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.wipe()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, KeyPair):
            return False
        return (
            self.chain == other.chain
            and self.public_key == other.public_key
            and hmac.compare_digest(bytes(self._private_key), bytes(other._private_key))
        )

    def __hash__(self) -> int:
        return hash((self.chain, self.public_key))

    def __repr__(self) -> str:
        # Never show private material
        path = f", path={self.path}" if self.path is not None else ""
        return f"KeyPair(chain={self.chain.value}, public_key={self.public_key.hex()}{path})"


class KeyManager:
    """
    Derives and imports chain-tagged key pairs.

    Which curve a chain uses comes from its :class:`ChainConfig`, so the
    derivation code never branches on the chain itself.
    """

    def __init__(self, configs: Optional[Mapping[Chain, ChainConfig]] = None) -> None:
        self._configs = dict(configs or {})
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def config(self, chain: Union[Chain, str]) -> ChainConfig:
        return get_chain_config(chain, self._configs)

    def derive(
        self,
        seed: bytes,
        path: Union[str, DerivationPath],
        chain: Union[Chain, str]
    ) -> KeyPair:
        """
        Derive a key pair at ``path``.

        Args:
            seed: 16 to 64 byte seed
            path: Derivation path string or DerivationPath
            chain: Target chain; decides the curve

        Returns:
            KeyPair tagged with the chain

        Raises:
            InvalidDerivationPathError: If the path is malformed, or has a
                non-hardened step on ed25519
            KeyDerivationError: If no valid key can be derived
        """
        config = self.config(chain)
        parsed = DerivationPath.parse(path)

        master = node = master_node(seed, config.curve, config.network)
        try:
            node = master.derive_path(parsed)
            key_pair = KeyPair(node.private_key, node.public_key, config.chain, config.curve, parsed)
        finally:
            master.wipe()
            node.wipe()

        self._logger.debug(f"Derived {config.chain.value} key at {parsed}")
        return key_pair

    def derive_from_mnemonic(
        self,
        mnemonic: Union[str, Mnemonic],
        chain: Union[Chain, str],
        path: Optional[Union[str, DerivationPath]] = None,
        passphrase: str = "",
        index: int = 0
    ) -> KeyPair:
        """
        Validate a mnemonic and derive a key pair.

        ``path`` defaults to the chain's configured template at ``index``.

        Raises:
            InvalidMnemonicError: If the phrase fails validation
        """
        if not isinstance(mnemonic, Mnemonic):
            mnemonic = Mnemonic.from_phrase(mnemonic)
        config = self.config(chain)
        if path is None:
            path = config.default_path(index)

        seed = bytearray(mnemonic.to_seed(passphrase))
        try:
            return self.derive(bytes(seed), path, config.chain)
        finally:
            wipe(seed)

    def derive_public_key(
        self,
        extended_public_key: str,
        path: Union[str, DerivationPath],
        chain: Union[Chain, str]
    ) -> PublicKeyBytes:
        """
        Derive a child public key from an xpub without any private key.

        Only non-hardened steps are possible.

        Raises:
            KeyDerivationError: On a hardened step or a non-secp256k1 chain
        """
        config = self.config(chain)
        if config.curve != Curve.SECP256K1:
            raise KeyDerivationError(f"Public derivation is not defined for {config.curve.value}")
        node = HDNode.from_extended_key(extended_public_key).neuter()
        return PublicKeyBytes(node.derive_path(path).public_key)

    def from_private_key(
        self,
        private_key: Union[str, bytes, bytearray],
        chain: Union[Chain, str]
    ) -> KeyPair:
        """
        Import a raw private key.

        secp256k1 keys must lie in ``[1, n-1]``. Solana also accepts the
        64-byte ``seed || public_key`` secret key form, whose public half
        must match.

        Raises:
            ValidationError: If the key is not valid for the chain's curve
        """
        config = self.config(chain)

        if config.curve == Curve.ED25519 and not isinstance(private_key, str) and len(private_key) == 64:
            return self._from_ed25519_keypair_bytes(bytes(private_key), config)

        key = validate_private_key(private_key, config.curve)
        return KeyPair(key, public_key_from_private(key, config.curve), config.chain, config.curve)

    def generate(self, chain: Union[Chain, str]) -> KeyPair:
        """Create a key pair from fresh randomness."""
        config = self.config(chain)
        while True:
            candidate = secrets.token_bytes(32)
            try:
                return self.from_private_key(candidate, config.chain)
            except ValidationError:
                # Out of curve range, try again
                continue

    def from_wif(self, wif: str) -> KeyPair:
        """
        Import a Bitcoin key in Wallet Import Format.

        Raises:
            ValidationError: If WIF is invalid or uncompressed
        """
        try:
            data = decode_base58_check(wif)
        except ValidationError as e:
            raise ValidationError("Invalid WIF encoding") from e

        if len(data) != 34 or data[33] != 0x01:
            raise ValidationError("Only compressed WIF keys are supported")
        if data[0:1] not in WIF_PREFIXES.values():
            raise ValidationError(f"Unknown WIF version: {data[0]:#x}")

        return self.from_private_key(data[1:33], Chain.BITCOIN)

    @staticmethod
    def to_wif(key_pair: KeyPair, network: Network = Network.MAINNET) -> str:
        """Export a Bitcoin key pair as compressed WIF."""
        key_pair.ensure_chain(Chain.BITCOIN)
        return encode_base58_check(WIF_PREFIXES[network] + bytes(key_pair.private_key) + b"\x01")

    def from_solana_secret(self, secret: str) -> KeyPair:
        """Import a base58 64-byte Solana secret key."""
        raw = decode_base58(secret)
        if len(raw) != 64:
            raise ValidationError(f"Solana secret key must be 64 bytes, got {len(raw)}")
        return self._from_ed25519_keypair_bytes(raw, self.config(Chain.SOLANA))

    @staticmethod
    def to_solana_secret(key_pair: KeyPair) -> str:
        """Export a Solana key pair as base58 ``seed || public_key``."""
        key_pair.ensure_chain(Chain.SOLANA)
        return encode_base58(bytes(key_pair.private_key) + key_pair.public_key)

    @staticmethod
    def to_hex(key_pair: KeyPair, prefix: bool = True) -> str:
        encoded = bytes(key_pair.private_key).hex()
        return f"0x{encoded}" if prefix else encoded

    def _from_ed25519_keypair_bytes(self, raw: bytes, config: ChainConfig) -> KeyPair:
        seed, public_key = raw[:32], raw[32:]
        if public_key_from_private(seed, Curve.ED25519) != public_key:
            raise ValidationError("Secret key halves do not match")
        return KeyPair(seed, public_key, config.chain, config.curve)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(overrides={[c.value for c in self._configs]})"
