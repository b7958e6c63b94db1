"""Chain identifiers, curve parameters and per-chain configuration."""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

__all__ = [
    "Chain",
    "Curve",
    "Network",
    "SignatureScheme",
    "ChainConfig",
    "DEFAULT_CHAIN_CONFIGS",
    "get_chain_config",
    "SECP256K1_N",
    "SECP256K1_P",
    "HARDENED_OFFSET",
    "BIP39_WORD_COUNTS",
    "ADDRESS_PREFIXES",
    "WIF_PREFIXES",
    "BECH32_HRP",
    "EXTENDED_KEY_VERSIONS",
    "EVM_MESSAGE_PREFIX",
    "BITCOIN_MESSAGE_MAGIC",
    "SOLANA_OFFCHAIN_DOMAIN",
    "MAX_SATOSHIS",
]


class Chain(str, Enum):
    """Supported chain families."""
    EVM = "evm"
    SOLANA = "solana"
    BITCOIN = "bitcoin"


class Curve(str, Enum):
    """Elliptic curves used for key derivation and signing."""
    SECP256K1 = "secp256k1"
    ED25519 = "ed25519"


class SignatureScheme(str, Enum):
    """Signature algorithms produced by the engine."""
    ECDSA_SECP256K1 = "ecdsa-secp256k1"
    ED25519 = "ed25519"


class Network(str, Enum):
    """Bitcoin network selector."""
    MAINNET = "mainnet"
    TESTNET = "testnet"


# secp256k1 group order and field prime
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
SECP256K1_P = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEFFFFFC2F

HARDENED_OFFSET = 0x80000000

# word count -> entropy bits
BIP39_WORD_COUNTS = {12: 128, 15: 160, 18: 192, 21: 224, 24: 256}

ADDRESS_PREFIXES = {
    "p2pkh": {
        Network.MAINNET: b"\x00",
        Network.TESTNET: b"\x6f",
    },
    "p2sh": {
        Network.MAINNET: b"\x05",
        Network.TESTNET: b"\xc4",
    },
}

WIF_PREFIXES = {
    Network.MAINNET: b"\x80",
    Network.TESTNET: b"\xef",
}

BECH32_HRP = {
    Network.MAINNET: "bc",
    Network.TESTNET: "tb",
}

# BIP-32 serialization versions: (private, public)
EXTENDED_KEY_VERSIONS = {
    Network.MAINNET: (bytes.fromhex("0488ade4"), bytes.fromhex("0488b21e")),
    Network.TESTNET: (bytes.fromhex("04358394"), bytes.fromhex("043587cf")),
}

EVM_MESSAGE_PREFIX = b"\x19Ethereum Signed Message:\n"
BITCOIN_MESSAGE_MAGIC = b"\x18Bitcoin Signed Message:\n"
SOLANA_OFFCHAIN_DOMAIN = b"\xffsolana offchain"

MAX_SATOSHIS = 21_000_000 * 100_000_000


@dataclass(frozen=True)
class ChainConfig:
    """
    Per-chain conventions.

    Derivation path prefixes, address formats and defaults are data here so
    that adapters and the key manager never branch on them in code.

    Attributes:
        chain: Chain family this config belongs to
        curve: Curve used for keys on this chain
        path_template: Default derivation path, ``{index}`` is the address index
        network: Bitcoin network (ignored by other chains)
        address_type: Bitcoin address type, ``p2wpkh`` or ``p2pkh``
        chain_id: Default EVM chain id used by convenience builders
    """
    chain: Chain
    curve: Curve
    path_template: str
    network: Network = Network.MAINNET
    address_type: Optional[str] = None
    chain_id: Optional[int] = None

    @property
    def scheme(self) -> SignatureScheme:
        """Signature scheme implied by the curve."""
        if self.curve == Curve.ED25519:
            return SignatureScheme.ED25519
        return SignatureScheme.ECDSA_SECP256K1

    def default_path(self, index: int = 0) -> str:
        """Render the default derivation path for an address index."""
        return self.path_template.format(index=index)

    def with_overrides(self, **changes) -> "ChainConfig":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)


DEFAULT_CHAIN_CONFIGS = {
    Chain.EVM: ChainConfig(
        chain=Chain.EVM,
        curve=Curve.SECP256K1,
        path_template="m/44'/60'/0'/0/{index}",
        chain_id=1,
    ),
    Chain.SOLANA: ChainConfig(
        chain=Chain.SOLANA,
        curve=Curve.ED25519,
        path_template="m/44'/501'/{index}'/0'",
    ),
    Chain.BITCOIN: ChainConfig(
        chain=Chain.BITCOIN,
        curve=Curve.SECP256K1,
        path_template="m/84'/0'/0'/0/{index}",
        network=Network.MAINNET,
        address_type="p2wpkh",
    ),
}


def get_chain_config(chain, configs=None) -> ChainConfig:
    """
    Look up the configuration for a chain.

    Args:
        chain: Chain enum member or its string value
        configs: Optional mapping overriding the defaults

    Returns:
        ChainConfig for the chain

    Raises:
        UnsupportedChainError: If the chain is unknown
    """
    from .exceptions import UnsupportedChainError

    try:
        chain = Chain(chain)
    except ValueError as e:
        raise UnsupportedChainError(f"Unsupported chain: {chain!r}") from e

    if configs and chain in configs:
        return configs[chain]
    return DEFAULT_CHAIN_CONFIGS[chain]
