"""Hierarchical deterministic key derivation (BIP-32 and SLIP-0010)."""

import hmac
import hashlib
import logging
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple, Union

from coincurve import PrivateKey as SecpPrivateKey, PublicKey as SecpPublicKey
from nacl.signing import SigningKey

from ..constants import (
    Curve,
    EXTENDED_KEY_VERSIONS,
    HARDENED_OFFSET,
    Network,
    SECP256K1_N,
)
from ..exceptions import InvalidDerivationPathError, KeyDerivationError, ValidationError
from ..utils.encoding import decode_base58_check, encode_base58_check, hash160

__all__ = [
    "PathComponent",
    "DerivationPath",
    "HDNode",
    "Ed25519Node",
    "master_node",
    "wipe",
]

logger = logging.getLogger(__name__)

# SLIP-0010 allows this many re-derivations of an invalid secp256k1 master
# key before giving up; the probability of needing even one is ~2^-127.
MAX_MASTER_RETRIES = 16


def wipe(buffer: Optional[bytearray]) -> None:
    """Overwrite a mutable secret buffer with zeros in place."""
    if buffer is None:
        return
    for i in range(len(buffer)):
        buffer[i] = 0


@dataclass(frozen=True)
class PathComponent:
    """One derivation step."""
    index: int
    hardened: bool = False

    @property
    def value(self) -> int:
        """Index as used on the wire (hardened offset applied)."""
        return self.index + HARDENED_OFFSET if self.hardened else self.index

    def __str__(self) -> str:
        return f"{self.index}'" if self.hardened else str(self.index)


class DerivationPath:
    """
    Parsed derivation path such as ``m/44'/60'/0'/0/0``.

    Hardened steps may be written with ``'``, ``h`` or ``H``.
    """

    def __init__(self, components: Tuple[PathComponent, ...] = ()) -> None:
        for component in components:
            if not 0 <= component.index < HARDENED_OFFSET:
                raise InvalidDerivationPathError(f"Path index out of range: {component.index}")
        self._components = tuple(components)

    @classmethod
    def parse(cls, path: Union[str, "DerivationPath"]) -> "DerivationPath":
        """
        Parse a path string.

        Raises:
            InvalidDerivationPathError: On malformed syntax or out-of-range index
        """
        if isinstance(path, DerivationPath):
            return path
        if not isinstance(path, str):
            raise InvalidDerivationPathError(f"Derivation path must be a string, got {type(path).__name__}")

        parts = path.strip().split("/")
        if parts[0] not in ("m", "M"):
            raise InvalidDerivationPathError(f"Derivation path must start with 'm': {path!r}")

        components = []
        for part in parts[1:]:
            hardened = part[-1:] in ("'", "h", "H")
            digits = part[:-1] if hardened else part
            if not digits.isdigit() or not digits.isascii():
                raise InvalidDerivationPathError(f"Invalid path component {part!r} in {path!r}")
            index = int(digits)
            if index >= HARDENED_OFFSET:
                raise InvalidDerivationPathError(f"Path index out of range: {index}")
            components.append(PathComponent(index, hardened))

        return cls(tuple(components))

    @property
    def components(self) -> Tuple[PathComponent, ...]:
        return self._components

    def child(self, index: int, hardened: bool = False) -> "DerivationPath":
        return DerivationPath(self._components + (PathComponent(index, hardened),))

    def __iter__(self) -> Iterator[PathComponent]:
        return iter(self._components)

    def __len__(self) -> int:
        return len(self._components)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, str):
            other = DerivationPath.parse(other)
        if not isinstance(other, DerivationPath):
            return False
        return self._components == other._components

    def __hash__(self) -> int:
        return hash(self._components)

    def __str__(self) -> str:
        return "/".join(["m"] + [str(c) for c in self._components])

    def __repr__(self) -> str:
        return f"DerivationPath('{self}')"


class HDNode:
    """
    BIP-32 node on secp256k1.

    A node without a private key is public-only (neutered) and can still
    derive non-hardened children.
    """

    def __init__(
        self,
        private_key: Optional[bytes],
        public_key: bytes,
        chain_code: bytes,
        depth: int = 0,
        parent_fingerprint: bytes = b'\x00\x00\x00\x00',
        index: int = 0,
        network: Network = Network.MAINNET
    ):
        self._private_key = bytearray(private_key) if private_key is not None else None
        self.public_key = bytes(public_key)
        self.chain_code = bytes(chain_code)
        self.depth = depth
        self.parent_fingerprint = parent_fingerprint
        self.index = index
        self.network = network

    @classmethod
    def from_seed(cls, seed: bytes, network: Network = Network.MAINNET) -> "HDNode":
        """
        Create master node from seed.

        An out-of-range master key is re-derived from the HMAC output as
        SLIP-0010 prescribes.
        """
        if len(seed) < 16 or len(seed) > 64:
            raise ValidationError("Seed must be between 16 and 64 bytes")

        data = bytes(seed)
        for _ in range(MAX_MASTER_RETRIES):
            h = hmac.new(b"Bitcoin seed", data, hashlib.sha512).digest()
            key_int = int.from_bytes(h[:32], "big")
            if 0 < key_int < SECP256K1_N:
                private_key = h[:32]
                public_key = SecpPrivateKey(private_key).public_key.format(compressed=True)
                return cls(
                    private_key=private_key,
                    public_key=public_key,
                    chain_code=h[32:],
                    network=network
                )
            data = h
        raise KeyDerivationError("Could not derive a valid master key")

    @property
    def private_key(self) -> Optional[bytearray]:
        return self._private_key

    @property
    def is_private(self) -> bool:
        return self._private_key is not None

    @property
    def fingerprint(self) -> bytes:
        return hash160(self.public_key)[:4]

    def derive(self, index: int) -> "HDNode":
        """
        Derive child node.

        When the tweak is out of range or the child key is invalid, the next
        index is used, as BIP-32 prescribes.
        """
        if not 0 <= index <= 0xFFFFFFFF:
            raise InvalidDerivationPathError(f"Child index out of range: {index}")

        while True:
            if index >= HARDENED_OFFSET:
                if self._private_key is None:
                    raise KeyDerivationError("Cannot do hardened derivation without private key")
                data = b'\x00' + bytes(self._private_key) + index.to_bytes(4, 'big')
            else:
                data = self.public_key + index.to_bytes(4, 'big')

            h = hmac.new(self.chain_code, data, hashlib.sha512).digest()
            tweak, child_chain_code = h[:32], h[32:]
            tweak_int = int.from_bytes(tweak, 'big')

            child = self._child(tweak, tweak_int, child_chain_code, index)
            if child is not None:
                return child

            logger.debug("Invalid child at index %d, skipping to next index", index)
            index += 1
            if index > 0xFFFFFFFF or index == HARDENED_OFFSET:
                raise KeyDerivationError("No valid child key in index range")

    def _child(
        self,
        tweak: bytes,
        tweak_int: int,
        chain_code: bytes,
        index: int
    ) -> Optional["HDNode"]:
        if tweak_int >= SECP256K1_N:
            return None

        if self._private_key is not None:
            parent_key_int = int.from_bytes(self._private_key, 'big')
            child_private_int = (parent_key_int + tweak_int) % SECP256K1_N
            if child_private_int == 0:
                return None
            child_private_key = child_private_int.to_bytes(32, 'big')
            child_public_key = SecpPrivateKey(child_private_key).public_key.format(compressed=True)
        else:
            child_private_key = None
            try:
                child_public_key = SecpPublicKey(self.public_key).add(tweak).format(compressed=True)
            except ValueError:
                # tweak * G + K_par is the point at infinity
                return None

        return HDNode(
            private_key=child_private_key,
            public_key=child_public_key,
            chain_code=chain_code,
            depth=self.depth + 1,
            parent_fingerprint=self.fingerprint,
            index=index,
            network=self.network
        )

    def derive_path(self, path: Union[str, DerivationPath]) -> "HDNode":
        """
        Derive along a path like ``m/44'/0'/0'/0/0``.

        Intermediate nodes are wiped as soon as their child exists.
        """
        node = self
        for component in DerivationPath.parse(path):
            child = node.derive(component.value)
            if node is not self:
                node.wipe()
            node = child
        return node

    def neuter(self) -> "HDNode":
        """Return the public-only counterpart of this node."""
        return HDNode(
            private_key=None,
            public_key=self.public_key,
            chain_code=self.chain_code,
            depth=self.depth,
            parent_fingerprint=self.parent_fingerprint,
            index=self.index,
            network=self.network
        )

    def extended_private_key(self) -> str:
        """Serialize as xprv/tprv."""
        if self._private_key is None:
            raise KeyDerivationError("This is a public-only node")
        version = EXTENDED_KEY_VERSIONS[self.network][0]
        return self._serialize(version, b'\x00' + bytes(self._private_key))

    def extended_public_key(self) -> str:
        """Serialize as xpub/tpub."""
        version = EXTENDED_KEY_VERSIONS[self.network][1]
        return self._serialize(version, self.public_key)

    def _serialize(self, version: bytes, key_data: bytes) -> str:
        payload = (
            version
            + bytes([self.depth])
            + self.parent_fingerprint
            + self.index.to_bytes(4, 'big')
            + self.chain_code
            + key_data
        )
        return encode_base58_check(payload)

    @classmethod
    def from_extended_key(cls, extended_key: str) -> "HDNode":
        """
        Parse an xprv/xpub/tprv/tpub string.

        Raises:
            ValidationError: If the encoding is invalid
        """
        payload = decode_base58_check(extended_key)
        if len(payload) != 78:
            raise ValidationError(f"Extended key must be 78 bytes, got {len(payload)}")

        version = payload[:4]
        network = None
        is_private = False
        for candidate, (private_version, public_version) in EXTENDED_KEY_VERSIONS.items():
            if version == private_version:
                network, is_private = candidate, True
            elif version == public_version:
                network = candidate
        if network is None:
            raise ValidationError(f"Unknown extended key version: {version.hex()}")

        key_data = payload[45:]
        if is_private:
            if key_data[0] != 0:
                raise ValidationError("Invalid extended private key padding")
            private_key = key_data[1:]
            key_int = int.from_bytes(private_key, 'big')
            if not 0 < key_int < SECP256K1_N:
                raise ValidationError("Extended private key out of range")
            public_key = SecpPrivateKey(private_key).public_key.format(compressed=True)
        else:
            private_key = None
            try:
                public_key = SecpPublicKey(key_data).format(compressed=True)
            except ValueError as e:
                raise ValidationError("Invalid extended public key point") from e

        return cls(
            private_key=private_key,
            public_key=public_key,
            chain_code=payload[13:45],
            depth=payload[4],
            parent_fingerprint=payload[5:9],
            index=int.from_bytes(payload[9:13], 'big'),
            network=network
        )

    def wipe(self) -> None:
        """Zero the private key buffer held by this node."""
        wipe(self._private_key)

    def __repr__(self) -> str:
        kind = "private" if self.is_private else "public"
        return f"HDNode(depth={self.depth}, index={self.index}, {kind})"


class Ed25519Node:
    """
    SLIP-0010 node on ed25519.

    Only hardened derivation exists on this curve.
    """

    def __init__(
        self,
        private_key: bytes,
        chain_code: bytes,
        depth: int = 0,
        index: int = 0
    ) -> None:
        self._private_key = bytearray(private_key)
        self.chain_code = bytes(chain_code)
        self.depth = depth
        self.index = index

    @classmethod
    def from_seed(cls, seed: bytes) -> "Ed25519Node":
        """Create master node from seed."""
        if len(seed) < 16 or len(seed) > 64:
            raise ValidationError("Seed must be between 16 and 64 bytes")
        h = hmac.new(b"ed25519 seed", bytes(seed), hashlib.sha512).digest()
        return cls(private_key=h[:32], chain_code=h[32:])

    @property
    def private_key(self) -> bytearray:
        return self._private_key

    @property
    def public_key(self) -> bytes:
        return SigningKey(bytes(self._private_key)).verify_key.encode()

    def derive(self, index: int) -> "Ed25519Node":
        if index < HARDENED_OFFSET:
            raise InvalidDerivationPathError(
                f"ed25519 supports hardened derivation only, got index {index}"
            )
        data = b'\x00' + bytes(self._private_key) + index.to_bytes(4, 'big')
        h = hmac.new(self.chain_code, data, hashlib.sha512).digest()
        return Ed25519Node(private_key=h[:32], chain_code=h[32:], depth=self.depth + 1, index=index)

    def derive_path(self, path: Union[str, DerivationPath]) -> "Ed25519Node":
        parsed = DerivationPath.parse(path)
        for component in parsed:
            if not component.hardened:
                raise InvalidDerivationPathError(
                    f"ed25519 path {parsed} has non-hardened component {component}"
                )

        node = self
        for component in parsed:
            child = node.derive(component.value)
            if node is not self:
                node.wipe()
            node = child
        return node

    def wipe(self) -> None:
        wipe(self._private_key)

    def __repr__(self) -> str:
        return f"Ed25519Node(depth={self.depth}, index={self.index})"


def master_node(
    seed: bytes,
    curve: Curve,
    network: Network = Network.MAINNET
) -> Union[HDNode, Ed25519Node]:
    """Create the master node for a curve."""
    if curve == Curve.SECP256K1:
        return HDNode.from_seed(seed, network)
    if curve == Curve.ED25519:
        return Ed25519Node.from_seed(seed)
    raise KeyDerivationError(f"Unsupported curve: {curve}")
