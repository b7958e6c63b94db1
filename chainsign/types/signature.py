"""Signature value type."""

from dataclasses import dataclass

from ..constants import Chain, SignatureScheme

__all__ = ["Signature"]


@dataclass(frozen=True)
class Signature:
    """
    Chain-tagged signature paired with the digest it covers.

    ``value`` is ``r || s || recovery_id`` (65 bytes) for ECDSA over
    secp256k1 and the raw 64-byte signature for ed25519.
    """
    chain: Chain
    scheme: SignatureScheme
    value: bytes
    digest: bytes

    @property
    def is_recoverable(self) -> bool:
        """True when the public key can be recovered from this signature."""
        return self.scheme == SignatureScheme.ECDSA_SECP256K1

    @property
    def r(self) -> int:
        self._require_ecdsa("r")
        return int.from_bytes(self.value[:32], "big")

    @property
    def s(self) -> int:
        self._require_ecdsa("s")
        return int.from_bytes(self.value[32:64], "big")

    @property
    def recovery_id(self) -> int:
        self._require_ecdsa("recovery_id")
        return self.value[64]

    def compact(self) -> bytes:
        """64-byte ``r || s`` for ECDSA, the full signature for ed25519."""
        return self.value[:64]

    def to_rsv(self, v_offset: int = 27) -> bytes:
        """
        Serialize as ``r || s || v`` with ``v = recovery_id + v_offset``.

        This is the 65-byte form wallets return for EIP-191 and EIP-712
        signatures.
        """
        return self.compact() + bytes([self.recovery_id + v_offset])

    def hex(self) -> str:
        return self.value.hex()

    def _require_ecdsa(self, name: str) -> None:
        if not self.is_recoverable:
            raise AttributeError(f"{self.scheme.value} signatures have no '{name}' component")

    def __repr__(self) -> str:
        return (
            f"Signature(chain={self.chain.value}, scheme={self.scheme.value}, "
            f"value={self.value.hex()[:16]}...)"
        )
