"""Off-chain message model."""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Union

from ..exceptions import MissingFieldError
from ..types.signature import Signature

__all__ = [
    "RawMessage",
    "TypedDataMessage",
    "SignableMessage",
    "SignedMessage",
]


@dataclass(frozen=True)
class RawMessage:
    """
    Arbitrary bytes signed under the chain's message prefix.

    Attributes:
        data: Message bytes; ``str`` input is UTF-8 encoded
        offchain: Solana only. When False the bare bytes are signed, as
            wallet ``signMessage`` implementations do, instead of the
            off-chain message envelope. Ignored on other chains.
    """
    data: bytes
    offchain: bool = True

    def __post_init__(self) -> None:
        if isinstance(self.data, str):
            object.__setattr__(self, "data", self.data.encode("utf-8"))
        else:
            object.__setattr__(self, "data", bytes(self.data))


@dataclass(frozen=True)
class TypedDataMessage:
    """
    EIP-712 structured message.

    The caller supplies the full schema; nothing is inferred except the
    ``EIP712Domain`` type when it is absent from ``types``.
    """
    types: Mapping[str, Any]
    primary_type: str
    domain: Mapping[str, Any]
    message: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.primary_type:
            raise MissingFieldError("primary_type", "typed data message")
        if self.domain is None:
            raise MissingFieldError("domain", "typed data message")

    @classmethod
    def from_dict(cls, full_message: Mapping[str, Any]) -> "TypedDataMessage":
        """
        Build from the ``eth_signTypedData_v4`` JSON layout.

        Args:
            full_message: Mapping with ``types``, ``primaryType``, ``domain``
                and ``message`` keys

        Returns:
            TypedDataMessage
        """
        for key in ("types", "primaryType", "domain", "message"):
            if key not in full_message:
                raise MissingFieldError(key, "typed data message")
        return cls(
            types=full_message["types"],
            primary_type=full_message["primaryType"],
            domain=full_message["domain"],
            message=full_message["message"],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "types": dict(self.types),
            "primaryType": self.primary_type,
            "domain": dict(self.domain),
            "message": dict(self.message),
        }


SignableMessage = Union[RawMessage, TypedDataMessage]


@dataclass(frozen=True)
class SignedMessage:
    """
    Message signature as wallets return it.

    Attributes:
        message: What was signed
        signature: Chain-tagged signature (carries the digest)
        encoded: Chain-native signature bytes (``r||s||v`` for EVM,
            BIP-137 header plus ``r||s`` for Bitcoin, raw ed25519 for Solana)
        address: Signer address, when known
    """
    message: SignableMessage
    signature: Signature
    encoded: bytes
    address: Optional[str] = None

    @property
    def digest(self) -> bytes:
        return self.signature.digest

    def hex(self, prefix: bool = True) -> str:
        encoded = self.encoded.hex()
        return f"0x{encoded}" if prefix else encoded
