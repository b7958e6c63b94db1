"""chainsign exceptions hierarchy."""

from typing import Any, Optional

__all__ = [
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
]


class ChainSignError(Exception):
    """Base exception for all chainsign errors."""

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        data: Optional[Any] = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.data = data

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


class ValidationError(ChainSignError):
    """Raised when an input value fails validation."""
    pass


class InvalidMnemonicError(ValidationError):
    """Raised when a mnemonic has a bad checksum, word or length."""
    pass


class InvalidDerivationPathError(ValidationError):
    """Raised when a derivation path is malformed or out of range."""
    pass


class KeyDerivationError(ChainSignError):
    """Raised when derivation yields no valid key for the curve."""
    pass


class UnsupportedChainError(ChainSignError):
    """Raised when an operation is requested for an unimplemented chain."""
    pass


class ChainMismatchError(ChainSignError):
    """Raised when an entity tagged for one chain reaches another chain's adapter."""

    def __init__(
        self,
        expected: Any,
        actual: Any,
        message: Optional[str] = None
    ) -> None:
        if message is None:
            message = f"Chain mismatch: expected {_chain_name(expected)}, got {_chain_name(actual)}"
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class MissingFieldError(ValidationError):
    """Raised when a transaction lacks a field its variant requires."""

    def __init__(self, field: str, variant: str) -> None:
        super().__init__(f"{variant} requires field '{field}'")
        self.field = field
        self.variant = variant


UnsupportedFieldError = MissingFieldError


class EncodingOverflowError(ValidationError):
    """Raised when a value does not fit the chain's encoding width."""

    def __init__(self, field: str, value: int, bits: int) -> None:
        super().__init__(f"Field '{field}' value {value} does not fit in {bits} bits")
        self.field = field
        self.value = value
        self.bits = bits


class SigningError(ChainSignError):
    """Raised when the underlying signing primitive rejects its input."""
    pass


class VerificationError(ChainSignError):
    """Raised when strict verification is requested and the signature is invalid."""
    pass


class NotRecoverableError(ChainSignError):
    """Raised when public key recovery is requested for a scheme without it."""
    pass


class SerializationError(ChainSignError):
    """Raised when serialization/deserialization fails."""
    pass


def _chain_name(chain: Any) -> str:
    return getattr(chain, "value", str(chain))
