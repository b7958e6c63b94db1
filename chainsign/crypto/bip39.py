"""BIP-39 mnemonic phrases and seed stretching."""

import functools
import hashlib
import secrets
import unicodedata
from typing import Dict, List, Optional, Tuple

from mnemonic import Mnemonic as _WordlistSource

from ..constants import BIP39_WORD_COUNTS
from ..exceptions import InvalidMnemonicError

__all__ = [
    "WORDLIST",
    "DEFAULT_LANGUAGE",
    "Mnemonic",
    "supported_languages",
    "generate_mnemonic",
    "validate_mnemonic",
    "mnemonic_to_seed",
    "mnemonic_to_entropy",
]

DEFAULT_LANGUAGE = "english"

PBKDF2_ROUNDS = 2048


def supported_languages() -> List[str]:
    return sorted(_WordlistSource.list_languages())


@functools.lru_cache(maxsize=None)
def _wordlist(language: str) -> Tuple[Tuple[str, ...], Dict[str, int]]:
    if language not in supported_languages():
        raise InvalidMnemonicError(
            f"Unsupported mnemonic language: {language!r}, must be one of {supported_languages()}"
        )
    words = tuple(_WordlistSource(language).wordlist)
    # Lookups go through NFKD so composed and decomposed input both match
    index = {unicodedata.normalize("NFKD", word): position for position, word in enumerate(words)}
    return words, index


def _delimiter(language: str) -> str:
    return "\u3000" if language == "japanese" else " "


WORDLIST: List[str] = list(_wordlist(DEFAULT_LANGUAGE)[0])


def _normalize(phrase: str) -> str:
    return " ".join(unicodedata.normalize("NFKD", phrase).split())


def _entropy_to_words(entropy: bytes, language: str) -> List[str]:
    words, _ = _wordlist(language)
    strength = len(entropy) * 8
    checksum_length = strength // 32
    checksum = hashlib.sha256(entropy).digest()
    checksum_bits = bin(checksum[0])[2:].zfill(8)[:checksum_length]

    entropy_bits = "".join(format(byte, "08b") for byte in entropy)
    all_bits = entropy_bits + checksum_bits

    # Split into 11-bit chunks and map to words
    return [words[int(all_bits[i:i + 11], 2)] for i in range(0, len(all_bits), 11)]


def _phrase_indices(phrase: str, language: str) -> List[int]:
    _, index = _wordlist(language)
    words = _normalize(phrase).split(" ") if phrase and phrase.strip() else []
    if len(words) not in BIP39_WORD_COUNTS:
        raise InvalidMnemonicError(
            f"Invalid word count: {len(words)}, must be one of {sorted(BIP39_WORD_COUNTS)}"
        )

    indices = []
    for position, word in enumerate(words):
        if word not in index:
            raise InvalidMnemonicError(f"Word at position {position + 1} is not in the wordlist")
        indices.append(index[word])
    return indices


def generate_mnemonic(word_count: int = 12, language: str = DEFAULT_LANGUAGE) -> str:
    """
    Generate a BIP-39 mnemonic phrase from fresh random entropy.

    Args:
        word_count: 12, 15, 18, 21 or 24
        language: Wordlist name, e.g. ``"english"`` or ``"japanese"``

    Returns:
        Phrase joined with the language's separator (an ideographic
        space for Japanese, a plain space otherwise)

    Raises:
        InvalidMnemonicError: If word_count or language is not supported
    """
    if word_count not in BIP39_WORD_COUNTS:
        raise InvalidMnemonicError(
            f"Invalid word count: {word_count}, must be one of {sorted(BIP39_WORD_COUNTS)}"
        )
    _wordlist(language)
    entropy = secrets.token_bytes(BIP39_WORD_COUNTS[word_count] // 8)
    return _delimiter(language).join(_entropy_to_words(entropy, language))


def mnemonic_to_entropy(phrase: str, language: str = DEFAULT_LANGUAGE) -> bytes:
    """
    Recover the entropy behind a phrase, checking word count, wordlist
    membership and checksum.

    Raises:
        InvalidMnemonicError: On any failure. The phrase itself is never
            included in the message.
    """
    indices = _phrase_indices(phrase, language)

    all_bits = "".join(format(index, "011b") for index in indices)
    checksum_length = len(all_bits) // 33
    entropy_bits = all_bits[:-checksum_length]
    checksum_bits = all_bits[-checksum_length:]

    entropy = int(entropy_bits, 2).to_bytes(len(entropy_bits) // 8, "big")
    expected = bin(hashlib.sha256(entropy).digest()[0])[2:].zfill(8)[:checksum_length]
    if checksum_bits != expected:
        raise InvalidMnemonicError("Invalid mnemonic checksum")

    return entropy


def validate_mnemonic(phrase: str, language: str = DEFAULT_LANGUAGE) -> bool:
    """Return True if the phrase is a valid BIP-39 mnemonic in ``language``."""
    try:
        mnemonic_to_entropy(phrase, language)
        return True
    except InvalidMnemonicError:
        return False


def mnemonic_to_seed(mnemonic: str, passphrase: str = "") -> bytes:
    """
    Convert mnemonic to a 64-byte seed using PBKDF2-HMAC-SHA512.

    The phrase is not checked here; callers that accept user input should
    go through :class:`Mnemonic` first.
    """
    mnemonic_bytes = _normalize(mnemonic).encode("utf-8")
    salt = unicodedata.normalize("NFKD", "mnemonic" + (passphrase or "")).encode("utf-8")

    return hashlib.pbkdf2_hmac(
        "sha512",
        mnemonic_bytes,
        salt,
        PBKDF2_ROUNDS,
        dklen=64
    )


class Mnemonic:
    """
    Validated, immutable mnemonic phrase.

    Instances are only created through :meth:`generate` or
    :meth:`from_phrase`, both of which guarantee a correct checksum.
    Words are stored in the wordlist's own spelling, so NFKD-decomposed
    input comes back out in canonical form.
    """

    __slots__ = ("_words", "_language")

    def __init__(self, phrase: str, language: str = DEFAULT_LANGUAGE) -> None:
        mnemonic_to_entropy(phrase, language)
        words, _ = _wordlist(language)
        object.__setattr__(
            self, "_words", tuple(words[i] for i in _phrase_indices(phrase, language))
        )
        object.__setattr__(self, "_language", language)

    @classmethod
    def generate(cls, word_count: int = 12, language: str = DEFAULT_LANGUAGE) -> "Mnemonic":
        """Create a new random mnemonic."""
        return cls(generate_mnemonic(word_count, language), language)

    @classmethod
    def from_phrase(cls, phrase: str, language: str = DEFAULT_LANGUAGE) -> "Mnemonic":
        """
        Import a user-supplied phrase.

        Raises:
            InvalidMnemonicError: If the phrase fails validation
        """
        return cls(phrase, language)

    @staticmethod
    def is_valid(phrase: str, language: str = DEFAULT_LANGUAGE) -> bool:
        return validate_mnemonic(phrase, language)

    @property
    def words(self) -> tuple:
        return self._words

    @property
    def language(self) -> str:
        return self._language

    @property
    def word_count(self) -> int:
        return len(self._words)

    @property
    def phrase(self) -> str:
        return _delimiter(self._language).join(self._words)

    def entropy(self) -> bytes:
        return mnemonic_to_entropy(self.phrase, self._language)

    def to_seed(self, passphrase: Optional[str] = None) -> bytes:
        """Derive the 64-byte seed; same phrase and passphrase give the same seed."""
        return mnemonic_to_seed(self.phrase, passphrase or "")

    def __setattr__(self, name, value) -> None:
        raise AttributeError("Mnemonic is immutable")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Mnemonic):
            return False
        return (self._language, self._words) == (other._language, other._words)

    def __hash__(self) -> int:
        return hash((self._language, self._words))

    def __str__(self) -> str:
        return self.phrase

    def __repr__(self) -> str:
        if self._language == DEFAULT_LANGUAGE:
            return f"Mnemonic(words={self.word_count})"
        return f"Mnemonic(words={self.word_count}, language={self._language!r})"
