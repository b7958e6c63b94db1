"""Key derivation, signing and message hashing."""

from ..crypto.bip39 import (
    Mnemonic,
    generate_mnemonic,
    validate_mnemonic,
    mnemonic_to_seed,
    mnemonic_to_entropy,
)
from ..crypto.hd import DerivationPath, PathComponent, HDNode, Ed25519Node, master_node
from ..crypto.keys import KeyPair, KeyManager, public_key_from_private
from ..crypto.signature import (
    sign,
    verify,
    verify_or_raise,
    recover_public_key,
    parse_der_signature,
    encode_der_signature,
)
from ..crypto.typed_data import encode_typed_data, hash_typed_data, hash_struct, hash_domain
from ..crypto.message import (
    hash_message,
    sign_message,
    verify_message,
    recover_message_signer,
)

__all__ = [
    # Mnemonics
    "Mnemonic",
    "generate_mnemonic",
    "validate_mnemonic",
    "mnemonic_to_seed",
    "mnemonic_to_entropy",

    # HD derivation
    "DerivationPath",
    "PathComponent",
    "HDNode",
    "Ed25519Node",
    "master_node",

    # Keys
    "KeyPair",
    "KeyManager",
    "public_key_from_private",

    # Signatures
    "sign",
    "verify",
    "verify_or_raise",
    "recover_public_key",
    "parse_der_signature",
    "encode_der_signature",

    # Messages
    "hash_typed_data",
    "hash_struct",
    "hash_domain",
    "encode_typed_data",
    "hash_message",
    "sign_message",
    "verify_message",
    "recover_message_signer",
]
