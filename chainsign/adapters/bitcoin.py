"""Bitcoin adapter: P2WPKH (BIP-143) and P2PKH signing."""

from typing import List, Optional, Sequence

from ..constants import Chain, MAX_SATOSHIS
from ..crypto.keys import KeyPair
from ..crypto.signature import encode_der_signature, sign, verify
from ..exceptions import SigningError, ValidationError
from ..types.common import Address
from ..types.signature import Signature
from ..types.transaction import (
    BitcoinInput,
    BitcoinOutput,
    BitcoinTransaction,
    SigHashType,
    SignedTransaction,
)
from ..utils.encoding import (
    double_sha256,
    encode_address,
    encode_varint,
    hash160,
    int_to_bytes,
    serialize_script,
)
from ..utils.validation import validate_public_key, validate_uint
from .base import ChainAdapter

__all__ = ["BitcoinAdapter", "SUPPORTED_ADDRESS_TYPES"]

SUPPORTED_ADDRESS_TYPES = ("p2wpkh", "p2pkh")


def _p2pkh_script(pubkey_hash: bytes) -> bytes:
    return serialize_script([0x76, 0xa9, pubkey_hash, 0x88, 0xac])


def _serialize_outputs(outputs: Sequence[BitcoinOutput]) -> bytes:
    s = bytearray()
    for out in outputs:
        s.extend(int_to_bytes(out.value, 8, "little"))
        s.extend(encode_varint(len(out.script_pubkey)))
        s.extend(out.script_pubkey)
    return bytes(s)


class BitcoinAdapter(ChainAdapter):
    """
    Adapter for Bitcoin single-key outputs.

    Each input gets its own digest: BIP-143 for P2WPKH inputs and the
    legacy SIGHASH_ALL preimage for P2PKH inputs. Only SIGHASH_ALL is
    produced.
    """

    chain = Chain.BITCOIN

    def __init__(self, config=None) -> None:
        super().__init__(config)
        address_type = self.config.address_type or "p2wpkh"
        if address_type not in SUPPORTED_ADDRESS_TYPES:
            raise ValidationError(f"Unsupported address type: {address_type}")
        self.address_type = address_type
        self.network = self.config.network

    def derive_address(self, public_key: bytes) -> Address:
        """P2WPKH bech32 or P2PKH base58 address, per the chain config."""
        key = validate_public_key(public_key)
        if len(key) != 33:
            raise ValidationError("Bitcoin addresses require a compressed public key")
        return encode_address(self.address_type, hash160(key), self.network)

    def validate(self, tx: BitcoinTransaction) -> None:
        """
        Range-check every field against its wire width.

        Raises:
            EncodingOverflowError: If a field overflows
            ValidationError: If an amount is outside ``0..21e14`` satoshis
                or an outpoint txid is not 32 bytes
        """
        self.check_chain(tx)
        validate_uint(tx.version, 32, "version")
        validate_uint(tx.locktime, 32, "locktime")

        for inp in tx.inputs:
            validate_uint(inp.sequence, 32, "sequence")
            validate_uint(inp.outpoint.vout, 32, "vout")
            if len(inp.outpoint.txid) != 64:
                raise ValidationError(f"Outpoint txid must be 32 bytes: {inp.outpoint}")
            if inp.value is not None:
                self._check_amount(inp.value, "input value")

        total = 0
        for out in tx.outputs:
            total += self._check_amount(out.value, "output value")
        if total > MAX_SATOSHIS:
            raise ValidationError(f"Total output value exceeds {MAX_SATOSHIS} satoshis")

    @staticmethod
    def _check_amount(value: int, field: str) -> int:
        validate_uint(value, 64, field)
        if value > MAX_SATOSHIS:
            raise ValidationError(f"{field} exceeds {MAX_SATOSHIS} satoshis: {value}")
        return value

    def _serialize(
        self,
        tx: BitcoinTransaction,
        script_sigs: Optional[Sequence[bytes]] = None,
        witnesses: Optional[Sequence[Sequence[bytes]]] = None
    ) -> bytes:
        s = bytearray()
        s.extend(int_to_bytes(tx.version, 4, "little"))

        if witnesses is not None:
            s.extend(b"\x00\x01")  # segwit marker and flag

        s.extend(encode_varint(len(tx.inputs)))
        for i, inp in enumerate(tx.inputs):
            s.extend(inp.outpoint.bytes)
            script = script_sigs[i] if script_sigs else b""
            s.extend(encode_varint(len(script)))
            s.extend(script)
            s.extend(int_to_bytes(inp.sequence, 4, "little"))

        s.extend(encode_varint(len(tx.outputs)))
        s.extend(_serialize_outputs(tx.outputs))

        if witnesses is not None:
            for stack in witnesses:
                s.extend(encode_varint(len(stack)))
                for item in stack:
                    s.extend(encode_varint(len(item)))
                    s.extend(item)

        s.extend(int_to_bytes(tx.locktime, 4, "little"))
        return bytes(s)

    def encode(self, tx: BitcoinTransaction) -> bytes:
        """Legacy serialization with empty scriptSigs and no witness data."""
        self.validate(tx)
        return self._serialize(tx)

    def hash(self, encoded: bytes) -> bytes:
        return double_sha256(encoded)

    def txid(self, tx: BitcoinTransaction, script_sigs: Optional[Sequence[bytes]] = None) -> str:
        """Transaction id: reversed double-SHA256 of the non-witness serialization."""
        return self.hash(self._serialize(tx, script_sigs))[::-1].hex()

    def sighash(
        self,
        tx: BitcoinTransaction,
        input_index: int,
        public_key: bytes,
        sighash_type: int = SigHashType.ALL
    ) -> bytes:
        """
        Digest signed for one input.

        Args:
            tx: Unsigned transaction
            input_index: Index of the input being signed
            public_key: Compressed key whose hash the spent output locks to
            sighash_type: Only SIGHASH_ALL is supported

        Returns:
            32-byte digest
        """
        if sighash_type != SigHashType.ALL:
            raise SigningError(f"Unsupported sighash type: {sighash_type:#x}")
        if not 0 <= input_index < len(tx.inputs):
            raise ValidationError(f"Input index out of range: {input_index}")

        pubkey_hash = hash160(bytes(public_key))
        inp = tx.inputs[input_index]
        if inp.script_type == "p2wpkh":
            preimage = self._bip143_preimage(tx, inp, pubkey_hash, sighash_type)
        else:
            preimage = self._legacy_preimage(tx, input_index, pubkey_hash, sighash_type)
        return double_sha256(preimage)

    def _bip143_preimage(
        self,
        tx: BitcoinTransaction,
        inp: BitcoinInput,
        pubkey_hash: bytes,
        sighash_type: int
    ) -> bytes:
        hash_prevouts = double_sha256(b"".join(i.outpoint.bytes for i in tx.inputs))
        hash_sequence = double_sha256(
            b"".join(int_to_bytes(i.sequence, 4, "little") for i in tx.inputs)
        )
        hash_outputs = double_sha256(_serialize_outputs(tx.outputs))
        script_code = _p2pkh_script(pubkey_hash)

        s = bytearray()
        s.extend(int_to_bytes(tx.version, 4, "little"))
        s.extend(hash_prevouts)
        s.extend(hash_sequence)
        s.extend(inp.outpoint.bytes)
        s.extend(encode_varint(len(script_code)))
        s.extend(script_code)
        s.extend(int_to_bytes(inp.value, 8, "little"))
        s.extend(int_to_bytes(inp.sequence, 4, "little"))
        s.extend(hash_outputs)
        s.extend(int_to_bytes(tx.locktime, 4, "little"))
        s.extend(int_to_bytes(sighash_type, 4, "little"))
        return bytes(s)

    def _legacy_preimage(
        self,
        tx: BitcoinTransaction,
        input_index: int,
        pubkey_hash: bytes,
        sighash_type: int
    ) -> bytes:
        script_sigs = [b""] * len(tx.inputs)
        # Other inputs keep empty scripts
        script_sigs[input_index] = _p2pkh_script(pubkey_hash)
        return self._serialize(tx, script_sigs) + int_to_bytes(sighash_type, 4, "little")

    def sign_with(self, tx: BitcoinTransaction, key_pairs: Sequence[KeyPair]) -> SignedTransaction:
        """
        Sign every input.

        Args:
            tx: Unsigned transaction
            key_pairs: One key for all inputs, or one key per input

        Raises:
            SigningError: If the number of keys matches neither
        """
        if not key_pairs:
            raise SigningError("At least one key pair is required")
        self.check_chain(tx, *key_pairs)
        self.validate(tx)

        if len(key_pairs) not in (1, len(tx.inputs)):
            raise SigningError(
                f"Expected 1 or {len(tx.inputs)} key pairs, got {len(key_pairs)}"
            )

        signatures: List[Signature] = []
        public_keys: List[bytes] = []
        for index in range(len(tx.inputs)):
            key_pair = key_pairs[index if len(key_pairs) > 1 else 0]
            digest = self.sighash(tx, index, key_pair.public_key)
            signatures.append(sign(digest, key_pair))
            public_keys.append(key_pair.public_key)

        signed = self.assemble_signed(tx, signatures, public_keys)
        self._logger.debug(f"Signed {len(tx.inputs)} input(s), txid={signed.tx_hash}")
        return signed

    def assemble_signed(
        self,
        tx: BitcoinTransaction,
        signatures: Sequence[Signature],
        public_keys: Sequence[bytes]
    ) -> SignedTransaction:
        """
        Build scriptSigs and witnesses.

        P2WPKH inputs get an empty scriptSig and the witness
        ``[der_sig || 0x01, pubkey]``; P2PKH inputs get the scriptSig
        ``<der_sig || 0x01> <pubkey>``.
        """
        if len(signatures) != len(tx.inputs) or len(public_keys) != len(tx.inputs):
            raise SigningError("Each input needs exactly one signature and public key")
        self.check_chain(tx, *signatures)

        script_sigs = []
        witnesses = []
        for inp, signature, public_key in zip(tx.inputs, signatures, public_keys):
            der = encode_der_signature(signature.r, signature.s, SigHashType.ALL)
            if inp.script_type == "p2wpkh":
                script_sigs.append(b"")
                witnesses.append([der, bytes(public_key)])
            else:
                script_sigs.append(serialize_script([der, bytes(public_key)]))
                witnesses.append([])

        raw = self._serialize(tx, script_sigs, witnesses if tx.has_witness else None)
        return SignedTransaction(
            transaction=tx,
            signatures=tuple(signatures),
            raw=raw,
            tx_hash=self.txid(tx, script_sigs),
        )

    def verify_transaction(self, signed: SignedTransaction, public_key: bytes) -> bool:
        """Check every input signature against its recomputed sighash."""
        self.check_chain(signed, *signed.signatures)
        tx = signed.transaction
        if len(signed.signatures) != len(tx.inputs):
            return False
        return all(
            verify(self.sighash(tx, index, public_key), signature, public_key)
            for index, signature in enumerate(signed.signatures)
        )
