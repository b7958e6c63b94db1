"""Solana adapter: legacy message compilation and wire format via solders."""

from typing import List, Optional, Sequence, Union

from solders.errors import BincodeError
from solders.hash import Hash
from solders.instruction import AccountMeta as SoldersAccountMeta, Instruction
from solders.message import Message
from solders.pubkey import Pubkey
from solders.signature import Signature as SoldersSignature
from solders.transaction import Transaction

from ..constants import Chain, SignatureScheme
from ..crypto.keys import KeyPair
from ..crypto.signature import sign, verify
from ..exceptions import SerializationError, SigningError, ValidationError
from ..types.signature import Signature
from ..types.transaction import (
    AccountMeta,
    SignedTransaction,
    SolanaInstruction,
    SolanaTransaction,
)
from ..utils.encoding import decode_base58, decode_compact_u16, encode_base58
from ..utils.validation import validate_solana_address
from .base import ChainAdapter

__all__ = ["SolanaAdapter"]

SIGNATURE_LENGTH = 64
PUBKEY_LENGTH = 32
MAX_ACCOUNTS = 256
EMPTY_SIGNATURE = bytes(SIGNATURE_LENGTH)


def _is_writable(message: Message, index: int) -> bool:
    header = message.header
    required = header.num_required_signatures
    if index < required:
        return index < required - header.num_readonly_signed_accounts
    return index < len(message.account_keys) - header.num_readonly_unsigned_accounts


class SolanaAdapter(ChainAdapter):
    """
    Adapter for Solana.

    The ed25519 signature covers the serialized message bytes directly,
    so :meth:`hash` is the identity.
    """

    chain = Chain.SOLANA

    def derive_address(self, public_key: bytes) -> str:
        public_key = bytes(public_key)
        if len(public_key) != PUBKEY_LENGTH:
            raise ValidationError(f"Solana public key must be 32 bytes, got {len(public_key)}")
        return encode_base58(public_key)

    def compile_message(self, tx: SolanaTransaction) -> Message:
        """
        Order accounts and index instructions into a legacy message.

        Account keys are ordered fee payer first, then writable signers,
        readonly signers, writable non-signers and readonly non-signers.
        Within a group keys are sorted by their bytes. The same key used
        twice is merged, keeping the strongest signer and writable flags.

        Raises:
            ChainMismatchError: If ``tx`` is not a Solana transaction
            ValidationError: If a key or the blockhash is not 32 bytes
            SerializationError: If more than 256 accounts are referenced
        """
        self.check_chain(tx)
        fee_payer = validate_solana_address(tx.fee_payer)
        blockhash = decode_base58(tx.recent_blockhash)
        if len(blockhash) != 32:
            raise ValidationError(f"Recent blockhash must be 32 bytes, got {len(blockhash)}")

        keys = {fee_payer}
        instructions = []
        for instruction in tx.instructions:
            program_id = validate_solana_address(instruction.program_id)
            metas = []
            for account in instruction.accounts:
                key = validate_solana_address(account.pubkey)
                keys.add(key)
                metas.append(SoldersAccountMeta(Pubkey(key), account.is_signer, account.is_writable))
            keys.add(program_id)
            instructions.append(Instruction(Pubkey(program_id), bytes(instruction.data), metas))

        if len(keys) > MAX_ACCOUNTS:
            raise SerializationError(f"Too many accounts: {len(keys)}")

        return Message.new_with_blockhash(instructions, Pubkey(fee_payer), Hash(blockhash))

    def encode(self, tx: SolanaTransaction) -> bytes:
        return bytes(self.compile_message(tx))

    def hash(self, encoded: bytes) -> bytes:
        return encoded

    def assemble_signed(
        self,
        tx: SolanaTransaction,
        signatures: Sequence[Signature],
        public_keys: Sequence[bytes]
    ) -> SignedTransaction:
        """
        Place each signature in its signer slot.

        Slots of signers that did not sign are zero-filled, giving a
        partially signed transaction.

        Raises:
            SigningError: If a key is not a required signer of the message
        """
        self.check_chain(tx, *signatures)
        message = self.compile_message(tx)
        slots = [SoldersSignature.default()] * message.header.num_required_signatures

        for signature, public_key in zip(signatures, public_keys):
            slots[self._signer_slot(message, public_key)] = SoldersSignature(signature.value)

        wire = Transaction.populate(message, slots)
        return SignedTransaction(
            transaction=tx,
            signatures=tuple(signatures),
            raw=bytes(wire),
            tx_hash=self._tx_hash(wire),
        )

    def message_bytes(self, signed: SignedTransaction) -> bytes:
        """The exact message bytes carried by ``signed``, as every signer must sign them."""
        return bytes(self._parse(signed.raw).message)

    def add_signature(self, signed: SignedTransaction, signature: Signature, public_key: bytes) -> SignedTransaction:
        """
        Return a copy of a partially signed transaction with one more signature.

        The signature is written into the signer's slot of the wire
        payload as it stands. The message is never recompiled, so
        transactions built elsewhere keep their account order and the
        signatures already present stay valid.

        Raises:
            SigningError: If ``public_key`` is not a required signer, or
                ``signature`` does not cover this transaction's message
        """
        self.check_chain(signed, signature)
        wire = self._parse(signed.raw)
        message = wire.message
        message_bytes = bytes(message)

        slot = self._signer_slot(message, public_key)
        if not verify(message_bytes, signature, public_key):
            raise SigningError("Signature does not cover this transaction's message")

        slots = list(wire.signatures)
        slots[slot] = SoldersSignature(signature.value)
        updated = Transaction.populate(message, slots)
        self._logger.debug(f"Filled signer slot {slot} for {encode_base58(bytes(public_key))}")
        return SignedTransaction(
            transaction=signed.transaction,
            signatures=tuple(signed.signatures) + (signature,),
            raw=bytes(updated),
            tx_hash=self._tx_hash(updated),
        )

    def sign_partial(self, signed: SignedTransaction, key_pair: KeyPair) -> SignedTransaction:
        """Sign the message carried by ``signed`` and fill in ``key_pair``'s slot."""
        self.check_chain(signed, key_pair)
        signature = sign(self.message_bytes(signed), key_pair)
        return self.add_signature(signed, signature, key_pair.public_key)

    def deserialize_transaction(self, raw: Union[str, bytes]) -> SignedTransaction:
        """
        Parse wire bytes (or their base58 form) into a signed transaction.

        Zero-filled signature slots are left out of ``signatures``. The
        returned ``raw`` is the input unchanged; use :meth:`add_signature`
        or :meth:`sign_partial` to extend it without recompiling.

        Raises:
            SerializationError: If the payload is truncated or inconsistent
        """
        raw = decode_base58(raw) if isinstance(raw, str) else bytes(raw)
        wire = self._parse(raw)
        message = wire.message
        message_bytes = bytes(message)

        keys = [encode_base58(bytes(key)) for key in message.account_keys]
        required = message.header.num_required_signatures
        instructions = []
        for compiled in message.instructions:
            indices = list(compiled.accounts)
            if compiled.program_id_index >= len(keys) or any(i >= len(keys) for i in indices):
                raise SerializationError("Instruction references an unknown account")
            instructions.append(SolanaInstruction(
                program_id=keys[compiled.program_id_index],
                accounts=tuple(
                    AccountMeta(keys[i], is_signer=i < required, is_writable=_is_writable(message, i))
                    for i in indices
                ),
                data=bytes(compiled.data),
            ))

        tx = SolanaTransaction(
            fee_payer=keys[0],
            recent_blockhash=str(message.recent_blockhash),
            instructions=tuple(instructions),
        )
        signatures = tuple(
            Signature(
                chain=Chain.SOLANA,
                scheme=SignatureScheme.ED25519,
                value=bytes(slot),
                digest=message_bytes,
            )
            for slot in wire.signatures
            if bytes(slot) != EMPTY_SIGNATURE
        )
        return SignedTransaction(
            transaction=tx,
            signatures=signatures,
            raw=raw,
            tx_hash=self._tx_hash(wire),
        )

    def verify_transaction(self, signed: SignedTransaction, public_key: Optional[bytes] = None) -> bool:
        """
        Verify signatures against the wire bytes.

        Args:
            signed: Signed transaction
            public_key: When given, this signer's slot must hold a valid
                signature. Otherwise every present signature must verify
                and at least one must be present.

        Returns:
            True if valid, False otherwise
        """
        self.check_chain(signed, *signed.signatures)
        try:
            wire = self._parse(signed.raw)
        except SerializationError:
            return False

        message_bytes = bytes(wire.message)
        signers = wire.message.account_keys[:wire.message.header.num_required_signatures]
        checks = [
            (bytes(slot), bytes(key))
            for slot, key in zip(wire.signatures, signers)
            if public_key is None or bytes(key) == bytes(public_key)
        ]
        if public_key is not None and not checks:
            return False

        present = [(slot, key) for slot, key in checks if slot != EMPTY_SIGNATURE]
        if not present or (public_key is not None and len(present) != len(checks)):
            return False

        return all(
            verify(
                message_bytes,
                Signature(Chain.SOLANA, SignatureScheme.ED25519, slot, message_bytes),
                key,
            )
            for slot, key in present
        )

    @staticmethod
    def _signer_slot(message: Message, public_key: bytes) -> int:
        signers: List[Pubkey] = list(message.account_keys[:message.header.num_required_signatures])
        try:
            return signers.index(Pubkey(bytes(public_key)))
        except ValueError as e:
            raise SigningError(
                f"{encode_base58(bytes(public_key))} is not a required signer"
            ) from e

    @staticmethod
    def _tx_hash(wire: Transaction) -> str:
        if not wire.signatures or bytes(wire.signatures[0]) == EMPTY_SIGNATURE:
            return ""
        return str(wire.signatures[0])

    @staticmethod
    def _parse(raw: bytes) -> Transaction:
        raw = bytes(raw)
        count, offset = decode_compact_u16(raw, 0)
        message_offset = offset + count * SIGNATURE_LENGTH
        if len(raw) <= message_offset:
            raise SerializationError("Truncated transaction")
        if raw[message_offset] & 0x80:
            raise SerializationError("Versioned messages are not supported")

        try:
            wire = Transaction.from_bytes(raw)
        except (BincodeError, ValueError) as e:
            raise SerializationError(f"Invalid Solana transaction: {e}") from e
        if bytes(wire) != raw:
            raise SerializationError("Trailing bytes after message")

        message = wire.message
        required = message.header.num_required_signatures
        if not message.account_keys or required == 0 or required > len(message.account_keys):
            raise SerializationError("Signature count does not match message header")
        if len(wire.signatures) != required:
            raise SerializationError("Signature count does not match message header")
        return wire
