"""EVM adapter: EIP-155 legacy and EIP-1559 transactions."""

from typing import List, Optional, Sequence, Union

from coincurve import PublicKey as SecpPublicKey

from ..constants import Chain, SignatureScheme
from ..crypto.signature import recover_public_key
from ..exceptions import SerializationError, SigningError, ValidationError
from ..types.common import Address
from ..types.signature import Signature
from ..types.transaction import (
    AccessListEntry,
    EvmEip1559Transaction,
    EvmLegacyTransaction,
    SignedTransaction,
)
from ..utils.encoding import bytes_to_int, hex_to_bytes, keccak256, rlp_decode, rlp_encode
from ..utils.validation import to_checksum_address, validate_evm_address, validate_uint
from .base import ChainAdapter

__all__ = ["EvmAdapter", "EIP1559_TX_TYPE"]

EIP1559_TX_TYPE = 0x02

EvmTransaction = Union[EvmLegacyTransaction, EvmEip1559Transaction]


class EvmAdapter(ChainAdapter):
    """
    Adapter for account-based EVM chains.

    Legacy transactions are signed over
    ``rlp([nonce, gasPrice, gas, to, value, data, chainId, 0, 0])``
    (EIP-155) and EIP-1559 transactions over
    ``0x02 || rlp([chainId, nonce, maxPriority, maxFee, gas, to, value, data, accessList])``.
    """

    chain = Chain.EVM

    def derive_address(self, public_key: bytes) -> Address:
        """``0x`` + EIP-55 checksum of the last 20 bytes of keccak256(X || Y)."""
        uncompressed = SecpPublicKey(bytes(public_key)).format(compressed=False)
        return to_checksum_address(keccak256(uncompressed[1:])[-20:])

    @staticmethod
    def parse_address(address: str) -> bytes:
        """
        Validate a ``0x`` + 40 hex address and return its 20 bytes.

        Raises:
            ValidationError: If the address is malformed or fails EIP-55
        """
        return hex_to_bytes(validate_evm_address(address))

    @staticmethod
    def to_checksum_address(address: Union[str, bytes]) -> Address:
        return to_checksum_address(address)

    def _fields(self, tx: EvmTransaction) -> List:
        to = self.parse_address(tx.to) if tx.to else b""

        if isinstance(tx, EvmEip1559Transaction):
            max_priority = validate_uint(tx.max_priority_fee_per_gas, 256, "max_priority_fee_per_gas")
            max_fee = validate_uint(tx.max_fee_per_gas, 256, "max_fee_per_gas")
            if max_priority > max_fee:
                raise ValidationError(
                    f"max_priority_fee_per_gas ({max_priority}) exceeds max_fee_per_gas ({max_fee})"
                )
            return [
                validate_uint(tx.chain_id, 64, "chain_id"),
                validate_uint(tx.nonce, 64, "nonce"),
                max_priority,
                max_fee,
                validate_uint(tx.gas_limit, 64, "gas_limit"),
                to,
                validate_uint(tx.value, 256, "value"),
                tx.data,
                self._encode_access_list(tx.access_list),
            ]

        return [
            validate_uint(tx.nonce, 64, "nonce"),
            validate_uint(tx.gas_price, 256, "gas_price"),
            validate_uint(tx.gas_limit, 64, "gas_limit"),
            to,
            validate_uint(tx.value, 256, "value"),
            tx.data,
        ]

    def _encode_access_list(self, access_list: Sequence[AccessListEntry]) -> List:
        encoded = []
        for entry in access_list:
            keys = []
            for key in entry.storage_keys:
                raw = hex_to_bytes(key) if isinstance(key, str) else bytes(key)
                if len(raw) != 32:
                    raise ValidationError(f"Storage key must be 32 bytes, got {len(raw)}")
                keys.append(raw)
            encoded.append([self.parse_address(entry.address), keys])
        return encoded

    def encode(self, tx: EvmTransaction) -> bytes:
        """
        Signing payload for a legacy or EIP-1559 transaction.

        Raises:
            ChainMismatchError: If ``tx`` is not an EVM transaction
            EncodingOverflowError: If nonce/gas exceed 64 bits or value/fees 256 bits
            ValidationError: If max priority fee exceeds max fee
        """
        self.check_chain(tx)
        fields = self._fields(tx)

        if isinstance(tx, EvmEip1559Transaction):
            return bytes([EIP1559_TX_TYPE]) + rlp_encode(fields)

        if tx.chain_id is not None:
            fields += [validate_uint(tx.chain_id, 64, "chain_id"), 0, 0]
        return rlp_encode(fields)

    def hash(self, encoded: bytes) -> bytes:
        return keccak256(encoded)

    def assemble_signed(
        self,
        tx: EvmTransaction,
        signatures: Sequence[Signature],
        public_keys: Sequence[bytes] = ()
    ) -> SignedTransaction:
        """
        Append ``v, r, s`` to the transaction fields.

        ``v`` is ``recovery_id + 35 + 2 * chain_id`` for EIP-155,
        ``27 + recovery_id`` for pre-EIP-155 legacy, and the bare y-parity
        for EIP-1559.
        """
        if len(signatures) != 1:
            raise SigningError(f"EVM transactions take exactly one signature, got {len(signatures)}")
        signature = signatures[0]
        self.check_chain(tx, signature)

        fields = self._fields(tx)
        if isinstance(tx, EvmEip1559Transaction):
            raw = bytes([EIP1559_TX_TYPE]) + rlp_encode(
                fields + [signature.recovery_id, signature.r, signature.s]
            )
        else:
            if tx.chain_id is not None:
                v = signature.recovery_id + 35 + 2 * tx.chain_id
            else:
                v = signature.recovery_id + 27
            raw = rlp_encode(fields + [v, signature.r, signature.s])

        return SignedTransaction(
            transaction=tx,
            signatures=(signature,),
            raw=raw,
            tx_hash="0x" + keccak256(raw).hex(),
        )

    def decode_raw_transaction(self, raw: Union[str, bytes]) -> SignedTransaction:
        """
        Parse a signed legacy or EIP-1559 payload.

        The returned signature carries the recomputed signing digest, so
        it can be fed straight into verification or recovery.

        Raises:
            SerializationError: If the payload is malformed or of an
                unsupported transaction type
        """
        raw = hex_to_bytes(raw) if isinstance(raw, str) else bytes(raw)
        if not raw:
            raise SerializationError("Empty transaction payload")

        if raw[0] == EIP1559_TX_TYPE:
            items = self._decode_list(raw[1:], 12)
            (chain_id, nonce, max_priority, max_fee, gas_limit,
             to, value, data, access_list, y_parity, r, s) = items
            tx = EvmEip1559Transaction(
                chain_id=self._int(chain_id),
                nonce=self._int(nonce),
                max_priority_fee_per_gas=self._int(max_priority),
                max_fee_per_gas=self._int(max_fee),
                gas_limit=self._int(gas_limit),
                to=self._address(to),
                value=self._int(value),
                data=self._bytes(data),
                access_list=self._decode_access_list(access_list),
            )
            recovery_id = self._int(y_parity)

        elif raw[0] >= 0xc0:
            items = self._decode_list(raw, 9)
            nonce, gas_price, gas_limit, to, value, data, v, r, s = items
            v = self._int(v)
            if v in (27, 28):
                chain_id, recovery_id = None, v - 27
            elif v >= 35:
                chain_id, recovery_id = (v - 35) // 2, (v - 35) % 2
            else:
                raise SerializationError(f"Invalid legacy v value: {v}")
            tx = EvmLegacyTransaction(
                nonce=self._int(nonce),
                gas_price=self._int(gas_price),
                gas_limit=self._int(gas_limit),
                to=self._address(to),
                value=self._int(value),
                data=self._bytes(data),
                chain_id=chain_id,
            )

        else:
            raise SerializationError(f"Unsupported transaction type: {raw[0]:#04x}")

        if recovery_id not in (0, 1):
            raise SerializationError(f"Invalid recovery id: {recovery_id}")

        value = (
            self._int(r).to_bytes(32, "big")
            + self._int(s).to_bytes(32, "big")
            + bytes([recovery_id])
        )
        signature = Signature(
            chain=Chain.EVM,
            scheme=SignatureScheme.ECDSA_SECP256K1,
            value=value,
            digest=self.hash(self.encode(tx)),
        )
        return SignedTransaction(
            transaction=tx,
            signatures=(signature,),
            raw=raw,
            tx_hash="0x" + keccak256(raw).hex(),
        )

    def recover_sender(self, raw: Union[str, bytes, SignedTransaction]) -> Address:
        """Recover the address that signed a raw transaction."""
        signed = raw if isinstance(raw, SignedTransaction) else self.decode_raw_transaction(raw)
        signature = signed.signatures[0]
        return self.derive_address(recover_public_key(signature.digest, signature))

    @staticmethod
    def _decode_list(data: bytes, expected: int) -> List:
        items = rlp_decode(data)
        if not isinstance(items, list) or len(items) != expected:
            raise SerializationError(f"Expected an RLP list of {expected} items")
        return items

    @staticmethod
    def _bytes(item) -> bytes:
        if not isinstance(item, bytes):
            raise SerializationError("Expected an RLP string, got a list")
        return item

    @classmethod
    def _int(cls, item) -> int:
        return bytes_to_int(cls._bytes(item))

    @classmethod
    def _address(cls, item) -> Optional[str]:
        raw = cls._bytes(item)
        if not raw:
            return None
        if len(raw) != 20:
            raise SerializationError(f"Address must be 20 bytes, got {len(raw)}")
        return to_checksum_address(raw)

    @classmethod
    def _decode_access_list(cls, item) -> tuple:
        if not isinstance(item, list):
            raise SerializationError("Access list must be an RLP list")
        entries = []
        for entry in item:
            if not isinstance(entry, list) or len(entry) != 2 or not isinstance(entry[1], list):
                raise SerializationError("Malformed access list entry")
            entries.append(AccessListEntry(
                address=cls._address(entry[0]),
                storage_keys=tuple("0x" + cls._bytes(key).hex() for key in entry[1]),
            ))
        return tuple(entries)
