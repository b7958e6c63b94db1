import pytest

from chainsign import SigningEngine
from chainsign.constants import Chain, get_chain_config
from chainsign.exceptions import (
    ChainMismatchError,
    SigningError,
    UnsupportedChainError,
)
from chainsign.types.transaction import (
    BitcoinInput,
    BitcoinOutput,
    BitcoinTransaction,
    EvmLegacyTransaction,
    OutPoint,
    SolanaTransaction,
    system_transfer,
)
from chainsign.utils.encoding import encode_base58

PHRASE = " ".join(["abandon"] * 11 + ["about"])


@pytest.fixture
def engine():
    return SigningEngine()


def test_phrase_to_signed_evm_transaction(engine):
    key_pair = engine.derive(PHRASE, Chain.EVM)
    sender = engine.address(key_pair)
    tx = EvmLegacyTransaction(
        nonce=0,
        gas_price=10**9,
        gas_limit=21000,
        to="0x3535353535353535353535353535353535353535",
        value=1,
        chain_id=1,
    )
    signed = engine.sign_transaction(tx, key_pair)

    assert engine.verify_transaction(signed, key_pair.public_key)
    assert engine.adapter(Chain.EVM).recover_sender(signed.raw) == sender
    assert engine.adapter(Chain.EVM).decode_raw_transaction(signed.raw).transaction == tx


def test_same_phrase_different_chains(engine):
    evm = engine.derive(PHRASE, Chain.EVM)
    solana = engine.derive(PHRASE, Chain.SOLANA)
    bitcoin = engine.derive(PHRASE, Chain.BITCOIN)

    assert engine.address(evm) == "0x9858EfFD232B4033E47d90003D41EC34EcaEda94"
    assert engine.address(bitcoin) == "bc1qcr8te4kr609gcawutmrza0j4xv80jy8z306fyu"
    assert len(solana.public_key) == 32
    assert engine.derive(PHRASE, Chain.SOLANA, index=5).public_key != solana.public_key


def test_derive_from_seed_bytes(engine):
    seed = bytes(range(64))
    assert engine.derive(seed, Chain.EVM) == engine.derive(seed, "evm", path="m/44'/60'/0'/0/0")


def test_solana_transaction_through_engine(engine):
    key_pair = engine.derive(PHRASE, Chain.SOLANA)
    payer = engine.address(key_pair)
    tx = SolanaTransaction(
        fee_payer=payer,
        recent_blockhash=encode_base58(b"\x01" * 32),
        instructions=[system_transfer(payer, encode_base58(b"\x02" * 32), 10)],
    )
    signed = engine.sign_transaction(tx, key_pair)
    assert signed.tx_hash
    assert engine.verify_transaction(signed, key_pair.public_key)


def test_chain_isolation(engine):
    solana_key = engine.derive(PHRASE, Chain.SOLANA)
    tx = EvmLegacyTransaction(nonce=0, gas_price=1, gas_limit=21000, chain_id=1)
    with pytest.raises(ChainMismatchError):
        engine.sign_transaction(tx, solana_key)


def test_wiped_key_cannot_sign(engine):
    tx = EvmLegacyTransaction(nonce=0, gas_price=1, gas_limit=21000, chain_id=1)
    with engine.derive(PHRASE, Chain.EVM) as key_pair:
        pass
    with pytest.raises(SigningError):
        engine.sign_transaction(tx, key_pair)


def test_config_overrides():
    config = get_chain_config(Chain.BITCOIN).with_overrides(
        address_type="p2pkh", path_template="m/44'/0'/0'/0/{index}"
    )
    engine = SigningEngine({Chain.BITCOIN: config})
    key_pair = engine.derive(PHRASE, Chain.BITCOIN)
    assert str(key_pair.path) == "m/44'/0'/0'/0/0"
    assert engine.address(key_pair) == "1LqBGSKuX5yYUonjxT5qGfpUsXKYYWeabA"

    signed = engine.sign_message("Hello World", key_pair)
    assert 31 <= signed.encoded[0] <= 34
    assert engine.recover_message_signer("Hello World", signed.encoded, Chain.BITCOIN) == (
        engine.address(key_pair)
    )

    tx = BitcoinTransaction(
        inputs=[BitcoinInput(outpoint=OutPoint("cd" * 32, 0), script_type="p2pkh")],
        outputs=[BitcoinOutput.to_address(engine.address(key_pair), 1000)],
    )
    assert engine.verify_transaction(engine.sign_transaction(tx, key_pair), key_pair.public_key)


def test_mismatched_config_is_rejected():
    with pytest.raises(ChainMismatchError):
        SigningEngine({Chain.EVM: get_chain_config(Chain.SOLANA)})


def test_unsupported_chain(engine):
    with pytest.raises(UnsupportedChainError):
        engine.adapter("cosmos")
    with pytest.raises(UnsupportedChainError):
        engine.derive(PHRASE, "cosmos")


def test_message_roundtrip_every_chain(engine):
    for chain in Chain:
        key_pair = engine.derive(PHRASE, chain)
        signed = engine.sign_message("gm", key_pair)
        assert engine.verify_message(signed, key_pair.public_key)
        assert signed.address == engine.address(key_pair)
