import pytest

from chainsign.adapters import get_adapter
from chainsign.constants import Chain, Curve, Network
from chainsign.crypto.hd import HDNode
from chainsign.crypto.keys import KeyManager, KeyPair
from chainsign.crypto.signature import parse_der_signature, encode_der_signature
from chainsign.exceptions import (
    ChainMismatchError,
    InvalidDerivationPathError,
    InvalidMnemonicError,
    KeyDerivationError,
    SigningError,
    UnsupportedChainError,
    ValidationError,
)

ABANDON_ABOUT = " ".join(["abandon"] * 11 + ["about"])


@pytest.fixture
def manager():
    return KeyManager()


def test_evm_default_path_address(manager):
    key_pair = manager.derive_from_mnemonic(ABANDON_ABOUT, Chain.EVM)
    assert str(key_pair.path) == "m/44'/60'/0'/0/0"
    assert get_adapter(Chain.EVM).derive_address(key_pair.public_key) == (
        "0x9858EfFD232B4033E47d90003D41EC34EcaEda94"
    )


def test_bitcoin_bip84_and_bip44_addresses(manager):
    segwit = manager.derive_from_mnemonic(ABANDON_ABOUT, Chain.BITCOIN)
    assert get_adapter(Chain.BITCOIN).derive_address(segwit.public_key) == (
        "bc1qcr8te4kr609gcawutmrza0j4xv80jy8z306fyu"
    )

    legacy = manager.derive_from_mnemonic(ABANDON_ABOUT, Chain.BITCOIN, path="m/44'/0'/0'/0/0")
    config = manager.config(Chain.BITCOIN).with_overrides(address_type="p2pkh")
    assert get_adapter(Chain.BITCOIN, config).derive_address(legacy.public_key) == (
        "1LqBGSKuX5yYUonjxT5qGfpUsXKYYWeabA"
    )


def test_solana_bip44_index(manager):
    key_pair = manager.derive_from_mnemonic(ABANDON_ABOUT, Chain.SOLANA, index=5)
    assert str(key_pair.path) == "m/44'/501'/5'/0'"
    assert key_pair.curve == Curve.ED25519
    assert get_adapter(Chain.SOLANA).derive_address(key_pair.public_key) == (
        "2EUrWmf5xMmWER9BtDbXbGbZjoL7R3eTDMXYR6H6cKPj"
    )


def test_solana_secret_import_export(manager):
    secret = (
        "2yj1p1pVstUJ3iVVJt4NjqYf6ikb3mK2ZAkxwYiZNUc5QECNhBxmvoRMpy"
        "zoRgyYMpYGbS8tcPmwriSTZ6nUd81B"
    )
    key_pair = manager.from_solana_secret(secret)
    assert get_adapter(Chain.SOLANA).derive_address(key_pair.public_key) == (
        "2EUrWmf5xMmWER9BtDbXbGbZjoL7R3eTDMXYR6H6cKPj"
    )
    assert KeyManager.to_solana_secret(key_pair) == secret

    derived = manager.derive_from_mnemonic(ABANDON_ABOUT, Chain.SOLANA, index=5)
    assert derived.public_key == key_pair.public_key


def test_derivation_is_deterministic(manager):
    seed = bytes(range(64))
    for chain in Chain:
        first = manager.derive(seed, manager.config(chain).default_path(3), chain)
        second = manager.derive(seed, manager.config(chain).default_path(3), chain)
        assert first == second
        assert first.chain == chain


def test_different_index_gives_different_key(manager):
    first = manager.derive_from_mnemonic(ABANDON_ABOUT, Chain.EVM, index=0)
    second = manager.derive_from_mnemonic(ABANDON_ABOUT, Chain.EVM, index=1)
    assert first.public_key != second.public_key


def test_invalid_inputs(manager):
    with pytest.raises(InvalidMnemonicError):
        manager.derive_from_mnemonic(" ".join(["abandon"] * 12), Chain.EVM)
    with pytest.raises(InvalidDerivationPathError):
        manager.derive_from_mnemonic(ABANDON_ABOUT, Chain.SOLANA, path="m/44'/501'/0'/0")
    with pytest.raises(InvalidDerivationPathError):
        manager.derive(bytes(32), "m/44'/x", Chain.EVM)
    with pytest.raises(UnsupportedChainError):
        manager.derive(bytes(32), "m/0", "cosmos")


def test_from_private_key_evm_vectors(manager):
    evm = get_adapter(Chain.EVM)
    key_pair = manager.from_private_key(
        "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318", Chain.EVM
    )
    assert evm.derive_address(key_pair.public_key) == "0x2c7536E3605D9C16a7a3D7b1898e529396a65c23"
    assert KeyManager.to_hex(key_pair) == (
        "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
    )

    with pytest.raises(ValidationError):
        manager.from_private_key(bytes(32), Chain.EVM)
    with pytest.raises(ValidationError):
        manager.from_private_key(b"\xff" * 32, Chain.EVM)


def test_wif_roundtrip(manager):
    key_pair = manager.from_private_key("01" * 32, Chain.BITCOIN)
    for network in (Network.MAINNET, Network.TESTNET):
        wif = KeyManager.to_wif(key_pair, network)
        assert wif[0] in ("K", "L", "c")
        assert manager.from_wif(wif) == key_pair

    with pytest.raises(ChainMismatchError):
        KeyManager.to_wif(manager.from_private_key("01" * 32, Chain.EVM))
    with pytest.raises(ValidationError):
        manager.from_wif("notawif")


def test_generate_returns_valid_keys(manager):
    for chain in Chain:
        key_pair = manager.generate(chain)
        assert key_pair.chain == chain
        assert len(key_pair.private_key) == 32
    assert manager.generate(Chain.EVM) != manager.generate(Chain.EVM)


def test_key_pair_wipe_and_context_manager(manager):
    with manager.derive_from_mnemonic(ABANDON_ABOUT, Chain.EVM) as key_pair:
        buffer = key_pair.private_key
        assert any(buffer)
    assert key_pair.is_wiped
    assert not any(buffer)
    with pytest.raises(SigningError):
        key_pair.private_key


def test_key_pair_wiped_on_error(manager):
    key_pair = manager.generate(Chain.SOLANA)
    buffer = key_pair.private_key
    with pytest.raises(RuntimeError):
        with key_pair:
            raise RuntimeError("boom")
    assert not any(buffer)


def test_key_pair_repr_masks_private_key(manager):
    key_pair = manager.from_private_key("01" * 32, Chain.EVM)
    assert "01" * 32 not in repr(key_pair)
    assert key_pair.public_key.hex() in repr(key_pair)


def test_key_pair_chain_check():
    key_pair = KeyPair(b"\x01" * 32, b"\x02" * 33, Chain.EVM, Curve.SECP256K1)
    key_pair.ensure_chain(Chain.EVM)
    with pytest.raises(ChainMismatchError):
        key_pair.ensure_chain(Chain.SOLANA)


def test_der_signature_roundtrip():
    r = 1
    s = 2
    sig = encode_der_signature(r, s)
    parsed_r, parsed_s, sighash = parse_der_signature(sig)
    assert parsed_r == r
    assert parsed_s == s
    assert sighash is None

    high = 2**255 + 7
    with_type = encode_der_signature(high, s, 0x01)
    assert parse_der_signature(with_type, has_sighash=True) == (high, s, 0x01)
    with pytest.raises(ValidationError):
        parse_der_signature(b"\x31\x00")


def test_derive_public_key_from_xpub(manager):
    seed = bytes(range(64))
    account = manager.derive(seed, "m/44'/60'/0'", Chain.EVM)
    child = manager.derive(seed, "m/44'/60'/0'/0/4", Chain.EVM)

    xpub = HDNode.from_seed(seed).derive_path("m/44'/60'/0'").extended_public_key()
    assert manager.derive_public_key(xpub, "m/0/4", Chain.EVM) == child.public_key
    assert account.public_key != child.public_key

    with pytest.raises(KeyDerivationError):
        manager.derive_public_key(xpub, "m/0'", Chain.EVM)
    with pytest.raises(KeyDerivationError):
        manager.derive_public_key(xpub, "m/0", Chain.SOLANA)
