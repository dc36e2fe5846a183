# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the Apache 2.0 License.
import pytest

from e2e.genesis import is_public_key
from e2e.wallet import UNENCRYPTED_PREFIX, Wallet, WalletError

from conftest import ALBERT_PK, write_toml


@pytest.fixture
def store_dir(tmp_path):
    write_toml(
        tmp_path / "wallet.toml",
        {"keys": {"albert-key": "unencrypted:00" + "11" * 32}, "public_keys": {"albert-key": ALBERT_PK}},
    )
    return tmp_path


def test_load_missing_wallet(tmp_path):
    with pytest.raises(WalletError):
        Wallet.load(tmp_path)


def test_gen_store_secret_key(store_dir):
    wallet = Wallet.load(store_dir)
    pk = wallet.gen_store_secret_key("validator-0-balance-key")
    assert is_public_key(pk)
    assert wallet.find_public_key("validator-0-balance-key") == pk
    wallet.save()

    reloaded = Wallet.load(store_dir)
    assert reloaded.find_public_key("validator-0-balance-key") == pk
    assert reloaded.find_public_key("albert-key") == ALBERT_PK
    sk = reloaded.keys["validator-0-balance-key"]
    assert sk.startswith(UNENCRYPTED_PREFIX + "00")
    assert len(sk) == len(UNENCRYPTED_PREFIX) + 2 + 64


def test_existing_alias_needs_force(store_dir):
    wallet = Wallet.load(store_dir)
    with pytest.raises(WalletError):
        wallet.gen_store_secret_key("albert-key")
    pk = wallet.gen_store_secret_key("albert-key", force=True)
    assert pk != ALBERT_PK
