# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the Apache 2.0 License.
import os

from cryptography.hazmat.primitives.asymmetric import ed25519
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    PrivateFormat,
    PublicFormat,
    NoEncryption,
)

import e2e.path
from e2e.genesis import ED25519_PK_TAG, encode_public_key, read_toml, write_toml

from loguru import logger as LOG

UNENCRYPTED_PREFIX = "unencrypted:"


class WalletError(Exception):
    pass


class Wallet:
    """
    Pre-genesis wallet store, kept in `wallet.toml` in its store directory.
    """

    def __init__(self, store_dir, store):
        self.store_dir = store_dir
        self.store = store

    @classmethod
    def load(cls, store_dir):
        path = e2e.path.wallet_file(store_dir)
        if not os.path.isfile(path):
            raise WalletError(f"Could not locate wallet at {path}")
        return cls(store_dir, read_toml(path))

    def save(self):
        write_toml(e2e.path.wallet_file(self.store_dir), self.store)

    @property
    def keys(self) -> dict:
        return self.store.setdefault("keys", {})

    @property
    def public_keys(self) -> dict:
        return self.store.setdefault("public_keys", {})

    def find_public_key(self, alias):
        return self.public_keys.get(alias)

    def gen_store_secret_key(self, alias, force=False):
        """
        Generate a new ed25519 key stored under `alias`, overwriting an
        existing key with that alias only when `force` is set. Returns the
        encoded public key.
        """
        if alias in self.keys and not force:
            raise WalletError(f"Wallet already has a key with alias {alias}")
        sk = ed25519.Ed25519PrivateKey.generate()
        raw_sk = sk.private_bytes(Encoding.Raw, PrivateFormat.Raw, NoEncryption())
        raw_pk = sk.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
        pk = encode_public_key(raw_pk)
        self.keys[alias] = UNENCRYPTED_PREFIX + ED25519_PK_TAG + raw_sk.hex()
        self.public_keys[alias] = pk
        LOG.debug(f"Generated key {alias}: {pk}")
        return pk
