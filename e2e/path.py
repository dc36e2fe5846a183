# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the Apache 2.0 License.
import os
import shutil

from loguru import logger as LOG

# Sub-directory of the test directory holding each validator's base dir
NET_ACCOUNTS_DIR = "setup"
PRE_GENESIS_DIR = "pre-genesis"
TEMPLATES_DIR = "templates"
GENESIS_DIR = "genesis"
LOGS_DIR = "logs"
DEFAULT_WASM_DIR = "wasm"

WALLET_FILE = "wallet.toml"
PRE_GENESIS_TXS_FILE = "transactions.toml"
WASM_CHECKSUMS_FILE = "checksums.json"


def build_bin_path(bin_name, binary_dir="."):
    return os.path.join(binary_dir, os.path.normpath(bin_name))


def wallet_file(store_dir):
    return os.path.join(store_dir, WALLET_FILE)


def validator_pre_genesis_dir(base_dir, alias):
    return os.path.join(base_dir, PRE_GENESIS_DIR, alias)


def validator_pre_genesis_txs_file(pre_genesis_path):
    return os.path.join(pre_genesis_path, PRE_GENESIS_TXS_FILE)


def validator_base_dir(test_dir, alias):
    return os.path.join(test_dir, NET_ACCOUNTS_DIR, alias)


def wasm_checksums_path(working_dir):
    return os.path.join(working_dir, DEFAULT_WASM_DIR, WASM_CHECKSUMS_FILE)


def copy_file(src_path, dst_path):
    """
    Copy a single file, creating the destination's parent directory.
    """
    os.makedirs(os.path.dirname(dst_path), exist_ok=True)
    LOG.debug(f"cp {src_path} {dst_path}")
    shutil.copy(src_path, dst_path)


def move_dir(src_path, dst_path):
    os.makedirs(os.path.dirname(dst_path), exist_ok=True)
    LOG.debug(f"mv {src_path} {dst_path}")
    shutil.move(src_path, dst_path)
