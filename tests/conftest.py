# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the Apache 2.0 License.
import json
import os
import stat
import sys

import pytest
import tomli_w

import e2e.env
import e2e.reporting
from e2e.constants import NAM, TX_TRANSFER_WASM, VP_USER_WASM

from loguru import logger as LOG

ALBERT_PK = "00" + "ab" * 32

WASM_CHECKSUMS = {
    TX_TRANSFER_WASM: "tx_transfer.ABCDEF0123.wasm",
    "tx_bond.wasm": "tx_bond.00ff00ff00.wasm",
    VP_USER_WASM: "vp_user.1234abcd99.wasm",
}

FAKE_CLIENT = r'''
import hashlib
import os
import sys
import tomllib

import tomli_w


def arg(args, name, default=None):
    return args[args.index(name) + 1] if name in args else default


def write(path, document):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as f:
        tomli_w.dump(document, f)


def init_genesis_validator(base_dir, args):
    if os.environ.get("FAKE_FAIL_INIT_VALIDATOR"):
        print("Error: could not sign genesis transactions")
        return 1
    alias = arg(args, "--alias")
    tx = {
        "alias": alias,
        "net_address": arg(args, "--net-address"),
        "commission_rate": arg(args, "--commission-rate"),
        "max_commission_rate_change": arg(args, "--max-commission-rate-change"),
        "email": arg(args, "--email"),
        "source": arg(args, "--source"),
    }
    bond = {
        "data": {
            "source": alias,
            "validator": alias,
            "amount": arg(args, "--self-bond-amount"),
        }
    }
    path = os.path.join(base_dir, "pre-genesis", alias, "transactions.toml")
    write(path, {"validator_account": [tx], "bond": [bond]})
    print(f"Generating validator {alias} keys")
    print(f"Pre-genesis transactions written to {path}")
    return 0


def init_network(args):
    templates = arg(args, "--templates-path")
    digest = hashlib.sha256()
    for name in sorted(os.listdir(templates)):
        with open(os.path.join(templates, name), "rb") as f:
            digest.update(f.read())
    digest.update(arg(args, "--genesis-time").encode())
    chain_id = f"{arg(args, '--chain-prefix')}.{digest.hexdigest()[:20]}"
    if os.environ.get("FAKE_BAD_CHAIN_ID"):
        print("Finalizing genesis")
        print(f"Derived chain ID: {chain_id} with trailing words")
        return 0
    with open(os.path.join(templates, "transactions.toml"), "rb") as f:
        txs = tomllib.load(f)
    txs["validator_account"] = [
        {"address": f"tnam1{i}", "tx": tx}
        for i, tx in enumerate(txs.get("validator_account", []))
    ]
    chain_dir = os.path.join(arg(args, "--archive-dir"), chain_id)
    write(os.path.join(chain_dir, "transactions.toml"), txs)
    print("Finalizing genesis")
    print(f"Derived chain ID: {chain_id}")
    print(f"Genesis files stored at {chain_dir}")
    return 0


def join_network(base_dir, args):
    chain_id = arg(args, "--chain-id")
    archive = os.path.join(os.environ["NAMADA_NETWORK_CONFIGS_DIR"], chain_id)
    if not os.path.isdir(archive):
        print(f"Missing network archive {archive}")
        return 1
    validator = arg(args, "--genesis-validator")
    if validator is not None:
        for path in (
            os.path.join(base_dir, "pre-genesis", "wallet.toml"),
            os.path.join(base_dir, "pre-genesis", validator),
        ):
            if not os.path.exists(path):
                print(f"Missing {path}")
                return 1
    config = {
        "ledger": {
            "cometbft": {"p2p": {"allow_duplicate_ip": False}},
            "ethereum_bridge": {"mode": "Off"},
        }
    }
    write(os.path.join(base_dir, chain_id, "config.toml"), config)
    os.makedirs(os.path.join(base_dir, chain_id, "wasm"), exist_ok=True)
    print(f"Joining network {chain_id}")
    print(f"Successfully configured for chain {chain_id}.")
    return 0


def main(argv):
    base_dir = arg(argv, "--base-dir")
    args = argv[argv.index("--base-dir") + 2 :]
    if args[:2] == ["utils", "init-genesis-validator"]:
        return init_genesis_validator(base_dir, args)
    if args[:2] == ["utils", "init-network"]:
        return init_network(args)
    if args[:2] == ["utils", "join-network"]:
        return join_network(base_dir, args)
    print(f"Unknown command: {args}")
    return 2


sys.exit(main(sys.argv[1:]))
'''

FAKE_NODE = r'''
import sys
import time

if "fail" in sys.argv:
    print("Error: address already in use 127.0.0.1:27656")
    sys.exit(1)

print("Starting ledger node")
height = 0
try:
    while True:
        height += 1
        print(f"Committed block hash at height {height}")
        time.sleep(0.05)
except KeyboardInterrupt:
    print("Shutting down ledger node")
'''

FAKE_WALLET = r'''
import json
import os
import sys

keys = ["NAMADA_LOG", "NAMADA_CMT_STDOUT", "CMT_LOG_LEVEL", "NAMADA_LOG_COLOR"]
print("Reading wallet")
print(json.dumps({
    "args": sys.argv[1:],
    "cwd": os.getcwd(),
    "env": {k: os.environ.get(k) for k in keys},
}))
'''


def write_executable(path, body):
    with open(path, "w", encoding="utf-8") as f:
        f.write(f"#!{sys.executable}\n{body}")
    os.chmod(path, os.stat(path).st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


@pytest.fixture(scope="session", autouse=True)
def reporting():
    e2e.reporting.install()


@pytest.fixture
def bin_dir(tmp_path, monkeypatch):
    path = tmp_path / "bin"
    path.mkdir()
    write_executable(path / "namadac", FAKE_CLIENT)
    write_executable(path / "namadan", FAKE_NODE)
    write_executable(path / "namadaw", FAKE_WALLET)
    monkeypatch.setenv(e2e.env.ENV_VAR_USE_PREBUILT_BINARIES, str(path))
    # Recorded first so that the value set by a bootstrap is undone
    monkeypatch.setenv(e2e.env.ENV_VAR_NETWORK_CONFIGS_DIR, "")
    monkeypatch.delenv(e2e.env.ENV_VAR_NETWORK_CONFIGS_DIR)
    monkeypatch.delenv(e2e.env.ENV_VAR_DEBUG, raising=False)
    return path


def write_toml(path, document):
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as f:
        tomli_w.dump(document, f)


@pytest.fixture
def working_dir(tmp_path):
    """
    A repository checkout with the localnet genesis templates, the main
    pre-genesis wallet and some built wasm.
    """
    root = tmp_path / "repo"
    templates = root / "genesis" / "localnet"
    write_toml(
        templates / "parameters.toml",
        {
            "parameters": {"max_tx_bytes": 1048576, "epochs_per_year": 31536000},
            "pos_params": {"max_validator_slots": 128},
        },
    )
    write_toml(
        templates / "balances.toml",
        {"token": {NAM: {ALBERT_PK: "1000000.000000"}}},
    )
    write_toml(
        templates / "transactions.toml",
        {
            "established_account": [{"vp": "vp_user", "public_keys": [ALBERT_PK]}],
            "validator_account": [{"alias": "validator-0", "net_address": "127.0.0.1:26656"}],
            "bond": [
                {"data": {"source": "validator-0", "validator": "validator-0", "amount": "1"}},
                {"data": {"source": "albert", "validator": "validator-0", "amount": "2"}},
            ],
        },
    )
    write_toml(templates / "tokens.toml", {"token": {NAM: {"denom": 6}}})
    write_toml(
        templates / "validity-predicates.toml",
        {"wasm": {"vp_user": {"filename": VP_USER_WASM}}},
    )
    write_toml(
        templates / "src" / "pre-genesis" / "wallet.toml",
        {
            "keys": {"albert-key": "unencrypted:00" + "11" * 32},
            "public_keys": {"albert-key": ALBERT_PK},
        },
    )
    wasm_dir = root / "wasm"
    wasm_dir.mkdir()
    with open(wasm_dir / "checksums.json", "w", encoding="utf-8") as f:
        json.dump(WASM_CHECKSUMS, f)
    for name in WASM_CHECKSUMS.values():
        (wasm_dir / name).write_bytes(b"\x00asm\x01\x00\x00\x00")
    return root


@pytest.fixture
def log_messages():
    messages = []
    handler_id = LOG.add(lambda m: messages.append(m.record), level="DEBUG")
    yield messages
    LOG.remove(handler_id)
