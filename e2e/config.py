# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the Apache 2.0 License.
import os
from enum import Enum

from e2e.genesis import read_toml, write_toml

from loguru import logger as LOG

CONFIG_FILE = "config.toml"


class EthereumBridgeMode(Enum):
    REMOTE_ENDPOINT = "RemoteEndpoint"
    SELF_HOSTED_ENDPOINT = "SelfHostedEndpoint"
    OFF = "Off"


def config_path(base_dir, chain_id):
    return os.path.join(base_dir, str(chain_id), CONFIG_FILE)


def update_actor_config(test, chain_id, who, update):
    """
    Load the node config of `who`, change it in place with `update` and
    write it back. Must be done before `who` starts running.
    """
    path = config_path(test.get_base_dir(who), chain_id)
    config = read_toml(path)
    update(config)
    LOG.debug(f"Writing updated config to {path}")
    write_toml(path, config)


def allow_duplicate_ips(test, chain_id, who):
    def update(config):
        p2p = config.setdefault("ledger", {}).setdefault("cometbft", {}).setdefault(
            "p2p", {}
        )
        p2p["allow_duplicate_ip"] = True

    update_actor_config(test, chain_id, who, update)


def set_ethereum_bridge_mode(test, chain_id, who, mode, rpc_endpoint=None):
    def update(config):
        bridge = config.setdefault("ledger", {}).setdefault("ethereum_bridge", {})
        bridge["mode"] = mode.value
        if rpc_endpoint is not None:
            bridge["oracle_rpc_endpoint"] = rpc_endpoint

    update_actor_config(test, chain_id, who, update)
