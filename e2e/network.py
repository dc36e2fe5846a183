# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the Apache 2.0 License.
import asyncio
import os
from dataclasses import dataclass
from typing import Optional

import e2e.command
import e2e.env
import e2e.path
import e2e.reporting
import e2e.wasm
from e2e.command import Bin
from e2e.errors import UnexpectedOutput
from e2e.genesis import ChainId, FinalizedGenesis, GenesisTemplates
from e2e.session import caller_location
from e2e.testdir import TestDir
from e2e.validators import GenesisMutation, SetValidators

from loguru import logger as LOG

# Genesis templates source, relative to the working directory. Contains a
# single validator "validator-0", more can be added with SetValidators.
SINGLE_NODE_NET_GENESIS = os.path.join("genesis", "localnet")

CHAIN_PREFIX = "e2e-test"
GENESIS_TIME = "2023-08-30T00:00:00Z"

SETUP_CMD_TIMEOUT_S = 5

DERIVED_CHAIN_ID_REGEX = r"Derived chain ID: .*\n"
DERIVED_CHAIN_ID_PREFIX = "Derived chain ID: "
JOIN_NETWORK_SUCCESS = "Successfully configured for chain"


@dataclass(frozen=True)
class Who:
    """
    Participant a command runs as: the non-validator (no index) or the
    genesis validator with the given index.
    """

    index: Optional[int] = None

    @classmethod
    def validator(cls, index):
        return cls(index)

    @property
    def is_validator(self):
        return self.index is not None

    @property
    def alias(self):
        return f"validator-{self.index}" if self.is_validator else None


NON_VALIDATOR = Who()


@dataclass(frozen=True)
class Network:
    chain_id: ChainId


class Test:
    """
    Handle on a bootstrapped network. Commands run through it default to
    the non-validator's base directory. Leaving the `with` block (or
    calling close()) releases the test directory.
    """

    __test__ = False

    def __init__(self, working_dir, test_dir: TestDir, net: Network):
        # The dir where the tests run from, usually the repo root dir
        self.working_dir = working_dir
        self.test_dir = test_dir
        self.net = net
        self._async_runtime = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def close(self):
        if self._async_runtime is not None:
            self._async_runtime.close()
            self._async_runtime = None
        self.test_dir.release()

    def get_base_dir(self, who: Who):
        if who.is_validator:
            return e2e.path.validator_base_dir(self.test_dir.path(), who.alias)
        return self.test_dir.path()

    def run_cmd(self, bin: Bin, args, timeout_sec, loc=None):
        return self.run_cmd_as(
            NON_VALIDATOR, bin, args, timeout_sec, loc=loc or caller_location()
        )

    def run_cmd_as(self, who: Who, bin: Bin, args, timeout_sec, loc=None):
        return e2e.command.run_cmd(
            bin,
            args,
            timeout_sec,
            self.working_dir,
            self.get_base_dir(who),
            loc=loc or caller_location(),
        )

    def async_runtime(self) -> asyncio.AbstractEventLoop:
        """
        Event loop for async client code, created on first use.
        """
        if self._async_runtime is None:
            self._async_runtime = asyncio.new_event_loop()
        return self._async_runtime


def _load_templates(templates_dir, working_dir):
    LOG.info(f"Loading genesis templates from {templates_dir}")
    templates = GenesisTemplates.read_toml_files(templates_dir)
    # Validator accounts and their self-bonds are only ever produced here
    templates.clear_validator_accounts()
    templates.remove_self_bonds()
    templates.set_whitelists(
        e2e.wasm.get_all_wasms_hashes(working_dir, "vp_"),
        e2e.wasm.get_all_wasms_hashes(working_dir, "tx_"),
    )
    return templates


def _copy_main_wallet(src_store_dir, dst_store_dir, who="default non-validator"):
    src_path = e2e.path.wallet_file(src_store_dir)
    dst_path = e2e.path.wallet_file(dst_store_dir)
    LOG.info(f"Copying main pre-genesis wallet for {who} from {src_path} to {dst_path}")
    e2e.path.copy_file(src_path, dst_path)


def _init_network(templates_path, genesis_dir, working_dir, consensus_timeout_commit):
    """
    Runs `init-network` on the updated templates to finalize genesis, and
    returns the chain ID it derived.
    """
    LOG.info("Finalizing network from genesis templates")
    args = [
        "utils",
        "init-network",
        "--templates-path",
        templates_path,
        "--chain-prefix",
        CHAIN_PREFIX,
        "--wasm-checksums-path",
        e2e.path.wasm_checksums_path(working_dir),
        "--genesis-time",
        GENESIS_TIME,
        "--archive-dir",
        genesis_dir,
    ]
    if consensus_timeout_commit is not None:
        args += ["--consensus-timeout-commit", consensus_timeout_commit]
    with e2e.command.run_cmd(
        Bin.CLIENT,
        args,
        SETUP_CMD_TIMEOUT_S,
        working_dir,
        genesis_dir,
        loc=caller_location(0),
    ) as init_network:
        unread, matched = init_network.expect_regex(DERIVED_CHAIN_ID_REGEX)
        try:
            chain_id = ChainId.from_str(
                matched.strip().split(DERIVED_CHAIN_ID_PREFIX, 1)[1]
            )
        except ValueError as e:
            LOG.error(f"Invalid chain ID from: {init_network}")
            raise UnexpectedOutput(
                f"Could not parse derived chain ID: {e}",
                command=init_network.cmd_str,
                location=init_network.location,
                log_path=init_network.log_path,
                output=matched,
            ) from e
        LOG.debug(f"'init-network' unread output: {unread}")
        init_network.assert_exit_success()
    return chain_id


def _join_network(chain_id, base_dir, working_dir, genesis_validator=None):
    args = ["utils", "join-network", "--chain-id", str(chain_id)]
    if genesis_validator is not None:
        args += ["--genesis-validator", genesis_validator]
    args.append("--dont-prefetch-wasm")
    with e2e.command.run_cmd(
        Bin.CLIENT,
        args,
        SETUP_CMD_TIMEOUT_S,
        working_dir,
        base_dir,
        loc=caller_location(0),
    ) as join_network:
        join_network.expect_text(JOIN_NETWORK_SUCCESS)
        join_network.assert_exit_success()
    e2e.wasm.copy_wasm_to_chain_dir(working_dir, base_dir, chain_id)


def network(
    update_genesis: GenesisMutation,
    consensus_timeout_commit=None,
    working_dir=None,
    test_dir=None,
):
    """
    Bootstrap a network from the genesis templates, changed by
    `update_genesis`, and join it with every genesis validator and with a
    non-validator.
    :param update_genesis: change applied to the templates, e.g. SetValidators.
    :param consensus_timeout_commit: optional override of the consensus commit timeout.
    :param working_dir: repository root holding the templates and wasm. Defaults to working_dir().
    :param test_dir: TestDir to set the network up in. A new one is created by default.
    :return: a Test handle, to be used as a context manager.
    """
    e2e.reporting.install()
    working_dir = working_dir or e2e.command.working_dir()
    test_dir = test_dir or TestDir()
    try:
        net = _bootstrap(update_genesis, consensus_timeout_commit, working_dir, test_dir)
    except BaseException:
        LOG.error(f"Failed to set up network in {test_dir.path()}")
        test_dir.release()
        raise
    LOG.success(f"Network {net.chain_id} is ready")
    return Test(working_dir, test_dir, net)


def _bootstrap(update_genesis, consensus_timeout_commit, working_dir, test_dir):
    base_dir = test_dir.path()
    templates_dir = os.path.join(working_dir, SINGLE_NODE_NET_GENESIS)
    templates = _load_templates(templates_dir, working_dir)

    main_wallet_dir = os.path.join(base_dir, e2e.path.PRE_GENESIS_DIR)
    _copy_main_wallet(
        os.path.join(templates_dir, "src", e2e.path.PRE_GENESIS_DIR), main_wallet_dir
    )

    templates = update_genesis.apply(templates, base_dir)

    updated_templates_dir = os.path.join(base_dir, e2e.path.TEMPLATES_DIR)
    LOG.info(f"Writing updated genesis templates to {updated_templates_dir}")
    templates.write_toml_files(updated_templates_dir)

    genesis_dir = os.path.join(base_dir, e2e.path.GENESIS_DIR)
    os.makedirs(genesis_dir, exist_ok=True)
    chain_id = _init_network(
        updated_templates_dir, genesis_dir, working_dir, consensus_timeout_commit
    )
    net = Network(chain_id)

    # Lets `join-network` find the archive of the new chain
    e2e.env.set_network_configs_dir(genesis_dir)

    finalized = FinalizedGenesis.read_toml_files(
        os.path.join(genesis_dir, str(chain_id))
    )
    validator_aliases = finalized.validator_aliases()
    expected = update_genesis.expected_validator_count
    if expected is not None and expected != len(validator_aliases):
        LOG.warning(
            f"Requested {expected} validators but finalized genesis has {len(validator_aliases)}: {sorted(validator_aliases)}"
        )

    for alias in sorted(validator_aliases):
        validator_base_dir = e2e.path.validator_base_dir(base_dir, alias)
        _copy_main_wallet(
            main_wallet_dir,
            os.path.join(validator_base_dir, e2e.path.PRE_GENESIS_DIR),
            who=alias,
        )
        LOG.info(f"Joining network with {alias}")
        _join_network(chain_id, validator_base_dir, working_dir, genesis_validator=alias)

    LOG.info("Joining network with a default non-validator node")
    _join_network(chain_id, base_dir, working_dir)
    return net


def single_node_net(working_dir=None):
    """
    Set up a network with a single genesis validator node.
    """
    return network(
        SetValidators(1, port_offset=lambda _: 0, working_dir=working_dir),
        working_dir=working_dir,
    )
