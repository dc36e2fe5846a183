# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the Apache 2.0 License.
import abc
import os

import e2e.command
import e2e.path
from e2e.command import Bin
from e2e.errors import HarnessError, ProvisioningError
from e2e.genesis import (
    NATIVE_MAX_DECIMAL_PLACES,
    NATIVE_TOKEN,
    GenesisTemplates,
    read_toml,
)
from e2e.session import caller_location
from e2e.wallet import Wallet, WalletError

from loguru import logger as LOG

NET_ADDRESS_HOST = "127.0.0.1"
DEFAULT_NET_ADDRESS_PORT = 27656

# Offset the ports used in the network configuration to avoid shared resources
ANOTHER_CHAIN_PORT_OFFSET = 1000

BALANCE_KEY_AMOUNT = 3000000
COMMISSION_RATE = "0.05"
MAX_COMMISSION_RATE_CHANGE = "0.01"
VALIDATOR_EMAIL = "null@null.net"
TRANSFER_FROM_SOURCE_AMOUNT = "2000000"
SELF_BOND_AMOUNT = "100000"

INIT_VALIDATOR_TIMEOUT_S = 5


def default_port_offset(ix):
    return 6 * ix


def validator_alias(ix):
    return f"validator-{ix}"


def balance_key_alias(ix):
    return f"validator-{ix}-balance-key"


def validator_net_address(ix, port_offset=default_port_offset):
    return f"{NET_ADDRESS_HOST}:{DEFAULT_NET_ADDRESS_PORT + port_offset(ix)}"


class GenesisMutation(abc.ABC):
    """
    Change applied to the genesis templates before the network is
    finalized. Runs exactly once per bootstrap.
    """

    # Number of validators the mutation registers, if it registers any
    expected_validator_count = None

    @abc.abstractmethod
    def apply(self, templates: GenesisTemplates, base_dir) -> GenesisTemplates:
        pass


class KeepTemplates(GenesisMutation):
    def apply(self, templates, base_dir):
        return templates


class SetValidators(GenesisMutation):
    """
    Registers `num` genesis validators. For each of them:
    - generate a balance key in the pre-genesis wallet, and fund it
    - run `init-genesis-validator` signed by the balance key
    - add the resulting signed transactions to the templates
    - move the validator's pre-genesis files to its own base directory
    """

    def __init__(self, num, port_offset=default_port_offset, working_dir=None):
        self.num = num
        self.port_offset = port_offset
        self.working_dir = working_dir

    @property
    def expected_validator_count(self):
        return self.num

    def apply(self, templates, base_dir):
        working_dir = self.working_dir or e2e.command.working_dir()
        wallet_path = os.path.join(base_dir, e2e.path.PRE_GENESIS_DIR)
        for ix in range(self.num):
            try:
                self._add_validator(ix, templates, base_dir, wallet_path, working_dir)
            except HarnessError as e:
                LOG.error(f"Failed to set up {validator_alias(ix)}")
                raise ProvisioningError(
                    f"Could not set up {validator_alias(ix)}: {e.msg}",
                    command=e.command,
                    location=e.location or caller_location(),
                    log_path=e.log_path,
                    output=e.output,
                ) from e
            except (OSError, WalletError) as e:
                LOG.error(f"Failed to set up {validator_alias(ix)}")
                raise ProvisioningError(
                    f"Could not set up {validator_alias(ix)}: {e}",
                    location=caller_location(),
                ) from e
        return templates

    def _add_validator(self, ix, templates, base_dir, wallet_path, working_dir):
        alias = validator_alias(ix)
        key_alias = balance_key_alias(ix)

        # Saved straight away so that a later failure keeps this key
        wallet = Wallet.load(wallet_path)
        pk = wallet.gen_store_secret_key(key_alias, force=True)
        wallet.save()

        templates.set_balance(
            NATIVE_TOKEN, pk, BALANCE_KEY_AMOUNT, NATIVE_MAX_DECIMAL_PLACES
        )

        args = [
            "utils",
            "init-genesis-validator",
            "--source",
            key_alias,
            "--alias",
            alias,
            "--net-address",
            validator_net_address(ix, self.port_offset),
            "--commission-rate",
            COMMISSION_RATE,
            "--max-commission-rate-change",
            MAX_COMMISSION_RATE_CHANGE,
            "--email",
            VALIDATOR_EMAIL,
            "--transfer-from-source-amount",
            TRANSFER_FROM_SOURCE_AMOUNT,
            "--self-bond-amount",
            SELF_BOND_AMOUNT,
            "--unsafe-dont-encrypt",
        ]
        with e2e.command.run_cmd(
            Bin.CLIENT,
            args,
            INIT_VALIDATOR_TIMEOUT_S,
            working_dir,
            base_dir,
            loc=caller_location(0),
        ) as init_genesis_validator:
            init_genesis_validator.assert_exit_success()

        pre_genesis_path = e2e.path.validator_pre_genesis_dir(base_dir, alias)
        pre_genesis_txs = read_toml(
            e2e.path.validator_pre_genesis_txs_file(pre_genesis_path)
        )
        templates.merge_transactions(pre_genesis_txs)

        dest_path = e2e.path.validator_pre_genesis_dir(
            e2e.path.validator_base_dir(base_dir, alias), alias
        )
        LOG.info(
            f"Copying pre-genesis validator-wallet for {alias} from {pre_genesis_path} to {dest_path}"
        )
        e2e.path.move_dir(pre_genesis_path, dest_path)


def set_validators(num, genesis, base_dir, port_offset=default_port_offset, working_dir=None):
    """
    Add `num` validators to the `genesis` templates. Do not call more than
    once on the same templates.
    """
    return SetValidators(num, port_offset, working_dir).apply(genesis, base_dir)
