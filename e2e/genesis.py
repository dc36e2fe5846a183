# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the Apache 2.0 License.
import glob
import os
import string
import tomllib
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Set

import tomli_w

from e2e.errors import TemplateError

from loguru import logger as LOG

NATIVE_TOKEN = "nam"
NATIVE_MAX_DECIMAL_PLACES = 6

MAX_CHAIN_ID_LENGTH = 50

# Scheme tag prefixed to the hex encoding of an ed25519 public key
ED25519_PK_TAG = "00"
ED25519_PK_LENGTH = 32

PARAMETERS_FILE = "parameters.toml"
BALANCES_FILE = "balances.toml"
TRANSACTIONS_FILE = "transactions.toml"
TOKENS_FILE = "tokens.toml"
VPS_FILE = "validity-predicates.toml"

TEMPLATE_FILES = (
    PARAMETERS_FILE,
    BALANCES_FILE,
    TRANSACTIONS_FILE,
    TOKENS_FILE,
    VPS_FILE,
)

VALIDATOR_ACCOUNT_TXS = "validator_account"
BOND_TXS = "bond"


def read_toml(path, name=None):
    name = name or os.path.basename(path)
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except FileNotFoundError as e:
        raise TemplateError(f"Missing {name} at {path}") from e
    except tomllib.TOMLDecodeError as e:
        raise TemplateError(f"Malformed {name} at {path}: {e}") from e


def write_toml(path, document):
    with open(path, "wb") as f:
        tomli_w.dump(document, f)


def encode_public_key(raw_public_key: bytes) -> str:
    return ED25519_PK_TAG + raw_public_key.hex()


def is_public_key(value: str) -> bool:
    return (
        len(value) == len(ED25519_PK_TAG) + 2 * ED25519_PK_LENGTH
        and value.startswith(ED25519_PK_TAG)
        and all(c in string.hexdigits for c in value)
    )


def denominated_amount(amount, denom) -> str:
    """
    Renders a whole token `amount` with `denom` decimal places.
    """
    return f"{Decimal(amount):.{denom}f}"


def tx_data(tx: dict) -> dict:
    # Signed transactions keep their payload under "data"
    return tx.get("data", tx)


@dataclass(frozen=True)
class ChainId:
    value: str

    @classmethod
    def from_str(cls, raw: str) -> "ChainId":
        value = raw.strip()
        if not value:
            raise ValueError("Chain ID must not be empty")
        if len(value) > MAX_CHAIN_ID_LENGTH:
            raise ValueError(
                f"Chain ID {value!r} is longer than {MAX_CHAIN_ID_LENGTH} characters"
            )
        if any(c in string.whitespace for c in value):
            raise ValueError(f"Chain ID {value!r} contains whitespace")
        return cls(value)

    def __str__(self):
        return self.value


class GenesisTemplates:
    """
    In-memory set of genesis template documents, keyed by file name. Only
    the parts the harness needs to edit are given accessors, everything
    else is written back unchanged.
    """

    def __init__(self, documents: Dict[str, dict]):
        self.documents = documents

    @classmethod
    def read_toml_files(cls, templates_dir):
        if not os.path.isdir(templates_dir):
            raise TemplateError(f"Missing genesis templates files at {templates_dir}")
        return cls(
            {
                name: read_toml(os.path.join(templates_dir, name))
                for name in TEMPLATE_FILES
            }
        )

    def write_toml_files(self, output_dir):
        os.makedirs(output_dir, exist_ok=True)
        for name, document in self.documents.items():
            write_toml(os.path.join(output_dir, name), document)

    @property
    def parameters(self) -> dict:
        return self.documents[PARAMETERS_FILE]

    @property
    def balances(self) -> dict:
        return self.documents[BALANCES_FILE]

    @property
    def transactions(self) -> dict:
        return self.documents[TRANSACTIONS_FILE]

    def clear_validator_accounts(self):
        self.transactions.pop(VALIDATOR_ACCOUNT_TXS, None)

    def remove_self_bonds(self):
        """
        Drop the bonds of validators to themselves, these are generated
        again for each validator that is added.
        """
        bonds = self.transactions.get(BOND_TXS)
        if bonds is None:
            return
        kept = []
        for bond in bonds:
            data = tx_data(bond)
            source = data.get("source", "")
            if not is_public_key(source) and source == data.get("validator"):
                LOG.debug(f"Removing self-bond of {source}")
                continue
            kept.append(bond)
        self.transactions[BOND_TXS] = kept

    def set_whitelists(self, vp_whitelist: List[str], tx_whitelist: List[str]):
        parameters = self.parameters.setdefault("parameters", {})
        parameters["vp_whitelist"] = vp_whitelist
        parameters["tx_whitelist"] = tx_whitelist

    def token_balances(self, token: str) -> dict:
        for alias, balances in self.balances.get("token", {}).items():
            if alias.lower() == token.lower():
                return balances
        raise TemplateError(f"No {token} balances found in genesis templates")

    def set_balance(self, token, public_key, amount, denom):
        self.token_balances(token)[public_key] = denominated_amount(amount, denom)

    def merge_transactions(self, txs: dict):
        """
        Add the transactions of `txs` to the templates, skipping those that
        are already present.
        """
        for kind, new_txs in txs.items():
            existing = self.transactions.setdefault(kind, [])
            for tx in new_txs:
                if tx not in existing:
                    existing.append(tx)


class FinalizedGenesis:
    """
    Genesis documents written by `init-network` under the chain's archive
    directory. Authoritative for the set of validators of the chain.
    """

    def __init__(self, documents: Dict[str, dict]):
        self.documents = documents

    @classmethod
    def read_toml_files(cls, chain_dir):
        if not os.path.isfile(os.path.join(chain_dir, TRANSACTIONS_FILE)):
            raise TemplateError(f"Missing finalized genesis files at {chain_dir}")
        return cls(
            {
                os.path.basename(path): read_toml(path)
                for path in glob.glob(os.path.join(chain_dir, "*.toml"))
            }
        )

    @property
    def transactions(self) -> dict:
        return self.documents[TRANSACTIONS_FILE]

    def validator_aliases(self) -> Set[str]:
        aliases = set()
        for finalized in self.transactions.get(VALIDATOR_ACCOUNT_TXS, []):
            tx = finalized.get("tx", finalized)
            aliases.add(str(tx["alias"]))
        return aliases
