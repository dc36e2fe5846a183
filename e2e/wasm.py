# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the Apache 2.0 License.
import glob
import json
import os

import e2e.path
from e2e.errors import TemplateError

from loguru import logger as LOG


def _read_checksums(checksums_path):
    try:
        with open(checksums_path, encoding="utf-8") as f:
            checksums = json.load(f)
    except FileNotFoundError as e:
        raise TemplateError(f"Missing wasm checksums at {checksums_path}") from e
    except json.JSONDecodeError as e:
        raise TemplateError(
            f"Malformed wasm checksums at {checksums_path}: {e}"
        ) from e
    if not isinstance(checksums, dict):
        raise TemplateError(f"Wasm checksums at {checksums_path} must be an object")
    return checksums


def get_all_wasms_hashes(working_dir, prefix=""):
    """
    Hashes of the built wasm artifacts whose name starts with `prefix`,
    read from the checksums file. Each entry there is a file name of the
    form "<name>.<hash>.wasm".
    """
    checksums_path = e2e.path.wasm_checksums_path(working_dir)
    hashes = []
    for wasm in _read_checksums(checksums_path).values():
        if not wasm.startswith(prefix):
            continue
        parts = wasm.split(".")
        if len(parts) < 3:
            raise TemplateError(
                f"Wasm checksum entry {wasm!r} in {checksums_path} is not of the form <name>.<hash>.wasm"
            )
        hashes.append(parts[1].lower())
    return hashes


def copy_wasm_to_chain_dir(working_dir, base_dir, chain_id):
    """
    Copy the built wasm files into the chain directory of a participant.
    """
    built_wasm_dir = os.path.join(working_dir, e2e.path.DEFAULT_WASM_DIR)
    wasm_files = sorted(glob.glob(os.path.join(built_wasm_dir, "*.wasm")))
    if not wasm_files:
        raise FileNotFoundError(
            f"No WASM files found in {built_wasm_dir}. Please build or download them first."
        )
    target_wasm_dir = os.path.join(
        base_dir, str(chain_id), e2e.path.DEFAULT_WASM_DIR
    )
    LOG.info(f"Copying {len(wasm_files)} WASM files to {target_wasm_dir}")
    for path in wasm_files:
        e2e.path.copy_file(
            path, os.path.join(target_wasm_dir, os.path.basename(path))
        )
