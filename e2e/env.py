# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the Apache 2.0 License.

import os
from contextlib import contextmanager

# Run the binaries built in debug mode
ENV_VAR_DEBUG = "NAMADA_E2E_DEBUG"

# Keep the temporary files created by a test run
ENV_VAR_KEEP_TEMP = "NAMADA_E2E_KEEP_TEMP"

# Parent directory of the temporary test directories
ENV_VAR_TEMP_PATH = "NAMADA_E2E_TEMP_PATH"

# Directory holding a set of prebuilt binaries
ENV_VAR_USE_PREBUILT_BINARIES = "NAMADA_E2E_USE_PREBUILT_BINARIES"

# Set by the bootstrapper so that `join-network` can find the genesis archive
ENV_VAR_NETWORK_CONFIGS_DIR = "NAMADA_NETWORK_CONFIGS_DIR"

ENV_VAR_COMETBFT = "COMETBFT"


def is_debug():
    return os.getenv(ENV_VAR_DEBUG, "false").lower() == "true"


def keep_temp():
    val = os.getenv(ENV_VAR_KEEP_TEMP)
    if val is None:
        return False
    return val.lower() != "false"


def temp_path():
    return os.getenv(ENV_VAR_TEMP_PATH)


def prebuilt_binaries_dir():
    return os.getenv(ENV_VAR_USE_PREBUILT_BINARIES)


def set_network_configs_dir(path):
    os.environ[ENV_VAR_NETWORK_CONFIGS_DIR] = str(path)


@contextmanager
def modify_env(**kwargs):
    existing_env = dict()
    for k, v in kwargs.items():
        existing_env[k] = os.environ.get(k)
        if v is None:
            os.environ.pop(k, None)
        else:
            os.environ[k] = v
    try:
        yield
    finally:
        for k, v in existing_env.items():
            if v is None:
                os.environ.pop(k, None)
            else:
                os.environ[k] = v
