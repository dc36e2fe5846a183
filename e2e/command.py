# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the Apache 2.0 License.
import os
import shutil
import time
from enum import Enum

import e2e.env
import e2e.path
import e2e.reporting
from e2e.errors import HarnessError, SpawnError, StartupFailure
from e2e.session import ProcessSession, caller_location, unique_log_path

from loguru import logger as LOG

# How long a node is given to fail before it is considered started
NODE_STARTUP_GRACE_PERIOD_S = 1

# Environment always set for the binaries, so that their output can be
# matched on regardless of the caller's shell
FIXED_ENV = {
    "NAMADA_CMT_STDOUT": "true",
    "CMT_LOG_LEVEL": "info",
    "NAMADA_LOG_COLOR": "false",
}


class Bin(Enum):
    NODE = ("namadan", "info")
    CLIENT = ("namadac", "tendermint_rpc=debug")
    WALLET = ("namadaw", "info")
    RELAYER = ("namadar", "info")

    @property
    def bin_name(self):
        return self.value[0]

    @property
    def log_level(self):
        return self.value[1]


def resolve_binary(bin_name, working_dir):
    """
    Path of the binary to run: from the prebuilt binaries directory if
    set, else from the cargo target directory, else from PATH.
    """
    prebuilt_dir = e2e.env.prebuilt_binaries_dir()
    if prebuilt_dir:
        return e2e.path.build_bin_path(bin_name, binary_dir=prebuilt_dir)
    profile = "debug" if e2e.env.is_debug() else "release"
    target_path = e2e.path.build_bin_path(
        bin_name, binary_dir=os.path.join(working_dir, "target", profile)
    )
    if os.path.isfile(target_path):
        return target_path
    return shutil.which(bin_name) or bin_name


def command_env(bin):
    env = dict(os.environ)
    env.update(FIXED_ENV)
    env["NAMADA_LOG"] = bin.log_level
    return env


def sleep(seconds):
    time.sleep(seconds)


def working_dir():
    """
    The repository root, which the e2e tests run from. Also checks that the
    consensus engine needed by the nodes can be found.
    """
    path = os.path.realpath("..")
    if os.getenv(e2e.env.ENV_VAR_COMETBFT) is None and shutil.which("cometbft") is None:
        raise RuntimeError(
            "The env variable COMETBFT must be set and point to a local build of cometbft, or the cometbft binary must be on PATH"
        )
    return path


def run_cmd(bin, args, timeout_sec, working_dir, base_dir, loc=None):
    """
    Run one of the binaries as a ProcessSession, with `--base-dir base_dir`
    placed before `args`. `timeout_sec` bounds every expectation on the
    session (None to wait forever).

    Node commands are given a short grace period, and a node which has
    already exited with an error by then raises StartupFailure with its
    output instead of leaving the caller to time out.
    """
    e2e.reporting.install()
    loc = loc or caller_location()
    program = resolve_binary(bin.bin_name, working_dir)
    full_args = ["--base-dir", str(base_dir)] + [str(arg) for arg in args]
    cmd_str = " ".join([program] + full_args)

    if not (os.path.isfile(program) and os.access(program, os.X_OK)):
        LOG.error(f"Failed to run: {cmd_str} (location: {loc})")
        raise SpawnError(
            f"Binary {bin.bin_name} not found or not executable at {program}",
            command=cmd_str,
            location=loc,
        )

    session = ProcessSession.spawn(
        program,
        full_args,
        unique_log_path(base_dir, bin.bin_name),
        timeout=timeout_sec,
        cwd=str(working_dir),
        env=command_env(bin),
        name=bin.bin_name,
        location=loc,
    )
    LOG.info(f"Running:\n{session}")

    if bin == Bin.NODE:
        sleep(NODE_STARTUP_GRACE_PERIOD_S)
        exit_code = session.exit_code()
        if exit_code is not None and exit_code != 0:
            try:
                output = session._drain_to_eof()
            except HarnessError as e:
                output = f"No output found, error: {e}"
            session.close()
            LOG.error(f"Node exited during startup: {session}")
            raise StartupFailure(
                f"Failed to run, process exited with code {exit_code}",
                command=session.cmd_str,
                location=loc,
                log_path=session.log_path,
                output=output,
            )

    return session
