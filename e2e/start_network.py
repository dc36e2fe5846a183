# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the Apache 2.0 License.
import argparse
import os
import time

import e2e.command
import e2e.env
import e2e.network
import e2e.reporting
from e2e.network import Who
from e2e.testdir import TestDir
from e2e.validators import ANOTHER_CHAIN_PORT_OFFSET, SetValidators, default_port_offset

from loguru import logger as LOG


def cli_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Bootstrap a local network and keep it set up until interrupted",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "-n",
        "--validators",
        help="Number of genesis validators",
        type=int,
        default=1,
    )
    parser.add_argument(
        "--working-dir",
        help="Repository root holding the genesis templates and the built wasm",
        default=None,
    )
    parser.add_argument(
        "--timeout-commit",
        help="Consensus commit timeout override, e.g. 1s",
        default=None,
    )
    parser.add_argument(
        "--another-chain",
        help="Offset all the ports, to run alongside another local network",
        action="store_true",
    )
    parser.add_argument(
        "--temp-path",
        help="Parent directory of the test directory",
        default=e2e.env.temp_path(),
    )
    return parser.parse_args(argv)


def run(args):
    working_dir = args.working_dir or e2e.command.working_dir()
    working_dir = os.path.abspath(working_dir)
    if args.another_chain:

        def port_offset(ix):
            return ANOTHER_CHAIN_PORT_OFFSET + default_port_offset(ix)

    else:
        port_offset = default_port_offset

    LOG.info(f"Starting network with {args.validators} validator(s)...")
    with e2e.network.network(
        SetValidators(args.validators, port_offset, working_dir),
        consensus_timeout_commit=args.timeout_commit,
        working_dir=working_dir,
        test_dir=TestDir(keep=True, parent_dir=args.temp_path),
    ) as test:
        LOG.success(f"Chain ID: {test.net.chain_id}")
        LOG.info(f"Non-validator base dir: {test.get_base_dir(e2e.network.NON_VALIDATOR)}")
        for ix in range(args.validators):
            LOG.info(f"validator-{ix} base dir: {test.get_base_dir(Who.validator(ix))}")
        LOG.info("Press Ctrl+C to stop")
        try:
            while True:
                time.sleep(60)
        except KeyboardInterrupt:
            LOG.info("Stopping")


def main(argv=None):
    e2e.reporting.install()
    run(cli_args(argv))


if __name__ == "__main__":
    main()
