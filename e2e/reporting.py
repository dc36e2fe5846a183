# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the Apache 2.0 License.
import sys
import threading

import better_exceptions

from loguru import logger as LOG

LOG_FORMAT = "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"

FAILURES = []

_installed = False
_install_lock = threading.Lock()


def log_exception(args: threading.ExceptHookArgs):
    description = f"Failure in {args.thread.name}: {repr(args.exc_value)}"
    FAILURES.append(description)
    LOG.error(
        description
        + "\n"
        + "\n".join(
            better_exceptions.format_exception(
                args.exc_type, args.exc_value, args.exc_traceback
            )
        )
    )


def is_installed():
    return _installed


def install():
    """
    Set up error reporting for the whole process. Safe to call from every
    entry point: only the first call has any effect.
    """
    global _installed
    with _install_lock:
        if _installed:
            return
        _installed = True
        try:
            LOG.remove()
            LOG.add(sys.stdout, format=LOG_FORMAT)
            threading.excepthook = log_exception
        except Exception as e:
            print(f"Failed setting up error reports: {e}", file=sys.stderr)
