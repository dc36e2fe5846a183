# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the Apache 2.0 License.
import sys
import threading
from types import SimpleNamespace

import e2e.reporting
from e2e.errors import HarnessError


def test_install_once(monkeypatch):
    e2e.reporting.install()
    assert e2e.reporting.is_installed()

    def hook(args):
        pass

    # Later calls must not replace anything set up since
    monkeypatch.setattr(threading, "excepthook", hook)
    e2e.reporting.install()
    assert threading.excepthook is hook


def test_thread_failures_are_reported(log_messages):
    try:
        raise RuntimeError("failed in thread")
    except RuntimeError:
        exc_type, exc_value, exc_traceback = sys.exc_info()

    failures = len(e2e.reporting.FAILURES)
    e2e.reporting.log_exception(
        SimpleNamespace(
            exc_type=exc_type,
            exc_value=exc_value,
            exc_traceback=exc_traceback,
            thread=SimpleNamespace(name="failing-thread"),
        )
    )
    assert len(e2e.reporting.FAILURES) == failures + 1
    assert "failing-thread" in e2e.reporting.FAILURES[-1]
    errors = [r["message"] for r in log_messages if r["level"].name == "ERROR"]
    assert any("failed in thread" in m for m in errors)


def test_harness_error_message():
    e = HarnessError(
        "Timed out",
        command="namadac --base-dir /tmp utils",
        location="test_x.py:10",
        log_path="/tmp/logs/1-namadac-2.log",
        output="partial output",
    )
    lines = str(e).splitlines()
    assert lines[:4] == [
        "Timed out",
        "Command: namadac --base-dir /tmp utils",
        "Location: test_x.py:10",
        "Logs: /tmp/logs/1-namadac-2.log",
    ]
    assert "partial output" in str(e)
    assert str(HarnessError("bare")) == "bare"
