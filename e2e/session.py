# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the Apache 2.0 License.
import os
import random
import re
import sys
import time

import pexpect

import e2e.concurrency
import e2e.path
import e2e.reporting
from e2e.errors import (
    EmptyMatch,
    ExitStatusMismatch,
    HarnessError,
    OutputClosed,
    PatternTimeout,
    SpawnError,
)

from loguru import logger as LOG

# Size of each read when draining output without matching on it
READ_CHUNK_BYTES = 4096


def caller_location(depth=1):
    """
    Returns "file:line" of the frame `depth` levels above the caller.
    """
    frame = sys._getframe(depth + 1)
    return f"{frame.f_code.co_filename}:{frame.f_lineno}"


def unique_log_path(base_dir, bin_name):
    log_dir = os.path.join(base_dir, e2e.path.LOGS_DIR)
    os.makedirs(log_dir, exist_ok=True)
    micros = time.time_ns() // 1000
    return os.path.join(
        log_dir, f"{micros}-{bin_name}-{random.getrandbits(64)}.log"
    )


def describe_exit(exit_status, signal_status):
    if signal_status is not None:
        return f"signal {signal_status}"
    return f"exit code {exit_status}"


class ProcessSession:
    """
    A process attached to a pseudo-terminal, whose output is consumed
    sequentially by the expect_* calls and mirrored to a log file.

    Use as a context manager: leaving the block interrupts the process and
    drains whatever output is left, without ever raising.
    """

    def __init__(self, child, cmd_str, log_path, logfile, name=None, location=None):
        self.child = child
        self.cmd_str = cmd_str
        self.log_path = log_path
        self.name = name or os.path.basename(cmd_str.split(" ", 1)[0])
        self.location = location
        self._logfile = logfile
        self._background = None
        self._closed = False

    @classmethod
    def spawn(
        cls,
        program,
        args,
        log_path,
        timeout=None,
        cwd=None,
        env=None,
        name=None,
        location=None,
    ):
        """
        Start `program` with `args` under a pty. `timeout` (seconds, or None
        to wait forever) applies to every blocking wait on the session.
        """
        e2e.reporting.install()
        args = [str(arg) for arg in args]
        cmd_str = " ".join([program] + args)
        try:
            logfile = open(log_path, "x", encoding="utf-8")
        except OSError as e:
            raise SpawnError(
                f"Could not create log file: {e}", command=cmd_str, location=location
            ) from e
        try:
            child = pexpect.spawn(
                program,
                args,
                cwd=cwd,
                env=env,
                timeout=timeout,
                encoding="utf-8",
                codec_errors="replace",
                echo=False,
            )
        except (pexpect.ExceptionPexpect, OSError) as e:
            logfile.close()
            LOG.error(f"Failed to run: {cmd_str} (location: {location})")
            raise SpawnError(
                f"Failed to run: {e}",
                command=cmd_str,
                location=location,
                log_path=log_path,
            ) from e
        child.logfile_read = logfile
        return cls(child, cmd_str, log_path, logfile, name=name, location=location)

    def __str__(self):
        return f"{self.cmd_str}\nLogs: {self.log_path}"

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def _error(self, error_type, msg, depth=2, output=None):
        location = caller_location(depth)
        LOG.error(f"{msg}: {self.cmd_str} (logs: {self.log_path})")
        return error_type(
            msg,
            command=self.cmd_str,
            location=location,
            log_path=self.log_path,
            output=output,
        )

    def _ensure_foreground(self):
        if self._background is not None:
            raise RuntimeError(
                f"Command is running in the background, call foreground() first: {self.cmd_str}"
            )
        if self._closed:
            raise RuntimeError(f"Command is already closed: {self.cmd_str}")

    def _expect(self, pattern, description, exact):
        try:
            if exact:
                self.child.expect_exact(pattern)
            else:
                # pexpect compiles plain strings with DOTALL, "." must stop at newlines
                if isinstance(pattern, str):
                    pattern = re.compile(pattern)
                self.child.expect(pattern)
        except pexpect.TIMEOUT as e:
            raise self._error(
                PatternTimeout,
                f"Timed out after {self.child.timeout}s waiting for {description}",
                depth=3,
                output=self.child.before,
            ) from e
        except pexpect.EOF as e:
            raise self._error(
                OutputClosed,
                f"Output ended before {description} was seen",
                depth=3,
                output=self.child.before,
            ) from e
        before = self.child.before
        if not before:
            raise self._error(
                EmptyMatch,
                f"Nothing was read before {description}",
                depth=3,
            )
        return before

    def expect_text(self, needle):
        """
        Wait until `needle` is seen on the output. Returns the output read
        before it, which is consumed along with the needle.
        """
        self._ensure_foreground()
        return self._expect(needle, f"needle {needle!r}", exact=True)

    def expect_regex(self, pattern):
        """
        Wait until `pattern` matches the output. Returns a tuple of the
        output read before the match and the matched text.
        """
        self._ensure_foreground()
        unread = self._expect(pattern, f"regex {pattern!r}", exact=False)
        return unread, self.child.after

    def expect_end_of_output(self):
        """
        Wait until the process closes its output. Returns all the output
        that was left unread.
        """
        self._ensure_foreground()
        return self._expect(pexpect.EOF, "end of output", exact=False)

    def _drain_to_eof(self):
        try:
            self.child.expect(pexpect.EOF)
        except pexpect.TIMEOUT as e:
            raise self._error(
                PatternTimeout,
                f"Timed out after {self.child.timeout}s waiting for end of output",
                depth=3,
                output=self.child.before,
            ) from e
        return self.child.before or ""

    def _drain_available(self, poll_interval_s):
        try:
            self.child.read_nonblocking(size=READ_CHUNK_BYTES, timeout=poll_interval_s)
        except pexpect.TIMEOUT:
            pass
        except pexpect.EOF:
            time.sleep(poll_interval_s)

    def _wait(self):
        self.child.wait()
        return self.child.exitstatus, self.child.signalstatus

    def exit_code(self):
        """
        Exit code of the process if it has exited normally, None otherwise.
        Does not block.
        """
        if self.child.isalive():
            return None
        return self.child.exitstatus

    def assert_exit_success(self):
        self._ensure_foreground()
        unread = self._drain_to_eof()
        if unread.strip():
            LOG.debug(f"Unread output for {self.cmd_str}:\n{unread}")
        exit_status, signal_status = self._wait()
        if exit_status != 0 or signal_status is not None:
            raise self._error(
                ExitStatusMismatch,
                f"Expected success, process exited with {describe_exit(exit_status, signal_status)}",
                output=unread,
            )
        return unread

    def assert_exit_failure(self):
        self._ensure_foreground()
        unread = self._drain_to_eof()
        if unread.strip():
            LOG.debug(f"Unread output for {self.cmd_str}:\n{unread}")
        exit_status, signal_status = self._wait()
        if exit_status == 0 and signal_status is None:
            raise self._error(
                ExitStatusMismatch,
                "Expected failure, process exited with exit code 0",
                output=unread,
            )
        return unread

    def send_line(self, line):
        self._ensure_foreground()
        try:
            self.child.sendline(line)
        except OSError as e:
            raise self._error(HarnessError, f"Could not send line: {e}") from e

    def send_signal(self, code):
        """
        Send a control code, e.g. send_signal("c") sends ctrl-c.
        """
        try:
            self.child.sendcontrol(code)
        except OSError as e:
            raise self._error(HarnessError, f"Could not send control code: {e}") from e

    def interrupt(self):
        self.send_signal("c")

    def background(self):
        """
        Keep reading the output on a separate thread so that the process
        never blocks on a full pty buffer. Call foreground() on the returned
        BackgroundCommand to stop reading and get this session back.
        """
        self._ensure_foreground()
        bg = e2e.concurrency.BackgroundCommand(self)
        self._background = bg
        bg.start()
        return bg

    def close(self):
        if self._closed:
            return
        if self._background is not None:
            self._background.foreground()
        self._closed = True
        LOG.info(f"Sending Ctrl+C to command: {self.cmd_str}")
        try:
            self.interrupt()
        except HarnessError as e:
            LOG.warning(f"Could not interrupt command: {self.cmd_str}: {e.msg}")
        try:
            output = self._drain_to_eof()
        except (HarnessError, OSError, ValueError) as e:
            LOG.error(
                f"Error ensuring command is finished: {self.cmd_str}\nError: {e}"
            )
        else:
            LOG.success(f"Command finished: {self.cmd_str}")
            output = output.strip()
            if output:
                LOG.info(f"Unread output for command: {self.cmd_str}\n\n{output}")
            else:
                LOG.info(f"No unread output for command: {self.cmd_str}")
        finally:
            try:
                self.child.close(force=True)
            except (pexpect.ExceptionPexpect, OSError) as e:
                LOG.warning(f"Could not close command: {self.cmd_str}: {e}")
            self._logfile.close()
