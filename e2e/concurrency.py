# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the Apache 2.0 License.

import threading

from loguru import logger as LOG

# How long each background read waits for output before checking for a stop
DRAIN_POLL_INTERVAL_S = 0.1


class StoppableThread(threading.Thread):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.daemon = True
        self._stop_event = threading.Event()

    def stop(self):
        self._stop_event.set()

    def is_stopped(self):
        return self._stop_event.is_set()


class BackgroundCommand(StoppableThread):
    """
    Owns a ProcessSession while it runs in the background, continuously
    reading and discarding its output. The output is still mirrored to the
    session's log file.
    """

    def __init__(self, session, poll_interval_s=DRAIN_POLL_INTERVAL_S):
        super().__init__(name=f"bg-{session.name}")
        self._session = session
        self.poll_interval_s = poll_interval_s

    def run(self):
        session = self._session
        while not self.is_stopped():
            session._drain_available(self.poll_interval_s)

    def foreground(self):
        """
        Stop reading output and return the session to the caller. Blocks
        until the reading thread has observed the stop request.
        """
        if self._session is None:
            raise RuntimeError("Command was already brought back to the foreground")
        self.stop()
        self.join()
        session, self._session = self._session, None
        session._background = None
        LOG.debug(f"Command back in the foreground: {session.cmd_str}")
        return session
