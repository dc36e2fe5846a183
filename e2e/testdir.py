# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the Apache 2.0 License.
import tempfile

import e2e.env

from loguru import logger as LOG


class TestDir:
    """
    Root directory of all the state of one test run. Backed by a temporary
    directory that is deleted on release, unless keeping was requested
    (NAMADA_E2E_KEEP_TEMP), in which case its path is printed instead.
    """

    __test__ = False

    def __init__(self, keep=None, parent_dir=None):
        if keep is None:
            keep = e2e.env.keep_temp()
        if parent_dir is None:
            parent_dir = e2e.env.temp_path()
        self.keep = keep
        if keep:
            self._temp_dir = None
            self._path = tempfile.mkdtemp(dir=parent_dir)
            print(f'Keeping test directory at: "{self._path}"')
        else:
            self._temp_dir = tempfile.TemporaryDirectory(dir=parent_dir)
            self._path = self._temp_dir.name
        self._released = False

    def path(self):
        return self._path

    def __fspath__(self):
        return self._path

    def __repr__(self):
        return f"TestDir({self._path!r}, keep={self.keep})"

    def release(self):
        if self._released:
            return
        self._released = True
        if self._temp_dir is None:
            print(f'Keeping test directory at: "{self._path}"')
            return
        try:
            self._temp_dir.cleanup()
        except OSError as e:
            LOG.warning(f"Could not remove test directory {self._path}: {e}")
