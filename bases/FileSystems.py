#!/usr/bin/env python
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0
#
# dirskeleton - Zero-filled skeleton archives of directory trees
# Copyright (C) 2025-2026 FastFileLink contributors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""
FileSystem abstraction for Archiver.py

LocalFileSystem walks a local directory tree depth-first and reports every entry it finds,
together with its metadata or the error the operating system raised for it. Errors are
reported as entries instead of being raised so the consumer decides what to do with them.
"""

import errno
import os
import stat as _stat

from dataclasses import dataclass
from typing import Iterator, Optional, Protocol

from bases.Kernel import getLogger

logger = getLogger(__name__)


@dataclass
class WalkEntry:
    """One filesystem entry as discovered by walk()"""
    path: str
    isDir: bool = False
    size: int = 0
    mtime: Optional[float] = None
    mode: int = 0
    error: Optional[OSError] = None


class FileSystem(Protocol):
    """FileSystem protocol that all implementations must follow"""

    def walk(self, top: str) -> Iterator[WalkEntry]:
        ...


class LocalFileSystem:
    """
    Local filesystem backend.

    Order is depth-first in directory-entry order, i.e. whatever order os.scandir() yields.
    Nothing is sorted, so the order can differ between platforms and filesystems.
    Symlinks are never followed, they are reported as non-directory entries.
    """

    def walk(self, top: str) -> Iterator[WalkEntry]:
        """
        Walk directory tree, top itself first.

        Args:
            top: Root path, yielded as given. Paths below it are joined and normalized,
                 so 'root/' gives 'root/a.txt' and '.' gives 'a.txt'.

        Yields:
            WalkEntry: One per discovered entry. If the entry could not be read, error is set
                       and the other fields must not be relied on.
        """
        try:
            rootEntry = self._makeEntry(top, os.lstat(top))
        except OSError as e:
            yield WalkEntry(path=top, error=e)
            return

        yield rootEntry

        if rootEntry.isDir and rootEntry.error is None:
            yield from self._walkDir(top)

    def _walkDir(self, dirPath: str) -> Iterator[WalkEntry]:
        try:
            # Read the whole listing first, deep trees must not keep one descriptor open per level.
            with os.scandir(dirPath) as it:
                children = list(it)
        except OSError as e:
            # Same path reported again, this time with the error.
            yield WalkEntry(path=dirPath, isDir=True, error=e)
            return

        for child in children:
            # Cleaned like a lexical path join, a '.' root yields 'a.txt' rather than './a.txt'.
            childPath = os.path.normpath(os.path.join(dirPath, child.name))
            try:
                entry = self._makeEntry(childPath, child.stat(follow_symlinks=False))
            except OSError as e:
                yield WalkEntry(path=childPath, error=e)
                continue

            yield entry

            if entry.isDir and entry.error is None:
                yield from self._walkDir(childPath)

    def _makeEntry(self, path: str, st: os.stat_result) -> WalkEntry:
        isDir = _stat.S_ISDIR(st.st_mode)
        entry = WalkEntry(
            path=path,
            isDir=isDir,
            size=0 if isDir else int(st.st_size),
            mtime=float(st.st_mtime),
            mode=st.st_mode,
        )

        # Contents are never read, but an unreadable file still has to fail the walk.
        if _stat.S_ISREG(st.st_mode) and not os.access(path, os.R_OK):
            entry.error = PermissionError(errno.EACCES, os.strerror(errno.EACCES), path)

        return entry
