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

import datetime
import shutil
import stat as _stat
import time
import zipfile
import zlib

from dataclasses import dataclass
from typing import Iterable, Optional

from bases.Kernel import getLogger, SkeletonEvent
from bases.FileSystems import FileSystem, LocalFileSystem, WalkEntry
from bases.Reader import LimitedReader, ZERO_FILL_READER
from bases.Settings import ARCHIVE_COMMENT, COPY_CHUNK_SIZE, OUTPUT_FILE_NAME, README_CONTENT, README_NAME
from bases.Utils import atomicWrite, flushPrint, formatSize

logger = getLogger(__name__)

# DOS date range supported by the zip format
MIN_DATE_TIME = (1980, 1, 1, 0, 0, 0)
MAX_DATE_TIME = (2107, 12, 31, 23, 59, 58)

# MS-DOS directory attribute, kept next to the Unix mode in external_attr
MSDOS_DIRECTORY_FLAG = 0x10


class ArchiveError(RuntimeError):
    """Base class of every error that aborts building an archive"""

    def __init__(self, message: str, path: str = None):
        super().__init__(message)
        self.path = path


class TraversalError(ArchiveError):
    """A filesystem entry or its metadata could not be read"""


class EntryCreationError(ArchiveError):
    """Building the header or registering the entry in the archive failed"""


class ContentCopyError(ArchiveError):
    """Writing the zero-filled content of an entry failed"""


class ArchiveCancelledException(ArchiveError):
    """Cancellation was requested while walking"""


@dataclass
class ArchiveSummary:
    directories: int = 0
    files: int = 0
    totalSize: int = 0 # Sum of declared file sizes

    @property
    def entries(self) -> int:
        return self.directories + self.files


def toZipDateTime(timestamp: Optional[float]) -> tuple:
    """
    Convert Unix timestamp to the (year, month, day, hour, min, sec) tuple zipfile expects

    Timestamps outside the DOS range 1980-2107 are clamped, zipfile refuses them otherwise.
    """
    if timestamp is None or timestamp <= 0:
        return MIN_DATE_TIME

    try:
        dateTime = datetime.datetime.fromtimestamp(timestamp)
    except (ValueError, OSError, OverflowError):
        return MIN_DATE_TIME

    if dateTime.year < 1980:
        return MIN_DATE_TIME
    if dateTime.year > 2107:
        return MAX_DATE_TIME

    return dateTime.timetuple()[:6]


class DirectoryArchiver:
    """
    Mirrors directory trees into an open zip archive without storing file contents.

    Every directory below a root becomes a zero-length "name/" entry, every other entry
    becomes an entry with its real size whose content is that many zero bytes.
    Entries are written in walk order and never touched again.
    """

    def __init__(
        self,
        zipFile: zipfile.ZipFile,
        fileSystem: FileSystem = None,
        zeroSource=ZERO_FILL_READER,
        chunkSize: int = COPY_CHUNK_SIZE,
        showProgress: bool = True
    ):
        """
        Args:
            zipFile: ZipFile opened for writing
            fileSystem: Walk provider, LocalFileSystem by default
            zeroSource: Infinite zero byte source, shared between all entries
            chunkSize: Copy chunk size for zero content
            showProgress: Print one line per visited entry to stdout
        """
        self.zipFile = zipFile
        self.fileSystem = fileSystem or LocalFileSystem()
        self.zeroSource = zeroSource
        self.chunkSize = chunkSize
        self.showProgress = showProgress
        self.summary = ArchiveSummary()

    def archiveRoot(self, rootPath: str, cancelEvent=None) -> ArchiveSummary:
        """
        Add the subtree under rootPath to the archive

        The root directory itself gets no entry of its own, its name prefixes every other entry.
        Cancellation is checked once before each entry, never during the copy of one file.

        Args:
            rootPath: Directory to mirror, entry names start with it exactly as given
            cancelEvent: Optional object with is_set() (e.g. threading.Event)

        Returns:
            ArchiveSummary: Totals accumulated over every root archived so far

        Raises:
            ArchiveCancelledException: cancelEvent was set
            TraversalError: An entry could not be read
            EntryCreationError: An entry could not be added
            ContentCopyError: Zero content could not be written
        """
        logger.debug(f"Archive root START: {rootPath}")

        for index, entry in enumerate(self.fileSystem.walk(rootPath)):
            if cancelEvent is not None and cancelEvent.is_set():
                raise ArchiveCancelledException(f"{entry.path}: archiving cancelled", entry.path)

            if entry.error is not None:
                raise TraversalError(f"{entry.path}: {entry.error}", entry.path) from entry.error

            if self.showProgress:
                flushPrint(entry.path)

            isRoot = index == 0
            if entry.isDir:
                if isRoot:
                    continue
                self._writeDirectory(entry)
            else:
                self._writeFile(entry)

            SkeletonEvent.archiveEntryCreate.trigger(path=entry.path, isDir=entry.isDir, size=entry.size)

        logger.debug(f"Archive root END: {rootPath}, {self.summary}")
        return self.summary

    def buildEntryHeader(self, entry: WalkEntry) -> zipfile.ZipInfo:
        """
        Build the archive header for a walked entry

        Name is the walked path, plus a trailing '/' for directories. zipfile itself converts
        the OS separator to '/'.
        """
        name = entry.path + '/' if entry.isDir else entry.path

        try:
            zipInfo = zipfile.ZipInfo(name, date_time=toZipDateTime(entry.mtime))
        except ValueError as e:
            raise EntryCreationError(f"{entry.path}: {e}", entry.path) from e

        permissions = _stat.S_IMODE(entry.mode)
        if entry.isDir:
            # No content, stored like every directory marker
            zipInfo.compress_type = zipfile.ZIP_STORED
            zipInfo.file_size = 0
            zipInfo.external_attr = ((_stat.S_IFDIR | permissions) << 16) | MSDOS_DIRECTORY_FLAG
        else:
            zipInfo.compress_type = zipfile.ZIP_DEFLATED
            # Declared up front, zipfile decides on Zip64 from it
            zipInfo.file_size = entry.size
            # Always a regular file, there is nothing a symlink could point to
            zipInfo.external_attr = (_stat.S_IFREG | permissions) << 16

        return zipInfo

    def _writeDirectory(self, entry: WalkEntry):
        zipInfo = self.buildEntryHeader(entry)

        try:
            self.zipFile.writestr(zipInfo, b'')
        except (OSError, ValueError, RuntimeError) as e:
            raise EntryCreationError(f"{entry.path}: {e}", entry.path) from e

        self.summary.directories += 1

    def _writeFile(self, entry: WalkEntry):
        zipInfo = self.buildEntryHeader(entry)

        try:
            dest = self.zipFile.open(zipInfo, mode='w')
        except (OSError, ValueError, RuntimeError) as e:
            raise EntryCreationError(f"{entry.path}: {e}", entry.path) from e

        content = LimitedReader(self.zeroSource, entry.size)
        try:
            with dest:
                shutil.copyfileobj(content, dest, self.chunkSize)
        except (OSError, ValueError, RuntimeError, zlib.error) as e:
            raise ContentCopyError(f"{entry.path}: {e}", entry.path) from e

        if content.remaining:
            raise ContentCopyError(
                f"{entry.path}: zero source ended {content.remaining} bytes early", entry.path
            )

        self.summary.files += 1
        self.summary.totalSize += entry.size

    def writeReadme(self):
        """Append the plain-text entry explaining that contents were zeroed"""
        zipInfo = zipfile.ZipInfo(README_NAME, date_time=time.gmtime()[:6])
        zipInfo.external_attr = (_stat.S_IFREG | 0o644) << 16

        try:
            self.zipFile.writestr(zipInfo, README_CONTENT)
        except (OSError, ValueError, RuntimeError) as e:
            raise EntryCreationError(f"{README_NAME}: {e}", README_NAME) from e


def writeSkeletonArchive(
    rootPaths: Iterable[str],
    outputPath: str = OUTPUT_FILE_NAME,
    cancelEvent=None,
    fileSystem: FileSystem = None,
    showProgress: bool = True
) -> ArchiveSummary:
    """
    Build the skeleton archive of rootPaths and publish it at outputPath

    Roots are archived in the given order, the first failure aborts the run and later roots
    are not attempted. The archive is built in a temporary file and only replaces outputPath
    once it is complete, an existing outputPath survives any failure or cancellation.

    Args:
        rootPaths: Directories to mirror
        outputPath: Destination of the archive
        cancelEvent: Optional object with is_set(), checked before each walked entry
        fileSystem: Walk provider, LocalFileSystem by default
        showProgress: Print one line per visited entry to stdout

    Returns:
        ArchiveSummary: Totals of the written archive (the readme entry not included)
    """
    rootPaths = list(rootPaths)
    if not rootPaths:
        raise ValueError("At least one directory is required")

    logger.info(f"Writing skeleton archive of {rootPaths} to {outputPath}")

    with atomicWrite(outputPath) as f:
        # Default deflate level, best compression gives no meaningful gain on zeros
        # and Huffman-only inflates the archive drastically.
        with zipfile.ZipFile(f, mode='w', compression=zipfile.ZIP_DEFLATED) as zipFile:
            archiver = DirectoryArchiver(
                zipFile, fileSystem=fileSystem, showProgress=showProgress
            )

            for rootPath in rootPaths:
                archiver.archiveRoot(rootPath, cancelEvent)

            zipFile.comment = ARCHIVE_COMMENT.encode('utf-8')
            archiver.writeReadme()

    summary = archiver.summary
    logger.info(
        f"Published {outputPath}: {summary.directories} directories, {summary.files} files, "
        f"{formatSize(summary.totalSize)}"
    )

    SkeletonEvent.archiveFinalize.trigger(outputPath=outputPath, summary=summary)
    return summary
