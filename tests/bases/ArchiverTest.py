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

import dataclasses
import io
import os
import shutil
import tempfile
import threading
import unittest
import zipfile
from unittest.mock import patch

from bases.Archiver import (
    ArchiveCancelledException, ArchiveError, ArchiveSummary, ContentCopyError, DirectoryArchiver, EntryCreationError,
    MAX_DATE_TIME, MIN_DATE_TIME, TraversalError, toZipDateTime, writeSkeletonArchive
)
from bases.FileSystems import LocalFileSystem, WalkEntry
from bases.Kernel import EventService, SkeletonEvent
from bases.Settings import ARCHIVE_COMMENT, README_CONTENT, README_NAME
from bases.Utils import ONE_MB


class ArchiverTestBase(unittest.TestCase):
    """Runs every test inside a fresh temporary working directory"""

    def setUp(self):
        self.tempDir = tempfile.mkdtemp()
        self.oldCwd = os.getcwd()
        os.chdir(self.tempDir)

        self.outputPath = os.path.join(self.tempDir, 'out.zip')
        EventService.getInstance().reset()

    def tearDown(self):
        EventService.getInstance().reset()
        os.chdir(self.oldCwd)
        shutil.rmtree(self.tempDir)

    def makeFile(self, path, content=b''):
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(path, 'wb') as f:
            f.write(content)

    def makeSparseFile(self, path, size):
        with open(path, 'wb') as f:
            f.truncate(size)

    def archive(self, *roots, **kwargs):
        kwargs.setdefault('showProgress', False)
        return writeSkeletonArchive(list(roots), self.outputPath, **kwargs)

    def readArchive(self):
        with zipfile.ZipFile(self.outputPath) as zipFile:
            return {
                info.filename: (info, zipFile.read(info.filename))
                for info in zipFile.infolist()
            }, zipFile.comment, [info.filename for info in zipFile.infolist()]


class SkeletonArchiveTest(ArchiverTestBase):
    """Archive content of successful runs"""

    def testBasicScenario(self):
        """root/a.txt (3 bytes) and empty root/sub/ give exactly three entries"""
        self.makeFile(os.path.join('root', 'a.txt'), b'abc')
        os.makedirs(os.path.join('root', 'sub'))

        summary = self.archive('root')

        entries, comment, names = self.readArchive()
        self.assertEqual(sorted(names), sorted(['root/a.txt', 'root/sub/', README_NAME]))

        info, content = entries['root/a.txt']
        self.assertEqual(info.file_size, 3)
        self.assertEqual(content, b'\x00\x00\x00')
        self.assertEqual(info.compress_type, zipfile.ZIP_DEFLATED)

        info, content = entries['root/sub/']
        self.assertTrue(info.is_dir())
        self.assertEqual(info.file_size, 0)
        self.assertEqual(content, b'')

        self.assertEqual(comment, ARCHIVE_COMMENT.encode('utf-8'))
        self.assertEqual(summary, ArchiveSummary(directories=1, files=1, totalSize=3))

    def testCurrentDirectoryRoot(self):
        """Archiving '.' names entries relative to it, without a './' prefix"""
        self.makeFile(os.path.join('root', 'a.txt'), b'abc')
        os.makedirs(os.path.join('root', 'sub'))
        os.chdir('root')

        self.archive('.')

        entries, _, names = self.readArchive()
        self.assertEqual(sorted(names), sorted(['a.txt', 'sub/', README_NAME]))
        self.assertEqual(entries['a.txt'][1], b'\x00\x00\x00')

    def testDotSlashRoot(self):
        self.makeFile(os.path.join('root', 'a.txt'), b'abc')
        os.makedirs(os.path.join('root', 'sub'))

        self.archive('./root')

        _, _, names = self.readArchive()
        self.assertEqual(sorted(names), sorted(['root/a.txt', 'root/sub/', README_NAME]))

    def testReadmeIsLast(self):
        self.makeFile(os.path.join('root', 'a.txt'), b'abc')

        self.archive('root')

        entries, _, names = self.readArchive()
        self.assertEqual(names[-1], README_NAME)
        self.assertEqual(entries[README_NAME][1], README_CONTENT.encode('utf-8'))

    def testEmptyRoot(self):
        os.makedirs('root')

        summary = self.archive('root')

        _, _, names = self.readArchive()
        self.assertEqual(names, [README_NAME])
        self.assertEqual(summary.entries, 0)

    def testZeroByteFile(self):
        self.makeFile(os.path.join('root', 'empty.bin'))

        self.archive('root')

        entries, _, _ = self.readArchive()
        info, content = entries['root/empty.bin']
        self.assertEqual(info.file_size, 0)
        self.assertEqual(content, b'')
        self.assertFalse(info.is_dir())

    def testLargeFileIsZeroFilled(self):
        """Sparse 5 MiB file, declared size kept, content all zeros and well compressed"""
        os.makedirs('root')
        size = 5 * ONE_MB + 7
        self.makeSparseFile(os.path.join('root', 'big.img'), size)

        self.archive('root')

        entries, _, _ = self.readArchive()
        info, content = entries['root/big.img']
        self.assertEqual(info.file_size, size)
        self.assertEqual(len(content), size)
        self.assertEqual(content.count(0), size)
        self.assertLess(info.compress_size, size // 100)

    def testContentIsNeverCopied(self):
        secret = b'top secret ' * 1000
        self.makeFile(os.path.join('root', 'secret.txt'), secret)

        self.archive('root')

        with open(self.outputPath, 'rb') as f:
            raw = f.read()
        self.assertNotIn(b'top secret', raw)

        entries, _, _ = self.readArchive()
        self.assertEqual(entries['root/secret.txt'][1], b'\x00' * len(secret))

    def testEveryEntryMirrored(self):
        """Entry count equals files plus directories below the root, plus the readme"""
        files = {
            os.path.join('root', 'one.txt'): b'1',
            os.path.join('root', 'a', 'two.txt'): b'22',
            os.path.join('root', 'a', 'b', 'three.txt'): b'333',
            os.path.join('root', 'a', 'b', 'c', 'four.txt'): b'4444',
        }
        for path, content in files.items():
            self.makeFile(path, content)
        os.makedirs(os.path.join('root', 'a', 'empty'))

        directories = [
            os.path.join('root', 'a'),
            os.path.join('root', 'a', 'b'),
            os.path.join('root', 'a', 'b', 'c'),
            os.path.join('root', 'a', 'empty'),
        ]

        summary = self.archive('root')

        entries, _, names = self.readArchive()
        self.assertEqual(len(names), len(files) + len(directories) + 1)
        self.assertEqual(len(set(names)), len(names))

        for path, content in files.items():
            info, data = entries[path.replace(os.sep, '/')]
            self.assertEqual(info.file_size, len(content))
            self.assertEqual(data, b'\x00' * len(content))

        for path in directories:
            info, data = entries[path.replace(os.sep, '/') + '/']
            self.assertTrue(info.is_dir())
            self.assertEqual(data, b'')

        self.assertEqual(summary.files, len(files))
        self.assertEqual(summary.directories, len(directories))
        self.assertEqual(summary.totalSize, 10)

    def testTraversalOrder(self):
        """Archive order is walk order"""
        self.makeFile(os.path.join('root', 'x', 'y.txt'), b'y')
        self.makeFile(os.path.join('root', 'z.txt'), b'z')

        self.archive('root')

        walked = []
        for entry in list(LocalFileSystem().walk('root'))[1:]:
            name = entry.path.replace(os.sep, '/')
            walked.append(name + '/' if entry.isDir else name)

        _, _, names = self.readArchive()
        self.assertEqual(names[:-1], walked)

    def testMultipleRootsInArgumentOrder(self):
        self.makeFile(os.path.join('second', 'b.txt'), b'bb')
        self.makeFile(os.path.join('first', 'a.txt'), b'a')

        self.archive('second', 'first')

        _, _, names = self.readArchive()
        self.assertEqual(names, ['second/b.txt', 'first/a.txt', README_NAME])

    def testIdempotent(self):
        self.makeFile(os.path.join('root', 'a.txt'), b'abc')
        self.makeFile(os.path.join('root', 'sub', 'b.txt'), b'abcdef')

        def namesAndSizes():
            with zipfile.ZipFile(self.outputPath) as zipFile:
                return [(info.filename, info.file_size) for info in zipFile.infolist()]

        self.archive('root')
        first = namesAndSizes()
        self.archive('root')
        second = namesAndSizes()

        self.assertEqual(first, second)

    def testPermissionsRecorded(self):
        self.makeFile(os.path.join('root', 'run.sh'), b'#!/bin/sh\n')
        os.chmod(os.path.join('root', 'run.sh'), 0o755)

        self.archive('root')

        entries, _, _ = self.readArchive()
        info, _ = entries['root/run.sh']
        mode = info.external_attr >> 16
        if os.name == 'posix':
            self.assertEqual(mode & 0o777, 0o755)
        self.assertEqual(mode & 0o170000, 0o100000)

    def testProgressLinePerEntry(self):
        self.makeFile(os.path.join('root', 'a.txt'), b'abc')
        os.makedirs(os.path.join('root', 'sub'))

        with patch('bases.Archiver.flushPrint') as flushPrint:
            self.archive('root', showProgress=True)

        printed = [call.args[0] for call in flushPrint.call_args_list]
        walked = [entry.path for entry in LocalFileSystem().walk('root')]
        self.assertEqual(printed, walked)
        self.assertEqual(printed[0], 'root')

    def testEvents(self):
        self.makeFile(os.path.join('root', 'a.txt'), b'abc')
        os.makedirs(os.path.join('root', 'sub'))

        created = []
        finalized = []

        def onCreate(path, isDir, size, **kwargs):
            created.append((path, isDir, size))

        def onFinalize(outputPath, summary, **kwargs):
            finalized.append((outputPath, summary))

        SkeletonEvent.archiveEntryCreate.subscribe(onCreate)
        SkeletonEvent.archiveFinalize.subscribe(onFinalize)

        summary = self.archive('root')

        self.assertEqual(
            sorted(created), sorted([(os.path.join('root', 'a.txt'), False, 3), (os.path.join('root', 'sub'), True, 0)])
        )
        self.assertEqual(finalized, [(self.outputPath, summary)])

    def testNoRoots(self):
        with self.assertRaises(ValueError):
            self.archive()
        self.assertFalse(os.path.exists(self.outputPath))


class SkeletonArchiveFailureTest(ArchiverTestBase):
    """Failed runs never publish anything"""

    PREVIOUS = b'previous archive'

    def setUp(self):
        super().setUp()

        self.makeFile(self.outputPath, self.PREVIOUS)
        self.makeFile(os.path.join('root', 'a.txt'), b'abc')
        self.makeFile(os.path.join('root', 'sub', 'b.txt'), b'b')

    def assertUntouched(self):
        with open(self.outputPath, 'rb') as f:
            self.assertEqual(f.read(), self.PREVIOUS)

        # No temporary file left behind either
        self.assertEqual(sorted(os.listdir(self.tempDir)), ['out.zip', 'root'])

    def testMissingRoot(self):
        with self.assertRaises(TraversalError) as context:
            self.archive('root', 'missing')

        self.assertEqual(context.exception.path, 'missing')
        self.assertIsInstance(context.exception.__cause__, FileNotFoundError)
        self.assertTrue(str(context.exception).startswith('missing: '))
        self.assertUntouched()

    def testLaterRootsNotAttempted(self):
        self.makeFile(os.path.join('later', 'c.txt'), b'c')

        with patch('bases.Archiver.flushPrint') as flushPrint:
            with self.assertRaises(TraversalError):
                self.archive('missing', 'later', showProgress=True)

        flushPrint.assert_not_called()
        os.remove(os.path.join('later', 'c.txt'))
        os.rmdir('later')
        self.assertUntouched()

    def testNoDestinationCreatedOnFailure(self):
        os.remove(self.outputPath)

        with self.assertRaises(TraversalError):
            self.archive('missing')

        self.assertFalse(os.path.exists(self.outputPath))

    def testUnreadableFile(self):
        unreadable = os.path.join('root', 'sub', 'b.txt')
        realAccess = os.access

        def fakeAccess(path, mode, *args, **kwargs):
            if path == unreadable:
                return False
            return realAccess(path, mode, *args, **kwargs)

        with patch('bases.FileSystems.os.access', side_effect=fakeAccess):
            with self.assertRaises(TraversalError) as context:
                self.archive('root')

        self.assertEqual(context.exception.path, unreadable)
        self.assertIsInstance(context.exception.__cause__, PermissionError)
        self.assertUntouched()

    def testCancelledBeforeStart(self):
        cancelEvent = threading.Event()
        cancelEvent.set()

        with self.assertRaises(ArchiveCancelledException) as context:
            self.archive('root', cancelEvent=cancelEvent)

        self.assertEqual(context.exception.path, 'root')
        self.assertIsInstance(context.exception, ArchiveError)
        self.assertUntouched()

    def testCancelledDuringWalk(self):
        """Cancellation is observed before the next entry"""
        cancelEvent = threading.Event()
        created = []

        def onCreate(path, **kwargs):
            created.append(path)
            cancelEvent.set()

        SkeletonEvent.archiveEntryCreate.subscribe(onCreate)

        with self.assertRaises(ArchiveCancelledException):
            self.archive('root', cancelEvent=cancelEvent)

        self.assertEqual(len(created), 1)
        self.assertUntouched()


class DirectoryArchiverTest(unittest.TestCase):
    """DirectoryArchiver against an in-memory archive"""

    class FakeFileSystem:

        def __init__(self, entries):
            self.entries = entries

        def walk(self, top):
            yield WalkEntry(path=top, isDir=True, mode=0o40755)
            for entry in self.entries:
                yield dataclasses.replace(entry, path=f"{top}/{entry.path}")

    def setUp(self):
        self.buffer = io.BytesIO()
        self.zipFile = zipfile.ZipFile(self.buffer, mode='w', compression=zipfile.ZIP_DEFLATED)

    def tearDown(self):
        self.zipFile.close()

    def testShortZeroSource(self):
        fileSystem = self.FakeFileSystem([WalkEntry(path='a.bin', size=3, mode=0o100644, mtime=1700000000)])
        archiver = DirectoryArchiver(
            self.zipFile, fileSystem=fileSystem, zeroSource=io.BytesIO(b'\x00'), showProgress=False
        )

        with self.assertRaises(ContentCopyError) as context:
            archiver.archiveRoot('root')

        self.assertEqual(context.exception.path, 'root/a.bin')

    def testClosedArchive(self):
        fileSystem = self.FakeFileSystem([WalkEntry(path='sub', isDir=True, mode=0o40755)])
        archiver = DirectoryArchiver(self.zipFile, fileSystem=fileSystem, showProgress=False)
        self.zipFile.close()

        with self.assertRaises(EntryCreationError) as context:
            archiver.archiveRoot('root')

        self.assertEqual(context.exception.path, 'root/sub')

    def testSummaryAccumulatesAcrossRoots(self):
        fileSystem = self.FakeFileSystem([
            WalkEntry(path='a', size=10, mode=0o100644),
            WalkEntry(path='d', isDir=True, mode=0o40755),
        ])
        archiver = DirectoryArchiver(self.zipFile, fileSystem=fileSystem, showProgress=False)

        archiver.archiveRoot('r')
        summary = archiver.archiveRoot('r2')

        self.assertEqual(summary, ArchiveSummary(directories=2, files=2, totalSize=20))

    def testBuildEntryHeader(self):
        archiver = DirectoryArchiver(self.zipFile, showProgress=False)

        fileInfo = archiver.buildEntryHeader(WalkEntry(path='root/f', size=42, mode=0o100600, mtime=1700000000))
        self.assertEqual(fileInfo.filename, 'root/f')
        self.assertEqual(fileInfo.file_size, 42)
        self.assertEqual(fileInfo.compress_type, zipfile.ZIP_DEFLATED)
        self.assertEqual(fileInfo.external_attr >> 16, 0o100600)

        dirInfo = archiver.buildEntryHeader(WalkEntry(path='root/d', isDir=True, mode=0o40700))
        self.assertEqual(dirInfo.filename, 'root/d/')
        self.assertTrue(dirInfo.is_dir())
        self.assertEqual(dirInfo.file_size, 0)
        self.assertEqual(dirInfo.external_attr >> 16, 0o40700)


class ZipDateTimeTest(unittest.TestCase):

    def testClamping(self):
        self.assertEqual(toZipDateTime(None), MIN_DATE_TIME)
        self.assertEqual(toZipDateTime(0), MIN_DATE_TIME)
        self.assertEqual(toZipDateTime(-100), MIN_DATE_TIME)
        # 1975
        self.assertEqual(toZipDateTime(170000000), MIN_DATE_TIME)
        # year 2200
        self.assertEqual(toZipDateTime(7258118400), MAX_DATE_TIME)

    def testRegular(self):
        dateTime = toZipDateTime(1700000000)
        self.assertEqual(len(dateTime), 6)
        self.assertEqual(dateTime[0], 2023)


if __name__ == '__main__':
    unittest.main()
