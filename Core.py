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

import argparse
import os
import signal
import sys
import threading

from bases.Kernel import getLogger
from bases.CLI import configureCLIParser, configureLogging, loadEnvFile, showVersion, validateArchiveArguments
from bases.Archiver import ArchiveCancelledException, ArchiveError, writeSkeletonArchive
from bases.Settings import OUTPUT_FILE_NAME
from bases.Utils import flushPrint, formatSize, sendException

logger = getLogger(__name__)


def setupGracefulShutdown(cancelEvent):
    """
    First Ctrl+C requests cancellation, the walk stops before its next entry.
    A second Ctrl+C exits immediately.

    Returns:
        The previous SIGINT handler
    """
    context = {'shutdownInProgress': False}

    def signalHandler(signum, frame):
        if context['shutdownInProgress']:
            # Nothing was published yet, the temporary file is the only leftover
            os._exit(1)

        context['shutdownInProgress'] = True
        flushPrint('\nCancelling, press Ctrl+C again to exit immediately...')
        cancelEvent.set()

    return signal.signal(signal.SIGINT, signalHandler)


def processArchive(args, cancelEvent):
    """
    Build out.zip from args.dirs

    Returns:
        int: Exit code (0 for success, 1 for error)
    """
    try:
        summary = writeSkeletonArchive(args.dirs, OUTPUT_FILE_NAME, cancelEvent=cancelEvent)
    except ArchiveCancelledException as e:
        logger.warning(f"Cancelled: {e}")
        flushPrint(f'Cancelled, {OUTPUT_FILE_NAME} was not written.')
        return 1
    except (ArchiveError, OSError) as e:
        sendException(logger, e, action=f'{OUTPUT_FILE_NAME} was not written.')
        return 1

    flushPrint(
        f'Wrote {OUTPUT_FILE_NAME}: {summary.directories} directories, {summary.files} files, '
        f'{formatSize(summary.totalSize)}'
    )
    return 0


def runCLIMain(argv=None, cancelEvent=None):
    """Parse arguments and run"""
    parser = configureCLIParser()

    if argv is None:
        argv = sys.argv[1:]

    if not argv:
        parser.print_help()
        return 1

    try:
        args = parser.parse_args(argv)
    except argparse.ArgumentError as e:
        flushPrint(f'Error: {e}')
        parser.print_usage()
        return 1

    configureLogging(args.logLevel)

    if args.version:
        showVersion()
        return 0

    exitCode = validateArchiveArguments(args)
    if exitCode is not None:
        return exitCode

    return processArchive(args, cancelEvent or threading.Event())


def main(argv=None):
    """The main entry point"""
    loadEnvFile()

    cancelEvent = threading.Event()
    previousHandler = setupGracefulShutdown(cancelEvent)

    try:
        return runCLIMain(argv, cancelEvent)
    except KeyboardInterrupt:
        flushPrint('\nExiting on user request (Ctrl+C)...')
        return 1
    except Exception as e:
        sendException(logger, e)
        return 1
    finally:
        if previousHandler is not None:
            signal.signal(signal.SIGINT, previousHandler)


if __name__ == '__main__':
    sys.exit(main())
