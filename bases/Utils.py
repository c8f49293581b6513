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

import contextlib
import os
import sys
import tempfile

import bitmath

from bases.Kernel import getLogger

# int(): bitmath 2.x returns float byte counts
ONE_KB = int(bitmath.KiB(1).bytes)
ONE_MB = int(bitmath.MiB(1).bytes)
ONE_GB = int(bitmath.GiB(1).bytes)
ONE_TB = int(bitmath.TiB(1).bytes)

logger = getLogger(__name__)


# flush is required when stdout is a pipe, progress must show up line by line.
def flushPrint(text):
    try:
        print(text, flush=True)
    except UnicodeEncodeError as e:
        # Paths may contain characters the terminal encoding can't represent (e.g. cp950 on Windows)
        logger.debug(f"UnicodeEncodeError during print, using fallback encoding: {e}, {sys.stdout.encoding=}")

        buf = getattr(sys.stdout, "buffer", None)
        if buf is not None:
            try:
                buf.write(text.encode("utf-8", errors="replace"))
                buf.write(b"\n")
                buf.flush()
                return
            except OSError as e2:
                logger.debug(f"fallback buffer write failed: {e2}")

        print(text.encode(sys.stdout.encoding, errors='replace').decode(sys.stdout.encoding), flush=True)


def formatSize(size, decimal=None, plural=None):
    if decimal is None:
        if size < ONE_GB: # Less than 1GB
            decimal = 0
        elif size < ONE_TB: # Between 1GB and 1TB
            decimal = 1
        else: # Greater than 1TB
            decimal = 2

    if plural is None:
        plural = False if size > ONE_KB else True

    sizeStr = bitmath.Byte(size).best_prefix(system=bitmath.SI).format(
        "{value:.%df}{%s}" % (decimal, 'unit_plural' if plural else 'unit')
    )

    if not sizeStr.endswith('Byte') and not sizeStr.endswith('Bytes') and not sizeStr.endswith('Bits'):
        return sizeStr.replace('B', '').upper()
    else:
        return sizeStr.replace('Byte', ' Byte').replace('Bit', ' Byte')


def sendException(logger, e, action=None, errorPrefix="Oops, something went wrong"):
    if e and errorPrefix:
        flushPrint(f'{errorPrefix}: {e}')
    elif e:
        flushPrint(f'{e}')
    else: # only errorPrefix without e?
        logger.error(f'Incorrect argument: {errorPrefix=} {e=}')

    if action:
        flushPrint(action)

    logger.exception(e)

    if os.getenv('RAISE_EXCEPTION', 'False') == 'True' and isinstance(e, BaseException):
        raise e


def getEnv(envVar, default):
    """Safely get value from environment variable with automatic type detection based on default"""
    try:
        value = os.getenv(envVar)
        if value is not None:
            if default is None:
                return value

            # Automatically detect type based on default value
            if isinstance(default, bool):
                return value == "True"
            elif isinstance(default, int):
                return int(value)
            elif isinstance(default, float):
                return float(value)
            elif isinstance(default, str):
                return str(value)
            else:
                return type(default)(value)
        return default
    except (ValueError, TypeError):
        return default


@contextlib.contextmanager
def atomicWrite(path, mode='wb'):
    """
    Open a temporary file next to path and publish it over path only if the block succeeds.

    The temporary file is flushed and fsync'ed, then moved with os.replace(), which is atomic
    on the same filesystem. On any error the temporary file is removed and an existing file
    at path is left untouched, readers never see a half-written file.

    Args:
        path: Final destination path
        mode: File mode for the temporary file ('wb' or 'w')

    Yields:
        file: Open file object to write to
    """
    path = os.path.abspath(path)
    directory, name = os.path.split(path)

    fd, tempPath = tempfile.mkstemp(prefix=f'.{name}.', suffix='.tmp', dir=directory)
    logger.debug(f"Writing {path} through temporary file {tempPath}")

    try:
        with os.fdopen(fd, mode) as f:
            yield f
            f.flush()
            os.fsync(f.fileno())

        # mkstemp() creates the file as 0600
        os.chmod(tempPath, 0o644)
        os.replace(tempPath, path)
    except BaseException:
        # BaseException: a KeyboardInterrupt must not leave the temporary file behind either
        with contextlib.suppress(OSError):
            os.remove(tempPath)
        raise

    logger.debug(f"Published {path}")
