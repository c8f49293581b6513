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

import io

from bases.Kernel import getLogger

logger = getLogger(__name__)


class ZeroFillReader(io.RawIOBase):
    """
    Infinite byte source that only ever yields zero bytes.

    Every read fills the whole requested length and never reports end-of-stream, so callers
    must bound how much they draw from it (see LimitedReader). The reader holds no state,
    a single instance can be shared by every entry of an archive.
    """

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        """
        Fill buffer entirely with zero bytes

        Args:
            buffer: Writable bytes-like object (bytearray, memoryview, ...)

        Returns:
            int: len(buffer), always
        """
        view = memoryview(buffer).cast('B')
        size = len(view)
        view[:] = bytes(size)
        return size

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            raise ValueError("Unbounded read from ZeroFillReader, wrap it in a LimitedReader")
        return bytes(size)

    def readall(self) -> bytes:
        raise ValueError("Unbounded read from ZeroFillReader, wrap it in a LimitedReader")

    def close(self):
        # Shared instance, never actually closed
        pass


class LimitedReader(io.RawIOBase):
    """
    Reads from source until limit bytes have been delivered, then reports end-of-stream.
    """

    def __init__(self, source, limit: int):
        if limit < 0:
            raise ValueError(f"Invalid limit: {limit}")

        super().__init__()
        self.source = source
        self.remaining = limit

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        if self.remaining <= 0:
            return 0

        view = memoryview(buffer).cast('B')
        if len(view) > self.remaining:
            view = view[:self.remaining]

        read = self.source.readinto(view)
        self.remaining -= read
        return read


# can share this instance
ZERO_FILL_READER = ZeroFillReader()
