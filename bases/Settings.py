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

from bases.Utils import getEnv, ONE_MB

# Fixed output name, written to the current working directory.
OUTPUT_FILE_NAME = 'out.zip'

ARCHIVE_COMMENT = 'written by directory-structure-skeleton-archive'

README_NAME = 'README-this-archive-is-special.txt'
README_CONTENT = 'This archive contains only metadata about the files. The file contents are filled with null.'

# Chunk size used when streaming zeros into an entry. A bigger buffer does not improve
# the compression ratio, deflate already buffers internally.
COPY_CHUNK_SIZE = getEnv('SKELETON_COPY_CHUNK_SIZE', ONE_MB)
