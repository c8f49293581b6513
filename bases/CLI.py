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
import json
import os
import logging
import logging.config
import platform
import sys

from bases.Kernel import PUBLIC_VERSION, APP_NAME, LOG_LEVEL_MAPPING, getLogger, configureGlobalLogLevel, StorageLocator
from bases.Utils import flushPrint, getEnv

logger = getLogger(__name__)


def loadEnvFile():
    """
    Load environment variables from .env file using StorageLocator.
    Only sets variables that are not already defined in os.environ.
    """
    envFilePath = StorageLocator.getInstance().findConfig('.env')

    if not os.path.exists(envFilePath):
        return

    try:
        logger.info(f'Loading .env file from: {envFilePath}')
        loadedCount = 0

        with open(envFilePath, 'r', encoding='utf-8') as f:
            for lineNum, line in enumerate(f, 1):
                line = line.strip()

                # Skip empty lines and comments
                if not line or line.startswith('#'):
                    continue

                if '=' not in line:
                    flushPrint(f'Warning: .env line {lineNum}: Invalid format (missing =): {line}')
                    continue

                key, _, value = line.partition('=')
                key = key.strip()
                value = value.strip()

                if not key:
                    flushPrint(f'Warning: .env line {lineNum}: Empty key')
                    continue

                if (value.startswith('"') and value.endswith('"')) or \
                   (value.startswith("'") and value.endswith("'")):
                    value = value[1:-1]

                # Environment takes precedence
                if key not in os.environ:
                    os.environ[key] = value
                    loadedCount += 1
                else:
                    logger.debug(f'.env: Skipped {key} (already set in environment)')

        logger.info(f'Loaded {loadedCount} environment variables from .env')

    except (OSError, UnicodeDecodeError) as e:
        flushPrint(f'Error: Unable to load .env file {envFilePath}: {e}')
        logger.error(f'Unable to load .env file: {e}', exc_info=True)


def configureLogging(logLevel):
    """Configure logging level for the application

    Priority order:
    1. logLevel parameter (from --log-level CLI argument)
    2. SKELETON_LOGGING_LEVEL environment variable
    3. Default to None (no configuration change)

    Both can be a logging level name (DEBUG, INFO, WARNING, ERROR) or a path to a
    logging configuration JSON file (logging.config.dictConfig format).
    """

    def suppressNoisyLogger():
        logging.getLogger('sentry_sdk').setLevel(logging.INFO)

    if logLevel is None:
        logLevel = getEnv('SKELETON_LOGGING_LEVEL', None)

    if logLevel is None:
        suppressNoisyLogger()
        return None

    if os.path.isfile(logLevel):
        try:
            with open(logLevel, 'r') as configFile:
                configDict = json.load(configFile)

            logging.config.dictConfig(configDict)
            logger.info(f"Logging configured from file: {logLevel}")
            suppressNoisyLogger()
            return logLevel

        except (json.JSONDecodeError, OSError, ValueError, KeyError) as e:
            flushPrint(f"Failed to load logging config from {logLevel}: {e}")
            flushPrint("Falling back to default logging level configuration")


    if logLevel.upper() in LOG_LEVEL_MAPPING:
        configureGlobalLogLevel(LOG_LEVEL_MAPPING[logLevel.upper()])
        logger.info(f"Logging level set to {logLevel}")
    else:
        logger.warning(f"Invalid logging level '{logLevel}', using WARNING as default")
        configureGlobalLogLevel(logging.WARNING)

    suppressNoisyLogger()

    return logLevel


def showVersion():
    """Display version information"""
    flushPrint(f"{APP_NAME} v{PUBLIC_VERSION}")
    flushPrint(f"Python {platform.python_version()} ({sys.executable})")

    uname = platform.uname()
    flushPrint(f"Architecture: {uname.system} {uname.release} {uname.machine}")


def configureCLIParser():
    """Configure the command line parser

    Returns:
        argparse.ArgumentParser
    """

    def validateLogLevel(logLevel):
        """Validate log level for argparse"""
        # Allow file paths (they'll be validated later)
        if os.path.exists(logLevel):
            return logLevel

        validLevels = list(LOG_LEVEL_MAPPING)
        if logLevel.upper() not in validLevels:
            raise argparse.ArgumentTypeError(
                f"Invalid log level '{logLevel}'. Valid levels are: {', '.join(validLevels)}"
            )
        return logLevel.upper()

    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description=(
            "Creates skeleton .zip that represent how a directory hierarchy looks like, "
            "without storing file contents"
        ),
        exit_on_error=False,
    )
    parser.add_argument(
        "dirs",
        metavar="DIR",
        nargs='*',
        help="Directory to mirror into out.zip (one or more, archived in the given order)"
    )
    parser.add_argument("--version", action="store_true", help="Show version information")
    parser.add_argument(
        "--log-level",
        type=validateLogLevel,
        help="Set logging level (DEBUG, INFO, WARNING, ERROR) or path to logging config JSON file (default: WARNING)",
        metavar="LEVEL_OR_FILE",
        dest="logLevel"
    )

    return parser


def validateArchiveArguments(args):
    """
    Validate arguments of an archive run.

    Returns:
        int or None: Exit code if validation fails, None if validation passes
    """
    if not args.dirs:
        flushPrint("Error: requires at least 1 directory argument")
        return 1

    return None
