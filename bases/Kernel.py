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

import os
import logging
import platform
import threading
import json

# While Sentry (error tracking) is included, error reporting is strictly disabled by default.
# Nothing is sent anywhere unless a SENTRY_DSN secret is explicitly configured.
import sentry_sdk

from pathlib import Path

from signalslot import Signal

from sentry_sdk.integrations.logging import SentryHandler, LoggingIntegration
from sentry_sdk.integrations import atexit as sentryAtexit

PUBLIC_VERSION = '1.0.0'

APP_NAME = 'dirskeleton'

# Map string levels to logging constants for standard level names
LOG_LEVEL_MAPPING = {
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARNING': logging.WARNING,
    'ERROR': logging.ERROR,
    'CRITICAL': logging.CRITICAL,
}


def configureGlobalLogLevel(logLevel):
    """
    Configure the global logging level for the application.
    This affects all loggers created via getLogger().

    Args:
        logLevel: Logging level (logging.DEBUG, logging.INFO, etc.)
    """
    rootLogger = logging.getLogger()
    rootLogger.setLevel(logLevel)

    formatter = logging.Formatter('%(asctime)s [%(levelname)s] %(name)s: %(message)s')

    # Add console handler if none exists
    if not rootLogger.handlers:
        consoleHandler = logging.StreamHandler()
        consoleHandler.setLevel(logLevel)
        consoleHandler.setFormatter(formatter)
        rootLogger.addHandler(consoleHandler)
    else:
        # Update existing handlers
        for handler in rootLogger.handlers:
            if isinstance(handler, logging.StreamHandler) and not isinstance(handler, SentryHandler):
                handler.setLevel(logLevel)
                handler.setFormatter(formatter)


if os.getenv('SKELETON_LOGGING_LEVEL') and os.getenv('SKELETON_LOGGING_LEVEL').upper() in LOG_LEVEL_MAPPING:
    configureGlobalLogLevel(LOG_LEVEL_MAPPING[os.getenv('SKELETON_LOGGING_LEVEL').upper()])

if os.getenv('SKELETON_PUBLIC_VERSION'):
    PUBLIC_VERSION = os.environ['SKELETON_PUBLIC_VERSION']
    logging.info(f'[WARN] SKELETON_PUBLIC_VERSION is set to {PUBLIC_VERSION}, TEST PURPOSE ONLY.')


def getLogger(name, version=PUBLIC_VERSION):
    """
    Get a logger with Sentry integration. Uses Sentry's own client state to avoid duplicate setup.
    SENTRY_DSN is loaded through SecretGetter, so Sentry stays off unless it is configured.

    Args:
        name: Logger name
        version: Version string for logging context
    """
    try:
        sentryInitialized = False

        if not sentry_sdk.get_client().is_active():
            sentryDsn = SecretGetter.getInstance().get('SENTRY_DSN')

            if sentryDsn:
                # Suppress "sentry is attempting to send pending events..." on exit
                sentryAtexit.default_callback = lambda pending, timeout: None

                sentry_sdk.init(
                    dsn=sentryDsn,
                    default_integrations=False,
                    integrations=[
                        LoggingIntegration(),
                        sentryAtexit.AtexitIntegration(),
                    ],
                )
                sentryInitialized = True

        logger = logging.getLogger(name)

        # Add Sentry handler if not already present
        if not any(isinstance(h, SentryHandler) for h in logger.handlers):
            extra = {'version': version or 'unknown'}
            formatter = logging.Formatter('%(asctime)s version[%(version)s] : %(message)s')

            syslog = SentryHandler()
            syslog.setFormatter(formatter)
            logger.addHandler(syslog)
            logger = logging.LoggerAdapter(logger, extra)

        if sentryInitialized:
            logger.debug('Sentry initialized')

        return logger

    except Exception as e:
        fallbackLogger = logging.getLogger(name)

        # If Sentry setup fails, continue with standard logging
        fallbackLogger.warning(f"Failed to initialize Sentry: {e}")

        return fallbackLogger


class Singleton:
    """Thread-safe singleton base, subclasses put their setup in initialize()"""

    _instances = {}
    _lock = threading.Lock()

    def __new__(cls, *args, **kwargs):
        if cls not in cls._instances:
            with cls._lock:
                if cls not in cls._instances:
                    cls._instances[cls] = super().__new__(cls)
        return cls._instances[cls]

    def __init__(self, *args, **kwargs):
        if not hasattr(self, '_initialized'):
            self.initialize(*args, **kwargs)
            self._initialized = True

    def initialize(self, *args, **kwargs):
        pass

    @classmethod
    def getInstance(cls):
        if cls not in cls._instances:
            cls()
        return cls._instances[cls]


class EventService(Singleton):
    """
    Routes archive events to their observers, one signalslot Signal per event key.
    Observers are called with keyword arguments only.
    """

    def initialize(self):
        self.signals = {}

    def reset(self):
        """Drop every observer, registered events stay registered (test isolation)"""
        for key in self.signals:
            self.signals[key] = Signal()

    def register(self, key):
        if key in self.signals:
            return False
        self.signals[key] = Signal()
        return True

    def subscribe(self, key, observer):
        signal = self.signals.get(key)
        if signal is None:
            raise KeyError(f"Event '{key}' is not registered.")

        if not signal.is_connected(observer):
            signal.connect(observer)

    def trigger(self, key, **kwargs):
        signal = self.signals.get(key)
        if signal is not None:
            signal.emit(**kwargs)


class Event:
    """Named handle on an EventService key"""

    def __init__(self, key):
        self.key = key

    def subscribe(self, observer):
        EventService.getInstance().subscribe(self.key, observer)

    def trigger(self, **kwargs):
        EventService.getInstance().trigger(self.key, **kwargs)


class StorageLocator(Singleton):
    """
    Resolves where configuration files (.env, .secret) live.

    Search order: SKELETON_STORAGE_LOCATION (when it names a directory), the current directory,
    ~/.dirskeleton, the platform config directory, then the source checkout.
    """

    def initialize(self, appName=APP_NAME):
        self.appName = appName

    def _platformDir(self):
        system = platform.system()

        if system == 'Windows':
            return os.path.join(os.getenv('APPDATA', os.path.expanduser('~')), self.appName)
        elif system == 'Darwin':
            return os.path.expanduser(f'~/Library/Application Support/{self.appName}')
        return os.path.expanduser(f'~/.config/{self.appName}')

    def searchDirs(self):
        dirs = []

        override = os.getenv('SKELETON_STORAGE_LOCATION')
        if override and os.path.isdir(override):
            dirs.append(override)

        dirs += [
            os.getcwd(),
            os.path.expanduser(f'~{os.path.sep}.{self.appName}'),
            self._platformDir(),
            os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
        ]
        return dirs

    def findConfig(self, filename):
        """
        Returns:
            Path of the first existing filename in searchDirs(), or the path it would have
            in the first search directory when none exists
        """
        dirs = self.searchDirs()
        for directory in dirs:
            path = os.path.join(directory, filename)
            if os.path.exists(path):
                return path

        return os.path.join(dirs[0], filename)


class SecretGetter(Singleton):
    """
    Read-only secrets with caching.
    Searches environment variables first, then the .secret JSON file located by StorageLocator.
    """

    DEFAULT_SECRET_FILE = '.secret'

    def initialize(self, secretFileName=DEFAULT_SECRET_FILE):
        self.secretFileName = secretFileName
        self._cache = {}
        self._secretData = None

    def _loadSecretFile(self):
        # Plain logging here, getLogger() itself depends on this class.
        logger = logging.getLogger(__name__)

        if self._secretData is not None:
            return

        secretPath = StorageLocator.getInstance().findConfig(self.secretFileName)

        if not os.path.exists(secretPath):
            self._secretData = {}
            return

        try:
            self._secretData = json.loads(Path(secretPath).read_text())
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Failed to load secret file {secretPath}: {e}")
            self._secretData = {}
            return

        logger.info(f"Loaded secret file {secretPath}")

    def get(self, key: str):
        """Secret value by key, None if it is not configured anywhere"""
        if self._cache.get(key):
            return self._cache[key]

        value = os.getenv(key)
        if not value:
            self._loadSecretFile()
            value = self._secretData.get(key)

        if value:
            self._cache[key] = value
        return value


# Event keys: RESTful path + /[action]
class SkeletonEvent:
    archiveEntryCreate = Event('/archive/entry/create')
    archiveFinalize = Event('/archive/finalize')


eventService = EventService.getInstance()

eventService.register(SkeletonEvent.archiveEntryCreate.key)
eventService.register(SkeletonEvent.archiveFinalize.key)
