# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/store/__init__.py
"""Object stores with optimistic concurrency and cascading deletion."""

from .base import ADDED, DELETED, MODIFIED, ObjectStore, Watch, WatchEvent
from .file import FileObjectStore
from .memory import InMemoryObjectStore

__all__ = [
    "ADDED",
    "DELETED",
    "MODIFIED",
    "ObjectStore",
    "Watch",
    "WatchEvent",
    "FileObjectStore",
    "InMemoryObjectStore",
]
