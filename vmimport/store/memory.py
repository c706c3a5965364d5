# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/store/memory.py
"""In-process object store used by tests and `vmimport run --in-memory`."""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Dict, Iterator, List, Optional

from ..api.meta import ApiObject
from .base import Key, ObjectStore


class InMemoryObjectStore(ObjectStore):
    def __init__(self, logger: Optional[logging.Logger] = None):
        super().__init__(logger)
        self._objects: Dict[Key, ApiObject] = {}
        self._lock = threading.RLock()
        self._versions = itertools.count(1)

    def _locked(self):
        return self._lock

    def _next_version(self) -> str:
        return str(next(self._versions))

    def _read(self, key: Key) -> Optional[ApiObject]:
        with self._lock:
            return self._objects.get(key)

    def _write(self, obj: ApiObject) -> None:
        with self._lock:
            self._objects[obj.key] = obj

    def _remove(self, key: Key) -> None:
        with self._lock:
            self._objects.pop(key, None)

    def _scan(self, kind: Optional[str] = None) -> Iterator[ApiObject]:
        with self._lock:
            snapshot: List[ApiObject] = [o for k, o in self._objects.items() if kind is None or k[0] == kind]
        return iter(snapshot)

    def __len__(self) -> int:
        with self._lock:
            return len(self._objects)
