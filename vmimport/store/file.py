# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/store/file.py
"""
Directory-backed object store.

Layout: <root>/<Kind>/<namespace>/<name>.yaml (cluster-scoped kinds use the
`_cluster` directory). Writes are atomic renames; the compare-and-swap runs
under an flock on <root>/.lock so `vmimport apply` in another process and
a running controller can share one directory. Changes made by other
processes are picked up with a watchdog observer.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Dict, Iterator, Optional

import yaml
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..api import ApiObject, decode_object
from ..core.exceptions import StoreError
from ..core.file_ops import FileLock, atomic_write
from ..core.logger import Log
from .base import ADDED, DELETED, MODIFIED, Key, ObjectStore, Watch, WatchCallback, WatchEvent

CLUSTER_DIR = "_cluster"
SUFFIX = ".yaml"


class _StoreEventHandler(FileSystemEventHandler):
    """Forwards object file changes under the store root to the store."""

    def __init__(self, store: "FileObjectStore"):
        super().__init__()
        self.store = store

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self.store._on_file_changed(Path(event.src_path))

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self.store._on_file_changed(Path(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self.store._on_file_changed(Path(event.dest_path))

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self.store._on_file_removed(Path(event.src_path))


class FileObjectStore(ObjectStore):
    def __init__(self, root: Path, logger: Optional[logging.Logger] = None):
        super().__init__(logger or Log.get("store.file"))
        self.root = Path(root).expanduser().resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        self._lock = FileLock(self.root / ".lock")
        self._version_file = self.root / ".resource-version"
        # last version seen per key, to tell our own writes from foreign ones
        self._known: Dict[Key, ApiObject] = {}
        self._known_lock = threading.Lock()
        self._observer: Optional[Observer] = None

    # -- paths -------------------------------------------------------------

    def _path(self, key: Key) -> Path:
        kind, namespace, name = key
        return self.root / kind / (namespace or CLUSTER_DIR) / f"{name}{SUFFIX}"

    def _key_for(self, path: Path) -> Optional[Key]:
        try:
            rel = path.resolve().relative_to(self.root)
        except ValueError:
            return None
        parts = rel.parts
        if len(parts) != 3 or not parts[2].endswith(SUFFIX) or parts[2].startswith("."):
            return None
        kind, ns, fname = parts
        return (kind, "" if ns == CLUSTER_DIR else ns, fname[: -len(SUFFIX)])

    # -- backend primitives ------------------------------------------------

    def _locked(self):
        return self._lock

    def _next_version(self) -> str:
        try:
            current = int(self._version_file.read_text(encoding="utf-8").strip() or "0")
        except FileNotFoundError:
            current = 0
        except ValueError as e:
            raise StoreError(code=1, msg=f"corrupt version counter {self._version_file}", cause=e)
        nxt = current + 1
        with atomic_write(self._version_file) as tmp:
            tmp.write_text(f"{nxt}\n", encoding="utf-8")
        return str(nxt)

    def _load_path(self, path: Path) -> Optional[ApiObject]:
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        try:
            data = yaml.safe_load(text)
            return decode_object(data)
        except (yaml.YAMLError, ValueError, TypeError) as e:
            raise StoreError(code=1, msg=f"cannot decode {path}: {e}", cause=e)

    def _read(self, key: Key) -> Optional[ApiObject]:
        return self._load_path(self._path(key))

    def _write(self, obj: ApiObject) -> None:
        path = self._path(obj.key)
        with atomic_write(path) as tmp:
            tmp.write_text(yaml.safe_dump(obj.to_dict(), sort_keys=False, default_flow_style=False), encoding="utf-8")
        with self._known_lock:
            self._known[obj.key] = obj.deepcopy()

    def _remove(self, key: Key) -> None:
        self._path(key).unlink(missing_ok=True)
        with self._known_lock:
            self._known.pop(key, None)

    def _scan(self, kind: Optional[str] = None) -> Iterator[ApiObject]:
        base = self.root / kind if kind else self.root
        if not base.is_dir():
            return iter(())
        pattern = f"*/*{SUFFIX}" if kind else f"*/*/*{SUFFIX}"
        objs = []
        for path in sorted(base.glob(pattern)):
            if path.name.startswith("."):
                continue
            obj = self._load_path(path)
            if obj is not None:
                objs.append(obj)
        return iter(objs)

    # -- cross-process watch -----------------------------------------------

    def watch(self, callback: WatchCallback) -> Watch:
        w = super().watch(callback)
        if self._observer is None:
            with self._known_lock:
                for obj in self._scan():
                    self._known[obj.key] = obj
            observer = Observer()
            observer.schedule(_StoreEventHandler(self), str(self.root), recursive=True)
            observer.daemon = True
            observer.start()
            self._observer = observer
            self.logger.debug("watching store directory %s", self.root)
        return w

    def _on_file_changed(self, path: Path) -> None:
        key = self._key_for(path)
        if key is None:
            return
        try:
            obj = self._load_path(path)
        except StoreError as e:
            self.logger.warning("ignoring unreadable object file: %s", e)
            return
        if obj is None:
            return
        with self._known_lock:
            prev = self._known.get(key)
            if prev is not None and prev.metadata.resource_version == obj.metadata.resource_version:
                return
            self._known[key] = obj.deepcopy()
        Log.trace(self.logger, "external change: %s", path)
        self._notify(WatchEvent(ADDED if prev is None else MODIFIED, obj))

    def _on_file_removed(self, path: Path) -> None:
        key = self._key_for(path)
        if key is None:
            return
        with self._known_lock:
            prev = self._known.pop(key, None)
        if prev is not None:
            self._notify(WatchEvent(DELETED, prev))

    def close(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
        super().close()
