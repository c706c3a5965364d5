# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/store/base.py
"""
Object store contract with optimistic concurrency and owner-reference GC.

Every write compares metadata.resourceVersion with the stored copy and
raises ConflictError on mismatch; callers re-read and redo the whole step.
Objects handed out are private copies, never the stored instance.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional, Tuple, Type, TypeVar

from ..api.meta import ApiObject, new_uid, utcnow
from ..core.exceptions import AlreadyExistsError, ConflictError, NotFoundError, StoreError
from ..core.logger import Log

T = TypeVar("T", bound=ApiObject)

Key = Tuple[str, str, str]

ADDED = "ADDED"
MODIFIED = "MODIFIED"
DELETED = "DELETED"


@dataclass(frozen=True)
class WatchEvent:
    type: str
    obj: ApiObject


WatchCallback = Callable[[WatchEvent], None]


class Watch:
    """Handle returned by `ObjectStore.watch`; `stop()` unsubscribes."""

    def __init__(self, store: "ObjectStore", callback: WatchCallback):
        self._store = store
        self.callback = callback

    def stop(self) -> None:
        self._store._unsubscribe(self)


class ObjectStore(ABC):
    """
    Template for stores: subclasses provide raw persistence (`_read`,
    `_write`, `_remove`, `_scan`) and a critical section (`_locked`); the
    version checks, uid assignment, GC and watch fan-out live here.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or Log.get("store")
        self._watches: List[Watch] = []
        self._watch_lock = threading.Lock()

    # -- backend primitives ------------------------------------------------

    @abstractmethod
    def _read(self, key: Key) -> Optional[ApiObject]:
        ...

    @abstractmethod
    def _write(self, obj: ApiObject) -> None:
        ...

    @abstractmethod
    def _remove(self, key: Key) -> None:
        ...

    @abstractmethod
    def _scan(self, kind: Optional[str] = None) -> Iterator[ApiObject]:
        ...

    @abstractmethod
    def _locked(self):
        """Context manager guarding one read-compare-write sequence."""

    @abstractmethod
    def _next_version(self) -> str:
        ...

    # -- reads -------------------------------------------------------------

    def try_get(self, cls: Type[T], namespace: str, name: str) -> Optional[T]:
        obj = self._read((cls.KIND, _ns(cls, namespace), name))
        return obj.deepcopy() if obj is not None else None  # type: ignore[return-value]

    def get(self, cls: Type[T], namespace: str, name: str) -> T:
        obj = self.try_get(cls, namespace, name)
        if obj is None:
            raise NotFoundError(
                code=1,
                msg=f"{cls.KIND} {_fmt(_ns(cls, namespace), name)} not found",
                context={"kind": cls.KIND, "namespace": namespace, "name": name},
            )
        return obj

    def list(
        self,
        cls: Type[T],
        namespace: Optional[str] = None,
        *,
        labels: Optional[Dict[str, str]] = None,
        owner_uid: Optional[str] = None,
    ) -> List[T]:
        out: List[T] = []
        for obj in self._scan(cls.KIND):
            if namespace is not None and cls.NAMESPACED and obj.metadata.namespace != namespace:
                continue
            if labels and any(obj.metadata.labels.get(k) != v for k, v in labels.items()):
                continue
            if owner_uid and not any(r.uid == owner_uid for r in obj.metadata.owner_references):
                continue
            out.append(obj.deepcopy())  # type: ignore[arg-type]
        out.sort(key=lambda o: (o.metadata.namespace, o.metadata.name))
        return out

    # -- writes ------------------------------------------------------------

    def create(self, obj: T) -> T:
        if not obj.metadata.name:
            raise StoreError(code=1, msg=f"{obj.KIND} without metadata.name")
        new = obj.deepcopy()
        if not type(new).NAMESPACED:
            new.metadata.namespace = ""
        with self._locked():
            if self._read(new.key) is not None:
                raise AlreadyExistsError(
                    code=1,
                    msg=f"{new.KIND} {new.namespaced_name} already exists",
                    context={"kind": new.KIND, "namespace": new.namespace, "name": new.name},
                )
            new.metadata.uid = new.metadata.uid or new_uid()
            new.metadata.resource_version = self._next_version()
            new.metadata.generation = 1
            new.metadata.creation_timestamp = new.metadata.creation_timestamp or utcnow()
            new.metadata.deletion_timestamp = None
            self._write(new)
        Log.trace(self.logger, "created %s %s rv=%s", new.KIND, new.namespaced_name, new.metadata.resource_version)
        self._notify(WatchEvent(ADDED, new))
        return new.deepcopy()

    def update(self, obj: T) -> T:
        """Replace spec and metadata; the stored status is kept."""
        return self._replace(obj, status_only=False)

    def update_status(self, obj: T) -> T:
        """Replace status only; spec and metadata stay as stored."""
        return self._replace(obj, status_only=True)

    def _replace(self, obj: T, *, status_only: bool) -> T:
        removed: List[ApiObject] = []
        with self._locked():
            current = self._read(obj.key)
            if current is None:
                raise NotFoundError(code=1, msg=f"{obj.KIND} {obj.namespaced_name} not found")
            if obj.metadata.resource_version != current.metadata.resource_version:
                raise ConflictError(
                    code=1,
                    msg=(
                        f"{obj.KIND} {obj.namespaced_name} was modified: "
                        f"have resourceVersion {obj.metadata.resource_version or '<none>'}, "
                        f"stored {current.metadata.resource_version}"
                    ),
                    context={"kind": obj.KIND, "namespace": obj.namespace, "name": obj.name},
                )
            if status_only:
                new = current.deepcopy()
                if hasattr(obj, "status"):
                    new.status = obj.deepcopy().status  # type: ignore[attr-defined]
            else:
                new = obj.deepcopy()
                if hasattr(current, "status"):
                    new.status = current.deepcopy().status  # type: ignore[attr-defined]
                new.metadata.uid = current.metadata.uid
                new.metadata.creation_timestamp = current.metadata.creation_timestamp
                new.metadata.deletion_timestamp = current.metadata.deletion_timestamp
                new.metadata.generation = current.metadata.generation + (
                    1 if _spec_of(new) != _spec_of(current) else 0
                )
            new.metadata.resource_version = self._next_version()
            if new.metadata.deletion_timestamp is not None and not new.metadata.finalizers:
                # last finalizer gone: the pending delete goes through
                removed = self._collect_garbage(new)
            else:
                self._write(new)
        if removed:
            self._notify_deleted(removed)
            return new.deepcopy()  # type: ignore[return-value]
        Log.trace(self.logger, "updated %s %s rv=%s", new.KIND, new.namespaced_name, new.metadata.resource_version)
        self._notify(WatchEvent(MODIFIED, new))
        return new.deepcopy()  # type: ignore[return-value]

    def delete(self, cls: Type[ApiObject], namespace: str, name: str) -> None:
        """
        Delete an object, then every object owned by it, recursively.

        An object with finalizers is only marked (deletionTimestamp set);
        it goes away once an update removes its last finalizer.
        """
        key = (cls.KIND, _ns(cls, namespace), name)
        marked: Optional[ApiObject] = None
        removed: List[ApiObject] = []
        with self._locked():
            victim = self._read(key)
            if victim is None:
                raise NotFoundError(code=1, msg=f"{cls.KIND} {_fmt(key[1], name)} not found")
            if victim.metadata.finalizers:
                if victim.metadata.deletion_timestamp is None:
                    marked = victim.deepcopy()
                    marked.metadata.deletion_timestamp = utcnow()
                    marked.metadata.resource_version = self._next_version()
                    self._write(marked)
            else:
                removed = self._collect_garbage(victim)
        if marked is not None:
            self.logger.debug(
                "%s %s marked for deletion, waiting for %s",
                marked.KIND,
                marked.namespaced_name,
                ", ".join(marked.metadata.finalizers),
            )
            self._notify(WatchEvent(MODIFIED, marked))
        self._notify_deleted(removed)

    def _notify_deleted(self, removed: List[ApiObject]) -> None:
        for obj in removed:
            self.logger.debug("deleted %s %s", obj.KIND, obj.namespaced_name)
            self._notify(WatchEvent(DELETED, obj))

    def _collect_garbage(self, root: ApiObject) -> List[ApiObject]:
        removed: List[ApiObject] = []
        pending = [root]
        seen = set()
        now = utcnow()
        while pending:
            obj = pending.pop()
            if obj.metadata.uid in seen:
                continue
            seen.add(obj.metadata.uid)
            self._remove(obj.key)
            obj.metadata.deletion_timestamp = now
            removed.append(obj)
            for dep in self._scan():
                if any(r.uid == obj.metadata.uid for r in dep.metadata.owner_references):
                    pending.append(dep)
        return removed

    # -- watch -------------------------------------------------------------

    def watch(self, callback: WatchCallback) -> Watch:
        w = Watch(self, callback)
        with self._watch_lock:
            self._watches.append(w)
        return w

    def _unsubscribe(self, w: Watch) -> None:
        with self._watch_lock:
            if w in self._watches:
                self._watches.remove(w)

    def _notify(self, event: WatchEvent) -> None:
        with self._watch_lock:
            watches = list(self._watches)
        for w in watches:
            try:
                w.callback(WatchEvent(event.type, event.obj.deepcopy()))
            except Exception as e:
                self.logger.warning("watch callback failed for %s %s: %s", event.obj.KIND, event.obj.namespaced_name, e)

    def close(self) -> None:
        with self._watch_lock:
            self._watches.clear()


def _ns(cls: Type[ApiObject], namespace: str) -> str:
    return namespace if cls.NAMESPACED else ""


def _fmt(namespace: str, name: str) -> str:
    return f"{namespace}/{name}" if namespace else name


def _spec_of(obj: ApiObject):
    spec = getattr(obj, "spec", None)
    return spec.to_dict() if spec is not None else obj.to_dict()
