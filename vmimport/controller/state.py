# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/controller/state.py
"""
Working copy of one import request during a reconcile.

Holds the latest stored version of the request and performs every write
against it, so each write carries the resourceVersion of the previous
one. A ConflictError from any write aborts the reconcile; the next one
starts again from a fresh read.
"""

from __future__ import annotations

import datetime as _dt
import logging
from typing import Callable, List, Optional, Type, TypeVar

from .. import conditions as cond
from ..api.constants import CLEANUP_SNAPSHOTS_FINALIZER, ProcessingReason
from ..api.meta import ApiObject
from ..api.objects import DataVolume, VirtualMachine
from ..api.types import Condition, DataVolumeItem, VirtualMachineImport
from ..core.exceptions import CleanupErrors, ProviderError, fold_messages
from ..core.logger import Log
from ..providers.base import Mapper, Provider
from ..store.base import ObjectStore

T = TypeVar("T", bound=ApiObject)


class ImportState:
    def __init__(
        self,
        store: ObjectStore,
        request: VirtualMachineImport,
        *,
        clock: Callable[[], _dt.datetime],
        logger: logging.Logger,
    ):
        self.store = store
        self.request = request
        self.clock = clock
        self.logger = logger
        self._meta_dirty = False

    @property
    def namespace(self) -> str:
        return self.request.namespace

    # -- request writes ----------------------------------------------------

    def upsert(self, *conditions: Condition) -> None:
        now = self.clock()
        for c in conditions:
            cond.upsert(self.request.status.conditions, c, now=now)

    def set_progress(self, value: int) -> None:
        if self.request.progress != str(int(value)):
            self.request.set_progress(value)
            self._meta_dirty = True

    def annotate(self, key: str, value: str) -> None:
        if self.request.metadata.annotations.get(key) != value:
            self.request.metadata.annotations[key] = value
            self._meta_dirty = True

    def add_finalizer(self, name: str) -> None:
        if name not in self.request.metadata.finalizers:
            self.request.metadata.finalizers.append(name)
            self._meta_dirty = True

    def remove_finalizer(self, name: str) -> None:
        if name in self.request.metadata.finalizers:
            self.request.metadata.finalizers.remove(name)
            self._meta_dirty = True

    def save(self) -> VirtualMachineImport:
        """Persist pending metadata changes, then the status."""
        status = self.request.status
        if self._meta_dirty:
            updated = self.store.update(self.request)
            updated.status = status
            self.request = updated
            self._meta_dirty = False
        self.request = self.store.update_status(self.request)
        return self.request

    # -- owned objects -----------------------------------------------------

    def ensure_owned(self, obj: T) -> T:
        """Get-then-create; a created object is controller-owned by the request."""
        existing = self.store.try_get(type(obj), obj.namespace or self.namespace, obj.name)
        if existing is not None:
            return existing
        if not obj.metadata.namespace:
            obj.metadata.namespace = self.namespace
        obj.set_controller_reference(self.request)
        created = self.store.create(obj)
        self.logger.debug("created %s %s", created.KIND, created.namespaced_name)
        return created

    def try_get(self, cls: Type[T], name: str) -> T:
        return self.store.try_get(cls, self.namespace, name)  # type: ignore[return-value]

    def create_data_volume(self, mapper: Mapper, target_vm_name: str, dv: DataVolume) -> DataVolume:
        """Create a volume, wire it into the target VM and record it on the status."""
        created = self.ensure_owned(dv)
        vm = self.store.get(VirtualMachine, self.namespace, target_vm_name)
        if not vm.has_volume(f"dv-{created.name}"):
            mapper.map_disk(vm, created)
            self.store.update(vm)
        if created.name not in self.request.data_volume_names():
            self.request.status.data_volumes.append(DataVolumeItem(name=created.name))
        return created

    def data_volumes(self) -> List[DataVolume]:
        out: List[DataVolume] = []
        for name in self.request.data_volume_names():
            dv = self.try_get(DataVolume, name)
            if dv is not None:
                out.append(dv)
        return out

    def set_vm_running(self, target_vm_name: str, running: bool) -> None:
        vm = self.store.get(VirtualMachine, self.namespace, target_vm_name)
        if vm.spec.running != running:
            vm.spec.running = running
            self.store.update(vm)
            self.logger.debug("VM %s/%s running=%s", self.namespace, target_vm_name, running)

    # -- warm snapshots ----------------------------------------------------

    def snapshot_chain(self) -> List[str]:
        """Root snapshot plus every checkpoint snapshot, oldest first."""
        snapshots: List[str] = []
        root = self.request.status.warm_import.root_snapshot
        if root:
            snapshots.append(root)
        for dv in self.data_volumes():
            for cp in dv.spec.checkpoints:
                if cp.current and cp.current not in snapshots:
                    snapshots.append(cp.current)
        return snapshots

    def release_snapshots(self, provider: Provider, snapshots: Optional[List[str]] = None) -> List[BaseException]:
        """
        Remove source snapshots and, when all are gone, the cleanup
        finalizer. Returns the removal errors; the finalizer stays if any.
        """
        errors: List[BaseException] = []
        for snapshot in self.snapshot_chain() if snapshots is None else snapshots:
            try:
                provider.remove_vm_snapshot(snapshot)
                self.logger.debug("removed source snapshot %s", snapshot)
            except Exception as e:
                errors.append(ProviderError(code=50, msg=f"failed to remove source snapshot {snapshot}: {e}", cause=e))
        if not errors:
            self.remove_finalizer(CLEANUP_SNAPSHOTS_FINALIZER)
        return errors

    # -- failure -----------------------------------------------------------

    def fail(self, provider: Provider, reason: str, message: str, *, cleanup: bool = True) -> None:
        """
        Record a terminal failure. With `cleanup`, the provider removes what
        was created so far and warm snapshots are dropped; their errors are
        folded into the message.
        """
        errors: List[BaseException] = []
        if cleanup:
            snapshots = self.snapshot_chain()
            try:
                provider.clean_up(True, self.request)
            except CleanupErrors as e:
                errors = list(e.errors) or [e]
            except Exception as e:
                errors = [e]
            errors += self.release_snapshots(provider, snapshots)
        msg = fold_messages(message, errors)
        self.upsert(
            cond.new_succeeded_condition(reason, msg, status=False),
            cond.new_processing_condition(ProcessingReason.FAILED, msg, status=False),
        )
        self.save()
        Log.fail(self.logger, f"import {self.request.namespaced_name} failed: {msg}")
