# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/controller/warm_import.py
"""
Warm (incremental) import staging.

Each stage copies the delta between two source snapshots into every
DataVolume; a volume's checkpoint chain grows by one entry per stage. The
source VM keeps running until the finalize date, when one last stage is
taken with `finalCheckpoint` set and the import completes like a cold one.

Nothing here blocks: every call inspects the stored state, does at most one
step and tells the reconciler when to look again.
"""

from __future__ import annotations

import datetime as _dt
import logging
from typing import Callable, Dict, Optional

from .. import conditions as cond
from ..api.constants import CLEANUP_SNAPSHOTS_FINALIZER, DataVolumePhase, ProcessingReason, SucceededReason
from ..api.meta import utcnow
from ..api.objects import DataVolume, DataVolumeCheckpoint
from ..api.types import VirtualMachineImport, WarmImportStatus
from ..core.exceptions import WarmImportError, is_transient
from ..core.logger import Log
from ..providers.base import Mapper, Provider
from ..store.base import ObjectStore
from .config import ControllerConfig
from .result import ReconcileResult
from .state import ImportState


class WarmImportStager:
    def __init__(
        self,
        store: ObjectStore,
        config: ControllerConfig,
        *,
        clock: Callable[[], _dt.datetime] = utcnow,
        logger: Optional[logging.Logger] = None,
    ):
        self.store = store
        self.config = config
        self.clock = clock
        self.logger = logger or Log.get("warm")

    # -- gating ------------------------------------------------------------

    def should_finalize(self, request: VirtualMachineImport) -> bool:
        spec = request.spec
        return bool(spec.warm and spec.finalize_date is not None and spec.finalize_date <= self.clock())

    def skip_warm_import(self, request: VirtualMachineImport) -> bool:
        """Finalize date already past and nothing staged yet: import cold."""
        return self.should_finalize(request) and request.status.warm_import.root_snapshot is None

    def should_warm_import(self, provider: Provider, request: VirtualMachineImport) -> bool:
        return provider.supports_warm_migration() and request.spec.warm and not self.skip_warm_import(request)

    def limit_reached(self, warm: WarmImportStatus) -> bool:
        return (
            warm.failures > self.config.warm_max_failures
            or warm.consecutive_failures > self.config.warm_max_consecutive_failures
        )

    # -- results -----------------------------------------------------------

    def _fast(self) -> ReconcileResult:
        return ReconcileResult(requeue_after=float(self.config.requeue_fast_seconds))

    def _slow(self) -> ReconcileResult:
        return ReconcileResult(requeue_after=float(self.config.requeue_slow_seconds))

    def check_limit(self, state: ImportState, provider: Provider) -> Optional[ReconcileResult]:
        """End the import once the failure counters pass their limits."""
        if not self.limit_reached(state.request.status.warm_import):
            return None
        return self._end_failed(state, provider, "warm import retry limit reached")

    # -- stages ------------------------------------------------------------

    def stage(self, state: ImportState, provider: Provider, mapper: Mapper, target_vm_name: str) -> ReconcileResult:
        """One step of a warm import that is not finalizing yet."""
        ended = self.check_limit(state, provider)
        if ended is not None:
            return ended

        terminal = self._ensure_disks(state, provider, mapper, target_vm_name)
        if terminal is not None:
            return terminal
        self._sync_running(state, mapper, target_vm_name)

        if not self._stage_complete(state, mapper, target_vm_name):
            state.upsert(cond.new_processing_condition(ProcessingReason.COPYING_STAGE, "Copying next warm import stage"))
            state.save()
            Log.trace(self.logger, "waiting for warm import stage to complete")
            return self._slow()

        warm = state.request.status.warm_import
        if warm.next_stage_time is None:
            self._set_next_stage_time(state)
            warm = state.request.status.warm_import

        if warm.next_stage_time is not None and warm.next_stage_time > self.clock():
            state.upsert(
                cond.new_processing_condition(ProcessingReason.COPYING_PAUSED, "Waiting for next warm import stage")
            )
            state.save()
            return self._slow()

        self._setup_next_stage(state, provider, mapper, target_vm_name, final=False)
        self._set_next_stage_time(state)
        Log.step(self.logger, "commencing next warm import stage")
        return self._fast()

    def finalize(
        self, state: ImportState, provider: Provider, mapper: Mapper, target_vm_name: str
    ) -> Optional[ReconcileResult]:
        """
        Run the final stage once the current one completes. Returns None when
        every volume already carries its final checkpoint.
        """
        ended = self.check_limit(state, provider)
        if ended is not None:
            return ended

        terminal = self._ensure_disks(state, provider, mapper, target_vm_name)
        if terminal is not None:
            return terminal
        self._sync_running(state, mapper, target_vm_name)

        volumes = self._existing_volumes(state, mapper, target_vm_name)
        if volumes and all(dv.spec.final_checkpoint for dv in volumes.values()):
            return None

        if not self._stage_complete(state, mapper, target_vm_name):
            state.upsert(cond.new_processing_condition(ProcessingReason.COPYING_STAGE, "Copying next warm import stage"))
            state.save()
            return self._slow()

        self._setup_next_stage(state, provider, mapper, target_vm_name, final=True)
        Log.step(self.logger, "commencing final warm import stage")
        return self._fast()

    # -- steps -------------------------------------------------------------

    def _ensure_disks(
        self, state: ImportState, provider: Provider, mapper: Mapper, target_vm_name: str
    ) -> Optional[ReconcileResult]:
        if CLEANUP_SNAPSHOTS_FINALIZER not in state.request.metadata.finalizers:
            # before any snapshot exists, so a delete can always find them
            state.add_finalizer(CLEANUP_SNAPSHOTS_FINALIZER)
            state.save()

        warm = state.request.status.warm_import
        if warm.root_snapshot is None:
            warm.root_snapshot = self._snapshot(state, provider)
            state.save()
            warm = state.request.status.warm_import

        for disk_id, dv in mapper.map_data_volumes(target_vm_name).items():
            if state.try_get(DataVolume, dv.name) is not None:
                continue
            # the disk must not have been changed behind our back
            if not provider.validate_disk_status(disk_id):
                state.fail(provider, SucceededReason.DATA_VOLUME_CREATION_FAILED, f"disk {disk_id} is in illegal status")
                return ReconcileResult()
            dv.spec.final_checkpoint = False
            dv.spec.checkpoints = [DataVolumeCheckpoint(previous="", current=str(warm.root_snapshot))]
            try:
                state.create_data_volume(mapper, target_vm_name, dv)
            except Exception as e:
                if is_transient(e):
                    raise
                self._record_failure(state)
                raise WarmImportError(
                    code=50, msg=f"failed to create volume {dv.name} for disk {disk_id}: {e}", cause=e
                )
            self.logger.info("created warm import volume %s for disk %s", dv.name, disk_id)
        state.save()
        return None

    def _existing_volumes(self, state: ImportState, mapper: Mapper, target_vm_name: str) -> Dict[str, DataVolume]:
        out: Dict[str, DataVolume] = {}
        for disk_id, dv in mapper.map_data_volumes(target_vm_name).items():
            existing = state.try_get(DataVolume, dv.name)
            if existing is not None:
                out[disk_id] = existing
        return out

    def _sync_running(self, state: ImportState, mapper: Mapper, target_vm_name: str) -> None:
        """Volumes bound on first consumer need a running VM; otherwise keep the mapped state."""
        volumes = self._existing_volumes(state, mapper, target_vm_name).values()
        waiting = [dv.name for dv in volumes if dv.status.phase == DataVolumePhase.WAIT_FOR_FIRST_CONSUMER]
        if waiting:
            self.logger.debug("volumes waiting for first consumer: %s", ", ".join(waiting))
            state.set_vm_running(target_vm_name, True)
        else:
            state.set_vm_running(target_vm_name, mapper.running_state())

    def _stage_complete(self, state: ImportState, mapper: Mapper, target_vm_name: str) -> bool:
        mapped = mapper.map_data_volumes(target_vm_name)
        done = 0
        for dv in mapped.values():
            existing = state.try_get(DataVolume, dv.name)
            if existing is None:
                return False
            if existing.failed():
                self._record_failure(state)
                raise WarmImportError(code=50, msg=f"DataVolume {existing.name} stage failed")
            if existing.stage_complete():
                done += 1
        return done == len(mapped)

    def _setup_next_stage(
        self, state: ImportState, provider: Provider, mapper: Mapper, target_vm_name: str, *, final: bool
    ) -> None:
        snapshot: Optional[str] = None
        for dv in mapper.map_data_volumes(target_vm_name).values():
            current = self.store.get(DataVolume, state.namespace, dv.name)
            if current.spec.final_checkpoint:
                continue
            if snapshot is None:
                snapshot = self._snapshot(state, provider)
            last = current.last_checkpoint()
            if last is None:
                current.spec.checkpoints = [DataVolumeCheckpoint(previous="", current=snapshot)]
            else:
                current.spec.checkpoints.append(DataVolumeCheckpoint(previous=last.current, current=snapshot))
            current.spec.final_checkpoint = final
            self.store.update(current)
            self.logger.debug("volume %s checkpoint -> %s (final=%s)", current.name, snapshot, final)

    def _snapshot(self, state: ImportState, provider: Provider) -> str:
        try:
            return provider.create_vm_snapshot()
        except Exception as e:
            self._record_failure(state)
            raise WarmImportError(code=50, msg=f"failed to create source VM snapshot: {e}", cause=e)

    def _set_next_stage_time(self, state: ImportState) -> None:
        warm = state.request.status.warm_import
        now = self.clock()
        if warm.next_stage_time is not None and warm.next_stage_time > now:
            return
        warm.next_stage_time = now + self.config.warm_interval
        warm.successes += 1
        warm.consecutive_failures = 0
        state.save()

    def _record_failure(self, state: ImportState) -> None:
        warm = state.request.status.warm_import
        warm.failures += 1
        warm.consecutive_failures += 1
        state.save()
        Log.warn(
            self.logger,
            f"warm import failure {warm.failures} (consecutive {warm.consecutive_failures})",
        )

    def _end_failed(self, state: ImportState, provider: Provider, message: str) -> ReconcileResult:
        """Terminal failure: created objects and snapshots are removed, the source VM restored."""
        state.fail(provider, SucceededReason.WARM_IMPORT_FAILED, message)
        return ReconcileResult()
