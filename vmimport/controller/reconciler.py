# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/controller/reconciler.py
"""
Import reconciler.

`reconcile(key)` drives one VirtualMachineImport a step closer to done and
is safe to call any number of times: every phase first looks at what is
already stored and only acts on what is missing.

Phases:
  fetch -> provider init -> validate -> stop source VM -> create target
  -> [warm stages] -> create volumes -> start VM -> succeeded

Errors propagate to the controller, which requeues the key with backoff.
Terminal outcomes are recorded as conditions and return without requeue.
"""

from __future__ import annotations

import datetime as _dt
import logging
from typing import Callable, List, Optional

from .. import conditions as cond
from ..api.constants import (
    CLEANUP_SNAPSHOTS_FINALIZER,
    PROGRESS_COPY_SPAN,
    PROGRESS_COPYING_DISKS,
    PROGRESS_CREATING_VM,
    PROGRESS_DONE,
    PROGRESS_STARTING_VM,
    SOURCE_VM_INITIAL_STATE_ANNOTATION,
    ConditionType,
    DataVolumePhase,
    ProcessingReason,
    SucceededReason,
    ValidatingReason,
    VMIPhase,
    VMStatus,
)
from ..api.meta import NamespacedName, utcnow
from ..api.objects import DataVolume, Secret, VirtualMachine, VirtualMachineInstance
from ..api.types import VirtualMachineImport
from ..core.exceptions import CleanupErrors, NotFoundError, VmImportError, is_transient
from ..core.logger import Log
from ..core.logging_utils import log_step
from ..core.utils import U
from ..mappings.finder import ResourceMappingsFinder
from ..providers.base import Mapper, Provider
from ..providers.registry import ProviderRegistry
from ..store.base import ObjectStore
from ..validation.engine import ValidationEngine, is_valid
from .config import ControllerConfig
from .result import DONE, ReconcileResult
from .state import ImportState
from .warm_import import WarmImportStager


def should_validate(request: VirtualMachineImport) -> bool:
    """Re-validate unless both validation conditions are already True."""
    conditions = request.status.conditions
    return not (
        cond.is_true(conditions, ConditionType.VALIDATING)
        and cond.is_true(conditions, ConditionType.MAPPING_RULES_VERIFIED)
    )


def is_finished(request: VirtualMachineImport) -> bool:
    """
    Succeeded, or failed for good. A validation failure is not final: a
    changed spec is validated again.
    """
    c = cond.find(request.status.conditions, ConditionType.SUCCEEDED)
    if c is None:
        return False
    if cond.is_true(request.status.conditions, ConditionType.SUCCEEDED):
        return True
    return c.reason != SucceededReason.VALIDATION_FAILED


def copy_progress(volumes: List[DataVolume]) -> int:
    """10 + 75 * mean(volume progress) / 100, truncated."""
    if not volumes:
        return PROGRESS_COPYING_DISKS
    mean = sum(dv.status.progress_percent() for dv in volumes) / len(volumes)
    return int(PROGRESS_COPYING_DISKS + PROGRESS_COPY_SPAN * mean / 100)


class ImportReconciler:
    def __init__(
        self,
        store: ObjectStore,
        config: Optional[ControllerConfig] = None,
        *,
        registry: Optional[ProviderRegistry] = None,
        engine: Optional[ValidationEngine] = None,
        clock: Callable[[], _dt.datetime] = utcnow,
        logger: Optional[logging.Logger] = None,
    ):
        self.store = store
        self.config = config or ControllerConfig()
        self.registry = registry or ProviderRegistry.default()
        self.logger = logger or Log.get("reconciler")
        self.engine = engine or ValidationEngine(self.config.check_action_table(), logger=self.logger)
        self.clock = clock
        self.finder = ResourceMappingsFinder(store)
        self.stager = WarmImportStager(store, self.config, clock=clock, logger=self.logger)

    def _fast(self) -> ReconcileResult:
        return ReconcileResult(requeue_after=float(self.config.requeue_fast_seconds))

    def _slow(self) -> ReconcileResult:
        return ReconcileResult(requeue_after=float(self.config.requeue_slow_seconds))

    # -- entry point -------------------------------------------------------

    def reconcile(self, key: str) -> ReconcileResult:
        nn = NamespacedName.parse(key)
        request = self.store.try_get(VirtualMachineImport, nn.namespace, nn.name)
        if request is None:
            self.logger.debug("import %s is gone", key)
            return DONE

        log = Log.bind(self.logger, request=key)
        if request.metadata.deletion_timestamp is not None:
            return self._finalize_deleted(request, log)
        if is_finished(request):
            return DONE

        Log.trace(log, "reconciling import rv=%s", request.metadata.resource_version)

        provider = self._init_provider(request, log)
        try:
            state = ImportState(self.store, request, clock=self.clock, logger=log)
            return self._run(state, provider, log)
        finally:
            provider.close()

    def _finalize_deleted(self, request: VirtualMachineImport, log: logging.LoggerAdapter) -> ReconcileResult:
        """Remove the source snapshots of a deleted warm import, then let the delete finish."""
        if CLEANUP_SNAPSHOTS_FINALIZER not in request.metadata.finalizers:
            return DONE
        state = ImportState(self.store, request, clock=self.clock, logger=log)
        snapshots = state.snapshot_chain()
        if snapshots:
            provider = self._connect(request, log)
            try:
                errors = state.release_snapshots(provider, snapshots)
            finally:
                provider.close()
            if errors:
                raise CleanupErrors.from_errors(
                    errors, prefix=f"snapshot cleanup of {request.namespaced_name} failed"
                )
        state.remove_finalizer(CLEANUP_SNAPSHOTS_FINALIZER)
        # the object goes away with its last finalizer; no status write follows
        self.store.update(state.request)
        Log.ok(log, f"released {len(snapshots)} source snapshot(s) of deleted import {request.namespaced_name}")
        return DONE

    # -- phases ------------------------------------------------------------

    def _connect(self, request: VirtualMachineImport, log: logging.LoggerAdapter) -> Provider:
        """Connect to the source and load the VM. Errors carry a `reason` context."""
        ref = request.spec.provider_credentials_secret.resolve(request.namespace)
        try:
            secret = self.store.get(Secret, ref.namespace, ref.name)
        except NotFoundError as e:
            raise e.with_context(reason=ValidatingReason.SECRET_NOT_FOUND)

        provider = self.registry.create(request, self.store, engine=self.engine, logger=log)
        try:
            try:
                provider.connect(secret)
            except VmImportError as e:
                raise e.with_context(reason=ValidatingReason.UNREACHABLE_PROVIDER)
            try:
                provider.load_vm(request.spec.source.provider_source)
            except VmImportError as e:
                raise e.with_context(reason=ValidatingReason.SOURCE_VM_NOT_FOUND)
        except BaseException:
            provider.close()
            raise
        return provider

    def _init_provider(self, request: VirtualMachineImport, log: logging.LoggerAdapter) -> Provider:
        """Connect, then resolve the mappings the request refers to."""
        source = request.spec.source.provider_source
        provider = self._connect(request, log)
        try:
            try:
                external = self.finder.find(request.spec.resource_mapping, request.namespace)
            except NotFoundError as e:
                raise e.with_context(reason=ValidatingReason.RESOURCE_MAPPING_NOT_FOUND)
            provider.prepare_resource_mapping(external, source)
        except BaseException:
            provider.close()
            raise
        return provider

    def _run(self, state: ImportState, provider: Provider, log: logging.LoggerAdapter) -> ReconcileResult:
        if should_validate(state.request):
            with log_step(log, "validate source VM"):
                if not self._validate(state, provider):
                    return DONE

        mapper = provider.create_mapper()
        target_name = mapper.resolve_vm_name(state.request.spec.target_vm_name)
        warm = self.stager.should_warm_import(provider, state.request)

        if warm:
            # checked before the finalize stage stops the source VM
            ended = self.stager.check_limit(state, provider)
            if ended is not None:
                return ended
        else:
            self._stop_source_vm(state, provider)

        if not self._create_target(state, provider, mapper, target_name):
            return DONE

        if warm:
            if not self.stager.should_finalize(state.request):
                return self.stager.stage(state, provider, mapper, target_name)
            self._stop_source_vm(state, provider)
            result = self.stager.finalize(state, provider, mapper, target_name)
            if result is not None:
                return result

        result = self._create_volumes(state, provider, mapper, target_name)
        if result is not None:
            return result

        return self._complete(state, provider, mapper, target_name)

    def _validate(self, state: ImportState, provider: Provider) -> bool:
        conditions = provider.validate()
        state.upsert(*conditions)
        if is_valid(conditions):
            state.request.status.conditions = [
                c
                for c in state.request.status.conditions
                if not (c.type == ConditionType.SUCCEEDED and c.reason == SucceededReason.VALIDATION_FAILED)
            ]
            state.save()
            Log.ok(state.logger, "validation passed")
            return True
        message = U.join_messages(
            cond.false_condition_messages(
                conditions, ConditionType.VALIDATING, ConditionType.MAPPING_RULES_VERIFIED
            )
        )
        state.upsert(cond.new_succeeded_condition(SucceededReason.VALIDATION_FAILED, message, status=False))
        state.save()
        Log.fail(state.logger, f"import {state.request.namespaced_name} is not valid: {message}")
        return False

    def _stop_source_vm(self, state: ImportState, provider: Provider) -> None:
        annotations = state.request.metadata.annotations
        if SOURCE_VM_INITIAL_STATE_ANNOTATION not in annotations:
            initial = VMStatus.UP if provider.get_vm_status() == VMStatus.UP else VMStatus.DOWN
            state.annotate(SOURCE_VM_INITIAL_STATE_ANNOTATION, initial)
            state.save()
        provider.stop_vm()

    def _create_target(self, state: ImportState, provider: Provider, mapper: Mapper, target_name: str) -> bool:
        """Ensure the target VM plus transient Secret and ConfigMap exist. False on terminal failure."""
        ns = state.namespace
        if state.request.status.target_vm_name == target_name and state.try_get(VirtualMachine, target_name) is not None:
            return True

        if state.request.progress is None:
            state.set_progress(PROGRESS_CREATING_VM)
            state.upsert(cond.new_processing_condition(ProcessingReason.CREATING_TARGET_VM, "Creating virtual machine"))
            state.save()

        try:
            state.ensure_owned(mapper.map_vm(target_name))
            state.ensure_owned(provider.credentials_secret(state.request))
            config_map = provider.ca_config_map(state.request)
            if config_map is not None:
                state.ensure_owned(config_map)
        except Exception as e:
            if is_transient(e):
                raise
            state.fail(provider, SucceededReason.VM_CREATION_FAILED, f"Error while creating virtual machine {ns}/{target_name}: {e}")
            return False

        state.request.status.target_vm_name = target_name
        state.set_progress(PROGRESS_COPYING_DISKS)
        state.save()
        Log.ok(state.logger, f"target VM {ns}/{target_name} created")
        return True

    def _create_volumes(
        self, state: ImportState, provider: Provider, mapper: Mapper, target_name: str
    ) -> Optional[ReconcileResult]:
        """Ensure one volume per disk and follow the copy. None once every volume succeeded."""
        try:
            for dv in mapper.map_data_volumes(target_name).values():
                if state.try_get(DataVolume, dv.name) is None:
                    state.create_data_volume(mapper, target_name, dv)
        except Exception as e:
            if is_transient(e):
                raise
            state.fail(provider, SucceededReason.DATA_VOLUME_CREATION_FAILED, f"Error while importing disks: {e}")
            return DONE

        volumes = state.data_volumes()
        failed = [dv.name for dv in volumes if dv.failed()]
        if failed:
            state.fail(
                provider,
                SucceededReason.DATA_VOLUME_CREATION_FAILED,
                f"Error while importing disk image: {', '.join(failed)}",
            )
            return DONE

        if volumes and all(dv.status.phase == DataVolumePhase.SUCCEEDED for dv in volumes):
            return None

        if any(dv.status.phase == DataVolumePhase.WAIT_FOR_FIRST_CONSUMER for dv in volumes):
            state.set_vm_running(target_name, True)

        state.set_progress(max(copy_progress(volumes), PROGRESS_COPYING_DISKS))
        state.upsert(cond.new_processing_condition(ProcessingReason.COPYING_DISKS, "Copying virtual machine disks"))
        state.save()
        return self._slow()

    def _complete(self, state: ImportState, provider: Provider, mapper: Mapper, target_name: str) -> ReconcileResult:
        ns = state.namespace
        vm = self.store.get(VirtualMachine, ns, target_name)

        if state.request.spec.start_vm:
            if not vm.spec.running:
                vm.spec.running = True
                self.store.update(vm)
                state.set_progress(PROGRESS_STARTING_VM)
                state.save()
                Log.step(state.logger, f"starting VM {ns}/{target_name}")
                return self._fast()
            vmi = self.store.try_get(VirtualMachineInstance, ns, target_name)
            if vmi is None or vmi.status.phase != VMIPhase.RUNNING:
                state.set_progress(PROGRESS_STARTING_VM)
                state.save()
                return self._slow()
            reason, message = SucceededReason.VIRTUAL_MACHINE_RUNNING, "Virtual machine running"
        else:
            running = mapper.running_state()
            if vm.spec.running != running:
                vm.spec.running = running
                self.store.update(vm)
            reason, message = SucceededReason.VIRTUAL_MACHINE_READY, "Virtual machine ready"

        self._release(state, provider)
        state.set_progress(PROGRESS_DONE)
        state.upsert(
            cond.new_succeeded_condition(reason, message),
            cond.new_processing_condition(ProcessingReason.COMPLETED, "Processing completed successfully"),
        )
        state.save()
        Log.ok(state.logger, f"import {state.request.namespaced_name} succeeded: {message}")
        return DONE

    def _release(self, state: ImportState, provider: Provider) -> None:
        """Drop transient objects and warm snapshots; failures only warn."""
        try:
            provider.clean_up(False, state.request)
        except CleanupErrors as e:
            Log.warn(state.logger, str(e))

        # the cleanup finalizer stays while any snapshot is left
        for e in state.release_snapshots(provider):
            Log.warn(state.logger, str(e))
