# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for controller event filtering and worker processing."""
from __future__ import annotations

import threading
from unittest.mock import Mock

import pytest

from fakes.fake_source import make_import
from vmimport import conditions as cond
from vmimport.api.constants import CLEANUP_SNAPSHOTS_FINALIZER, SucceededReason
from vmimport.api.objects import DataVolume
from vmimport.api.types import VirtualMachineImport
from vmimport.controller.config import ControllerConfig
from vmimport.controller.controller import ImportController
from vmimport.controller.result import DONE, ReconcileResult
from vmimport.core.exceptions import ConflictError, ProviderError
from vmimport.store.memory import InMemoryObjectStore

KEY = "default/my-import"


def _drain(queue):
    keys = []
    while True:
        key = queue.get(timeout=0)
        if key is None:
            return keys
        keys.append(key)
        queue.done(key)


@pytest.mark.unit
class TestEventFilter:
    def setup_method(self):
        self.store = InMemoryObjectStore()
        self.reconciler = Mock()
        self.controller = ImportController(self.store, ControllerConfig(workers=1), reconciler=self.reconciler)
        self.store.watch(self.controller.on_event)

    def test_new_import_is_queued(self):
        self.store.create(make_import())

        assert _drain(self.controller.queue) == [KEY]

    def test_status_write_does_not_requeue(self):
        request = self.store.create(make_import())
        _drain(self.controller.queue)

        request.status.target_vm_name = "myvm"
        self.store.update_status(request)

        assert _drain(self.controller.queue) == []

    def test_annotation_write_does_not_requeue(self):
        request = self.store.create(make_import())
        _drain(self.controller.queue)

        request.metadata.annotations["note"] = "x"
        self.store.update(request)

        assert _drain(self.controller.queue) == []

    def test_spec_change_requeues(self):
        request = self.store.create(make_import(warm=True))
        _drain(self.controller.queue)

        request.spec.target_vm_name = "renamed"
        stored = self.store.update(request)

        assert stored.metadata.generation == 2
        assert _drain(self.controller.queue) == [KEY]

    def test_finished_import_is_skipped(self):
        request = make_import()
        request.status.conditions.append(cond.new_succeeded_condition(SucceededReason.VIRTUAL_MACHINE_READY))
        self.store.create(request)

        assert _drain(self.controller.queue) == []

    def test_validation_failure_is_not_finished(self):
        request = make_import()
        request.status.conditions.append(
            cond.new_succeeded_condition(SucceededReason.VALIDATION_FAILED, "bad mapping", status=False)
        )
        self.store.create(request)

        assert _drain(self.controller.queue) == [KEY]

    def test_deleted_import_forgets_generation(self):
        self.store.create(make_import())
        _drain(self.controller.queue)

        self.store.delete(VirtualMachineImport, "default", "my-import")
        assert _drain(self.controller.queue) == []
        assert KEY not in self.controller._generations

    def test_delete_mark_queues_finished_import(self):
        request = make_import(warm=True)
        request.metadata.finalizers = [CLEANUP_SNAPSHOTS_FINALIZER]
        request.status.conditions.append(cond.new_succeeded_condition(SucceededReason.VIRTUAL_MACHINE_READY))
        self.store.create(request)
        assert _drain(self.controller.queue) == []

        self.store.delete(VirtualMachineImport, "default", "my-import")
        assert _drain(self.controller.queue) == [KEY]

        self.controller._generations.clear()
        assert self.controller.enqueue_existing() == 1
        assert _drain(self.controller.queue) == [KEY]

    def test_owned_object_enqueues_owner(self):
        request = self.store.create(make_import())
        _drain(self.controller.queue)

        dv = DataVolume.from_dict({"metadata": {"name": "dv-1", "namespace": "default"}})
        dv.set_controller_reference(request)
        dv = self.store.create(dv)
        assert _drain(self.controller.queue) == [KEY]

        dv.status.phase = "ImportInProgress"
        self.store.update_status(dv)
        assert _drain(self.controller.queue) == [KEY]

    def test_unowned_object_is_ignored(self):
        self.store.create(DataVolume.from_dict({"metadata": {"name": "dv-1", "namespace": "default"}}))

        assert _drain(self.controller.queue) == []

    def test_enqueue_existing_skips_finished(self):
        self.store.create(make_import())
        done = make_import(name="done")
        done.status.conditions.append(cond.new_succeeded_condition(SucceededReason.VIRTUAL_MACHINE_READY))
        self.store.create(done)
        _drain(self.controller.queue)

        assert self.controller.enqueue_existing() == 1
        assert _drain(self.controller.queue) == [KEY]


@pytest.mark.unit
class TestProcessNext:
    def setup_method(self):
        self.store = InMemoryObjectStore()
        self.reconciler = Mock()
        self.controller = ImportController(self.store, ControllerConfig(workers=1), reconciler=self.reconciler)

    def test_empty_queue(self):
        assert self.controller.process_next(timeout=0) is False
        self.reconciler.reconcile.assert_not_called()

    def test_done_result(self):
        self.reconciler.reconcile.return_value = DONE
        self.controller.queue.add(KEY)

        assert self.controller.process_next(timeout=0) is True
        self.reconciler.reconcile.assert_called_once_with(KEY)
        assert self.controller.queue.pending_delayed() == 0
        assert self.controller.stats.summary() == {"reconciles": 1, "errors": 0, "requeues": 0}

    def test_requeue_after(self):
        self.reconciler.reconcile.return_value = ReconcileResult(requeue_after=30.0)
        self.controller.queue.add(KEY)

        self.controller.process_next(timeout=0)
        assert self.controller.queue.pending_delayed() == 1
        assert self.controller.stats.summary()["requeues"] == 1

    @pytest.mark.parametrize(
        "error",
        [
            ConflictError(code=1, msg="resourceVersion moved"),
            ProviderError(code=50, msg="connection refused"),
            RuntimeError("boom"),
        ],
    )
    def test_errors_back_off(self, error):
        self.reconciler.reconcile.side_effect = error
        self.controller.queue.add(KEY)

        assert self.controller.process_next(timeout=0) is True
        assert self.controller.queue.num_requeues(KEY) == 1
        assert self.controller.queue.pending_delayed() == 1
        assert self.controller.stats.summary()["errors"] == 1

    def test_success_resets_backoff(self):
        self.controller.queue.add_rate_limited(KEY)
        self.reconciler.reconcile.return_value = DONE
        self.controller.queue.add(KEY)

        self.controller.process_next(timeout=0)
        assert self.controller.queue.num_requeues(KEY) == 0


@pytest.mark.unit
class TestLifecycle:
    def test_start_reconciles_existing_and_stops(self):
        store = InMemoryObjectStore()
        store.create(make_import())
        reconciled = threading.Event()
        reconciler = Mock()

        def reconcile(key):
            reconciled.set()
            return DONE

        reconciler.reconcile.side_effect = reconcile
        controller = ImportController(store, ControllerConfig(workers=2), reconciler=reconciler)

        controller.start()
        try:
            assert reconciled.wait(timeout=5)
        finally:
            controller.stop()

        assert controller.queue.shutting_down
        assert controller.executor is None
        reconciler.reconcile.assert_called_with(KEY)
