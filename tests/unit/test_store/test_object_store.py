# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for the object store contract, run against both backends."""
from __future__ import annotations

import pytest

from vmimport.api.objects import ConfigMap, DataVolume, Secret, StorageClass, VirtualMachine
from vmimport.api.types import VirtualMachineImport
from vmimport.core.exceptions import AlreadyExistsError, ConflictError, NotFoundError, StoreError
from vmimport.store.base import ADDED, DELETED, MODIFIED
from vmimport.store.file import FileObjectStore
from vmimport.store.memory import InMemoryObjectStore


def named(cls, name, namespace="default", **kw):
    obj = cls(**kw)
    obj.metadata.name = name
    obj.metadata.namespace = namespace
    return obj


@pytest.fixture(params=["memory", "file"])
def any_store(request, tmp_path):
    if request.param == "memory":
        s = InMemoryObjectStore()
    else:
        s = FileObjectStore(tmp_path / "store")
    yield s
    s.close()


@pytest.mark.unit
class TestCrud:
    def test_create_assigns_metadata(self, any_store):
        created = any_store.create(named(Secret, "creds", data={"vmware": "apiUrl: x"}))

        assert created.metadata.uid
        assert created.metadata.resource_version
        assert created.metadata.generation == 1
        assert created.metadata.creation_timestamp is not None
        assert any_store.get(Secret, "default", "creds").data == {"vmware": "apiUrl: x"}

    def test_create_duplicate(self, any_store):
        any_store.create(named(Secret, "creds"))

        with pytest.raises(AlreadyExistsError):
            any_store.create(named(Secret, "creds"))

    def test_create_without_name(self, any_store):
        with pytest.raises(StoreError):
            any_store.create(Secret())

    def test_get_missing(self, any_store):
        assert any_store.try_get(Secret, "default", "nope") is None
        with pytest.raises(NotFoundError):
            any_store.get(Secret, "default", "nope")

    def test_returned_objects_are_copies(self, any_store):
        created = any_store.create(named(ConfigMap, "cm", data={"a": "1"}))
        created.data["a"] = "2"

        assert any_store.get(ConfigMap, "default", "cm").data == {"a": "1"}

    def test_stale_update_conflicts(self, any_store):
        first = any_store.create(named(ConfigMap, "cm"))
        fresh = any_store.get(ConfigMap, "default", "cm")
        fresh.data["a"] = "1"
        any_store.update(fresh)

        first.data["a"] = "2"
        with pytest.raises(ConflictError):
            any_store.update(first)

    def test_update_missing(self, any_store):
        with pytest.raises(NotFoundError):
            any_store.update(named(ConfigMap, "cm"))

    def test_update_keeps_status_and_bumps_generation_on_spec(self, any_store):
        dv = named(DataVolume, "dv")
        dv.status.phase = "Pending"
        dv = any_store.create(dv)

        dv.status.phase = "Succeeded"
        dv.spec.final_checkpoint = True
        updated = any_store.update(dv)

        assert updated.status.phase == "Pending"
        assert updated.spec.final_checkpoint is True
        assert updated.metadata.generation == 2

    def test_update_status_keeps_spec_and_generation(self, any_store):
        dv = any_store.create(named(DataVolume, "dv"))

        dv.spec.final_checkpoint = True
        dv.status.phase = "Paused"
        updated = any_store.update_status(dv)

        assert updated.status.phase == "Paused"
        assert updated.spec.final_checkpoint is False
        assert updated.metadata.generation == 1
        assert updated.metadata.resource_version != dv.metadata.resource_version

    def test_metadata_only_update_keeps_generation(self, any_store):
        dv = any_store.create(named(DataVolume, "dv"))
        dv.metadata.annotations["x"] = "y"

        assert any_store.update(dv).metadata.generation == 1

    def test_cluster_scoped(self, any_store):
        any_store.create(named(StorageClass, "gold", namespace="ignored"))

        assert any_store.get(StorageClass, "", "gold").namespace == ""
        assert any_store.get(StorageClass, "whatever", "gold").name == "gold"


@pytest.mark.unit
class TestList:
    def test_filters(self, any_store):
        owner = any_store.create(named(VirtualMachineImport, "imp"))
        a = named(DataVolume, "a")
        a.metadata.labels["app"] = "web"
        a.set_controller_reference(owner)
        any_store.create(a)
        any_store.create(named(DataVolume, "b"))
        any_store.create(named(DataVolume, "c", namespace="other"))

        assert [d.name for d in any_store.list(DataVolume)] == ["a", "b", "c"]
        assert [d.name for d in any_store.list(DataVolume, "default")] == ["a", "b"]
        assert [d.name for d in any_store.list(DataVolume, labels={"app": "web"})] == ["a"]
        assert [d.name for d in any_store.list(DataVolume, owner_uid=owner.metadata.uid)] == ["a"]


@pytest.mark.unit
class TestDelete:
    def test_delete_cascades_to_owned_objects(self, any_store):
        request = any_store.create(named(VirtualMachineImport, "imp"))
        vm = named(VirtualMachine, "vm")
        vm.set_controller_reference(request)
        vm = any_store.create(vm)
        for name in ("dv-1", "dv-2"):
            dv = named(DataVolume, name)
            dv.set_controller_reference(request)
            any_store.create(dv)
        secret = named(Secret, "imp-secret")
        secret.set_controller_reference(request)
        any_store.create(secret)
        nested = named(ConfigMap, "owned-by-vm")
        nested.set_controller_reference(vm)
        any_store.create(nested)
        any_store.create(named(ConfigMap, "unrelated"))

        any_store.delete(VirtualMachineImport, "default", "imp")

        assert any_store.list(VirtualMachine) == []
        assert any_store.list(DataVolume) == []
        assert any_store.list(Secret) == []
        assert [c.name for c in any_store.list(ConfigMap)] == ["unrelated"]

    def test_delete_missing(self, any_store):
        with pytest.raises(NotFoundError):
            any_store.delete(Secret, "default", "nope")


@pytest.mark.unit
class TestFinalizers:
    def _held_import(self, store):
        request = named(VirtualMachineImport, "imp")
        request.metadata.finalizers = ["example.com/hold"]
        request = store.create(request)
        dv = named(DataVolume, "dv")
        dv.set_controller_reference(request)
        store.create(dv)
        return request

    def test_delete_only_marks(self, any_store):
        request = self._held_import(any_store)

        any_store.delete(VirtualMachineImport, "default", "imp")

        marked = any_store.get(VirtualMachineImport, "default", "imp")
        assert marked.metadata.deletion_timestamp is not None
        assert marked.metadata.resource_version != request.metadata.resource_version
        assert marked.metadata.generation == request.metadata.generation
        assert [dv.name for dv in any_store.list(DataVolume)] == ["dv"]

        # a second delete leaves the mark alone
        any_store.delete(VirtualMachineImport, "default", "imp")
        again = any_store.get(VirtualMachineImport, "default", "imp")
        assert again.metadata.resource_version == marked.metadata.resource_version

    def test_removing_last_finalizer_completes_delete(self, any_store):
        self._held_import(any_store)
        any_store.delete(VirtualMachineImport, "default", "imp")

        marked = any_store.get(VirtualMachineImport, "default", "imp")
        marked.metadata.deletion_timestamp = None
        marked.metadata.finalizers = []
        any_store.update(marked)

        assert any_store.try_get(VirtualMachineImport, "default", "imp") is None
        assert any_store.list(DataVolume) == []

    def test_status_write_keeps_marked_object(self, any_store):
        self._held_import(any_store)
        any_store.delete(VirtualMachineImport, "default", "imp")

        marked = any_store.get(VirtualMachineImport, "default", "imp")
        marked.status.warm_import.failures = 1
        any_store.update_status(marked)

        kept = any_store.get(VirtualMachineImport, "default", "imp")
        assert kept.metadata.deletion_timestamp is not None
        assert kept.status.warm_import.failures == 1

    def test_events(self):
        store = InMemoryObjectStore()
        self._held_import(store)
        events = []
        store.watch(lambda e: events.append((e.type, e.obj.KIND, e.obj.name)))

        store.delete(VirtualMachineImport, "default", "imp")
        marked = store.get(VirtualMachineImport, "default", "imp")
        marked.metadata.finalizers = []
        store.update(marked)

        assert events == [
            (MODIFIED, "VirtualMachineImport", "imp"),
            (DELETED, "VirtualMachineImport", "imp"),
            (DELETED, "DataVolume", "dv"),
        ]


@pytest.mark.unit
class TestWatch:
    def test_events(self):
        store = InMemoryObjectStore()
        events = []
        watch = store.watch(lambda e: events.append((e.type, e.obj.KIND, e.obj.name)))
        request = store.create(named(VirtualMachineImport, "imp"))
        dv = named(DataVolume, "dv")
        dv.set_controller_reference(request)
        store.create(dv)
        store.update_status(request)
        store.delete(VirtualMachineImport, "default", "imp")
        watch.stop()
        store.create(named(Secret, "late"))

        assert events == [
            (ADDED, "VirtualMachineImport", "imp"),
            (ADDED, "DataVolume", "dv"),
            (MODIFIED, "VirtualMachineImport", "imp"),
            (DELETED, "VirtualMachineImport", "imp"),
            (DELETED, "DataVolume", "dv"),
        ]

    def test_failing_callback_does_not_break_writes(self):
        store = InMemoryObjectStore()

        def boom(event):
            raise RuntimeError("boom")

        store.watch(boom)
        store.create(named(Secret, "creds"))

        assert store.get(Secret, "default", "creds").name == "creds"


@pytest.mark.unit
class TestFileStore:
    def test_layout(self, tmp_path):
        store = FileObjectStore(tmp_path)
        store.create(named(Secret, "creds"))
        store.create(named(StorageClass, "gold"))

        assert (tmp_path / "Secret" / "default" / "creds.yaml").is_file()
        assert (tmp_path / "StorageClass" / "_cluster" / "gold.yaml").is_file()

    def test_shared_directory(self, tmp_path):
        writer = FileObjectStore(tmp_path)
        reader = FileObjectStore(tmp_path)
        writer.create(named(ConfigMap, "cm", data={"k": "v"}))

        assert reader.get(ConfigMap, "default", "cm").data == {"k": "v"}
        stale = reader.get(ConfigMap, "default", "cm")
        writer.update(writer.get(ConfigMap, "default", "cm"))
        with pytest.raises(ConflictError):
            reader.update(stale)

    def test_versions_persist(self, tmp_path):
        first = FileObjectStore(tmp_path).create(named(ConfigMap, "a"))
        second = FileObjectStore(tmp_path).create(named(ConfigMap, "b"))

        assert int(second.metadata.resource_version) > int(first.metadata.resource_version)

    def test_corrupt_file(self, tmp_path):
        store = FileObjectStore(tmp_path)
        path = tmp_path / "Secret" / "default" / "broken.yaml"
        path.parent.mkdir(parents=True)
        path.write_text("kind: [unclosed\n", encoding="utf-8")

        with pytest.raises(StoreError):
            store.get(Secret, "default", "broken")
