# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for the object model codec and owner references."""
from __future__ import annotations

import datetime as _dt

import pytest

from vmimport.api import (
    DataVolume,
    NamespacedName,
    ResourceMapping,
    StorageClass,
    VirtualMachineImport,
    decode_object,
    format_time,
    kind_class,
    parse_time,
)
from vmimport.api.constants import SOURCE_OVIRT, SOURCE_VMWARE

MANIFEST = {
    "apiVersion": "v2v.kubevirt.io/v1beta1",
    "kind": "VirtualMachineImport",
    "metadata": {"name": "web", "namespace": "prod", "annotations": {"team": "infra"}},
    "spec": {
        "providerCredentialsSecret": {"name": "ovirt-creds"},
        "resourceMapping": {"name": "shared", "namespace": "mappings"},
        "source": {
            "ovirt": {
                "vm": {"name": "web01", "cluster": {"name": "Default"}},
                "mappings": {
                    "networkMappings": [{"source": {"name": "ovirtmgmt/ovirtmgmt"}, "target": {"name": "pod"}, "type": "pod"}]
                },
            }
        },
        "targetVmName": "web",
        "startVm": "true",
        "warm": False,
        "finalizeDate": "2026-03-01T12:00:00Z",
        "unknownField": 1,
    },
}


@pytest.mark.unit
class TestCodec:
    def test_decode_manifest(self):
        obj = decode_object(MANIFEST)

        assert isinstance(obj, VirtualMachineImport)
        assert obj.namespaced_name == NamespacedName("prod", "web")
        assert obj.source_type == SOURCE_OVIRT
        assert obj.spec.source.provider_source.vm.cluster.name == "Default"
        assert obj.spec.start_vm is True
        assert obj.spec.finalize_date == _dt.datetime(2026, 3, 1, 12, tzinfo=_dt.timezone.utc)
        item = obj.spec.source.ovirt.mappings.network_mappings[0]
        assert item.source.name == "ovirtmgmt/ovirtmgmt"
        assert item.type == "pod"
        assert obj.spec.source.ovirt.mappings.storage_mappings is None

    def test_encode_is_camel_case_without_nones(self):
        d = decode_object(MANIFEST).to_dict()

        assert d["kind"] == "VirtualMachineImport"
        assert d["spec"]["targetVmName"] == "web"
        assert d["spec"]["finalizeDate"] == "2026-03-01T12:00:00Z"
        assert "storageMappings" not in d["spec"]["source"]["ovirt"]["mappings"]
        assert "vmware" not in d["spec"]["source"]
        assert "unknownField" not in d["spec"]

    def test_decode_encode_preserves_manifest_fields(self):
        obj = decode_object(MANIFEST)

        assert decode_object(obj.to_dict()) == obj

    def test_vmware_source(self):
        obj = VirtualMachineImport.from_dict({"spec": {"source": {"vmware": {"vm": {"id": "42"}}}}})

        assert obj.source_type == SOURCE_VMWARE
        assert obj.spec.source.provider_source.vm.id == "42"

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            decode_object({"kind": "Pod"})
        with pytest.raises(ValueError):
            decode_object({"metadata": {}})

    def test_kind_registry(self):
        assert kind_class("ResourceMapping") is ResourceMapping
        assert kind_class("DataVolume") is DataVolume
        assert StorageClass.NAMESPACED is False


@pytest.mark.unit
class TestTime:
    def test_parse_naive_is_utc(self):
        assert parse_time("2026-01-01T00:00:00").tzinfo is not None

    def test_parse_offset(self):
        t = parse_time("2026-01-01T02:00:00+02:00")

        assert format_time(t) == "2026-01-01T00:00:00Z"

    def test_parse_date(self):
        assert parse_time(_dt.date(2026, 5, 1)) == _dt.datetime(2026, 5, 1, tzinfo=_dt.timezone.utc)


@pytest.mark.unit
class TestNamespacedName:
    def test_parse(self):
        assert NamespacedName.parse("prod/web") == NamespacedName("prod", "web")
        assert NamespacedName.parse("web") == NamespacedName("default", "web")
        assert str(NamespacedName("", "gold")) == "gold"


@pytest.mark.unit
class TestOwnerReferences:
    def _import(self) -> VirtualMachineImport:
        request = VirtualMachineImport.from_dict({"metadata": {"name": "web", "namespace": "prod", "uid": "u-1"}})
        return request

    def test_controller_reference(self):
        request = self._import()
        dv = DataVolume.from_dict({"metadata": {"name": "dv", "namespace": "prod"}})

        dv.set_controller_reference(request)
        dv.set_controller_reference(request)

        assert len(dv.metadata.owner_references) == 1
        ref = dv.metadata.controller_ref()
        assert ref.kind == "VirtualMachineImport"
        assert ref.uid == "u-1"
        assert ref.block_owner_deletion is True
        assert dv.is_controlled_by(request)

    def test_second_controller_rejected(self):
        dv = DataVolume.from_dict({"metadata": {"name": "dv", "namespace": "prod"}})
        dv.set_controller_reference(self._import())
        other = VirtualMachineImport.from_dict({"metadata": {"name": "other", "namespace": "prod", "uid": "u-2"}})

        with pytest.raises(ValueError):
            dv.set_controller_reference(other)


@pytest.mark.unit
class TestDataVolumeStatus:
    @pytest.mark.parametrize(
        "progress,expected",
        [("45.5%", 45.5), ("100%", 100.0), ("N/A", 0.0), ("", 0.0), ("150%", 100.0)],
    )
    def test_progress_percent(self, progress, expected):
        dv = DataVolume.from_dict({"status": {"progress": progress}})

        assert dv.status.progress_percent() == expected
