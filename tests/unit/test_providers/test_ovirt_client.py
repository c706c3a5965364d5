# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for the oVirt REST client against a mocked HTTP session."""
from __future__ import annotations

import os
from unittest.mock import Mock

import pytest
import requests

from fakes.fake_source import CA_PEM
from vmimport.api.types import SourceCluster, SourceVM
from vmimport.core.exceptions import ProviderError
from vmimport.providers.base import Credentials
from vmimport.providers.ovirt.client import VM_FOLLOW, OvirtClient

BASE = "https://engine.example.com/ovirt-engine/api"

RAW_VM = {
    "id": "vm-1",
    "name": "web",
    "status": "up",
    "bios": {"type": "cluster_default", "boot_menu": {"enabled": "false"}},
    "cluster": {"id": "c1"},
    "cpu": {
        "architecture": "x86_64",
        "topology": {"sockets": "2", "cores": "1", "threads": "1"},
        "cpu_tune": {"vcpu_pins": {"vcpu_pin": [{"vcpu": "0", "cpu_set": "3"}]}},
    },
    "memory": "2147483648",
    "high_availability": {"enabled": "true", "priority": "50"},
    "usb": {"enabled": "false"},
    "graphics_consoles": {"graphics_console": [{"protocol": "vnc"}]},
    "floppies": {"floppy": [{"id": "f1"}]},
    "nics": {
        "nic": [
            {
                "id": "n1",
                "name": "nic1",
                "interface": "virtio",
                "mac": {"address": "56:6f:00:00:00:01"},
                "plugged": "true",
                "on_boot": "true",
                "vnic_profile": {
                    "id": "p1",
                    "name": "ovirtmgmt",
                    "pass_through": {"mode": "disabled"},
                    "network": {"id": "net1", "name": "ovirtmgmt"},
                },
            }
        ]
    },
    "disk_attachments": {
        "disk_attachment": [
            {
                "id": "att-1",
                "bootable": "true",
                "interface": "virtio_scsi",
                "pass_discard": "false",
                "disk": {
                    "id": "d1",
                    "alias": "root",
                    "provisioned_size": "10737418240",
                    "status": "ok",
                    "storage_type": "image",
                    "storage_domains": {"storage_domain": [{"id": "sd1", "name": "data"}]},
                },
            }
        ]
    },
}


def response(payload=None):
    resp = Mock()
    resp.content = b"{}" if payload is not None else b""
    resp.json.return_value = payload
    return resp


class Routes:
    """Answers session.request(method, url, ...) from a (method, path) table."""

    def __init__(self, table):
        self.table = table

    def __call__(self, method, url, **kw):
        path = url[len(BASE) + 1 :]
        answer = self.table[(method, path)]
        if isinstance(answer, Exception):
            raise answer
        return response(answer)


def make_client(table, *, ca_cert=None):
    http = Mock()
    session = http.Session.return_value
    session.headers = {}
    session.request.side_effect = Routes(table)
    creds = Credentials(api_url=BASE + "/", username="admin@internal", password="pw", ca_cert=ca_cert)
    return OvirtClient(creds, http_client=http), session


@pytest.mark.unit
class TestSession:
    def test_session_setup(self):
        client, session = make_client({("GET", "vms/vm-1"): {"status": "down"}})

        assert client.get_vm_status("vm-1") == "down"
        assert session.auth == ("admin@internal", "pw")
        assert session.headers["Accept"] == "application/json"
        assert session.verify is True
        method, url = session.request.call_args[0]
        assert (method, url) == ("GET", f"{BASE}/vms/vm-1")
        assert session.request.call_args[1]["timeout"] == 60.0

    def test_ca_file_lifecycle(self):
        client, session = make_client({("GET", "vms/vm-1"): {"status": "up"}}, ca_cert=CA_PEM)
        client.get_vm_status("vm-1")

        path = session.verify
        with open(path, encoding="utf-8") as f:
            assert f.read() == CA_PEM
        client.close()

        assert not os.path.exists(path)
        session.close.assert_called_once_with()

    def test_transport_error(self):
        client, _ = make_client({("GET", "vms/vm-1"): requests.ConnectionError("refused")})

        with pytest.raises(ProviderError) as ei:
            client.get_vm_status("vm-1")

        assert "oVirt API GET vms/vm-1 failed" in str(ei.value)
        assert ei.value.context["url"] == f"{BASE}/vms/vm-1"

    def test_empty_body(self):
        client, _ = make_client({("GET", "vms/vm-1"): None})

        assert client.get_vm_status("vm-1") == ""


@pytest.mark.unit
class TestGetVm:
    def test_by_id(self):
        client, session = make_client(
            {
                ("GET", "vms/vm-1"): RAW_VM,
                ("GET", "clusters/c1"): {"name": "Default", "bios_type": "q35_ovmf"},
            }
        )

        vm = client.get_vm(SourceVM(id="vm-1"))

        assert session.request.call_args_list[0][1]["params"] == {"follow": VM_FOLLOW}
        assert (vm.id, vm.name, vm.status) == ("vm-1", "web", "up")
        assert (vm.cluster_name, vm.cluster_bios_type) == ("Default", "q35_ovmf")
        assert (vm.cpu_sockets, vm.cpu_cores, vm.cpu_threads) == (2, 1, 1)
        assert vm.cpu_pinning == {"0": "3"}
        assert vm.memory_bytes == 2147483648
        assert vm.ha_enabled is True
        assert vm.ha_priority == 50
        assert vm.usb_enabled is False
        assert vm.bios_boot_menu_enabled is False
        assert vm.graphics_protocols == ["vnc"]
        assert vm.floppies == 1

        nic = vm.nics[0]
        assert nic.vnic_profile.mapping_name == "ovirtmgmt/ovirtmgmt"
        assert nic.vnic_profile.pass_through is False
        assert (nic.network_id, nic.plugged, nic.mac_address) == ("net1", True, "56:6f:00:00:00:01")

        disk = vm.disks[0]
        assert (disk.id, disk.alias, disk.size_bytes) == ("d1", "root", 10737418240)
        assert (disk.attachment_id, disk.attachment_interface, disk.bootable) == ("att-1", "virtio_scsi", True)
        assert (disk.storage_domain_id, disk.storage_domain_name) == ("sd1", "data")

    def test_by_name_and_cluster(self):
        client, session = make_client({("GET", "vms"): {"vm": [dict(RAW_VM, bios={"type": "q35_sea_bios"})]}})

        vm = client.get_vm(SourceVM(name="web", cluster=SourceCluster(name="Default")))

        assert vm.id == "vm-1"
        params = session.request.call_args[1]["params"]
        assert params["search"] == "name=web and cluster=Default"

    def test_cluster_id_filters_search(self):
        client, _ = make_client({("GET", "vms"): {"vm": [RAW_VM]}})

        with pytest.raises(ProviderError) as ei:
            client.get_vm(SourceVM(name="web", cluster=SourceCluster(id="other")))

        assert "Source VM web not found" in str(ei.value)

    def test_missing_id_without_name(self):
        client, _ = make_client({("GET", "vms/vm-9"): requests.HTTPError("404 Not Found")})

        with pytest.raises(ProviderError) as ei:
            client.get_vm(SourceVM(id="vm-9"))

        assert str(ei.value) == "Source VM vm-9 not found"


@pytest.mark.unit
class TestActions:
    def test_power_actions(self):
        client, session = make_client({("POST", "vms/vm-1/stop"): None, ("POST", "vms/vm-1/start"): None})

        client.stop_vm("vm-1")
        client.start_vm("vm-1")

        assert [c[0] for c in session.request.call_args_list] == [
            ("POST", f"{BASE}/vms/vm-1/stop"),
            ("POST", f"{BASE}/vms/vm-1/start"),
        ]

    def test_snapshots(self):
        client, session = make_client(
            {("POST", "vms/vm-1/snapshots"): {"id": "snap-1"}, ("DELETE", "vms/vm-1/snapshots/snap-1"): None}
        )

        assert client.create_snapshot("vm-1", "vmimport default/imp") == "snap-1"
        assert session.request.call_args[1]["json"]["persist_memorystate"] is False
        client.remove_snapshot("vm-1", "snap-1")

    def test_snapshot_without_id(self):
        client, _ = make_client({("POST", "vms/vm-1/snapshots"): {}})

        with pytest.raises(ProviderError):
            client.create_snapshot("vm-1", "x")

    def test_disk_status(self):
        client, _ = make_client({("GET", "disks/d1"): {"status": "locked"}})

        assert client.get_disk_status("d1") == "locked"
