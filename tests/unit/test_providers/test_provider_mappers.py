# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for source VM -> VirtualMachine/DataVolume mapping."""
from __future__ import annotations

import unittest

from fakes.fake_source import make_import
from vmimport.api.constants import IMPORT_LABEL
from vmimport.api.source import SourceDisk, SourceNic, SourceVMDescription, SourceVnicProfile
from vmimport.api.types import MappingItem, MappingSource, MappingTarget, Mappings
from vmimport.core.utils import U
from vmimport.providers.base import DataVolumeCredentials
from vmimport.providers.ovirt.mapper import OvirtMapper
from vmimport.providers.vmware.mapper import VmwareMapper

GiB = 1024**3


def item(target, *, id=None, name=None, type=None, namespace=None, access_mode=None):
    return MappingItem(
        source=MappingSource(id=id, name=name),
        target=MappingTarget(name=target, namespace=namespace),
        type=type,
        access_mode=access_mode,
    )


def ovirt_vm() -> SourceVMDescription:
    def nic(nic_id, network, profile):
        return SourceNic(
            id=nic_id,
            name=nic_id,
            interface="e1000",
            mac_address=f"56:6f:00:00:00:{nic_id[-1]}",
            vnic_profile=SourceVnicProfile(id=f"{profile}-id", name=profile, network_name=network),
        )

    return SourceVMDescription(
        id="vm-1",
        name="Web.Server",
        cpu_architecture="x86_64",
        cpu_sockets=2,
        cpu_cores=4,
        cpu_threads=0,
        memory_bytes=4 * GiB,
        bios_type="cluster_default",
        cluster_bios_type="q35_ovmf",
        ha_enabled=True,
        nics=[nic("nic1", "ovirtmgmt", "ovirtmgmt"), nic("nic2", "storage", "jumbo"), nic("nic3", "dmz", "dmz")],
        disks=[
            SourceDisk(
                id="disk-1",
                attachment_id="att-1",
                attachment_interface="virtio_scsi",
                bootable=True,
                size_bytes=10 * GiB,
                storage_domain_name="data",
            ),
            SourceDisk(id="disk-2", attachment_interface="sata", read_only=True, size_bytes=1536),
        ],
    )


class TestOvirtMapper(unittest.TestCase):
    def setUp(self):
        self.request = make_import(source="ovirt")
        self.mappings = Mappings(
            network_mappings=[
                item("pod", name="ovirtmgmt/ovirtmgmt", type="pod"),
                item("storage-net", id="jumbo-id", type="multus", namespace="infra"),
            ],
            storage_mappings=[item("gold", name="data")],
            disk_mappings=[item("silver", id="disk-2", access_mode="ReadWriteMany")],
        )
        self.creds = DataVolumeCredentials(
            url="https://engine/ovirt-engine/api", secret_name="imp-secret", config_map_name="imp-ca"
        )
        self.mapper = OvirtMapper(ovirt_vm(), self.mappings, self.creds, self.request)

    def test_vm_name(self):
        self.assertEqual(self.mapper.resolve_vm_name("explicit"), "explicit")
        self.assertEqual(self.mapper.resolve_vm_name(None), "web-server")

    def test_vm_name_falls_back_to_id(self):
        self.mapper.vm.name = "???"
        self.assertEqual(self.mapper.resolve_vm_name(""), "vm-vm-1")

    def test_running_state_follows_ha(self):
        self.assertTrue(self.mapper.running_state())

    def test_map_vm(self):
        vm = self.mapper.map_vm("web-server")
        domain = vm.spec.template.domain

        self.assertEqual(vm.namespace, "default")
        self.assertEqual(vm.metadata.labels, {IMPORT_LABEL: "my-import"})
        self.assertFalse(vm.spec.running)
        self.assertEqual((domain.cpu.sockets, domain.cpu.cores, domain.cpu.threads), (2, 4, 1))
        self.assertEqual(domain.memory, "4Gi")
        self.assertEqual(domain.firmware, "efi")
        self.assertEqual(domain.machine_type, "q35")

    def test_networks(self):
        template = self.mapper.map_vm("web-server").spec.template

        self.assertEqual([n.name for n in template.networks], ["nic1", "nic2"])
        self.assertTrue(template.networks[0].pod)
        self.assertEqual(template.networks[1].multus_network_name, "infra/storage-net")
        interfaces = template.domain.devices.interfaces
        self.assertEqual([i.binding for i in interfaces], ["masquerade", "bridge"])
        self.assertEqual(interfaces[0].model, "e1000")
        self.assertEqual(interfaces[0].mac_address, "56:6f:00:00:00:1")

    def test_data_volumes(self):
        dvs = self.mapper.map_data_volumes("web-server")

        self.assertEqual(sorted(dvs), ["disk-1", "disk-2"])
        root = dvs["disk-1"]
        self.assertEqual(root.name, U.build_data_volume_name("web-server", "att-1"))
        self.assertEqual(root.spec.source.imageio.disk_id, "disk-1")
        self.assertEqual(root.spec.source.imageio.secret_ref, "imp-secret")
        self.assertEqual(root.spec.source.imageio.cert_config_map, "imp-ca")
        self.assertEqual(root.spec.storage.storage_class_name, "gold")
        self.assertEqual(root.spec.storage.access_modes, ["ReadWriteOnce"])
        self.assertEqual(root.spec.storage.size, "10Gi")

        data = dvs["disk-2"]
        self.assertEqual(data.spec.storage.storage_class_name, "silver")
        self.assertEqual(data.spec.storage.access_modes, ["ReadWriteMany"])
        self.assertEqual(data.spec.storage.size, "1536")

    def test_map_disk_is_idempotent(self):
        vm = self.mapper.map_vm("web-server")
        dvs = self.mapper.map_data_volumes("web-server")

        for _ in range(2):
            self.mapper.map_disk(vm, dvs["disk-1"])
        self.mapper.map_disk(vm, dvs["disk-2"])

        disks = vm.spec.template.domain.devices.disks
        self.assertEqual(len(vm.spec.template.volumes), 2)
        self.assertEqual([(d.bus, d.boot_order) for d in disks], [("scsi", 1), ("sata", None)])
        self.assertEqual(vm.spec.template.volumes[0].data_volume, dvs["disk-1"].name)


class TestVmwareMapper(unittest.TestCase):
    def setUp(self):
        vm = SourceVMDescription(
            id="4210-uuid",
            name="db",
            bios_type="efi",
            memory_bytes=2 * GiB,
            nics=[SourceNic(id="4000", name="Network adapter 1", interface="VirtualVmxnet3", network_name="VM Network")],
            disks=[SourceDisk(id="6000C29", backing_file="[datastore1] db/db.vmdk", size_bytes=GiB, bootable=True)],
        )
        mappings = Mappings(network_mappings=[item("pod", name="VM Network", type="pod")])
        creds = DataVolumeCredentials(url="https://vcenter/sdk", secret_name="imp-secret", thumbprint="AA:BB")
        self.mapper = VmwareMapper(vm, mappings, creds, make_import())

    def test_running_state_without_ha(self):
        self.assertFalse(self.mapper.running_state())

    def test_vddk_source(self):
        dv = self.mapper.map_data_volumes("db")["6000C29"]
        vddk = dv.spec.source.vddk

        self.assertIsNone(dv.spec.source.imageio)
        self.assertEqual(vddk.uuid, "4210-uuid")
        self.assertEqual(vddk.backing_file, "[datastore1] db/db.vmdk")
        self.assertEqual(vddk.thumbprint, "AA:BB")
        self.assertIsNone(dv.spec.storage.storage_class_name)

    def test_vm(self):
        vm = self.mapper.map_vm("db")
        template = vm.spec.template

        self.assertEqual(template.domain.firmware, "efi")
        self.assertIsNone(template.domain.machine_type)
        self.assertEqual(template.domain.devices.interfaces[0].model, "virtio")
        self.assertEqual(template.networks[0].name, "networkadapter1")
