# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for VM, NIC and disk attribute checks."""
from __future__ import annotations

import datetime as _dt
import unittest

from vmimport.api.source import SourceCdrom, SourceDisk, SourceNic, SourceVMDescription, SourceVnicProfile
from vmimport.api.types import Mappings
from vmimport.store.memory import InMemoryObjectStore
from vmimport.validation import OvirtValidator, VmwareValidator
from vmimport.validation import checks as C
from vmimport.validation.models import is_cpu_pinning_exact, is_utc_compatible, resolve_bios_type
from vmimport.validation.nic_validator import validate_nic
from vmimport.validation.storage_validator import validate_disk_attachment, validate_disk_attachments
from vmimport.validation.vm_validator import validate_vm


def ids(failures):
    return [f.check_id for f in failures]


def clean_vm(**kw) -> SourceVMDescription:
    vm = SourceVMDescription(id="vm-1", name="web", status="down", bios_type="q35_sea_bios", cpu_architecture="x86_64")
    for k, v in kw.items():
        setattr(vm, k, v)
    return vm


class TestVmChecks(unittest.TestCase):
    def test_clean_vm(self):
        self.assertEqual(validate_vm(clean_vm()), [])

    def test_status(self):
        self.assertEqual(ids(validate_vm(clean_vm(status=None))), [C.VM_STATUS])
        failures = validate_vm(clean_vm(status="migrating"))
        self.assertIn("illegal status: migrating", failures[0].message)

    def test_bios(self):
        self.assertEqual(ids(validate_vm(clean_vm(bios_type="q35_secure_boot"))), [C.VM_BIOS_TYPE_Q35_SECURE_BOOT])
        self.assertEqual(ids(validate_vm(clean_vm(bios_type="weird"))), [C.VM_BIOS_TYPE])
        self.assertEqual(
            validate_vm(clean_vm(bios_type="cluster_default", cluster_bios_type="q35_ovmf")),
            [],
        )
        self.assertEqual(ids(validate_vm(clean_vm(bios_boot_menu_enabled=True))), [C.VM_BIOS_BOOT_MENU])

    def test_cpu(self):
        self.assertEqual(ids(validate_vm(clean_vm(cpu_architecture="s390x"))), [C.VM_CPU_ARCHITECTURE])
        self.assertEqual(ids(validate_vm(clean_vm(cpu_pinning={"0": "1", "1": "1"}))), [C.VM_CPU_TUNE])
        self.assertEqual(validate_vm(clean_vm(cpu_pinning={"0": "1", "1": "2"})), [])

    def test_general(self):
        vm = clean_vm(usb_enabled=True, origin="kubevirt", floppies=1, display_type="spice", rng_source="hwrng")
        self.assertEqual(
            ids(validate_vm(vm)),
            [C.VM_DISPLAY_TYPE, C.VM_ORIGIN, C.VM_RNG_DEVICE_SOURCE, C.VM_USB, C.VM_FLOPPIES],
        )

    def test_devices(self):
        vm = clean_vm(
            graphics_protocols=["vnc", "spice"],
            watchdog_models=["i6300esb", "diag288"],
            cdroms=[SourceCdrom(id="cd1", storage_domain_type="iso")],
        )
        failures = validate_vm(vm)
        self.assertEqual(ids(failures), [C.VM_GRAPHIC_CONSOLES, C.VM_WATCHDOGS, C.VM_CDROMS])
        self.assertTrue(failures[-1].message.endswith(": cd1"))


class TestModels(unittest.TestCase):
    def test_utc_compatible(self):
        now = _dt.datetime(2026, 1, 1, tzinfo=_dt.timezone.utc)
        self.assertTrue(is_utc_compatible("GMT Standard Time", now=now))
        self.assertFalse(is_utc_compatible("Europe/London", now=now))
        self.assertFalse(is_utc_compatible("Africa/El_Aaiun", now=now))
        self.assertFalse(is_utc_compatible("Not/AZone", now=now))

    def test_cpu_pinning(self):
        self.assertTrue(is_cpu_pinning_exact({}))
        self.assertFalse(is_cpu_pinning_exact({"0": "1-3"}))

    def test_resolve_bios_type(self):
        self.assertEqual(resolve_bios_type("cluster_default", "q35_ovmf"), "q35_ovmf")
        self.assertEqual(resolve_bios_type("cluster_default", None), "cluster_default")
        self.assertEqual(resolve_bios_type("i440fx_sea_bios", "q35_ovmf"), "i440fx_sea_bios")


class TestNicChecks(unittest.TestCase):
    def test_clean_nic(self):
        self.assertEqual(validate_nic(SourceNic(id="n1", name="nic1", interface="virtio", plugged=True, on_boot=True)), [])

    def test_nic_attributes(self):
        nic = SourceNic(id="n1", name="nic1", interface="spapr_vlan", plugged=False, on_boot=False)
        failures = validate_nic(nic)
        self.assertEqual(ids(failures), [C.NIC_INTERFACE, C.NIC_ON_BOOT, C.NIC_PLUGGED])
        self.assertIn("nic1(n1)", failures[0].message)

    def test_profile_attributes(self):
        profile = SourceVnicProfile(
            id="p1", name="prof", pass_through=True, port_mirroring=True, custom_properties={"a": "b"}, network_filter="f1", qos="q1"
        )
        failures = validate_nic(SourceNic(id="n1", vnic_profile=profile))
        self.assertEqual(
            ids(failures),
            [
                C.NIC_VNIC_PASS_THROUGH,
                C.NIC_VNIC_PORT_MIRRORING,
                C.NIC_VNIC_CUSTOM_PROPERTIES,
                C.NIC_VNIC_NETWORK_FILTER,
                C.NIC_VNIC_QOS,
            ],
        )


class TestDiskChecks(unittest.TestCase):
    def test_no_disks(self):
        self.assertEqual(ids(validate_disk_attachments([])), [C.DISK_ATTACHMENTS_EXIST])

    def test_clean_disk(self):
        disk = SourceDisk(id="d1", status="ok", storage_type="image", interface="virtio_scsi", attachment_interface="virtio")
        self.assertEqual(validate_disk_attachment(disk), [])

    def test_disk_attributes(self):
        disk = SourceDisk(
            id="d1",
            attachment_id="a1",
            attachment_interface="ide",
            attachment_pass_discard=True,
            status="locked",
            storage_type="lun",
            sgio="filtered",
            backup="incremental",
            propagate_errors=False,
        )
        failures = validate_disk_attachment(disk)
        self.assertEqual(
            ids(failures),
            [
                C.DISK_ATTACHMENT_INTERFACE,
                C.DISK_ATTACHMENT_PASS_DISCARD,
                C.DISK_BACKUP,
                C.DISK_PROPAGATE_ERRORS,
                C.DISK_STATUS,
                C.DISK_STORAGE_TYPE,
                C.DISK_SGIO,
            ],
        )
        self.assertIn("propagate_errors configured: false", failures[3].message)


class TestPlatformValidators(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryObjectStore()

    def test_vmware_minimal_vm_is_clean_apart_from_default_storage(self):
        vm = SourceVMDescription(id="vm-1", name="web", status="up", disks=[SourceDisk(id="d1", alias="disk1")])

        report = VmwareValidator(self.store).validate(vm, Mappings(), "default")

        self.assertEqual(report.mapping_failures, [])
        self.assertEqual(ids(report.rule_failures), [C.STORAGE_TARGET_DEFAULT])

    def test_vmware_rules(self):
        vm = SourceVMDescription(
            id="vm-1",
            name="web",
            status="suspended",
            bios_type="uefi-secure",
            floppies=2,
            nics=[SourceNic(id="n1", name="nic1", interface="VirtualSriovEthernetCard", network_name="VM Network")],
        )

        report = VmwareValidator(self.store).validate(vm, Mappings(), "default")

        self.assertEqual(ids(report.mapping_failures), [C.NETWORK_MAPPING])
        self.assertEqual(
            ids(report.rule_failures),
            [C.VM_STATUS, C.VM_BIOS_TYPE, C.VM_FLOPPIES, C.DISK_ATTACHMENTS_EXIST, C.NIC_INTERFACE],
        )

    def test_ovirt_collects_every_pass(self):
        vm = clean_vm(
            usb_enabled=True,
            nics=[SourceNic(id="n1", name="nic1", plugged=False, vnic_profile=SourceVnicProfile(id="p1", name="p", network_name="net"))],
            disks=[SourceDisk(id="d1", alias="root", status="ok")],
        )

        report = OvirtValidator(self.store).validate(vm, Mappings(), "default")

        self.assertEqual(ids(report.mapping_failures), [C.NETWORK_MAPPING])
        self.assertEqual(ids(report.rule_failures), [C.STORAGE_TARGET_DEFAULT, C.VM_USB, C.NIC_PLUGGED])
