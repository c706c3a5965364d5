# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/validation/validators.py
"""
Per-platform validator sets.

Each validator turns a source VM description plus the effective mappings
into a ValidationReport; the engine then decides the conditions.
"""

from __future__ import annotations

from typing import List

from ..api.constants import VMStatus
from ..api.source import SourceVMDescription
from ..api.types import Mappings
from ..core.utils import U
from ..store.base import ObjectStore
from . import checks as C
from .checks import ValidationFailure
from .engine import ValidationReport
from .models import VMWARE_INTERFACE_MODEL_MAPPING
from .network_mapping import NetworkMappingValidator, VmwareNetworkMappingValidator
from .nic_validator import validate_nics
from .storage_mapping import StorageMappingValidator
from .storage_validator import validate_disk_attachments
from .vm_validator import validate_vm


class OvirtValidator:
    def __init__(self, store: ObjectStore):
        self.network_mapping = NetworkMappingValidator(store)
        self.storage_mapping = StorageMappingValidator(store)

    def validate(self, vm: SourceVMDescription, mappings: Mappings, namespace: str) -> ValidationReport:
        report = ValidationReport()
        report.mapping_failures.extend(self.network_mapping.validate(vm.nics, mappings.network_mappings, namespace))
        report.extend(self.storage_mapping.validate(vm.disks, mappings.storage_mappings, mappings.disk_mappings))

        report.rule_failures.extend(validate_vm(vm))
        report.rule_failures.extend(validate_nics(vm.nics))
        report.rule_failures.extend(validate_disk_attachments(vm.disks))
        return report


class VmwareValidator:
    """Smaller rule set: VMware exposes far fewer tunables than oVirt."""

    def __init__(self, store: ObjectStore):
        self.network_mapping = VmwareNetworkMappingValidator(store)
        self.storage_mapping = StorageMappingValidator(store)

    def validate(self, vm: SourceVMDescription, mappings: Mappings, namespace: str) -> ValidationReport:
        report = ValidationReport()
        report.mapping_failures.extend(self.network_mapping.validate(vm.nics, mappings.network_mappings, namespace))
        report.extend(self.storage_mapping.validate(vm.disks, mappings.storage_mappings, mappings.disk_mappings))
        report.rule_failures.extend(self._validate_rules(vm))
        return report

    def _validate_rules(self, vm: SourceVMDescription) -> List[ValidationFailure]:
        out: List[ValidationFailure] = []
        if vm.status not in (VMStatus.UP, VMStatus.DOWN):
            out.append(ValidationFailure(C.VM_STATUS, f"VM has illegal power state: {vm.status}"))
        if vm.bios_type and vm.bios_type not in ("bios", "efi"):
            out.append(ValidationFailure(C.VM_BIOS_TYPE, f"VM uses unsupported firmware: {vm.bios_type}"))
        if vm.cpu_shares:
            out.append(ValidationFailure(C.VM_CPU_SHARES, "VM specifies CPU shares that should be available to it"))
        if vm.host_devices:
            out.append(ValidationFailure(C.VM_HOST_DEVICES, f"VM has following host devices: {vm.host_devices}"))
        if vm.floppies > 0:
            out.append(ValidationFailure(C.VM_FLOPPIES, f"VM uses {vm.floppies} floppies"))
        if not vm.disks:
            out.append(ValidationFailure(C.DISK_ATTACHMENTS_EXIST, "VM has no disks"))
        for nic in vm.nics:
            nic_id = U.to_loggable_id(nic.id, nic.name)
            if nic.interface and nic.interface not in VMWARE_INTERFACE_MODEL_MAPPING:
                out.append(
                    ValidationFailure(
                        C.NIC_INTERFACE,
                        f"interface {nic_id} uses model {nic.interface} that is not supported. "
                        f"Supported models: {sorted(VMWARE_INTERFACE_MODEL_MAPPING)}",
                    )
                )
            if nic.plugged is False:
                out.append(ValidationFailure(C.NIC_PLUGGED, f"interface {nic_id} is unplugged."))
        return out
