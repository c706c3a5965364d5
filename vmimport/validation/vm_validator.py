# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/validation/vm_validator.py
"""VM-level attribute checks for oVirt source VMs."""

from __future__ import annotations

from typing import Callable, List, Optional

from ..api.constants import VMStatus
from ..api.source import SourceVMDescription
from . import checks as C
from .checks import ValidationFailure
from .models import BIOS_TYPE_MAPPING, is_cpu_pinning_exact, is_utc_compatible, resolve_bios_type

VmCheck = Callable[[SourceVMDescription], List[ValidationFailure]]


def _one(check_id: str, message: str) -> List[ValidationFailure]:
    return [ValidationFailure(check_id, message)]


def check_status(vm: SourceVMDescription) -> List[ValidationFailure]:
    if vm.status is None:
        return _one(C.VM_STATUS, "VM doesn't have any status. Must be 'up' or 'down'.")
    if vm.status not in (VMStatus.UP, VMStatus.DOWN):
        return _one(C.VM_STATUS, f"VM has illegal status: {vm.status}. Only 'up' and 'down' are allowed.")
    return []


def check_timezone(vm: SourceVMDescription) -> List[ValidationFailure]:
    if vm.timezone and not is_utc_compatible(vm.timezone):
        return _one(
            C.VM_TIMEZONE,
            "VM's timezone is not UTC-compatible. It should have offset of 0 and not observe DST",
        )
    return []


def check_bios(vm: SourceVMDescription) -> List[ValidationFailure]:
    out: List[ValidationFailure] = []
    if vm.bios_boot_menu_enabled:
        out.append(ValidationFailure(C.VM_BIOS_BOOT_MENU, "VM Bios has boot menu enabled"))
    bios_type = resolve_bios_type(vm.bios_type, vm.cluster_bios_type)
    if bios_type is None:
        return out
    if bios_type not in BIOS_TYPE_MAPPING:
        out.append(ValidationFailure(C.VM_BIOS_TYPE, f"VM uses unsupported bios type: {bios_type}"))
    elif bios_type == "q35_secure_boot":
        out.append(ValidationFailure(C.VM_BIOS_TYPE_Q35_SECURE_BOOT, "VM uses q35_secure_boot bios"))
    return out


def check_cpu(vm: SourceVMDescription) -> List[ValidationFailure]:
    out: List[ValidationFailure] = []
    if vm.cpu_architecture == "s390x":
        out.append(ValidationFailure(C.VM_CPU_ARCHITECTURE, "VM uses unsupported s390x CPU architecture"))
    if vm.cpu_pinning is not None and not is_cpu_pinning_exact(vm.cpu_pinning):
        out.append(
            ValidationFailure(
                C.VM_CPU_TUNE,
                "VM uses unsupported CPU pinning layout. Only 1 vCPU - unique 1 pCpu pinning is supported",
            )
        )
    if vm.cpu_shares:
        out.append(ValidationFailure(C.VM_CPU_SHARES, "VM specifies CPU shares that should be available to it"))
    return out


def check_memory(vm: SourceVMDescription) -> List[ValidationFailure]:
    out: List[ValidationFailure] = []
    if vm.memory_ballooning:
        out.append(ValidationFailure(C.VM_MEMORY_BALLOONING, "VM enables memory ballooning"))
    if vm.memory_guaranteed is not None:
        out.append(
            ValidationFailure(C.VM_MEMORY_GUARANTEED, f"VM specifies guaranteed memory: {vm.memory_guaranteed}")
        )
    if vm.memory_overcommit_percent is not None:
        out.append(
            ValidationFailure(
                C.VM_MEMORY_OVERCOMMIT_PERCENT,
                f"VM specifies memory overcommit percent: {vm.memory_overcommit_percent}",
            )
        )
    return out


def check_general(vm: SourceVMDescription) -> List[ValidationFailure]:
    out: List[ValidationFailure] = []

    def add(cond: bool, check_id: str, message: str) -> None:
        if cond:
            out.append(ValidationFailure(check_id, message))

    add(bool(vm.custom_properties), C.VM_CUSTOM_PROPERTIES, f"VM specifies custom properties: {vm.custom_properties}")
    add(bool(vm.display_type) and vm.display_type != "vnc", C.VM_DISPLAY_TYPE, f"VM uses {vm.display_type} display")
    add(bool(vm.has_illegal_images), C.VM_HAS_ILLEGAL_IMAGES, "VM has illegal images")
    add(
        vm.ha_priority is not None,
        C.VM_HIGH_AVAILABILITY_PRIORITY,
        f"VM uses high availability priority: {vm.ha_priority}",
    )
    add(bool(vm.io_threads), C.VM_IO_THREADS, f"VM specifies IO Threads: {vm.io_threads}")
    add(bool(vm.migration_options), C.VM_MIGRATION, "VM has migration options specified")
    add(
        vm.migration_downtime is not None,
        C.VM_MIGRATION_DOWNTIME,
        f"VM has migration downtime specified: {vm.migration_downtime}",
    )
    add(bool(vm.numa_tune_mode), C.VM_NUMA_TUNE_MODE, f"VM has NUMA tune mode specified: {vm.numa_tune_mode}")
    add(vm.origin == "kubevirt", C.VM_ORIGIN, "VM has origin set to 'kubevirt'")
    add(
        bool(vm.rng_source) and vm.rng_source != "urandom",
        C.VM_RNG_DEVICE_SOURCE,
        f"VM has unsupported random number generator device source set: {vm.rng_source}. Supported value: 'urandom'",
    )
    add(bool(vm.soundcard_enabled), C.VM_SOUNDCARD_ENABLED, "VM has sound card enabled")
    add(bool(vm.start_paused), C.VM_START_PAUSED, "VM has start paused enabled")
    add(bool(vm.tunnel_migration), C.VM_TUNNEL_MIGRATION, "VM has start tunnel migration enabled")
    add(
        bool(vm.storage_error_resume_behaviour),
        C.VM_STORAGE_ERROR_RESUME_BEHAVIOUR,
        f"VM has storage error resume behaviour set: {vm.storage_error_resume_behaviour}",
    )
    add(bool(vm.usb_enabled), C.VM_USB, "VM has USB enabled")
    add(bool(vm.host_devices), C.VM_HOST_DEVICES, f"VM has following host devices: {vm.host_devices}")
    add(
        bool(vm.reported_devices),
        C.VM_REPORTED_DEVICES,
        f"VM has following reported devices: {vm.reported_devices}",
    )
    add(bool(vm.quota_id), C.VM_QUOTA, f"VM has quota with ID {vm.quota_id} assigned")
    add(vm.floppies > 0, C.VM_FLOPPIES, f"VM uses {vm.floppies} floppies")
    return out


def check_devices(vm: SourceVMDescription) -> List[ValidationFailure]:
    out: List[ValidationFailure] = []
    for protocol in vm.graphics_protocols:
        if protocol != "vnc":
            out.append(
                ValidationFailure(C.VM_GRAPHIC_CONSOLES, f"VM has non-VNC graphics console configured: {protocol}")
            )
    for model in vm.watchdog_models:
        if model != "i6300esb":
            out.append(ValidationFailure(C.VM_WATCHDOGS, f"VM has unsupported watchdog configured: {model}"))
    for cdrom in vm.cdroms:
        if cdrom.storage_domain_type and cdrom.storage_domain_type != "data":
            message = "VM uses CD ROM with image not stored in data domain"
            if cdrom.id:
                message = f"{message}: {cdrom.id}"
            out.append(ValidationFailure(C.VM_CDROMS, message))
    return out


VM_CHECKS: List[VmCheck] = [
    check_status,
    check_timezone,
    check_bios,
    check_cpu,
    check_memory,
    check_general,
    check_devices,
]


def validate_vm(vm: SourceVMDescription, checks: Optional[List[VmCheck]] = None) -> List[ValidationFailure]:
    failures: List[ValidationFailure] = []
    for check in checks or VM_CHECKS:
        failures.extend(check(vm))
    return failures
