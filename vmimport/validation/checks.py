# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/validation/checks.py
"""
Check identifiers and the check -> action table.

Every validator failure carries a check ID. The table decides whether a
failure blocks the import, is surfaced as a warning, or is only logged.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from ..core.exceptions import ConfigError


class Action:
    LOG = "log"
    WARN = "warn"
    BLOCK = "block"

    ALL = (LOG, WARN, BLOCK)


@dataclass(frozen=True)
class ValidationFailure:
    check_id: str
    message: str


# NIC rules
NIC_INTERFACE = "nic.interface"
NIC_ON_BOOT = "nic.on_boot"
NIC_PLUGGED = "nic.plugged"
NIC_VNIC_PORT_MIRRORING = "nic.vnic_profile.port_mirroring"
NIC_VNIC_PASS_THROUGH = "nic.vnic_profile.pass_through"
NIC_VNIC_CUSTOM_PROPERTIES = "nic.vnic_profile.custom_properties"
NIC_VNIC_NETWORK_FILTER = "nic.vnic_profile.network_filter"
NIC_VNIC_QOS = "nic.vnic_profile.qos"

# storage rules
DISK_ATTACHMENTS_EXIST = "disk_attachments.exist"
DISK_ATTACHMENT_INTERFACE = "disk_attachment.interface"
DISK_ATTACHMENT_LOGICAL_NAME = "disk_attachment.logical_name"
DISK_ATTACHMENT_PASS_DISCARD = "disk_attachment.pass_discard"
DISK_ATTACHMENT_USES_SCSI_RESERVATION = "disk_attachment.uses_scsi_reservation"
DISK_INTERFACE = "disk_attachment.disk.interface"
DISK_LOGICAL_NAME = "disk_attachment.disk.logical_name"
DISK_USES_SCSI_RESERVATION = "disk_attachment.disk.uses_scsi_reservation"
DISK_BACKUP = "disk_attachment.disk.backup"
DISK_LUN_STORAGE = "disk_attachment.disk.lun_storage"
DISK_PROPAGATE_ERRORS = "disk_attachment.disk.propagate_errors"
DISK_WIPE_AFTER_DELETE = "disk_attachment.disk.wipe_after_delete"
DISK_STATUS = "disk_attachment.disk.status"
DISK_STORAGE_TYPE = "disk_attachment.disk.storage_type"
DISK_SGIO = "disk_attachment.disk.sgio"

# VM rules
VM_STATUS = "vm.status"
VM_TIMEZONE = "vm.timezone"
VM_BIOS_BOOT_MENU = "vm.bios.boot_menu.enabled"
VM_BIOS_TYPE = "vm.bios.type"
VM_BIOS_TYPE_Q35_SECURE_BOOT = "vm.bios.type.q35_secure_boot"
VM_CPU_ARCHITECTURE = "vm.cpu.architecture"
VM_CPU_TUNE = "vm.cpu.cpu_tune"
VM_CPU_SHARES = "vm.cpu_shares"
VM_CUSTOM_PROPERTIES = "vm.custom_properties"
VM_DISPLAY_TYPE = "vm.display.type"
VM_HAS_ILLEGAL_IMAGES = "vm.has_illegal_images"
VM_HIGH_AVAILABILITY_PRIORITY = "vm.high_availability.priority"
VM_IO_THREADS = "vm.io.threads"
VM_MEMORY_BALLOONING = "vm.memory_policy.ballooning"
VM_MEMORY_OVERCOMMIT_PERCENT = "vm.memory_policy.over_commit.percent"
VM_MEMORY_GUARANTEED = "vm.memory_policy.guaranteed"
VM_MIGRATION = "vm.migration"
VM_MIGRATION_DOWNTIME = "vm.migration_downtime"
VM_NUMA_TUNE_MODE = "vm.numa_tune_mode"
VM_ORIGIN = "vm.origin"
VM_RNG_DEVICE_SOURCE = "vm.rng_device.source"
VM_SOUNDCARD_ENABLED = "vm.soundcard_enabled"
VM_START_PAUSED = "vm.start_paused"
VM_STORAGE_ERROR_RESUME_BEHAVIOUR = "vm.storage_error_resume_behaviour"
VM_TUNNEL_MIGRATION = "vm.tunnel_migration"
VM_USB = "vm.usb"
VM_GRAPHIC_CONSOLES = "vm.graphic_consoles.protocol"
VM_HOST_DEVICES = "vm.host_devices"
VM_REPORTED_DEVICES = "vm.reported_devices"
VM_QUOTA = "vm.quota"
VM_WATCHDOGS = "vm.watchdogs"
VM_CDROMS = "vm.cdroms.file.storage_domain.type"
VM_FLOPPIES = "vm.floppies"

# mapping checks
NETWORK_MAPPING = "network.mapping"
NETWORK_MULTIPLE_POD_TARGETS = "network.multiple_pod_targets"
NETWORK_TYPE = "network.type"
NETWORK_TARGET = "network.target"
STORAGE_MAPPING = "storage.mapping"
STORAGE_TARGET = "storage.target"
STORAGE_TARGET_DEFAULT = "storage.target.default"
DISK_MAPPING = "disk.mapping"
DISK_TARGET = "disk.target"


DEFAULT_CHECK_ACTIONS: Dict[str, str] = {
    NIC_INTERFACE: Action.BLOCK,
    NIC_ON_BOOT: Action.LOG,
    NIC_PLUGGED: Action.WARN,
    NIC_VNIC_PASS_THROUGH: Action.BLOCK,
    NIC_VNIC_PORT_MIRRORING: Action.WARN,
    NIC_VNIC_CUSTOM_PROPERTIES: Action.WARN,
    NIC_VNIC_NETWORK_FILTER: Action.WARN,
    NIC_VNIC_QOS: Action.LOG,
    DISK_ATTACHMENTS_EXIST: Action.BLOCK,
    DISK_ATTACHMENT_INTERFACE: Action.BLOCK,
    DISK_ATTACHMENT_LOGICAL_NAME: Action.LOG,
    DISK_ATTACHMENT_PASS_DISCARD: Action.LOG,
    DISK_ATTACHMENT_USES_SCSI_RESERVATION: Action.BLOCK,
    DISK_INTERFACE: Action.BLOCK,
    DISK_LOGICAL_NAME: Action.LOG,
    DISK_USES_SCSI_RESERVATION: Action.BLOCK,
    DISK_BACKUP: Action.WARN,
    DISK_LUN_STORAGE: Action.BLOCK,
    DISK_PROPAGATE_ERRORS: Action.LOG,
    DISK_WIPE_AFTER_DELETE: Action.LOG,
    DISK_STATUS: Action.BLOCK,
    DISK_STORAGE_TYPE: Action.BLOCK,
    DISK_SGIO: Action.BLOCK,
    VM_STATUS: Action.BLOCK,
    VM_TIMEZONE: Action.WARN,
    VM_BIOS_BOOT_MENU: Action.LOG,
    VM_BIOS_TYPE: Action.BLOCK,
    VM_BIOS_TYPE_Q35_SECURE_BOOT: Action.WARN,
    VM_CPU_ARCHITECTURE: Action.BLOCK,
    VM_CPU_TUNE: Action.WARN,
    VM_CPU_SHARES: Action.LOG,
    VM_CUSTOM_PROPERTIES: Action.WARN,
    VM_DISPLAY_TYPE: Action.LOG,
    VM_HAS_ILLEGAL_IMAGES: Action.BLOCK,
    VM_HIGH_AVAILABILITY_PRIORITY: Action.LOG,
    VM_IO_THREADS: Action.WARN,
    VM_MEMORY_BALLOONING: Action.LOG,
    VM_MEMORY_OVERCOMMIT_PERCENT: Action.LOG,
    VM_MEMORY_GUARANTEED: Action.LOG,
    VM_MIGRATION: Action.LOG,
    VM_MIGRATION_DOWNTIME: Action.LOG,
    VM_NUMA_TUNE_MODE: Action.WARN,
    VM_ORIGIN: Action.BLOCK,
    VM_RNG_DEVICE_SOURCE: Action.LOG,
    VM_SOUNDCARD_ENABLED: Action.WARN,
    VM_START_PAUSED: Action.LOG,
    VM_STORAGE_ERROR_RESUME_BEHAVIOUR: Action.LOG,
    VM_TUNNEL_MIGRATION: Action.WARN,
    VM_USB: Action.BLOCK,
    VM_GRAPHIC_CONSOLES: Action.LOG,
    VM_HOST_DEVICES: Action.LOG,
    VM_REPORTED_DEVICES: Action.LOG,
    VM_QUOTA: Action.LOG,
    VM_WATCHDOGS: Action.BLOCK,
    VM_CDROMS: Action.LOG,
    VM_FLOPPIES: Action.LOG,
    STORAGE_TARGET_DEFAULT: Action.LOG,
}


class CheckActionTable:
    """
    Immutable check -> action lookup built once from the defaults plus
    optional overrides from the controller configuration.
    """

    def __init__(self, overrides: Optional[Mapping[str, str]] = None, *, defaults: Optional[Mapping[str, str]] = None):
        table = dict(DEFAULT_CHECK_ACTIONS if defaults is None else defaults)
        for check_id, action in (overrides or {}).items():
            a = str(action).strip().lower()
            if a not in Action.ALL:
                raise ConfigError(
                    code=4,
                    msg=f"invalid action {action!r} for check {check_id!r}; expected one of {', '.join(Action.ALL)}",
                    context={"check": check_id},
                )
            table[str(check_id)] = a
        self._table: Dict[str, str] = table

    def action_for(self, check_id: str) -> str:
        """Unknown check IDs are only logged."""
        return self._table.get(check_id, Action.LOG)

    def as_dict(self) -> Dict[str, str]:
        return dict(self._table)

    def __len__(self) -> int:
        return len(self._table)

    def __contains__(self, check_id: object) -> bool:
        return check_id in self._table
