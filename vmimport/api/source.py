# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/api/source.py
"""
Provider-neutral description of a source VM.

Providers fill this in from their platform API; validators and mappers
only ever look at this model. A field left as None means the platform did
not report the attribute, which is different from a reported False/0.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .meta import Serializable


@dataclass
class SourceVnicProfile(Serializable):
    id: Optional[str] = None
    name: Optional[str] = None
    network_id: Optional[str] = None
    network_name: Optional[str] = None
    pass_through: bool = False
    port_mirroring: bool = False
    custom_properties: Dict[str, str] = field(default_factory=dict)
    network_filter: Optional[str] = None
    qos: Optional[str] = None

    @property
    def mapping_name(self) -> Optional[str]:
        """Name used in network mappings: `network-name/vnic-profile-name`."""
        if self.network_name and self.name:
            return f"{self.network_name}/{self.name}"
        return None


@dataclass
class SourceNic(Serializable):
    id: Optional[str] = None
    name: Optional[str] = None
    interface: Optional[str] = None
    mac_address: Optional[str] = None
    plugged: Optional[bool] = None
    on_boot: Optional[bool] = None
    # oVirt attaches NICs through a vNIC profile; VMware NICs name a network directly
    vnic_profile: Optional[SourceVnicProfile] = None
    network_id: Optional[str] = None
    network_name: Optional[str] = None


@dataclass
class SourceDisk(Serializable):
    id: str = ""
    alias: Optional[str] = None
    size_bytes: int = 0
    bootable: bool = False
    read_only: bool = False
    status: Optional[str] = None
    storage_type: Optional[str] = None
    sgio: Optional[str] = None
    interface: Optional[str] = None
    logical_name: Optional[str] = None
    uses_scsi_reservation: Optional[bool] = None
    backup: Optional[str] = None
    lun_storage: Optional[str] = None
    propagate_errors: Optional[bool] = None
    wipe_after_delete: Optional[bool] = None
    storage_domain_id: Optional[str] = None
    storage_domain_name: Optional[str] = None
    # VMware only: datastore path of the backing file
    backing_file: Optional[str] = None

    attachment_id: Optional[str] = None
    attachment_interface: Optional[str] = None
    attachment_logical_name: Optional[str] = None
    attachment_pass_discard: Optional[bool] = None
    attachment_uses_scsi_reservation: Optional[bool] = None


@dataclass
class SourceCdrom(Serializable):
    id: Optional[str] = None
    storage_domain_type: Optional[str] = None


@dataclass
class SourceVMDescription(Serializable):
    id: str = ""
    name: str = ""
    status: Optional[str] = None
    os_type: Optional[str] = None
    timezone: Optional[str] = None
    origin: Optional[str] = None

    cluster_id: Optional[str] = None
    cluster_name: Optional[str] = None
    cluster_bios_type: Optional[str] = None

    bios_type: Optional[str] = None
    bios_boot_menu_enabled: Optional[bool] = None

    cpu_architecture: Optional[str] = None
    cpu_sockets: int = 1
    cpu_cores: int = 1
    cpu_threads: int = 1
    # vCPU index -> host CPU set, e.g. {"0": "2", "1": "3"}
    cpu_pinning: Optional[Dict[str, str]] = None
    cpu_shares: Optional[int] = None

    memory_bytes: int = 0
    memory_ballooning: Optional[bool] = None
    memory_overcommit_percent: Optional[int] = None
    memory_guaranteed: Optional[int] = None

    custom_properties: Dict[str, str] = field(default_factory=dict)
    display_type: Optional[str] = None
    graphics_protocols: List[str] = field(default_factory=list)
    has_illegal_images: Optional[bool] = None
    ha_enabled: bool = False
    ha_priority: Optional[int] = None
    io_threads: Optional[int] = None
    migration_options: Dict[str, str] = field(default_factory=dict)
    migration_downtime: Optional[int] = None
    numa_tune_mode: Optional[str] = None
    rng_source: Optional[str] = None
    soundcard_enabled: Optional[bool] = None
    start_paused: Optional[bool] = None
    tunnel_migration: Optional[bool] = None
    storage_error_resume_behaviour: Optional[str] = None
    usb_enabled: Optional[bool] = None
    host_devices: List[str] = field(default_factory=list)
    reported_devices: List[str] = field(default_factory=list)
    quota_id: Optional[str] = None
    watchdog_models: List[str] = field(default_factory=list)
    cdroms: List[SourceCdrom] = field(default_factory=list)
    floppies: int = 0

    nics: List[SourceNic] = field(default_factory=list)
    disks: List[SourceDisk] = field(default_factory=list)

    def disk(self, disk_id: str) -> Optional[SourceDisk]:
        for d in self.disks:
            if d.id == disk_id:
                return d
        return None
