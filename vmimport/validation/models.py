# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/validation/models.py
"""
Source -> target device model tables shared by validators and mappers.
"""

from __future__ import annotations

import datetime as _dt
from typing import Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

# oVirt disk interface -> VM disk bus
DISK_INTERFACE_MODEL_MAPPING: Dict[str, str] = {"sata": "sata", "virtio_scsi": "scsi", "virtio": "virtio"}

# oVirt bios type -> firmware
BIOS_TYPE_MAPPING: Dict[str, str] = {
    "q35_sea_bios": "bios",
    "q35_secure_boot": "bios",
    "q35_ovmf": "efi",
    "i440fx_sea_bios": "bios",
}
CLUSTER_DEFAULT_BIOS = "cluster_default"

ARCH_MACHINE_MAPPING: Dict[str, str] = {"x86_64": "q35", "ppc64": "pseries"}

# oVirt NIC model -> VM interface model; pci_passthrough is wired as SR-IOV
INTERFACE_MODEL_MAPPING: Dict[str, str] = {
    "e1000": "e1000",
    "rtl8139": "rtl8139",
    "virtio": "virtio",
    "pci_passthrough": "virtio",
}

# VMware virtual device class -> VM interface model
VMWARE_INTERFACE_MODEL_MAPPING: Dict[str, str] = {
    "VirtualE1000": "e1000",
    "VirtualE1000e": "e1000e",
    "VirtualVmxnet3": "virtio",
    "VirtualVmxnet2": "virtio",
    "VirtualPCNet32": "pcnet",
}

DEFAULT_STORAGE_CLASS_TARGET_NAME = ""

NETWORK_TYPE_POD = "pod"
NETWORK_TYPE_MULTUS = "multus"

_WINDOWS_UTC_COMPATIBLE = {"GMT Standard Time", "Greenwich Standard Time"}


def resolve_bios_type(bios_type: Optional[str], cluster_bios_type: Optional[str]) -> Optional[str]:
    if bios_type == CLUSTER_DEFAULT_BIOS and cluster_bios_type:
        return cluster_bios_type
    return bios_type


def is_utc_compatible(timezone: str, *, now: Optional[_dt.datetime] = None) -> bool:
    """
    True when the zone has a zero UTC offset and does not observe DST.
    """
    if timezone in _WINDOWS_UTC_COMPATIBLE:
        return True
    # off DST during Ramadan, which has no fixed date
    if timezone == "Africa/El_Aaiun":
        return False
    try:
        tz = ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    year = (now or _dt.datetime.now(tz=_dt.timezone.utc)).year
    winter = _dt.datetime(year, 1, 1, tzinfo=tz).utcoffset()
    summer = _dt.datetime(year, 7, 1, tzinfo=tz).utcoffset()
    return winter == summer == _dt.timedelta(0)


def is_cpu_pinning_exact(pinning: Dict[str, str]) -> bool:
    """Every vCPU pinned to exactly one host CPU, no host CPU shared."""
    seen = set()
    for cpu_set in pinning.values():
        s = str(cpu_set).strip()
        if not s.isdigit() or s in seen:
            return False
        seen.add(s)
    return True
