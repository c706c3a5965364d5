# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/api/objects.py
"""
Objects the importer creates or reads in the target cluster.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Dict, List, Optional

from .constants import DataVolumePhase
from .meta import ApiObject, Serializable

KUBEVIRT_VERSION = "kubevirt.io/v1"
CDI_VERSION = "cdi.kubevirt.io/v1beta1"


# ---------------------------------------------------------------------------
# VirtualMachine
# ---------------------------------------------------------------------------


@dataclass
class CPU(Serializable):
    cores: int = 1
    sockets: int = 1
    threads: int = 1
    model: Optional[str] = None


@dataclass
class Disk(Serializable):
    name: str = ""
    bus: str = "virtio"
    boot_order: Optional[int] = None
    serial: Optional[str] = None


@dataclass
class Interface(Serializable):
    name: str = ""
    model: str = "virtio"
    mac_address: Optional[str] = None
    binding: str = "bridge"


@dataclass
class Devices(Serializable):
    disks: List[Disk] = field(default_factory=list)
    interfaces: List[Interface] = field(default_factory=list)


@dataclass
class Domain(Serializable):
    cpu: CPU = field(default_factory=CPU)
    memory: Optional[str] = None
    firmware: Optional[str] = None
    machine_type: Optional[str] = None
    devices: Devices = field(default_factory=Devices)


@dataclass
class Network(Serializable):
    name: str = ""
    pod: bool = False
    multus_network_name: Optional[str] = None


@dataclass
class Volume(Serializable):
    name: str = ""
    data_volume: Optional[str] = None


@dataclass
class VMTemplate(Serializable):
    labels: Dict[str, str] = field(default_factory=dict)
    domain: Domain = field(default_factory=Domain)
    networks: List[Network] = field(default_factory=list)
    volumes: List[Volume] = field(default_factory=list)


@dataclass
class VirtualMachineSpec(Serializable):
    running: bool = False
    template: VMTemplate = field(default_factory=VMTemplate)


@dataclass
class VirtualMachine(ApiObject):
    KIND = "VirtualMachine"
    API_VERSION = KUBEVIRT_VERSION

    spec: VirtualMachineSpec = field(default_factory=VirtualMachineSpec)

    def has_volume(self, name: str) -> bool:
        return any(v.name == name for v in self.spec.template.volumes)


@dataclass
class VMIStatus(Serializable):
    phase: str = ""


@dataclass
class VirtualMachineInstance(ApiObject):
    KIND = "VirtualMachineInstance"
    API_VERSION = KUBEVIRT_VERSION

    status: VMIStatus = field(default_factory=VMIStatus)


# ---------------------------------------------------------------------------
# DataVolume
# ---------------------------------------------------------------------------


@dataclass
class ImageIOSource(Serializable):
    url: str = ""
    disk_id: str = ""
    secret_ref: str = ""
    cert_config_map: str = ""


@dataclass
class VDDKSource(Serializable):
    url: str = ""
    uuid: str = ""
    backing_file: str = ""
    thumbprint: str = ""
    secret_ref: str = ""


@dataclass
class DataVolumeSource(Serializable):
    imageio: Optional[ImageIOSource] = None
    vddk: Optional[VDDKSource] = None
    blank: Optional[Dict[str, str]] = None


@dataclass
class StorageSpec(Serializable):
    storage_class_name: Optional[str] = None
    volume_mode: Optional[str] = None
    access_modes: List[str] = field(default_factory=list)
    size: str = ""


@dataclass
class DataVolumeCheckpoint(Serializable):
    previous: str = ""
    current: str = ""


@dataclass
class DataVolumeSpec(Serializable):
    source: DataVolumeSource = field(default_factory=DataVolumeSource)
    storage: StorageSpec = field(default_factory=StorageSpec)
    checkpoints: List[DataVolumeCheckpoint] = field(default_factory=list)
    final_checkpoint: bool = False


@dataclass
class DataVolumeStatus(Serializable):
    phase: str = ""
    progress: str = ""

    def progress_percent(self) -> float:
        """Parse "45.5%" style progress; anything unparsable counts as 0."""
        raw = (self.progress or "").strip().rstrip("%")
        try:
            return max(0.0, min(100.0, float(raw)))
        except ValueError:
            return 0.0


@dataclass
class DataVolume(ApiObject):
    KIND = "DataVolume"
    API_VERSION = CDI_VERSION

    spec: DataVolumeSpec = field(default_factory=DataVolumeSpec)
    status: DataVolumeStatus = field(default_factory=DataVolumeStatus)

    def last_checkpoint(self) -> Optional[DataVolumeCheckpoint]:
        return self.spec.checkpoints[-1] if self.spec.checkpoints else None

    def stage_complete(self) -> bool:
        return self.status.phase in (DataVolumePhase.PAUSED, DataVolumePhase.SUCCEEDED)

    def failed(self) -> bool:
        return self.status.phase == DataVolumePhase.FAILED


# ---------------------------------------------------------------------------
# Secrets, config maps and cluster lookups
# ---------------------------------------------------------------------------


@dataclass
class Secret(ApiObject):
    """Secret holding plain string values (not base64 encoded)."""

    KIND = "Secret"

    data: Dict[str, str] = field(default_factory=dict)
    type: str = "Opaque"


@dataclass
class ConfigMap(ApiObject):
    KIND = "ConfigMap"

    data: Dict[str, str] = field(default_factory=dict)


@dataclass
class NetworkAttachmentDefinition(ApiObject):
    KIND = "NetworkAttachmentDefinition"
    API_VERSION = "k8s.cni.cncf.io/v1"

    config: str = ""


@dataclass
class StorageClass(ApiObject):
    KIND = "StorageClass"
    API_VERSION = "storage.k8s.io/v1"
    NAMESPACED: ClassVar[bool] = False

    provisioner: str = ""
