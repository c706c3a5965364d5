# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/api/types.py
"""
Import request and mapping resource types.
"""

from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .constants import GROUP_VERSION, PROGRESS_ANNOTATION, SOURCE_OVIRT, SOURCE_VMWARE
from .meta import ApiObject, ObjectIdentifier, Serializable


@dataclass
class MappingSource(Serializable):
    id: Optional[str] = None
    name: Optional[str] = None

    def identifiable(self) -> bool:
        return bool(self.id) or bool(self.name)


@dataclass
class MappingTarget(Serializable):
    name: str = ""
    namespace: Optional[str] = None


@dataclass
class MappingItem(Serializable):
    source: MappingSource = field(default_factory=MappingSource)
    target: MappingTarget = field(default_factory=MappingTarget)
    type: Optional[str] = None
    volume_mode: Optional[str] = None
    access_mode: Optional[str] = None


@dataclass
class Mappings(Serializable):
    """
    Network, storage and disk translation rules. A list that is None is
    absent, which is not the same as an empty list when merging.
    """

    network_mappings: Optional[List[MappingItem]] = None
    storage_mappings: Optional[List[MappingItem]] = None
    disk_mappings: Optional[List[MappingItem]] = None


@dataclass
class ResourceMappingSpec(Serializable):
    ovirt_mappings: Optional[Mappings] = None
    vmware_mappings: Optional[Mappings] = None

    def for_source(self, source_type: str) -> Optional[Mappings]:
        if source_type == SOURCE_OVIRT:
            return self.ovirt_mappings
        if source_type == SOURCE_VMWARE:
            return self.vmware_mappings
        return None


@dataclass
class ResourceMapping(ApiObject):
    KIND = "ResourceMapping"
    API_VERSION = GROUP_VERSION

    spec: ResourceMappingSpec = field(default_factory=ResourceMappingSpec)


@dataclass
class SourceCluster(Serializable):
    id: Optional[str] = None
    name: Optional[str] = None


@dataclass
class SourceVM(Serializable):
    id: Optional[str] = None
    name: Optional[str] = None
    cluster: Optional[SourceCluster] = None


@dataclass
class ProviderSource(Serializable):
    vm: SourceVM = field(default_factory=SourceVM)
    mappings: Optional[Mappings] = None


@dataclass
class ImportSource(Serializable):
    ovirt: Optional[ProviderSource] = None
    vmware: Optional[ProviderSource] = None

    @property
    def source_type(self) -> Optional[str]:
        if self.ovirt is not None:
            return SOURCE_OVIRT
        if self.vmware is not None:
            return SOURCE_VMWARE
        return None

    @property
    def provider_source(self) -> Optional[ProviderSource]:
        return self.ovirt if self.ovirt is not None else self.vmware


@dataclass
class VirtualMachineImportSpec(Serializable):
    provider_credentials_secret: ObjectIdentifier = field(default_factory=ObjectIdentifier)
    resource_mapping: Optional[ObjectIdentifier] = None
    source: ImportSource = field(default_factory=ImportSource)
    target_vm_name: Optional[str] = None
    start_vm: bool = False
    warm: bool = False
    finalize_date: Optional[_dt.datetime] = None


@dataclass
class Condition(Serializable):
    type: str = ""
    status: str = ""
    reason: str = ""
    message: str = ""
    last_transition_time: Optional[_dt.datetime] = None
    last_heartbeat_time: Optional[_dt.datetime] = None


@dataclass
class DataVolumeItem(Serializable):
    name: str = ""


@dataclass
class WarmImportStatus(Serializable):
    failures: int = 0
    consecutive_failures: int = 0
    successes: int = 0
    next_stage_time: Optional[_dt.datetime] = None
    root_snapshot: Optional[str] = None


@dataclass
class VirtualMachineImportStatus(Serializable):
    target_vm_name: str = ""
    conditions: List[Condition] = field(default_factory=list)
    data_volumes: List[DataVolumeItem] = field(default_factory=list)
    warm_import: WarmImportStatus = field(default_factory=WarmImportStatus)


@dataclass
class VirtualMachineImport(ApiObject):
    KIND = "VirtualMachineImport"
    API_VERSION = GROUP_VERSION

    spec: VirtualMachineImportSpec = field(default_factory=VirtualMachineImportSpec)
    status: VirtualMachineImportStatus = field(default_factory=VirtualMachineImportStatus)

    @property
    def source_type(self) -> Optional[str]:
        return self.spec.source.source_type

    @property
    def progress(self) -> Optional[str]:
        return self.metadata.annotations.get(PROGRESS_ANNOTATION)

    def set_progress(self, value: int) -> None:
        self.metadata.annotations[PROGRESS_ANNOTATION] = str(int(value))

    def data_volume_names(self) -> List[str]:
        return [dv.name for dv in self.status.data_volumes]

    def condition_map(self) -> Dict[str, Condition]:
        return {c.type: c for c in self.status.conditions}
