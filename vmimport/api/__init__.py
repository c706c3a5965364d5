# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/api/__init__.py
"""Object model for import requests, mappings and created cluster objects."""

from .meta import (
    ApiObject,
    NamespacedName,
    ObjectIdentifier,
    ObjectMeta,
    OwnerReference,
    Serializable,
    decode_object,
    format_time,
    kind_class,
    new_uid,
    parse_time,
    utcnow,
)
from .types import (
    Condition,
    DataVolumeItem,
    ImportSource,
    MappingItem,
    MappingSource,
    MappingTarget,
    Mappings,
    ProviderSource,
    ResourceMapping,
    ResourceMappingSpec,
    SourceCluster,
    SourceVM,
    VirtualMachineImport,
    VirtualMachineImportSpec,
    VirtualMachineImportStatus,
    WarmImportStatus,
)
from .source import (
    SourceCdrom,
    SourceDisk,
    SourceNic,
    SourceVMDescription,
    SourceVnicProfile,
)
from .objects import (
    ConfigMap,
    DataVolume,
    DataVolumeCheckpoint,
    DataVolumeSpec,
    DataVolumeStatus,
    NetworkAttachmentDefinition,
    Secret,
    StorageClass,
    VirtualMachine,
    VirtualMachineInstance,
)

__all__ = [
    "ApiObject",
    "NamespacedName",
    "ObjectIdentifier",
    "ObjectMeta",
    "OwnerReference",
    "Serializable",
    "decode_object",
    "format_time",
    "kind_class",
    "new_uid",
    "parse_time",
    "utcnow",
    "Condition",
    "DataVolumeItem",
    "ImportSource",
    "MappingItem",
    "MappingSource",
    "MappingTarget",
    "Mappings",
    "ProviderSource",
    "ResourceMapping",
    "ResourceMappingSpec",
    "SourceCluster",
    "SourceVM",
    "VirtualMachineImport",
    "VirtualMachineImportSpec",
    "VirtualMachineImportStatus",
    "WarmImportStatus",
    "SourceCdrom",
    "SourceDisk",
    "SourceNic",
    "SourceVMDescription",
    "SourceVnicProfile",
    "ConfigMap",
    "DataVolume",
    "DataVolumeCheckpoint",
    "DataVolumeSpec",
    "DataVolumeStatus",
    "NetworkAttachmentDefinition",
    "Secret",
    "StorageClass",
    "VirtualMachine",
    "VirtualMachineInstance",
]
