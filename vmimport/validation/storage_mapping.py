# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/validation/storage_mapping.py
"""
Storage mapping resolution and target checks.

A disk resolves, in order, to a disk mapping (by id, then alias), a
storage domain mapping (by id, then name) or the default storage class.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from ..api.objects import StorageClass
from ..api.source import SourceDisk
from ..api.types import MappingItem
from ..core.utils import U
from ..store.base import ObjectStore
from . import checks as C
from .checks import ValidationFailure
from .engine import ValidationReport
from .models import DEFAULT_STORAGE_CLASS_TARGET_NAME
from .network_mapping import index_by_id_and_name

DISK_SOURCE = "disk"
STORAGE_DOMAIN_SOURCE = "storage domain"


@dataclass(frozen=True)
class StorageResolution:
    """Which mapping item (if any) decides the storage class of one disk."""

    disk_id: str
    item: Optional[MappingItem]
    source_type: str
    source_id: Optional[str]
    source_name: Optional[str]

    @property
    def storage_class(self) -> str:
        return self.item.target.name if self.item is not None else DEFAULT_STORAGE_CLASS_TARGET_NAME


class StorageResolver:
    def __init__(self, storage_mappings: Optional[List[MappingItem]], disk_mappings: Optional[List[MappingItem]]):
        self._disk_by_id, self._disk_by_name = index_by_id_and_name(disk_mappings)
        self._sd_by_id, self._sd_by_name = index_by_id_and_name(storage_mappings)

    def resolve(self, disk: SourceDisk) -> StorageResolution:
        item = self._disk_by_id.get(disk.id) or (self._disk_by_name.get(disk.alias) if disk.alias else None)
        if item is not None:
            return StorageResolution(disk.id, item, DISK_SOURCE, item.source.id, item.source.name)
        item = (self._sd_by_id.get(disk.storage_domain_id) if disk.storage_domain_id else None) or (
            self._sd_by_name.get(disk.storage_domain_name) if disk.storage_domain_name else None
        )
        if item is not None:
            return StorageResolution(disk.id, item, STORAGE_DOMAIN_SOURCE, item.source.id, item.source.name)
        return StorageResolution(disk.id, None, DISK_SOURCE, disk.id, disk.alias)


class StorageMappingValidator:
    def __init__(self, store: ObjectStore):
        self.store = store

    def validate(
        self,
        disks: List[SourceDisk],
        storage_mappings: Optional[List[MappingItem]],
        disk_mappings: Optional[List[MappingItem]],
    ) -> ValidationReport:
        """
        Missing storage classes go to the mapping pass; disks falling back
        to the default class are reported to the rule pass, where the check
        table decides how loud they are.
        """
        resolver = StorageResolver(storage_mappings, disk_mappings)
        required: Dict[str, List[StorageResolution]] = {}
        for disk in disks:
            r = resolver.resolve(disk)
            required.setdefault(r.storage_class, []).append(r)

        report = ValidationReport()
        for class_name, resolutions in required.items():
            if class_name == DEFAULT_STORAGE_CLASS_TARGET_NAME:
                for r in resolutions:
                    report.rule_failures.append(
                        ValidationFailure(
                            C.STORAGE_TARGET_DEFAULT,
                            f"Default storage class will be used for {U.to_loggable_id(r.source_id, r.source_name)} disk",
                        )
                    )
                continue
            if self.store.try_get(StorageClass, "", class_name) is not None:
                continue
            for r in resolutions:
                report.mapping_failures.append(
                    ValidationFailure(
                        C.DISK_TARGET if r.source_type == DISK_SOURCE else C.STORAGE_TARGET,
                        f"Storage class {class_name} has not been found for {r.source_type}: "
                        f"{U.to_loggable_id(r.source_id, r.source_name)}",
                    )
                )
        return report


def resolve_all(
    disks: List[SourceDisk],
    storage_mappings: Optional[List[MappingItem]],
    disk_mappings: Optional[List[MappingItem]],
) -> Dict[str, StorageResolution]:
    resolver = StorageResolver(storage_mappings, disk_mappings)
    return {d.id: resolver.resolve(d) for d in disks}
