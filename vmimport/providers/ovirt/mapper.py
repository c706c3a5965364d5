# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/providers/ovirt/mapper.py
from __future__ import annotations

from typing import Optional

from ...api.objects import DataVolumeSource, ImageIOSource
from ...api.source import SourceDisk, SourceNic
from ...api.types import MappingItem
from ...validation.models import (
    BIOS_TYPE_MAPPING,
    DISK_INTERFACE_MODEL_MAPPING,
    INTERFACE_MODEL_MAPPING,
    resolve_bios_type,
)
from ...validation.network_mapping import index_by_id_and_name
from ..mapper import BaseMapper


class OvirtMapper(BaseMapper):
    INTERFACE_MODELS = INTERFACE_MODEL_MAPPING

    def _data_volume_source(self, disk: SourceDisk) -> DataVolumeSource:
        return DataVolumeSource(
            imageio=ImageIOSource(
                url=self.credentials.url,
                disk_id=disk.id,
                secret_ref=self.credentials.secret_name,
                cert_config_map=self.credentials.config_map_name,
            )
        )

    def _disk_bus(self, disk: SourceDisk) -> str:
        iface = disk.attachment_interface or disk.interface or ""
        return DISK_INTERFACE_MODEL_MAPPING.get(iface, "virtio")

    def _firmware(self) -> Optional[str]:
        bios = resolve_bios_type(self.vm.bios_type, self.vm.cluster_bios_type)
        return BIOS_TYPE_MAPPING.get(bios or "")

    def _network_source(self, nic: SourceNic) -> Optional[MappingItem]:
        profile = nic.vnic_profile
        if profile is None:
            return None
        by_id, by_name = index_by_id_and_name(self.mappings.network_mappings)
        if profile.id and profile.id in by_id:
            return by_id[profile.id]
        name = profile.mapping_name
        if name and name in by_name:
            return by_name[name]
        return None
