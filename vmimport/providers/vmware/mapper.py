# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/providers/vmware/mapper.py
from __future__ import annotations

from typing import Optional

from ...api.objects import DataVolumeSource, VDDKSource
from ...api.source import SourceDisk
from ...validation.models import VMWARE_INTERFACE_MODEL_MAPPING
from ..mapper import BaseMapper


class VmwareMapper(BaseMapper):
    INTERFACE_MODELS = VMWARE_INTERFACE_MODEL_MAPPING

    def _data_volume_source(self, disk: SourceDisk) -> DataVolumeSource:
        return DataVolumeSource(
            vddk=VDDKSource(
                url=self.credentials.url,
                uuid=self.vm.id,
                backing_file=disk.backing_file or "",
                thumbprint=self.credentials.thumbprint,
                secret_ref=self.credentials.secret_name,
            )
        )

    def _firmware(self) -> Optional[str]:
        return self.vm.bios_type if self.vm.bios_type in ("bios", "efi") else None
