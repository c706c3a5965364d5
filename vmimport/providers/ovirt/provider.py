# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/providers/ovirt/provider.py
"""
oVirt provider.

Credentials come from the `ovirt` key of the provider secret and must
carry the engine CA certificate. Warm imports are not offered: the disk
importer has no incremental mode for imageio sources.
"""

from __future__ import annotations

from ...api.constants import SOURCE_OVIRT
from ...validation.engine import ValidationReport
from ...validation.storage_validator import is_valid_disk_status
from ...validation.validators import OvirtValidator
from ..base import Credentials, Mapper, Provider, SourceClient
from .client import OvirtClient
from .mapper import OvirtMapper


class OvirtProvider(Provider):
    SOURCE_TYPE = SOURCE_OVIRT
    SECRET_KEY = SOURCE_OVIRT
    REQUIRE_CA = True

    def _default_client(self, credentials: Credentials) -> SourceClient:
        return OvirtClient(credentials, logger=self.logger)

    def _validate_report(self) -> ValidationReport:
        return OvirtValidator(self.store).validate(self._require_vm(), self.mappings, self.request.namespace)

    def validate_disk_status(self, disk_id: str) -> bool:
        vm = self._require_vm()
        disk = vm.disk(disk_id)
        if disk is None:
            return False
        status = self._require_client().get_disk_status(disk_id)
        if status is not None:
            disk.status = status
        return is_valid_disk_status(disk)

    def create_mapper(self) -> Mapper:
        return OvirtMapper(self._require_vm(), self.mappings, self.data_volume_credentials(), self.request)
