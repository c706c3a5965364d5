# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/providers/vmware/provider.py
"""
VMware provider.

Credentials come from the `vmware` key of the provider secret; the CA is
optional and a certificate thumbprint may pin the server instead. VDDK
sources can copy incrementally, so warm imports are supported.
"""

from __future__ import annotations

from ...api.constants import SOURCE_VMWARE
from ...validation.engine import ValidationReport
from ...validation.validators import VmwareValidator
from ..base import Credentials, Mapper, Provider, SourceClient
from .client import VmwareClient
from .mapper import VmwareMapper


class VmwareProvider(Provider):
    SOURCE_TYPE = SOURCE_VMWARE
    SECRET_KEY = SOURCE_VMWARE

    def _default_client(self, credentials: Credentials) -> SourceClient:
        client = VmwareClient(credentials, logger=self.logger)
        client.connect()
        return client

    def _validate_report(self) -> ValidationReport:
        return VmwareValidator(self.store).validate(self._require_vm(), self.mappings, self.request.namespace)

    def supports_warm_migration(self) -> bool:
        return True

    def create_mapper(self) -> Mapper:
        return VmwareMapper(self._require_vm(), self.mappings, self.data_volume_credentials(), self.request)
