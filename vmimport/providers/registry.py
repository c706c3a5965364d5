# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/providers/registry.py
"""Source type -> Provider factory."""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

from ..api.constants import SOURCE_OVIRT, SOURCE_VMWARE
from ..api.types import VirtualMachineImport
from ..core.exceptions import ProviderError
from ..store.base import ObjectStore
from ..validation.engine import ValidationEngine
from .base import Provider

ProviderFactory = Callable[..., Provider]


class ProviderRegistry:
    """
    Factories are called as factory(request, store, engine=..., logger=...).
    Tests register scripted providers under the real source type names.
    """

    def __init__(self, factories: Optional[Dict[str, ProviderFactory]] = None):
        self._factories: Dict[str, ProviderFactory] = dict(factories or {})

    def register(self, source_type: str, factory: ProviderFactory) -> None:
        self._factories[source_type] = factory

    def source_types(self) -> List[str]:
        return sorted(self._factories)

    def create(
        self,
        request: VirtualMachineImport,
        store: ObjectStore,
        *,
        engine: Optional[ValidationEngine] = None,
        logger: Optional[logging.Logger] = None,
    ) -> Provider:
        source_type = request.source_type
        if source_type is None:
            raise ProviderError(code=2, msg=f"import {request.namespaced_name} names no source (ovirt or vmware)")
        factory = self._factories.get(source_type)
        if factory is None:
            raise ProviderError(code=2, msg=f"unsupported source type: {source_type}")
        return factory(request, store, engine=engine, logger=logger)

    @classmethod
    def default(cls) -> "ProviderRegistry":
        from .ovirt.provider import OvirtProvider
        from .vmware.provider import VmwareProvider

        return cls({SOURCE_OVIRT: OvirtProvider, SOURCE_VMWARE: VmwareProvider})
