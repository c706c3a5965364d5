# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/mappings/finder.py
"""Lookup of the reusable ResourceMapping referenced by an import request."""

from __future__ import annotations

from typing import Optional

from ..api.meta import ObjectIdentifier
from ..api.types import ResourceMappingSpec, ResourceMapping
from ..store.base import ObjectStore


class ResourceMappingsFinder:
    def __init__(self, store: ObjectStore):
        self.store = store

    def get_resource_mapping(self, ref: ObjectIdentifier, default_namespace: str) -> ResourceMappingSpec:
        """
        Return the spec of the referenced mapping; the namespace defaults to
        the request's. Raises NotFoundError when it does not exist.
        """
        nn = ref.resolve(default_namespace)
        return self.store.get(ResourceMapping, nn.namespace, nn.name).spec

    def find(self, ref: Optional[ObjectIdentifier], default_namespace: str) -> Optional[ResourceMappingSpec]:
        if ref is None or not ref.name:
            return None
        return self.get_resource_mapping(ref, default_namespace)
