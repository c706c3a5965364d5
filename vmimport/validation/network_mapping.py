# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/validation/network_mapping.py
"""
Network mapping completeness and target checks.

Every network a NIC is attached to must have a mapping item, at most one
source network may land on the pod network, and multus targets must exist
as NetworkAttachmentDefinitions.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from ..api.objects import NetworkAttachmentDefinition
from ..api.source import SourceNic
from ..api.types import MappingItem
from ..core.utils import U
from ..store.base import ObjectStore
from . import checks as C
from .checks import ValidationFailure
from .models import NETWORK_TYPE_MULTUS, NETWORK_TYPE_POD

SourceKey = Tuple[Optional[str], Optional[str]]


def index_by_id_and_name(items: Optional[List[MappingItem]]) -> Tuple[Dict[str, MappingItem], Dict[str, MappingItem]]:
    by_id: Dict[str, MappingItem] = {}
    by_name: Dict[str, MappingItem] = {}
    for item in items or []:
        if item.source.id:
            by_id[item.source.id] = item
        if item.source.name:
            by_name[item.source.name] = item
    return by_id, by_name


class NetworkMappingValidator:
    """oVirt flavour: NICs reference vNIC profiles named `network/profile`."""

    def __init__(self, store: ObjectStore):
        self.store = store

    # -- per-platform hooks ------------------------------------------------

    def _source_of(self, nic: SourceNic) -> Optional[SourceKey]:
        profile = nic.vnic_profile
        if profile is None:
            return None
        return (profile.id, profile.mapping_name)

    def _check_name_format(self, by_name: Dict[str, MappingItem]) -> Optional[ValidationFailure]:
        invalid = sorted(k for k in by_name if "/" not in k)
        if invalid:
            return ValidationFailure(
                C.NETWORK_MAPPING,
                f"Network mapping name format is invalid: {invalid}. Expected format is 'network-name/vnic-profile-name'",
            )
        return None

    def _missing_message(self, key: SourceKey) -> str:
        return f"Required source Vnic Profile '{U.to_loggable_id(*key)}' lacks mapping"

    # -- validation --------------------------------------------------------

    def validate(
        self, nics: List[SourceNic], mapping: Optional[List[MappingItem]], namespace: str
    ) -> List[ValidationFailure]:
        failures: List[ValidationFailure] = []
        sources = [s for s in (self._source_of(n) for n in nics) if s is not None]

        if mapping is None:
            if sources:
                failures.append(ValidationFailure(C.NETWORK_MAPPING, "Network mapping is missing"))
            return failures

        by_id, by_name = index_by_id_and_name(mapping)

        bad_format = self._check_name_format(by_name)
        if bad_format is not None:
            return [bad_format]

        required: Dict[Tuple[str, Optional[str]], Optional[str]] = {}
        seen = set()
        for key in sources:
            if key in seen:
                continue
            seen.add(key)
            item = _lookup(key, by_id, by_name)
            if item is None:
                failures.append(ValidationFailure(C.NETWORK_MAPPING, self._missing_message(key)))
                continue
            required[(item.target.name, item.target.namespace)] = item.type

        pod_networks = []
        for key in sources:
            item = _lookup(key, by_id, by_name)
            if item is not None and (item.type is None or item.type == NETWORK_TYPE_POD):
                pod_networks.append(U.to_loggable_id(item.source.id, item.source.name))
        if len(pod_networks) > 1:
            failures.append(
                ValidationFailure(
                    C.NETWORK_MULTIPLE_POD_TARGETS,
                    f"There are more than one source networks mapped to a pod network: {pod_networks}",
                )
            )

        for (name, target_ns), net_type in required.items():
            failure = self._validate_target(name, target_ns, net_type, namespace)
            if failure is not None:
                failures.append(failure)
        return failures

    def _validate_target(
        self, name: str, target_ns: Optional[str], net_type: Optional[str], namespace: str
    ) -> Optional[ValidationFailure]:
        resource = U.to_loggable_resource_name(name, target_ns)
        if net_type is None:
            if target_ns is None:
                return None
            return ValidationFailure(
                C.NETWORK_TYPE,
                f"Network {resource} has unspecified network type and target namespace: {target_ns}. "
                "When target type is omitted, the namespace must be omitted as well.",
            )
        if net_type == NETWORK_TYPE_POD:
            return None
        if net_type == NETWORK_TYPE_MULTUS:
            ns = target_ns or namespace
            if self.store.try_get(NetworkAttachmentDefinition, ns, name) is None:
                return ValidationFailure(
                    C.NETWORK_TARGET,
                    f"Network Attachment Definition {U.to_loggable_resource_name(name, ns)} has not been found",
                )
            return None
        return ValidationFailure(C.NETWORK_TYPE, f"Network {resource} has unsupported network type: {net_type}")


class VmwareNetworkMappingValidator(NetworkMappingValidator):
    """VMware flavour: NICs name their network directly, no name format."""

    def _source_of(self, nic: SourceNic) -> Optional[SourceKey]:
        if not nic.network_id and not nic.network_name:
            return None
        return (nic.network_id, nic.network_name)

    def _check_name_format(self, by_name: Dict[str, MappingItem]) -> Optional[ValidationFailure]:
        return None

    def _missing_message(self, key: SourceKey) -> str:
        return f"Required source network '{U.to_loggable_id(*key)}' lacks mapping"


def _lookup(key: SourceKey, by_id: Dict[str, MappingItem], by_name: Dict[str, MappingItem]) -> Optional[MappingItem]:
    source_id, source_name = key
    if source_id and source_id in by_id:
        return by_id[source_id]
    if source_name and source_name in by_name:
        return by_name[source_name]
    return None
