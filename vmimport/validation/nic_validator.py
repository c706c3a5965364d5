# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/validation/nic_validator.py
"""NIC and vNIC profile checks for oVirt source VMs."""

from __future__ import annotations

from typing import List

from ..api.source import SourceNic
from ..core.utils import U
from . import checks as C
from .checks import ValidationFailure
from .models import INTERFACE_MODEL_MAPPING


def validate_nics(nics: List[SourceNic]) -> List[ValidationFailure]:
    failures: List[ValidationFailure] = []
    for nic in nics:
        failures.extend(validate_nic(nic))
    return failures


def validate_nic(nic: SourceNic) -> List[ValidationFailure]:
    out: List[ValidationFailure] = []
    nic_id = U.to_loggable_id(nic.id, nic.name)

    if nic.interface and nic.interface not in INTERFACE_MODEL_MAPPING:
        out.append(
            ValidationFailure(
                C.NIC_INTERFACE,
                f"interface {nic_id} uses model {nic.interface} that is not supported. "
                f"Supported models: {sorted(INTERFACE_MODEL_MAPPING)}",
            )
        )
    if nic.on_boot is False:
        out.append(ValidationFailure(C.NIC_ON_BOOT, f"interface {nic_id} is not enabled on boot."))
    if nic.plugged is False:
        out.append(ValidationFailure(C.NIC_PLUGGED, f"interface {nic_id} is unplugged."))

    profile = nic.vnic_profile
    if profile is None:
        return out
    if profile.pass_through:
        out.append(ValidationFailure(C.NIC_VNIC_PASS_THROUGH, f"interface {nic_id} uses profile with pass-through."))
    if profile.port_mirroring:
        out.append(ValidationFailure(C.NIC_VNIC_PORT_MIRRORING, f"interface {nic_id} uses profile with port mirroring."))
    if profile.custom_properties:
        out.append(
            ValidationFailure(
                C.NIC_VNIC_CUSTOM_PROPERTIES,
                f"interface {nic_id} uses profile with custom properties: {profile.custom_properties}.",
            )
        )
    if profile.network_filter:
        out.append(
            ValidationFailure(
                C.NIC_VNIC_NETWORK_FILTER,
                f"Interface {nic_id} uses profile with a network filter with ID: {profile.network_filter}.",
            )
        )
    if profile.qos:
        out.append(
            ValidationFailure(C.NIC_VNIC_QOS, f"Interface {nic_id} uses profile with QOS with ID: {profile.qos}.")
        )
    return out
