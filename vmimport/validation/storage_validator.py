# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/validation/storage_validator.py
"""Disk and disk attachment checks for oVirt source VMs."""

from __future__ import annotations

from typing import List, Optional

from ..api.source import SourceDisk
from . import checks as C
from .checks import ValidationFailure
from .models import DISK_INTERFACE_MODEL_MAPPING


def is_valid_disk_status(disk: SourceDisk) -> bool:
    """A disk is transferable unless its reported status is something other than 'ok'."""
    return disk.status is None or disk.status == "ok"


def validate_disk_attachments(disks: List[SourceDisk]) -> List[ValidationFailure]:
    if not disks:
        return [ValidationFailure(C.DISK_ATTACHMENTS_EXIST, "VM has no disks")]
    failures: List[ValidationFailure] = []
    for disk in disks:
        failures.extend(validate_disk_attachment(disk))
    return failures


def _interface(check_id: str, owner_id: str, iface: Optional[str]) -> List[ValidationFailure]:
    if iface and iface not in DISK_INTERFACE_MODEL_MAPPING:
        return [
            ValidationFailure(
                check_id,
                f"{check_id} {owner_id} uses interface {iface}. Allowed values: {sorted(DISK_INTERFACE_MODEL_MAPPING)}",
            )
        ]
    return []


def _logical_name(check_id: str, owner_id: str, name: Optional[str]) -> List[ValidationFailure]:
    if name:
        return [ValidationFailure(check_id, f"{check_id} {owner_id} has logical name of {name} defined")]
    return []


def _scsi_reservation(check_id: str, owner_id: str, flag: Optional[bool]) -> List[ValidationFailure]:
    if flag:
        return [ValidationFailure(check_id, f"{check_id} {owner_id} has uses_scsi_reservation == true")]
    return []


def validate_disk_attachment(disk: SourceDisk) -> List[ValidationFailure]:
    out: List[ValidationFailure] = []
    attachment_id = disk.attachment_id or ""
    disk_id = disk.id

    out += _interface(C.DISK_ATTACHMENT_INTERFACE, attachment_id, disk.attachment_interface)
    out += _logical_name(C.DISK_ATTACHMENT_LOGICAL_NAME, attachment_id, disk.attachment_logical_name)
    if disk.attachment_pass_discard:
        out.append(
            ValidationFailure(C.DISK_ATTACHMENT_PASS_DISCARD, f"disk attachment {attachment_id} has pass_discard == true")
        )
    out += _scsi_reservation(C.DISK_ATTACHMENT_USES_SCSI_RESERVATION, attachment_id, disk.attachment_uses_scsi_reservation)

    out += _interface(C.DISK_INTERFACE, disk_id, disk.interface)
    out += _logical_name(C.DISK_LOGICAL_NAME, disk_id, disk.logical_name)
    out += _scsi_reservation(C.DISK_USES_SCSI_RESERVATION, disk_id, disk.uses_scsi_reservation)

    if disk.backup == "incremental":
        out.append(
            ValidationFailure(C.DISK_BACKUP, f"disk {disk_id} uses backup == 'incremental'. Allowed value: 'none'.")
        )
    if disk.lun_storage:
        out.append(ValidationFailure(C.DISK_LUN_STORAGE, f"disk {disk_id} uses LUN storage with ID: {disk.lun_storage}"))
    if disk.propagate_errors is not None:
        out.append(
            ValidationFailure(
                C.DISK_PROPAGATE_ERRORS,
                f"disk {disk_id} has propagate_errors configured: {str(disk.propagate_errors).lower()}",
            )
        )
    if disk.wipe_after_delete:
        out.append(ValidationFailure(C.DISK_WIPE_AFTER_DELETE, f"disk {disk_id} has wipe_after_delete enabled"))
    if not is_valid_disk_status(disk):
        out.append(
            ValidationFailure(C.DISK_STATUS, f"disk {disk_id} has illegal status: '{disk.status}'. Allowed value: 'ok'")
        )
    if disk.storage_type and disk.storage_type != "image":
        out.append(
            ValidationFailure(
                C.DISK_STORAGE_TYPE,
                f"disk {disk_id} has illegal storage type: '{disk.storage_type}'. Allowed value: 'image'",
            )
        )
    if disk.sgio and disk.sgio != "disabled":
        out.append(
            ValidationFailure(C.DISK_SGIO, f"disk {disk_id} has illegal sgio setting: '{disk.sgio}'. Allowed value: 'disabled'")
        )
    return out
