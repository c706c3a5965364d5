# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/api/constants.py
"""
Well-known names: API group, condition types/reasons, volume phases,
annotations and labels.
"""

from __future__ import annotations

GROUP = "v2v.kubevirt.io"
GROUP_VERSION = f"{GROUP}/v1beta1"

PROGRESS_ANNOTATION = "vmimport.v2v.kubevirt.io/progress"
SOURCE_VM_INITIAL_STATE_ANNOTATION = "vmimport.v2v.kubevirt.io/source-vm-initial-state"
TRACKING_LABEL = "vmimport.v2v.kubevirt.io/tracker"
IMPORT_LABEL = "vmimport.v2v.kubevirt.io/vmimport"

# holds a warm import until its source snapshots are removed
CLEANUP_SNAPSHOTS_FINALIZER = "vmimport.v2v.kubevirt.io/cleanup-snapshots"

SOURCE_OVIRT = "ovirt"
SOURCE_VMWARE = "vmware"
SOURCE_TYPES = (SOURCE_OVIRT, SOURCE_VMWARE)

# Progress milestones written to the progress annotation.
PROGRESS_START = 0
PROGRESS_CREATING_VM = 5
PROGRESS_COPYING_DISKS = 10
PROGRESS_COPY_SPAN = 75
PROGRESS_STARTING_VM = 90
PROGRESS_DONE = 100


class ConditionType:
    SUCCEEDED = "Succeeded"
    VALIDATING = "Validating"
    MAPPING_RULES_VERIFIED = "MappingRulesVerified"
    PROCESSING = "Processing"


class ConditionStatus:
    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class SucceededReason:
    VALIDATION_FAILED = "ValidationFailed"
    VM_CREATION_FAILED = "VMCreationFailed"
    DATA_VOLUME_CREATION_FAILED = "DataVolumeCreationFailed"
    VIRTUAL_MACHINE_READY = "VirtualMachineReady"
    VIRTUAL_MACHINE_RUNNING = "VirtualMachineRunning"
    WARM_IMPORT_FAILED = "WarmImportFailed"


class ValidatingReason:
    VALIDATION_COMPLETED = "ValidationCompleted"
    SECRET_NOT_FOUND = "SecretNotFound"
    RESOURCE_MAPPING_NOT_FOUND = "ResourceMappingNotFound"
    UNREACHABLE_PROVIDER = "UnreachableProvider"
    SOURCE_VM_NOT_FOUND = "SourceVMNotFound"
    INCOMPLETE_MAPPING_RULES = "IncompleteMappingRules"


class MappingRulesReason:
    COMPLETED = "MappingRulesVerificationCompleted"
    FAILED = "MappingRulesVerificationFailed"
    REPORTED_WARNINGS = "MappingRulesVerificationReportedWarnings"


class ProcessingReason:
    CREATING_TARGET_VM = "CreatingTargetVM"
    COPYING_DISKS = "CopyingDisks"
    COPYING_STAGE = "CopyingStage"
    COPYING_PAUSED = "CopyingPaused"
    COMPLETED = "ProcessingCompleted"
    FAILED = "ProcessingFailed"


class DataVolumePhase:
    PENDING = "Pending"
    IMPORT_SCHEDULED = "ImportScheduled"
    IMPORT_IN_PROGRESS = "ImportInProgress"
    WAIT_FOR_FIRST_CONSUMER = "WaitForFirstConsumer"
    PAUSED = "Paused"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


class VMIPhase:
    PENDING = "Pending"
    SCHEDULING = "Scheduling"
    SCHEDULED = "Scheduled"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


class VMStatus:
    UP = "up"
    DOWN = "down"

