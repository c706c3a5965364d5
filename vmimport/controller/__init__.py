# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/controller/__init__.py
"""Reconcile loop for VirtualMachineImport requests."""

from .config import ControllerConfig
from .controller import ImportController
from .queue import WorkQueue
from .reconciler import ImportReconciler, is_finished, should_validate
from .result import DONE, ReconcileResult
from .warm_import import WarmImportStager

__all__ = [
    "ControllerConfig",
    "ImportController",
    "WorkQueue",
    "ImportReconciler",
    "is_finished",
    "should_validate",
    "DONE",
    "ReconcileResult",
    "WarmImportStager",
]
