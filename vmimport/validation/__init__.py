# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/validation/__init__.py
"""Validation of source VMs against mappings and import rules."""

from .checks import DEFAULT_CHECK_ACTIONS, Action, CheckActionTable, ValidationFailure
from .engine import ValidationEngine, ValidationReport, is_valid
from .validators import OvirtValidator, VmwareValidator

__all__ = [
    "DEFAULT_CHECK_ACTIONS",
    "Action",
    "CheckActionTable",
    "ValidationFailure",
    "ValidationEngine",
    "ValidationReport",
    "is_valid",
    "OvirtValidator",
    "VmwareValidator",
]
