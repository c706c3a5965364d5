# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/validation/engine.py
"""
Aggregates validator failures into the two validation conditions.

  Validating            - are all networks/disks/storage domains mapped to
                          targets that exist? Any failure makes it False.
  MappingRulesVerified  - do the VM, NIC and disk attributes allow the
                          import? Decided per failure by the check table.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..api.constants import ConditionStatus, MappingRulesReason, ValidatingReason
from ..api.types import Condition
from ..conditions import new_mapping_rules_condition, new_validating_condition
from ..core.logger import Log
from ..core.utils import U
from .checks import Action, CheckActionTable, ValidationFailure

VALIDATION_COMPLETED_MESSAGE = "Validating completed successfully"


@dataclass
class ValidationReport:
    """Failures found for one source VM, split by validation pass."""

    mapping_failures: List[ValidationFailure] = field(default_factory=list)
    rule_failures: List[ValidationFailure] = field(default_factory=list)

    def extend(self, other: "ValidationReport") -> "ValidationReport":
        self.mapping_failures.extend(other.mapping_failures)
        self.rule_failures.extend(other.rule_failures)
        return self


class ValidationEngine:
    def __init__(self, table: Optional[CheckActionTable] = None, logger: Optional[logging.Logger] = None):
        self.table = table or CheckActionTable()
        self.logger = logger or Log.get("validation")

    # ---------------------------
    # Mapping validity pass
    # ---------------------------

    def mapping_condition(self, failures: List[ValidationFailure]) -> Condition:
        if failures:
            message = U.join_messages(f.message for f in failures)
            return new_validating_condition(ValidatingReason.INCOMPLETE_MAPPING_RULES, message, status=False)
        return new_validating_condition(ValidatingReason.VALIDATION_COMPLETED, VALIDATION_COMPLETED_MESSAGE)

    # ---------------------------
    # Attribute rule pass
    # ---------------------------

    def rules_condition(self, failures: List[ValidationFailure], *, request: str = "") -> Condition:
        blocking: List[str] = []
        warnings: List[str] = []
        for f in failures:
            action = self.table.action_for(f.check_id)
            if action == Action.BLOCK:
                blocking.append(f.message)
            elif action == Action.WARN:
                warnings.append(f.message)
            else:
                self.logger.info("Validation information for %s: %s: %s", request or "<unknown>", f.check_id, f.message)

        if blocking:
            return new_mapping_rules_condition(MappingRulesReason.FAILED, U.join_messages(blocking), status=False)
        if warnings:
            return new_mapping_rules_condition(MappingRulesReason.REPORTED_WARNINGS, U.join_messages(warnings))
        return new_mapping_rules_condition(MappingRulesReason.COMPLETED, "")

    def validate(self, report: ValidationReport, *, request: str = "") -> List[Condition]:
        """
        Return [Validating, MappingRulesVerified] for the report. Both are
        always produced; the request is invalid if either is False.
        """
        conditions = [
            self.mapping_condition(report.mapping_failures),
            self.rules_condition(report.rule_failures, request=request),
        ]
        for c in conditions:
            if c.status == ConditionStatus.FALSE:
                Log.warn(self.logger, f"{c.type} failed: {c.message}", request=request)
        return conditions


def is_valid(conditions: List[Condition]) -> bool:
    return all(c.status != ConditionStatus.FALSE for c in conditions)
