# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/conditions.py
"""
Condition store for import request status.

`upsert` is the only function here that mutates a condition list. A list
never holds two conditions of the same type.
"""

from __future__ import annotations

import datetime as _dt
from typing import Callable, List, Optional

from .api.constants import ConditionStatus, ConditionType
from .api.meta import utcnow
from .api.types import Condition

Clock = Callable[[], _dt.datetime]


def find(conditions: List[Condition], condition_type: str) -> Optional[Condition]:
    for c in conditions:
        if c.type == condition_type:
            return c
    return None


def upsert(conditions: List[Condition], new: Condition, *, now: Optional[_dt.datetime] = None) -> Condition:
    """
    Insert or update the condition of `new.type` in place and return it.

    An existing entry always takes the new reason, message and heartbeat;
    its status and lastTransitionTime change only when the status differs.
    """
    now = now or utcnow()
    existing = find(conditions, new.type)
    if existing is None:
        if new.last_transition_time is None:
            new.last_transition_time = now
        if new.last_heartbeat_time is None:
            new.last_heartbeat_time = now
        conditions.append(new)
        return new

    existing.message = new.message
    existing.reason = new.reason
    existing.last_heartbeat_time = now
    if existing.status != new.status:
        existing.status = new.status
        existing.last_transition_time = now
    return existing


def new_condition(
    condition_type: str,
    status: str,
    reason: str,
    message: str = "",
    *,
    now: Optional[_dt.datetime] = None,
) -> Condition:
    now = now or utcnow()
    return Condition(
        type=condition_type,
        status=status,
        reason=reason,
        message=message,
        last_transition_time=now,
        last_heartbeat_time=now,
    )


def _status(flag: bool) -> str:
    return ConditionStatus.TRUE if flag else ConditionStatus.FALSE


def new_succeeded_condition(reason: str, message: str = "", *, status: bool = True) -> Condition:
    return new_condition(ConditionType.SUCCEEDED, _status(status), reason, message)


def new_processing_condition(reason: str, message: str = "", *, status: bool = True) -> Condition:
    return new_condition(ConditionType.PROCESSING, _status(status), reason, message)


def new_validating_condition(reason: str, message: str = "", *, status: bool = True) -> Condition:
    return new_condition(ConditionType.VALIDATING, _status(status), reason, message)


def new_mapping_rules_condition(reason: str, message: str = "", *, status: bool = True) -> Condition:
    return new_condition(ConditionType.MAPPING_RULES_VERIFIED, _status(status), reason, message)


def is_true(conditions: List[Condition], condition_type: str) -> bool:
    c = find(conditions, condition_type)
    return c is not None and c.status == ConditionStatus.TRUE


def is_false(conditions: List[Condition], condition_type: str) -> bool:
    c = find(conditions, condition_type)
    return c is not None and c.status == ConditionStatus.FALSE


def has_succeeded_condition_of_reason(conditions: List[Condition], *reasons: str) -> bool:
    c = find(conditions, ConditionType.SUCCEEDED)
    return c is not None and c.reason in reasons


def false_condition_messages(conditions: List[Condition], *types: str) -> List[str]:
    """Messages of the given condition types that are currently False, in list order."""
    wanted = set(types)
    return [c.message for c in conditions if c.type in wanted and c.status == ConditionStatus.FALSE and c.message]


__all__ = [
    "find",
    "upsert",
    "new_condition",
    "new_succeeded_condition",
    "new_processing_condition",
    "new_validating_condition",
    "new_mapping_rules_condition",
    "is_true",
    "is_false",
    "has_succeeded_condition_of_reason",
    "false_condition_messages",
]
