# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/controller/result.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ReconcileResult:
    """requeue_after=None: nothing to do until the next change event."""

    requeue_after: Optional[float] = None

    @property
    def requeue(self) -> bool:
        return self.requeue_after is not None


DONE = ReconcileResult()
