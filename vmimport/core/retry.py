# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/core/retry.py
"""
Retry utilities with exponential backoff.

`compute_backoff` is shared by the work queue (per-key error backoff) and
`retry_operation`, which wraps short read-modify-write sequences that may
lose an optimistic concurrency race.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Callable, Optional, Tuple, Type, TypeVar, Union

from .exceptions import ConflictError

T = TypeVar("T")


def compute_backoff(attempt: int, *, base_s: float = 1.0, max_s: float = 300.0, jitter_s: float = 0.0) -> float:
    """
    Delay before retry number `attempt` (1-based): base * 2^(attempt-1),
    capped at max_s, plus up to jitter_s of random jitter.
    """
    attempt = max(1, int(attempt))
    delay = min(base_s * (2 ** (attempt - 1)), max_s)
    if jitter_s > 0:
        delay += random.uniform(0, jitter_s)
    return delay


def retry_operation(
    operation: Callable[[], T],
    *,
    max_attempts: int = 5,
    base_backoff_s: float = 0.2,
    max_backoff_s: float = 5.0,
    jitter_s: float = 0.1,
    exceptions: Union[Type[Exception], Tuple[Type[Exception], ...]] = ConflictError,
    operation_name: str = "operation",
    logger: Optional[logging.Logger] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Retry an operation with exponential backoff.

    The operation must redo its own read: on a version conflict the whole
    read-modify-write runs again against fresh state.

    Example:
        retry_operation(lambda: set_finalize_date(store, key, when), operation_name="finalize")
    """
    last_exception: Optional[Exception] = None

    for attempt in range(1, max_attempts + 1):
        try:
            return operation()
        except exceptions as e:
            last_exception = e
            if attempt >= max_attempts:
                if logger:
                    logger.error("%s failed after %d attempts: %s", operation_name, max_attempts, e)
                break
            sleep_time = compute_backoff(attempt, base_s=base_backoff_s, max_s=max_backoff_s, jitter_s=jitter_s)
            if logger:
                logger.warning(
                    "%s failed (attempt %d/%d): %s. Retrying in %.2fs...",
                    operation_name,
                    attempt,
                    max_attempts,
                    e,
                    sleep_time,
                )
            sleep(sleep_time)

    if last_exception:
        raise last_exception
    raise RuntimeError(f"{operation_name} failed with no exception recorded")
