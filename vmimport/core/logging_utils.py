# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/core/logging_utils.py
"""
Shared logging helpers for the reconcile phases.
"""
from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Any, Generator, Union

LoggerLike = Union[logging.Logger, logging.LoggerAdapter]


def emoji_for_level(level: int) -> str:
    if level >= logging.ERROR:
        return "❌"
    if level >= logging.WARNING:
        return "⚠️"
    if level >= logging.INFO:
        return "✅"
    return "🔍"


def log_with_emoji(logger: LoggerLike, level: int, msg: str, *args: Any) -> None:
    logger.log(level, f"{emoji_for_level(level)} {msg}", *args)


@contextmanager
def log_step(logger: LoggerLike, description: str, *, level: int = logging.DEBUG) -> Generator[None, None, None]:
    """
    Log the start of a reconcile phase, run the block, then log completion
    with elapsed time. Logs the failure and re-raises on exception.

    Example:
        with log_step(log, "create target VM"):
            self._create_vm(...)
    """
    t0 = time.monotonic()
    log_with_emoji(logger, level, "%s ...", description)
    try:
        yield
    except Exception as e:
        log_with_emoji(logger, logging.WARNING, "%s failed (%.2fs): %s", description, time.monotonic() - t0, e)
        raise
    log_with_emoji(logger, level, "%s done (%.2fs)", description, time.monotonic() - t0)
