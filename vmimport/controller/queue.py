# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/controller/queue.py
"""
Keyed work queue.

- a key is queued at most once
- a key handed out by `get` is not handed out again until `done`
- a key added while being processed is marked dirty and requeued on `done`
- `add_after` delays a key; `add_rate_limited` delays it with per-key
  exponential backoff until `forget`
"""

from __future__ import annotations

import heapq
import itertools
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, List, Optional, Set, Tuple

from ..core.retry import compute_backoff


class WorkQueue:
    def __init__(
        self,
        *,
        base_delay: float = 1.0,
        max_delay: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._clock = clock
        self._cond = threading.Condition()
        self._queue: Deque[str] = deque()
        self._queued: Set[str] = set()
        self._processing: Set[str] = set()
        self._dirty: Set[str] = set()
        self._waiting: List[Tuple[float, int, str]] = []
        self._seq = itertools.count()
        self._failures: Dict[str, int] = {}
        self._shutting_down = False

    # -- producers ---------------------------------------------------------

    def add(self, key: str) -> None:
        with self._cond:
            self._add_locked(key)

    def _add_locked(self, key: str) -> None:
        if self._shutting_down:
            return
        if key in self._processing:
            self._dirty.add(key)
            return
        if key in self._queued:
            return
        self._queue.append(key)
        self._queued.add(key)
        self._cond.notify()

    def add_after(self, key: str, delay: float) -> None:
        if delay <= 0:
            self.add(key)
            return
        with self._cond:
            if self._shutting_down:
                return
            heapq.heappush(self._waiting, (self._clock() + delay, next(self._seq), key))
            self._cond.notify()

    def add_rate_limited(self, key: str) -> float:
        """Requeue `key` after its next backoff delay; returns the delay."""
        with self._cond:
            self._failures[key] = self._failures.get(key, 0) + 1
            attempt = self._failures[key]
        delay = compute_backoff(attempt, base_s=self.base_delay, max_s=self.max_delay)
        self.add_after(key, delay)
        return delay

    def forget(self, key: str) -> None:
        with self._cond:
            self._failures.pop(key, None)

    def num_requeues(self, key: str) -> int:
        with self._cond:
            return self._failures.get(key, 0)

    # -- consumers ---------------------------------------------------------

    def _promote_due_locked(self) -> Optional[float]:
        """Move due delayed keys into the queue; return seconds until the next one."""
        now = self._clock()
        while self._waiting and self._waiting[0][0] <= now:
            _, _, key = heapq.heappop(self._waiting)
            self._add_locked(key)
        if self._waiting:
            return max(0.0, self._waiting[0][0] - now)
        return None

    def get(self, timeout: Optional[float] = None) -> Optional[str]:
        """
        Next key to process, or None on shutdown or when `timeout` expires.
        The caller must call `done(key)` afterwards.
        """
        deadline = None if timeout is None else self._clock() + timeout
        with self._cond:
            while True:
                next_due = self._promote_due_locked()
                if self._queue:
                    key = self._queue.popleft()
                    self._queued.discard(key)
                    self._processing.add(key)
                    return key
                if self._shutting_down:
                    return None
                wait = next_due
                if deadline is not None:
                    remaining = deadline - self._clock()
                    if remaining <= 0:
                        return None
                    wait = remaining if wait is None else min(wait, remaining)
                self._cond.wait(wait)

    def done(self, key: str) -> None:
        with self._cond:
            self._processing.discard(key)
            if key in self._dirty:
                self._dirty.discard(key)
                self._add_locked(key)

    # -- lifecycle ---------------------------------------------------------

    def shut_down(self) -> None:
        with self._cond:
            self._shutting_down = True
            self._cond.notify_all()

    @property
    def shutting_down(self) -> bool:
        with self._cond:
            return self._shutting_down

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)

    def pending_delayed(self) -> int:
        with self._cond:
            return len(self._waiting)
