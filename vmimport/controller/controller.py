# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/controller/controller.py
"""
Import controller: watches the store and runs reconciles on a worker pool.

- VirtualMachineImport events enqueue the import's own key
- events on owned objects (VMs, DataVolumes, ...) enqueue the owner's key
- status-only writes do not enqueue (generation unchanged), so a reconcile
  never triggers itself
- a key is reconciled by at most one worker at a time
"""

from __future__ import annotations

import logging
import signal
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, Optional

from ..api.types import VirtualMachineImport
from ..core.exceptions import format_exception_for_cli, is_transient
from ..core.logger import Log
from ..store.base import ADDED, DELETED, ObjectStore, Watch, WatchEvent
from .config import ControllerConfig
from .queue import WorkQueue
from .reconciler import ImportReconciler, is_finished


def request_key(namespace: str, name: str) -> str:
    return f"{namespace}/{name}"


@dataclass
class ControllerStats:
    reconciles: int = 0
    errors: int = 0
    requeues: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record(self, *, error: bool = False, requeue: bool = False) -> None:
        with self.lock:
            self.reconciles += 1
            self.errors += int(error)
            self.requeues += int(requeue)

    def summary(self) -> Dict[str, int]:
        with self.lock:
            return {"reconciles": self.reconciles, "errors": self.errors, "requeues": self.requeues}


class ImportController:
    def __init__(
        self,
        store: ObjectStore,
        config: Optional[ControllerConfig] = None,
        *,
        reconciler: Optional[ImportReconciler] = None,
        queue: Optional[WorkQueue] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.store = store
        self.config = config or ControllerConfig()
        self.logger = logger or Log.get("controller")
        self.reconciler = reconciler or ImportReconciler(store, self.config, logger=self.logger)
        self.queue = queue or WorkQueue(
            base_delay=float(self.config.error_base_seconds),
            max_delay=float(self.config.error_max_seconds),
        )
        self.stats = ControllerStats()
        self.stop_event = threading.Event()
        self.executor: Optional[ThreadPoolExecutor] = None
        self._watch: Optional[Watch] = None
        self._generations: Dict[str, int] = {}
        self._gen_lock = threading.Lock()

    # -- event handling ----------------------------------------------------

    def on_event(self, event: WatchEvent) -> None:
        obj = event.obj
        if isinstance(obj, VirtualMachineImport):
            key = request_key(obj.namespace, obj.name)
            if event.type == DELETED:
                with self._gen_lock:
                    self._generations.pop(key, None)
                return
            with self._gen_lock:
                seen = self._generations.get(key)
                self._generations[key] = obj.metadata.generation
            if obj.metadata.deletion_timestamp is not None:
                # a delete mark leaves the generation alone
                self.queue.add(key)
                return
            if event.type != ADDED and seen == obj.metadata.generation:
                return
            if is_finished(obj):
                return
            self.queue.add(key)
            return

        ref = obj.metadata.controller_ref()
        if ref is not None and ref.kind == VirtualMachineImport.KIND:
            self.queue.add(request_key(obj.namespace, ref.name))

    def enqueue_existing(self) -> int:
        """Queue every unfinished or deleting import already in the store."""
        n = 0
        for request in self.store.list(VirtualMachineImport):
            key = request_key(request.namespace, request.name)
            with self._gen_lock:
                self._generations[key] = request.metadata.generation
            if request.metadata.deletion_timestamp is not None or not is_finished(request):
                self.queue.add(key)
                n += 1
        return n

    # -- workers -----------------------------------------------------------

    def process_next(self, timeout: Optional[float] = None) -> bool:
        """Reconcile one key. False when nothing was processed."""
        key = self.queue.get(timeout=timeout)
        if key is None:
            return False
        try:
            result = self.reconciler.reconcile(key)
        except Exception as e:
            delay = self.queue.add_rate_limited(key)
            self.stats.record(error=True, requeue=True)
            if is_transient(e):
                self.logger.debug("reconcile %s conflicted, retry in %.1fs: %s", key, delay, e)
            else:
                Log.warn(self.logger, f"reconcile {key} failed, retry in {delay:.1f}s: {format_exception_for_cli(e, verbose=1)}")
        else:
            self.queue.forget(key)
            self.stats.record(requeue=result.requeue)
            if result.requeue:
                self.queue.add_after(key, float(result.requeue_after or 0))
        finally:
            self.queue.done(key)
        return True

    def _worker_loop(self) -> None:
        while not self.stop_event.is_set():
            try:
                self.process_next(timeout=1.0)
            except Exception as e:
                self.logger.error(f"💥 Worker loop error: {e}")

    # -- lifecycle ---------------------------------------------------------

    def start(self) -> None:
        self._watch = self.store.watch(self.on_event)
        queued = self.enqueue_existing()
        self.executor = ThreadPoolExecutor(max_workers=self.config.workers, thread_name_prefix="reconcile")
        for _ in range(self.config.workers):
            self.executor.submit(self._worker_loop)
        Log.ok(self.logger, f"controller started with {self.config.workers} worker(s), {queued} import(s) queued")

    def run(self, *, install_signals: bool = True) -> None:
        """Start and block until `stop()` or SIGTERM/SIGINT."""
        if install_signals:
            signal.signal(signal.SIGTERM, self._signal_handler)
            signal.signal(signal.SIGINT, self._signal_handler)
            signal.signal(signal.SIGUSR1, self._stats_signal_handler)
        self.start()
        while not self.stop_event.wait(timeout=10):
            Log.trace(self.logger, "queue=%d delayed=%d", len(self.queue), self.queue.pending_delayed())
        self.logger.info("🛑 Controller stopped")

    def _signal_handler(self, signum: int, frame) -> None:
        sig_name = signal.Signals(signum).name
        self.logger.info(f"🛑 Received {sig_name}, shutting down gracefully...")
        self.stop()

    def _stats_signal_handler(self, signum: int, frame) -> None:
        self.logger.info("📊 %s", self.stats.summary())

    def stop(self) -> None:
        if self.stop_event.is_set():
            return
        self.stop_event.set()
        if self._watch is not None:
            self._watch.stop()
            self._watch = None
        self.queue.shut_down()
        if self.executor is not None:
            self.executor.shutdown(wait=True)
            self.executor = None
        self.logger.info("✅ Controller shutdown complete: %s", self.stats.summary())
