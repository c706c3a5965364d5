# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/cli/commands.py
"""
Subcommand implementations. Each takes the parsed args, the effective
config and the logger, and returns a process exit code.
"""

from __future__ import annotations

import argparse
import datetime as _dt
import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import yaml
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .. import conditions as cond
from ..api.constants import ConditionType
from ..api.meta import ApiObject, decode_object, kind_class, parse_time, utcnow
from ..api.types import VirtualMachineImport
from ..controller.config import ControllerConfig
from ..controller.controller import ImportController
from ..core.exceptions import NotFoundError, wrap_config, wrap_fatal
from ..core.logger import Log
from ..core.retry import retry_operation
from ..store.base import ObjectStore
from ..store.file import FileObjectStore
from ..store.memory import InMemoryObjectStore

DEFAULT_NAMESPACE = "default"


def open_store(config: ControllerConfig, logger: logging.Logger) -> ObjectStore:
    return FileObjectStore(Path(config.store_dir), logger=logger)


# ---------------------------------------------------------------------------
# apply
# ---------------------------------------------------------------------------


def load_manifests(paths: Sequence[str]) -> List[ApiObject]:
    """Decode every YAML document in `paths`; empty documents are skipped."""
    out: List[ApiObject] = []
    for p in paths:
        path = Path(p).expanduser()
        try:
            docs = list(yaml.safe_load_all(path.read_text(encoding="utf-8")))
        except OSError as e:
            raise wrap_config(f"cannot read manifest {path}", e, path=str(path))
        except yaml.YAMLError as e:
            raise wrap_config(f"manifest {path} is not valid YAML", e, path=str(path))
        for doc in docs:
            if doc is None:
                continue
            try:
                obj = decode_object(doc)
            except (TypeError, ValueError) as e:
                raise wrap_config(f"manifest {path}: {e}", e, path=str(path))
            if type(obj).NAMESPACED and not obj.metadata.namespace:
                obj.metadata.namespace = DEFAULT_NAMESPACE
            out.append(obj)
    return out


def apply_object(store: ObjectStore, obj: ApiObject, *, with_status: bool = False) -> Tuple[str, ApiObject]:
    """Create `obj`, or replace the stored spec and metadata. Returns (action, stored)."""
    has_status = hasattr(obj, "status")
    status = obj.deepcopy().status if has_status else None  # type: ignore[attr-defined]

    existing = store.try_get(type(obj), obj.namespace, obj.name)
    if existing is None:
        if has_status and not with_status:
            obj.status = type(status)()  # type: ignore[attr-defined]
        return "created", store.create(obj)

    obj.metadata.uid = existing.metadata.uid
    obj.metadata.resource_version = existing.metadata.resource_version
    stored = store.update(obj)
    if has_status and with_status:
        stored.status = status  # type: ignore[attr-defined]
        stored = store.update_status(stored)
    return "configured", stored


def cmd_apply(args: argparse.Namespace, config: ControllerConfig, logger: logging.Logger) -> int:
    objects = load_manifests(args.files)
    store = open_store(config, logger)
    try:
        for obj in objects:
            action, stored = retry_operation(
                lambda: apply_object(store, obj.deepcopy(), with_status=args.with_status),
                operation_name=f"apply {obj.KIND} {obj.namespaced_name}",
                logger=logger,
            )
            Log.ok(logger, f"{stored.KIND.lower()}/{stored.name} {action}", namespace=stored.namespace or None)
    finally:
        store.close()
    return 0


# ---------------------------------------------------------------------------
# status
# ---------------------------------------------------------------------------


def _condition_cell(request: VirtualMachineImport, condition_type: str) -> str:
    c = cond.find(request.status.conditions, condition_type)
    if c is None:
        return "-"
    return f"{c.status}/{c.reason}" if c.reason else c.status


def import_rows(requests: Sequence[VirtualMachineImport]) -> List[List[str]]:
    rows: List[List[str]] = []
    for r in requests:
        progress = r.progress
        rows.append(
            [
                r.namespace,
                r.name,
                r.source_type or "-",
                "warm" if r.spec.warm else "cold",
                r.status.target_vm_name or "-",
                f"{progress}%" if progress is not None else "-",
                _condition_cell(r, ConditionType.SUCCEEDED),
                _condition_cell(r, ConditionType.PROCESSING),
            ]
        )
    return rows


def render_table(requests: Sequence[VirtualMachineImport]) -> Table:
    table = Table(title="Virtual machine imports", header_style="bold cyan")
    for col in ("NAMESPACE", "NAME", "SOURCE", "MODE", "TARGET VM", "PROGRESS", "SUCCEEDED", "PROCESSING"):
        table.add_column(col)
    for row in import_rows(requests):
        table.add_row(*row)
    return table


def render_detail(request: VirtualMachineImport) -> Panel:
    table = Table(header_style="bold cyan", expand=True)
    for col in ("TYPE", "STATUS", "REASON", "MESSAGE"):
        table.add_column(col)
    for c in request.status.conditions:
        table.add_row(c.type, c.status, c.reason, c.message)

    warm = request.status.warm_import
    lines = [
        f"target VM: {request.status.target_vm_name or '-'}",
        f"progress: {request.progress or '-'}",
        f"data volumes: {', '.join(request.data_volume_names()) or '-'}",
    ]
    if request.spec.warm:
        lines.append(
            f"warm: successes={warm.successes} failures={warm.failures} "
            f"consecutive={warm.consecutive_failures} next={warm.next_stage_time or '-'}"
        )
    grid = Table.grid()
    grid.add_row("\n".join(lines))
    grid.add_row(table)
    return Panel(grid, title=f"{request.namespace}/{request.name}")


def cmd_status(
    args: argparse.Namespace,
    config: ControllerConfig,
    logger: logging.Logger,
    *,
    console: Optional[Console] = None,
) -> int:
    console = console or Console(stderr=False)
    store = open_store(config, logger)
    try:
        if args.name:
            request = store.get(VirtualMachineImport, args.namespace or DEFAULT_NAMESPACE, args.name)
            console.print(render_detail(request))
        else:
            console.print(render_table(store.list(VirtualMachineImport, args.namespace)))
    finally:
        store.close()
    return 0


# ---------------------------------------------------------------------------
# finalize
# ---------------------------------------------------------------------------


def set_finalize_date(store: ObjectStore, namespace: str, name: str, when: _dt.datetime) -> VirtualMachineImport:
    """Read-modify-write of spec.finalizeDate; a conflict redoes the read."""
    request = store.get(VirtualMachineImport, namespace, name)
    if not request.spec.warm:
        raise wrap_fatal(f"import {namespace}/{name} is not a warm import", code=2)
    request.spec.finalize_date = when
    return store.update(request)


def cmd_finalize(args: argparse.Namespace, config: ControllerConfig, logger: logging.Logger) -> int:
    try:
        when = parse_time(args.at) if args.at else utcnow()
    except (TypeError, ValueError) as e:
        raise wrap_fatal(f"invalid --at timestamp {args.at!r}", e, code=2)
    store = open_store(config, logger)
    try:
        retry_operation(
            lambda: set_finalize_date(store, args.namespace, args.name, when),
            operation_name=f"finalize {args.namespace}/{args.name}",
            logger=logger,
        )
    finally:
        store.close()
    Log.ok(logger, f"import {args.namespace}/{args.name} finalizes at {when.isoformat()}")
    return 0


# ---------------------------------------------------------------------------
# delete
# ---------------------------------------------------------------------------


def cmd_delete(args: argparse.Namespace, config: ControllerConfig, logger: logging.Logger) -> int:
    try:
        cls = kind_class(args.kind)
    except ValueError as e:
        raise wrap_fatal(str(e), e, code=2)
    store = open_store(config, logger)
    try:
        store.delete(cls, args.namespace, args.name)
        pending = store.try_get(cls, args.namespace, args.name)
    except NotFoundError as e:
        Log.warn(logger, str(e))
        return 1
    finally:
        store.close()
    if pending is not None:
        Log.step(logger, f"{cls.KIND.lower()}/{args.name} marked for deletion, waiting for {', '.join(pending.metadata.finalizers)}")
        return 0
    Log.ok(logger, f"{cls.KIND.lower()}/{args.name} deleted")
    return 0


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


def cmd_run(args: argparse.Namespace, config: ControllerConfig, logger: logging.Logger) -> int:
    if args.in_memory:
        store: ObjectStore = InMemoryObjectStore(logger=logger)
        for obj in load_manifests(args.manifest):
            apply_object(store, obj, with_status=True)
    else:
        store = open_store(config, logger)

    Log.banner(logger, "vmimport controller")
    controller = ImportController(store, config, logger=logger)
    try:
        controller.run()
    finally:
        controller.stop()
        store.close()
    return 0


COMMANDS: Dict[str, Callable[[argparse.Namespace, ControllerConfig, logging.Logger], int]] = {
    "run": cmd_run,
    "apply": cmd_apply,
    "status": cmd_status,
    "finalize": cmd_finalize,
    "delete": cmd_delete,
}
