# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/cli/parser.py
from __future__ import annotations

import argparse

from ..core.logger import c

EPILOG = """\
Examples:
  vmimport run --config /etc/vmimport.yaml --store-dir /var/lib/vmimport
  vmimport apply secret.yaml mapping.yaml import.yaml
  vmimport status -n migration
  vmimport finalize -n migration my-import --at 2026-11-01T02:00:00Z
  vmimport delete VirtualMachineImport my-import
"""


class HelpFormatter(argparse.RawDescriptionHelpFormatter, argparse.ArgumentDefaultsHelpFormatter):
    """Combines raw description formatting with default value display in help."""


def _add_global_config_logging(p: argparse.ArgumentParser) -> None:
    from .. import __version__

    p.add_argument(
        "--config",
        action="append",
        default=[],
        help="YAML config file (repeatable; later overrides earlier).",
    )
    p.add_argument("--store-dir", dest="store_dir", default=None, help="Object store directory (overrides config).")
    p.add_argument("--version", action="version", version=__version__)
    p.add_argument("-v", "--verbose", action="count", default=0, help="Verbosity: -v, -vv, -vvv (trace)")
    p.add_argument("-q", "--quiet", action="count", default=0, help="Less output: -q, -qq")
    p.add_argument("--log-file", dest="log_file", default=None, help="Write logs to file.")
    p.add_argument("--json-logs", dest="json_logs", action="store_true", help="Emit NDJSON logs.")


def _add_run(sub: argparse._SubParsersAction) -> None:
    p = sub.add_parser("run", help="Run the import controller.", formatter_class=HelpFormatter)
    p.add_argument("--workers", type=int, default=None, help="Concurrent reconcile workers (overrides config).")
    p.add_argument(
        "--in-memory",
        dest="in_memory",
        action="store_true",
        help="Use a process-local store seeded from --manifest files instead of --store-dir.",
    )
    p.add_argument("--manifest", action="append", default=[], help="Manifest to load into the in-memory store.")


def _add_apply(sub: argparse._SubParsersAction) -> None:
    p = sub.add_parser("apply", help="Create or update objects from YAML manifests.", formatter_class=HelpFormatter)
    p.add_argument("files", nargs="+", help="Manifest files; each may hold several YAML documents.")
    p.add_argument(
        "--with-status",
        dest="with_status",
        action="store_true",
        help="Also write the manifests' status sections.",
    )


def _add_status(sub: argparse._SubParsersAction) -> None:
    p = sub.add_parser("status", help="Show import requests.", formatter_class=HelpFormatter)
    p.add_argument("-n", "--namespace", default=None, help="Namespace (default: all).")
    p.add_argument("name", nargs="?", default=None, help="Show one import in detail.")


def _add_finalize(sub: argparse._SubParsersAction) -> None:
    p = sub.add_parser("finalize", help="Set the finalize date of a warm import.", formatter_class=HelpFormatter)
    p.add_argument("-n", "--namespace", default="default")
    p.add_argument("name")
    p.add_argument("--at", default=None, help="ISO8601 timestamp (default: now).")


def _add_delete(sub: argparse._SubParsersAction) -> None:
    p = sub.add_parser("delete", help="Delete an object and everything it owns.", formatter_class=HelpFormatter)
    p.add_argument("-n", "--namespace", default="default")
    p.add_argument("kind", help="Object kind, e.g. VirtualMachineImport.")
    p.add_argument("name")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="vmimport",
        description=c("vmimport: oVirt / VMware to KubeVirt VM import controller", "green", ["bold"]),
        formatter_class=HelpFormatter,
        epilog=c(EPILOG, "cyan"),
    )
    _add_global_config_logging(p)

    sub = p.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True
    _add_run(sub)
    _add_apply(sub)
    _add_status(sub)
    _add_finalize(sub)
    _add_delete(sub)
    return p
