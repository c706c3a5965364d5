# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/controller/config.py
"""
Controller configuration.

Sources, lowest to highest precedence:
  1) built-in defaults
  2) YAML files, in the order given (dicts deep-merge, lists/scalars replace)
  3) VMIMPORT_* environment variables
  4) explicit CLI flags (applied by the caller via `with_overrides`)
"""

from __future__ import annotations

import dataclasses
import datetime as _dt
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence

import yaml

from ..core.exceptions import wrap_config
from ..validation.checks import CheckActionTable

ENV_PREFIX = "VMIMPORT_"

DEFAULTS: Dict[str, Any] = {
    "workers": 3,
    "warmImport": {"intervalMinutes": 60, "maxFailures": 5, "consecutiveFailures": 5},
    "requeue": {"fastSeconds": 2, "slowSeconds": 30, "errorBaseSeconds": 1, "errorMaxSeconds": 300},
    "validation": {"checkActions": {}},
    "storeDir": "./vmimport-store",
    "logging": {"json": False, "file": None},
}

# env var -> dotted config key
ENV_KEYS: Dict[str, str] = {
    "WORKERS": "workers",
    "WARM_INTERVAL_MINUTES": "warmImport.intervalMinutes",
    "WARM_MAX_FAILURES": "warmImport.maxFailures",
    "WARM_CONSECUTIVE_FAILURES": "warmImport.consecutiveFailures",
    "REQUEUE_FAST_SECONDS": "requeue.fastSeconds",
    "REQUEUE_SLOW_SECONDS": "requeue.slowSeconds",
    "REQUEUE_ERROR_BASE_SECONDS": "requeue.errorBaseSeconds",
    "REQUEUE_ERROR_MAX_SECONDS": "requeue.errorMaxSeconds",
    "STORE_DIR": "storeDir",
    "LOG_JSON": "logging.json",
    "LOG_FILE": "logging.file",
}


def _deep_merge_dict(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = dict(base)
    for k, v in override.items():
        if k in out and isinstance(out[k], dict) and isinstance(v, dict):
            out[k] = _deep_merge_dict(out[k], v)
        else:
            out[k] = v
    return out


def _read_yaml_file(path: Path) -> Dict[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise wrap_config(f"cannot read config file {path}", e, path=str(path))
    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise wrap_config(f"config file {path} is not valid YAML", e, path=str(path))
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise wrap_config(f"config file {path}: top-level must be a mapping", path=str(path))
    return parsed


def _set_dotted(d: Dict[str, Any], dotted: str, value: Any) -> None:
    parts = dotted.split(".")
    cur = d
    for p in parts[:-1]:
        nxt = cur.get(p)
        if not isinstance(nxt, dict):
            nxt = {}
            cur[p] = nxt
        cur = nxt
    cur[parts[-1]] = value


def _env_overrides(env: Mapping[str, str]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for suffix, dotted in ENV_KEYS.items():
        raw = env.get(ENV_PREFIX + suffix)
        if raw is None or raw == "":
            continue
        _set_dotted(out, dotted, yaml.safe_load(raw))
    return out


def _positive_int(raw: Dict[str, Any], dotted: str, *, allow_zero: bool = False) -> int:
    cur: Any = raw
    for p in dotted.split("."):
        cur = cur.get(p) if isinstance(cur, dict) else None
    try:
        v = int(cur)
    except (TypeError, ValueError):
        raise wrap_config(f"config key {dotted} must be an integer, got {cur!r}", key=dotted)
    if v < 0 or (v == 0 and not allow_zero):
        raise wrap_config(f"config key {dotted} must be {'>= 0' if allow_zero else '> 0'}, got {v}", key=dotted)
    return v


@dataclass(frozen=True)
class ControllerConfig:
    workers: int = 3
    warm_interval_minutes: int = 60
    warm_max_failures: int = 5
    warm_max_consecutive_failures: int = 5
    requeue_fast_seconds: int = 2
    requeue_slow_seconds: int = 30
    error_base_seconds: int = 1
    error_max_seconds: int = 300
    check_actions: Dict[str, str] = field(default_factory=dict)
    store_dir: str = "./vmimport-store"
    log_json: bool = False
    log_file: Optional[str] = None

    @property
    def warm_interval(self) -> _dt.timedelta:
        return _dt.timedelta(minutes=self.warm_interval_minutes)

    def check_action_table(self) -> CheckActionTable:
        return CheckActionTable(self.check_actions)

    def with_overrides(self, **overrides: Any) -> "ControllerConfig":
        """Replace the fields given with a non-None value."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "ControllerConfig":
        merged = _deep_merge_dict(DEFAULTS, raw or {})
        actions = (merged.get("validation") or {}).get("checkActions") or {}
        if not isinstance(actions, dict):
            raise wrap_config("validation.checkActions must be a mapping of check id to action")
        cfg = cls(
            workers=_positive_int(merged, "workers"),
            warm_interval_minutes=_positive_int(merged, "warmImport.intervalMinutes"),
            warm_max_failures=_positive_int(merged, "warmImport.maxFailures", allow_zero=True),
            warm_max_consecutive_failures=_positive_int(merged, "warmImport.consecutiveFailures", allow_zero=True),
            requeue_fast_seconds=_positive_int(merged, "requeue.fastSeconds"),
            requeue_slow_seconds=_positive_int(merged, "requeue.slowSeconds"),
            error_base_seconds=_positive_int(merged, "requeue.errorBaseSeconds"),
            error_max_seconds=_positive_int(merged, "requeue.errorMaxSeconds"),
            check_actions={str(k): str(v) for k, v in actions.items()},
            store_dir=str(merged.get("storeDir") or DEFAULTS["storeDir"]),
            log_json=bool((merged.get("logging") or {}).get("json")),
            log_file=(merged.get("logging") or {}).get("file") or None,
        )
        # rejects unknown actions early
        cfg.check_action_table()
        return cfg

    @classmethod
    def load(cls, paths: Sequence[str] = (), env: Optional[Mapping[str, str]] = None) -> "ControllerConfig":
        raw: Dict[str, Any] = {}
        for p in paths:
            raw = _deep_merge_dict(raw, _read_yaml_file(Path(p).expanduser()))
        raw = _deep_merge_dict(raw, _env_overrides(os.environ if env is None else env))
        return cls.from_dict(raw)
