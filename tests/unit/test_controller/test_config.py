# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for controller configuration loading."""
from __future__ import annotations

import datetime as _dt

import pytest

from vmimport.controller.config import ControllerConfig
from vmimport.core.exceptions import ConfigError
from vmimport.validation.checks import Action


@pytest.mark.unit
class TestControllerConfig:
    def test_defaults(self):
        cfg = ControllerConfig.load([], env={})

        assert cfg.workers == 3
        assert cfg.warm_interval == _dt.timedelta(minutes=60)
        assert cfg.warm_max_failures == 5
        assert cfg.warm_max_consecutive_failures == 5
        assert cfg.requeue_fast_seconds == 2
        assert cfg.requeue_slow_seconds == 30
        assert cfg.log_json is False
        assert cfg.log_file is None

    def test_yaml_files_merge_in_order(self, tmp_path):
        first = tmp_path / "a.yaml"
        first.write_text("workers: 5\nwarmImport:\n  intervalMinutes: 10\n  maxFailures: 2\n", encoding="utf-8")
        second = tmp_path / "b.yaml"
        second.write_text("warmImport:\n  intervalMinutes: 15\n", encoding="utf-8")

        cfg = ControllerConfig.load([str(first), str(second)], env={})

        assert cfg.workers == 5
        assert cfg.warm_interval_minutes == 15
        assert cfg.warm_max_failures == 2

    def test_env_overrides_files(self, tmp_path):
        path = tmp_path / "c.yaml"
        path.write_text("workers: 5\n", encoding="utf-8")

        cfg = ControllerConfig.load(
            [str(path)],
            env={"VMIMPORT_WORKERS": "7", "VMIMPORT_LOG_JSON": "true", "VMIMPORT_STORE_DIR": "/var/lib/vmimport"},
        )

        assert cfg.workers == 7
        assert cfg.log_json is True
        assert cfg.store_dir == "/var/lib/vmimport"

    def test_with_overrides_skips_none(self):
        cfg = ControllerConfig().with_overrides(workers=9, store_dir=None)

        assert cfg.workers == 9
        assert cfg.store_dir == "./vmimport-store"

    def test_check_actions(self):
        cfg = ControllerConfig.from_dict({"validation": {"checkActions": {"vm.floppies": "block"}}})

        assert cfg.check_action_table().action_for("vm.floppies") == Action.BLOCK

    @pytest.mark.parametrize(
        "raw",
        [
            {"workers": 0},
            {"workers": "many"},
            {"warmImport": {"maxFailures": -1}},
            {"validation": {"checkActions": ["vm.floppies"]}},
        ],
    )
    def test_invalid_values_rejected(self, raw):
        with pytest.raises(ConfigError):
            ControllerConfig.from_dict(raw)

    def test_zero_failure_limits_allowed(self):
        cfg = ControllerConfig.from_dict({"warmImport": {"maxFailures": 0, "consecutiveFailures": 0}})

        assert cfg.warm_max_failures == 0

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            ControllerConfig.load([str(tmp_path / "missing.yaml")], env={})

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n", encoding="utf-8")

        with pytest.raises(ConfigError):
            ControllerConfig.load([str(path)], env={})
