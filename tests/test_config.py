"""
tests/test_config.py — YAML Configuration Loader Tests
=======================================================
"""

from __future__ import annotations

import pytest

from clickrank.config import load_config


def test_defaults_applied(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text('app_name: "clickrank"\napi_port: 8080\n', encoding="utf-8")
    cfg = load_config(path)
    assert cfg.api_port == 8080
    assert cfg.flush_seed_seconds == 0.1
    assert cfg.flush_cap_seconds == 5.0
    assert cfg.reconcile_interval_seconds == 30
    assert cfg.leaderboard_size == 50


def test_overrides(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "app_name: x\napi_port: 1\nflush_cap_ms: 2000\nreconcile_interval_seconds: 10\n",
        encoding="utf-8",
    )
    cfg = load_config(path)
    assert cfg.flush_cap_seconds == 2.0
    assert cfg.reconcile_interval_seconds == 10


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")


def test_missing_required_key(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("app_name: x\n", encoding="utf-8")
    with pytest.raises(KeyError):
        load_config(path)
