"""
clickrank.config — YAML Configuration Loader
=============================================

Reads ``config.yaml`` for deployment and tuning settings (API port, flush
backoff, reconciliation cadence, click-speed window).  Secrets such as
``DATABASE_URL`` and ``JWT_SECRET`` stay in ``.env``.

Usage::

    from clickrank.config import load_config

    cfg = load_config()             # reads ./config.yaml by default
    print(cfg.flush_cap_ms)         # 5000
    print(cfg.reconcile_interval_seconds)  # 30
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ClickrankConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    app_name: str

    # API
    api_port: int

    # Click aggregator backoff (milliseconds)
    flush_seed_ms: int = 100
    flush_cap_ms: int = 5000

    # Reconciliation monitor cadence
    reconcile_interval_seconds: int = 30

    # Click-speed metric window
    click_speed_window_seconds: int = 5

    # Display
    leaderboard_size: int = 50

    @property
    def flush_seed_seconds(self) -> float:
        return self.flush_seed_ms / 1000

    @property
    def flush_cap_seconds(self) -> float:
        return self.flush_cap_ms / 1000


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> ClickrankConfig:
    """Read *path* and return a :class:`ClickrankConfig` instance.

    ``app_name`` and ``api_port`` are required; every tuning key falls back
    to its default when omitted.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    return ClickrankConfig(
        app_name=raw["app_name"],
        api_port=int(raw["api_port"]),
        flush_seed_ms=int(raw.get("flush_seed_ms", 100)),
        flush_cap_ms=int(raw.get("flush_cap_ms", 5000)),
        reconcile_interval_seconds=int(raw.get("reconcile_interval_seconds", 30)),
        click_speed_window_seconds=int(raw.get("click_speed_window_seconds", 5)),
        leaderboard_size=int(raw.get("leaderboard_size", 50)),
    )
