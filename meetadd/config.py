from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional
import os

import yaml

from .errors import ConfigError

DEFAULTS: Dict[str, Any] = {
    "config_version": 1,
    "browser_channel": "msedge",
    "headless": False,

    # Non-persistent + storage state
    "storage_state_path": "auth/auth_state.json",

    # Target
    "calendar_url": "https://calendar.google.com/calendar/u/0/r",
    "host_match": "calendar.google.com",

    # Action control
    "button_id": "google-meet-auto-add-btn",
    "button_text": "Make it a Google Meet",
    "provider_name": "google meet",

    # Timing (ms). probe_timeout_ms is an empirical threshold: it decides
    # whether a generic attach control attached directly or opened a menu.
    "poll_interval_ms": 100,
    "attach_timeout_ms": 5000,
    "dropdown_timeout_ms": 2000,
    "probe_timeout_ms": 400,
    "commit_delay_ms": 500,
    "error_reset_ms": 3000,
    "click_step_ms": 50,

    # Artifacts & audit
    "artifacts_root": "artifacts",
    "audit_dir": "audit",
}

TIMING_KEYS = (
    "poll_interval_ms",
    "attach_timeout_ms",
    "dropdown_timeout_ms",
    "probe_timeout_ms",
    "commit_delay_ms",
    "error_reset_ms",
    "click_step_ms",
)

@dataclass(frozen=True)
class Timing:
    poll_interval_ms: int = 100
    attach_timeout_ms: int = 5000
    dropdown_timeout_ms: int = 2000
    probe_timeout_ms: int = 400
    commit_delay_ms: int = 500
    error_reset_ms: int = 3000
    click_step_ms: int = 50

def load(path: Optional[str]) -> Dict[str, Any]:
    cfg: Dict[str, Any] = dict(DEFAULTS)
    if path and Path(path).exists():
        data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config root must be a mapping: {path}")
        cfg.update(data)

    # Normalize important paths
    for k in ("audit_dir", "artifacts_root", "storage_state_path"):
        cfg[k] = os.path.expanduser(os.path.expandvars(str(cfg.get(k, DEFAULTS[k]))))
    return cfg

def timing_from_cfg(cfg: Dict[str, Any]) -> Timing:
    """Build the timing block, rejecting negative or inverted windows."""
    vals = {}
    for k in TIMING_KEYS:
        try:
            vals[k] = int(cfg.get(k, DEFAULTS[k]))
        except (TypeError, ValueError):
            raise ConfigError(f"{k} must be an integer, got {cfg.get(k)!r}")
        if vals[k] < 0:
            raise ConfigError(f"{k} must be >= 0, got {vals[k]}")
    if vals["probe_timeout_ms"] >= vals["attach_timeout_ms"]:
        raise ConfigError(
            "probe_timeout_ms must be shorter than attach_timeout_ms "
            f"({vals['probe_timeout_ms']} >= {vals['attach_timeout_ms']})"
        )
    return Timing(**vals)
