"""Run configuration shared read-only by every device pipeline."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

VERSION = "1.0.0"

DEFAULT_UNLOCK_INTERVAL_S = 30.0
DEFAULT_UNLOCK_ATTEMPTS = 6
DEFAULT_CRITICAL_UNLOCK_ATTEMPTS = 3


@dataclass(frozen=True)
class FlasherConfig:
    work_dir: Path
    version: str = VERSION
    parallel: bool = False
    unlock_interval_s: float = DEFAULT_UNLOCK_INTERVAL_S
    unlock_attempts: int = DEFAULT_UNLOCK_ATTEMPTS
    critical_unlock_attempts: int = DEFAULT_CRITICAL_UNLOCK_ATTEMPTS


def user_config_dirs() -> tuple[Path, Path]:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    xdg_data = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local/share"))
    return xdg_config / "devflasher", xdg_data / "devflasher"
