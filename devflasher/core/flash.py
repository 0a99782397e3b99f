"""Vendor flash-all script execution."""

from __future__ import annotations

import logging
import os
import subprocess
import sys

from devflasher.core.errors import FlashFailedError
from devflasher.core.model import DeviceTarget

SERIAL_ENV = "ANDROID_SERIAL"
VERSION_ENV = "DEVICE_FLASHER_VERSION"
LOGGER = logging.getLogger(__name__)


def flash_script_name(platform: str | None = None) -> str:
    value = platform or sys.platform
    return "flash-all.bat" if value in {"win32", "windows"} else "flash-all.sh"


def flash_environment(target: DeviceTarget, version: str) -> dict[str, str]:
    env = dict(os.environ)
    env[SERIAL_ENV] = target.serial
    env[VERSION_ENV] = version
    return env


def flash_bundle(target: DeviceTarget, *, version: str, platform: str | None = None) -> None:
    """Run the bundle's flash-all script against `target`, streaming its output to the console."""
    script = target.bundle.path / flash_script_name(platform)
    LOGGER.info("Flashing %s bootloader...", target.label)
    if not script.is_file():
        raise FlashFailedError(f"Failed to flash {target.label}: {script} not found")

    try:
        subprocess.run(
            [str(script)],
            cwd=target.bundle.path,
            env=flash_environment(target, version),
            check=True,
        )
    except subprocess.CalledProcessError as exc:
        raise FlashFailedError(f"Failed to flash {target.label}: {script.name} exited with {exc.returncode}") from exc
    except OSError as exc:
        raise FlashFailedError(f"Failed to flash {target.label}: {exc}") from exc
