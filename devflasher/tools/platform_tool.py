"""Subprocess-backed adb/fastboot invocation."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlatformTool:
    """An executable plus the `-s <serial>` targeting convention adb and fastboot share.

    Instances hold no per-call state; every invocation builds its own argument
    list, so one instance can be used from several pipelines at once.
    """

    name: str
    path: Path

    def command(self, *args: str, serial: str | None = None) -> list[str]:
        cmd = [str(self.path)]
        if serial:
            cmd.extend(["-s", serial])
        cmd.extend(args)
        return cmd

    def query(self, *args: str, serial: str | None = None, combined: bool = False) -> str | None:
        cmd = self.command(*args, serial=serial)
        try:
            result = subprocess.run(
                cmd,
                check=False,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT if combined else subprocess.PIPE,
                text=True,
                errors="replace",
            )
        except OSError as exc:
            LOGGER.debug("%s failed to launch: %s", " ".join(cmd), exc)
            return None
        if result.returncode != 0:
            LOGGER.debug("%s exited with %s", " ".join(cmd), result.returncode)
            return None
        return result.stdout

    def run(self, *args: str, serial: str | None = None) -> bool:
        cmd = self.command(*args, serial=serial)
        try:
            result = subprocess.run(
                cmd,
                check=False,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as exc:
            LOGGER.debug("%s failed to launch: %s", " ".join(cmd), exc)
            return False
        return result.returncode == 0

    def trigger(self, *args: str, serial: str | None = None) -> None:
        """Start a command and return immediately.

        Used for unlock and reboot requests whose effect depends on the operator
        confirming on the device; callers observe the outcome by polling state,
        not by the command's exit status.
        """
        cmd = self.command(*args, serial=serial)
        try:
            subprocess.Popen(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        except OSError as exc:
            LOGGER.warning("Could not start %s: %s", " ".join(cmd), exc)


@dataclass(frozen=True)
class ToolPaths:
    directory: Path
    adb: PlatformTool
    fastboot: PlatformTool
