from __future__ import annotations

import logging
import threading
import zipfile
from collections.abc import Callable
from pathlib import Path

import pytest

from devflasher.core.model import DeviceFamily, DeviceMode, DeviceProfile, DeviceTarget, FirmwareBundle

Response = str | None | Callable[[], str | None]


class FakeTool:
    """Records every invocation and answers queries from a canned table."""

    def __init__(self, name: str, responses: dict[tuple[str | None, tuple[str, ...]], Response] | None = None) -> None:
        self.name = name
        self.responses = dict(responses or {})
        self.run_ok = True
        self.calls: list[tuple[str, str | None, tuple[str, ...]]] = []
        self._lock = threading.Lock()

    def _record(self, kind: str, serial: str | None, args: tuple[str, ...]) -> None:
        with self._lock:
            self.calls.append((kind, serial, args))

    def count(self, kind: str, serial: str | None, args: tuple[str, ...]) -> int:
        with self._lock:
            return sum(1 for call in self.calls if call == (kind, serial, args))

    def calls_for(self, serial: str) -> list[tuple[str, str | None, tuple[str, ...]]]:
        with self._lock:
            return [call for call in self.calls if call[1] == serial]

    def query(self, *args: str, serial: str | None = None, combined: bool = False) -> str | None:
        self._record("query", serial, args)
        response = self.responses.get((serial, args))
        if callable(response):
            return response()
        return response

    def run(self, *args: str, serial: str | None = None) -> bool:
        self._record("run", serial, args)
        return self.run_ok

    def trigger(self, *args: str, serial: str | None = None) -> None:
        self._record("trigger", serial, args)


def getvar_output(name: str, value: str) -> str:
    return f"{name}: {value}\nFinished. Total time: 0.001s\n"


def unlocks_after(
    fastboot: FakeTool,
    serial: str,
    triggers: int,
    *,
    variable: str = "unlocked",
    locked: str = "no",
    unlocked: str = "yes",
) -> None:
    """Make `serial` report unlocked once `flashing unlock` has been triggered `triggers` times."""

    def respond() -> str:
        done = fastboot.count("trigger", serial, ("flashing", "unlock")) >= triggers
        return getvar_output(variable, unlocked if done else locked)

    fastboot.responses[(serial, ("getvar", variable))] = respond


def critical_unlocks_after(fastboot: FakeTool, serial: str, triggers: int) -> None:
    def respond() -> str:
        done = fastboot.count("trigger", serial, ("flashing", "unlock_critical")) >= triggers
        flag = "true" if done else "false"
        return (
            "(bootloader) Verity mode: false\n"
            "(bootloader) Device unlocked: true\n"
            f"(bootloader) Device critical unlocked: {flag}\n"
            "OKAY [  0.000s]\n"
        )

    fastboot.responses[(serial, ("oem", "device-info"))] = respond


def make_target(
    serial: str,
    codename: str,
    bundle_path: Path,
    *,
    family: DeviceFamily = DeviceFamily.STANDARD,
    replug: str | None = None,
) -> DeviceTarget:
    return DeviceTarget(
        serial=serial,
        codename=codename,
        mode=DeviceMode.BOOTLOADER,
        profile=DeviceProfile(codename=codename, family=family, replug=replug),
        bundle=FirmwareBundle(codename=codename, path=bundle_path),
    )


def write_zip(path: Path, entries: dict[str, bytes | str], *, modes: dict[str, int] | None = None) -> Path:
    modes = modes or {}
    with zipfile.ZipFile(path, "w") as zf:
        for name, data in entries.items():
            info = zipfile.ZipInfo(name)
            if name in modes:
                info.external_attr = modes[name] << 16
            zf.writestr(info, data)
    return path


@pytest.fixture(autouse=True)
def _reset_package_logger():
    yield
    logger = logging.getLogger("devflasher")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
