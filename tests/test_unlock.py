from __future__ import annotations

import logging
import threading
from pathlib import Path

import pytest

from conftest import FakeTool, critical_unlocks_after, getvar_output, make_target, unlocks_after
from devflasher.core.catalog import load_catalog
from devflasher.core.config import FlasherConfig
from devflasher.core.errors import UnlockFailedError
from devflasher.core.model import DeviceFamily, LockState, UnlockStage
from devflasher.core.unlock import (
    ALT_VOCABULARY,
    STANDARD_VOCABULARY,
    BootloaderUnlocker,
    interpret_lock_value,
    lock_vocabulary,
    parse_critical_unlocked,
    parse_unlock_ability,
)

UNLOCK = ("flashing", "unlock")
UNLOCK_CRITICAL = ("flashing", "unlock_critical")


def _unlocker(fastboot: FakeTool, tmp_path: Path, **kwargs: object) -> BootloaderUnlocker:
    return BootloaderUnlocker(fastboot, FlasherConfig(work_dir=tmp_path, unlock_interval_s=0), **kwargs)


@pytest.mark.parametrize("codename", load_catalog().codenames(DeviceFamily.ALT_VOCABULARY))
def test_alt_vocabulary_family_reads_securestate(codename: str) -> None:
    profile = load_catalog().profile_for(codename)
    assert lock_vocabulary(profile.family) == ALT_VOCABULARY


def test_alt_vocabulary_covers_known_codenames() -> None:
    assert set(load_catalog().codenames(DeviceFamily.ALT_VOCABULARY)) == {"devon", "hawao", "rhode", "bangkk", "fogos"}
    assert set(load_catalog().codenames(DeviceFamily.CRITICAL_UNLOCK)) == {"FP4", "FP5", "otter"}


def test_lock_value_interpretation() -> None:
    assert interpret_lock_value("yes", STANDARD_VOCABULARY) is LockState.UNLOCKED
    assert interpret_lock_value("no", STANDARD_VOCABULARY) is LockState.LOCKED
    assert interpret_lock_value("flashing_unlocked", ALT_VOCABULARY) is LockState.UNLOCKED
    assert interpret_lock_value("yes", ALT_VOCABULARY) is LockState.UNKNOWN
    assert interpret_lock_value("", STANDARD_VOCABULARY) is LockState.UNKNOWN


def test_output_token_parsing() -> None:
    assert parse_critical_unlocked("(bootloader) Device critical unlocked: true\n") == "true"
    assert parse_unlock_ability("(bootloader) get_unlock_ability: 1\nOKAY\n") == "1"
    assert parse_critical_unlocked(None) == ""


def test_already_unlocked_device_is_not_triggered(tmp_path: Path) -> None:
    fastboot = FakeTool("fastboot", {("S1", ("getvar", "unlocked")): getvar_output("unlocked", "yes")})

    stage = _unlocker(fastboot, tmp_path).unlock(make_target("S1", "sargo", tmp_path))

    assert stage is UnlockStage.UNLOCKED
    assert fastboot.count("trigger", "S1", UNLOCK) == 0


def test_unlocks_after_operator_confirms(tmp_path: Path) -> None:
    fastboot = FakeTool("fastboot")
    unlocks_after(fastboot, "S1", 2)

    stage = _unlocker(fastboot, tmp_path).unlock(make_target("S1", "sargo", tmp_path))

    assert stage is UnlockStage.UNLOCKED
    assert fastboot.count("trigger", "S1", UNLOCK) == 2


def test_never_unlocking_device_hits_the_ceiling(tmp_path: Path) -> None:
    fastboot = FakeTool("fastboot")
    unlocks_after(fastboot, "S1", 99)

    with pytest.raises(UnlockFailedError, match="Failed to unlock sargo S1 bootloader"):
        _unlocker(fastboot, tmp_path).unlock(make_target("S1", "sargo", tmp_path))

    assert fastboot.count("trigger", "S1", UNLOCK) == 6


def test_unknown_lock_value_keeps_polling(tmp_path: Path) -> None:
    fastboot = FakeTool("fastboot")

    with pytest.raises(UnlockFailedError):
        _unlocker(fastboot, tmp_path).unlock(make_target("S1", "sargo", tmp_path))

    assert fastboot.count("trigger", "S1", UNLOCK) == 6


def test_alt_vocabulary_device_unlocks(tmp_path: Path) -> None:
    fastboot = FakeTool("fastboot")
    unlocks_after(
        fastboot, "M1", 1, variable="securestate", locked="flashing_locked", unlocked="flashing_unlocked"
    )
    target = make_target("M1", "devon", tmp_path, family=DeviceFamily.ALT_VOCABULARY)

    assert _unlocker(fastboot, tmp_path).unlock(target) is UnlockStage.UNLOCKED
    assert fastboot.count("query", "M1", ("getvar", "unlocked")) == 0


def test_critical_family_reaches_critical_unlocked(tmp_path: Path) -> None:
    fastboot = FakeTool("fastboot")
    unlocks_after(fastboot, "F1", 1)
    critical_unlocks_after(fastboot, "F1", 1)
    target = make_target("F1", "FP4", tmp_path, family=DeviceFamily.CRITICAL_UNLOCK, replug="volume_down")

    stage = _unlocker(fastboot, tmp_path).unlock(target)

    assert stage is UnlockStage.CRITICAL_UNLOCKED
    assert fastboot.count("trigger", "F1", UNLOCK_CRITICAL) == 1


def test_critical_unlock_ceiling(tmp_path: Path) -> None:
    fastboot = FakeTool("fastboot")
    unlocks_after(fastboot, "F1", 0)
    critical_unlocks_after(fastboot, "F1", 99)
    target = make_target("F1", "FP5", tmp_path, family=DeviceFamily.CRITICAL_UNLOCK)

    with pytest.raises(UnlockFailedError, match=r"\(critical\)"):
        _unlocker(fastboot, tmp_path).unlock(target)

    assert fastboot.count("trigger", "F1", UNLOCK) == 0
    assert fastboot.count("trigger", "F1", UNLOCK_CRITICAL) == 3


def test_standard_device_skips_critical_stage(tmp_path: Path) -> None:
    fastboot = FakeTool("fastboot")
    unlocks_after(fastboot, "S1", 0)

    _unlocker(fastboot, tmp_path).unlock(make_target("S1", "sargo", tmp_path))

    assert fastboot.count("query", "S1", ("oem", "device-info")) == 0


def test_cancel_interrupts_wait(tmp_path: Path) -> None:
    fastboot = FakeTool("fastboot")
    unlocks_after(fastboot, "S1", 99)
    cancel = threading.Event()
    cancel.set()
    unlocker = BootloaderUnlocker(fastboot, FlasherConfig(work_dir=tmp_path, unlock_interval_s=30), cancel=cancel)

    with pytest.raises(UnlockFailedError, match="cancelled"):
        unlocker.unlock(make_target("S1", "sargo", tmp_path))

    assert fastboot.count("trigger", "S1", UNLOCK) == 1


def test_ceiling_breach_reports_time_waited(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    fastboot = FakeTool("fastboot")
    unlocks_after(fastboot, "S1", 99)
    unlocker = BootloaderUnlocker(
        fastboot, FlasherConfig(work_dir=tmp_path, unlock_interval_s=0.01, unlock_attempts=2)
    )

    with caplog.at_level(logging.INFO, logger="devflasher.core.unlock"):
        with pytest.raises(UnlockFailedError):
            unlocker.unlock(make_target("S1", "sargo", tmp_path))

    assert "sargo S1 gave up after 2 attempts (0s waited)" in caplog.text
