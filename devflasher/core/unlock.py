"""Bootloader unlock state machine.

Unlocking needs the operator to confirm on the device, and fastboot gives no
way to tell a pending confirmation from a refused one. The unlocker therefore
fires the unlock request, waits a fixed interval, and re-reads the lock state,
giving up once the stage's attempt ceiling is reached.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from devflasher.core.config import FlasherConfig
from devflasher.core.errors import UnlockFailedError
from devflasher.core.model import (
    DeviceFamily,
    DeviceTarget,
    LockState,
    LockVocabulary,
    UnlockAttempt,
    UnlockStage,
)
from devflasher.core.prober import get_var, labelled_token
from devflasher.tools.base import Tool

LOGGER = logging.getLogger(__name__)

STANDARD_VOCABULARY = LockVocabulary(variable="unlocked", locked="no", unlocked="yes")
ALT_VOCABULARY = LockVocabulary(variable="securestate", locked="flashing_locked", unlocked="flashing_unlocked")

_REPLUG_KEYS = {
    "volume_up": "volume up",
    "volume_down": "volume down",
}


def lock_vocabulary(family: DeviceFamily) -> LockVocabulary:
    if family is DeviceFamily.ALT_VOCABULARY:
        return ALT_VOCABULARY
    return STANDARD_VOCABULARY


def interpret_lock_value(value: str, vocabulary: LockVocabulary) -> LockState:
    if value == vocabulary.unlocked:
        return LockState.UNLOCKED
    if value == vocabulary.locked:
        return LockState.LOCKED
    return LockState.UNKNOWN


def parse_critical_unlocked(output: str | None) -> str:
    """Read the critical unlock flag from `fastboot oem device-info`.

    (bootloader) Device unlocked: true
    (bootloader) Device critical unlocked: true
    """
    return labelled_token(output, "Device critical unlocked:", 4)


def parse_unlock_ability(output: str | None) -> str:
    """(bootloader) get_unlock_ability: 0"""
    return labelled_token(output, "get_unlock_ability", 2)


class BootloaderUnlocker:
    def __init__(
        self,
        fastboot: Tool,
        config: FlasherConfig,
        *,
        cancel: threading.Event | None = None,
    ) -> None:
        self.fastboot = fastboot
        self.config = config
        self.cancel = cancel or threading.Event()

    def lock_state(self, target: DeviceTarget) -> LockState:
        vocabulary = lock_vocabulary(target.profile.family)
        return interpret_lock_value(get_var(self.fastboot, target.serial, vocabulary.variable), vocabulary)

    def critical_state(self, target: DeviceTarget) -> LockState:
        output = self.fastboot.query("oem", "device-info", serial=target.serial, combined=True)
        value = parse_critical_unlocked(output)
        if value == "true":
            return LockState.UNLOCKED
        if value == "false":
            return LockState.LOCKED
        return LockState.UNKNOWN

    def unlock_ability(self, target: DeviceTarget) -> str | None:
        output = self.fastboot.query("flashing", "get_unlock_ability", serial=target.serial, combined=True)
        return parse_unlock_ability(output) or None

    def unlock(self, target: DeviceTarget) -> UnlockStage:
        """Drive `target` to UNLOCKED, or CRITICAL_UNLOCKED for families that need it."""
        LOGGER.info("Unlocking %s bootloader...", target.label)
        if self.unlock_ability(target) == "0":
            LOGGER.warning(
                "%s reports get_unlock_ability 0; enable OEM unlocking in Developer Options", target.label
            )
        LOGGER.warning("5. Please use the volume and power keys on the device to unlock the bootloader")
        if target.profile.replug:
            key = _REPLUG_KEYS.get(target.profile.replug, target.profile.replug)
            LOGGER.warning("  5a. Once %s boots, disconnect its cable and power it off", target.label)
            LOGGER.warning("  5b. Then, hold %s and connect the cable again to boot it into fastboot mode.", key)
            LOGGER.info("The installation will resume automatically")

        attempt = UnlockAttempt(stage=UnlockStage.LOCKED, ceiling=self.config.unlock_attempts)
        self._poll(
            target,
            attempt,
            command=("flashing", "unlock"),
            is_done=lambda: self.lock_state(target) is LockState.UNLOCKED,
            active=UnlockStage.UNLOCKING,
            failure=f"Failed to unlock {target.label} bootloader",
        )
        attempt.stage = UnlockStage.UNLOCKED

        if not target.profile.requires_critical_unlock:
            return attempt.stage

        critical = UnlockAttempt(stage=UnlockStage.UNLOCKED, ceiling=self.config.critical_unlock_attempts)
        self._poll(
            target,
            critical,
            command=("flashing", "unlock_critical"),
            is_done=lambda: self.critical_state(target) is LockState.UNLOCKED,
            active=UnlockStage.UNLOCKING_CRITICAL,
            failure=f"Failed to unlock (critical) {target.label} bootloader",
        )
        critical.stage = UnlockStage.CRITICAL_UNLOCKED
        return critical.stage

    def _poll(
        self,
        target: DeviceTarget,
        attempt: UnlockAttempt,
        *,
        command: tuple[str, ...],
        is_done: Callable[[], bool],
        active: UnlockStage,
        failure: str,
    ) -> None:
        while not is_done():
            if attempt.exhausted:
                LOGGER.info(
                    "%s gave up after %d attempts (%.0fs waited)", target.label, attempt.count, attempt.waited_s
                )
                raise UnlockFailedError(failure)
            attempt.stage = active
            if active is UnlockStage.UNLOCKING_CRITICAL:
                LOGGER.info("Unlocking (critical) %s bootloader...", target.label)
                LOGGER.warning(
                    "5.1. Please use the volume and power keys on the device to unlock the bootloader (critical)"
                )
            self.fastboot.trigger(*command, serial=target.serial)
            attempt.count += 1
            LOGGER.debug("%s %s attempt %d/%d", target.label, active.value, attempt.count, attempt.ceiling)
            if self.cancel.wait(self.config.unlock_interval_s):
                raise UnlockFailedError(f"{failure}: cancelled")
            attempt.waited_s += self.config.unlock_interval_s
