"""Core data models used across resolver, prober, pipelines, and CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class DeviceMode(Enum):
    ADB = "adb"
    BOOTLOADER = "fastboot"


class DeviceFamily(Enum):
    STANDARD = "standard"
    ALT_VOCABULARY = "alt_vocabulary"
    CRITICAL_UNLOCK = "critical_unlock"


class LockState(Enum):
    LOCKED = "locked"
    UNLOCKED = "unlocked"
    UNKNOWN = "unknown"


class UnlockStage(Enum):
    LOCKED = "locked"
    UNLOCKING = "unlocking"
    UNLOCKED = "unlocked"
    UNLOCKING_CRITICAL = "unlocking_critical"
    CRITICAL_UNLOCKED = "critical_unlocked"


@dataclass(frozen=True)
class LockVocabulary:
    variable: str
    locked: str
    unlocked: str


@dataclass(frozen=True)
class FirmwareBundle:
    codename: str
    path: Path


@dataclass(frozen=True)
class DeviceProfile:
    codename: str
    family: DeviceFamily = DeviceFamily.STANDARD
    replug: str | None = None

    @property
    def requires_critical_unlock(self) -> bool:
        return self.family is DeviceFamily.CRITICAL_UNLOCK


@dataclass(frozen=True)
class DetectedDevice:
    serial: str
    codename: str
    mode: DeviceMode


@dataclass(frozen=True)
class DeviceTarget:
    serial: str
    codename: str
    mode: DeviceMode
    profile: DeviceProfile
    bundle: FirmwareBundle

    @property
    def label(self) -> str:
        return f"{self.codename} {self.serial}"


@dataclass(frozen=True)
class ProbeReport:
    targets: tuple[DeviceTarget, ...]
    unmatched: tuple[DetectedDevice, ...]


@dataclass
class UnlockAttempt:
    """Per-device unlock bookkeeping; never shared between pipelines."""

    stage: UnlockStage
    ceiling: int
    count: int = 0
    waited_s: float = 0.0

    @property
    def exhausted(self) -> bool:
        return self.count >= self.ceiling


@dataclass(frozen=True)
class PipelineResult:
    target: DeviceTarget
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class RunReport:
    results: tuple[PipelineResult, ...] = field(default_factory=tuple)

    @property
    def succeeded(self) -> tuple[PipelineResult, ...]:
        return tuple(r for r in self.results if r.ok)

    @property
    def failed(self) -> tuple[PipelineResult, ...]:
        return tuple(r for r in self.results if not r.ok)
