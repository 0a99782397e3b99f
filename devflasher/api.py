"""Stable public API for building tooling on top of devflasher.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

from devflasher.core.catalog import DeviceCatalog
from devflasher.core.config import VERSION, FlasherConfig
from devflasher.core.errors import (
    AmbiguousDevicesError,
    ArchiveError,
    CatalogError,
    CatalogLoadError,
    CatalogValidationError,
    ChecksumMismatchError,
    ConfigurationError,
    DeviceError,
    DownloadError,
    DuplicateBundleError,
    FlasherError,
    FlashFailedError,
    NoBundlesError,
    NoDevicesError,
    ProvisioningError,
    ToolLaunchError,
    UnlockFailedError,
    UnsafeArchiveError,
)
from devflasher.core.model import (
    DetectedDevice,
    DeviceFamily,
    DeviceMode,
    DeviceProfile,
    DeviceTarget,
    FirmwareBundle,
    PipelineResult,
    ProbeReport,
    RunReport,
)
from devflasher.core.service import FlasherService
from devflasher.tools.base import Tool
from devflasher.tools.platform_tool import ToolPaths
from devflasher.tools.provision import ProgressCallback

__all__ = [
    "VERSION",
    "AmbiguousDevicesError",
    "ArchiveError",
    "CatalogError",
    "CatalogLoadError",
    "CatalogValidationError",
    "ChecksumMismatchError",
    "ConfigurationError",
    "DeviceError",
    "DownloadError",
    "DuplicateBundleError",
    "FlasherError",
    "FlashFailedError",
    "NoBundlesError",
    "NoDevicesError",
    "ProvisioningError",
    "ToolLaunchError",
    "UnlockFailedError",
    "UnsafeArchiveError",
    "DetectedDevice",
    "DeviceFamily",
    "DeviceMode",
    "DeviceProfile",
    "DeviceTarget",
    "FirmwareBundle",
    "FlasherConfig",
    "PipelineResult",
    "ProbeReport",
    "RunReport",
    "Tool",
    "ToolPaths",
    "Client",
]


class Client:
    """Public client for driving devflasher from other tools.

    A `Client` wraps bundle resolution, platform tool provisioning, device
    probing, and the flashing pipelines behind a stable API intended for
    third-party tools (GUI/TUI/services/scripts). Pass `adb`/`fastboot` to use
    already installed tools instead of provisioning them.
    """

    def __init__(
        self,
        work_dir: Path,
        *,
        parallel: bool = False,
        adb: Tool | None = None,
        fastboot: Tool | None = None,
        catalog: DeviceCatalog | None = None,
    ) -> None:
        config = FlasherConfig(work_dir=Path(work_dir), parallel=parallel)
        self._service = FlasherService(config, adb=adb, fastboot=fastboot, catalog=catalog)

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._service.load_warnings

    @property
    def config(self) -> FlasherConfig:
        return self._service.config

    def resolve_bundles(self) -> Mapping[str, FirmwareBundle]:
        return self._service.resolve_bundles()

    def provision_tools(self, *, progress: ProgressCallback | None = None) -> ToolPaths:
        paths = self._service.provision_tools(progress=progress)
        self._service.start_server()
        return paths

    def list_devices(self) -> list[DetectedDevice]:
        return self._service.list_devices()

    def probe(self) -> ProbeReport:
        return self._service.probe()

    def flash(self, report: ProbeReport | None = None) -> RunReport:
        """Flash the targets in `report`, probing connected devices when omitted."""
        return self._service.flash(report or self._service.probe())
