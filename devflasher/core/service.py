"""Service layer used by CLI and future UI frontends."""

from __future__ import annotations

import threading
from collections.abc import Mapping
from pathlib import Path

from devflasher.core.bundles import codename_from_archive, find_factory_archives, resolve_bundles
from devflasher.core.catalog import DeviceCatalog, load_catalog
from devflasher.core.config import FlasherConfig
from devflasher.core.model import DetectedDevice, FirmwareBundle, ProbeReport, RunReport
from devflasher.core.orchestrator import FlashOrchestrator
from devflasher.core.prober import detect_devices, probe_devices
from devflasher.tools.base import Tool
from devflasher.tools.platform_tool import ToolPaths
from devflasher.tools.provision import ProgressCallback, provision_platform_tools, start_server as start_adb_server


class FlasherService:
    def __init__(
        self,
        config: FlasherConfig,
        *,
        adb: Tool | None = None,
        fastboot: Tool | None = None,
        catalog: DeviceCatalog | None = None,
    ) -> None:
        self.config = config
        self.catalog = catalog or load_catalog()
        self.load_warnings = self.catalog.warnings
        self.adb = adb
        self.fastboot = fastboot
        self.bundles: Mapping[str, FirmwareBundle] = {}
        self.cancel = threading.Event()

    @property
    def work_dir(self) -> Path:
        return self.config.work_dir

    def archive_codenames(self) -> tuple[str, ...]:
        return tuple(sorted({codename_from_archive(p.name) for p in find_factory_archives(self.work_dir)}))

    def resolve_bundles(self) -> Mapping[str, FirmwareBundle]:
        self.bundles = resolve_bundles(self.work_dir)
        return self.bundles

    def provision_tools(self, *, progress: ProgressCallback | None = None) -> ToolPaths:
        paths = provision_platform_tools(self.work_dir, progress=progress)
        self.adb = paths.adb
        self.fastboot = paths.fastboot
        return paths

    def start_server(self) -> None:
        start_adb_server(self._tools()[0])

    def list_devices(self) -> list[DetectedDevice]:
        adb, fastboot = self._tools()
        return detect_devices(adb, fastboot, self.catalog)

    def probe(self) -> ProbeReport:
        adb, fastboot = self._tools()
        return probe_devices(adb, fastboot, self.bundles, self.catalog)

    def orchestrator(self) -> FlashOrchestrator:
        adb, fastboot = self._tools()
        return FlashOrchestrator(adb, fastboot, self.config, cancel=self.cancel)

    def check_worklist(self, report: ProbeReport) -> None:
        self.orchestrator().check_worklist(report.targets)

    def flash(self, report: ProbeReport) -> RunReport:
        return self.orchestrator().run(report.targets)

    def _tools(self) -> tuple[Tool, Tool]:
        if self.adb is None or self.fastboot is None:
            raise RuntimeError("Platform tools have not been provisioned")
        return self.adb, self.fastboot
