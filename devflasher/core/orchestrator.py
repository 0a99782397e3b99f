"""Per-device flashing pipelines and their concurrent execution."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor

from devflasher.core.config import FlasherConfig
from devflasher.core.errors import AmbiguousDevicesError, DeviceError, NoDevicesError
from devflasher.core.flash import flash_bundle
from devflasher.core.model import DeviceTarget, PipelineResult, RunReport
from devflasher.core.unlock import BootloaderUnlocker
from devflasher.tools.base import Tool

LOGGER = logging.getLogger(__name__)

FlashStep = Callable[..., None]


class FlashOrchestrator:
    """Runs reboot -> unlock -> flash -> reboot for each target.

    A pipeline failure is logged and recorded in the report; it never stops
    the other pipelines.
    """

    def __init__(
        self,
        adb: Tool,
        fastboot: Tool,
        config: FlasherConfig,
        *,
        flash: FlashStep = flash_bundle,
        cancel: threading.Event | None = None,
    ) -> None:
        self.adb = adb
        self.fastboot = fastboot
        self.config = config
        self.flash = flash
        self.cancel = cancel or threading.Event()

    def check_worklist(self, targets: Sequence[DeviceTarget]) -> None:
        if not targets:
            raise NoDevicesError("No devices to be flashed. Exiting...")
        if len(targets) > 1 and not self.config.parallel:
            raise AmbiguousDevicesError("More than one device detected. Exiting...")

    def run(self, targets: Sequence[DeviceTarget]) -> RunReport:
        self.check_worklist(targets)
        with ThreadPoolExecutor(max_workers=len(targets), thread_name_prefix="devflasher") as pool:
            futures = [pool.submit(self.run_pipeline, target) for target in targets]
            try:
                results = tuple(future.result() for future in futures)
            except KeyboardInterrupt:
                self.cancel.set()
                raise
        return RunReport(results=results)

    def run_pipeline(self, target: DeviceTarget) -> PipelineResult:
        try:
            self._flash_device(target)
        except DeviceError as exc:
            LOGGER.error("%s", exc)
            return PipelineResult(target=target, error=str(exc))
        except Exception as exc:
            LOGGER.error("Unexpected failure while flashing %s: %s", target.label, exc, exc_info=True)
            return PipelineResult(target=target, error=str(exc))
        return PipelineResult(target=target)

    def _flash_device(self, target: DeviceTarget) -> None:
        # No-op for devices already in fastboot mode.
        self.adb.run("reboot", "bootloader", serial=target.serial)

        unlocker = BootloaderUnlocker(self.fastboot, self.config, cancel=self.cancel)
        unlocker.unlock(target)

        self.flash(target, version=self.config.version)

        LOGGER.info("Rebooting %s...", target.label)
        self.fastboot.trigger("reboot", serial=target.serial)
