"""Device enumeration and codename detection through adb and fastboot."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from devflasher.core.catalog import DeviceCatalog
from devflasher.core.model import DetectedDevice, DeviceMode, DeviceTarget, FirmwareBundle, ProbeReport
from devflasher.tools.base import Tool

LOGGER = logging.getLogger(__name__)


def parse_device_serials(output: str | None, *, skip_header: bool) -> list[str]:
    """Extract serial numbers from `adb devices` / `fastboot devices` output."""
    if not output:
        return []
    lines = output.split("\n")
    if skip_header:
        lines = lines[1:]
    serials: list[str] = []
    for line in lines:
        if line in {"", "\r"}:
            continue
        serial = line.split("\t")[0].strip()
        if serial:
            serials.append(serial)
    return serials


def parse_getvar(output: str | None, name: str) -> str:
    """Read `name: value` from `fastboot getvar` output.

    $ fastboot getvar unlocked
    unlocked: no
    Finished. Total time: 0.009s
    """
    return labelled_token(output, name, 1)


def parse_getprop(output: str | None) -> str:
    if output is None:
        return ""
    return output.strip("[]\n\r")


def labelled_token(output: str | None, label: str, index: int) -> str:
    if not output:
        return ""
    for line in output.split("\n"):
        if label in line:
            tokens = line.split(" ")
            if len(tokens) <= index:
                return ""
            return tokens[index].strip("\r")
    return ""


def get_prop(adb: Tool, serial: str, prop: str) -> str:
    return parse_getprop(adb.query("shell", "getprop", prop, serial=serial))


def get_var(fastboot: Tool, serial: str, name: str) -> str:
    return parse_getvar(fastboot.query("getvar", name, serial=serial, combined=True), name)


def detect_devices(adb: Tool, fastboot: Tool, catalog: DeviceCatalog) -> list[DetectedDevice]:
    """Return every device adb or fastboot can see, with its codename."""
    devices: dict[str, DetectedDevice] = {}

    for serial in parse_device_serials(adb.query("devices"), skip_header=True):
        codename = get_prop(adb, serial, "ro.product.device")
        devices[serial] = DetectedDevice(serial=serial, codename=codename, mode=DeviceMode.ADB)

    for serial in parse_device_serials(fastboot.query("devices", combined=True), skip_header=False):
        codename = catalog.resolve_alias(get_var(fastboot, serial, "product"))
        devices[serial] = DetectedDevice(serial=serial, codename=codename, mode=DeviceMode.BOOTLOADER)

    return list(devices.values())


def probe_devices(
    adb: Tool,
    fastboot: Tool,
    bundles: Mapping[str, FirmwareBundle],
    catalog: DeviceCatalog,
) -> ProbeReport:
    """Match connected devices against the available factory images."""
    targets: list[DeviceTarget] = []
    unmatched: list[DetectedDevice] = []

    for device in detect_devices(adb, fastboot, catalog):
        bundle = bundles.get(device.codename)
        if bundle is None:
            LOGGER.info("Detected %s %s. No matching factory image found", device.codename, device.serial)
            unmatched.append(device)
            continue
        LOGGER.info("Detected %s %s", device.codename, device.serial)
        targets.append(
            DeviceTarget(
                serial=device.serial,
                codename=device.codename,
                mode=device.mode,
                profile=catalog.profile_for(device.codename),
                bundle=bundle,
            )
        )

    return ProbeReport(targets=tuple(targets), unmatched=tuple(unmatched))
