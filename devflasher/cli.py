"""Typer CLI entrypoint."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager
from pathlib import Path

import typer

from devflasher.core.config import DEFAULT_UNLOCK_INTERVAL_S, VERSION, FlasherConfig
from devflasher.core.errors import FlasherError
from devflasher.core.model import DeviceFamily
from devflasher.core.service import FlasherService
from devflasher.logs import setup_logging
from devflasher.tools.provision import ProgressCallback

app = typer.Typer(help="Flash Android factory images onto USB-connected devices")
LOGGER = logging.getLogger(__name__)

_PREPARATION_STEPS = (
    "1. Connect to a Wi-Fi network and ensure that no SIM cards are installed",
    "2. Enable Developer Options on device (Settings -> About Phone -> tap \"Build number\" 7 times)",
    "3. Enable OEM Unlocking (Settings -> System -> Advanced -> Developer Options)",
    "4. Disconnect the USB cable from your device",
    "4.1. Power off your device",
    "4.2. Hold volume down and connect the cable to boot it into fastboot mode.",
)

WorkDirOption = typer.Option(
    Path("."),
    "--dir",
    envvar="DEVFLASHER_DIR",
    help="Directory holding the factory image archives",
    file_okay=False,
    dir_okay=True,
    exists=True,
    resolve_path=True,
)


def _build_service(config: FlasherConfig) -> FlasherService:
    service = FlasherService(config)
    for warning in getattr(service, "load_warnings", ()):
        typer.echo(f"Warning: {warning}", err=True)
    return service


def _fatal(exc: FlasherError) -> typer.Exit:
    LOGGER.error("%s", exc)
    typer.pause("Press enter to exit.")
    return typer.Exit(code=1)


def _wait_for_operator(skip: bool) -> None:
    if not skip:
        typer.pause(typer.style("Press ENTER to continue", fg=typer.colors.YELLOW))
    typer.echo()


def _format_bytes(size: int) -> str:
    value = float(size)
    for unit in ("B", "kB", "MB"):
        if value < 1000:
            return f"{value:.0f} {unit}"
        value /= 1000
    return f"{value:.1f} GB"


@contextmanager
def _download_progress() -> Iterator[ProgressCallback]:
    with ExitStack() as stack:
        bar = None
        reported = 0

        def report(downloaded: int, total: int | None) -> None:
            nonlocal bar, reported
            if total is None:
                typer.echo(f"\rDownloading... {_format_bytes(downloaded)} downloaded", nl=False)
                return
            if bar is None:
                bar = stack.enter_context(typer.progressbar(length=total, label="Downloading"))
            bar.update(downloaded - reported)
            reported = downloaded

        yield report


@app.command("flash")
def flash(
    work_dir: Path = WorkDirOption,
    parallel: bool = typer.Option(
        False, "--parallel", envvar="DEVFLASHER_PARALLEL", help="Flash multiple devices at the same time."
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not wait for ENTER between steps."),
    unlock_interval: float = typer.Option(
        DEFAULT_UNLOCK_INTERVAL_S,
        "--unlock-interval",
        envvar="DEVFLASHER_UNLOCK_INTERVAL",
        hidden=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show tool invocations."),
) -> None:
    """Unlock and flash every connected device that has a matching factory image."""
    setup_logging(work_dir, verbose=verbose)
    config = FlasherConfig(work_dir=work_dir, parallel=parallel, unlock_interval_s=unlock_interval)
    typer.echo(f"Android Factory Image Flasher version {VERSION}")

    try:
        service = _build_service(config)
        service.resolve_bundles()
        with _download_progress() as progress:
            service.provision_tools(progress=progress)
        typer.echo()
        service.start_server()

        for step in _PREPARATION_STEPS:
            typer.secho(step, fg=typer.colors.YELLOW)
        typer.echo()
        _wait_for_operator(yes)

        report = service.probe()
        service.check_worklist(report)
        typer.echo()
        typer.echo("Devices to be flashed: ")
        for target in report.targets:
            typer.echo(f"{target.codename} {target.serial}")
        typer.echo()
        _wait_for_operator(yes)

        result = service.flash(report)
    except FlasherError as exc:
        raise _fatal(exc) from None

    typer.echo()
    typer.secho("Flashing complete", fg=typer.colors.BLUE, bold=True)
    if result.failed:
        for failure in result.failed:
            typer.echo(f"Failed: {failure.target.label}: {failure.error}", err=True)
        raise typer.Exit(code=1)


@app.command("devices")
def list_devices(work_dir: Path = WorkDirOption) -> None:
    """List connected devices, their family, and whether a factory image matches."""
    setup_logging(work_dir)
    try:
        service = _build_service(FlasherConfig(work_dir=work_dir))
        service.provision_tools()
        service.start_server()
        devices = service.list_devices()
        archives = set(service.archive_codenames())
    except FlasherError as exc:
        raise _fatal(exc) from None

    if not devices:
        typer.echo("No devices found")
        return

    for device in devices:
        profile = service.catalog.profile_for(device.codename)
        matched = "factory image" if device.codename in archives else "<no-image>"
        codename = device.codename or "<unknown>"
        typer.echo(f"{device.serial} {codename} ({device.mode.value}) [{profile.family.value}] -> {matched}")


@app.command("catalog")
def list_catalog(work_dir: Path = WorkDirOption) -> None:
    """List device families, product aliases, and re-plug hints."""
    setup_logging(work_dir)
    try:
        service = _build_service(FlasherConfig(work_dir=work_dir))
    except FlasherError as exc:
        raise _fatal(exc) from None

    catalog = service.catalog
    for family in DeviceFamily:
        if family is DeviceFamily.STANDARD:
            continue
        typer.echo(f"{family.value}: {', '.join(catalog.codenames(family)) or '-'}")
    for product, codename in sorted(catalog.aliases.items()):
        typer.echo(f"alias {product} -> {codename}")
    for codename, profile in sorted(catalog.profiles.items()):
        if profile.replug:
            typer.echo(f"replug {codename}: {profile.replug}")


def run() -> None:
    app()


if __name__ == "__main__":
    run()
