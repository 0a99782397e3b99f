"""Download, verification, and setup of the Android platform tools."""

from __future__ import annotations

import hashlib
import logging
import os
import subprocess
import sys
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

import requests

from devflasher.core.archive import extract_zip
from devflasher.core.errors import (
    ChecksumMismatchError,
    DownloadError,
    ProvisioningError,
    ToolLaunchError,
)
from devflasher.tools.platform_tool import PlatformTool, ToolPaths

PLATFORM_TOOLS_VERSION = "33.0.3"
PLATFORM_TOOLS_DIR = "platform-tools"
_CHUNK_SIZE = 1024 * 1024
_DOWNLOAD_TIMEOUT_S = 60
LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int | None], None]


@dataclass(frozen=True)
class PlatformToolsRelease:
    version: str
    platform: str
    url: str
    sha256: str

    @property
    def archive_name(self) -> str:
        return Path(urlparse(self.url).path).name


_RELEASES: dict[tuple[str, str], tuple[str, str]] = {
    ("darwin", "33.0.3"): (
        "https://dl.google.com/android/repository/platform-tools_r33.0.3-darwin.zip",
        "84acbbd2b2ccef159ae3e6f83137e44ad18388ff3cc66bb057c87d761744e595",
    ),
    ("linux", "33.0.3"): (
        "https://dl.google.com/android/repository/platform-tools_r33.0.3-linux.zip",
        "ab885c20f1a9cb528eb145b9208f53540efa3d26258ac3ce4363570a0846f8f7",
    ),
    ("windows", "33.0.3"): (
        "https://dl.google.com/android/repository/platform-tools_r33.0.3-windows.zip",
        "1e59afd40a74c5c0eab0a9fad3f0faf8a674267106e0b19921be9f67081808c2",
    ),
}


def host_platform(platform: str | None = None) -> str:
    value = platform or sys.platform
    if value in {"windows", "win32"}:
        return "windows"
    if value == "darwin":
        return "darwin"
    if value.startswith("linux"):
        return "linux"
    raise ProvisioningError(f"Android platform tools are not available for '{value}'")


def pinned_release(platform: str | None = None, version: str = PLATFORM_TOOLS_VERSION) -> PlatformToolsRelease:
    host = host_platform(platform)
    entry = _RELEASES.get((host, version))
    if entry is None:
        raise ProvisioningError(f"No pinned platform tools {version} release for {host}")
    url, sha256 = entry
    return PlatformToolsRelease(version=version, platform=host, url=url, sha256=sha256)


def download_file(url: str, destination: Path, *, progress: ProgressCallback | None = None) -> Path:
    """Stream `url` to `destination`, renaming into place only once complete."""
    LOGGER.info("Downloading %s", url)
    partial = destination.with_name(destination.name + ".part")
    try:
        with requests.get(url, stream=True, timeout=_DOWNLOAD_TIMEOUT_S) as response:
            response.raise_for_status()
            total = int(response.headers.get("content-length", 0)) or None
            downloaded = 0
            with open(partial, "wb") as fh:
                for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                    if not chunk:
                        continue
                    fh.write(chunk)
                    downloaded += len(chunk)
                    if progress is not None:
                        progress(downloaded, total)
    except requests.RequestException as exc:
        partial.unlink(missing_ok=True)
        raise DownloadError(f"Could not download {url}: {exc}") from exc
    except OSError as exc:
        partial.unlink(missing_ok=True)
        raise DownloadError(f"Could not write {destination}: {exc}") from exc

    partial.replace(destination)
    return destination


def sha256_file(path: Path) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def verify_archive(path: Path, expected_sha256: str) -> None:
    """Raise ChecksumMismatchError and delete `path` unless it matches `expected_sha256`."""
    LOGGER.info("Verifying %s", path.name)
    try:
        actual = sha256_file(path)
    except OSError as exc:
        raise ProvisioningError(f"Could not read {path}: {exc}") from exc
    if actual != expected_sha256.lower():
        path.unlink(missing_ok=True)
        raise ChecksumMismatchError(
            f"{path.name} checksum verification failed: expected {expected_sha256}, got {actual}"
        )


def prepend_to_path(directory: Path) -> None:
    current = os.environ.get("PATH", "")
    os.environ["PATH"] = str(directory) + (os.pathsep + current if current else "")


def stop_running_tools(adb: PlatformTool, platform: str) -> None:
    """Stop adb/fastboot instances that would keep the executables busy."""
    if adb.path.exists():
        adb.run("kill-server")
    if platform == "windows":
        try:
            subprocess.run(
                ["taskkill", "/IM", "fastboot.exe", "/F"],
                check=False,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as exc:
            LOGGER.debug("taskkill failed: %s", exc)


def tool_paths(work_dir: Path, platform: str) -> ToolPaths:
    directory = work_dir / PLATFORM_TOOLS_DIR
    suffix = ".exe" if platform == "windows" else ""
    return ToolPaths(
        directory=directory,
        adb=PlatformTool(name="adb", path=directory / f"adb{suffix}"),
        fastboot=PlatformTool(name="fastboot", path=directory / f"fastboot{suffix}"),
    )


def provision_platform_tools(
    work_dir: Path,
    release: PlatformToolsRelease | None = None,
    *,
    progress: ProgressCallback | None = None,
    platform: str | None = None,
) -> ToolPaths:
    """Make verified adb and fastboot binaries available under `work_dir`.

    The archive is downloaded only when absent, and is always checked against
    the pinned SHA-256 before anything is extracted from it.
    """
    release = release or pinned_release(platform)
    host = host_platform(platform) if platform else release.platform
    archive = work_dir / release.archive_name

    if not archive.exists():
        download_file(release.url, archive, progress=progress)
    verify_archive(archive, release.sha256)

    paths = tool_paths(work_dir, host)
    prepend_to_path(paths.directory)
    stop_running_tools(paths.adb, host)
    extract_zip(archive, work_dir)
    return paths


def start_server(adb: PlatformTool) -> None:
    if not adb.run("start-server"):
        raise ToolLaunchError("Cannot start ADB server")
