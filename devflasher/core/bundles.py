"""Factory image discovery and extraction."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path, PurePosixPath
from types import MappingProxyType

from devflasher.core.archive import extract_zip
from devflasher.core.errors import DuplicateBundleError, NoBundlesError
from devflasher.core.model import FirmwareBundle

FACTORY_MARKER = "factory"
ARCHIVE_SUFFIX = ".zip"
LOGGER = logging.getLogger(__name__)


def is_factory_archive(name: str) -> bool:
    return FACTORY_MARKER in name and name.endswith(ARCHIVE_SUFFIX)


def codename_from_archive(name: str) -> str:
    return name.split("-")[0]


def find_factory_archives(directory: Path) -> list[Path]:
    return sorted(p for p in directory.iterdir() if p.is_file() and is_factory_archive(p.name))


def _bundle_root(destination: Path, extracted: list[Path]) -> Path:
    root = destination.resolve()
    if not extracted:
        return root
    relative = PurePosixPath(extracted[0].relative_to(root).as_posix())
    if not relative.parts:
        return root
    top = root / relative.parts[0]
    if len(relative.parts) == 1 and not top.is_dir():
        return root
    return top


def resolve_bundles(directory: Path, extract_to: Path | None = None) -> Mapping[str, FirmwareBundle]:
    """Extract every factory image in `directory` and map codenames to bundles.

    The returned mapping is read-only.
    """
    destination = extract_to or directory
    archives = find_factory_archives(directory)
    seen: set[str] = set()
    for archive in archives:
        codename = codename_from_archive(archive.name)
        if codename in seen:
            raise DuplicateBundleError(f"More than one factory image available for {codename}")
        seen.add(codename)

    bundles: dict[str, FirmwareBundle] = {}
    for archive in archives:
        codename = codename_from_archive(archive.name)
        extracted = extract_zip(archive, destination)
        bundles[codename] = FirmwareBundle(codename=codename, path=_bundle_root(destination, extracted))
        LOGGER.debug("Resolved %s -> %s", codename, bundles[codename].path)

    if not bundles:
        raise NoBundlesError("Cannot continue without a device factory image. Exiting...")

    return MappingProxyType(bundles)
