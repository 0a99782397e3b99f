"""Zip extraction with path-traversal protection."""

from __future__ import annotations

import logging
import shutil
import zipfile
from pathlib import Path, PurePosixPath, PureWindowsPath

from devflasher.core.errors import ArchiveError, UnsafeArchiveError

LOGGER = logging.getLogger(__name__)


def safe_member_path(destination: Path, name: str) -> Path:
    """Return where archive entry `name` lands under `destination`.

    Raises UnsafeArchiveError for absolute names, drive-qualified names, and
    names that resolve outside `destination`.
    """
    normalized = name.replace("\\", "/")
    pure = PurePosixPath(normalized)
    if pure.is_absolute() or PureWindowsPath(name).drive:
        raise UnsafeArchiveError(f"{name} is an illegal filepath")

    root = destination.resolve()
    target = root.joinpath(*pure.parts).resolve()
    if not target.is_relative_to(root):
        raise UnsafeArchiveError(f"{name} is an illegal filepath")
    return target


def extract_zip(archive: Path, destination: Path) -> list[Path]:
    """Extract `archive` into `destination` and return the extracted paths in archive order.

    Every entry is checked before anything is written, so a single unsafe entry
    rejects the whole archive. Unix permission bits recorded in the archive are
    restored.
    """
    LOGGER.info("Extracting %s", archive.name)
    try:
        zf = zipfile.ZipFile(archive)
    except (OSError, zipfile.BadZipFile) as exc:
        raise ArchiveError(f"Could not open {archive}: {exc}") from exc

    with zf:
        members = zf.infolist()
        targets = [safe_member_path(destination, info.filename) for info in members]

        for info, target in zip(members, targets):
            try:
                if info.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                with zf.open(info) as src, open(target, "wb") as dst:
                    shutil.copyfileobj(src, dst)
                mode = (info.external_attr >> 16) & 0o777
                if mode:
                    target.chmod(mode)
            except (OSError, zipfile.BadZipFile) as exc:
                raise ArchiveError(f"Could not extract {info.filename} from {archive}: {exc}") from exc

    return targets
