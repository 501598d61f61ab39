"""Tar archive extraction with leading path components stripped."""

from __future__ import annotations

import copy
import shutil
import tarfile
from pathlib import Path, PurePosixPath

from toolchain_image.errors import ValidationError


def extract_archive(
    archive: str | Path,
    destination: str | Path,
    *,
    strip_components: int = 1,
) -> list[str]:
    """Extract ``archive`` into ``destination`` like ``tar --strip-components``.

    ``destination`` is recreated from scratch so repeated extractions of the
    same archive yield identical trees. Returns the extracted member paths,
    relative to ``destination``, in archive order.
    """
    if strip_components < 0:
        raise ValidationError("strip_components must not be negative.")
    target = Path(destination)
    if target.exists():
        shutil.rmtree(target)
    target.mkdir(parents=True)

    try:
        with tarfile.open(archive, mode="r:*") as tar:
            members = _stripped_members(tar.getmembers(), strip_components=strip_components)
            tar.extractall(target, members=members, filter="data")
    except tarfile.FilterError as exc:
        raise ValidationError(
            "Archive contains an unsafe member.",
            hint="Only extract archives from trusted sources.",
            context={"operation": "extract", "archive": str(archive), "error": str(exc)},
        ) from exc
    except tarfile.TarError as exc:
        raise ValidationError(
            "Archive is not a readable tar file.",
            context={"operation": "extract", "archive": str(archive), "error": str(exc)},
        ) from exc
    return [member.name for member in members]


def _stripped_members(
    members: list[tarfile.TarInfo],
    *,
    strip_components: int,
) -> list[tarfile.TarInfo]:
    stripped: list[tarfile.TarInfo] = []
    for member in members:
        name = _strip(member.name, strip_components)
        if name is None:
            continue
        renamed = copy.copy(member)
        renamed.name = name
        if member.islnk():
            # Hard link targets are archive paths and get the same treatment.
            link = _strip(member.linkname, strip_components)
            if link is None:
                continue
            renamed.linkname = link
        stripped.append(renamed)
    return stripped


def _strip(name: str, count: int) -> str | None:
    parts = [part for part in PurePosixPath(name).parts if part not in ("", ".", "/")]
    if len(parts) <= count:
        return None
    return "/".join(parts[count:])
