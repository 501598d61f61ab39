"""Build parameter resolution from flags, the environment, and version matrices."""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .errors import ValidationError
from .models import BuildParameters

ENV_VERSION = "CMAKE_VERSION"
ENV_URL = "CMAKE_DOWNLOAD_URL"
ENV_SHA256 = "CMAKE_SHA256"
MATRIX_VERSION = 1


def resolve_parameters(
    *,
    version: str | None = None,
    url: str | None = None,
    sha256: str | None = None,
    env: Mapping[str, str] | None = None,
) -> BuildParameters:
    """Combine explicit values with ``CMAKE_*`` environment fallbacks."""
    source = os.environ if env is None else env
    resolved = {
        ENV_VERSION: version or source.get(ENV_VERSION, ""),
        ENV_URL: url or source.get(ENV_URL, ""),
        ENV_SHA256: sha256 or source.get(ENV_SHA256, ""),
    }
    missing = [name for name, value in resolved.items() if not value]
    if missing:
        raise ValidationError(
            "Missing build parameters.",
            hint="Pass them as flags or export them in the environment.",
            context={"missing": ", ".join(missing)},
        )
    return BuildParameters(
        cmake_version=resolved[ENV_VERSION],
        cmake_download_url=resolved[ENV_URL],
        cmake_sha256=resolved[ENV_SHA256],
    )


@dataclass(frozen=True, slots=True)
class VersionMatrix:
    """The set of CMake versions the toolchain image is built against."""

    entries: tuple[BuildParameters, ...]

    def versions(self) -> list[str]:
        return [entry.cmake_version for entry in self.entries]

    def select(self, version: str) -> BuildParameters:
        for entry in self.entries:
            if entry.cmake_version == version:
                return entry
        raise ValidationError(
            "CMake version is not in the matrix.",
            hint=f"Known versions: {', '.join(self.versions())}.",
            context={"version": version},
        )


def parse_matrix(raw: str) -> VersionMatrix:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValidationError("Invalid version matrix JSON.", hint=str(exc)) from exc
    if not isinstance(payload, dict):
        raise ValidationError("Invalid version matrix payload type.")

    version = payload.get("version")
    if version != MATRIX_VERSION:
        raise ValidationError(
            "Unsupported version matrix format.",
            context={"version": str(version), "supported": str(MATRIX_VERSION)},
        )
    raw_entries = payload.get("cmake")
    if not isinstance(raw_entries, list) or not raw_entries:
        raise ValidationError("Version matrix `cmake` must be a non-empty list.")

    entries = tuple(_parse_entry(item, index) for index, item in enumerate(raw_entries))
    seen: set[str] = set()
    for entry in entries:
        if entry.cmake_version in seen:
            raise ValidationError(
                "Duplicate CMake version in matrix.",
                context={"version": entry.cmake_version},
            )
        seen.add(entry.cmake_version)
    return VersionMatrix(entries=entries)


def load_matrix(path: str | Path) -> VersionMatrix:
    matrix_path = Path(path)
    try:
        raw = matrix_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ValidationError(
            "Version matrix does not exist.",
            context={"path": str(matrix_path)},
        ) from exc
    return parse_matrix(raw)


def _parse_entry(item: Any, index: int) -> BuildParameters:
    if not isinstance(item, dict):
        raise ValidationError(f"Version matrix entry {index} must be an object.")
    return BuildParameters(
        cmake_version=_required_str(item, "version", index),
        cmake_download_url=_required_str(item, "url", index),
        cmake_sha256=_required_str(item, "sha256", index),
    )


def _required_str(payload: Mapping[str, Any], key: str, index: int) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise ValidationError(f"Version matrix entry {index} is missing `{key}`.")
    return value
