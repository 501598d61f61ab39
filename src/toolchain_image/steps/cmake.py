"""Verified acquisition of a CMake source release and its build from source."""

from __future__ import annotations

import re
from dataclasses import dataclass

from toolchain_image.errors import BuildError, ValidationError
from toolchain_image.fetch import extract_archive, fetch
from toolchain_image.models import (
    CMAKE_ARCHIVE,
    CMAKE_BUILD_SCRIPT,
    CMAKE_SOURCE_DIR,
    CMAKE_WORKDIR,
)
from toolchain_image.steps.base import OUTPUT_LIMIT, StepContext, require_success

VERSION_PATTERN = re.compile(r"cmake version (\S+)")


@dataclass(frozen=True, slots=True)
class AcquireCmakeSourceStep:
    name: str = "acquire-cmake-source"

    def run(self, context: StepContext) -> dict[str, str]:
        params = context.recipe.params
        context.root.host_path(CMAKE_WORKDIR).mkdir(parents=True, exist_ok=True)
        context.workdir = CMAKE_WORKDIR

        # fetch() only moves the archive into place once the digest matches,
        # so a mismatch raises before anything is extracted.
        result = fetch(
            params.cmake_download_url,
            destination=context.root.host_path(CMAKE_ARCHIVE),
            sha256=params.cmake_sha256,
            policy=context.policy,
            operation="acquire_cmake_source",
        )
        members = extract_archive(
            result.path,
            context.root.host_path(CMAKE_SOURCE_DIR),
            strip_components=1,
        )
        if not members:
            raise ValidationError(
                "CMake archive is empty once its top-level directory is stripped.",
                context={"operation": "acquire_cmake_source", "url": params.cmake_download_url},
            )
        context.facts["cmake_archive_sha256"] = result.sha256
        return {
            "url": result.url,
            "sha256": result.sha256,
            "size": str(result.size),
            "attempts": str(result.attempts),
            "members": str(len(members)),
        }


@dataclass(frozen=True, slots=True)
class BuildCmakeStep:
    name: str = "build-cmake"

    def run(self, context: StepContext) -> dict[str, str]:
        params = context.recipe.params
        if not context.root.host_path(CMAKE_SOURCE_DIR).is_dir():
            raise ValidationError(
                "CMake source tree is missing.",
                hint="acquire-cmake-source must run before build-cmake.",
                context={"operation": "build_cmake", "path": CMAKE_SOURCE_DIR},
            )
        context.workdir = CMAKE_SOURCE_DIR

        collaborator = context.collaborator(CMAKE_BUILD_SCRIPT)
        outcome = collaborator.execute(cwd=CMAKE_SOURCE_DIR, env=params.as_build_args())
        if not outcome.ok:
            raise BuildError(
                "CMake build script failed.",
                context={
                    "operation": "build_cmake",
                    "script": outcome.name,
                    "returncode": str(outcome.returncode),
                    "output": outcome.output[-OUTPUT_LIMIT:] if outcome.output else "",
                },
            )

        probe = context.run("cmake", "--version")
        require_success(
            probe,
            error=BuildError,
            message="CMake is not invocable after the build script completed.",
            operation="build_cmake",
            hint=f"{CMAKE_BUILD_SCRIPT} must install cmake onto the search path.",
        )
        installed = _parse_version(probe.output)
        if installed is not None and installed != params.cmake_version:
            context.logger.log(
                operation="cmake_version_check",
                step=self.name,
                level="warning",
                message="Installed cmake version differs from CMAKE_VERSION.",
                extra={"expected": params.cmake_version, "installed": installed},
            )
        return {"script": outcome.name, "installed_version": installed or ""}


def _parse_version(output: str) -> str | None:
    match = VERSION_PATTERN.search(output)
    return match.group(1) if match else None
