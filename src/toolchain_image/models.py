"""Core typed dataclasses for build parameters, commands, and pipeline results."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal
from urllib.parse import urlparse

from .errors import PipelineError, ToolchainImageError, ValidationError

StepStatus = Literal["ok", "failed", "skipped"]

BASE_IMAGE = "ubuntu:24.04"

DEFAULT_PACKAGES = (
    "ca-certificates",
    "build-essential",
    "cmake",
    "git",
    "wget",
    "curl",
    "jq",
    "unzip",
    "clang",
    "sudo",
    "golang",
    "zlib1g-dev",
    "libcurl4-openssl-dev",
    "libarchive-dev",
    "liblzma-dev",
    "xz-utils",
)

CMAKE_BUILD_SCRIPT = "cmake_build.sh"
RS_BUILD_SCRIPT = "aws_lc_rs_build.sh"
ENTRY_SCRIPT = "entry.sh"
DEFAULT_SCRIPTS = (CMAKE_BUILD_SCRIPT, RS_BUILD_SCRIPT, ENTRY_SCRIPT)

CMAKE_WORKDIR = "/cmake"
CMAKE_ARCHIVE = "/cmake/source.tar.gz"
CMAKE_SOURCE_DIR = "/cmake/source"

SOURCE_MOUNT = "/awslc"
CMAKE_BUILDER_FLAG = "AWS_LC_SYS_CMAKE_BUILDER"

DEFAULT_USER = "docker"
RUSTUP_URL = "https://sh.rustup.rs"
DEFAULT_RUST_COMPONENTS = ("rustfmt", "clippy")
DEFAULT_CARGO_TOOLS = ("bindgen-cli",)

RUNTIME_CONTRACT_PATH = "/.toolchain-image/runtime.json"

SHA256_PATTERN = re.compile(r"^[0-9a-f]{64}$")
ALLOWED_URL_SCHEMES = ("https", "http", "file")


@dataclass(frozen=True, slots=True)
class BuildParameters:
    """The three build-time parameters that pin one CMake version."""

    cmake_version: str
    cmake_download_url: str
    cmake_sha256: str

    def __post_init__(self) -> None:
        if not self.cmake_version:
            raise ValidationError("CMAKE_VERSION must be non-empty.")
        if not self.cmake_download_url:
            raise ValidationError("CMAKE_DOWNLOAD_URL must be non-empty.")
        scheme = urlparse(self.cmake_download_url).scheme
        if scheme not in ALLOWED_URL_SCHEMES:
            raise ValidationError(
                "Unsupported CMAKE_DOWNLOAD_URL scheme.",
                hint=f"Use one of: {', '.join(ALLOWED_URL_SCHEMES)}.",
                context={"url": self.cmake_download_url, "scheme": scheme},
            )
        digest = self.cmake_sha256.strip().lower()
        if not SHA256_PATTERN.fullmatch(digest):
            raise ValidationError(
                "CMAKE_SHA256 must be a 64-character hex digest.",
                context={"sha256": self.cmake_sha256},
            )
        object.__setattr__(self, "cmake_sha256", digest)

    def as_build_args(self) -> dict[str, str]:
        return {
            "CMAKE_VERSION": self.cmake_version,
            "CMAKE_DOWNLOAD_URL": self.cmake_download_url,
            "CMAKE_SHA256": self.cmake_sha256,
        }


@dataclass(frozen=True, slots=True)
class ImageRoot:
    """Maps absolute in-image paths onto the host directory holding the image tree."""

    path: Path = field(default_factory=lambda: Path("/"))

    def host_path(self, image_path: str) -> Path:
        if not image_path.startswith("/"):
            raise ValidationError(
                "Image paths must be absolute.",
                context={"path": image_path},
            )
        return self.path / image_path.lstrip("/")


@dataclass(frozen=True, slots=True)
class UserSpec:
    name: str
    home: str

    @classmethod
    def default_for(cls, name: str) -> UserSpec:
        return cls(name=name, home=f"/home/{name}")


@dataclass(frozen=True, slots=True)
class CommandSpec:
    argv: tuple[str, ...]
    env: Mapping[str, str] = field(default_factory=dict)
    cwd: str | None = None
    user: str | None = None
    timeout: float | None = None

    def render(self) -> str:
        return " ".join(self.argv)


@dataclass(frozen=True, slots=True)
class CommandResult:
    command: CommandSpec
    returncode: int
    output: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out


@dataclass(frozen=True, slots=True)
class RuntimeContract:
    """What every container started from the image observes."""

    env: Mapping[str, str] = field(default_factory=lambda: {CMAKE_BUILDER_FLAG: "1"})
    entrypoint: tuple[str, ...] = (f"/{ENTRY_SCRIPT}",)
    volumes: tuple[str, ...] = (SOURCE_MOUNT,)
    user: str | None = DEFAULT_USER
    workdir: str = CMAKE_SOURCE_DIR

    def to_dict(self) -> dict[str, Any]:
        return {
            "env": dict(sorted(self.env.items())),
            "entrypoint": list(self.entrypoint),
            "volumes": list(self.volumes),
            "user": self.user,
            "workdir": self.workdir,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> RuntimeContract:
        env = payload.get("env", {})
        entrypoint = payload.get("entrypoint", [])
        volumes = payload.get("volumes", [])
        if not isinstance(env, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in env.items()
        ):
            raise ValidationError("Runtime contract `env` must map strings to strings.")
        if not isinstance(entrypoint, list) or not entrypoint:
            raise ValidationError("Runtime contract `entrypoint` must be a non-empty list.")
        if not isinstance(volumes, list):
            raise ValidationError("Runtime contract `volumes` must be a list.")
        user = payload.get("user")
        workdir = payload.get("workdir", CMAKE_SOURCE_DIR)
        return cls(
            env=dict(env),
            entrypoint=tuple(str(item) for item in entrypoint),
            volumes=tuple(str(item) for item in volumes),
            user=str(user) if user is not None else None,
            workdir=str(workdir),
        )


@dataclass(slots=True)
class Recipe:
    """Declarative description of the toolchain image."""

    params: BuildParameters
    base: str = BASE_IMAGE
    packages: list[str] = field(default_factory=lambda: list(DEFAULT_PACKAGES))
    scripts: list[str] = field(default_factory=lambda: list(DEFAULT_SCRIPTS))
    user: str = DEFAULT_USER
    rustup_url: str = RUSTUP_URL
    rustup_sha256: str | None = None
    rust_components: list[str] = field(default_factory=lambda: list(DEFAULT_RUST_COMPONENTS))
    cargo_tools: list[str] = field(default_factory=lambda: list(DEFAULT_CARGO_TOOLS))
    runtime: RuntimeContract = field(default_factory=RuntimeContract)


@dataclass(frozen=True, slots=True)
class StepResult:
    name: str
    status: StepStatus
    duration_seconds: float = 0.0
    detail: Mapping[str, str] = field(default_factory=dict)
    error: dict[str, object] | None = None


@dataclass(slots=True)
class PipelineResult:
    steps: list[StepResult] = field(default_factory=list)
    failed_step: str | None = None
    report_path: Path | None = None
    error: ToolchainImageError | None = field(default=None, repr=False)

    @property
    def ok(self) -> bool:
        return self.failed_step is None

    def step(self, name: str) -> StepResult | None:
        for result in self.steps:
            if result.name == name:
                return result
        return None

    def executed(self) -> list[str]:
        return [result.name for result in self.steps if result.status != "skipped"]

    def raise_for_failure(self) -> None:
        if self.failed_step is None:
            return
        raise PipelineError(
            f"Step `{self.failed_step}` failed.",
            step=self.failed_step,
            hint="Image construction is not resumable; fix the cause and rebuild.",
        ) from self.error
