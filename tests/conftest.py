"""Shared test fixtures."""

from __future__ import annotations

import hashlib
import io
import tarfile
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from toolchain_image import Policy, ToolchainImage
from toolchain_image.collaborators import CollaboratorResult
from toolchain_image.models import DEFAULT_SCRIPTS, BuildParameters
from toolchain_image.runners import InProcessRunner

SOURCE_FILES = {
    "CMakeLists.txt": b"cmake_minimum_required(VERSION 3.5)\n",
    "bootstrap": b"#!/bin/sh\necho bootstrap\n",
    "Source/cmake.cxx": b"int main() { return 0; }\n",
}


@dataclass(slots=True)
class FakeCollaborator:
    """Collaborator double that records calls and returns a fixed exit code."""

    name: str
    returncode: int = 0
    output: str = ""
    calls: list[tuple[str, dict[str, str]]] = field(default_factory=list)

    def execute(self, *, cwd: str, env: Mapping[str, str]) -> CollaboratorResult:
        self.calls.append((cwd, dict(env)))
        return CollaboratorResult(name=self.name, returncode=self.returncode, output=self.output)


def write_tarball(path: Path, files: Mapping[str, bytes], *, top: str = "cmake-3.31.6") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(path, mode="w:gz") as tar:
        directory = tarfile.TarInfo(top)
        directory.type = tarfile.DIRTYPE
        directory.mode = 0o755
        directory.mtime = 1_700_000_000
        tar.addfile(directory)
        for name, payload in sorted(files.items()):
            info = tarfile.TarInfo(f"{top}/{name}")
            info.size = len(payload)
            info.mode = 0o755 if name == "bootstrap" else 0o644
            info.mtime = 1_700_000_000
            tar.addfile(info, io.BytesIO(payload))
    return path


@pytest.fixture
def cmake_archive(tmp_path: Path) -> Path:
    return write_tarball(tmp_path / "mirror" / "cmake-3.31.6.tar.gz", SOURCE_FILES)


@pytest.fixture
def params(cmake_archive: Path) -> BuildParameters:
    return BuildParameters(
        cmake_version="3.31.6",
        cmake_download_url=cmake_archive.as_uri(),
        cmake_sha256=hashlib.sha256(cmake_archive.read_bytes()).hexdigest(),
    )


@pytest.fixture
def rustup_installer(tmp_path: Path) -> Path:
    installer = tmp_path / "mirror" / "rustup.sh"
    installer.parent.mkdir(parents=True, exist_ok=True)
    installer.write_text("#!/bin/sh\necho installing rust\n", encoding="utf-8")
    return installer


@pytest.fixture
def build_context(tmp_path: Path) -> Path:
    context = tmp_path / "context"
    context.mkdir()
    for script in DEFAULT_SCRIPTS:
        (context / script).write_text(f"#!/bin/sh\necho {script}\n", encoding="utf-8")
    return context


@pytest.fixture
def runner() -> InProcessRunner:
    """Provide an in-process runner for tests that drive the pipeline."""
    return InProcessRunner()


@pytest.fixture
def fake_collaborator() -> Callable[..., FakeCollaborator]:
    def factory(name: str = "cmake_build.sh", **kwargs: object) -> FakeCollaborator:
        return FakeCollaborator(name=name, **kwargs)  # type: ignore[arg-type]

    return factory


@pytest.fixture
def image(params: BuildParameters, rustup_installer: Path) -> ToolchainImage:
    policy = Policy(fetch_attempts=1)
    return ToolchainImage(params=params, policy=policy).rustup(url=rustup_installer.as_uri())
