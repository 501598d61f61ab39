"""Entrypoint contract and the configuration handed to downstream builds."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from .errors import ValidationError
from .models import (
    CMAKE_BUILDER_FLAG,
    RUNTIME_CONTRACT_PATH,
    SOURCE_MOUNT,
    CommandSpec,
    ImageRoot,
    RuntimeContract,
    UserSpec,
)
from .runners.base import CommandRunner

TRUTHY = ("1", "true", "yes", "on")


@dataclass(frozen=True, slots=True)
class OrchestrationConfig:
    """Explicit form of the settings the entrypoint's build logic branches on.

    ``cmake_builder`` mirrors ``AWS_LC_SYS_CMAKE_BUILDER``: when set, the
    bindings are built with the CMake builder rather than the default one.
    """

    cmake_builder: bool = True
    source_mount: str = SOURCE_MOUNT

    @classmethod
    def from_contract(cls, contract: RuntimeContract) -> OrchestrationConfig:
        return cls(
            cmake_builder=_truthy(contract.env.get(CMAKE_BUILDER_FLAG)),
            source_mount=contract.volumes[0] if contract.volumes else SOURCE_MOUNT,
        )

    @classmethod
    def from_environment(cls, env: Mapping[str, str]) -> OrchestrationConfig:
        return cls(cmake_builder=_truthy(env.get(CMAKE_BUILDER_FLAG)))

    def to_environment(self) -> dict[str, str]:
        return {CMAKE_BUILDER_FLAG: "1"} if self.cmake_builder else {}


def load_runtime_contract(root: ImageRoot) -> RuntimeContract:
    path = root.host_path(RUNTIME_CONTRACT_PATH)
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ValidationError(
            "Runtime contract does not exist.",
            hint="Build the image before running its entrypoint.",
            context={"path": str(path)},
        ) from exc
    except json.JSONDecodeError as exc:
        raise ValidationError(
            "Runtime contract is not valid JSON.",
            context={"path": str(path)},
        ) from exc
    if not isinstance(payload, dict):
        raise ValidationError(
            "Runtime contract has invalid structure.",
            context={"path": str(path)},
        )
    return RuntimeContract.from_dict(payload)


def entrypoint_command(
    contract: RuntimeContract,
    *,
    config: OrchestrationConfig | None = None,
) -> CommandSpec:
    """Build the one command a container start runs: the entrypoint, with no arguments."""
    env: dict[str, str] = {}
    if contract.user is not None:
        user = UserSpec.default_for(contract.user)
        env.update({"HOME": user.home, "USER": user.name})
    env.update(contract.env)
    if config is not None:
        env.pop(CMAKE_BUILDER_FLAG, None)
        env.update(config.to_environment())
    return CommandSpec(
        argv=tuple(contract.entrypoint),
        env=env,
        cwd=contract.workdir,
        user=contract.user,
    )


def run_entrypoint(
    contract: RuntimeContract,
    runner: CommandRunner,
    *,
    config: OrchestrationConfig | None = None,
) -> int:
    """Run the entrypoint and return its exit code as the container's exit code."""
    result = runner.run(entrypoint_command(contract, config=config))
    return result.returncode


def missing_mounts(contract: RuntimeContract, root: ImageRoot) -> list[str]:
    """Return declared volumes whose mount point is absent or empty under ``root``."""
    missing: list[str] = []
    for volume in contract.volumes:
        path = root.host_path(volume)
        if not path.is_dir() or not any(path.iterdir()):
            missing.append(volume)
    return missing


def _truthy(value: str | None) -> bool:
    return value is not None and value.strip().lower() in TRUTHY


__all__ = [
    "OrchestrationConfig",
    "entrypoint_command",
    "load_runtime_contract",
    "missing_mounts",
    "run_entrypoint",
]
