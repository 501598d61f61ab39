"""External build scripts modelled as collaborators with a single operation."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Protocol

from .models import CommandSpec
from .runners.base import CommandRunner


@dataclass(frozen=True, slots=True)
class CollaboratorResult:
    name: str
    returncode: int
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class Collaborator(Protocol):
    """An opaque script the image build delegates to."""

    @property
    def name(self) -> str: ...

    def execute(self, *, cwd: str, env: Mapping[str, str]) -> CollaboratorResult:
        """Run the collaborator in ``cwd`` and report success and captured output."""


@dataclass(frozen=True, slots=True)
class ScriptCollaborator:
    """Runs a script injected into the image root through a command runner."""

    script: str
    runner: CommandRunner
    user: str | None = None
    timeout: float | None = None

    @property
    def name(self) -> str:
        return PurePosixPath(self.script).name

    def execute(self, *, cwd: str, env: Mapping[str, str]) -> CollaboratorResult:
        result = self.runner.run(
            CommandSpec(
                argv=(self.script,),
                env=dict(env),
                cwd=cwd,
                user=self.user,
                timeout=self.timeout,
            )
        )
        return CollaboratorResult(
            name=self.name,
            returncode=result.returncode,
            output=result.output,
        )
