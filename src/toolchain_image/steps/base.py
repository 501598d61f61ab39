"""Step protocol and the shared context threaded through the pipeline."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from toolchain_image.collaborators import Collaborator, ScriptCollaborator
from toolchain_image.errors import ToolchainImageError
from toolchain_image.models import CommandResult, CommandSpec, ImageRoot, Recipe, UserSpec
from toolchain_image.observability import StructuredLogger
from toolchain_image.policy import Policy
from toolchain_image.runners.base import CommandRunner

OUTPUT_LIMIT = 2000


@dataclass(slots=True)
class StepContext:
    """Mutable build state shared by steps, analogous to a layer-by-layer image build.

    ``user`` and ``workdir`` play the role of ``USER`` and ``WORKDIR``: once a
    step sets them, every later command runs with that identity and directory.
    With ``dry_run`` set, steps leave existing files under the root untouched.
    """

    recipe: Recipe
    root: ImageRoot
    runner: CommandRunner
    policy: Policy = field(default_factory=Policy)
    logger: StructuredLogger = field(default_factory=StructuredLogger)
    context_dir: Path = field(default_factory=lambda: Path("."))
    collaborators: Mapping[str, Collaborator] = field(default_factory=dict)
    user: UserSpec | None = None
    workdir: str = "/"
    dry_run: bool = False
    current_step: str | None = None
    facts: dict[str, str] = field(default_factory=dict)

    def command(
        self,
        *argv: str,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
        timeout: float | None = None,
    ) -> CommandSpec:
        merged: dict[str, str] = {}
        if self.user is not None:
            merged.update({"HOME": self.user.home, "USER": self.user.name})
        merged.update(env or {})
        return CommandSpec(
            argv=tuple(argv),
            env=merged,
            cwd=cwd or self.workdir,
            user=self.user.name if self.user is not None else None,
            timeout=timeout,
        )

    def run(
        self,
        *argv: str,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
    ) -> CommandResult:
        command = self.command(*argv, env=env, cwd=cwd)
        result = self.runner.run(command)
        self.logger.log(
            operation="command",
            step=self.current_step,
            message=command.render(),
            level="info" if result.ok else "error",
            extra={"returncode": result.returncode, "user": command.user, "cwd": command.cwd},
        )
        return result

    def collaborator(self, script: str) -> Collaborator:
        existing = self.collaborators.get(script)
        if existing is not None:
            return existing
        return ScriptCollaborator(
            script=f"/{script}",
            runner=self.runner,
            user=self.user.name if self.user is not None else None,
        )


class Step(Protocol):
    name: str

    def run(self, context: StepContext) -> dict[str, str]:
        """Apply this step to the image and return a summary of what it did."""


def require_success(
    result: CommandResult,
    *,
    error: type[ToolchainImageError],
    message: str,
    operation: str,
    hint: str | None = None,
) -> None:
    """Raise ``error`` carrying the failing command's output if ``result`` failed."""
    if result.ok:
        return
    raise error(
        message,
        hint=hint,
        context={
            "operation": operation,
            "command": result.command.render(),
            "returncode": str(result.returncode),
            "timed_out": "yes" if result.timed_out else "",
            "output": result.output[-OUTPUT_LIMIT:] if result.output else "",
        },
    )
