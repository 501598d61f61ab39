"""Core image object for toolchain recipe declarations."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Self

from .collaborators import Collaborator
from .compiler import emit_dockerfile
from .errors import ValidationError
from .models import SHA256_PATTERN, BuildParameters, ImageRoot, PipelineResult, Recipe
from .observability import StructuredLogger
from .pipeline import Pipeline
from .policy import Policy
from .runners import CommandRunner, InProcessRunner, LocalRunner
from .steps import StepContext, default_steps


@dataclass(slots=True)
class ToolchainImage:
    """Represents the toolchain image recipe for one pinned CMake version."""

    params: BuildParameters
    policy: Policy = field(default_factory=Policy)
    logger: StructuredLogger = field(default_factory=StructuredLogger)
    _recipe: Recipe = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._recipe = Recipe(params=self.params)

    @property
    def recipe(self) -> Recipe:
        return self._recipe

    def set_policy(self, policy: Policy) -> Self:
        self.policy = policy
        return self

    def install(self, *packages: str) -> Self:
        if not packages:
            raise ValidationError("install() requires at least one package.")
        for package in packages:
            if not package:
                raise ValidationError("Package names must be non-empty.")
            if package not in self._recipe.packages:
                self._recipe.packages.append(package)
        return self

    def script(self, *names: str) -> Self:
        for name in names:
            if not name or "/" in name:
                raise ValidationError(
                    "Script names must be bare file names.",
                    context={"name": name},
                )
            if name not in self._recipe.scripts:
                self._recipe.scripts.append(name)
        return self

    def user(self, name: str) -> Self:
        if not name or name == "root":
            raise ValidationError("user() requires an unprivileged user name.")
        self._recipe.user = name
        self._recipe.runtime = replace(self._recipe.runtime, user=name)
        return self

    def rustup(self, *, url: str | None = None, sha256: str | None = None) -> Self:
        if url is not None:
            self._recipe.rustup_url = url
        if sha256 is not None:
            digest = sha256.strip().lower()
            if not SHA256_PATTERN.fullmatch(digest):
                raise ValidationError("rustup sha256 must be a 64-character hex digest.")
            self._recipe.rustup_sha256 = digest
        return self

    def rust_component(self, *components: str) -> Self:
        for component in components:
            if component not in self._recipe.rust_components:
                self._recipe.rust_components.append(component)
        return self

    def cargo_install(self, *tools: str) -> Self:
        for tool in tools:
            if tool not in self._recipe.cargo_tools:
                self._recipe.cargo_tools.append(tool)
        return self

    def env(self, name: str, value: str) -> Self:
        if not name or "=" in name:
            raise ValidationError(
                "Environment variable names must be non-empty.",
                context={"name": name},
            )
        merged = {**self._recipe.runtime.env, name: value}
        self._recipe.runtime = replace(self._recipe.runtime, env=merged)
        return self

    def volume(self, path: str) -> Self:
        if not path.startswith("/"):
            raise ValidationError("Volume paths must be absolute.", context={"path": path})
        if path not in self._recipe.runtime.volumes:
            volumes = (*self._recipe.runtime.volumes, path)
            self._recipe.runtime = replace(self._recipe.runtime, volumes=volumes)
        return self

    def pipeline(self) -> Pipeline:
        return Pipeline(steps=default_steps())

    def build(
        self,
        root: str | Path = "/",
        *,
        context_dir: str | Path = ".",
        runner: CommandRunner | None = None,
        collaborators: Mapping[str, Collaborator] | None = None,
        report_path: str | Path | None = None,
        check: bool = True,
        dry_run: bool = False,
    ) -> PipelineResult:
        """Provision the image tree at ``root`` by running every step in order.

        ``dry_run`` records commands with an in-process runner and keeps
        existing files under ``root``. Fetch and extraction still happen.
        """
        if dry_run and runner is None:
            runner = InProcessRunner()
        context = StepContext(
            recipe=self._recipe,
            root=ImageRoot(Path(root)),
            runner=runner or LocalRunner(),
            policy=self.policy,
            logger=self.logger,
            context_dir=Path(context_dir),
            collaborators=dict(collaborators or {}),
            dry_run=dry_run,
        )
        result = self.pipeline().run(context, report_path=report_path)
        if check:
            result.raise_for_failure()
        return result

    def emit_dockerfile(self, path: str | Path, *, pin_parameters: bool = False) -> Path:
        return emit_dockerfile(
            self._recipe,
            Path(path),
            pin_parameters=pin_parameters,
            policy=self.policy,
        )
