"""System package installation via apt."""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path

from toolchain_image.errors import PackageInstallError, ValidationError
from toolchain_image.steps.base import StepContext, require_success

APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}
CLEARED_DIRS = ("/var/lib/apt/lists", "/tmp")


@dataclass(frozen=True, slots=True)
class InstallPackagesStep:
    name: str = "install-packages"

    def run(self, context: StepContext) -> dict[str, str]:
        packages = context.recipe.packages
        if not packages:
            raise ValidationError("install-packages requires at least one package.")

        commands = (
            ("apt-get", "update"),
            ("apt-get", "install", "-y", *packages),
            ("apt-get", "autoremove", "--purge", "-y"),
            ("apt-get", "clean"),
            ("apt-get", "autoclean"),
        )
        for argv in commands:
            result = context.run(*argv, env=APT_ENV)
            require_success(
                result,
                error=PackageInstallError,
                message="System package installation failed.",
                operation="install_packages",
                hint="Check that every package exists for the base distribution.",
            )

        if context.dry_run:
            context.logger.log(
                operation="clear_caches",
                step=self.name,
                message="Dry run; leaving package caches in place.",
                extra={"paths": list(CLEARED_DIRS)},
            )
        else:
            for image_path in CLEARED_DIRS:
                _clear_directory(context.root.host_path(image_path))
        return {"packages": " ".join(packages)}


def _clear_directory(path: Path) -> None:
    if not path.is_dir():
        return
    for child in path.iterdir():
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child)
        else:
            child.unlink()
