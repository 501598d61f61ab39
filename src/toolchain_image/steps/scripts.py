"""Injection of the build and entrypoint scripts into the image root."""

from __future__ import annotations

import shutil
from dataclasses import dataclass

from toolchain_image.errors import ValidationError
from toolchain_image.fetch import sha256_file
from toolchain_image.steps.base import StepContext

SCRIPT_MODE = 0o755


@dataclass(frozen=True, slots=True)
class InjectScriptsStep:
    name: str = "inject-scripts"

    def run(self, context: StepContext) -> dict[str, str]:
        detail: dict[str, str] = {}
        for script in context.recipe.scripts:
            source = context.context_dir / script
            if not source.is_file():
                raise ValidationError(
                    "Build context is missing a required script.",
                    hint="Place the script next to the recipe or pass --context.",
                    context={"operation": "inject_scripts", "script": script, "path": str(source)},
                )
            target = context.root.host_path(f"/{script}")
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, target)
            target.chmod(SCRIPT_MODE)
            detail[script] = sha256_file(target)
        return detail
