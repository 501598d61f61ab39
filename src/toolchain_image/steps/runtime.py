"""Runtime contract declaration: environment, volumes, user, and entrypoint."""

from __future__ import annotations

import json
from dataclasses import dataclass, replace

from toolchain_image.errors import ValidationError
from toolchain_image.models import RUNTIME_CONTRACT_PATH
from toolchain_image.steps.base import StepContext


@dataclass(frozen=True, slots=True)
class DeclareRuntimeStep:
    name: str = "declare-runtime"

    def run(self, context: StepContext) -> dict[str, str]:
        contract = replace(
            context.recipe.runtime,
            user=context.user.name if context.user is not None else None,
            workdir=context.workdir,
        )
        entry = contract.entrypoint[0]
        if not context.root.host_path(entry).is_file():
            raise ValidationError(
                "Entrypoint script is not present in the image.",
                hint="inject-scripts must copy the entrypoint into the image root.",
                context={"operation": "declare_runtime", "entrypoint": entry},
            )
        for volume in contract.volumes:
            context.root.host_path(volume).mkdir(parents=True, exist_ok=True)

        target = context.root.host_path(RUNTIME_CONTRACT_PATH)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(
            json.dumps(contract.to_dict(), indent=2, sort_keys=True) + "\n",
            encoding="utf-8",
        )
        return {
            "contract": RUNTIME_CONTRACT_PATH,
            "entrypoint": " ".join(contract.entrypoint),
            "env": ",".join(f"{k}={v}" for k, v in sorted(contract.env.items())),
        }
