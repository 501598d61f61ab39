"""Unprivileged execution identity."""

from __future__ import annotations

from dataclasses import dataclass

from toolchain_image.errors import BuildError, ValidationError
from toolchain_image.models import UserSpec
from toolchain_image.steps.base import StepContext, require_success


@dataclass(frozen=True, slots=True)
class ProvisionUserStep:
    name: str = "provision-user"

    def run(self, context: StepContext) -> dict[str, str]:
        username = context.recipe.user
        if not username or username == "root":
            raise ValidationError(
                "An unprivileged user name is required.",
                context={"operation": "provision_user", "user": username},
            )

        created = context.run("useradd", "-m", username)
        require_success(
            created,
            error=BuildError,
            message="Unable to create the build user.",
            operation="provision_user",
        )

        user = UserSpec.default_for(username)
        context.user = user
        # Mounted source trees belong to whoever runs the container.
        trusted = context.run(
            "git", "config", "--global", "--add", "safe.directory", "*", cwd=user.home
        )
        require_success(
            trusted,
            error=BuildError,
            message="Unable to configure git safe.directory for the build user.",
            operation="provision_user",
        )
        return {"user": user.name, "home": user.home}
