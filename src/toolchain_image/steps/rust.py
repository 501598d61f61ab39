"""Rust toolchain installation scoped to the unprivileged user."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlparse

from toolchain_image.errors import BuildError, ValidationError
from toolchain_image.fetch import fetch
from toolchain_image.policy import ensure_installer_pinned
from toolchain_image.steps.base import StepContext, require_success

INSTALLER_NAME = "rustup.sh"
INSTALLER_MODE = 0o755
INSTALLER_SCHEMES = ("https", "file")


@dataclass(frozen=True, slots=True)
class InstallRustToolchainStep:
    name: str = "install-rust-toolchain"

    def run(self, context: StepContext) -> dict[str, str]:
        recipe = context.recipe
        user = context.user
        if user is None:
            raise ValidationError(
                "The Rust toolchain must be installed for an unprivileged user.",
                hint="provision-user must run before install-rust-toolchain.",
                context={"operation": "install_rust_toolchain"},
            )
        if urlparse(recipe.rustup_url).scheme not in INSTALLER_SCHEMES:
            raise ValidationError(
                "The toolchain installer must be fetched over https.",
                context={"operation": "install_rust_toolchain", "url": recipe.rustup_url},
            )
        ensure_installer_pinned(
            policy=context.policy,
            url=recipe.rustup_url,
            sha256=recipe.rustup_sha256,
        )

        installer = f"{user.home}/{INSTALLER_NAME}"
        installer_path = context.root.host_path(installer)
        fetched = fetch(
            recipe.rustup_url,
            destination=installer_path,
            sha256=recipe.rustup_sha256,
            policy=context.policy,
            operation="fetch_rustup",
        )
        installer_path.chmod(INSTALLER_MODE)

        cargo = f"{user.home}/.cargo/bin/cargo"
        rustup = f"{user.home}/.cargo/bin/rustup"
        commands = [(installer, "-y")]
        if recipe.cargo_tools:
            commands.append((cargo, "install", "--locked", *recipe.cargo_tools))
        if recipe.rust_components:
            commands.append((rustup, "component", "add", *recipe.rust_components))
        try:
            for argv in commands:
                result = context.run(*argv, cwd=user.home)
                require_success(
                    result,
                    error=BuildError,
                    message="Rust toolchain installation failed.",
                    operation="install_rust_toolchain",
                )
        finally:
            installer_path.unlink(missing_ok=True)

        return {
            "installer_sha256": fetched.sha256,
            "installer_verified": "yes" if fetched.verified else "no",
            "components": " ".join(recipe.rust_components),
            "cargo_tools": " ".join(recipe.cargo_tools),
        }
