"""Render a recipe as the equivalent Dockerfile."""

from __future__ import annotations

import json
import re
from pathlib import Path

from toolchain_image.models import (
    CMAKE_BUILD_SCRIPT,
    CMAKE_SOURCE_DIR,
    CMAKE_WORKDIR,
    Recipe,
)
from toolchain_image.policy import Policy

HEADER = "# Generated by toolchain-image. Do not edit by hand."
PLAIN_VALUE = re.compile(r"^[A-Za-z0-9_./:@+-]*$")


def render_dockerfile(
    recipe: Recipe,
    *,
    pin_parameters: bool = False,
    policy: Policy | None = None,
) -> str:
    """Return Dockerfile text whose layers match the pipeline's step order."""
    policy = policy or Policy()
    blocks: list[str] = [HEADER, f"FROM {recipe.base}"]

    build_args = recipe.params.as_build_args()
    blocks.append(
        "\n".join(
            f"ARG {name}={_quote(value)}" if pin_parameters else f"ARG {name}"
            for name, value in build_args.items()
        )
    )
    if recipe.runtime.volumes:
        blocks.append(f"VOLUME {json.dumps(list(recipe.runtime.volumes))}")

    blocks.append(
        _run(
            "apt-get update",
            f"apt-get install -y {' '.join(recipe.packages)}",
            "apt-get autoremove --purge -y",
            "apt-get clean",
            "apt-get autoclean",
            "rm -rf /var/lib/apt/lists/*",
            "rm -rf /tmp/*",
        )
    )
    blocks.append(f"RUN mkdir {CMAKE_WORKDIR}")
    blocks.append("\n".join(f"COPY {script} /" for script in recipe.scripts))
    blocks.append(f"WORKDIR {CMAKE_WORKDIR}")

    retries = policy.fetch_attempts - 1
    timeout = int(policy.fetch_timeout)
    blocks.append(
        _run(
            f"curl -fL --retry {retries} --max-time {timeout} "
            '-o source.tar.gz "${CMAKE_DOWNLOAD_URL}"',
            'echo "${CMAKE_SHA256}  source.tar.gz" | sha256sum -c -',
            "mkdir source",
            "tar -x -f source.tar.gz -v --strip-components=1 -C source",
        )
    )
    blocks.append(f"WORKDIR {CMAKE_SOURCE_DIR}")
    blocks.append(f"RUN /{CMAKE_BUILD_SCRIPT}")
    blocks.append(f"RUN useradd -m {recipe.user}\nUSER {recipe.user}")

    rust_lines = [
        'cd "${HOME}"',
        "git config --global --add safe.directory '*'",
        f"curl --proto '=https' --tlsv1.2 -sSf {recipe.rustup_url} > ./rustup.sh",
    ]
    if recipe.rustup_sha256:
        rust_lines.append(f'echo "{recipe.rustup_sha256}  ./rustup.sh" | sha256sum -c -')
    rust_lines.extend(
        [
            "chmod +x ./rustup.sh",
            "./rustup.sh -y",
            '. "${HOME}/.cargo/env"',
        ]
    )
    if recipe.cargo_tools:
        rust_lines.append(f"cargo install --locked {' '.join(recipe.cargo_tools)}")
    if recipe.rust_components:
        rust_lines.append(f"rustup component add {' '.join(recipe.rust_components)}")
    rust_lines.append("rm ./rustup.sh")
    blocks.append(_run(*rust_lines))

    blocks.append(
        "\n".join(
            f"ENV {name}={_quote(value)}" for name, value in sorted(recipe.runtime.env.items())
        )
    )
    blocks.append(f"ENTRYPOINT {json.dumps(list(recipe.runtime.entrypoint))}")
    return "\n\n".join(block for block in blocks if block) + "\n"


def emit_dockerfile(
    recipe: Recipe,
    destination: Path,
    *,
    pin_parameters: bool = False,
    policy: Policy | None = None,
) -> Path:
    """Write the rendered Dockerfile to ``destination`` (a file or a directory)."""
    target = destination / "Dockerfile" if destination.is_dir() else destination
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(
        render_dockerfile(recipe, pin_parameters=pin_parameters, policy=policy),
        encoding="utf-8",
    )
    return target


def _run(*commands: str) -> str:
    return "RUN " + " && \\\n    ".join(commands)


def _quote(value: str) -> str:
    return value if PLAIN_VALUE.fullmatch(value) and value else json.dumps(value)
