"""Protocol for command execution inside the image being provisioned."""

from __future__ import annotations

from typing import Protocol

from toolchain_image.models import CommandResult, CommandSpec


class CommandRunner(Protocol):
    name: str

    def run(self, command: CommandSpec) -> CommandResult:
        """Run one command to completion and return its exit status and output."""
