"""In-process command runner for testing and dry runs.

Records every command instead of executing it. Commands whose rendered
argv starts with one of the ``failures`` prefixes return the configured exit
code, which lets tests drive the pipeline down its failure paths.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from toolchain_image.models import CommandResult, CommandSpec


@dataclass(slots=True)
class InProcessRunner:
    """Runner that records commands and succeeds unless told otherwise."""

    name: str = "inprocess"
    failures: Mapping[str, int] = field(default_factory=dict)
    outputs: Mapping[str, str] = field(default_factory=dict)
    commands: list[CommandSpec] = field(default_factory=list)

    def run(self, command: CommandSpec) -> CommandResult:
        self.commands.append(command)
        rendered = command.render()
        returncode = 0
        for prefix, code in self.failures.items():
            if rendered.startswith(prefix):
                returncode = code
                break
        output = ""
        for prefix, text in self.outputs.items():
            if rendered.startswith(prefix):
                output = text
                break
        return CommandResult(command=command, returncode=returncode, output=output)

    def rendered(self) -> list[str]:
        return [command.render() for command in self.commands]
