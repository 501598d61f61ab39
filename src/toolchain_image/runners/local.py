"""Native command execution via subprocess.

Commands run directly on the host, so this runner is meant to execute inside
the filesystem being provisioned (a container build stage whose image root is
``/``). Output is captured with stderr folded into stdout so failing steps can
report it verbatim.
"""

from __future__ import annotations

import os
import pwd
import subprocess
from dataclasses import dataclass

from toolchain_image.errors import ValidationError
from toolchain_image.models import CommandResult, CommandSpec


@dataclass(slots=True)
class LocalRunner:
    name: str = "local"

    def run(self, command: CommandSpec) -> CommandResult:
        if not command.argv:
            raise ValidationError("Cannot run an empty command.")
        env = {**os.environ, **command.env}
        user = command.user if command.user and command.user != _current_user() else None
        try:
            completed = subprocess.run(
                list(command.argv),
                cwd=command.cwd,
                env=env,
                user=user,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=command.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            output = exc.output if isinstance(exc.output, str) else ""
            return CommandResult(command=command, returncode=-1, output=output, timed_out=True)
        except FileNotFoundError as exc:
            return CommandResult(command=command, returncode=127, output=str(exc))
        except OSError as exc:
            # Not executable, unusable cwd, or no permission to switch user.
            return CommandResult(command=command, returncode=126, output=str(exc))
        return CommandResult(
            command=command,
            returncode=completed.returncode,
            output=completed.stdout or "",
        )


def _current_user() -> str:
    return pwd.getpwuid(os.geteuid()).pw_name
