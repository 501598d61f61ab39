"""Policy configuration and enforcement helpers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal
from urllib.parse import urlparse

from .errors import PolicyError, ValidationError

NetworkMode = Literal["online", "offline"]


@dataclass(frozen=True, slots=True)
class Policy:
    network_mode: NetworkMode = "online"
    require_installer_integrity: bool = False
    fetch_timeout: float = 300.0
    fetch_attempts: int = 3
    fetch_backoff: float = 2.0

    def __post_init__(self) -> None:
        if self.fetch_attempts < 1:
            raise ValidationError("Policy.fetch_attempts must be at least 1.")
        if self.fetch_timeout <= 0:
            raise ValidationError("Policy.fetch_timeout must be positive.")
        if self.fetch_backoff < 0:
            raise ValidationError("Policy.fetch_backoff must not be negative.")


def ensure_network_allowed(*, policy: Policy, url: str, operation: str) -> None:
    # Local mirrors stay usable offline.
    if urlparse(url).scheme == "file":
        return
    if policy.network_mode == "offline":
        raise PolicyError(
            "Network operations are disabled by policy.",
            hint="Switch policy.network_mode to 'online' or use a file:// mirror.",
            context={"operation": operation, "url": url},
        )


def ensure_installer_pinned(*, policy: Policy, url: str, sha256: str | None) -> None:
    if sha256 or not policy.require_installer_integrity:
        return
    raise PolicyError(
        "Toolchain installer must be pinned by digest under this policy.",
        hint="Pass rustup_sha256 or relax policy.require_installer_integrity.",
        context={"operation": "install_rust_toolchain", "url": url},
    )
