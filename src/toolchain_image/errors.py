"""Typed error model with stable, machine-readable error codes."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum


class ErrorCode(StrEnum):
    """Stable error identifiers used across pipeline steps and the CLI."""

    VALIDATION = "E_VALIDATION"
    INTEGRITY = "E_INTEGRITY"
    ACQUISITION = "E_ACQUISITION"
    PACKAGE_INSTALL = "E_PACKAGE_INSTALL"
    BUILD = "E_BUILD"
    POLICY = "E_POLICY"
    PIPELINE = "E_PIPELINE"


class ToolchainImageError(Exception):
    """Base error class that carries code, optional hint, and context."""

    code: str
    hint: str | None
    context: Mapping[str, str]

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code.value
        self.hint = hint
        self.context = dict(context or {})

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        if self.context:
            for k, v in self.context.items():
                if v:
                    parts.append(f"  {k}: {v}")
        return "\n".join(parts)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "message": str(self),
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class ValidationError(ToolchainImageError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.VALIDATION, hint=hint, context=context)


class IntegrityError(ToolchainImageError):
    """Downloaded content does not match its pinned digest. Never retried."""

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.INTEGRITY, hint=hint, context=context)


class AcquisitionError(ToolchainImageError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.ACQUISITION, hint=hint, context=context)


class PackageInstallError(ToolchainImageError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.PACKAGE_INSTALL, hint=hint, context=context)


class BuildError(ToolchainImageError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.BUILD, hint=hint, context=context)


class PolicyError(ToolchainImageError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.POLICY, hint=hint, context=context)


class PipelineError(ToolchainImageError):
    """A named pipeline step failed; the step's own error is the ``__cause__``."""

    step: str

    def __init__(
        self,
        message: str,
        *,
        step: str,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        merged = {"step": step, **dict(context or {})}
        super().__init__(message, code=ErrorCode.PIPELINE, hint=hint, context=merged)
        self.step = step


__all__ = [
    "AcquisitionError",
    "BuildError",
    "ErrorCode",
    "IntegrityError",
    "PackageInstallError",
    "PipelineError",
    "PolicyError",
    "ToolchainImageError",
    "ValidationError",
]
