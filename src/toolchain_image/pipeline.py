"""Linear, fail-fast driver over an ordered list of named steps."""

from __future__ import annotations

import json
import time
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from .errors import ToolchainImageError, ValidationError
from .models import PipelineResult, StepResult
from .steps import Step, StepContext


@dataclass(slots=True)
class Pipeline:
    steps: Sequence[Step]

    def __post_init__(self) -> None:
        names = self.names()
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValidationError(
                "Pipeline step names must be unique.",
                context={"duplicates": ", ".join(duplicates)},
            )

    def names(self) -> list[str]:
        return [step.name for step in self.steps]

    def run(self, context: StepContext, *, report_path: str | Path | None = None) -> PipelineResult:
        """Run every step in order, stopping at the first failure.

        Steps after a failure are recorded as ``skipped`` and never invoked.
        Errors outside the typed hierarchy propagate unchanged.
        """
        logger = context.logger
        result = PipelineResult()
        for index, step in enumerate(self.steps):
            context.current_step = step.name
            logger.log(operation="step_start", step=step.name, message="Starting step.")
            started = time.monotonic()
            try:
                detail = step.run(context)
            except ToolchainImageError as exc:
                result.steps.append(
                    StepResult(
                        name=step.name,
                        status="failed",
                        duration_seconds=time.monotonic() - started,
                        error=exc.to_dict(),
                    )
                )
                result.failed_step = step.name
                result.error = exc
                logger.log(
                    operation="step_failed",
                    step=step.name,
                    level="error",
                    message=str(exc),
                    extra={"code": exc.code},
                )
                result.steps.extend(
                    StepResult(name=skipped.name, status="skipped")
                    for skipped in self.steps[index + 1 :]
                )
                break
            result.steps.append(
                StepResult(
                    name=step.name,
                    status="ok",
                    duration_seconds=time.monotonic() - started,
                    detail=dict(detail),
                )
            )
            logger.log(operation="step_complete", step=step.name, message="Completed step.")
        context.current_step = None

        if report_path is not None:
            result.report_path = write_report(result, context=context, path=report_path)
        return result


def write_report(result: PipelineResult, *, context: StepContext, path: str | Path) -> Path:
    report_path = Path(path)
    report_path.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "ok": result.ok,
        "failed_step": result.failed_step,
        "base": context.recipe.base,
        "parameters": context.recipe.params.as_build_args(),
        "runner": context.runner.name,
        "steps": [
            {
                "name": step.name,
                "status": step.status,
                "duration_seconds": round(step.duration_seconds, 3),
                "detail": dict(step.detail),
                "error": step.error,
            }
            for step in result.steps
        ],
        "facts": dict(sorted(context.facts.items())),
        "log_counts": context.logger.counts(),
        "logs": context.logger.records,
    }
    report_path.write_text(json.dumps(payload, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    return report_path
