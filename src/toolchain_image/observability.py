"""Structured build log kept in memory and written next to the build report."""

from __future__ import annotations

import json
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TextIO

from .errors import ValidationError

LEVELS = ("debug", "info", "warning", "error")


@dataclass(slots=True)
class StructuredLogger:
    """Collects one record per pipeline event.

    Records are plain dicts with ``level``, ``operation``, ``step`` and
    ``message`` keys, plus ``extra`` when given. When ``echo`` is set, each
    record at or above ``echo_level`` is also printed to it as one line.
    """

    records: list[dict[str, Any]] = field(default_factory=list)
    echo: TextIO | None = None
    echo_level: str = "info"

    def log(
        self,
        *,
        operation: str,
        step: str | None,
        message: str,
        level: str = "info",
        extra: dict[str, Any] | None = None,
    ) -> None:
        if level not in LEVELS:
            raise ValidationError(
                "Unknown log level.",
                context={"level": level, "known": ", ".join(LEVELS)},
            )
        record: dict[str, Any] = {
            "level": level,
            "operation": operation,
            "step": step,
            "message": message,
        }
        if extra is not None:
            record["extra"] = extra
        self.records.append(record)
        if self.echo is not None and LEVELS.index(level) >= LEVELS.index(self.echo_level):
            print(format_record(record), file=self.echo)

    def records_for_step(self, step: str) -> list[dict[str, Any]]:
        return [record for record in self.records if record.get("step") == step]

    def warnings(self) -> list[dict[str, Any]]:
        return [record for record in self.records if record["level"] == "warning"]

    def counts(self) -> dict[str, int]:
        tally = Counter(record["level"] for record in self.records)
        return {level: tally[level] for level in LEVELS if tally[level]}

    def to_json_lines(self, path: str | Path) -> Path:
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        lines = [json.dumps(record, sort_keys=True) for record in self.records]
        output_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return output_path


def format_record(record: dict[str, Any]) -> str:
    step = record.get("step") or "-"
    return f"[{record['level']:<7}] {step:<22} {record['operation']}: {record['message']}"
