import json
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from toolchain_image.errors import (
    BuildError,
    PackageInstallError,
    PipelineError,
    ValidationError,
)
from toolchain_image.models import BuildParameters, ImageRoot, Recipe
from toolchain_image.pipeline import Pipeline
from toolchain_image.runners import InProcessRunner
from toolchain_image.steps import StepContext, default_steps


@dataclass(slots=True)
class RecordingStep:
    name: str
    log: list[str]
    fail_with: Exception | None = None
    detail: dict[str, str] = field(default_factory=dict)

    def run(self, context: StepContext) -> dict[str, str]:
        self.log.append(self.name)
        if self.fail_with is not None:
            raise self.fail_with
        return self.detail


def _context(tmp_path: Path, recipe: Recipe) -> StepContext:
    return StepContext(recipe=recipe, root=ImageRoot(tmp_path), runner=InProcessRunner())


@pytest.fixture
def recipe(params: BuildParameters) -> Recipe:
    return Recipe(params=params)


def test_pipeline_runs_steps_in_declared_order(tmp_path: Path, recipe: Recipe) -> None:
    log: list[str] = []
    pipeline = Pipeline(steps=[RecordingStep(name, log) for name in ("a", "b", "c")])

    result = pipeline.run(_context(tmp_path, recipe))

    assert result.ok
    assert log == ["a", "b", "c"]
    assert [step.status for step in result.steps] == ["ok", "ok", "ok"]


def test_pipeline_stops_at_first_failure_and_names_the_step(
    tmp_path: Path,
    recipe: Recipe,
) -> None:
    log: list[str] = []
    pipeline = Pipeline(
        steps=[
            RecordingStep("install-packages", log, fail_with=PackageInstallError("apt failed")),
            RecordingStep("acquire-cmake-source", log),
            RecordingStep("build-cmake", log),
            RecordingStep("provision-user", log),
        ]
    )

    result = pipeline.run(_context(tmp_path, recipe))

    assert not result.ok
    assert result.failed_step == "install-packages"
    assert log == ["install-packages"]
    assert result.executed() == ["install-packages"]
    assert [step.status for step in result.steps] == ["failed", "skipped", "skipped", "skipped"]
    failed = result.step("install-packages")
    assert failed is not None and failed.error is not None
    assert failed.error["code"] == "E_PACKAGE_INSTALL"


def test_raise_for_failure_chains_the_step_error(tmp_path: Path, recipe: Recipe) -> None:
    cause = BuildError("script exited 2")
    pipeline = Pipeline(steps=[RecordingStep("build-cmake", [], fail_with=cause)])

    result = pipeline.run(_context(tmp_path, recipe))

    with pytest.raises(PipelineError) as excinfo:
        result.raise_for_failure()
    assert excinfo.value.step == "build-cmake"
    assert excinfo.value.context["step"] == "build-cmake"
    assert excinfo.value.__cause__ is cause


def test_untyped_errors_propagate(tmp_path: Path, recipe: Recipe) -> None:
    pipeline = Pipeline(steps=[RecordingStep("boom", [], fail_with=RuntimeError("bug"))])

    with pytest.raises(RuntimeError):
        pipeline.run(_context(tmp_path, recipe))


def test_pipeline_rejects_duplicate_step_names() -> None:
    with pytest.raises(ValidationError) as excinfo:
        Pipeline(steps=[RecordingStep("a", []), RecordingStep("a", [])])

    assert excinfo.value.context["duplicates"] == "a"


def test_pipeline_logs_step_lifecycle(tmp_path: Path, recipe: Recipe) -> None:
    context = _context(tmp_path, recipe)
    Pipeline(steps=[RecordingStep("a", [])]).run(context)

    operations = [record["operation"] for record in context.logger.records_for_step("a")]
    assert operations == ["step_start", "step_complete"]


def test_pipeline_writes_report(tmp_path: Path, recipe: Recipe) -> None:
    log: list[str] = []
    pipeline = Pipeline(
        steps=[
            RecordingStep("a", log, detail={"k": "v"}),
            RecordingStep("b", log, fail_with=BuildError("nope")),
        ]
    )

    result = pipeline.run(_context(tmp_path / "root", recipe), report_path=tmp_path / "report.json")

    assert result.report_path == tmp_path / "report.json"
    report = json.loads(result.report_path.read_text(encoding="utf-8"))
    assert report["ok"] is False
    assert report["failed_step"] == "b"
    assert report["parameters"]["CMAKE_VERSION"] == "3.31.6"
    assert report["steps"][0]["detail"] == {"k": "v"}
    assert report["steps"][1]["error"]["code"] == "E_BUILD"
    assert report["logs"]
    assert report["log_counts"] == {"info": 3, "error": 1}


def test_default_steps_follow_image_construction_order() -> None:
    names = Pipeline(steps=default_steps()).names()

    assert names == [
        "install-packages",
        "inject-scripts",
        "acquire-cmake-source",
        "build-cmake",
        "provision-user",
        "install-rust-toolchain",
        "declare-runtime",
    ]
