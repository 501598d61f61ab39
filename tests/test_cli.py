import hashlib
import json
from pathlib import Path

import pytest

from toolchain_image.cli import main
from toolchain_image.models import BuildParameters
from toolchain_image.runners import InProcessRunner


def _param_args(params: BuildParameters) -> list[str]:
    return [
        "--cmake-version",
        params.cmake_version,
        "--cmake-url",
        params.cmake_download_url,
        "--cmake-sha256",
        params.cmake_sha256,
    ]


def test_build_dry_run_reports_every_step(
    tmp_path: Path,
    params: BuildParameters,
    build_context: Path,
    rustup_installer: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    root = tmp_path / "root"
    report = tmp_path / "report.json"

    exit_code = main(
        [
            "build",
            "--dry-run",
            "--root",
            str(root),
            "--context",
            str(build_context),
            "--report",
            str(report),
            "--rustup-url",
            rustup_installer.as_uri(),
            *_param_args(params),
        ]
    )

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "     ok  install-packages" in out
    assert "     ok  declare-runtime" in out
    assert json.loads(report.read_text(encoding="utf-8"))["ok"] is True
    assert (root / "cmake" / "source" / "CMakeLists.txt").is_file()


def test_build_dry_run_keeps_existing_files_under_root(
    tmp_path: Path,
    params: BuildParameters,
    build_context: Path,
    rustup_installer: Path,
) -> None:
    root = tmp_path / "root"
    scratch = root / "tmp" / "precious.txt"
    apt_list = root / "var" / "lib" / "apt" / "lists" / "pkg"
    scratch.parent.mkdir(parents=True)
    scratch.write_text("keep", encoding="utf-8")
    apt_list.parent.mkdir(parents=True)
    apt_list.write_text("keep", encoding="utf-8")

    exit_code = main(
        [
            "build",
            "--dry-run",
            "--root",
            str(root),
            "--context",
            str(build_context),
            "--rustup-url",
            rustup_installer.as_uri(),
            *_param_args(params),
        ]
    )

    assert exit_code == 0
    assert scratch.read_text(encoding="utf-8") == "keep"
    assert apt_list.read_text(encoding="utf-8") == "keep"


def test_build_dry_run_refuses_host_root(
    params: BuildParameters,
    build_context: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    builds: list[object] = []
    monkeypatch.setattr(
        "toolchain_image.cli.ToolchainImage.build", lambda *args, **kwargs: builds.append(args)
    )

    exit_code = main(
        ["build", "--dry-run", "--root", "/", "--context", str(build_context), *_param_args(params)]
    )

    assert exit_code == 1
    assert builds == []
    assert "error[E_VALIDATION]" in capsys.readouterr().err


def test_build_digest_mismatch_exits_non_zero(
    tmp_path: Path,
    params: BuildParameters,
    build_context: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    exit_code = main(
        [
            "build",
            "--dry-run",
            "--root",
            str(tmp_path / "root"),
            "--context",
            str(build_context),
            "--cmake-version",
            params.cmake_version,
            "--cmake-url",
            params.cmake_download_url,
            "--cmake-sha256",
            "0" * 64,
        ]
    )

    captured = capsys.readouterr()
    assert exit_code == 1
    assert " failed  acquire-cmake-source" in captured.out
    assert "skipped  build-cmake" in captured.out
    assert "error[E_PIPELINE]" in captured.err
    assert "acquire-cmake-source" in captured.err
    assert not (tmp_path / "root" / "cmake" / "source").exists()


def test_missing_parameters_are_a_validation_error(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    for name in ("CMAKE_VERSION", "CMAKE_DOWNLOAD_URL", "CMAKE_SHA256"):
        monkeypatch.delenv(name, raising=False)

    exit_code = main(["emit-dockerfile", str(tmp_path / "Dockerfile")])

    assert exit_code == 1
    assert "error[E_VALIDATION]" in capsys.readouterr().err
    assert not (tmp_path / "Dockerfile").exists()


def test_parameters_fall_back_to_environment(
    tmp_path: Path,
    params: BuildParameters,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    for name, value in params.as_build_args().items():
        monkeypatch.setenv(name, value)

    assert main(["emit-dockerfile", str(tmp_path), "--pin"]) == 0

    text = (tmp_path / "Dockerfile").read_text(encoding="utf-8")
    assert f"ARG CMAKE_SHA256={params.cmake_sha256}" in text


def test_emit_dockerfile_from_matrix_selection(tmp_path: Path) -> None:
    matrix = tmp_path / "versions.json"
    matrix.write_text(
        json.dumps(
            {
                "version": 1,
                "cmake": [
                    {"version": "3.5.2", "url": "https://x/a.tar.gz", "sha256": "a" * 64},
                    {"version": "3.31.6", "url": "https://x/b.tar.gz", "sha256": "b" * 64},
                ],
            }
        ),
        encoding="utf-8",
    )
    output = tmp_path / "Dockerfile"

    args = ["emit-dockerfile", str(output), "--pin", "--matrix", str(matrix)]
    assert main([*args, "--select", "3.5.2"]) == 0
    assert "ARG CMAKE_VERSION=3.5.2" in output.read_text(encoding="utf-8")
    assert main(args) == 1


def test_versions_lists_matrix(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    matrix = tmp_path / "versions.json"
    matrix.write_text(
        json.dumps(
            {
                "version": 1,
                "cmake": [{"version": "3.10.3", "url": "https://x/c.tar.gz", "sha256": "c" * 64}],
            }
        ),
        encoding="utf-8",
    )

    assert main(["versions", "--matrix", str(matrix)]) == 0
    assert capsys.readouterr().out.splitlines() == ["3.10.3"]


def test_verify_archive(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    archive = tmp_path / "source.tar.gz"
    archive.write_bytes(b"archive")
    digest = hashlib.sha256(b"archive").hexdigest()

    assert main(["verify", str(archive), "--sha256", digest]) == 0
    assert capsys.readouterr().out.strip() == f"{digest}  {archive}: OK"

    assert main(["verify", str(archive), "--sha256", "f" * 64]) == 1
    assert "error[E_INTEGRITY]" in capsys.readouterr().err


def test_entry_runs_declared_entrypoint(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    contract = tmp_path / ".toolchain-image" / "runtime.json"
    contract.parent.mkdir(parents=True)
    contract.write_text(
        json.dumps(
            {
                "env": {"AWS_LC_SYS_CMAKE_BUILDER": "1"},
                "entrypoint": ["/entry.sh"],
                "volumes": ["/awslc"],
                "user": "docker",
                "workdir": "/cmake/source",
            }
        ),
        encoding="utf-8",
    )
    runner = InProcessRunner(failures={"/entry.sh": 4})
    monkeypatch.setattr("toolchain_image.cli.LocalRunner", lambda: runner)

    exit_code = main(["entry", "--root", str(tmp_path)])

    assert exit_code == 4
    assert runner.rendered() == ["/entry.sh"]
    assert runner.commands[0].env == {
        "HOME": "/home/docker",
        "USER": "docker",
        "AWS_LC_SYS_CMAKE_BUILDER": "1",
    }
    assert "volume /awslc is not mounted" in capsys.readouterr().err
