"""Command-line interface for the toolchain image builder.

Usage:
    toolchain-image build --root / --context . --matrix versions.json --select 3.31.6
    toolchain-image emit-dockerfile Dockerfile --cmake-version V --cmake-url URL --cmake-sha256 HEX
    toolchain-image verify source.tar.gz --sha256 <hex>
    toolchain-image versions --matrix versions.json
    toolchain-image entry
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from pathlib import Path

from .config import load_matrix, resolve_parameters
from .errors import ToolchainImageError, ValidationError
from .fetch import verify_file
from .image import ToolchainImage
from .models import BuildParameters, ImageRoot
from .observability import StructuredLogger
from .orchestration import load_runtime_contract, missing_mounts, run_entrypoint
from .policy import Policy
from .runners import InProcessRunner, LocalRunner


def cmd_build(args: argparse.Namespace) -> int:
    logger = StructuredLogger(echo=sys.stderr if args.verbose else None)
    image = ToolchainImage(params=_parameters(args), policy=_policy(args), logger=logger)
    image.rustup(url=args.rustup_url, sha256=args.rustup_sha256)
    if args.dry_run and Path(args.root).resolve() == Path("/"):
        raise ValidationError(
            "A dry run needs a scratch image root.",
            hint="Pass --root pointing at a throwaway directory.",
            context={"root": args.root},
        )
    runner = InProcessRunner() if args.dry_run else LocalRunner()
    result = image.build(
        args.root,
        context_dir=args.context,
        runner=runner,
        report_path=args.report,
        check=False,
        dry_run=args.dry_run,
    )
    for step in result.steps:
        print(f"{step.status:>7}  {step.name}")
    if result.report_path is not None:
        print(f"Report written to {result.report_path}")
    result.raise_for_failure()
    return 0


def cmd_emit_dockerfile(args: argparse.Namespace) -> int:
    image = ToolchainImage(params=_parameters(args), policy=_policy(args))
    image.rustup(url=args.rustup_url, sha256=args.rustup_sha256)
    path = image.emit_dockerfile(args.output, pin_parameters=args.pin)
    print(f"Dockerfile written to {path}")
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    digest = verify_file(args.archive, sha256=args.sha256)
    print(f"{digest}  {args.archive}: OK")
    return 0


def cmd_versions(args: argparse.Namespace) -> int:
    for version in load_matrix(args.matrix).versions():
        print(version)
    return 0


def cmd_entry(args: argparse.Namespace) -> int:
    root = ImageRoot(Path(args.root))
    contract = load_runtime_contract(root)
    for volume in missing_mounts(contract, root):
        print(f"warning: volume {volume} is not mounted or is empty", file=sys.stderr)
    return run_entrypoint(contract, LocalRunner())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="toolchain-image",
        description="Provision the AWS-LC CMake toolchain image",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    build_p = sub.add_parser("build", help="Run the provisioning pipeline")
    build_p.add_argument("--root", default="/", help="Image root to provision")
    build_p.add_argument("--context", default=".", help="Directory holding the build scripts")
    build_p.add_argument("--report", default=None, help="Write a JSON build report here")
    build_p.add_argument(
        "--dry-run",
        action="store_true",
        help="Record commands into a scratch --root instead of running them",
    )
    build_p.add_argument(
        "-v", "--verbose", action="store_true", help="Print build log records to stderr"
    )
    _add_parameter_args(build_p)
    _add_policy_args(build_p)
    build_p.set_defaults(handler=cmd_build)

    emit_p = sub.add_parser("emit-dockerfile", help="Render the recipe as a Dockerfile")
    emit_p.add_argument("output", help="Dockerfile path or directory")
    emit_p.add_argument("--pin", action="store_true", help="Bake parameters in as ARG defaults")
    _add_parameter_args(emit_p)
    _add_policy_args(emit_p)
    emit_p.set_defaults(handler=cmd_emit_dockerfile)

    verify_p = sub.add_parser("verify", help="Check an archive against a SHA-256 digest")
    verify_p.add_argument("archive")
    verify_p.add_argument("--sha256", required=True)
    verify_p.set_defaults(handler=cmd_verify)

    versions_p = sub.add_parser("versions", help="List the CMake versions in a matrix")
    versions_p.add_argument("--matrix", required=True)
    versions_p.set_defaults(handler=cmd_versions)

    entry_p = sub.add_parser("entry", help="Run the image entrypoint with its runtime contract")
    entry_p.add_argument("--root", default="/", help="Image root holding the runtime contract")
    entry_p.set_defaults(handler=cmd_entry)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return int(args.handler(args))
    except ToolchainImageError as exc:
        print(f"error[{exc.code}]: {exc}", file=sys.stderr)
        return 1


def _add_parameter_args(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("build parameters")
    group.add_argument("--cmake-version", default=None)
    group.add_argument("--cmake-url", default=None)
    group.add_argument("--cmake-sha256", default=None)
    group.add_argument("--matrix", default=None, help="JSON version matrix file")
    group.add_argument("--select", default=None, help="Version to pick from --matrix")
    group.add_argument("--rustup-url", default=None, help="Override the rustup installer URL")
    group.add_argument("--rustup-sha256", default=None, help="Pin the rustup installer")


def _add_policy_args(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("policy")
    group.add_argument("--offline", action="store_true", help="Forbid non-file:// fetches")
    group.add_argument(
        "--require-installer-integrity",
        action="store_true",
        help="Refuse an installer that is not pinned by digest",
    )
    group.add_argument("--fetch-timeout", type=float, default=300.0)
    group.add_argument("--fetch-attempts", type=int, default=3)


def _parameters(args: argparse.Namespace) -> BuildParameters:
    if args.matrix:
        matrix = load_matrix(args.matrix)
        version = args.select or args.cmake_version
        if version:
            return matrix.select(version)
        if len(matrix.entries) == 1:
            return matrix.entries[0]
        raise ValidationError(
            "A version must be selected from a multi-entry matrix.",
            hint=f"Pass --select with one of: {', '.join(matrix.versions())}.",
        )
    return resolve_parameters(
        version=args.cmake_version,
        url=args.cmake_url,
        sha256=args.cmake_sha256,
    )


def _policy(args: argparse.Namespace) -> Policy:
    return Policy(
        network_mode="offline" if args.offline else "online",
        require_installer_integrity=args.require_installer_integrity,
        fetch_timeout=args.fetch_timeout,
        fetch_attempts=args.fetch_attempts,
    )
