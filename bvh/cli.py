"""Unified CLI entry-point for the build verification harness.

Usage::

    bvh run [--root DIR] [--config FILE] [--skip-install]
    bvh plan [--root DIR] [--config FILE] [--skip-install]
    bvh matrix [--root DIR] [--config FILE]
    bvh doctor [--root DIR] [--config FILE]
"""

from __future__ import annotations

import argparse
import logging
import shlex
import sys

from bvh.harness.pipeline import Pipeline
from bvh.harness.types import HarnessError, StepKind

EXIT_HARNESS_ERROR = 2


def _pipeline(args: argparse.Namespace) -> Pipeline:
    return Pipeline(
        root=args.root,
        config_file=args.config,
        skip_install=getattr(args, "skip_install", False),
    )


# ---------------------------------------------------------------------------
# Sub-command handlers
# ---------------------------------------------------------------------------

def _cmd_run(args: argparse.Namespace) -> int:
    result = _pipeline(args).run()
    failed = result.failed
    if failed is None:
        print(f"\nAll {len(result.results)} steps passed.")
        return 0
    print(
        f"\nFAILED at step {len(result.results)}: {failed.step.label} "
        f"(exit {failed.exit_status})",
        file=sys.stderr,
    )
    return result.exit_code


def _cmd_plan(args: argparse.Namespace) -> int:
    steps = _pipeline(args).plan()
    for i, step in enumerate(steps, start=1):
        detail = step.url if step.kind is StepKind.FETCH else shlex.join(step.argv)
        print(f"  {i:2d}. [{step.kind.value:9s}] {detail}")
    print(f"\n{len(steps)} step(s)")
    return 0


def _cmd_matrix(args: argparse.Namespace) -> int:
    cfg = _pipeline(args).config
    print("Matrix:")
    for i, entry in enumerate(cfg.matrix, start=1):
        print(f"  {i}. {entry.feature_set.name:15s}  {entry.profile.value}")
    print("\nExamples (release):")
    for run in cfg.examples:
        print(f"  {run.example:15s}  {run.feature_set.name}")
    return 0


def _cmd_doctor(args: argparse.Namespace) -> int:
    results = _pipeline(args).doctor()
    has_failure = False
    for r in results:
        icon = "✓" if r.ok else "✗"
        print(f"  {icon} {r.message}")
        if not r.ok:
            has_failure = True
    return 1 if has_failure else 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bvh", description="Build verification harness")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--root", default=".", help="Crate root (default: .)")
    common.add_argument("--config", default=None, help="harness.yaml path")

    p = sub.add_parser("run", parents=[common], help="Run the full pipeline")
    p.add_argument("--skip-install", action="store_true",
                   help="Reuse the harness-owned toolchain instead of installing")

    p = sub.add_parser("plan", parents=[common], help="Print the ordered steps")
    p.add_argument("--skip-install", action="store_true")

    sub.add_parser("matrix", parents=[common], help="List matrix entries and example runs")
    sub.add_parser("doctor", parents=[common], help="Run diagnostics")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry-point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(levelname)s] %(name)s: %(message)s",
    )

    dispatch = {
        "run": _cmd_run,
        "plan": _cmd_plan,
        "matrix": _cmd_matrix,
        "doctor": _cmd_doctor,
    }
    handler = dispatch.get(args.command or "")
    if handler is None:
        parser.print_help()
        sys.exit(1)

    try:
        code = handler(args)
    except HarnessError as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(EXIT_HARNESS_ERROR)
    sys.exit(code)
