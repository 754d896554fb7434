"""Pre-flight diagnostics — ``bvh doctor``."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from bvh.harness.config import resolve_harness_config
from bvh.harness.toolchain import check_install_dir, is_installed
from bvh.harness.types import DiagResult, EnvironmentOverrides, HarnessError

logger = logging.getLogger(__name__)


def run_diagnostics(
    overrides: EnvironmentOverrides,
    *,
    root: Path,
    config_file: str | Path | None = None,
) -> list[DiagResult]:
    """Run all diagnostic checks and return results.

    Args:
        overrides: Job-local toolchain locations.
        root: Crate root the pipeline would run in.
        config_file: Explicit harness.yaml, if any.

    Returns:
        List of :class:`DiagResult` entries.
    """
    results: list[DiagResult] = []

    results.append(_check_config(root, config_file))
    results.append(_check_manifest(root))
    results.extend(_check_install_dirs(overrides))
    results.append(_check_toolchain(overrides))
    results.append(_check_shell())

    return results


def _check_config(root: Path, config_file: str | Path | None) -> DiagResult:
    try:
        cfg = resolve_harness_config(root, config_file)
    except HarnessError as exc:
        return DiagResult(check="harness configuration", ok=False, message=str(exc))
    return DiagResult(
        check="harness configuration",
        ok=True,
        message=f"{len(cfg.matrix)} matrix entries, {len(cfg.examples)} example runs",
    )


def _check_manifest(root: Path) -> DiagResult:
    manifest = root / "Cargo.toml"
    if manifest.is_file():
        return DiagResult(check="manifest", ok=True, message=f"{manifest} found")
    return DiagResult(check="manifest", ok=False, message=f"{manifest} not found")


def _check_install_dirs(overrides: EnvironmentOverrides) -> list[DiagResult]:
    results: list[DiagResult] = []
    for d in (overrides.cargo_home, overrides.rustup_home):
        try:
            check_install_dir(d)
        except HarnessError as exc:
            results.append(DiagResult(check=f"install_dir:{d.name}", ok=False, message=str(exc)))
        else:
            results.append(DiagResult(check=f"install_dir:{d.name}", ok=True, message=f"{d} usable"))
    return results


def _check_toolchain(overrides: EnvironmentOverrides) -> DiagResult:
    if is_installed(overrides):
        return DiagResult(
            check="toolchain", ok=True, message=f"cargo and rustup present in {overrides.bin_dir}",
        )
    return DiagResult(
        check="toolchain", ok=False,
        message=f"no toolchain in {overrides.bin_dir}; run: bvh run",
    )


def _check_shell() -> DiagResult:
    """The rustup installer is a POSIX shell script."""
    if shutil.which("sh"):
        return DiagResult(check="tool:sh", ok=True, message="sh available")
    return DiagResult(check="tool:sh", ok=False, message="sh not found on PATH")
