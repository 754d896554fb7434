"""Shared fixtures for harness module tests."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from bvh.harness.types import EnvironmentOverrides, Step, StepResult


class FakeExecutor:
    """Records every step and fails the ones whose label matches ``fail``."""

    def __init__(self, fail: dict[str, int] | None = None) -> None:
        self.fail = fail or {}
        self.executed: list[Step] = []
        self.envs: list[dict[str, str]] = []

    def execute(self, step: Step, env: dict[str, str]) -> StepResult:
        self.executed.append(step)
        self.envs.append(env)
        status = self.fail.get(step.label, 0)
        return StepResult(step, status, "scripted failure" if status else "")

    @property
    def labels(self) -> list[str]:
        return [s.label for s in self.executed]


@pytest.fixture()
def fake_executor():
    """Factory: ``fake_executor({"test no_std+alloc/debug": 101})``."""
    return FakeExecutor


@pytest.fixture()
def crate_root(tmp_path: Path) -> Path:
    """Create a minimal crate tree."""
    root = tmp_path / "crate"
    root.mkdir()
    (root / "Cargo.toml").write_text('[package]\nname = "phdrs"\nversion = "0.1.0"\n')
    (root / "src").mkdir()
    (root / "src" / "lib.rs").write_text("")
    return root


@pytest.fixture()
def overrides(crate_root: Path) -> EnvironmentOverrides:
    return EnvironmentOverrides.for_root(crate_root)


@pytest.fixture()
def harness_yaml(crate_root: Path) -> Path:
    """Write a sample harness.yaml and return its path."""
    cfg = {
        "toolchain": {
            "host": "aarch64-unknown-linux-gnu",
            "channel": "1.75.0",
            "components": ["rustfmt", "clippy"],
        },
        "feature_sets": {
            "serde": {"default_features": True, "features": ["serde"]},
        },
        "matrix": [
            {"features": "default", "profile": "debug"},
            {"features": "serde", "profile": "release"},
            {"features": "no_std", "profile": "debug"},
        ],
        "examples": [
            {"example": "dump_phdrs", "features": "serde"},
        ],
    }
    p = crate_root / "harness.yaml"
    with open(p, "w") as fh:
        yaml.dump(cfg, fh)
    return p


def install_fake_toolchain(overrides: EnvironmentOverrides) -> None:
    """Lay out a harness-owned toolchain without running rustup."""
    from bvh.harness.toolchain import claim_install_roots

    claim_install_roots(overrides)
    overrides.bin_dir.mkdir(parents=True, exist_ok=True)
    for tool in ("cargo", "rustup"):
        (overrides.bin_dir / tool).write_text("#!/bin/sh\n")


@pytest.fixture()
def installed_toolchain(overrides: EnvironmentOverrides) -> EnvironmentOverrides:
    install_fake_toolchain(overrides)
    return overrides
