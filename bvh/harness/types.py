"""Data classes and exceptions for the harness module."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

OWNER_MARKER = ".bvh-owned"


class BuildProfile(str, Enum):
    """Optimization / assertion posture of a cargo invocation."""

    DEBUG = "debug"
    RELEASE = "release"

    def cargo_args(self) -> tuple[str, ...]:
        return ("--release",) if self is BuildProfile.RELEASE else ()


class StepKind(str, Enum):
    """What a pipeline step does; doubles as the failure category."""

    FETCH = "fetch"
    INSTALL = "install"
    COMPONENT = "component"
    FORMAT = "format"
    TEST = "test"
    EXAMPLE = "example"


# ---------------------------------------------------------------------------
# Configuration data classes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ToolchainSpec:
    """What to install and from where. Resolved once per run."""

    host_triple: str = "x86_64-unknown-linux-gnu"
    channel: str = "stable"
    no_modify_path: bool = True
    installer_url: str = "https://sh.rustup.rs"
    components: tuple[str, ...] = ("rustfmt",)


@dataclass(frozen=True)
class EnvironmentOverrides:
    """Job-local toolchain locations handed to every step.

    Built once before the first step and never mutated; steps receive the
    merged environment from :meth:`apply` instead of touching ``os.environ``.
    """

    cargo_home: Path
    rustup_home: Path

    @classmethod
    def for_root(cls, root: str | Path) -> EnvironmentOverrides:
        root = Path(root).resolve()
        return cls(cargo_home=root / ".cargo", rustup_home=root / ".rustup")

    @property
    def bin_dir(self) -> Path:
        return self.cargo_home / "bin"

    def as_env(self, base_path: str = "") -> dict[str, str]:
        path = str(self.bin_dir)
        if base_path:
            path = f"{path}{os.pathsep}{base_path}"
        return {
            "CARGO_HOME": str(self.cargo_home),
            "RUSTUP_HOME": str(self.rustup_home),
            "PATH": path,
        }

    def apply(self, base: dict[str, str] | None = None) -> dict[str, str]:
        """Return a copy of *base* (default: the process env) with overrides."""
        env = dict(os.environ if base is None else base)
        env.update(self.as_env(env.get("PATH", "")))
        return env


@dataclass(frozen=True)
class FeatureSet:
    """A fixed set of crate features compiled into a build."""

    name: str
    default_features: bool = True
    features: tuple[str, ...] = ()

    def cargo_args(self) -> tuple[str, ...]:
        args: list[str] = []
        if not self.default_features:
            args.append("--no-default-features")
        if self.features:
            args += ["--features", ",".join(self.features)]
        return tuple(args)


@dataclass(frozen=True)
class MatrixEntry:
    """One (feature set, profile) combination under test."""

    feature_set: FeatureSet
    profile: BuildProfile

    @property
    def label(self) -> str:
        return f"{self.feature_set.name}/{self.profile.value}"


@dataclass(frozen=True)
class ExampleRun:
    """An example binary to build and execute under the release profile."""

    example: str
    feature_set: FeatureSet

    @property
    def label(self) -> str:
        return f"{self.example} [{self.feature_set.name}]"


# ---------------------------------------------------------------------------
# Steps and results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Step:
    """A single pipeline step.

    ``argv`` is the command for process steps; fetch steps carry ``url`` and
    ``dest`` instead.
    """

    kind: StepKind
    label: str
    argv: tuple[str, ...] = ()
    url: str = ""
    dest: Path | None = None


@dataclass
class StepResult:
    """Outcome of one step."""

    step: Step
    exit_status: int
    context: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_status == 0


@dataclass
class PipelineResult:
    """Results of the steps that ran, in order."""

    results: list[StepResult] = field(default_factory=list)

    @property
    def failed(self) -> StepResult | None:
        for r in self.results:
            if not r.ok:
                return r
        return None

    @property
    def exit_code(self) -> int:
        failed = self.failed
        return failed.exit_status if failed else 0


@dataclass
class DiagResult:
    """Single diagnostic check result."""

    check: str
    ok: bool
    message: str


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class HarnessError(Exception):
    """Base exception for harness operations."""


class HarnessConfigError(HarnessError):
    """Raised when harness.yaml is invalid or missing."""


class InsecureEndpointError(HarnessConfigError):
    """Raised when the installer URL is not https."""


class InstallRootError(HarnessError):
    """Raised when an install directory is not owned by the harness."""


class FetchError(HarnessError):
    """Raised when the installer payload cannot be downloaded."""
