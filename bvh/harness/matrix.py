"""The fixed build configuration matrix and the commands it expands to."""

from __future__ import annotations

from bvh.harness.types import (
    BuildProfile,
    ExampleRun,
    FeatureSet,
    HarnessConfigError,
    MatrixEntry,
)

DEFAULT = FeatureSet("default")
NO_STD_ALLOC = FeatureSet("no_std+alloc", default_features=False, features=("alloc",))
NO_STD = FeatureSet("no_std", default_features=False)

FEATURE_SETS: dict[str, FeatureSet] = {fs.name: fs for fs in (DEFAULT, NO_STD_ALLOC, NO_STD)}

DEFAULT_EXAMPLE = "dump_phdrs"

# Explicit list, not a cross-product: allocator-present and allocator-absent
# builds are separate entries.
DEFAULT_MATRIX: tuple[MatrixEntry, ...] = (
    MatrixEntry(DEFAULT, BuildProfile.DEBUG),
    MatrixEntry(DEFAULT, BuildProfile.RELEASE),
    MatrixEntry(NO_STD_ALLOC, BuildProfile.DEBUG),
    MatrixEntry(NO_STD_ALLOC, BuildProfile.RELEASE),
    MatrixEntry(NO_STD, BuildProfile.DEBUG),
    MatrixEntry(NO_STD, BuildProfile.RELEASE),
)

DEFAULT_EXAMPLES: tuple[ExampleRun, ...] = (
    ExampleRun(DEFAULT_EXAMPLE, DEFAULT),
    ExampleRun(DEFAULT_EXAMPLE, NO_STD),
)


def check_unique(items, what: str) -> None:
    """Raise :class:`HarnessConfigError` if *items* contains duplicates."""
    seen: set = set()
    for item in items:
        if item in seen:
            raise HarnessConfigError(f"Duplicate {what}: {item.label}")
        seen.add(item)


def matrix_command(entry: MatrixEntry) -> tuple[str, ...]:
    """``cargo test`` for one matrix entry."""
    return ("cargo", "test", *entry.feature_set.cargo_args(), *entry.profile.cargo_args())


def example_command(run: ExampleRun) -> tuple[str, ...]:
    """``cargo run --release --example`` for one smoke run."""
    return (
        "cargo", "run", *run.feature_set.cargo_args(),
        *BuildProfile.RELEASE.cargo_args(), "--example", run.example,
    )


def format_command() -> tuple[str, ...]:
    return ("cargo", "fmt", "--all", "--", "--check")

