"""Parse and validate harness.yaml configuration."""

from __future__ import annotations

import logging
import platform as _platform
from pathlib import Path

import yaml

from bvh.harness.matrix import DEFAULT_EXAMPLES, DEFAULT_MATRIX, FEATURE_SETS, check_unique
from bvh.harness.types import (
    BuildProfile,
    ExampleRun,
    FeatureSet,
    HarnessConfigError,
    InsecureEndpointError,
    MatrixEntry,
    ToolchainSpec,
)

logger = logging.getLogger(__name__)

DEFAULT_HARNESS_FILE = "harness.yaml"

_ARCH_ALIASES = {"amd64": "x86_64", "arm64": "aarch64"}
_OS_TRIPLES = {
    "linux": "unknown-linux-gnu",
    "darwin": "apple-darwin",
    "windows": "pc-windows-msvc",
    "freebsd": "unknown-freebsd",
}


def detect_host_triple() -> str:
    """Return the rustc host triple for this machine, e.g. ``x86_64-unknown-linux-gnu``."""
    system = _platform.system().lower()
    machine = _platform.machine().lower()
    machine = _ARCH_ALIASES.get(machine, machine)
    suffix = _OS_TRIPLES.get(system)
    if suffix is None:
        raise HarnessConfigError(f"Unsupported host platform: {system}-{machine}")
    return f"{machine}-{suffix}"


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _mapping(raw, where: str) -> dict:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise HarnessConfigError(f"Expected a mapping for {where}, got {type(raw).__name__}")
    return raw


def _sequence(raw, where: str) -> list:
    if not isinstance(raw, list):
        raise HarnessConfigError(f"Expected a list for {where}, got {type(raw).__name__}")
    return raw


def _names(raw, where: str) -> tuple[str, ...]:
    """A single string or a list of strings."""
    if isinstance(raw, str):
        return (raw,)
    if isinstance(raw, (list, tuple)) and all(isinstance(v, str) for v in raw):
        return tuple(raw)
    raise HarnessConfigError(f"Expected a string or list of strings for {where}, got {raw!r}")


def _parse_toolchain(raw: dict | None) -> ToolchainSpec:
    raw = _mapping(raw, "toolchain")
    if not raw:
        return ToolchainSpec()
    defaults = ToolchainSpec()
    host = str(raw.get("host", defaults.host_triple))
    if host == "auto":
        host = detect_host_triple()
    spec = ToolchainSpec(
        host_triple=host,
        channel=str(raw.get("channel", defaults.channel)),
        no_modify_path=bool(raw.get("no_modify_path", defaults.no_modify_path)),
        installer_url=str(raw.get("installer_url", defaults.installer_url)),
        components=_names(raw.get("components", defaults.components), "toolchain.components"),
    )
    if not spec.installer_url.startswith("https://"):
        raise InsecureEndpointError(f"Installer URL must use https: {spec.installer_url}")
    return spec


def _parse_feature_sets(raw: dict | None) -> dict[str, FeatureSet]:
    feature_sets = dict(FEATURE_SETS)
    for name, fs in _mapping(raw, "feature_sets").items():
        fs = _mapping(fs, f"feature set {name!r}")
        feature_sets[name] = FeatureSet(
            name=str(name),
            default_features=bool(fs.get("default_features", True)),
            features=_names(fs.get("features", []), f"feature set {name!r} features"),
        )
    return feature_sets


def _lookup(feature_sets: dict[str, FeatureSet], name: str) -> FeatureSet:
    if not isinstance(name, str):
        raise HarnessConfigError(f"Feature set name must be a string, got {name!r}")
    try:
        return feature_sets[name]
    except KeyError:
        raise HarnessConfigError(f"Unknown feature set: {name}") from None


def _parse_matrix(raw: list | None, feature_sets: dict[str, FeatureSet]) -> tuple[MatrixEntry, ...]:
    if raw is None:
        return DEFAULT_MATRIX
    entries = []
    for item in _sequence(raw, "matrix"):
        item = _mapping(item, "matrix entry")
        try:
            profile = BuildProfile(item.get("profile", "debug"))
        except ValueError:
            raise HarnessConfigError(f"Unknown build profile: {item.get('profile')}") from None
        entries.append(MatrixEntry(_lookup(feature_sets, item.get("features", "default")), profile))
    check_unique(entries, "matrix entry")
    return tuple(entries)


def _parse_examples(raw: list | None, feature_sets: dict[str, FeatureSet]) -> tuple[ExampleRun, ...]:
    if raw is None:
        return DEFAULT_EXAMPLES
    runs = []
    for item in _sequence(raw, "examples"):
        item = _mapping(item, "example entry")
        example = item.get("example")
        if not example:
            raise HarnessConfigError(f"Example entry without a name: {item}")
        runs.append(ExampleRun(str(example), _lookup(feature_sets, item.get("features", "default"))))
    check_unique(runs, "example run")
    return tuple(runs)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

class HarnessConfig:
    """Parsed representation of ``harness.yaml``.

    Attributes:
        toolchain: What toolchain to install.
        matrix: Ordered matrix entries for ``cargo test``.
        examples: Ordered example smoke runs.
    """

    def __init__(
        self,
        toolchain: ToolchainSpec | None = None,
        matrix: tuple[MatrixEntry, ...] | None = None,
        examples: tuple[ExampleRun, ...] | None = None,
    ) -> None:
        self.toolchain: ToolchainSpec = toolchain or ToolchainSpec()
        self.matrix: tuple[MatrixEntry, ...] = DEFAULT_MATRIX if matrix is None else matrix
        self.examples: tuple[ExampleRun, ...] = DEFAULT_EXAMPLES if examples is None else examples

    def to_dict(self) -> dict:
        """Serialise back to a plain dict (for writing harness.yaml)."""
        tc = self.toolchain
        used = {e.feature_set for e in self.matrix} | {r.feature_set for r in self.examples}
        return {
            "toolchain": {
                "host": tc.host_triple,
                "channel": tc.channel,
                "no_modify_path": tc.no_modify_path,
                "installer_url": tc.installer_url,
                "components": list(tc.components),
            },
            "feature_sets": {
                fs.name: {
                    "default_features": fs.default_features,
                    **({"features": list(fs.features)} if fs.features else {}),
                }
                for fs in sorted(used, key=lambda f: f.name)
            },
            "matrix": [
                {"features": e.feature_set.name, "profile": e.profile.value}
                for e in self.matrix
            ],
            "examples": [
                {"example": r.example, "features": r.feature_set.name}
                for r in self.examples
            ],
        }


def load_harness_config(path: str | Path = DEFAULT_HARNESS_FILE) -> HarnessConfig:
    """Load and parse ``harness.yaml``.

    Args:
        path: Path to the harness configuration file.

    Returns:
        Parsed :class:`HarnessConfig`.

    Raises:
        HarnessConfigError: If the file is missing or malformed.
    """
    p = Path(path)
    if not p.exists():
        raise HarnessConfigError(f"Configuration file not found: {p}")

    try:
        with open(p, encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
    except yaml.YAMLError as exc:
        raise HarnessConfigError(f"Failed to parse {p}: {exc}") from exc

    if not isinstance(data, dict):
        raise HarnessConfigError(f"Expected a YAML mapping in {p}, got {type(data).__name__}")

    feature_sets = _parse_feature_sets(data.get("feature_sets"))
    cfg = HarnessConfig(
        toolchain=_parse_toolchain(data.get("toolchain")),
        matrix=_parse_matrix(data.get("matrix"), feature_sets),
        examples=_parse_examples(data.get("examples"), feature_sets),
    )
    logger.debug("Loaded %s: %d matrix entries, %d example runs",
                 p, len(cfg.matrix), len(cfg.examples))
    return cfg


def resolve_harness_config(root: Path, path: str | Path | None = None) -> HarnessConfig:
    """Load *path* if given, else ``<root>/harness.yaml`` if present, else defaults."""
    if path is not None:
        return load_harness_config(path)
    candidate = root / DEFAULT_HARNESS_FILE
    if candidate.exists():
        return load_harness_config(candidate)
    return HarnessConfig()


def save_harness_config(cfg: HarnessConfig, path: str | Path = DEFAULT_HARNESS_FILE) -> None:
    """Write the config back to ``harness.yaml``."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with open(p, "w", encoding="utf-8") as fh:
        yaml.dump(cfg.to_dict(), fh, default_flow_style=False, allow_unicode=True, sort_keys=False)
