"""Tests for harness.config — harness.yaml parsing."""

from __future__ import annotations

import pytest
import yaml

from bvh.harness import config as config_mod
from bvh.harness.config import (
    HarnessConfig,
    detect_host_triple,
    load_harness_config,
    resolve_harness_config,
    save_harness_config,
)
from bvh.harness.matrix import DEFAULT_EXAMPLES, DEFAULT_MATRIX
from bvh.harness.types import BuildProfile, HarnessConfigError, InsecureEndpointError


class TestDetectHostTriple:
    def test_linux_x86_64(self, monkeypatch):
        monkeypatch.setattr(config_mod._platform, "system", lambda: "Linux")
        monkeypatch.setattr(config_mod._platform, "machine", lambda: "x86_64")
        assert detect_host_triple() == "x86_64-unknown-linux-gnu"

    def test_macos_arm(self, monkeypatch):
        monkeypatch.setattr(config_mod._platform, "system", lambda: "Darwin")
        monkeypatch.setattr(config_mod._platform, "machine", lambda: "arm64")
        assert detect_host_triple() == "aarch64-apple-darwin"

    def test_unsupported(self, monkeypatch):
        monkeypatch.setattr(config_mod._platform, "system", lambda: "Plan9")
        with pytest.raises(HarnessConfigError, match="Unsupported"):
            detect_host_triple()


class TestLoadHarnessConfig:
    def test_load_full_config(self, harness_yaml):
        cfg = load_harness_config(harness_yaml)

        assert cfg.toolchain.host_triple == "aarch64-unknown-linux-gnu"
        assert cfg.toolchain.channel == "1.75.0"
        assert cfg.toolchain.components == ("rustfmt", "clippy")
        assert cfg.toolchain.installer_url == "https://sh.rustup.rs"

        assert [e.label for e in cfg.matrix] == [
            "default/debug", "serde/release", "no_std/debug",
        ]
        assert cfg.matrix[1].feature_set.features == ("serde",)
        assert cfg.matrix[1].profile is BuildProfile.RELEASE

        assert len(cfg.examples) == 1
        assert cfg.examples[0].feature_set.name == "serde"

    def test_empty_file_gives_defaults(self, tmp_path):
        p = tmp_path / "harness.yaml"
        p.write_text("")
        cfg = load_harness_config(p)
        assert cfg.matrix == DEFAULT_MATRIX
        assert cfg.examples == DEFAULT_EXAMPLES

    def test_host_auto(self, tmp_path, monkeypatch):
        monkeypatch.setattr(config_mod, "detect_host_triple", lambda: "riscv64gc-unknown-linux-gnu")
        p = tmp_path / "harness.yaml"
        p.write_text("toolchain:\n  host: auto\n")
        assert load_harness_config(p).toolchain.host_triple == "riscv64gc-unknown-linux-gnu"

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(HarnessConfigError, match="not found"):
            load_harness_config(tmp_path / "nonexistent.yaml")

    def test_load_invalid_yaml(self, tmp_path):
        bad = tmp_path / "bad.yaml"
        bad.write_text("[ invalid: yaml: {")
        with pytest.raises(HarnessConfigError, match="Failed to parse"):
            load_harness_config(bad)

    def test_load_non_dict(self, tmp_path):
        bad = tmp_path / "list.yaml"
        bad.write_text("- item1\n- item2\n")
        with pytest.raises(HarnessConfigError, match="Expected a YAML mapping"):
            load_harness_config(bad)

    def test_http_installer_rejected(self, tmp_path):
        p = tmp_path / "harness.yaml"
        p.write_text("toolchain:\n  installer_url: http://sh.rustup.rs\n")
        with pytest.raises(InsecureEndpointError):
            load_harness_config(p)

    def test_unknown_feature_set(self, tmp_path):
        p = tmp_path / "harness.yaml"
        p.write_text("matrix:\n  - {features: nope, profile: debug}\n")
        with pytest.raises(HarnessConfigError, match="Unknown feature set"):
            load_harness_config(p)

    def test_unknown_profile(self, tmp_path):
        p = tmp_path / "harness.yaml"
        p.write_text("matrix:\n  - {features: default, profile: turbo}\n")
        with pytest.raises(HarnessConfigError, match="Unknown build profile"):
            load_harness_config(p)

    def test_duplicate_entry(self, tmp_path):
        p = tmp_path / "harness.yaml"
        p.write_text(
            "matrix:\n"
            "  - {features: default, profile: debug}\n"
            "  - {features: default, profile: debug}\n"
        )
        with pytest.raises(HarnessConfigError, match="Duplicate"):
            load_harness_config(p)

    def test_example_without_name(self, tmp_path):
        p = tmp_path / "harness.yaml"
        p.write_text("examples:\n  - {features: default}\n")
        with pytest.raises(HarnessConfigError, match="without a name"):
            load_harness_config(p)


class TestNameLists:
    def _load(self, tmp_path, text):
        p = tmp_path / "harness.yaml"
        p.write_text(text)
        return load_harness_config(p)

    def test_single_component_string(self, tmp_path):
        cfg = self._load(tmp_path, "toolchain:\n  components: rustfmt\n")
        assert cfg.toolchain.components == ("rustfmt",)

    def test_single_feature_string(self, tmp_path):
        cfg = self._load(
            tmp_path,
            "feature_sets:\n"
            "  lean: {default_features: false, features: alloc}\n"
            "matrix:\n"
            "  - {features: lean, profile: debug}\n",
        )
        assert cfg.matrix[0].feature_set.features == ("alloc",)
        assert cfg.matrix[0].feature_set.cargo_args() == (
            "--no-default-features", "--features", "alloc",
        )

    @pytest.mark.parametrize("value", ["3", "{a: b}", "[rustfmt, 3]"])
    def test_components_wrong_type(self, tmp_path, value):
        with pytest.raises(HarnessConfigError, match="string or list of strings"):
            self._load(tmp_path, f"toolchain:\n  components: {value}\n")


class TestSectionShapes:
    @pytest.mark.parametrize("text", [
        "toolchain: [stable]\n",
        "toolchain: stable\n",
        "feature_sets: [lean]\n",
        "feature_sets:\n  x: 1\n",
        "matrix: default\n",
        "matrix:\n  - default\n",
        "matrix:\n  - {features: [a, b]}\n",
        "examples: [dump_phdrs]\n",
        "examples:\n  example: dump_phdrs\n",
    ])
    def test_wrong_shape_is_config_error(self, tmp_path, text):
        p = tmp_path / "harness.yaml"
        p.write_text(text)
        with pytest.raises(HarnessConfigError):
            load_harness_config(p)


class TestResolveHarnessConfig:
    def test_defaults_when_absent(self, crate_root):
        cfg = resolve_harness_config(crate_root)
        assert cfg.matrix == DEFAULT_MATRIX

    def test_picks_up_root_file(self, crate_root, harness_yaml):
        cfg = resolve_harness_config(crate_root)
        assert cfg.toolchain.channel == "1.75.0"

    def test_explicit_path_must_exist(self, crate_root):
        with pytest.raises(HarnessConfigError):
            resolve_harness_config(crate_root, crate_root / "other.yaml")


class TestSaveHarnessConfig:
    def test_save_and_reload(self, harness_yaml, tmp_path):
        cfg = load_harness_config(harness_yaml)
        out = tmp_path / "out" / "harness.yaml"
        save_harness_config(cfg, out)

        reloaded = load_harness_config(out)
        assert reloaded.toolchain == cfg.toolchain
        assert reloaded.matrix == cfg.matrix
        assert reloaded.examples == cfg.examples

    def test_defaults_serialise(self, tmp_path):
        out = tmp_path / "harness.yaml"
        save_harness_config(HarnessConfig(), out)
        with open(out) as fh:
            data = yaml.safe_load(fh)
        assert len(data["matrix"]) == 6
        assert data["feature_sets"]["no_std+alloc"] == {
            "default_features": False, "features": ["alloc"],
        }
