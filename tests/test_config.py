"""Layered configuration: defaults < YAML file < environment < overrides."""
import pytest

from release_attest.config import AttestConfig, BundleNaming, load_config
from release_attest.errors import ConfigurationError, InvalidInputError


def test_defaults():
    cfg = load_config(env={})
    assert cfg == AttestConfig()
    assert cfg.bundle_naming is BundleNaming.DIGEST
    assert cfg.gh_bin == "gh"
    assert cfg.oci_subjects is None


def test_environment():
    cfg = load_config(
        env={
            "ASSETS_ROOT": "/rc",
            "ASSET_PATTERNS_JSON": '["bin/ocm-*"]',
            "BUNDLE_DIR": "/out",
            "TARGET_REPO": "ghcr.io/acme/cli",
            "RC_VERSION": "0.8.0-rc.1",
            "OCI_SUBJECTS_JSON": '["oci://ghcr.io/acme/cli:1"]',
            "GITHUB_REPOSITORY": "acme/ocm",
            "ATTEST_BUNDLE_NAMING": "Readable",
        }
    )
    assert cfg.assets_root == "/rc"
    assert cfg.asset_patterns == ["bin/ocm-*"]
    assert cfg.oci_subjects == ["oci://ghcr.io/acme/cli:1"]
    assert cfg.repository == "acme/ocm"
    assert cfg.bundle_naming is BundleNaming.READABLE


def test_repository_prefers_explicit_variable():
    cfg = load_config(env={"REPOSITORY": "acme/explicit", "GITHUB_REPOSITORY": "acme/fallback"})
    assert cfg.repository == "acme/explicit"


def test_empty_environment_values_are_unset():
    cfg = load_config(env={"OCI_SUBJECTS_JSON": "", "ASSETS_ROOT": ""})
    assert cfg.oci_subjects is None
    assert cfg.assets_root == ""


def test_invalid_pattern_json_in_environment():
    with pytest.raises(InvalidInputError, match="ASSET_PATTERNS_JSON"):
        load_config(env={"ASSET_PATTERNS_JSON": "not-json"})


def test_yaml_file_then_env_then_overrides(tmp_path):
    path = tmp_path / "attest.yaml"
    path.write_text(
        "assets_root: /from-file\n"
        "asset_patterns:\n  - bin/ocm-*\n  - oci/cli.tar\n"
        "repository: acme/file\n"
        "bundle_naming: readable\n"
        "log_level: DEBUG\n",
        encoding="utf-8",
    )
    cfg = load_config(
        path=path,
        env={"REPOSITORY": "acme/env"},
        overrides={"assets_root": "/from-flag", "bundle_dir": None},
    )
    assert cfg.assets_root == "/from-flag"
    assert cfg.asset_patterns == ["bin/ocm-*", "oci/cli.tar"]
    assert cfg.repository == "acme/env"
    assert cfg.bundle_naming is BundleNaming.READABLE
    assert cfg.log_level == "debug"
    assert cfg.bundle_dir == ""


def test_override_json_list():
    cfg = load_config(env={}, overrides={"asset_patterns": '["a","b"]'})
    assert cfg.asset_patterns == ["a", "b"]


@pytest.mark.parametrize(
    "content,match",
    [
        ("unknown_key: 1\n", "Unknown configuration keys"),
        ("- a\n- b\n", "must contain a mapping"),
        ("asset_patterns: []\n", "ASSET_PATTERNS_JSON"),
        ("bundle_naming: fancy\n", "ATTEST_BUNDLE_NAMING"),
        ("log_level: loud\n", "ATTEST_LOG_LEVEL"),
        ("assets_root: [1, 2]\n", "ASSETS_ROOT"),
        ("assets_root: [unclosed\n", "Invalid configuration file"),
    ],
)
def test_invalid_files(tmp_path, content, match):
    path = tmp_path / "attest.yaml"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(ConfigurationError, match=match):
        load_config(path=path, env={})


def test_missing_file(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        load_config(path=tmp_path / "missing.yaml", env={})


def test_unknown_override():
    with pytest.raises(ConfigurationError, match="Unknown configuration option"):
        load_config(env={}, overrides={"nope": "x"})


class TestRequirements:
    def test_export_requires_everything(self):
        with pytest.raises(ConfigurationError) as exc:
            AttestConfig().require_for_export()
        msg = str(exc.value)
        for name in ("ASSETS_ROOT", "ASSET_PATTERNS_JSON", "BUNDLE_DIR", "REPOSITORY", "TARGET_REPO/RC_VERSION"):
            assert name in msg

    def test_export_accepts_explicit_oci_list(self):
        AttestConfig(
            assets_root="/a", asset_patterns=["*"], bundle_dir="/b", repository="o/r",
            oci_subjects=["oci://x/y:1"],
        ).require_for_export()

    def test_export_needs_both_repo_and_version(self):
        cfg = AttestConfig(assets_root="/a", asset_patterns=["*"], bundle_dir="/b", repository="o/r", target_repo="x/y")
        with pytest.raises(ConfigurationError, match="TARGET_REPO/RC_VERSION"):
            cfg.require_for_export()

    def test_verify_does_not_need_oci_inputs(self):
        AttestConfig(assets_root="/a", asset_patterns=["*"], repository="o/r").require_for_verify()

    def test_index_dir(self):
        assert str(AttestConfig(assets_root="/a").index_dir) == "/a"
        assert str(AttestConfig(assets_root="/a", bundle_dir="/b").index_dir) == "/b"


def test_to_yaml_round_trips_through_file(tmp_path):
    cfg = AttestConfig(assets_root="/a", asset_patterns=["bin/*"], bundle_naming=BundleNaming.READABLE)
    path = tmp_path / "dump.yaml"
    path.write_text(cfg.to_yaml(), encoding="utf-8")
    assert load_config(path=path, env={}) == cfg
