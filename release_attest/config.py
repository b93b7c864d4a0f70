"""
Configuration for the attestation export and verify phases.

Sources, lowest to highest precedence:
    1. Default values
    2. YAML config file (--config)
    3. Environment variables (ASSETS_ROOT, ASSET_PATTERNS_JSON, ...)
    4. Explicit overrides (CLI flags)

The resulting :class:`AttestConfig` is an immutable value object built once
at the process boundary and handed to the orchestrators.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import yaml

from release_attest.errors import ConfigurationError
from release_attest.subjects import parse_json_string_array, validate_string_list

logger = logging.getLogger(__name__)


class BundleNaming(Enum):
    """How bundle files are named in the bundle directory."""
    DIGEST = "digest"        # <digest>.jsonl, as written by gh
    READABLE = "readable"    # attestation-<name>.jsonl


@dataclass(frozen=True)
class ConfigOption:
    """Metadata for one configuration field."""
    env_vars: Tuple[str, ...]
    description: str
    json_list: bool = False


OPTIONS: Dict[str, ConfigOption] = {
    "assets_root": ConfigOption(("ASSETS_ROOT",), "Directory holding the release assets"),
    "asset_patterns": ConfigOption(
        ("ASSET_PATTERNS_JSON",), "JSON array of glob patterns under the assets root", json_list=True
    ),
    "bundle_dir": ConfigOption(("BUNDLE_DIR",), "Directory receiving bundles and the index"),
    "target_repo": ConfigOption(("TARGET_REPO",), "OCI repository of the release image"),
    "version": ConfigOption(("RC_VERSION",), "Release version string (image tag)"),
    "oci_subjects": ConfigOption(
        ("OCI_SUBJECTS_JSON",), "Explicit JSON array of OCI subject references", json_list=True
    ),
    "repository": ConfigOption(
        ("REPOSITORY", "GITHUB_REPOSITORY"), "owner/name used for attestation lookups"
    ),
    "bundle_naming": ConfigOption(("ATTEST_BUNDLE_NAMING",), "Bundle naming scheme: digest or readable"),
    "log_level": ConfigOption(("ATTEST_LOG_LEVEL",), "Logging level"),
    "gh_bin": ConfigOption(("ATTEST_GH_BIN",), "GitHub CLI executable"),
    "oras_bin": ConfigOption(("ATTEST_ORAS_BIN",), "oras executable"),
}

LOG_LEVELS = ("debug", "info", "warning", "error")


@dataclass(frozen=True)
class AttestConfig:
    assets_root: str = ""
    asset_patterns: List[str] = field(default_factory=list)
    bundle_dir: str = ""
    target_repo: str = ""
    version: str = ""
    oci_subjects: Optional[List[str]] = None
    repository: str = ""
    bundle_naming: BundleNaming = BundleNaming.DIGEST
    log_level: str = "info"
    gh_bin: str = "gh"
    oras_bin: str = "oras"

    @property
    def has_oci_inputs(self) -> bool:
        return bool(self.oci_subjects) or bool(self.target_repo and self.version)

    @property
    def index_dir(self) -> Path:
        """Where the index and bundles live: the bundle dir, else the assets root."""
        return Path(self.bundle_dir or self.assets_root)

    def _missing(self, names: List[str]) -> List[str]:
        return [OPTIONS[n].env_vars[0] for n in names if not getattr(self, n)]

    def require_for_export(self) -> None:
        missing = self._missing(["assets_root", "asset_patterns", "bundle_dir", "repository"])
        if not self.has_oci_inputs:
            missing.append("OCI_SUBJECTS_JSON or TARGET_REPO/RC_VERSION")
        if missing:
            raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")

    def require_for_verify(self) -> None:
        missing = self._missing(["assets_root", "asset_patterns", "repository"])
        if missing:
            raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")

    def to_dict(self) -> Dict[str, Any]:
        out = {f.name: getattr(self, f.name) for f in fields(self)}
        out["bundle_naming"] = self.bundle_naming.value
        return out

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), default_flow_style=False, sort_keys=True)


def _coerce(name: str, value: Any) -> Any:
    """Coerce a raw value (env string or YAML scalar/list) to the field's type."""
    opt = OPTIONS[name]
    label = opt.env_vars[0]
    if opt.json_list:
        if isinstance(value, str):
            return parse_json_string_array(value, label)
        return validate_string_list(value, label)
    if name == "bundle_naming":
        if isinstance(value, BundleNaming):
            return value
        try:
            return BundleNaming(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(b.value for b in BundleNaming)
            raise ConfigurationError(f"{label} must be one of: {allowed} (got '{value}')") from None
    if name == "log_level":
        level = str(value).strip().lower()
        if level not in LOG_LEVELS:
            raise ConfigurationError(f"{label} must be one of: {', '.join(LOG_LEVELS)} (got '{value}')")
        return level
    if not isinstance(value, (str, int, float)) or isinstance(value, bool):
        raise ConfigurationError(f"{label} must be a string (got {type(value).__name__})")
    return str(value).strip()


def load_file(path: Union[str, Path]) -> Dict[str, Any]:
    """Read a YAML config file into field values."""
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"Configuration file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as ex:
        raise ConfigurationError(f"Invalid configuration file {path}: {ex}") from ex
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file {path} must contain a mapping")

    unknown = sorted(set(data) - set(OPTIONS))
    if unknown:
        raise ConfigurationError(f"Unknown configuration keys in {path}: {', '.join(unknown)}")
    return {k: _coerce(k, v) for k, v in data.items() if v is not None}


def load_env(env: Mapping[str, str]) -> Dict[str, Any]:
    """Read field values from environment variables; empty variables count as unset."""
    values: Dict[str, Any] = {}
    for name, opt in OPTIONS.items():
        for var in opt.env_vars:
            raw = env.get(var)
            if raw:
                values[name] = _coerce(name, raw)
                break
    return values


def load_config(
    path: Optional[Union[str, Path]] = None,
    env: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> AttestConfig:
    """Build the configuration from file, environment and overrides."""
    values: Dict[str, Any] = {}
    if path:
        values.update(load_file(path))
    values.update(load_env(os.environ if env is None else env))
    for k, v in (overrides or {}).items():
        if k not in OPTIONS:
            raise ConfigurationError(f"Unknown configuration option: {k}")
        if v is not None and v != "":
            values[k] = _coerce(k, v)

    config = replace(AttestConfig(), **values)
    logger.debug(f"Effective configuration:\n{config.to_yaml()}")
    return config
