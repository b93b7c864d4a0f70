"""Release-candidate resolution for final promotion.

Release branches are named ``releases/v0.X``. RC tags look like
``<component>/v0.X.Y-rc.N``; promoting the latest RC drops the ``-rc.N``
suffix.
"""

from __future__ import annotations

import logging
import pathlib
import re
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional

from release_attest.errors import ConfigurationError
from release_attest.runner import CommandRunner, SubprocessRunner

logger = logging.getLogger(__name__)

RELEASE_BRANCH_RE = re.compile(r"^releases/v(0\.\d+)$")
RC_SUFFIX_RE = re.compile(r"-rc\.\d+$")


@dataclass(frozen=True)
class RcMetadata:
    latest_rc_tag: str = ""
    latest_rc_version: str = ""
    latest_promotion_version: str = ""
    latest_promotion_tag: str = ""

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


def parse_release_branch(branch: str) -> str:
    """Return the base prefix of a release branch, e.g. ``0.1`` for ``releases/v0.1``."""
    m = RELEASE_BRANCH_RE.match(branch or "")
    if not m:
        raise ConfigurationError(f"Invalid branch format: {branch}")
    return m.group(1)


def derive_latest_rc_metadata(latest_rc_tag: str, component_path: str) -> RcMetadata:
    if not latest_rc_tag:
        return RcMetadata()
    prefix = f"{component_path}/v"
    version = latest_rc_tag[len(prefix):] if latest_rc_tag.startswith(prefix) else latest_rc_tag
    promotion = RC_SUFFIX_RE.sub("", version)
    return RcMetadata(
        latest_rc_tag=latest_rc_tag,
        latest_rc_version=version,
        latest_promotion_version=promotion,
        latest_promotion_tag=f"{prefix}{promotion}",
    )


def version_sort_key(tag: str):
    """Natural ordering: digit runs compare numerically (``rc.10`` after ``rc.9``)."""
    return [(0, int(p), "") if p.isdigit() else (1, 0, p) for p in re.split(r"(\d+)", tag) if p]


def latest_tag(tags: List[str]) -> str:
    tags = [t.strip() for t in tags if t.strip()]
    return max(tags, key=version_sort_key) if tags else ""


def resolve_latest_rc(
    branch: str,
    component_path: str,
    runner: Optional[CommandRunner] = None,
    repo_dir: Optional[pathlib.Path] = None,
) -> RcMetadata:
    """Find the newest RC tag of ``component_path`` on the release line of ``branch``."""
    base = parse_release_branch(branch)
    if not component_path:
        raise ConfigurationError("component path is required")

    runner = runner or SubprocessRunner()
    pattern = f"{component_path}/v{base}.*-rc.*"
    output = runner(["git", "tag", "--list", pattern], cwd=repo_dir)
    tag = latest_tag(output.splitlines())
    if tag:
        logger.info(f"Latest RC for {component_path} on {branch}: {tag}")
    else:
        logger.info(f"No RC tag found for {component_path} on {branch}")
    return derive_latest_rc_metadata(tag, component_path)
