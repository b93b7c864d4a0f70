"""Core primitives for release attestation.

- Content hashing of local subjects (``sha256:<hex>``)
- Digest validation for resolver output
- Deterministic bundle filenames
- JSON persistence and timestamps
"""

from __future__ import annotations

import hashlib
import json
import os
import pathlib
import re
from datetime import datetime, timezone
from typing import Any

from release_attest.errors import DigestFormatError, SubjectReadError

DIGEST_RE = re.compile(r"^sha256:[0-9a-f]{64}$", re.IGNORECASE)
BUNDLE_SUFFIX = ".jsonl"
READABLE_PREFIX = "attestation-"

_CHUNK_SIZE = 1024 * 1024


def sha256_file(path: pathlib.Path) -> str:
    """Compute the canonical ``sha256:<hex>`` digest of a file's content."""
    h = hashlib.sha256()
    try:
        with open(path, "rb") as fh:
            for chunk in iter(lambda: fh.read(_CHUNK_SIZE), b""):
                h.update(chunk)
    except OSError as ex:
        raise SubjectReadError(f"Cannot read subject {path}: {ex.strerror or ex}") from ex
    return f"sha256:{h.hexdigest()}"


def validate_digest(candidate: Any) -> str:
    """Validate a digest string and return it lowercased.

    Surrounding whitespace is ignored, since resolvers print a trailing newline.
    """
    dd = str(candidate if candidate is not None else "").strip()
    if not DIGEST_RE.match(dd):
        raise DigestFormatError(f"Invalid digest format: '{candidate}'")
    return dd.lower()


def is_valid_digest(candidate: Any) -> bool:
    try:
        validate_digest(candidate)
    except DigestFormatError:
        return False
    return True


def digest_to_bundle_name(digest: str) -> str:
    """Return the bundle filename written by the download tool: ``<digest>.jsonl``."""
    return f"{validate_digest(digest)}{BUNDLE_SUFFIX}"


def bundle_name_to_digest(name: str) -> str:
    """Inverse of :func:`digest_to_bundle_name`."""
    if not name.endswith(BUNDLE_SUFFIX):
        raise DigestFormatError(f"Bundle name does not end with {BUNDLE_SUFFIX}: '{name}'")
    return validate_digest(name[: -len(BUNDLE_SUFFIX)])


def readable_bundle_name(label: str) -> str:
    """Human-readable bundle filename: ``attestation-<label>.jsonl``."""
    ll = str(label or "").strip()
    if not is_simple_filename(ll):
        raise ValueError(f"bundle label must be a simple filename: '{label}'")
    return f"{READABLE_PREFIX}{ll}{BUNDLE_SUFFIX}"


def is_simple_filename(name: str) -> bool:
    if not name or name in (".", ".."):
        return False
    return os.path.sep not in name and "/" not in name and "\\" not in name


def write_json(path: pathlib.Path, obj: Any) -> None:
    """Write indented JSON with a trailing newline."""
    pathlib.Path(path).write_text(
        json.dumps(obj, indent=2, ensure_ascii=False) + "\n",
        encoding="utf-8",
    )


def load_json(path: pathlib.Path) -> Any:
    return json.loads(pathlib.Path(path).read_text(encoding="utf-8"))


def now_iso8601() -> str:
    """Current UTC time, millisecond precision, ``Z`` suffix."""
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )
