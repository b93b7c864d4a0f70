"""Subject discovery: local release files by glob pattern and OCI image references.

Local subjects are keyed by basename and OCI subjects by their normalized
``oci://`` reference. Both are returned in a stable sorted order so repeated
runs over an unchanged tree produce identical indexes.
"""

from __future__ import annotations

import json
import logging
import pathlib
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Union

from release_attest.errors import (
    ConfigurationError,
    InvalidInputError,
    NotFoundError,
    PatternMismatchError,
)

logger = logging.getLogger(__name__)

OCI_SCHEME = "oci://"


@dataclass(frozen=True)
class LocalSubject:
    """A release file on disk."""
    path: pathlib.Path

    @property
    def key(self) -> str:
        return self.path.name

    @property
    def kind(self) -> str:
        return "binary"


@dataclass(frozen=True)
class OciSubject:
    """An OCI image reference, tag or digest qualified, always with the ``oci://`` scheme."""
    ref: str

    @property
    def key(self) -> str:
        return self.ref

    @property
    def kind(self) -> str:
        return "oci-image"

    @property
    def repository(self) -> str:
        return oci_repository(self.ref)

    @property
    def tag(self) -> str:
        return oci_tag(self.ref)


def parse_json_string_array(text: Optional[str], name: str) -> List[str]:
    """Parse a JSON array of non-empty strings; ``name`` labels the option in errors."""
    try:
        parsed = json.loads(text if text is not None else "")
    except (TypeError, ValueError):
        raise InvalidInputError(f"Invalid {name}: {text}") from None
    return validate_string_list(parsed, name)


def validate_string_list(values: Any, name: str) -> List[str]:
    if (
        not isinstance(values, list)
        or not values
        or any(not isinstance(v, str) or not v for v in values)
    ):
        raise InvalidInputError(f"{name} must be a non-empty JSON array of non-empty strings")
    return list(values)


def _file_glob(pattern: pathlib.PurePath) -> str:
    """A trailing ``**`` means every file below; ``Path.glob`` would yield only directories."""
    if pattern.parts[-1] == "**":
        return str(pattern / "*")
    return str(pattern)


def resolve_local_subjects(root: pathlib.Path, patterns: Sequence[str]) -> List[pathlib.Path]:
    """Match every pattern under ``root`` and return the union of matched files, sorted.

    Each pattern must match at least one file: a pattern guards a required
    release asset, so zero matches is fatal.
    """
    root = pathlib.Path(root)
    if not root.exists():
        raise NotFoundError(f"Assets root does not exist: {root}")
    if not root.is_dir():
        raise NotFoundError(f"Assets root is not a directory: {root}")
    root = root.resolve()

    found: Dict[str, pathlib.Path] = {}
    for pattern in patterns:
        pure = pathlib.PurePath(pattern)
        if pure.is_absolute():
            raise InvalidInputError(f"Pattern '{pattern}' must be relative to the assets root")
        if not pure.parts:
            raise InvalidInputError(f"Pattern '{pattern}' does not name any file under the assets root")
        matches = [p for p in root.glob(_file_glob(pure)) if p.is_file()]
        if not matches:
            raise PatternMismatchError(pattern, str(root))
        logger.debug(f"Pattern '{pattern}' matched {len(matches)} file(s)")
        for p in matches:
            found[str(p)] = p

    return [found[k] for k in sorted(found)]


def local_subjects(paths: Sequence[pathlib.Path]) -> List[LocalSubject]:
    """Wrap resolved paths, rejecting basename collisions (the basename is the index key)."""
    seen: Dict[str, pathlib.Path] = {}
    out: List[LocalSubject] = []
    for p in paths:
        prev = seen.get(p.name)
        if prev is not None and prev != p:
            raise ConfigurationError(
                f"Subjects {prev} and {p} share the basename '{p.name}'"
            )
        seen[p.name] = p
        out.append(LocalSubject(p))
    return out


def normalize_oci_ref(ref: str) -> str:
    rr = str(ref or "").strip()
    bare = strip_oci_scheme(rr)
    if not bare:
        raise InvalidInputError(f"Invalid OCI reference: '{ref}'")
    return f"{OCI_SCHEME}{bare}"


def strip_oci_scheme(ref: str) -> str:
    if ref.startswith(OCI_SCHEME):
        return ref[len(OCI_SCHEME):]
    return ref


def _split_ref(ref: str):
    """Split a bare reference into (repository, tag, digest)."""
    bare = strip_oci_scheme(ref)
    digest = ""
    if "@" in bare:
        bare, digest = bare.split("@", 1)
    tag = ""
    slash = bare.rfind("/")
    colon = bare.rfind(":")
    # A colon before the last slash belongs to a registry port.
    if colon > slash:
        bare, tag = bare[:colon], bare[colon + 1:]
    return bare, tag, digest


def oci_repository(ref: str) -> str:
    """Repository part of a reference, without scheme, tag or digest."""
    return _split_ref(ref)[0]


def oci_tag(ref: str) -> str:
    return _split_ref(ref)[1]


def oci_digest_ref(ref: str, digest: str) -> str:
    """Digest-qualified reference ``oci://<repo>@<digest>``; tags are mutable, digests are not."""
    return f"{OCI_SCHEME}{oci_repository(ref)}@{digest}"


def resolve_oci_subjects(
    explicit: Union[str, Sequence[str], None] = None,
    repo: Optional[str] = None,
    version: Optional[str] = None,
) -> List[str]:
    """Return OCI references, normalized and deduplicated, primary image first.

    Uses the explicit list (a JSON array string or a sequence) when given,
    otherwise synthesizes ``oci://<repo>:<version>``.
    """
    if isinstance(explicit, str) and explicit:
        raw = parse_json_string_array(explicit, "OCI_SUBJECTS_JSON")
    elif explicit is not None and not isinstance(explicit, str):
        raw = validate_string_list(list(explicit), "OCI_SUBJECTS_JSON")
    elif repo and version:
        raw = [f"{OCI_SCHEME}{strip_oci_scheme(repo)}:{version}"]
    else:
        raise ConfigurationError(
            "Missing TARGET_REPO/RC_VERSION and OCI_SUBJECTS_JSON not provided"
        )

    out: List[str] = []
    for r in raw:
        nr = normalize_oci_ref(r)
        if nr not in out:
            out.append(nr)
    return out
