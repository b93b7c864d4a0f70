"""Attestations index: the manifest binding subjects to digests and bundle files.

The canonical shape written by export::

    {
      "version": "1",
      "generated_at": "2026-01-01T00:00:00.000Z",
      "image": "oci://ghcr.io/acme/cli:0.8.0-rc.1",
      "attestations": [
        {"subject": "ocm-linux-amd64", "type": "binary",
         "digest": "sha256:...", "bundle": "sha256:....jsonl"}
      ]
    }

The legacy ``{"image": ..., "bundles": [{"name": ..., "digest": ...}]}`` shape
is still accepted on read. It records no subjects, so lookups against it go
by digest. Which shape a file carries is decided once, in :func:`load_index`.
"""

from __future__ import annotations

import json
import logging
import pathlib
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from release_attest.core import (
    bundle_name_to_digest,
    load_json,
    now_iso8601,
    validate_digest,
    write_json,
)
from release_attest.errors import (
    CorruptIndexError,
    DigestFormatError,
    InvalidInputError,
    MissingBundleFileError,
    MissingIndexError,
    UnknownSubjectError,
)
from release_attest.schema import validate_against_schema
from release_attest.subjects import normalize_oci_ref

logger = logging.getLogger(__name__)

INDEX_FILENAME = "attestations-index.json"
INDEX_VERSION = "1"

KIND_BINARY = "binary"
KIND_OCI_IMAGE = "oci-image"


class IndexFormat(Enum):
    ATTESTATIONS = "attestations"
    BUNDLES = "bundles"


@dataclass(frozen=True)
class IndexEntry:
    """One subject -> digest -> bundle binding.

    ``subject`` and ``kind`` are empty for entries read from a legacy
    bundle-only index. ``digest`` is always set on a loaded index.
    """
    subject: str
    kind: str
    digest: str
    bundle: str

    def sort_key(self):
        return (self.bundle, self.subject)

    def to_dict(self) -> Dict[str, str]:
        return {
            "subject": self.subject,
            "type": self.kind,
            "digest": self.digest,
            "bundle": self.bundle,
        }


@dataclass
class AttestationIndex:
    image: str
    entries: List[IndexEntry]
    generated_at: str
    format: IndexFormat = IndexFormat.ATTESTATIONS
    version: str = INDEX_VERSION
    image_digest: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "generated_at": self.generated_at,
            "image": self.image,
            "attestations": [e.to_dict() for e in self.entries],
        }

    def entries_of_kind(self, kind: str) -> List[IndexEntry]:
        return [e for e in self.entries if e.kind == kind]


def build_index(
    primary: str,
    entries: Iterable[IndexEntry],
    *,
    generated_at: Optional[str] = None,
) -> AttestationIndex:
    """Stamp the current time and order entries by bundle filename, then subject."""
    return AttestationIndex(
        image=primary,
        entries=sorted(entries, key=IndexEntry.sort_key),
        generated_at=generated_at or now_iso8601(),
    )


def index_path(directory: pathlib.Path) -> pathlib.Path:
    return pathlib.Path(directory) / INDEX_FILENAME


def write_index(directory: pathlib.Path, index: AttestationIndex) -> pathlib.Path:
    path = index_path(directory)
    write_json(path, index.to_dict())
    logger.info(f"Wrote attestations index with {len(index.entries)} entries to {path}")
    return path


def load_index(directory: pathlib.Path) -> AttestationIndex:
    """Read and validate the index in ``directory``."""
    path = index_path(directory)
    if not path.is_file():
        raise MissingIndexError(f"Attestations index not found: {path}")

    try:
        data = load_json(path)
    except (UnicodeDecodeError, json.JSONDecodeError) as ex:
        raise CorruptIndexError(f"Invalid attestations index {path}: {ex}") from ex

    if not isinstance(data, dict) or not (
        isinstance(data.get("attestations"), list) or isinstance(data.get("bundles"), list)
    ):
        raise CorruptIndexError(
            f"Invalid attestations index {path}: missing attestations array"
        )

    errors = validate_against_schema(data)
    if errors:
        raise CorruptIndexError(f"Invalid attestations index {path}: " + "; ".join(errors))

    try:
        image_ref, image_digest = _parse_image(data.get("image"))
        if isinstance(data.get("attestations"), list):
            fmt = IndexFormat.ATTESTATIONS
            entries = _parse_attestations(data["attestations"], image_ref, image_digest)
        else:
            fmt = IndexFormat.BUNDLES
            entries = _parse_bundles(data["bundles"])
    except (DigestFormatError, InvalidInputError) as ex:
        raise CorruptIndexError(f"Invalid attestations index {path}: {ex}") from ex

    undigested = [e.subject for e in entries if not e.digest]
    if undigested:
        raise CorruptIndexError(
            f"Invalid attestations index {path}: no digest recorded for {', '.join(undigested)}"
        )

    return AttestationIndex(
        image=image_ref,
        entries=entries,
        generated_at=str(data.get("generated_at") or ""),
        format=fmt,
        version=str(data.get("version") or ""),
        image_digest=image_digest,
    )


def _parse_image(raw: Any):
    if isinstance(raw, dict):
        digest = raw.get("digest") or ""
        return str(raw.get("ref") or ""), validate_digest(digest) if digest else ""
    return str(raw or ""), ""


def _parse_attestations(
    items: List[Dict[str, Any]],
    image_ref: str,
    image_digest: str,
) -> List[IndexEntry]:
    out: List[IndexEntry] = []
    for item in items:
        subject = item["subject"]
        kind = item.get("type") or ""
        digest = validate_digest(item["digest"]) if item.get("digest") else ""
        if kind == KIND_OCI_IMAGE:
            subject = normalize_oci_ref(subject)
            # Older indexes kept the image digest beside the ref, not on the entry.
            if not digest and image_ref and normalize_oci_ref(image_ref) == subject:
                digest = image_digest
        out.append(IndexEntry(subject=subject, kind=kind, digest=digest, bundle=item["bundle"]))
    return out


def _parse_bundles(items: List[Dict[str, Any]]) -> List[IndexEntry]:
    out: List[IndexEntry] = []
    for item in items:
        name = item["name"]
        digest = validate_digest(item["digest"]) if item.get("digest") else bundle_name_to_digest(name)
        out.append(IndexEntry(subject="", kind="", digest=digest, bundle=name))
    return out


def find_entry(
    index: AttestationIndex,
    key: str,
    digest: Optional[str] = None,
) -> IndexEntry:
    """Look up the entry for a subject key.

    Legacy bundle-only indexes carry no subjects; for those ``digest`` selects
    the entry instead.
    """
    if index.format is IndexFormat.BUNDLES:
        if not digest:
            raise UnknownSubjectError(
                f"No attestation entry found for subject: {key} (index records no subjects)"
            )
        for entry in index.entries:
            if entry.digest == digest:
                return entry
        raise UnknownSubjectError(
            f"No attestation entry found for subject: {key} (digest {digest})"
        )

    for entry in index.entries:
        if entry.subject == key:
            return entry
    raise UnknownSubjectError(f"No attestation entry found for subject: {key}")


def bundle_path(directory: pathlib.Path, entry: IndexEntry) -> pathlib.Path:
    path = pathlib.Path(directory) / entry.bundle
    if not path.is_file():
        raise MissingBundleFileError(f"Attestation bundle not found: {path}")
    return path


def find_bundle_for(
    index: AttestationIndex,
    directory: pathlib.Path,
    key: str,
    digest: Optional[str] = None,
) -> pathlib.Path:
    """Path of the bundle recorded for ``key``; the file must exist."""
    return bundle_path(directory, find_entry(index, key, digest))
