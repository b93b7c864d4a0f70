"""Export phase: download attestation bundles for every subject and write the index.

Flow (strictly sequential, no retries)::

    resolve subjects -> for each subject {digest -> gh download -> expect/rename bundle}
                     -> build index -> persist

All configuration and subject resolution happens before the first external
command runs, so input errors never leave a half-populated bundle directory.
"""

from __future__ import annotations

import logging
import os
import pathlib
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from release_attest.config import AttestConfig, BundleNaming
from release_attest.core import digest_to_bundle_name, readable_bundle_name, sha256_file
from release_attest.errors import BundleNotProducedError, ConfigurationError
from release_attest.index import (
    KIND_BINARY,
    KIND_OCI_IMAGE,
    AttestationIndex,
    IndexEntry,
    build_index,
    write_index,
)
from release_attest.runner import CommandRunner, GhAttestations, OrasResolver, SubprocessRunner
from release_attest.subjects import (
    LocalSubject,
    OciSubject,
    local_subjects,
    oci_digest_ref,
    resolve_local_subjects,
    resolve_oci_subjects,
)

logger = logging.getLogger(__name__)

_UNSAFE_LABEL_RE = re.compile(r"[^a-z0-9._-]+")


@dataclass
class ExportResult:
    bundle_count: int
    index_path: pathlib.Path
    index: AttestationIndex


def oci_bundle_label(subject: OciSubject, single: bool) -> str:
    """Readable label for an image bundle: ``image``, or ``image-<name>-<tag>`` when several."""
    if single:
        return "image"
    name = subject.repository.rsplit("/", 1)[-1]
    qualifier = subject.tag
    if not qualifier and "@" in subject.ref:
        qualifier = subject.ref.rsplit("@", 1)[1].split(":", 1)[-1][:12]
    label = f"image-{name}-{qualifier or 'latest'}".lower()
    return _UNSAFE_LABEL_RE.sub("-", label).strip("-")


def _readable_names(
    locals_: Sequence[LocalSubject],
    ocis: Sequence[OciSubject],
) -> Dict[str, str]:
    """Map subject key -> readable bundle name, rejecting collisions."""
    names: Dict[str, str] = {}
    owners: Dict[str, str] = {}
    single = len(ocis) == 1
    candidates = [(s.key, s.path.name) for s in locals_]
    candidates += [(s.key, oci_bundle_label(s, single)) for s in ocis]
    for key, label in candidates:
        name = readable_bundle_name(label)
        if name in owners:
            raise ConfigurationError(
                f"Subjects {owners[name]} and {key} would share the bundle name {name}"
            )
        owners[name] = key
        names[key] = name
    return names


def fetch_bundle(
    gh: GhAttestations,
    subject_ref: str,
    repository: str,
    bundle_dir: pathlib.Path,
    digest: str,
    target_name: str,
) -> pathlib.Path:
    """Download the bundle for ``subject_ref`` and move it to ``target_name``.

    gh always writes ``<digest>.jsonl``; anything else is renamed in place.
    """
    gh.download(subject_ref, repository, bundle_dir)
    produced = bundle_dir / digest_to_bundle_name(digest)
    if not produced.is_file():
        raise BundleNotProducedError(
            f"Missing expected bundle after download of {subject_ref}: {produced}"
        )
    target = bundle_dir / target_name
    if produced != target:
        os.replace(produced, target)
    return target


def run_export(config: AttestConfig, runner: Optional[CommandRunner] = None) -> ExportResult:
    """Export bundles for all configured subjects and write ``attestations-index.json``."""
    config.require_for_export()
    runner = runner or SubprocessRunner()

    paths = resolve_local_subjects(pathlib.Path(config.assets_root), config.asset_patterns)
    files = local_subjects(paths)
    oci_refs = resolve_oci_subjects(config.oci_subjects, config.target_repo, config.version)
    primary = oci_refs[0]
    images = [OciSubject(r) for r in sorted(oci_refs)]

    readable: Dict[str, str] = {}
    if config.bundle_naming is BundleNaming.READABLE:
        readable = _readable_names(files, images)

    bundle_dir = pathlib.Path(config.bundle_dir)
    bundle_dir.mkdir(parents=True, exist_ok=True)
    gh = GhAttestations(runner, config.gh_bin)
    oras = OrasResolver(runner, config.oras_bin)

    logger.info(f"Found {len(files)} local and {len(images)} OCI subjects to export attestations for")

    entries: List[IndexEntry] = []
    for subject in files:
        digest = sha256_file(subject.path)
        name = readable.get(subject.key) or digest_to_bundle_name(digest)
        logger.info(f"Downloading attestation for {subject.key} ({digest})...")
        fetch_bundle(gh, str(subject.path), config.repository, bundle_dir, digest, name)
        entries.append(IndexEntry(subject=subject.key, kind=KIND_BINARY, digest=digest, bundle=name))

    for image in images:
        digest = oras.resolve(image.ref)
        name = readable.get(image.key) or digest_to_bundle_name(digest)
        # Download by digest so a tag moved after resolve cannot change the content.
        pinned = oci_digest_ref(image.ref, digest)
        logger.info(f"Downloading attestation for OCI image {pinned}...")
        fetch_bundle(gh, pinned, config.repository, bundle_dir, digest, name)
        entries.append(IndexEntry(subject=image.key, kind=KIND_OCI_IMAGE, digest=digest, bundle=name))

    index = build_index(primary, entries)
    path = write_index(bundle_dir, index)
    logger.info(f"Exported {len(entries)} attestation bundles")
    return ExportResult(bundle_count=len(entries), index_path=path, index=index)
