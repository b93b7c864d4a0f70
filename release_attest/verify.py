"""Verify phase: re-resolve subjects and check each against its indexed bundle.

The index is authoritative. Bundles are looked up through it, never
re-derived. Images are verified by the digest recorded at export time,
``oci://<repo>@<digest>``, because the tag may since have moved. The first
failing subject aborts the run.
"""

from __future__ import annotations

import logging
import pathlib
from dataclasses import dataclass, field
from typing import List, Optional

from release_attest.config import AttestConfig
from release_attest.core import sha256_file
from release_attest.errors import DigestMismatchError
from release_attest.index import KIND_OCI_IMAGE, AttestationIndex, bundle_path, find_entry, load_index
from release_attest.runner import CommandRunner, GhAttestations, OrasResolver, SubprocessRunner
from release_attest.subjects import (
    OciSubject,
    local_subjects,
    normalize_oci_ref,
    oci_digest_ref,
    resolve_local_subjects,
    resolve_oci_subjects,
)

logger = logging.getLogger(__name__)


@dataclass
class VerifyResult:
    verified_count: int = 0
    verified_image_digest: str = ""
    verified_subjects: List[str] = field(default_factory=list)


def _oci_refs(config: AttestConfig, index: AttestationIndex) -> List[str]:
    """Configured OCI subjects, else the images recorded in the index."""
    if config.has_oci_inputs:
        return resolve_oci_subjects(config.oci_subjects, config.target_repo, config.version)
    refs = [e.subject for e in index.entries_of_kind(KIND_OCI_IMAGE)]
    if not refs and index.image:
        refs = [normalize_oci_ref(index.image)]
    if index.image:
        primary = normalize_oci_ref(index.image)
        if primary in refs:
            refs.remove(primary)
            refs.insert(0, primary)
    return refs


def verify_image(
    image: OciSubject,
    index: AttestationIndex,
    index_dir: pathlib.Path,
    gh: GhAttestations,
    oras: OrasResolver,
    repository: str,
) -> str:
    """Verify one image against its indexed digest; returns that digest."""
    current = oras.resolve(image.ref)
    entry = find_entry(index, image.key, current)
    recorded = entry.digest
    if current != recorded:
        logger.warning(
            f"{image.key} now resolves to {current}; verifying the indexed digest {recorded}"
        )
    bundle = bundle_path(index_dir, entry)
    pinned = oci_digest_ref(image.ref, recorded)
    logger.info(f"Verifying attestation for OCI image {pinned}...")
    gh.verify(pinned, repository, bundle)
    return recorded


def run_verify(config: AttestConfig, runner: Optional[CommandRunner] = None) -> VerifyResult:
    """Verify all configured subjects against the persisted index."""
    config.require_for_verify()
    runner = runner or SubprocessRunner()

    paths = resolve_local_subjects(pathlib.Path(config.assets_root), config.asset_patterns)
    files = local_subjects(paths)
    index_dir = config.index_dir
    index = load_index(index_dir)
    oci_refs = _oci_refs(config, index)
    images = [OciSubject(r) for r in sorted(oci_refs)]

    logger.info(f"Loaded attestations index with {len(index.entries)} entries")
    logger.info(f"Found {len(files)} local and {len(images)} OCI subjects to verify")

    gh = GhAttestations(runner, config.gh_bin)
    oras = OrasResolver(runner, config.oras_bin)
    result = VerifyResult()

    for subject in files:
        digest = sha256_file(subject.path)
        entry = find_entry(index, subject.key, digest)
        if entry.digest != digest:
            raise DigestMismatchError(subject.key, entry.digest, digest)
        bundle = bundle_path(index_dir, entry)
        logger.info(f"Verifying attestation for {subject.key}...")
        gh.verify(str(subject.path), config.repository, bundle)
        result.verified_count += 1
        result.verified_subjects.append(subject.key)

    digests = {}
    for image in images:
        digests[image.ref] = verify_image(image, index, index_dir, gh, oras, config.repository)
        result.verified_count += 1
        result.verified_subjects.append(image.key)

    if oci_refs:
        result.verified_image_digest = digests.get(oci_refs[0], "")
    logger.info(f"All {result.verified_count} attestations verified successfully")
    return result
