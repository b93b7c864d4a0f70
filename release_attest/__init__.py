"""release-attest: build and verify attestation indexes for release artifacts.

Architecture:
    release_attest/
    ├── __init__.py   # Package entry, version, public API
    ├── errors.py     # Error taxonomy
    ├── core.py       # Digests, bundle names, JSON, timestamps
    ├── subjects.py   # Local file and OCI subject resolution
    ├── schema.py     # JSON Schema validation of the index
    ├── index.py      # Index model: build, persist, load, lookup
    ├── runner.py     # External tool port (gh, oras)
    ├── config.py     # Layered YAML/env/flag configuration
    ├── export.py     # Export orchestrator
    ├── verify.py     # Verify orchestrator
    ├── rc.py         # Latest release-candidate resolution
    └── cli.py        # Command-line interface

Export downloads one attestation bundle per subject and records
subject -> digest -> bundle in ``attestations-index.json``; verify re-digests
the same subjects and checks each against the bundle the index names.
"""

__version__ = "0.3.0"

from release_attest.core import (
    digest_to_bundle_name,
    sha256_file,
    validate_digest,
)
from release_attest.config import AttestConfig, BundleNaming, load_config
from release_attest.errors import AttestError
from release_attest.index import (
    INDEX_FILENAME,
    AttestationIndex,
    IndexEntry,
    build_index,
    find_bundle_for,
    load_index,
    write_index,
)
from release_attest.subjects import resolve_local_subjects, resolve_oci_subjects
from release_attest.export import ExportResult, run_export
from release_attest.verify import VerifyResult, run_verify

__all__ = [
    "__version__",
    "AttestConfig",
    "AttestError",
    "AttestationIndex",
    "BundleNaming",
    "ExportResult",
    "INDEX_FILENAME",
    "IndexEntry",
    "VerifyResult",
    "build_index",
    "digest_to_bundle_name",
    "find_bundle_for",
    "load_config",
    "load_index",
    "resolve_local_subjects",
    "resolve_oci_subjects",
    "run_export",
    "run_verify",
    "sha256_file",
    "validate_digest",
    "write_index",
]
