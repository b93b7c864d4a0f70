"""Error taxonomy for the attestation index tooling.

Every failure aborts the current phase. Classes also derive from the closest
builtin exception so callers that only know ``ValueError`` or
``FileNotFoundError`` still catch them.
"""

from __future__ import annotations

from typing import Optional, Sequence


class AttestError(Exception):
    """Base class for all release attestation errors."""
    pass


class ConfigurationError(AttestError, ValueError):
    """Missing or invalid required inputs."""
    pass


class InvalidInputError(ConfigurationError):
    """A structured input (JSON list) failed to parse or validate."""
    pass


class NotFoundError(AttestError, FileNotFoundError):
    """Assets root or another required path is absent."""
    pass


class MissingIndexError(NotFoundError):
    """The persisted attestations index does not exist."""
    pass


class PatternMismatchError(AttestError):
    """A glob pattern matched no file."""

    def __init__(self, pattern: str, root: str):
        super().__init__(f"Pattern '{pattern}' did not match any file under {root}")
        self.pattern = pattern
        self.root = root


class DigestFormatError(AttestError, ValueError):
    """A digest string is not ``sha256:<64 hex>``."""
    pass


class DigestMismatchError(AttestError):
    """A subject's recomputed digest differs from the one recorded in the index."""

    def __init__(self, subject: str, expected: str, actual: str):
        super().__init__(
            f"Digest mismatch for {subject}: index records {expected}, file has {actual}"
        )
        self.subject = subject
        self.expected = expected
        self.actual = actual


class SubjectReadError(AttestError, OSError):
    """A local subject could not be read for hashing."""
    pass


class CorruptIndexError(AttestError, ValueError):
    """The index file is malformed or misses its entry collection."""
    pass


class BundleNotProducedError(AttestError):
    """The download tool returned but the expected bundle is not on disk."""
    pass


class MissingBundleFileError(NotFoundError):
    """An index entry references a bundle file that is absent."""
    pass


class UnknownSubjectError(AttestError, LookupError):
    """The index has no entry for a subject being verified."""
    pass


class ExternalToolError(AttestError):
    """An external command exited non-zero or could not be started."""

    def __init__(
        self,
        argv: Sequence[str],
        returncode: Optional[int],
        stderr: str = "",
    ):
        cmd = " ".join(argv)
        if returncode is None:
            msg = f"Command could not be started: {cmd}"
        else:
            msg = f"Command failed with exit code {returncode}: {cmd}"
        if stderr:
            msg = f"{msg}\n{stderr.strip()}"
        super().__init__(msg)
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
