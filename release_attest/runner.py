"""External tool port: subprocess execution plus ``gh`` and ``oras`` wrappers.

Orchestrators receive a :class:`CommandRunner` instead of calling
``subprocess`` directly, so tests can substitute a recording fake. Calls are
blocking, without retries or timeouts; a non-zero exit aborts the run.
"""

from __future__ import annotations

import logging
import pathlib
import subprocess
from typing import Optional, Protocol, Sequence

from release_attest.core import validate_digest
from release_attest.errors import DigestFormatError, ExternalToolError
from release_attest.subjects import strip_oci_scheme

logger = logging.getLogger(__name__)

DOWNLOAD_LIMIT = 100


class CommandRunner(Protocol):
    def __call__(self, argv: Sequence[str], cwd: Optional[pathlib.Path] = None) -> str:
        """Run ``argv`` and return its stripped stdout."""
        ...


class SubprocessRunner:
    """Runs commands with :func:`subprocess.run`."""

    def __call__(self, argv: Sequence[str], cwd: Optional[pathlib.Path] = None) -> str:
        argv = [str(a) for a in argv]
        logger.debug(f"+ {' '.join(argv)}" + (f" (cwd={cwd})" if cwd else ""))
        try:
            completed = subprocess.run(
                argv,
                cwd=str(cwd) if cwd else None,
                check=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
        except subprocess.CalledProcessError as ex:
            raise ExternalToolError(argv, ex.returncode, ex.stderr or "") from ex
        except OSError as ex:
            raise ExternalToolError(argv, None, str(ex)) from ex
        return (completed.stdout or "").strip()


class GhAttestations:
    """``gh attestation`` download/verify."""

    def __init__(self, runner: CommandRunner, gh: str = "gh"):
        self.runner = runner
        self.gh = gh

    def download(self, subject: str, repository: str, cwd: pathlib.Path) -> None:
        """Fetch the bundle for ``subject``; gh writes ``<digest>.jsonl`` into ``cwd``."""
        self.runner(
            [
                self.gh, "attestation", "download", subject,
                "--repo", repository,
                "--limit", str(DOWNLOAD_LIMIT),
            ],
            cwd=cwd,
        )

    def verify(self, subject: str, repository: str, bundle: pathlib.Path) -> None:
        self.runner(
            [
                self.gh, "attestation", "verify", subject,
                "--repo", repository,
                "--bundle", str(bundle),
            ]
        )


class OrasResolver:
    """Resolves an image reference to its current registry digest via ``oras resolve``."""

    def __init__(self, runner: CommandRunner, oras: str = "oras"):
        self.runner = runner
        self.oras = oras

    def resolve(self, ref: str) -> str:
        bare = strip_oci_scheme(ref)
        output = self.runner([self.oras, "resolve", bare])
        try:
            return validate_digest(output)
        except DigestFormatError:
            raise DigestFormatError(
                f"Unexpected oras resolve output for {bare}: '{output}'"
            ) from None
