import hashlib
import pathlib
import sys
import pytest


# Ensure repo root is on PYTHONPATH for direct package imports (e.g. `import release_attest`).
_REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from release_attest.errors import ExternalToolError  # noqa: E402


_ENV_VARS = (
    'ASSETS_ROOT', 'ASSET_PATTERNS_JSON', 'BUNDLE_DIR', 'TARGET_REPO', 'RC_VERSION',
    'OCI_SUBJECTS_JSON', 'REPOSITORY', 'GITHUB_REPOSITORY', 'GITHUB_OUTPUT',
    'ATTEST_BUNDLE_NAMING', 'ATTEST_LOG_LEVEL', 'ATTEST_GH_BIN', 'ATTEST_ORAS_BIN',
    'BRANCH', 'COMPONENT_PATH',
)


def digest_of(data: bytes) -> str:
    return 'sha256:' + hashlib.sha256(data).hexdigest()


class FakeRunner:
    """Stands in for gh/oras/git.

    - ``gh attestation download <subject>`` writes ``<digest>.jsonl`` into cwd
      (file digest for paths, the ``@sha256:...`` part for OCI refs)
    - ``gh attestation verify`` succeeds unless the subject is in ``reject``
    - ``oras resolve <ref>`` answers from ``digests``
    - ``git tag --list`` answers ``tags``
    """

    def __init__(self):
        self.calls = []
        self.digests = {}
        self.reject = set()
        self.produce_bundles = True
        self.tags = ''

    def __call__(self, argv, cwd=None):
        argv = [str(a) for a in argv]
        self.calls.append((argv, cwd))
        if argv[:3] == ['gh', 'attestation', 'download']:
            subject = argv[3]
            if subject.startswith('oci://'):
                digest = subject.rsplit('@', 1)[1]
            else:
                digest = digest_of(pathlib.Path(subject).read_bytes())
            if self.produce_bundles:
                out = pathlib.Path(cwd) / f'{digest}.jsonl'
                out.write_text('{"subject": "%s"}\n' % subject, encoding='utf-8')
            return ''
        if argv[:3] == ['gh', 'attestation', 'verify']:
            if argv[3] in self.reject:
                raise ExternalToolError(argv, 1, 'verification failed')
            return ''
        if argv[:2] == ['oras', 'resolve']:
            if argv[2] not in self.digests:
                raise ExternalToolError(argv, 1, f'{argv[2]}: not found')
            return self.digests[argv[2]]
        if argv[:3] == ['git', 'tag', '--list']:
            return self.tags.strip()
        raise AssertionError(f'unexpected command: {argv}')

    def commands(self, *prefix):
        return [argv for argv, _ in self.calls if argv[:len(prefix)] == list(prefix)]

    @property
    def downloads(self):
        return self.commands('gh', 'attestation', 'download')

    @property
    def verifications(self):
        return self.commands('gh', 'attestation', 'verify')


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def release_tree(tmp_path: pathlib.Path) -> pathlib.Path:
    """Assets root with two CLI binaries and an image tarball."""
    root = tmp_path / 'assets'
    (root / 'bin').mkdir(parents=True)
    (root / 'oci').mkdir()
    (root / 'bin' / 'ocm-linux-amd64').write_bytes(b'linux amd64 binary')
    (root / 'bin' / 'ocm-darwin-arm64').write_bytes(b'darwin arm64 binary')
    (root / 'oci' / 'cli.tar').write_bytes(b'oci layout tarball')
    return root
