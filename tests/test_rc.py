"""Latest release-candidate resolution."""
import pytest

from release_attest.errors import ConfigurationError
from release_attest.rc import (
    RcMetadata,
    derive_latest_rc_metadata,
    latest_tag,
    parse_release_branch,
    resolve_latest_rc,
)


def test_parse_release_branch():
    assert parse_release_branch("releases/v0.1") == "0.1"
    assert parse_release_branch("releases/v0.27") == "0.27"


@pytest.mark.parametrize("branch", ["", "main", "releases/v1.0", "releases/0.1", "releases/v0.1/x"])
def test_parse_release_branch_rejects(branch):
    with pytest.raises(ConfigurationError, match="Invalid branch format"):
        parse_release_branch(branch)


def test_derive_metadata():
    meta = derive_latest_rc_metadata("cli/v0.8.0-rc.3", "cli")
    assert meta == RcMetadata(
        latest_rc_tag="cli/v0.8.0-rc.3",
        latest_rc_version="0.8.0-rc.3",
        latest_promotion_version="0.8.0",
        latest_promotion_tag="cli/v0.8.0",
    )


def test_derive_metadata_without_tag():
    assert derive_latest_rc_metadata("", "cli") == RcMetadata()
    assert RcMetadata().to_dict() == {
        "latest_rc_tag": "",
        "latest_rc_version": "",
        "latest_promotion_version": "",
        "latest_promotion_tag": "",
    }


def test_latest_tag_uses_natural_order():
    tags = ["cli/v0.8.0-rc.9", "cli/v0.8.0-rc.10", "cli/v0.8.0-rc.2", "cli/v0.8.1-rc.1", ""]
    assert latest_tag(tags) == "cli/v0.8.1-rc.1"
    assert latest_tag(tags[:3]) == "cli/v0.8.0-rc.10"
    assert latest_tag([]) == ""


def test_resolve_latest_rc(fake_runner):
    fake_runner.tags = "cli/v0.8.0-rc.1\ncli/v0.8.0-rc.12\ncli/v0.8.0-rc.3\n"
    meta = resolve_latest_rc("releases/v0.8", "cli", runner=fake_runner)
    assert fake_runner.calls[0][0] == ["git", "tag", "--list", "cli/v0.8.*-rc.*"]
    assert meta.latest_rc_tag == "cli/v0.8.0-rc.12"
    assert meta.latest_promotion_tag == "cli/v0.8.0"


def test_resolve_latest_rc_without_tags(fake_runner):
    assert resolve_latest_rc("releases/v0.8", "cli", runner=fake_runner) == RcMetadata()


def test_resolve_latest_rc_requires_component(fake_runner):
    with pytest.raises(ConfigurationError):
        resolve_latest_rc("releases/v0.8", "", runner=fake_runner)
    assert fake_runner.calls == []
