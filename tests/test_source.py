"""Tests for source string parsing."""
import pytest

from repo_degit.core.errors import InvalidSourceError, UnsupportedHostError
from repo_degit.source import parse_source


@pytest.mark.parametrize(
    "raw",
    [
        "user/repo",
        "github:user/repo",
        "https://github.com/user/repo",
        "git@github.com:user/repo",
        "github.com/user/repo",
        "user/repo.git",
    ],
)
def test_github_shapes_produce_identical_descriptors(raw):
    """All shapes naming the same GitHub repo parse to the same descriptor."""
    assert parse_source(raw) == parse_source("user/repo")
    assert parse_source(raw).url == "https://github.com/user/repo"


def test_defaults():
    src = parse_source("user/repo")

    assert src.host == "github"
    assert src.owner == "user"
    assert src.repo == "repo"
    assert src.ref == "HEAD"
    assert src.subdir is None
    assert src.ssh == "git@github.com:user/repo"
    assert src.cache_key == "github/user/repo"


def test_ref_and_subdir():
    src = parse_source("user/repo/templates/basic#v1.2.0")

    assert src.ref == "v1.2.0"
    assert src.subdir == "templates/basic"
    assert str(src) == "user/repo/templates/basic#v1.2.0"


def test_trailing_slash_on_subdir_is_ignored():
    assert parse_source("user/repo/docs/").subdir == "docs"


def test_git_suffix_stripped_with_ref():
    src = parse_source("git@gitlab.com:group/project.git#main")

    assert src.host == "gitlab"
    assert src.repo == "project"
    assert src.ref == "main"
    assert src.url == "https://gitlab.com/group/project"


@pytest.mark.parametrize(
    "raw, host, url",
    [
        ("gitlab:user/repo", "gitlab", "https://gitlab.com/user/repo"),
        ("bitbucket:user/repo", "bitbucket", "https://bitbucket.org/user/repo"),
        ("https://bitbucket.org/user/repo", "bitbucket", "https://bitbucket.org/user/repo"),
        ("git.sr.ht:~user/repo", "git.sr.ht", "https://git.sr.ht/~user/repo"),
        ("https://git.sr.ht/~user/repo", "git.sr.ht", "https://git.sr.ht/~user/repo"),
    ],
)
def test_other_hosts(raw, host, url):
    src = parse_source(raw)
    assert src.host == host
    assert src.url == url


def test_archive_urls():
    commit = "c" * 40
    assert parse_source("user/repo").archive_url(commit) == f"https://github.com/user/repo/archive/{commit}.tar.gz"
    assert (
        parse_source("gitlab:user/repo").archive_url(commit)
        == f"https://gitlab.com/user/repo/-/archive/{commit}/repo-{commit}.tar.gz"
    )
    assert parse_source("bitbucket:user/repo").archive_url(commit) == f"https://bitbucket.org/user/repo/get/{commit}.tar.gz"
    assert parse_source("git.sr.ht:~u/repo").archive_url(commit) == f"https://git.sr.ht/~u/repo/archive/{commit}.tar.gz"


def test_api_archive_url_only_for_github():
    assert parse_source("user/repo").api_archive_url("abc") == "https://api.github.com/repos/user/repo/tarball/abc"
    assert parse_source("gitlab:user/repo").api_archive_url("abc") is None


def test_unsupported_host():
    with pytest.raises(UnsupportedHostError):
        parse_source("https://example.com/user/repo")


def test_unsupported_host_is_invalid_source():
    with pytest.raises(InvalidSourceError):
        parse_source("sourceforge:user/repo")


@pytest.mark.parametrize("raw", ["", "justone", "user/", "/repo", "user repo/x"])
def test_unparseable(raw):
    with pytest.raises(InvalidSourceError):
        parse_source(raw)


def test_descriptor_is_immutable():
    src = parse_source("user/repo")
    with pytest.raises(Exception):
        src.owner = "other"


@pytest.mark.parametrize(
    "raw",
    ["user/repo/..", "user/repo/./docs", "user/repo/docs/../..", "../repo", "user/..", "gitlab:./repo#main"],
)
def test_relative_segments_rejected(raw):
    with pytest.raises(InvalidSourceError):
        parse_source(raw)
