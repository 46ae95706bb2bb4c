"""Source parsing: turn user-supplied repository strings into descriptors."""
import re
from typing import Optional

from pydantic import BaseModel, ConfigDict

from repo_degit.core.config import GITHUB_API
from repo_degit.core.errors import InvalidSourceError, UnsupportedHostError

DEFAULT_HOST = "github"
HEAD = "HEAD"

# host -> domain
HOST_DOMAINS = {
    "github": "github.com",
    "gitlab": "gitlab.com",
    "bitbucket": "bitbucket.org",
    "git.sr.ht": "git.sr.ht",
}

# Accepts, each optionally followed by /sub/dir and #ref:
#   owner/repo
#   host:owner/repo
#   https://host.tld/owner/repo
#   git@host.tld:owner/repo
_SOURCE_RE = re.compile(
    r"^(?:(?:https://)?([^:/]+\.[^:/]+)/|git@([^:/]+)[:/]|([^/]+):)?"
    r"([^/\s]+)/([^/\s#]+)((?:/[^/\s#]+)+)?/?(?:#(.+))?$"
)


class SourceDescriptor(BaseModel):
    """Parsed repository source."""

    model_config = ConfigDict(frozen=True)

    host: str
    owner: str
    repo: str
    ref: str = HEAD
    subdir: Optional[str] = None

    @property
    def domain(self) -> str:
        return HOST_DOMAINS[self.host]

    @property
    def url(self) -> str:
        return f"https://{self.domain}/{self.owner}/{self.repo}"

    @property
    def ssh(self) -> str:
        return f"git@{self.domain}:{self.owner}/{self.repo}"

    @property
    def cache_key(self) -> str:
        return f"{self.host}/{self.owner}/{self.repo}"

    @property
    def is_default_host(self) -> bool:
        return self.host == DEFAULT_HOST

    def archive_url(self, commit: str) -> str:
        """Direct (unauthenticated) archive URL for a commit."""
        if self.host == "gitlab":
            return f"{self.url}/-/archive/{commit}/{self.repo}-{commit}.tar.gz"
        if self.host == "bitbucket":
            return f"{self.url}/get/{commit}.tar.gz"
        return f"{self.url}/archive/{commit}.tar.gz"

    def api_archive_url(self, commit: str) -> Optional[str]:
        """Authenticated API archive URL; only the default host has one."""
        if not self.is_default_host:
            return None
        return f"{GITHUB_API}/repos/{self.owner}/{self.repo}/tarball/{commit}"

    def with_ref(self, ref: str) -> "SourceDescriptor":
        return self.model_copy(update={"ref": ref})

    def __str__(self) -> str:
        text = f"{self.owner}/{self.repo}"
        if self.subdir:
            text += f"/{self.subdir}"
        if self.ref != HEAD:
            text += f"#{self.ref}"
        return text


def _normalize_host(raw: str) -> str:
    for suffix in (".com", ".org"):
        if raw.endswith(suffix):
            return raw[: -len(suffix)]
    return raw


def parse_source(src: str) -> SourceDescriptor:
    """Parse a repository source string.

    Examples:
        user/repo                     -> github, HEAD
        gitlab:user/repo#v1.0         -> gitlab, ref v1.0
        https://github.com/user/repo  -> github
        git@bitbucket.org:user/repo   -> bitbucket
        user/repo/docs/site#main      -> subdir "docs/site", ref main

    Raises:
        InvalidSourceError: If the string matches no accepted form or
            contains "." or ".." path segments
        UnsupportedHostError: If the host is not supported
    """
    match = _SOURCE_RE.match(src.strip())
    if match is None:
        raise InvalidSourceError(f"could not parse source: {src}")

    https_host, ssh_host, prefix_host, owner, repo, subdir, ref = match.groups()
    host = _normalize_host(https_host or ssh_host or prefix_host or DEFAULT_HOST)
    if host not in HOST_DOMAINS:
        supported = ", ".join(HOST_DOMAINS)
        raise UnsupportedHostError(f"unsupported host: {host} (supported: {supported})")

    if repo.endswith(".git"):
        repo = repo[: -len(".git")]

    subdir = subdir.strip("/") if subdir else None
    segments = [owner, repo] + (subdir.split("/") if subdir else [])
    if any(segment in ("", ".", "..") for segment in segments):
        raise InvalidSourceError(f"relative path segments are not allowed in source: {src}")

    return SourceDescriptor(
        host=host,
        owner=owner,
        repo=repo,
        ref=ref or HEAD,
        subdir=subdir,
    )
