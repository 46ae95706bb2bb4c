"""Archive fetcher: list remote references and download commit archives."""
import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

import httpx

from repo_degit.core.config import (
    GITHUB_API,
    GITHUB_API_VERSION,
    MAX_REDIRECTS,
    PAGE_SIZE,
    TRUSTED_REDIRECT_HOSTS,
    USER_AGENT,
)
from repo_degit.core.errors import (
    ArchiveFetchError,
    DownloadFailedError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
)
from repo_degit.source.descriptor import SourceDescriptor
from repo_degit.source.refs import BRANCH, HEAD, TAG, Reference
from repo_degit.vcs.git import VersionControl

logger = logging.getLogger(__name__)

_API_HOST = httpx.URL(GITHUB_API).host


def _raise_for_status(response: httpx.Response, what: str) -> None:
    status = response.status_code
    if 200 <= status < 300:
        return
    if status == 404:
        raise NotFoundError(f"{what}: repository not found or not accessible (404)", status_code=status)
    if status == 401:
        raise UnauthorizedError(f"{what}: invalid or missing GitHub token (401)", status_code=status)
    if status == 403:
        raise ForbiddenError(f"{what}: check your GitHub token permissions (403)", status_code=status)
    raise DownloadFailedError(f"{what}: failed with status {status}", status_code=status)


class ArchiveFetcher:
    """Fetches reference lists and commit archives for a source.

    The default host (GitHub) is queried through its REST API when a token is
    available; everything else goes through `git ls-remote` and the per-host
    direct archive URL.
    """

    def __init__(
        self,
        vcs: VersionControl,
        token: str = "",
        client: Optional[httpx.Client] = None,
    ):
        self.vcs = vcs
        self.token = token
        self.client = client or httpx.Client(timeout=httpx.Timeout(30.0, read=300.0))

    def close(self) -> None:
        self.client.close()

    # --- HTTP plumbing ---

    def _headers(self, url: httpx.URL, authenticated: bool) -> dict:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": USER_AGENT,
        }
        if url.host == _API_HOST:
            headers["X-GitHub-Api-Version"] = GITHUB_API_VERSION
        if authenticated and self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _send(self, url: str, authenticated: bool) -> httpx.Response:
        """GET url, following redirects by hand.

        The Authorization header is sent on the first hop and re-attached
        after a redirect only when the target host is trusted.
        """
        target = httpx.URL(url)
        send_auth = authenticated
        for _ in range(MAX_REDIRECTS + 1):
            request = self.client.build_request("GET", target, headers=self._headers(target, send_auth))
            try:
                response = self.client.send(request, stream=True, follow_redirects=False)
            except httpx.HTTPError as e:
                raise DownloadFailedError(f"request to {target} failed: {e}") from e

            if not response.is_redirect:
                return response

            response.close()
            target = response.url.join(response.headers["location"])
            send_auth = authenticated and target.host in TRUSTED_REDIRECT_HOSTS
            logger.debug(f"Redirected to {target.host} (auth {'kept' if send_auth else 'dropped'})")

        raise DownloadFailedError(f"too many redirects fetching {url}")

    @contextmanager
    def _open(self, url: str, what: str, authenticated: bool = True) -> Iterator[httpx.Response]:
        response = self._send(url, authenticated)
        try:
            _raise_for_status(response, what)
            yield response
        finally:
            response.close()

    def _get_json(self, url: str, what: str):
        with self._open(url, what) as response:
            try:
                response.read()
                return response.json()
            except (httpx.HTTPError, ValueError) as e:
                raise DownloadFailedError(f"{what}: unreadable response: {e}") from e

    # --- references ---

    def fetch_refs(self, source: SourceDescriptor) -> List[Reference]:
        """List remote references for a source.

        Uses the GitHub API when possible, otherwise `git ls-remote`.
        """
        if source.is_default_host and self.token:
            try:
                return self._fetch_refs_from_api(source)
            except ArchiveFetchError as e:
                logger.debug(f"GitHub API ref listing failed, using ls-remote: {e}")
        return self.vcs.list_refs(source.url)

    def _paginate(self, url: str, what: str) -> List[dict]:
        items = []
        page = 1
        while True:
            batch = self._get_json(f"{url}?per_page={PAGE_SIZE}&page={page}", what)
            if not isinstance(batch, list):
                raise DownloadFailedError(f"{what}: expected a list")
            items.extend(batch)
            if len(batch) < PAGE_SIZE:
                return items
            page += 1

    def _fetch_refs_from_api(self, source: SourceDescriptor) -> List[Reference]:
        repo_url = f"{GITHUB_API}/repos/{source.owner}/{source.repo}"

        try:
            info = self._get_json(repo_url, "repository info")
            default = info.get("default_branch") or "main"
            branch = self._get_json(f"{repo_url}/branches/{default}", "default branch")
            head_commit = branch["commit"]["sha"]

            refs = [
                Reference(kind=HEAD, name=HEAD, commit=head_commit),
                Reference(kind=BRANCH, name=default, commit=head_commit),
            ]
            for item in self._paginate(f"{repo_url}/branches", "branches"):
                if item["name"] == default:
                    continue
                refs.append(Reference(kind=BRANCH, name=item["name"], commit=item["commit"]["sha"]))
            for item in self._paginate(f"{repo_url}/tags", "tags"):
                refs.append(Reference(kind=TAG, name=item["name"], commit=item["commit"]["sha"]))
        except (KeyError, TypeError, AttributeError) as e:
            raise DownloadFailedError(f"unexpected GitHub API payload: {e}") from e

        return refs

    # --- archives ---

    def _save(self, url: str, dest: Path, what: str, authenticated: bool) -> None:
        dest.parent.mkdir(parents=True, exist_ok=True)
        partial = dest.with_name(dest.name + ".part")
        try:
            with self._open(url, what, authenticated=authenticated) as response:
                with open(partial, "wb") as f:
                    for chunk in response.iter_bytes():
                        f.write(chunk)
            os.replace(partial, dest)
        except httpx.HTTPError as e:
            raise DownloadFailedError(f"{what}: {e}") from e
        finally:
            if partial.exists():
                partial.unlink()

    def download(self, source: SourceDescriptor, commit: str, dest: Path) -> None:
        """Download the archive for commit to dest.

        GitHub: the authenticated API endpoint first, then the direct URL.
        Other hosts: the direct URL only.
        """
        direct_url = source.archive_url(commit)
        api_url = source.api_archive_url(commit)

        if api_url is None:
            logger.debug(f"Downloading {direct_url}")
            self._save(direct_url, dest, "download", authenticated=False)
            return

        if not self.token:
            logger.debug("No GitHub token found - private repos will not be accessible")

        try:
            logger.debug(f"Requesting archive from API: {api_url}")
            self._save(api_url, dest, "API download", authenticated=True)
            return
        except ArchiveFetchError as e:
            api_error = e
        logger.debug(f"API download failed ({api_error}), trying {direct_url}")

        try:
            self._save(direct_url, dest, "direct download", authenticated=False)
            return
        except ArchiveFetchError as e:
            direct_error = e

        if self.token:
            primary = api_error
            message = f"{api_error} (direct download also failed: {direct_error})"
        else:
            primary = direct_error
            message = f"{direct_error} (API download also failed: {api_error})"
        raise type(primary)(message, status_code=primary.status_code) from primary
