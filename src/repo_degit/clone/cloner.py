"""Clone orchestration: archive mode with a full git clone fallback."""
import logging
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from repo_degit.archive.extractor import DEFAULT_STRIP_COMPONENTS, extract_archive
from repo_degit.archive.fetcher import ArchiveFetcher
from repo_degit.cache.store import ReferenceCache, RepoCache
from repo_degit.clone.actions import ActionExecutor, load_actions
from repo_degit.core.config import CloneMode
from repo_degit.core.errors import (
    ArchiveFetchError,
    CloneFailedError,
    DegitError,
    DestinationNotEmptyError,
    GitOperationError,
    OfflineCacheMissError,
    PathTraversalError,
    SubdirectoryNotFoundError,
    VcsNotFoundError,
)
from repo_degit.source.descriptor import HEAD, SourceDescriptor
from repo_degit.source.refs import default_branch, resolve_ref
from repo_degit.vcs.git import GitCli, VersionControl

logger = logging.getLogger(__name__)


class CloneOptions(BaseModel):
    """Per-acquisition options."""

    model_config = ConfigDict(frozen=True)

    force: bool = Field(default=False, description="Allow a non-empty destination")
    offline: bool = Field(default=False, description="Resolve and read from the cache only")
    mode: CloneMode = Field(default="tar", description="tar (archive) or git (full clone)")
    verbose: bool = Field(default=False, description="Log progress at INFO")
    token: str = Field(default="", repr=False, description="GitHub token, empty for none")


class CloneResult(BaseModel):
    """What an acquisition did."""

    source: str
    dest: str
    mode: CloneMode
    commit: Optional[str] = None
    fell_back: bool = False
    nested: List["CloneResult"] = Field(default_factory=list)


class RepoCloner:
    """Acquire a snapshot of a repository into a directory.

    Archive mode resolves the ref to a commit, reuses or downloads
    `<commit>.tar.gz` in the cache and extracts it. If that fails (and the
    cache is not restricted to offline use), the destination is cleared and
    a shallow git clone is made instead. Afterwards any degit.json manifest
    in the destination is executed.
    """

    def __init__(
        self,
        options: CloneOptions,
        cache: ReferenceCache,
        vcs: Optional[VersionControl] = None,
        fetcher: Optional[ArchiveFetcher] = None,
    ):
        self.options = options
        self.cache = cache
        self.vcs = vcs or GitCli()
        self.fetcher = fetcher or ArchiveFetcher(self.vcs, token=options.token)

    def derive(self, **changes) -> "RepoCloner":
        """A cloner sharing this one's cache, vcs and fetcher."""
        return RepoCloner(
            self.options.model_copy(update=changes),
            self.cache,
            vcs=self.vcs,
            fetcher=self.fetcher,
        )

    def _note(self, message: str) -> None:
        if self.options.verbose:
            logger.info(message)
        else:
            logger.debug(message)

    def clone(self, source: SourceDescriptor, dest: Path) -> CloneResult:
        """Acquire source into dest.

        Raises:
            DestinationNotEmptyError: dest has entries and force is off
            OfflineCacheMissError: offline and the cache cannot serve the ref
            PathTraversalError: the archive tries to escape dest
            CloneFailedError: archive mode and git mode both failed
            ActionManifestError: a degit.json action failed
        """
        dest = Path(dest)
        if not self.options.force:
            check_dest_empty(dest)

        result = CloneResult(source=str(source), dest=str(dest), mode=self.options.mode)

        if self.options.mode == "git":
            self._clone_with_git(source, dest)
        else:
            try:
                result.commit = self._clone_with_tar(source, dest)
            except PathTraversalError:
                raise
            except (DegitError, OSError) as e:
                if self.options.offline:
                    raise
                logger.warning(f"Tarball download failed: {e}")
                self._note("Falling back to git clone mode...")
                shutil.rmtree(dest, ignore_errors=True)
                try:
                    self._clone_with_git(source, dest)
                except (DegitError, OSError) as git_error:
                    raise CloneFailedError(
                        f"tarball download failed ({e}) and git clone also failed ({git_error})",
                        archive_error=e,
                    ) from git_error
                result.mode = "git"
                result.fell_back = True

        result.nested = self._run_actions(dest)
        return result

    def _resolve_commit(self, source: SourceDescriptor, repo_cache: RepoCache) -> str:
        if self.options.offline:
            commit = repo_cache.get_commit(source.ref)
            if commit is None:
                raise OfflineCacheMissError(f"ref {source.ref} not found in cache (offline mode)")
            return commit

        try:
            refs = self.fetcher.fetch_refs(source)
        except DegitError as e:
            commit = repo_cache.get_commit(source.ref)
            if commit is None:
                raise ArchiveFetchError(f"could not fetch refs and no cache available: {e}") from e
            logger.warning("Could not fetch refs, using cached version")
            return commit

        if source.ref in ("", HEAD):
            self._note(f"HEAD points at {default_branch(refs)}")
        return resolve_ref(refs, source.ref)

    def _clone_with_tar(self, source: SourceDescriptor, dest: Path) -> str:
        repo_cache = self.cache.for_source(source)
        commit = self._resolve_commit(source, repo_cache)
        self._note(f"Resolved {source.ref} to {commit[:8]}")

        archive = repo_cache.get_archive(commit)
        if archive is None:
            if self.options.offline:
                raise OfflineCacheMissError(f"tarball for {commit[:8]} not found in cache (offline mode)")
            archive = repo_cache.archive_path(commit)
            self._note(f"Downloading {source.archive_url(commit)}")
            self.fetcher.download(source, commit, archive)
        else:
            self._note("Using cached tarball")

        try:
            repo_cache.update(source.ref, commit)
        except OSError as e:
            logger.warning(f"Failed to update cache: {e}")

        self._note(f"Extracting to {dest}")
        extract_archive(archive, dest, strip_components=DEFAULT_STRIP_COMPONENTS, subdir=source.subdir)
        return commit

    def _clone_with_git(self, source: SourceDescriptor, dest: Path) -> None:
        if not self.vcs.available():
            raise VcsNotFoundError("git not found in PATH")

        https_url = f"{source.url}.git"
        self._note(f"Cloning with git (HTTPS): {https_url}")
        try:
            self.vcs.shallow_clone(https_url, dest)
        except GitOperationError as https_error:
            self._note("HTTPS clone failed, trying SSH...")
            shutil.rmtree(dest, ignore_errors=True)
            try:
                self.vcs.shallow_clone(source.ssh, dest)
            except GitOperationError as ssh_error:
                raise CloneFailedError(
                    f"git clone failed (HTTPS: {https_error}, SSH: {ssh_error})"
                ) from ssh_error

        if source.ref not in ("", HEAD):
            self._checkout(dest, source.ref)

        git_dir = dest / ".git"
        try:
            if git_dir.exists():
                shutil.rmtree(git_dir)
        except OSError as e:
            logger.warning(f"Failed to remove .git directory: {e}")

        if source.subdir:
            _promote_subdir(dest, source.subdir)

        try:
            self.cache.for_source(source).touch(source.ref)
        except OSError as e:
            logger.warning(f"Failed to update cache: {e}")

    def _checkout(self, dest: Path, ref: str) -> None:
        try:
            self.vcs.checkout(dest, ref)
            return
        except GitOperationError as e:
            self._note(f"Checkout of {ref} failed, fetching it: {e}")

        try:
            self.vcs.fetch_ref(dest, ref)
            self.vcs.checkout(dest, ref)
        except GitOperationError as e:
            logger.warning(f"Could not checkout ref {ref}: {e}")

    def _run_actions(self, dest: Path) -> List[CloneResult]:
        try:
            actions = load_actions(dest)
        except (ValueError, OSError) as e:
            logger.warning(f"Failed to load degit.json: {e}")
            return []

        if not actions:
            return []

        self._note(f"Executing {len(actions)} actions from degit.json")
        return ActionExecutor(self).run(actions, dest)


def check_dest_empty(dest: Path) -> None:
    """Raise DestinationNotEmptyError if dest exists and has entries."""
    dest = Path(dest)
    if not dest.exists():
        return
    if dest.is_dir():
        if any(dest.iterdir()):
            raise DestinationNotEmptyError(f"destination {dest} is not empty (use --force to override)")
        return
    raise DestinationNotEmptyError(f"destination {dest} exists and is not a directory")


def _promote_subdir(dest: Path, subdir: str) -> None:
    """Replace dest's contents with those of dest/subdir.

    Stages the subdirectory in a temporary directory first, so dest never
    holds a mix of the full tree and the subtree.
    """
    subdir_path = dest / subdir
    real_dest = dest.resolve()
    if real_dest not in subdir_path.resolve().parents:
        raise PathTraversalError(f"subdirectory {subdir} escapes {dest}")
    if not subdir_path.is_dir():
        raise SubdirectoryNotFoundError(f"subdirectory {subdir} not found")

    staging = Path(tempfile.mkdtemp(prefix="degit-subdir-"))
    try:
        for entry in subdir_path.iterdir():
            shutil.move(str(entry), str(staging / entry.name))

        for entry in dest.iterdir():
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()

        for entry in staging.iterdir():
            shutil.move(str(entry), str(dest / entry.name))
    finally:
        shutil.rmtree(staging, ignore_errors=True)
