"""Reference cache: ref->commit maps, access logs and downloaded archives.

Layout under the cache root:

    <root>/<host>/<owner>/<repo>/map.json       ref -> commit
    <root>/<host>/<owner>/<repo>/access.json    ref -> last access (ISO-8601 UTC)
    <root>/<host>/<owner>/<repo>/<commit>.tar.gz

An archive is kept exactly as long as some ref in map.json points at its
commit. No locking: one acquisition per cache root at a time.
"""
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import RootModel, ValidationError

from repo_degit.source.descriptor import SourceDescriptor

logger = logging.getLogger(__name__)

REF_MAP_FILENAME = "map.json"
ACCESS_LOG_FILENAME = "access.json"
ARCHIVE_SUFFIX = ".tar.gz"


class RefMap(RootModel[Dict[str, str]]):
    """ref name -> commit id"""


class AccessLog(RootModel[Dict[str, str]]):
    """ref name -> ISO-8601 UTC timestamp"""


def _utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _parse_timestamp(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _load(model, path: Path) -> Dict[str, str]:
    """Load a JSON object file; missing or corrupt files read as empty."""
    if not path.exists():
        return {}
    try:
        return model.model_validate_json(path.read_text()).root
    except (OSError, ValidationError) as e:
        logger.warning(f"Ignoring unreadable cache file {path}: {e}")
        return {}


def _save(model, path: Path, data: Dict[str, str]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(model(data).model_dump_json(indent=2))


class RepoCache:
    """Cache directory of a single repository."""

    def __init__(self, path: Path):
        self.path = Path(path)

    @property
    def ref_map_path(self) -> Path:
        return self.path / REF_MAP_FILENAME

    @property
    def access_log_path(self) -> Path:
        return self.path / ACCESS_LOG_FILENAME

    def load_ref_map(self) -> Dict[str, str]:
        return _load(RefMap, self.ref_map_path)

    def load_access_log(self) -> Dict[str, str]:
        return _load(AccessLog, self.access_log_path)

    def archive_path(self, commit: str) -> Path:
        return self.path / f"{commit}{ARCHIVE_SUFFIX}"

    def get_commit(self, ref: str) -> Optional[str]:
        """Cached commit for a ref, if any."""
        return self.load_ref_map().get(ref) or None

    def get_archive(self, commit: str) -> Optional[Path]:
        """Path of the cached archive for a commit, if it exists."""
        path = self.archive_path(commit)
        return path if path.is_file() else None

    def touch(self, ref: str) -> None:
        """Refresh only the access timestamp of a ref."""
        access = self.load_access_log()
        access[ref] = _utc_now()
        _save(AccessLog, self.access_log_path, access)

    def update(self, ref: str, commit: str) -> None:
        """Record that ref now points at commit.

        The access timestamp is always refreshed. When the ref moves away
        from a commit no other ref still uses, that commit's archive is
        deleted before the new mapping is written.
        """
        self.touch(ref)

        ref_map = self.load_ref_map()
        previous = ref_map.get(ref)
        if previous == commit:
            return

        if previous:
            still_used = any(
                other != ref and value == previous for other, value in ref_map.items()
            )
            if not still_used:
                stale = self.archive_path(previous)
                if stale.exists():
                    logger.debug(f"Removing unreferenced archive {stale.name}")
                    stale.unlink()

        ref_map[ref] = commit
        _save(RefMap, self.ref_map_path, ref_map)

    def last_access(self) -> Optional[datetime]:
        """Most recent access time across all refs."""
        stamps = [_parse_timestamp(v) for v in self.load_access_log().values()]
        stamps = [s for s in stamps if s is not None]
        return max(stamps) if stamps else None


class ReferenceCache:
    """Handle on the cache root; every cache operation goes through one."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def cache_dir_for(self, source: SourceDescriptor) -> Path:
        return self.root / source.host / source.owner / source.repo

    def for_source(self, source: SourceDescriptor) -> RepoCache:
        return RepoCache(self.cache_dir_for(source))

    def list_repos(self) -> List[str]:
        """Cached repositories (`host/owner/repo`) that have a ref map."""
        if not self.root.is_dir():
            return []
        repos = [
            path.parent.relative_to(self.root).as_posix()
            for path in self.root.rglob(REF_MAP_FILENAME)
            if path.parent != self.root
        ]
        return sorted(repos)

    def list_repos_by_recency(self) -> List[str]:
        """Cached repositories with an access log, most recent first."""
        if not self.root.is_dir():
            return []
        oldest = datetime.min.replace(tzinfo=timezone.utc)
        entries = []
        for path in self.root.rglob(ACCESS_LOG_FILENAME):
            if path.parent == self.root:
                continue
            accessed = RepoCache(path.parent).last_access() or oldest
            entries.append((accessed, path.parent.relative_to(self.root).as_posix()))
        entries.sort(key=lambda entry: entry[0], reverse=True)
        return [rel for _, rel in entries]
