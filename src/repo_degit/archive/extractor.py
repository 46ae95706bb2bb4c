"""Secure streaming extraction of .tar.gz archives."""
import logging
import os
import shutil
import tarfile
import zlib
from pathlib import Path
from typing import Optional

from repo_degit.core.errors import ExtractionError, PathTraversalError

logger = logging.getLogger(__name__)

# Every host archive wraps the tree in one synthetic root folder
DEFAULT_STRIP_COMPONENTS = 1


def _strip_path(name: str, count: int) -> str:
    """Drop the first `count` components of a tar member name."""
    parts = name.split("/")
    if len(parts) <= count:
        return ""
    return "/".join(part for part in parts[count:] if part)


def _in_subdir(name: str, subdir: str) -> bool:
    """True when name, minus its root folder, is subdir or under it."""
    parts = name.split("/")
    if len(parts) < 2:
        return False
    rest = "/".join(parts[1:])
    return rest == subdir or rest.startswith(subdir + "/")


def _is_within(path: str, root: str) -> bool:
    return path == root or path.startswith(root.rstrip(os.sep) + os.sep)


class _Plan:
    """Maps archive members to destination paths."""

    def __init__(self, dest_dir: Path, strip_components: int, subdir: Optional[str]):
        self.root = os.path.normpath(os.path.abspath(dest_dir))
        self.subdir = subdir.strip("/") if subdir else ""
        self.strip = strip_components or DEFAULT_STRIP_COMPONENTS
        if self.subdir:
            self.strip += self.subdir.count("/") + 1

    def target(self, member: tarfile.TarInfo) -> Optional[str]:
        """Destination path for member, or None to skip it.

        Raises PathTraversalError for a member that would land outside the
        destination.
        """
        if self.subdir and not _in_subdir(member.name, self.subdir):
            return None
        name = _strip_path(member.name, self.strip)
        if not name:
            return None
        path = os.path.normpath(os.path.join(self.root, name))
        if not _is_within(path, self.root):
            raise PathTraversalError(f"path traversal detected: {member.name}")
        return path

    def real_parent(self, member: tarfile.TarInfo, path: str) -> str:
        """Resolve the on-disk parent of path, following existing symlinks.

        Raises PathTraversalError when a symlink already on disk (extracted
        earlier or left in a forced destination) leads outside the
        destination.
        """
        parent = os.path.realpath(os.path.dirname(path))
        if not _is_within(parent, os.path.realpath(self.root)):
            raise PathTraversalError(f"path traversal detected through symlink: {member.name}")
        return parent

    def link_allowed(self, member: tarfile.TarInfo, parent: str) -> bool:
        target = member.linkname
        if os.path.isabs(target):
            return False
        resolved = os.path.realpath(os.path.join(parent, target))
        return _is_within(resolved, os.path.realpath(self.root))


def _write_file(tar: tarfile.TarFile, member: tarfile.TarInfo, path: str) -> None:
    os.makedirs(os.path.dirname(path), exist_ok=True)
    source = tar.extractfile(member)
    if source is None:
        return
    if os.path.islink(path):
        os.unlink(path)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, member.mode & 0o7777)
    with source, os.fdopen(fd, "wb") as out:
        shutil.copyfileobj(source, out)


def extract_archive(
    archive_path: Path,
    dest_dir: Path,
    strip_components: int = DEFAULT_STRIP_COMPONENTS,
    subdir: Optional[str] = None,
) -> int:
    """Extract a .tar.gz archive into dest_dir.

    The archive is streamed twice: a first pass validates every member so
    that a traversal attempt aborts before anything is written, the second
    pass writes files. Absolute symlinks and symlinks pointing outside
    dest_dir are skipped, as are symlinks the platform refuses to create.

    Args:
        archive_path: Path to the .tar.gz file
        dest_dir: Destination directory (created if missing)
        strip_components: Leading components to drop (default 1)
        subdir: Only extract this subdirectory of the archive root

    Returns:
        Number of entries written

    Raises:
        PathTraversalError: If any member escapes dest_dir
        ExtractionError: If the archive is unreadable
    """
    plan = _Plan(dest_dir, strip_components, subdir)

    try:
        with tarfile.open(archive_path, mode="r|gz") as tar:
            for member in tar:
                plan.target(member)

        os.makedirs(plan.root, exist_ok=True)
        written = 0
        with tarfile.open(archive_path, mode="r|gz") as tar:
            for member in tar:
                path = plan.target(member)
                if path is None:
                    continue

                if not (member.isdir() or member.isreg() or member.issym()):
                    logger.debug(f"Skipping unsupported entry {member.name}")
                    continue
                parent = plan.real_parent(member, path)

                if member.isdir():
                    os.makedirs(path, mode=member.mode & 0o7777, exist_ok=True)
                elif member.isreg():
                    _write_file(tar, member, path)
                else:
                    if not plan.link_allowed(member, parent):
                        logger.debug(f"Skipping unsafe symlink {member.name} -> {member.linkname}")
                        continue
                    try:
                        os.makedirs(os.path.dirname(path), exist_ok=True)
                        os.symlink(member.linkname, path)
                    except OSError as e:
                        logger.debug(f"Could not create symlink {member.name}: {e}")
                        continue
                written += 1
    except (tarfile.TarError, EOFError, zlib.error) as e:
        raise ExtractionError(f"failed to read archive {archive_path}: {e}") from e

    return written
