"""Pytest fixtures for repo-degit tests."""
import io
import shutil
import tarfile
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

from repo_degit.cache import ReferenceCache
from repo_degit.core.errors import GitOperationError, NotFoundError
from repo_degit.source.refs import Reference

HEAD_SHA = "aaaa1111" + "0" * 32
TAG_SHA = "bbbb2222" + "0" * 32


def build_tarball(path: Path, members: List[Tuple], root: str = "repo-aaaa111") -> Path:
    """Write a .tar.gz whose members live under `root/`.

    members: tuples of
        ("file", name, content[, mode])
        ("dir", name)
        ("symlink", name, target)
        ("raw", full_name, content)   name used verbatim, no root prefix
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(path, "w:gz") as tar:
        root_info = tarfile.TarInfo(root + "/")
        root_info.type = tarfile.DIRTYPE
        root_info.mode = 0o755
        tar.addfile(root_info)

        for member in members:
            kind, name = member[0], member[1]
            full_name = name if kind == "raw" else f"{root}/{name}"
            info = tarfile.TarInfo(full_name)
            if kind == "dir":
                info.type = tarfile.DIRTYPE
                info.mode = 0o755
                tar.addfile(info)
            elif kind == "symlink":
                info.type = tarfile.SYMTYPE
                info.linkname = member[2]
                tar.addfile(info)
            else:
                data = member[2].encode()
                info.size = len(data)
                info.mode = member[3] if len(member) > 3 else 0o644
                tar.addfile(info, io.BytesIO(data))
    return path


def tree_of(root: Path) -> Dict[str, str]:
    """Relative POSIX path -> text content for every regular file under root."""
    return {
        p.relative_to(root).as_posix(): p.read_text()
        for p in sorted(root.rglob("*"))
        if p.is_file() and not p.is_symlink()
    }


class FakeVcs:
    """In-memory stand-in for the git command line."""

    def __init__(self):
        self.present = True
        self.refs: List[Reference] = [
            Reference(kind="HEAD", name="HEAD", commit=HEAD_SHA),
            Reference(kind="branch", name="main", commit=HEAD_SHA),
            Reference(kind="tag", name="v1.0.0", commit=TAG_SHA),
        ]
        self.tree: Dict[str, str] = {"README.md": "# from git\n"}
        self.failing_urls: set = set()
        self.unknown_refs: set = set()
        self.fetchable_refs: set = set()
        self.list_refs_error: Optional[Exception] = None
        self.calls: List[Tuple] = []

    def available(self) -> bool:
        return self.present

    def list_refs(self, url: str) -> List[Reference]:
        self.calls.append(("list_refs", url))
        if self.list_refs_error is not None:
            raise self.list_refs_error
        return list(self.refs)

    def shallow_clone(self, url: str, dest: Path) -> None:
        self.calls.append(("clone", url))
        if url in self.failing_urls:
            Path(dest).mkdir(parents=True, exist_ok=True)
            (Path(dest) / "partial").write_text("junk")
            raise GitOperationError(f"git clone {url} failed: repository not found")
        for name, content in self.tree.items():
            target = Path(dest) / name
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
        (Path(dest) / ".git").mkdir(parents=True, exist_ok=True)
        (Path(dest) / ".git" / "HEAD").write_text("ref: refs/heads/main\n")

    def checkout(self, repo: Path, ref: str) -> None:
        self.calls.append(("checkout", ref))
        if ref in self.unknown_refs:
            raise GitOperationError(f"git checkout {ref} failed: pathspec did not match")

    def fetch_ref(self, repo: Path, ref: str) -> None:
        self.calls.append(("fetch", ref))
        if ref in self.fetchable_refs:
            self.unknown_refs.discard(ref)
            return
        raise GitOperationError(f"git fetch {ref} failed: couldn't find remote ref")


class FakeFetcher:
    """ArchiveFetcher stand-in serving refs and prebuilt archives."""

    def __init__(self, vcs: FakeVcs):
        self.vcs = vcs
        self.archives: Dict[str, Path] = {}
        self.downloads: List[str] = []
        self.download_error: Optional[Exception] = None

    def fetch_refs(self, source):
        return self.vcs.list_refs(source.url)

    def download(self, source, commit: str, dest: Path) -> None:
        self.downloads.append(commit)
        if self.download_error is not None:
            raise self.download_error
        if commit not in self.archives:
            raise NotFoundError("download: repository not found or not accessible (404)", status_code=404)
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(self.archives[commit], dest)

    def close(self) -> None:
        pass


@pytest.fixture
def cache(tmp_path: Path) -> ReferenceCache:
    return ReferenceCache(tmp_path / "cache")


@pytest.fixture
def fake_vcs() -> FakeVcs:
    return FakeVcs()


@pytest.fixture
def fake_fetcher(fake_vcs: FakeVcs) -> FakeFetcher:
    return FakeFetcher(fake_vcs)


@pytest.fixture
def archive_factory(tmp_path: Path):
    """Build tarballs under tmp_path/archives."""
    counter = {"n": 0}

    def make(members: List[Tuple], root: str = "repo-aaaa111") -> Path:
        counter["n"] += 1
        return build_tarball(tmp_path / "archives" / f"a{counter['n']}.tar.gz", members, root=root)

    return make


@pytest.fixture
def read_tree():
    return tree_of
