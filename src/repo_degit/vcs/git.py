"""External version control: the narrow git capability the engine needs."""
import logging
import shutil
import subprocess
from pathlib import Path
from typing import List, Protocol

from repo_degit.core.errors import GitOperationError
from repo_degit.source.refs import Reference, parse_ls_remote_output

logger = logging.getLogger(__name__)


class VersionControl(Protocol):
    """Operations performed through an external version-control tool."""

    def available(self) -> bool:
        """True when the tool can be executed."""
        ...

    def list_refs(self, url: str) -> List[Reference]:
        ...

    def shallow_clone(self, url: str, dest: Path) -> None:
        ...

    def checkout(self, repo: Path, ref: str) -> None:
        ...

    def fetch_ref(self, repo: Path, ref: str) -> None:
        ...


class GitCli:
    """VersionControl backed by the `git` executable."""

    def __init__(self, executable: str = "git"):
        self.executable = executable

    def available(self) -> bool:
        return shutil.which(self.executable) is not None

    def _run(self, args: List[str], action: str) -> str:
        try:
            result = subprocess.run(
                [self.executable, *args],
                capture_output=True,
                text=True,
            )
        except OSError as e:
            raise GitOperationError(f"{action} failed: {e}") from e

        if result.returncode != 0:
            raise GitOperationError(f"{action} failed: {result.stderr.strip()}")
        return result.stdout

    def list_refs(self, url: str) -> List[Reference]:
        output = self._run(["ls-remote", url], f"git ls-remote {url}")
        return parse_ls_remote_output(output)

    def shallow_clone(self, url: str, dest: Path) -> None:
        logger.debug(f"git clone --depth 1 {url} {dest}")
        self._run(["clone", "--quiet", "--depth", "1", url, str(dest)], f"git clone {url}")

    def checkout(self, repo: Path, ref: str) -> None:
        self._run(["-C", str(repo), "checkout", "--quiet", ref], f"git checkout {ref}")

    def fetch_ref(self, repo: Path, ref: str) -> None:
        self._run(["-C", str(repo), "fetch", "--quiet", "origin", ref], f"git fetch {ref}")
