"""Post-clone actions read from a degit.json manifest in the destination."""
import json
import logging
import os
import shutil
from pathlib import Path
from typing import TYPE_CHECKING, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from repo_degit.core.config import MANIFEST_FILENAME
from repo_degit.core.errors import ActionManifestError, DegitError, InvalidSourceError
from repo_degit.source.descriptor import parse_source

if TYPE_CHECKING:
    from repo_degit.clone.cloner import CloneResult, RepoCloner

logger = logging.getLogger(__name__)


class CloneAction(BaseModel):
    """Clone another source into the same destination."""

    action: Literal["clone"] = "clone"
    src: Optional[str] = None
    cache: bool = False
    verbose: bool = False


class RemoveAction(BaseModel):
    """Remove files or directories relative to the destination."""

    action: Literal["remove"] = "remove"
    files: List[str] = Field(default_factory=list)

    @field_validator("files", mode="before")
    @classmethod
    def normalize_files(cls, v):
        """Accept a single path or a list of paths."""
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v


class UnknownAction(BaseModel):
    """Any action kind this version does not implement; skipped at run time."""

    model_config = ConfigDict(extra="allow")

    action: str = ""


Action = Union[CloneAction, RemoveAction, UnknownAction]

_ACTION_MODELS = {
    "clone": CloneAction,
    "remove": RemoveAction,
}


def parse_actions(data) -> List[Action]:
    """Validate a decoded manifest (a JSON array of action objects)."""
    if not isinstance(data, list):
        raise ValueError(f"{MANIFEST_FILENAME} must contain a JSON array")

    actions: List[Action] = []
    for entry in data:
        if not isinstance(entry, dict):
            raise ValueError(f"action entries must be objects, got {type(entry).__name__}")
        model = _ACTION_MODELS.get(entry.get("action"), UnknownAction)
        actions.append(model.model_validate(entry))
    return actions


def load_actions(dest_dir: Path) -> Optional[List[Action]]:
    """Read and consume degit.json from dest_dir.

    Returns None when there is no manifest. The file is deleted once it has
    been parsed so it never runs twice.

    Raises:
        ValueError, OSError: If the manifest cannot be read or parsed
    """
    manifest_path = Path(dest_dir) / MANIFEST_FILENAME
    if not manifest_path.is_file():
        return None

    try:
        actions = parse_actions(json.loads(manifest_path.read_text()))
    except ValidationError as e:
        raise ValueError(f"invalid {MANIFEST_FILENAME}: {e}") from e

    manifest_path.unlink()
    return actions


def _is_within(path: str, root: str) -> bool:
    return path == root or path.startswith(root.rstrip(os.sep) + os.sep)


class ActionExecutor:
    """Runs manifest actions in order, stopping at the first failure."""

    def __init__(self, cloner: "RepoCloner"):
        self.cloner = cloner

    def run(self, actions: List[Action], dest_dir: Path) -> List["CloneResult"]:
        results = []
        for index, action in enumerate(actions):
            if isinstance(action, CloneAction):
                try:
                    results.append(self._clone(action, dest_dir))
                except (DegitError, OSError) as e:
                    raise ActionManifestError(index, action.action, e) from e
            elif isinstance(action, RemoveAction):
                try:
                    self._remove(action, dest_dir)
                except OSError as e:
                    raise ActionManifestError(index, action.action, e) from e
            else:
                logger.warning(f"Unknown action: {action.action}")
        return results

    def _clone(self, action: CloneAction, dest_dir: Path) -> "CloneResult":
        if not action.src:
            raise InvalidSourceError("clone action requires 'src' field")

        logger.info(f"Cloning additional source: {action.src}")
        source = parse_source(action.src)
        nested = self.cloner.derive(force=True, offline=action.cache, verbose=action.verbose)
        return nested.clone(source, dest_dir)

    def _remove(self, action: RemoveAction, dest_dir: Path) -> None:
        root = os.path.normpath(os.path.abspath(dest_dir))
        for name in action.files:
            path = os.path.normpath(os.path.join(root, name))
            if not _is_within(path, root):
                logger.warning(f"Skipping path traversal attempt: {name}")
                continue

            if not os.path.lexists(path):
                logger.warning(f"File does not exist: {name}")
                continue

            if os.path.isdir(path) and not os.path.islink(path):
                shutil.rmtree(path)
                logger.info(f"Removed directory: {name}")
            else:
                os.remove(path)
                logger.info(f"Removed file: {name}")
