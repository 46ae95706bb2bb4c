"""Remote references: ls-remote parsing and name-to-commit resolution."""
import logging
import re
import string
from typing import Iterable, List

from pydantic import BaseModel, ConfigDict

from repo_degit.core.errors import NoHeadError, UnresolvedRefError

logger = logging.getLogger(__name__)

HEAD = "HEAD"
BRANCH = "branch"
TAG = "tag"

# Shortest accepted partial commit id
MIN_PREFIX_LENGTH = 8
FULL_COMMIT_LENGTH = 40

_REF_PATH_RE = re.compile(r"refs/(\w+)/(.+)")


class Reference(BaseModel):
    """One remote pointer: HEAD, a branch, a tag, or another ref namespace."""

    model_config = ConfigDict(frozen=True)

    kind: str
    name: str
    commit: str


def parse_ls_remote_output(output: str) -> List[Reference]:
    """Parse `git ls-remote` output (`<hash>\\t<ref>` per line)."""
    refs = []
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue

        parts = line.split("\t")
        if len(parts) != 2:
            continue
        commit, ref_path = parts

        if ref_path == HEAD:
            refs.append(Reference(kind=HEAD, name=HEAD, commit=commit))
            continue

        match = _REF_PATH_RE.fullmatch(ref_path)
        if match is None:
            continue

        namespace, name = match.groups()
        if namespace == "heads":
            kind = BRANCH
        elif namespace == "tags":
            kind = TAG
        else:
            kind = namespace
        refs.append(Reference(kind=kind, name=name, commit=commit))

    return refs


def _is_full_commit(name: str) -> bool:
    return len(name) == FULL_COMMIT_LENGTH and all(c in string.hexdigits for c in name)


def resolve_ref(refs: Iterable[Reference], name: str) -> str:
    """Resolve a reference name to a commit id.

    First match wins, in this order:
      1. "" or HEAD -> the HEAD reference
      2. branch name
      3. tag name
      4. partial commit id (8+ chars), first ref in input order
      5. a 40-char hex string, accepted verbatim

    Raises:
        NoHeadError: HEAD requested and not advertised
        UnresolvedRefError: nothing matched
    """
    refs = list(refs)

    if name in ("", HEAD):
        for ref in refs:
            if ref.kind == HEAD:
                return ref.commit
        raise NoHeadError("could not find HEAD reference")

    for kind in (BRANCH, TAG):
        for ref in refs:
            if ref.kind == kind and ref.name == name:
                return ref.commit

    if len(name) >= MIN_PREFIX_LENGTH:
        matches = [ref.commit for ref in refs if ref.commit.startswith(name)]
        if matches:
            if len(set(matches)) > 1:
                logger.warning(
                    f"Commit prefix {name} is ambiguous ({len(set(matches))} commits), using {matches[0][:12]}"
                )
            return matches[0]

    if _is_full_commit(name):
        return name

    raise UnresolvedRefError(f"could not resolve reference: {name}")


def default_branch(refs: Iterable[Reference]) -> str:
    """Name of the branch HEAD points at, or "main" when unknown."""
    refs = list(refs)
    head = next((ref.commit for ref in refs if ref.kind == HEAD), None)
    if head is None:
        return "main"
    for ref in refs:
        if ref.kind == BRANCH and ref.commit == head:
            return ref.name
    return "main"
