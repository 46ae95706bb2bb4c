"""Acquisition orchestration and post-clone actions."""
from repo_degit.clone.actions import ActionExecutor, CloneAction, RemoveAction, load_actions
from repo_degit.clone.cloner import CloneOptions, CloneResult, RepoCloner, check_dest_empty

__all__ = [
    "ActionExecutor",
    "CloneAction",
    "CloneOptions",
    "CloneResult",
    "RemoveAction",
    "RepoCloner",
    "check_dest_empty",
    "load_actions",
]
