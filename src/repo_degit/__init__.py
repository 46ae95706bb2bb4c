"""repo-degit: copy repository snapshots without history."""
from repo_degit.cache import ReferenceCache
from repo_degit.clone import CloneOptions, CloneResult, RepoCloner
from repo_degit.source import SourceDescriptor, parse_source

__all__ = [
    "CloneOptions",
    "CloneResult",
    "ReferenceCache",
    "RepoCloner",
    "SourceDescriptor",
    "parse_source",
]

__version__ = "0.1.0"
