"""On-disk reference and archive cache."""
from repo_degit.cache.store import ReferenceCache, RepoCache

__all__ = ["ReferenceCache", "RepoCache"]
