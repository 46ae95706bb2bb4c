"""External version-control integration."""
from repo_degit.vcs.git import GitCli, VersionControl

__all__ = ["GitCli", "VersionControl"]
