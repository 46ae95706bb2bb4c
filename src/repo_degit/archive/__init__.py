"""Archive download and extraction."""
from repo_degit.archive.extractor import extract_archive
from repo_degit.archive.fetcher import ArchiveFetcher

__all__ = ["ArchiveFetcher", "extract_archive"]
