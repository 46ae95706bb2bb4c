"""Core exception types for repo-degit."""
from typing import Optional


class DegitError(Exception):
    """Base exception for all repo-degit errors."""
    pass


class InvalidSourceError(DegitError):
    """Raised when a source string cannot be parsed."""
    pass


class UnsupportedHostError(InvalidSourceError):
    """Raised when a source names a host outside the supported set."""
    pass


class InvalidRefError(DegitError):
    """Raised when a git reference cannot be resolved."""
    pass


class NoHeadError(InvalidRefError):
    """Raised when HEAD is requested but the remote advertises none."""
    pass


class UnresolvedRefError(InvalidRefError):
    """Raised when a name matches no branch, tag or commit."""
    pass


class ArchiveFetchError(DegitError):
    """Raised when references or an archive cannot be fetched."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(ArchiveFetchError):
    """Repository or archive not found or not accessible (404)."""
    pass


class UnauthorizedError(ArchiveFetchError):
    """Invalid or missing credential (401)."""
    pass


class ForbiddenError(ArchiveFetchError):
    """Credential lacks permission (403)."""
    pass


class DownloadFailedError(ArchiveFetchError):
    """Any other download failure, including transport errors."""
    pass


class OfflineCacheMissError(DegitError):
    """Raised in offline mode when the cache cannot satisfy a request."""
    pass


class ExtractionError(DegitError):
    """Raised when an archive cannot be read or written out."""
    pass


class PathTraversalError(ExtractionError):
    """Raised when an archive entry would escape the destination."""
    pass


class DestinationNotEmptyError(DegitError):
    """Raised when the destination already has entries and force is off."""
    pass


class GitOperationError(DegitError):
    """Raised when a git operation fails."""
    pass


class VcsNotFoundError(GitOperationError):
    """Raised when the git binary is not on PATH."""
    pass


class CloneFailedError(GitOperationError):
    """Raised when a full clone fails over every transport."""

    def __init__(self, message: str, archive_error: Optional[BaseException] = None):
        super().__init__(message)
        self.archive_error = archive_error


class SubdirectoryNotFoundError(DegitError):
    """Raised when a requested subdirectory is missing from a clone."""
    pass


class ActionManifestError(DegitError):
    """Raised when an action from degit.json fails."""

    def __init__(self, index: int, kind: str, cause: BaseException):
        super().__init__(f"action {index} ({kind}): {cause}")
        self.index = index
        self.kind = kind
        self.cause = cause
