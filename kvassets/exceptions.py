"""Exceptions raised by kvassets."""

from typing import Optional


class KVAssetsError(Exception):
    """Base exception for all kvassets errors."""


class KVConfigError(KVAssetsError):
    """Required configuration (account, namespace, token) is missing."""


# =============================================================================
# Remote store (Workers KV API) errors
# =============================================================================


class KVAPIError(KVAssetsError):
    """Base exception for Workers KV API errors."""


class KVAuthenticationError(KVAPIError):
    """API token is invalid or missing."""


class KVPermissionError(KVAPIError):
    """API token lacks permission for the namespace."""


class KVNotFoundError(KVAPIError):
    """Requested key or namespace does not exist."""


class KVRateLimitError(KVAPIError):
    """Rate limit exceeded."""


class KVNetworkError(KVAPIError):
    """Network-level failure talking to the API."""


class KVInvalidResponseError(KVAPIError):
    """The API returned a response that could not be interpreted."""


# =============================================================================
# Sync and prune errors
# =============================================================================


class ScanError(KVAssetsError):
    """A file or directory under the asset root could not be read."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class ChecksumError(KVAssetsError):
    """Computing the digest of a scanned file failed."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class RemoteListError(KVAssetsError):
    """The remote key listing could not be retrieved."""


class UploadError(KVAssetsError):
    """Uploading a single asset failed after retries."""

    def __init__(self, path: str, key: str, cause: Exception):
        super().__init__(f"Failed to upload {path} as {key}: {cause}")
        self.path = path
        self.key = key
        self.cause = cause


class DeleteError(KVAssetsError):
    """Deleting a single remote key failed after retries."""

    def __init__(self, key: str, cause: Exception):
        super().__init__(f"Failed to delete {key}: {cause}")
        self.key = key
        self.cause = cause


class PartialUploadFailure(KVAssetsError):
    """One or more uploads failed; the manifest was not written.

    Attributes:
        errors: One UploadError per failed asset
        report: SyncReport describing what did succeed
    """

    def __init__(self, errors: list[UploadError], report=None):
        super().__init__(
            f"{len(errors)} upload(s) failed; manifest was not written"
        )
        self.errors = errors
        self.report = report


class ManifestCorrupt(KVAssetsError):
    """A manifest file is unreadable, truncated or of an unknown version."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class ManifestWriteError(KVAssetsError):
    """The manifest file could not be written."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class PruneSafetyViolation(KVAssetsError):
    """Prune was requested without a usable reference manifest."""
