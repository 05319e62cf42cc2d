"""kvassets - Sync static assets to Workers KV with a versioned manifest."""

from .api import KVClient
from .assets import KVAssets
from .exceptions import (
    ChecksumError,
    DeleteError,
    KVAPIError,
    KVAssetsError,
    KVAuthenticationError,
    KVConfigError,
    KVInvalidResponseError,
    KVNetworkError,
    KVNotFoundError,
    KVPermissionError,
    KVRateLimitError,
    ManifestCorrupt,
    ManifestWriteError,
    PartialUploadFailure,
    PruneSafetyViolation,
    RemoteListError,
    ScanError,
    UploadError,
)
from .models import AssetIndex, AssetRecord
from .sync import SyncEngine

__version__ = "0.1.0"

__all__ = [
    "KVClient",
    "KVAssets",
    "SyncEngine",
    "AssetIndex",
    "AssetRecord",
    "KVAssetsError",
    "KVConfigError",
    "KVAPIError",
    "KVAuthenticationError",
    "KVPermissionError",
    "KVNotFoundError",
    "KVRateLimitError",
    "KVNetworkError",
    "KVInvalidResponseError",
    "ScanError",
    "ChecksumError",
    "RemoteListError",
    "UploadError",
    "DeleteError",
    "PartialUploadFailure",
    "ManifestCorrupt",
    "ManifestWriteError",
    "PruneSafetyViolation",
]
