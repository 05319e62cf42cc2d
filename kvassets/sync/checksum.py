"""Content digests and asset index construction."""

import hashlib
import logging
from collections.abc import Iterable
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait

from ..exceptions import ChecksumError, KVAssetsError
from ..models import AssetIndex, AssetRecord
from ..utils import DEFAULT_MAX_WORKERS
from .keys import derive_remote_key
from .scanner import ScannedFile

logger = logging.getLogger(__name__)

# Embedded in every remote key; recorded in the manifest header
DIGEST_ALGORITHM = "sha256"


def compute_digest(data: bytes) -> str:
    """Compute the content digest of a byte string.

    Returns:
        Lowercase hex SHA-256 digest (64 characters)
    """
    return hashlib.sha256(data).hexdigest()


def build_record(scanned: ScannedFile) -> AssetRecord:
    """Hash a scanned file and derive its remote key."""
    try:
        digest = compute_digest(scanned.data)
    except (TypeError, ValueError) as e:
        raise ChecksumError(f"Cannot hash {scanned.path}: {e}", scanned.path) from e
    return AssetRecord(
        path=scanned.path,
        digest=digest,
        size=scanned.size,
        modified_at=scanned.modified_at,
        remote_key=derive_remote_key(scanned.path, digest),
    )


class ChecksumEngine:
    """Hashes scanned files on a bounded worker pool.

    Result order does not matter: records are keyed by path.
    """

    def __init__(self, max_workers: int = DEFAULT_MAX_WORKERS):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.max_workers = max_workers

    def build_index(
        self, files: Iterable[ScannedFile]
    ) -> tuple[AssetIndex, dict[str, bytes]]:
        """Build an asset index from scanned files.

        Args:
            files: Scanned files (consumed once)

        Returns:
            Tuple of (index, contents by path)

        Raises:
            ChecksumError: If any file cannot be hashed
            ScanError: If the scan fails while being consumed
        """
        index: AssetIndex = {}
        contents: dict[str, bytes] = {}

        if self.max_workers == 1:
            for scanned in files:
                index[scanned.path] = build_record(scanned)
                contents[scanned.path] = scanned.data
            return index, contents

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures: dict[Future, ScannedFile] = {}
            try:
                for scanned in files:
                    futures[executor.submit(build_record, scanned)] = scanned
            except KVAssetsError:
                for future in futures:
                    future.cancel()
                raise

            done, not_done = wait(futures, return_when=FIRST_EXCEPTION)
            for future in not_done:
                future.cancel()

            for future in done:
                scanned = futures[future]
                error = future.exception()
                if error is not None:
                    if isinstance(error, KVAssetsError):
                        raise error
                    raise ChecksumError(
                        f"Cannot hash {scanned.path}: {error}", scanned.path
                    ) from error
                index[scanned.path] = future.result()
                contents[scanned.path] = scanned.data

        logger.debug(f"Hashed {len(index)} file(s) with {self.max_workers} workers")
        return index, contents
