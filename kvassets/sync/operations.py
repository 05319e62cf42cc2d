"""Store operations used by sync and prune."""

import logging
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Optional, TypeVar

from ..models import AssetRecord
from .protocols import RemoteStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_parallel(
    items: Sequence[T],
    func: Callable[[T], None],
    max_workers: int,
    on_done: Optional[Callable[[T, Optional[Exception]], None]] = None,
) -> list[tuple[T, Optional[Exception]]]:
    """Run ``func`` for every item on a bounded thread pool.

    A failing item does not stop the others. The call returns only after
    every item has finished, so it doubles as a barrier.

    Args:
        items: Work items
        func: Function applied to each item
        max_workers: Maximum number of concurrent workers
        on_done: Called from the collecting thread as each item finishes

    Returns:
        (item, exception or None) for every item, in completion order
    """
    results: list[tuple[T, Optional[Exception]]] = []

    def execute_with_timing(item: T) -> tuple[float, Optional[Exception]]:
        start = time.time()
        try:
            func(item)
        except Exception as e:
            return time.time() - start, e
        return time.time() - start, None

    if not items:
        return results

    workers = max(1, min(max_workers, len(items)))
    logger.debug(f"Executing {len(items)} action(s) with {workers} worker(s)")

    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {executor.submit(execute_with_timing, item): item for item in items}
        for future in as_completed(futures):
            item = futures[future]
            elapsed, error = future.result()
            if error is None:
                logger.debug(f"Completed {item} in {elapsed:.2f}s")
            else:
                logger.debug(f"Failed {item} in {elapsed:.2f}s: {error}")
            results.append((item, error))
            if on_done is not None:
                on_done(item, error)

    return results


class SyncOperations:
    """Thin wrapper around a RemoteStore for asset writes and deletes."""

    def __init__(self, store: RemoteStore):
        """Initialize sync operations.

        Args:
            store: Remote key-value store
        """
        self.store = store

    def upload_record(
        self,
        record: AssetRecord,
        data: bytes,
        expiration_ttl: Optional[int] = None,
    ) -> None:
        """Store an asset's contents under its remote key.

        Putting the same key twice is safe: the key is derived from the
        contents, so both writes carry identical bytes.

        Args:
            record: Asset record providing the key
            data: File contents
            expiration_ttl: Optional expiration in seconds
        """
        logger.debug(f"Uploading {record.path} as {record.remote_key}")
        if expiration_ttl is None:
            self.store.put(record.remote_key, data)
        else:
            self.store.put(record.remote_key, data, expiration_ttl=expiration_ttl)

    def delete_key(self, key: str) -> None:
        """Delete a key from the store."""
        logger.debug(f"Deleting {key}")
        self.store.delete(key)
