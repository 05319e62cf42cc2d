"""Manifest serialization.

The manifest is a binary file consumed by the serving process and by
prune. Layout::

    b"KVAM"                      magic
    uint16, big endian           format version
    UTF-8 JSON                   {"assets": {...}, "digest_algorithm": "sha256"}

The JSON body is canonical (sorted keys, no whitespace), so an unchanged
asset set always produces byte-identical output.
"""

import json
import logging
import os
import struct
import tempfile
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from ..exceptions import ManifestCorrupt, ManifestWriteError, ScanError
from ..models import AssetIndex, AssetRecord
from .checksum import DIGEST_ALGORITHM
from .keys import derive_remote_key

logger = logging.getLogger(__name__)

MANIFEST_MAGIC = b"KVAM"
MANIFEST_VERSION = 1
_HEADER = struct.Struct(">4sH")


class ManifestUpdate(str, Enum):
    """Outcome of writing a manifest."""

    NEW = "new"
    """No manifest existed before"""

    UPDATED = "updated"
    """Existing manifest was replaced"""

    NO_CHANGE = "no_change"
    """Existing manifest was already identical; nothing written"""


def encode_manifest(index: AssetIndex) -> bytes:
    """Serialize an asset index to manifest bytes."""
    body = {
        "digest_algorithm": DIGEST_ALGORITHM,
        "assets": {path: record.to_dict() for path, record in index.items()},
    }
    payload = json.dumps(
        body, sort_keys=True, separators=(",", ":"), ensure_ascii=False
    ).encode("utf-8")
    return _HEADER.pack(MANIFEST_MAGIC, MANIFEST_VERSION) + payload


def decode_manifest(blob: bytes, source: Optional[str] = None) -> AssetIndex:
    """Deserialize manifest bytes into an asset index.

    Args:
        blob: Manifest bytes
        source: Where the bytes came from, for error messages

    Raises:
        ManifestCorrupt: If the bytes are not a valid manifest of a
            supported version
    """
    where = f" in {source}" if source else ""

    if len(blob) < _HEADER.size:
        raise ManifestCorrupt(f"Manifest{where} is truncated", source)
    magic, version = _HEADER.unpack_from(blob)
    if magic != MANIFEST_MAGIC:
        raise ManifestCorrupt(f"Not an asset manifest{where}", source)
    if version != MANIFEST_VERSION:
        raise ManifestCorrupt(
            f"Unsupported manifest version {version}{where} "
            f"(expected {MANIFEST_VERSION})",
            source,
        )

    try:
        body: Any = json.loads(blob[_HEADER.size :].decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise ManifestCorrupt(f"Manifest body{where} is not valid JSON: {e}", source) from e

    if not isinstance(body, dict) or not isinstance(body.get("assets"), dict):
        raise ManifestCorrupt(f"Manifest{where} has no asset table", source)
    algorithm = body.get("digest_algorithm")
    if algorithm != DIGEST_ALGORITHM:
        raise ManifestCorrupt(
            f"Manifest{where} uses unsupported digest algorithm {algorithm!r}",
            source,
        )

    index: AssetIndex = {}
    for path, data in body["assets"].items():
        if not isinstance(data, dict):
            raise ManifestCorrupt(f"Malformed record for {path}{where}", source)
        try:
            record = AssetRecord.from_dict(data)
        except (KeyError, TypeError) as e:
            raise ManifestCorrupt(
                f"Malformed record for {path}{where}: {e}", source
            ) from e
        if record.path != path:
            raise ManifestCorrupt(
                f"Record path {record.path!r} does not match entry {path!r}{where}",
                source,
            )
        try:
            expected_key = derive_remote_key(record.path, record.digest)
        except ScanError as e:
            raise ManifestCorrupt(f"Invalid record for {path}{where}: {e}", source) from e
        if record.remote_key != expected_key:
            raise ManifestCorrupt(
                f"Remote key for {path}{where} does not match its digest", source
            )
        index[path] = record

    return index


def read_manifest(path: Path) -> AssetIndex:
    """Read and decode a manifest file.

    Raises:
        FileNotFoundError: If the file does not exist
        ManifestCorrupt: If the file cannot be read or is not a valid
            manifest
    """
    try:
        blob = path.read_bytes()
    except FileNotFoundError:
        raise
    except OSError as e:
        raise ManifestCorrupt(f"Cannot read manifest {path}: {e}", str(path)) from e
    index = decode_manifest(blob, source=str(path))
    logger.debug(f"Loaded manifest {path} with {len(index)} asset(s)")
    return index


def _replace_file(path: Path, blob: bytes) -> None:
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(blob)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def write_manifest(path: Path, index: AssetIndex) -> ManifestUpdate:
    """Write a manifest, replacing any existing file atomically.

    The parent directory is created if needed. When the existing file
    already holds identical bytes it is left untouched.

    Returns:
        Whether the manifest is new, updated or unchanged

    Raises:
        ManifestWriteError: If the file cannot be written
    """
    blob = encode_manifest(index)

    try:
        existing: Optional[bytes] = path.read_bytes()
    except FileNotFoundError:
        existing = None
    except OSError as e:
        raise ManifestWriteError(
            f"Cannot write manifest {path}: {e}", str(path)
        ) from e

    if existing == blob:
        logger.debug(f"Manifest {path} unchanged")
        return ManifestUpdate.NO_CHANGE

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        _replace_file(path, blob)
    except OSError as e:
        raise ManifestWriteError(
            f"Cannot write manifest {path}: {e}", str(path)
        ) from e

    logger.debug(f"Wrote manifest {path} ({len(blob)} bytes, {len(index)} assets)")
    return ManifestUpdate.NEW if existing is None else ManifestUpdate.UPDATED


def manifest_to_json(index: AssetIndex) -> str:
    """Render an asset index as pretty-printed JSON."""
    return json.dumps(
        {path: index[path].to_dict() for path in sorted(index)},
        indent=2,
        ensure_ascii=False,
    )
