"""Directory scanning for asset sync."""

import logging
import os
import unicodedata
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..exceptions import ScanError
from ..utils import to_epoch_seconds
from .ignore import IGNORE_FILE_NAME, IgnoreFileManager
from .protocols import PathFilter

logger = logging.getLogger(__name__)


def normalize_path(relative_path: str) -> str:
    """Normalize a relative asset path.

    Converts the platform separator to forward slashes, strips leading
    slashes and applies Unicode NFC so the same file name produces the
    same key on every platform. A backslash inside a POSIX file name is
    kept as part of the name.

    Examples:
        >>> normalize_path("/css/site.css")
        'css/site.css'
    """
    path = relative_path
    if os.sep != "/":
        path = path.replace(os.sep, "/")
    return unicodedata.normalize("NFC", path.lstrip("/"))


def display_name(path: str) -> str:
    """Printable form of a path that may hold undecodable bytes."""
    return os.fsencode(path).decode("utf-8", "backslashreplace")


@dataclass
class ScannedFile:
    """A local file read during a scan."""

    path: str
    """Normalized relative path (forward slashes)"""

    data: bytes
    """File contents"""

    size: int
    """File size in bytes"""

    modified_at: int
    """Last modification time (UTC seconds since epoch)"""

    source: Optional[Path] = None
    """Absolute path the contents were read from"""


class DirectoryScanner:
    """Walks an asset directory and reads every included file.

    Supports ``.kvignore`` files for gitignore-style pattern matching.
    Ignore files in the asset root, its parent and any subdirectory are
    applied hierarchically.

    Examples:
        >>> scanner = DirectoryScanner(ignore_patterns=["*.map"])
        >>> for f in scanner.iter_files(Path("public")):
        ...     print(f.path, f.size)
    """

    def __init__(
        self,
        ignore_patterns: Optional[list[str]] = None,
        exclude_dot_files: bool = False,
        use_ignore_files: bool = True,
        path_filter: Optional[PathFilter] = None,
    ):
        """Initialize directory scanner.

        Args:
            ignore_patterns: Glob patterns to ignore (e.g., ["*.log", "tmp/"])
            exclude_dot_files: Whether to exclude files/folders starting with dot
            use_ignore_files: Whether to load .kvignore files
            path_filter: Additional filter consulted for every file
        """
        self.ignore_patterns = ignore_patterns or []
        self.exclude_dot_files = exclude_dot_files
        self.use_ignore_files = use_ignore_files
        self.path_filter = path_filter
        self._ignore_manager: Optional[IgnoreFileManager] = None

    def _init_ignore_manager(self, base_path: Path) -> IgnoreFileManager:
        manager = IgnoreFileManager(base_path=base_path)
        if self.use_ignore_files:
            manager.load_ancestors()
        if self.ignore_patterns:
            manager.load_cli_patterns(self.ignore_patterns)
        return manager

    def should_ignore(self, relative_path: str, name: str, is_dir: bool) -> bool:
        """Check if a path should be skipped.

        Args:
            relative_path: Path relative to the asset root
            name: Final path component
            is_dir: Whether the path is a directory
        """
        if name == IGNORE_FILE_NAME:
            return True

        if self.exclude_dot_files and name.startswith("."):
            return True

        if self._ignore_manager is not None:
            if self._ignore_manager.is_ignored(relative_path, is_dir=is_dir):
                logger.debug(f"Ignoring (from rules): {relative_path}")
                return True

        if not is_dir and self.path_filter is not None:
            if not self.path_filter.should_include(relative_path):
                logger.debug(f"Ignoring (from filter): {relative_path}")
                return True

        return False

    def iter_files(self, root: Path) -> Iterator[ScannedFile]:
        """Lazily scan a directory tree, yielding each included file.

        Every call starts a fresh walk, so the sequence can be restarted.
        Directories are visited in sorted order.

        Args:
            root: Asset root directory

        Yields:
            ScannedFile for every included file

        Raises:
            ScanError: If the root is missing, any file or directory cannot
                be read, a file name is not valid UTF-8, or two files
                normalize to the same asset path
        """
        if not root.exists():
            raise ScanError(f"Asset directory does not exist: {root}", str(root))
        if not root.is_dir():
            raise ScanError(f"Asset path is not a directory: {root}", str(root))

        base_path = root.resolve()
        self._ignore_manager = self._init_ignore_manager(base_path)

        seen: dict[str, Optional[Path]] = {}
        for scanned in self._walk(base_path, base_path):
            if scanned.path in seen:
                raise ScanError(
                    f"{display_name(str(seen[scanned.path]))} and "
                    f"{display_name(str(scanned.source))} both map to asset path "
                    f"{scanned.path}",
                    scanned.path,
                )
            seen[scanned.path] = scanned.source
            yield scanned

    def scan(self, root: Path) -> list[ScannedFile]:
        """Scan a directory tree and return all included files."""
        return list(self.iter_files(root))

    def _walk(self, directory: Path, base_path: Path) -> Iterator[ScannedFile]:
        if self.use_ignore_files and self._ignore_manager is not None:
            self._ignore_manager.load_from_directory(directory)

        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            raise ScanError(f"Cannot read directory {directory}: {e}", str(directory)) from e

        for entry in entries:
            item = Path(entry.path)
            relative_path = normalize_path(item.relative_to(base_path).as_posix())
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
                is_file = entry.is_file()
            except OSError as e:
                raise ScanError(f"Cannot stat {relative_path}: {e}", relative_path) from e

            if self.should_ignore(relative_path, entry.name, is_dir):
                continue

            if is_dir:
                yield from self._walk(item, base_path)
            elif is_file:
                try:
                    relative_path.encode("utf-8")
                except UnicodeEncodeError as e:
                    name = display_name(relative_path)
                    raise ScanError(f"File name is not valid UTF-8: {name}", name) from e
                yield self._read_file(item, relative_path)
            else:
                logger.debug(f"Skipping non-regular entry: {relative_path}")

    def _read_file(self, item: Path, relative_path: str) -> ScannedFile:
        try:
            data = item.read_bytes()
            stat = item.stat()
        except OSError as e:
            raise ScanError(f"Cannot read {relative_path}: {e}", relative_path) from e

        return ScannedFile(
            path=relative_path,
            data=data,
            size=len(data),
            modified_at=to_epoch_seconds(stat.st_mtime),
            source=item,
        )
