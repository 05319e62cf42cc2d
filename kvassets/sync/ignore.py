"""Gitignore-style path filtering for asset scans.

Rules come from ``.kvignore`` files and from patterns given on the
command line. A ``.kvignore`` file applies to its own directory and
everything below it; the asset root's parent directory is consulted too,
so a project-level ignore file next to the asset directory takes effect.

Supported syntax:

- blank lines and lines starting with ``#`` are skipped
- ``*`` matches within a path segment, ``**`` across segments, ``?``
  matches one character, ``[...]`` is a character class
- a trailing ``/`` only matches directories
- a ``/`` at the start or in the middle anchors the pattern to the
  directory of the ignore file; otherwise it matches at any depth
- a leading ``!`` re-includes a previously ignored path
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Optional

logger = logging.getLogger(__name__)

IGNORE_FILE_NAME = ".kvignore"


def glob_to_regex(pattern: str) -> str:
    """Translate a gitignore glob (without flags) into a regex body.

    Examples:
        >>> glob_to_regex("*.log")
        '[^/]*\\\\.log'
        >>> glob_to_regex("a/**/b")
        'a/(?:.*/)?b'
    """
    out: list[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern[i : i + 3] == "**/":
                out.append("(?:.*/)?")
                i += 3
                continue
            if pattern[i : i + 2] == "**":
                out.append(".*")
                i += 2
                continue
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            end = pattern.find("]", i + 1)
            if end == -1:
                out.append(re.escape(c))
            else:
                body = pattern[i + 1 : end]
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append(f"[{body}]")
                i = end
        elif c == "\\" and i + 1 < n:
            i += 1
            out.append(re.escape(pattern[i]))
        else:
            out.append(re.escape(c))
        i += 1
    return "".join(out)


@dataclass
class IgnoreRule:
    """A single parsed ignore pattern."""

    pattern: str
    """Original pattern text"""

    directory: Path
    """Directory the pattern is relative to"""

    regex: re.Pattern
    """Compiled match against the path relative to ``directory``"""

    negated: bool = False
    """Pattern started with ``!``"""

    dir_only: bool = False
    """Pattern ended with ``/``"""

    @classmethod
    def parse(cls, line: str, directory: Path) -> Optional["IgnoreRule"]:
        """Parse one line of an ignore file.

        Returns:
            IgnoreRule, or None for blank lines and comments
        """
        text = line.rstrip("\n").rstrip("\r")
        # Trailing spaces are ignored unless escaped
        if not text.endswith("\\ "):
            text = text.rstrip(" ")
        if not text or text.startswith("#"):
            return None

        negated = False
        if text.startswith("!"):
            negated = True
            text = text[1:]
        elif text.startswith("\\!") or text.startswith("\\#"):
            text = text[1:]

        dir_only = text.endswith("/")
        text = text.rstrip("/")
        if not text:
            return None

        anchored = "/" in text
        text = text.lstrip("/")
        body = glob_to_regex(text)
        if anchored:
            regex = re.compile(f"^{body}$")
        else:
            regex = re.compile(f"^(?:.*/)?{body}$")

        return cls(
            pattern=line.strip(),
            directory=directory,
            negated=negated,
            dir_only=dir_only,
            regex=regex,
        )

    def matches(self, absolute: Path, is_dir: bool) -> bool:
        """Check whether this rule matches a path."""
        if self.dir_only and not is_dir:
            return False
        try:
            relative = absolute.relative_to(self.directory).as_posix()
        except ValueError:
            return False
        if relative in ("", "."):
            return False
        return bool(self.regex.match(relative))


def load_ignore_file(path: Path) -> list[IgnoreRule]:
    """Load rules from an ignore file.

    Args:
        path: Path to a ``.kvignore`` file

    Returns:
        Parsed rules, in file order
    """
    rules: list[IgnoreRule] = []
    with open(path, encoding="utf-8") as f:
        for line in f:
            rule = IgnoreRule.parse(line, path.parent)
            if rule is not None:
                rules.append(rule)
    logger.debug(f"Loaded {len(rules)} ignore rule(s) from {path}")
    return rules


class IgnoreFileManager:
    """Collects ignore rules for one scan and answers include/exclude queries.

    Paths passed to ``is_ignored`` and ``should_include`` are relative to
    ``base_path`` and use forward slashes.
    """

    def __init__(self, base_path: Path):
        self.base_path = base_path.resolve()
        self._rules: list[IgnoreRule] = []
        self._loaded_dirs: set[Path] = set()

    @property
    def rules(self) -> list[IgnoreRule]:
        return list(self._rules)

    def load_cli_patterns(self, patterns: list[str]) -> None:
        """Add patterns that apply relative to the asset root."""
        for pattern in patterns:
            rule = IgnoreRule.parse(pattern, self.base_path)
            if rule is not None:
                self._rules.append(rule)

    def load_from_directory(self, directory: Path) -> None:
        """Load the ignore file in a directory, if any (only once per dir)."""
        directory = directory.resolve()
        if directory in self._loaded_dirs:
            return
        self._loaded_dirs.add(directory)
        ignore_file = directory / IGNORE_FILE_NAME
        if ignore_file.is_file():
            self._rules.extend(load_ignore_file(ignore_file))

    def load_ancestors(self) -> None:
        """Load ignore files from the parent of the asset root and the root."""
        parent = self.base_path.parent
        if parent != self.base_path:
            self.load_from_directory(parent)
        self.load_from_directory(self.base_path)

    def _match(self, relative_path: str, is_dir: bool) -> bool:
        absolute = self.base_path / relative_path
        ignored = False
        # Later rules override earlier ones
        for rule in self._rules:
            if rule.matches(absolute, is_dir):
                ignored = not rule.negated
        return ignored

    def is_ignored(self, relative_path: str, is_dir: bool = False) -> bool:
        """Check if a path is excluded, including via an excluded parent."""
        parts = PurePosixPath(relative_path).parts
        if not parts:
            return False
        if parts[-1] == IGNORE_FILE_NAME:
            return True
        for depth in range(1, len(parts)):
            if self._match("/".join(parts[:depth]), is_dir=True):
                return True
        return self._match(relative_path, is_dir)

    def should_include(self, relative_path: str) -> bool:
        """PathFilter interface: True if a file should be synced."""
        return not self.is_ignored(relative_path, is_dir=False)
