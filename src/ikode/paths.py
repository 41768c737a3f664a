"""
Path validation - the filesystem boundary.

Every path the model hands to a file tool goes through PathValidator
before anything touches the disk. A path is accepted only if its canonical
form (dots collapsed, symbolic links followed) is the working directory or
something below it. The check compares path components, not strings, so a
sibling such as /work2 is never mistaken for a child of /work.
"""

import logging
import os
from pathlib import Path

from ikode.errors import InvalidPathError, PathEscapeError

logger = logging.getLogger(__name__)


class PathValidator:
    """
    Resolves user-supplied paths against a fixed working-directory root.

    The root is canonicalized once at construction and never changes.
    validate() is all-or-nothing and has no side effects.
    """

    def __init__(self, root: str | Path) -> None:
        root_path = Path(root).expanduser()
        if not root_path.is_absolute():
            root_path = Path.cwd() / root_path
        self.root = root_path.resolve(strict=True)
        if not self.root.is_dir():
            raise NotADirectoryError(f"Working directory is not a directory: {self.root}")

    def validate(self, candidate: str) -> Path:
        """
        Return the canonical absolute path for candidate.

        Raises:
            InvalidPathError: candidate is empty or malformed
            PathEscapeError: the canonical path is not under the root
        """
        if candidate is None or not candidate.strip():
            raise InvalidPathError("Path must not be empty.")
        if "\x00" in candidate:
            raise InvalidPathError(f"Path {candidate!r} contains a NUL byte.")

        requested = Path(candidate)
        joined = requested if requested.is_absolute() else self.root / requested
        canonical = self._canonicalize(joined)

        if not self.contains(canonical):
            reason = self._escape_reason(requested)
            logger.warning(f"Rejected path {candidate!r}: resolves to {canonical} ({reason})")
            raise PathEscapeError(
                f"Path '{candidate}' resolves to '{canonical}', which is outside the "
                f"working directory '{self.root}': {reason}. For security reasons, file "
                "operations are restricted to the working directory and its subdirectories."
            )

        return canonical

    def contains(self, path: Path) -> bool:
        """Component-wise containment: path is the root or a descendant of it."""
        return path == self.root or path.is_relative_to(self.root)

    def relative(self, path: Path) -> str:
        """Display form of a validated path, relative to the root."""
        if path == self.root:
            return "."
        return str(path.relative_to(self.root))

    @staticmethod
    def _canonicalize(path: Path) -> Path:
        """
        Canonicalize a path that may not exist yet.

        The nearest existing ancestor (or a dangling symlink) is fully
        resolved, then the non-existent remainder is appended and
        normalized. The remainder holds no symlinks, so collapsing its
        ".." components lexically is exact.
        """
        existing = path
        suffix: list[str] = []
        while not (existing.exists() or existing.is_symlink()):
            parent = existing.parent
            if parent == existing:
                break
            suffix.append(existing.name)
            existing = parent

        base = existing.resolve()
        if not suffix:
            return base
        return Path(os.path.normpath(base.joinpath(*reversed(suffix))))

    def _escape_reason(self, requested: Path) -> str:
        if requested.is_absolute():
            return "absolute path outside the working directory"
        if ".." in requested.parts:
            return "parent-directory traversal leaves the working directory"
        return "symbolic link resolves outside the working directory"
