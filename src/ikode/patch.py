"""
Patch editor - exact search-and-replace on file content.

An edit names the exact text to replace. If that text is missing the edit
fails, and if it appears more than once the edit also fails: replacing
every occurrence could silently change code the model never looked at, so
the model is asked for more surrounding context instead.

apply_patch is pure. Reading and writing go through the helpers below,
which disable newline translation so every byte outside the replaced span
is written back exactly as it was read.
"""

import logging
from pathlib import Path

from ikode.errors import AlreadyExistsError, AmbiguousError, BadArgumentsError, NotFoundError

logger = logging.getLogger(__name__)


def apply_patch(content: str, old_text: str, new_text: str) -> str:
    """
    Replace the single occurrence of old_text in content with new_text.

    Raises:
        BadArgumentsError: old_text is empty
        NotFoundError: old_text does not occur in content
        AmbiguousError: old_text occurs more than once
    """
    if not old_text:
        raise BadArgumentsError("old_text must not be empty.")

    count = content.count(old_text)
    if count == 0:
        raise NotFoundError(
            "old_text not found in file. Make sure it matches exactly, "
            "including whitespace and indentation."
        )
    if count > 1:
        raise AmbiguousError(
            f"old_text matches {count} locations in the file. Provide more "
            "surrounding context to make the match unique."
        )

    return content.replace(old_text, new_text, 1)


def read_text_file(path: Path) -> str:
    """Read a UTF-8 file without newline translation."""
    with open(path, encoding="utf-8", newline="") as f:
        return f.read()


def write_text_file(path: Path, content: str) -> None:
    """Write a UTF-8 file without newline translation."""
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(content)


def ensure_creatable(path: Path) -> None:
    """Raise AlreadyExistsError if something already occupies path."""
    if path.exists() or path.is_symlink():
        raise AlreadyExistsError(
            f"'{path}' already exists. Use edit_file to modify existing files."
        )


def create_file(path: Path, content: str) -> None:
    """
    Create path with content, making missing parent directories.

    The file is opened in exclusive mode, so a file that appears between
    the existence check and the write is still reported as existing.
    """
    ensure_creatable(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        with open(path, "x", encoding="utf-8", newline="") as f:
            f.write(content)
    except FileExistsError as e:
        raise AlreadyExistsError(
            f"'{path}' already exists. Use edit_file to modify existing files."
        ) from e
    logger.info(f"Created {path} ({len(content)} characters)")
