"""
Tests for PathValidator - the filesystem boundary.

These tests verify that every path resolving outside the working
directory is rejected, whatever route it takes to get there.
"""

import os
from pathlib import Path

import pytest

from ikode.errors import InvalidPathError, PathEscapeError
from ikode.paths import PathValidator


@pytest.fixture
def work(tmp_path: Path) -> Path:
    root = tmp_path / "work"
    (root / "notes").mkdir(parents=True)
    (root / "notes" / "todo.txt").write_text("buy milk\n")
    return root


@pytest.fixture
def validator(work: Path) -> PathValidator:
    return PathValidator(work)


class TestAcceptedPaths:
    """Paths that resolve under the root are returned canonicalized."""

    def test_existing_relative_path(self, validator: PathValidator, work: Path) -> None:
        """notes/todo.txt resolves to <root>/notes/todo.txt."""
        result = validator.validate("notes/todo.txt")
        assert result == (work / "notes" / "todo.txt").resolve()
        assert result.is_absolute()

    def test_dot_slash_prefix(self, validator: PathValidator, work: Path) -> None:
        assert validator.validate("./notes/todo.txt") == (work / "notes" / "todo.txt").resolve()

    def test_root_itself(self, validator: PathValidator, work: Path) -> None:
        assert validator.validate(".") == work.resolve()

    def test_inner_traversal_that_stays_inside(self, validator: PathValidator, work: Path) -> None:
        assert validator.validate("notes/../notes/todo.txt") == (work / "notes" / "todo.txt").resolve()

    def test_absolute_path_inside_root(self, validator: PathValidator, work: Path) -> None:
        target = str(work / "notes" / "todo.txt")
        assert validator.validate(target) == (work / "notes" / "todo.txt").resolve()

    def test_nonexistent_file_for_creation(self, validator: PathValidator, work: Path) -> None:
        """A file that does not exist yet resolves through its nearest existing ancestor."""
        result = validator.validate("src/pkg/new_module.py")
        assert result == work.resolve() / "src" / "pkg" / "new_module.py"

    def test_nonexistent_path_with_dotdot_inside(self, validator: PathValidator, work: Path) -> None:
        result = validator.validate("newdir/../other.txt")
        assert result == work.resolve() / "other.txt"

    def test_symlink_inside_root(self, validator: PathValidator, work: Path) -> None:
        link = work / "alias"
        try:
            os.symlink(work / "notes", link)
        except (OSError, NotImplementedError):
            pytest.skip("symlinks not supported")
        assert validator.validate("alias/todo.txt") == (work / "notes" / "todo.txt").resolve()

    def test_relative_display(self, validator: PathValidator, work: Path) -> None:
        path = validator.validate("notes/todo.txt")
        assert validator.relative(path) == os.path.join("notes", "todo.txt")
        assert validator.relative(validator.root) == "."


class TestRejectedPaths:
    """Everything that resolves outside the root fails with PathEscape."""

    def test_parent_traversal(self, validator: PathValidator) -> None:
        with pytest.raises(PathEscapeError) as exc_info:
            validator.validate("../../etc/passwd")
        assert "outside the working directory" in str(exc_info.value)
        assert "parent-directory traversal" in str(exc_info.value)

    def test_traversal_through_nonexistent_dirs(self, validator: PathValidator) -> None:
        with pytest.raises(PathEscapeError):
            validator.validate("missing/../../escape.txt")

    def test_absolute_path_outside(self, validator: PathValidator) -> None:
        with pytest.raises(PathEscapeError) as exc_info:
            validator.validate("/etc/passwd")
        assert "absolute path" in str(exc_info.value)

    def test_sibling_with_common_prefix(self, validator: PathValidator, work: Path) -> None:
        """/work2 is not inside /work even though the strings share a prefix."""
        sibling = work.parent / (work.name + "2")
        sibling.mkdir()
        (sibling / "file.txt").write_text("x")

        with pytest.raises(PathEscapeError):
            validator.validate(str(sibling / "file.txt"))
        with pytest.raises(PathEscapeError):
            validator.validate(f"../{work.name}2/file.txt")

    def test_symlink_escape(self, validator: PathValidator, work: Path, tmp_path: Path) -> None:
        outside = tmp_path / "outside"
        outside.mkdir()
        (outside / "secret.txt").write_text("secret")
        try:
            os.symlink(outside / "secret.txt", work / "escape")
        except (OSError, NotImplementedError):
            pytest.skip("symlinks not supported")

        with pytest.raises(PathEscapeError) as exc_info:
            validator.validate("escape")
        assert "symbolic link" in str(exc_info.value)

    def test_symlinked_directory_escape_for_new_file(
        self, validator: PathValidator, work: Path, tmp_path: Path
    ) -> None:
        """Creating a file below a symlinked directory that points outside is rejected."""
        outside = tmp_path / "elsewhere"
        outside.mkdir()
        try:
            os.symlink(outside, work / "linkdir")
        except (OSError, NotImplementedError):
            pytest.skip("symlinks not supported")

        with pytest.raises(PathEscapeError):
            validator.validate("linkdir/new.txt")

    def test_dangling_symlink_escape(self, validator: PathValidator, work: Path, tmp_path: Path) -> None:
        try:
            os.symlink(tmp_path / "not-there.txt", work / "dangling")
        except (OSError, NotImplementedError):
            pytest.skip("symlinks not supported")

        with pytest.raises(PathEscapeError):
            validator.validate("dangling")


class TestInvalidPaths:
    """Malformed input fails with InvalidPath, not PathEscape."""

    @pytest.mark.parametrize("candidate", ["", "   "])
    def test_empty(self, validator: PathValidator, candidate: str) -> None:
        with pytest.raises(InvalidPathError):
            validator.validate(candidate)

    def test_nul_byte(self, validator: PathValidator) -> None:
        with pytest.raises(InvalidPathError):
            validator.validate("notes/\x00todo.txt")


class TestRoot:
    """The root is canonicalized once and must exist."""

    def test_root_is_canonical(self, work: Path) -> None:
        validator = PathValidator(str(work / "notes" / ".."))
        assert validator.root == work.resolve()

    def test_missing_root(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            PathValidator(tmp_path / "missing")

    def test_validate_has_no_side_effects(self, validator: PathValidator, work: Path) -> None:
        validator.validate("a/b/c.txt")
        assert not (work / "a").exists()
