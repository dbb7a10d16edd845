"""
Tests for list_dir, stat and glob.
"""

import os
from pathlib import Path

import pytest

from tai.errors import PathEscapeError, ToolIOError, ValidationError
from tai.sandbox import PathSandbox
from tai.tools.dir import DirTools


@pytest.fixture
def dirs(sandbox: PathSandbox) -> DirTools:
    return DirTools(sandbox)


@pytest.fixture
def tree(workspace: Path) -> Path:
    (workspace / "src").mkdir()
    (workspace / "src" / "main.py").write_text("print('hi')\n")
    (workspace / "src" / "util.py").write_text("")
    (workspace / "src" / "pkg").mkdir()
    (workspace / "src" / "pkg" / "deep.py").write_text("")
    (workspace / "README.md").write_text("# readme\n")
    (workspace / ".hidden").write_text("secret")
    return workspace


def names(result: dict) -> list[str]:
    return [Path(item["path"]).name for item in result["items"]]


class TestListDir:

    def test_top_level_sorted_no_hidden(self, dirs: DirTools, tree: Path) -> None:
        result = dirs.list_dir(".")
        assert names(result) == ["README.md", "src"]
        assert result["count"] == 2

    def test_include_hidden(self, dirs: DirTools, tree: Path) -> None:
        assert ".hidden" in names(dirs.list_dir(".", include_hidden=True))

    def test_recursive(self, dirs: DirTools, tree: Path) -> None:
        found = names(dirs.list_dir(".", recursive=True))
        assert {"src", "main.py", "util.py", "pkg", "deep.py", "README.md"} <= set(found)
        assert ".hidden" not in found

    def test_include_globs(self, dirs: DirTools, tree: Path) -> None:
        result = dirs.list_dir(".", recursive=True, include_globs=["*.py"])
        assert sorted(names(result)) == ["deep.py", "main.py", "util.py"]

    def test_exclude_globs(self, dirs: DirTools, tree: Path) -> None:
        result = dirs.list_dir(".", recursive=True, include_globs=["*.py"], exclude_globs=["src/pkg/**"])
        assert sorted(names(result)) == ["main.py", "util.py"]

    def test_limit(self, dirs: DirTools, tree: Path) -> None:
        assert dirs.list_dir(".", recursive=True, limit=2)["count"] == 2

    def test_zero_limit_rejected(self, dirs: DirTools, tree: Path) -> None:
        with pytest.raises(ValidationError):
            dirs.list_dir(".", limit=0)

    def test_item_shape(self, dirs: DirTools, tree: Path) -> None:
        item = next(i for i in dirs.list_dir(".")["items"] if i["path"].endswith("README.md"))
        assert item["type"] == "file"
        assert item["size"] == len("# readme\n")
        assert item["modified"].endswith("Z")
        assert set(item) == {"path", "type", "size", "modified", "created", "mode"}

    def test_not_a_directory(self, dirs: DirTools, tree: Path) -> None:
        with pytest.raises(ToolIOError):
            dirs.list_dir("README.md")

    def test_escape(self, dirs: DirTools) -> None:
        with pytest.raises(PathEscapeError):
            dirs.list_dir("..")


class TestStat:

    def test_file(self, dirs: DirTools, tree: Path) -> None:
        info = dirs.stat("src/main.py")
        assert info["type"] == "file"
        assert info["path"] == str(tree.resolve() / "src" / "main.py")

    def test_dir(self, dirs: DirTools, tree: Path) -> None:
        assert dirs.stat("src")["type"] == "dir"

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
    def test_mode_is_octal(self, dirs: DirTools, tree: Path) -> None:
        (tree / "README.md").chmod(0o640)
        assert dirs.stat("README.md")["mode"].endswith("640")

    def test_missing(self, dirs: DirTools) -> None:
        with pytest.raises(ToolIOError):
            dirs.stat("nope")


class TestGlob:

    def test_recursive_pattern(self, dirs: DirTools, tree: Path) -> None:
        result = dirs.glob("src/**/*.py")
        found = sorted(Path(p).name for p in result["paths"])
        assert found == ["deep.py", "main.py", "util.py"]
        assert all(Path(p).is_absolute() for p in result["paths"])

    def test_bare_name_matches_anywhere(self, dirs: DirTools, tree: Path) -> None:
        assert [Path(p).name for p in dirs.glob("deep.py")["paths"]] == ["deep.py"]

    def test_root_and_limit(self, dirs: DirTools, tree: Path) -> None:
        result = dirs.glob("*.py", root="src", limit=1)
        assert result["count"] == 1
        assert result["root"] == str(tree.resolve() / "src")

    def test_no_match(self, dirs: DirTools, tree: Path) -> None:
        assert dirs.glob("*.rs")["paths"] == []
