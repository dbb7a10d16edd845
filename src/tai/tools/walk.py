"""
Directory walking helpers shared by the search tools.

Glob matching follows the usual "**" convention on top of fnmatch: a
pattern without a slash matches the file name anywhere in the tree, and
"**/" may stand for zero or more directories. Ignore-file semantics are
delegated to git itself via `git check-ignore`.
"""

import fnmatch
import logging
import os
import subprocess
from collections.abc import Iterator
from functools import lru_cache
from pathlib import Path

logger = logging.getLogger(__name__)

BINARY_SAMPLE_BYTES = 8000
ALWAYS_SKIPPED_DIRS = frozenset({".git"})


@lru_cache(maxsize=256)
def _globstar_variants(pattern: str) -> frozenset[str]:
    variants = {pattern}
    pending = [pattern]
    while pending:
        current = pending.pop()
        index = current.find("**/")
        while index != -1:
            shorter = current[:index] + current[index + 3:]
            if shorter not in variants:
                variants.add(shorter)
                pending.append(shorter)
            index = current.find("**/", index + 1)
    return frozenset(variants)


def matches_glob(rel_path: str, pattern: str) -> bool:
    """Match a root-relative POSIX path against a glob pattern."""
    pattern = pattern.strip()
    if pattern.startswith("./"):
        pattern = pattern[2:]
    if "/" not in pattern:
        name = rel_path.rsplit("/", 1)[-1]
        return fnmatch.fnmatchcase(name, pattern) or fnmatch.fnmatchcase(rel_path, pattern)
    return any(fnmatch.fnmatchcase(rel_path, p) for p in _globstar_variants(pattern))


class GlobFilter:
    """Include/exclude glob sets. Excludes win over includes."""

    def __init__(
        self,
        include: list[str] | None = None,
        exclude: list[str] | None = None,
    ) -> None:
        self.include = [g for g in (include or []) if g.strip()]
        self.exclude = [g for g in (exclude or []) if g.strip()]

    def allows(self, rel_path: str) -> bool:
        if any(matches_glob(rel_path, g) for g in self.exclude):
            return False
        if self.include:
            return any(matches_glob(rel_path, g) for g in self.include)
        return True


class GitIgnoreFilter:
    """
    Answers "is this path ignored by git?" for paths under a root.

    Outside a git work tree, or when git is not installed, nothing is
    ignored.
    """

    def __init__(self, root: Path) -> None:
        self.root = root
        self.enabled = self._inside_work_tree()

    def _inside_work_tree(self) -> bool:
        try:
            result = subprocess.run(
                ["git", "rev-parse", "--is-inside-work-tree"],
                cwd=self.root,
                capture_output=True,
                text=True,
                timeout=10,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug(f"git unavailable, ignore rules disabled: {e}")
            return False
        return result.returncode == 0 and result.stdout.strip() == "true"

    def ignored(self, paths: list[Path], dirs: set[Path] | None = None) -> set[Path]:
        """Return the subset of paths that git ignores."""
        if not self.enabled or not paths:
            return set()

        dirs = dirs or set()
        by_query: dict[str, Path] = {}
        for path in paths:
            rel = os.path.relpath(path, self.root)
            # Directory-only patterns ("build/") need the trailing slash
            query = rel + "/" if path in dirs else rel
            by_query[query] = path

        try:
            result = subprocess.run(
                ["git", "check-ignore", "--stdin", "-z"],
                cwd=self.root,
                input=b"\0".join(os.fsencode(q) for q in by_query),
                capture_output=True,
                timeout=30,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning(f"git check-ignore failed, not filtering: {e}")
            return set()

        # 0: some paths ignored, 1: none ignored, anything else is an error
        if result.returncode not in (0, 1):
            logger.warning(f"git check-ignore exited {result.returncode}: {result.stderr!r}")
            return set()

        ignored: set[Path] = set()
        for raw in result.stdout.split(b"\0"):
            if raw:
                path = by_query.get(os.fsdecode(raw))
                if path is not None:
                    ignored.add(path)
        return ignored


def walk(
    root: Path,
    *,
    include_hidden: bool = True,
    ignore: GitIgnoreFilter | None = None,
    skip_dirs: frozenset[str] = ALWAYS_SKIPPED_DIRS,
) -> Iterator[tuple[Path, bool]]:
    """
    Walk a directory tree in sorted order, yielding (path, is_dir).

    Symlinked directories are yielded but not descended into. Hidden
    entries are skipped (and hidden directories pruned) unless
    include_hidden is set; git-ignored entries are pruned when an ignore
    filter is given. Directories named in skip_dirs are never entered.
    """
    for dirpath, dirnames, filenames in os.walk(root, followlinks=False):
        current = Path(dirpath)
        dirnames[:] = sorted(d for d in dirnames if d not in skip_dirs)
        filenames = sorted(filenames)

        if not include_hidden:
            dirnames[:] = [d for d in dirnames if not d.startswith(".")]
            filenames = [f for f in filenames if not f.startswith(".")]

        if ignore is not None:
            dir_paths = {current / d for d in dirnames}
            ignored = ignore.ignored(
                [current / d for d in dirnames] + [current / f for f in filenames],
                dirs=dir_paths,
            )
            dirnames[:] = [d for d in dirnames if current / d not in ignored]
            filenames = [f for f in filenames if current / f not in ignored]

        for name in dirnames:
            yield current / name, True
        for name in filenames:
            yield current / name, False


def is_binary(data: bytes, sample: int = BINARY_SAMPLE_BYTES) -> bool:
    """Heuristic: any NUL byte in the first `sample` bytes."""
    return b"\0" in data[:sample]


def split_lines(text: str) -> list[str]:
    """
    Split text into lines on "\\n", dropping a trailing "\\r" per line.

    A trailing newline does not produce an extra empty line.
    """
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]
