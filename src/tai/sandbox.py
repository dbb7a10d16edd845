"""
Path Sandbox - the single security boundary for filesystem tools.

Every path the model hands to a filesystem tool goes through
PathSandbox.resolve() before anything touches the disk. The workspace root
is fixed when the sandbox is created and never re-read from the process's
current directory afterwards.
"""

import logging
import os
from pathlib import Path

from tai.errors import PathEscapeError, ToolIOError, WorkspaceError

logger = logging.getLogger(__name__)


class PathSandbox:
    """
    Resolves user/model supplied paths to canonical paths inside a root.

    Relative inputs are joined against the root, absolute inputs are taken
    as-is. The result is canonicalized (symlinks resolved) and must have the
    canonical root as a prefix.
    """

    def __init__(self, root: str | os.PathLike[str]) -> None:
        try:
            canonical = Path(root).resolve(strict=True)
        except (OSError, RuntimeError) as e:
            raise WorkspaceError(f"Cannot use workspace root {root}: {e}") from e
        if not canonical.is_dir():
            raise WorkspaceError(f"Workspace root is not a directory: {root}")
        self._root = canonical

    @property
    def root(self) -> Path:
        return self._root

    def resolve(self, path_input: str, allow_nonexistent: bool = False) -> Path:
        """
        Resolve a path string to an absolute canonical path inside the root.

        Args:
            path_input: Path as supplied by the caller
            allow_nonexistent: Accept a target that does not exist yet. The
                existing ancestors are canonicalized and the missing trailing
                components are appended as given.

        Raises:
            PathEscapeError: If the canonical path falls outside the root
            ToolIOError: If the path does not exist and allow_nonexistent is False
        """
        candidate = Path(path_input)
        absolute = candidate if candidate.is_absolute() else self._root / candidate

        try:
            # Non-strict resolution canonicalizes every existing component
            # and folds ".." lexically only once it reaches missing ones.
            canonical = absolute.resolve(strict=not allow_nonexistent)
        except FileNotFoundError as e:
            # Check containment first so a missing path outside the root
            # still reports as an escape.
            self._check_within(absolute.resolve(strict=False), path_input)
            raise ToolIOError(f"Path not found: {path_input}") from e
        except (OSError, RuntimeError) as e:
            raise ToolIOError(f"Failed to canonicalize {path_input}: {e}") from e

        self._check_within(canonical, path_input)
        return canonical

    def contains(self, path: Path) -> bool:
        return path == self._root or path.is_relative_to(self._root)

    def _check_within(self, canonical: Path, path_input: str) -> None:
        if not self.contains(canonical):
            logger.warning(f"Rejected path outside workspace: {path_input!r} -> {canonical}")
            raise PathEscapeError(f"Path escapes workspace root: {path_input}")
