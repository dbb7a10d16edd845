"""
Directory tools: list_dir, stat and glob.
"""

import os
import stat as stat_module
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from tai.errors import ToolIOError
from tai.sandbox import PathSandbox
from tai.tools.base import ParamSpec, Tool, ToolSpec, positive
from tai.tools.walk import GlobFilter, matches_glob, walk

DEFAULT_LIST_LIMIT = 1000
DEFAULT_GLOB_LIMIT = 200


def _format_time(timestamp: float | None) -> str | None:
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp, UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def path_info(path: Path) -> dict[str, Any]:
    """Metadata for one entry, without following a final symlink."""
    try:
        st = path.lstat()
    except OSError as e:
        raise ToolIOError(f"stat failed for {path}: {e.strerror or e}") from e

    if stat_module.S_ISDIR(st.st_mode):
        file_type = "dir"
    elif stat_module.S_ISREG(st.st_mode):
        file_type = "file"
    elif stat_module.S_ISLNK(st.st_mode):
        file_type = "symlink"
    else:
        file_type = "other"

    return {
        "path": str(path),
        "type": file_type,
        "size": st.st_size,
        "modified": _format_time(st.st_mtime),
        # Creation time is not reported on every platform
        "created": _format_time(getattr(st, "st_birthtime", None)),
        "mode": format(st.st_mode, "o") if os.name == "posix" else "",
    }


class DirTools:
    """List, stat and glob inside the workspace."""

    def __init__(self, sandbox: PathSandbox) -> None:
        self.sandbox = sandbox

    def list_dir(
        self,
        path: str = ".",
        recursive: bool = False,
        include_globs: list[str] | None = None,
        exclude_globs: list[str] | None = None,
        limit: int = DEFAULT_LIST_LIMIT,
        include_hidden: bool = False,
    ) -> dict[str, Any]:
        positive("limit", limit)
        directory = self.sandbox.resolve(path)
        if not directory.is_dir():
            raise ToolIOError(f"Not a directory: {path}")

        globs = GlobFilter(include_globs, exclude_globs)
        if recursive:
            entries = (p for p, _ in walk(directory, include_hidden=include_hidden, skip_dirs=frozenset()))
        else:
            try:
                names = sorted(os.listdir(directory))
            except OSError as e:
                raise ToolIOError(f"Failed to read {path}: {e.strerror or e}") from e
            entries = (
                directory / name for name in names
                if include_hidden or not name.startswith(".")
            )

        items: list[dict[str, Any]] = []
        for entry in entries:
            rel = entry.relative_to(directory).as_posix()
            if not globs.allows(rel):
                continue
            items.append(path_info(entry))
            if len(items) >= limit:
                break

        return {"path": str(directory), "count": len(items), "items": items}

    def stat(self, path: str) -> dict[str, Any]:
        return path_info(self.sandbox.resolve(path))

    def glob(
        self,
        pattern: str,
        root: str = ".",
        limit: int = DEFAULT_GLOB_LIMIT,
    ) -> dict[str, Any]:
        """Recursive file match of one glob pattern, relative to root."""
        positive("limit", limit)
        search_root = self.sandbox.resolve(root)
        if not search_root.is_dir():
            raise ToolIOError(f"Not a directory: {root}")

        paths: list[str] = []
        for entry, is_dir in walk(search_root):
            if is_dir or not entry.is_file():
                continue
            if matches_glob(entry.relative_to(search_root).as_posix(), pattern):
                paths.append(str(entry))
                if len(paths) >= limit:
                    break

        return {"root": str(search_root), "pattern": pattern, "count": len(paths), "paths": paths}

    def tools(self) -> list[Tool]:
        """Tool definitions for registration."""
        return [
            Tool(
                spec=ToolSpec(
                    name="list_dir",
                    description="List files in a directory with optional recursion and glob filters.",
                    parameters=(
                        ParamSpec("path", "string", "Directory path (default '.')"),
                        ParamSpec("recursive", "boolean", "Recurse into subdirectories (default false)"),
                        ParamSpec("include_globs", "array", "Include glob patterns", items="string"),
                        ParamSpec("exclude_globs", "array", "Exclude glob patterns", items="string"),
                        ParamSpec("limit", "integer", f"Limit number of entries (default {DEFAULT_LIST_LIMIT})"),
                        ParamSpec("include_hidden", "boolean", "Include dotfiles (default false)"),
                    ),
                ),
                handler=self.list_dir,
            ),
            Tool(
                spec=ToolSpec(
                    name="stat",
                    description="Get file metadata (type, size, mtime, ctime, mode).",
                    parameters=(
                        ParamSpec("path", "string", "Path to stat", required=True),
                    ),
                ),
                handler=self.stat,
            ),
            Tool(
                spec=ToolSpec(
                    name="glob",
                    description="Find files matching a glob pattern under a root (recursive).",
                    parameters=(
                        ParamSpec("pattern", "string", "Glob pattern (e.g., src/**/*.py)", required=True),
                        ParamSpec("root", "string", "Root directory to search (default '.')"),
                        ParamSpec("limit", "integer", f"Max results (default {DEFAULT_GLOB_LIMIT})"),
                    ),
                ),
                handler=self.glob,
            ),
        ]
