"""
Filesystem tools: read_file, write_file, patch_file and grep.

All paths go through the workspace PathSandbox. Writes are atomic by
default: content goes to a uniquely named temporary sibling which is then
renamed over the target, so another reader sees either the old or the new
file, never a partial one.
"""

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any

from tai.errors import ParseError, ToolIOError, ValidationError
from tai.sandbox import PathSandbox
from tai.tools.base import ParamSpec, Tool, ToolSpec, non_negative, positive
from tai.tools.walk import GitIgnoreFilter, GlobFilter, is_binary, split_lines, walk
from tai.types import FileReplacement

logger = logging.getLogger(__name__)

DEFAULT_GREP_RESULTS = 100


def _current_umask() -> int:
    # os.umask can only be read by setting it
    mask = os.umask(0)
    os.umask(mask)
    return mask


def atomic_write(path: Path, data: bytes) -> None:
    """
    Replace `path` with `data` via a temporary sibling and a rename.

    On failure the temporary file is removed and the target is untouched.
    """
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        # mkstemp creates 0600; keep the target's mode or the usual default
        if path.exists():
            os.chmod(tmp_path, path.stat().st_mode & 0o7777)
        else:
            os.chmod(tmp_path, 0o666 & ~_current_umask())
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def _read_text(path: Path, display: str) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except IsADirectoryError as e:
        raise ToolIOError(f"Is a directory: {display}") from e
    except UnicodeDecodeError as e:
        raise ToolIOError(f"File is not valid UTF-8 text: {display}") from e
    except OSError as e:
        raise ToolIOError(f"Failed reading {display}: {e.strerror or e}") from e


def _write_text(path: Path, content: str, atomic: bool, display: str) -> None:
    data = content.encode("utf-8")
    try:
        if atomic:
            atomic_write(path, data)
        else:
            path.write_bytes(data)
    except OSError as e:
        raise ToolIOError(f"Failed to write {display}: {e.strerror or e}") from e


def parse_replacements(raw: list[Any]) -> list[FileReplacement]:
    """Turn the wire form of a patch request into FileReplacement objects."""
    replacements: list[FileReplacement] = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ParseError(f"replacements[{index}] must be an object")
        old_string = item.get("old_string")
        new_string = item.get("new_string")
        replace_all = item.get("replace_all", False)
        if not isinstance(old_string, str):
            raise ParseError(f"replacements[{index}] missing 'old_string'")
        if not isinstance(new_string, str):
            raise ParseError(f"replacements[{index}] missing 'new_string'")
        if replace_all is None:
            replace_all = False
        if not isinstance(replace_all, bool):
            raise ParseError(f"replacements[{index}].replace_all must be a boolean")
        if not old_string:
            raise ParseError(f"replacements[{index}]: old_string cannot be empty")
        replacements.append(FileReplacement(old_string, new_string, replace_all))
    return replacements


def apply_replacements(content: str, replacements: list[FileReplacement]) -> tuple[str, list[int]]:
    """
    Apply replacements in order to one in-memory buffer.

    Returns the candidate buffer and the per-replacement match counts
    (0 when not found, 1 for a single replace, N for replace_all).
    """
    updated = content
    counts: list[int] = []
    for rep in replacements:
        if rep.replace_all:
            counts.append(updated.count(rep.old_string))
            updated = updated.replace(rep.old_string, rep.new_string)
        elif rep.old_string in updated:
            counts.append(1)
            updated = updated.replace(rep.old_string, rep.new_string, 1)
        else:
            counts.append(0)
    return updated, counts


class FileTools:
    """Read, write, patch and search files inside the workspace."""

    def __init__(self, sandbox: PathSandbox) -> None:
        self.sandbox = sandbox

    def read_file(
        self,
        path: str,
        offset: int = 0,
        limit: int | None = None,
    ) -> dict[str, Any]:
        """Read a line range of a text file. An offset past the end yields an empty slice."""
        non_negative("offset", offset)
        if limit is not None:
            non_negative("limit", limit)

        resolved = self.sandbox.resolve(path)
        lines = split_lines(_read_text(resolved, path))
        total_lines = len(lines)
        start = min(offset, total_lines)
        end = total_lines if limit is None else min(start + limit, total_lines)

        return {
            "path": str(resolved),
            "start": start,
            "end": end,
            "total_lines": total_lines,
            "content": "\n".join(lines[start:end]),
        }

    def write_file(
        self,
        path: str,
        content: str,
        atomic: bool = True,
        create_parents: bool = True,
    ) -> dict[str, Any]:
        """Write full file content, atomically unless told otherwise."""
        resolved = self.sandbox.resolve(path, allow_nonexistent=True)
        if resolved.is_dir():
            raise ToolIOError(f"Is a directory: {path}")

        if create_parents:
            try:
                resolved.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise ToolIOError(f"Failed to create {resolved.parent}: {e.strerror or e}") from e
        elif not resolved.parent.is_dir():
            raise ToolIOError(f"Parent directory does not exist: {resolved.parent}")

        _write_text(resolved, content, atomic, path)
        logger.info(f"Wrote {resolved} ({'atomic' if atomic else 'in place'})")
        return {"path": str(resolved), "bytes": len(content.encode("utf-8"))}

    def patch_file(
        self,
        path: str,
        replacements: list[Any],
        atomic: bool = True,
    ) -> dict[str, Any]:
        """
        Apply several string replacements as one transaction.

        Every replacement is computed against the same evolving in-memory
        buffer; the file is written once, and only if the buffer differs
        from what was read.
        """
        reps = parse_replacements(replacements)
        resolved = self.sandbox.resolve(path)
        original = _read_text(resolved, path)

        updated, counts = apply_replacements(original, reps)
        result: dict[str, Any] = {
            "path": str(resolved),
            "changed": updated != original,
            "replacements": counts,
            "total_replacements": sum(counts),
        }
        if updated == original:
            return result

        _write_text(resolved, updated, atomic, path)
        logger.info(f"Patched {resolved}: {sum(counts)} replacement(s)")
        return result

    def grep(
        self,
        pattern: str,
        root: str = ".",
        include_globs: list[str] | None = None,
        exclude_globs: list[str] | None = None,
        literal: bool = False,
        case_sensitive: bool = True,
        max_results: int = DEFAULT_GREP_RESULTS,
    ) -> dict[str, Any]:
        """
        Search file contents line by line.

        Git-ignored paths, binary files and files that are not UTF-8 are
        skipped. Results stop at max_results.
        """
        positive("max_results", max_results)
        search_root = self.sandbox.resolve(root)

        flags = 0 if case_sensitive else re.IGNORECASE
        try:
            regex = re.compile(re.escape(pattern) if literal else pattern, flags)
        except re.error as e:
            raise ValidationError(f"Invalid regex pattern: {e}") from e

        globs = GlobFilter(include_globs, exclude_globs)
        if search_root.is_file():
            ignore = GitIgnoreFilter(search_root.parent)
            candidates = [] if ignore.ignored([search_root]) else [search_root]
            base = search_root.parent
        else:
            ignore = GitIgnoreFilter(search_root)
            candidates = (p for p, is_dir in walk(search_root, ignore=ignore) if not is_dir)
            base = search_root

        results: list[dict[str, Any]] = []
        for file_path in candidates:
            if len(results) >= max_results:
                break
            rel = Path(os.path.relpath(file_path, base)).as_posix()
            if not globs.allows(rel) or not file_path.is_file():
                continue
            # A symlink may point outside the workspace
            if not self.sandbox.contains(file_path.resolve()):
                continue
            try:
                data = file_path.read_bytes()
            except OSError:
                continue
            if is_binary(data):
                continue
            try:
                text = data.decode("utf-8")
            except UnicodeDecodeError:
                continue

            for lineno, line in enumerate(split_lines(text), start=1):
                if regex.search(line):
                    results.append({
                        "file": rel,
                        "abs_path": str(file_path),
                        "line": lineno,
                        "match": line,
                    })
                    if len(results) >= max_results:
                        break

        return {
            "root": str(search_root),
            "pattern": pattern,
            "count": len(results),
            "results": results,
        }

    def tools(self) -> list[Tool]:
        """Tool definitions for registration."""
        return [
            Tool(
                spec=ToolSpec(
                    name="read_file",
                    description="Read a text file with optional line offset and limit. Returns content and metadata.",
                    parameters=(
                        ParamSpec("path", "string", "File path to read (relative to workspace)", required=True),
                        ParamSpec("offset", "integer", "Optional starting line (0-based)"),
                        ParamSpec("limit", "integer", "Optional number of lines to return"),
                    ),
                ),
                handler=self.read_file,
            ),
            Tool(
                spec=ToolSpec(
                    name="write_file",
                    description="Write content to a file atomically. Creates parent directories if needed.",
                    parameters=(
                        ParamSpec("path", "string", "File path to write (relative to workspace)", required=True),
                        ParamSpec("content", "string", "Full file content to write", required=True),
                        ParamSpec("atomic", "boolean", "Write atomically (default true)"),
                        ParamSpec("create_parents", "boolean", "Create parent directories if needed (default true)"),
                    ),
                ),
                handler=self.write_file,
            ),
            Tool(
                spec=ToolSpec(
                    name="patch_file",
                    description=(
                        "Apply multiple string replacements to a file (transactional). "
                        "Each replacement may be replace_all or single occurrence."
                    ),
                    parameters=(
                        ParamSpec("path", "string", "File path to patch", required=True),
                        ParamSpec(
                            "replacements",
                            "array",
                            "Array of {old_string,new_string,replace_all?}",
                            required=True,
                            items="object",
                        ),
                        ParamSpec("atomic", "boolean", "Apply atomically (default true)"),
                    ),
                ),
                handler=self.patch_file,
            ),
            Tool(
                spec=ToolSpec(
                    name="grep",
                    description="Search files for a pattern. Respects .gitignore. Returns file, line, and match snippet.",
                    parameters=(
                        ParamSpec("pattern", "string", "Regex or literal text to search for", required=True),
                        ParamSpec("root", "string", "Root directory to search (default '.')"),
                        ParamSpec("include_globs", "array", "Include glob patterns", items="string"),
                        ParamSpec("exclude_globs", "array", "Exclude glob patterns", items="string"),
                        ParamSpec("literal", "boolean", "Treat pattern as literal (default false)"),
                        ParamSpec("case_sensitive", "boolean", "Case sensitive (default true)"),
                        ParamSpec("max_results", "integer", f"Maximum results to return (default {DEFAULT_GREP_RESULTS})"),
                    ),
                ),
                handler=self.grep,
            ),
        ]
