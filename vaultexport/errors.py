"""
Exceptions raised by the exporter.

Structural errors (bad source, destination or start-at path) abort the run
before any file is touched. Everything else is scoped to a single file and
reaches the caller wrapped in a FileExportError.
"""

from __future__ import annotations

from pathlib import Path


class ExportError(Exception):
    """Base exception for all export errors."""

    pass


class PathDoesNotExist(ExportError):
    """Raised when the vault, start-at path or destination cannot be found."""

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"Path does not exist: {path}")


class StartAtOutsideVault(ExportError):
    """Raised when the start-at path is not inside the vault root."""

    def __init__(self, start_at: Path, root: Path):
        self.start_at = start_at
        self.root = root
        super().__init__(f"Start path {start_at} is not inside vault {root}")


class ReadError(ExportError):
    """Raised when a source file cannot be read."""

    def __init__(self, path: Path, reason: str = ""):
        self.path = path
        message = f"Failed to read {path}"
        super().__init__(f"{message}: {reason}" if reason else message)


class WriteError(ExportError):
    """Raised when a destination file cannot be written."""

    def __init__(self, path: Path, reason: str = ""):
        self.path = path
        message = f"Failed to write {path}"
        super().__init__(f"{message}: {reason}" if reason else message)


class FrontmatterDecodeError(ExportError):
    """Raised when a note's frontmatter block is unterminated or not a mapping."""

    def __init__(self, reason: str, path: Path | None = None):
        self.path = path
        self.reason = reason
        where = f" in {path}" if path else ""
        super().__init__(f"Failed to decode frontmatter{where}: {reason}")


class RecursionLimitExceeded(ExportError):
    """Raised when embeds form a cycle or nest deeper than the recursion limit."""

    def __init__(self, file_tree: list[Path]):
        self.file_tree = list(file_tree)
        chain = " -> ".join(str(p) for p in self.file_tree)
        super().__init__(f"Embed recursion limit exceeded: {chain}")


class FileExportError(ExportError):
    """Wraps a per-file error together with the file that triggered it."""

    def __init__(self, path: Path, source: ExportError):
        self.path = path
        self.source = source
        super().__init__(f"Failed to export {path}: {source}")
