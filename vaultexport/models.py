"""Data models shared by the exporter, postprocessors and writer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    from .errors import FileExportError
    from .vault.parser import MarkdownEvents


class FrontmatterStrategy(str, Enum):
    """When to emit a frontmatter block in exported notes."""

    ALWAYS = "always"  # emit an empty block if the note has none
    NEVER = "never"  # strip any block
    AUTO = "auto"  # keep the block exactly when the source had one


class LinkStyle(str, Enum):
    """Output format for resolved internal links."""

    DEFAULT = "default"  # relative, percent-encoded filesystem path
    ZOLA = "zola"  # @/path/from/export/root.md


class PostprocessorResult(str, Enum):
    """Outcome of a single postprocessor call."""

    CONTINUE = "continue"
    STOP_HERE = "stop_here"
    STOP_AND_SKIP_NOTE = "stop_and_skip_note"


@dataclass
class Note:
    """A parsed source note. Built fresh for every resolution."""

    path: Path
    relative_path: Path
    frontmatter: dict[str, Any] | None  # None when the file has no block
    events: MarkdownEvents = field(default_factory=list)
    document: Any = None  # parsed marko document, carries link reference definitions


@dataclass
class Context:
    """Mutable state threaded through the postprocessors of one note.

    ``file_tree`` is the embed stack: the root note first and the note
    currently being processed last. Embedded notes get their own Context
    through :meth:`child`, so frontmatter and destination never leak across
    the embed boundary.
    """

    file_tree: list[Path]
    destination: Path
    vault_root: Path
    frontmatter_strategy: FrontmatterStrategy = FrontmatterStrategy.AUTO
    frontmatter: dict[str, Any] = field(default_factory=dict)
    frontmatter_present: bool = False

    @classmethod
    def for_root(
        cls,
        path: Path,
        destination: Path,
        vault_root: Path,
        frontmatter_strategy: FrontmatterStrategy = FrontmatterStrategy.AUTO,
    ) -> Context:
        return cls(
            file_tree=[path],
            destination=destination,
            vault_root=vault_root,
            frontmatter_strategy=frontmatter_strategy,
        )

    def child(self, path: Path) -> Context:
        """Context for a note embedded into this one."""
        return Context(
            file_tree=[*self.file_tree, path],
            destination=self.destination,
            vault_root=self.vault_root,
            frontmatter_strategy=self.frontmatter_strategy,
        )

    @property
    def current_file(self) -> Path:
        return self.file_tree[-1]

    @property
    def root_file(self) -> Path:
        return self.file_tree[0]

    @property
    def note_depth(self) -> int:
        return len(self.file_tree)

    @property
    def is_embedded(self) -> bool:
        return len(self.file_tree) > 1


Postprocessor = Callable[[Context, "MarkdownEvents"], PostprocessorResult]


@dataclass
class ExportSummary:
    """Outcome of an export run."""

    exported: list[Path] = field(default_factory=list)  # written notes (destinations)
    copied: list[Path] = field(default_factory=list)  # copied assets (destinations)
    skipped: list[Path] = field(default_factory=list)  # notes vetoed by postprocessors
    errors: list[FileExportError] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors
