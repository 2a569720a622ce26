"""Serialization of exported notes and copying of their assets."""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

from marko import block

from .errors import ReadError, WriteError
from .models import Context, FrontmatterStrategy
from .vault.frontmatter import dump_frontmatter
from .vault.parser import MarkdownEvents, render_events

logger = logging.getLogger(__name__)


def frontmatter_text(context: Context) -> str:
    """The frontmatter block to emit for a note, or an empty string."""
    strategy = context.frontmatter_strategy
    if strategy is FrontmatterStrategy.NEVER:
        return ""
    if strategy is FrontmatterStrategy.AUTO and not (context.frontmatter_present or context.frontmatter):
        return ""
    return dump_frontmatter(context.frontmatter) + "\n"


def render_note(context: Context, events: MarkdownEvents, template: block.Document | None = None) -> str:
    return frontmatter_text(context) + render_events(events, template)


def copy_mtime(source: Path, destination: Path) -> None:
    try:
        stat = source.stat()
    except OSError as e:
        raise ReadError(source, e.strerror or str(e)) from e
    try:
        os.utime(destination, ns=(stat.st_atime_ns, stat.st_mtime_ns))
    except OSError as e:
        raise WriteError(destination, e.strerror or str(e)) from e


class Writer:
    """Commits notes and assets below ``destination_root``.

    Directories mirroring the vault layout are created below the destination
    root as needed, but never above it: the root itself must already exist.
    """

    def __init__(self, destination_root: Path, export_root: Path, preserve_mtime: bool = False):
        self.destination_root = destination_root
        self.export_root = export_root
        self.preserve_mtime = preserve_mtime
        self._copied: set[Path] = set()

    def commit(
        self,
        context: Context,
        events: MarkdownEvents,
        assets: set[Path] | None = None,
        template: block.Document | None = None,
    ) -> tuple[Path, list[Path]]:
        """Write one note and its assets.

        Returns:
            (note destination, destinations of assets copied by this call)
        """
        text = render_note(context, events, template)
        destination = context.destination

        self._ensure_parent(destination)
        try:
            with destination.open("w", encoding="utf-8", newline="") as f:
                f.write(text)
        except OSError as e:
            raise WriteError(destination, e.strerror or str(e)) from e

        if self.preserve_mtime:
            copy_mtime(context.root_file, destination)

        copied = [self.copy_asset(asset) for asset in sorted(assets or ())]
        return destination, [c for c in copied if c is not None]

    def copy_asset(self, source: Path) -> Path | None:
        """Copy a referenced asset to its mirrored location, once per run."""
        try:
            rel = source.relative_to(self.export_root)
        except ValueError:
            logger.warning("Not copying %s: outside of the exported directory", source)
            return None

        destination = self.destination_root / rel
        if destination in self._copied:
            return None
        return self.copy_file(source, destination)

    def copy_file(self, source: Path, destination: Path) -> Path:
        """Copy a file verbatim to ``destination``."""
        self._ensure_parent(destination)
        try:
            src = source.open("rb")
        except OSError as e:
            raise ReadError(source, e.strerror or str(e)) from e
        with src:
            try:
                with destination.open("wb") as out:
                    shutil.copyfileobj(src, out)
            except OSError as e:
                raise WriteError(destination, e.strerror or str(e)) from e

        if self.preserve_mtime:
            copy_mtime(source, destination)

        self._copied.add(destination)
        logger.debug("Copied asset %s -> %s", source, destination)
        return destination

    def _ensure_parent(self, destination: Path) -> None:
        parent = destination.parent
        if parent.is_dir():
            return
        try:
            parent.relative_to(self.destination_root)
        except ValueError:
            raise WriteError(destination, f"parent directory {parent} does not exist") from None
        if not self.destination_root.is_dir():
            raise WriteError(destination, f"destination {self.destination_root} does not exist")
        try:
            parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise WriteError(destination, e.strerror or str(e)) from e
