"""Resolution of reference targets to vault files and output link rendering."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote

from ..models import Context, LinkStyle
from .index import VaultIndex, is_note
from .parser import NoteImage, NoteLink, NoteReference, UnresolvedReference, slugify

logger = logging.getLogger(__name__)

IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg", ".bmp"}

# Printable ASCII minus space ( ) % ? stays literal; controls and non-ASCII are encoded.
SAFE_URL_CHARS = "".join(
    chr(c) for c in range(0x21, 0x7F) if chr(c) not in "()%?"
)


def percent_encode(path: str) -> str:
    return quote(path, safe=SAFE_URL_CHARS)


def is_image(path: Path) -> bool:
    return path.suffix.lower() in IMAGE_SUFFIXES


@dataclass
class ResolvedTarget:
    """A reference after lookup. ``path`` is None when nothing matched."""

    reference: NoteReference
    path: Path | None

    @property
    def resolved(self) -> bool:
        return self.path is not None

    @property
    def is_note(self) -> bool:
        return self.path is not None and is_note(self.path)


def resolve(target: str | NoteReference, referencing: Path, index: VaultIndex) -> ResolvedTarget:
    """Find the file a reference like ``Name#Heading|Alias`` points at.

    A reference without a file part points at the referencing note itself.
    """
    reference = target if isinstance(target, NoteReference) else NoteReference.parse(target)
    if reference.file is None:
        return ResolvedTarget(reference, referencing)
    return ResolvedTarget(reference, index.closest(reference.file, referencing))


@dataclass
class LinkResolver:
    """Turns resolved targets into output link elements for one export run.

    ``export_root`` is the source directory whose layout the destination tree
    mirrors; Zola-style links are expressed relative to it.
    """

    index: VaultIndex
    export_root: Path
    style: LinkStyle = LinkStyle.DEFAULT

    def relative_href(self, target: Path, context: Context) -> str:
        """Percent-encoded path to ``target`` from the root note's directory."""
        rel = os.path.relpath(target, context.root_file.parent)
        return percent_encode(Path(rel).as_posix())

    def href(self, target: Path, context: Context, section: str | None = None) -> str:
        """Output reference to ``target`` as seen from the note being exported.

        Relative links are computed from the root note's directory: embedded
        content is inlined into the root note, so that is where it will live.
        """
        if self.style is LinkStyle.ZOLA:
            try:
                rel = target.relative_to(self.export_root).as_posix()
            except ValueError:
                rel = self.index.relative(target).as_posix()
            link = "@/" + percent_encode(rel)
        else:
            link = self.relative_href(target, context)

        if section:
            link += "#" + slugify(section)
        return link

    def link(self, target: ResolvedTarget, context: Context, assets: set[Path], marker: str = ""):
        """Link element for a ``[[reference]]``, or inert text when unresolved.

        Non-note targets are added to ``assets`` for copying.
        """
        if not target.resolved:
            logger.warning(
                "Unable to find referenced note '%s' (in %s)",
                target.reference.file,
                context.current_file,
            )
            return UnresolvedReference(target.reference.display())

        _track_asset(assets, target.path)
        return NoteLink(
            self.href(target.path, context, target.reference.section),
            target.reference.display(),
            marker=marker,
        )

    def image(self, target: ResolvedTarget, context: Context, assets: set[Path]) -> NoteImage:
        _track_asset(assets, target.path)
        return NoteImage(self.href(target.path, context), target.reference.display())


def _track_asset(assets: set[Path], path: Path) -> None:
    if not is_note(path):
        assets.add(path)
