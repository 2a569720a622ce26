"""
Export pipeline: vault index -> note parsing -> link/embed resolution ->
postprocessors -> writer.

Embeds are expanded depth-first. Each embedded note gets a child Context
whose ``file_tree`` extends the parent's, so cycle and depth checks work on
an explicit stack and the parent's state is untouched whatever happens in
the child.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable
from urllib.parse import unquote, urlsplit

from marko import block, inline

from .config import ExportConfig
from .errors import (
    ExportError,
    FileExportError,
    FrontmatterDecodeError,
    PathDoesNotExist,
    ReadError,
    RecursionLimitExceeded,
    StartAtOutsideVault,
)
from .models import Context, ExportSummary, Note, Postprocessor, PostprocessorResult
from .vault.frontmatter import split_frontmatter
from .vault.index import IgnoreOptions, VaultIndex, is_note
from .vault.links import LinkResolver, is_image, resolve
from .vault.parser import (
    End,
    MarkdownEvents,
    NoteLink,
    ReferenceLabel,
    Start,
    UnresolvedReference,
    WikiReference,
    matching_end,
    parse_markdown,
    reduce_to_section,
)
from .writer import Writer

logger = logging.getLogger(__name__)

EMBED_MARKER = "→ "


def run_postprocessors(
    chain: Iterable[Postprocessor], context: Context, events: MarkdownEvents
) -> PostprocessorResult:
    """Call each postprocessor in order until one asks to stop."""
    for func in chain:
        result = func(context, events)
        if result is PostprocessorResult.STOP_HERE:
            return PostprocessorResult.STOP_HERE
        if result is PostprocessorResult.STOP_AND_SKIP_NOTE:
            return PostprocessorResult.STOP_AND_SKIP_NOTE
    return PostprocessorResult.CONTINUE


def read_note(path: Path, relative_path: Path) -> Note:
    """Read and parse a note file.

    Raises:
        ReadError: the file cannot be read or is not UTF-8
        FrontmatterDecodeError: the frontmatter block is malformed
    """
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ReadError(path, getattr(e, "strerror", None) or str(e)) from e

    try:
        metadata, body = split_frontmatter(text)
    except FrontmatterDecodeError as e:
        raise FrontmatterDecodeError(e.reason, path) from e

    document, events = parse_markdown(body)
    return Note(
        path=path,
        relative_path=relative_path,
        frontmatter=metadata,
        events=events,
        document=document,
    )


def _is_blank(events: MarkdownEvents) -> bool:
    for event in events:
        if isinstance(event, (Start, End)):
            if not isinstance(event.element, inline.InlineElement):
                return False
        elif isinstance(event, inline.LineBreak):
            continue
        elif not (isinstance(event, inline.RawText) and not event.children.strip()):
            return False
    return True


def drop_empty_paragraphs(events: MarkdownEvents) -> MarkdownEvents:
    """Remove paragraphs left holding nothing but whitespace after splicing."""
    out: MarkdownEvents = []
    idx = 0
    while idx < len(events):
        event = events[idx]
        if isinstance(event, Start) and isinstance(event.element, block.Paragraph):
            end = matching_end(events, idx)
            if _is_blank(events[idx + 1 : end]):
                idx = end + 1
                continue
        out.append(event)
        idx += 1
    return out


def _can_splice_blocks(open_elements: list) -> bool:
    """Block content may only replace a token sitting directly in a paragraph."""
    return bool(open_elements) and isinstance(open_elements[-1], block.Paragraph)


def _inside_link(open_elements: list) -> bool:
    return any(isinstance(element, (inline.Link, inline.Image)) for element in open_elements)


def _as_label(event):
    """Links cannot nest in markdown; inside a link label keep just the text."""
    if isinstance(event, NoteLink):
        return ReferenceLabel(event.label, event.marker)
    return event


def local_target(dest: str) -> tuple[str, str] | None:
    """``(path, fragment)`` of a relative markdown link destination.

    Returns None for URLs, absolute paths and pure ``#fragment`` links.
    """
    if not dest or dest.startswith(("#", "/")):
        return None
    parts = urlsplit(dest)
    if parts.scheme or parts.netloc or not parts.path:
        return None
    return unquote(parts.path), parts.fragment


class NotePipeline:
    """Resolves, postprocesses and writes notes for one export run."""

    def __init__(self, index: VaultIndex, links: LinkResolver, writer: Writer, config: ExportConfig):
        self.index = index
        self.links = links
        self.writer = writer
        self.config = config

    def load(self, path: Path, context: Context) -> Note:
        note = read_note(path, self.index.relative(path))
        context.frontmatter = dict(note.frontmatter or {})
        context.frontmatter_present = note.frontmatter is not None
        return note

    def export(self, source: Path, destination: Path, summary: ExportSummary) -> None:
        """Export one root note, recording the outcome in ``summary``."""
        context = Context.for_root(
            source,
            destination,
            self.index.root,
            self.config.frontmatter_strategy,
        )
        note = self.load(source, context)
        assets: set[Path] = set()
        events = self.expand(note.events, context, assets)

        result = run_postprocessors(self.config.postprocessors, context, events)
        if result is PostprocessorResult.STOP_AND_SKIP_NOTE:
            logger.debug("Skipped %s", source)
            summary.skipped.append(source)
            return

        written, copied = self.writer.commit(context, events, assets, note.document)
        logger.debug("Exported %s -> %s", source, written)
        summary.exported.append(written)
        summary.copied.extend(copied)

    def track_local_target(self, element, context: Context, assets: set[Path]) -> None:
        """Schedule vault files referenced by plain markdown links and images.

        Inside embedded notes the destination is rewritten relative to the
        root note, where the content ends up.
        """
        target = local_target(element.dest)
        if target is None:
            return
        rel, fragment = target
        path = Path(os.path.normpath(context.current_file.parent / rel))
        if path not in self.index or is_note(path):
            return

        assets.add(path)
        if context.is_embedded:
            dest = self.links.relative_href(path, context)
            element.dest = f"{dest}#{fragment}" if fragment else dest

    def expand(self, events: MarkdownEvents, context: Context, assets: set[Path]) -> MarkdownEvents:
        """Replace reference tokens with links, images and embedded content."""
        out: MarkdownEvents = []
        open_elements: list = []

        for event in events:
            if isinstance(event, Start):
                if isinstance(event.element, (inline.Link, inline.Image)):
                    self.track_local_target(event.element, context, assets)
                open_elements.append(event.element)
                out.append(event)
            elif isinstance(event, End):
                open_elements.pop()
                out.append(event)
            elif not isinstance(event, WikiReference):
                out.append(event)
            elif not event.embed:
                target = resolve(event.reference, context.current_file, self.index)
                link = self.links.link(target, context, assets)
                out.append(_as_label(link) if _inside_link(open_elements) else link)
            else:
                splice = _can_splice_blocks(open_elements)
                embedded, is_block = self.embed(event, context, assets, inline_only=not splice)
                if not is_block:
                    if _inside_link(open_elements):
                        embedded = [_as_label(e) for e in embedded]
                    out.extend(embedded)
                    continue
                paragraph = open_elements[-1]
                out.append(End(paragraph))
                out.extend(embedded)
                out.append(Start(paragraph))

        return drop_empty_paragraphs(out)

    def embed(
        self,
        token: WikiReference,
        context: Context,
        assets: set[Path],
        inline_only: bool = False,
    ) -> tuple[MarkdownEvents, bool]:
        """Events standing in for an embed token.

        Returns the events and whether they are block-level note content.
        With ``inline_only`` (token inside a heading, emphasis or link) a note
        embed becomes a marker link instead of block content.

        Raises:
            RecursionLimitExceeded: the target is already being expanded, or
                the embed stack is at the recursion limit
        """
        reference = token.reference
        target = resolve(reference, context.current_file, self.index)

        # An embed of a section of the current note is rendered as a link to it.
        if reference.file is None:
            return [self.links.link(target, context, assets)], False

        if not target.resolved:
            logger.warning(
                "Unable to find embedded note '%s' (in %s)",
                reference.file,
                context.current_file,
            )
            return [UnresolvedReference(reference.display())], False

        path = target.path
        if not is_note(path):
            if is_image(path):
                return [self.links.image(target, context, assets)], False
            return [self.links.link(target, context, assets)], False

        if inline_only or (
            not self.config.recursive_embeds and (context.is_embedded or path in context.file_tree)
        ):
            return [self.links.link(target, context, assets, marker=EMBED_MARKER)], False

        if path in context.file_tree or context.note_depth >= self.config.recursion_limit:
            raise RecursionLimitExceeded([*context.file_tree, path])

        child = context.child(path)
        note = self.load(path, child)
        events = note.events
        if reference.section:
            events = reduce_to_section(events, reference.section)

        child_assets: set[Path] = set()
        events = self.expand(events, child, child_assets)

        result = run_postprocessors(self.config.embed_postprocessors, child, events)
        if result is PostprocessorResult.STOP_AND_SKIP_NOTE:
            logger.debug("Embed of %s in %s skipped", path, context.current_file)
            return [], False

        assets.update(child_assets)
        return events, True


class Exporter:
    """Exports a vault (or part of it) to a directory of plain markdown.

    Example::

        exporter = Exporter(Path("vault"), Path("out"))
        exporter.add_postprocessor(softbreaks_to_hardbreaks)
        summary = exporter.run()
    """

    def __init__(self, root: Path, destination: Path, config: ExportConfig | None = None):
        self.root = Path(root)
        self.destination = Path(destination)
        self.config = (config or ExportConfig()).merged()

    def add_postprocessor(self, func: Postprocessor) -> Exporter:
        """Append a postprocessor for root notes."""
        self.config.postprocessors.append(func)
        return self

    def add_embed_postprocessor(self, func: Postprocessor) -> Exporter:
        """Append a postprocessor for embedded notes."""
        self.config.embed_postprocessors.append(func)
        return self

    def _start_at(self, root: Path) -> Path:
        if self.config.start_at is None:
            return root
        start_at = Path(self.config.start_at)
        if not start_at.exists():
            raise PathDoesNotExist(start_at)
        start_at = start_at.resolve()
        if start_at != root and root not in start_at.parents:
            raise StartAtOutsideVault(start_at, root)
        return start_at

    def _single_file_destination(self, source: Path) -> Path:
        if self.destination.is_dir():
            return self.destination / source.name
        parent = self.destination.parent
        if not parent.is_dir():
            raise PathDoesNotExist(parent)
        return self.destination

    def run(self) -> ExportSummary:
        """Export every note under the start path.

        Raises:
            PathDoesNotExist: missing vault, start path or destination
            StartAtOutsideVault: start path not inside the vault
            ReadError: an ignore file in the vault cannot be read
            FileExportError: only with ``fail_fast``; otherwise per-file
                errors are collected in the returned summary
        """
        if not self.root.exists():
            raise PathDoesNotExist(self.root)
        root = self.root.resolve()
        start_at = self._start_at(root)

        if start_at.is_file():
            destination = self._single_file_destination(start_at)
            export_root, destination_root = start_at.parent, destination.parent
            jobs = [(start_at, destination)]
        else:
            if not self.destination.is_dir():
                raise PathDoesNotExist(self.destination)
            export_root, destination_root = start_at, self.destination
            jobs = None

        index = VaultIndex.build(
            root,
            IgnoreOptions(
                include_hidden=self.config.include_hidden,
                use_gitignore=self.config.use_gitignore,
                ignore_filename=self.config.ignore_filename,
                patterns=tuple(self.config.ignore_patterns),
            ),
        )
        if jobs is None:
            jobs = [
                (path, destination_root / path.relative_to(start_at))
                for path in index.files
                if is_note(path) and start_at in path.parents
            ]

        pipeline = NotePipeline(
            index,
            LinkResolver(index, export_root, self.config.link_style),
            Writer(destination_root, export_root, self.config.preserve_mtime),
            self.config,
        )

        summary = ExportSummary()
        for source, destination in jobs:
            try:
                if is_note(source):
                    pipeline.export(source, destination, summary)
                else:
                    summary.copied.append(pipeline.writer.copy_file(source, destination))
            except ExportError as e:
                error = FileExportError(source, e)
                if self.config.fail_fast:
                    raise error from e
                logger.error("%s", error)
                summary.errors.append(error)

        return summary
