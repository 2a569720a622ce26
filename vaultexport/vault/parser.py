"""Markdown event streams and the ``[[...]]`` reference syntax.

Note bodies are tokenized with marko and flattened into a list of events:
container elements (paragraphs, headings, lists, emphasis, links, ...) are
bracketed by ``Start``/``End`` markers, everything else is emitted as the marko
element itself. Postprocessors edit that list; :func:`render_events` rebuilds
a marko tree from it and serializes it back to markdown.
"""

from __future__ import annotations

import copy
import re
import unicodedata
from dataclasses import dataclass
from typing import Any

from marko import Markdown, block, inline
from marko.helpers import MarkoExtension
from marko.md_renderer import MarkdownRenderer

# Match [[target]], [[target|display]], [[target#section]], ![[embed]]
REFERENCE_PATTERN = r"(!?)\[\[([^\[\]\n]+?)\]\]"
NOTE_REFERENCE_PATTERN = re.compile(r"^(?P<file>[^#|]+)?(?:#(?P<section>[^|]+))?(?:\|(?P<label>.+))?$")


@dataclass
class Start:
    """Opens a container element; its children follow until the matching End."""

    element: Any


@dataclass
class End:
    """Closes the container opened by the Start holding the same element."""

    element: Any


MarkdownEvents = list


@dataclass(frozen=True)
class NoteReference:
    """The parts of a ``Name#Heading|Alias`` reference target."""

    file: str | None = None
    section: str | None = None
    label: str | None = None

    @classmethod
    def parse(cls, target: str) -> NoteReference:
        match = NOTE_REFERENCE_PATTERN.match(target.strip())
        if not match:
            return cls(file=target.strip() or None)

        def clean(value: str | None) -> str | None:
            value = value.strip() if value else None
            return value or None

        return cls(
            file=clean(match.group("file")),
            section=clean(match.group("section")),
            label=clean(match.group("label")),
        )

    def display(self) -> str:
        """Text shown for the reference: alias, else ``file > section``."""
        if self.label:
            return self.label
        if self.file and self.section:
            return f"{self.file} > {self.section}"
        return self.file or self.section or ""


# ----------------------------------------------------------------------------
# marko elements
# ----------------------------------------------------------------------------


class WikiReference(inline.InlineElement):
    """An unresolved ``[[link]]`` or ``![[embed]]`` token."""

    pattern = re.compile(REFERENCE_PATTERN)
    priority = 6
    parse_children = False
    parse_group = 2

    def __init__(self, match):
        self.embed = bool(match.group(1))
        self.target = match.group(2)
        self.children = self.target

    @property
    def reference(self) -> NoteReference:
        return NoteReference.parse(self.target)


class NoteLink(inline.InlineElement):
    """A resolved link: ``[label](dest)``, optionally preceded by a marker."""

    virtual = True

    def __init__(self, dest: str, label: str, marker: str = ""):
        self.dest = dest
        self.label = label
        self.marker = marker
        self.children = label


class NoteImage(inline.InlineElement):
    """A resolved image embed: ``![label](dest)``."""

    virtual = True

    def __init__(self, dest: str, label: str):
        self.dest = dest
        self.label = label
        self.children = label


class UnresolvedReference(inline.InlineElement):
    """A reference whose target is not in the vault, kept as emphasized text."""

    virtual = True

    def __init__(self, label: str):
        self.label = label
        self.children = label


class ReferenceLabel(inline.InlineElement):
    """Plain display text for a reference, used where a link cannot nest."""

    virtual = True

    def __init__(self, label: str, marker: str = ""):
        self.label = label
        self.marker = marker
        self.children = label


def _escape_label(label: str) -> str:
    return label.replace("\\", "\\\\").replace("[", "\\[").replace("]", "\\]")


def _escape_emphasis(text: str) -> str:
    return text.replace("\\", "\\\\").replace("*", "\\*")


class VaultMarkdownRenderer(MarkdownRenderer):
    """Markdown renderer that also knows the reference elements above."""

    def render_wiki_reference(self, element: WikiReference) -> str:
        return f"{'!' if element.embed else ''}[[{element.target}]]"

    def render_note_link(self, element: NoteLink) -> str:
        return f"{element.marker}[{_escape_label(element.label)}]({element.dest})"

    def render_note_image(self, element: NoteImage) -> str:
        return f"![{_escape_label(element.label)}]({element.dest})"

    def render_unresolved_reference(self, element: UnresolvedReference) -> str:
        return f"*{_escape_emphasis(element.label)}*"

    def render_reference_label(self, element: ReferenceLabel) -> str:
        return element.marker + _escape_label(element.label)


REFERENCES = MarkoExtension(elements=[WikiReference])


def _markdown() -> Markdown:
    return Markdown(renderer=VaultMarkdownRenderer, extensions=[REFERENCES])


# ----------------------------------------------------------------------------
# Event streams
# ----------------------------------------------------------------------------


def is_container(element: Any) -> bool:
    return isinstance(getattr(element, "children", None), list)


def to_events(document: block.Document) -> MarkdownEvents:
    """Flatten a marko document (without its root) into events."""
    events: MarkdownEvents = []

    def visit(element: Any) -> None:
        if is_container(element):
            events.append(Start(element))
            for child in element.children:
                visit(child)
            events.append(End(element))
        else:
            events.append(element)

    for child in document.children:
        visit(child)
    return events


def parse_markdown(text: str) -> tuple[block.Document, MarkdownEvents]:
    """Tokenize a note body. Returns the document (for link definitions) and its events."""
    document = _markdown().parse(text)
    return document, to_events(document)


def build_document(events: MarkdownEvents, template: block.Document | None = None) -> block.Document:
    """Rebuild a marko tree from events.

    ``template`` supplies document-level state such as link reference
    definitions; its children are not used.

    Raises:
        ValueError: if Start/End events are unbalanced
    """
    if template is None:
        template = _markdown().parse("")
    root = copy.copy(template)
    root.children = []
    stack = [root]

    for event in events:
        if isinstance(event, Start):
            node = copy.copy(event.element)
            node.children = []
            stack[-1].children.append(node)
            stack.append(node)
        elif isinstance(event, End):
            if len(stack) == 1:
                raise ValueError("End event without a matching Start")
            stack.pop()
        else:
            stack[-1].children.append(event)

    if len(stack) != 1:
        raise ValueError("Start event without a matching End")
    return root


def render_events(events: MarkdownEvents, template: block.Document | None = None) -> str:
    """Serialize events back to markdown text."""
    return _markdown().render(build_document(events, template))


# ----------------------------------------------------------------------------
# Helpers over event streams
# ----------------------------------------------------------------------------


def is_heading(element: Any) -> bool:
    return isinstance(element, (block.Heading, block.SetextHeading))


def plain_text(events: MarkdownEvents) -> str:
    """Concatenated text content of a run of events."""
    parts = []
    for event in events:
        if isinstance(event, (Start, End)):
            continue
        if isinstance(event, WikiReference):
            parts.append(event.reference.display())
        elif isinstance(event, (NoteLink, NoteImage, UnresolvedReference, ReferenceLabel)):
            parts.append(event.label)
        elif isinstance(getattr(event, "children", None), str):
            parts.append(event.children)
    return "".join(parts)


def matching_end(events: MarkdownEvents, start: int) -> int:
    """Index of the End closing the Start at ``start``."""
    opener = events[start]
    depth = 0
    for idx in range(start, len(events)):
        event = events[idx]
        if isinstance(event, Start):
            depth += 1
        elif isinstance(event, End):
            depth -= 1
            if depth == 0:
                if event.element is not opener.element:
                    raise ValueError("Mismatched Start/End events")
                return idx
    raise ValueError("Start event without a matching End")


def _normalize_heading(text: str) -> str:
    return " ".join(unicodedata.normalize("NFC", text).split()).lower()


def reduce_to_section(events: MarkdownEvents, section: str) -> MarkdownEvents:
    """Keep a top-level heading named ``section`` and its content.

    The section runs until the next top-level heading of the same or a higher
    level. Returns no events when the heading does not exist.
    """
    wanted = _normalize_heading(section)
    begin: int | None = None
    level = 0
    depth = 0

    for idx, event in enumerate(events):
        if isinstance(event, Start):
            if depth == 0 and is_heading(event.element):
                if begin is not None and event.element.level <= level:
                    return events[begin:idx]
                if begin is None:
                    text = plain_text(events[idx + 1 : matching_end(events, idx)])
                    if _normalize_heading(text) == wanted:
                        begin = idx
                        level = event.element.level
            depth += 1
        elif isinstance(event, End):
            depth -= 1

    return events[begin:] if begin is not None else []


def slugify(text: str) -> str:
    """Heading anchor slug: lower-case ASCII words joined by dashes."""
    text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    text = re.sub(r"[^a-z0-9]+", "-", text.lower())
    return text.strip("-")
