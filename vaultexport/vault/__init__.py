"""Vault indexing, parsing and link resolution."""

from .frontmatter import dump_frontmatter, split_frontmatter
from .index import IgnoreOptions, VaultIndex
from .links import LinkResolver, resolve
from .parser import NoteReference, parse_markdown, reduce_to_section, render_events

__all__ = [
    "dump_frontmatter",
    "split_frontmatter",
    "IgnoreOptions",
    "VaultIndex",
    "LinkResolver",
    "resolve",
    "NoteReference",
    "parse_markdown",
    "reduce_to_section",
    "render_events",
]
