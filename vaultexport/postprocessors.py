"""Built-in postprocessors.

A postprocessor is any callable taking ``(context, events)`` and returning a
:class:`PostprocessorResult`. It may edit the events in place, change
``context.frontmatter`` or redirect ``context.destination``.
"""

from __future__ import annotations

import copy
from typing import Any, Iterable

from marko import inline

from .models import Context, Postprocessor, PostprocessorResult
from .vault.parser import MarkdownEvents


def softbreaks_to_hardbreaks(context: Context, events: MarkdownEvents) -> PostprocessorResult:
    """Turn every soft line break into a hard one (Obsidian's "strict line breaks" off)."""
    for idx, event in enumerate(events):
        if isinstance(event, inline.LineBreak) and event.soft:
            hard = copy.copy(event)
            hard.soft = False
            events[idx] = hard
    return PostprocessorResult.CONTINUE


def only_published_filter(context: Context, events: MarkdownEvents) -> PostprocessorResult:
    """Skip every note whose frontmatter lacks ``publish: true``."""
    if context.frontmatter.get("publish") is True:
        return PostprocessorResult.CONTINUE
    return PostprocessorResult.STOP_AND_SKIP_NOTE


def tag_filter_result(tags: list[Any], skip_tags: Iterable[str], only_tags: Iterable[str]) -> PostprocessorResult:
    """Decide a note's fate from its tags. Skipping wins over inclusion."""
    only_tags = list(only_tags)
    skip = any(tag in tags for tag in skip_tags)
    include = not only_tags or any(tag in tags for tag in only_tags)
    if skip or not include:
        return PostprocessorResult.STOP_AND_SKIP_NOTE
    return PostprocessorResult.CONTINUE


def filter_by_tags(skip_tags: Iterable[str] = (), only_tags: Iterable[str] = ()) -> Postprocessor:
    """Build a postprocessor that filters notes on their ``tags`` frontmatter.

    Notes tagged with any of ``skip_tags`` are skipped. When ``only_tags`` is
    non-empty, notes carrying none of them (including untagged notes) are
    skipped too. A ``tags`` value that is not a list leaves the note alone.
    """
    skip_tags = list(skip_tags)
    only_tags = list(only_tags)

    def _filter(context: Context, events: MarkdownEvents) -> PostprocessorResult:
        tags = context.frontmatter.get("tags")
        if tags is None:
            return tag_filter_result([], skip_tags, only_tags)
        if isinstance(tags, list):
            return tag_filter_result(tags, skip_tags, only_tags)
        return PostprocessorResult.CONTINUE

    return _filter


def remove_frontmatter_keys(*keys: str) -> Postprocessor:
    """Build a postprocessor that drops the given frontmatter keys."""

    def _remove(context: Context, events: MarkdownEvents) -> PostprocessorResult:
        for key in keys:
            context.frontmatter.pop(key, None)
        return PostprocessorResult.CONTINUE

    return _remove
