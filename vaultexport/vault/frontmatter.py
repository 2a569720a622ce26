"""Splitting and rendering of leading YAML frontmatter blocks."""

from __future__ import annotations

from typing import Any

import frontmatter
import yaml

from ..errors import FrontmatterDecodeError

_HANDLER = frontmatter.YAMLHandler()


def has_frontmatter(text: str) -> bool:
    """True when the text opens with a ``---`` delimiter line."""
    return bool(_HANDLER.detect(text))


def split_frontmatter(text: str) -> tuple[dict[str, Any] | None, str]:
    """Separate the metadata block from the body.

    Returns ``(None, text)`` unchanged when there is no block. The body is
    whatever follows the closing delimiter, minus leading blank lines.

    Raises:
        FrontmatterDecodeError: unterminated block, invalid YAML, or YAML that
            is not a mapping
    """
    if text.startswith("\ufeff"):
        text = text[1:]
    if not has_frontmatter(text):
        return None, text

    try:
        raw, body = _HANDLER.split(text)
    except ValueError as e:
        raise FrontmatterDecodeError("unterminated frontmatter block") from e

    try:
        metadata = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise FrontmatterDecodeError(str(e)) from e

    if metadata is None:
        metadata = {}
    if not isinstance(metadata, dict):
        raise FrontmatterDecodeError(f"expected a mapping, got {type(metadata).__name__}")

    return metadata, body.lstrip("\r\n")


def dump_frontmatter(metadata: dict[str, Any]) -> str:
    """Render a mapping as a delimited block, keys in insertion order."""
    if not metadata:
        return "---\n---\n"
    rendered = yaml.safe_dump(
        metadata,
        default_flow_style=False,
        allow_unicode=True,
        sort_keys=False,
    )
    return f"---\n{rendered}---\n"
