"""Tests for frontmatter splitting and rendering."""

import pytest

from vaultexport.errors import FrontmatterDecodeError
from vaultexport.vault.frontmatter import dump_frontmatter, has_frontmatter, split_frontmatter


def test_split_returns_mapping_and_body():
    text = "\n".join(["---", "title: Hello", "tags:", "  - a", "---", "", "# Body", ""])
    metadata, body = split_frontmatter(text)

    assert metadata == {"title": "Hello", "tags": ["a"]}
    assert body == "# Body\n"


def test_no_frontmatter_returns_text_unchanged():
    text = "# Just a note\n\n---\n\nafter a rule\n"
    assert not has_frontmatter(text)
    assert split_frontmatter(text) == (None, text)


def test_empty_block_is_empty_mapping():
    metadata, body = split_frontmatter("---\n---\nBody\n")
    assert metadata == {}
    assert body == "Body\n"


def test_byte_order_mark_is_ignored():
    metadata, body = split_frontmatter("\ufeff---\na: 1\n---\nBody\n")
    assert metadata == {"a": 1}
    assert body == "Body\n"


@pytest.mark.parametrize(
    "text",
    [
        "---\ntitle: [unclosed\n---\nBody\n",
        "---\n- just\n- a list\n---\nBody\n",
        "---\ntitle: no closing delimiter\n",
    ],
)
def test_malformed_frontmatter_raises(text: str):
    with pytest.raises(FrontmatterDecodeError):
        split_frontmatter(text)


def test_dump_keeps_key_order_and_unicode():
    rendered = dump_frontmatter({"title": "Résumé", "alpha": 1})
    assert rendered.startswith("---\n")
    assert rendered.endswith("---\n")
    assert rendered.index("title") < rendered.index("alpha")
    assert "Résumé" in rendered


def test_dump_empty_mapping():
    assert dump_frontmatter({}) == "---\n---\n"
