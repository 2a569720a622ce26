"""Tests for the postprocessor chain and built-in postprocessors."""

from pathlib import Path

import pytest
from marko import inline

from vaultexport.exporter import Exporter, run_postprocessors
from vaultexport.models import Context, PostprocessorResult
from vaultexport.postprocessors import (
    filter_by_tags,
    only_published_filter,
    remove_frontmatter_keys,
    softbreaks_to_hardbreaks,
    tag_filter_result,
)
from vaultexport.vault.parser import parse_markdown


def _context(frontmatter: dict | None = None) -> Context:
    context = Context.for_root(Path("/vault/Note.md"), Path("/out/Note.md"), Path("/vault"))
    context.frontmatter = dict(frontmatter or {})
    return context


def test_chain_stops_at_stop_here():
    calls: list[str] = []

    def first(context, events):
        calls.append("first")
        return PostprocessorResult.STOP_HERE

    def second(context, events):
        calls.append("second")
        return PostprocessorResult.CONTINUE

    result = run_postprocessors([first, second], _context(), [])
    assert result is PostprocessorResult.STOP_HERE
    assert calls == ["first"]


def test_empty_chain_continues():
    assert run_postprocessors([], _context(), []) is PostprocessorResult.CONTINUE


def test_stop_here_still_writes_note(make_vault, output_dir: Path):
    vault = make_vault({"Note.md": "text\n"})

    def stop(context, events):
        return PostprocessorResult.STOP_HERE

    def never(context, events):
        raise AssertionError("chain should have stopped")

    summary = Exporter(vault, output_dir).add_postprocessor(stop).add_postprocessor(never).run()
    assert summary.success
    assert (output_dir / "Note.md").exists()


def test_skip_note(make_vault, output_dir: Path):
    vault = make_vault({"Keep.md": "k\n", "Drop.md": "d\n"})

    def skip_drop(context, events):
        if context.current_file.name == "Drop.md":
            return PostprocessorResult.STOP_AND_SKIP_NOTE
        return PostprocessorResult.CONTINUE

    summary = Exporter(vault, output_dir).add_postprocessor(skip_drop).run()

    assert [p.name for p in summary.skipped] == ["Drop.md"]
    assert (output_dir / "Keep.md").exists()
    assert not (output_dir / "Drop.md").exists()


def test_postprocessor_can_redirect_destination(make_vault, output_dir: Path):
    vault = make_vault({"Note.md": "text\n"})

    def rename(context, events):
        context.destination = context.destination.with_name("renamed.md")
        return PostprocessorResult.CONTINUE

    summary = Exporter(vault, output_dir).add_postprocessor(rename).run()

    assert summary.exported == [output_dir / "renamed.md"]
    assert not (output_dir / "Note.md").exists()


def test_postprocessor_can_edit_frontmatter(make_vault, output_dir: Path):
    vault = make_vault({"Note.md": "---\ntitle: Old\n---\n\nBody\n"})

    def retitle(context, events):
        context.frontmatter["title"] = "New"
        return PostprocessorResult.CONTINUE

    Exporter(vault, output_dir).add_postprocessor(retitle).run()

    text = (output_dir / "Note.md").read_text(encoding="utf-8")
    assert text.startswith("---\ntitle: New\n---\n")


def test_softbreaks_to_hardbreaks():
    _, events = parse_markdown("line one\nline two\n")
    result = softbreaks_to_hardbreaks(_context(), events)

    breaks = [e for e in events if isinstance(e, inline.LineBreak)]
    assert result is PostprocessorResult.CONTINUE
    assert breaks and not any(b.soft for b in breaks)


def test_hard_linebreaks_in_output(make_vault, output_dir: Path):
    vault = make_vault({"Note.md": "line one\nline two\n"})
    Exporter(vault, output_dir).add_postprocessor(softbreaks_to_hardbreaks).run()

    text = (output_dir / "Note.md").read_text(encoding="utf-8")
    assert "line one\nline two" not in text
    assert "line two" in text


@pytest.mark.parametrize(
    "frontmatter,expected",
    [
        ({"publish": True}, PostprocessorResult.CONTINUE),
        ({"publish": False}, PostprocessorResult.STOP_AND_SKIP_NOTE),
        ({"publish": "yes"}, PostprocessorResult.STOP_AND_SKIP_NOTE),
        ({}, PostprocessorResult.STOP_AND_SKIP_NOTE),
    ],
)
def test_only_published_filter(frontmatter, expected):
    assert only_published_filter(_context(frontmatter), []) is expected


@pytest.mark.parametrize(
    "tags,skip,only,expected",
    [
        (["a"], [], [], PostprocessorResult.CONTINUE),
        (["a"], ["a"], [], PostprocessorResult.STOP_AND_SKIP_NOTE),
        (["a"], [], ["b"], PostprocessorResult.STOP_AND_SKIP_NOTE),
        (["a", "b"], [], ["b"], PostprocessorResult.CONTINUE),
        (["a", "b"], ["a"], ["b"], PostprocessorResult.STOP_AND_SKIP_NOTE),
        ([], [], ["b"], PostprocessorResult.STOP_AND_SKIP_NOTE),
        ([], ["a"], [], PostprocessorResult.CONTINUE),
    ],
)
def test_tag_filter_result(tags, skip, only, expected):
    assert tag_filter_result(tags, skip, only) is expected


def test_filter_by_tags_reads_frontmatter():
    only_private = filter_by_tags(only_tags=["private"])

    assert only_private(_context({"tags": ["private"]}), []) is PostprocessorResult.CONTINUE
    assert only_private(_context({}), []) is PostprocessorResult.STOP_AND_SKIP_NOTE
    # A scalar tags value is not a tag list; the note is left alone.
    assert only_private(_context({"tags": "private"}), []) is PostprocessorResult.CONTINUE


def test_remove_frontmatter_keys():
    context = _context({"title": "T", "draft": True, "secret": 1})
    result = remove_frontmatter_keys("draft", "secret", "absent")(context, [])

    assert result is PostprocessorResult.CONTINUE
    assert context.frontmatter == {"title": "T"}
