"""Tests for vault scanning and filename lookup."""

from pathlib import Path

import pytest

from vaultexport.errors import PathDoesNotExist, ReadError
from vaultexport.vault.index import (
    IgnoreOptions,
    IgnoreRule,
    VaultIndex,
    is_ignored,
    normalize_key,
)


def _rel(index: VaultIndex, path: Path | None) -> str | None:
    return None if path is None else index.relative(path).as_posix()


def test_build_indexes_notes_and_assets(make_vault):
    vault = make_vault(
        {
            "Note.md": "# Note\n",
            "dir/Other.md": "Other\n",
            "img/pic.png": b"\x89PNG",
        }
    )
    index = VaultIndex.build(vault)

    assert [_rel(index, p) for p in index.files] == ["Note.md", "dir/Other.md", "img/pic.png"]
    assert _rel(index, index.closest("Note", vault / "Note.md")) == "Note.md"
    assert _rel(index, index.closest("pic.png", vault / "Note.md")) == "img/pic.png"


def test_missing_root_raises(tmp_path: Path):
    with pytest.raises(PathDoesNotExist):
        VaultIndex.build(tmp_path / "nope")


def test_single_file_root(make_vault):
    vault = make_vault({"Note.md": "x\n", "Other.md": "y\n"})
    index = VaultIndex.build(vault / "Note.md")

    assert index.root == vault.resolve()
    assert index.files == [(vault / "Note.md").resolve()]
    assert index.closest("Other", index.files[0]) is None


def test_lookup_is_case_insensitive_and_nfc_normalized(make_vault):
    decomposed = "Café"
    composed = "café"
    vault = make_vault({f"{decomposed}.md": "x\n", "Index.md": "y\n"}).resolve()
    index = VaultIndex.build(vault)

    found = index.closest(composed, vault / "Index.md")
    assert found is not None
    assert normalize_key(found.stem) == composed
    assert index.closest("INDEX", found) == vault / "Index.md"


def test_reference_with_md_suffix_and_path_fragment(make_vault):
    vault = make_vault({"a/Note.md": "a\n", "b/Note.md": "b\n", "Root.md": "r\n"}).resolve()
    index = VaultIndex.build(vault)

    assert _rel(index, index.closest("Note.md", vault / "Root.md")) == "a/Note.md"
    assert _rel(index, index.closest("b/Note", vault / "Root.md")) == "b/Note.md"
    assert index.closest("c/Note", vault / "Root.md") is None


def test_closest_prefers_shared_directories(make_vault):
    vault = make_vault(
        {
            "A/Note.md": "a\n",
            "A/Sub/Note.md": "sub\n",
            "B/Note.md": "b\n",
            "B/Ref.md": "[[Note]]\n",
        }
    ).resolve()
    index = VaultIndex.build(vault)

    assert _rel(index, index.closest("Note", vault / "B/Ref.md")) == "B/Note.md"
    # The referencing note is excluded when other candidates exist.
    assert _rel(index, index.closest("Note", vault / "A/Note.md")) == "A/Sub/Note.md"


def test_closest_tie_break_is_lexicographic(make_vault):
    vault = make_vault({"x/Note.md": "x\n", "a/Note.md": "a\n", "Ref.md": "r\n"}).resolve()
    index = VaultIndex.build(vault)

    assert _rel(index, index.closest("Note", vault / "Ref.md")) == "a/Note.md"


def test_hidden_files_skipped_unless_requested(make_vault):
    vault = make_vault({".obsidian/app.md": "x\n", ".hidden.md": "h\n", "Note.md": "n\n"})

    default = VaultIndex.build(vault)
    assert [p.name for p in default.files] == ["Note.md"]

    hidden = VaultIndex.build(vault, IgnoreOptions(include_hidden=True))
    assert {p.name for p in hidden.files} == {".hidden.md", "app.md", "Note.md"}


def test_ignore_file_and_gitignore(make_vault):
    vault = make_vault(
        {
            ".export-ignore": "private/\n*.draft.md\n",
            ".gitignore": "build/\n",
            "private/Secret.md": "s\n",
            "Post.draft.md": "d\n",
            "build/Out.md": "o\n",
            "Keep.md": "k\n",
        }
    )

    index = VaultIndex.build(vault)
    assert [index.relative(p).as_posix() for p in index.files] == ["Keep.md"]

    no_git = VaultIndex.build(vault, IgnoreOptions(use_gitignore=False))
    assert {index.relative(p).as_posix() for p in no_git.files} == {"Keep.md", "build/Out.md"}


def test_undecodable_ignore_file_raises_read_error(make_vault):
    vault = make_vault({".gitignore": b"\xff\xfe bad\n", "Note.md": "n\n"})

    with pytest.raises(ReadError) as excinfo:
        VaultIndex.build(vault)
    assert excinfo.value.path.name == ".gitignore"

    index = VaultIndex.build(vault, IgnoreOptions(use_gitignore=False))
    assert [p.name for p in index.files] == ["Note.md"]


def test_nested_ignore_file_is_scoped_to_its_directory(make_vault):
    vault = make_vault(
        {
            "sub/.export-ignore": "Skip.md\n",
            "sub/Skip.md": "x\n",
            "Skip.md": "y\n",
        }
    )
    index = VaultIndex.build(vault)

    assert [index.relative(p).as_posix() for p in index.files] == ["Skip.md"]


def test_extra_patterns_and_negation(make_vault):
    vault = make_vault({"a.md": "a\n", "b.md": "b\n", "c.txt": "c\n"})
    index = VaultIndex.build(vault, IgnoreOptions(patterns=("*.md", "!b.md")))

    assert sorted(p.name for p in index.files) == ["b.md", "c.txt"]


def test_ignore_rule_parsing():
    assert IgnoreRule.parse("# comment") is None
    assert IgnoreRule.parse("   ") is None

    rule = IgnoreRule.parse("/docs/*.md")
    assert rule.anchored
    assert rule.matches("docs/a.md", is_dir=False)
    assert not rule.matches("x/docs/a.md", is_dir=False)

    dir_rule = IgnoreRule.parse("tmp/")
    assert dir_rule.dir_only
    assert not dir_rule.matches("tmp", is_dir=False)
    assert is_ignored([dir_rule], "a/tmp", is_dir=True)
