"""Vault scanning, ignore rules and the filename lookup index."""

from __future__ import annotations

import fnmatch
import logging
import os
import unicodedata
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path

from ..errors import PathDoesNotExist, ReadError

logger = logging.getLogger(__name__)

NOTE_SUFFIX = ".md"


def normalize_key(name: str) -> str:
    """Lookup keys are NFC-normalized and case-insensitive."""
    return unicodedata.normalize("NFC", name).lower()


def is_note(path: Path) -> bool:
    return path.suffix.lower() == NOTE_SUFFIX


def lookup_key(path: Path) -> str:
    """Primary index key: stem for notes, full filename for assets."""
    return normalize_key(path.stem if is_note(path) else path.name)


@dataclass(frozen=True)
class IgnoreRule:
    """One gitignore-style pattern, scoped to the directory that declared it."""

    pattern: str
    base: str = ""  # posix path of the declaring directory, relative to the vault
    negate: bool = False
    dir_only: bool = False
    anchored: bool = False

    @classmethod
    def parse(cls, line: str, base: str = "") -> IgnoreRule | None:
        line = line.rstrip("\n").rstrip()
        if not line or line.startswith("#"):
            return None

        negate = line.startswith("!")
        if negate:
            line = line[1:]

        dir_only = line.endswith("/")
        line = line.rstrip("/")

        anchored = "/" in line
        line = line.lstrip("/")
        if not line:
            return None

        return cls(pattern=line, base=base, negate=negate, dir_only=dir_only, anchored=anchored)

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if self.dir_only and not is_dir:
            return False

        if self.base:
            if not rel_path.startswith(self.base + "/"):
                return False
            rel_path = rel_path[len(self.base) + 1 :]

        if self.anchored:
            return fnmatch.fnmatchcase(rel_path, self.pattern)
        return fnmatch.fnmatchcase(rel_path.rsplit("/", 1)[-1], self.pattern)


def read_ignore_file(path: Path, base: str) -> list[IgnoreRule]:
    """Parse a marker file of ignore patterns declared in directory ``base``.

    Raises:
        ReadError: the file cannot be read or is not UTF-8
    """
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ReadError(path, getattr(e, "strerror", None) or str(e)) from e

    rules = []
    for line in text.splitlines():
        rule = IgnoreRule.parse(line, base)
        if rule is not None:
            rules.append(rule)
    return rules


def is_ignored(rules: list[IgnoreRule], rel_path: str, is_dir: bool) -> bool:
    """Last matching rule wins; a negated rule re-includes."""
    ignored = False
    for rule in rules:
        if rule.matches(rel_path, is_dir):
            ignored = not rule.negate
    return ignored


@dataclass
class IgnoreOptions:
    """How the vault walk filters files."""

    include_hidden: bool = False
    use_gitignore: bool = True
    ignore_filename: str = ".export-ignore"
    patterns: tuple[str, ...] = ()

    @property
    def marker_files(self) -> list[str]:
        names = [self.ignore_filename]
        if self.use_gitignore:
            names.append(".gitignore")
        return names


def walk_vault(root: Path, options: IgnoreOptions) -> list[Path]:
    """List every retained file under ``root`` in deterministic order."""
    base_rules = [r for r in (IgnoreRule.parse(p) for p in options.patterns) if r is not None]
    rules_by_dir: dict[Path, list[IgnoreRule]] = {}
    found: list[Path] = []

    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        rel_dir = "" if current == root else current.relative_to(root).as_posix()

        inherited = base_rules if current == root else rules_by_dir[current.parent]
        rules = list(inherited)
        for marker in options.marker_files:
            marker_path = current / marker
            if marker_path.is_file():
                rules.extend(read_ignore_file(marker_path, rel_dir))
        rules_by_dir[current] = rules

        def rel(name: str) -> str:
            return f"{rel_dir}/{name}" if rel_dir else name

        kept_dirs = []
        for name in sorted(dirnames):
            if not options.include_hidden and name.startswith("."):
                continue
            if is_ignored(rules, rel(name), is_dir=True):
                logger.debug("Ignoring directory %s", rel(name))
                continue
            kept_dirs.append(name)
        dirnames[:] = kept_dirs

        for name in sorted(filenames):
            if not options.include_hidden and name.startswith("."):
                continue
            if is_ignored(rules, rel(name), is_dir=False):
                logger.debug("Ignoring file %s", rel(name))
                continue
            found.append(current / name)

    return found


def _common_prefix_length(a: tuple[str, ...], b: tuple[str, ...]) -> int:
    length = 0
    for x, y in zip(a, b):
        if x != y:
            break
        length += 1
    return length


@dataclass
class VaultIndex:
    """Lookup from filename to candidate files. Read-only once built."""

    root: Path
    files: list[Path] = field(default_factory=list)
    _by_key: dict[str, tuple[Path, ...]] = field(default_factory=dict)

    @classmethod
    def build(cls, root: Path, options: IgnoreOptions | None = None) -> VaultIndex:
        """Scan ``root`` once and index every retained note and asset.

        ``root`` may also be a single file, in which case the index holds only
        that file and its directory acts as the vault root.
        """
        root = Path(root)
        if not root.exists():
            raise PathDoesNotExist(root)
        root = root.resolve()

        if root.is_file():
            index = cls(root=root.parent, files=[root])
        else:
            index = cls(root=root, files=walk_vault(root, options or IgnoreOptions()))

        grouped: dict[str, list[Path]] = defaultdict(list)
        for path in index.files:
            grouped[lookup_key(path)].append(path)
        index._by_key = {
            key: tuple(sorted(paths, key=index.sort_key)) for key, paths in grouped.items()
        }
        logger.debug("Indexed %d files under %s", len(index.files), index.root)
        return index

    def relative(self, path: Path) -> Path:
        return path.relative_to(self.root)

    def sort_key(self, path: Path) -> str:
        return self.relative(path).as_posix()

    def __contains__(self, path: Path) -> bool:
        return path in self._by_key.get(lookup_key(path), ())

    def candidates(self, name: str) -> list[Path]:
        """All files a reference like ``Note``, ``dir/Note`` or ``a.png`` may mean."""
        name = name.strip().replace("\\", "/")
        fragment = normalize_key(name.strip("/"))
        key = fragment.rsplit("/", 1)[-1]

        found = list(self._by_key.get(key, ()))
        if key.endswith(NOTE_SUFFIX):
            found += [p for p in self._by_key.get(key[: -len(NOTE_SUFFIX)], ()) if is_note(p)]

        if "/" in fragment:
            found = [p for p in found if self._ends_with(p, fragment)]

        return sorted(set(found), key=self.sort_key)

    def _ends_with(self, path: Path, fragment: str) -> bool:
        rel = normalize_key(self.sort_key(path))
        for suffix in (fragment, fragment + NOTE_SUFFIX):
            if rel == suffix or rel.endswith("/" + suffix):
                return True
        return False

    def closest(self, name: str, referencing: Path) -> Path | None:
        """Pick the candidate nearest to the referencing note.

        Nearness is the number of leading directories shared with the
        referencing note; ties go to the lexicographically smallest
        vault-relative path. The referencing note itself only wins when it is
        the sole candidate.
        """
        candidates = self.candidates(name)
        if not candidates:
            return None
        if len(candidates) > 1 and referencing in candidates:
            candidates.remove(referencing)
        if len(candidates) == 1:
            return candidates[0]

        try:
            origin = self.relative(referencing).parent.parts
        except ValueError:
            origin = ()

        def rank(path: Path) -> tuple[int, str]:
            shared = _common_prefix_length(origin, self.relative(path).parent.parts)
            return (-shared, self.sort_key(path))

        return min(candidates, key=rank)
