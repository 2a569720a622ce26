"""Export configuration and its TOML loader."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

from .models import FrontmatterStrategy, LinkStyle, Postprocessor

DEFAULT_IGNORE_FILENAME = ".export-ignore"
DEFAULT_RECURSION_LIMIT = 10


@dataclass
class ExportConfig:
    """Options recognized by the exporter."""

    start_at: Path | None = None
    frontmatter_strategy: FrontmatterStrategy = FrontmatterStrategy.AUTO
    link_style: LinkStyle = LinkStyle.DEFAULT
    recursive_embeds: bool = True
    recursion_limit: int = DEFAULT_RECURSION_LIMIT
    preserve_mtime: bool = False
    include_hidden: bool = False
    use_gitignore: bool = True
    ignore_filename: str = DEFAULT_IGNORE_FILENAME
    ignore_patterns: tuple[str, ...] = ()
    fail_fast: bool = False
    postprocessors: list[Postprocessor] = field(default_factory=list)
    embed_postprocessors: list[Postprocessor] = field(default_factory=list)

    def merged(self, **overrides: Any) -> ExportConfig:
        """Copy with every override that is not None applied.

        The postprocessor lists are copied too, so registering on the result
        leaves this config untouched.
        """
        changes = {k: v for k, v in overrides.items() if v is not None}
        changes.setdefault("postprocessors", list(self.postprocessors))
        changes.setdefault("embed_postprocessors", list(self.embed_postprocessors))
        return replace(self, **changes)


def _coerce_bool(data: dict[str, Any], key: str) -> bool | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, bool):
        raise ValueError(f"{key} must be true or false")
    return value


def _coerce_str_list(data: dict[str, Any], key: str) -> tuple[str, ...] | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"{key} must be a list of strings")
    return tuple(value)


def load_config(path: Path, base: ExportConfig | None = None) -> ExportConfig:
    """
    Load export options from the ``[export]`` table of a TOML file.

    Keys mirror the ExportConfig fields. Unknown keys are rejected so that
    typos do not silently fall back to defaults.
    """
    import tomllib

    data = tomllib.loads(path.read_text(encoding="utf-8"))
    table = data.get("export", {})
    if not isinstance(table, dict):
        raise ValueError("[export] must be a table")

    known = {f.name for f in fields(ExportConfig)} - {"postprocessors", "embed_postprocessors"}
    unknown = sorted(set(table) - known)
    if unknown:
        raise ValueError(f"Unknown export option(s): {', '.join(unknown)}")

    overrides: dict[str, Any] = {}

    if "start_at" in table:
        overrides["start_at"] = (path.parent / str(table["start_at"])).resolve()

    if "frontmatter_strategy" in table:
        overrides["frontmatter_strategy"] = FrontmatterStrategy(str(table["frontmatter_strategy"]).lower())

    if "link_style" in table:
        overrides["link_style"] = LinkStyle(str(table["link_style"]).lower())

    for key in ("recursive_embeds", "preserve_mtime", "include_hidden", "use_gitignore", "fail_fast"):
        overrides[key] = _coerce_bool(table, key)

    if "recursion_limit" in table:
        limit = table["recursion_limit"]
        if not isinstance(limit, int) or isinstance(limit, bool) or limit <= 0:
            raise ValueError("recursion_limit must be a positive integer")
        overrides["recursion_limit"] = limit

    if "ignore_filename" in table:
        name = str(table["ignore_filename"]).strip()
        if not name:
            raise ValueError("ignore_filename must not be empty")
        overrides["ignore_filename"] = name

    overrides["ignore_patterns"] = _coerce_str_list(table, "ignore_patterns")

    return (base or ExportConfig()).merged(**overrides)
