"""Export command implementation."""

import json
from pathlib import Path

from rich.console import Console
from rich.table import Table

from ..config import ExportConfig
from ..errors import ExportError, FileExportError
from ..exporter import Exporter
from ..models import ExportSummary
from ..postprocessors import (
    filter_by_tags,
    only_published_filter,
    remove_frontmatter_keys,
    softbreaks_to_hardbreaks,
)


def build_postprocessors(
    config: ExportConfig,
    hard_linebreaks: bool = False,
    only_published: bool = False,
    skip_tags: tuple[str, ...] = (),
    only_tags: tuple[str, ...] = (),
    strip_keys: tuple[str, ...] = (),
) -> ExportConfig:
    """Register the built-in postprocessors selected on the command line.

    Filters run first so vetoed notes are not transformed needlessly; line
    break conversion also applies to embedded notes.
    """
    if only_published:
        config.postprocessors.append(only_published_filter)
    if skip_tags or only_tags:
        config.postprocessors.append(filter_by_tags(skip_tags, only_tags))
    if strip_keys:
        config.postprocessors.append(remove_frontmatter_keys(*strip_keys))
    if hard_linebreaks:
        config.postprocessors.append(softbreaks_to_hardbreaks)
        config.embed_postprocessors.append(softbreaks_to_hardbreaks)
    return config


def run_export(
    source: Path,
    destination: Path,
    config: ExportConfig,
    output_json: bool = False,
) -> int:
    """Run an export and report the outcome.

    Args:
        source: Vault directory or single note
        destination: Output directory (or file, for a single note)
        config: Export options, postprocessors included
        output_json: Print the summary as JSON instead of human-readable

    Returns:
        Exit code (0 = every file exported, 1 = per-file errors occurred)

    Raises:
        ExportError: structural errors (missing paths), or the first per-file
            error when ``config.fail_fast`` is set
    """
    console = Console(stderr=True)

    console.print(f"Exporting {source} -> {destination}...", style="dim")
    summary = Exporter(source, destination, config).run()

    if output_json:
        _output_json(summary)
    else:
        _print_human_output(console, summary)

    return 0 if summary.success else 1


def _error_to_dict(error: FileExportError) -> dict:
    return {
        "file": str(error.path),
        "error": type(error.source).__name__,
        "message": str(error.source),
    }


def _output_json(summary: ExportSummary) -> None:
    output = {
        "exported": [str(p) for p in summary.exported],
        "copied": [str(p) for p in summary.copied],
        "skipped": [str(p) for p in summary.skipped],
        "errors": [_error_to_dict(e) for e in summary.errors],
    }
    print(json.dumps(output, indent=2))


def _print_human_output(console: Console, summary: ExportSummary) -> None:
    console.print(
        f"{len(summary.exported)} note(s) exported, "
        f"{len(summary.copied)} asset(s) copied, "
        f"{len(summary.skipped)} note(s) skipped",
        style="bold green" if summary.success else "bold",
    )

    if not summary.errors:
        return

    table = Table(title=f"{len(summary.errors)} file(s) failed")
    table.add_column("File", style="cyan")
    table.add_column("Error", style="bold red")
    table.add_column("Details")
    for error in sorted(summary.errors, key=lambda e: str(e.path)):
        table.add_row(str(error.path), type(error.source).__name__, str(error.source))
    console.print(table)


def format_structural_error(error: ExportError) -> str:
    """One-line message for errors that abort the whole run."""
    if isinstance(error, FileExportError):
        return f"{error.path}: {error.source}"
    return str(error)
