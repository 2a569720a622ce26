"""CLI entrypoint for vault-export."""

import logging
import sys
from pathlib import Path

import click

from . import __version__
from .config import DEFAULT_IGNORE_FILENAME, ExportConfig, load_config
from .errors import ExportError
from .models import FrontmatterStrategy, LinkStyle


@click.group()
@click.version_option(__version__, prog_name="vault-export")
@click.option("--verbose", "-v", is_flag=True, help="Log every exported and skipped file")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """vault-export - Export a notes vault to portable markdown.

    Resolves [[links]] and ![[embeds]], manages frontmatter and copies the
    assets referenced by exported notes.
    """
    ctx.ensure_object(dict)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


@cli.command()
@click.argument("source", type=click.Path(exists=False, path_type=Path))
@click.argument("destination", type=click.Path(exists=False, path_type=Path))
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="TOML file with an [export] table of options (flags override it)",
)
@click.option(
    "--start-at",
    type=click.Path(exists=False, path_type=Path),
    default=None,
    help="Only export notes under this path (must be inside SOURCE)",
)
@click.option(
    "--frontmatter",
    "frontmatter_strategy",
    type=click.Choice([s.value for s in FrontmatterStrategy]),
    default=None,
    help="Frontmatter handling (default: auto)",
)
@click.option(
    "--link-style",
    type=click.Choice([s.value for s in LinkStyle]),
    default=None,
    help="Output format for internal links (default: relative paths)",
)
@click.option(
    "--no-recursive-embeds",
    is_flag=True,
    help="Expand embeds one level only; nested embeds become links",
)
@click.option("--preserve-mtime", is_flag=True, help="Copy source modification times to exported files")
@click.option("--hidden", is_flag=True, help="Export hidden files and directories")
@click.option("--no-git", is_flag=True, help="Do not apply .gitignore files")
@click.option(
    "--ignore-file",
    default=None,
    metavar="NAME",
    help=f"Name of per-directory ignore files (default: {DEFAULT_IGNORE_FILENAME})",
)
@click.option("--ignore", "ignore_patterns", multiple=True, metavar="PATTERN", help="Extra ignore pattern (repeatable)")
@click.option("--hard-linebreaks", is_flag=True, help="Convert soft line breaks to hard line breaks")
@click.option("--only-published", is_flag=True, help="Only export notes with 'publish: true'")
@click.option("--skip-tags", multiple=True, metavar="TAG", help="Skip notes with this tag (repeatable)")
@click.option("--only-tags", multiple=True, metavar="TAG", help="Only export notes with this tag (repeatable)")
@click.option("--strip-key", "strip_keys", multiple=True, metavar="KEY", help="Remove this frontmatter key (repeatable)")
@click.option("--fail-fast", is_flag=True, help="Stop at the first file that fails to export")
@click.option("--json", "output_json", is_flag=True, help="Output the summary as JSON")
def export(
    source: Path,
    destination: Path,
    config_path: Path | None,
    start_at: Path | None,
    frontmatter_strategy: str | None,
    link_style: str | None,
    no_recursive_embeds: bool,
    preserve_mtime: bool,
    hidden: bool,
    no_git: bool,
    ignore_file: str | None,
    ignore_patterns: tuple[str, ...],
    hard_linebreaks: bool,
    only_published: bool,
    skip_tags: tuple[str, ...],
    only_tags: tuple[str, ...],
    strip_keys: tuple[str, ...],
    fail_fast: bool,
    output_json: bool,
) -> None:
    """Export SOURCE (a vault directory or a single note) to DESTINATION.

    Examples:

        vault-export export ~/vault ./site/content --link-style zola

        vault-export export ~/vault ./out --only-published --hard-linebreaks

        vault-export export ~/vault/Note.md ./out/note.md
    """
    from .commands.export import build_postprocessors, format_structural_error, run_export

    try:
        config = load_config(config_path) if config_path else ExportConfig()
    except (OSError, ValueError) as e:
        raise click.BadParameter(str(e), param_hint="--config")

    config = config.merged(
        start_at=start_at,
        frontmatter_strategy=FrontmatterStrategy(frontmatter_strategy) if frontmatter_strategy else None,
        link_style=LinkStyle(link_style) if link_style else None,
        recursive_embeds=False if no_recursive_embeds else None,
        preserve_mtime=True if preserve_mtime else None,
        include_hidden=True if hidden else None,
        use_gitignore=False if no_git else None,
        ignore_filename=ignore_file,
        ignore_patterns=tuple(config.ignore_patterns) + ignore_patterns if ignore_patterns else None,
        fail_fast=True if fail_fast else None,
    )
    build_postprocessors(
        config,
        hard_linebreaks=hard_linebreaks,
        only_published=only_published,
        skip_tags=skip_tags,
        only_tags=only_tags,
        strip_keys=strip_keys,
    )

    try:
        exit_code = run_export(source, destination, config, output_json)
    except ExportError as e:
        raise click.ClickException(format_structural_error(e))
    sys.exit(exit_code)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
