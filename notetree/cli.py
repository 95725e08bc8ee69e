"""CLI entrypoint for notetree."""

import logging
import sys
from pathlib import Path

import click
from rich.logging import RichHandler

from . import __version__


def _auto_detect_vault(start: Path) -> Path | None:
    """Find the nearest directory containing a root note by walking up from `start`."""
    cur = start.resolve()
    for p in (cur, *cur.parents):
        if (p / "root.md").is_file():
            return p
    return None


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(show_path=False)],
    )


@click.group()
@click.version_option(__version__, prog_name="notetree")
@click.option(
    "--vault",
    "-v",
    type=click.Path(exists=False, file_okay=False, dir_okay=True, path_type=Path),
    default=None,
    help="Path to vault directory (defaults to the nearest directory containing root.md)",
)
@click.option("--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, vault: Path | None, verbose: bool) -> None:
    """notetree - hierarchical notes, schemas and wiki-link tracking.

    Check a vault's structure, find dangling links and rewrite links safely.
    """
    _configure_logging(verbose)
    ctx.ensure_object(dict)
    if vault is None:
        detected = _auto_detect_vault(Path.cwd())
        if detected is None:
            raise click.ClickException("Vault not found. Pass --vault /path/to/vault or run from inside one.")
        vault = detected

    if not vault.exists() or not vault.is_dir():
        raise click.BadParameter(f"Directory '{vault}' does not exist.", param_hint="--vault / -v")

    ctx.obj["vault"] = vault.resolve()


@cli.command()
@click.option(
    "--fail-on",
    type=click.Choice(["error", "warning"]),
    default="error",
    help="Exit with error if this level or higher found",
)
@click.option("--json", "output_json", is_flag=True, help="Output results as JSON")
@click.pass_context
def check(ctx: click.Context, fail_on: str, output_json: bool) -> None:
    """Load the vault and report structural and schema findings."""
    from .commands.check import run_check

    sys.exit(run_check(ctx.obj["vault"], output_json=output_json, fail_on=fail_on))


@cli.command()
@click.pass_context
def tree(ctx: click.Context) -> None:
    """Print the note hierarchy (stubs dimmed)."""
    from .commands.check import run_tree

    sys.exit(run_tree(ctx.obj["vault"]))


@cli.command()
@click.option("--json", "output_json", is_flag=True, help="Output results as JSON")
@click.pass_context
def refs(ctx: click.Context, output_json: bool) -> None:
    """List dangling [[references]] per file and vault-wide."""
    from .commands.refs import run_refs

    sys.exit(run_refs(ctx.obj["vault"], output_json=output_json))


@cli.command("rename-refs")
@click.argument("old")
@click.argument("new")
@click.option("--dry-run", is_flag=True, help="Show which files would change without writing")
@click.pass_context
def rename_refs(ctx: click.Context, old: str, new: str, dry_run: bool) -> None:
    """Rewrite [[OLD]] links to [[NEW]], keeping custom labels.

    Examples:

        notetree rename-refs project.alpha project.beta

        notetree rename-refs "Old Name" new.name --dry-run
    """
    from .commands.refs import run_rename_refs

    sys.exit(run_rename_refs(ctx.obj["vault"], old, new, dry_run=dry_run))


@cli.command()
@click.argument("old_fname")
@click.argument("new_fname")
@click.pass_context
def mv(ctx: click.Context, old_fname: str, new_fname: str) -> None:
    """Rename a note and rewrite links pointing at it."""
    from .commands.refs import run_move

    sys.exit(run_move(ctx.obj["vault"], old_fname, new_fname))


if __name__ == "__main__":
    cli()
