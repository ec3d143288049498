"""CLI entry point for reviewchain.

Commands:
  review   — run the multi-step AI review on a pull request
  config   — inspect and edit the persisted pipeline configuration
  results  — show or clear the stored results of a past run
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from reviewchain_cli.commands.config import config_cmd
from reviewchain_cli.commands.results import results_cmd
from reviewchain_cli.commands.review import review_cmd

console = Console()


def _build_backend(settings: dict):
    """Instantiate the configured key-value backend from .reviewchain.yml settings.

    Backend selection hierarchy:
      store: gist   → GistBackend   (requires gist_id and github_token)
      store: memory → MemoryBackend (nothing survives the process)
      (default)     → SQLiteBackend (store_path or .reviewchain.db)

    This factory lives in cli.py so neither reviewchain_core nor
    reviewchain_store know about the CLI settings format.
    """
    store_type = settings.get("store", "sqlite")

    if store_type == "gist":
        from reviewchain_store.gist import GistBackend

        gist_id = settings.get("gist_id")
        token = settings.get("github_token")
        if gist_id and token:
            return GistBackend(gist_id=gist_id, token=token)
        console.print("[yellow]GistBackend requires gist_id and a GitHub token. Falling back to memory.[/yellow]")
        store_type = "memory"

    if store_type == "memory":
        from reviewchain_store.memory import MemoryBackend

        return MemoryBackend()

    from reviewchain_store.sqlite import SQLiteBackend

    return SQLiteBackend(db_path=settings.get("store_path") or ".reviewchain.db")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=verbose)],
        force=True,
    )


@click.group()
@click.version_option(
    version=importlib.metadata.version("reviewchain"),
    prog_name="reviewchain",
)
@click.option(
    "--config",
    "config_path",
    default=".reviewchain.yml",
    show_default=True,
    help="Path to the settings file.",
    envvar="REVIEWCHAIN_CONFIG",
)
@click.option(
    "--store",
    type=click.Choice(["sqlite", "gist", "memory"]),
    default=None,
    help="Storage backend. Overrides the settings file.",
)
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to stderr.")
@click.pass_context
def main(ctx: click.Context, config_path: str, store: str | None, verbose: bool):
    """Multi-step AI code review for GitHub pull requests."""
    from reviewchain_core.config import ConfigStore, load_settings
    from reviewchain_core.results import ResultStore
    from reviewchain_cli.auth import resolve_github_token

    _configure_logging(verbose)
    ctx.ensure_object(dict)

    settings = load_settings(config_path, cli_overrides={"store": store})

    # Resolve token early so all subcommands share the same resolution.
    token = resolve_github_token()
    if token:
        settings["github_token"] = token

    backend = _build_backend(settings)
    ctx.obj["settings"] = settings
    ctx.obj["backend"] = backend
    ctx.obj["config_store"] = ConfigStore(backend)
    ctx.obj["result_store"] = ResultStore(backend)
    ctx.call_on_close(backend.close)


main.add_command(review_cmd)
main.add_command(config_cmd)
main.add_command(results_cmd)
