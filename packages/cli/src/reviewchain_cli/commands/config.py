"""config commands — inspect and edit the persisted pipeline configuration."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from reviewchain_core.errors import ConfigurationError, PersistenceError
from reviewchain_core.models import DEFAULT_MODELS, OPENAI_COMPATIBLE, PROVIDER_TAGS, ProviderConfig

console = Console()


def _mask(api_key: str) -> str:
    if not api_key:
        return "[dim]not set[/dim]"
    return api_key[:3] + "…" + api_key[-4:] if len(api_key) > 10 else "****"


def _save(config_store, config) -> None:
    try:
        config_store.save(config)
    except PersistenceError as e:
        raise click.ClickException(str(e))


@click.group("config")
def config_cmd():
    """Show or change the provider and review step configuration."""


@config_cmd.command("show")
@click.pass_context
def show_cmd(ctx):
    """Print providers and review steps."""
    config = ctx.obj["config_store"].get()

    providers = Table(title="Providers", show_header=True, header_style="bold cyan")
    providers.add_column("", width=2)
    providers.add_column("Provider")
    providers.add_column("API key")
    providers.add_column("Model")
    providers.add_column("Base URL")
    for tag in PROVIDER_TAGS:
        slot = config.provider(tag)
        providers.add_row(
            "*" if tag == config.selected_provider else "",
            tag,
            _mask(slot.api_key),
            slot.model or DEFAULT_MODELS[tag],
            slot.base_url or "",
        )
    console.print(providers)

    steps = Table(title="Review steps", show_header=True, header_style="bold cyan")
    steps.add_column("Order", justify="right", width=6)
    steps.add_column("ID")
    steps.add_column("Name")
    steps.add_column("Enabled", width=8)
    steps.add_column("Prompt", max_width=60)
    for step in sorted(config.review_steps, key=lambda s: s.order):
        steps.add_row(
            str(step.order),
            step.id,
            step.name,
            "[green]yes[/green]" if step.enabled else "[dim]no[/dim]",
            step.prompt[:60] + ("…" if len(step.prompt) > 60 else ""),
        )
    console.print(steps)


@config_cmd.command("set-provider")
@click.argument("provider", type=click.Choice(list(PROVIDER_TAGS)))
@click.pass_context
def set_provider_cmd(ctx, provider: str):
    """Select the provider used by `reviewchain review`."""
    config_store = ctx.obj["config_store"]
    config = config_store.get()
    config.selected_provider = provider
    _save(config_store, config)
    if not config.provider(provider).api_key:
        console.print(f"[yellow]No API key set for {provider} yet. Run `reviewchain config set-key {provider}`.[/yellow]")
    console.print(f"[green]Selected provider: {provider}[/green]")


@config_cmd.command("set-key")
@click.argument("provider", type=click.Choice(list(PROVIDER_TAGS)))
@click.argument("api_key", required=False)
@click.option("--model", default=None, help="Model name. Defaults to the provider's built-in model.")
@click.option("--base-url", default=None, help="API base URL (required for openai-compatible).")
@click.option("--select/--no-select", default=True, show_default=True, help="Also select this provider.")
@click.pass_context
def set_key_cmd(ctx, provider: str, api_key: str | None, model: str | None, base_url: str | None, select: bool):
    """Store the API key (and optionally model/base URL) for PROVIDER."""
    if api_key is None:
        api_key = click.prompt(f"{provider} API key", hide_input=True)

    config_store = ctx.obj["config_store"]
    config = config_store.get()
    current = config.provider(provider)
    updated = ProviderConfig(
        api_key=api_key.strip(),
        model=model or current.model or DEFAULT_MODELS[provider],
        base_url=base_url if base_url is not None else current.base_url,
    )
    if provider == OPENAI_COMPATIBLE and not updated.base_url:
        raise click.UsageError("The openai-compatible provider needs --base-url.")

    config.providers[provider] = updated
    if select:
        config.selected_provider = provider
    _save(config_store, config)
    console.print(f"[green]Saved credentials for {provider}.[/green]")


@config_cmd.command("import-steps")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def import_steps_cmd(ctx, path: str):
    """Replace the review steps with the ones defined in a YAML file.

    \b
    The file holds a list of steps:
      - id: security
        name: Security scan
        prompt: Look for security problems in this diff.
      - id: review
        prompt: Review the diff with the findings above in mind.
    """
    from reviewchain_core.config import load_steps_file

    try:
        steps = load_steps_file(path)
    except ConfigurationError as e:
        raise click.UsageError(str(e))

    config_store = ctx.obj["config_store"]
    config = config_store.get()
    config.review_steps = steps
    _save(config_store, config)
    enabled = sum(1 for s in steps if s.enabled)
    console.print(f"[green]Imported {len(steps)} step(s), {enabled} enabled.[/green]")


@config_cmd.command("reset")
@click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt.")
@click.pass_context
def reset_cmd(ctx, yes: bool):
    """Restore the built-in configuration (clears every API key)."""
    if not yes and not click.confirm("Reset the configuration to the defaults?", default=False):
        return
    try:
        ctx.obj["config_store"].reset()
    except PersistenceError as e:
        raise click.ClickException(str(e))
    console.print("[green]Configuration reset to defaults.[/green]")
