"""results command — show or clear the stored outcome of a pull request's last run."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from reviewchain_core.errors import PersistenceError
from reviewchain_core.gh.pull_request import parse_repo
from reviewchain_core.models import PullRequestInfo

console = Console()


@click.command("results")
@click.option("--repo", required=True, help="GitHub repository (owner/name).")
@click.option("--pr", "pr_number", type=int, required=True, help="Pull request number.")
@click.option("--full", is_flag=True, help="Print every step's content, not just the displayed result.")
@click.option("--clear", is_flag=True, help="Delete the stored step results and displayed result.")
@click.pass_context
def results_cmd(ctx, repo: str, pr_number: int, full: bool, clear: bool):
    """Show the stored step results of the last review of a pull request."""
    try:
        owner, name = parse_repo(repo)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--repo")

    run_id = PullRequestInfo(owner=owner, repo=name, number=pr_number).run_id
    result_store = ctx.obj["result_store"]

    try:
        if clear:
            result_store.clear_results(run_id)
            result_store.clear_displayed(run_id)
            console.print(f"[green]Cleared stored results for {run_id}.[/green]")
            return
        results = result_store.get_results(run_id)
        displayed = result_store.get_displayed(run_id)
    except PersistenceError as e:
        raise click.ClickException(str(e))

    if not results and displayed is None:
        console.print("[yellow]No review results found.[/yellow]")
        return

    table = Table(title=f"Review results — {run_id}", show_header=True, header_style="bold cyan")
    table.add_column("Step", style="bold")
    table.add_column("Name")
    table.add_column("Length", justify="right", width=8)
    table.add_column("Finished At", width=20)
    for r in results:
        table.add_row(r.step_id, r.step_name, str(len(r.content)), r.timestamp[:19].replace("T", " "))
    console.print(table)

    if full:
        for r in results:
            console.print(Panel(Markdown(r.content), title=f"{r.step_id} — {r.step_name}"))
    elif displayed is not None:
        console.print(Panel(Markdown(displayed.content), title="Displayed result"))
