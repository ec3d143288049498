"""review command — run the review pipeline on a pull request."""

from __future__ import annotations

from pathlib import Path

import click
from rich.console import Console

from reviewchain_core.gh.pull_request import fetch_pr_diff, get_pull_requests, get_repo, parse_repo
from reviewchain_core.messages import FETCH_PR_DIFF, START_REVIEW, MessageRouter
from reviewchain_core.notify import ActiveTargets
from reviewchain_core.pipeline import ReviewPipeline
from reviewchain_core.providers.base import create_client
from reviewchain_cli.observer import ConsoleObserver

console = Console()


def _choose_pr(repo: str, token: str | None) -> int:
    if not token:
        raise click.UsageError(
            "Listing open pull requests needs a GitHub token. Pass --pr, set GITHUB_TOKEN "
            "or run `gh auth login` first."
        )
    prs = list(get_pull_requests(get_repo(repo, token=token)))
    if not prs:
        console.print("[yellow]No open pull requests found.[/yellow]")
        raise click.exceptions.Exit(0)
    console.print("\nOpen pull requests:")
    for pr in prs:
        console.print(f"  [bold]#{pr.number}[/bold]  {pr.title}")
    return click.prompt("\nEnter the pull request number", type=int)


@click.command("review")
@click.option("--repo", required=True, help="GitHub repository in owner/name format.")
@click.option(
    "--pr",
    "pr_number",
    type=int,
    default=None,
    help="Pull request number. Omit to list open PRs interactively.",
)
@click.option(
    "--diff-file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Review this diff file instead of downloading the PR diff.",
)
@click.option("--quiet-result", is_flag=True, help="Do not print the final review text.")
@click.pass_context
def review_cmd(ctx, repo: str, pr_number: int | None, diff_file: str | None, quiet_result: bool):
    """Run every enabled review step against the selected AI provider.

    Downloads the pull request diff, sends it through the configured steps in
    order (each step sees the previous step's output) and prints the result.
    Step results are stored so `reviewchain results` can show them later.

    \b
    Configure a provider first:
      reviewchain config set-key openai sk-...
    """
    try:
        owner, name = parse_repo(repo)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--repo")

    settings = ctx.obj["settings"]
    config_store = ctx.obj["config_store"]
    token = settings.get("github_token")

    if pr_number is None:
        pr_number = _choose_pr(repo, token)

    # The CLI plays the page context: it is both the sender of the requests
    # and the observer of the run's events.
    targets = ActiveTargets()
    observer = ConsoleObserver(console, show_result=not quiet_result)
    pipeline = ReviewPipeline(
        config_store,
        ctx.obj["result_store"],
        client_factory=create_client,
        fallback_target=targets.current,
    )
    router = MessageRouter(
        pipeline,
        config_store,
        active_targets=targets,
        diff_fetcher=fetch_pr_diff,
        github_token=token,
    )

    pr_info = {"owner": owner, "repo": name, "number": pr_number}
    if diff_file:
        diff = Path(diff_file).read_text(encoding="utf-8", errors="replace")
    else:
        response = router.handle({"type": FETCH_PR_DIFF, "data": pr_info}, sender=observer)
        if not response["success"]:
            raise click.ClickException(f"Could not fetch the diff for {repo}#{pr_number}: {response['error']}")
        diff = response["data"]

    if not diff.strip():
        console.print("[yellow]The pull request diff is empty. Nothing to review.[/yellow]")
        return

    response = router.handle({"type": START_REVIEW, "data": {"prInfo": pr_info, "diff": diff}}, sender=observer)
    targets.deactivate(observer)
    if not response["success"]:
        raise click.ClickException(response["error"])
