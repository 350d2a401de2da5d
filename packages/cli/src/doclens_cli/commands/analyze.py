"""analyze command: score a pull request's documents and propose edits."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape

from doclens_core.gh.pull_request import get_pull_requests, get_repo
from doclens_core.result import Err
from doclens_core.runner import RunSummary, run_analysis

console = Console()


def _report(summary: RunSummary) -> None:
    console.print(
        f"\n[bold]{len(summary.analyzed_files)}[/bold] document(s) analyzed, "
        f"[bold]{len(summary.skipped_files)}[/bold] skipped, "
        f"[bold]{len(summary.suggestions)}[/bold] suggestion(s)."
    )
    if summary.delivery is not None and summary.delivery.degraded:
        console.print(
            f"[yellow]Some suggestions could not be posted ({len(summary.delivery.errors)} error(s)).[/yellow]"
        )
    if summary.rewrite is not None and summary.rewrite.partial:
        console.print(
            f"[yellow]Rewrite branch updated partially; not written: "
            f"{', '.join(summary.rewrite.failed_files)}[/yellow]"
        )
    if isinstance(summary.comment, Err):
        console.print(f"[yellow]Summary comment not posted: {escape(str(summary.comment))}[/yellow]")
    if summary.sweep is not None and summary.sweep.deleted:
        console.print(f"Deleted {len(summary.sweep.deleted)} stale rewrite branch(es).")


@click.command("analyze")
@click.option("--repo", required=True, help="GitHub repository in owner/name format.")
@click.option(
    "--pr",
    "pr_number",
    type=int,
    default=None,
    help="Pull request number. Omit to list open PRs interactively.",
)
@click.option(
    "--model",
    type=click.Choice(["anthropic", "openai"]),
    default=None,
    help="Scoring engine provider. Overrides config file.",
)
@click.option("--dialect", default=None, help="Language dialect, e.g. american_english.")
@click.option("--tone", default=None, help="Target tone, e.g. formal.")
@click.option("--style-guide", "style_guide", default=None, help="Named style guide, e.g. ap or chicago.")
@click.option("--no-suggestions", is_flag=True, help="Do not post inline suggestions.")
@click.option("--no-rewrite", is_flag=True, help="Do not create or update the rewrite branch.")
@click.option("--no-cleanup", is_flag=True, help="Do not delete stale rewrite branches.")
@click.option("--no-summary", is_flag=True, help="Do not post or update the summary comment.")
@click.option(
    "--shadow",
    "-s",
    is_flag=True,
    help="Dry-run mode: print suggestions without writing anything to GitHub.",
)
@click.pass_context
def analyze_cmd(
    ctx,
    repo: str,
    pr_number: int | None,
    model: str | None,
    dialect: str | None,
    tone: str | None,
    style_guide: str | None,
    no_suggestions: bool,
    no_rewrite: bool,
    no_cleanup: bool,
    no_summary: bool,
    shadow: bool,
):
    """Analyze the documents changed by a pull request.

    Scores every added or modified document with the style engine, posts
    the engine's edits as inline suggestions, mirrors the full rewrite on
    an auxiliary branch and pull request and keeps one summary comment with
    the scores up to date.

    \b
    Required environment variables:
      GITHUB_TOKEN         GitHub token (or use gh CLI)
      ANTHROPIC_API_KEY    Required when using --model anthropic
      OPENAI_API_KEY       Required when using --model openai
    """
    from doclens_cli.auth import resolve_github_token
    from doclens_core.config import load_config

    config_path = (ctx.obj or {}).get("config_path", ".doclens.yml")
    overrides = {"model": model, "dialect": dialect, "tone": tone, "style_guide": style_guide}
    if no_suggestions:
        overrides["suggestions"] = False
    if no_rewrite:
        overrides["rewrite"] = False
    if no_cleanup:
        overrides["cleanup"] = False
    if no_summary:
        overrides["summary_comment"] = False
    config = load_config(config_path, cli_overrides=overrides)

    token = resolve_github_token()
    if not token:
        raise click.UsageError(
            "No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.\n"
            "Create a token at https://github.com/settings/tokens"
        )
    config["github_token"] = token

    if config["model"] == "anthropic" and not config.get("anthropic_api_key"):
        raise click.UsageError("ANTHROPIC_API_KEY environment variable is not set.")
    if config["model"] == "openai" and not config.get("openai_api_key"):
        raise click.UsageError("OPENAI_API_KEY environment variable is not set.")

    this_repo = get_repo(repo, token=token)

    if pr_number is None:
        prs = list(get_pull_requests(this_repo))
        if not prs:
            console.print("[yellow]No open pull requests found.[/yellow]")
            return
        console.print("\nOpen pull requests:")
        for pr in prs:
            console.print(f"  [bold]#{pr.number}[/bold]  {pr.title}")
        pr_number = click.prompt("\nEnter the pull request number", type=int)

    try:
        summary = run_analysis(
            repo=repo,
            pr_number=pr_number,
            config=config,
            shadow=shadow,
            repo_obj=this_repo,
        )
    except ValueError as e:
        raise click.ClickException(str(e))

    if summary is not None:
        _report(summary)
