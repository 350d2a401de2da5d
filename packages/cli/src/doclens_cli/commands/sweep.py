"""sweep command: delete stale rewrite branches."""

from __future__ import annotations

import click
from rich.console import Console

from doclens_core.gh.host import GitHubHost
from doclens_core.models import RepositoryContext
from doclens_core.sweeper import sweep_rewrite_branches

console = Console()


@click.command("sweep")
@click.option("--repo", required=True, help="GitHub repository in owner/name format.")
@click.option("--days", type=int, default=None, help="Retention window in days. Overrides config file.")
@click.pass_context
def sweep_cmd(ctx, repo: str, days: int | None):
    """Delete rewrite branches whose last commit is older than the retention window."""
    from doclens_cli.auth import resolve_github_token
    from doclens_core.config import load_config

    config = load_config((ctx.obj or {}).get("config_path", ".doclens.yml"), cli_overrides={"retention_days": days})

    token = resolve_github_token()
    if not token:
        raise click.UsageError("No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.")

    owner, sep, name = repo.partition("/")
    if not sep or not owner or not name:
        raise click.BadParameter("expected owner/name", param_hint="--repo")

    host = GitHubHost.from_token(token, config.get("max_retries"))
    report = sweep_rewrite_branches(
        host,
        RepositoryContext(owner=owner, repo=name),
        retention_days=config["retention_days"],
        prefix=config["rewrite_branch_prefix"],
    )

    for branch in report.deleted:
        console.print(f"  [red]deleted[/red] {branch}")
    console.print(
        f"[bold]{len(report.deleted)}[/bold] deleted, {len(report.kept)} kept, {len(report.failed)} failed."
    )
