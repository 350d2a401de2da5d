"""Core analysis orchestration.

Scores the documents a pull request changes, then fans the results out to
two independent pipelines (inline suggestions and the rewrite branch), posts
a summary comment and finally sweeps stale rewrite branches. A run that
proposes no change makes no remote calls at all.

The scoring output is the primary product of a run: failures in the
secondary pipelines are logged and never fail the run.
"""

from __future__ import annotations

import fnmatch
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from github import GithubException
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from doclens_core.config import load_style_guide
from doclens_core.delivery import DeliveryReport, deliver_suggestions
from doclens_core.gh.host import GitHubHost, HostClient
from doclens_core.gh.pull_request import build_context, get_changed_files, get_pull, get_repo
from doclens_core.models import AnalysisOptions, AnalysisResult, CommitSuggestion
from doclens_core.providers.anthropic import AnthropicScorer
from doclens_core.providers.openai import OpenAIScorer
from doclens_core.result import Result
from doclens_core.rewrite import RewriteOutcome, sync_rewrite_branch
from doclens_core.suggestions import create_commit_suggestions
from doclens_core.summary import build_summary_comment, post_summary_comment
from doclens_core.sweeper import SweepReport, sweep_rewrite_branches
from doclens_core.utils.files import is_document_file
from doclens_core.utils.scores import calculate_score_summary, quality_status

console = Console()
logger = logging.getLogger(__name__)

_STATUS_COLOR = {"success": "green", "warning": "yellow", "error": "red"}


@dataclass
class RunSummary:
    """Result returned by run_analysis, consumed by the CLI for reporting."""

    repo: str
    pr_number: int
    head_sha: str
    analyzed_files: list[str] = field(default_factory=list)
    skipped_files: list[str] = field(default_factory=list)
    results: list[AnalysisResult] = field(default_factory=list)
    suggestions: list[CommitSuggestion] = field(default_factory=list)
    delivery: DeliveryReport | None = None
    rewrite: RewriteOutcome | None = None
    comment: Result[int] | None = None
    sweep: SweepReport | None = None
    analyzed_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def rewrite_pr_url(self) -> str | None:
        return self.rewrite.url if self.rewrite else None


def _get_scorer(config: dict):
    model = config["model"]
    if model == "anthropic":
        return AnthropicScorer(api_key=config["anthropic_api_key"])
    if model == "openai":
        return OpenAIScorer(api_key=config["openai_api_key"])
    raise ValueError(f"Unknown model provider: {model!r}. Choose 'anthropic' or 'openai'.")


def _is_excluded(filename: str, patterns: list[str]) -> bool:
    """Return True if filename matches any exclude pattern.

    Supports:
    - fnmatch globs on the full path: "docs/generated/*.md"
    - fnmatch globs on the basename: "CHANGELOG.md", "*.txt"
    - Directory names/prefixes: "vendor/", "drafts" (matches any file within that tree)
    """
    for pattern in patterns:
        if fnmatch.fnmatch(filename, pattern):
            return True
        if fnmatch.fnmatch(filename.rsplit("/", 1)[-1], pattern):
            return True
        prefix = pattern.rstrip("/") + "/"
        if filename.startswith(prefix) or ("/" + prefix) in filename:
            return True
    return False


def _analysis_options(config: dict) -> AnalysisOptions:
    return AnalysisOptions(dialect=config["dialect"], tone=config["tone"], style_guide=config["style_guide"])


def collect_documents(repo, files, head_sha: str, config: dict) -> tuple[list[tuple[str, str]], list[str]]:
    """Read the changed documents at ``head_sha``. Returns (documents, skipped paths)."""
    exclude_patterns = config.get("exclude", [])
    max_chars = config.get("max_chars_per_file", 50000)
    documents: list[tuple[str, str]] = []
    skipped: list[str] = []

    for file in files:
        if _is_excluded(file.filename, exclude_patterns) or not is_document_file(file.filename):
            console.print(f"  Skipping: {file.filename}")
            skipped.append(file.filename)
            continue
        try:
            content = repo.get_contents(file.filename, ref=head_sha).decoded_content.decode("utf-8", errors="replace")
        except GithubException as e:
            console.print(f"  [red]Could not fetch {file.filename}: {e}[/red]")
            skipped.append(file.filename)
            continue
        if len(content) > max_chars:
            console.print(f"  [yellow]Skipping {file.filename}: {len(content)} chars exceeds {max_chars}[/yellow]")
            skipped.append(file.filename)
            continue
        documents.append((file.filename, content))

    return documents, skipped


def print_score_table(results: list[AnalysisResult]) -> None:
    if not results:
        console.print("[yellow]No documents were analyzed.[/yellow]")
        return
    table = Table(title="Style scores", show_header=True)
    table.add_column("File")
    for name in ("Quality", "Clarity", "Grammar", "Tone", "Style guide", "Terminology"):
        table.add_column(name, justify="right")
    for r in results:
        color = _STATUS_COLOR[quality_status(r.scores.quality)]
        table.add_row(
            r.file_path,
            f"[{color}]{r.scores.quality:.0f}[/{color}]",
            f"{r.scores.clarity:.0f}",
            f"{r.scores.grammar:.0f}",
            f"{r.scores.tone:.0f}",
            f"{r.scores.style_guide:.0f}",
            f"{r.scores.terminology:.0f}",
        )
    console.print(table)
    summary = calculate_score_summary(results)
    console.print(
        f"[bold]{summary.total_files}[/bold] document(s) · average quality "
        f"[bold]{summary.average_quality}[/bold] · clarity {summary.average_clarity} · tone {summary.average_tone}"
    )


def print_shadow_suggestions(suggestions: list[CommitSuggestion]) -> None:
    """Print suggestions to the terminal without posting to GitHub."""
    if not suggestions:
        console.print("[yellow]Shadow mode: no suggestions generated.[/yellow]")
        return
    console.print(f"\n[bold]Shadow run: {len(suggestions)} suggestion(s) (not posted)[/bold]\n")
    for s in suggestions:
        console.print(f"[bold cyan]{s.file_path}[/bold cyan]  line [bold]{s.line_number}[/bold]")
        for line in s.suggestion_text.splitlines() or [""]:
            console.print(f"  [green]+ {escape(line)}[/green]")
        console.print()


def _run_secondary(operation: str, fn: Callable[[], Any]) -> Any:
    try:
        return fn()
    except Exception:
        logger.exception("%s failed; the analysis results are unaffected", operation)
        console.print(f"[yellow]{operation} failed, but the analysis completed.[/yellow]")
        return None


def run_analysis(
    repo: str,
    pr_number: int,
    config: dict,
    shadow: bool = False,
    repo_obj=None,
    host: HostClient | None = None,
) -> RunSummary | None:
    """Run the full analysis pipeline for one pull request.

    Returns None only on early exits (draft skip). Raises ValueError when the
    pull request does not exist.
    """
    this_repo = repo_obj if repo_obj is not None else get_repo(repo, token=config["github_token"])

    try:
        this_pr = get_pull(this_repo, pr_number)
    except GithubException:
        raise ValueError(f"PR #{pr_number} not found in {repo}.")

    if this_pr.draft and not config.get("analyze_draft_prs", False):
        console.print("[yellow]Skipping draft PR. Set analyze_draft_prs: true in .doclens.yml to analyze drafts.[/yellow]")
        return None

    ctx = build_context(this_pr)
    summary = RunSummary(repo=repo, pr_number=pr_number, head_sha=ctx.head_sha)

    files = sorted(get_changed_files(this_pr), key=lambda f: f.filename)
    console.print(f"\n[bold]Analyzing #{pr_number}[/bold] ({len(files)} changed file(s))")
    documents, summary.skipped_files = collect_documents(this_repo, files, ctx.head_sha, config)

    if not documents:
        console.print("[yellow]No supported documents to analyze.[/yellow]")
        return summary

    scorer = _get_scorer(config)
    style_guide = load_style_guide(config)
    summary.results = scorer.analyze_batch(documents, _analysis_options(config), style_guide)
    summary.analyzed_files = [r.file_path for r in summary.results]
    print_score_table(summary.results)

    summary.suggestions = create_commit_suggestions(summary.results)
    console.print(f"{len(summary.suggestions)} suggestion(s) synthesized.")

    if shadow:
        print_shadow_suggestions(summary.suggestions)
        return summary

    if not summary.suggestions and not any(r.has_rewrite for r in summary.results):
        console.print("No changes proposed; nothing to post.")
        return summary

    host = host if host is not None else GitHubHost.from_token(config["github_token"], config.get("max_retries"))
    prefix = config.get("rewrite_branch_prefix", "doclens-rewrite-")
    retention_days = config.get("retention_days", 7)
    patches = {f.filename: f.patch or "" for f in files}

    if config.get("suggestions", True) and summary.suggestions:
        summary.delivery = _run_secondary(
            "Suggestion delivery",
            lambda: deliver_suggestions(
                host,
                ctx,
                summary.suggestions,
                patches,
                max_comments_per_review=config.get("max_comments_per_review", 100),
                max_batches=config.get("max_review_batches", 1),
                max_workers=config.get("max_workers", 4),
            ),
        )
        if summary.delivery is not None:
            console.print(
                f"Suggestions: {summary.delivery.state.value} "
                f"({summary.delivery.created} created, {summary.delivery.updated} updated)"
            )

    if config.get("rewrite", True):
        summary.rewrite = _run_secondary(
            "Rewrite branch",
            lambda: sync_rewrite_branch(host, ctx, summary.results, prefix=prefix, retention_days=retention_days),
        )
        if summary.rewrite_pr_url:
            console.print(f"[green]Rewrite PR: {summary.rewrite_pr_url}[/green]")

    if config.get("summary_comment", True):
        posted = summary.delivery.created + summary.delivery.updated if summary.delivery else 0
        body = build_summary_comment(summary.results, summary.rewrite_pr_url, posted)
        summary.comment = _run_secondary("Summary comment", lambda: post_summary_comment(host, ctx, body))

    if config.get("cleanup", True):
        summary.sweep = _run_secondary(
            "Rewrite branch cleanup",
            lambda: sweep_rewrite_branches(host, ctx, retention_days=retention_days, prefix=prefix),
        )

    return summary
