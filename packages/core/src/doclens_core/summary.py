"""One summary comment per pull request with the style scores and the rewrite PR link.

The comment carries a hidden marker so later runs edit it in place instead
of stacking a new comment on every push.
"""

from __future__ import annotations

import logging

from doclens_core.gh.host import HostClient
from doclens_core.models import AnalysisResult, PullRequestContext
from doclens_core.result import Err, Ok, Result
from doclens_core.utils.scores import calculate_score_summary, quality_status

logger = logging.getLogger(__name__)

SUMMARY_MARKER = "<!-- doclens-summary -->"

_STATUS_ICON = {"success": "🟢", "warning": "🟡", "error": "🔴"}


def build_summary_comment(
    results: list[AnalysisResult],
    rewrite_pr_url: str | None = None,
    suggestion_count: int = 0,
) -> str:
    summary = calculate_score_summary(results)
    lines = ["## doclens style report\n"]

    icon = _STATUS_ICON[quality_status(summary.average_quality)]
    lines.append(
        f"> {icon} Average quality **{summary.average_quality:g}** across **{summary.total_files}** document(s)"
        f" · clarity {summary.average_clarity:g} · tone {summary.average_tone:g}\n"
    )

    if results:
        lines.append("| File | Quality | Clarity | Grammar | Tone | Style guide | Terminology |")
        lines.append("|------|:-------:|:-------:|:-------:|:----:|:-----------:|:-----------:|")
        for r in results:
            s = r.scores
            lines.append(
                f"| `{r.file_path}` "
                f"| {_STATUS_ICON[quality_status(s.quality)]} {s.quality:.0f} "
                f"| {s.clarity:.0f} | {s.grammar:.0f} | {s.tone:.0f} "
                f"| {s.style_guide:.0f} | {s.terminology:.0f} |"
            )

    if suggestion_count:
        lines.append(f"\n{suggestion_count} inline suggestion(s) were posted as review comments.")

    if rewrite_pr_url:
        lines.append("\n### Rewrite available")
        lines.append(
            f"The style engine's full rewrite of the changed documents is in {rewrite_pr_url}. "
            "Merge it into this branch to accept every suggestion at once."
        )

    lines.append(f"\n{SUMMARY_MARKER}")
    return "\n".join(lines)


def post_summary_comment(host: HostClient, ctx: PullRequestContext, body: str) -> Result[int]:
    """Create the summary comment, or update the one an earlier run left. Returns its id."""
    comments = host.list_issue_comments(ctx)
    if isinstance(comments, Err):
        logger.warning("Could not list comments on #%d: %s", ctx.number, comments)
        return comments

    for comment in comments.value:
        if SUMMARY_MARKER in comment.body:
            updated = host.update_issue_comment(ctx, comment.id, body)
            if isinstance(updated, Err):
                logger.warning("Failed to update summary comment %d: %s", comment.id, updated)
                return updated
            logger.info("Updated summary comment on #%d", ctx.number)
            return Ok(comment.id)

    created = host.create_issue_comment(ctx, body)
    if isinstance(created, Err):
        logger.warning("Failed to post summary comment on #%d: %s", ctx.number, created)
        return created
    logger.info("Posted summary comment on #%d", ctx.number)
    return created
