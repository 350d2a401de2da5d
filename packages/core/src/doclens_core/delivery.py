"""Deliver synthesized suggestions to a pull request as review comments.

The delivery of one batch moves through:

    NOT_STARTED → PERMISSION_CHECKED → PENDING_REVIEW_CLEARED → RECONCILED → SUBMITTED

and stops early in PERMISSION_DENIED, NOT_FOUND or FAILED when nothing can
be written. PARTIAL_FAILURE means some updates or creates failed while the
rest went through.

Pending-review clearing must finish before any comment is created or
updated: GitHub allows one pending review per author.

Comments are anchored by their position in the pull request's own diff, so
suggestions on lines that diff does not show are dropped before any call.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum

from rich.console import Console

from doclens_core.diff import diff_positions
from doclens_core.gh.host import HostClient
from doclens_core.models import CommitSuggestion, PullRequestContext, ReviewCommentInfo
from doclens_core.result import Err, ErrorKind

console = Console()
logger = logging.getLogger(__name__)

MAX_COMMENTS_PER_REVIEW = 100
SUGGESTION_MARKER = "<!-- doclens-suggestion -->"
_PENDING_SUBMIT_BODY = "Submitted to make room for new doclens suggestions."


class DeliveryState(str, Enum):
    NOT_STARTED = "not_started"
    PERMISSION_CHECKED = "permission_checked"
    PENDING_REVIEW_CLEARED = "pending_review_cleared"
    RECONCILED = "reconciled"
    SUBMITTED = "submitted"
    PERMISSION_DENIED = "permission_denied"
    NOT_FOUND = "not_found"
    PARTIAL_FAILURE = "partial_failure"
    FAILED = "failed"


@dataclass
class DeliveryReport:
    state: DeliveryState = DeliveryState.NOT_STARTED
    created: int = 0
    updated: int = 0
    dropped: int = 0
    outside_diff: int = 0
    submitted_pending: list[int] = field(default_factory=list)
    errors: list[Err] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return self.state is DeliveryState.PARTIAL_FAILURE


def format_suggestion_body(suggestion: CommitSuggestion) -> str:
    return (
        "**doclens suggestion**\n\n"
        f"```suggestion\n{suggestion.suggestion_text}\n```\n\n"
        "_Generated automatically from the style engine's rewrite of this document._\n"
        f"{SUGGESTION_MARKER}"
    )


def index_existing_suggestions(comments: list[ReviewCommentInfo]) -> dict[tuple[str, int], int]:
    """Map (path, position) → id of the live doclens suggestion comment anchored there.

    Outdated comments (no position on the current diff) are skipped. When two
    marked comments share an anchor the first one listed wins.
    """
    existing: dict[tuple[str, int], int] = {}
    for c in comments:
        if SUGGESTION_MARKER not in c.body or c.position is None:
            continue
        existing.setdefault((c.path, c.position), c.id)
    return existing


def anchor_suggestions(
    suggestions: list[CommitSuggestion],
    patches: dict[str, str],
) -> tuple[list[tuple[int, CommitSuggestion]], list[CommitSuggestion]]:
    """Resolve each suggestion's line to its position in the pull request diff.

    Returns (anchored, outside) where ``anchored`` holds (position, suggestion)
    pairs and ``outside`` the suggestions whose line the PR diff does not show.
    """
    tables: dict[str, dict[int, int]] = {}
    anchored: list[tuple[int, CommitSuggestion]] = []
    outside: list[CommitSuggestion] = []
    for suggestion in suggestions:
        path = suggestion.file_path
        if path not in tables:
            tables[path] = diff_positions(patches.get(path) or "")
        position = tables[path].get(suggestion.line_number)
        if position is None:
            outside.append(suggestion)
        else:
            anchored.append((position, suggestion))
    return anchored, outside


def plan_operations(
    anchored: list[tuple[int, CommitSuggestion]],
    existing: dict[tuple[str, int], int],
) -> tuple[list[tuple[int, CommitSuggestion]], list[tuple[int, CommitSuggestion]]]:
    """Split anchored suggestions into updates of existing comments and new comments.

    A suggestion updates the live comment at the same (path, position);
    every other suggestion is created.
    """
    updates: list[tuple[int, CommitSuggestion]] = []
    creates: list[tuple[int, CommitSuggestion]] = []
    for position, suggestion in anchored:
        comment_id = existing.get((suggestion.file_path, position))
        if comment_id is not None:
            updates.append((comment_id, suggestion))
        else:
            creates.append((position, suggestion))
    return updates, creates


def partition_batches(
    items: list,
    batch_size: int = MAX_COMMENTS_PER_REVIEW,
    max_batches: int = 1,
) -> tuple[list[list], int]:
    """Chunk ``items`` into at most ``max_batches`` batches. Returns (batches, dropped)."""
    batch_size = max(1, min(batch_size, MAX_COMMENTS_PER_REVIEW))
    max_batches = max(1, max_batches)
    limit = batch_size * max_batches
    kept = items[:limit]
    batches = [kept[i : i + batch_size] for i in range(0, len(kept), batch_size)]
    return batches, max(0, len(items) - limit)


def _to_api_comment(position: int, suggestion: CommitSuggestion) -> dict:
    return {
        "path": suggestion.file_path,
        "position": position,
        "body": format_suggestion_body(suggestion),
    }


def _clear_pending_reviews(host: HostClient, ctx: PullRequestContext, report: DeliveryReport) -> Err | None:
    """Submit leftover pending reviews. Returns an Err only when the PR itself is missing."""
    reviews = host.list_reviews(ctx)
    if isinstance(reviews, Err):
        if reviews.kind is ErrorKind.NOT_FOUND:
            return reviews
        logger.warning("Could not look up pending reviews: %s", reviews)
        report.errors.append(reviews)
        return None

    for review in reviews.value:
        if review.state != "PENDING":
            continue
        submitted = host.submit_review(ctx, review.id, _PENDING_SUBMIT_BODY, "COMMENT")
        if isinstance(submitted, Err):
            logger.warning("Failed to submit pending review #%d: %s", review.id, submitted)
            report.errors.append(submitted)
        else:
            logger.info("Submitted existing pending review #%d", review.id)
            report.submitted_pending.append(review.id)
    return None


def deliver_suggestions(
    host: HostClient,
    ctx: PullRequestContext,
    suggestions: list[CommitSuggestion],
    patches: dict[str, str],
    *,
    max_comments_per_review: int = MAX_COMMENTS_PER_REVIEW,
    max_batches: int = 1,
    max_workers: int = 4,
) -> DeliveryReport:
    report = DeliveryReport()
    if not suggestions:
        logger.info("No suggestions to deliver for #%d", ctx.number)
        return report

    anchored, outside = anchor_suggestions(suggestions, patches)
    if outside:
        report.outside_diff = len(outside)
        logger.warning(
            "Dropping %d suggestion(s) on lines the pull request diff does not show: %s",
            len(outside),
            ", ".join(f"{s.file_path}:{s.line_number}" for s in outside),
        )
    if not anchored:
        logger.info("No suggestion of #%d falls inside the pull request diff", ctx.number)
        return report

    access = host.check_write_access(ctx)
    if isinstance(access, Err):
        report.errors.append(access)
        if access.kind is ErrorKind.PERMISSION_DENIED:
            report.state = DeliveryState.PERMISSION_DENIED
            console.print(
                "[red]Permission denied: cannot post suggestions. Make sure the GitHub token has "
                '"pull-requests: write" and "contents: write" permissions.[/red]'
            )
        elif access.kind is ErrorKind.NOT_FOUND:
            report.state = DeliveryState.NOT_FOUND
            logger.warning("Repository %s not found; skipping suggestions", ctx.full_name)
        else:
            report.state = DeliveryState.FAILED
            logger.error("Could not verify repository access: %s", access)
        return report
    report.state = DeliveryState.PERMISSION_CHECKED

    missing = _clear_pending_reviews(host, ctx, report)
    if missing is not None:
        report.errors.append(missing)
        report.state = DeliveryState.NOT_FOUND
        logger.warning("Pull request #%d not found; skipping suggestions", ctx.number)
        return report
    report.state = DeliveryState.PENDING_REVIEW_CLEARED

    comments = host.list_review_comments(ctx)
    if isinstance(comments, Err):
        logger.warning("Could not list existing review comments, creating all suggestions anew: %s", comments)
        report.errors.append(comments)
        existing: dict[tuple[str, int], int] = {}
    else:
        existing = index_existing_suggestions(comments.value)

    updates, creates = plan_operations(anchored, existing)
    batches, dropped = partition_batches(creates, max_comments_per_review, max_batches)
    if dropped:
        report.dropped = dropped
        logger.warning(
            "Too many suggestions (%d new). Dropping %d beyond the limit of %d per review x %d review(s).",
            len(creates),
            dropped,
            min(max_comments_per_review, MAX_COMMENTS_PER_REVIEW),
            max_batches,
        )
    report.state = DeliveryState.RECONCILED

    def _update(comment_id: int, suggestion: CommitSuggestion):
        return host.update_review_comment(ctx, comment_id, format_suggestion_body(suggestion))

    def _create(batch: list[tuple[int, CommitSuggestion]], index: int):
        label = f" ({index}/{len(batches)})" if len(batches) > 1 else ""
        body = f"doclens found {len(batch)} suggestion(s) for this pull request{label}."
        return host.create_review(ctx, body, [_to_api_comment(pos, s) for pos, s in batch], "COMMENT")

    failures: list[Err] = []
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        futures = {executor.submit(_update, cid, s): ("update", 1) for cid, s in updates}
        for i, batch in enumerate(batches, 1):
            futures[executor.submit(_create, batch, i)] = ("create", len(batch))
        for future in as_completed(futures):
            kind, count = futures[future]
            result = future.result()
            if isinstance(result, Err):
                logger.warning("Suggestion %s failed: %s", kind, result)
                failures.append(result)
            elif kind == "update":
                report.updated += count
            else:
                report.created += count

    report.errors.extend(failures)
    report.state = DeliveryState.PARTIAL_FAILURE if failures else DeliveryState.SUBMITTED
    logger.info(
        "Delivered suggestions on #%d: %d created, %d updated, %d dropped, %d outside the diff, %d failed",
        ctx.number,
        report.created,
        report.updated,
        report.dropped,
        report.outside_diff,
        len(failures),
    )
    return report
