"""Mirror the engine's rewrites onto an auxiliary branch and pull request.

The branch name depends on the pull request number alone, so every run for
the same pull request reconciles the same branch and the same rewrite PR.
Branch presence is the only idempotency signal: each run resets the branch
to the pull request's current head and reapplies the latest rewrites.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from doclens_core.gh.host import HostClient
from doclens_core.models import AnalysisResult, PullRequestContext, RewriteBranch, RewritePullRequest
from doclens_core.result import Err, ErrorKind

logger = logging.getLogger(__name__)

DEFAULT_BRANCH_PREFIX = "doclens-rewrite-"
DEFAULT_RETENTION_DAYS = 7


@dataclass
class RewriteOutcome:
    branch: RewriteBranch | None = None
    pull_request: RewritePullRequest | None = None
    written_files: list[str] = field(default_factory=list)
    failed_files: list[str] = field(default_factory=list)
    errors: list[Err] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.errors) and bool(self.written_files)

    @property
    def url(self) -> str | None:
        return self.pull_request.url if self.pull_request else None


def rewrite_branch_name(pr_number: int, prefix: str = DEFAULT_BRANCH_PREFIX) -> str:
    return f"{prefix}{pr_number}"


def build_rewrite_pr_body(
    ctx: PullRequestContext,
    written_files: list[str],
    head_sha: str,
    retention_days: int = DEFAULT_RETENTION_DAYS,
) -> str:
    file_list = "\n".join(f"- `{path}`" for path in written_files)
    return f"""## doclens rewrite suggestions

This pull request contains the style engine's rewrites of the documents changed in #{ctx.number}.

### Summary
- **Files updated**: {len(written_files)}
- **Original PR**: #{ctx.number}
- **Head commit**: `{head_sha}`

### Files
{file_list}

### How to apply
Review the changes here and merge this pull request into `{ctx.head_ref}` to apply them to #{ctx.number}.
You can also copy individual changes by hand.

This branch is regenerated on every analysis run and deleted after {retention_days} days without new commits."""


def _resolve_head_sha(host: HostClient, ctx: PullRequestContext) -> str:
    res = host.get_branch_sha(ctx, ctx.head_ref)
    if isinstance(res, Err):
        # The head branch lives in a fork or was just deleted; the PR's head sha is still valid.
        logger.info("Could not read head branch %s (%s); using %s", ctx.head_ref, res, ctx.head_sha[:7])
        return ctx.head_sha
    return res.value


def _prepare_branch(host: HostClient, ctx: PullRequestContext, name: str, head_sha: str) -> Err | None:
    existing = host.get_branch_sha(ctx, name)
    if isinstance(existing, Err) and existing.kind is not ErrorKind.NOT_FOUND:
        return existing

    if isinstance(existing, Err):
        created = host.create_branch(ctx, name, head_sha)
        if not isinstance(created, Err):
            logger.info("Created branch %s from %s", name, ctx.head_ref)
            return None
        if created.kind is not ErrorKind.CONFLICT:
            return created
        logger.info("Branch %s appeared concurrently; resetting it instead", name)

    reset = host.reset_branch(ctx, name, head_sha)
    if isinstance(reset, Err):
        return reset
    logger.info("Reset branch %s to the latest %s (%s)", name, ctx.head_ref, head_sha[:7])
    return None


def _ensure_pull_request(
    host: HostClient,
    ctx: PullRequestContext,
    name: str,
    written_files: list[str],
    head_sha: str,
    retention_days: int,
) -> RewritePullRequest | Err:
    found = host.find_open_pull(ctx, name)
    if isinstance(found, Err):
        return found
    if found.value is not None:
        logger.info("Pull request already exists for %s: %s", name, found.value.url)
        return found.value

    created = host.create_pull(
        ctx,
        head=name,
        base=ctx.head_ref,
        title=f"doclens suggestions for #{ctx.number}",
        body=build_rewrite_pr_body(ctx, written_files, head_sha, retention_days),
    )
    if isinstance(created, Err):
        if created.kind is ErrorKind.CONFLICT:
            retry = host.find_open_pull(ctx, name)
            if not isinstance(retry, Err) and retry.value is not None:
                return retry.value
        return created
    logger.info("Created rewrite pull request %s", created.value.url)
    return created.value


def sync_rewrite_branch(
    host: HostClient,
    ctx: PullRequestContext,
    results: list[AnalysisResult],
    *,
    prefix: str = DEFAULT_BRANCH_PREFIX,
    retention_days: int = DEFAULT_RETENTION_DAYS,
) -> RewriteOutcome:
    """Create or refresh the rewrite branch for ``ctx`` and return the rewrite PR.

    File writes are sequential: each one moves the branch ref, and the next
    write's blob lookup must see that new head.
    """
    outcome = RewriteOutcome()
    rewrites = [r for r in results if r.has_rewrite]
    if not rewrites:
        logger.info("No rewritten documents for #%d; leaving the rewrite branch alone", ctx.number)
        return outcome

    name = rewrite_branch_name(ctx.number, prefix)
    head_sha = _resolve_head_sha(host, ctx)

    failed = _prepare_branch(host, ctx, name, head_sha)
    if failed is not None:
        logger.error("Could not prepare rewrite branch %s: %s", name, failed)
        outcome.errors.append(failed)
        return outcome

    branch_head = head_sha
    for i, result in enumerate(rewrites):
        blob = host.get_file_sha(ctx, result.file_path, name)
        if isinstance(blob, Err):
            written = blob
        else:
            written = host.put_file(
                ctx,
                result.file_path,
                name,
                result.rewritten_content,
                f"Apply doclens suggestions to {result.file_path}",
                sha=blob.value,
            )
        if isinstance(written, Err):
            logger.error("Failed to write %s to %s: %s", result.file_path, name, written)
            outcome.errors.append(written)
            outcome.failed_files.extend(r.file_path for r in rewrites[i:])
            break
        branch_head = written.value
        outcome.written_files.append(result.file_path)
        logger.info("Applied rewrite to %s", result.file_path)

    outcome.branch = RewriteBranch(name=name, base_ref=ctx.head_ref, head_sha=branch_head)
    if not outcome.written_files:
        return outcome

    pull = _ensure_pull_request(host, ctx, name, outcome.written_files, head_sha, retention_days)
    if isinstance(pull, Err):
        logger.error("Could not open rewrite pull request for %s: %s", name, pull)
        outcome.errors.append(pull)
    else:
        outcome.pull_request = pull

    if outcome.partial:
        logger.warning(
            "Rewrite branch %s updated partially: %d written, %d not written",
            name,
            len(outcome.written_files),
            len(outcome.failed_files),
        )
    return outcome
