"""Delete rewrite branches whose last commit is older than the retention window."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from doclens_core.gh.host import HostClient
from doclens_core.models import RepositoryContext
from doclens_core.result import Err
from doclens_core.rewrite import DEFAULT_BRANCH_PREFIX, DEFAULT_RETENTION_DAYS

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    deleted: list[str] = field(default_factory=list)
    kept: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


def sweep_rewrite_branches(
    host: HostClient,
    ctx: RepositoryContext,
    *,
    retention_days: int = DEFAULT_RETENTION_DAYS,
    prefix: str = DEFAULT_BRANCH_PREFIX,
    now: datetime | None = None,
) -> SweepReport:
    report = SweepReport()
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=retention_days)

    branches = host.list_branches(ctx)
    if isinstance(branches, Err):
        logger.warning("Skipping rewrite branch cleanup; could not list branches: %s", branches)
        return report

    for name in branches.value:
        if not name.startswith(prefix):
            continue

        date = host.get_commit_date(ctx, name)
        if isinstance(date, Err):
            logger.warning("Could not read last commit of %s: %s", name, date)
            report.failed.append(name)
            continue

        if date.value >= cutoff:
            report.kept.append(name)
            continue

        deleted = host.delete_branch(ctx, name)
        if isinstance(deleted, Err):
            logger.warning("Failed to delete branch %s: %s", name, deleted)
            report.failed.append(name)
        else:
            logger.info("Deleted old rewrite branch %s (last commit %s)", name, date.value.date().isoformat())
            report.deleted.append(name)

    return report
