from __future__ import annotations

from github import Github

from doclens_core.models import PullRequestContext

_ANALYZABLE_STATUSES = ("added", "modified")


def get_repo(repo_name: str, token: str):
    return Github(token).get_repo(repo_name)


def get_pull(repo, pr_number: int):
    return repo.get_pull(pr_number)


def get_pull_requests(repo, state: str = "open"):
    return repo.get_pulls(state=state)


def get_changed_files(pr):
    """Files the pull request adds or modifies; removed and renamed-only files are skipped."""
    return [f for f in pr.get_files() if f.status in _ANALYZABLE_STATUSES]


def build_context(pr) -> PullRequestContext:
    """Capture the pull request coordinates every component needs."""
    base_repo = pr.base.repo
    return PullRequestContext(
        owner=base_repo.owner.login,
        repo=base_repo.name,
        number=pr.number,
        head_ref=pr.head.ref,
        head_sha=pr.head.sha,
        base_ref=pr.base.ref,
    )
