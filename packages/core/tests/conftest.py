"""Shared fixtures: an in-memory HostClient and a pull request context."""

from __future__ import annotations

from datetime import datetime

import pytest

from doclens_core.gh.host import HostClient
from doclens_core.models import (
    IssueCommentInfo,
    PullRequestContext,
    RepositoryContext,
    ReviewCommentInfo,
    ReviewInfo,
    RewritePullRequest,
)
from doclens_core.result import Err, ErrorKind, Ok

HEAD_SHA = "a" * 40


class FakeHost(HostClient):
    """HostClient backed by plain dicts.

    ``failures`` maps a method name to an Err (returned on every call) or to a
    callable receiving the call's arguments and returning an Err or None.
    ``calls`` records every call in order as ``(method, *args)``.
    """

    def __init__(self):
        self.calls: list[tuple] = []
        self.failures: dict = {}
        self.write_access = True
        self.reviews: list[ReviewInfo] = []
        self.comments: list[ReviewCommentInfo] = []
        self.created_reviews: list[dict] = []
        self.updated_comments: dict[int, str] = {}
        self.issue_comments: list[IssueCommentInfo] = []
        self.branches: dict[str, str] = {}
        self.files: dict[str, dict[str, str]] = {}
        self.contents: dict[tuple[str, str], str] = {}
        self.commit_dates: dict[str, datetime] = {}
        self.pulls: list[RewritePullRequest] = []
        self.pull_bodies: dict[int, str] = {}
        self.deleted: list[str] = []
        self._counter = 0

    def _record(self, name: str, *args) -> Err | None:
        self.calls.append((name, *args))
        failure = self.failures.get(name)
        if callable(failure):
            return failure(*args)
        return failure

    def _next(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}{self._counter:04d}"

    def call_names(self) -> list[str]:
        return [c[0] for c in self.calls]

    def _files_at(self, sha: str) -> dict[str, str]:
        for branch, branch_sha in self.branches.items():
            if branch_sha == sha:
                return dict(self.files.get(branch, {}))
        return {}

    # ------------------------------------------------------------------ #

    def check_write_access(self, ctx: RepositoryContext):
        if failure := self._record("check_write_access", ctx):
            return failure
        if not self.write_access:
            return Err(ErrorKind.PERMISSION_DENIED, "no write access", "check write access", 403)
        return Ok(None)

    def list_reviews(self, ctx):
        if failure := self._record("list_reviews", ctx):
            return failure
        return Ok(list(self.reviews))

    def submit_review(self, ctx, review_id, body, event):
        if failure := self._record("submit_review", ctx, review_id, body, event):
            return failure
        self.reviews = [
            ReviewInfo(r.id, "COMMENTED", r.author) if r.id == review_id else r for r in self.reviews
        ]
        return Ok(None)

    def list_review_comments(self, ctx):
        if failure := self._record("list_review_comments", ctx):
            return failure
        return Ok(list(self.comments))

    def update_review_comment(self, ctx, comment_id, body):
        if failure := self._record("update_review_comment", ctx, comment_id, body):
            return failure
        self.updated_comments[comment_id] = body
        return Ok(None)

    def create_review(self, ctx, body, comments, event):
        if failure := self._record("create_review", ctx, body, comments, event):
            return failure
        review_id = len(self.created_reviews) + 1000
        self.created_reviews.append({"id": review_id, "body": body, "comments": comments, "event": event})
        return Ok(review_id)

    def list_issue_comments(self, ctx):
        if failure := self._record("list_issue_comments", ctx):
            return failure
        return Ok(list(self.issue_comments))

    def create_issue_comment(self, ctx, body):
        if failure := self._record("create_issue_comment", ctx, body):
            return failure
        comment = IssueCommentInfo(id=2000 + len(self.issue_comments), body=body, author="doclens")
        self.issue_comments.append(comment)
        return Ok(comment.id)

    def update_issue_comment(self, ctx, comment_id, body):
        if failure := self._record("update_issue_comment", ctx, comment_id, body):
            return failure
        self.issue_comments = [
            IssueCommentInfo(c.id, body, c.author) if c.id == comment_id else c for c in self.issue_comments
        ]
        return Ok(None)

    def get_branch_sha(self, ctx, branch):
        if failure := self._record("get_branch_sha", ctx, branch):
            return failure
        if branch not in self.branches:
            return Err(ErrorKind.NOT_FOUND, "Branch not found", f"read branch {branch}", 404)
        return Ok(self.branches[branch])

    def create_branch(self, ctx, branch, sha):
        if failure := self._record("create_branch", ctx, branch, sha):
            return failure
        if branch in self.branches:
            return Err(ErrorKind.CONFLICT, "Reference already exists", f"create branch {branch}", 422)
        self.files[branch] = self._files_at(sha)
        self.branches[branch] = sha
        return Ok(None)

    def reset_branch(self, ctx, branch, sha):
        if failure := self._record("reset_branch", ctx, branch, sha):
            return failure
        if branch not in self.branches:
            return Err(ErrorKind.NOT_FOUND, "Reference does not exist", f"reset branch {branch}", 404)
        self.files[branch] = self._files_at(sha)
        self.branches[branch] = sha
        return Ok(None)

    def get_file_sha(self, ctx, path, ref):
        if failure := self._record("get_file_sha", ctx, path, ref):
            return failure
        return Ok(self.files.get(ref, {}).get(path))

    def put_file(self, ctx, path, branch, content, message, sha=None):
        if failure := self._record("put_file", ctx, path, branch, content, message, sha):
            return failure
        current = self.files.setdefault(branch, {}).get(path)
        if current != sha:
            return Err(ErrorKind.CONFLICT, f"{path} does not match {sha}", f"write {path}", 409)
        self.files[branch][path] = self._next("blob")
        self.contents[(branch, path)] = content
        commit = self._next("commit")
        self.branches[branch] = commit
        return Ok(commit)

    def list_branches(self, ctx):
        if failure := self._record("list_branches", ctx):
            return failure
        return Ok(list(self.branches))

    def get_commit_date(self, ctx, ref):
        if failure := self._record("get_commit_date", ctx, ref):
            return failure
        if ref not in self.commit_dates:
            return Err(ErrorKind.NOT_FOUND, "No commit found", f"read last commit of {ref}", 404)
        return Ok(self.commit_dates[ref])

    def delete_branch(self, ctx, branch):
        if failure := self._record("delete_branch", ctx, branch):
            return failure
        self.branches.pop(branch, None)
        self.deleted.append(branch)
        return Ok(None)

    def find_open_pull(self, ctx, head_branch):
        if failure := self._record("find_open_pull", ctx, head_branch):
            return failure
        for pr in self.pulls:
            if pr.head_branch == head_branch:
                return Ok(pr)
        return Ok(None)

    def create_pull(self, ctx, head, base, title, body):
        if failure := self._record("create_pull", ctx, head, base, title, body):
            return failure
        number = 100 + len(self.pulls)
        pr = RewritePullRequest(
            url=f"https://github.com/{ctx.full_name}/pull/{number}",
            number=number,
            head_branch=head,
            base_branch=base,
        )
        self.pulls.append(pr)
        self.pull_bodies[number] = body
        return Ok(pr)


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def pr_ctx() -> PullRequestContext:
    return PullRequestContext(
        owner="acme",
        repo="docs",
        number=42,
        head_ref="feature/docs",
        head_sha=HEAD_SHA,
        base_ref="main",
    )
