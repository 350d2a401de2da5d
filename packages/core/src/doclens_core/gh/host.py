"""Capability interface to the hosting platform and its PyGithub implementation.

Components depend on HostClient, never on PyGithub objects, so tests can
drive them with an in-memory fake that satisfies the same interface.

Every GitHubHost method funnels its remote work through ``_call``:
    _call(operation, fn) → fn() with bounded retry on transient failures
                        → Ok(value) | Err(kind, detail)
Concrete methods only describe a single attempt.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable

from github import Github

from doclens_core.models import (
    IssueCommentInfo,
    PullRequestContext,
    RepositoryContext,
    ReviewCommentInfo,
    ReviewInfo,
    RewritePullRequest,
)
from doclens_core.result import Err, ErrorKind, Ok, Result, error_from_exception

logger = logging.getLogger(__name__)

_MAX_RETRIES = 3


class HostClient(ABC):
    # ------------------------------------------------------------------ #
    # Repository access                                                    #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def check_write_access(self, ctx: RepositoryContext) -> Result[None]:
        """Ok when the token may write to the repository."""

    # ------------------------------------------------------------------ #
    # Reviews and review comments                                          #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def list_reviews(self, ctx: PullRequestContext) -> Result[list[ReviewInfo]]: ...

    @abstractmethod
    def submit_review(self, ctx: PullRequestContext, review_id: int, body: str, event: str) -> Result[None]: ...

    @abstractmethod
    def list_review_comments(self, ctx: PullRequestContext) -> Result[list[ReviewCommentInfo]]: ...

    @abstractmethod
    def update_review_comment(self, ctx: PullRequestContext, comment_id: int, body: str) -> Result[None]: ...

    @abstractmethod
    def create_review(self, ctx: PullRequestContext, body: str, comments: list[dict], event: str) -> Result[int]:
        """Create a review on the head commit and return its id."""

    # ------------------------------------------------------------------ #
    # Issue comments                                                       #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def list_issue_comments(self, ctx: PullRequestContext) -> Result[list[IssueCommentInfo]]: ...

    @abstractmethod
    def create_issue_comment(self, ctx: PullRequestContext, body: str) -> Result[int]:
        """Post a conversation comment on the pull request and return its id."""

    @abstractmethod
    def update_issue_comment(self, ctx: PullRequestContext, comment_id: int, body: str) -> Result[None]: ...

    # ------------------------------------------------------------------ #
    # Branches and contents                                                #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def get_branch_sha(self, ctx: RepositoryContext, branch: str) -> Result[str]: ...

    @abstractmethod
    def create_branch(self, ctx: RepositoryContext, branch: str, sha: str) -> Result[None]: ...

    @abstractmethod
    def reset_branch(self, ctx: RepositoryContext, branch: str, sha: str) -> Result[None]:
        """Force the branch ref to ``sha``."""

    @abstractmethod
    def get_file_sha(self, ctx: RepositoryContext, path: str, ref: str) -> Result[str | None]:
        """Blob sha of ``path`` at ``ref``, or Ok(None) when the file does not exist."""

    @abstractmethod
    def put_file(
        self,
        ctx: RepositoryContext,
        path: str,
        branch: str,
        content: str,
        message: str,
        sha: str | None = None,
    ) -> Result[str]:
        """Create or update a file and return the new commit sha."""

    @abstractmethod
    def list_branches(self, ctx: RepositoryContext) -> Result[list[str]]: ...

    @abstractmethod
    def get_commit_date(self, ctx: RepositoryContext, ref: str) -> Result[datetime]: ...

    @abstractmethod
    def delete_branch(self, ctx: RepositoryContext, branch: str) -> Result[None]: ...

    # ------------------------------------------------------------------ #
    # Pull requests                                                        #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def find_open_pull(self, ctx: RepositoryContext, head_branch: str) -> Result[RewritePullRequest | None]: ...

    @abstractmethod
    def create_pull(
        self, ctx: RepositoryContext, head: str, base: str, title: str, body: str
    ) -> Result[RewritePullRequest]: ...


class GitHubHost(HostClient):
    MAX_RETRIES: int = _MAX_RETRIES

    def __init__(self, github: Github, max_retries: int | None = None):
        self._github = github
        self._repos: dict[str, Any] = {}
        if max_retries is not None:
            self.MAX_RETRIES = max(1, max_retries)

    @classmethod
    def from_token(cls, token: str, max_retries: int | None = None) -> GitHubHost:
        return cls(Github(token), max_retries=max_retries)

    # ------------------------------------------------------------------ #
    # Shared plumbing                                                      #
    # ------------------------------------------------------------------ #

    def _call(self, operation: str, fn: Callable[[], Any]) -> Result[Any]:
        for attempt in range(self.MAX_RETRIES):
            try:
                return Ok(fn())
            except Exception as e:
                err = error_from_exception(e, operation)
                if err.kind is not ErrorKind.TRANSIENT or attempt == self.MAX_RETRIES - 1:
                    if err.kind is ErrorKind.TRANSIENT:
                        logger.error("%s failed after %d attempts: %s", operation, self.MAX_RETRIES, err.detail)
                    return err
                delay = 2**attempt
                logger.warning(
                    "%s transient error (attempt %d/%d): %s. Retrying in %ds...",
                    operation,
                    attempt + 1,
                    self.MAX_RETRIES,
                    err.detail,
                    delay,
                )
                time.sleep(delay)
        return Err(ErrorKind.UNEXPECTED, "no attempt made", operation)

    def _repo(self, ctx: RepositoryContext):
        key = ctx.full_name
        if key not in self._repos:
            self._repos[key] = self._github.get_repo(key)
        return self._repos[key]

    def _pull(self, ctx: PullRequestContext):
        return self._repo(ctx).get_pull(ctx.number)

    @staticmethod
    def _to_pull_request(pr) -> RewritePullRequest:
        return RewritePullRequest(
            url=pr.html_url,
            number=pr.number,
            head_branch=pr.head.ref,
            base_branch=pr.base.ref,
        )

    # ------------------------------------------------------------------ #
    # Repository access                                                    #
    # ------------------------------------------------------------------ #

    def check_write_access(self, ctx: RepositoryContext) -> Result[None]:
        operation = f"check write access to {ctx.full_name}"
        res = self._call(operation, lambda: self._repo(ctx).permissions)
        if isinstance(res, Err):
            return res
        perms = res.value
        # Installation tokens (GitHub Actions) carry no permissions block; the
        # write calls themselves will report a 403 if access is missing.
        if perms is not None and not (perms.push or perms.admin):
            return Err(ErrorKind.PERMISSION_DENIED, "token has no write access to the repository", operation, 403)
        return Ok(None)

    # ------------------------------------------------------------------ #
    # Reviews and review comments                                          #
    # ------------------------------------------------------------------ #

    def list_reviews(self, ctx: PullRequestContext) -> Result[list[ReviewInfo]]:
        def _list():
            return [
                ReviewInfo(id=r.id, state=r.state, author=r.user.login if r.user else None)
                for r in self._pull(ctx).get_reviews()
            ]

        return self._call(f"list reviews on #{ctx.number}", _list)

    def submit_review(self, ctx: PullRequestContext, review_id: int, body: str, event: str) -> Result[None]:
        def _submit():
            # PyGithub has no wrapper for submitting an existing pending review.
            url = f"{self._pull(ctx).url}/reviews/{review_id}/events"
            self._github.requester.requestJsonAndCheck("POST", url, input={"body": body, "event": event})

        return self._call(f"submit review {review_id} on #{ctx.number}", _submit)

    def list_review_comments(self, ctx: PullRequestContext) -> Result[list[ReviewCommentInfo]]:
        def _list():
            return [
                ReviewCommentInfo(
                    id=c.id,
                    path=c.path,
                    body=c.body or "",
                    author=c.user.login if c.user else None,
                    position=c.position,
                    line=c.line,
                )
                for c in self._pull(ctx).get_review_comments()
            ]

        return self._call(f"list review comments on #{ctx.number}", _list)

    def update_review_comment(self, ctx: PullRequestContext, comment_id: int, body: str) -> Result[None]:
        def _update():
            self._pull(ctx).get_review_comment(comment_id).edit(body)

        return self._call(f"update review comment {comment_id}", _update)

    def create_review(self, ctx: PullRequestContext, body: str, comments: list[dict], event: str) -> Result[int]:
        def _create():
            commit = self._repo(ctx).get_commit(ctx.head_sha)
            review = self._pull(ctx).create_review(commit=commit, body=body, event=event, comments=comments)
            return review.id

        return self._call(f"create review on #{ctx.number}", _create)

    # ------------------------------------------------------------------ #
    # Issue comments                                                       #
    # ------------------------------------------------------------------ #

    def list_issue_comments(self, ctx: PullRequestContext) -> Result[list[IssueCommentInfo]]:
        def _list():
            return [
                IssueCommentInfo(id=c.id, body=c.body or "", author=c.user.login if c.user else None)
                for c in self._pull(ctx).get_issue_comments()
            ]

        return self._call(f"list comments on #{ctx.number}", _list)

    def create_issue_comment(self, ctx: PullRequestContext, body: str) -> Result[int]:
        return self._call(f"comment on #{ctx.number}", lambda: self._pull(ctx).create_issue_comment(body).id)

    def update_issue_comment(self, ctx: PullRequestContext, comment_id: int, body: str) -> Result[None]:
        def _update():
            self._pull(ctx).get_issue_comment(comment_id).edit(body)

        return self._call(f"update comment {comment_id}", _update)

    # ------------------------------------------------------------------ #
    # Branches and contents                                                #
    # ------------------------------------------------------------------ #

    def get_branch_sha(self, ctx: RepositoryContext, branch: str) -> Result[str]:
        return self._call(f"read branch {branch}", lambda: self._repo(ctx).get_branch(branch).commit.sha)

    def create_branch(self, ctx: RepositoryContext, branch: str, sha: str) -> Result[None]:
        def _create():
            self._repo(ctx).create_git_ref(ref=f"refs/heads/{branch}", sha=sha)

        return self._call(f"create branch {branch}", _create)

    def reset_branch(self, ctx: RepositoryContext, branch: str, sha: str) -> Result[None]:
        def _reset():
            self._repo(ctx).get_git_ref(f"heads/{branch}").edit(sha=sha, force=True)

        return self._call(f"reset branch {branch}", _reset)

    def get_file_sha(self, ctx: RepositoryContext, path: str, ref: str) -> Result[str | None]:
        operation = f"read {path} on {ref}"
        res = self._call(operation, lambda: self._repo(ctx).get_contents(path, ref=ref))
        if isinstance(res, Err):
            if res.kind is ErrorKind.NOT_FOUND:
                return Ok(None)
            return res
        if isinstance(res.value, list):
            return Err(ErrorKind.CONFLICT, f"{path} is a directory", operation)
        return Ok(res.value.sha)

    def put_file(
        self,
        ctx: RepositoryContext,
        path: str,
        branch: str,
        content: str,
        message: str,
        sha: str | None = None,
    ) -> Result[str]:
        def _put():
            repo = self._repo(ctx)
            if sha:
                result = repo.update_file(path, message, content, sha, branch=branch)
            else:
                result = repo.create_file(path, message, content, branch=branch)
            return result["commit"].sha

        return self._call(f"write {path} to {branch}", _put)

    def list_branches(self, ctx: RepositoryContext) -> Result[list[str]]:
        return self._call(
            f"list branches of {ctx.full_name}",
            lambda: [b.name for b in self._repo(ctx).get_branches()],
        )

    def get_commit_date(self, ctx: RepositoryContext, ref: str) -> Result[datetime]:
        def _date():
            git_commit = self._repo(ctx).get_commit(ref).commit
            date = git_commit.committer.date if git_commit.committer else git_commit.author.date
            if date.tzinfo is None:
                date = date.replace(tzinfo=timezone.utc)
            return date

        return self._call(f"read last commit of {ref}", _date)

    def delete_branch(self, ctx: RepositoryContext, branch: str) -> Result[None]:
        return self._call(f"delete branch {branch}", lambda: self._repo(ctx).get_git_ref(f"heads/{branch}").delete())

    # ------------------------------------------------------------------ #
    # Pull requests                                                        #
    # ------------------------------------------------------------------ #

    def find_open_pull(self, ctx: RepositoryContext, head_branch: str) -> Result[RewritePullRequest | None]:
        def _find():
            for pr in self._repo(ctx).get_pulls(state="open", head=f"{ctx.owner}:{head_branch}"):
                return self._to_pull_request(pr)
            return None

        return self._call(f"find open pull request for {head_branch}", _find)

    def create_pull(
        self, ctx: RepositoryContext, head: str, base: str, title: str, body: str
    ) -> Result[RewritePullRequest]:
        def _create():
            pr = self._repo(ctx).create_pull(base=base, head=head, title=title, body=body)
            return self._to_pull_request(pr)

        return self._call(f"create pull request {head} → {base}", _create)
