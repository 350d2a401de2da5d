"""Data models shared by the suggestion and rewrite pipelines.

Kept free of any PyGithub types so the core components can be exercised
against an in-memory host in tests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass(frozen=True)
class AnalysisOptions:
    dialect: str = "american_english"
    tone: str = "formal"
    style_guide: str = "ap"


@dataclass(frozen=True)
class StyleScores:
    """Engine scores on a 0-100 scale. Missing categories stay at 0."""

    quality: float = 0.0
    clarity: float = 0.0
    grammar: float = 0.0
    tone: float = 0.0
    style_guide: float = 0.0
    terminology: float = 0.0

    @classmethod
    def from_dict(cls, data: dict | None) -> StyleScores:
        data = data or {}
        values = {}
        for name in cls.__dataclass_fields__:
            try:
                values[name] = float(data.get(name, 0) or 0)
            except (TypeError, ValueError):
                values[name] = 0.0
        return cls(**values)


@dataclass(frozen=True)
class AnalysisResult:
    """One analyzed document: the original text, the engine's rewrite and its scores."""

    file_path: str
    original_content: str
    rewritten_content: str
    scores: StyleScores = field(default_factory=StyleScores)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def has_rewrite(self) -> bool:
        if not self.rewritten_content:
            return False
        return self.rewritten_content.strip() != self.original_content.strip()


@dataclass(frozen=True)
class DiffLine:
    kind: str  # "context" | "added" | "removed"
    text: str  # includes the line terminator, if any


@dataclass(frozen=True)
class DiffHunk:
    """A contiguous block of the diff. Starts are 1-based."""

    original_start: int
    original_length: int
    rewritten_start: int
    rewritten_length: int
    lines: tuple[DiffLine, ...] = ()

    @property
    def is_context(self) -> bool:
        return all(line.kind == "context" for line in self.lines)


@dataclass(frozen=True)
class CommitSuggestion:
    file_path: str
    original_content: str
    rewritten_content: str
    diff: str
    line_number: int
    suggestion_text: str


@dataclass(frozen=True)
class RepositoryContext:
    owner: str
    repo: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass(frozen=True)
class PullRequestContext(RepositoryContext):
    """Everything a component needs to know about the pull request it acts on."""

    number: int
    head_ref: str
    head_sha: str
    base_ref: str


@dataclass(frozen=True)
class ReviewInfo:
    id: int
    state: str
    author: str | None = None


@dataclass(frozen=True)
class ReviewCommentInfo:
    """A review comment. ``position`` is None once the comment is outdated."""

    id: int
    path: str
    body: str
    author: str | None = None
    position: int | None = None
    line: int | None = None


@dataclass(frozen=True)
class IssueCommentInfo:
    id: int
    body: str
    author: str | None = None


@dataclass(frozen=True)
class RewriteBranch:
    name: str
    base_ref: str
    head_sha: str


@dataclass(frozen=True)
class RewritePullRequest:
    url: str
    number: int
    head_branch: str
    base_branch: str
