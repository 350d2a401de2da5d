"""Turn an original/rewritten document pair into inline commit suggestions.

Line numbers follow the patch renderer: a running counter over the rewritten
document where context and added lines advance it and removed lines do not.
Each contiguous run of added lines becomes one suggestion anchored at the
first line of the run.
"""

from __future__ import annotations

import logging

from doclens_core.diff import compute_hunks, render_patch
from doclens_core.models import AnalysisResult, CommitSuggestion, DiffHunk

logger = logging.getLogger(__name__)


def _added_runs(hunks: list[DiffHunk], file_path: str) -> list[tuple[int, str]]:
    """Return ``(line_number, text)`` for every maximal run of added lines."""
    runs: list[tuple[int, str]] = []
    counter = 0

    for hunk in hunks:
        run: list[str] = []
        run_start = 0
        has_added = False

        for line in hunk.lines:
            if line.kind == "removed":
                if run:
                    runs.append((run_start, "\n".join(run)))
                    run = []
                continue

            counter += 1
            if line.kind == "added":
                if not run:
                    run_start = counter
                run.append(line.text.rstrip("\r\n"))
                has_added = True
            elif run:
                runs.append((run_start, "\n".join(run)))
                run = []

        if run:
            runs.append((run_start, "\n".join(run)))

        if not hunk.is_context and not has_added:
            logger.warning(
                "Skipping removal-only change in %s (original lines %d-%d): "
                "it cannot be expressed as a single-line suggestion",
                file_path,
                hunk.original_start,
                hunk.original_start + hunk.original_length - 1,
            )

    return runs


def synthesize_suggestions(file_path: str, original: str, rewritten: str) -> list[CommitSuggestion]:
    if original.strip() == rewritten.strip():
        return []

    hunks = compute_hunks(original, rewritten)
    patch = render_patch(hunks)

    if all(hunk.is_context for hunk in hunks):
        # Guard only: difflib reports every line-list difference, so the current
        # differ never gets here. Anything that does is suggested whole at line 1.
        logger.info("No line-level difference in %s; suggesting the whole file at line 1", file_path)
        return [
            CommitSuggestion(
                file_path=file_path,
                original_content=original,
                rewritten_content=rewritten,
                diff=patch,
                line_number=1,
                suggestion_text=rewritten.rstrip("\r\n"),
            )
        ]

    return [
        CommitSuggestion(
            file_path=file_path,
            original_content=original,
            rewritten_content=rewritten,
            diff=patch,
            line_number=line_number,
            suggestion_text=text,
        )
        for line_number, text in _added_runs(hunks, file_path)
    ]


def create_commit_suggestions(results: list[AnalysisResult]) -> list[CommitSuggestion]:
    """Synthesize suggestions for every analyzed document that has a rewrite."""
    suggestions: list[CommitSuggestion] = []
    for result in results:
        if not result.has_rewrite:
            continue
        try:
            file_suggestions = synthesize_suggestions(
                result.file_path, result.original_content, result.rewritten_content
            )
        except Exception as e:
            logger.warning("Failed to create suggestions for %s: %s", result.file_path, e)
            continue
        for suggestion in file_suggestions:
            logger.debug(
                "Suggestion for %s at line %d (%d chars)",
                suggestion.file_path,
                suggestion.line_number,
                len(suggestion.suggestion_text),
            )
        suggestions.extend(file_suggestions)
    return suggestions
