"""Line-oriented diff between an original document and its rewrite."""

from __future__ import annotations

import difflib

from doclens_core.models import DiffHunk, DiffLine


def _split(text: str) -> list[str]:
    # keepends so a changed or missing trailing newline is a real difference.
    return text.splitlines(keepends=True)


def compute_hunks(original: str, rewritten: str) -> list[DiffHunk]:
    """Return hunks covering the whole document, context hunks included.

    ``replace`` opcodes become a single hunk with the removed lines first and
    the added lines after them, the same order a unified diff renders them.
    """
    a = _split(original)
    b = _split(rewritten)
    matcher = difflib.SequenceMatcher(None, a, b, autojunk=False)

    hunks: list[DiffHunk] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            lines = tuple(DiffLine("context", text) for text in a[i1:i2])
        else:
            removed = tuple(DiffLine("removed", text) for text in a[i1:i2])
            added = tuple(DiffLine("added", text) for text in b[j1:j2])
            lines = removed + added
        hunks.append(
            DiffHunk(
                original_start=i1 + 1,
                original_length=i2 - i1,
                rewritten_start=j1 + 1,
                rewritten_length=j2 - j1,
                lines=lines,
            )
        )
    return hunks


_PREFIX = {"context": " ", "added": "+", "removed": "-"}


def render_patch(hunks: list[DiffHunk]) -> str:
    """Render hunks as unified-diff body lines.

    Changed hunks get an ``@@`` header; context hunks are emitted without one
    so the patch reads as one continuous file listing.
    """
    out: list[str] = []
    for hunk in hunks:
        if not hunk.is_context:
            out.append(
                f"@@ -{hunk.original_start},{hunk.original_length} "
                f"+{hunk.rewritten_start},{hunk.rewritten_length} @@"
            )
        for line in hunk.lines:
            text = line.text.rstrip("\r\n")
            out.append(f"{_PREFIX[line.kind]}{text}")
            if not line.text.endswith("\n"):
                out.append("\\ No newline at end of file")
    return "\n".join(out)


def diff_positions(patch_text: str) -> dict[int, int]:
    """Map new-file line numbers to their review-comment positions in a PR patch.

    Positions count every line below the first ``@@`` header and keep counting
    across later hunks. Header lines themselves are not counted. Lines the
    patch does not show have no position.
    """
    positions: dict[int, int] = {}
    position = 0
    file_line: int | None = None

    for line in patch_text.splitlines():
        if line.startswith("@@"):
            try:
                new_range = line.split("+")[1].split(" ")[0]
                file_line = int(new_range.split(",")[0])
            except (IndexError, ValueError):
                file_line = None
            continue

        position += 1
        if line.startswith("\\"):
            continue  # "\ No newline at end of file"
        if line.startswith("-"):
            continue
        if file_line is not None:
            positions[file_line] = position
            file_line += 1

    return positions
