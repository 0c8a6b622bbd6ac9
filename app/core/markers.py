"""Machine-authored comment markers.

Every body this service posts starts with one of ``MACHINE_MARKERS``.  On a
re-review the engine deletes existing comments whose body starts with a
marker.  This is a content heuristic, not an account check: a human comment
that happens to start with a marker will be removed too.
"""

from __future__ import annotations

from app.core.entities import ReviewComment

POSITIONED_PREFIX = "Code Review:"
NOTE_PREFIX = "**Code Review**"
SUMMARY_HEADING = "## AI Code Review Summary"

MACHINE_MARKERS: tuple[str, ...] = (POSITIONED_PREFIX, NOTE_PREFIX, SUMMARY_HEADING)


def is_machine_authored(body: str | None) -> bool:
    """Return True when ``body`` starts with one of the machine markers."""
    if not body:
        return False
    return body.lstrip().startswith(MACHINE_MARKERS)


def _finding_line(comment: ReviewComment) -> str:
    return f"**[{comment.severity.upper()}] {comment.category}**: {comment.text}"


def format_positioned_body(comment: ReviewComment) -> str:
    return f"{POSITIONED_PREFIX} {_finding_line(comment)}"


def format_note_body(comment: ReviewComment) -> str:
    """Body for the unanchored fallback: file and line travel in the text."""
    location = f"{comment.file_path} (line {comment.line_number}"
    if comment.end_line_number and comment.end_line_number != comment.line_number:
        location += f"-{comment.end_line_number}"
    location += ")"
    return f"{NOTE_PREFIX}: {location}\n\n{_finding_line(comment)}"


def format_summary_body(summary: str) -> str:
    return f"{SUMMARY_HEADING}\n\n{summary}"
