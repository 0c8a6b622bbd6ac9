"""Unified diff parser — converts one file's patch text into line changes.

Both providers hand out per-file patches (GitHub's ``files[].patch``,
GitLab's ``changes[].diff``), so the unit of parsing is a single file.

Key concepts:
- A hunk header ``@@ -O[,len] +N[,len] @@`` resets the old cursor to ``O``
  and the new cursor to ``N``.  Multiple hunks reset independently.
- Added lines carry only a new-file number, deleted lines only an old-file
  number (taken from the old cursor), context lines carry both.
- ``diff_position`` is GitHub's legacy 1-indexed counter within a file's
  patch: the line just below the first ``@@`` header is position 1, and
  every later line — including later hunk headers — increments it.

The parser never raises.  Malformed text degrades to a partial result:
unrecognized lines become context, and lines seen before any hunk header
are emitted without line numbers.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import StrEnum

logger = logging.getLogger(__name__)


# =============================================================================
#  Data classes
# =============================================================================


class ChangeKind(StrEnum):
    ADDED = "added"
    DELETED = "deleted"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class LineChange:
    """A single line within a file patch."""

    kind: ChangeKind
    text: str                        # without the diff marker
    old_line_number: int | None      # None for added lines
    new_line_number: int | None      # None for deleted lines
    diff_position: int | None = None  # None before the first hunk header


# =============================================================================
#  Line classification
# =============================================================================

# Matches: @@ -10,5 +10,7 @@ optional function context
_HUNK_HEADER_RE = re.compile(r"^@@\s+-(\d+)(?:,\d+)?\s+\+(\d+)(?:,\d+)?\s+@@")

_NO_NEWLINE_MARKER = "\\ No newline at end of file"

# Git metadata that may precede the first hunk of a patch.
_GIT_HEADER_PREFIXES: tuple[str, ...] = (
    "diff --git ",
    "index ",
    "new file mode",
    "deleted file mode",
    "old mode",
    "new mode",
    "similarity index",
    "dissimilarity index",
    "rename from",
    "rename to",
    "copy from",
    "copy to",
    "Binary files",
)


def _is_file_header(line: str) -> bool:
    return line.startswith("---") or line.startswith("+++")


# =============================================================================
#  Main parser
# =============================================================================


def parse_patch(diff_text: str) -> list[LineChange]:
    """Parse a single file's unified diff into an ordered list of ``LineChange``.

    Args:
        diff_text: Patch text as returned by the provider.  May be empty.

    Returns:
        Line changes in file order, top to bottom.
    """
    if not diff_text:
        return []

    # Normalize line endings — handle CRLF from Windows or file IO.
    lines = diff_text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    if lines and lines[-1] == "":
        lines.pop()  # the terminating newline is not a context line

    changes: list[LineChange] = []
    old_cursor: int | None = None
    new_cursor: int | None = None
    position: int | None = None

    for line in lines:
        if line.startswith("@@"):
            match = _HUNK_HEADER_RE.match(line)
            if match:
                old_cursor = int(match.group(1))
                new_cursor = int(match.group(2))
                # The first header is position 0; later headers take a slot.
                position = 0 if position is None else position + 1
                continue

        if line.startswith("\\"):
            # "\ No newline at end of file" does not affect any counter.
            continue

        # Inside a hunk "---"/"+++" are a removed "--x" or an added "++x".
        if old_cursor is None and (_is_file_header(line) or line.startswith(_GIT_HEADER_PREFIXES)):
            continue

        if position is not None:
            position += 1

        if line.startswith("+"):
            changes.append(
                LineChange(ChangeKind.ADDED, line[1:], None, new_cursor, position)
            )
            if new_cursor is not None:
                new_cursor += 1

        elif line.startswith("-"):
            changes.append(
                LineChange(ChangeKind.DELETED, line[1:], old_cursor, None, position)
            )
            if old_cursor is not None:
                old_cursor += 1

        else:
            # Context line (starts with a space) or anything unrecognized.
            text = line[1:] if line.startswith(" ") else line
            changes.append(
                LineChange(ChangeKind.UNCHANGED, text, old_cursor, new_cursor, position)
            )
            if old_cursor is not None:
                old_cursor += 1
            if new_cursor is not None:
                new_cursor += 1

    if old_cursor is None and changes:
        logger.debug("Patch has no hunk header — %d lines left unpositioned", len(changes))

    return changes


# =============================================================================
#  Derived views
# =============================================================================


def commentable_lines(
    changes: list[LineChange], *, include_context: bool = False
) -> set[int]:
    """Return the new-file line numbers that may receive a review comment.

    Added lines are always commentable.  Context lines are only included
    when ``include_context`` is set; deleted lines never are, since they do
    not exist in the new file.
    """
    kinds = {ChangeKind.ADDED, ChangeKind.UNCHANGED} if include_context else {ChangeKind.ADDED}
    return {
        change.new_line_number
        for change in changes
        if change.kind in kinds and change.new_line_number is not None
    }


def line_to_position_map(changes: list[LineChange]) -> dict[int, int]:
    """Map new-file line numbers to GitHub diff positions.

    Only added and context lines appear — removed lines have no new-file
    number and cannot be addressed this way.
    """
    return {
        change.new_line_number: change.diff_position
        for change in changes
        if change.kind is not ChangeKind.DELETED
        and change.new_line_number is not None
        and change.diff_position is not None
    }
