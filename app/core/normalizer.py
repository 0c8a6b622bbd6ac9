"""Language-model response normalizer.

Turns the model's raw text into validated ``ReviewComment`` objects:

1. Slice from the first ``{`` to the last ``}`` — models like to wrap the
   JSON in prose or Markdown fences.
2. Sanitize: literal escaped newlines and raw control characters become a
   single space.
3. Try each parse strategy in order and tag the result:
   - strict ``json.loads``                         → ``PARSED``
   - strip trailing commas, then ``json.loads``    → ``REPAIRED``
   - regex field extraction per comment object     → ``REPAIRED``
4. Nothing recoverable but the text still looks like a review object →
   ``UNRECOVERABLE`` with an empty comment list and a diagnostic summary.
   Anything worse raises ``ResponseParseError``.
5. Keep only comments that land on a commentable line of a reviewed file.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from app.core.diff_parser import commentable_lines
from app.core.entities import CommentCategory, FileChange, ReviewComment, Severity
from app.core.exceptions import ResponseParseError

logger = logging.getLogger(__name__)

DEFAULT_SUMMARY = "No summary provided."
UNRECOVERABLE_SUMMARY = (
    "The review model returned output that could not be parsed; no comments were posted."
)


# =============================================================================
#  Result types
# =============================================================================


class ParseOutcome(StrEnum):
    PARSED = "parsed"
    REPAIRED = "repaired"
    UNRECOVERABLE = "unrecoverable"


@dataclass(frozen=True)
class NormalizedResponse:
    """Validated comments and summary, tagged with how they were recovered."""

    comments: list[ReviewComment]
    summary: str
    outcome: ParseOutcome
    dropped: int = 0


@dataclass(frozen=True)
class _RawResponse:
    comments: list[dict[str, Any]]
    summary: str | None


# =============================================================================
#  Field aliases
# =============================================================================

_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "file_path": ("filePath", "file_path", "file", "path", "filename"),
    "line_number": ("lineNumber", "line_number", "line", "startLine", "start_line"),
    "end_line_number": ("endLineNumber", "end_line_number", "endLine", "end_line"),
    "text": ("content", "text", "comment", "body", "message"),
    "category": ("category", "type"),
    "severity": ("severity", "level", "priority"),
}


def _first_present(data: dict[str, Any], field_name: str) -> Any:
    for key in _FIELD_ALIASES[field_name]:
        if key in data and data[key] is not None:
            return data[key]
    return None


# =============================================================================
#  Step 1 + 2: slicing and sanitizing
# =============================================================================

# A JSON escape for newline / carriage return, not preceded by another backslash.
_ESCAPED_NEWLINE_RE = re.compile(r"(?<!\\)\\(?:n|r|u000[aAdD])")
# Control characters other than tab, LF and CR.
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


def extract_json_slice(raw_output: str) -> str | None:
    """Return the text between the first ``{`` and the last ``}``, if any."""
    start = raw_output.find("{")
    end = raw_output.rfind("}")
    if start == -1 or end < start:
        return None
    return raw_output[start : end + 1]


def sanitize(text: str) -> str:
    text = _ESCAPED_NEWLINE_RE.sub(" ", text)
    return _CONTROL_CHARS_RE.sub(" ", text)


# =============================================================================
#  Step 3: parse strategies
# =============================================================================


def _load_object(text: str) -> _RawResponse | None:
    try:
        data = json.loads(text, strict=False)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None

    raw_comments = data.get("comments")
    if not isinstance(raw_comments, list):
        return None
    summary = data.get("summary")
    return _RawResponse(
        comments=[c for c in raw_comments if isinstance(c, dict)],
        summary=summary if isinstance(summary, str) else None,
    )


_STRING_LITERAL_RE = re.compile(r'"(?:[^"\\]|\\.)*"', re.DOTALL)


def _strip_trailing_commas(text: str) -> _RawResponse | None:
    # Commas are located in the masked copy so string contents stay untouched.
    commas = [match.start() for match in _TRAILING_COMMA_RE.finditer(_mask_strings(text))]
    if not commas:
        return None
    repaired = text
    for index in reversed(commas):
        repaired = repaired[:index] + repaired[index + 1 :]
    return _load_object(repaired)
_INNER_OBJECT_RE = re.compile(r"\{[^{}]*\}")


def _field_regex(keys: tuple[str, ...]) -> re.Pattern[str]:
    alternatives = "|".join(re.escape(key) for key in keys)
    return re.compile(
        rf'"(?:{alternatives})"\s*:\s*(?:"((?:[^"\\]|\\.)*)"|(-?\d+))', re.DOTALL
    )


_FIELD_RES: dict[str, re.Pattern[str]] = {
    name: _field_regex(keys) for name, keys in _FIELD_ALIASES.items()
}
_SUMMARY_RE = _field_regex(("summary",))


def _unescape(value: str) -> str:
    try:
        return json.loads(f'"{value}"', strict=False)
    except json.JSONDecodeError:
        return value


def _match_value(pattern: re.Pattern[str], text: str) -> Any:
    match = pattern.search(text)
    if match is None:
        return None
    if match.group(1) is not None:
        return _unescape(match.group(1))
    return int(match.group(2))


def _mask_strings(text: str) -> str:
    """Blank out string contents so braces inside them cannot split objects.

    The mask keeps the text length, so spans found in the masked copy index
    the original text directly.
    """
    return _STRING_LITERAL_RE.sub(lambda m: '"' + "x" * (len(m.group(0)) - 2) + '"', text)


def _extract_with_regex(text: str) -> _RawResponse | None:
    """Recover each comment's fields independently from near-miss JSON."""
    if '"comments"' not in text:
        return None
    masked = _mask_strings(text)
    comments: list[dict[str, Any]] = []

    for span in _INNER_OBJECT_RE.finditer(masked):
        chunk = text[span.start() : span.end()]
        fields = {name: _match_value(pattern, chunk) for name, pattern in _FIELD_RES.items()}
        if fields["file_path"] is None or fields["line_number"] is None:
            continue
        comments.append(
            {
                "filePath": fields["file_path"],
                "lineNumber": fields["line_number"],
                "endLineNumber": fields["end_line_number"],
                "content": fields["text"],
                "category": fields["category"],
                "severity": fields["severity"],
            }
        )

    summary = _match_value(_SUMMARY_RE, text)
    if not comments and not isinstance(summary, str):
        return None
    return _RawResponse(comments=comments, summary=summary if isinstance(summary, str) else None)


# =============================================================================
#  Comment coercion and filtering
# =============================================================================


def _positive_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def _clean_path(value: Any) -> str:
    path = str(value or "").strip()
    if path.startswith("./"):
        path = path[2:]
    return path.lstrip("/")


def coerce_comment(data: dict[str, Any]) -> ReviewComment | None:
    """Build a ``ReviewComment`` from loosely-typed model fields.

    Returns None when the path, line or text is missing or invalid.
    """
    file_path = _clean_path(_first_present(data, "file_path"))
    line_number = _positive_int(_first_present(data, "line_number"))
    text = str(_first_present(data, "text") or "").strip()
    if not file_path or line_number is None or not text:
        return None

    end_line_number = _positive_int(_first_present(data, "end_line_number"))
    if end_line_number is not None and end_line_number < line_number:
        end_line_number = None

    return ReviewComment(
        file_path=file_path,
        line_number=line_number,
        category=CommentCategory.lookup(_first_present(data, "category")),
        severity=Severity.lookup(_first_present(data, "severity")),
        text=text,
        end_line_number=end_line_number,
    )


def filter_to_diff(
    comments: list[ReviewComment],
    file_changes: list[FileChange],
    *,
    include_context: bool = False,
) -> list[ReviewComment]:
    """Drop comments whose ``(file_path, line_number)`` is not commentable."""
    allowed = {
        file.path: commentable_lines(list(file.changes), include_context=include_context)
        for file in file_changes
    }
    kept: list[ReviewComment] = []
    for comment in comments:
        if comment.line_number in allowed.get(comment.file_path, set()):
            kept.append(comment)
        else:
            logger.debug(
                "Dropping comment outside the diff",
                extra={"file": comment.file_path, "line": comment.line_number},
            )
    return kept


# =============================================================================
#  Entry point
# =============================================================================


def normalize(
    raw_output: str,
    file_changes: list[FileChange],
    *,
    include_context: bool = False,
) -> NormalizedResponse:
    """Normalize raw model output into validated, in-diff review comments.

    Raises:
        ResponseParseError: If the output holds no salvageable review object.
    """
    json_slice = extract_json_slice(raw_output or "")
    if json_slice is None:
        raise ResponseParseError(
            f"No JSON object found in model output: {(raw_output or '')[:200]!r}"
        )

    cleaned = sanitize(json_slice)

    outcome = ParseOutcome.PARSED
    parsed = _load_object(cleaned)
    if parsed is None:
        outcome = ParseOutcome.REPAIRED
        parsed = _strip_trailing_commas(cleaned) or _extract_with_regex(cleaned)

    if parsed is None:
        if '"comments"' in cleaned:
            logger.warning(
                "Model output unrecoverable — returning empty review",
                extra={"preview": cleaned[:200]},
            )
            return NormalizedResponse([], UNRECOVERABLE_SUMMARY, ParseOutcome.UNRECOVERABLE)
        raise ResponseParseError(f"Model output is not a review object: {cleaned[:200]!r}")

    if outcome is ParseOutcome.REPAIRED:
        logger.info("Model output repaired", extra={"comments": len(parsed.comments)})

    candidates = [c for c in (coerce_comment(raw) for raw in parsed.comments) if c is not None]
    comments = filter_to_diff(candidates, file_changes, include_context=include_context)
    dropped = len(parsed.comments) - len(comments)

    logger.info(
        "Normalized model output",
        extra={
            "outcome": str(outcome),
            "received": len(parsed.comments),
            "kept": len(comments),
            "dropped": dropped,
        },
    )

    return NormalizedResponse(
        comments=comments,
        summary=(parsed.summary or "").strip() or DEFAULT_SUMMARY,
        outcome=outcome,
        dropped=dropped,
    )
