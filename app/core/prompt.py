"""Review prompt construction.

Only commentable lines are shown to the model, each prefixed with its
new-file line number, so the numbers the model returns can be checked
against the diff by the normalizer.
"""

from __future__ import annotations

from app.core.diff_parser import ChangeKind
from app.core.entities import CommentCategory, FileChange, Severity

_CATEGORIES = ", ".join(c.name for c in CommentCategory)
_SEVERITIES = ", ".join(s.name for s in Severity)

_PREAMBLE = """\
You are a senior software engineer performing a thorough code review. \
Review ONLY the modified or added lines in the following code files and \
provide specific, actionable feedback.

CODE FILES AND THEIR MODIFICATIONS:
"""

_INSTRUCTIONS = f"""
Please analyze ONLY the lines shown above and provide:

1. Issues identified with each shown line (do not comment on other lines)
2. For each issue: file path, line number, a description of the problem with a \
suggestion for improvement, a category ({_CATEGORIES}) and a severity ({_SEVERITIES})
3. A summary of the overall quality of the changes

IMPORTANT:
- Only comment on lines that were explicitly shown
- Do not invent or assume line numbers that weren't in the provided code
- If there are no issues, return an empty comments array

Format your response as a JSON object with the following structure:
{{
  "comments": [
    {{
      "filePath": "path/to/file",
      "lineNumber": 123,
      "content": "Detailed description and suggestion",
      "category": "CATEGORY",
      "severity": "SEVERITY"
    }}
  ],
  "summary": "Overall review summary"
}}

Your output MUST be valid JSON without any explanation or text outside the JSON object."""


def _render_file(index: int, file: FileChange, include_context: bool) -> str:
    kinds = {ChangeKind.ADDED, ChangeKind.UNCHANGED} if include_context else {ChangeKind.ADDED}
    shown = [
        f"Line {change.new_line_number}: "
        f"{'+' if change.kind is ChangeKind.ADDED else ' '}{change.text}"
        for change in file.changes
        if change.kind in kinds and change.new_line_number is not None
    ]
    body = "\n".join(shown) if shown else "No modifications found in this file."
    return f"\n---FILE {index}: {file.path} ({file.language})---\n{body}\n"


def build_review_prompt(files: list[FileChange], *, include_context: bool = False) -> str:
    """Render the full review prompt for ``files``."""
    parts = [_PREAMBLE]
    parts.extend(
        _render_file(index, file, include_context) for index, file in enumerate(files, start=1)
    )
    parts.append(_INSTRUCTIONS)
    return "".join(parts)
