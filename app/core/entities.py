"""Core review entities: files under review, comments, and review outcomes.

Category and severity are closed enumerations.  Free text coming from the
model is mapped onto them through explicit alias tables (see
``CommentCategory.lookup`` / ``Severity.lookup``) with a defined default,
never by a blind cast.
"""

from __future__ import annotations

import unicodedata
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum

from app.core.diff_parser import LineChange
from app.core.exceptions import InvalidTransitionError


def _lookup_key(value: object) -> str:
    """Fold case, accents and separators: ``"Sécurité"`` → ``"securite"``."""
    text = unicodedata.normalize("NFKD", str(value or "")).casefold().strip()
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    return text.replace("-", "_").replace(" ", "_")


# =============================================================================
#  Files under review
# =============================================================================


@dataclass(frozen=True)
class DiffAnchorContext:
    """Revision identifiers needed to place a comment at an exact diff position.

    Produced fresh by every ``fetch_changed_files`` call and passed along
    explicitly — never cached on a provider client.
    """

    base_sha: str | None = None
    start_sha: str | None = None
    head_sha: str | None = None

    @property
    def is_complete(self) -> bool:
        return bool(self.base_sha and self.head_sha)


@dataclass(frozen=True)
class FileChange:
    """One modified file of a merge/pull request."""

    path: str
    content: str
    language: str
    changes: tuple[LineChange, ...] = ()


@dataclass(frozen=True)
class ChangeSet:
    """Everything fetched for one review: the files and their anchor context."""

    files: list[FileChange]
    anchor: DiffAnchorContext = field(default_factory=DiffAnchorContext)


# =============================================================================
#  Comments
# =============================================================================


class CommentCategory(StrEnum):
    BUG = "bug"
    SECURITY = "security"
    PERFORMANCE = "performance"
    STYLE = "style"
    MAINTENANCE = "maintenance"
    OTHER = "other"

    @classmethod
    def lookup(cls, value: object) -> CommentCategory:
        """Case- and accent-insensitive lookup; unknown values map to OTHER."""
        return _CATEGORY_ALIASES.get(_lookup_key(value), cls.OTHER)


_CATEGORY_ALIASES: dict[str, CommentCategory] = {
    "bug": CommentCategory.BUG,
    "bugs": CommentCategory.BUG,
    "bogue": CommentCategory.BUG,
    "error": CommentCategory.BUG,
    "correctness": CommentCategory.BUG,
    "security": CommentCategory.SECURITY,
    "securite": CommentCategory.SECURITY,
    "vulnerability": CommentCategory.SECURITY,
    "performance": CommentCategory.PERFORMANCE,
    "perf": CommentCategory.PERFORMANCE,
    "style": CommentCategory.STYLE,
    "formatting": CommentCategory.STYLE,
    "naming": CommentCategory.STYLE,
    "maintenance": CommentCategory.MAINTENANCE,
    "maintainability": CommentCategory.MAINTENANCE,
    "best_practice": CommentCategory.MAINTENANCE,
    "best_practices": CommentCategory.MAINTENANCE,
    "bonne_pratique": CommentCategory.MAINTENANCE,
    "bonnes_pratiques": CommentCategory.MAINTENANCE,
    "other": CommentCategory.OTHER,
    "autre": CommentCategory.OTHER,
}


class Severity(StrEnum):
    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"
    INFO = "info"

    @classmethod
    def lookup(cls, value: object) -> Severity:
        """Case- and accent-insensitive lookup; unknown values map to INFO."""
        return _SEVERITY_ALIASES.get(_lookup_key(value), cls.INFO)


_SEVERITY_ALIASES: dict[str, Severity] = {
    "critical": Severity.CRITICAL,
    "critique": Severity.CRITICAL,
    "blocker": Severity.CRITICAL,
    "high": Severity.CRITICAL,
    "haute": Severity.CRITICAL,
    "major": Severity.MAJOR,
    "majeur": Severity.MAJOR,
    "medium": Severity.MAJOR,
    "moyenne": Severity.MAJOR,
    "minor": Severity.MINOR,
    "mineur": Severity.MINOR,
    "low": Severity.MINOR,
    "basse": Severity.MINOR,
    "nitpick": Severity.MINOR,
    "info": Severity.INFO,
    "information": Severity.INFO,
}


@dataclass(frozen=True)
class ReviewComment:
    """A validated finding anchored to one line of the new file."""

    file_path: str
    line_number: int
    category: CommentCategory
    severity: Severity
    text: str
    end_line_number: int | None = None


# =============================================================================
#  Review outcome
# =============================================================================


class ReviewStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


_ALLOWED_TRANSITIONS: dict[ReviewStatus, frozenset[ReviewStatus]] = {
    ReviewStatus.PENDING: frozenset({ReviewStatus.IN_PROGRESS, ReviewStatus.FAILED}),
    ReviewStatus.IN_PROGRESS: frozenset({ReviewStatus.COMPLETED, ReviewStatus.FAILED}),
    ReviewStatus.COMPLETED: frozenset(),
    ReviewStatus.FAILED: frozenset(),
}


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class ReviewOutcome:
    """State of one review run.  Only the review engine mutates it."""

    project_id: str
    request_id: int
    triggering_user: str
    provider: str = ""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: ReviewStatus = ReviewStatus.PENDING
    comments: list[ReviewComment] = field(default_factory=list)
    summary: str | None = None
    posted_count: int = 0
    failed_count: int = 0
    created_at: datetime = field(default_factory=_utcnow)
    completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (ReviewStatus.COMPLETED, ReviewStatus.FAILED)

    def transition(self, status: ReviewStatus) -> None:
        """Move to ``status``; states are never revisited."""
        if status not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Review {self.id} cannot move from {self.status} to {status}"
            )
        self.status = status
        if self.is_terminal:
            self.completed_at = _utcnow()

    def fail(self, message: str) -> None:
        self.summary = message
        self.transition(ReviewStatus.FAILED)
