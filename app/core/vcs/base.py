"""VCS provider capability set shared by GitHub and GitLab.

The review engine and the position resolver depend only on this base class.
Implementations hold credentials and transport settings, never per-request
state: anchor identifiers travel in the ``ChangeSet`` returned by
``fetch_changed_files`` and in each ``PositionedPayload``.

Submission methods return ``True``/``False`` for accepted/rejected and raise
``VcsError`` subclasses for transport failures.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace

from app.core.diff_parser import parse_patch
from app.core.entities import ChangeSet, DiffAnchorContext, FileChange
from app.core.language import detect_language


@dataclass(frozen=True)
class ExistingComment:
    """A comment or note already present on the request."""

    id: int
    body: str
    kind: str = "note"  # provider-specific family, selects the delete endpoint


@dataclass(frozen=True)
class PositionedPayload:
    """Provider-neutral description of a comment bound to a diff line."""

    body: str
    new_path: str
    new_line: int
    anchor: DiffAnchorContext
    old_path: str | None = None
    old_line: int | None = None
    diff_position: int | None = None

    def with_old_side(self) -> PositionedPayload:
        """Same payload with the old side mirrored from the new side."""
        return replace(self, old_path=self.new_path, old_line=self.new_line)


class VcsProvider(ABC):
    """Abstract VCS provider — one implementation per hosting service."""

    name: str = "vcs"

    @abstractmethod
    async def fetch_changed_files(self, project: str, request_id: int) -> ChangeSet:
        """Fetch modified files with parsed diffs and the anchor context.

        Raises:
            DiffFetchError: If the request or its changes cannot be fetched.
        """

    @abstractmethod
    async def fetch_existing_comments(
        self, project: str, request_id: int
    ) -> list[ExistingComment]:
        """Return every comment/note currently on the request."""

    @abstractmethod
    async def delete_comment(
        self, project: str, request_id: int, comment: ExistingComment
    ) -> bool:
        """Delete one existing comment."""

    @abstractmethod
    async def submit_positioned_comment(
        self, project: str, request_id: int, payload: PositionedPayload
    ) -> bool:
        """Post a comment anchored to a diff line."""

    @abstractmethod
    async def submit_plain_note(self, project: str, request_id: int, body: str) -> bool:
        """Post an unanchored note on the request."""

    @abstractmethod
    async def submit_summary(self, project: str, request_id: int, text: str) -> bool:
        """Post the review summary note."""

    # ------------------------------------------------------------------
    #  Shared helpers
    # ------------------------------------------------------------------

    @staticmethod
    def build_file_change(path: str, patch: str, content: str) -> FileChange:
        """Parse ``patch`` and wrap it with ``content`` into a ``FileChange``."""
        return FileChange(
            path=path,
            content=content,
            language=detect_language(path),
            changes=tuple(parse_patch(patch)),
        )
