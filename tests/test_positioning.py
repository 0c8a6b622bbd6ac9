"""Tests for the position resolver ladder."""

from __future__ import annotations

import asyncio

import pytest

from app.core.entities import CommentCategory, DiffAnchorContext, ReviewComment, Severity
from app.core.exceptions import PositionResolutionFailure
from app.core.markers import NOTE_PREFIX, POSITIONED_PREFIX
from app.core.positioning import Placement, PositionResolver
from tests.fakes import COMPLETE_ANCHOR, FakeVcs, make_file

COMMENT = ReviewComment(
    file_path="app/run.py",
    line_number=5,
    category=CommentCategory.SECURITY,
    severity=Severity.CRITICAL,
    text="shell=True allows command injection",
)


def _submit(
    vcs: FakeVcs, anchor: DiffAnchorContext = COMPLETE_ANCHOR, with_file: bool = True
) -> Placement:
    return asyncio.run(
        PositionResolver().submit(
            vcs, "group/project", 12, COMMENT, anchor, make_file() if with_file else None
        )
    )


class TestResolve:
    def test_payload_carries_anchor_and_diff_position(self) -> None:
        payload = PositionResolver().resolve(COMMENT, COMPLETE_ANCHOR, make_file())
        assert payload is not None
        assert payload.new_path == "app/run.py"
        assert payload.new_line == 5
        assert payload.anchor == COMPLETE_ANCHOR
        assert payload.diff_position == 6
        assert payload.old_line is None
        assert payload.body.startswith(POSITIONED_PREFIX)

    def test_incomplete_anchor_returns_none(self) -> None:
        anchor = DiffAnchorContext(base_sha="base111", head_sha=None)
        assert PositionResolver().resolve(COMMENT, anchor, make_file()) is None

    def test_unknown_file_has_no_diff_position(self) -> None:
        payload = PositionResolver().resolve(COMMENT, COMPLETE_ANCHOR, None)
        assert payload is not None
        assert payload.diff_position is None


class TestLadder:
    def test_first_rung_short_circuits(self) -> None:
        vcs = FakeVcs()
        assert _submit(vcs) is Placement.POSITIONED
        assert len(vcs.positioned_attempts) == 1
        assert vcs.notes == []

    def test_second_rung_mirrors_old_side(self) -> None:
        class SecondRungOnly(FakeVcs):
            async def submit_positioned_comment(self, project, request_id, payload):  # type: ignore[override]
                self.positioned_attempts.append(payload)
                return payload.old_line is not None

        vcs = SecondRungOnly()
        assert _submit(vcs) is Placement.POSITIONED_BOTH_SIDES

        first, second = vcs.positioned_attempts
        assert first.old_line is None
        assert (second.old_path, second.old_line) == ("app/run.py", 5)
        assert vcs.notes == []

    @pytest.mark.parametrize("mode", ["reject", "raise"])
    def test_plain_note_after_every_positioned_rung_fails(self, mode: str) -> None:
        vcs = FakeVcs(positioned=mode)
        assert _submit(vcs) is Placement.PLAIN_NOTE
        assert len(vcs.positioned_attempts) == 2
        assert len(vcs.notes) == 1
        assert vcs.notes[0].startswith(NOTE_PREFIX)
        assert "app/run.py (line 5)" in vcs.notes[0]

    def test_incomplete_anchor_goes_straight_to_note(self) -> None:
        vcs = FakeVcs()
        assert _submit(vcs, anchor=DiffAnchorContext()) is Placement.PLAIN_NOTE
        assert vcs.positioned_attempts == []
        assert len(vcs.notes) == 1

    def test_rejected_note_raises(self) -> None:
        vcs = FakeVcs(positioned="reject", note_accepted=False)
        with pytest.raises(PositionResolutionFailure):
            _submit(vcs)
        assert len(vcs.notes) == 1

    def test_failing_note_raises(self) -> None:
        vcs = FakeVcs(positioned="raise", note_raises=True)
        with pytest.raises(PositionResolutionFailure):
            _submit(vcs)
        assert len(vcs.notes) == 1
