"""Per-student summary rows for the host console."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from quizdeck.core.models import RemoteSessionRecord


@dataclass(slots=True)
class RosterRow:
    """Immutable snapshot returned to consumers."""

    student_id: str
    display_name: str
    school: str
    is_online: bool
    is_focused: bool
    current_slide_index: int
    answered: int
    correct: int
    wrong: int
    pending: int
    last_seen_at: datetime | None


class RosterBuilder:
    """Builds roster rows from a session record."""

    def build(self, record: RemoteSessionRecord) -> list[RosterRow]:
        """Return rows with online students first, then by name."""
        rows = []
        for student_id, state in record.students.items():
            correct = sum(1 for r in state.responses if r.is_correct is True)
            wrong = sum(1 for r in state.responses if r.is_correct is False)
            rows.append(
                RosterRow(
                    student_id=student_id,
                    display_name=state.display_name,
                    school=state.school,
                    is_online=state.is_online,
                    is_focused=state.is_focused,
                    current_slide_index=state.current_slide_index,
                    answered=len(state.responses),
                    correct=correct,
                    wrong=wrong,
                    pending=len(state.responses) - correct - wrong,
                    last_seen_at=state.last_seen_at,
                )
            )
        return sorted(rows, key=lambda row: (not row.is_online, row.display_name.casefold()))

    def answered_count(self, record: RemoteSessionRecord, slide_id: str) -> int:
        """Number of students who answered the given slide."""
        return sum(1 for state in record.students.values() if state.response_for(slide_id) is not None)
