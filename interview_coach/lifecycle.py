"""Interview status lifecycle: scheduled -> in-progress -> completed."""
from typing import Optional, Tuple

from interview_coach.database.schemas import InterviewStatus
from interview_coach.errors import InvalidStateError

STATUS_ORDER = [
    InterviewStatus.SCHEDULED,
    InterviewStatus.IN_PROGRESS,
    InterviewStatus.COMPLETED,
]


def initial_status(scheduled_date: Optional[str]) -> InterviewStatus:
    return InterviewStatus.SCHEDULED if scheduled_date else InterviewStatus.IN_PROGRESS


def resolve_transition(current: InterviewStatus, requested: InterviewStatus) -> Tuple[InterviewStatus, bool]:
    """Return (new_status, changed).

    Moving to the current status is a no-op. Moving backwards raises.
    """
    current = InterviewStatus(current)
    requested = InterviewStatus(requested)
    if requested == current:
        return current, False
    if STATUS_ORDER.index(requested) < STATUS_ORDER.index(current):
        raise InvalidStateError(
            f"Interview cannot move from '{current.value}' back to '{requested.value}'"
        )
    return requested, True


def advance_on_activity(current: InterviewStatus) -> Tuple[InterviewStatus, bool]:
    """Status after a message lands in one of the interview's chats."""
    if InterviewStatus(current) == InterviewStatus.SCHEDULED:
        return InterviewStatus.IN_PROGRESS, True
    return InterviewStatus(current), False
