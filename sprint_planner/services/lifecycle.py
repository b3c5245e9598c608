"""
Sprint lifecycle guard.

A sprint is either Open (editable) or Completed (locked). The state is
derived, never stored: a sprint is Completed once the current moment is past
the end of its last day *and* a completed velocity has been recorded.
Only velocity-related fields are protected; metadata stays editable.
"""

from __future__ import annotations

from datetime import date, datetime, time
from enum import Enum
from typing import Callable, Iterable, Optional, Protocol
from zoneinfo import ZoneInfo

from .exceptions import LockViolationError
from ..config import settings
from ..utils.logging import get_logger

logger = get_logger(__name__)

Clock = Callable[[], datetime]

# Last representable millisecond of a calendar day
END_OF_DAY = time(23, 59, 59, 999000)

VELOCITY_FIELDS = frozenset({"velocity_commitment", "completed_velocity"})


class SprintState(str, Enum):
    OPEN = "open"
    COMPLETED = "completed"


class SprintLike(Protocol):
    id: Optional[int]
    end_date: date
    completed_velocity: Optional[int]


def local_clock(timezone: Optional[str] = None) -> Clock:
    """Clock returning naive wall-clock time in the given (or configured) zone."""
    zone = ZoneInfo(timezone or settings.timezone)

    def now() -> datetime:
        return datetime.now(zone).replace(tzinfo=None)

    return now


def fixed_clock(moment: datetime) -> Clock:
    """Clock frozen at ``moment``; handy for simulations and tests."""
    return lambda: moment


class SprintLifecycleGuard:
    """Decides whether a sprint is locked and rejects velocity edits on it."""

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock = clock or local_clock()

    def now(self) -> datetime:
        return self._clock()

    def state(self, sprint: SprintLike) -> SprintState:
        end_of_sprint = datetime.combine(sprint.end_date, END_OF_DAY)
        is_past_end_date = self._clock() > end_of_sprint
        has_completed_velocity = sprint.completed_velocity is not None

        if is_past_end_date and has_completed_velocity:
            return SprintState.COMPLETED
        return SprintState.OPEN

    def is_completed(self, sprint: SprintLike) -> bool:
        return self.state(sprint) is SprintState.COMPLETED

    def can_edit(self, sprint: SprintLike) -> bool:
        return not self.is_completed(sprint)

    def ensure_editable(self, sprint: SprintLike) -> None:
        """Raise LockViolationError if the sprint is Completed."""
        if self.is_completed(sprint):
            logger.warning("Rejected edit of completed sprint %s", sprint.id)
            raise LockViolationError(sprint.id)

    def ensure_update_allowed(self, sprint: SprintLike, changed_fields: Iterable[str]) -> None:
        """Reject the whole update if it touches velocity fields of a locked sprint."""
        if VELOCITY_FIELDS & set(changed_fields):
            self.ensure_editable(sprint)
