"""
Velocity projection.

Projects how much of a sprint's capacity the team will actually deliver,
using the completion rate (completed velocity / capacity) of the team's
most recent closed sprints.
"""

from __future__ import annotations

import math
from typing import Iterable, List, Optional

from pydantic import BaseModel

from ..config import settings
from ..models.sprint import Sprint
from ..utils.logging import get_logger
from .capacity_service import CapacityAggregator
from .lifecycle import SprintLifecycleGuard
from .store import AllocationStore

logger = get_logger(__name__)

FALLBACK_COMPLETION_RATE = 0.8


class VelocityProjection(BaseModel):
    projected_velocity: int
    average_completion_rate: float
    sprints_analyzed: int


def completion_rate(sprint: Sprint) -> float:
    """Delivered share of capacity; 0 for a sprint without capacity."""
    capacity = sprint.capacity or 0
    if capacity > 0:
        return (sprint.completed_velocity or 0) / capacity
    return 0.0


def average_completion_rate(history: Iterable[Sprint], fallback: float = FALLBACK_COMPLETION_RATE) -> float:
    rates = [completion_rate(sprint) for sprint in history]
    if not rates:
        return fallback
    return sum(rates) / len(rates)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class VelocityProjector:
    def __init__(
        self,
        store: AllocationStore,
        guard: SprintLifecycleGuard,
        aggregator: Optional[CapacityAggregator] = None,
        history_window: Optional[int] = None,
        fallback_rate: Optional[float] = None
    ) -> None:
        self.store = store
        self.guard = guard
        self.aggregator = aggregator or CapacityAggregator(store)
        self.history_window = (
            history_window if history_window is not None else settings.velocity_history_window
        )
        self.fallback_rate = (
            fallback_rate if fallback_rate is not None else settings.default_completion_rate
        )

    async def history_for(self, sprint: Sprint) -> List[Sprint]:
        """Closed sprints comparable to ``sprint``: same team when it has one."""
        return await self.store.recent_completed_sprints(
            team_id=sprint.team_id,
            limit=self.history_window
        )

    async def project_velocity(self, sprint_id: int) -> VelocityProjection:
        async with self.store.transaction():
            sprint = await self.store.get_sprint(sprint_id)
            self.guard.ensure_editable(sprint)

            capacity = await self.aggregator.total_capacity(sprint.id)

            # History rates use stored capacities, including this sprint's own row
            history = await self.history_for(sprint)
            rate = average_completion_rate(history, self.fallback_rate)
            projected = round_half_up(capacity * rate)

            sprint.capacity = capacity
            sprint.projected_velocity = projected

        logger.info(
            "Projected velocity for sprint %d: %d (capacity %d, rate %.3f over %d sprints)",
            sprint_id, projected, capacity, rate, len(history)
        )

        return VelocityProjection(
            projected_velocity=projected,
            average_completion_rate=rate,
            sprints_analyzed=len(history)
        )
