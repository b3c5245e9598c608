from __future__ import annotations

from typing import (
    Any,
    Dict,
    List,
    Optional,
    Tuple,
)
from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel

from ..models.sprint import Sprint, Allocation
from ..utils.logging import get_logger
from .capacity_service import AllocatedMember, AllocationInput, CapacityAggregator
from .exceptions import PlanningValidationError
from .lifecycle import SprintLifecycleGuard
from .locks import SprintLockRegistry, sprint_locks
from .store import AllocationStore
from .velocity_service import VelocityProjection, VelocityProjector
from .working_days import count_working_days

logger = get_logger(__name__)

# Type aliases
TeamId = int
SprintId = int
TeamMemberId = int


# Pydantic models
class SprintCreate(BaseModel):
    name: str
    start_date: date
    end_date: date
    completed_velocity: Optional[int] = None
    velocity_commitment: Optional[int] = None
    team_id: Optional[TeamId] = None
    allocations: Optional[List[AllocationInput]] = None


class SprintUpdate(BaseModel):
    name: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    completed_velocity: Optional[int] = None
    velocity_commitment: Optional[int] = None
    team_id: Optional[TeamId] = None
    allocations: Optional[List[AllocationInput]] = None


class WorkingDays(BaseModel):
    working_days: int
    start_date: date
    end_date: date


# Fields that cannot be cleared once a sprint exists
REQUIRED_FIELDS = ("name", "start_date", "end_date")


class SprintService:
    """
    Sprint planning operations.

    Creates, updates and deletes sprints, keeps their capacity in line with
    member allocations and projects velocity from team history. Velocity
    fields of a completed sprint are locked; every mutation of one sprint is
    serialised through the per-sprint lock registry.
    """

    def __init__(
        self,
        db: AsyncSession,
        guard: Optional[SprintLifecycleGuard] = None,
        locks: Optional[SprintLockRegistry] = None
    ) -> None:
        self.db = db
        self.store = AllocationStore(db)
        self.guard = guard or SprintLifecycleGuard()
        self.locks = locks or sprint_locks
        self.capacity = CapacityAggregator(self.store)
        self.velocity = VelocityProjector(self.store, self.guard, self.capacity)

    async def create_sprint(self, data: SprintCreate) -> Sprint:
        """Create a sprint and its initial allocations."""

        logger.info("Creating sprint '%s'", data.name)

        self._validate_velocity_fields(data.model_dump())

        async with self.store.transaction():
            if data.team_id is not None:
                await self._validate_team_exists(data.team_id)

            sprint = Sprint(
                name=data.name,
                start_date=data.start_date,
                end_date=data.end_date,
                completed_velocity=data.completed_velocity,
                velocity_commitment=data.velocity_commitment,
                team_id=data.team_id,
                capacity=0,
                projected_velocity=0
            )
            self.db.add(sprint)
            await self.db.flush()

            if data.allocations:
                await self.capacity.write_allocations(sprint.id, data.allocations)
            await self.capacity.apply_capacity(sprint)

        await self.store.refresh(sprint)
        logger.info("Created sprint %d with capacity %d", sprint.id, sprint.capacity)
        return sprint

    async def get_sprint(self, sprint_id: SprintId) -> Sprint:
        return await self.store.get_sprint(sprint_id)

    async def list_sprints(
        self,
        page: int = 1,
        limit: int = 10,
        team_id: Optional[TeamId] = None
    ) -> Tuple[List[Sprint], int]:
        """Page through sprints, newest first."""

        page = max(page, 1)
        sprints = await self.store.list_sprints(
            offset=(page - 1) * limit,
            limit=limit,
            team_id=team_id
        )
        total = await self.store.count_sprints(team_id=team_id)
        return sprints, total

    async def get_allocations(self, sprint_id: SprintId) -> List[Allocation]:
        return await self.store.list_allocations(sprint_id)

    async def get_allocations_by_sprint(self, sprint_ids: List[SprintId]) -> Dict[SprintId, List[Allocation]]:
        return await self.store.allocations_by_sprint(sprint_ids)

    async def update_sprint(self, sprint_id: SprintId, data: SprintUpdate) -> Sprint:
        """Apply a partial update; velocity fields are locked once the sprint completes."""

        changes = data.model_dump(exclude_unset=True)
        allocations = changes.pop("allocations", None)

        self._validate_velocity_fields(changes)

        async with self.locks.acquire(sprint_id):
            async with self.store.transaction():
                sprint = await self.store.get_sprint(sprint_id)
                self.guard.ensure_update_allowed(sprint, changes.keys())

                if changes.get("team_id") is not None:
                    await self._validate_team_exists(changes["team_id"])

                for field, value in changes.items():
                    if value is None and field in REQUIRED_FIELDS:
                        continue
                    setattr(sprint, field, value)

                if allocations is not None:
                    await self.capacity.write_allocations(
                        sprint_id,
                        [AllocationInput(**entry) for entry in allocations]
                    )
                    await self.capacity.apply_capacity(sprint)

            await self.store.refresh(sprint)

        logger.info("Updated sprint %d fields: %s", sprint_id, sorted(changes))
        return sprint

    async def delete_sprint(self, sprint_id: SprintId) -> None:
        """Delete a sprint together with its allocations."""

        async with self.locks.acquire(sprint_id):
            async with self.store.transaction():
                sprint = await self.store.get_sprint(sprint_id)
                removed = await self.store.delete_allocations(sprint_id)
                await self.db.delete(sprint)

        logger.info("Deleted sprint %d and %d allocations", sprint_id, removed)

    async def recompute_capacity(self, sprint_id: SprintId) -> int:
        async with self.locks.acquire(sprint_id):
            return await self.capacity.recompute_capacity(sprint_id)

    async def recompute_projected_velocity(self, sprint_id: SprintId) -> VelocityProjection:
        async with self.locks.acquire(sprint_id):
            return await self.velocity.project_velocity(sprint_id)

    async def replace_allocations(
        self,
        sprint_id: SprintId,
        allocations: List[AllocationInput]
    ) -> Sprint:
        async with self.locks.acquire(sprint_id):
            return await self.capacity.replace_allocations(sprint_id, allocations)

    async def upsert_allocation(
        self,
        sprint_id: SprintId,
        team_member_id: TeamMemberId,
        capacity: int
    ) -> Allocation:
        async with self.locks.acquire(sprint_id):
            return await self.capacity.upsert_allocation(sprint_id, team_member_id, capacity)

    async def remove_allocation(self, sprint_id: SprintId, team_member_id: TeamMemberId) -> None:
        async with self.locks.acquire(sprint_id):
            await self.capacity.remove_allocation(sprint_id, team_member_id)

    async def get_sprint_team_members(self, sprint_id: SprintId) -> List[AllocatedMember]:
        return await self.capacity.get_sprint_team_members(sprint_id)

    async def get_sprint_working_days(self, sprint_id: SprintId) -> WorkingDays:
        sprint = await self.store.get_sprint(sprint_id)
        return WorkingDays(
            working_days=count_working_days(sprint.start_date, sprint.end_date),
            start_date=sprint.start_date,
            end_date=sprint.end_date
        )

    def is_sprint_completed(self, sprint: Sprint) -> bool:
        return self.guard.is_completed(sprint)

    # Private methods

    async def _validate_team_exists(self, team_id: TeamId) -> None:
        team = await self.store.find_team(team_id)
        if team is None:
            raise PlanningValidationError(f"Team {team_id} not found")

    def _validate_velocity_fields(self, fields: Dict[str, Any]) -> None:
        commitment = fields.get("velocity_commitment")
        if commitment is not None and commitment <= 0:
            raise PlanningValidationError("Velocity commitment must be greater than 0")

        completed = fields.get("completed_velocity")
        if completed is not None and completed < 0:
            raise PlanningValidationError("Completed velocity cannot be negative")


def working_days_between(start_date: date, end_date: date) -> WorkingDays:
    return WorkingDays(
        working_days=count_working_days(start_date, end_date),
        start_date=start_date,
        end_date=end_date
    )


__all__ = [
    "SprintService",
    "SprintCreate",
    "SprintUpdate",
    "WorkingDays",
    "working_days_between",
]
