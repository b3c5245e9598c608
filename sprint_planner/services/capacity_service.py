from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel

from ..models.sprint import Sprint, Allocation
from ..utils.logging import get_logger
from .exceptions import NotFoundError, PlanningValidationError
from .store import AllocationStore

logger = get_logger(__name__)


class AllocationInput(BaseModel):
    team_member_id: int
    capacity: int


@dataclass
class AllocatedMember:
    id: int
    name: str
    skill: str
    active: bool
    team_id: Optional[int]
    capacity: int


def sum_allocations(allocations: Iterable[Allocation]) -> int:
    """Total capacity of the given allocations."""
    return sum(allocation.capacity for allocation in allocations)


def normalize_allocations(entries: Iterable[AllocationInput]) -> List[AllocationInput]:
    """
    Drop entries with non-positive capacity and collapse repeated members.

    Dropped entries are not an error. When a member appears more than once
    the last entry wins.
    """
    by_member: Dict[int, AllocationInput] = {}
    for entry in entries:
        if entry.capacity <= 0:
            continue
        by_member[entry.team_member_id] = entry
    return list(by_member.values())


class CapacityAggregator:
    """Keeps ``Sprint.capacity`` equal to the sum of its allocations."""

    def __init__(self, store: AllocationStore) -> None:
        self.store = store

    async def total_capacity(self, sprint_id: int) -> int:
        """Sum of the sprint's current allocations; nothing is written."""
        return sum_allocations(await self.store.list_allocations(sprint_id))

    async def apply_capacity(self, sprint: Sprint) -> int:
        """Recompute capacity onto ``sprint`` without committing."""
        sprint.capacity = await self.total_capacity(sprint.id)
        return sprint.capacity

    async def recompute_capacity(self, sprint_id: int) -> int:
        async with self.store.transaction():
            sprint = await self.store.get_sprint(sprint_id)
            capacity = await self.apply_capacity(sprint)

        logger.info("Sprint %d capacity recomputed: %d", sprint_id, capacity)
        return capacity

    async def write_allocations(self, sprint_id: int, entries: Iterable[AllocationInput]) -> int:
        """Replace all allocations of a sprint inside the caller's transaction."""
        accepted = normalize_allocations(entries)

        missing = await self.store.missing_team_members([e.team_member_id for e in accepted])
        if missing:
            raise NotFoundError("Team member", missing[0])

        await self.store.delete_allocations(sprint_id)
        for entry in accepted:
            self.store.db.add(
                Allocation(
                    sprint_id=sprint_id,
                    team_member_id=entry.team_member_id,
                    capacity=entry.capacity
                )
            )
        await self.store.db.flush()
        return len(accepted)

    async def replace_allocations(
        self,
        sprint_id: int,
        entries: Iterable[AllocationInput]
    ) -> Sprint:
        entries = list(entries)

        async with self.store.transaction():
            sprint = await self.store.get_sprint(sprint_id)
            kept = await self.write_allocations(sprint_id, entries)
            await self.apply_capacity(sprint)

        await self.store.refresh(sprint)
        logger.info(
            "Replaced allocations for sprint %d: %d kept, %d dropped, capacity %d",
            sprint_id, kept, len(entries) - kept, sprint.capacity
        )
        return sprint

    async def upsert_allocation(self, sprint_id: int, team_member_id: int, capacity: int) -> Allocation:
        if capacity <= 0:
            raise PlanningValidationError("Allocation capacity must be greater than 0")

        async with self.store.transaction():
            sprint = await self.store.get_sprint(sprint_id)
            await self.store.get_team_member(team_member_id)

            allocation = await self.store.find_allocation(sprint_id, team_member_id)
            if allocation is not None:
                allocation.capacity = capacity
            else:
                allocation = Allocation(
                    sprint_id=sprint_id,
                    team_member_id=team_member_id,
                    capacity=capacity
                )
                self.store.db.add(allocation)
            await self.store.db.flush()
            await self.apply_capacity(sprint)

        await self.store.refresh(allocation)
        logger.info("Allocated member %d to sprint %d: %d days", team_member_id, sprint_id, capacity)
        return allocation

    async def remove_allocation(self, sprint_id: int, team_member_id: int) -> None:
        async with self.store.transaction():
            sprint = await self.store.find_sprint(sprint_id)
            removed = await self.store.delete_allocations(sprint_id, team_member_id)
            if sprint is not None:
                await self.apply_capacity(sprint)

        if removed:
            logger.info("Removed member %d from sprint %d", team_member_id, sprint_id)

    async def get_sprint_team_members(self, sprint_id: int) -> List[AllocatedMember]:
        await self.store.get_sprint(sprint_id)
        rows: List[Tuple] = list(await self.store.allocated_members(sprint_id))
        return [
            AllocatedMember(
                id=member.id,
                name=member.name,
                skill=member.skill,
                active=member.active,
                team_id=member.team_id,
                capacity=capacity
            )
            for member, capacity in rows
        ]
