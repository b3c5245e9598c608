from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from sqlalchemy import select, delete, and_, desc, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.sprint import Sprint, Allocation
from ..models.team import Team, TeamMember
from ..utils.logging import get_logger
from .exceptions import NotFoundError, StoreError

logger = get_logger(__name__)


class AllocationStore:
    """
    Session-scoped data access for sprints, teams, members and allocations.

    Relations are resolved through queries on foreign-key columns. Every
    database failure surfaces as StoreError with the driver error chained.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """Commit once on success, roll back on any failure."""
        try:
            yield self.db
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Database transaction failed: %s", str(e))
            raise StoreError(f"Database operation failed: {e}") from e
        except Exception:
            await self.db.rollback()
            raise

    async def execute(self, stmt: Any) -> Any:
        try:
            return await self.db.execute(stmt)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Database query failed: %s", str(e))
            raise StoreError(f"Database query failed: {e}") from e

    async def refresh(self, instance: Any) -> None:
        try:
            await self.db.refresh(instance)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreError(f"Database query failed: {e}") from e

    # Sprints

    async def find_sprint(self, sprint_id: int) -> Optional[Sprint]:
        result = await self.execute(select(Sprint).where(Sprint.id == sprint_id))
        return result.scalar_one_or_none()

    async def get_sprint(self, sprint_id: int) -> Sprint:
        sprint = await self.find_sprint(sprint_id)
        if sprint is None:
            raise NotFoundError("Sprint", sprint_id)
        return sprint

    async def list_sprints(
        self,
        offset: int = 0,
        limit: int = 10,
        team_id: Optional[int] = None
    ) -> List[Sprint]:
        stmt = select(Sprint)
        if team_id is not None:
            stmt = stmt.where(Sprint.team_id == team_id)
        stmt = stmt.order_by(desc(Sprint.id)).limit(limit).offset(offset)

        result = await self.execute(stmt)
        return list(result.scalars().all())

    async def count_sprints(self, team_id: Optional[int] = None) -> int:
        stmt = select(func.count(Sprint.id))
        if team_id is not None:
            stmt = stmt.where(Sprint.team_id == team_id)

        result = await self.execute(stmt)
        return int(result.scalar() or 0)

    async def recent_completed_sprints(
        self,
        team_id: Optional[int],
        limit: int
    ) -> List[Sprint]:
        """Most recent sprints with recorded positive velocity, newest first."""
        conditions = [Sprint.completed_velocity > 0]
        if team_id is not None:
            conditions.append(Sprint.team_id == team_id)

        stmt = (
            select(Sprint)
            .where(and_(*conditions))
            .order_by(desc(Sprint.start_date), desc(Sprint.id))
            .limit(limit)
        )

        result = await self.execute(stmt)
        return list(result.scalars().all())

    # Allocations

    async def list_allocations(self, sprint_id: int) -> List[Allocation]:
        stmt = (
            select(Allocation)
            .where(Allocation.sprint_id == sprint_id)
            .order_by(Allocation.id)
        )
        result = await self.execute(stmt)
        return list(result.scalars().all())

    async def allocations_by_sprint(self, sprint_ids: Sequence[int]) -> Dict[int, List[Allocation]]:
        """Allocations of several sprints in one query, grouped by sprint id."""
        grouped: Dict[int, List[Allocation]] = {sprint_id: [] for sprint_id in sprint_ids}
        if not grouped:
            return grouped

        stmt = (
            select(Allocation)
            .where(Allocation.sprint_id.in_(list(grouped)))
            .order_by(Allocation.id)
        )
        result = await self.execute(stmt)
        for allocation in result.scalars().all():
            grouped[allocation.sprint_id].append(allocation)
        return grouped

    async def find_allocation(self, sprint_id: int, team_member_id: int) -> Optional[Allocation]:
        stmt = select(Allocation).where(
            and_(
                Allocation.sprint_id == sprint_id,
                Allocation.team_member_id == team_member_id
            )
        )
        result = await self.execute(stmt)
        return result.scalar_one_or_none()

    async def delete_allocations(self, sprint_id: int, team_member_id: Optional[int] = None) -> int:
        stmt = delete(Allocation).where(Allocation.sprint_id == sprint_id)
        if team_member_id is not None:
            stmt = stmt.where(Allocation.team_member_id == team_member_id)

        result = await self.execute(stmt)
        return result.rowcount or 0

    async def allocated_members(self, sprint_id: int) -> Sequence[Any]:
        stmt = (
            select(TeamMember, Allocation.capacity)
            .join(Allocation, Allocation.team_member_id == TeamMember.id)
            .where(Allocation.sprint_id == sprint_id)
            .order_by(TeamMember.name)
        )
        result = await self.execute(stmt)
        return result.all()

    # Teams and members

    async def find_team(self, team_id: int) -> Optional[Team]:
        result = await self.execute(select(Team).where(Team.id == team_id))
        return result.scalar_one_or_none()

    async def get_team(self, team_id: int) -> Team:
        team = await self.find_team(team_id)
        if team is None:
            raise NotFoundError("Team", team_id)
        return team

    async def find_team_member(self, member_id: int) -> Optional[TeamMember]:
        result = await self.execute(select(TeamMember).where(TeamMember.id == member_id))
        return result.scalar_one_or_none()

    async def get_team_member(self, member_id: int) -> TeamMember:
        member = await self.find_team_member(member_id)
        if member is None:
            raise NotFoundError("Team member", member_id)
        return member

    async def missing_team_members(self, member_ids: Sequence[int]) -> List[int]:
        """Ids from ``member_ids`` that have no team member row."""
        if not member_ids:
            return []
        stmt = select(TeamMember.id).where(TeamMember.id.in_(set(member_ids)))
        result = await self.execute(stmt)
        found = set(result.scalars().all())
        return sorted(set(member_ids) - found)
