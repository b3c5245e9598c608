from typing import List, Optional
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_
from pydantic import BaseModel

from ..models.team import Team, TeamMember
from ..utils.logging import get_logger
from .exceptions import PlanningValidationError
from .store import AllocationStore

logger = get_logger(__name__)


class TeamCreate(BaseModel):
    name: str
    description: Optional[str] = None
    active: bool = True


class TeamUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    active: Optional[bool] = None


class TeamMemberCreate(BaseModel):
    name: str
    skill: str
    active: bool = True
    team_id: Optional[int] = None


class TeamMemberUpdate(BaseModel):
    name: Optional[str] = None
    skill: Optional[str] = None
    active: Optional[bool] = None
    team_id: Optional[int] = None


class TeamService:
    """Service for managing teams; removal is a soft delete"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.store = AllocationStore(db)

    async def create_team(self, data: TeamCreate) -> Team:
        async with self.store.transaction():
            team = Team(**data.model_dump())
            self.db.add(team)

        await self.store.refresh(team)
        logger.info("Created team %d '%s'", team.id, team.name)
        return team

    async def list_teams(self) -> List[Team]:
        """Active teams ordered by name"""
        stmt = select(Team).where(Team.active.is_(True)).order_by(Team.name)
        result = await self.store.execute(stmt)
        return list(result.scalars().all())

    async def get_team(self, team_id: int) -> Team:
        return await self.store.get_team(team_id)

    async def update_team(self, team_id: int, data: TeamUpdate) -> Team:
        changes = data.model_dump(exclude_unset=True)

        async with self.store.transaction():
            team = await self.store.get_team(team_id)
            for field, value in changes.items():
                if value is None and field != "description":
                    continue
                setattr(team, field, value)

        await self.store.refresh(team)
        logger.info("Updated team %d", team_id)
        return team

    async def remove_team(self, team_id: int) -> None:
        async with self.store.transaction():
            team = await self.store.get_team(team_id)
            team.active = False

        logger.info("Deactivated team %d", team_id)


class TeamMemberService:
    """Service for managing team members; removal is a soft delete"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.store = AllocationStore(db)

    async def create_member(self, data: TeamMemberCreate) -> TeamMember:
        async with self.store.transaction():
            if data.team_id is not None:
                await self._validate_team_exists(data.team_id)

            member = TeamMember(**data.model_dump(), updated_time=datetime.now(timezone.utc))
            self.db.add(member)

        await self.store.refresh(member)
        logger.info("Created team member %d '%s'", member.id, member.name)
        return member

    async def list_members(self, team_id: Optional[int] = None) -> List[TeamMember]:
        """Active members, optionally of one team, ordered by name"""
        conditions = [TeamMember.active.is_(True)]
        if team_id is not None:
            conditions.append(TeamMember.team_id == team_id)

        stmt = select(TeamMember).where(and_(*conditions)).order_by(TeamMember.name)
        result = await self.store.execute(stmt)
        return list(result.scalars().all())

    async def get_member(self, member_id: int) -> TeamMember:
        return await self.store.get_team_member(member_id)

    async def update_member(self, member_id: int, data: TeamMemberUpdate) -> TeamMember:
        changes = data.model_dump(exclude_unset=True)

        async with self.store.transaction():
            member = await self.store.get_team_member(member_id)
            if changes.get("team_id") is not None:
                await self._validate_team_exists(changes["team_id"])

            for field, value in changes.items():
                if value is None and field != "team_id":
                    continue
                setattr(member, field, value)
            member.updated_time = datetime.now(timezone.utc)

        await self.store.refresh(member)
        logger.info("Updated team member %d", member_id)
        return member

    async def remove_member(self, member_id: int) -> None:
        async with self.store.transaction():
            member = await self.store.get_team_member(member_id)
            member.active = False
            member.updated_time = datetime.now(timezone.utc)

        logger.info("Deactivated team member %d", member_id)

    async def get_skills(self, team_id: Optional[int] = None) -> List[str]:
        """Distinct skills among active members"""
        conditions = [TeamMember.active.is_(True)]
        if team_id is not None:
            conditions.append(TeamMember.team_id == team_id)

        stmt = (
            select(TeamMember.skill)
            .where(and_(*conditions))
            .distinct()
            .order_by(TeamMember.skill)
        )
        result = await self.store.execute(stmt)
        return list(result.scalars().all())

    async def _validate_team_exists(self, team_id: int) -> None:
        team = await self.store.find_team(team_id)
        if team is None:
            raise PlanningValidationError(f"Team {team_id} not found")
