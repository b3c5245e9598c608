"""
Pytest configuration and shared fixtures.
"""

import os

os.environ.setdefault("ENVIRONMENT", "testing")

from datetime import date, datetime
from typing import Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sprint_planner.database import create_engine_for_url
from sprint_planner.models import Base, Sprint, Team, TeamMember
from sprint_planner.services.lifecycle import SprintLifecycleGuard, fixed_clock
from sprint_planner.services.locks import SprintLockRegistry
from sprint_planner.services.sprint_service import SprintService
from sprint_planner.services.store import AllocationStore

# Saturday noon; sprints ending before 2024-06-15 are in the past
NOW = datetime(2024, 6, 15, 12, 0, 0)

MEMORY_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = create_engine_for_url(MEMORY_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session(engine):
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest.fixture
def guard() -> SprintLifecycleGuard:
    return SprintLifecycleGuard(clock=fixed_clock(NOW))


@pytest.fixture
def store(session) -> AllocationStore:
    return AllocationStore(session)


@pytest.fixture
def service(session, guard) -> SprintService:
    return SprintService(session, guard=guard, locks=SprintLockRegistry())


@pytest.fixture
def make_team(session):
    async def _make_team(name: str = "Platform") -> Team:
        team = Team(name=name, active=True)
        session.add(team)
        await session.commit()
        return team

    return _make_team


@pytest.fixture
def make_member(session):
    async def _make_member(
        name: str = "Alice",
        skill: str = "Backend",
        team_id: Optional[int] = None
    ) -> TeamMember:
        member = TeamMember(name=name, skill=skill, active=True, team_id=team_id)
        session.add(member)
        await session.commit()
        return member

    return _make_member


@pytest.fixture
def make_sprint(session):
    """Insert a sprint row directly, bypassing the service."""

    async def _make_sprint(
        name: str = "Sprint",
        start_date: date = date(2024, 1, 1),
        end_date: date = date(2024, 1, 14),
        capacity: int = 0,
        completed_velocity: Optional[int] = None,
        velocity_commitment: Optional[int] = None,
        team_id: Optional[int] = None
    ) -> Sprint:
        sprint = Sprint(
            name=name,
            start_date=start_date,
            end_date=end_date,
            capacity=capacity,
            projected_velocity=0,
            completed_velocity=completed_velocity,
            velocity_commitment=velocity_commitment,
            team_id=team_id
        )
        session.add(sprint)
        await session.commit()
        return sprint

    return _make_sprint
