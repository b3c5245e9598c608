from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from pydantic import BaseModel, ConfigDict

from ...database import get_db
from ...services.team_service import TeamMemberService, TeamMemberCreate, TeamMemberUpdate

router = APIRouter()


class TeamMemberResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    skill: str
    active: bool
    team_id: Optional[int]


@router.post("", response_model=TeamMemberResponse, status_code=status.HTTP_201_CREATED)
async def create_team_member(request: TeamMemberCreate, db: AsyncSession = Depends(get_db)):
    """Create a team member"""

    return await TeamMemberService(db).create_member(request)


@router.get("", response_model=List[TeamMemberResponse])
async def list_team_members(team_id: Optional[int] = None, db: AsyncSession = Depends(get_db)):
    """Get active team members, optionally of one team"""

    return await TeamMemberService(db).list_members(team_id=team_id)


@router.get("/skills", response_model=List[str])
async def list_skills(team_id: Optional[int] = None, db: AsyncSession = Depends(get_db)):
    """Get distinct skills of active team members"""

    return await TeamMemberService(db).get_skills(team_id=team_id)


@router.get("/{member_id}", response_model=TeamMemberResponse)
async def get_team_member(member_id: int, db: AsyncSession = Depends(get_db)):
    return await TeamMemberService(db).get_member(member_id)


@router.patch("/{member_id}", response_model=TeamMemberResponse)
async def update_team_member(
    member_id: int,
    request: TeamMemberUpdate,
    db: AsyncSession = Depends(get_db)
):
    return await TeamMemberService(db).update_member(member_id, request)


@router.delete("/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_team_member(member_id: int, db: AsyncSession = Depends(get_db)):
    """Deactivate a team member"""

    await TeamMemberService(db).remove_member(member_id)
