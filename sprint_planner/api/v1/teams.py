from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from pydantic import BaseModel, ConfigDict

from ...database import get_db
from ...services.team_service import TeamService, TeamCreate, TeamUpdate

router = APIRouter()


class TeamResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str]
    active: bool


@router.post("", response_model=TeamResponse, status_code=status.HTTP_201_CREATED)
async def create_team(request: TeamCreate, db: AsyncSession = Depends(get_db)):
    """Create a team"""

    return await TeamService(db).create_team(request)


@router.get("", response_model=List[TeamResponse])
async def list_teams(db: AsyncSession = Depends(get_db)):
    """Get active teams"""

    return await TeamService(db).list_teams()


@router.get("/{team_id}", response_model=TeamResponse)
async def get_team(team_id: int, db: AsyncSession = Depends(get_db)):
    return await TeamService(db).get_team(team_id)


@router.patch("/{team_id}", response_model=TeamResponse)
async def update_team(team_id: int, request: TeamUpdate, db: AsyncSession = Depends(get_db)):
    return await TeamService(db).update_team(team_id, request)


@router.delete("/{team_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_team(team_id: int, db: AsyncSession = Depends(get_db)):
    """Deactivate a team"""

    await TeamService(db).remove_team(team_id)
