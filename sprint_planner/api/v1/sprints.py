from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from datetime import date
from pydantic import BaseModel, ConfigDict

from ...database import get_db
from ...services.capacity_service import AllocationInput
from ...services.sprint_service import (
    SprintService,
    SprintCreate,
    SprintUpdate,
    WorkingDays,
    working_days_between,
)
from ...services.velocity_service import VelocityProjection
from ...models.sprint import Sprint, Allocation

router = APIRouter()


class AllocationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sprint_id: int
    team_member_id: int
    capacity: int


class SprintResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    start_date: date
    end_date: date
    capacity: int
    projected_velocity: int
    completed_velocity: Optional[int]
    velocity_commitment: Optional[int]
    team_id: Optional[int]
    is_completed: bool = False
    allocations: List[AllocationResponse] = []


class SprintListResponse(BaseModel):
    sprints: List[SprintResponse]
    total: int
    page: int
    limit: int


class AllocatedMemberResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    skill: str
    active: bool
    team_id: Optional[int]
    capacity: int


class AllocationRequest(BaseModel):
    team_member_id: int
    capacity: int


def _sprint_response(
    service: SprintService,
    sprint: Sprint,
    allocations: List[Allocation]
) -> SprintResponse:
    return SprintResponse.model_validate(
        {
            **sprint.to_dict(),
            "is_completed": service.is_sprint_completed(sprint),
            "allocations": [AllocationResponse.model_validate(a) for a in allocations],
        }
    )


def get_sprint_service(db: AsyncSession = Depends(get_db)) -> SprintService:
    return SprintService(db)


@router.post("", response_model=SprintResponse, status_code=status.HTTP_201_CREATED)
async def create_sprint(
    request: SprintCreate,
    service: SprintService = Depends(get_sprint_service)
):
    """Create a new sprint with optional member allocations"""

    sprint = await service.create_sprint(request)
    return _sprint_response(service, sprint, await service.get_allocations(sprint.id))


@router.get("", response_model=SprintListResponse)
async def list_sprints(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    team_id: Optional[int] = None,
    service: SprintService = Depends(get_sprint_service)
):
    """Get sprints, newest first"""

    sprints, total = await service.list_sprints(page=page, limit=limit, team_id=team_id)
    allocations = await service.get_allocations_by_sprint([sprint.id for sprint in sprints])
    return SprintListResponse(
        sprints=[_sprint_response(service, sprint, allocations[sprint.id]) for sprint in sprints],
        total=total,
        page=page,
        limit=limit
    )


@router.get("/working-days", response_model=WorkingDays)
async def get_working_days(start_date: date, end_date: date):
    """Count working days (Mon-Fri) between two dates, inclusive"""

    return working_days_between(start_date, end_date)


@router.get("/{sprint_id}", response_model=SprintResponse)
async def get_sprint(
    sprint_id: int,
    service: SprintService = Depends(get_sprint_service)
):
    """Get sprint details"""

    sprint = await service.get_sprint(sprint_id)
    return _sprint_response(service, sprint, await service.get_allocations(sprint.id))


@router.patch("/{sprint_id}", response_model=SprintResponse)
async def update_sprint(
    sprint_id: int,
    request: SprintUpdate,
    service: SprintService = Depends(get_sprint_service)
):
    """Update a sprint; velocity fields are locked once the sprint is completed"""

    sprint = await service.update_sprint(sprint_id, request)
    return _sprint_response(service, sprint, await service.get_allocations(sprint.id))


@router.delete("/{sprint_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_sprint(
    sprint_id: int,
    service: SprintService = Depends(get_sprint_service)
):
    """Delete a sprint and its allocations"""

    await service.delete_sprint(sprint_id)


@router.get("/{sprint_id}/working-days", response_model=WorkingDays)
async def get_sprint_working_days(
    sprint_id: int,
    service: SprintService = Depends(get_sprint_service)
):
    """Count working days of a sprint"""

    return await service.get_sprint_working_days(sprint_id)


@router.post("/{sprint_id}/calculate-projected-velocity", response_model=VelocityProjection)
async def calculate_projected_velocity(
    sprint_id: int,
    service: SprintService = Depends(get_sprint_service)
):
    """Recompute capacity and projected velocity from team history"""

    return await service.recompute_projected_velocity(sprint_id)


@router.get("/{sprint_id}/team-members", response_model=List[AllocatedMemberResponse])
async def get_sprint_team_members(
    sprint_id: int,
    service: SprintService = Depends(get_sprint_service)
):
    """Get team members allocated to a sprint with their capacity"""

    return await service.get_sprint_team_members(sprint_id)


@router.put("/{sprint_id}/allocations", response_model=SprintResponse)
async def replace_allocations(
    sprint_id: int,
    allocations: List[AllocationRequest],
    service: SprintService = Depends(get_sprint_service)
):
    """Replace all allocations; entries with non-positive capacity are dropped"""

    sprint = await service.replace_allocations(
        sprint_id,
        [AllocationInput(**a.model_dump()) for a in allocations]
    )
    return _sprint_response(service, sprint, await service.get_allocations(sprint.id))


@router.post("/{sprint_id}/allocations", response_model=AllocationResponse)
async def upsert_allocation(
    sprint_id: int,
    request: AllocationRequest,
    service: SprintService = Depends(get_sprint_service)
):
    """Assign a team member to a sprint, or change their capacity"""

    return await service.upsert_allocation(sprint_id, request.team_member_id, request.capacity)


@router.delete("/{sprint_id}/allocations/{team_member_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_allocation(
    sprint_id: int,
    team_member_id: int,
    service: SprintService = Depends(get_sprint_service)
):
    """Remove a team member from a sprint; a no-op if not allocated"""

    await service.remove_allocation(sprint_id, team_member_id)
