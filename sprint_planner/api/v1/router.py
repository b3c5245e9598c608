from fastapi import APIRouter
from .sprints import router as sprints_router
from .teams import router as teams_router
from .team_members import router as team_members_router

api_router = APIRouter()

# Include all sub-routers
api_router.include_router(sprints_router, prefix="/sprints", tags=["sprints"])
api_router.include_router(teams_router, prefix="/teams", tags=["teams"])
api_router.include_router(team_members_router, prefix="/team-members", tags=["team-members"])
