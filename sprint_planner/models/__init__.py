from .base import Base, BaseModel
from .team import Team, TeamMember
from .sprint import Sprint, Allocation

__all__ = ["Base", "BaseModel", "Team", "TeamMember", "Sprint", "Allocation"]
