from sqlalchemy import Column, String, Boolean, ForeignKey, Text, Integer, DateTime
from sqlalchemy.sql import func
from .base import BaseModel


class Team(BaseModel):
    __tablename__ = "teams"

    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    active = Column(Boolean, nullable=False, default=True)


class TeamMember(BaseModel):
    __tablename__ = "team_members"

    name = Column(String(100), nullable=False)
    skill = Column(String(45), nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    updated_time = Column(DateTime(timezone=True), server_default=func.now())

    # Optional owning team
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=True, index=True)
