from sqlalchemy import Column, String, Integer, Date, ForeignKey, UniqueConstraint
from .base import BaseModel


class Sprint(BaseModel):
    __tablename__ = "sprints"

    name = Column(String(100), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)

    # Derived from allocations / history
    capacity = Column(Integer, nullable=False, default=0)
    projected_velocity = Column(Integer, nullable=False, default=0)

    # User supplied; None means results were never recorded
    completed_velocity = Column(Integer, nullable=True)
    velocity_commitment = Column(Integer, nullable=True)

    # Optional owning team, scopes velocity history
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=True, index=True)


class Allocation(BaseModel):
    """Capacity (in days) one team member contributes to one sprint."""

    __tablename__ = "sprint_allocations"
    __table_args__ = (
        UniqueConstraint("sprint_id", "team_member_id", name="uq_allocation_sprint_member"),
    )

    sprint_id = Column(Integer, ForeignKey("sprints.id"), nullable=False, index=True)
    team_member_id = Column(Integer, ForeignKey("team_members.id"), nullable=False)
    capacity = Column(Integer, nullable=False)
