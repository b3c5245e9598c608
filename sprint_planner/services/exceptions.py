from typing import Optional

LOCKED_SPRINT_MESSAGE = (
    "Cannot edit completed sprint. Projected velocity and velocity commitment "
    "cannot be modified after sprint completion."
)


class PlanningServiceError(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(PlanningServiceError):
    def __init__(self, entity: str, entity_id: int) -> None:
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class LockViolationError(PlanningServiceError):
    def __init__(self, sprint_id: Optional[int] = None) -> None:
        super().__init__(LOCKED_SPRINT_MESSAGE)
        self.sprint_id = sprint_id


class PlanningValidationError(PlanningServiceError):
    pass


class StoreError(PlanningServiceError):
    """Failure raised by the database layer; the original error is chained."""
    pass


__all__ = [
    "LOCKED_SPRINT_MESSAGE",
    "PlanningServiceError",
    "NotFoundError",
    "LockViolationError",
    "PlanningValidationError",
    "StoreError",
]
