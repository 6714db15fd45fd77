from __future__ import annotations

from typing import Any


class SpaceError(Exception):
    """Base class for errors raised by the spatial index, agent store and scheduler."""


class OccupiedCellError(SpaceError):
    def __init__(self, position: Any, occupant: int):
        super().__init__(f"cell {position} is already occupied by agent {occupant}")
        self.position = position
        self.occupant = occupant


class NotFoundError(SpaceError):
    def __init__(self, agent_id: int):
        super().__init__(f"agent {agent_id} does not exist")
        self.agent_id = agent_id


class OutOfBoundsError(SpaceError):
    def __init__(self, position: Any, extent: Any):
        super().__init__(f"position {position} is outside extent {extent}")
        self.position = position
        self.extent = extent


class CapacityExceededError(SpaceError):
    pass


class DuplicateAgentError(SpaceError):
    def __init__(self, agent_id: int):
        super().__init__(f"agent {agent_id} is already indexed")
        self.agent_id = agent_id


class ProtectedFieldError(SpaceError):
    def __init__(self, name: str):
        super().__init__(f"field '{name}' cannot be assigned directly; use relocate for positions")
        self.name = name


class SchedulerError(SpaceError):
    pass
