from __future__ import annotations

import logging
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from pygame.math import Vector2

from .agent import Agent, Position
from .errors import SchedulerError
from .grid_space import GridSpace
from .rng import DeterministicRng
from .space import SpatialIndex
from .store import AgentStore

logger = logging.getLogger(__name__)

A = TypeVar("A", bound=Agent)
DEFAULT_PLACEMENT_ATTEMPTS = 1000


class Model(Generic[A]):
    """Explicit simulation handle: agent store, spatial index, properties, RNG and tick counter.

    Rules receive the model as their only context and mutate it through the
    methods below; there is no module-level state.
    """

    def __init__(
        self,
        space: SpatialIndex,
        properties: Any = None,
        rng: Optional[DeterministicRng] = None,
        seed: int = 0,
        max_placement_attempts: int = DEFAULT_PLACEMENT_ATTEMPTS,
    ) -> None:
        self.space = space
        self.store: AgentStore[A] = AgentStore(space)
        self.properties = properties
        self.rng = rng if rng is not None else DeterministicRng(seed)
        self.max_placement_attempts = max_placement_attempts
        self.tick = 0
        self._stepping = False

    @property
    def is_stepping(self) -> bool:
        return self._stepping

    def __len__(self) -> int:
        return len(self.store)

    def __getitem__(self, agent_id: int) -> A:
        return self.store.get(agent_id)

    def agent(self, agent_id: int) -> A:
        return self.store.get(agent_id)

    def has_agent(self, agent_id: int) -> bool:
        return agent_id in self.store

    def ids(self) -> List[int]:
        return self.store.all_ids()

    def agents(self) -> List[A]:
        return self.store.agents()

    def add_agent(self, agent_cls: Type[A], position: Optional[Position] = None, **fields: Any) -> int:
        if position is None:
            position = self.random_position()
        return self.store.create(agent_cls, position, **fields)

    def random_position(self) -> Position:
        if isinstance(self.space, GridSpace):
            return self.space.random_empty(self.rng, self.max_placement_attempts)
        return self.space.random_position(self.rng)

    def move_agent(self, agent_id: int, position: Position) -> Position:
        return self.store.relocate(agent_id, position)

    def move_agent_single(self, agent_id: int) -> Position:
        """Move a grid agent to a uniformly random free cell."""

        if not isinstance(self.space, GridSpace):
            raise TypeError("move_agent_single requires a GridSpace")
        self.store.get(agent_id)
        cell = self.space.random_empty(self.rng, self.max_placement_attempts)
        return self.store.relocate(agent_id, cell)

    def remove_agent(self, agent_id: int) -> A:
        return self.store.remove(agent_id)

    def set_field(self, agent_id: int, name: str, value: Any) -> None:
        self.store.set_field(agent_id, name, value)

    def nearby_ids(self, agent_id: int, radius: float = 1) -> List[int]:
        position = self.store.get(agent_id).position
        return self.space.nearby_ids(position, radius, exclude_id=agent_id)

    def nearby_agents(self, agent_id: int, radius: float = 1) -> List[A]:
        get = self.store.get
        return [get(other) for other in self.nearby_ids(agent_id, radius)]

    def snapshot(self, *fields: str) -> List[Dict[str, Any]]:
        """Positions plus the named fields of every live agent, at a quiescent point."""

        if self._stepping:
            raise SchedulerError("snapshot requested while a tick is in progress")
        rows = []
        for agent in self.store.agents():
            row: Dict[str, Any] = {"id": agent.id, "x": agent.position[0], "y": agent.position[1]}
            for name in fields:
                value = getattr(agent, name)
                if isinstance(value, Vector2):
                    value = (value.x, value.y)
                row[name] = value
            rows.append(row)
        return rows

    def check_consistency(self) -> List[str]:
        return self.store.check_consistency()
