from __future__ import annotations

from typing import Any, Dict, Generic, List, Type, TypeVar

from .agent import PROTECTED_FIELDS, Agent, Position, _place
from .errors import NotFoundError, ProtectedFieldError
from .space import SpatialIndex

A = TypeVar("A", bound=Agent)


class AgentStore(Generic[A]):
    """Owns agent records and keeps the spatial index in sync with them.

    The store is the source of truth for agent fields; the index is a derived
    structure updated eagerly by `create`, `relocate` and `remove`. Callers
    never iterate the live mapping: `all_ids` and `agents` return lists taken
    at call time, so rules may add, move or remove agents while a caller walks
    an earlier snapshot.
    """

    def __init__(self, space: SpatialIndex) -> None:
        self._space = space
        self._agents: Dict[int, A] = {}
        self._next_id = 0
        self.created = 0
        self.removed = 0
        self.relocations = 0

    @property
    def space(self) -> SpatialIndex:
        return self._space

    def __len__(self) -> int:
        return len(self._agents)

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._agents

    def __getitem__(self, agent_id: int) -> A:
        return self.get(agent_id)

    def create(self, agent_cls: Type[A], position: Position, **fields: Any) -> int:
        agent_id = self._next_id
        # Index first: an occupied or out-of-bounds cell leaves no trace.
        placed = self._space.insert(agent_id, position)
        try:
            agent = agent_cls(id=agent_id, position=placed, **fields)
        except Exception:
            self._space.remove(agent_id)
            raise
        self._agents[agent_id] = agent
        self._next_id += 1
        self.created += 1
        return agent_id

    def get(self, agent_id: int) -> A:
        try:
            return self._agents[agent_id]
        except KeyError:
            raise NotFoundError(agent_id) from None

    def set_field(self, agent_id: int, name: str, value: Any) -> None:
        if name in PROTECTED_FIELDS:
            raise ProtectedFieldError(name)
        setattr(self.get(agent_id), name, value)

    def relocate(self, agent_id: int, position: Position) -> Position:
        agent = self.get(agent_id)
        placed = self._space.relocate(agent_id, position)
        if placed != agent.position:
            _place(agent, placed)
            self.relocations += 1
        return placed

    def remove(self, agent_id: int) -> A:
        agent = self.get(agent_id)
        self._space.remove(agent_id)
        del self._agents[agent_id]
        self.removed += 1
        return agent

    def all_ids(self) -> List[int]:
        return list(self._agents)

    def agents(self) -> List[A]:
        return list(self._agents.values())

    def check_consistency(self) -> List[str]:
        problems = list(self._space._check_consistency())
        for agent_id, agent in self._agents.items():
            if agent_id not in self._space:
                problems.append(f"agent {agent_id} missing from index")
            elif self._space.position_of(agent_id) != agent.position:
                problems.append(
                    f"agent {agent_id} stored at {agent.position} but indexed at {self._space.position_of(agent_id)}"
                )
        for agent_id in self._space.ids():
            if agent_id not in self._agents:
                problems.append(f"index holds orphaned agent {agent_id}")
        return problems
