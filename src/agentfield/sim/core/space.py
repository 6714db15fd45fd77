from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, Generic, Iterator, List, Optional, Tuple, TypeVar

from .errors import DuplicateAgentError, NotFoundError
from .rng import DeterministicRng

P = TypeVar("P")


class SpatialIndex(ABC, Generic[P]):
    """Associates agent ids with positions and answers neighbour queries.

    Subclasses keep two maps in step: id -> position and a per-cell (or
    per-bucket) collection of ids. Every public mutation leaves both maps
    consistent before it returns.
    """

    topology: str = "abstract"

    def __init__(self, extent: Tuple[float, float], periodic: bool) -> None:
        self._extent = extent
        self._periodic = periodic
        self._positions: Dict[int, P] = {}

    @property
    def extent(self) -> Tuple[float, float]:
        return self._extent

    @property
    def periodic(self) -> bool:
        return self._periodic

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._positions

    def __len__(self) -> int:
        return len(self._positions)

    def __iter__(self) -> Iterator[int]:
        return iter(list(self._positions))

    def ids(self) -> List[int]:
        return list(self._positions)

    def position_of(self, agent_id: int) -> P:
        try:
            return self._positions[agent_id]
        except KeyError:
            raise NotFoundError(agent_id) from None

    def insert(self, agent_id: int, position: P) -> P:
        if agent_id in self._positions:
            raise DuplicateAgentError(agent_id)
        position = self.normalize(position)
        self._check_free(agent_id, position)
        self._add(agent_id, position)
        self._positions[agent_id] = position
        return position

    def remove(self, agent_id: int) -> P:
        position = self.position_of(agent_id)
        self._discard(agent_id, position)
        del self._positions[agent_id]
        return position

    def relocate(self, agent_id: int, new_position: P) -> P:
        old_position = self.position_of(agent_id)
        new_position = self.normalize(new_position)
        if new_position == old_position:
            return old_position
        self._check_free(agent_id, new_position)
        self._discard(agent_id, old_position)
        self._add(agent_id, new_position)
        self._positions[agent_id] = new_position
        return new_position

    @abstractmethod
    def normalize(self, position: P) -> P:
        """Return the canonical in-extent form of `position` or raise OutOfBoundsError."""

    @abstractmethod
    def nearby_ids(self, position: P, radius: float, exclude_id: Optional[int] = None) -> List[int]:
        """Topology-specific neighbour query used by the rule functions."""

    @abstractmethod
    def distance(self, a: P, b: P) -> float:
        ...

    @abstractmethod
    def random_position(self, rng: DeterministicRng) -> P:
        ...

    @abstractmethod
    def _add(self, agent_id: int, position: P) -> None:
        ...

    @abstractmethod
    def _discard(self, agent_id: int, position: P) -> None:
        ...

    def _check_free(self, agent_id: int, position: P) -> None:
        """Raise before any mutation if `agent_id` may not move into `position`."""

    def _check_consistency(self) -> List[str]:
        return []
