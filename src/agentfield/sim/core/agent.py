from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Dict, Tuple, Union

from .errors import ProtectedFieldError

GridPosition = Tuple[int, int]
Point = Tuple[float, float]
Position = Union[GridPosition, Point]

PROTECTED_FIELDS = frozenset({"id", "position"})


@dataclass(slots=True)
class Agent:
    """Base record owned by an AgentStore.

    Scenario records subclass this with a fixed set of extra fields. `id` and
    `position` are written once at construction; afterwards positions change
    only through `AgentStore.relocate`, which keeps the spatial index in sync.
    """

    id: int
    position: Position

    def __setattr__(self, name: str, value: Any) -> None:
        if name in PROTECTED_FIELDS and hasattr(self, name):
            raise ProtectedFieldError(name)
        object.__setattr__(self, name, value)

    def field_names(self) -> Tuple[str, ...]:
        return tuple(f.name for f in fields(self))

    def export(self, *names: str) -> Dict[str, Any]:
        selected = names or self.field_names()
        return {name: getattr(self, name) for name in selected}


def _place(agent: Agent, position: Position) -> None:
    object.__setattr__(agent, "position", position)
