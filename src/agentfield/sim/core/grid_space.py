from __future__ import annotations

import logging
import math
from typing import Dict, List, Optional, Tuple

from .agent import GridPosition
from .errors import CapacityExceededError, OccupiedCellError, OutOfBoundsError
from .rng import DeterministicRng
from .space import SpatialIndex

logger = logging.getLogger(__name__)


class GridSpace(SpatialIndex[GridPosition]):
    """Discrete 2D grid where every cell holds at most one agent."""

    topology = "grid"

    def __init__(self, extent: Tuple[int, int], periodic: bool = False) -> None:
        width, height = int(extent[0]), int(extent[1])
        if width <= 0 or height <= 0:
            raise ValueError(f"grid extent must be positive, got {extent}")
        super().__init__((width, height), periodic)
        self._width = width
        self._height = height
        self._cells: Dict[GridPosition, int] = {}

    @property
    def capacity(self) -> int:
        return self._width * self._height

    @property
    def occupancy(self) -> float:
        return len(self._cells) / self.capacity

    def is_full(self) -> bool:
        return len(self._cells) >= self.capacity

    def occupant(self, cell: GridPosition) -> Optional[int]:
        return self._cells.get(self.normalize(cell))

    def is_empty(self, cell: GridPosition) -> bool:
        return self.occupant(cell) is None

    def empty_cells(self) -> List[GridPosition]:
        cells = self._cells
        return [(x, y) for x in range(self._width) for y in range(self._height) if (x, y) not in cells]

    def normalize(self, position: GridPosition) -> GridPosition:
        cell = (int(position[0]), int(position[1]))
        if cell[0] != position[0] or cell[1] != position[1]:
            raise TypeError(f"grid positions must be integral, got {position}")
        if not (0 <= cell[0] < self._width and 0 <= cell[1] < self._height):
            raise OutOfBoundsError(position, self._extent)
        return cell

    def query_moore_neighbors(self, position: GridPosition, radius: int = 1) -> List[int]:
        """Ids in the Chebyshev ring around `position`, excluding the centre cell.

        Radius 1 is the classic Moore neighbourhood: up to 8 cells, fewer at a
        non-periodic boundary. In periodic grids indices wrap and a cell
        reachable through more than one offset is visited once.
        """

        cx, cy = self.normalize(position)
        width = self._width
        height = self._height
        cells = self._cells
        periodic = self._periodic
        seen = {(cx, cy)}
        found: List[int] = []
        for dx in range(-radius, radius + 1):
            for dy in range(-radius, radius + 1):
                x = cx + dx
                y = cy + dy
                if periodic:
                    x %= width
                    y %= height
                elif not (0 <= x < width and 0 <= y < height):
                    continue
                key = (x, y)
                if key in seen:
                    continue
                seen.add(key)
                occupant = cells.get(key)
                if occupant is not None:
                    found.append(occupant)
        return found

    def nearby_ids(self, position: GridPosition, radius: float = 1, exclude_id: Optional[int] = None) -> List[int]:
        cell = self.normalize(position)
        ids = []
        centre = self._cells.get(cell)
        if centre is not None and centre != exclude_id:
            ids.append(centre)
        for agent_id in self.query_moore_neighbors(cell, int(radius)):
            if agent_id != exclude_id:
                ids.append(agent_id)
        return ids

    def distance(self, a: GridPosition, b: GridPosition) -> float:
        dx = abs(a[0] - b[0])
        dy = abs(a[1] - b[1])
        if self._periodic:
            dx = min(dx, self._width - dx)
            dy = min(dy, self._height - dy)
        return math.hypot(dx, dy)

    def random_position(self, rng: DeterministicRng) -> GridPosition:
        return (rng.next_int(self._width), rng.next_int(self._height))

    def random_empty(self, rng: DeterministicRng, max_attempts: int) -> GridPosition:
        """Pick a uniformly random free cell.

        Random draws are bounded by `max_attempts`; past that the free cells are
        enumerated and one is chosen directly, so the call always terminates.
        A full grid raises CapacityExceededError without drawing at all.
        """

        if self.is_full():
            raise CapacityExceededError(f"grid {self._width}x{self._height} has no free cell")
        cells = self._cells
        for _ in range(max(0, max_attempts)):
            cell = self.random_position(rng)
            if cell not in cells:
                return cell
        empties = self.empty_cells()
        logger.warning(
            "random placement gave up after %d attempts at occupancy %.3f; choosing among %d free cells",
            max_attempts,
            self.occupancy,
            len(empties),
        )
        return empties[rng.next_int(len(empties))]

    def _check_free(self, agent_id: int, position: GridPosition) -> None:
        occupant = self._cells.get(position)
        if occupant is not None and occupant != agent_id:
            raise OccupiedCellError(position, occupant)

    def _add(self, agent_id: int, position: GridPosition) -> None:
        self._cells[position] = agent_id

    def _discard(self, agent_id: int, position: GridPosition) -> None:
        del self._cells[position]

    def _check_consistency(self) -> List[str]:
        problems = []
        for agent_id, position in self._positions.items():
            if self._cells.get(position) != agent_id:
                problems.append(f"agent {agent_id} at {position} missing from its cell")
        if len(self._cells) != len(self._positions):
            problems.append(f"{len(self._cells)} occupied cells for {len(self._positions)} agents")
        return problems
