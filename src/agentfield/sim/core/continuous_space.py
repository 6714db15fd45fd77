from __future__ import annotations

import math
from typing import Dict, Iterable, List, Optional, Tuple

from pygame.math import Vector2

from .agent import Point
from .rng import DeterministicRng
from .space import SpatialIndex
from ..utils.math2d import _wrap_delta


class ContinuousSpace(SpatialIndex[Point]):
    """Bounded 2D plane with a bucketed index for radius queries.

    Buckets are square with side `spacing`; a query only visits the buckets
    that can hold a point within the radius, so a query costs roughly the
    local density rather than the population size. A spacing close to the
    typical query radius works best.
    """

    topology = "continuous"

    def __init__(self, extent: Tuple[float, float], spacing: float, periodic: bool = True) -> None:
        width, height = float(extent[0]), float(extent[1])
        if width <= 0.0 or height <= 0.0:
            raise ValueError(f"continuous extent must be positive, got {extent}")
        if spacing <= 0.0:
            raise ValueError(f"bucket spacing must be positive, got {spacing}")
        super().__init__((width, height), periodic)
        self._width = width
        self._height = height
        self._cell_size = float(spacing)
        self._cells: Dict[Tuple[int, int], Dict[int, None]] = {}
        if periodic:
            self._cols = max(1, math.ceil(width / self._cell_size))
            self._rows = max(1, math.ceil(height / self._cell_size))
        else:
            # Clamped points may sit exactly on the far edge.
            self._cols = int(width // self._cell_size) + 1
            self._rows = int(height // self._cell_size) + 1

    def normalize(self, position: Point) -> Point:
        x = float(position[0])
        y = float(position[1])
        if self._periodic:
            x %= self._width
            y %= self._height
            # Tiny negatives round up to the extent itself under %.
            if x >= self._width:
                x -= self._width
            if y >= self._height:
                y -= self._height
        else:
            x = min(max(x, 0.0), self._width)
            y = min(max(y, 0.0), self._height)
        return (x, y)

    def query_radius(self, position: Point, radius: float, exclude_id: Optional[int] = None) -> List[int]:
        """Ids whose stored position lies within `radius` of `position`.

        Distances are Euclidean, using the shortest image across the seams
        when the space is periodic. Pass the caller's own id as `exclude_id`
        to leave it out.
        """

        if radius < 0.0:
            raise ValueError(f"radius must be non-negative, got {radius}")
        pos_x, pos_y = self.normalize(position)
        base_col, base_row = self._cell_key((pos_x, pos_y))
        radius_sq = radius * radius
        cells = self._cells
        positions = self._positions
        periodic = self._periodic
        width = self._width
        height = self._height
        found: List[int] = []

        rows = list(self._bucket_range(base_row, radius, self._rows))
        for col in self._bucket_range(base_col, radius, self._cols):
            for row in rows:
                bucket = cells.get((col, row))
                if not bucket:
                    continue
                for agent_id in bucket:
                    if exclude_id is not None and agent_id == exclude_id:
                        continue
                    other = positions[agent_id]
                    offset_x = other[0] - pos_x
                    offset_y = other[1] - pos_y
                    if periodic:
                        offset_x = _wrap_delta(offset_x, width)
                        offset_y = _wrap_delta(offset_y, height)
                    if offset_x * offset_x + offset_y * offset_y <= radius_sq:
                        found.append(agent_id)
        return found

    def nearby_ids(self, position: Point, radius: float, exclude_id: Optional[int] = None) -> List[int]:
        return self.query_radius(position, radius, exclude_id=exclude_id)

    def offset(self, a: Point, b: Point) -> Vector2:
        dx = b[0] - a[0]
        dy = b[1] - a[1]
        if self._periodic:
            dx = _wrap_delta(dx, self._width)
            dy = _wrap_delta(dy, self._height)
        return Vector2(dx, dy)

    def distance(self, a: Point, b: Point) -> float:
        return self.offset(a, b).length()

    def random_position(self, rng: DeterministicRng) -> Point:
        return self.normalize((rng.next_range(0.0, self._width), rng.next_range(0.0, self._height)))

    def _reach(self, radius: float) -> int:
        # Periodic buckets next to the seam can be narrower than `spacing`.
        reach = int(math.ceil(radius / self._cell_size))
        return reach + 1 if self._periodic else reach

    def _bucket_range(self, base: int, radius: float, count: int) -> Iterable[int]:
        reach = self._reach(radius)
        if self._periodic:
            if 2 * reach + 1 >= count:
                return range(count)
            return [(base + delta) % count for delta in range(-reach, reach + 1)]
        return range(max(0, base - reach), min(count - 1, base + reach) + 1)

    def _cell_key(self, position: Point) -> Tuple[int, int]:
        col = int(position[0] // self._cell_size)
        row = int(position[1] // self._cell_size)
        if self._periodic:
            col %= self._cols
            row %= self._rows
        return (col, row)

    def _add(self, agent_id: int, position: Point) -> None:
        key = self._cell_key(position)
        bucket = self._cells.get(key)
        if bucket is None:
            bucket = {}
            self._cells[key] = bucket
        bucket[agent_id] = None

    def _discard(self, agent_id: int, position: Point) -> None:
        key = self._cell_key(position)
        bucket = self._cells[key]
        del bucket[agent_id]
        if not bucket:
            del self._cells[key]

    def _check_consistency(self) -> List[str]:
        problems = []
        bucketed = 0
        for key, bucket in self._cells.items():
            bucketed += len(bucket)
            for agent_id in bucket:
                position = self._positions.get(agent_id)
                if position is None:
                    problems.append(f"bucket {key} holds unknown agent {agent_id}")
                elif self._cell_key(position) != key:
                    problems.append(f"agent {agent_id} at {position} filed under bucket {key}")
        if bucketed != len(self._positions):
            problems.append(f"{bucketed} bucket entries for {len(self._positions)} agents")
        return problems
