from __future__ import annotations

import random

import pytest

from agentfield.sim.core.errors import (
    CapacityExceededError,
    DuplicateAgentError,
    NotFoundError,
    OccupiedCellError,
    OutOfBoundsError,
)
from agentfield.sim.core.grid_space import GridSpace
from agentfield.sim.core.rng import DeterministicRng


def test_insert_rejects_occupied_and_out_of_bounds_cells():
    grid = GridSpace((4, 3))
    grid.insert(0, (1, 1))

    with pytest.raises(OccupiedCellError) as excinfo:
        grid.insert(1, (1, 1))
    assert excinfo.value.occupant == 0
    with pytest.raises(OutOfBoundsError):
        grid.insert(1, (4, 0))
    with pytest.raises(OutOfBoundsError):
        grid.insert(1, (0, -1))
    with pytest.raises(DuplicateAgentError):
        grid.insert(0, (2, 2))

    assert len(grid) == 1
    assert 1 not in grid


def test_periodic_grid_still_rejects_positions_outside_extent():
    grid = GridSpace((3, 3), periodic=True)
    with pytest.raises(OutOfBoundsError):
        grid.insert(0, (3, 3))


def test_remove_unknown_agent_raises_not_found():
    grid = GridSpace((2, 2))
    with pytest.raises(NotFoundError):
        grid.remove(7)
    with pytest.raises(NotFoundError):
        grid.relocate(7, (0, 0))


def test_relocate_moves_between_cells_and_keeps_target_checks():
    grid = GridSpace((3, 3))
    grid.insert(0, (0, 0))
    grid.insert(1, (2, 2))

    grid.relocate(0, (1, 0))
    assert grid.position_of(0) == (1, 0)
    assert grid.is_empty((0, 0))
    assert grid.occupant((1, 0)) == 0

    with pytest.raises(OccupiedCellError):
        grid.relocate(0, (2, 2))
    # A rejected move leaves the agent exactly where it was.
    assert grid.position_of(0) == (1, 0)
    assert grid.occupant((2, 2)) == 1

    assert grid.relocate(1, (2, 2)) == (2, 2)
    assert grid._check_consistency() == []


def test_moore_neighbors_respect_boundaries():
    grid = GridSpace((3, 3))
    agent_id = 0
    for x in range(3):
        for y in range(3):
            grid.insert(agent_id, (x, y))
            agent_id += 1

    assert len(grid.query_moore_neighbors((1, 1))) == 8
    assert len(grid.query_moore_neighbors((0, 0))) == 3
    assert len(grid.query_moore_neighbors((1, 0))) == 5
    centre = grid.occupant((1, 1))
    assert centre not in grid.query_moore_neighbors((1, 1))


def test_moore_neighbors_wrap_when_periodic():
    grid = GridSpace((4, 4), periodic=True)
    grid.insert(0, (0, 0))
    grid.insert(1, (3, 3))
    grid.insert(2, (3, 0))
    grid.insert(3, (2, 2))

    assert sorted(grid.query_moore_neighbors((0, 0))) == [1, 2]

    flat = GridSpace((4, 4))
    flat.insert(0, (0, 0))
    flat.insert(1, (3, 3))
    assert flat.query_moore_neighbors((0, 0)) == []


def test_small_periodic_grid_visits_each_cell_once():
    grid = GridSpace((2, 2), periodic=True)
    grid.insert(0, (0, 0))
    grid.insert(1, (1, 0))
    grid.insert(2, (0, 1))
    grid.insert(3, (1, 1))

    neighbors = grid.query_moore_neighbors((0, 0))
    assert sorted(neighbors) == [1, 2, 3]


def test_nearby_ids_includes_centre_unless_excluded():
    grid = GridSpace((3, 3))
    grid.insert(0, (1, 1))
    grid.insert(1, (0, 1))

    assert sorted(grid.nearby_ids((1, 1), 1)) == [0, 1]
    assert grid.nearby_ids((1, 1), 1, exclude_id=0) == [1]


def test_random_empty_raises_when_full_and_finds_last_free_cell():
    grid = GridSpace((3, 3))
    rng = DeterministicRng(3)
    cells = [(x, y) for x in range(3) for y in range(3)]
    for agent_id, cell in enumerate(cells[:-1]):
        grid.insert(agent_id, cell)

    # Zero random attempts forces the exhaustive fallback.
    assert grid.random_empty(rng, max_attempts=0) == cells[-1]
    assert grid.random_empty(rng, max_attempts=5) == cells[-1]

    grid.insert(99, cells[-1])
    with pytest.raises(CapacityExceededError):
        grid.random_empty(rng, max_attempts=1000)


def test_random_operation_sequences_keep_single_occupancy():
    rnd = random.Random(17)
    grid = GridSpace((6, 5))
    live: set[int] = set()
    next_id = 0
    for _ in range(2000):
        action = rnd.random()
        cell = (rnd.randrange(6), rnd.randrange(5))
        try:
            if action < 0.4:
                grid.insert(next_id, cell)
                live.add(next_id)
                next_id += 1
            elif action < 0.6 and live:
                victim = rnd.choice(sorted(live))
                grid.remove(victim)
                live.discard(victim)
            elif live:
                grid.relocate(rnd.choice(sorted(live)), cell)
        except OccupiedCellError:
            pass
        assert grid._check_consistency() == []
        assert set(grid.ids()) == live
        occupied = [grid.position_of(agent_id) for agent_id in live]
        assert len(occupied) == len(set(occupied))
