from __future__ import annotations

import pytest

from agentfield.sim.core.config import ZombieConfig
from agentfield.sim.core.continuous_space import ContinuousSpace
from agentfield.sim.core.errors import CapacityExceededError
from agentfield.sim.core.model import Model
from agentfield.sim.core.scheduler import Scheduler
from agentfield.sim.systems.pursuit import (
    Human,
    OutbreakProperties,
    PlaneRoutes,
    hunter_mode,
    initialize_outbreak,
    outbreak_step,
    outbreak_tick,
    remove_human,
    zombie_count,
)


def _plane_model(countdown: int = 0, resting_time: int = 10) -> Model[Human]:
    space = ContinuousSpace((20.0, 20.0), spacing=5.0, periodic=False)
    model: Model[Human] = Model(space, seed=0)
    model.properties = OutbreakProperties(
        countdown=countdown,
        resting_time=resting_time,
        capture_distance=0.0,
        network=PlaneRoutes(space),
    )
    return model


def test_hunter_closes_in_and_captures_a_still_target():
    model = _plane_model()
    hunter = model.add_agent(Human, (10.0, 10.0), zombie=True, speed=1.0, vision=5.0)
    target = model.add_agent(Human, (10.0, 13.0), speed=1.0, vision=5.0, stay_still=1000)
    scheduler = Scheduler()

    distances = []
    for _ in range(3):
        scheduler.step(model, outbreak_step, outbreak_tick)
        distances.append(model.space.distance(model[hunter].position, model[target].position))

    assert distances == pytest.approx([2.0, 1.0, 0.0])
    assert model[target].zombie
    # The victim's own turn later in the same tick already counts down one rest step.
    assert model[target].stay_still == 9
    assert model[target].speed == pytest.approx(2.0)
    assert model[hunter].stay_still == 5
    assert model[hunter].victim is None
    assert model[target].position == (10.0, 13.0)


def test_patient_zero_turns_when_countdown_expires():
    model = _plane_model(countdown=3)
    first = model.add_agent(Human, (1.0, 1.0), speed=0.1, vision=1.0)
    model.add_agent(Human, (5.0, 5.0), speed=0.1, vision=1.0)
    model.properties.patient_zero = first
    scheduler = Scheduler()

    scheduler.run(model, 2, outbreak_step, outbreak_tick)
    assert zombie_count(model) == 0

    scheduler.step(model, outbreak_step, outbreak_tick)
    assert model[first].zombie
    assert model[first].vision == pytest.approx(1.0 / 3)
    assert zombie_count(model) == 1


def test_humans_follow_their_route_before_the_countdown():
    model = _plane_model(countdown=10)
    walker = model.add_agent(Human, (2.0, 2.0), speed=1.5)
    network = model.properties.network
    network.plan_route(model, walker, (5.0, 2.0))

    outbreak_step(walker, model)
    assert model[walker].position == pytest.approx((3.5, 2.0))
    outbreak_step(walker, model)
    assert model[walker].position == (5.0, 2.0)
    assert network.is_stationary(model, walker)


def test_hunted_agent_rests_after_exhausting_capacity():
    model = _plane_model(resting_time=7)
    runner = model.add_agent(Human, (10.0, 10.0), speed=1.0, km_capacity=0.5, km_travelled=0.0)
    model.properties.network.plan_route(model, runner, (19.0, 10.0))

    outbreak_step(runner, model)

    assert model[runner].position == pytest.approx((11.0, 10.0))
    assert model[runner].stay_still == 7
    assert model[runner].km_travelled == 0.0

    outbreak_step(runner, model)
    assert model[runner].stay_still == 6
    assert model[runner].position == pytest.approx((11.0, 10.0))


def test_hunter_drops_a_target_that_already_turned():
    model = _plane_model()
    hunter = model.add_agent(Human, (10.0, 10.0), zombie=True, speed=0.5, vision=5.0)
    turned = model.add_agent(Human, (10.0, 11.0), zombie=True)
    fresh = model.add_agent(Human, (10.0, 14.0))
    model[hunter].victim = turned

    hunter_mode(model[hunter], model)

    assert model[hunter].victim == fresh
    assert model[hunter].position == pytest.approx((10.0, 10.5))


def test_hunter_drops_a_removed_target_and_wanders():
    model = _plane_model()
    hunter = model.add_agent(Human, (10.0, 10.0), zombie=True, speed=0.5, vision=2.0)
    gone = model.add_agent(Human, (10.0, 11.0))
    model[hunter].victim = gone
    remove_human(model, gone)

    hunter_mode(model[hunter], model)

    assert model[hunter].victim is None
    assert model.space.distance(model[hunter].position, (10.0, 10.0)) > 0.0


def test_removing_a_human_drops_its_route():
    model = _plane_model()
    network = model.properties.network
    walker = model.add_agent(Human, (1.0, 1.0))
    other = model.add_agent(Human, (2.0, 2.0))
    network.plan_route(model, walker, (5.0, 5.0))
    network.plan_route(model, other, (6.0, 6.0))

    removed = remove_human(model, walker)

    assert removed.id == walker
    assert not model.has_agent(walker)
    assert network.is_stationary(model, walker)
    assert not network.is_stationary(model, other)
    assert network._routes == {other: (6.0, 6.0)}
    assert model.check_consistency() == []


class _UnreachableNetwork:
    def __init__(self, failures: int) -> None:
        self.failures = failures
        self.calls = 0

    def nearest_node(self, coordinates):
        return coordinates

    def plan_route(self, model, agent_id, destination):
        self.calls += 1
        return self.calls > self.failures


def test_outbreak_relocates_agents_without_a_route():
    config = ZombieConfig(total_participants=1)
    network = _UnreachableNetwork(failures=3)

    model = initialize_outbreak(config, seed=1, network=network)

    assert len(model) == 1
    assert network.calls == 4


def test_outbreak_gives_up_after_bounded_relocations():
    config = ZombieConfig(total_participants=2)
    network = _UnreachableNetwork(failures=10**6)

    with pytest.raises(CapacityExceededError):
        initialize_outbreak(config, seed=1, network=network, max_placement_attempts=5)
    assert network.calls == 5


def test_outbreak_run_spreads_monotonically():
    config = ZombieConfig(
        total_participants=30,
        countdown=20,
        resting_time=5,
        max_speed=0.01,
        max_vision=0.08,
        extent=(0.3, 0.3),
        venue=(0.15, 0.15),
    )
    model = initialize_outbreak(config, seed=4)
    scheduler = Scheduler()

    counts = []
    for _ in range(120):
        scheduler.step(model, outbreak_step, outbreak_tick)
        counts.append(zombie_count(model))

    assert counts[18] == 0
    assert counts[19] >= 1
    assert all(later >= earlier for earlier, later in zip(counts, counts[1:]))
    assert model.check_consistency() == []
    assert len(model) == 30
