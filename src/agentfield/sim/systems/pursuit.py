"""Zombie outbreak: humans head to a venue until a countdown expires, then hunt or flee.

Route planning belongs to a road-network collaborator. The engine only needs
the small capability set in `RoadNetwork`; `PlaneRoutes` implements it with
straight-line routes on a `ContinuousSpace` so the scenario runs without any
map data.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from pygame.math import Vector2

from ..core.agent import Agent, Point
from ..core.config import ZombieConfig
from ..core.continuous_space import ContinuousSpace
from ..core.errors import CapacityExceededError
from ..core.model import DEFAULT_PLACEMENT_ATTEMPTS, Model
from ..utils.math2d import _as_point

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Human(Agent):
    zombie: bool = False
    speed: float = 0.005
    vision: float = 0.02
    stay_still: int = 0
    km_travelled: float = 0.0
    km_capacity: float = 2.0
    victim: Optional[int] = None


class RoadNetwork(Protocol):
    def nearest_node(self, coordinates: Point) -> Any:
        ...

    def plan_route(self, model: Model, agent_id: int, destination: Any) -> bool:
        ...

    def plan_random_route(self, model: Model, agent_id: int) -> bool:
        ...

    def is_stationary(self, model: Model, agent_id: int) -> bool:
        ...

    def distance(self, a: Point, b: Point) -> float:
        ...

    def move_along_route(self, model: Model, agent_id: int, budget: float) -> float:
        """Advance the agent up to `budget` along its route and return the unused budget."""
        ...

    def forget(self, agent_id: int) -> None:
        """Drop any route state held for an agent that left the model."""
        ...

class PlaneRoutes:
    def __init__(self, space: ContinuousSpace) -> None:
        self._space = space
        self._routes: Dict[int, Point] = {}

    def nearest_node(self, coordinates: Point) -> Point:
        return self._space.normalize(coordinates)

    def plan_route(self, model: Model, agent_id: int, destination: Point) -> bool:
        self._routes[agent_id] = self._space.normalize(destination)
        return True

    def plan_random_route(self, model: Model, agent_id: int) -> bool:
        return self.plan_route(model, agent_id, self._space.random_position(model.rng))

    def is_stationary(self, model: Model, agent_id: int) -> bool:
        return agent_id not in self._routes

    def distance(self, a: Point, b: Point) -> float:
        return self._space.distance(a, b)

    def move_along_route(self, model: Model, agent_id: int, budget: float) -> float:
        destination = self._routes.get(agent_id)
        if destination is None or budget <= 0.0:
            return budget
        position = model[agent_id].position
        offset = self._space.offset(position, destination)
        remaining = offset.length()
        if remaining <= budget:
            model.move_agent(agent_id, destination)
            del self._routes[agent_id]
            return budget - remaining
        model.move_agent(agent_id, _as_point(Vector2(position) + offset * (budget / remaining)))
        return 0.0

    def forget(self, agent_id: int) -> None:
        self._routes.pop(agent_id, None)


@dataclass(slots=True)
class OutbreakProperties:
    countdown: int
    resting_time: int
    capture_distance: float
    network: RoadNetwork
    venue: Any = None
    patient_zero: Optional[int] = None


def initialize_outbreak(
    config: ZombieConfig,
    seed: int,
    network: Optional[RoadNetwork] = None,
    max_placement_attempts: int = DEFAULT_PLACEMENT_ATTEMPTS,
) -> Model[Human]:
    space = ContinuousSpace(config.extent, spacing=max(config.max_vision, 1e-6), periodic=config.periodic)
    model: Model[Human] = Model(space, seed=seed, max_placement_attempts=max_placement_attempts)
    if network is None:
        network = PlaneRoutes(space)
    venue = network.nearest_node(config.venue)
    model.properties = OutbreakProperties(
        countdown=config.countdown,
        resting_time=config.resting_time,
        capture_distance=config.capture_distance,
        network=network,
        venue=venue,
    )
    rng = model.rng
    for _ in range(config.total_participants):
        agent_id = model.add_agent(
            Human,
            speed=config.max_speed * (0.5 * rng.next_float() + 0.5),
            vision=config.max_vision * (0.5 * rng.next_float() + 0.5),
            km_capacity=config.max_km_capacity * (0.75 * rng.next_float() + 0.25),
        )
        _route_to_venue(model, network, agent_id, venue)
        if model.properties.patient_zero is None:
            model.properties.patient_zero = agent_id
    logger.info("outbreak model: %d participants, countdown %d", config.total_participants, config.countdown)
    return model


def _route_to_venue(model: Model[Human], network: RoadNetwork, agent_id: int, venue: Any) -> None:
    # Some start points have no connection to the venue; relocate until one does.
    attempts = 0
    while not network.plan_route(model, agent_id, venue):
        attempts += 1
        if attempts >= model.max_placement_attempts:
            raise CapacityExceededError(f"agent {agent_id} found no route to the venue after {attempts} relocations")
        model.move_agent(agent_id, model.random_position())


def turn_to_zombie(agent: Human) -> None:
    agent.zombie = True
    agent.vision /= 3
    agent.speed *= 2


def initiate_resting(agent: Human, model: Model[Human], factor: float = 1.0) -> None:
    agent.stay_still = int(model.properties.resting_time * factor)


def outbreak_tick(model: Model[Human]) -> None:
    props = model.properties
    if model.tick + 1 == props.countdown and props.patient_zero is not None and model.has_agent(props.patient_zero):
        logger.info("tick %d: agent %d turns", model.tick, props.patient_zero)
        turn_to_zombie(model[props.patient_zero])


def outbreak_step(agent_id: int, model: Model[Human]) -> None:
    agent = model[agent_id]
    props = model.properties
    if model.tick < props.countdown:
        props.network.move_along_route(model, agent_id, agent.speed)
        return
    if agent.stay_still > 0:
        agent.stay_still -= 1
        return
    if agent.zombie:
        hunter_mode(agent, model)
    else:
        hunted_mode(agent, model)


def nearest_victim(zombie: Human, model: Model[Human]) -> Optional[int]:
    network = model.properties.network
    best: Optional[int] = None
    best_distance = float("inf")
    for candidate in model.nearby_agents(zombie.id, zombie.vision):
        if candidate.zombie:
            continue
        distance = network.distance(zombie.position, candidate.position)
        if distance < best_distance:
            best_distance = distance
            best = candidate.id
    return best


def hunter_mode(zombie: Human, model: Model[Human]) -> None:
    props = model.properties
    network = props.network
    if zombie.victim is not None and (not model.has_agent(zombie.victim) or model[zombie.victim].zombie):
        zombie.victim = None
    if zombie.victim is None:
        zombie.victim = nearest_victim(zombie, model)

    if zombie.victim is not None:
        victim = model[zombie.victim]
        network.plan_route(model, zombie.id, victim.position)
        network.move_along_route(model, zombie.id, zombie.speed)
        if network.distance(zombie.position, victim.position) <= props.capture_distance:
            turn_to_zombie(victim)
            zombie.victim = None
            initiate_resting(zombie, model, 0.5)
            initiate_resting(victim, model, 1.0)
        return

    if network.is_stationary(model, zombie.id):
        network.plan_random_route(model, zombie.id)
    network.move_along_route(model, zombie.id, zombie.speed)


def hunted_mode(agent: Human, model: Model[Human]) -> None:
    network = model.properties.network
    if network.is_stationary(model, agent.id):
        network.plan_random_route(model, agent.id)
    remaining = network.move_along_route(model, agent.id, agent.speed)
    agent.km_travelled += agent.speed - remaining
    if agent.km_travelled > agent.km_capacity:
        initiate_resting(agent, model)
        agent.km_travelled = 0.0


def remove_human(model: Model[Human], agent_id: int) -> Human:
    model.properties.network.forget(agent_id)
    return model.remove_agent(agent_id)


def zombie_count(model: Model[Human]) -> int:
    return sum(1 for agent in model.agents() if agent.zombie)
