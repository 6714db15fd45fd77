from __future__ import annotations

import logging
from dataclasses import dataclass, field

from pygame.math import Vector2

from ..core.agent import Agent
from ..core.config import FlockingConfig
from ..core.continuous_space import ContinuousSpace
from ..core.model import Model
from ..utils.math2d import _as_point, _safe_normalize

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Bird(Agent):
    velocity: Vector2 = field(default_factory=Vector2)
    speed: float = 1.0


@dataclass(slots=True)
class FlockingProperties:
    cohere_factor: float
    separation: float
    separate_factor: float
    match_factor: float
    visual_distance: float


def initialize_flocking(config: FlockingConfig, seed: int) -> Model[Bird]:
    spacing = config.spacing if config.spacing is not None else config.visual_distance / 1.5
    space = ContinuousSpace(config.extent, spacing=spacing, periodic=config.periodic)
    properties = FlockingProperties(
        cohere_factor=config.cohere_factor,
        separation=config.separation,
        separate_factor=config.separate_factor,
        match_factor=config.match_factor,
        visual_distance=config.visual_distance,
    )
    model: Model[Bird] = Model(space, properties=properties, seed=seed)
    rng = model.rng
    for _ in range(config.n_birds):
        velocity = Vector2(rng.next_float() + 1.0, rng.next_float() + 1.0)
        model.add_agent(Bird, velocity=velocity, speed=config.speed)
    logger.info("flocking model: %d birds, spacing %.3f", config.n_birds, spacing)
    return model


def flocking_step(agent_id: int, model: Model[Bird]) -> None:
    """Reynolds-style update: cohesion, separation and alignment over visible neighbours.

    Each aggregate is averaged over max(neighbour count, 1), so a bird with no
    neighbours keeps flying along its current normalized heading.
    """

    bird = model[agent_id]
    props = model.properties
    space = model.space
    cohere = Vector2()
    separate = Vector2()
    match = Vector2()
    count = 0
    for neighbor_id in model.nearby_ids(agent_id, props.visual_distance):
        neighbor = model[neighbor_id]
        heading = space.offset(bird.position, neighbor.position)
        count += 1
        cohere += heading
        if heading.length() < props.separation:
            separate -= heading
        match += neighbor.velocity
    count = max(count, 1)
    cohere = cohere / count * props.cohere_factor
    separate = separate / count * props.separate_factor
    match = match / count * props.match_factor

    velocity = _safe_normalize((bird.velocity + cohere + separate + match) * 0.5)
    if velocity.length_squared() == 0.0:
        velocity = _safe_normalize(bird.velocity)
    bird.velocity = velocity
    model.move_agent(agent_id, _as_point(Vector2(bird.position) + velocity * bird.speed))


def polarization(model: Model[Bird]) -> float:
    """Length of the mean unit heading: 1.0 for a perfectly aligned flock, ~0 for disorder."""

    birds = model.agents()
    if not birds:
        return 0.0
    total = Vector2()
    for bird in birds:
        total += _safe_normalize(bird.velocity)
    return total.length() / len(birds)
