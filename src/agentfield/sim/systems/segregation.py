from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict

from ..core.agent import Agent
from ..core.config import SchellingConfig
from ..core.errors import CapacityExceededError
from ..core.grid_space import GridSpace
from ..core.model import DEFAULT_PLACEMENT_ATTEMPTS, Model

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SchellingAgent(Agent):
    group: int = 1
    happy: bool = False


@dataclass(slots=True)
class SchellingProperties:
    min_to_be_happy: int


def initialize_schelling(
    config: SchellingConfig, seed: int, max_placement_attempts: int = DEFAULT_PLACEMENT_ATTEMPTS
) -> Model[SchellingAgent]:
    if config.grid_occupation >= 1.0:
        raise CapacityExceededError(
            f"grid_occupation {config.grid_occupation} leaves no free cell for unhappy agents to move to"
        )
    space = GridSpace(config.grid_size, periodic=config.periodic)
    model: Model[SchellingAgent] = Model(
        space,
        properties=SchellingProperties(min_to_be_happy=config.min_to_be_happy),
        seed=seed,
        max_placement_attempts=max_placement_attempts,
    )
    total = int(space.capacity * config.grid_occupation)
    groups = max(1, config.groups)
    # Consecutive blocks of equal size, one per group.
    for n in range(total):
        group = n * groups // total + 1
        model.add_agent(SchellingAgent, group=group, happy=False)
    logger.info("schelling model: %d agents on %dx%d grid", total, *space.extent)
    return model


def schelling_step(agent_id: int, model: Model[SchellingAgent]) -> None:
    agent = model[agent_id]
    nearby_same = 0
    for neighbor_id in model.space.query_moore_neighbors(agent.position):
        if model[neighbor_id].group == agent.group:
            nearby_same += 1
    if nearby_same >= model.properties.min_to_be_happy:
        agent.happy = True
    else:
        model.move_agent_single(agent_id)


def happy_counts(model: Model[SchellingAgent]) -> Dict[int, int]:
    counts: Dict[int, int] = {}
    for agent in model.agents():
        counts.setdefault(agent.group, 0)
        if agent.happy:
            counts[agent.group] += 1
    return counts
