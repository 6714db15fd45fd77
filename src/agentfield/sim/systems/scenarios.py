from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from ..core.config import SimulationConfig
from ..core.model import Model
from ..core.scheduler import AgentRule, ScheduleOrder, TickRule
from . import flocking, pursuit, segregation


@dataclass(frozen=True)
class Scenario:
    name: str
    build: Callable[[SimulationConfig], Model]
    agent_rule: AgentRule
    tick_rule: Optional[TickRule]
    order: ScheduleOrder
    observe: Callable[[Model], Dict[str, float]]
    snapshot_fields: Tuple[str, ...]


def _observe_schelling(model: Model) -> Dict[str, float]:
    counts = segregation.happy_counts(model)
    observed = {f"happy_{group}": float(count) for group, count in sorted(counts.items())}
    observed["happy"] = float(sum(counts.values()))
    return observed


def _observe_flocking(model: Model) -> Dict[str, float]:
    return {"polarization": flocking.polarization(model)}


def _observe_outbreak(model: Model) -> Dict[str, float]:
    zombies = pursuit.zombie_count(model)
    return {"zombies": float(zombies), "humans": float(len(model) - zombies)}


SCENARIOS: Dict[str, Scenario] = {
    "schelling": Scenario(
        name="schelling",
        build=lambda config: segregation.initialize_schelling(
            config.schelling, config.seed, max_placement_attempts=config.max_placement_attempts
        ),
        agent_rule=segregation.schelling_step,
        tick_rule=None,
        order=ScheduleOrder.FIFO,
        observe=_observe_schelling,
        snapshot_fields=("group", "happy"),
    ),
    "flocking": Scenario(
        name="flocking",
        build=lambda config: flocking.initialize_flocking(config.flocking, config.seed),
        agent_rule=flocking.flocking_step,
        tick_rule=None,
        order=ScheduleOrder.RANDOM,
        observe=_observe_flocking,
        snapshot_fields=("velocity", "speed"),
    ),
    "zombie": Scenario(
        name="zombie",
        build=lambda config: pursuit.initialize_outbreak(
            config.zombie, config.seed, max_placement_attempts=config.max_placement_attempts
        ),
        agent_rule=pursuit.outbreak_step,
        tick_rule=pursuit.outbreak_tick,
        order=ScheduleOrder.FIFO,
        observe=_observe_outbreak,
        snapshot_fields=("zombie", "stay_still", "victim"),
    ),
}


def get_scenario(name: str) -> Scenario:
    try:
        return SCENARIOS[name.lower().strip()]
    except KeyError:
        raise ValueError(f"Unknown scenario: {name} (expected one of {sorted(SCENARIOS)})") from None
