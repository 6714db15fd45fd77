from __future__ import annotations

import logging
from typing import List

from .config import SimulationConfig
from .model import Model
from .scheduler import ScheduleOrder, Scheduler
from ..systems.scenarios import Scenario, get_scenario
from ..types.metrics import TickMetrics
from ..types.snapshot import Snapshot, SnapshotMetadata, SnapshotWorld

logger = logging.getLogger(__name__)


class World:
    """Scenario driver used by the headless runner and the web server."""

    def __init__(self, config: SimulationConfig):
        self._config = config
        self._scenario: Scenario = get_scenario(config.scenario)
        order = ScheduleOrder(config.schedule) if config.schedule else self._scenario.order
        self._scheduler = Scheduler(order)
        self._metrics: List[TickMetrics] = []
        self._model: Model = self._scenario.build(config)

    @property
    def config(self) -> SimulationConfig:
        return self._config

    @property
    def scenario(self) -> Scenario:
        return self._scenario

    @property
    def model(self) -> Model:
        return self._model

    @property
    def tick(self) -> int:
        return self._model.tick

    @property
    def metrics(self) -> List[TickMetrics]:
        return self._metrics

    def reset(self) -> None:
        self._model = self._scenario.build(self._config)
        self._metrics.clear()
        logger.info("world reset: scenario %s, seed %d", self._scenario.name, self._config.seed)

    def step(self) -> TickMetrics:
        metrics = self._scheduler.step(self._model, self._scenario.agent_rule, self._scenario.tick_rule)
        metrics.observables = self._scenario.observe(self._model)
        self._metrics.append(metrics)
        return metrics

    def run(self, steps: int) -> List[TickMetrics]:
        return [self.step() for _ in range(steps)]

    def snapshot(self) -> Snapshot:
        model = self._model
        agents = model.snapshot(*self._scenario.snapshot_fields)
        space = model.space
        return Snapshot(
            tick=model.tick,
            agents=agents,
            world=SnapshotWorld(topology=space.topology, extent=space.extent, periodic=space.periodic),
            metadata=SnapshotMetadata(
                scenario=self._scenario.name,
                seed=self._config.seed,
                population=len(model),
                observables=self._scenario.observe(model),
            ),
        )
