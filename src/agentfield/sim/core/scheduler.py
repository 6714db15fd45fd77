from __future__ import annotations

import logging
from enum import Enum
from time import perf_counter
from typing import Callable, List, Optional, Sequence, Union

from .errors import SchedulerError
from .model import Model
from ..types.metrics import TickMetrics

logger = logging.getLogger(__name__)

AgentRule = Callable[[int, Model], None]
TickRule = Callable[[Model], None]
OrderFn = Callable[[List[int], Model], Sequence[int]]


class ScheduleOrder(str, Enum):
    FIFO = "fifo"
    RANDOM = "random"


class SchedulerState(str, Enum):
    IDLE = "Idle"
    STEPPING = "Stepping"


class Scheduler:
    """Runs ticks: snapshot the live ids, call the agent rule per id, then the tick rule.

    Updates are sequential: a rule sees every write made earlier in the same
    tick. Agents removed earlier in the tick are skipped, agents created during
    the tick wait for the next snapshot. A rule error aborts the tick without
    rolling back, leaves the tick counter unchanged and propagates.
    """

    def __init__(self, order: Union[ScheduleOrder, str, OrderFn] = ScheduleOrder.FIFO) -> None:
        if isinstance(order, str):
            order = ScheduleOrder(order)
        self.order = order
        self.state = SchedulerState.IDLE

    def ordered_ids(self, model: Model) -> List[int]:
        ids = model.store.all_ids()
        if self.order is ScheduleOrder.FIFO:
            return ids
        if self.order is ScheduleOrder.RANDOM:
            return model.rng.permutation(ids)
        ordered = list(self.order(ids, model))
        if sorted(ordered) != sorted(ids):
            raise SchedulerError("custom order must return each live agent id exactly once")
        return ordered

    def step(self, model: Model, agent_rule: AgentRule, tick_rule: Optional[TickRule] = None) -> TickMetrics:
        if model.is_stepping:
            raise SchedulerError(f"tick {model.tick} is already in progress")
        start = perf_counter()
        store = model.store
        created_before = store.created
        removed_before = store.removed
        relocations_before = store.relocations
        processed = 0
        skipped = 0

        self.state = SchedulerState.STEPPING
        model._stepping = True
        try:
            for agent_id in self.ordered_ids(model):
                if agent_id not in store:
                    skipped += 1
                    continue
                try:
                    agent_rule(agent_id, model)
                except Exception:
                    logger.debug("tick %d aborted by agent %d after %d agents", model.tick, agent_id, processed)
                    raise
                processed += 1
            if tick_rule is not None:
                tick_rule(model)
        finally:
            model._stepping = False
            self.state = SchedulerState.IDLE

        metrics = TickMetrics(
            tick=model.tick,
            population=len(store),
            processed=processed,
            skipped=skipped,
            created=store.created - created_before,
            removed=store.removed - removed_before,
            relocations=store.relocations - relocations_before,
            tick_duration_ms=(perf_counter() - start) * 1000.0,
        )
        model.tick += 1
        logger.debug(
            "tick %d: %d processed, %d skipped, %d relocations",
            metrics.tick,
            processed,
            skipped,
            metrics.relocations,
        )
        return metrics

    def run(
        self, model: Model, steps: int, agent_rule: AgentRule, tick_rule: Optional[TickRule] = None
    ) -> List[TickMetrics]:
        return [self.step(model, agent_rule, tick_rule) for _ in range(steps)]


def step(
    model: Model,
    agent_rule: AgentRule,
    tick_rule: Optional[TickRule] = None,
    order: Union[ScheduleOrder, str, OrderFn] = ScheduleOrder.FIFO,
) -> TickMetrics:
    return Scheduler(order).step(model, agent_rule, tick_rule)
