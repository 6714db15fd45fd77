from __future__ import annotations

import argparse
import csv
import json
import logging
import math
from pathlib import Path
from typing import Optional

from ..sim.core.config import SimulationConfig
from ..sim.core.world import World
from ..sim.types.metrics import TickMetrics

logger = logging.getLogger(__name__)

_BASE_HEADER = [
    "tick",
    "population",
    "processed",
    "skipped",
    "created",
    "removed",
    "relocations",
    "tick_ms",
]


def _format_row(metrics: TickMetrics, observable_names: list[str], tick_ms: float) -> list[object]:
    row: list[object] = [
        metrics.tick,
        metrics.population,
        metrics.processed,
        metrics.skipped,
        metrics.created,
        metrics.removed,
        metrics.relocations,
        f"{tick_ms:.3f}",
    ]
    row.extend(f"{metrics.observables.get(name, 0.0):.4f}" for name in observable_names)
    return row


def _percentile(sorted_values: list[float], percentile: float) -> float:
    if not sorted_values:
        return 0.0
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    pos = (len(sorted_values) - 1) * percentile
    low = int(math.floor(pos))
    high = int(math.ceil(pos))
    if low == high:
        return float(sorted_values[low])
    weight = pos - low
    return float(sorted_values[low] + (sorted_values[high] - sorted_values[low]) * weight)


def _summary_stats(values: list[float]) -> dict[str, float]:
    if not values:
        return {"min": 0.0, "max": 0.0, "avg": 0.0, "p50": 0.0, "p90": 0.0, "p99": 0.0}
    sorted_values = sorted(values)
    return {
        "min": float(sorted_values[0]),
        "max": float(sorted_values[-1]),
        "avg": float(sum(values) / len(values)),
        "p50": _percentile(sorted_values, 0.50),
        "p90": _percentile(sorted_values, 0.90),
        "p99": _percentile(sorted_values, 0.99),
    }


def _first_quiet_tick(history: list[TickMetrics]) -> Optional[int]:
    for metrics in history:
        if metrics.relocations == 0 and metrics.created == 0 and metrics.removed == 0:
            return metrics.tick
    return None


def run_headless(
    steps: int,
    seed: Optional[int],
    log_path: Optional[Path],
    scenario: Optional[str] = None,
    config_path: Optional[Path] = None,
    deterministic_log: bool = False,
    summary_path: Optional[Path] = None,
) -> list[TickMetrics]:
    config = SimulationConfig.from_yaml(config_path) if config_path else SimulationConfig()
    if seed is not None:
        config.seed = seed
    if scenario is not None:
        config.scenario = scenario
    world = World(config)
    observable_names = sorted(world.scenario.observe(world.model))

    writer = None
    csv_file = None
    if log_path:
        csv_file = Path(log_path).open("w", newline="")
        writer = csv.writer(csv_file)
        writer.writerow(_BASE_HEADER + observable_names)

    history: list[TickMetrics] = []
    try:
        for _ in range(steps):
            metrics = world.step()
            history.append(metrics)
            if writer:
                tick_ms = 0.0 if deterministic_log else metrics.tick_duration_ms
                writer.writerow(_format_row(metrics, observable_names, tick_ms))
    finally:
        if csv_file:
            csv_file.close()

    logger.info("%s: ran %d ticks, final population %d", world.scenario.name, steps, len(world.model))

    if summary_path:
        tick_ms_series = [0.0 if deterministic_log else m.tick_duration_ms for m in history]
        summary = {
            "scenario": world.scenario.name,
            "steps": steps,
            "seed": config.seed,
            "deterministic_log": deterministic_log,
            "tick_ms": _summary_stats(tick_ms_series),
            "population": _summary_stats([float(m.population) for m in history]),
            "relocations": _summary_stats([float(m.relocations) for m in history]),
            "first_quiet_tick": _first_quiet_tick(history),
            "final_observables": history[-1].observables if history else world.scenario.observe(world.model),
        }
        Path(summary_path).write_text(json.dumps(summary, indent=2))
    return history


def main() -> None:
    parser = argparse.ArgumentParser(description="Headless agent-based simulation runner")
    parser.add_argument("--scenario", choices=["schelling", "flocking", "zombie"], default=None)
    parser.add_argument("--steps", type=int, default=100)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--config", type=Path, default=None, help="YAML file with simulation settings")
    parser.add_argument("--log", type=Path, default=None, help="CSV file to write per-tick metrics")
    parser.add_argument(
        "--summary",
        type=Path,
        default=None,
        help="Optional JSON file to write summary stats for the run.",
    )
    parser.add_argument(
        "--deterministic-log",
        action="store_true",
        help="Write deterministic CSV (tick_ms is forced to 0.000 so identical seeds match).",
    )
    parser.add_argument("--verbose", action="store_true", help="Log every tick")
    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    run_headless(
        args.steps,
        args.seed,
        args.log,
        scenario=args.scenario,
        config_path=args.config,
        deterministic_log=args.deterministic_log,
        summary_path=args.summary,
    )


if __name__ == "__main__":
    main()
