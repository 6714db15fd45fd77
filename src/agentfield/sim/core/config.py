from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml


@dataclass
class FlockingConfig:
    n_birds: int = 100
    speed: float = 1.0
    cohere_factor: float = 0.25
    separation: float = 4.0
    separate_factor: float = 0.25
    match_factor: float = 0.01
    visual_distance: float = 5.0
    extent: tuple[float, float] = (100.0, 100.0)
    periodic: bool = True
    # Bucket side for the continuous index; None means visual_distance / 1.5.
    spacing: Optional[float] = None


@dataclass
class SchellingConfig:
    grid_size: tuple[int, int] = (30, 30)
    min_to_be_happy: int = 3
    grid_occupation: float = 0.8
    groups: int = 2
    periodic: bool = False


@dataclass
class ZombieConfig:
    total_participants: int = 50
    max_speed: float = 0.005  # km per step
    max_vision: float = 0.02  # km
    max_km_capacity: float = 2.0
    resting_time: int = 400
    countdown: int = 1500
    extent: tuple[float, float] = (3.6, 3.1)
    venue: tuple[float, float] = (1.2, 0.9)
    capture_distance: float = 0.0
    periodic: bool = False


@dataclass
class SimulationConfig:
    scenario: str = "schelling"
    seed: int = 1234
    schedule: Optional[str] = None
    max_placement_attempts: int = 1000
    frame_interval: float = 1.0 / 30.0
    flocking: FlockingConfig = field(default_factory=FlockingConfig)
    schelling: SchellingConfig = field(default_factory=SchellingConfig)
    zombie: ZombieConfig = field(default_factory=ZombieConfig)

    @staticmethod
    def from_yaml(path: Path) -> "SimulationConfig":
        data = yaml.safe_load(Path(path).read_text()) or {}
        return load_config(data)


def load_config(raw: dict) -> SimulationConfig:
    def _pair(value: tuple | list | None, default: tuple) -> tuple:
        if isinstance(value, (tuple, list)) and len(value) == 2:
            return (type(default[0])(value[0]), type(default[1])(value[1]))
        return default

    flocking_raw = dict(raw.get("flocking", {}))
    flocking_raw["extent"] = _pair(flocking_raw.get("extent"), FlockingConfig.extent)
    flocking = FlockingConfig(**flocking_raw)

    schelling_raw = dict(raw.get("schelling", {}))
    schelling_raw["grid_size"] = _pair(schelling_raw.get("grid_size"), SchellingConfig.grid_size)
    schelling = SchellingConfig(**schelling_raw)

    zombie_raw = dict(raw.get("zombie", {}))
    zombie_raw["extent"] = _pair(zombie_raw.get("extent"), ZombieConfig.extent)
    zombie_raw["venue"] = _pair(zombie_raw.get("venue"), ZombieConfig.venue)
    zombie = ZombieConfig(**zombie_raw)

    sim_values = {k: v for k, v in raw.items() if k not in {"flocking", "schelling", "zombie"}}
    return SimulationConfig(flocking=flocking, schelling=schelling, zombie=zombie, **sim_values)
