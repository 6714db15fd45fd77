from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Tuple


@dataclass(slots=True)
class Snapshot:
    tick: int
    agents: List[Dict[str, Any]]
    world: "SnapshotWorld"
    metadata: "SnapshotMetadata"


@dataclass(slots=True)
class SnapshotWorld:
    topology: str
    extent: Tuple[float, float]
    periodic: bool


@dataclass(slots=True)
class SnapshotMetadata:
    scenario: str
    seed: int
    population: int
    observables: Dict[str, float]
