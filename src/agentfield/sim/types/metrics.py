from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict


@dataclass(slots=True)
class TickMetrics:
    tick: int
    population: int
    processed: int
    skipped: int
    created: int
    removed: int
    relocations: int
    observables: Dict[str, float] = field(default_factory=dict)
    tick_duration_ms: float = 0.0
