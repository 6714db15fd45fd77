from __future__ import annotations

import math

from pygame.math import Vector2


def _safe_normalize(vector: Vector2) -> Vector2:
    x, y = vector.x, vector.y
    magnitude_sq = x * x + y * y
    if magnitude_sq < 1e-10:
        return Vector2()
    inv = 1.0 / math.sqrt(magnitude_sq)
    return Vector2(x * inv, y * inv)


def _wrap_delta(delta: float, extent: float) -> float:
    # Shortest signed displacement on a ring of length `extent`.
    if extent <= 0.0:
        return delta
    half = extent * 0.5
    delta = math.fmod(delta, extent)
    if delta > half:
        delta -= extent
    elif delta < -half:
        delta += extent
    return delta


def _as_point(vector: Vector2) -> tuple[float, float]:
    return (float(vector.x), float(vector.y))
