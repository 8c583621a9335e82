from __future__ import annotations

import random
from typing import Sequence

from .geo import Coord
from .route_errors import InvalidInputError
from .tuning import DEFAULT_SMOOTHING, SmoothingTuning


def estimate_tangents(coords: Sequence[Coord]) -> list[Coord]:
    """Central differences for interior vertices, one-sided at the two ends."""
    n = len(coords)
    tangents: list[Coord] = []
    for i in range(n):
        if i == 0:
            a, b, scale = coords[0], coords[1], 1.0
        elif i == n - 1:
            a, b, scale = coords[n - 2], coords[n - 1], 1.0
        else:
            a, b, scale = coords[i - 1], coords[i + 1], 0.5
        tangents.append(((b[0] - a[0]) * scale, (b[1] - a[1]) * scale))
    return tangents


def hermite_point(p0: Coord, p1: Coord, m0: Coord, m1: Coord, t: float) -> Coord:
    t2 = t * t
    t3 = t2 * t
    h00 = 2.0 * t3 - 3.0 * t2 + 1.0
    h10 = t3 - 2.0 * t2 + t
    h01 = -2.0 * t3 + 3.0 * t2
    h11 = t3 - t2
    return (
        h00 * p0[0] + h10 * m0[0] + h01 * p1[0] + h11 * m1[0],
        h00 * p0[1] + h10 * m0[1] + h01 * p1[1] + h11 * m1[1],
    )


def smooth_path(
    coords: Sequence[Coord],
    *,
    rng: random.Random | None = None,
    tuning: SmoothingTuning = DEFAULT_SMOOTHING,
    points_per_segment: int | None = None,
) -> list[Coord]:
    """Catmull-Rom refinement of a coarse polyline.

    Every original vertex is kept verbatim; `k` jittered samples are inserted
    into each segment, so the output has n + (n - 1) * k points.
    """
    k = tuning.points_per_segment if points_per_segment is None else int(points_per_segment)
    if k < 0:
        raise InvalidInputError(
            f"points_per_segment must be >= 0, got {k}",
            reason_code="invalid_parameter",
        )
    if len(coords) < 3 or k == 0:
        return list(coords)

    rng = rng or random.Random()
    tangents = estimate_tangents(coords)

    out: list[Coord] = [coords[0]]
    for i in range(len(coords) - 1):
        p0, p1 = coords[i], coords[i + 1]
        m0, m1 = tangents[i], tangents[i + 1]
        for j in range(1, k + 1):
            lat, lng = hermite_point(p0, p1, m0, m1, j / (k + 1))
            out.append(
                (
                    lat + (rng.random() - 0.5) * tuning.jitter_deg,
                    lng + (rng.random() - 0.5) * tuning.jitter_deg,
                )
            )
        out.append(p1)
    return out
