from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone

import pytest

from saferoute.curve_smoother import smooth_path
from saferoute.models import Incident, SecurityPoint
from saferoute.path_synthesizer import synthesize_path
from saferoute.safe_route import synthesize_route_geometry
from saferoute.safety_scorer import score_route
from saferoute.transport_modes import MODE_PROFILES

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
CATEGORIES = ("patrol", "commercial", "park", "monitored", "lighting", "risk", "hospital")
INCIDENT_TYPES = ("robbery", "harassment", "accident", "other")


def _random_pair(rng: random.Random) -> tuple[tuple[float, float], tuple[float, float]]:
    if rng.random() < 0.5:
        # Inside metropolitan Lima
        o = (rng.uniform(-12.19, -11.91), rng.uniform(-77.19, -76.91))
        d = (rng.uniform(-12.19, -11.91), rng.uniform(-77.19, -76.91))
    else:
        o = (rng.uniform(-60.0, 60.0), rng.uniform(-170.0, 170.0))
        d = (o[0] + rng.uniform(-0.5, 0.5), o[1] + rng.uniform(-0.5, 0.5))
    return o, d


@pytest.mark.parametrize("seed", range(40))
def test_synthesized_routes_keep_exact_endpoints(seed: int) -> None:
    rng = random.Random(seed)
    origin, destination = _random_pair(rng)
    for profile in MODE_PROFILES.values():
        coarse = synthesize_path(origin, destination, profile, rng=rng)
        assert len(coarse) >= 2
        assert coarse[0] == origin and coarse[-1] == destination

        smooth = smooth_path(coarse, rng=rng)
        assert smooth[0] == origin and smooth[-1] == destination

        geometry = synthesize_route_geometry(origin, destination, profile, rng=rng)
        assert geometry.coordinates[0] == origin and geometry.coordinates[-1] == destination
        assert geometry.distance_m >= 0.0


@pytest.mark.parametrize("seed", range(40))
def test_score_stays_in_range_for_any_cardinality(seed: int) -> None:
    rng = random.Random(seed)
    route = [(-12.05, -77.05), (-12.06, -77.04)]
    points = [
        SecurityPoint(id=i, category=rng.choice(CATEGORIES), distance_m=rng.uniform(0.0, 600.0))
        for i in range(rng.randrange(0, 60))
    ]
    incidents = [
        Incident(
            id=i,
            type=rng.choice(INCIDENT_TYPES),
            occurred_at=NOW - timedelta(days=rng.uniform(-5.0, 60.0)),
            distance_m=rng.uniform(0.0, 600.0),
        )
        for i in range(rng.randrange(0, 60))
    ]
    score = score_route(route, points, incidents, now=NOW)
    assert 0 <= score <= 100
    assert score == score_route(route, points, incidents, now=NOW)
