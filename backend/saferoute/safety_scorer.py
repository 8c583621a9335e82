from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Iterable, Literal, Sequence

from .geo import Coord, point_to_polyline_distance_m
from .models import Incident, SecurityPoint
from .route_errors import InvalidInputError
from .tuning import DEFAULT_SCORING, ScoringTuning


@dataclass(frozen=True)
class Contribution:
    id: int | str
    kind: Literal["security_point", "incident"]
    label: str
    distance_m: float | None
    contribution: float


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def as_utc(value: datetime | date) -> datetime:
    if not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def days_since(occurred_at: datetime | date, now: datetime | date) -> int:
    """Whole days elapsed, floored; future timestamps count as today."""
    elapsed_s = (as_utc(now) - as_utc(occurred_at)).total_seconds()
    return max(0, int(math.floor(elapsed_s / 86_400.0)))


def recency_factor(occurred_at: datetime | date, now: datetime | date, tuning: ScoringTuning = DEFAULT_SCORING) -> float:
    factor = 1.0 - days_since(occurred_at, now) / tuning.decay_days
    return max(0.0, min(1.0, factor))


def _item_distance(item: SecurityPoint | Incident, route: Sequence[Coord]) -> float | None:
    if item.distance_m is not None:
        return float(item.distance_m)
    if item.lat is not None and item.lng is not None and route:
        return point_to_polyline_distance_m((item.lat, item.lng), route)
    return None


def _proximity(distance: float | None, radius_m: float) -> float:
    # Inclusive cutoff: an item exactly on the buffer edge weighs 0 anyway.
    if distance is None or not math.isfinite(distance) or distance > radius_m:
        return 0.0
    return 1.0 - max(0.0, distance) / radius_m


def validate_radius(radius_m: float | None, tuning: ScoringTuning = DEFAULT_SCORING) -> float:
    r = tuning.radius_m if radius_m is None else radius_m
    try:
        r = float(r)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"radius_m must be a number, got {radius_m!r}", reason_code="invalid_parameter") from e
    if not math.isfinite(r) or r <= 0.0:
        raise InvalidInputError(f"radius_m must be positive and finite, got {radius_m!r}", reason_code="invalid_parameter")
    return r


def score_breakdown(
    route: Sequence[Coord],
    security_points: Iterable[SecurityPoint],
    incidents: Iterable[Incident],
    radius_m: float | None = None,
    *,
    now: datetime | date | None = None,
    tuning: ScoringTuning = DEFAULT_SCORING,
) -> list[Contribution]:
    """Per-item signed contributions to the safety index, in input order."""
    r = validate_radius(radius_m, tuning)
    now = now or datetime.now(timezone.utc)

    out: list[Contribution] = []
    for point in security_points:
        d = _item_distance(point, route)
        weight = float(tuning.point_weights.get(point.category, 0.0))
        out.append(
            Contribution(
                id=point.id,
                kind="security_point",
                label=point.category,
                distance_m=d,
                contribution=weight * _proximity(d, r),
            )
        )
    for incident in incidents:
        d = _item_distance(incident, route)
        weight = float(tuning.incident_weights.get(incident.type, 0.0))
        proximity = _proximity(d, r)
        value = weight * recency_factor(incident.occurred_at, now, tuning) * proximity if proximity else 0.0
        out.append(
            Contribution(
                id=incident.id,
                kind="incident",
                label=incident.type,
                distance_m=d,
                contribution=value,
            )
        )
    return out


def clamp_score(raw: float, tuning: ScoringTuning = DEFAULT_SCORING) -> int:
    return max(tuning.min_score, min(tuning.max_score, round_half_up(raw)))


def score_route(
    route: Sequence[Coord],
    security_points: Iterable[SecurityPoint],
    incidents: Iterable[Incident],
    radius_m: float | None = None,
    *,
    now: datetime | date | None = None,
    tuning: ScoringTuning = DEFAULT_SCORING,
) -> int:
    """Deterministic 0-100 safety index for a route.

    Starts from the baseline and adds each nearby item's weighted, linearly
    distance-decayed contribution; incidents additionally fade out over the
    decay window. Items beyond `radius_m` (or with no usable distance) do
    not count.
    """
    parts = score_breakdown(route, security_points, incidents, radius_m, now=now, tuning=tuning)
    return clamp_score(tuning.baseline + sum(p.contribution for p in parts), tuning)


def safety_level(score: int, tuning: ScoringTuning = DEFAULT_SCORING) -> Literal["high", "medium", "low"]:
    if score >= tuning.high_level_threshold:
        return "high"
    if score >= tuning.medium_level_threshold:
        return "medium"
    return "low"
