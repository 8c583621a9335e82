from __future__ import annotations

import math
import random
from datetime import datetime, timedelta, timezone
from typing import Sequence

from .geo import METERS_PER_DEGREE, Coord, normalize_coord
from .models import Incident, SecurityPoint
from .proximity_gateway import NearbyFeatures
from .tuning import DEFAULT_SYNTHETIC_POINTS, SyntheticPointTuning

# Only kinds that are meaningful to show along a street are generated.
_SECURITY_KINDS: tuple[str, ...] = ("patrol", "monitored", "hospital", "lighting")
_INCIDENT_KIND = "incident"

_NAMES: dict[str, tuple[str, ...]] = {
    "patrol": ("Police station", "Police post", "Police checkpoint"),
    "monitored": ("Municipal patrol base", "CCTV monitored corner", "Neighbourhood watch post"),
    "hospital": ("Health centre", "Clinic", "Emergency hospital"),
    "lighting": ("Well-lit avenue", "Lit plaza", "Lit crossing"),
}

_DESCRIPTIONS: dict[str, tuple[str, ...]] = {
    "patrol": ("Staffed around the clock", "Patrol cars stationed nearby"),
    "monitored": ("Camera coverage with municipal response", "Regular foot patrols"),
    "hospital": ("Open 24 hours", "Emergency care available"),
    "lighting": ("Street lighting kept in good repair", "Lit pedestrian area"),
    "robbery": ("Phone snatched from pedestrian", "Bag theft reported"),
    "harassment": ("Verbal harassment reported", "Pedestrian followed at night"),
    "accident": ("Vehicle collision at intersection", "Cyclist knocked down"),
    "other": ("Suspicious activity reported", "Vandalism reported"),
}

_INCIDENT_TYPES: tuple[str, ...] = ("robbery", "harassment", "accident", "other")


def _offset_point(anchor: Coord, offset_deg: float, rng: random.Random) -> Coord:
    angle = rng.random() * 2.0 * math.pi
    lat = anchor[0] + offset_deg * math.sin(angle)
    lng = anchor[1] + offset_deg * math.cos(angle)
    return normalize_coord((lat, lng))


def generate_synthetic_points(
    route: Sequence[Coord],
    *,
    rng: random.Random | None = None,
    now: datetime | None = None,
    tuning: SyntheticPointTuning = DEFAULT_SYNTHETIC_POINTS,
) -> NearbyFeatures:
    """Placeholder points scattered around route vertices.

    Every entry is marked `provenance="synthetic"`; callers must never feed
    them to the scorer as if they were real observations.
    """
    features = NearbyFeatures()
    if not route:
        return features

    rng = rng or random.Random()
    now = now or datetime.now(timezone.utc)
    count = rng.randint(tuning.min_points, tuning.max_points)
    kinds = _SECURITY_KINDS + (_INCIDENT_KIND,)

    for idx in range(count):
        kind = rng.choice(kinds)
        anchor = route[rng.randrange(len(route))]
        lo, hi = tuning.lighting_offset_deg if kind == "lighting" else tuning.other_offset_deg
        offset = rng.uniform(lo, hi)
        lat, lng = _offset_point(anchor, offset, rng)
        distance = float(round(offset * METERS_PER_DEGREE))
        item_id = f"synthetic-{idx + 1}"

        if kind == _INCIDENT_KIND:
            incident_type = rng.choice(_INCIDENT_TYPES)
            age = timedelta(
                days=rng.randrange(tuning.max_incident_age_days),
                hours=rng.randrange(24),
            )
            features.incidents.append(
                Incident(
                    id=item_id,
                    type=incident_type,
                    occurred_at=now - age,
                    distance_m=distance,
                    lat=lat,
                    lng=lng,
                    description=rng.choice(_DESCRIPTIONS[incident_type]),
                    provenance="synthetic",
                )
            )
        else:
            features.security_points.append(
                SecurityPoint(
                    id=item_id,
                    name=rng.choice(_NAMES[kind]),
                    category=kind,
                    distance_m=distance,
                    lat=lat,
                    lng=lng,
                    description=rng.choice(_DESCRIPTIONS[kind]),
                    provenance="synthetic",
                )
            )
    return features
