from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from .route_errors import InvalidInputError

TransportMode = Literal["driving", "walking", "cycling"]
DEFAULT_MODE: TransportMode = "driving"


@dataclass(frozen=True)
class ModeProfile:
    mode: TransportMode
    label: str
    ors_profile: str
    # Synthetic paths get one vertex per `step_m` of direct distance; slower
    # modes use a finer step so their paths turn more often.
    step_m: float
    min_points: int
    speed_mps: float


MODE_PROFILES: dict[str, ModeProfile] = {
    "driving": ModeProfile(
        mode="driving",
        label="Car",
        ors_profile="driving-car",
        step_m=250.0,
        min_points=6,
        speed_mps=11.11,
    ),
    "walking": ModeProfile(
        mode="walking",
        label="Walking",
        ors_profile="foot-walking",
        step_m=150.0,
        min_points=10,
        speed_mps=1.4,
    ),
    "cycling": ModeProfile(
        mode="cycling",
        label="Bicycle",
        ors_profile="cycling-regular",
        step_m=200.0,
        min_points=8,
        speed_mps=4.17,
    ),
}

_MODE_ALIASES: dict[str, str] = {
    "driving-car": "driving",
    "car": "driving",
    "drive": "driving",
    "foot-walking": "walking",
    "foot": "walking",
    "walk": "walking",
    "cycling-regular": "cycling",
    "bike": "cycling",
    "bicycle": "cycling",
}


def resolve_mode(mode: str | None) -> ModeProfile:
    key = str(mode or DEFAULT_MODE).strip().lower()
    key = _MODE_ALIASES.get(key, key)
    profile = MODE_PROFILES.get(key)
    if profile is None:
        raise InvalidInputError(
            f"unknown transport mode {mode!r}; expected one of {sorted(MODE_PROFILES)}",
            reason_code="unknown_transport_mode",
            details={"mode": mode},
        )
    return profile
