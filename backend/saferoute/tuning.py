"""Numeric knobs for geometry synthesis, smoothing and scoring.

Every constant the engine uses lives here, grouped by the component that
reads it. Instances are frozen; pass a modified copy (`dataclasses.replace`)
to any engine function to experiment without touching module state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping


@dataclass(frozen=True)
class GridBounds:
    """Box in which street layouts are treated as an orthogonal grid (bounds exclusive)."""

    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def contains(self, lat: float, lng: float) -> bool:
        return self.min_lat < lat < self.max_lat and self.min_lng < lng < self.max_lng


# Metropolitan Lima
LIMA_GRID_BOUNDS = GridBounds(min_lat=-12.2, max_lat=-11.9, min_lng=-77.2, max_lng=-76.9)


@dataclass(frozen=True)
class SynthesisTuning:
    grid_bounds: GridBounds = LIMA_GRID_BOUNDS
    max_points: int = 25

    # Grid strategy
    block_length_deg: float = 0.003  # ~300 m city block
    min_segments: int = 4
    max_segments: int = 7
    min_blocks_per_step: int = 1
    max_blocks_per_step: int = 3
    min_advance_fraction: float = 0.1
    vertical_start_probability: float = 0.6
    switch_probability: float = 0.7
    forced_switch_tail: int = 2  # the last N segments always change axis
    wobble_probability: float = 0.3
    wobble_deg: float = 0.0003
    min_final_points: int = 1
    max_final_points: int = 2

    # Open-terrain strategy
    min_control_points: int = 1
    max_control_points: int = 3
    max_offset_deg: float = 0.005  # ~500 m at the midpoint


@dataclass(frozen=True)
class SmoothingTuning:
    points_per_segment: int = 3
    jitter_deg: float = 1e-4


def _default_point_weights() -> Mapping[str, float]:
    return MappingProxyType(
        {
            "patrol": 5.0,  # police station
            "monitored": 3.0,  # municipal patrol base / camera coverage
            "hospital": 2.0,
            "lighting": 1.0,
            "commercial": 0.0,
            "park": 0.0,
            "risk": 0.0,
        }
    )


def _default_incident_weights() -> Mapping[str, float]:
    return MappingProxyType(
        {
            "robbery": -8.0,
            "harassment": -5.0,
            "accident": -3.0,
            "other": -2.0,
        }
    )


@dataclass(frozen=True)
class ScoringTuning:
    baseline: float = 75.0
    radius_m: float = 300.0
    decay_days: float = 30.0
    min_score: int = 0
    max_score: int = 100
    high_level_threshold: int = 70
    medium_level_threshold: int = 50
    point_weights: Mapping[str, float] = field(default_factory=_default_point_weights)
    incident_weights: Mapping[str, float] = field(default_factory=_default_incident_weights)


@dataclass(frozen=True)
class SyntheticPointTuning:
    min_points: int = 5
    max_points: int = 10
    lighting_offset_deg: tuple[float, float] = (0.0005, 0.0015)
    other_offset_deg: tuple[float, float] = (0.001, 0.003)
    max_incident_age_days: int = 7


DEFAULT_SYNTHESIS = SynthesisTuning()
DEFAULT_SMOOTHING = SmoothingTuning()
DEFAULT_SCORING = ScoringTuning()
DEFAULT_SYNTHETIC_POINTS = SyntheticPointTuning()
