from __future__ import annotations

import math
import random
from typing import Literal, Sequence

from .geo import Coord, distance_m, normalize_coord, unwrapped_destination
from .transport_modes import ModeProfile
from .tuning import DEFAULT_SYNTHESIS, SynthesisTuning

TerrainKind = Literal["grid", "open"]


def classify_terrain(origin: Coord, tuning: SynthesisTuning = DEFAULT_SYNTHESIS) -> TerrainKind:
    return "grid" if tuning.grid_bounds.contains(origin[0], origin[1]) else "open"


def target_point_count(
    direct_distance_m: float,
    profile: ModeProfile,
    tuning: SynthesisTuning = DEFAULT_SYNTHESIS,
) -> int:
    raw = math.ceil(max(0.0, direct_distance_m) / profile.step_m)
    return min(max(raw, profile.min_points), tuning.max_points)


def pin_endpoints(coords: Sequence[Coord], origin: Coord, destination: Coord) -> list[Coord]:
    """Return a route that starts exactly at `origin` and ends exactly at `destination`.

    Mismatched endpoints are extended rather than overwritten so provider
    geometry keeps its snapped street vertices.
    """
    out = list(coords)
    if not out or out[0] != origin:
        out.insert(0, origin)
    if len(out) < 2 or out[-1] != destination:
        out.append(destination)
    return out


def wrap_path(coords: Sequence[Coord], origin: Coord, destination: Coord) -> list[Coord]:
    """Fold a synthesized path back into WGS84 range with exact endpoints.

    Interior latitudes are clamped to [-90, 90] and longitudes wrapped into
    [-180, 180]. The first and last vertices are replaced by `origin` and
    `destination`, which synthesis always places there (possibly in an
    unwrapped longitude frame).
    """
    return [origin, *(normalize_coord(c) for c in coords[1:-1]), destination]


def _axis_step(
    total_delta: float,
    remaining: float,
    advance_fraction: float,
    rng: random.Random,
    tuning: SynthesisTuning,
) -> float:
    blocks = rng.randint(tuning.min_blocks_per_step, tuning.max_blocks_per_step)
    magnitude = min(
        abs(total_delta) * advance_fraction,
        tuning.block_length_deg * blocks,
        abs(remaining),
    )
    return math.copysign(magnitude, remaining) if magnitude > 0.0 else 0.0


def synthesize_grid_path(
    origin: Coord,
    destination: Coord,
    num_points: int,
    *,
    rng: random.Random,
    tuning: SynthesisTuning = DEFAULT_SYNTHESIS,
) -> list[Coord]:
    """Block-by-block path alternating latitude and longitude runs.

    A destination across the antimeridian is approached the short way, so the
    last vertex may sit outside [-180, 180]; `wrap_path` folds it back.
    """
    destination = unwrapped_destination(origin, destination)
    d_lat = destination[0] - origin[0]
    d_lng = destination[1] - origin[1]
    north_south = abs(d_lat) > abs(d_lng)

    vertical = north_south or rng.random() < tuning.vertical_start_probability
    segments = min(num_points, rng.randint(tuning.min_segments, tuning.max_segments))

    lat, lng = origin
    coords: list[Coord] = [origin]
    for i in range(segments):
        progress = (i + 1) / segments
        advance = max(tuning.min_advance_fraction, 1.0 - progress)
        wobble = (rng.random() - 0.5) * tuning.wobble_deg if rng.random() < tuning.wobble_probability else 0.0

        if vertical:
            lat += _axis_step(d_lat, destination[0] - lat, advance, rng, tuning)
            lng += wobble
        else:
            lng += _axis_step(d_lng, destination[1] - lng, advance, rng, tuning)
            lat += wobble

        if (lat, lng) != coords[-1]:
            coords.append((lat, lng))

        if rng.random() < tuning.switch_probability or i >= segments - tuning.forced_switch_tail:
            vertical = not vertical

    final_points = rng.randint(tuning.min_final_points, tuning.max_final_points)
    for k in range(1, final_points + 1):
        f = k / (final_points + 1)
        coords.append((lat + (destination[0] - lat) * f, lng + (destination[1] - lng) * f))
    coords.append(destination)
    return coords


def cubic_bezier_point(controls: Sequence[Coord], t: float) -> Coord:
    """Evaluate the control chain at t in [0, 1] with a cubic Bezier.

    Fewer than four controls are padded by duplication; longer chains use the
    4-point window selected by t.
    """
    n = len(controls)
    if n == 0:
        raise ValueError("at least one control point is required")
    if n == 1:
        return controls[0]
    if n == 2:
        p0, p1, p2, p3 = controls[0], controls[0], controls[1], controls[1]
    elif n == 3:
        p0, p1, p2, p3 = controls[0], controls[1], controls[1], controls[2]
    elif n == 4:
        p0, p1, p2, p3 = controls
    else:
        idx = min(int(math.floor(t * (n - 3))), n - 4)
        p0, p1, p2, p3 = controls[idx : idx + 4]

    mt = 1.0 - t
    b0 = mt * mt * mt
    b1 = 3.0 * mt * mt * t
    b2 = 3.0 * mt * t * t
    b3 = t * t * t
    return (
        b0 * p0[0] + b1 * p1[0] + b2 * p2[0] + b3 * p3[0],
        b0 * p0[1] + b1 * p1[1] + b2 * p2[1] + b3 * p3[1],
    )


def open_terrain_controls(
    origin: Coord,
    destination: Coord,
    *,
    rng: random.Random,
    tuning: SynthesisTuning = DEFAULT_SYNTHESIS,
) -> list[Coord]:
    destination = unwrapped_destination(origin, destination)
    d_lat = destination[0] - origin[0]
    d_lng = destination[1] - origin[1]
    north_south = abs(d_lat) > abs(d_lng)

    count = rng.randint(tuning.min_control_points, tuning.max_control_points)
    controls: list[Coord] = [origin]
    for i in range(1, count + 1):
        f = i / (count + 1)
        # Zero offset at the ends, widest at the midpoint.
        offset = (rng.random() * 2.0 - 1.0) * tuning.max_offset_deg * math.sin(f * math.pi)
        lat = origin[0] + d_lat * f
        lng = origin[1] + d_lng * f
        if north_south:
            lng += offset
        else:
            lat += offset
        controls.append((lat, lng))
    controls.append(destination)
    return controls


def synthesize_open_path(
    origin: Coord,
    destination: Coord,
    num_points: int,
    *,
    rng: random.Random,
    tuning: SynthesisTuning = DEFAULT_SYNTHESIS,
) -> list[Coord]:
    controls = open_terrain_controls(origin, destination, rng=rng, tuning=tuning)
    samples = max(2, num_points)
    return [cubic_bezier_point(controls, i / (samples - 1)) for i in range(samples)]


def synthesize_path(
    origin: Coord,
    destination: Coord,
    profile: ModeProfile,
    *,
    rng: random.Random | None = None,
    tuning: SynthesisTuning = DEFAULT_SYNTHESIS,
    wrap: bool = True,
) -> list[Coord]:
    """Coarse street-like polyline from origin to destination.

    Inside the configured grid box the path follows city blocks; elsewhere it
    bends along a Bezier curve. Endpoints are always the exact inputs.

    With `wrap=False` the path is left in origin's continuous longitude frame
    so it can be smoothed before `wrap_path` brings it back into range.
    """
    rng = rng or random.Random()
    num_points = target_point_count(distance_m(origin, destination), profile, tuning)

    if classify_terrain(origin, tuning) == "grid":
        coords = synthesize_grid_path(origin, destination, num_points, rng=rng, tuning=tuning)
    else:
        coords = synthesize_open_path(origin, destination, num_points, rng=rng, tuning=tuning)
    return wrap_path(coords, origin, destination) if wrap else coords
