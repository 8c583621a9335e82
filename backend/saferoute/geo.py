from __future__ import annotations

import math
from typing import Iterable, Sequence

EARTH_RADIUS_M = 6_371_000.0
# Rough metres per degree of latitude; only used for display distances of offsets.
METERS_PER_DEGREE = 111_000.0

Coord = tuple[float, float]  # (lat, lng)


def deg_to_rad(deg: float) -> float:
    return deg * math.pi / 180.0


def rad_to_deg(rad: float) -> float:
    return rad * 180.0 / math.pi


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    phi1 = deg_to_rad(lat1)
    phi2 = deg_to_rad(lat2)
    dphi = deg_to_rad(lat2 - lat1)
    dlmb = deg_to_rad(lng2 - lng1)

    a = math.sin(dphi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2.0) ** 2
    # Rounding can push antipodal pairs a hair over 1; NaN must pass through untouched.
    if a > 1.0:
        a = 1.0
    return 2.0 * EARTH_RADIUS_M * math.asin(math.sqrt(a))


def distance_m(p1: Coord, p2: Coord) -> float:
    return haversine_m(p1[0], p1[1], p2[0], p2[1])


def path_length_m(points: Sequence[Coord]) -> float:
    total = 0.0
    for i in range(1, len(points)):
        total += distance_m(points[i - 1], points[i])
    return total


def bounding_box(points: Iterable[Coord]) -> list[float]:
    """Return [min_lng, min_lat, max_lng, max_lat], the order directions providers use."""
    pts = list(points)
    if not pts:
        return [0.0, 0.0, 0.0, 0.0]
    lats = [p[0] for p in pts]
    lngs = [p[1] for p in pts]
    return [min(lngs), min(lats), max(lngs), max(lats)]


def is_finite_coord(lat: float, lng: float) -> bool:
    return math.isfinite(lat) and math.isfinite(lng) and -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0


def clamp_lat(lat: float) -> float:
    return max(-90.0, min(90.0, lat))


def wrap_lng(lng: float) -> float:
    """Fold a longitude into [-180, 180]; in-range values come back unchanged."""
    if -180.0 <= lng <= 180.0:
        return lng
    return ((lng + 180.0) % 360.0) - 180.0


def normalize_coord(point: Coord) -> Coord:
    return (clamp_lat(point[0]), wrap_lng(point[1]))


def lng_delta(from_lng: float, to_lng: float) -> float:
    """Signed longitude change going the short way round, so trips across the antimeridian stay local."""
    return wrap_lng(to_lng - from_lng)


def unwrapped_destination(origin: Coord, destination: Coord) -> Coord:
    """Destination re-expressed in origin's longitude frame (may fall outside [-180, 180])."""
    if abs(destination[1] - origin[1]) <= 180.0:
        return destination
    return (destination[0], origin[1] + lng_delta(origin[1], destination[1]))


def _to_xy_m(lat: float, lng: float, ref_lat: float) -> tuple[float, float]:
    x = deg_to_rad(lng) * EARTH_RADIUS_M * math.cos(deg_to_rad(ref_lat))
    y = deg_to_rad(lat) * EARTH_RADIUS_M
    return x, y


def _near_lng(lng: float, ref_lng: float) -> float:
    # Same meridian, taken from the side closest to ref_lng.
    if abs(lng - ref_lng) <= 180.0:
        return lng
    return ref_lng + lng_delta(ref_lng, lng)


def point_to_segment_distance_m(point: Coord, seg_a: Coord, seg_b: Coord) -> float:
    ref_lat = (seg_a[0] + seg_b[0]) / 2.0
    px, py = _to_xy_m(point[0], point[1], ref_lat)
    ax, ay = _to_xy_m(seg_a[0], _near_lng(seg_a[1], point[1]), ref_lat)
    bx, by = _to_xy_m(seg_b[0], _near_lng(seg_b[1], point[1]), ref_lat)
    abx = bx - ax
    aby = by - ay
    denom = (abx * abx) + (aby * aby)
    if denom <= 1e-9:
        return math.hypot(px - ax, py - ay)
    t = max(0.0, min(1.0, (((px - ax) * abx) + ((py - ay) * aby)) / denom))
    return math.hypot(px - (ax + t * abx), py - (ay + t * aby))


def point_to_polyline_distance_m(point: Coord, polyline: Sequence[Coord]) -> float:
    """Shortest distance from a point to any segment of the polyline (local planar approximation)."""
    if not polyline:
        return math.inf
    if len(polyline) == 1:
        return distance_m(point, polyline[0])
    return min(
        point_to_segment_distance_m(point, polyline[i - 1], polyline[i])
        for i in range(1, len(polyline))
    )
