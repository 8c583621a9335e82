from __future__ import annotations

import asyncio
import logging
import math
import random
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Literal, Sequence

from .curve_smoother import smooth_path
from .geo import Coord, bounding_box, is_finite_coord, path_length_m
from .logging_utils import bind_request_context, log_event
from .models import GeoJSONLineString, LatLng, NearbyPoint, SafeRouteResult
from .path_synthesizer import pin_endpoints, synthesize_path, wrap_path
from .provider_toggle import PROVIDER_TOGGLE, ProviderToggle
from .proximity_gateway import InMemoryProximityGateway, NearbyFeatures, ProximityGateway
from .route_errors import GatewayError, InvalidInputError, SafeRouteError, normalize_reason_code
from .routing_ors import DirectionsProvider, DirectionsRoute
from .safety_scorer import clamp_score, round_half_up, safety_level, score_route, validate_radius
from .settings import settings
from .synthetic_points import generate_synthetic_points
from .transport_modes import ModeProfile, resolve_mode
from .tuning import (
    DEFAULT_SCORING,
    DEFAULT_SMOOTHING,
    DEFAULT_SYNTHESIS,
    ScoringTuning,
    SmoothingTuning,
    SynthesisTuning,
)

MAX_ALTERNATIVE_ROUTES = 5


@dataclass(frozen=True)
class RouteGeometry:
    coordinates: list[Coord]
    distance_m: float
    duration_s: float
    bbox: list[float]
    source: Literal["provider", "synthetic"]
    fallback_reason: str | None = None


def validate_coordinate(point: Any, *, label: str = "point") -> Coord:
    """Coerce a LatLng / (lat, lng) pair to a finite in-range coordinate."""
    if isinstance(point, LatLng):
        raw = (point.lat, point.lng)
    elif isinstance(point, dict):
        raw = (point.get("lat"), point.get("lng", point.get("lon")))
    else:
        try:
            raw = (point[0], point[1])
        except (TypeError, IndexError, KeyError) as e:
            raise InvalidInputError(f"{label} must be a (lat, lng) pair", details={"field": label}) from e
    try:
        lat, lng = float(raw[0]), float(raw[1])
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"{label} coordinates must be numeric", details={"field": label}) from e
    if not is_finite_coord(lat, lng):
        raise InvalidInputError(
            f"{label} ({lat}, {lng}) is not a finite WGS84 coordinate",
            details={"field": label, "lat": lat, "lng": lng},
        )
    return (lat, lng)


def _measured_geometry(
    coords: list[Coord],
    profile: ModeProfile,
    *,
    source: Literal["provider", "synthetic"],
    fallback_reason: str | None = None,
    distance_m: float | None = None,
    duration_s: float | None = None,
) -> RouteGeometry:
    distance = path_length_m(coords) if distance_m is None else distance_m
    duration = distance / profile.speed_mps if duration_s is None else duration_s
    return RouteGeometry(
        coordinates=coords,
        distance_m=distance,
        duration_s=duration,
        bbox=bounding_box(coords),
        source=source,
        fallback_reason=fallback_reason,
    )


def synthesize_route_geometry(
    origin: Coord,
    destination: Coord,
    profile: ModeProfile,
    *,
    rng: random.Random | None = None,
    synthesis: SynthesisTuning = DEFAULT_SYNTHESIS,
    smoothing: SmoothingTuning = DEFAULT_SMOOTHING,
) -> RouteGeometry:
    rng = rng or random.Random()
    coarse = synthesize_path(origin, destination, profile, rng=rng, tuning=synthesis, wrap=False)
    # Bezier offsets and jitter can overshoot a pole or the antimeridian.
    coords = wrap_path(smooth_path(coarse, rng=rng, tuning=smoothing), origin, destination)
    return _measured_geometry(coords, profile, source="synthetic")


def _provider_geometry(route: DirectionsRoute, origin: Coord, destination: Coord, profile: ModeProfile) -> RouteGeometry:
    coords = pin_endpoints(route.coordinates, origin, destination)
    return _measured_geometry(
        coords,
        profile,
        source="provider",
        distance_m=route.distance_m,
        duration_s=route.duration_s,
    )


async def _fetch_provider_routes(
    provider: DirectionsProvider,
    origin: Coord,
    destination: Coord,
    profile: ModeProfile,
    *,
    alternatives: int,
    timeout_s: float,
) -> tuple[list[DirectionsRoute], str | None]:
    """One bounded provider attempt. Returns (routes, None) or ([], reason_code)."""
    try:
        routes = await asyncio.wait_for(
            provider.fetch_routes(origin, destination, profile.ors_profile, alternatives=alternatives),
            timeout=timeout_s,
        )
        if not routes:
            reason, detail = "provider_no_route", "provider returned no routes"
        else:
            return list(routes), None
    except asyncio.TimeoutError:
        reason, detail = "provider_timeout", f"no response within {timeout_s}s"
    except SafeRouteError as e:
        reason, detail = normalize_reason_code(e.reason_code), str(e)
    except Exception as e:
        reason, detail = "provider_unexpected_error", f"{type(e).__name__}: {e}"

    log_event(
        "provider_fallback",
        level=logging.WARNING,
        reason_code=reason,
        detail=detail,
        mode=profile.mode,
    )
    return [], reason


async def resolve_route_geometry(
    origin: Coord,
    destination: Coord,
    profile: ModeProfile,
    *,
    provider: DirectionsProvider | None,
    use_real_provider: bool | None = None,
    toggle: ProviderToggle = PROVIDER_TOGGLE,
    rng: random.Random | None = None,
    timeout_s: float | None = None,
) -> RouteGeometry:
    """Provider geometry when available, otherwise a synthesized route.

    The result always starts at `origin` and ends at `destination` exactly.
    """
    reason: str | None = "provider_disabled"
    if provider is not None and toggle.resolve(use_real_provider):
        routes, reason = await _fetch_provider_routes(
            provider,
            origin,
            destination,
            profile,
            alternatives=0,
            timeout_s=settings.provider_timeout_s if timeout_s is None else timeout_s,
        )
        if routes:
            return _provider_geometry(routes[0], origin, destination, profile)

    geometry = synthesize_route_geometry(origin, destination, profile, rng=rng)
    return replace(geometry, fallback_reason=reason)


def format_nearby_points(features: NearbyFeatures) -> list[NearbyPoint]:
    """Display list: security points first, then incidents, whole-metre distances."""

    def _metres(d: float | None) -> int | None:
        if d is None or not math.isfinite(d):
            return None
        return round_half_up(d)

    out: list[NearbyPoint] = []
    for point in features.security_points:
        out.append(
            NearbyPoint(
                id=point.id,
                kind="security_point",
                name=point.name or point.category,
                category=point.category,
                description=point.description,
                lat=point.lat,
                lng=point.lng,
                distance_m=_metres(point.distance_m),
                provenance=point.provenance,
            )
        )
    for incident in features.incidents:
        out.append(
            NearbyPoint(
                id=incident.id,
                kind="incident",
                name=incident.description or incident.type,
                category=incident.type,
                description=incident.description,
                lat=incident.lat,
                lng=incident.lng,
                distance_m=_metres(incident.distance_m),
                occurred_at=incident.occurred_at,
                provenance=incident.provenance,
            )
        )
    return out


async def _score_geometry(
    geometry: RouteGeometry,
    profile: ModeProfile,
    *,
    gateway: ProximityGateway,
    radius_m: float,
    now: datetime,
    rng: random.Random,
    synthetic_on_failure: bool,
    scoring: ScoringTuning,
) -> SafeRouteResult:
    degraded: list[str] = []
    if geometry.fallback_reason:
        degraded.append(geometry.fallback_reason)

    coords = geometry.coordinates
    try:
        features = await gateway.query(coords, radius_m)
        score = score_route(coords, features.security_points, features.incidents, radius_m, now=now, tuning=scoring)
        nearby = format_nearby_points(features)
    except GatewayError as e:
        reason, detail = normalize_reason_code(e.reason_code, default="gateway_unexpected_error"), str(e)
    except InvalidInputError:
        raise
    except Exception as e:
        reason, detail = "gateway_unexpected_error", f"{type(e).__name__}: {e}"
    else:
        reason = None

    if reason is not None:
        log_event("gateway_degraded", level=logging.WARNING, reason_code=reason, detail=detail, mode=profile.mode)
        degraded.append(reason)
        bind_request_context(degraded=list(degraded))
        score = clamp_score(scoring.baseline, scoring)
        nearby = []
        if synthetic_on_failure:
            # Display-only placeholders; the score above stays at the baseline.
            nearby = format_nearby_points(generate_synthetic_points(coords, rng=rng, now=now))

    return SafeRouteResult(
        mode=profile.mode,
        route=[LatLng.from_coord(c) for c in coords],
        geometry=GeoJSONLineString(coordinates=[(lng, lat) for (lat, lng) in coords]),
        bounding_box=geometry.bbox,
        distance_m=round(geometry.distance_m, 1),
        duration_s=round(geometry.duration_s, 1),
        safety_score=score,
        safety_level=safety_level(score, scoring),
        nearby_points=nearby,
        route_source=geometry.source,
        degraded=degraded,
    )


async def compute_safe_route(
    origin: Any,
    destination: Any,
    mode: str | None = "driving",
    *,
    provider: DirectionsProvider | None = None,
    gateway: ProximityGateway | None = None,
    use_real_provider: bool | None = None,
    toggle: ProviderToggle = PROVIDER_TOGGLE,
    rng: random.Random | None = None,
    seed: int | None = None,
    radius_m: float | None = None,
    now: datetime | None = None,
    provider_timeout_s: float | None = None,
    synthetic_points_on_gateway_failure: bool | None = None,
    scoring: ScoringTuning = DEFAULT_SCORING,
) -> SafeRouteResult:
    """Route geometry plus safety index for origin -> destination.

    Invalid coordinates, modes or radii raise `InvalidInputError`; every
    provider or gateway failure degrades the result instead of raising.
    """
    o = validate_coordinate(origin, label="origin")
    d = validate_coordinate(destination, label="destination")
    profile = resolve_mode(mode)
    radius = validate_radius(settings.safety_buffer_radius_m if radius_m is None else radius_m, scoring)
    rng = rng or random.Random(seed)
    now = now or datetime.now(timezone.utc)

    geometry = await resolve_route_geometry(
        o,
        d,
        profile,
        provider=provider,
        use_real_provider=use_real_provider,
        toggle=toggle,
        rng=rng,
        timeout_s=provider_timeout_s,
    )
    bind_request_context(mode=profile.mode, route_source=geometry.source)
    result = await _score_geometry(
        geometry,
        profile,
        gateway=gateway or InMemoryProximityGateway(),
        radius_m=radius,
        now=now,
        rng=rng,
        synthetic_on_failure=(
            settings.synthetic_points_on_gateway_failure
            if synthetic_points_on_gateway_failure is None
            else synthetic_points_on_gateway_failure
        ),
        scoring=scoring,
    )
    log_event(
        "safe_route_computed",
        mode=profile.mode,
        route_source=result.route_source,
        points=len(result.route),
        distance_m=result.distance_m,
        safety_score=result.safety_score,
        degraded=result.degraded,
    )
    return result


async def compute_alternative_routes(
    origin: Any,
    destination: Any,
    mode: str | None = "driving",
    *,
    count: int | None = None,
    provider: DirectionsProvider | None = None,
    gateway: ProximityGateway | None = None,
    use_real_provider: bool | None = None,
    toggle: ProviderToggle = PROVIDER_TOGGLE,
    rng: random.Random | None = None,
    seed: int | None = None,
    radius_m: float | None = None,
    now: datetime | None = None,
    provider_timeout_s: float | None = None,
    synthetic_points_on_gateway_failure: bool | None = None,
    scoring: ScoringTuning = DEFAULT_SCORING,
) -> list[SafeRouteResult]:
    """Up to `count` scored candidate routes, safest first.

    Provider alternatives are used when the provider answers; otherwise
    `count` independent synthetic geometries are drawn from the same rng.
    """
    o = validate_coordinate(origin, label="origin")
    d = validate_coordinate(destination, label="destination")
    profile = resolve_mode(mode)
    n = settings.alternative_route_count if count is None else int(count)
    if not 1 <= n <= MAX_ALTERNATIVE_ROUTES:
        raise InvalidInputError(
            f"count must be between 1 and {MAX_ALTERNATIVE_ROUTES}, got {count}",
            reason_code="invalid_parameter",
        )
    radius = validate_radius(settings.safety_buffer_radius_m if radius_m is None else radius_m, scoring)
    rng = rng or random.Random(seed)
    now = now or datetime.now(timezone.utc)

    geometries: list[RouteGeometry] = []
    reason: str | None = "provider_disabled"
    if provider is not None and toggle.resolve(use_real_provider):
        routes, reason = await _fetch_provider_routes(
            provider,
            o,
            d,
            profile,
            alternatives=n,
            timeout_s=settings.provider_timeout_s if provider_timeout_s is None else provider_timeout_s,
        )
        geometries = [_provider_geometry(r, o, d, profile) for r in routes[:n]]
    if not geometries:
        geometries = [
            replace(synthesize_route_geometry(o, d, profile, rng=rng), fallback_reason=reason) for _ in range(n)
        ]

    results: Sequence[SafeRouteResult] = await asyncio.gather(
        *(
            _score_geometry(
                g,
                profile,
                gateway=gateway or InMemoryProximityGateway(),
                radius_m=radius,
                now=now,
                rng=rng,
                synthetic_on_failure=(
                    settings.synthetic_points_on_gateway_failure
                    if synthetic_points_on_gateway_failure is None
                    else synthetic_points_on_gateway_failure
                ),
                scoring=scoring,
            )
            for g in geometries
        )
    )
    ranked = sorted(results, key=lambda r: -r.safety_score)
    log_event(
        "alternative_routes_computed",
        mode=profile.mode,
        route_source=ranked[0].route_source,
        routes=len(ranked),
        safety_scores=[r.safety_score for r in ranked],
    )
    return ranked
