from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Final, Protocol

import httpx

from .geo import Coord, is_finite_coord
from .polyline import decode_polyline
from .route_errors import DecodeError, ProviderUnavailableError

# ORS only honours alternative_routes for two-waypoint requests, up to 3 routes.
MAX_ALTERNATIVES: Final[int] = 3
ALTERNATIVE_WEIGHT_FACTOR: Final[float] = 1.6
ALTERNATIVE_SHARE_FACTOR: Final[float] = 0.8


@dataclass(frozen=True)
class DirectionsRoute:
    coordinates: list[Coord]  # (lat, lng)
    bbox: list[float] | None = None
    distance_m: float | None = None
    duration_s: float | None = None


class DirectionsProvider(Protocol):
    async def fetch_routes(
        self,
        origin: Coord,
        destination: Coord,
        profile: str,
        *,
        alternatives: int = 0,
    ) -> list[DirectionsRoute]: ...


def _format_ors_error(resp: httpx.Response) -> str:
    """Best-effort decode of ORS JSON error payloads."""
    try:
        data = resp.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict):
            code = err.get("code")
            message = err.get("message")
            if code is not None and message:
                return f"ORS {resp.status_code} code={code}: {message}"
            if message:
                return f"ORS {resp.status_code}: {message}"
        elif isinstance(err, str) and err:
            return f"ORS {resp.status_code}: {err}"

    body = (resp.text or "").strip().replace("\n", " ")
    if len(body) > 240:
        body = body[:240] + "..."
    if body:
        return f"ORS {resp.status_code}: {body}"
    return f"ORS HTTP {resp.status_code}"


def _reason_for_status(status: int) -> str:
    if status in (401, 403):
        return "provider_auth_failed"
    if status == 429:
        return "provider_quota_exceeded"
    if status == 404:
        return "provider_no_route"
    return "provider_bad_response"


def _geojson_coordinates(geometry: dict[str, Any]) -> list[Coord]:
    raw = geometry.get("coordinates")
    if not isinstance(raw, list):
        raise DecodeError("GeoJSON geometry has no coordinate list")
    out: list[Coord] = []
    for idx, pair in enumerate(raw):
        if not isinstance(pair, (list, tuple)) or len(pair) < 2:
            raise DecodeError(f"GeoJSON coordinate {idx} is not a [lng, lat] pair", details={"index": idx})
        try:
            lng, lat = float(pair[0]), float(pair[1])
        except (TypeError, ValueError) as e:
            raise DecodeError(f"GeoJSON coordinate {idx} is not numeric", details={"index": idx}) from e
        if not (math.isfinite(lat) and math.isfinite(lng)):
            raise DecodeError(f"GeoJSON coordinate {idx} is not finite", details={"index": idx})
        out.append((lat, lng))
    return out


def _route_coordinates(geometry: Any) -> list[Coord]:
    if isinstance(geometry, str):
        coords = decode_polyline(geometry)
    elif isinstance(geometry, dict):
        coords = _geojson_coordinates(geometry)
    else:
        raise DecodeError(f"unsupported geometry type {type(geometry).__name__}")
    if len(coords) < 2:
        raise DecodeError(f"route geometry has {len(coords)} point(s); need at least 2")
    for idx, (lat, lng) in enumerate(coords):
        if not is_finite_coord(lat, lng):
            raise DecodeError(
                f"route coordinate {idx} ({lat}, {lng}) is outside WGS84 range",
                details={"index": idx},
            )
    return coords


def _summary_number(summary: Any, key: str) -> float | None:
    if not isinstance(summary, dict):
        return None
    value = summary.get(key)
    if isinstance(value, (int, float)) and math.isfinite(value) and value >= 0:
        return float(value)
    return None


def _bbox(value: Any) -> list[float] | None:
    if isinstance(value, list) and len(value) >= 4 and all(isinstance(v, (int, float)) for v in value[:4]):
        # 3D bboxes carry elevation at index 2 and 5.
        if len(value) == 6:
            return [float(value[0]), float(value[1]), float(value[3]), float(value[4])]
        return [float(v) for v in value[:4]]
    return None


def parse_directions_payload(payload: Any) -> list[DirectionsRoute]:
    """Parse an ORS directions response (JSON or GeoJSON format) into routes.

    Raises `DecodeError` for malformed geometry and
    `ProviderUnavailableError(provider_no_route)` when no route is present.
    """
    if not isinstance(payload, dict):
        raise ProviderUnavailableError("ORS payload is not an object", reason_code="provider_bad_response")

    top_bbox = _bbox(payload.get("bbox"))
    entries: list[tuple[Any, Any, Any]] = []
    if payload.get("type") == "FeatureCollection" or "features" in payload:
        for feature in payload.get("features") or []:
            if not isinstance(feature, dict):
                continue
            props = feature.get("properties") or {}
            entries.append((feature.get("geometry"), props.get("summary"), feature.get("bbox")))
    else:
        for route in payload.get("routes") or []:
            if not isinstance(route, dict):
                continue
            entries.append((route.get("geometry"), route.get("summary"), route.get("bbox")))

    if not entries:
        raise ProviderUnavailableError("ORS returned no routes", reason_code="provider_no_route")

    return [
        DirectionsRoute(
            coordinates=_route_coordinates(geometry),
            bbox=_bbox(bbox) or top_bbox,
            distance_m=_summary_number(summary, "distance"),
            duration_s=_summary_number(summary, "duration"),
        )
        for geometry, summary, bbox in entries
    ]


class ORSClient:
    """OpenRouteService v2 directions client.

    Exactly one HTTP attempt per call; the engine owns fallback so retries
    here would only delay it.
    """

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str = "",
        timeout_s: float = 8.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        headers = {"accept": "application/json, application/geo+json"}
        if api_key:
            headers["authorization"] = api_key
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_s, connect=min(timeout_s, 5.0)),
            trust_env=False,
            headers=headers,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_routes(
        self,
        origin: Coord,
        destination: Coord,
        profile: str,
        *,
        alternatives: int = 0,
    ) -> list[DirectionsRoute]:
        url = f"{self.base_url}/directions/{profile}"
        body: dict[str, Any] = {
            "coordinates": [[origin[1], origin[0]], [destination[1], destination[0]]],
            "instructions": False,
            "units": "m",
        }
        if alternatives > 0:
            body["alternative_routes"] = {
                "target_count": min(int(alternatives), MAX_ALTERNATIVES),
                "weight_factor": ALTERNATIVE_WEIGHT_FACTOR,
                "share_factor": ALTERNATIVE_SHARE_FACTOR,
            }

        try:
            resp = await self._client.post(url, json=body)
        except httpx.TimeoutException as e:
            raise ProviderUnavailableError(
                f"ORS request timed out (base={self.base_url})",
                reason_code="provider_timeout",
            ) from e
        except httpx.HTTPError as e:
            # httpx exceptions can stringify to "", so include the type.
            msg = str(e).strip() or repr(e)
            raise ProviderUnavailableError(
                f"ORS request failed (base={self.base_url}): {type(e).__name__}: {msg}",
                reason_code="provider_unavailable",
            ) from e

        if resp.status_code >= 400:
            raise ProviderUnavailableError(
                _format_ors_error(resp),
                reason_code=_reason_for_status(resp.status_code),
                details={"status": resp.status_code, "profile": profile},
            )
        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderUnavailableError("ORS returned a non-JSON body", reason_code="provider_bad_response") from e
        return parse_directions_payload(data)

    async def check_status(self) -> bool:
        try:
            resp = await self._client.get(f"{self.base_url}/status")
        except httpx.HTTPError:
            return False
        return resp.status_code == 200
