from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Protocol, Sequence, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from .geo import Coord, point_to_polyline_distance_m
from .logging_utils import log_event
from .models import Incident, SecurityPoint
from .route_errors import GatewayError
from .safety_scorer import as_utc

SECURITY_POINTS_PATH = "/security-points/near-route"
INCIDENTS_PATH = "/incidents/near-route"

_Row = TypeVar("_Row", bound=BaseModel)


@dataclass
class NearbyFeatures:
    security_points: list[SecurityPoint] = field(default_factory=list)
    incidents: list[Incident] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.security_points) + len(self.incidents)


class ProximityGateway(Protocol):
    async def query(self, route: Sequence[Coord], buffer_m: float) -> NearbyFeatures: ...


def route_to_geojson(route: Sequence[Coord]) -> dict[str, Any]:
    return {"type": "LineString", "coordinates": [[lng, lat] for (lat, lng) in route]}


def _parse_rows(rows: list[Any], model: type[_Row], *, source: str) -> list[_Row]:
    parsed: list[_Row] = []
    skipped = 0
    for row in rows:
        try:
            parsed.append(model.model_validate(row))
        except ValidationError:
            skipped += 1
    if skipped:
        log_event("gateway_rows_skipped", level=logging.WARNING, source=source, skipped=skipped, kept=len(parsed))
    return parsed


class HTTPProximityGateway:
    """Client for the security API's near-route endpoints."""

    def __init__(
        self,
        *,
        base_url: str,
        timeout_s: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        # trust_env=False keeps proxy env vars away from in-cluster service names.
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_s, connect=min(timeout_s, 5.0)),
            trust_env=False,
            headers={"accept": "application/json"},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _post(self, path: str, body: dict[str, Any]) -> list[Any]:
        url = f"{self.base_url}{path}"
        try:
            resp = await self._client.post(url, json=body)
        except httpx.TimeoutException as e:
            raise GatewayError(f"proximity gateway timed out ({path})", details={"path": path}) from e
        except httpx.HTTPError as e:
            raise GatewayError(
                f"proximity gateway unreachable ({path}): {type(e).__name__}",
                details={"path": path},
            ) from e

        if resp.status_code >= 400:
            raise GatewayError(
                f"proximity gateway HTTP {resp.status_code} ({path})",
                reason_code="gateway_bad_response",
                details={"path": path, "status": resp.status_code},
            )
        try:
            data = resp.json()
        except ValueError as e:
            raise GatewayError(
                f"proximity gateway returned non-JSON body ({path})",
                reason_code="gateway_bad_response",
                details={"path": path},
            ) from e

        rows = data.get("data") if isinstance(data, dict) else data
        if not isinstance(rows, list):
            raise GatewayError(
                f"proximity gateway payload is not a list ({path})",
                reason_code="gateway_bad_response",
                details={"path": path},
            )
        return rows

    async def query(self, route: Sequence[Coord], buffer_m: float) -> NearbyFeatures:
        body = {"route": route_to_geojson(route), "buffer_m": float(buffer_m)}
        tasks = [
            asyncio.create_task(self._post(SECURITY_POINTS_PATH, body)),
            asyncio.create_task(self._post(INCIDENTS_PATH, body)),
        ]
        try:
            point_rows, incident_rows = await asyncio.gather(*tasks)
        except BaseException:
            # Cancel and reap the sibling before propagating.
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return NearbyFeatures(
            security_points=_parse_rows(point_rows, SecurityPoint, source=SECURITY_POINTS_PATH),
            incidents=_parse_rows(incident_rows, Incident, source=INCIDENTS_PATH),
        )


class InMemoryProximityGateway:
    """Gateway over a fixed list of located points; used offline and in tests.

    Items without coordinates are never returned since their distance to an
    arbitrary route is unknown.
    """

    def __init__(
        self,
        security_points: Iterable[SecurityPoint] = (),
        incidents: Iterable[Incident] = (),
    ) -> None:
        self._security_points = list(security_points)
        self._incidents = list(incidents)

    @classmethod
    def from_json_file(cls, path: str | Path) -> "InMemoryProximityGateway":
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            raise ValueError(f"{path}: expected an object with 'security_points' and 'incidents'")
        return cls(
            security_points=[SecurityPoint.model_validate(row) for row in payload.get("security_points", [])],
            incidents=[Incident.model_validate(row) for row in payload.get("incidents", [])],
        )

    async def query(self, route: Sequence[Coord], buffer_m: float) -> NearbyFeatures:
        points: list[SecurityPoint] = []
        for point in self._security_points:
            if point.lat is None or point.lng is None:
                continue
            d = point_to_polyline_distance_m((point.lat, point.lng), route)
            if d <= buffer_m:
                points.append(point.model_copy(update={"distance_m": d}))

        incidents: list[Incident] = []
        for incident in self._incidents:
            if incident.lat is None or incident.lng is None:
                continue
            d = point_to_polyline_distance_m((incident.lat, incident.lng), route)
            if d <= buffer_m:
                incidents.append(incident.model_copy(update={"distance_m": d}))

        points.sort(key=lambda p: p.distance_m or 0.0)
        incidents.sort(key=lambda i: (-as_utc(i.occurred_at).timestamp(), i.distance_m or 0.0))
        return NearbyFeatures(security_points=points, incidents=incidents)
