from __future__ import annotations

import math
from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from .transport_modes import TransportMode

SecurityCategory = Literal["patrol", "commercial", "park", "monitored", "lighting", "risk", "hospital"]
IncidentType = Literal["robbery", "harassment", "accident", "other"]
Provenance = Literal["gateway", "synthetic"]
SafetyLevel = Literal["high", "medium", "low"]
RouteSource = Literal["provider", "synthetic"]
NearbyKind = Literal["security_point", "incident"]

_CATEGORY_ALIASES: dict[str, str] = {
    "police": "patrol",
    "comisaria": "patrol",
    "patrol-station": "patrol",
    "serenazgo": "monitored",
    "neighborhood-patrol": "monitored",
    "iluminacion": "lighting",
    "comercial": "commercial",
    "parque": "park",
    "riesgo": "risk",
}

_INCIDENT_ALIASES: dict[str, str] = {
    "robo": "robbery",
    "acoso": "harassment",
    "accidente": "accident",
    "otro": "other",
}


def _rename_legacy_keys(data: dict, renames: dict[str, str]) -> dict:
    out = dict(data)
    for legacy, current in renames.items():
        if current not in out and legacy in out:
            out[current] = out[legacy]
    return out


class LatLng(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)

    @model_validator(mode="before")
    @classmethod
    def accept_lon_alias(cls, value: object) -> object:
        if isinstance(value, dict) and "lng" not in value and "lon" in value:
            data = dict(value)
            data["lng"] = data["lon"]
            return data
        return value

    def as_coord(self) -> tuple[float, float]:
        return (self.lat, self.lng)

    @classmethod
    def from_coord(cls, coord: tuple[float, float]) -> "LatLng":
        return cls(lat=coord[0], lng=coord[1])


class SecurityPoint(BaseModel):
    id: int | str
    name: str = ""
    category: SecurityCategory
    distance_m: float | None = Field(default=None, ge=0.0)
    lat: float | None = Field(default=None, ge=-90, le=90)
    lng: float | None = Field(default=None, ge=-180, le=180)
    description: str | None = None
    provenance: Provenance = "gateway"

    @model_validator(mode="before")
    @classmethod
    def accept_legacy_keys(cls, value: object) -> object:
        if not isinstance(value, dict):
            return value
        data = _rename_legacy_keys(
            value,
            {
                "nombre": "name",
                "tipo": "category",
                "type": "category",
                "distancia": "distance_m",
                "distanceMeters": "distance_m",
                "descripcion": "description",
                "latitude": "lat",
                "longitude": "lng",
            },
        )
        category = data.get("category")
        if isinstance(category, str):
            key = category.strip().lower()
            data["category"] = _CATEGORY_ALIASES.get(key, key)
        return data


class Incident(BaseModel):
    id: int | str
    type: IncidentType
    occurred_at: datetime | date
    distance_m: float | None = Field(default=None, ge=0.0)
    lat: float | None = Field(default=None, ge=-90, le=90)
    lng: float | None = Field(default=None, ge=-180, le=180)
    description: str | None = None
    provenance: Provenance = "gateway"

    @model_validator(mode="before")
    @classmethod
    def accept_legacy_keys(cls, value: object) -> object:
        if not isinstance(value, dict):
            return value
        data = _rename_legacy_keys(
            value,
            {
                "tipo": "type",
                "fecha": "occurred_at",
                "date": "occurred_at",
                "occurredAt": "occurred_at",
                "distancia": "distance_m",
                "distanceMeters": "distance_m",
                "descripcion": "description",
                "latitude": "lat",
                "longitude": "lng",
            },
        )
        kind = data.get("type")
        if isinstance(kind, str):
            key = kind.strip().lower()
            data["type"] = _INCIDENT_ALIASES.get(key, key)
        return data


class GeoJSONLineString(BaseModel):
    type: Literal["LineString"] = "LineString"
    coordinates: list[tuple[float, float]]  # [lng, lat]


class SafeRouteRequest(BaseModel):
    origin: LatLng
    destination: LatLng
    mode: str = Field(default="driving", max_length=32)
    seed: int | None = None
    use_real_provider: bool | None = None


class AlternativeRoutesRequest(SafeRouteRequest):
    count: int | None = Field(default=None, ge=1, le=5)


class NearbyPoint(BaseModel):
    id: int | str
    kind: NearbyKind
    name: str
    category: str
    description: str | None = None
    lat: float | None = None
    lng: float | None = None
    distance_m: int | None = None
    occurred_at: datetime | date | None = None
    provenance: Provenance = "gateway"


class SafeRouteResult(BaseModel):
    mode: TransportMode
    route: list[LatLng] = Field(..., min_length=2)
    geometry: GeoJSONLineString
    bounding_box: list[float] = Field(..., min_length=4, max_length=4)
    distance_m: float = Field(..., ge=0.0)
    duration_s: float = Field(..., ge=0.0)
    safety_score: int = Field(..., ge=0, le=100)
    safety_level: SafetyLevel
    nearby_points: list[NearbyPoint] = Field(default_factory=list)
    route_source: RouteSource
    degraded: list[str] = Field(default_factory=list)


class AlternativeRoutesResult(BaseModel):
    routes: list[SafeRouteResult]


class ScoreRequest(BaseModel):
    route: list[LatLng] = Field(..., min_length=2)
    security_points: list[SecurityPoint] = Field(default_factory=list)
    incidents: list[Incident] = Field(default_factory=list)
    radius_m: float | None = Field(default=None, gt=0.0)
    now: datetime | None = None

    @field_validator("radius_m")
    @classmethod
    def finite(cls, v: float | None) -> float | None:
        if v is not None and not math.isfinite(v):
            raise ValueError("radius_m must be finite")
        return v


class ScoreContribution(BaseModel):
    id: int | str
    kind: NearbyKind
    label: str
    distance_m: float | None
    contribution: float


class ScoreResponse(BaseModel):
    safety_score: int = Field(..., ge=0, le=100)
    safety_level: SafetyLevel
    contributions: list[ScoreContribution]


class ModeInfo(BaseModel):
    mode: TransportMode
    label: str
    provider_profile: str
    speed_mps: float


class ModeListResponse(BaseModel):
    modes: list[ModeInfo]


class ProviderToggleRequest(BaseModel):
    enabled: bool


class ProviderStatusResponse(BaseModel):
    enabled: bool
    reachable: bool | None = None
