from __future__ import annotations

from dataclasses import dataclass
from typing import Any

FROZEN_REASON_CODES: frozenset[str] = frozenset(
    {
        "provider_disabled",
        "provider_unavailable",
        "provider_timeout",
        "provider_auth_failed",
        "provider_quota_exceeded",
        "provider_bad_response",
        "provider_no_route",
        "provider_unexpected_error",
        "geometry_decode_failed",
        "invalid_coordinates",
        "unknown_transport_mode",
        "invalid_parameter",
        "gateway_unavailable",
        "gateway_bad_response",
        "gateway_unexpected_error",
    }
)


@dataclass(eq=False)
class SafeRouteError(Exception):
    message: str
    reason_code: str = "invalid_parameter"
    details: dict[str, Any] | None = None

    def __str__(self) -> str:
        return self.message


@dataclass(eq=False)
class ProviderUnavailableError(SafeRouteError):
    """Directions provider could not produce a route (network, auth, quota, timeout)."""

    reason_code: str = "provider_unavailable"


@dataclass(eq=False)
class DecodeError(SafeRouteError):
    reason_code: str = "geometry_decode_failed"


@dataclass(eq=False)
class InvalidInputError(SafeRouteError, ValueError):
    """Caller-supplied input is unusable; surfaced as a client error, never retried."""

    reason_code: str = "invalid_coordinates"


@dataclass(eq=False)
class GatewayError(SafeRouteError):
    reason_code: str = "gateway_unavailable"


def normalize_reason_code(reason_code: str, *, default: str = "provider_unexpected_error") -> str:
    code = str(reason_code or "").strip()
    if code in FROZEN_REASON_CODES:
        return code
    return default
