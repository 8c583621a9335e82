from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx
import pytest

from saferoute.route_errors import DecodeError, ProviderUnavailableError
from saferoute.routing_ors import ORSClient, parse_directions_payload

ORIGIN = (-12.0464, -77.0428)
DESTINATION = (-12.1219, -77.0297)
ENCODED = "_p~iF~ps|U_ulLnnqC_mqNvxq`@"


def _client(handler) -> ORSClient:
    return ORSClient(
        base_url="https://ors.test/v2/",
        api_key="secret",
        timeout_s=2.0,
        transport=httpx.MockTransport(handler),
    )


def _run(coro):
    return asyncio.run(coro)


async def _fetch(client: ORSClient, **kwargs: Any):
    try:
        return await client.fetch_routes(ORIGIN, DESTINATION, "foot-walking", **kwargs)
    finally:
        await client.aclose()


def test_fetch_routes_posts_lng_lat_and_decodes_encoded_geometry() -> None:
    seen: dict[str, Any] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["auth"] = request.headers.get("authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "bbox": [-126.453, 38.5, -120.2, 43.252],
                "routes": [{"geometry": ENCODED, "summary": {"distance": 1234.5, "duration": 880.0}}],
            },
        )

    routes = _run(_fetch(_client(handler)))

    assert seen["path"] == "/v2/directions/foot-walking"
    assert seen["auth"] == "secret"
    assert seen["body"]["coordinates"] == [[ORIGIN[1], ORIGIN[0]], [DESTINATION[1], DESTINATION[0]]]
    assert "alternative_routes" not in seen["body"]
    assert len(routes) == 1
    assert routes[0].coordinates[0] == pytest.approx((38.5, -120.2))
    assert routes[0].distance_m == 1234.5
    assert routes[0].duration_s == 880.0
    assert routes[0].bbox == [-126.453, 38.5, -120.2, 43.252]


def test_alternatives_are_requested_and_capped() -> None:
    seen: dict[str, Any] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"routes": [{"geometry": ENCODED}, {"geometry": ENCODED}]})

    routes = _run(_fetch(_client(handler), alternatives=5))
    assert seen["body"]["alternative_routes"]["target_count"] == 3
    assert len(routes) == 2


@pytest.mark.parametrize(
    ("status", "reason"),
    [
        (401, "provider_auth_failed"),
        (403, "provider_auth_failed"),
        (429, "provider_quota_exceeded"),
        (404, "provider_no_route"),
        (500, "provider_bad_response"),
        (503, "provider_bad_response"),
    ],
)
def test_http_errors_map_to_reason_codes(status: int, reason: str) -> None:
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(status, json={"error": {"code": 2010, "message": "nope"}})

    with pytest.raises(ProviderUnavailableError) as excinfo:
        _run(_fetch(_client(handler)))
    assert excinfo.value.reason_code == reason
    assert "nope" in str(excinfo.value)
    # Single attempt, no retries.
    assert calls["n"] == 1


def test_timeout_and_network_errors() -> None:
    def timeout(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    def refused(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(ProviderUnavailableError) as excinfo:
        _run(_fetch(_client(timeout)))
    assert excinfo.value.reason_code == "provider_timeout"

    with pytest.raises(ProviderUnavailableError) as excinfo:
        _run(_fetch(_client(refused)))
    assert excinfo.value.reason_code == "provider_unavailable"


def test_non_json_body_is_bad_response() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>gateway</html>")

    with pytest.raises(ProviderUnavailableError) as excinfo:
        _run(_fetch(_client(handler)))
    assert excinfo.value.reason_code == "provider_bad_response"


def test_parse_geojson_feature_collection() -> None:
    payload = {
        "type": "FeatureCollection",
        "bbox": [-77.05, -12.13, -77.02, -12.04],
        "features": [
            {
                "type": "Feature",
                "geometry": {"type": "LineString", "coordinates": [[-77.0428, -12.0464], [-77.0297, -12.1219]]},
                "properties": {"summary": {"distance": 8700.0, "duration": 900.0}},
            }
        ],
    }
    routes = parse_directions_payload(payload)
    assert routes[0].coordinates == [(-12.0464, -77.0428), (-12.1219, -77.0297)]
    assert routes[0].bbox == [-77.05, -12.13, -77.02, -12.04]
    assert routes[0].distance_m == 8700.0


def test_parse_rejects_missing_and_malformed_geometry() -> None:
    with pytest.raises(ProviderUnavailableError) as excinfo:
        parse_directions_payload({"routes": []})
    assert excinfo.value.reason_code == "provider_no_route"

    with pytest.raises(DecodeError):
        parse_directions_payload({"routes": [{"geometry": "_p~iF~ps|U_ulLnnqC_mqNvxq`"}]})
    with pytest.raises(DecodeError):
        parse_directions_payload({"routes": [{"geometry": "_p~iF~ps|U"}]})
    with pytest.raises(DecodeError):
        parse_directions_payload({"routes": [{"geometry": {"type": "LineString", "coordinates": [[1.0]]}}]})
    with pytest.raises(DecodeError):
        parse_directions_payload({"routes": [{"geometry": 42}]})
    with pytest.raises(DecodeError):
        parse_directions_payload(
            {"routes": [{"geometry": {"type": "LineString", "coordinates": [[-77.04, -12.04], [-77.03, 95.0]]}}]}
        )


def test_missing_summary_leaves_measurements_unset() -> None:
    routes = parse_directions_payload({"routes": [{"geometry": ENCODED, "summary": {"distance": "far"}}]})
    assert routes[0].distance_m is None
    assert routes[0].duration_s is None


def test_check_status_never_raises() -> None:
    def ok(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v2/status"
        return httpx.Response(200, json={"ready": True})

    def down(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    async def check(handler) -> bool:
        client = _client(handler)
        try:
            return await client.check_status()
        finally:
            await client.aclose()

    assert _run(check(ok)) is True
    assert _run(check(down)) is False
    assert _run(check(lambda request: httpx.Response(502))) is False
