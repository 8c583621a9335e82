from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
from typing import Any, Sequence

import httpx

from saferoute.proximity_gateway import InMemoryProximityGateway
from saferoute.routing_ors import ORSClient
from saferoute.safe_route import compute_alternative_routes, compute_safe_route
from saferoute.settings import settings


def _latlng(text: str) -> dict[str, float]:
    try:
        lat_s, lng_s = text.split(",", 1)
        return {"lat": float(lat_s), "lng": float(lng_s)}
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"expected 'lat,lng', got {text!r}") from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Compute a scored safe route, offline or against a running backend."
    )
    parser.add_argument("--origin", type=_latlng, required=True, help="lat,lng")
    parser.add_argument("--destination", type=_latlng, required=True, help="lat,lng")
    parser.add_argument("--mode", default="driving")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--alternatives", type=int, default=0, help="0 for a single route")
    parser.add_argument(
        "--backend-url",
        default=None,
        help="POST to this backend instead of computing in-process",
    )
    parser.add_argument(
        "--points-json",
        default=None,
        help="offline only: JSON file with 'security_points' and 'incidents'",
    )
    parser.add_argument(
        "--use-provider",
        action="store_true",
        help="offline only: try OpenRouteService before synthesizing",
    )
    parser.add_argument("--output", default=None, help="also write the JSON result here")
    return parser


def request_payload(args: argparse.Namespace) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "origin": args.origin,
        "destination": args.destination,
        "mode": args.mode,
        "seed": args.seed,
    }
    if args.alternatives > 0:
        payload["count"] = args.alternatives
    return payload


def run_remote(
    args: argparse.Namespace,
    *,
    client: httpx.Client | None = None,
) -> dict[str, Any]:
    base = str(args.backend_url).rstrip("/")
    path = "/route/alternatives" if args.alternatives > 0 else "/route/safe"
    own_client = client is None
    if client is None:
        client = httpx.Client(timeout=30.0)
    try:
        resp = client.post(f"{base}{path}", json=request_payload(args))
        resp.raise_for_status()
        return resp.json()
    finally:
        if own_client:
            client.close()


async def run_offline(args: argparse.Namespace) -> dict[str, Any]:
    gateway = (
        InMemoryProximityGateway.from_json_file(args.points_json)
        if args.points_json
        else InMemoryProximityGateway()
    )
    provider = (
        ORSClient(
            base_url=settings.ors_base_url,
            api_key=settings.ors_api_key,
            timeout_s=settings.provider_timeout_s,
        )
        if args.use_provider
        else None
    )
    try:
        if args.alternatives > 0:
            routes = await compute_alternative_routes(
                args.origin,
                args.destination,
                args.mode,
                count=args.alternatives,
                provider=provider,
                gateway=gateway,
                use_real_provider=args.use_provider,
                seed=args.seed,
            )
            return {"routes": [r.model_dump(mode="json") for r in routes]}
        result = await compute_safe_route(
            args.origin,
            args.destination,
            args.mode,
            provider=provider,
            gateway=gateway,
            use_real_provider=args.use_provider,
            seed=args.seed,
        )
        return result.model_dump(mode="json")
    finally:
        if provider is not None:
            await provider.aclose()


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)
    if args.backend_url:
        result = run_remote(args)
    else:
        result = asyncio.run(run_offline(args))

    text = json.dumps(result, indent=2)
    if args.output:
        out = Path(args.output)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(text, encoding="utf-8")
    print(text)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
