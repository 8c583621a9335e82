from __future__ import annotations

import time
import uuid
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .logging_utils import log_event, request_context
from .models import (
    AlternativeRoutesRequest,
    AlternativeRoutesResult,
    ModeInfo,
    ModeListResponse,
    ProviderStatusResponse,
    ProviderToggleRequest,
    SafeRouteRequest,
    SafeRouteResult,
    ScoreContribution,
    ScoreRequest,
    ScoreResponse,
)
from .provider_toggle import PROVIDER_TOGGLE, ProviderToggle
from .proximity_gateway import HTTPProximityGateway, InMemoryProximityGateway, ProximityGateway
from .route_errors import InvalidInputError
from .routing_ors import DirectionsProvider, ORSClient
from .safe_route import compute_alternative_routes, compute_safe_route
from .safety_scorer import clamp_score, safety_level, score_breakdown
from .settings import settings
from .transport_modes import MODE_PROFILES
from .tuning import DEFAULT_SCORING


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.provider = ORSClient(
        base_url=settings.ors_base_url,
        api_key=settings.ors_api_key,
        timeout_s=settings.provider_timeout_s,
    )
    if settings.proximity_gateway_url:
        app.state.gateway = HTTPProximityGateway(
            base_url=settings.proximity_gateway_url,
            timeout_s=settings.gateway_timeout_s,
        )
    else:
        app.state.gateway = InMemoryProximityGateway()
    yield
    await app.state.provider.aclose()
    if isinstance(app.state.gateway, HTTPProximityGateway):
        await app.state.gateway.aclose()


app = FastAPI(title="Safe Route Engine", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(InvalidInputError)
async def invalid_input_handler(request: Request, exc: InvalidInputError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"reason_code": exc.reason_code, "message": exc.message})


def directions_provider(request: Request) -> DirectionsProvider:
    provider: DirectionsProvider | None = getattr(request.app.state, "provider", None)
    if provider is None:
        raise HTTPException(status_code=503, detail="directions provider not initialised")
    return provider


def proximity_gateway(request: Request) -> ProximityGateway:
    gateway: ProximityGateway | None = getattr(request.app.state, "gateway", None)
    if gateway is None:
        raise HTTPException(status_code=503, detail="proximity gateway not initialised")
    return gateway


def provider_toggle() -> ProviderToggle:
    return PROVIDER_TOGGLE


ProviderDep = Annotated[DirectionsProvider, Depends(directions_provider)]
GatewayDep = Annotated[ProximityGateway, Depends(proximity_gateway)]
ToggleDep = Annotated[ProviderToggle, Depends(provider_toggle)]


@app.get("/")
async def root() -> dict[str, str]:
    return {"message": "Backend is running. Visit /docs for the API UI.", "docs": "/docs"}


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/modes", response_model=ModeListResponse)
async def list_modes() -> ModeListResponse:
    return ModeListResponse(
        modes=[
            ModeInfo(mode=p.mode, label=p.label, provider_profile=p.ors_profile, speed_mps=p.speed_mps)
            for p in MODE_PROFILES.values()
        ]
    )


@app.post("/route/safe", response_model=SafeRouteResult)
async def safe_route(
    req: SafeRouteRequest,
    provider: ProviderDep,
    gateway: GatewayDep,
    toggle: ToggleDep,
) -> SafeRouteResult:
    t0 = time.perf_counter()
    with request_context(request_id=str(uuid.uuid4()), endpoint="/route/safe"):
        result = await compute_safe_route(
            req.origin,
            req.destination,
            req.mode,
            provider=provider,
            gateway=gateway,
            use_real_provider=req.use_real_provider,
            toggle=toggle,
            seed=req.seed,
        )
        # request_id, mode and route_source come from the request context.
        log_event(
            "safe_route_request",
            origin=req.origin.model_dump(),
            destination=req.destination.model_dump(),
            safety_score=result.safety_score,
            degraded=result.degraded,
            duration_ms=round((time.perf_counter() - t0) * 1000, 2),
        )
    return result


@app.post("/route/alternatives", response_model=AlternativeRoutesResult)
async def alternative_routes(
    req: AlternativeRoutesRequest,
    provider: ProviderDep,
    gateway: GatewayDep,
    toggle: ToggleDep,
) -> AlternativeRoutesResult:
    t0 = time.perf_counter()
    with request_context(request_id=str(uuid.uuid4()), endpoint="/route/alternatives"):
        routes = await compute_alternative_routes(
            req.origin,
            req.destination,
            req.mode,
            count=req.count,
            provider=provider,
            gateway=gateway,
            use_real_provider=req.use_real_provider,
            toggle=toggle,
            seed=req.seed,
        )
        log_event(
            "alternative_routes_request",
            requested=req.count,
            returned=len(routes),
            duration_ms=round((time.perf_counter() - t0) * 1000, 2),
        )
    return AlternativeRoutesResult(routes=routes)


@app.post("/score", response_model=ScoreResponse)
async def score(req: ScoreRequest) -> ScoreResponse:
    route = [p.as_coord() for p in req.route]
    parts = score_breakdown(route, req.security_points, req.incidents, req.radius_m, now=req.now)
    value = clamp_score(DEFAULT_SCORING.baseline + sum(p.contribution for p in parts))
    return ScoreResponse(
        safety_score=value,
        safety_level=safety_level(value),
        contributions=[
            ScoreContribution(
                id=p.id,
                kind=p.kind,
                label=p.label,
                distance_m=p.distance_m,
                contribution=round(p.contribution, 4),
            )
            for p in parts
        ],
    )


@app.get("/provider/status", response_model=ProviderStatusResponse)
async def provider_status(provider: ProviderDep, toggle: ToggleDep, probe: bool = False) -> ProviderStatusResponse:
    reachable: bool | None = None
    if probe:
        check = getattr(provider, "check_status", None)
        reachable = bool(await check()) if check is not None else None
    return ProviderStatusResponse(enabled=toggle.is_enabled(), reachable=reachable)


@app.put("/provider/toggle", response_model=ProviderStatusResponse)
async def set_provider_toggle(req: ProviderToggleRequest, toggle: ToggleDep) -> ProviderStatusResponse:
    previous = toggle.set_enabled(req.enabled)
    log_event("provider_toggle_changed", previous=previous, enabled=req.enabled)
    return ProviderStatusResponse(enabled=req.enabled)
