from __future__ import annotations

from typing import Any, Dict, List, Optional

from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from ..domain.models import ExtractionRequest, PlanTier
from ..extraction.scoring import interpret_confidence
from ..logging import get_logger
from ..orchestrator.fallback import FallbackOrchestrator


LOG = get_logger("api-app")

MAX_IMAGES = 10


def _parse_request(body: Any) -> ExtractionRequest:
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Body must be a JSON object")
    images = body.get("images")
    if not isinstance(images, list):
        raise HTTPException(status_code=400, detail="'images' must be a list of base64 strings")
    if len(images) > MAX_IMAGES:
        raise HTTPException(status_code=400, detail=f"At most {MAX_IMAGES} images per request")
    user_id = body.get("userId")
    hint = body.get("hint")
    if hint is not None and not isinstance(hint, str):
        raise HTTPException(status_code=400, detail="'hint' must be a string")
    try:
        return ExtractionRequest(images=images, user_id=user_id, hint=hint)
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def create_app(
    orchestrator: FallbackOrchestrator,
    *,
    allow_origins: Optional[List[str]] = None,
) -> Starlette:
    """Create a Starlette app exposing extraction and routing introspection."""

    async def health(_: Request) -> JSONResponse:
        return JSONResponse({"status": "ok", "tiers": [t.value for t in PlanTier]})

    async def extract(request: Request) -> JSONResponse:
        try:
            body = await request.json()
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="Body is not valid JSON") from exc
        extraction_request = _parse_request(body)
        report = await orchestrator.run(extraction_request)
        payload: Dict[str, Any] = report.metadata.to_response()
        reading = interpret_confidence(report.metadata.confidence)
        payload["provider"] = report.winning_provider
        payload["tier"] = report.tier.value
        payload["confidenceLevel"] = reading.level
        payload["recommendation"] = reading.recommendation
        LOG.info(f"Extract via {report.winning_provider or 'none'} tier={report.tier.value} degraded={report.degraded}")
        return JSONResponse(payload)

    async def plan_providers(request: Request) -> JSONResponse:
        raw = request.path_params["tier"]
        try:
            tier = PlanTier.parse(raw)
        except ValueError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        chain = orchestrator.router.route_for(tier)
        return JSONResponse({"tier": tier.value, "providers": [p.as_dict() for p in chain]})

    routes = [
        Route("/api/health", health, methods=["GET"]),
        Route("/api/extract", extract, methods=["POST"]),
        Route("/api/plans/{tier:str}/providers", plan_providers, methods=["GET"]),
    ]

    app = Starlette(debug=False, routes=routes)

    origins = allow_origins or ["http://localhost:3000", "http://127.0.0.1:3000"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if "*" in origins else origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app
