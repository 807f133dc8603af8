"""API endpoints for budget optimization."""

import asyncio
import logging
from typing import Any, Optional, Union

import httpx
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, StrictFloat, StrictInt, StrictStr
from pydantic import ValidationError as PydanticValidationError

from stakesplit.config import settings
from stakesplit.optimizer import ValidationError, parse_request, solve
from stakesplit.strategies import STRATEGIES

logger = logging.getLogger(__name__)
router = APIRouter()

Number = Union[StrictInt, StrictFloat]


class CandidateIn(BaseModel):
    """One outcome as sent by the client."""

    name: Optional[StrictStr] = None
    p: Optional[Number] = None
    m: Optional[Union[StrictStr, Number]] = None  # decimal text preferred


class OptimizeBody(BaseModel):
    """Request body. Types only; ranges are checked by the optimizer."""

    budget: Optional[Number] = None
    candidates: Optional[list[CandidateIn]] = None
    rounding: Optional[StrictStr] = None
    mode: Optional[StrictStr] = None
    params: Optional[dict[str, Any]] = None


def _error(notes: list[str], status_code: int = 400) -> JSONResponse:
    return JSONResponse({"status": "error", "notes": notes}, status_code=status_code)


def _body_notes(exc: PydanticValidationError) -> list[str]:
    """Field-level messages from a body validation failure."""
    notes = []
    for err in exc.errors():
        if err["type"] == "json_invalid":
            return ["Invalid JSON payload."]
        if err["type"] == "model_type" and not err["loc"]:
            return ["Invalid request payload."]
        location = ".".join(str(part) for part in err["loc"])
        notes.append(f"{location}: {err['msg']}")
    return notes


async def _proxy(raw: bytes) -> Response:
    """Forward the body to the configured optimizer backend and relay its answer."""
    url = f"{settings.backend_base_url.rstrip('/')}/api/optimize"
    try:
        async with httpx.AsyncClient(timeout=settings.proxy_timeout_seconds) as client:
            resp = await client.post(url, content=raw, headers={"Content-Type": "application/json"})
    except httpx.HTTPError as e:
        logger.error(f"Optimize proxy failed: {e}")
        return _error(["Unable to reach optimization backend."], status_code=502)

    return Response(
        content=resp.content,
        status_code=resp.status_code,
        media_type=resp.headers.get("content-type", "application/json"),
    )


@router.post("/optimize")
async def optimize(request: Request):
    """Split the budget across candidates for the requested mode.

    Returns 200 for both ``ok`` and ``infeasible`` results; malformed input
    gets 400 with field-level notes.
    """
    raw = await request.body()
    if settings.backend_base_url:
        return await _proxy(raw)

    try:
        body = OptimizeBody.model_validate_json(raw)
    except PydanticValidationError as e:
        return _error(_body_notes(e))

    try:
        parsed = parse_request(body.model_dump())
    except ValidationError as e:
        logger.info(f"Rejected optimize request: {e}")
        return _error(e.notes)

    try:
        outcome = await asyncio.wait_for(
            asyncio.to_thread(solve, parsed),
            timeout=settings.solve_timeout_seconds,
        )
    except asyncio.TimeoutError:
        logger.error(
            f"Solve timed out after {settings.solve_timeout_seconds}s "
            f"({parsed.mode}, n={len(parsed.candidates)}, budget={parsed.budget})"
        )
        return _error(["Optimization timed out. Try a smaller budget or fewer candidates."], status_code=503)

    return outcome.to_dict()


@router.get("/strategies")
async def list_strategies():
    """Strategy catalogue for mode pickers."""
    return [strategy.to_dict() for strategy in STRATEGIES]
