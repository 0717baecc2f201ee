"""Generate-flashcards endpoint — HTTP surface of the ActionDispatcher."""

import json
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from cardgen.core.config import settings
from cardgen.core.rate_limit import limiter
from cardgen.gateway.dispatcher import ActionDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(tags=["generation"])

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}


def get_dispatcher(request: Request) -> ActionDispatcher:
    """Dispatcher built at startup (see main.lifespan)."""
    return request.app.state.dispatcher


@router.options("/generate-flashcards")
async def generate_flashcards_preflight() -> PlainTextResponse:
    return PlainTextResponse("ok", headers=CORS_HEADERS)


@router.post("/generate-flashcards")
@limiter.limit(settings.rate_limit)
async def generate_flashcards(request: Request) -> JSONResponse:
    """Run one generation action.

    Returns ``{"data": ...}`` on success and ``{"error": "..."}`` on failure.
    Validation failures keep status 200; callers must inspect the body.
    """
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return JSONResponse({"error": "Request body must be valid JSON"}, status_code=200, headers=CORS_HEADERS)

    result = await get_dispatcher(request).dispatch(payload)
    return JSONResponse(result.body, status_code=result.status_code, headers=CORS_HEADERS)
