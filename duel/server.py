"""Starlette HTTP surface: /api/start, /api/conversation, /api/reset."""

import json
import logging

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from duel.models import TurnOutcome
from duel.orchestrator import DebateOrchestrator
from duel.providers.base import ProviderError

logger = logging.getLogger(__name__)

RESET_MESSAGE = "Conversation history has been reset."


class BadRequest(Exception):
    """Request body failed validation."""


async def _json_body(request: Request) -> dict:
    if not await request.body():
        return {}
    try:
        body = await request.json()
    except json.JSONDecodeError as exc:
        raise BadRequest(f"Invalid JSON body: {exc.msg}") from exc
    if not isinstance(body, dict):
        raise BadRequest("Request body must be a JSON object")
    return body


def _required_text(body: dict, field: str) -> str:
    value = body.get(field)
    if not isinstance(value, str) or not value.strip():
        raise BadRequest(f"'{field}' must be a non-empty string")
    return value


def _turn_payload(outcome: TurnOutcome) -> dict[str, str]:
    return {"speaker": outcome.label, "response": outcome.response, "next": outcome.next}


def _orchestrator(request: Request) -> DebateOrchestrator:
    return request.app.state.orchestrator


async def start(request: Request) -> JSONResponse:
    try:
        topic = _required_text(await _json_body(request), "topic")
    except BadRequest as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)

    try:
        outcome = await _orchestrator(request).start(topic)
    except ProviderError as exc:
        logger.warning("Start failed: %s", exc)
        return JSONResponse({"error": str(exc)}, status_code=500)
    return JSONResponse(_turn_payload(outcome))


async def conversation(request: Request) -> JSONResponse:
    orchestrator = _orchestrator(request)
    try:
        body = await _json_body(request)
        message = _required_text(body, "message")
        current = body.get("current")
        valid = [p.key for p in orchestrator.participants]
        if current not in valid:
            raise BadRequest(f"'current' must be one of: {', '.join(valid)}")
    except BadRequest as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)

    try:
        outcome = await orchestrator.respond(current, message)
    except ProviderError as exc:
        logger.warning("Turn for %s failed: %s", current, exc)
        return JSONResponse({"error": str(exc)}, status_code=500)
    return JSONResponse(_turn_payload(outcome))


async def reset(request: Request) -> JSONResponse:
    _orchestrator(request).reset()
    return JSONResponse({"success": True, "message": RESET_MESSAGE})


async def health(request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok"})


async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse({"error": str(exc)}, status_code=500)


def create_app(orchestrator: DebateOrchestrator, allowed_origin: str) -> Starlette:
    """Build the ASGI app around one orchestrator."""
    app = Starlette(
        routes=[
            Route("/api/start", start, methods=["POST"]),
            Route("/api/conversation", conversation, methods=["POST"]),
            Route("/api/reset", reset, methods=["POST"]),
            Route("/health", health, methods=["GET"]),
        ],
        middleware=[
            Middleware(
                CORSMiddleware,
                allow_origins=[allowed_origin],
                allow_methods=["GET", "POST", "OPTIONS"],
                allow_headers=["*"],
            )
        ],
        exception_handlers={Exception: _unhandled},
    )
    app.state.orchestrator = orchestrator
    return app
