"""FastAPI application exposing the push webhook and the session exchange."""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.audit.logger import AuditLogger
from src.config import Settings
from src.errors import ConfigurationError, PushGatewayError
from src.push.dispatcher import PushDispatcher
from src.session.exchange import SessionExchanger, extract_id_token
from src.webhook.ingress import parse_inbound_event

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}
_ALL_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD"]

PUSH_PATHS = ("/functions/send-chat-push", "/webhook/chat-message")
SESSION_PATH = "/functions/exchange-firebase-token"


def create_app_from_env() -> FastAPI:
    """Factory for uvicorn --factory: reads config from environment variables."""
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    return create_app(settings, AuditLogger.from_settings(settings))


def create_app(
    settings: Settings,
    audit_logger: AuditLogger | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Create the app. ``transport`` replaces the network for outbound calls."""
    app = FastAPI(docs_url=None, redoc_url=None)
    dispatcher = PushDispatcher(settings, audit_logger=audit_logger, transport=transport)
    exchanger = SessionExchanger(settings, audit_logger=audit_logger)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> Response:
        # Unlisted verbs and unknown paths
        message = "Method not allowed" if exc.status_code == 405 else str(exc.detail)
        return JSONResponse({"error": message}, status_code=exc.status_code, headers=exc.headers)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    async def send_chat_push(request: Request) -> Response:
        early = _method_guard(request)
        if early is not None:
            return early

        async def run() -> Response:
            event = parse_inbound_event(await request.body())
            outcome = await dispatcher.dispatch(event)
            return JSONResponse(outcome.to_response(), status_code=200)

        return await _guarded(run, "send-chat-push")

    for path in PUSH_PATHS:
        app.add_api_route(path, send_chat_push, methods=_ALL_METHODS)

    @app.api_route(SESSION_PATH, methods=_ALL_METHODS)
    async def exchange_firebase_token(request: Request) -> Response:
        early = _method_guard(request)
        if early is not None:
            return early

        async def run() -> Response:
            authorization = request.headers.get("authorization")
            body: object = None
            if not (authorization and authorization.startswith("Bearer ")):
                try:
                    body = json.loads(await request.body())
                except (json.JSONDecodeError, UnicodeDecodeError):
                    body = None
            session = exchanger.exchange(extract_id_token(authorization, body))
            return JSONResponse(
                session.to_response(),
                status_code=200,
                headers={"Access-Control-Allow-Origin": "*"},
            )

        return await _guarded(run, "exchange-firebase-token")

    return app


def _method_guard(request: Request) -> Response | None:
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=CORS_HEADERS)
    if request.method != "POST":
        return JSONResponse({"error": "Method not allowed"}, status_code=405)
    return None


async def _guarded(run: Callable[[], Awaitable[Response]], name: str) -> Response:
    """Convert every failure into a JSON error response."""
    try:
        return await run()
    except ConfigurationError as exc:
        logger.error("[%s] %s (missing: %s)", name, exc.message, ", ".join(exc.missing))
        return JSONResponse({"error": exc.message}, status_code=exc.status_code)
    except PushGatewayError as exc:
        if exc.status_code >= 500:
            logger.error("[%s] %s", name, exc.message)
        return JSONResponse({"error": exc.message}, status_code=exc.status_code)
    except Exception as exc:
        logger.exception("[%s] error", name)
        return JSONResponse({"error": str(exc)}, status_code=500)
