"""
Token Casino main application entry point.
FastAPI service exposing the games, the token ledger and a live crash feed.
"""

from contextlib import asynccontextmanager

import orjson as json
import uvicorn
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware

from tokencasino.config import settings
from tokencasino.core.auth import SESSION_COOKIE, CookieAuthContext
from tokencasino.core.casino import Casino
from tokencasino.core.exceptions import CasinoError
from tokencasino.core.logger import get_logger, init_logging
from tokencasino.core.models import GameType
from tokencasino.core.scheduler import SettlementScheduler
from tokencasino.core.websocket import CrashRunner, crash_frame, ws_manager
from tokencasino.routers import api

# Initialize logging first
init_logging(
    level=settings.logging.level,
    log_to_file=settings.logging.log_to_file,
    formatter=settings.logging.formatter,
    log_file_path=settings.paths.get_log_path(),
)
logger = get_logger("main")
ws_logger = get_logger("websocket")


# ==================== Security Headers Middleware ====================


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"

        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"

        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        # API only; allow the crash feed websocket
        response.headers["Content-Security-Policy"] = (
            "default-src 'none'; connect-src 'self' ws: wss:; frame-ancestors 'none'"
        )

        return response


# ==================== UVLoop Integration =====================

try:
    import uvloop

    uvloop.install()
    logger.info("uvloop installed and enabled.")
except ImportError:
    logger.info("uvloop not found, using default asyncio event loop.")


# ==================== Error Handlers ====================


async def casino_error_handler(request: Request, exc: CasinoError):
    if exc.status_code >= 500:
        logger.error(f"{exc.category}: {exc.message}", extra={"path": request.url.path})
    else:
        logger.debug(f"{exc.category}: {exc.message}", extra={"path": request.url.path})
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def global_exception_handler(request: Request, exc: Exception):
    """Handle unhandled exceptions gracefully."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal",
            "detail": str(exc) if settings.server.debug else None,
        },
    )


# ==================== Application Setup ====================


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler = SettlementScheduler(app.state.casino.ledger, app.state.casino.registry)
    scheduler.start()
    app.state.scheduler = scheduler
    try:
        yield
    finally:
        await app.state.crash_runner.shutdown()
        scheduler.shutdown()


def create_app(casino: Casino = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.server.name,
        docs_url="/docs" if settings.server.debug else None,
        redoc_url=None,
        lifespan=lifespan,
    )

    app.state.casino = casino or Casino.from_database()
    app.state.crash_runner = CrashRunner(ws_manager)

    # Add slowapi rate limiter
    app.state.limiter = api.limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(CasinoError, casino_error_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    # Add security headers middleware
    app.add_middleware(SecurityHeadersMiddleware)

    # CORS middleware (for development)
    if settings.server.debug:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(api.router, prefix="/api")
    app.add_api_websocket_route("/ws/crash/{round_id}", crash_feed)

    logger.info(f"Application '{settings.server.name}' initialized")
    return app


# ==================== WebSocket Endpoint ====================


async def crash_feed(websocket: WebSocket, round_id: str):
    """
    Live feed of one crash round: tick, crashed and cashed_out frames.
    Only the round's owner may watch it.
    """
    casino: Casino = websocket.app.state.casino
    ctx = await CookieAuthContext.from_cookie(websocket.cookies.get(SESSION_COOKIE))
    user_id = ctx.current_user_id()
    client_ip = websocket.client.host if websocket.client else None

    if not user_id:
        ws_logger.warning(
            "WebSocket connection denied due to invalid auth",
            extra={"client_ip": client_ip},
        )
        await websocket.accept()
        await websocket.send_bytes(json.dumps({"type": "error", "message": "Authentication failed"}))
        await websocket.close()
        return

    try:
        game_round = casino.get_round(round_id, user_id, GameType.CRASH)
    except CasinoError as e:
        await websocket.accept()
        await websocket.send_bytes(json.dumps({"type": "error", "message": e.message}))
        await websocket.close()
        return

    await ws_manager.connect(websocket, round_id)
    try:
        await ws_manager.send(websocket, crash_frame(game_round))
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                continue
            if isinstance(message, dict) and message.get("type") == "ping":
                await ws_manager.send(websocket, {"type": "pong"})
    except WebSocketDisconnect as e:
        ws_logger.info(
            "WebSocket disconnected",
            extra={"user_id": user_id, "round_id": round_id, "ws_disconnect_code": e.code},
        )
    finally:
        ws_manager.disconnect(websocket, round_id)


def run():
    logger.info(f"Starting server on {settings.server.host}:{settings.server.port}")
    uvicorn.run(
        "tokencasino.main:create_app",
        factory=True,
        host=settings.server.host,
        port=settings.server.port,
        reload=settings.server.debug,
    )


if __name__ == "__main__":
    run()
