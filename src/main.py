"""Entry point for the WebSocket-SIP gateway (relay, Janus proxy, client config)."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from api.errors import GatewayError
from api.janus_routes import router as janus_router
from api.routes import router as api_router
from config.settings import get_settings
from telephony.relay_server import RelayConfig, RelayServer

LOGGER = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    relay: RelayServer | None = None
    if settings.sip_relay_enabled:
        relay = RelayServer(RelayConfig.from_settings(settings))
        await relay.start()
    app.state.relay_server = relay
    try:
        yield
    finally:
        if relay is not None:
            await relay.stop()


settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

app = FastAPI(
    title="WebSocket-SIP Gateway",
    description="Relays browser SIP-over-WebSocket to a UDP SIP server and proxies the Janus API.",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    LOGGER.info("%s %s", request.method, request.url.path)
    return await call_next(request)


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)


app.include_router(api_router, prefix="/api")
app.include_router(janus_router, prefix=settings.janus_proxy_path)

# Mounted last so API and proxy routes take precedence.
if settings.static_dir.is_dir():
    app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")


def run() -> None:
    import uvicorn

    uvicorn.run(app, host=settings.http_host, port=settings.http_port, log_level=settings.log_level.lower())
