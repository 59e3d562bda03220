"""Reverse proxy for the Janus WebRTC gateway REST API.

Janus sessions are opaque here: requests are forwarded as-is (including the
long-polling GETs) and the upstream status and body are returned verbatim.
The JSON is only looked at for logging.
"""

from __future__ import annotations

import json
import logging

import httpx
from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from api.dependencies import get_janus_client
from config.settings import get_settings

LOGGER = logging.getLogger(__name__)

router = APIRouter(tags=["janus"])


def _target_url(path: str, query: str) -> str:
    settings = get_settings()
    url = f"{settings.janus_api_url.rstrip('/')}/janus"
    path = path.strip("/")
    if path:
        url = f"{url}/{path}"
    if query:
        url = f"{url}?{query}"
    return url


def _summarize(raw: bytes, limit: int) -> str:
    text = raw.decode("utf-8", errors="replace")
    try:
        payload = json.loads(text)
    except ValueError:
        payload = None

    if isinstance(payload, dict) and "janus" in payload:
        fields = [f"janus={payload['janus']}"]
        for key in ("transaction", "session_id", "sender"):
            if key in payload:
                fields.append(f"{key}={payload[key]}")
        return " ".join(fields) + f" | {text[:limit]}"
    return text[:limit]


async def _forward(request: Request, path: str, client: httpx.AsyncClient) -> Response:
    target = _target_url(path, request.url.query)
    LOGGER.info("[Janus Proxy] %s %s -> %s", request.method, request.url.path, target)

    body: bytes | None = None
    if request.method == "POST":
        body = await request.body()
        LOGGER.info("[Janus Proxy] Request body: %s", _summarize(body, 100))

    try:
        upstream = await client.request(
            request.method,
            target,
            content=body,
            headers={"Content-Type": "application/json"},
        )
    except httpx.HTTPError as exc:
        LOGGER.error("[Janus Proxy] Error: %s", exc)
        return JSONResponse(status_code=500, content={"error": str(exc) or type(exc).__name__})

    LOGGER.info("[Janus Proxy] Response %s: %s", upstream.status_code, _summarize(upstream.content, 200))
    return Response(
        content=upstream.content,
        status_code=upstream.status_code,
        media_type="application/json",
    )


@router.api_route("", methods=["GET", "POST"])
async def janus_root(
    request: Request,
    client: httpx.AsyncClient = Depends(get_janus_client),
) -> Response:
    return await _forward(request, "", client)


@router.api_route("/{path:path}", methods=["GET", "POST"])
async def janus_session(
    path: str,
    request: Request,
    client: httpx.AsyncClient = Depends(get_janus_client),
) -> Response:
    return await _forward(request, path, client)
