"""Shared FastAPI dependencies.

Separated to avoid circular imports between route modules.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import httpx
from fastapi import Depends, Request

from config.settings import get_settings
from integrations.config_service import AccountConfigService
from telephony.relay_server import RelayServer


async def get_http_client() -> AsyncIterator[httpx.AsyncClient]:
    settings = get_settings()
    async with httpx.AsyncClient(timeout=settings.http_client_timeout_seconds) as client:
        yield client


async def get_janus_client() -> AsyncIterator[httpx.AsyncClient]:
    settings = get_settings()
    timeout = httpx.Timeout(settings.http_client_timeout_seconds, read=settings.janus_proxy_timeout_seconds)
    async with httpx.AsyncClient(timeout=timeout) as client:
        yield client


def get_account_config_service(
    client: httpx.AsyncClient = Depends(get_http_client),
) -> AccountConfigService | None:
    settings = get_settings()
    if not settings.config_service_url:
        return None
    return AccountConfigService(client, settings.config_service_url)


def get_relay_server(request: Request) -> RelayServer | None:
    return getattr(request.app.state, "relay_server", None)
