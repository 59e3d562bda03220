"""Client for the remote account configuration service."""

from __future__ import annotations

import base64
import json
import logging
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from api.errors import AccountNotFoundError, ConfigServiceError, InvalidTokenError
from api.schemas import AccountSettings

LOGGER = logging.getLogger(__name__)


def parse_bearer(authorization: str | None) -> str:
    if not authorization:
        raise InvalidTokenError()
    scheme, _, token = authorization.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise InvalidTokenError()
    return token


def decode_account_id(token: str) -> str:
    """Read the account identifier from a JWT-shaped bearer token.

    The signature is not checked here; the configuration service validates the
    token it is handed. Only the payload's ``sub`` (or ``account_id``) claim is
    used to pick the account.
    """

    parts = token.split(".")
    if len(parts) != 3 or not parts[1]:
        raise InvalidTokenError("Bearer token is not a JWT.")

    segment = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(segment))
    except ValueError as exc:
        raise InvalidTokenError("Bearer token payload is not valid JSON.") from exc

    if not isinstance(claims, dict):
        raise InvalidTokenError("Bearer token payload is not an object.")

    account_id = claims.get("sub") or claims.get("account_id")
    if isinstance(account_id, int) and not isinstance(account_id, bool):
        account_id = str(account_id)
    if not isinstance(account_id, str) or not account_id.strip():
        raise InvalidTokenError("Bearer token has no account identifier.")
    return account_id.strip()


class AccountConfigService:
    """Fetches SIP account settings for the browser client."""

    def __init__(self, client: httpx.AsyncClient, base_url: str) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")

    async def fetch_account_settings(self, account_id: str, token: str) -> AccountSettings:
        url = f"{self._base_url}/accounts/{quote(account_id, safe='')}/settings"
        try:
            response = await self._client.get(url, headers={"Authorization": f"Bearer {token}"})
        except httpx.HTTPError as exc:
            LOGGER.error("Config service request failed: %s", exc)
            raise ConfigServiceError() from exc

        if response.status_code == 404:
            raise AccountNotFoundError()
        if response.status_code in (401, 403):
            raise InvalidTokenError()
        try:
            response.raise_for_status()
        except httpx.HTTPError as exc:
            LOGGER.error("Config service returned an error: %s", exc)
            raise ConfigServiceError() from exc

        try:
            return AccountSettings.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            LOGGER.error("Config service returned an unexpected payload for account %s", account_id)
            raise ConfigServiceError() from exc
