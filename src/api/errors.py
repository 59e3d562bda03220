"""HTTP-facing exceptions for the gateway routes.

Each carries its own status code; ``main`` registers a handler that turns
them into JSON error responses.
"""

from __future__ import annotations


class GatewayError(Exception):
    status_code: int = 500
    default_detail: str = "Gateway error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.default_detail)
        self.detail = detail or self.default_detail


class InvalidTokenError(GatewayError):
    status_code = 401
    default_detail = "Missing or invalid bearer token."


class AccountNotFoundError(GatewayError):
    status_code = 404
    default_detail = "Account not found."


class ConfigServiceError(GatewayError):
    status_code = 502
    default_detail = "Configuration service unavailable."
