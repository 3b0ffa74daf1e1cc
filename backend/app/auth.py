from __future__ import annotations

import hmac
import logging

from fastapi import Request

from .config import Settings
from .errors import AuthenticationError, ConfigurationError

logger = logging.getLogger(__name__)

BEARER_HINT = "Use: Authorization: Bearer <token>"


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def verify_bearer_token(authorization: str | None, expected_token: str | None) -> None:
    """Raise unless ``authorization`` carries the configured bearer token."""
    if not authorization:
        raise AuthenticationError(f"Authorization header is required. {BEARER_HINT}")

    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer":
        raise AuthenticationError(f"Invalid authorization format. {BEARER_HINT}")

    if not expected_token:
        logger.error("API_TOKEN is not set in environment variables")
        raise ConfigurationError("API token is not configured on server")

    if not hmac.compare_digest(parts[1].encode("utf-8"), expected_token.encode("utf-8")):
        raise AuthenticationError("Invalid API token")


def require_api_token(request: Request) -> None:
    settings = get_app_settings(request)
    verify_bearer_token(request.headers.get("authorization"), settings.api_token)
