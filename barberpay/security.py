"""Operator authentication for administrative payment endpoints."""
from __future__ import annotations

import hmac

from fastapi import Depends, Header, HTTPException, status

from barberpay.config import Settings, get_settings
from barberpay.utils.errors import error_response


def _extract_key(
    authorization: str | None = Header(default=None),
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> str | None:
    """Read the key from ``X-API-Key`` or ``Authorization: Bearer``."""
    if x_api_key:
        return x_api_key.strip()
    if authorization and authorization.startswith("Bearer "):
        return authorization.split(" ", 1)[1].strip()
    return None


def require_operator_key(
    key: str | None = Depends(_extract_key),
    settings: Settings = Depends(get_settings),
) -> str:
    expected = settings.OPERATOR_API_KEY
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=error_response("OPERATOR_KEY_NOT_CONFIGURED", "Operator access is not configured."),
        )
    if not key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_response("NO_API_KEY", "API key required."),
        )
    if not hmac.compare_digest(key.encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_response("UNAUTHORIZED", "Invalid or expired API key."),
        )
    return key


__all__ = ["require_operator_key"]
