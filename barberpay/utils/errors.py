"""Error bodies returned by the operator and barber endpoints."""
from typing import Any


def error_response(code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    """``{"error": {"code", "message"[, "details"]}}``, used as ``HTTPException.detail``."""

    error: dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    return {"error": error}
