"""
Authentication Utilities
=======================

API key gate for the MCP endpoints.
"""

import hashlib
import hmac
from typing import Optional

from fastapi import HTTPException, Request

from mcp_sse_server.config.logging import get_logger
from mcp_sse_server.config.settings import Settings

logger = get_logger(__name__)


def get_api_key_hash(api_key: str) -> str:
    """
    Hash API key for logging and comparison.

    Args:
        api_key: API key to hash

    Returns:
        Hashed API key
    """
    return hashlib.sha256(api_key.encode()).hexdigest()


def extract_api_key(request: Request, header_name: str) -> Optional[str]:
    """
    Read the API key from the configured header.

    For ``Authorization`` both ``Bearer <key>`` and the bare key are accepted.
    """
    value = request.headers.get(header_name)
    if not value:
        return None
    if header_name.lower() == "authorization" and value.startswith("Bearer "):
        return value[len("Bearer "):] or None
    return value


async def validate_api_key(request: Request) -> Optional[str]:
    """
    Validate API key.

    Args:
        request: Incoming request; settings are read from the application state

    Returns:
        The API key if one was required and valid, otherwise None

    Raises:
        HTTPException: 500 if no key is configured, 401 if the key is missing or wrong
    """
    settings: Settings = request.app.state.settings

    if not settings.require_api_key:
        return None

    if not settings.api_key:
        logger.error("API key required but not configured")
        raise HTTPException(
            status_code=500, detail="Server configuration error: API key not configured"
        )

    api_key = extract_api_key(request, settings.api_key_header)
    if not api_key:
        raise HTTPException(
            status_code=401,
            detail=f"API key required in the {settings.api_key_header} header",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    if not hmac.compare_digest(api_key.encode(), settings.api_key.encode()):
        logger.warning("Invalid API key", api_key_hash=get_api_key_hash(api_key)[:12])
        raise HTTPException(
            status_code=401, detail="Invalid API key", headers={"WWW-Authenticate": "ApiKey"}
        )

    return api_key
