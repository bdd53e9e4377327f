"""Shared HTTP client for requests proxied into sandbox containers."""

import httpx

from mcp_sandbox.config import get_settings
from mcp_sandbox.utils import get_logger

logger = get_logger(__name__)

_http_client: httpx.AsyncClient | None = None


def get_http_client() -> httpx.AsyncClient:
    """
    Get global HTTP client instance.

    Returns:
        httpx.AsyncClient with the configured transport timeout
    """
    global _http_client
    if _http_client is None or _http_client.is_closed:
        settings = get_settings()
        _http_client = httpx.AsyncClient(timeout=httpx.Timeout(settings.request_timeout_s))
        logger.debug("HTTP client created", extra={"timeout_s": settings.request_timeout_s})
    return _http_client


async def close_http_client() -> None:
    """Close global HTTP client, if one was opened."""
    global _http_client
    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None
        logger.info("HTTP client closed")
