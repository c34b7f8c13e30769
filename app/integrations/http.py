"""
Shared HTTP plumbing for platform adapters.

``request_json`` wraps one outbound call and folds every failure into an
``Err`` so adapters can stay free of try/except ladders. Status mapping:

- 401 / 403                    -> auth_failure
- 429                          -> rate_limited
- 408, 5xx, network, timeouts  -> unreachable
- other non-2xx, bad JSON      -> malformed_response
"""

import logging
from typing import Any, Dict, Optional, Tuple

import httpx

from app.core.config import get_settings
from app.integrations.results import AdapterErrorKind, AdapterResult, Err, Ok

logger = logging.getLogger(__name__)

# Characters of a response body kept in error messages
_BODY_PREVIEW = 200


def build_client(timeout: float) -> httpx.AsyncClient:
    """One short-lived client per call; adapters hold no session state."""
    return httpx.AsyncClient(timeout=timeout)


def _mask_headers(headers: Optional[Dict[str, str]]) -> Dict[str, str]:
    masked = dict(headers or {})
    for key in list(masked):
        if key.lower() in ("authorization", "x-api-key", "x-api-secret"):
            masked[key] = "[REDACTED]"
    return masked


async def request_json(
    method: str,
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    params: Optional[Dict[str, Any]] = None,
    json_body: Optional[Dict[str, Any]] = None,
    auth: Optional[Tuple[str, str]] = None,
    timeout: Optional[float] = None,
) -> AdapterResult[Any]:
    """
    Make a request to a platform API.

    Returns:
        Ok(decoded JSON, or None for empty bodies) or Err(kind, message)
    """
    if timeout is None:
        timeout = get_settings().ADAPTER_TIMEOUT_SECONDS

    logger.debug(f"Making {method} request to {url}")
    logger.debug(f"Headers: {_mask_headers(headers)}")
    if params:
        logger.debug(f"Params: {params}")

    try:
        async with build_client(timeout) as client:
            response = await client.request(
                method=method,
                url=url,
                headers=headers,
                params=params,
                json=json_body,
                auth=auth,
            )
    except httpx.TimeoutException as e:
        logger.warning(f"Timeout calling {url}: {e}")
        return Err(AdapterErrorKind.UNREACHABLE, f"Request timed out: {e}")
    except httpx.RequestError as e:
        logger.warning(f"Network error calling {url}: {e}")
        return Err(AdapterErrorKind.UNREACHABLE, f"Network error: {e}")

    status = response.status_code
    if status in (401, 403):
        return Err(AdapterErrorKind.AUTH_FAILURE, f"Platform rejected credentials (HTTP {status})")
    if status == 429:
        retry_after = response.headers.get("Retry-After")
        message = "Rate limited by platform"
        if retry_after:
            message += f" (retry after {retry_after}s)"
        return Err(AdapterErrorKind.RATE_LIMITED, message)
    if status == 408 or status >= 500:
        return Err(AdapterErrorKind.UNREACHABLE, f"Platform unavailable (HTTP {status})")
    if status < 200 or status >= 300:
        return Err(
            AdapterErrorKind.MALFORMED_RESPONSE,
            f"Unexpected HTTP {status}: {response.text[:_BODY_PREVIEW]}",
        )

    if status == 204 or not response.content:
        return Ok(None)

    try:
        return Ok(response.json())
    except ValueError as e:
        return Err(AdapterErrorKind.MALFORMED_RESPONSE, f"Response is not valid JSON: {e}")
