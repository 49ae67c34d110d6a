"""JSON-over-HTTP helper with retry.

Only GETs are retried (``retries`` > 0); create/update/delete go out exactly
once so a slow store never receives duplicate mutations. Transport errors and
5xx responses are retryable; everything else is decoded immediately.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

import httpx

from expense_desk.core.errors import GatewayFailure, NotAuthenticated

logger = logging.getLogger("expense_desk.http")


def _decode(resp: httpx.Response) -> Dict[str, Any]:
    if resp.status_code in (401, 403):
        raise NotAuthenticated(f"HTTP {resp.status_code}: store rejected the session")

    content_type = resp.headers.get("content-type", "")
    body: Optional[Dict[str, Any]] = None
    if "application/json" in content_type:
        try:
            parsed = resp.json()
        except ValueError:
            parsed = None
        body = parsed if isinstance(parsed, dict) else None

    if resp.status_code >= 400:
        message = f"HTTP {resp.status_code}: {resp.reason_phrase}"
        errors = None
        if body is not None:
            message = body.get("message") or message
            errors = body.get("errors")
        raise GatewayFailure(message, errors=errors, status_code=resp.status_code)

    if body is None:
        raise GatewayFailure(
            f"Expected JSON but got {content_type or 'no content type'}. "
            f"Response: {resp.text[:200]}",
            status_code=resp.status_code,
        )
    return body


def request_json(
    client: httpx.Client,
    method: str,
    url: str,
    *,
    json: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    retries: int = 0,
    backoff: float = 0.5,
) -> Dict[str, Any]:
    last_err: Optional[Exception] = None
    for attempt in range(retries + 1):
        try:
            resp = client.request(method, url, json=json, headers=headers)
            return _decode(resp)
        except httpx.TransportError as e:
            last_err = e
        except GatewayFailure as e:
            if e.status_code is None or e.status_code < 500:
                raise
            last_err = e
        if attempt == retries:
            break
        logger.warning("retrying %s %s after error: %s", method, url, last_err)
        time.sleep(backoff * (2**attempt))
    if isinstance(last_err, GatewayFailure):
        raise last_err
    raise GatewayFailure(f"Network error while calling {method} {url}: {last_err}")
