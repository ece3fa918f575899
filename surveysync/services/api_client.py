"""HTTP client for the survey backend."""
import re
from typing import Optional, Tuple

import httpx

from surveysync.core.config import settings

_ABSOLUTE_URL_RE = re.compile(r"^https?://", re.IGNORECASE)


def create_api_client(
    base_url: Optional[str] = None,
    token: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """
    Build the shared async client.

    ``transport`` lets tests route requests to an in-process backend.
    """
    client = httpx.AsyncClient(
        base_url=(base_url or settings.api_base_url).rstrip("/"),
        timeout=settings.HTTP_TIMEOUT_SECONDS,
        transport=transport,
    )
    set_auth_token(client, token if token is not None else settings.API_TOKEN)
    return client


def set_auth_token(client: httpx.AsyncClient, token: Optional[str]) -> None:
    """Attach (or clear) the bearer token after login/logout."""
    if token:
        client.headers["Authorization"] = f"Bearer {token}"
    else:
        client.headers.pop("Authorization", None)


def to_absolute_url(url: str, base_url: str) -> str:
    """Resolve a server-relative URL such as ``/uploads/x.jpg`` against the API base."""
    if not url:
        return ""
    if _ABSOLUTE_URL_RE.match(url):
        return url
    path = url if url.startswith("/") else f"/{url}"
    return f"{base_url.rstrip('/')}{path}"


def parse_error_envelope(response: httpx.Response) -> Tuple[Optional[str], str, bool]:
    """
    Extract ``(code, message, retriable)`` from a failed backend response.

    Understands ``{"code", "message", "retriable"}`` and ``{"error": ...}``
    bodies; anything else falls back to the status line.
    """
    code = None
    message = f"HTTP {response.status_code}"
    retriable = response.status_code in {408, 409, 425, 429} or response.status_code >= 500
    try:
        body = response.json()
    except ValueError:
        return code, message, retriable

    if isinstance(body, dict):
        code = body.get("code") or code
        message = str(body.get("message") or body.get("error") or body.get("detail") or message)
        if body.get("retriable") is not None:
            retriable = bool(body["retriable"])
    return code, message, retriable
