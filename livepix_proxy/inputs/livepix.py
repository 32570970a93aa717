"""
livepix.py – LivePix Input Adapter

Purpose
-------
Thin ``requests`` wrapper around the two LivePix endpoints the proxy relies
on: the OAuth2 *client-credentials* token exchange and the paginated
``/messages`` listing that carries donation records.  Each call is a single
stateless HTTP round trip; aggregation across pages lives in
:pymod:`livepix_proxy.pipeline`.

Design goals
------------
1. **Verbatim errors** – A non-success upstream response raises
   :class:`UpstreamError` carrying the upstream status code and decoded body
   so the HTTP layer can relay them unchanged to the browser.
2. **No hidden retries** – Transport failures (``requests.RequestException``)
   are left to the caller; nothing is retried or cached here.
3. **Injectable session** – Every helper accepts an optional
   ``requests.Session`` which makes the adapter trivial to fake in tests.

Example
-------
>>> from livepix_proxy.inputs.livepix import request_token, fetch_messages_page
>>> token = request_token("my-client-id", "my-client-secret")["access_token"]
>>> page = fetch_messages_page(token, page=1, limit=100)
>>> len(page)
100
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional
import os

import requests

from livepix_proxy import cloud_logging as logging

__all__ = [
    "DEFAULT_API_URL",
    "DEFAULT_OAUTH_URL",
    "UpstreamError",
    "fetch_messages_page",
    "page_fetcher",
    "request_token",
]

# ---------------------------------------------------------------------------
# Constants & configuration helpers
# ---------------------------------------------------------------------------
DEFAULT_OAUTH_URL = "https://oauth.livepix.gg/oauth2/token"
DEFAULT_API_URL = "https://api.livepix.gg/v2"
DEFAULT_SCOPE = "messages:read"
DEFAULT_TIMEOUT = 30.0


class UpstreamError(Exception):
    """LivePix answered with a non-success status.

    ``body`` is the decoded JSON error payload, or ``{"error": <text>}`` when
    the upstream did not send JSON.
    """

    def __init__(self, status_code: int, body: Any):
        super().__init__(f"LivePix responded with HTTP {status_code}")
        self.status_code = status_code
        self.body = body


def _oauth_url(override: Optional[str] = None) -> str:
    return override or os.getenv("LIVEPIX_OAUTH_URL", DEFAULT_OAUTH_URL)


def _api_url(override: Optional[str] = None) -> str:
    return (override or os.getenv("LIVEPIX_API_URL", DEFAULT_API_URL)).rstrip("/")


def _timeout(override: Optional[float] = None) -> float:
    if override is not None:
        return float(override)
    raw = os.getenv("LIVEPIX_TIMEOUT")
    return float(raw) if raw else DEFAULT_TIMEOUT


def _error_body(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {"error": response.text}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def request_token(
    client_id: str,
    client_secret: str,
    *,
    scope: str = DEFAULT_SCOPE,
    session: Optional[requests.Session] = None,
    oauth_url: Optional[str] = None,
    timeout: Optional[float] = None,
) -> Dict[str, Any]:
    """Exchange client credentials for an access token.

    Returns the upstream JSON payload unchanged (``access_token``,
    ``expires_in``, ``token_type``, ...).  Raises :class:`UpstreamError` when
    the OAuth server rejects the request.  ``oauth_url`` and ``timeout``
    default to ``LIVEPIX_OAUTH_URL`` / ``LIVEPIX_TIMEOUT``.
    """
    http = session or requests
    response = http.post(
        _oauth_url(oauth_url),
        data={
            "grant_type": "client_credentials",
            "client_id": client_id,
            "client_secret": client_secret,
            "scope": scope,
        },
        headers={"Content-Type": "application/x-www-form-urlencoded"},
        timeout=_timeout(timeout),
    )

    if not response.ok:
        body = _error_body(response)
        logging.log_text(f"LivePix OAuth error: {body}", severity="ERROR")
        raise UpstreamError(response.status_code, body)

    return response.json()


def fetch_messages_page(
    access_token: str,
    page: int,
    *,
    limit: int = 100,
    session: Optional[requests.Session] = None,
    api_url: Optional[str] = None,
    timeout: Optional[float] = None,
) -> List[Dict[str, Any]]:
    """Return the records on ``page`` (1-based) of the messages listing.

    A missing or ``null`` ``data`` member, or a body that is not a JSON
    object, is treated as an empty page.
    """
    http = session or requests
    response = http.get(
        f"{_api_url(api_url)}/messages",
        params={"limit": limit, "page": page},
        headers={
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        },
        timeout=_timeout(timeout),
    )

    if not response.ok:
        body = _error_body(response)
        logging.log_text(f"LivePix API error on page {page}: {body}", severity="ERROR")
        raise UpstreamError(response.status_code, body)

    body = response.json()
    if not isinstance(body, dict):
        logging.log_text(
            f"LivePix page {page} body is not an object ({type(body).__name__}), treating as empty",
            severity="WARNING",
        )
        return []
    return body.get("data") or []


def page_fetcher(
    access_token: str,
    *,
    limit: int = 100,
    session: Optional[requests.Session] = None,
    api_url: Optional[str] = None,
    timeout: Optional[float] = None,
) -> Callable[[int], List[Dict[str, Any]]]:
    """Bind ``access_token`` and the request settings into a ``page -> records`` callable."""

    def _fetch(page: int) -> List[Dict[str, Any]]:
        return fetch_messages_page(
            access_token,
            page,
            limit=limit,
            session=session,
            api_url=api_url,
            timeout=timeout,
        )

    return _fetch
