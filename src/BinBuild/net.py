# === NAVMAP v1 ===
# {
#   "module": "BinBuild.net",
#   "purpose": "Provide a shared HTTPX client for remote source downloads",
#   "sections": [
#     {"id": "constants", "name": "Constants & globals", "anchor": "CONST", "kind": "constants"},
#     {"id": "helpers", "name": "Client construction helpers", "anchor": "HELP", "kind": "helpers"},
#     {"id": "api", "name": "Public API", "anchor": "API", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Shared HTTPX client used for remote binary downloads.

The client is created lazily on first use from :class:`BuildSettings` and
reused across threads.  Tests install their own client (typically backed by
``httpx.MockTransport``) through :func:`configure_http_client`.
"""

from __future__ import annotations

import logging
import ssl
import threading
from typing import Optional

import certifi
import httpx

from .settings import BuildSettings, get_settings

LOGGER = logging.getLogger("BinBuild.net")

# --- Constants & globals -------------------------------------------------------

_CLIENT_LOCK = threading.RLock()
_HTTP_CLIENT: Optional[httpx.Client] = None
_CLIENT_OWNED = False

# --- Client construction helpers ----------------------------------------------


def _build_ssl_context() -> ssl.SSLContext:
    context = ssl.create_default_context()
    context.load_verify_locations(certifi.where())
    return context


def _response_hook(response: httpx.Response) -> None:
    LOGGER.debug(
        "http-response",
        extra={
            "stage": "download",
            "url": str(response.request.url),
            "status": response.status_code,
        },
    )


def _create_http_client(settings: BuildSettings) -> httpx.Client:
    timeout = httpx.Timeout(settings.http_timeout_sec, connect=settings.http_connect_timeout_sec)
    return httpx.Client(
        timeout=timeout,
        follow_redirects=True,
        verify=_build_ssl_context(),
        headers={"User-Agent": settings.user_agent},
        event_hooks={"response": [_response_hook]},
    )


# --- Public API ---------------------------------------------------------------


def get_http_client() -> httpx.Client:
    """Return the shared client, creating it from settings on first use."""

    global _HTTP_CLIENT, _CLIENT_OWNED
    with _CLIENT_LOCK:
        if _HTTP_CLIENT is None:
            _HTTP_CLIENT = _create_http_client(get_settings())
            _CLIENT_OWNED = True
            LOGGER.debug("HTTP client initialized", extra={"stage": "download"})
        return _HTTP_CLIENT


def configure_http_client(client: httpx.Client) -> None:
    """Install ``client`` as the shared client; the caller keeps ownership."""

    global _HTTP_CLIENT, _CLIENT_OWNED
    with _CLIENT_LOCK:
        _close_owned_client()
        _HTTP_CLIENT = client
        _CLIENT_OWNED = False


def reset_http_client() -> None:
    """Drop the shared client so the next lookup builds a fresh one."""

    global _HTTP_CLIENT, _CLIENT_OWNED
    with _CLIENT_LOCK:
        _close_owned_client()
        _HTTP_CLIENT = None
        _CLIENT_OWNED = False


def close_http_client() -> None:
    """Close the shared client if this module created it; safe to call repeatedly."""

    reset_http_client()


def _close_owned_client() -> None:
    if _HTTP_CLIENT is not None and _CLIENT_OWNED:
        try:
            _HTTP_CLIENT.close()
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.debug(f"Error closing HTTP client: {exc}")
