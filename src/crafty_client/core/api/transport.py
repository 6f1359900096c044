"""HTTP transport bound to a panel base URL."""

from __future__ import annotations

import logging
import ssl

import httpx

from ..errors import InvalidUrlError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
_ALLOWED_SCHEMES = {"http", "https"}


def normalize_base_url(base_url: str) -> str:
    """Return the base URL with a scheme and exactly one trailing slash.

    A missing scheme defaults to https.
    """
    raw = (base_url or "").strip()
    if not raw:
        raise InvalidUrlError("Base URL must not be empty")
    if "://" not in raw:
        raw = f"https://{raw}"

    try:
        url = httpx.URL(raw)
    except (httpx.InvalidURL, ValueError) as e:
        raise InvalidUrlError(f"Invalid base URL: {base_url!r}") from e

    if url.scheme not in _ALLOWED_SCHEMES:
        raise InvalidUrlError(f"Unsupported URL scheme: {url.scheme!r}")
    if not url.host:
        raise InvalidUrlError(f"Base URL has no host: {base_url!r}")

    path = url.path.rstrip("/") + "/"
    return str(url.copy_with(path=path))


def _verify_setting(insecure_skip_verify: bool, ca_bundle: str | None) -> ssl.SSLContext | bool:
    # A pinned CA bundle wins over skipping verification.
    if ca_bundle:
        return ssl.create_default_context(cafile=ca_bundle)
    return not insecure_skip_verify


def create_client(
    base_url: str,
    *,
    insecure_skip_verify: bool = True,
    timeout: float = DEFAULT_TIMEOUT,
    ca_bundle: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Build an async HTTP client for the panel. No retries at this layer."""
    normalized = normalize_base_url(base_url)
    verify = _verify_setting(insecure_skip_verify, ca_bundle)
    if verify is False:
        logger.debug("TLS certificate verification disabled for %s", normalized)

    return httpx.AsyncClient(
        base_url=normalized,
        headers={"Accept": "application/json"},
        timeout=httpx.Timeout(timeout),
        verify=verify,
        transport=transport,
    )
