"""HTTPX client factory for the policy management service.

One client is built per run and owned by the run context, so connection
pooling is shared by every worker while the lifetime stays explicit (no
process-wide singleton).

Key design:
- **TLS**: certificate verification against the certifi bundle, except for
  ``localhost``/``127.0.0.1`` where gateways ship self-signed certificates.
- **Timeouts**: the connect budget is the short probe timeout; uploads pass a
  per-request timeout on top.
- **Pooling**: bounded to the worker count so a run cannot flood the service.
- **Testing**: ``transport=`` accepts an ``httpx.MockTransport``.

Example:
    >>> from GuardrailPolicies.PolicyDeploy.settings import load_settings
    >>> client = create_http_client(load_settings())
    >>> client.close()
"""

from __future__ import annotations

import logging
import ssl
from typing import Optional

import certifi
import httpx

from ..settings import DeploySettings
from .policy import (
    FOLLOW_REDIRECTS,
    HTTP2_ENABLED,
    HTTP_POOL_TIMEOUT,
    HTTP_READ_TIMEOUT,
    HTTP_WRITE_TIMEOUT,
    KEEPALIVE_EXPIRY,
    USER_AGENT,
)

logger = logging.getLogger(__name__)


def create_ssl_context(verify: bool) -> ssl.SSLContext:
    """Create an SSL context, relaxing verification only when asked.

    Args:
        verify: ``False`` for self-signed local gateways.

    Returns:
        Configured ``ssl.SSLContext`` for use with HTTPX.
    """
    if not verify:
        ctx = ssl.create_default_context()
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
        logger.warning("TLS verification DISABLED for local gateway")
        return ctx

    ctx = ssl.create_default_context(cafile=certifi.where())
    ctx.check_hostname = True
    ctx.verify_mode = ssl.CERT_REQUIRED
    return ctx


def create_http_client(
    settings: DeploySettings,
    *,
    transport: Optional[httpx.BaseTransport] = None,
) -> httpx.Client:
    """Create the HTTPX client used for registration, token and upload calls."""

    limits = httpx.Limits(
        max_connections=settings.workers + 1,
        max_keepalive_connections=settings.workers,
        keepalive_expiry=KEEPALIVE_EXPIRY,
    )
    if transport is None:
        ssl_ctx = create_ssl_context(settings.verify_tls)
        transport = httpx.HTTPTransport(verify=ssl_ctx, http2=HTTP2_ENABLED, limits=limits)

    client = httpx.Client(
        base_url=settings.base_url,
        transport=transport,
        timeout=httpx.Timeout(
            connect=settings.probe_timeout,
            read=HTTP_READ_TIMEOUT,
            write=HTTP_WRITE_TIMEOUT,
            pool=HTTP_POOL_TIMEOUT,
        ),
        follow_redirects=FOLLOW_REDIRECTS,
        headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
    )

    logger.debug(
        "HTTPX client created",
        extra={"base_url": settings.base_url, "verify_tls": settings.verify_tls},
    )
    return client


__all__ = ["create_http_client", "create_ssl_context"]
