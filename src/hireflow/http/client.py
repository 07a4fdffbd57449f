"""Async HTTP client construction.

Centralizes connection pooling, timeouts and transport retries for the
engine client and the webhook relay.
"""

import logging
from dataclasses import dataclass, field

import httpx

logger = logging.getLogger(__name__)


@dataclass
class HTTPClientConfig:
    """Configuration for HTTP clients.

    Attributes:
        pool_connections: Keep-alive connections to hold open
        pool_maxsize: Maximum concurrent connections
        max_retries: Connection-level retries (requests never reached the server)
        timeout: Default timeout in seconds
        connect_timeout: Timeout for establishing a connection
        base_url: Optional base URL for relative request paths
        headers: Default headers sent with every request
    """

    pool_connections: int = 10
    pool_maxsize: int = 20
    max_retries: int = 2
    timeout: float = 10.0
    connect_timeout: float = 5.0
    base_url: str = ""
    headers: dict[str, str] = field(default_factory=dict)


def create_async_client(
    config: HTTPClientConfig | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create an httpx AsyncClient with connection pooling.

    The caller owns the client and must ``aclose()`` it.

    Args:
        config: Optional custom configuration
        transport: Optional transport override (e.g. ``httpx.MockTransport`` in tests)

    Returns:
        Configured httpx.AsyncClient
    """
    cfg = config or HTTPClientConfig()

    limits = httpx.Limits(
        max_keepalive_connections=cfg.pool_connections,
        max_connections=cfg.pool_maxsize,
        keepalive_expiry=30.0,
    )
    timeout = httpx.Timeout(cfg.timeout, connect=min(cfg.connect_timeout, cfg.timeout))

    if transport is None:
        # Only connect failures are retried, so non-idempotent POSTs stay safe
        transport = httpx.AsyncHTTPTransport(retries=cfg.max_retries)

    logger.debug(
        "Created async HTTP client (base_url=%s, timeout=%ss, max_connections=%d)",
        cfg.base_url or "-",
        cfg.timeout,
        cfg.pool_maxsize,
    )
    return httpx.AsyncClient(
        base_url=cfg.base_url,
        limits=limits,
        timeout=timeout,
        transport=transport,
        headers=cfg.headers,
    )
