"""HTTP client module with connection pooling.

Usage:
    from hireflow.http import HTTPClientConfig, create_async_client

    client = create_async_client(HTTPClientConfig(base_url="https://engine/api/v1"))
    try:
        response = await client.get("/workflows")
    finally:
        await client.aclose()
"""

from hireflow.http.client import HTTPClientConfig, create_async_client

__all__ = ["HTTPClientConfig", "create_async_client"]
