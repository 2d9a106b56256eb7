"""HTTP utilities for hub API communication."""

from typing import Optional

import httpx

from iotdm_jobs.core.credentials import get_api_token
from iotdm_jobs.core.utils.user_agent import get_user_agent


def get_authenticated_httpx_client(
    base_url: str = "",
    timeout: Optional[float] = None,
    api_token: Optional[str] = None,
) -> httpx.AsyncClient:
    """Create httpx AsyncClient with hub authentication.

    Includes the Authorization header if a token is available, either passed
    in or resolved from IOTDM_API_TOKEN / the credentials file.

    Args:
        base_url: Hub base URL requests are relative to.
        timeout: Per-request timeout in seconds. Defaults to 30.0.
        api_token: Explicit token, overrides the configured one.

    Example:
        async with get_authenticated_httpx_client("https://hub.example.net") as client:
            response = await client.get("/jobs/v2/abc-1")
    """
    headers = {"User-Agent": get_user_agent()}
    token = api_token or get_api_token()
    if token:
        headers["Authorization"] = f"Bearer {token}"

    timeout_config = timeout if timeout is not None else 30.0
    return httpx.AsyncClient(base_url=base_url, timeout=timeout_config, headers=headers)
