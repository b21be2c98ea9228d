import logging
from typing import Optional

import httpx

from ..core.config import config

logger = logging.getLogger(__name__)


def get_async_http_client(
    base_url: str = "",
    connect_timeout: float = None,
    read_timeout: float = None,
    verify: bool = True,
    bearer_token: Optional[str] = None,
) -> httpx.AsyncClient:
    """
    Returns a configured httpx.AsyncClient with:
    - Default timeouts (connect and read).
    - Standard User-Agent header.
    - An Authorization header when a bearer token is given.
    """
    c_timeout = connect_timeout if connect_timeout is not None else config.DEFAULT_TIMEOUT_CONNECT
    r_timeout = read_timeout if read_timeout is not None else config.DEFAULT_TIMEOUT_READ

    timeout = httpx.Timeout(r_timeout, connect=c_timeout)

    headers = {"User-Agent": config.USER_AGENT}
    if bearer_token:
        headers["Authorization"] = f"Bearer {bearer_token}"

    # Note: httpx does not have built-in retry logic like requests' HTTPAdapter.
    # A failed query is reported as "no data" by the callers instead.

    return httpx.AsyncClient(
        base_url=base_url,
        timeout=timeout,
        headers=headers,
        verify=verify,
        follow_redirects=True,
    )
