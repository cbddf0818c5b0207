"""
Client for the local dashboard API.

The API answers with ``{success, data, meta}``; older endpoints still answer
with ``{response, error}``. Both envelopes are accepted.
"""

import time
from typing import Any

import httpx

from core.config import API_BASE_URL, GRIPP_REQUEST_TIMEOUT
from core.logging_config import get_logger

logger = get_logger(__name__)


class DashboardApiError(Exception):
    """The local API failed or returned an error envelope."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def unwrap_envelope(body: Any) -> tuple[Any, dict]:
    """
    Return (data, meta) from either response envelope.

    Raises:
        DashboardApiError: for error envelopes and unknown shapes.
    """
    if isinstance(body, dict):
        if "success" in body:
            if not body["success"]:
                raise DashboardApiError(body.get("error") or "Request failed")
            return body.get("data"), body.get("meta") or {}
        if "response" in body or "error" in body:
            if body.get("error"):
                raise DashboardApiError(str(body["error"]))
            return body.get("response"), {}
    raise DashboardApiError("Unrecognized response envelope")


class DashboardApiClient:
    def __init__(
        self,
        base_url: str = API_BASE_URL,
        *,
        timeout: float = GRIPP_REQUEST_TIMEOUT,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._http = http_client if http_client is not None else httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> "DashboardApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> tuple[Any, dict]:
        url = f"{self.base_url}{path}"
        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise DashboardApiError(f"{method} {path} failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.is_error:
            message = f"{method} {path} returned HTTP {response.status_code}"
            if isinstance(body, dict) and body.get("error"):
                message = str(body["error"])
            raise DashboardApiError(message, status_code=response.status_code)

        return unwrap_envelope(body)

    async def get_projects(self, refresh: bool = False) -> list[dict]:
        """Fetch all cached projects; ``refresh`` adds a cache-busting parameter."""
        params = {"refresh": "true", "_t": str(int(time.time() * 1000))} if refresh else None
        data, meta = await self._request("GET", "/v1/projects", params=params)
        logger.debug("dashboard_projects_fetched", count=len(data or []), refresh=refresh)
        return data or []

    async def trigger_sync(self) -> dict:
        data, _ = await self._request("POST", "/v1/projects/sync")
        return data or {}

    async def clear_server_cache(self) -> None:
        await self._request("POST", "/v1/cache/clear")

    async def health(self) -> dict:
        response = await self._http.get(f"{self.base_url}/health")
        return response.json()
