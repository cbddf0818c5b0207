"""
Gripp API client with a rate-limited request queue.

The Gripp API takes JSON-RPC style batches: a POST body containing a list of
``{method, params: [filters, options], id}`` calls, answered by a list of
``{id, result: {rows, count, start, limit, next_start,
more_items_in_collection}, error}`` items. Every call is routed through a
``RequestQueue`` owned by the client so requests leave strictly FIFO with a
minimum interval between them.
"""

import asyncio
import itertools
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import httpx

from core.config import (
    GRIPP_API_KEY,
    GRIPP_API_URL,
    GRIPP_DEFAULT_RETRY_AFTER,
    GRIPP_MAX_CONCURRENT_REQUESTS,
    GRIPP_MAX_RETRIES,
    GRIPP_MIN_REQUEST_INTERVAL,
    GRIPP_PAGE_SIZE,
    GRIPP_REQUEST_TIMEOUT,
)
from core.logging_config import get_logger
from models.gripp import GrippRequest

logger = get_logger(__name__)


class GrippApiError(Exception):
    """Transport or protocol failure talking to the Gripp API."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitedError(GrippApiError):
    """HTTP 503 from Gripp. The request queue retries these."""

    def __init__(self, retry_after: float | None = None):
        super().__init__("Gripp API rate limit reached", status_code=503)
        self.retry_after = retry_after


def parse_retry_after(value: str | None) -> float | None:
    """Parse a Retry-After header given in seconds. Returns None if unusable."""
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


@dataclass
class _QueuedRequest:
    execute: Callable[[], Awaitable[Any]]
    future: asyncio.Future
    attempts: int = 0


class RequestQueue:
    """
    FIFO queue that spaces out request starts.

    Each request starts at least ``min_interval`` seconds after the previous
    one started and at most ``max_concurrent`` requests run at once. A
    ``RateLimitedError`` puts the request back at the head of the queue and
    pauses the whole queue for the retry delay.
    """

    def __init__(
        self,
        min_interval: float = GRIPP_MIN_REQUEST_INTERVAL,
        max_concurrent: int = GRIPP_MAX_CONCURRENT_REQUESTS,
        default_retry_after: float = GRIPP_DEFAULT_RETRY_AFTER,
        max_retries: int = GRIPP_MAX_RETRIES,
    ):
        self.min_interval = min_interval
        self.max_concurrent = max_concurrent
        self.default_retry_after = default_retry_after
        self.max_retries = max_retries
        self.active = 0

        self._pending: deque[_QueuedRequest] = deque()
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._last_start: float | None = None
        self._resume_at = 0.0
        self._worker: asyncio.Task | None = None
        self._running: set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._pending)

    async def submit(self, execute: Callable[[], Awaitable[Any]]) -> Any:
        """Queue a request coroutine factory and wait for its result."""
        loop = asyncio.get_running_loop()
        item = _QueuedRequest(execute=execute, future=loop.create_future())
        self._pending.append(item)
        self._ensure_worker()
        return await item.future

    async def close(self) -> None:
        """Cancel the worker, running requests and everything still queued."""
        tasks = [t for t in [self._worker, *self._running] if t and not t.done()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        while self._pending:
            self._pending.popleft().future.cancel()

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._process())

    def _delay_before_next(self, now: float) -> float:
        wait = self._resume_at - now
        if self._last_start is not None:
            wait = max(wait, self.min_interval - (now - self._last_start))
        return wait

    async def _process(self) -> None:
        loop = asyncio.get_running_loop()
        while self._pending:
            await self._semaphore.acquire()
            wait = self._delay_before_next(loop.time())
            while wait > 0:
                await asyncio.sleep(wait)
                # A rate limit hit while sleeping can push the resume time out
                wait = self._delay_before_next(loop.time())

            if not self._pending:
                self._semaphore.release()
                break
            item = self._pending.popleft()
            if item.future.done():
                # Caller went away
                self._semaphore.release()
                continue

            self._last_start = loop.time()
            task = asyncio.create_task(self._run(item))
            self._running.add(task)
            task.add_done_callback(self._running.discard)

    async def _run(self, item: _QueuedRequest) -> None:
        self.active += 1
        try:
            result = await item.execute()
        except asyncio.CancelledError:
            item.future.cancel()
            raise
        except RateLimitedError as exc:
            item.attempts += 1
            if item.attempts > self.max_retries:
                logger.error("gripp_rate_limit_retries_exhausted", attempts=item.attempts)
                if not item.future.done():
                    item.future.set_exception(exc)
            else:
                self._requeue(item, exc.retry_after)
        except Exception as exc:
            if not item.future.done():
                item.future.set_exception(exc)
        else:
            if not item.future.done():
                item.future.set_result(result)
        finally:
            self.active -= 1
            self._semaphore.release()

    def _requeue(self, item: _QueuedRequest, retry_after: float | None) -> None:
        if retry_after is None:
            retry_after = self.default_retry_after
        delay = max(self.min_interval, retry_after)
        loop = asyncio.get_running_loop()
        self._resume_at = max(self._resume_at, loop.time() + delay)
        logger.warning("gripp_rate_limited", retry_in=delay, attempt=item.attempts)
        self._pending.appendleft(item)
        self._ensure_worker()


class GrippClient:
    """Async client for the Gripp API."""

    def __init__(
        self,
        api_url: str = GRIPP_API_URL,
        api_key: str = GRIPP_API_KEY,
        *,
        page_size: int = GRIPP_PAGE_SIZE,
        timeout: float = GRIPP_REQUEST_TIMEOUT,
        queue: RequestQueue | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.page_size = page_size
        self.queue = queue if queue is not None else RequestQueue()
        self._http = http_client if http_client is not None else httpx.AsyncClient(timeout=timeout)
        self._ids = itertools.count(int(time.time() * 1000))

        if not api_key:
            logger.warning("gripp_api_key_missing", api_url=api_url)

    async def __aenter__(self) -> "GrippClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.queue.close()
        await self._http.aclose()

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def create_request(
        self,
        method: str,
        filters: list[dict] | None = None,
        options: dict | None = None,
    ) -> GrippRequest:
        return {
            "method": method,
            "params": [filters or [], options or {}],
            "id": next(self._ids),
        }

    async def execute(self, request: GrippRequest) -> dict:
        """Queue a request and return the response item for it."""
        return await self.queue.submit(lambda: self._post(request))

    async def _post(self, request: GrippRequest) -> dict:
        logger.debug("gripp_request", method=request["method"], request_id=request["id"])
        try:
            response = await self._http.post(
                self.api_url, json=[request], headers=self._headers()
            )
        except httpx.HTTPError as exc:
            logger.error("gripp_request_failed", method=request["method"], error=str(exc))
            raise GrippApiError(f"Request to Gripp API failed: {exc}") from exc

        if response.status_code == 503:
            raise RateLimitedError(parse_retry_after(response.headers.get("Retry-After")))
        if response.is_error:
            logger.error(
                "gripp_http_error",
                method=request["method"],
                status_code=response.status_code,
            )
            raise GrippApiError(
                f"Gripp API returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise GrippApiError("Gripp API returned invalid JSON") from exc

        if not isinstance(body, list) or not body or not isinstance(body[0], dict):
            raise GrippApiError("Invalid response format from Gripp API")

        item = body[0]
        error = item.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            logger.error("gripp_api_error", method=request["method"], error=message)
            raise GrippApiError(message or "Unknown Gripp API error")

        if not isinstance(item.get("result"), dict):
            raise GrippApiError("Invalid result format from Gripp API")

        return item

    async def get(
        self,
        method: str,
        filters: list[dict] | None = None,
        options: dict | None = None,
    ) -> list[dict]:
        """Return the rows of the first page."""
        response = await self.execute(self.create_request(method, filters, options))
        return response["result"].get("rows") or []

    async def get_all(
        self,
        method: str,
        filters: list[dict] | None = None,
        options: dict | None = None,
    ) -> list[dict]:
        """
        Walk every page and return the concatenated rows.

        Stops when the server reports no more items or a page comes back
        shorter than the page size.
        """
        rows: list[dict] = []
        start = 0
        pages = 0

        while True:
            page_options = {
                **(options or {}),
                "paging": {"firstresult": start, "maxresults": self.page_size},
            }
            response = await self.execute(self.create_request(method, filters, page_options))
            result = response["result"]
            page = result.get("rows") or []
            rows.extend(page)
            pages += 1

            if not result.get("more_items_in_collection") or len(page) < self.page_size:
                break

            next_start = result.get("next_start")
            start = next_start if isinstance(next_start, int) and next_start > start else start + len(page)

        logger.info("gripp_fetched_all", method=method, rows=len(rows), pages=pages)
        return rows


_gripp_client: GrippClient | None = None


def get_gripp_client() -> GrippClient:
    """Get or create the shared Gripp client (lazy initialization)."""
    global _gripp_client
    if _gripp_client is None:
        _gripp_client = GrippClient()
    return _gripp_client


async def close_gripp_client() -> None:
    global _gripp_client
    if _gripp_client is not None:
        await _gripp_client.aclose()
        _gripp_client = None
