"""Request execution pipeline: build, intercept, attempt loop, decode."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import httpx

from .codec import decode_body, encode_body
from .config import EffectiveOptions
from .errors import STATUS_MARKER, AbortError, RequestTimeout, build_client_error
from .interceptors import apply_interceptors
from .protocols import Fetch
from .signals import AbortController, AbortSignal, abortable_sleep, any_signal
from .status import StatusClass, classify_status
from .urls import build_url

logger = logging.getLogger(__name__)

SIGNAL_EXTENSION = "abort_signal"


@dataclass(slots=True)
class CallResult:
    request: httpx.Request
    response: httpx.Response
    status: int
    body: Any


def httpx_fetch(client: httpx.AsyncClient) -> Fetch:
    """Adapt an ``httpx.AsyncClient`` to the fetch signature, leaving bodies unread."""

    async def fetch(request: httpx.Request) -> httpx.Response:
        return await client.send(request, stream=True)

    return fetch


def retry_delay_for(attempt: int, delays_ms: Sequence[float]) -> float:
    """Delay in ms before ``attempt``; the last delay repeats past the end of the list."""
    if attempt <= 0 or not delays_ms:
        return 0.0
    index = attempt - 1
    return float(delays_ms[index] if index < len(delays_ms) else delays_ms[-1])


class TimeoutTimer:
    def __init__(self, controller: AbortController, timeout_ms: float | None) -> None:
        self._controller = controller
        self._timeout_ms = timeout_ms
        self._handle: asyncio.TimerHandle | None = None

    @property
    def armed(self) -> bool:
        return self._handle is not None

    def arm(self) -> None:
        if self._timeout_ms is None or self._handle is not None:
            return
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(
            self._timeout_ms / 1000.0,
            self._controller.abort,
            RequestTimeout(self._timeout_ms),
        )

    def clear(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


def build_request(method: str, path: str | httpx.URL, body: Any, options: EffectiveOptions) -> httpx.Request:
    url = build_url(options.url, path, path_params=options.path_params, query=options.query)
    method = method.upper()
    headers = dict(options.headers)
    content = encode_body(method, body, headers)
    return httpx.Request(method, url, headers=headers, extensions=dict(options.extensions), **content)


async def send_with_signal(fetch: Fetch, request: httpx.Request, signal: AbortSignal) -> httpx.Response:
    """Issue ``fetch(request)``; if ``signal`` fires first the fetch is cancelled and its reason raised."""
    signal.throw_if_aborted()
    fetch_task = asyncio.ensure_future(fetch(request))
    abort_task = asyncio.ensure_future(signal.wait())
    try:
        await asyncio.wait({fetch_task, abort_task}, return_when=asyncio.FIRST_COMPLETED)
    except BaseException:
        fetch_task.cancel()
        raise
    finally:
        abort_task.cancel()

    if fetch_task.done():
        return fetch_task.result()

    fetch_task.cancel()
    await asyncio.wait({fetch_task})
    if not fetch_task.cancelled() and fetch_task.exception() is None:
        await fetch_task.result().aclose()
    raise signal.reason or AbortError("signal aborted")


async def execute(
    method: str,
    path: str | httpx.URL,
    body: Any,
    options: EffectiveOptions,
    fetch: Fetch,
    *,
    buffer_raw_stream: bool = False,
) -> CallResult:
    request = build_request(method, path, body, options)
    request = await apply_interceptors(request, options.request_interceptors)

    controller = AbortController()
    signal = any_signal(controller.signal, *options.signals, request.extensions.get(SIGNAL_EXTENSION))
    request.extensions[SIGNAL_EXTENSION] = signal
    timer = TimeoutTimer(controller, options.timeout_ms)

    try:
        response: httpx.Response
        outcome = StatusClass(success=False, retryable=False)
        for attempt in range(options.retry + 1):
            if options.timeout_reset:
                timer.clear()
            await abortable_sleep(retry_delay_for(attempt, options.retry_delay_ms) / 1000.0, signal)
            timer.arm()

            logger.debug("attempt %d: %s %s", attempt, request.method, request.url)
            try:
                response = await send_with_signal(fetch, request, signal)
            except Exception as error:
                logger.debug("transport failed for %s %s: %r", request.method, request.url, error)
                raise build_client_error(request, error=error) from error

            outcome = classify_status(response.status_code, options.status, options.retry_status)
            if outcome.success or not outcome.retryable or attempt >= options.retry:
                break

            logger.debug(
                "retrying %s %s after status %d (attempt %d of %d)",
                request.method,
                request.url,
                response.status_code,
                attempt + 1,
                options.retry,
            )
            await response.aclose()
        timer.clear()

        status = response.status_code
        if not options.parse and buffer_raw_stream:
            await response.aread()
            decoded: Any = httpx.ByteStream(response.content)
        else:
            decoded = await decode_body(response, options.parse)

        if not outcome.success:
            logger.debug("%s %s failed with status %d", request.method, request.url, status)
            raise build_client_error(request, response, STATUS_MARKER, status, decoded)

        response = await apply_interceptors(response, options.response_interceptors)
        return CallResult(request=request, response=response, status=response.status_code, body=decoded)
    finally:
        timer.clear()
        signal.release()
