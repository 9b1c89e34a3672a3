"""Protocol contracts for fetchwrap extension points."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Protocol, runtime_checkable

import httpx

Fetch = Callable[[httpx.Request], Awaitable[httpx.Response]]


@runtime_checkable
class InterceptorMiddleware(Protocol):
    def intercept_request(self, request: httpx.Request) -> httpx.Request | None: ...

    def intercept_response(self, response: httpx.Response) -> httpx.Response | None: ...


@runtime_checkable
class AsyncInterceptorMiddleware(Protocol):
    async def intercept_request(self, request: httpx.Request) -> httpx.Request | None: ...

    async def intercept_response(self, response: httpx.Response) -> httpx.Response | None: ...
