"""Request/response interceptor chains."""

from __future__ import annotations

import inspect
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, TypeVar

import httpx

T = TypeVar("T")


async def apply_interceptors(value: T, interceptors: Iterable[Callable[[T], Any]]) -> T:
    """Run ``interceptors`` in order; a ``None`` result keeps the current value."""
    current = value
    for interceptor in interceptors:
        result = interceptor(current)
        if inspect.isawaitable(result):
            result = await result
        if result is not None:
            current = result
    return current


@dataclass(slots=True)
class InterceptorChain:
    """Mutable registry of interceptors, snapshotted into options per call."""

    _request: list[Callable[[httpx.Request], Any]] = field(default_factory=list)
    _response: list[Callable[[httpx.Response], Any]] = field(default_factory=list)

    def add_request(self, interceptor: Callable[[httpx.Request], Any]) -> None:
        self._request.append(interceptor)

    def add_response(self, interceptor: Callable[[httpx.Response], Any]) -> None:
        self._response.append(interceptor)

    def add_middleware(self, middleware: object) -> None:
        self.add_request(_require_callable(middleware, "intercept_request"))
        self.add_response(_require_callable(middleware, "intercept_response"))

    def copy(self) -> InterceptorChain:
        return InterceptorChain(list(self._request), list(self._response))

    @property
    def request_interceptors(self) -> tuple[Callable[[httpx.Request], Any], ...]:
        return tuple(self._request)

    @property
    def response_interceptors(self) -> tuple[Callable[[httpx.Response], Any], ...]:
        return tuple(self._response)


def _require_callable(middleware: object, name: str) -> Callable[..., Any]:
    hook = getattr(middleware, name, None)
    if not callable(hook):
        raise TypeError(f"interceptor middleware must provide callable {name}()")
    return hook
