"""Top-level call function and reusable async client."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable

import httpx

from .config import ClientOptions, merge_options, options_from_fields
from .interceptors import InterceptorChain
from .protocols import AsyncInterceptorMiddleware, Fetch, InterceptorMiddleware
from .transport import CallResult, execute, httpx_fetch

if TYPE_CHECKING:
    from .routes import Route


async def call(
    method: str,
    path: str | httpx.URL,
    body: Any | None = None,
    client: ClientOptions | None = None,
    options: ClientOptions | None = None,
    *,
    fetch: Fetch | None = None,
) -> CallResult:
    """Run one request through the full pipeline.

    ``client`` holds defaults, ``options`` the per-call overrides. Network and
    status failures raise :class:`~fetchwrap.errors.ClientError`; errors while
    building the request propagate unwrapped.

    Without ``fetch`` a short-lived ``httpx.AsyncClient`` is used for the call, and
    ``parse=False`` bodies are handed back as a buffered ``httpx.ByteStream``.
    """
    effective = merge_options(client, options)
    if fetch is not None:
        return await execute(method, path, body, effective, fetch)

    async with httpx.AsyncClient(timeout=None) as http_client:
        return await execute(method, path, body, effective, httpx_fetch(http_client), buffer_raw_stream=True)


class Client:
    """Reusable handle carrying client-level options over a shared connection pool."""

    def __init__(
        self,
        options: ClientOptions | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        fetch: Fetch | None = None,
        interceptors: InterceptorChain | None = None,
        fallback_options: ClientOptions | None = None,
        **fields: Any,
    ) -> None:
        if options is not None and fields:
            raise TypeError("pass either `options` or option keyword fields, not both")
        self.defaults = options if options is not None else ClientOptions(**fields)
        self._interceptors = interceptors or InterceptorChain()
        self._fallback_options = fallback_options
        self._owns_http_client = http_client is None and fetch is None
        self._http_client = http_client
        if fetch is None and self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=None)
        self._fetch = fetch or httpx_fetch(self._http_client)  # type: ignore[arg-type]

    @classmethod
    def from_env(cls, **kwargs: Any) -> "Client":
        return cls(ClientOptions.from_env(), **kwargs)

    @classmethod
    def from_profile(cls, profile: str | None = None, **kwargs: Any) -> "Client":
        return cls(ClientOptions.from_profile(profile), **kwargs)

    def with_options(self, **fields: Any) -> "Client":
        """Return a client sharing this one's transport with ``fields`` layered over its options.

        Interceptors registered so far are copied; later registrations on either
        client do not affect the other.
        """
        layered = options_from_fields(self.defaults, fields)
        return Client(
            layered,
            fetch=self._fetch,
            interceptors=self._interceptors.copy(),
            fallback_options=self._fallback_options,
        )

    def at(self, path: str) -> "Route":
        from .routes import Route

        return Route(self, path)

    def intercept_request(self, func: Callable[[httpx.Request], Any]) -> Callable[[httpx.Request], Any]:
        self._interceptors.add_request(func)
        return func

    def intercept_response(self, func: Callable[[httpx.Response], Any]) -> Callable[[httpx.Response], Any]:
        self._interceptors.add_response(func)
        return func

    def use_middleware(self, middleware: InterceptorMiddleware | AsyncInterceptorMiddleware) -> None:
        self._interceptors.add_middleware(middleware)

    async def request(
        self,
        method: str,
        path: str | httpx.URL = "",
        *,
        body: Any | None = None,
        options: ClientOptions | None = None,
        **fields: Any,
    ) -> CallResult:
        registered = ClientOptions(
            request_interceptors=self._interceptors.request_interceptors,
            response_interceptors=self._interceptors.response_interceptors,
        )
        effective = merge_options(
            self.defaults,
            registered,
            options,
            options_from_fields(None, fields),
            defaults=self._fallback_options,
        )
        return await execute(method, path, body, effective, self._fetch)

    async def get(self, path: str | httpx.URL = "", *, options: ClientOptions | None = None, **fields: Any) -> CallResult:
        return await self.request("GET", path, options=options, **fields)

    async def head(self, path: str | httpx.URL = "", *, options: ClientOptions | None = None, **fields: Any) -> CallResult:
        return await self.request("HEAD", path, options=options, **fields)

    async def options(
        self, path: str | httpx.URL = "", *, options: ClientOptions | None = None, **fields: Any
    ) -> CallResult:
        return await self.request("OPTIONS", path, options=options, **fields)

    async def trace(self, path: str | httpx.URL = "", *, options: ClientOptions | None = None, **fields: Any) -> CallResult:
        return await self.request("TRACE", path, options=options, **fields)

    async def connect(
        self, path: str | httpx.URL = "", *, options: ClientOptions | None = None, **fields: Any
    ) -> CallResult:
        return await self.request("CONNECT", path, options=options, **fields)

    async def put(
        self,
        path: str | httpx.URL = "",
        body: Any | None = None,
        *,
        options: ClientOptions | None = None,
        **fields: Any,
    ) -> CallResult:
        return await self.request("PUT", path, body=body, options=options, **fields)

    async def delete(
        self,
        path: str | httpx.URL = "",
        body: Any | None = None,
        *,
        options: ClientOptions | None = None,
        **fields: Any,
    ) -> CallResult:
        return await self.request("DELETE", path, body=body, options=options, **fields)

    async def post(
        self,
        path: str | httpx.URL = "",
        body: Any | None = None,
        *,
        options: ClientOptions | None = None,
        **fields: Any,
    ) -> CallResult:
        return await self.request("POST", path, body=body, options=options, **fields)

    async def patch(
        self,
        path: str | httpx.URL = "",
        body: Any | None = None,
        *,
        options: ClientOptions | None = None,
        **fields: Any,
    ) -> CallResult:
        return await self.request("PATCH", path, body=body, options=options, **fields)

    async def query(
        self,
        path: str | httpx.URL = "",
        body: Any | None = None,
        *,
        options: ClientOptions | None = None,
        **fields: Any,
    ) -> CallResult:
        return await self.request("QUERY", path, body=body, options=options, **fields)

    async def close(self) -> None:
        if self._owns_http_client and self._http_client is not None:
            await self._http_client.aclose()

    async def __aenter__(self) -> "Client":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
