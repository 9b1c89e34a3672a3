"""Path-bound request builder: ``client.at("/users/{id}").get(path_params={"id": 1})``."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .client import Client
    from .transport import CallResult


class Route:
    def __init__(self, client: Client, path: str) -> None:
        self._client = client
        self.path = path

    def at(self, path: str) -> Route:
        """Return a route for ``path`` appended below this one."""
        return Route(self._client, f"{self.path.rstrip('/')}/{path.lstrip('/')}")

    async def request(self, method: str, *, body: Any | None = None, **fields: Any) -> CallResult:
        return await self._client.request(method, self.path, body=body, **fields)

    async def get(self, **fields: Any) -> CallResult:
        return await self.request("GET", **fields)

    async def head(self, **fields: Any) -> CallResult:
        return await self.request("HEAD", **fields)

    async def options(self, **fields: Any) -> CallResult:
        return await self.request("OPTIONS", **fields)

    async def trace(self, **fields: Any) -> CallResult:
        return await self.request("TRACE", **fields)

    async def connect(self, **fields: Any) -> CallResult:
        return await self.request("CONNECT", **fields)

    async def put(self, body: Any | None = None, **fields: Any) -> CallResult:
        return await self.request("PUT", body=body, **fields)

    async def delete(self, body: Any | None = None, **fields: Any) -> CallResult:
        return await self.request("DELETE", body=body, **fields)

    async def post(self, body: Any | None = None, **fields: Any) -> CallResult:
        return await self.request("POST", body=body, **fields)

    async def patch(self, body: Any | None = None, **fields: Any) -> CallResult:
        return await self.request("PATCH", body=body, **fields)

    async def query(self, body: Any | None = None, **fields: Any) -> CallResult:
        return await self.request("QUERY", body=body, **fields)

    def __repr__(self) -> str:
        return f"Route({self.path!r})"
