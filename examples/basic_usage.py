"""Fetch a resource with retries, a timeout and a logging interceptor.

Run with ``FETCHWRAP_BASE_URL`` pointing at any JSON API, for example
``FETCHWRAP_BASE_URL=https://httpbin.org/ python examples/basic_usage.py``.
"""

from __future__ import annotations

import asyncio
import logging
import os

import httpx

from fetchwrap import Client, ClientError, ClientOptions


def _log_request(request: httpx.Request) -> None:
    print(f"-> {request.method} {request.url}")


async def _log_response(response: httpx.Response) -> None:
    print(f"<- {response.status_code} {response.headers.get('content-type', '')}")


async def run_basic_usage() -> None:
    if os.getenv("FETCHWRAP_DEBUG"):
        logging.basicConfig(level=logging.DEBUG)

    options = ClientOptions.from_env()
    if options.url is None:
        options = ClientOptions(url="https://httpbin.org/", timeout_ms=5000, retry=2)

    async with Client(options) as client:
        client.intercept_request(_log_request)
        client.intercept_response(_log_response)

        result = await client.get("get", query={"tags": ["a", "b"], "debug": True})
        print(result.body)

        echoed = await client.post("anything/{name}", {"hello": "world"}, path_params={"name": "demo"})
        print(echoed.status, echoed.body.get("json") if isinstance(echoed.body, dict) else echoed.body)

        try:
            await client.at("status/{code}").get(path_params={"code": 503}, retry_delay_ms=[50])
        except ClientError as error:
            print(f"failed: status={error.status} error={error.error!r}")


if __name__ == "__main__":
    asyncio.run(run_basic_usage())
