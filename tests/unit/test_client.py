from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from fetchwrap import (
    AbortController,
    Blob,
    Client,
    ClientError,
    ClientOptions,
    ClientTimeoutError,
    ConstructionError,
    FormData,
    NetworkError,
    StatusError,
    call,
)
from fetchwrap.codec import parse_multipart
from fetchwrap.errors import AbortError, RequestTimeout
from fetchwrap.transport import SIGNAL_EXTENSION, retry_delay_for

ROOT = "http://api.example.com"


def mock_client(handler: Callable[[httpx.Request], Any], **fields: Any) -> Client:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    fields.setdefault("url", ROOT)
    return Client(http_client=http_client, **fields)


def echo_url(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, text=str(request.url))


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("base", "path", "expected"),
    [
        (ROOT, "world", f"{ROOT}/world"),
        (f"{ROOT}/hello", "world", f"{ROOT}/world"),
        (f"{ROOT}/hello/", "world", f"{ROOT}/hello/world"),
        (f"{ROOT}/hello/", "/world", f"{ROOT}/world"),
        (f"{ROOT}/hello/", "https://other.example.com/x", "https://other.example.com/x"),
    ],
)
async def test_request_url_resolution(base: str, path: str, expected: str) -> None:
    client = mock_client(echo_url, url=base)
    result = await client.get(path)
    assert result.body == expected
    assert result.status == 200


@pytest.mark.asyncio
async def test_relative_url_without_base_raises_construction_error() -> None:
    client = Client(fetch=lambda request: None)
    with pytest.raises(ConstructionError):
        await client.get("users")


@pytest.mark.asyncio
async def test_post_empty_object_sends_json() -> None:
    seen: dict[str, Any] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["content_type"] = request.headers.get("content-type")
        seen["content"] = request.content
        return httpx.Response(200, json={"ok": True})

    result = await mock_client(handler).post("", {})
    assert seen == {"content_type": "application/json", "content": b"{}"}
    assert result.body == {"ok": True}


@pytest.mark.asyncio
async def test_form_data_body_is_sent_as_multipart() -> None:
    received: dict[str, Any] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        form = parse_multipart(request.content, request.headers["content-type"])
        received["fields"] = form.items()
        return httpx.Response(204)

    await mock_client(handler).post("upload", FormData([("a", "1"), ("b", "two")]))
    assert received["fields"] == [("a", "1"), ("b", "two")]


@pytest.mark.asyncio
async def test_query_params_body_is_sent_urlencoded() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["content-type"] == "application/x-www-form-urlencoded"
        return httpx.Response(200, text=request.content.decode())

    result = await mock_client(handler).post("form", httpx.QueryParams([("a", "1"), ("a", "2")]))
    assert result.body == "a=1&a=2"


@pytest.mark.asyncio
async def test_response_decoding_follows_content_type() -> None:
    multipart = (
        b"--b1\r\n"
        b'Content-Disposition: form-data; name="k"\r\n\r\n'
        b"v\r\n"
        b"--b1--\r\n"
    )
    responses = {
        "/text": httpx.Response(200, text="plain"),
        "/json": httpx.Response(200, json={"a": 1}),
        "/form": httpx.Response(
            200, content=b"x=1", headers={"content-type": "application/x-www-form-urlencoded"}
        ),
        "/multipart": httpx.Response(
            200, content=multipart, headers={"content-type": "multipart/form-data; boundary=b1"}
        ),
        "/jpeg": httpx.Response(200, content=b"\xff\xd8", headers={"content-type": "image/jpeg"}),
        "/bytes": httpx.Response(200, content=b"\x00\x01"),
    }

    def handler(request: httpx.Request) -> httpx.Response:
        return responses[request.url.path]

    client = mock_client(handler)
    assert (await client.get("/text")).body == "plain"
    assert (await client.get("/json")).body == {"a": 1}
    assert (await client.get("/form")).body == httpx.QueryParams("x=1")
    assert (await client.get("/multipart")).body == FormData([("k", "v")])
    assert (await client.get("/jpeg")).body == Blob(b"\xff\xd8", type="image/jpeg")

    raw = (await client.get("/bytes")).body
    assert isinstance(raw, Blob)
    assert raw.type == "application/octet-stream"


@pytest.mark.asyncio
async def test_parse_disabled_returns_readable_stream() -> None:
    client = mock_client(lambda request: httpx.Response(200, content=b"streamed"))
    result = await client.get("raw", parse=False)
    assert isinstance(result.body, httpx.AsyncByteStream)
    chunks = [chunk async for chunk in result.body]
    assert b"".join(chunks) == b"streamed"


@pytest.mark.asyncio
async def test_timeout_longer_than_response_succeeds() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(0.01)
        return httpx.Response(200, text="ok")

    result = await mock_client(handler, timeout_ms=500).get()
    assert result.body == "ok"


@pytest.mark.asyncio
async def test_timeout_shorter_than_response_raises() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(0.5)
        return httpx.Response(200, text="late")

    with pytest.raises(ClientTimeoutError) as captured:
        await mock_client(handler, timeout_ms=50).get()

    error = captured.value
    assert isinstance(error.error, RequestTimeout)
    assert error.response is None
    assert error.status is None
    assert error.request.url == httpx.URL(ROOT)


def flaky(failures: int, status: int = 503) -> tuple[Callable[[httpx.Request], httpx.Response], list[int]]:
    runs: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        runs.append(1)
        if len(runs) <= failures:
            return httpx.Response(status, json={"run": len(runs)})
        return httpx.Response(200, json={"run": len(runs)})

    return handler, runs


@pytest.mark.asyncio
@pytest.mark.parametrize(("retry", "succeeds"), [(0, False), (1, False), (2, True)])
async def test_retry_count(retry: int, succeeds: bool) -> None:
    handler, runs = flaky(2)
    client = mock_client(handler, retry=retry, retry_delay_ms=[0])

    if succeeds:
        result = await client.get()
        assert result.body == {"run": 3}
    else:
        with pytest.raises(StatusError) as captured:
            await client.get()
        assert captured.value.status == 503
        assert captured.value.body == {"run": retry + 1}
        assert captured.value.error == "status"
    assert len(runs) == retry + 1


@pytest.mark.asyncio
async def test_non_retryable_status_fails_immediately() -> None:
    handler, runs = flaky(5, status=404)
    client = mock_client(handler, retry=3, retry_delay_ms=[0])

    with pytest.raises(StatusError) as captured:
        await client.get()
    assert captured.value.status == 404
    assert str(captured.value) == "Not Found"
    assert len(runs) == 1


@pytest.mark.asyncio
async def test_custom_status_rules() -> None:
    handler, _ = flaky(1, status=404)
    result = await mock_client(handler).get(status=[2, 404])
    assert result.status == 404


@pytest.mark.asyncio
async def test_network_error_is_wrapped_and_not_retried() -> None:
    runs: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        runs.append(1)
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(NetworkError) as captured:
        await mock_client(handler, retry=3, retry_delay_ms=[0]).get("down")

    error = captured.value
    assert isinstance(error.error, httpx.ConnectError)
    assert error.response is None
    assert error.status is None
    assert str(error) == "connection refused"
    assert len(runs) == 1


@pytest.mark.asyncio
async def test_external_signal_aborts_in_flight_call() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(1)
        return httpx.Response(200)

    controller = AbortController()
    asyncio.get_running_loop().call_later(0.01, controller.abort)

    with pytest.raises(ClientError) as captured:
        await mock_client(handler).get(signal=controller.signal)
    assert isinstance(captured.value.error, AbortError)
    assert not isinstance(captured.value, ClientTimeoutError)


@pytest.mark.asyncio
async def test_pre_aborted_signal_fails_before_fetch() -> None:
    runs: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        runs.append(1)
        return httpx.Response(200)

    controller = AbortController()
    controller.abort()
    with pytest.raises(ClientError):
        await mock_client(handler).get(signal=controller.signal)
    assert runs == []


def slow_flaky(failures: int, delay: float) -> Callable[[httpx.Request], Any]:
    runs: list[int] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        runs.append(1)
        await asyncio.sleep(delay)
        return httpx.Response(503 if len(runs) <= failures else 200)

    return handler


@pytest.mark.asyncio
async def test_timeout_spans_all_attempts_by_default() -> None:
    client = mock_client(slow_flaky(2, 0.15), timeout_ms=250, retry=2, retry_delay_ms=[0])
    with pytest.raises(ClientTimeoutError):
        await client.get()


@pytest.mark.asyncio
async def test_timeout_reset_restarts_timer_per_attempt() -> None:
    client = mock_client(slow_flaky(2, 0.15), timeout_ms=250, timeout_reset=True, retry=2, retry_delay_ms=[0])
    result = await client.get()
    assert result.status == 200


@pytest.mark.asyncio
async def test_request_interceptors_run_in_order_and_can_replace() -> None:
    seen: dict[str, Any] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["trace"] = request.headers.get("x-trace")
        return httpx.Response(200)

    def add_trace(request: httpx.Request) -> None:
        request.headers["x-trace"] = "client"

    async def reroute(request: httpx.Request) -> httpx.Request:
        return httpx.Request(request.method, f"{ROOT}/rerouted", headers=request.headers)

    def mark_call(request: httpx.Request) -> None:
        request.headers["x-trace"] += "+call"

    client = mock_client(handler, request_interceptors=[add_trace, reroute])
    await client.get("original", request_interceptors=mark_call)

    assert seen == {"url": f"{ROOT}/rerouted", "trace": "client+call"}


@pytest.mark.asyncio
async def test_response_interceptors_skip_failed_calls() -> None:
    events: list[int] = []
    client = mock_client(lambda request: httpx.Response(int(request.url.path.strip("/"))))

    @client.intercept_response
    def record(response: httpx.Response) -> None:
        events.append(response.status_code)

    await client.get("/201")
    with pytest.raises(StatusError):
        await client.get("/500")
    assert events == [201]


@pytest.mark.asyncio
async def test_middleware_wraps_both_directions() -> None:
    events: list[str] = []

    class Recorder:
        def intercept_request(self, request: httpx.Request) -> None:
            events.append(f"request {request.url.path}")

        async def intercept_response(self, response: httpx.Response) -> None:
            events.append(f"response {response.status_code}")

    client = mock_client(lambda request: httpx.Response(204))
    client.use_middleware(Recorder())
    await client.delete("items/1")
    assert events == ["request /items/1", "response 204"]


@pytest.mark.asyncio
async def test_query_path_params_and_cookies_are_applied() -> None:
    seen: dict[str, Any] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["query"] = request.url.params.multi_items()
        seen["cookie"] = request.headers.get("cookie")
        return httpx.Response(200)

    client = mock_client(handler, query={"page": 1}, cookies={"session": "abc"})
    await client.get(
        "users/{id}",
        path_params={"id": 7},
        query={"filter": {"active": True}},
        headers={"Cookie": "theme=dark"},
    )

    assert seen["path"] == "/users/7"
    assert seen["query"] == [("page", "1"), ("filter", '{"active":true}')]
    assert seen["cookie"] == "theme=dark; session=abc"


@pytest.mark.asyncio
async def test_with_options_layers_over_parent() -> None:
    seen: list[str | None] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.headers.get("authorization"))
        return httpx.Response(200)

    base = mock_client(handler, headers={"Authorization": "Bearer a"})
    scoped = base.with_options(headers={"authorization": "Bearer b"})
    await base.get()
    await scoped.get()
    assert seen == ["Bearer a", "Bearer b"]


@pytest.mark.asyncio
async def test_routes_build_on_the_client() -> None:
    client = mock_client(lambda request: httpx.Response(200, json={"method": request.method, "path": request.url.path}))
    users = client.at("/users")
    assert (await users.at("42").patch({"name": "x"})).body == {"method": "PATCH", "path": "/users/42"}
    assert (await users.get()).body == {"method": "GET", "path": "/users"}


@pytest.mark.asyncio
async def test_injected_fetch_receives_signal_extension() -> None:
    captured: list[httpx.Request] = []

    async def fetch(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, json={"via": "fetch"}, request=request)

    result = await call("get", "items", client=ClientOptions(url=ROOT), fetch=fetch)
    assert result.body == {"via": "fetch"}
    assert captured[0].url == httpx.URL(f"{ROOT}/items")
    assert SIGNAL_EXTENSION in captured[0].extensions


@pytest.mark.asyncio
async def test_call_options_override_client_options() -> None:
    seen: list[Any] = []

    async def fetch(request: httpx.Request) -> httpx.Response:
        seen.append((str(request.url), json.loads(request.content)))
        return httpx.Response(200, request=request)

    await call(
        "post",
        "",
        {"n": 1},
        client=ClientOptions(url=ROOT, retry=5),
        options=ClientOptions(url=f"{ROOT}/v2/"),
        fetch=fetch,
    )
    assert seen == [(f"{ROOT}/v2/", {"n": 1})]


@pytest.mark.asyncio
async def test_client_closes_owned_transport() -> None:
    async with Client(url=ROOT) as client:
        http_client = client._http_client
    assert http_client is not None
    assert http_client.is_closed


@pytest.mark.parametrize(
    ("attempt", "delays", "expected"),
    [
        (0, (100, 200), 0.0),
        (1, (100, 200), 100.0),
        (2, (100, 200), 200.0),
        (3, (100, 200), 200.0),
        (7, (50,), 50.0),
        (1, (), 0.0),
    ],
)
def test_retry_delay_reuses_last_value(attempt: int, delays: tuple[int, ...], expected: float) -> None:
    assert retry_delay_for(attempt, delays) == expected


@pytest.mark.asyncio
async def test_request_interceptors_run_once_across_retries() -> None:
    handler, runs = flaky(2)
    calls: list[str] = []

    def count(request: httpx.Request) -> None:
        calls.append(request.method)

    client = mock_client(handler, retry=2, retry_delay_ms=[0], request_interceptors=[count])
    result = await client.get()

    assert result.status == 200
    assert len(runs) == 3
    assert calls == ["GET"]


@pytest.mark.asyncio
async def test_with_options_does_not_share_later_interceptors() -> None:
    events: list[str] = []
    base = mock_client(lambda request: httpx.Response(200))

    @base.intercept_request
    def shared(request: httpx.Request) -> None:
        events.append("shared")

    scoped = base.with_options(headers={"x": "1"})

    @scoped.intercept_request
    def scoped_only(request: httpx.Request) -> None:
        events.append("scoped")

    @base.intercept_request
    def base_only(request: httpx.Request) -> None:
        events.append("base")

    await base.get()
    assert events == ["shared", "base"]

    events.clear()
    await scoped.get()
    assert events == ["shared", "scoped"]


@pytest.mark.asyncio
async def test_scheme_relative_path_is_sent_with_base_scheme() -> None:
    result = await mock_client(echo_url).get("//cdn.example.com/a")
    assert result.body == "http://cdn.example.com/a"
