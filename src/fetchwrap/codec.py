"""Request body encoding and content-type driven response decoding."""

from __future__ import annotations

import json
from collections.abc import AsyncIterable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from email.parser import BytesParser
from email.policy import HTTP
from typing import Any

import httpx
from pydantic import BaseModel

OCTET_STREAM = "application/octet-stream"
_BODYLESS_METHODS = {"GET", "HEAD"}


@dataclass(frozen=True, slots=True)
class Blob:
    """Binary payload tagged with its content type."""

    content: bytes
    type: str = OCTET_STREAM
    filename: str | None = None

    @property
    def size(self) -> int:
        return len(self.content)

    def text(self, encoding: str = "utf-8") -> str:
        return self.content.decode(encoding)


FormValue = str | Blob


class FormData:
    """Ordered multi-valued form fields, used for multipart bodies in both directions."""

    def __init__(self, items: Iterable[tuple[str, FormValue]] | Mapping[str, FormValue] | None = None) -> None:
        self._items: list[tuple[str, FormValue]] = []
        if isinstance(items, Mapping):
            items = items.items()
        for name, value in items or ():
            self.append(name, value)

    def append(self, name: str, value: FormValue) -> None:
        self._items.append((str(name), value))

    def get(self, name: str, default: FormValue | None = None) -> FormValue | None:
        for key, value in self._items:
            if key == name:
                return value
        return default

    def get_all(self, name: str) -> list[FormValue]:
        return [value for key, value in self._items if key == name]

    def items(self) -> list[tuple[str, FormValue]]:
        return list(self._items)

    def __contains__(self, name: object) -> bool:
        return any(key == name for key, _ in self._items)

    def __iter__(self) -> Iterator[str]:
        return iter(dict.fromkeys(key for key, _ in self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FormData):
            return NotImplemented
        return self._items == other._items

    def __repr__(self) -> str:
        return f"FormData({self._items!r})"


def is_json_body(body: Any) -> bool:
    if isinstance(body, (str, bytes, bytearray, FormData, httpx.QueryParams)):
        return False
    return isinstance(body, (Mapping, list, tuple, bool, int, float, BaseModel))


def dumps_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def encode_body(method: str, body: Any, headers: dict[str, str]) -> dict[str, Any]:
    """Return ``httpx.Request`` body kwargs for ``body``.

    JSON-shaped bodies are serialized compactly and get ``content-type:
    application/json`` unless a content type is already set. Other shapes pass
    through for the transport to encode.
    """
    if body is None or method.upper() in _BODYLESS_METHODS:
        return {}

    if is_json_body(body):
        payload = body.model_dump(mode="json") if isinstance(body, BaseModel) else body
        headers.setdefault("content-type", "application/json")
        return {"content": dumps_json(payload).encode("utf-8")}

    if isinstance(body, FormData):
        data: dict[str, list[str]] = {}
        files: list[tuple[str, tuple[str | None, bytes, str]]] = []
        for name, value in body.items():
            if isinstance(value, Blob):
                files.append((name, (value.filename or "blob", value.content, value.type)))
            else:
                data.setdefault(name, []).append(value)
        if not files:
            # httpx only emits multipart when files are present.
            return {"files": [(name, (None, value.encode("utf-8"), "text/plain")) for name, value in body.items()]}
        return {"data": data, "files": files}

    if isinstance(body, httpx.QueryParams):
        grouped: dict[str, list[str]] = {}
        for key, value in body.multi_items():
            grouped.setdefault(key, []).append(value)
        return {"data": grouped}

    if isinstance(body, (str, bytes, bytearray)):
        return {"content": bytes(body) if isinstance(body, bytearray) else body}

    if isinstance(body, (AsyncIterable, Iterable)):
        return {"content": body}

    raise TypeError(f"unsupported request body type {type(body).__name__}")


def _content_type(response: httpx.Response) -> str:
    return response.headers.get("content-type", "")


def parse_multipart(content: bytes, content_type: str) -> FormData:
    envelope = b"Content-Type: " + content_type.encode("latin-1") + b"\r\n\r\n" + content
    message = BytesParser(policy=HTTP).parsebytes(envelope)
    form = FormData()
    for part in message.iter_parts():
        name = part.get_param("name", header="content-disposition")
        if not isinstance(name, str):
            continue
        payload = part.get_payload(decode=True) or b""
        filename = part.get_filename()
        if filename is None:
            form.append(name, payload.decode(part.get_content_charset() or "utf-8"))
        else:
            form.append(name, Blob(payload, type=part.get_content_type(), filename=filename))
    return form


async def decode_body(response: httpx.Response, parse: bool) -> Any:
    """Decode ``response`` by content type; with ``parse=False`` return the unread stream."""
    if not parse:
        return response.stream

    await response.aread()
    content_type = _content_type(response)
    lowered = content_type.lower()
    if lowered.startswith("text/plain"):
        return response.text
    if lowered.startswith("application/json"):
        return response.json()
    if lowered.startswith("multipart/form-data"):
        return parse_multipart(response.content, content_type)
    if lowered.startswith("application/x-www-form-urlencoded"):
        return httpx.QueryParams(response.text)
    return Blob(response.content, type=content_type or OCTET_STREAM)
