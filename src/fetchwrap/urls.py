"""URL resolution, path templates and query appending."""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote, urljoin

import httpx

from .errors import ConstructionError

_ABSOLUTE_URL = re.compile(r"^[a-zA-Z][a-zA-Z\d+\-.]*://")
_PLACEHOLDER = re.compile(r"\{([^{}]+)\}")
# Characters encodeURIComponent leaves untouched besides alphanumerics.
_URI_COMPONENT_SAFE = "-_.!~*'()"


def is_absolute_url(path: str) -> bool:
    return _ABSOLUTE_URL.match(path) is not None


def encode_uri_component(value: Any) -> str:
    return quote(str(value), safe=_URI_COMPONENT_SAFE)


def expand_path_template(path: str, params: Mapping[str, Any] | None) -> str:
    """Replace ``{name}`` placeholders; unknown names are left as written."""
    if not params or "{" not in path:
        return path

    def substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        value = params.get(name)
        if value is None:
            return match.group(0)
        return encode_uri_component(value)

    return _PLACEHOLDER.sub(substitute, path)


def resolve_url(base: str | httpx.URL | None, path: str | httpx.URL) -> str:
    """Resolve ``path`` against ``base`` the way a browser resolves relative URLs.

    A scheme-relative ``//host/path`` takes the scheme of ``base``.
    ``http://h/hello`` + ``world`` is the sibling ``http://h/world``; with a trailing
    slash on the base the result is the child ``http://h/hello/world``.
    """
    target = str(path)
    if is_absolute_url(target):
        return target

    if base is None:
        raise ConstructionError(f"cannot resolve relative URL {target!r} without a base URL")

    base_url = str(base)
    if not is_absolute_url(base_url):
        raise ConstructionError(f"base URL {base_url!r} is not absolute")
    if target == "":
        return base_url
    return urljoin(base_url, target)


def encode_query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (Mapping, list, tuple)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def append_query(url: str | httpx.URL, query: Mapping[str, Any] | None) -> httpx.URL:
    """Append query entries after any parameters already present in ``url``."""
    resolved = httpx.URL(str(url))
    if not query:
        return resolved

    pairs = list(resolved.params.multi_items())
    for key, value in query.items():
        if value is None:
            continue
        pairs.append((str(key), encode_query_value(value)))
    return resolved.copy_with(params=httpx.QueryParams(pairs))


def build_url(
    base: str | httpx.URL | None,
    path: str | httpx.URL,
    *,
    path_params: Mapping[str, Any] | None = None,
    query: Mapping[str, Any] | None = None,
) -> httpx.URL:
    expanded = expand_path_template(str(path), path_params)
    return append_query(resolve_url(base, expanded), query)
