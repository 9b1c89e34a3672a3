"""Client/call options and the merge rules that combine them."""

from __future__ import annotations

import json
import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Callable

import httpx

from .signals import AbortSignal

MAX_TIMEOUT_MS = 2**31 - 1
DEFAULT_RETRY_DELAY_MS: tuple[int, ...] = (100, 200, 400, 800, 1600)
DEFAULT_RETRY_STATUS: tuple[int, ...] = (408, 425, 429, 5)
DEFAULT_STATUS: tuple[int, ...] = (2,)

RequestInterceptor = Callable[[httpx.Request], Any]
ResponseInterceptor = Callable[[httpx.Response], Any]

_MAP_FIELDS = ("path_params", "query", "headers", "cookies", "extensions")


@dataclass(frozen=True, slots=True)
class ClientOptions:
    """Options for a client or a single call. ``None`` means "not set"."""

    url: str | httpx.URL | None = None
    path_params: Mapping[str, Any] | None = None
    query: Mapping[str, Any] | None = None
    headers: Mapping[str, str] | None = None
    cookies: Mapping[str, str] | None = None
    parse: bool | None = None
    timeout_ms: float | None = None
    timeout_reset: bool | None = None
    retry: int | None = None
    retry_delay_ms: Sequence[float] | None = None
    retry_status: Sequence[int] | None = None
    status: Sequence[int] | None = None
    request_interceptors: Sequence[RequestInterceptor] = ()
    response_interceptors: Sequence[ResponseInterceptor] = ()
    signal: AbortSignal | None = None
    extensions: Mapping[str, Any] | None = None

    @classmethod
    def from_env(cls) -> "ClientOptions":
        url = _trim_or_none(os.getenv("FETCHWRAP_BASE_URL"))
        timeout_ms = _parse_positive_int(os.getenv("FETCHWRAP_TIMEOUT_MS"))
        retry = _parse_non_negative_int(os.getenv("FETCHWRAP_RETRY"))

        headers: dict[str, str] = {}
        bearer = _trim_or_none(os.getenv("FETCHWRAP_BEARER_TOKEN"))
        if bearer:
            headers["authorization"] = f"Bearer {bearer}"

        return cls(url=url, timeout_ms=timeout_ms, retry=retry, headers=headers or None)

    @classmethod
    def from_profile(
        cls,
        profile: str | None = None,
        *,
        config_path: str | Path | None = None,
    ) -> "ClientOptions":
        payload = load_profile_config(config_path=config_path)
        profiles = payload.get("profiles")
        current_profile = payload.get("currentProfile")

        selected_name = (profile or current_profile or "default").strip() or "default"
        entry: dict[str, Any] = {}
        if isinstance(profiles, dict) and isinstance(profiles.get(selected_name), dict):
            entry = dict(profiles[selected_name])

        headers: dict[str, str] = {}
        raw_headers = entry.get("headers")
        if isinstance(raw_headers, dict):
            for key, value in raw_headers.items():
                if isinstance(key, str) and isinstance(value, str) and key.strip():
                    headers[key.lower()] = value

        auth = entry.get("auth")
        if isinstance(auth, dict):
            bearer = _trim_or_none(auth.get("bearer"))
            if bearer:
                headers["authorization"] = f"Bearer {bearer}"

        retry_delay = entry.get("retryDelayMs")
        retry_delay_ms: tuple[int, ...] | None = None
        if isinstance(retry_delay, list):
            parsed = [value for value in retry_delay if _is_number(value) and value >= 0]
            retry_delay_ms = tuple(parsed) or None

        return cls(
            url=_trim_or_none(entry.get("baseUrl")),
            timeout_ms=_parse_positive_int(entry.get("timeoutMs")),
            retry=_parse_non_negative_int(entry.get("retry")),
            retry_delay_ms=retry_delay_ms,
            headers=headers or None,
        )


@dataclass(frozen=True, slots=True)
class EffectiveOptions:
    url: str | httpx.URL | None = None
    path_params: dict[str, Any] = field(default_factory=dict)
    query: dict[str, Any] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    cookies: dict[str, str] = field(default_factory=dict)
    parse: bool = True
    timeout_ms: float | None = None
    timeout_reset: bool = False
    retry: int = 0
    retry_delay_ms: tuple[float, ...] = DEFAULT_RETRY_DELAY_MS
    retry_status: tuple[int, ...] = DEFAULT_RETRY_STATUS
    status: tuple[int, ...] = DEFAULT_STATUS
    request_interceptors: tuple[RequestInterceptor, ...] = ()
    response_interceptors: tuple[ResponseInterceptor, ...] = ()
    signals: tuple[AbortSignal, ...] = ()
    extensions: dict[str, Any] = field(default_factory=dict)

    @property
    def timeout_seconds(self) -> float | None:
        if self.timeout_ms is None:
            return None
        return self.timeout_ms / 1000.0


def merge_options(
    *layers: ClientOptions | None,
    defaults: ClientOptions | None = None,
) -> EffectiveOptions:
    """Merge option layers, earliest first; later layers win.

    ``defaults`` sits beneath every layer and supplies fallbacks other than the
    built-in ones (the typed client uses it for its own retry defaults).
    """
    ordered = [layer for layer in (defaults, *layers) if layer is not None]

    scalars: dict[str, Any] = {}
    maps: dict[str, dict[str, Any]] = {name: {} for name in _MAP_FIELDS}
    request_interceptors: list[RequestInterceptor] = []
    response_interceptors: list[ResponseInterceptor] = []
    signals: list[AbortSignal] = []

    for layer in ordered:
        for option in fields(layer):
            name = option.name
            value = getattr(layer, name)
            if name == "headers":
                maps[name].update({key.lower(): str(item) for key, item in _drop_none(value).items()})
            elif name in _MAP_FIELDS:
                maps[name].update(_drop_none(value))
            elif name == "request_interceptors":
                request_interceptors.extend(_as_callables(value))
            elif name == "response_interceptors":
                response_interceptors.extend(_as_callables(value))
            elif name == "signal":
                if value is not None:
                    signals.append(value)
            elif value is not None:
                scalars[name] = value

    headers = maps["headers"]
    cookies = merge_cookies(headers.pop("cookie", None), maps["cookies"])
    if cookies:
        headers["cookie"] = serialize_cookies(cookies)

    timeout_ms = scalars.get("timeout_ms")
    if timeout_ms is not None:
        timeout_ms = min(max(float(timeout_ms), 0.0), float(MAX_TIMEOUT_MS))

    retry_delay = tuple(scalars.get("retry_delay_ms") or DEFAULT_RETRY_DELAY_MS)

    return EffectiveOptions(
        url=scalars.get("url"),
        path_params=maps["path_params"],
        query=maps["query"],
        headers=headers,
        cookies=cookies,
        parse=bool(scalars.get("parse", True)),
        timeout_ms=timeout_ms,
        timeout_reset=bool(scalars.get("timeout_reset", False)),
        retry=max(0, int(scalars.get("retry", 0))),
        retry_delay_ms=retry_delay,
        retry_status=tuple(scalars.get("retry_status", DEFAULT_RETRY_STATUS)),
        status=tuple(scalars.get("status", DEFAULT_STATUS)),
        request_interceptors=tuple(request_interceptors),
        response_interceptors=tuple(response_interceptors),
        signals=tuple(signals),
        extensions=maps["extensions"],
    )


def parse_cookie_header(header: str | None) -> dict[str, str]:
    cookies: dict[str, str] = {}
    if not header:
        return cookies
    for chunk in header.split(";"):
        name, separator, value = chunk.strip().partition("=")
        if not separator or not name.strip():
            continue
        cookies[name.strip()] = value.strip()
    return cookies


def merge_cookies(header: str | None, structured: Mapping[str, Any]) -> dict[str, str]:
    merged = parse_cookie_header(header)
    for key, value in structured.items():
        merged[str(key)] = str(value)
    return merged


def serialize_cookies(cookies: Mapping[str, str]) -> str:
    return "; ".join(f"{key}={value}" for key, value in cookies.items())


def default_profile_config_path() -> Path:
    xdg = os.getenv("XDG_CONFIG_HOME")
    root = Path(xdg) if xdg else Path.home() / ".config"
    return root / "fetchwrap" / "config.json"


def load_profile_config(*, config_path: str | Path | None = None) -> dict[str, Any]:
    path = Path(config_path) if config_path else default_profile_config_path()
    if not path.exists():
        return {"currentProfile": "default", "profiles": {}}

    try:
        with path.open("r", encoding="utf-8") as handle:
            parsed = json.load(handle)
    except (OSError, json.JSONDecodeError):
        return {"currentProfile": "default", "profiles": {}}

    if not isinstance(parsed, dict):
        return {"currentProfile": "default", "profiles": {}}
    return parsed


def _drop_none(values: Mapping[str, Any] | None) -> dict[str, Any]:
    if not values:
        return {}
    return {key: value for key, value in values.items() if value is not None}


def _trim_or_none(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    return trimmed if trimmed else None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _parse_positive_int(value: Any) -> int | None:
    parsed = _parse_int(value)
    return parsed if parsed is not None and parsed > 0 else None


def _parse_non_negative_int(value: Any) -> int | None:
    parsed = _parse_int(value)
    return parsed if parsed is not None and parsed >= 0 else None


def _parse_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def options_from_fields(options: ClientOptions | None, overrides: Mapping[str, Any]) -> ClientOptions | None:
    """Build call options from keyword shorthands, layered over ``options``."""
    overrides = {key: value for key, value in overrides.items() if value is not None}
    if not overrides:
        return options
    if options is None:
        return ClientOptions(**overrides)
    values = {option.name: getattr(options, option.name) for option in fields(options)}
    values.update(overrides)
    return ClientOptions(**values)


def _as_callables(value: Any) -> tuple[Any, ...]:
    if value is None:
        return ()
    if callable(value):
        return (value,)
    return tuple(value)
