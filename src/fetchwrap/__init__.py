"""fetchwrap: an async HTTP call pipeline over httpx.

This module uses lazy exports so lightweight utilities (for example URL
resolution) can be imported without pulling in the typed layer.
"""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any

__all__ = [
    "AbortController",
    "AbortError",
    "AbortSignal",
    "Blob",
    "CallResult",
    "Client",
    "ClientError",
    "ClientOptions",
    "ClientTimeoutError",
    "ConstructionError",
    "EffectiveOptions",
    "FetchWrapError",
    "FormData",
    "InterceptorChain",
    "NetworkError",
    "RequestTimeout",
    "Route",
    "StatusError",
    "StatusMatcher",
    "TypedClient",
    "TypedModelValidationError",
    "any_signal",
    "call",
    "merge_options",
    "resolve_url",
]

_EXPORTS: dict[str, tuple[str, str]] = {
    "Client": (".client", "Client"),
    "call": (".client", "call"),
    "ClientOptions": (".config", "ClientOptions"),
    "EffectiveOptions": (".config", "EffectiveOptions"),
    "merge_options": (".config", "merge_options"),
    "Blob": (".codec", "Blob"),
    "FormData": (".codec", "FormData"),
    "AbortError": (".errors", "AbortError"),
    "ClientError": (".errors", "ClientError"),
    "ClientTimeoutError": (".errors", "ClientTimeoutError"),
    "ConstructionError": (".errors", "ConstructionError"),
    "FetchWrapError": (".errors", "FetchWrapError"),
    "NetworkError": (".errors", "NetworkError"),
    "RequestTimeout": (".errors", "RequestTimeout"),
    "StatusError": (".errors", "StatusError"),
    "TypedModelValidationError": (".errors", "TypedModelValidationError"),
    "InterceptorChain": (".interceptors", "InterceptorChain"),
    "Route": (".routes", "Route"),
    "AbortController": (".signals", "AbortController"),
    "AbortSignal": (".signals", "AbortSignal"),
    "any_signal": (".signals", "any_signal"),
    "StatusMatcher": (".status", "StatusMatcher"),
    "CallResult": (".transport", "CallResult"),
    "TypedClient": (".typed", "TypedClient"),
    "resolve_url": (".urls", "resolve_url"),
}

if TYPE_CHECKING:
    from .client import Client, call
    from .codec import Blob, FormData
    from .config import ClientOptions, EffectiveOptions, merge_options
    from .errors import (
        AbortError,
        ClientError,
        ClientTimeoutError,
        ConstructionError,
        FetchWrapError,
        NetworkError,
        RequestTimeout,
        StatusError,
        TypedModelValidationError,
    )
    from .interceptors import InterceptorChain
    from .routes import Route
    from .signals import AbortController, AbortSignal, any_signal
    from .status import StatusMatcher
    from .transport import CallResult
    from .typed import TypedClient
    from .urls import resolve_url


def __getattr__(name: str) -> Any:
    module_info = _EXPORTS.get(name)
    if module_info is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

    module_name, attribute = module_info
    module = import_module(module_name, __name__)
    value = getattr(module, attribute)
    globals()[name] = value
    return value
