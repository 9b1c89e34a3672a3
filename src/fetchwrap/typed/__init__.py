"""Typed OpenAPI contracts and the contract-checked client."""

from __future__ import annotations

from .client import (
    TYPED_DEFAULTS,
    ResponseModels,
    TypedClient,
    TypedRoute,
    check_request,
    parse_typed_body,
)
from .contracts import (
    HTTP_METHODS,
    ContractKey,
    OperationContract,
    contracts_from_openapi,
    deref,
    render_contracts_module,
)

__all__ = [
    "ContractKey",
    "HTTP_METHODS",
    "OperationContract",
    "ResponseModels",
    "TYPED_DEFAULTS",
    "TypedClient",
    "TypedRoute",
    "check_request",
    "contracts_from_openapi",
    "deref",
    "parse_typed_body",
    "render_contracts_module",
]
