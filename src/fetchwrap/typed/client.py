"""Contract-checked client built on the untyped pipeline."""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from typing import Any, Literal

from pydantic import TypeAdapter, ValidationError

from ..client import Client
from ..config import ClientOptions
from ..errors import TypedModelValidationError
from ..transport import CallResult
from .contracts import ContractKey, OperationContract

TYPED_DEFAULTS = ClientOptions(retry_delay_ms=(100, 500, 2500, 10000), status=(2,))

_adapter_cache: dict[Any, TypeAdapter[Any]] = {}
_MAX_SAMPLE_DEPTH = 2
_MAX_SAMPLE_ITEMS = 5
_MAX_SAMPLE_STRING = 200


def _model_name(model_type: Any) -> str:
    return getattr(model_type, "__name__", repr(model_type))


def _adapter_for(model_type: Any) -> TypeAdapter[Any]:
    try:
        adapter = _adapter_cache.get(model_type)
    except TypeError:
        return TypeAdapter(model_type)

    if adapter is None:
        adapter = TypeAdapter(model_type)
        _adapter_cache[model_type] = adapter
    return adapter


def _sample_payload(value: Any, depth: int = 0) -> Any:
    if depth > _MAX_SAMPLE_DEPTH:
        return "<trimmed>"

    if isinstance(value, dict):
        sampled: dict[str, Any] = {}
        for index, (key, nested) in enumerate(value.items()):
            if index >= _MAX_SAMPLE_ITEMS:
                sampled["..."] = "<trimmed>"
                break
            sampled[str(key)] = _sample_payload(nested, depth + 1)
        return sampled

    if isinstance(value, list):
        sampled_items = [_sample_payload(item, depth + 1) for item in value[:_MAX_SAMPLE_ITEMS]]
        if len(value) > _MAX_SAMPLE_ITEMS:
            sampled_items.append("<trimmed>")
        return sampled_items

    if isinstance(value, str):
        return value if len(value) <= _MAX_SAMPLE_STRING else f"{value[:_MAX_SAMPLE_STRING]}..."

    if isinstance(value, (int, float, bool)) or value is None:
        return value

    return repr(value)


@dataclasses.dataclass(frozen=True, slots=True)
class ResponseModels:
    """Response body types per status code or status block, with an optional fallback."""

    by_status: Mapping[int, Any] = dataclasses.field(default_factory=dict)
    fallback: Any | None = None

    def model_for(self, status_code: int) -> Any | None:
        if status_code in self.by_status:
            return self.by_status[status_code]
        block = status_code // 100
        if block in self.by_status:
            return self.by_status[block]
        return self.fallback


def _issue(location: str, name: str, message: str) -> dict[str, Any]:
    return {"loc": (location, name), "msg": message}


def check_request(
    contract: OperationContract,
    *,
    path_params: Mapping[str, Any] | None,
    query: Mapping[str, Any] | None,
    headers: Mapping[str, str] | None,
    cookies: Mapping[str, str] | None,
    body: Any,
) -> None:
    """Validate call parameters against ``contract`` before any I/O happens."""
    issues: list[dict[str, Any]] = []
    supplied = {
        "path": {key for key, value in (path_params or {}).items() if value is not None},
        "query": {key for key, value in (query or {}).items() if value is not None},
        "header": {key.lower() for key, value in (headers or {}).items() if value is not None},
        "cookie": {key for key, value in (cookies or {}).items() if value is not None},
    }
    declared = {
        "path": set(contract.path_params),
        "query": set(contract.query_params),
        "header": {name.lower() for name in contract.header_params},
        "cookie": set(contract.cookie_params),
    }

    for location in ("path", "query", "cookie"):
        for name in sorted(supplied[location] - declared[location]):
            issues.append(_issue(location, name, "parameter is not declared by the operation"))

    required = set(contract.required_params)
    for location, names in declared.items():
        for name in sorted(names):
            original = name
            if location == "header":
                original = next((item for item in contract.header_params if item.lower() == name), name)
            if original in required and name not in supplied[location]:
                issues.append(_issue(location, original, "required parameter is missing"))

    if body is not None and not contract.has_body:
        issues.append(_issue("body", "body", "operation does not accept a request body"))
    if body is None and contract.body_required:
        issues.append(_issue("body", "body", "request body is required"))

    if issues:
        raise TypedModelValidationError(
            operation=contract.name,
            boundary="request",
            model_name=contract.name,
            errors=issues,
        )


def parse_typed_body(
    contract: OperationContract,
    models: ResponseModels,
    status_code: int,
    payload: Any,
    *,
    boundary: Literal["request", "response"] = "response",
) -> Any:
    model_type = models.model_for(status_code)
    if model_type is None:
        return payload

    adapter = _adapter_for(model_type)
    try:
        return adapter.validate_python(payload)
    except ValidationError as error:
        raise TypedModelValidationError(
            operation=contract.name,
            boundary=boundary,
            model_name=_model_name(model_type),
            status_code=status_code,
            errors=error.errors(),
            raw_sample=_sample_payload(payload),
        ) from error


class TypedClient:
    """Client whose calls are checked against registered operation contracts.

    Undeclared operations raise ``ValueError``; use :attr:`raw` for unchecked calls.
    """

    def __init__(
        self,
        contracts: Mapping[ContractKey, OperationContract],
        *,
        client: Client | None = None,
        models: Mapping[ContractKey, ResponseModels] | None = None,
        **client_kwargs: Any,
    ) -> None:
        if client is not None and client_kwargs:
            raise TypeError("pass either `client` or client keyword arguments, not both")
        self._client = client or Client(fallback_options=TYPED_DEFAULTS, **client_kwargs)
        self._contracts = dict(contracts)
        self._models: dict[ContractKey, ResponseModels] = dict(models or {})

    @property
    def raw(self) -> Client:
        return self._client

    def contract_for(self, path: str, method: str) -> OperationContract:
        contract = self._contracts.get((path, method.lower()))
        if contract is None:
            raise ValueError(f"no contract registered for {method.upper()} {path}")
        return contract

    def register_models(self, path: str, method: str, models: ResponseModels) -> None:
        self.contract_for(path, method)
        self._models[(path, method.lower())] = models

    def at(self, path: str) -> TypedRoute:
        return TypedRoute(self, path)

    async def call(
        self,
        method: str,
        path: str,
        *,
        path_params: Mapping[str, Any] | None = None,
        query: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        cookies: Mapping[str, str] | None = None,
        body: Any | None = None,
        options: ClientOptions | None = None,
        **fields: Any,
    ) -> CallResult:
        contract = self.contract_for(path, method)
        check_request(
            contract,
            path_params=path_params,
            query=query,
            headers=headers,
            cookies=cookies,
            body=body,
        )
        result = await self._client.request(
            method,
            path,
            body=body,
            options=options,
            path_params=path_params,
            query=query,
            headers=headers,
            cookies=cookies,
            **fields,
        )
        models = self._models.get(contract.key)
        if models is None:
            return result
        parsed = parse_typed_body(contract, models, result.status, result.body)
        return dataclasses.replace(result, body=parsed)

    async def close(self) -> None:
        await self._client.close()

    async def __aenter__(self) -> TypedClient:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


class TypedRoute:
    def __init__(self, client: TypedClient, path: str) -> None:
        self._client = client
        self.path = path

    async def get(self, **kwargs: Any) -> CallResult:
        return await self._client.call("get", self.path, **kwargs)

    async def head(self, **kwargs: Any) -> CallResult:
        return await self._client.call("head", self.path, **kwargs)

    async def options(self, **kwargs: Any) -> CallResult:
        return await self._client.call("options", self.path, **kwargs)

    async def trace(self, **kwargs: Any) -> CallResult:
        return await self._client.call("trace", self.path, **kwargs)

    async def put(self, **kwargs: Any) -> CallResult:
        return await self._client.call("put", self.path, **kwargs)

    async def delete(self, **kwargs: Any) -> CallResult:
        return await self._client.call("delete", self.path, **kwargs)

    async def post(self, **kwargs: Any) -> CallResult:
        return await self._client.call("post", self.path, **kwargs)

    async def patch(self, **kwargs: Any) -> CallResult:
        return await self._client.call("patch", self.path, **kwargs)

    async def query(self, **kwargs: Any) -> CallResult:
        return await self._client.call("query", self.path, **kwargs)
