"""Operation contracts extracted from OpenAPI documents, plus their code generator."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, fields
from typing import Any

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace", "query")
PARAMETER_LOCATIONS = ("path", "query", "header", "cookie")
_STATUS_BLOCK = re.compile(r"^([1-5])XX$", re.IGNORECASE)

ContractKey = tuple[str, str]


@dataclass(frozen=True, slots=True)
class OperationContract:
    path: str
    method: str
    operation_id: str | None = None
    path_params: tuple[str, ...] = ()
    query_params: tuple[str, ...] = ()
    header_params: tuple[str, ...] = ()
    cookie_params: tuple[str, ...] = ()
    required_params: tuple[str, ...] = ()
    has_body: bool = False
    body_required: bool = False
    statuses: tuple[int, ...] = ()
    has_fallback: bool = False

    @property
    def key(self) -> ContractKey:
        return (self.path, self.method)

    @property
    def name(self) -> str:
        return self.operation_id or f"{self.method.upper()} {self.path}"


def deref(value: Any, document: Mapping[str, Any], *, _seen: frozenset[str] = frozenset()) -> Any:
    """Resolve local ``$ref`` pointers (``#/components/...``) throughout ``value``."""
    if isinstance(value, Mapping):
        ref = value.get("$ref")
        if isinstance(ref, str) and ref.startswith("#/"):
            if ref in _seen:
                return {}
            return deref(_lookup_pointer(document, ref), document, _seen=_seen | {ref})
        return {key: deref(item, document, _seen=_seen) for key, item in value.items()}
    if isinstance(value, list):
        return [deref(item, document, _seen=_seen) for item in value]
    return value


def _lookup_pointer(document: Mapping[str, Any], ref: str) -> Any:
    cursor: Any = document
    for raw_part in ref[2:].split("/"):
        part = raw_part.replace("~1", "/").replace("~0", "~")
        if not isinstance(cursor, Mapping) or part not in cursor:
            raise KeyError(f"unresolvable reference {ref}")
        cursor = cursor[part]
    return cursor


def _merge_parameters(shared: Iterable[Any], own: Iterable[Any]) -> list[Mapping[str, Any]]:
    merged: dict[tuple[str, str], Mapping[str, Any]] = {}
    for parameter in (*shared, *own):
        if not isinstance(parameter, Mapping):
            continue
        name = parameter.get("name")
        location = parameter.get("in")
        if isinstance(name, str) and location in PARAMETER_LOCATIONS:
            merged[(name, location)] = parameter
    return list(merged.values())


def _parse_statuses(responses: Mapping[str, Any]) -> tuple[int, ...]:
    statuses: list[int] = []
    for code in responses:
        text = str(code)
        block = _STATUS_BLOCK.match(text)
        if block is not None:
            statuses.append(int(block.group(1)))
        elif text.isdigit():
            statuses.append(int(text))
    return tuple(sorted(set(statuses)))


def contracts_from_openapi(document: Mapping[str, Any]) -> dict[ContractKey, OperationContract]:
    contracts: dict[ContractKey, OperationContract] = {}
    paths = document.get("paths")
    if not isinstance(paths, Mapping):
        return contracts

    for path, raw_item in paths.items():
        item = deref(raw_item, document)
        if not isinstance(item, Mapping):
            continue
        shared = item.get("parameters") or []
        for method, operation in item.items():
            if method.lower() not in HTTP_METHODS or not isinstance(operation, Mapping):
                continue

            parameters = _merge_parameters(shared, operation.get("parameters") or [])
            grouped: dict[str, list[str]] = {location: [] for location in PARAMETER_LOCATIONS}
            required: list[str] = []
            for parameter in parameters:
                grouped[parameter["in"]].append(parameter["name"])
                if parameter.get("required") or parameter["in"] == "path":
                    required.append(parameter["name"])

            request_body = operation.get("requestBody")
            responses = operation.get("responses")
            responses = responses if isinstance(responses, Mapping) else {}
            operation_id = operation.get("operationId")

            contract = OperationContract(
                path=str(path),
                method=method.lower(),
                operation_id=operation_id if isinstance(operation_id, str) else None,
                path_params=tuple(grouped["path"]),
                query_params=tuple(grouped["query"]),
                header_params=tuple(grouped["header"]),
                cookie_params=tuple(grouped["cookie"]),
                required_params=tuple(required),
                has_body=isinstance(request_body, Mapping),
                body_required=isinstance(request_body, Mapping) and bool(request_body.get("required")),
                statuses=_parse_statuses(responses),
                has_fallback="default" in responses,
            )
            contracts[contract.key] = contract
    return contracts


def _render_order(contract: OperationContract) -> tuple[str, int]:
    method = contract.method
    return (contract.path, HTTP_METHODS.index(method) if method in HTTP_METHODS else len(HTTP_METHODS))


def render_contracts_module(contracts: Mapping[ContractKey, OperationContract] | Iterable[OperationContract]) -> str:
    """Render Python source declaring ``CONTRACTS`` for the given contracts.

    Meant for offline generation: the output is checked in and imported instead of
    parsing the OpenAPI document at runtime.
    """
    items = contracts.values() if isinstance(contracts, Mapping) else contracts
    ordered = sorted(items, key=_render_order)

    lines = [
        '"""Generated operation contracts. Do not edit by hand."""',
        "",
        "from fetchwrap.typed.contracts import OperationContract",
        "",
        "CONTRACTS = {",
    ]
    for contract in ordered:
        lines.append(f"    {contract.key!r}: OperationContract(")
        for option in fields(contract):
            value = getattr(contract, option.name)
            if value == option.default:
                continue
            lines.append(f"        {option.name}={value!r},")
        lines.append("    ),")
    lines.append("}")
    lines.append("")
    return "\n".join(lines)
