"""Normalize completion-service endpoint JSON into canonical Endpoints."""

from __future__ import annotations

from typing import Any

from schemasync.models import (
    Endpoint,
    Parameter,
    RateLimit,
    RequestBody,
    ResponseSpec,
)
from schemasync.normalize._common import (
    as_bool,
    as_dict,
    as_int,
    as_list,
    as_str,
    as_str_list,
    first_of,
)
from schemasync.types import normalize_type


def _normalize_parameter(raw: Any, required_default: bool) -> Parameter | None:
    if isinstance(raw, str):
        name = raw.strip().lstrip(":")
        return Parameter(name=name, required=required_default) if name else None
    data = as_dict(raw)
    name = as_str(data.get("name"))
    if not name:
        return None
    enum_values = data.get("enum_values")
    return Parameter(
        name=name,
        type=normalize_type(as_str(data.get("type"))),
        required=as_bool(data.get("required"), required_default),
        description=as_str(data.get("description")),
        default_value=data.get("default_value"),
        enum_values=list(as_list(enum_values)),
    )


def _normalize_parameters(raw: Any, required_default: bool) -> list[Parameter]:
    params = (_normalize_parameter(p, required_default) for p in as_list(raw))
    return [p for p in params if p is not None]


def _normalize_request_body(raw: Any) -> RequestBody | None:
    if not raw:
        return None
    if isinstance(raw, str):
        return RequestBody(description=raw)
    data = as_dict(raw)
    if not data:
        return None
    return RequestBody(
        content_type=as_str(data.get("content_type"), "application/json"),
        required=data.get("required") is not False,
        description=as_str(data.get("description")),
        schema=data.get("schema"),
        example=data.get("example"),
    )


def _normalize_response(raw: Any) -> ResponseSpec:
    if isinstance(raw, (int, str)) and not isinstance(raw, bool):
        return ResponseSpec(status_code=as_int(raw, 200))
    data = as_dict(raw)
    return ResponseSpec(
        status_code=as_int(
            first_of(data, "status_code", "status", "code"), 200
        ),
        description=as_str(data.get("description")),
        content_type=as_str(data.get("content_type"), "application/json"),
        schema=data.get("schema"),
        example=data.get("example"),
    )


def _normalize_responses(raw: Any) -> list[ResponseSpec]:
    if isinstance(raw, dict):
        # {"200": {...}, "404": "Not found"}
        responses = []
        for code, value in raw.items():
            resp = _normalize_response(value if isinstance(value, dict) else {})
            resp.status_code = as_int(code, resp.status_code)
            if isinstance(value, str):
                resp.description = value
            responses.append(resp)
        return responses
    return [_normalize_response(r) for r in as_list(raw)]


def _normalize_rate_limit(raw: Any) -> RateLimit | None:
    data = as_dict(raw)
    if not data:
        return None
    return RateLimit(
        enabled=as_bool(data.get("enabled")),
        max_requests=as_int(data.get("max_requests")),
        window_ms=as_int(data.get("window_ms")),
    )


def normalize_endpoint(raw: Any) -> Endpoint:
    """Normalize one endpoint description.

    Method defaults to GET and is upper-cased; authentication is required
    unless the payload explicitly says ``auth_required: false``.
    """
    data = as_dict(raw)
    return Endpoint(
        method=as_str(data.get("method"), "GET").upper(),
        path=as_str(first_of(data, "path", "endpoint", "url"), "/"),
        summary=as_str(data.get("summary")),
        description=as_str(data.get("description")),
        module=as_str(data.get("module")),
        auth_required=data.get("auth_required") is not False,
        roles_allowed=as_str_list(first_of(data, "roles", "roles_allowed")),
        permissions=as_str_list(data.get("permissions")),
        tags=as_str_list(data.get("tags")),
        status=as_str(data.get("status"), "planned"),
        version=as_str(data.get("version"), "v1"),
        related_entity=as_str(data.get("related_entity")),
        path_params=_normalize_parameters(data.get("path_params"), True),
        query_params=_normalize_parameters(data.get("query_params"), False),
        headers=list(as_list(data.get("headers"))),
        request_body=_normalize_request_body(data.get("request_body")),
        responses=_normalize_responses(data.get("responses")),
        rate_limit=_normalize_rate_limit(data.get("rate_limit")),
        deprecated_date=as_str(data.get("deprecated_date")) or None,
        deprecated_reason=as_str(data.get("deprecated_reason")) or None,
        notes=as_str(data.get("notes")),
    )


def normalize_endpoints(raw: Any) -> list[Endpoint]:
    return [normalize_endpoint(ep) for ep in as_list(raw)]
