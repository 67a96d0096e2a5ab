"""OpenAPI / Swagger document reducer.

Reduces an OpenAPI 3.x or Swagger 2.0 document (or anything resembling one)
into a SpecShape. Input is untrusted: every lookup falls back to an empty
value instead of raising.
"""

from typing import Any

from .base import (
    ApiKeyAuthHint,
    BearerAuthHint,
    BodyField,
    OperationShape,
    ParameterSchemaHint,
    ParameterShape,
    RequestBodyShape,
    SpecShape,
)
from .detect import parse_spec_text

HTTP_METHODS = ("get", "post", "put", "patch", "delete", "options", "head")
PARAM_LOCATIONS = ("path", "query", "header")
MAX_BODY_FIELDS = 50


def reduce_spec(text: str) -> SpecShape:
    """Parse and reduce a JSON or YAML spec document."""
    return reduce_document(parse_spec_text(text))


def reduce_document(doc: Any) -> SpecShape:
    """Reduce an already-parsed document tree."""
    doc = _as_dict(doc)
    schemes = _security_schemes(doc)
    global_hint = _global_auth_hint(schemes)

    operations = []
    for path, path_item in _as_dict(doc.get("paths")).items():
        if not isinstance(path_item, dict):
            continue
        path = str(path)

        for method in HTTP_METHODS:
            operation = path_item.get(method)
            if not operation:
                continue
            operation = _as_dict(operation)
            method_upper = method.upper()

            operations.append(
                OperationShape(
                    key=f"{method_upper} {path}",
                    method=method_upper,
                    path=path,
                    summary=_str_or_none(operation.get("summary")),
                    description=_str_or_none(operation.get("description")),
                    parameters=_collect_parameters(path_item, operation),
                    request_body=_reduce_request_body(operation.get("requestBody")),
                    auth_hint=_operation_auth_hint(schemes, operation) or global_hint,
                )
            )

    operations.sort(key=lambda op: op.key)

    info = _as_dict(doc.get("info"))
    return SpecShape(
        title=_str_or_none(info.get("title")),
        version=_str_or_none(info.get("version")),
        servers=_parse_servers(doc),
        operations=operations,
    )


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _parse_servers(doc: dict) -> list[str]:
    servers = [
        server["url"]
        for server in _as_list(doc.get("servers"))
        if isinstance(server, dict) and isinstance(server.get("url"), str) and server["url"]
    ]
    if servers:
        return servers

    # Swagger 2.0
    host = doc.get("host")
    if isinstance(host, str) and host:
        schemes = [s for s in _as_list(doc.get("schemes")) if isinstance(s, str) and s]
        base_path = _str_or_none(doc.get("basePath")) or ""
        scheme = schemes[0] if schemes else "https"
        return [f"{scheme}://{host}{base_path}"]
    return []


def _collect_parameters(path_item: dict, operation: dict) -> list[ParameterShape]:
    # path-level first, then operation-level; no de-duplication
    raw_params = _as_list(path_item.get("parameters")) + _as_list(operation.get("parameters"))

    result = []
    for p in raw_params:
        if not isinstance(p, dict):
            continue
        location = p.get("in")
        if location not in PARAM_LOCATIONS:
            continue
        name = p.get("name")
        if not isinstance(name, str) or not name:
            continue

        schema = _as_dict(p.get("schema"))
        enum = schema.get("enum")
        if not (isinstance(enum, list) and all(isinstance(v, str) for v in enum)):
            enum = None

        result.append(
            ParameterShape(
                name=name,
                location=location,
                required=bool(p.get("required")) or location == "path",
                hints=ParameterSchemaHint(
                    type=_str_or_none(schema.get("type")),
                    format=_str_or_none(schema.get("format")),
                    enum=enum,
                    default=schema.get("default"),
                ),
            )
        )
    return result


def _reduce_request_body(body: Any) -> RequestBodyShape | None:
    if not isinstance(body, dict):
        return None
    content = _as_dict(body.get("content"))
    content_types = [str(ct) for ct in content]
    if not content_types:
        return None

    json_type = _pick_json_type(content)
    schema = _as_dict(content[json_type]).get("schema") if json_type is not None else None

    fields = _object_schema_fields(schema)
    if fields is not None:
        return RequestBodyShape(content_types=content_types, fields=fields)
    return RequestBodyShape(content_types=content_types, raw_schema=schema)


def _pick_json_type(content: dict) -> Any:
    if isinstance(content.get("application/json"), dict):
        return "application/json"
    for content_type in content:
        if "json" in str(content_type).lower():
            return content_type
    return None


def _object_schema_fields(schema: Any) -> list[BodyField] | None:
    """Flatten a top-level object schema; None when it can't be flattened."""
    if not isinstance(schema, dict) or schema.get("type") != "object":
        return None
    properties = schema.get("properties")
    if not isinstance(properties, dict):
        return None

    required = _as_list(schema.get("required"))
    fields = [
        BodyField(
            name=str(name),
            required=name in required,
            type=_str_or_none(_as_dict(prop).get("type")),
        )
        for name, prop in properties.items()
    ]
    if not fields or len(fields) > MAX_BODY_FIELDS:
        return None
    return fields


def _security_schemes(doc: dict) -> dict:
    schemes = _as_dict(doc.get("components")).get("securitySchemes")
    if isinstance(schemes, dict):
        return schemes
    # Swagger 2.0
    return _as_dict(doc.get("securityDefinitions"))


def _hint_from_scheme(scheme: Any) -> BearerAuthHint | ApiKeyAuthHint | None:
    if not isinstance(scheme, dict):
        return None
    if scheme.get("type") == "http" and scheme.get("scheme") == "bearer":
        return BearerAuthHint()
    if scheme.get("type") == "apiKey" and scheme.get("in") == "header":
        name = scheme.get("name")
        if isinstance(name, str):
            return ApiKeyAuthHint(name=name)
    return None


def _global_auth_hint(schemes: dict) -> BearerAuthHint | ApiKeyAuthHint | None:
    for scheme in schemes.values():
        hint = _hint_from_scheme(scheme)
        if hint is not None:
            return hint
    return None


def _operation_auth_hint(schemes: dict, operation: dict) -> BearerAuthHint | ApiKeyAuthHint | None:
    for requirement in _as_list(operation.get("security")):
        if not isinstance(requirement, dict):
            continue
        for scheme_name in requirement:
            hint = _hint_from_scheme(schemes.get(scheme_name))
            if hint is not None:
                return hint
    return None
