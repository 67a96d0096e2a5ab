import pytest
from pydantic import ValidationError

from api_relay.shape.base import (
    ApiKeyAuthHint,
    BearerAuthHint,
    BodyField,
    OperationShape,
    ParameterSchemaHint,
    ParameterShape,
    RequestBodyShape,
    SpecShape,
)


class TestParameterShape:
    def test_create_with_wire_names(self):
        p = ParameterShape.model_validate({"name": "id", "in": "path", "required": True, "schema": {"type": "integer"}})
        assert p.location == "path"
        assert p.hints.type == "integer"

    def test_rejects_cookie_location(self):
        with pytest.raises(ValidationError):
            ParameterShape(name="sid", location="cookie", required=False)

    def test_empty_hints_serialize_as_empty_schema(self):
        p = ParameterShape(name="q", location="query", required=False)
        assert p.to_json_dict() == {"name": "q", "in": "query", "required": False, "schema": {}}

    def test_is_immutable(self):
        p = ParameterShape(name="q", location="query", required=False, hints=ParameterSchemaHint())
        with pytest.raises(ValidationError):
            p.name = "other"


class TestRequestBodyShape:
    def test_requires_content_types(self):
        with pytest.raises(ValidationError):
            RequestBodyShape(content_types=[])

    def test_fields_and_raw_schema_exclusive(self):
        with pytest.raises(ValidationError):
            RequestBodyShape(
                content_types=["application/json"],
                fields=[BodyField(name="a", required=False)],
                raw_schema={"type": "object"},
            )


class TestAuthHint:
    def test_bearer_defaults(self):
        assert BearerAuthHint().to_json_dict() == {"kind": "bearer", "header": "Authorization", "prefix": "Bearer "}

    def test_discriminated_by_kind(self):
        op = OperationShape.model_validate(
            {
                "key": "GET /x",
                "method": "GET",
                "path": "/x",
                "authHint": {"kind": "apiKey", "in": "header", "name": "X-Key"},
            }
        )
        assert isinstance(op.auth_hint, ApiKeyAuthHint)
        assert op.auth_hint.name == "X-Key"


class TestSpecShape:
    def test_json_roundtrip(self):
        shape = SpecShape(
            title="t",
            servers=["https://api.example.com"],
            operations=[
                OperationShape(
                    key="POST /users",
                    method="POST",
                    path="/users",
                    request_body=RequestBodyShape(
                        content_types=["application/json"],
                        fields=[BodyField(name="name", required=True, type="string")],
                    ),
                    auth_hint=BearerAuthHint(),
                )
            ],
        )
        assert SpecShape.model_validate(shape.to_json_dict()) == shape

    def test_rejects_unknown_method(self):
        with pytest.raises(ValidationError):
            OperationShape(key="TRACE /x", method="TRACE", path="/x")
