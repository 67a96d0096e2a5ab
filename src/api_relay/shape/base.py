"""Data models for reduced OpenAPI documents.

The reducer turns any OpenAPI-like document into these models; the UI
consumes them as JSON (camelCase keys, absent fields omitted).
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]
ParamLocation = Literal["path", "query", "header"]


class _Shape(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ParameterSchemaHint(_Shape):
    type: str | None = None
    format: str | None = None
    enum: list[str] | None = None  # string enums only
    default: Any = None


class ParameterShape(_Shape):
    """A single path, query or header parameter."""

    name: str
    location: ParamLocation = Field(alias="in")
    required: bool
    hints: ParameterSchemaHint = Field(default_factory=ParameterSchemaHint, alias="schema")


class BodyField(_Shape):
    name: str
    required: bool
    type: str | None = None


class RequestBodyShape(_Shape):
    """Declared request body.

    Either ``fields`` (a flat top-level object schema) or ``raw_schema``
    (anything else) is set, never both.
    """

    content_types: list[str] = Field(alias="contentTypes", min_length=1)
    fields: list[BodyField] | None = None
    raw_schema: Any = Field(default=None, alias="rawSchema")

    @model_validator(mode="after")
    def _one_schema_variant(self):
        if self.fields is not None and self.raw_schema is not None:
            raise ValueError("fields and rawSchema are mutually exclusive")
        return self


class BearerAuthHint(_Shape):
    kind: Literal["bearer"] = "bearer"
    header: Literal["Authorization"] = "Authorization"
    prefix: Literal["Bearer "] = "Bearer "


class ApiKeyAuthHint(_Shape):
    kind: Literal["apiKey"] = "apiKey"
    location: Literal["header"] = Field(default="header", alias="in")
    name: str


AuthHint = Annotated[Union[BearerAuthHint, ApiKeyAuthHint], Field(discriminator="kind")]


class OperationShape(_Shape):
    """One method on one path, keyed ``"{METHOD} {path}"``."""

    key: str
    method: HttpMethod
    path: str  # /users/{id}
    summary: str | None = None
    description: str | None = None
    parameters: list[ParameterShape] = []
    request_body: RequestBodyShape | None = Field(default=None, alias="requestBody")
    auth_hint: AuthHint | None = Field(default=None, alias="authHint")


class SpecShape(_Shape):
    title: str | None = None
    version: str | None = None
    servers: list[str] = []
    operations: list[OperationShape] = []

    def find(self, key: str) -> OperationShape | None:
        for operation in self.operations:
            if operation.key == key:
                return operation
        return None
