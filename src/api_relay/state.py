"""Compact URL-safe codec for the request-builder form state.

State is JSON, deflated with zlib and written as unpadded base64url. Decoding
never fails: anything unreadable yields the default state.
"""

import base64
import binascii
import json
import zlib
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from api_relay.relay.target import is_absolute_url

MAX_STATE_BYTES = 20_000
MAX_INFLATED_BYTES = 1_000_000


class AppState(BaseModel):
    """Current selections of the request-builder form."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    base_url: str = Field(default="", alias="baseUrl")
    spec_url: str | None = Field(default=None, alias="specUrl")
    operation_key: str | None = Field(default=None, alias="operationKey")

    manual_method: str = Field(default="GET", alias="manualMethod")
    manual_path: str = Field(default="/", alias="manualPath")

    path_params: dict[str, str] = Field(default_factory=dict, alias="pathParams")
    query_params: dict[str, str] = Field(default_factory=dict, alias="queryParams")
    header_params: dict[str, str] = Field(default_factory=dict, alias="headerParams")

    content_type: str = Field(default="application/json", alias="contentType")
    body_json: str = Field(default="", alias="bodyJson")

    @field_validator("*", mode="wrap")
    @classmethod
    def _fall_back_to_default(cls, value: Any, handler, info):
        # a bad field resets to its default instead of failing the whole state
        try:
            return handler(value)
        except ValidationError:
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)

    @field_validator("base_url")
    @classmethod
    def _base_url_is_absolute(cls, value: str) -> str:
        return value if is_absolute_url(value) else ""

    @field_validator("spec_url")
    @classmethod
    def _spec_url_is_absolute(cls, value: str | None) -> str | None:
        return value if value is not None and is_absolute_url(value) else None


DEFAULT_STATE = AppState()


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64url_decode(token: str) -> bytes:
    padded = token + "=" * (-len(token) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


def encode_state(state: AppState) -> str:
    payload = json.dumps(state.model_dump(by_alias=True, exclude_none=True), separators=(",", ":"))
    return _b64url_encode(zlib.compress(payload.encode("utf-8")))


def decode_state(token: str | None) -> AppState:
    if not token:
        return DEFAULT_STATE.model_copy(deep=True)

    try:
        raw = _b64url_decode(token)
        if len(raw) > MAX_STATE_BYTES:
            return DEFAULT_STATE.model_copy(deep=True)

        inflater = zlib.decompressobj()
        inflated = inflater.decompress(raw, MAX_INFLATED_BYTES)
        if inflater.unconsumed_tail:
            return DEFAULT_STATE.model_copy(deep=True)

        return AppState.model_validate(json.loads(inflated.decode("utf-8")))
    except (binascii.Error, zlib.error, UnicodeError, ValueError, ValidationError):
        return DEFAULT_STATE.model_copy(deep=True)
