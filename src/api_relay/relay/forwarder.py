"""Relay forwarder.

Turns a ``RelayRequest`` into one outbound call and hands back the upstream
response as a stream of raw chunks.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Iterator

import requests
from pydantic import BaseModel, ConfigDict, Field, field_validator
from requests.structures import CaseInsensitiveDict

from api_relay.errors import BlockedTarget, FetchFailure, InvalidBody
from api_relay.relay.guard import is_safe_target
from api_relay.relay.headers import build_response_headers, build_upstream_headers
from api_relay.relay.target import build_target_url, is_absolute_url, origin_of

logger = logging.getLogger(__name__)

BODYLESS_METHODS = ("GET", "HEAD")
DEFAULT_CHUNK_SIZE = 64 * 1024


class RelayRequest(BaseModel):
    """A structured description of the request to relay."""

    model_config = ConfigDict(populate_by_name=True)

    base_url: str = Field(alias="baseUrl", min_length=1)
    method: str = Field(min_length=1)
    path: str = Field(min_length=1)
    path_params: dict[str, str] = Field(default_factory=dict, alias="pathParams")
    query_params: dict[str, str] = Field(default_factory=dict, alias="queryParams")
    headers: dict[str, str] = Field(default_factory=dict)
    content_type: str | None = Field(default=None, alias="contentType")
    body: str | None = None

    @field_validator("base_url")
    @classmethod
    def _require_absolute(cls, value: str) -> str:
        if not is_absolute_url(value):
            raise ValueError("baseUrl must be an absolute URL")
        return value


@dataclass
class RelayResponse:
    """Upstream status and headers, plus the still-open body stream."""

    status_code: int
    reason: str
    headers: CaseInsensitiveDict
    target: str
    upstream: requests.Response = field(repr=False)
    chunk_size: int = DEFAULT_CHUNK_SIZE

    def iter_body(self) -> Iterator[bytes]:
        """Yield the upstream body verbatim (no content decoding).

        The upstream connection is released when the stream ends, fails, or
        the consumer stops early.
        """
        try:
            for chunk in self.upstream.raw.stream(self.chunk_size, decode_content=False):
                if chunk:
                    yield chunk
        finally:
            self.upstream.close()

    def close(self) -> None:
        self.upstream.close()


def _reject_constant(name: str):
    raise ValueError(f"invalid JSON constant {name}")


def coerce_body(text: str, content_type: str | None) -> bytes:
    """Encode the outbound body; JSON bodies are validated and re-serialized."""
    if "json" in (content_type or "").lower():
        try:
            parsed = json.loads(text, parse_constant=_reject_constant)
        except ValueError as e:
            raise InvalidBody(f"Invalid JSON body: {e}") from None
        return json.dumps(parsed, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return text.encode("utf-8")


class RelayForwarder:
    """Validates, filters and sends relay requests."""

    def __init__(
        self,
        session: requests.Session | None = None,
        timeout: float = 30.0,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self.session = session or requests.Session()
        self.timeout = timeout
        self.chunk_size = chunk_size

    def forward(self, relay_request: RelayRequest) -> RelayResponse:
        target = build_target_url(
            relay_request.base_url,
            relay_request.path,
            relay_request.path_params,
            relay_request.query_params,
        )
        origin = origin_of(target)
        if not is_safe_target(target):
            logger.warning("Blocked relay target %s", origin)
            raise BlockedTarget()

        headers = build_upstream_headers(relay_request.headers, relay_request.content_type)
        method = relay_request.method.upper()

        data = None
        if method not in BODYLESS_METHODS and relay_request.body:
            data = coerce_body(relay_request.body, headers.get("content-type"))

        try:
            upstream = self.session.request(
                method,
                target,
                headers=headers,
                data=data,
                allow_redirects=False,
                stream=True,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.info("Relay %s %s failed: %s", method, origin, e)
            raise FetchFailure(f"Upstream request failed: {e.__class__.__name__}") from e

        logger.info("Relay %s %s -> %s", method, origin, upstream.status_code)
        return RelayResponse(
            status_code=upstream.status_code,
            reason=upstream.reason or "",
            headers=build_response_headers(upstream.headers, origin),
            target=target,
            upstream=upstream,
            chunk_size=self.chunk_size,
        )
