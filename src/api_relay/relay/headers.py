"""Header filtering for relayed requests and responses."""

from typing import Iterable, Mapping

from requests.structures import CaseInsensitiveDict

# Never forwarded upstream, whatever the caller asks for.
# requests derives host and content-length from the URL and body.
HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
        "host",
        "content-length",
    }
)

STRIPPED_RESPONSE_HEADERS = frozenset({"set-cookie", "connection", "transfer-encoding"})

RELAY_TARGET_HEADER = "x-relay-target"


def is_hop_by_hop_header(name: str) -> bool:
    return name.strip().lower() in HOP_BY_HOP_HEADERS


def build_upstream_headers(
    caller_headers: Mapping[str, str],
    content_type: str | None = None,
) -> CaseInsensitiveDict:
    """Copy caller headers minus the hop-by-hop set.

    ``content_type`` is injected only when the caller did not set a
    ``content-type`` header of their own.
    """
    headers = CaseInsensitiveDict()
    for name, value in caller_headers.items():
        if not name or is_hop_by_hop_header(name):
            continue
        headers[name] = value

    if content_type and "content-type" not in headers:
        headers["content-type"] = content_type
    return headers


def build_response_headers(
    upstream_headers: Iterable[tuple[str, str]] | Mapping[str, str],
    target_origin: str,
) -> CaseInsensitiveDict:
    """Copy upstream response headers for the caller and force the relay's own."""
    items = upstream_headers.items() if isinstance(upstream_headers, Mapping) else upstream_headers
    headers = CaseInsensitiveDict()
    for name, value in items:
        if name.lower() in STRIPPED_RESPONSE_HEADERS:
            continue
        headers[name] = value

    headers["cache-control"] = "no-store"
    headers[RELAY_TARGET_HEADER] = target_origin
    return headers
