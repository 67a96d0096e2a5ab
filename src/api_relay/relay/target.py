"""Target URL builder: base URL + path template + path/query params."""

import re
from urllib.parse import SplitResult, parse_qsl, quote, urlencode, urljoin, urlsplit, urlunsplit

from api_relay.errors import InvalidTargetUrl

_PLACEHOLDER = re.compile(r"\{([^}]+)\}")

# Characters encodeURIComponent leaves alone besides the RFC 3986 unreserved set
_COMPONENT_SAFE = "!~*'()"


def parse_absolute_url(url: str) -> SplitResult:
    """Split ``url`` and require a scheme and a host."""
    try:
        parts = urlsplit(url.strip())
        parts.port  # raises ValueError on a malformed port
    except (ValueError, AttributeError):
        raise InvalidTargetUrl(f"Invalid URL: {url!r}") from None
    if not parts.scheme or not parts.hostname:
        raise InvalidTargetUrl(f"Invalid URL: {url!r}")
    return parts


def is_absolute_url(url: str) -> bool:
    try:
        parse_absolute_url(url)
    except InvalidTargetUrl:
        return False
    return True


def expand_path(template: str, path_params: dict[str, str]) -> str:
    """Replace every ``{name}`` token with the percent-encoded param value.

    Unknown names expand to an empty string.
    """
    return _PLACEHOLDER.sub(
        lambda m: quote(path_params.get(m.group(1), ""), safe=_COMPONENT_SAFE),
        template,
    )


def set_query_params(url: str, query_params: dict[str, str]) -> str:
    """Set each param on ``url``'s query, replacing same-named pairs."""
    if not query_params:
        return url

    parts = urlsplit(url)
    pairs = parse_qsl(parts.query, keep_blank_values=True)

    for name, value in query_params.items():
        replaced = False
        updated = []
        for key, existing in pairs:
            if key != name:
                updated.append((key, existing))
            elif not replaced:
                updated.append((key, value))
                replaced = True
        if not replaced:
            updated.append((name, value))
        pairs = updated

    return urlunsplit(parts._replace(query=urlencode(pairs)))


def build_target_url(
    base: str,
    path_template: str,
    path_params: dict[str, str] | None = None,
    query_params: dict[str, str] | None = None,
) -> str:
    """Compose the absolute URL a relay request is sent to."""
    base_parts = parse_absolute_url(base)
    path = expand_path(path_template, path_params or {})
    url = urljoin(urlunsplit(base_parts), path)
    return set_query_params(url, query_params or {})


def origin_of(url: str | SplitResult) -> str:
    """``scheme://host[:port]`` with the default port omitted."""
    parts = urlsplit(url) if isinstance(url, str) else url
    host = parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    port = parts.port
    default_port = {"http": 80, "https": 443}.get(parts.scheme)
    if port is not None and port != default_port:
        host = f"{host}:{port}"
    return f"{parts.scheme}://{host}"
