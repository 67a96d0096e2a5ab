"""Host Safety Guard.

Best-effort filter on the literal hostname of a relay target. IP literals are
canonicalized first, as a browser URL parser would, so ``127.1`` or
``0x7f.0.0.1`` count as ``127.0.0.1``. Hostnames are not resolved, so a
public name pointing at a private address passes.
"""

import ipaddress
import re
import socket
from urllib.parse import SplitResult, urlsplit

ALLOWED_SCHEMES = ("http", "https")

BLOCKED_HOSTS = {"0.0.0.0", "127.0.0.1", "::1", "169.254.169.254"}

_DOTTED_QUAD = re.compile(r"^\d+\.\d+\.\d+\.\d+$")
_NUMERIC_LABEL = re.compile(r"^(0x[0-9a-f]*|\d+)$")


def normalize_host(host: str) -> str | None:
    """Lower-case ``host`` and render IP literals in canonical form.

    Decimal, hex, octal and short IPv4 spellings become a dotted quad and
    IPv4-mapped IPv6 addresses become their IPv4 address. Returns None for
    a numeric host that is not a valid address.
    """
    host = host.lower()
    if host.endswith("."):
        host = host[:-1]

    if ":" in host:
        try:
            address = ipaddress.IPv6Address(host)
        except ValueError:
            return None
        if address.ipv4_mapped is not None:
            return str(address.ipv4_mapped)
        return address.compressed

    labels = host.split(".")
    if not _NUMERIC_LABEL.match(labels[-1]):
        return host
    if not all(_NUMERIC_LABEL.match(label) for label in labels):
        return None
    try:
        return socket.inet_ntoa(socket.inet_aton(host))
    except OSError:
        return None


def is_safe_target(url: str | SplitResult) -> bool:
    """Return True if the relay may forward to ``url``."""
    parts = urlsplit(url) if isinstance(url, str) else url

    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        return False

    host = normalize_host(parts.hostname or "")
    if not host:
        return False
    if host == "localhost" or host.endswith(".localhost"):
        return False
    if host in BLOCKED_HOSTS:
        return False

    if _DOTTED_QUAD.match(host):
        a, b = (int(octet) for octet in host.split(".")[:2])
        if a == 10:
            return False
        if a == 192 and b == 168:
            return False
        if a == 172 and 16 <= b <= 31:
            return False

    return True
