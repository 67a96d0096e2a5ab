"""Fetch a spec document by URL and reduce it, through the shape cache."""

import logging

import requests

from api_relay.errors import FetchFailure, ValidationError
from api_relay.relay.target import is_absolute_url

from .base import SpecShape
from .cache import SpecShapeCache
from .reducer import reduce_spec

logger = logging.getLogger(__name__)

SPEC_ACCEPT = "application/json, text/yaml, application/yaml, text/plain;q=0.9"


def validate_spec_url(url: str | None) -> str:
    if not url or not is_absolute_url(url) or not url.strip().lower().startswith(("http://", "https://")):
        raise ValidationError("Missing or invalid url")
    return url.strip()


def fetch_spec_text(url: str, session: requests.Session | None = None, timeout: float = 15.0) -> str:
    """Download the raw spec document."""
    http = session or requests
    try:
        resp = http.get(url, headers={"accept": SPEC_ACCEPT}, timeout=timeout)
    except requests.RequestException as e:
        raise FetchFailure(f"Failed to fetch spec: {e.__class__.__name__}") from e

    if not 200 <= resp.status_code < 300:
        raise FetchFailure(f"Failed to fetch spec: {resp.status_code}")
    return resp.text


def fetch_and_shape(
    url: str,
    cache: SpecShapeCache,
    session: requests.Session | None = None,
    ttl_s: int | None = None,
    timeout: float = 15.0,
) -> SpecShape:
    """Return the SpecShape for ``url``, from cache when fresh.

    Fetch and parse failures propagate and are never cached.
    """
    url = validate_spec_url(url)

    cached = cache.get(url)
    if cached is not None:
        return cached

    logger.info("Fetching spec %s", url)
    shape = reduce_spec(fetch_spec_text(url, session=session, timeout=timeout))
    cache.put(url, shape, ttl_s=ttl_s)
    logger.info("Reduced spec %s: %d operations", url, len(shape.operations))
    return shape
