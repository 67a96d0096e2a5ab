"""Two-tier cache for reduced spec shapes.

The local tier is a dict of entries with an expiry timestamp. The optional
shared tier is best-effort: any failure in it counts as a miss.
"""

import hashlib
import json
import logging
import os
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Protocol
from urllib.parse import urlsplit, urlunsplit

from pydantic import ValidationError

from .base import SpecShape

logger = logging.getLogger(__name__)

DEFAULT_TTL_S = 60


def normalize_cache_key(url: str) -> str:
    """Lower-case scheme and host, default the path to ``/``, drop the fragment."""
    parts = urlsplit(url.strip())
    netloc = parts.netloc
    if parts.hostname:
        # keep userinfo/port as given, only the host part is case-insensitive
        userinfo, _, hostport = netloc.rpartition("@")
        netloc = f"{userinfo}@{hostport.lower()}" if userinfo else hostport.lower()
    return urlunsplit((parts.scheme.lower(), netloc, parts.path or "/", parts.query, ""))


@dataclass(frozen=True)
class CacheEntry:
    value: SpecShape
    expires_at: float

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at


class SharedCache(Protocol):
    """A cache shared between processes (edge cache, disk, ...)."""

    def get(self, key: str) -> dict | None: ...

    def put(self, key: str, payload: dict, max_age: int) -> None: ...


class DirectorySharedCache:
    """Shared tier backed by one JSON file per key in a directory."""

    def __init__(self, directory: Path, clock: Callable[[], float] = time.time):
        self.directory = Path(directory)
        self.clock = clock

    def _path_for(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self.directory / f"{digest}.json"

    def get(self, key: str) -> dict | None:
        path = self._path_for(key)
        if not path.exists():
            return None
        record = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(record, dict) or self.clock() >= record.get("expiresAt", 0):
            return None
        return record.get("value")

    def put(self, key: str, payload: dict, max_age: int) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        record = {"key": key, "expiresAt": self.clock() + max_age, "value": payload}
        # write-then-rename so readers never see a partial file
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(record, f)
            os.replace(tmp_name, self._path_for(key))
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


class SpecShapeCache:
    """Memoizes SpecShape per normalized spec URL."""

    def __init__(
        self,
        ttl_s: int = DEFAULT_TTL_S,
        shared: SharedCache | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_s = ttl_s
        self.shared = shared
        self.clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def get(self, url: str) -> SpecShape | None:
        key = normalize_cache_key(url)

        entry = self._entries.get(key)
        if entry is not None:
            if entry.is_valid(self.clock()):
                logger.debug("Spec shape cache hit (local): %s", key)
                return entry.value
            self._entries.pop(key, None)

        return self._get_shared(key)

    def put(self, url: str, shape: SpecShape, ttl_s: int | None = None) -> None:
        key = normalize_cache_key(url)
        ttl = self.ttl_s if ttl_s is None else ttl_s
        now = self.clock()
        self.prune(now)
        self._entries[key] = CacheEntry(value=shape, expires_at=now + ttl)

        if self.shared is None:
            return
        try:
            self.shared.put(key, shape.to_json_dict(), ttl)
        except Exception:
            logger.warning("Shared spec cache write failed for %s", key, exc_info=True)

    def prune(self, now: float | None = None) -> int:
        """Drop expired local entries; returns how many were removed."""
        now = self.clock() if now is None else now
        expired = [key for key, entry in list(self._entries.items()) if not entry.is_valid(now)]
        for key in expired:
            self._entries.pop(key, None)
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)

    def _get_shared(self, key: str) -> SpecShape | None:
        if self.shared is None:
            return None
        try:
            payload = self.shared.get(key)
        except Exception:
            logger.warning("Shared spec cache read failed for %s", key, exc_info=True)
            return None
        if payload is None:
            logger.debug("Spec shape cache miss: %s", key)
            return None
        try:
            shape = SpecShape.model_validate(payload)
        except ValidationError:
            logger.warning("Discarding malformed shared cache entry for %s", key)
            return None
        logger.debug("Spec shape cache hit (shared): %s", key)
        return shape
