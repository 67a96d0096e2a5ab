"""Runtime configuration read from the environment (and an optional .env file)."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _env_number(name: str, default: str, cast=float):
    raw = os.getenv(name, default)
    try:
        return cast(raw)
    except (TypeError, ValueError):
        raise RuntimeError(f"Invalid value for env var {name}: {raw!r}") from None


def _env_list(name: str) -> list[str]:
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    host: str = "127.0.0.1"
    port: int = 8000
    relay_timeout_s: float = 30.0
    spec_timeout_s: float = 15.0
    spec_cache_ttl_s: int = 60
    shared_cache_dir: Path | None = None
    chunk_size: int = 64 * 1024
    log_level: str = "INFO"
    cors_origins: tuple[str, ...] = ()

    @classmethod
    def from_env(cls) -> "Settings":
        shared_dir = os.getenv("API_RELAY_SHARED_CACHE_DIR", "").strip()
        return cls(
            host=os.getenv("API_RELAY_HOST", "127.0.0.1"),
            port=_env_number("API_RELAY_PORT", "8000", int),
            relay_timeout_s=_env_number("API_RELAY_TIMEOUT_S", "30"),
            spec_timeout_s=_env_number("API_RELAY_SPEC_TIMEOUT_S", "15"),
            spec_cache_ttl_s=_env_number("API_RELAY_SPEC_CACHE_TTL_S", "60", int),
            shared_cache_dir=Path(shared_dir) if shared_dir else None,
            chunk_size=_env_number("API_RELAY_CHUNK_SIZE", str(64 * 1024), int),
            log_level=os.getenv("API_RELAY_LOG_LEVEL", "INFO").upper(),
            cors_origins=tuple(_env_list("API_RELAY_CORS_ORIGINS")),
        )
