"""FastAPI app: relay and spec-shape endpoints, and their error responses."""

import json
import logging

import requests
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.background import BackgroundTask
from starlette.concurrency import run_in_threadpool

from api_relay.errors import RelayError, ValidationError
from api_relay.relay.forwarder import RelayForwarder, RelayRequest
from api_relay.settings import Settings
from api_relay.shape.cache import DirectorySharedCache, SpecShapeCache
from api_relay.shape.fetch import fetch_and_shape

logger = logging.getLogger(__name__)

NO_STORE = {"cache-control": "no-store"}


def error_response(message: str, status_code: int = 400) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=NO_STORE)


def build_cache(settings: Settings) -> SpecShapeCache:
    shared = DirectorySharedCache(settings.shared_cache_dir) if settings.shared_cache_dir else None
    return SpecShapeCache(ttl_s=settings.spec_cache_ttl_s, shared=shared)


def create_app(
    settings: Settings | None = None,
    cache: SpecShapeCache | None = None,
    forwarder: RelayForwarder | None = None,
    session: requests.Session | None = None,
) -> FastAPI:
    """Build the app; collaborators are created from settings unless given."""
    settings = settings or Settings.from_env()
    session = session or requests.Session()

    app = FastAPI(title="API Relay")
    app.state.settings = settings
    app.state.spec_cache = cache if cache is not None else build_cache(settings)
    app.state.forwarder = forwarder or RelayForwarder(
        session=session,
        timeout=settings.relay_timeout_s,
        chunk_size=settings.chunk_size,
    )
    app.state.spec_session = session

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_origins),
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError):
        return error_response(exc.message, exc.status_code)

    @app.exception_handler(Exception)
    async def unhandled_exc_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response("Internal error", 500)

    @app.get("/healthz")
    def healthz():
        return {"status": "ok"}

    @app.post("/api/relay")
    async def relay(request: Request):
        try:
            raw = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            raw = None
        try:
            relay_request = RelayRequest.model_validate(raw)
        except PydanticValidationError:
            raise ValidationError("Invalid relay request") from None

        upstream = await run_in_threadpool(request.app.state.forwarder.forward, relay_request)
        return StreamingResponse(
            upstream.iter_body(),
            status_code=upstream.status_code,
            headers=dict(upstream.headers),
            background=BackgroundTask(upstream.close),
        )

    @app.get("/api/spec-shape")
    def spec_shape(request: Request, url: str | None = None):
        shape = fetch_and_shape(
            url,
            cache=request.app.state.spec_cache,
            session=request.app.state.spec_session,
            ttl_s=settings.spec_cache_ttl_s,
            timeout=settings.spec_timeout_s,
        )
        return JSONResponse(content=shape.to_json_dict(), headers=NO_STORE)

    return app
