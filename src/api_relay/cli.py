"""CLI entry point for api-relay."""

import json
import logging
from pathlib import Path

import click

from api_relay.errors import RelayError
from api_relay.relay.guard import is_safe_target
from api_relay.settings import Settings
from api_relay.shape.base import SpecShape
from api_relay.shape.cache import SpecShapeCache
from api_relay.shape.fetch import fetch_and_shape
from api_relay.shape.reducer import reduce_spec
from api_relay.state import AppState, decode_state, encode_state


def _load_shape(source: str, settings: Settings) -> SpecShape:
    """Reduce a spec from an http(s) URL or a local file."""
    if source.lower().startswith(("http://", "https://")):
        cache = SpecShapeCache(ttl_s=settings.spec_cache_ttl_s)
        return fetch_and_shape(source, cache=cache, timeout=settings.spec_timeout_s)

    path = Path(source)
    if not path.is_file():
        raise click.BadParameter(f"No such file or URL: {source}", param_hint="SOURCE")
    return reduce_spec(path.read_text(encoding="utf-8"))


@click.group()
def main():
    """API Relay: forward API calls from a trusted host and shape OpenAPI specs."""
    pass


@main.command()
@click.option("--host", default=None, help="Bind host (default from API_RELAY_HOST).")
@click.option("--port", default=None, type=int, help="Bind port (default from API_RELAY_PORT).")
@click.option("--reload", is_flag=True, help="Reload on code changes (development).")
def serve(host: str | None, port: int | None, reload: bool):
    """Run the relay HTTP server."""
    import uvicorn

    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "api_relay.app:create_app",
        factory=True,
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@main.command()
@click.argument("source")
@click.option("-o", "--output", default=None, type=click.Path(path_type=Path), help="Write the shape JSON to a file.")
@click.option("--operation", "operation_key", default=None, help='Only print one operation, e.g. "GET /pets".')
def shape(source: str, output: Path | None, operation_key: str | None):
    """Reduce an OpenAPI document (file or URL) to its operation catalog."""
    settings = Settings.from_env()
    try:
        spec_shape = _load_shape(source, settings)
    except RelayError as e:
        raise click.ClickException(e.message)

    if operation_key:
        operation = spec_shape.find(operation_key)
        if operation is None:
            raise click.ClickException(f"No operation {operation_key!r}")
        data = operation.to_json_dict()
    else:
        data = spec_shape.to_json_dict()

    text = json.dumps(data, indent=2, ensure_ascii=False)
    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(text + "\n", encoding="utf-8")
        click.echo(f"Found {len(spec_shape.operations)} operations, saved to {output}")
    else:
        click.echo(text)


@main.command("check-target")
@click.argument("url")
@click.pass_context
def check_target(ctx: click.Context, url: str):
    """Tell whether the relay would forward to URL."""
    if is_safe_target(url):
        click.echo(f"allowed: {url}")
    else:
        click.echo(f"blocked: {url}")
        ctx.exit(1)


@main.command("state-encode")
@click.argument("state_path", type=click.Path(exists=True, path_type=Path))
def state_encode(state_path: Path):
    """Encode a JSON form state file into a URL token."""
    try:
        state = AppState.model_validate_json(state_path.read_text(encoding="utf-8"))
    except ValueError as e:
        raise click.ClickException(f"Invalid state file: {e}")
    click.echo(encode_state(state))


@main.command("state-decode")
@click.argument("token")
def state_decode(token: str):
    """Decode a URL token back into form state JSON."""
    state = decode_state(token)
    click.echo(json.dumps(state.model_dump(by_alias=True, exclude_none=True), indent=2))
