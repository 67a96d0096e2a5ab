from pathlib import Path
from unittest.mock import MagicMock

import pytest
import requests
from fastapi.testclient import TestClient
from requests.structures import CaseInsensitiveDict

from api_relay.app import create_app
from api_relay.settings import Settings
from api_relay.shape.cache import SpecShapeCache

FIXTURES = Path(__file__).parent / "fixtures"
SPEC_URL = "https://specs.example.com/petstore.yaml"


def _upstream_response(status=200, reason="OK", headers=None, chunks=(b'{"id": 7}',)):
    resp = MagicMock(spec=requests.Response)
    resp.status_code = status
    resp.reason = reason
    resp.headers = CaseInsensitiveDict(headers or {"Content-Type": "application/json"})
    resp.raw = MagicMock()
    resp.raw.stream.return_value = iter(chunks)
    return resp


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def client(session):
    app = create_app(settings=Settings(), cache=SpecShapeCache(), session=session)
    return TestClient(app, follow_redirects=False)


def _relay_body(**overrides):
    body = {"baseUrl": "https://api.example.com", "method": "GET", "path": "/users/{id}", "pathParams": {"id": "7"}}
    body.update(overrides)
    return body


class TestRelayEndpoint:
    def test_streams_upstream_response(self, client, session):
        session.request.return_value = _upstream_response(
            status=201,
            headers={"Content-Type": "application/json", "Set-Cookie": "sid=1", "X-Rate-Limit": "10"},
            chunks=(b'{"id":', b" 7}"),
        )
        resp = client.post("/api/relay", json=_relay_body())

        assert resp.status_code == 201
        assert resp.content == b'{"id": 7}'
        assert resp.headers["cache-control"] == "no-store"
        assert resp.headers["x-relay-target"] == "https://api.example.com"
        assert resp.headers["x-rate-limit"] == "10"
        assert "set-cookie" not in resp.headers
        assert session.request.call_args[0] == ("GET", "https://api.example.com/users/7")

    def test_redirect_not_followed(self, client, session):
        session.request.return_value = _upstream_response(
            status=302, reason="Found", headers={"Location": "http://10.0.0.1/"}, chunks=()
        )
        resp = client.post("/api/relay", json=_relay_body())
        assert resp.status_code == 302
        assert resp.headers["location"] == "http://10.0.0.1/"

    @pytest.mark.parametrize("body", [{"method": "GET"}, {"baseUrl": "nope", "method": "GET", "path": "/"}, []])
    def test_invalid_request(self, client, session, body):
        resp = client.post("/api/relay", json=body)
        assert resp.status_code == 400
        assert resp.json() == {"error": "Invalid relay request"}
        assert resp.headers["cache-control"] == "no-store"
        session.request.assert_not_called()

    def test_non_json_payload(self, client):
        resp = client.post("/api/relay", content=b"not json", headers={"content-type": "application/json"})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Invalid relay request"}

    def test_blocked_target(self, client, session):
        resp = client.post("/api/relay", json=_relay_body(baseUrl="http://localhost:8080"))
        assert resp.status_code == 400
        assert resp.json() == {"error": "Blocked target host"}
        assert resp.headers["cache-control"] == "no-store"
        session.request.assert_not_called()

    def test_invalid_json_body(self, client, session):
        resp = client.post(
            "/api/relay", json=_relay_body(method="POST", contentType="application/json", body="{broken")
        )
        assert resp.status_code == 400
        assert resp.json()["error"].startswith("Invalid JSON body")

    def test_upstream_unreachable(self, client, session):
        session.request.side_effect = requests.ConnectionError("refused")
        resp = client.post("/api/relay", json=_relay_body())
        assert resp.status_code == 400
        assert "Upstream request failed" in resp.json()["error"]


class TestSpecShapeEndpoint:
    def test_returns_shape(self, client, session):
        session.get.return_value = MagicMock(
            status_code=200, text=(FIXTURES / "petstore.yaml").read_text(encoding="utf-8")
        )
        resp = client.get("/api/spec-shape", params={"url": SPEC_URL})

        assert resp.status_code == 200
        assert resp.headers["cache-control"] == "no-store"
        data = resp.json()
        assert data["title"] == "Swagger Petstore"
        assert [op["key"] for op in data["operations"]] == [
            "DELETE /pets/{petId}",
            "GET /pets",
            "GET /pets/{petId}",
            "POST /pets",
        ]
        post = data["operations"][3]
        assert post["requestBody"]["fields"][0] == {"name": "name", "required": True, "type": "string"}
        assert post["authHint"] == {"kind": "apiKey", "in": "header", "name": "X-API-Key"}

    def test_second_call_served_from_cache(self, client, session):
        session.get.return_value = MagicMock(status_code=200, text="openapi: 3.0.0\npaths: {}\n")
        client.get("/api/spec-shape", params={"url": SPEC_URL})
        client.get("/api/spec-shape", params={"url": SPEC_URL})
        assert session.get.call_count == 1

    @pytest.mark.parametrize("params", [{}, {"url": "not-a-url"}])
    def test_missing_or_invalid_url(self, client, params):
        resp = client.get("/api/spec-shape", params=params)
        assert resp.status_code == 400
        assert resp.json() == {"error": "Missing or invalid url"}

    def test_fetch_failure(self, client, session):
        session.get.return_value = MagicMock(status_code=500, text="boom")
        resp = client.get("/api/spec-shape", params={"url": SPEC_URL})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Failed to fetch spec: 500"}

    def test_parse_failure(self, client, session):
        session.get.return_value = MagicMock(status_code=200, text="{not json")
        resp = client.get("/api/spec-shape", params={"url": SPEC_URL})
        assert resp.status_code == 400
        assert resp.json()["error"].startswith("Invalid JSON spec")

    def test_alias_heavy_spec_is_a_parse_error(self, client, session):
        text = "a: &a x\nb: [" + ", ".join(["*a"] * 150) + "]\n"
        session.get.return_value = MagicMock(status_code=200, text=text)
        resp = client.get("/api/spec-shape", params={"url": SPEC_URL})
        assert resp.status_code == 400
        assert "aliases" in resp.json()["error"]


class TestHealth:
    def test_healthz(self, client):
        assert client.get("/healthz").json() == {"status": "ok"}
