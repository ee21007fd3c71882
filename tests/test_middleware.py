# tests/test_middleware.py
"""
Scenari end-to-end: app FastAPI + MarkupValidationMiddleware,
con il W3C validator sostituito da uno stub.
"""
import pytest
from conftest import StubValidator, result_page
from fastapi import FastAPI
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, StreamingResponse
from fastapi.testclient import TestClient

from config import Settings
from errors import TransportError
from middleware import MarkupValidationMiddleware, looks_like_html
from services.inspector import INVALID_COLOR
from utils.local_store import ResultCache

DOC = "<html><body>Hi</body></html>"
INVALID_PAGE = result_page("invalid", "Error: missing doctype")


def build_app(validator, enabled=True, cache=None, pre_process=None):
    app = FastAPI()

    @app.get("/page")
    async def page():
        return HTMLResponse(DOC)

    @app.get("/fragment.html")
    async def fragment():
        return HTMLResponse("<div>partial</div>")

    @app.get("/streamed/")
    async def streamed():
        async def chunks():
            yield "<html><body>"
            yield "streamed"
            yield "</body></html>"

        return StreamingResponse(chunks(), media_type="text/html")

    @app.get("/data.json")
    async def data():
        return JSONResponse({"ok": True})

    @app.get("/text/")
    async def text():
        return PlainTextResponse("<html></html>")

    app.add_middleware(
        MarkupValidationMiddleware,
        settings=Settings(ENABLED=enabled),
        validator=validator,
        cache=cache,
        pre_process=pre_process,
    )
    return app


@pytest.fixture
def validator():
    return StubValidator(INVALID_PAGE)


@pytest.fixture
def client(validator):
    return TestClient(build_app(validator))


def test_invalid_page_gets_red_box_and_link(client, validator):
    res = client.get("/page")

    assert res.status_code == 200
    assert "content-length" not in res.headers or int(res.headers["content-length"]) == len(res.content)
    body = res.text
    assert body.startswith(DOC)

    bootstrap_at = body.index("W3C Markup Validation is running ...")
    message_at = body.index("Error: missing doctype")
    link_at = body.index("/view-w3c-markup-validation-result-1")
    assert len(DOC) < bootstrap_at < message_at < link_at
    assert INVALID_COLOR in body[message_at:]
    assert validator.calls == [DOC]


def test_result_page_is_served_from_cache(client):
    client.get("/page")

    res = client.get("/view-w3c-markup-validation-result-1")

    assert res.status_code == 200
    assert res.headers["content-type"] == "text/html; charset=UTF-8"
    assert res.text == INVALID_PAGE


def test_result_page_under_prefix(client):
    client.get("/page")

    res = client.get("/some/prefix/view-w3c-markup-validation-result-1")

    assert res.status_code == 200
    assert res.text == INVALID_PAGE


def test_result_not_in_cache_is_404(validator):
    cache = ResultCache(capacity=2)
    client = TestClient(build_app(validator, cache=cache))
    for _ in range(3):
        client.get("/page")

    res = client.get("/view-w3c-markup-validation-result-1")

    assert res.status_code == 404
    assert "W3C Markup Validation Result 1 is not in cache" in res.text
    assert client.get("/view-w3c-markup-validation-result-3").status_code == 200


def test_fragment_is_left_alone(client, validator):
    res = client.get("/fragment.html")

    assert res.text == "<div>partial</div>"
    assert validator.calls == []


def test_streamed_page_is_validated(client, validator):
    res = client.get("/streamed/")

    assert res.text.startswith("<html><body>streamed</body></html>")
    assert "Error: missing doctype" in res.text
    assert validator.calls == ["<html><body>streamed</body></html>"]


def test_json_passes_through_with_length(client, validator):
    res = client.get("/data.json")

    assert res.json() == {"ok": True}
    assert res.headers["content-length"] == str(len(res.content))
    assert validator.calls == []


def test_path_heuristic_overridden_by_content_type(client, validator):
    res = client.get("/text/")

    assert res.text == "<html></html>"
    assert res.headers["content-length"] == "13"
    assert validator.calls == []


def test_validator_failure_does_not_break_page():
    validator = StubValidator(error=TransportError("http://validator.example.org/check", OSError("down")))
    client = TestClient(build_app(validator))

    res = client.get("/page")

    assert res.status_code == 200
    assert res.text.startswith(DOC)
    assert "W3C Markup Validation failed: http://validator.example.org/check not reachable: down" in res.text
    assert "view-w3c-markup-validation-result" not in res.text


def test_pre_process_hook_reaches_validator(validator):
    client = TestClient(build_app(validator, pre_process=str.upper))
    client.get("/page")

    assert validator.calls == [DOC.upper()]


def test_pre_process_error_keeps_page(validator):
    def broken(html: str) -> str:
        raise RuntimeError("hook rotto")

    client = TestClient(build_app(validator, pre_process=broken), raise_server_exceptions=False)

    res = client.get("/page")

    assert res.status_code == 200
    assert res.text.startswith(DOC)
    assert "W3C Markup Validation failed: hook rotto" in res.text
    assert validator.calls == []


def test_disabled_is_passthrough(validator):
    client = TestClient(build_app(validator, enabled=False))

    res = client.get("/page")

    assert res.text == DOC
    assert res.headers["content-length"] == str(len(DOC))
    assert validator.calls == []
    assert client.get("/view-w3c-markup-validation-result-1").status_code == 404


def test_nested_middleware_intercepts_once(validator):
    app = build_app(validator)
    # seconda istanza sopra la prima: stessa richiesta, un solo box
    app.add_middleware(MarkupValidationMiddleware, settings=Settings(), validator=validator)
    client = TestClient(app)

    res = client.get("/page")

    assert res.text.count("W3C Markup Validation is running ...") == 1
    assert len(validator.calls) == 1


@pytest.mark.parametrize(
    "path, expected",
    [("/", True), ("/docs/index.html", True), ("/a.htm", True), ("/api/health", False), ("/x.html.gz", False)],
)
def test_looks_like_html(path, expected):
    assert looks_like_html(path) is expected
