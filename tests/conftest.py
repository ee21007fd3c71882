# tests/conftest.py
from __future__ import annotations

import pytest

from errors import MarkupValidationError
from models import ValidationResult
from services.response import AsgiResponse


def result_page(css_class: str, message: str) -> str:
    """Pagina minimale come quella restituita dal W3C validator."""
    return (
        "<html><head><title>[Invalid] Markup Validation</title></head><body>\n"
        f'<h2 id="results" class="{css_class}">{message}</h2>\n'
        "</body></html>"
    )


class StubValidator:
    """Al posto di W3cMarkupValidator: nessuna chiamata di rete."""

    def __init__(self, page: str | None = None, error: MarkupValidationError | None = None):
        self.page = page or result_page("valid", "This Page Is Valid HTML 4.01 Strict!")
        self.error = error
        self.calls: list[str] = []

    def validate(self, html: str) -> ValidationResult:
        self.calls.append(html)
        if self.error is not None:
            raise self.error
        return ValidationResult.from_page(self.page)


class FakeInspector:
    bootstrap = "<!--bootstrap-->"

    def __init__(self):
        self.calls: list[str] = []

    def status_script(self, html: str) -> str:
        self.calls.append(html)
        return "<!--status-->"


class Sink:
    """Raccoglie i messaggi ASGI emessi da AsgiResponse."""

    def __init__(self):
        self.messages: list[dict] = []

    def __call__(self, message: dict) -> None:
        self.messages.append(message)

    @property
    def start(self) -> dict:
        return next(m for m in self.messages if m["type"] == "http.response.start")

    @property
    def headers(self) -> dict[str, str]:
        return {k.decode(): v.decode() for k, v in self.start["headers"]}

    @property
    def body(self) -> bytes:
        return b"".join(m["body"] for m in self.messages if m["type"] == "http.response.body")


@pytest.fixture
def sink() -> Sink:
    return Sink()


@pytest.fixture
def real(sink: Sink) -> AsgiResponse:
    return AsgiResponse(sink)


@pytest.fixture
def inspector() -> FakeInspector:
    return FakeInspector()
