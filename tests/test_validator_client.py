# tests/test_validator_client.py
import pytest
import requests

from errors import MalformedResponse, TransportError, UpstreamError
from services.validation.client import W3cMarkupValidator

CHECK_URL = "http://validator.example.org/w3c/check"

W3C_PAGE = """<html><head>
<link rel="stylesheet" href="./style/base.css" type="text/css">
<script type="text/javascript" src="loadexplanation.js"></script>
</head><body>
<img src="images/info_icons/error.png" alt="Error">
<h2 id="results" class="invalid">Errors found while checking this document as HTML 4.01 Strict!</h2>
</body></html>"""


class FakeResponse:
    def __init__(self, status_code=200, text=W3C_PAGE):
        self.status_code = status_code
        self.text = text
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed = True


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse()
        self.error = error
        self.calls = []

    def post(self, url, files=None, timeout=None):
        self.calls.append({"url": url, "files": files, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


def test_validate_posts_form_and_parses_result():
    session = FakeSession()
    validator = W3cMarkupValidator(CHECK_URL, timeout=5.0, session=session)

    result = validator.validate("<html><body>è</body></html>")

    call = session.calls[0]
    assert call["url"] == CHECK_URL
    assert call["timeout"] == 5.0
    files = call["files"]
    assert files["fragment"][1] == "<html><body>è</body></html>".encode("utf-8")
    assert {k: v[1] for k, v in files.items() if k != "fragment"} == {
        "prefill": "0",
        "doctype": "Inline",
        "prefill_doctype": "html401",
        "group": "0",
        "ss": "1",
        "verbose": "1",
    }
    assert all(v[0] is None for v in files.values())  # campi form, non file

    assert result.is_valid is False
    assert result.message == "Errors found while checking this document as HTML 4.01 Strict!"
    assert session.response.closed


def test_relative_links_become_absolute():
    validator = W3cMarkupValidator(CHECK_URL, session=FakeSession())
    page = validator.validate("<html></html>").result_page

    assert validator.path_prefix == "http://validator.example.org/w3c/"
    assert 'href="http://validator.example.org/w3c/style/base.css"' in page
    assert 'src="http://validator.example.org/w3c/images/info_icons/error.png"' in page
    assert 'src="http://validator.example.org/w3c/loadexplanation.js"' in page
    assert '"./' not in page


def test_non_200_is_upstream_error():
    response = FakeResponse(status_code=503, text="busy")
    validator = W3cMarkupValidator(CHECK_URL, session=FakeSession(response))

    with pytest.raises(UpstreamError) as exc:
        validator.validate("<html></html>")

    assert exc.value.status == 503
    assert str(exc.value) == f"{CHECK_URL} responded with 503"
    assert response.closed


def test_network_failure_is_transport_error():
    cause = requests.ConnectionError("connection refused")
    validator = W3cMarkupValidator(CHECK_URL, session=FakeSession(error=cause))

    with pytest.raises(TransportError) as exc:
        validator.validate("<html></html>")

    assert exc.value.cause is cause


def test_page_without_marker_is_malformed():
    response = FakeResponse(text="<html><body>maintenance</body></html>")
    validator = W3cMarkupValidator(CHECK_URL, session=FakeSession(response))

    with pytest.raises(MalformedResponse):
        validator.validate("<html></html>")
    assert response.closed


def test_session_is_created_once():
    validator = W3cMarkupValidator(CHECK_URL)
    first = validator._get_session()

    assert validator._get_session() is first
    assert isinstance(first, requests.Session)

    validator.close()
    assert validator._get_session() is not first
    validator.close()
