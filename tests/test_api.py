# tests/test_api.py
from fastapi.testclient import TestClient

from server import app

client = TestClient(app)


def test_root():
    res = client.get("/api/")

    assert res.status_code == 200
    data = res.json()
    assert data["message"] == "W3C Markup Validation"
    assert "check_url" in data
    # "/api/" sembra una pagina HTML dal path, ma è JSON: niente box
    assert "w3c-markup-validation-box" not in res.text


def test_health():
    res = client.get("/api/health")

    assert res.status_code == 200
    assert res.json()["status"] == "healthy"
    assert res.headers["content-length"] == str(len(res.content))


def test_metrics_exposed():
    res = client.get("/metrics")

    assert res.status_code == 200
    assert "markup_validation_result_total" in res.text
