import pytest
from fastapi.testclient import TestClient

from api.main import app, get_analyzer, get_history, get_lists, get_settings
from services.analysis import EmailAnalyzer
from services.db import HistoryStore

AUTH = ("admin", "secret")


@pytest.fixture
def client(settings, lists):
    history = HistoryStore(settings.db_path, limit=settings.history_limit)
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_lists] = lambda: lists
    app.dependency_overrides[get_history] = lambda: history
    app.dependency_overrides[get_analyzer] = lambda: EmailAnalyzer(settings, lists)
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_analyze_json_records_history(client):
    resp = client.post("/analyze", json={
        "from": "Prize Desk <win@lucky-draw.example>",
        "subject": "You won!",
        "body": "Claim your prize at http://203.0.113.5/claim",
        "headers": {"Authentication-Results": "spf=fail"},
        "attachments": [{"name": "prize.zip", "type": "application/zip"}],
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["verdict"]["level"] == "MALICIOUS"
    assert data["reputation_enabled"] is False
    assert any(s["name"] == "IP-based URLs" for s in data["signals"])

    history = client.get("/history").json()["entries"]
    assert len(history) == 1
    assert history[0]["sender"] == "win@lucky-draw.example"
    assert history[0]["verdict"] == "MALICIOUS"


def test_analyze_raw(client):
    raw = (
        "From: Alice <alice@example.org>\r\n"
        "Subject: Lunch\r\n"
        "Authentication-Results: mx; spf=pass; dkim=pass; dmarc=pass\r\n"
        "\r\n"
        "See you at noon.\r\n"
    )
    resp = client.post("/analyze/raw", content=raw, headers={"Content-Type": "message/rfc822"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["score"] == 0
    assert data["verdict"]["level"] == "SAFE"
    assert [s["severity"] for s in data["signals"]] == ["good", "good", "good"]


def test_analyze_raw_rejects_empty_body(client):
    assert client.post("/analyze/raw", content=b"  ").status_code == 400


def test_analyze_rejects_malformed_payload(client):
    resp = client.post("/analyze", json={"from": "a@example.org", "urls": "http://1.2.3.4/login"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "urls must be a list of strings"

    resp = client.post("/analyze", json={"from": "a@example.org", "headers": ["x"]})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "headers must be an object"

    resp = client.post("/analyze", json={"from": "a@example.org", "attachments": ["a.exe"]})
    assert resp.status_code == 400

    assert client.get("/history").json()["entries"] == []


def test_list_management_requires_auth(client):
    resp = client.post("/lists/blacklist/emails", json={"value": "bad@evil.com"})
    assert resp.status_code == 401
    resp = client.post(
        "/lists/blacklist/emails", json={"value": "bad@evil.com"}, auth=("admin", "wrong")
    )
    assert resp.status_code == 401


def test_list_management(client):
    resp = client.post("/lists/blacklist/emails", json={"value": "Bad@Evil.com"}, auth=AUTH)
    assert resp.status_code == 200
    assert resp.json() == {"emails": ["bad@evil.com"], "domains": []}

    resp = client.post("/lists/blacklist/emails", json={"value": "bad@evil.com"}, auth=AUTH)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Email already in blacklist"

    resp = client.post("/lists/whitelist/domains", json={"value": "nope"}, auth=AUTH)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid domain format"

    resp = client.delete("/lists/blacklist/emails/bad@evil.com", auth=AUTH)
    assert resp.status_code == 200
    assert client.get("/lists/blacklist").json() == {"emails": [], "domains": []}


def test_unknown_list(client):
    assert client.get("/lists/greylist").status_code == 404
    resp = client.post("/lists/blacklist/phones", json={"value": "1"}, auth=AUTH)
    assert resp.status_code == 404


def test_blacklisted_sender_flows_into_analysis(client):
    client.post("/lists/blacklist/domains", json={"value": "evil.com"}, auth=AUTH)
    data = client.post("/analyze", json={"from": "x@evil.com", "body": "hi"}).json()
    assert data["signals"][0]["name"] == "Blacklisted Domain"
    assert data["score"] == 40
    assert data["verdict"]["level"] == "SUSPICIOUS"


def test_clear_history(client):
    client.post("/analyze", json={"from": "a@example.org", "body": "hi"})
    assert client.delete("/history").status_code == 401
    assert client.delete("/history", auth=AUTH).json() == {"status": "cleared"}
    assert client.get("/history").json()["entries"] == []
