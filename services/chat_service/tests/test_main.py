import pytest
from fastapi.testclient import TestClient

from services.chat_service.main import app
from services.chat_service.src import service
from services.chat_service.src.config import settings

client = TestClient(app)

CHAT_ROUTER = "services.chat_service.src.routers.chat"
AUTH = {"Authorization": "Bearer sk-valid"}


@pytest.fixture(autouse=True)
def fast_retries(monkeypatch):
    monkeypatch.setattr(service, "RETRY_DELAYS", (0.0, 0.0, 0.0))
    monkeypatch.setattr(settings, "dev_alert_email", None)


@pytest.fixture
def sent(monkeypatch):
    calls = []
    monkeypatch.setattr(f"{CHAT_ROUTER}.send_error_notification", lambda *a: calls.append(a))
    return calls


def test_health():
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
    assert resp.headers["access-control-allow-origin"] == "*"


def test_preflight_on_any_path():
    for path in ("/chat", "/anything/else"):
        resp = client.options(path)
        assert resp.status_code == 204
        assert resp.headers["access-control-allow-origin"] == "*"
        assert resp.headers["access-control-allow-methods"] == "POST, GET, OPTIONS"
        assert resp.headers["access-control-allow-headers"] == "Content-Type, Authorization"


def test_chat_success(provider, sent):
    provider.script = ["Hi there!"]

    resp = client.post("/chat", json={"prompt": "Hello"}, headers=AUTH)

    assert resp.status_code == 200
    assert resp.json() == {"answer": "Hi there!"}
    assert resp.headers["access-control-allow-origin"] == "*"
    assert provider.clients[0].kwargs["api_key"] == "sk-valid"
    assert sent == []


def test_malformed_json_is_400(provider):
    resp = client.post("/chat", content=b"{not json", headers={**AUTH, "Content-Type": "application/json"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid request format.", "code": "INVALID_REQUEST", "show_socials": False}
    assert provider.calls == 0


@pytest.mark.parametrize(
    "body",
    [
        {},
        {"prompt": None},
        {"prompt": 123},
        {"prompt": "Hello", "developer_email": "dev@x.com\r\nBcc: victim@y.com"},
    ],
)
def test_invalid_body_is_400(provider, body):
    resp = client.post("/chat", json=body, headers=AUTH)
    assert resp.status_code == 400
    assert resp.json()["code"] == "INVALID_REQUEST"
    assert provider.calls == 0


def test_extra_fields_ignored(provider):
    provider.script = ["ok"]
    resp = client.post("/chat", json={"prompt": "Hello", "foo": "bar"}, headers=AUTH)
    assert resp.status_code == 200


def test_missing_authorization_is_401(provider):
    resp = client.post("/chat", json={"prompt": "Hello"})
    assert resp.status_code == 401
    assert resp.json() == {
        "error": "Missing API key. Provide it in Authorization header.",
        "code": "NO_API_KEY",
        "show_socials": False,
    }
    assert provider.calls == 0


@pytest.mark.parametrize("header", ["Token sk-valid", "Bearer", "bearer sk-valid"])
def test_non_bearer_authorization_is_401(provider, header):
    resp = client.post("/chat", json={"prompt": "Hello"}, headers={"Authorization": header})
    assert resp.status_code == 401
    assert resp.json()["code"] == "INVALID_KEY_FORMAT"
    assert provider.calls == 0


def test_empty_bearer_key_is_503_configuration_error(provider, sent):
    resp = client.post("/chat", json={"prompt": "Hello", "developer_email": "dev@x.com"}, headers={"Authorization": "Bearer "})
    assert resp.status_code == 503
    assert resp.json() == {
        "error": "Service configuration error. Please contact support.",
        "code": "NO_API_KEY",
        "show_socials": True,
    }
    assert provider.calls == 0
    assert sent == []


def test_rate_limit_exhaustion_alerts_once(provider, sent):
    provider.script = [Exception("429 Too Many Requests")]

    resp = client.post("/chat", json={"prompt": "Hello", "developer_email": "dev@x.com"}, headers=AUTH)

    assert resp.status_code == 503
    body = resp.json()
    assert body["code"] == "RATE_LIMIT"
    assert body["show_socials"] is True
    assert body["error"] == body["user_message"]
    assert "429" not in body["user_message"]
    assert provider.calls == 3
    assert sent == [("dev@x.com", "Rate Limit Exceeded", "429 Too Many Requests", "RATE_LIMIT")]


def test_invalid_key_alerts_after_one_attempt(provider, sent):
    provider.script = [Exception("invalid api key")]

    resp = client.post("/chat", json={"prompt": "Hello", "developer_email": "dev@x.com"}, headers=AUTH)

    assert resp.status_code == 503
    assert resp.json()["code"] == "INVALID_KEY"
    assert resp.json()["show_socials"] is False
    assert provider.calls == 1
    assert len(sent) == 1
    assert sent[0][1] == "CRITICAL: Invalid API Key"


def test_server_wide_alert_address_is_fallback(provider, sent, monkeypatch):
    monkeypatch.setattr(settings, "dev_alert_email", "ops@x.com")
    provider.script = [Exception("insufficient_quota")]

    resp = client.post("/chat", json={"prompt": "Hello"}, headers=AUTH)

    assert resp.status_code == 503
    assert resp.json()["code"] == "QUOTA_EXCEEDED"
    assert sent == [("ops@x.com", "Quota/Billing Issue", "insufficient_quota", "QUOTA_EXCEEDED")]


@pytest.mark.parametrize(
    "raw, status_code, code, show_socials",
    [
        ("This model's maximum context length is 4097 tokens", 400, "CONTEXT_LENGTH", False),
        ("content_policy_violation", 400, "CONTENT_POLICY", False),
        ("Request timed out.", 504, "TIMEOUT", False),
        ("Connection error.", 504, "NETWORK_ERROR", False),
        ("Error code: 502 - bad gateway", 502, "SERVICE_ERROR", True),
        ("mystery", 500, "UNKNOWN_ERROR", True),
    ],
)
def test_error_category_maps_to_status(provider, sent, raw, status_code, code, show_socials):
    provider.script = [Exception(raw)]

    resp = client.post("/chat", json={"prompt": "Hello"}, headers=AUTH)

    assert resp.status_code == status_code
    assert resp.json()["code"] == code
    assert resp.json()["show_socials"] is show_socials
    assert sent == []


def test_empty_choices_is_500_no_response(provider):
    provider.script = [None]
    resp = client.post("/chat", json={"prompt": "Hello"}, headers=AUTH)
    assert resp.status_code == 500
    assert resp.json()["code"] == "NO_RESPONSE"
    assert provider.calls == 1


def test_unexpected_failure_is_500(monkeypatch):
    async def boom(*args, **kwargs):
        raise RuntimeError("unexpected")

    monkeypatch.setattr(f"{CHAT_ROUTER}.complete_chat", boom)

    resp = client.post("/chat", json={"prompt": "Hello"}, headers=AUTH)

    assert resp.status_code == 500
    assert resp.json() == {"error": "Something went wrong. Please try again.", "code": "UNEXPECTED_ERROR", "show_socials": True}


def test_chat_method_not_allowed():
    resp = client.get("/chat")
    assert resp.status_code == 405


def test_empty_prompt_is_forwarded(provider):
    provider.script = ["How can I help?"]
    resp = client.post("/chat", json={"prompt": ""}, headers=AUTH)
    assert resp.status_code == 200
    assert provider.requests[0]["messages"] == [{"role": "user", "content": ""}]
