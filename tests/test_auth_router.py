import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from app.core.config import AuthConfig, settings
from app.infrastructure.rate_limit.memory_rate_limiter import InMemoryRequestThrottle
from app.main import app
from app.database import get_session
from app.routers.auth_router import get_auth_config, get_request_throttle, get_sms_gateway


@pytest.fixture
def sms(gateway):
    return gateway


@pytest.fixture
def client(engine, sms):
    def override_session():
        with Session(engine) as session:
            yield session

    throttle = InMemoryRequestThrottle()
    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_sms_gateway] = lambda: sms
    app.dependency_overrides[get_request_throttle] = lambda: throttle
    app.dependency_overrides[get_auth_config] = lambda: AuthConfig(signing_secret="test-secret",
                                                                   expose_debug_otp=True)
    yield TestClient(app)
    app.dependency_overrides.clear()


def _send(client, path, phone="98765 43210"):
    return client.post(path, json={"phone": phone})


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json()["status"] == "healthy"


def test_signup_verify_and_me(client, sms):
    res = _send(client, "/api/auth/signup/send-otp")
    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    data = body["data"]
    assert data["phone"] == "919876543210"
    assert data["otp_expires_in"] == 600
    assert data["dispatched"] is True
    code = data["debug"]["otp"]
    assert sms.sent[0] == ("919876543210", f"Your webapp login OTP is {code} From - Chill Mechanic")

    res = client.post("/api/auth/signup/verify-otp", json={"phone": "+91 9876543210", "otp": code})
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["verified"] is True
    assert data["user"]["phone"] == "919876543210"
    assert data["user"]["is_new_user"] is True
    assert data["user"]["is_profile_complete"] is False
    token = data["token"]

    res = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 200
    assert res.json()["data"]["user"]["id"] == data["user"]["id"]

    res = client.get("/api/auth/check-phone", params={"phone": "9876543210"})
    assert res.json()["data"] == {"exists": True, "is_profile_complete": False, "has_name": False}


def test_signup_twice_is_conflict(client):
    code = _send(client, "/api/auth/signup/send-otp").json()["data"]["debug"]["otp"]
    client.post("/api/auth/signup/verify-otp", json={"phone": "9876543210", "otp": code})

    res = _send(client, "/api/auth/signup/send-otp")
    assert res.status_code == 409
    assert res.json() == {
        "success": False,
        "data": None,
        "error": "Phone number already registered. Please Sign In instead.",
        "code": "PHONE_ALREADY_EXISTS",
    }


def test_signin_unknown_phone_is_not_found(client, sms):
    res = _send(client, "/api/auth/signin/send-otp")
    assert res.status_code == 404
    assert res.json()["code"] == "PHONE_NOT_FOUND"
    assert sms.sent == []


def test_signin_flow_for_registered_user(client):
    app.dependency_overrides[get_auth_config] = lambda: AuthConfig(signing_secret="test-secret", cooldown_seconds=0,
                                                                   expose_debug_otp=True)
    code = _send(client, "/api/auth/signup/send-otp").json()["data"]["debug"]["otp"]
    signup = client.post("/api/auth/verify-otp", json={"phone": "9876543210", "otp": code, "intent": "signup"})
    user_id = signup.json()["data"]["user"]["id"]

    res = client.post("/api/auth/send-otp", json={"phone": "09876543210", "intent": "signin"})
    assert res.status_code == 200
    code = res.json()["data"]["debug"]["otp"]

    res = client.post("/api/auth/signin/verify-otp", json={"phone": "9876543210", "otp": code})
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["user"]["id"] == user_id
    assert data["user"]["is_new_user"] is False
    assert res.json()["message"] == "Signed in successfully"


def test_resend_within_cooldown_is_rate_limited(client):
    _send(client, "/api/auth/signup/send-otp")
    res = _send(client, "/api/auth/resend-otp")
    assert res.status_code == 429
    body = res.json()
    assert body["code"] == "RATE_LIMIT_EXCEEDED"
    assert 0 < body["wait_seconds"] <= 300
    assert res.headers["Retry-After"] == str(body["wait_seconds"])


def test_invalid_phone_and_code_format(client):
    res = _send(client, "/api/auth/signup/send-otp", phone="12345")
    assert res.status_code == 400
    assert res.json()["code"] == "INVALID_PHONE"

    _send(client, "/api/auth/signup/send-otp")
    res = client.post("/api/auth/signup/verify-otp", json={"phone": "9876543210", "otp": "12"})
    assert res.status_code == 400
    assert res.json()["code"] == "INVALID_OTP_FORMAT"


def test_wrong_code_and_missing_challenge(client):
    res = client.post("/api/auth/signup/verify-otp", json={"phone": "9876543210", "otp": "1234"})
    assert res.status_code == 401
    assert res.json()["code"] == "NO_OTP_FOUND"

    code = _send(client, "/api/auth/signup/send-otp").json()["data"]["debug"]["otp"]
    wrong = "1000" if code != "1000" else "1001"
    res = client.post("/api/auth/signup/verify-otp", json={"phone": "9876543210", "otp": wrong})
    assert res.status_code == 401
    assert res.json()["code"] == "INVALID_OTP"


def test_dispatch_failure_still_accepts_issuance(client, sms):
    sms.fail = True
    res = _send(client, "/api/auth/signup/send-otp")
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["dispatched"] is False
    assert "debug" in data


def test_me_requires_valid_token(client):
    for headers in ({}, {"Authorization": "Bearer nope"}, {"Authorization": "Basic abc"}):
        res = client.get("/api/auth/me", headers=headers)
        assert res.status_code == 401
        assert res.json()["error"] == "Invalid or expired token"


def test_debug_otp_hidden_by_default(client):
    app.dependency_overrides[get_auth_config] = lambda: AuthConfig(signing_secret="test-secret")
    res = _send(client, "/api/auth/signup/send-otp")
    assert res.status_code == 200
    assert "debug" not in res.json()["data"]


def test_per_client_throttle(client, monkeypatch):
    monkeypatch.setattr(settings, "AUTH_REQUESTS_PER_MINUTE", 2)
    assert client.get("/api/auth/check-phone", params={"phone": "9876543210"}).status_code == 200
    assert client.get("/api/auth/check-phone", params={"phone": "9876543210"}).status_code == 200
    res = client.get("/api/auth/check-phone", params={"phone": "9876543210"})
    assert res.status_code == 429
    assert res.json()["code"] == "RATE_LIMIT_EXCEEDED"
    assert "Retry-After" in res.headers


def test_forwarded_header_ignored_without_trusted_proxy(client, monkeypatch):
    monkeypatch.setattr(settings, "AUTH_REQUESTS_PER_MINUTE", 2)
    for n in range(2):
        headers = {"X-Forwarded-For": f"10.0.0.{n}"}
        assert client.get("/api/auth/check-phone", params={"phone": "9876543210"}, headers=headers).status_code == 200
    res = client.get("/api/auth/check-phone", params={"phone": "9876543210"}, headers={"X-Forwarded-For": "10.0.0.9"})
    assert res.status_code == 429


def test_forwarded_header_used_behind_trusted_proxy(client, monkeypatch):
    monkeypatch.setattr(settings, "AUTH_REQUESTS_PER_MINUTE", 1)
    monkeypatch.setattr(settings, "TRUSTED_PROXIES", "testclient")
    for n in range(3):
        headers = {"X-Forwarded-For": f"10.0.0.{n}, 172.16.0.1"}
        assert client.get("/api/auth/check-phone", params={"phone": "9876543210"}, headers=headers).status_code == 200
