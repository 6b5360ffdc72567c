import pytest

from conftest import TEST_PASSWORD
from washboard.core.config import settings
from washboard.core.rate_limiter import (
    FailOpenRateLimiter,
    InMemoryRateLimiter,
    RateLimitDecision,
    RateLimiter,
    rate_limiter,
)


def _register_payload(index: int) -> dict[str, str]:
    return {
        "branch_code": "MAIN",
        "username": f"limit-{index}",
        "password": TEST_PASSWORD,
        "name": f"Limit {index}",
    }


def test_register_rate_limit_returns_429(client, branch, monkeypatch):
    monkeypatch.setattr(settings, "auth_register_max_attempts", 2)
    monkeypatch.setattr(settings, "auth_rate_limit_window_seconds", 60)
    rate_limiter.reset()

    first = client.post("/auth/register", json=_register_payload(1))
    second = client.post("/auth/register", json=_register_payload(2))
    third = client.post("/auth/register", json=_register_payload(3))

    assert first.status_code == 201
    assert second.status_code == 201
    assert third.status_code == 429
    assert "error" in third.json()
    assert third.headers.get("Retry-After")


def test_login_rate_limit_returns_429(client, receptionist, monkeypatch):
    monkeypatch.setattr(settings, "auth_login_max_attempts", 2)
    monkeypatch.setattr(settings, "auth_rate_limit_window_seconds", 60)
    rate_limiter.reset()
    payload = {"branch_code": "MAIN", "username": receptionist.username, "password": "WrongPass123"}

    first = client.post("/auth/login", json=payload)
    second = client.post("/auth/login", json=payload)
    third = client.post("/auth/login", json=payload)

    assert first.status_code == 401
    assert second.status_code == 401
    assert third.status_code == 429
    assert third.json()["error"]["code"] == "RATE_LIMIT_EXCEEDED"


def test_magic_link_issue_is_rate_limited(client, auth_headers, monkeypatch):
    monkeypatch.setattr(settings, "magic_link_issue_max_attempts", 1)
    rate_limiter.reset()

    first = client.post("/magic-links", headers=auth_headers, json={})
    second = client.post("/magic-links", headers=auth_headers, json={})

    assert first.status_code == 201
    assert second.status_code == 429
    assert second.headers.get("Retry-After")


class _BrokenLimiter(RateLimiter):
    def allow(self, key: str, limit: int, window_seconds: int) -> RateLimitDecision:
        raise ConnectionError("limiter storage down")

    def reset(self) -> None:
        raise ConnectionError("limiter storage down")


def test_fail_open_uses_fallback_when_primary_is_down():
    limiter = FailOpenRateLimiter(_BrokenLimiter(), InMemoryRateLimiter())

    assert limiter.allow("login:1.2.3.4", limit=1, window_seconds=60) == (True, 0)
    allowed, retry_after = limiter.allow("login:1.2.3.4", limit=1, window_seconds=60)
    assert allowed is False
    assert retry_after >= 1


@pytest.mark.parametrize("attempts", [1, 5])
def test_fail_open_permits_when_no_limiter_answers(attempts):
    limiter = FailOpenRateLimiter(_BrokenLimiter(), _BrokenLimiter())

    results = [limiter.allow("register:1.2.3.4", limit=1, window_seconds=60) for _ in range(attempts)]

    assert results == [(True, 0)] * attempts


def test_fail_open_reset_tolerates_unreachable_storage():
    fallback = InMemoryRateLimiter()
    limiter = FailOpenRateLimiter(_BrokenLimiter(), fallback)
    assert limiter.allow("magic_link:7:1.2.3.4", limit=1, window_seconds=60).allowed

    limiter.reset()

    assert limiter.allow("magic_link:7:1.2.3.4", limit=1, window_seconds=60) == RateLimitDecision(True, 0)
