"""Tests for rate limiting of login and access-code verification."""

import uuid

import pytest
from starlette.requests import Request

from apptime_api.config import settings
from apptime_api.core.security import create_access_token
from apptime_api.middleware.rate_limit import (
    _get_real_client_ip,
    get_requester_key,
    limiter,
)

VERIFY_LIMIT = int(settings.code_verify_rate_limit.split("/")[0])


def make_request(headers: dict[str, str] | None = None) -> Request:
    return Request(
        {
            "type": "http",
            "method": "POST",
            "path": "/",
            "headers": [
                (k.lower().encode(), v.encode()) for k, v in (headers or {}).items()
            ],
            "client": ("10.0.0.1", 4321),
        }
    )


@pytest.fixture(autouse=True)
def _enable_rate_limiting():
    """Temporarily enable rate limiting for these tests."""
    limiter.enabled = True
    limiter.reset()
    yield
    limiter.enabled = False


class TestVerifyRateLimit:
    """Tests for the per-requester limit on POST /api/users/{username}/totp/verify."""

    async def test_rotating_forwarded_for_still_limited(
        self, client, make_user, auth_headers
    ):
        alice = await make_user("alice")
        bob = await make_user("bob")

        statuses = []
        for i in range(VERIFY_LIMIT + 1):
            response = await client.post(
                f"/api/users/{bob.username}/totp/verify",
                json={"code": "000000"},
                headers={
                    **auth_headers(alice),
                    "X-Forwarded-For": f"203.0.113.{i}",
                    "X-Real-IP": f"198.51.100.{i}",
                },
            )
            statuses.append(response.status_code)

        assert statuses[:VERIFY_LIMIT] == [200] * VERIFY_LIMIT
        assert statuses[-1] == 429
        assert "Rate limit" in response.json()["detail"]

    async def test_requesters_have_separate_budgets(
        self, client, make_user, auth_headers
    ):
        alice = await make_user("alice")
        carol = await make_user("carol")
        bob = await make_user("bob")
        url = f"/api/users/{bob.username}/totp/verify"

        for _ in range(VERIFY_LIMIT + 1):
            await client.post(url, json={"code": "000000"}, headers=auth_headers(alice))

        response = await client.post(
            url, json={"code": "000000"}, headers=auth_headers(carol)
        )

        assert response.status_code == 200


class TestLoginRateLimit:
    """Tests for the per-IP limit on POST /api/auth/login."""

    async def test_login_rate_limit_triggers_429(self, client):
        statuses = []
        for i in range(11):
            response = await client.post(
                "/api/auth/login",
                json={"email": "nobody@example.com", "password": "wrong"},
                headers={"X-Forwarded-For": f"203.0.113.{i}"},
            )
            statuses.append(response.status_code)

        assert statuses[-1] == 429


class TestRateLimitKeys:
    """Tests for the key functions."""

    def test_forwarding_headers_ignored_by_default(self):
        request = make_request(
            {"X-Forwarded-For": "203.0.113.7, 10.0.0.2", "X-Real-IP": "198.51.100.1"}
        )

        assert _get_real_client_ip(request) == "10.0.0.1"

    def test_forwarding_headers_used_behind_trusted_proxy(self, monkeypatch):
        monkeypatch.setattr(settings, "trust_forwarded_for", True)

        forwarded = make_request({"X-Forwarded-For": "203.0.113.7, 10.0.0.2"})
        real_ip = make_request({"X-Real-IP": "198.51.100.1"})

        assert _get_real_client_ip(forwarded) == "203.0.113.7"
        assert _get_real_client_ip(real_ip) == "198.51.100.1"

    def test_requester_key_from_bearer_token(self):
        user_id = uuid.uuid4()
        token = create_access_token(user_id=user_id, username="alice")

        request = make_request({"Authorization": f"Bearer {token}"})

        assert get_requester_key(request) == f"user:{user_id}"

    def test_requester_key_from_cookie(self):
        user_id = uuid.uuid4()
        token = create_access_token(user_id=user_id, username="alice")

        request = make_request({"Cookie": f"{settings.jwt_cookie_name}={token}"})

        assert get_requester_key(request) == f"user:{user_id}"

    def test_requester_key_falls_back_to_ip(self):
        assert get_requester_key(make_request()) == "ip:10.0.0.1"
        assert (
            get_requester_key(make_request({"Authorization": "Bearer garbage"}))
            == "ip:10.0.0.1"
        )
