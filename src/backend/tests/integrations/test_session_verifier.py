from __future__ import annotations

import asyncio

import httpx

from src.backend.dashboard.integrations.session_verifier import (
    SessionVerifier,
    access_token_from,
)


def _patch_transport(monkeypatch, handler) -> list[httpx.Request]:
    seen: list[httpx.Request] = []
    real_client = httpx.AsyncClient

    def recording(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    def factory(**kwargs):
        return real_client(transport=httpx.MockTransport(recording), **kwargs)

    monkeypatch.setattr(httpx, "AsyncClient", factory)
    return seen


def _verifier() -> SessionVerifier:
    return SessionVerifier(auth_url="https://auth.example.com/", anon_key="anon")


def test_valid_token_returns_user(monkeypatch) -> None:
    seen = _patch_transport(
        monkeypatch,
        lambda req: httpx.Response(200, json={"id": "u-1", "email": "Owner@Acme.com"}),
    )

    user = asyncio.run(_verifier().get_current_user("tok"))

    assert user is not None
    assert user.user_id == "u-1"
    assert user.email == "owner@acme.com"
    assert str(seen[0].url) == "https://auth.example.com/auth/v1/user"
    assert seen[0].headers["authorization"] == "Bearer tok"
    assert seen[0].headers["apikey"] == "anon"


def test_rejected_token_is_anonymous(monkeypatch) -> None:
    _patch_transport(monkeypatch, lambda req: httpx.Response(401, json={"msg": "bad jwt"}))
    assert asyncio.run(_verifier().get_current_user("expired")) is None


def test_transport_failure_is_anonymous(monkeypatch) -> None:
    def boom(req: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=req)

    _patch_transport(monkeypatch, boom)
    assert asyncio.run(_verifier().get_current_user("tok")) is None


def test_missing_token_or_config_skips_network(monkeypatch) -> None:
    seen = _patch_transport(monkeypatch, lambda req: httpx.Response(200, json={}))

    assert asyncio.run(_verifier().get_current_user(None)) is None
    unconfigured = SessionVerifier(auth_url="", anon_key="")
    assert asyncio.run(unconfigured.get_current_user("tok")) is None
    assert seen == []


def test_access_token_from_header_then_cookie() -> None:
    assert access_token_from({"authorization": "Bearer abc"}, {"sb-access-token": "c"}) == "abc"
    assert access_token_from({"authorization": "Basic xyz"}, {"sb-access-token": "c"}) == "c"
    assert access_token_from({}, {}) is None
