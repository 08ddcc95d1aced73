"""Session verification against the hosted auth provider.

The provider exposes `GET {AUTH_URL}/auth/v1/user`, which returns the user for
a valid access token and 401 otherwise. The gate and the API dependencies only
need to know "who is this, if anyone", so every failure maps to None.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

import httpx

from src.backend.common.config.app_config import AppConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AuthenticatedUser:
    user_id: str
    email: str


class SessionVerifier:
    def __init__(self, *, auth_url: str, anon_key: str, timeout_seconds: float = 10.0) -> None:
        self._auth_url = auth_url.rstrip("/")
        self._anon_key = anon_key
        self._timeout_seconds = timeout_seconds

    @classmethod
    def from_config(cls, cfg: AppConfig) -> "SessionVerifier":
        return cls(
            auth_url=cfg.auth_url,
            anon_key=cfg.auth_anon_key,
            timeout_seconds=cfg.auth_http_timeout_seconds,
        )

    @property
    def configured(self) -> bool:
        return bool(self._auth_url and self._anon_key)

    async def get_current_user(self, access_token: str | None) -> AuthenticatedUser | None:
        if not access_token:
            return None
        if not self.configured:
            logger.warning("AUTH_URL/AUTH_ANON_KEY not set; treating request as anonymous")
            return None

        url = f"{self._auth_url}/auth/v1/user"
        headers = {"Authorization": f"Bearer {access_token}", "apikey": self._anon_key}
        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                resp = await client.get(url, headers=headers)
        except httpx.HTTPError as e:
            logger.warning("Session verification request failed: %s", e)
            return None

        if resp.status_code >= 400:
            if resp.status_code != 401:
                logger.warning("Session verification returned HTTP %d", resp.status_code)
            return None

        try:
            payload = resp.json()
        except ValueError:
            logger.warning("Session verification returned a non-JSON body")
            return None
        return _user_from_payload(payload)


def _user_from_payload(payload: Any) -> AuthenticatedUser | None:
    if not isinstance(payload, dict):
        return None
    user_id = str(payload.get("id") or "")
    email = str(payload.get("email") or "").strip().lower()
    if not user_id or not email:
        return None
    return AuthenticatedUser(user_id=user_id, email=email)


ACCESS_TOKEN_COOKIE = "sb-access-token"


def access_token_from(headers: Mapping[str, str], cookies: Mapping[str, str]) -> str | None:
    """Bearer token from the Authorization header, else the session cookie."""

    authorization = headers.get("authorization") or ""
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return cookies.get(ACCESS_TOKEN_COOKIE) or None
