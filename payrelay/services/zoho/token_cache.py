"""Cached Zoho OAuth access token with single-flight refresh."""

import asyncio
import time
from dataclasses import dataclass
from typing import Callable

import httpx

from payrelay.common.errors import AuthError
from payrelay.common.http import send
from payrelay.common.logging import logger
from payrelay.common.metrics import token_refresh_total


# Tokens this close to expiry are treated as expired.
EXPIRY_MARGIN_SECONDS = 5.0
DEFAULT_EXPIRES_IN_SECONDS = 3600


@dataclass
class Credential:
    access_token: str
    expires_at: float


class TokenCache:
    """Holds one access token and exchanges the refresh token when needed.

    Concurrent callers that find the token expired share one refresh call:
    the refresh runs under a lock and the cache is re-checked once the lock
    is held.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        token_url: str,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.http = http
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.clock = clock
        self._credential: Credential | None = None
        self._lock = asyncio.Lock()

    def _cached(self) -> str | None:
        credential = self._credential
        if credential and credential.expires_at > self.clock() + EXPIRY_MARGIN_SECONDS:
            return credential.access_token
        return None

    async def get_access_token(self) -> str:
        """Return a token valid for at least the safety margin."""

        token = self._cached()
        if token is not None:
            return token
        async with self._lock:
            token = self._cached()
            if token is not None:
                return token
            self._credential = await self._refresh()
            return self._credential.access_token

    def invalidate(self) -> None:
        """Forget the cached token so the next call refreshes."""

        self._credential = None

    async def _refresh(self) -> Credential:
        if not (self.client_id and self.client_secret and self.refresh_token):
            token_refresh_total.labels(result="unconfigured").inc()
            raise AuthError("Zoho OAuth credentials are not configured")

        resp = await send(
            self.http,
            "zoho_oauth",
            "POST",
            self.token_url,
            data={
                "refresh_token": self.refresh_token,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "grant_type": "refresh_token",
            },
        )
        try:
            data = resp.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}
        access_token = data.get("access_token")
        if not access_token:
            token_refresh_total.labels(result="failed").inc()
            logger.error("zoho token refresh failed status=%s error=%s", resp.status_code, data.get("error"))
            raise AuthError(
                data.get("error_description") or data.get("error") or "Could not get Zoho access token"
            )

        expires_in = data.get("expires_in") or DEFAULT_EXPIRES_IN_SECONDS
        token_refresh_total.labels(result="ok").inc()
        logger.info("zoho access token refreshed expires_in=%s", expires_in)
        return Credential(access_token=access_token, expires_at=self.clock() + float(expires_in))
