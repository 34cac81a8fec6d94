from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from config.settings import Settings


logger = logging.getLogger("product_type_export")


class TransportError(RuntimeError):
    def __init__(self, message: str, status_code: int = 0) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass
class CTPHttpResult:
    ok: bool
    status_code: int
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class CommercetoolsClient:
    """
    Thin client for the commercetools HTTP API.

    Auth is the client-credentials flow: POST {auth_url}/oauth/token with basic
    auth, the token is reused until shortly before it expires.
    """
    RETRYABLE_STATUS = (429, 500, 502, 503, 504)
    TOKEN_EXPIRY_MARGIN_S = 60

    def __init__(
        self,
        settings: Settings,
        timeout: float = 20.0,
        max_retries: int = 4,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.settings = settings
        self.timeout = timeout
        self.max_retries = max_retries
        self._client = httpx.Client(
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
            headers={"User-Agent": settings.user_agent, "Accept": "application/json"},
            transport=transport,
        )
        self._token: Optional[str] = None
        self._token_expires_at = 0.0

    def close(self) -> None:
        self._client.close()

    def _access_token(self) -> str:
        if self._token and time.monotonic() < self._token_expires_at:
            return self._token

        r = self._client.post(
            f"{self.settings.auth_url}/oauth/token",
            auth=(self.settings.client_id, self.settings.client_secret),
            data={"grant_type": "client_credentials", "scope": self.settings.token_scope},
        )
        if r.status_code != 200:
            raise TransportError(f"Token request failed: HTTP {r.status_code}: {r.text[:200]}", r.status_code)

        data = r.json()
        self._token = data["access_token"]
        expires_in = int(data.get("expires_in", 0))
        self._token_expires_at = time.monotonic() + max(0, expires_in - self.TOKEN_EXPIRY_MARGIN_S)
        return self._token

    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> CTPHttpResult:
        url = f"{self.settings.api_url}/{self.settings.project_key}/{endpoint.lstrip('/')}"

        # Retry with exponential backoff for transient 429/5xx and network errors.
        # A 401 drops the cached token and retries once with a fresh one.
        last_err = None
        refreshed = False
        for attempt in range(self.max_retries + 1):
            try:
                token = self._access_token()
                r = self._client.get(url, params=params, headers={"Authorization": f"Bearer {token}"})
            except httpx.HTTPError as e:
                last_err = repr(e)
                logger.warning("GET %s failed (attempt %d): %s", endpoint, attempt + 1, last_err)
                self._sleep_backoff(attempt)
                continue

            if r.status_code == 200:
                return CTPHttpResult(ok=True, status_code=200, data=r.json())
            if r.status_code == 401 and not refreshed:
                refreshed = True
                self._token = None
                continue
            if r.status_code in self.RETRYABLE_STATUS:
                last_err = f"HTTP {r.status_code}: {r.text[:200]}"
                logger.warning("GET %s returned %s (attempt %d)", endpoint, r.status_code, attempt + 1)
                self._sleep_backoff(attempt)
                continue
            return CTPHttpResult(ok=False, status_code=r.status_code, error=r.text[:500])

        return CTPHttpResult(ok=False, status_code=0, error=last_err or "unknown error")

    @staticmethod
    def _sleep_backoff(attempt: int) -> None:
        # 0.6, 1.2, 2.4, 4.8 ... + jitter
        base = 0.6 * (2 ** attempt)
        jitter = random.uniform(0.0, 0.4)
        time.sleep(min(10.0, base + jitter))
