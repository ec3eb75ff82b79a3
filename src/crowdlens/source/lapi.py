"""Synchronous client for the CrowdSec Local API (LAPI).

Authenticates as a watcher machine and reads alerts.  All methods block
and are meant to run inside ``asyncio.to_thread()``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

USER_AGENT = "crowdlens/0.1.0"
LOGIN_PATH = "/v1/watchers/login"


class LapiError(RuntimeError):
    """Raised when the LAPI cannot be reached or answers with an error."""


class LapiAuthError(LapiError):
    """Raised when watcher login fails."""


class LapiClient:
    def __init__(
        self,
        base_url: str,
        machine_id: str,
        password: str,
        timeout: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.machine_id = machine_id
        self.password = password
        self._token: Optional[str] = None
        self._client = httpx.Client(
            base_url=self.base_url,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "LapiClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    @property
    def has_token(self) -> bool:
        return self._token is not None

    def login(self) -> str:
        logger.info("Logging in to CrowdSec LAPI at %s as %s", self.base_url, self.machine_id)
        try:
            resp = self._client.post(
                LOGIN_PATH,
                json={
                    "machine_id": self.machine_id,
                    "password": self.password,
                    "scenarios": ["manual/web-ui"],
                },
            )
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as exc:
            self._token = None
            raise LapiAuthError(
                f"LAPI login failed with status {exc.response.status_code}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            self._token = None
            raise LapiAuthError(f"LAPI login failed: {exc}") from exc

        token = data.get("token") if isinstance(data, dict) else None
        if not token:
            self._token = None
            raise LapiAuthError("LAPI login response did not contain a token")
        self._token = token
        logger.info("Logged in to CrowdSec LAPI")
        return token

    def _send(self, method: str, path: str, params: Optional[Dict[str, Any]]) -> httpx.Response:
        return self._client.request(
            method,
            path,
            params=params,
            headers={"Authorization": f"Bearer {self._token}"},
        )

    def request(
        self, method: str, path: str, params: Optional[Dict[str, Any]] = None
    ) -> Any:
        """Authenticated request; a 401 triggers one re-login and replay."""
        if not self._token:
            self.login()
        try:
            resp = self._send(method, path, params)
            if resp.status_code == 401:
                logger.info("LAPI returned 401 for %s %s, logging in again", method, path)
                self.login()
                resp = self._send(method, path, params)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as exc:
            raise LapiError(
                f"LAPI {method} {path} failed with status {exc.response.status_code}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise LapiError(f"LAPI {method} {path} failed: {exc}") from exc

    def get_alerts(
        self,
        *,
        since: str,
        origin: Optional[str] = None,
        scope: Optional[str] = None,
        has_active_decision: bool = False,
        limit: int = 10000,
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"since": since, "limit": limit}
        if origin:
            params["origin"] = origin
        if scope:
            params["scope"] = scope
        if has_active_decision:
            params["has_active_decision"] = "true"
        data = self.request("GET", "/v1/alerts", params=params)
        if not isinstance(data, list):
            return []
        return [item for item in data if isinstance(item, dict)]
