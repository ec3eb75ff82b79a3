"""Tests for crowdlens.source.lapi — LAPI login, token refresh and queries."""

from __future__ import annotations

from typing import List

import httpx
import pytest

from crowdlens.source.lapi import LapiAuthError, LapiClient, LapiError


class FakeLapi:
    """Minimal LAPI stand-in served through ``httpx.MockTransport``."""

    def __init__(self, *, alerts=None, expire_first_token=False, login_status=200):
        self.alerts = alerts or []
        self.expire_first_token = expire_first_token
        self.login_status = login_status
        self.logins = 0
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/v1/watchers/login":
            self.logins += 1
            if self.login_status != 200:
                return httpx.Response(self.login_status, json={"message": "denied"})
            return httpx.Response(200, json={"token": f"token-{self.logins}"})
        if request.url.path == "/v1/alerts":
            auth = request.headers.get("Authorization")
            if self.expire_first_token and auth == "Bearer token-1":
                return httpx.Response(401, json={"message": "expired"})
            return httpx.Response(200, json=self.alerts)
        return httpx.Response(404)

    def client(self) -> LapiClient:
        return LapiClient(
            "http://lapi.local/",
            "web-ui",
            "secret",
            transport=httpx.MockTransport(self.handler),
        )


class TestLogin:
    def test_login_stores_token(self):
        lapi = FakeLapi()
        client = lapi.client()
        assert client.login() == "token-1"
        assert client.has_token is True
        body = lapi.requests[0].read()
        assert b'"machine_id":"web-ui"' in body.replace(b" ", b"")

    def test_login_failure_raises_auth_error(self):
        client = FakeLapi(login_status=403).client()
        with pytest.raises(LapiAuthError, match="403"):
            client.login()
        assert client.has_token is False

    def test_login_without_token_raises(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={}))
        client = LapiClient("http://lapi.local", "web-ui", "secret", transport=transport)
        with pytest.raises(LapiAuthError):
            client.login()


class TestRequests:
    def test_first_request_logs_in(self):
        lapi = FakeLapi(alerts=[{"id": 1}])
        client = lapi.client()
        assert client.get_alerts(since="168h", origin="cscli") == [{"id": 1}]
        assert lapi.logins == 1
        sent = lapi.requests[-1]
        assert sent.headers["Authorization"] == "Bearer token-1"
        assert sent.url.params["since"] == "168h"
        assert sent.url.params["origin"] == "cscli"
        assert sent.url.params["limit"] == "10000"
        assert "has_active_decision" not in sent.url.params

    def test_401_relogs_once_and_replays(self):
        lapi = FakeLapi(alerts=[{"id": 2}], expire_first_token=True)
        client = lapi.client()
        assert client.get_alerts(since="24h", scope="Ip", has_active_decision=True) == [
            {"id": 2}
        ]
        assert lapi.logins == 2
        sent = lapi.requests[-1]
        assert sent.url.params["scope"] == "Ip"
        assert sent.url.params["has_active_decision"] == "true"

    def test_server_error_raises_lapi_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/v1/watchers/login":
                return httpx.Response(200, json={"token": "t"})
            return httpx.Response(500)

        client = LapiClient(
            "http://lapi.local", "web-ui", "secret", transport=httpx.MockTransport(handler)
        )
        with pytest.raises(LapiError, match="500"):
            client.get_alerts(since="168h")

    def test_transport_error_raises_lapi_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/v1/watchers/login":
                return httpx.Response(200, json={"token": "t"})
            raise httpx.ConnectError("refused", request=request)

        client = LapiClient(
            "http://lapi.local", "web-ui", "secret", transport=httpx.MockTransport(handler)
        )
        with pytest.raises(LapiError):
            client.get_alerts(since="168h")

    def test_non_list_payload_is_empty(self):
        lapi = FakeLapi(alerts={"unexpected": True})
        assert lapi.client().get_alerts(since="168h") == []

    def test_context_manager_closes(self):
        with FakeLapi().client() as client:
            assert client.base_url == "http://lapi.local"
