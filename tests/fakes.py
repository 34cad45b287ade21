"""
Fake Discord + Fitbit backend served through ``httpx.MockTransport``.
"""

import asyncio
import json
from collections import Counter
from typing import Any, Dict, List
from urllib.parse import parse_qs, parse_qsl, urlparse

import httpx

from core.services import Services

DISCORD_USER = "A-user-42"
FITBIT_USER = "B-user-7"

PROFILE = {
    "user": {
        "encodedId": FITBIT_USER,
        "displayName": "Sam",
        "averageDailySteps": 9120,
        "ambassador": False,
        "memberSince": "2016-03-01",
        "isCoach": True,
        "topBadges": [],
    }
}


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeProviders:
    """Minimal Discord + Fitbit APIs.  Counts calls, records pushes."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.refreshes: Counter = Counter()
        self.revocations: Counter = Counter()
        self.pushed: List[Dict[str, Any]] = []
        self.push_auth: List[str] = []
        self.code_grants: Dict[str, Dict[str, str]] = {}
        self.token_auth: Dict[str, str] = {}
        self.profile: Dict[str, Any] = PROFILE
        self.profile_status = 200
        self.push_status = 200
        self.refresh_status = 200
        self.revoke_status = 200
        self.discord_user_id = DISCORD_USER
        self.fitbit_user_id = FITBIT_USER
        self._issued = 0

    def _token(self, provider: str, **extra: Any) -> httpx.Response:
        self._issued += 1
        body = {
            "access_token": f"{provider}-access-{self._issued}",
            "refresh_token": f"{provider}-refresh-{self._issued}",
            "expires_in": 3600,
            "scope": "identify role_connections.write" if provider == "discord" else "activity profile",
            "token_type": "Bearer",
            **extra,
        }
        return httpx.Response(200, json=body)

    async def _token_endpoint(self, provider: str, request: httpx.Request) -> httpx.Response:
        form = dict(parse_qsl(request.content.decode()))
        self.token_auth[provider] = request.headers.get("Authorization", "")
        if form["grant_type"] == "refresh_token":
            self.refreshes[provider] += 1
            # let concurrent callers interleave while the refresh is in flight
            await asyncio.sleep(0)
            if self.refresh_status != 200:
                return httpx.Response(self.refresh_status, json={"error": "invalid_grant"})
        else:
            self.code_grants[provider] = form
            if form["code"] == "bad-code":
                return httpx.Response(400, json={"error": "invalid_grant"})
        if provider == "fitbit":
            return self._token(provider, user_id=self.fitbit_user_id)
        return self._token(provider)

    async def handle(self, request: httpx.Request) -> httpx.Response:
        host, path, method = request.url.host, request.url.path, request.method
        self.calls.append((method, host, path))

        if host == "discord.com":
            if path == "/api/v10/oauth2/token":
                return await self._token_endpoint("discord", request)
            if path == "/api/v10/oauth2/token/revoke":
                self.revocations["discord"] += 1
                return httpx.Response(self.revoke_status)
            if path == "/api/v10/oauth2/@me":
                return httpx.Response(
                    200,
                    json={"user": {"id": self.discord_user_id, "username": "sam"}, "scopes": ["identify"]},
                )
            if path.endswith("/role-connection"):
                if method == "GET":
                    return httpx.Response(200, json=self.pushed[-1] if self.pushed else {})
                if self.push_status != 200:
                    return httpx.Response(self.push_status, json={"message": "nope"})
                self.pushed.append(json.loads(request.content))
                self.push_auth.append(request.headers["Authorization"])
                return httpx.Response(200, json=self.pushed[-1])

        if host == "api.fitbit.com":
            if path == "/oauth2/token":
                return await self._token_endpoint("fitbit", request)
            if path == "/oauth2/revoke":
                self.revocations["fitbit"] += 1
                return httpx.Response(self.revoke_status)
            if path == "/1/user/-/profile.json":
                if self.profile_status != 200:
                    return httpx.Response(self.profile_status, json={"errors": []})
                return httpx.Response(200, json=self.profile)
            if path.startswith("/1/user/-/apiSubscriptions/"):
                return httpx.Response(201, json={"subscriptionId": path.rsplit("/", 1)[-1]})

        return httpx.Response(404)

    def network_calls(self) -> int:
        return len(self.calls)


def query_params(url: str) -> Dict[str, str]:
    return {k: v[0] for k, v in parse_qs(urlparse(url).query).items()}


async def link_user(services: Services, fitbit_code: str = "C2"):
    """Drive both OAuth callbacks at service level; returns the first SyncResult."""
    discord_request = await services.link_flow.start()
    fitbit_request = await services.link_flow.complete_discord(
        "C1", discord_request.state, discord_request.state
    )
    return await services.link_flow.complete_fitbit(fitbit_code, fitbit_request.state)
