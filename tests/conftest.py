"""Test configuration and fixtures"""

import inspect
from dataclasses import dataclass, field
from typing import Any, Callable

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from tidal_client.core.credentials import Credential
from tidal_client.tidal.client import TidalClient


TEST_CLIENT_ID = "test-client-id"


@dataclass
class RecordedRequest:
    """What the fake server saw for one request"""
    method: str
    path: str
    query: dict[str, str]
    form: dict[str, str]
    headers: dict[str, str] = field(default_factory=dict)
    raw: web.Request | None = field(default=None, repr=False, compare=False)


class FakeTidal:
    """
    In-process stand-in for the TIDAL auth and API hosts.

    Handlers are registered per (method, path) and receive the
    RecordedRequest; they return an aiohttp response. Unknown routes
    answer with a TIDAL style 404.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Callable] = {}
        self.requests: list[RecordedRequest] = []
        self.server: TestServer | None = None
        self.app = web.Application()
        self.app.router.add_route("*", "/{tail:.*}", self._dispatch)

    @property
    def api_url(self) -> str:
        return str(self.server.make_url("/v1"))

    @property
    def auth_url(self) -> str:
        return str(self.server.make_url("/auth/v1"))

    def url(self, path: str) -> str:
        return str(self.server.make_url(path))

    def route(self, method: str, path: str, handler: Callable) -> None:
        self.routes[(method, path)] = handler

    def json(
        self,
        method: str,
        path: str,
        payload: Any,
        status: int = 200,
        headers: dict[str, str] | None = None
    ) -> None:
        """Register a fixed JSON answer"""
        self.route(
            method, path,
            lambda request: web.json_response(payload, status=status, headers=headers)
        )

    def calls(self, method: str, path: str) -> list[RecordedRequest]:
        return [r for r in self.requests if r.method == method and r.path == path]

    async def _dispatch(self, request: web.Request) -> web.StreamResponse:
        form = {}
        if request.method == "POST":
            form = dict(await request.post())

        recorded = RecordedRequest(
            method=request.method,
            path=request.path,
            query=dict(request.query),
            form=form,
            headers=dict(request.headers),
            raw=request,
        )
        self.requests.append(recorded)

        handler = self.routes.get((request.method, request.path))
        if handler is None:
            return web.json_response(
                {"status": 404, "subStatus": 2001, "userMessage": "The requested resource could not be found"},
                status=404
            )

        response = handler(recorded)
        if inspect.isawaitable(response):
            response = await response
        return response


# =============================================================================
# Payload builders
# =============================================================================

def track_payload(track_id: int, title: str = "Test Song", **extra: Any) -> dict[str, Any]:
    payload = {
        "id": track_id,
        "title": title,
        "trackNumber": 1,
        "duration": 210,
        "explicit": False,
        "audioQuality": "LOSSLESS",
        "artists": [{"id": 7, "name": "Test Artist", "type": "MAIN"}],
        "album": {"id": 99, "title": "Test Album", "cover": "aa-bb-cc"},
    }
    payload.update(extra)
    return payload


def page_payload(items: list, offset: int = 0, total: int | None = None, limit: int = 100) -> dict[str, Any]:
    return {
        "items": items,
        "offset": offset,
        "limit": limit,
        "totalNumberOfItems": len(items) if total is None else total,
    }


def error_payload(status: int, sub_status: int, message: str = "") -> dict[str, Any]:
    return {"status": status, "subStatus": sub_status, "userMessage": message}


def token_payload(
    access_token: str,
    refresh_token: str | None = None,
    user_id: int = 12345,
    country_code: str = "DE"
) -> dict[str, Any]:
    payload = {
        "access_token": access_token,
        "expires_in": 604800,
        "token_type": "Bearer",
        "scope": "r_usr w_usr w_sub",
        "user": {"userId": user_id, "username": "tester", "countryCode": country_code},
        "user_id": user_id,
    }
    if refresh_token is not None:
        payload["refresh_token"] = refresh_token
    return payload


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def credential():
    """A logged in user without explicit country"""
    return Credential(
        access_token="old-access",
        refresh_token="refresh-1",
        user_id=12345,
        country_code="SE",
    )


@pytest.fixture
def make_track():
    return track_payload


@pytest.fixture
def make_page():
    return page_payload


@pytest.fixture
def make_error():
    return error_payload


@pytest.fixture
def make_token():
    return token_payload


@pytest_asyncio.fixture
async def fake_tidal():
    """Running fake TIDAL server"""
    fake = FakeTidal()
    server = TestServer(fake.app)
    await server.start_server()
    fake.server = server
    yield fake
    await server.close()


@pytest_asyncio.fixture
async def client(fake_tidal, credential):
    """TidalClient pointed at the fake server"""
    tidal_client = TidalClient(
        TEST_CLIENT_ID,
        credential=credential,
        api_base_url=fake_tidal.api_url,
        auth_base_url=fake_tidal.auth_url,
    )
    yield tidal_client
    await tidal_client.close()
