import os
import tempfile
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List
from urllib.parse import parse_qsl

import httpx
import pytest

os.environ.setdefault("LOG_FILE", os.path.join(tempfile.gettempdir(), "seller_bridge_test.log"))

from seller_bridge.core.config import Settings
from seller_bridge.external.daraz import DarazClient
from seller_bridge.schemas.account import AccountCredential
from seller_bridge.services.credential_store import CredentialStore

BASE_URL = "https://api.daraz.test/rest"


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        app_key="123",
        app_secret="abc",
        frontend_url="http://frontend.test",
        daraz_api_base_url=BASE_URL,
        daraz_auth_url="https://auth.daraz.test/oauth/authorize",
        daraz_logo_url="https://cdn.test/daraz.png",
        retry_attempts=3,
        retry_backoff_min=0,
        retry_backoff_max=0,
    )


@pytest.fixture
def store() -> CredentialStore:
    return CredentialStore()


@pytest.fixture
def make_credential() -> Callable[..., AccountCredential]:
    def _make(account_id: str = "S1", name: str = "shop-one", expires_in: int = 3600) -> AccountCredential:
        return AccountCredential(
            id=account_id,
            display_name=name,
            logo_url="https://cdn.test/daraz.png",
            access_token=f"access-{account_id}",
            refresh_token=f"refresh-{account_id}",
            access_token_expire_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        )

    return _make


class FakeDaraz:
    """In-process stand-in for the Daraz REST API, keyed by path."""

    def __init__(self):
        self.routes: Dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: List[httpx.Request] = []

    def reply(self, path: str, payload=None, status_code: int = 200):
        self.routes[path] = lambda request: httpx.Response(status_code, json=payload)

    def on(self, path: str, handler: Callable[[httpx.Request], httpx.Response]):
        self.routes[path] = handler

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path[len("/rest"):]
        if path not in self.routes:
            return httpx.Response(404, text=f"no route for {path}")
        return self.routes[path](request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @staticmethod
    def query(request: httpx.Request) -> Dict[str, str]:
        return dict(request.url.params)

    @staticmethod
    def form(request: httpx.Request) -> Dict[str, str]:
        return dict(parse_qsl(request.content.decode(), keep_blank_values=True))


@pytest.fixture
def fake_daraz() -> FakeDaraz:
    return FakeDaraz()


@pytest.fixture
def client(store, test_settings, fake_daraz) -> DarazClient:
    return DarazClient(store, test_settings, transport=fake_daraz.transport)


def token_envelope(seller_id: str = "S1", short_code: str = "BDSHOP1", expires_in: int = 2592000) -> dict:
    return {
        "code": "0",
        "request_id": "req-1",
        "data": {
            "access_token": f"access-{seller_id}",
            "refresh_token": f"refresh-{seller_id}",
            "expires_in": expires_in,
            "refresh_expires_in": 5184000,
            "country_user_info": [
                {"country": "bd", "seller_id": seller_id, "short_code": short_code, "user_id": "9001"}
            ],
        },
    }
