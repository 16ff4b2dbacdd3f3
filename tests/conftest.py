"""Pytest configuration and fixtures."""

from __future__ import annotations

import json
import os

from typing import TYPE_CHECKING, Any

import httpx
import pytest

from pysocialite.config import clear_settings
from pysocialite.http import HttpClient
from pysocialite.providers import GenericProvider
from pysocialite.types import ProviderConfig
from tests.constants import (
    AUTHORIZE_URL,
    CLIENT_ID,
    CLIENT_SECRET,
    REDIRECT_URL,
    TOKEN_URL,
    USERINFO_URL,
)


if TYPE_CHECKING:
    from collections.abc import Callable, Generator


def _endpoint(request: httpx.Request) -> str:
    return f"{request.url.scheme}://{request.url.host}{request.url.path}"


class FakeProviderServer:
    """Canned token and user endpoints served through ``httpx.MockTransport``.

    Each endpoint answers with ``(status, body)``; a dict body is sent as
    JSON, a string body as-is. Every request is recorded.
    """

    def __init__(self) -> None:
        self.token_response: tuple[int, Any] = (
            200,
            {"access_token": "tok1", "expires_in": 3600},
        )
        self.user_response: tuple[int, Any] = (200, {"id": "7", "login": "u"})
        self.requests: list[httpx.Request] = []
        self.error: Exception | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        url = _endpoint(request)
        if url == TOKEN_URL:
            status, body = self.token_response
        elif url == USERINFO_URL:
            status, body = self.user_response
        else:
            return httpx.Response(404, text="not found")
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, text=json.dumps(body))

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def requests_to(self, url: str) -> list[httpx.Request]:
        return [r for r in self.requests if _endpoint(r) == url]


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch) -> Generator[None, None, None]:
    """Keep config files and PYSOCIALITE env vars from leaking into tests."""
    for name in list(os.environ):
        if name.startswith("PYSOCIALITE"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.setenv("APPDATA", str(tmp_path / "appdata"))
    monkeypatch.chdir(tmp_path)
    clear_settings()
    yield
    clear_settings()


@pytest.fixture
def fake_server() -> FakeProviderServer:
    """A fresh fake provider."""
    return FakeProviderServer()


@pytest.fixture
def http_client(fake_server: FakeProviderServer) -> HttpClient:
    """An HttpClient wired to the fake provider."""
    return HttpClient(transport=fake_server.transport)


@pytest.fixture
def provider_config() -> ProviderConfig:
    """Credentials used throughout the tests."""
    return ProviderConfig(
        client_id=CLIENT_ID, client_secret=CLIENT_SECRET, redirect_url=REDIRECT_URL
    )


@pytest.fixture
def make_provider(
    provider_config: ProviderConfig, http_client: HttpClient
) -> Callable[..., GenericProvider]:
    """Factory for GenericProviders talking to the fake provider."""

    def _make(**kwargs: Any) -> GenericProvider:
        config = kwargs.pop("config", provider_config)
        kwargs.setdefault("authorize_url", AUTHORIZE_URL)
        kwargs.setdefault("token_url", TOKEN_URL)
        kwargs.setdefault("userinfo_url", USERINFO_URL)
        kwargs.setdefault("http", http_client)
        kwargs.setdefault("name", "fake")
        return GenericProvider(config, **kwargs)

    return _make
