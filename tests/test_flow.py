"""Tests for the Authorization Code flow orchestration."""

from __future__ import annotations

import asyncio

from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock, patch
from urllib.parse import parse_qs, urlparse

import pytest

from pysocialite.exceptions import (
    AuthenticationError,
    ConfigurationError,
    InvalidStateError,
    MalformedResponseError,
    TokenExchangeError,
)
from pysocialite.flow import AuthFlow, begin_auth, complete_auth, user_from_token
from pysocialite.session import MemorySessionStore
from pysocialite.state import STATE_SESSION_KEY, StateToken
from pysocialite.types import AuthFlowState, User
from tests.constants import TOKEN_URL, USERINFO_URL


if TYPE_CHECKING:
    from collections.abc import Callable

    from pysocialite.providers import GenericProvider
    from tests.conftest import FakeProviderServer


def _state_param(url: str) -> str:
    return parse_qs(urlparse(url).query)["state"][0]


class TestEndToEnd:
    """Redirect then callback against a stub provider."""

    def test_full_flow(
        self,
        make_provider: Callable[..., GenericProvider],
        fake_server: FakeProviderServer,
    ) -> None:
        provider = make_provider(scopes=["read", "write"])
        session = MemorySessionStore()

        async def run() -> tuple[str, str | None, User, str | None]:
            url = await begin_auth(provider, session=session)
            stored = await session.get(STATE_SESSION_KEY)
            user = await complete_auth(provider, "abc", _state_param(url), session=session)
            return url, stored, user, await session.get(STATE_SESSION_KEY)

        url, stored, user, after = asyncio.run(run())

        assert "scope=read%2Cwrite" in url
        assert stored is not None
        assert _state_param(url) == stored
        assert after is None

        assert user.id == "7"
        assert user.nickname == "u"
        assert user.token == "tok1"
        assert user.expires_in == 3600
        assert user.refresh_token is None
        assert user.raw == {"id": "7", "login": "u"}

        token_request = fake_server.requests_to(TOKEN_URL)[0]
        assert parse_qs(token_request.content.decode())["code"] == ["abc"]
        assert len(fake_server.requests_to(USERINFO_URL)) == 1

    def test_provider_methods_delegate_to_flow(
        self, make_provider: Callable[..., GenericProvider]
    ) -> None:
        provider = make_provider()
        session = MemorySessionStore()

        async def run() -> User:
            url = await provider.redirect(session=session)
            return await provider.user("abc", _state_param(url), session=session)

        assert asyncio.run(run()).token == "tok1"

    def test_each_redirect_issues_fresh_state(
        self, make_provider: Callable[..., GenericProvider]
    ) -> None:
        provider = make_provider()
        session = MemorySessionStore()

        async def run() -> tuple[str, str]:
            first = await begin_auth(provider, session=session)
            second = await begin_auth(provider, session=session)
            return _state_param(first), _state_param(second)

        first, second = asyncio.run(run())
        assert first != second


class TestStateValidation:
    """The token endpoint is never called when state validation fails."""

    def test_mismatched_state(
        self,
        make_provider: Callable[..., GenericProvider],
        fake_server: FakeProviderServer,
    ) -> None:
        provider = make_provider()
        session = MemorySessionStore()

        async def run() -> None:
            await begin_auth(provider, session=session)
            await complete_auth(provider, "abc", "forged", session=session)

        with pytest.raises(InvalidStateError):
            asyncio.run(run())
        assert fake_server.requests == []

    def test_missing_stored_state(
        self,
        make_provider: Callable[..., GenericProvider],
        fake_server: FakeProviderServer,
    ) -> None:
        with pytest.raises(InvalidStateError):
            asyncio.run(
                complete_auth(make_provider(), "abc", "x", session=MemorySessionStore())
            )
        assert fake_server.requests == []

    def test_empty_states(self, make_provider: Callable[..., GenericProvider]) -> None:
        with pytest.raises(InvalidStateError):
            asyncio.run(complete_auth(make_provider(), "abc", "", stored_state=""))

    def test_no_session_no_stored_state(
        self, make_provider: Callable[..., GenericProvider]
    ) -> None:
        with pytest.raises(InvalidStateError):
            asyncio.run(complete_auth(make_provider(), "abc", "x"))

    def test_state_cannot_be_replayed(
        self,
        make_provider: Callable[..., GenericProvider],
        fake_server: FakeProviderServer,
    ) -> None:
        provider = make_provider()
        session = MemorySessionStore()

        async def run() -> None:
            url = await begin_auth(provider, session=session)
            state = _state_param(url)
            await complete_auth(provider, "abc", state, session=session)
            await complete_auth(provider, "abc", state, session=session)

        with pytest.raises(InvalidStateError):
            asyncio.run(run())
        assert len(fake_server.requests_to(TOKEN_URL)) == 1

    def test_failed_validation_clears_state(
        self, make_provider: Callable[..., GenericProvider]
    ) -> None:
        provider = make_provider()
        session = MemorySessionStore()

        async def run() -> str | None:
            await begin_auth(provider, session=session)
            with pytest.raises(InvalidStateError):
                await complete_auth(provider, "abc", "forged", session=session)
            return await session.get(STATE_SESSION_KEY)

        assert asyncio.run(run()) is None

    def test_session_state_checked_by_consume(
        self, make_provider: Callable[..., GenericProvider]
    ) -> None:
        """With a session, validation goes through StateToken.consume."""
        provider = make_provider()
        session = MemorySessionStore()
        consume = AsyncMock(return_value=False)

        async def run() -> None:
            await begin_auth(provider, session=session)
            await complete_auth(provider, "abc", "s1", session=session)

        with patch.object(StateToken, "consume", consume), pytest.raises(InvalidStateError):
            asyncio.run(run())
        consume.assert_awaited_once_with("s1")

    def test_explicit_stored_state(self, make_provider: Callable[..., GenericProvider]) -> None:
        """The stored state can be passed instead of read from a session."""
        user = asyncio.run(complete_auth(make_provider(), "abc", "s1", stored_state="s1"))
        assert user.token == "tok1"

    def test_token_exchange_mock_not_awaited(
        self, make_provider: Callable[..., GenericProvider]
    ) -> None:
        provider = make_provider()
        provider.get_access_token_response = AsyncMock()  # type: ignore[method-assign]
        with pytest.raises(InvalidStateError):
            asyncio.run(complete_auth(provider, "abc", "x", stored_state="y"))
        assert provider.get_access_token_response.await_count == 0


class TestStateless:
    """Stateless providers skip state handling."""

    def test_stateless_flow(
        self,
        make_provider: Callable[..., GenericProvider],
        fake_server: FakeProviderServer,
    ) -> None:
        provider = make_provider(stateless=True)

        async def run() -> tuple[str, User]:
            url = await begin_auth(provider)
            return url, await complete_auth(provider, "abc", None)

        url, user = asyncio.run(run())
        assert "state" not in parse_qs(urlparse(url).query)
        assert user.id == "7"
        assert len(fake_server.requests_to(TOKEN_URL)) == 1

    def test_stateless_does_not_touch_session(
        self, make_provider: Callable[..., GenericProvider]
    ) -> None:
        session = MemorySessionStore()
        asyncio.run(begin_auth(make_provider(stateless=True), session=session))
        assert asyncio.run(session.get(STATE_SESSION_KEY)) is None

    def test_stateful_begin_requires_session(
        self, make_provider: Callable[..., GenericProvider]
    ) -> None:
        with pytest.raises(ConfigurationError, match="session store"):
            asyncio.run(begin_auth(make_provider()))


class TestFailures:
    """Errors surface as typed exceptions and end the flow."""

    def test_missing_code(
        self,
        make_provider: Callable[..., GenericProvider],
        fake_server: FakeProviderServer,
    ) -> None:
        with pytest.raises(AuthenticationError, match="code missing"):
            asyncio.run(complete_auth(make_provider(), None, "s", stored_state="s"))
        assert fake_server.requests == []

    def test_missing_access_token_skips_user_fetch(
        self,
        make_provider: Callable[..., GenericProvider],
        fake_server: FakeProviderServer,
    ) -> None:
        fake_server.token_response = (200, {"token_type": "bearer"})
        with pytest.raises(MalformedResponseError):
            asyncio.run(complete_auth(make_provider(), "abc", "s", stored_state="s"))
        assert fake_server.requests_to(USERINFO_URL) == []

    def test_get_user_by_token_not_called_after_exchange_error(
        self,
        make_provider: Callable[..., GenericProvider],
        fake_server: FakeProviderServer,
    ) -> None:
        fake_server.token_response = (500, "oops")
        provider = make_provider()
        provider.get_user_by_token = AsyncMock()  # type: ignore[method-assign]
        with pytest.raises(TokenExchangeError):
            asyncio.run(complete_auth(provider, "abc", "s", stored_state="s"))
        provider.get_user_by_token.assert_not_awaited()

    def test_non_mapping_user_payload(self, make_provider: Callable[..., GenericProvider]) -> None:
        provider = make_provider()
        provider.get_user_by_token = AsyncMock(return_value=["not", "a", "dict"])  # type: ignore[method-assign]
        with pytest.raises(MalformedResponseError):
            asyncio.run(complete_auth(provider, "abc", "s", stored_state="s"))


class TestAuthFlowStates:
    """State machine tracked by AuthFlow."""

    def test_success_path(self, make_provider: Callable[..., GenericProvider]) -> None:
        flow = AuthFlow(make_provider(), session=MemorySessionStore())
        assert flow.state is AuthFlowState.IDLE

        async def run() -> None:
            url = await flow.begin()
            assert flow.state is AuthFlowState.AWAITING_CALLBACK
            await flow.complete("abc", _state_param(url))

        asyncio.run(run())
        assert flow.state is AuthFlowState.COMPLETED
        assert flow.error is None

    def test_failure_is_terminal(self, make_provider: Callable[..., GenericProvider]) -> None:
        flow = AuthFlow(make_provider(), session=MemorySessionStore())

        async def run() -> None:
            await flow.begin()
            await flow.complete("abc", "forged")

        with pytest.raises(InvalidStateError):
            asyncio.run(run())
        assert flow.state is AuthFlowState.FAILED
        assert isinstance(flow.error, InvalidStateError)

        with pytest.raises(AuthenticationError, match="already finished"):
            asyncio.run(flow.complete("abc", "forged"))

    def test_begin_twice(self, make_provider: Callable[..., GenericProvider]) -> None:
        flow = AuthFlow(make_provider(), session=MemorySessionStore())

        async def run() -> None:
            await flow.begin()
            await flow.begin()

        with pytest.raises(AuthenticationError, match="already started"):
            asyncio.run(run())

    def test_transitions_logged(
        self,
        make_provider: Callable[..., GenericProvider],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        with caplog.at_level("DEBUG", logger="pysocialite.flow"):
            asyncio.run(complete_auth(make_provider(), "abc", "s", stored_state="s"))
        assert "validating -> exchanging" in caplog.text
        assert "fetching_user -> completed" in caplog.text

    def test_begin_redirect_override(self, make_provider: Callable[..., GenericProvider]) -> None:
        provider = make_provider()
        url = asyncio.run(
            AuthFlow(provider, session=MemorySessionStore()).begin(
                redirect_url="https://other/cb"
            )
        )
        assert parse_qs(urlparse(url).query)["redirect_uri"] == ["https://other/cb"]


class TestUserFromToken:
    """Tests for user_from_token()."""

    def test_skips_exchange(
        self,
        make_provider: Callable[..., GenericProvider],
        fake_server: FakeProviderServer,
    ) -> None:
        user = asyncio.run(user_from_token(make_provider(), "held-token"))
        assert user.token == "held-token"
        assert user.refresh_token is None
        assert user.expires_in is None
        assert fake_server.requests_to(TOKEN_URL) == []
        (request,) = fake_server.requests_to(USERINFO_URL)
        assert request.headers["Authorization"] == "Bearer held-token"

    def test_provider_method(self, make_provider: Callable[..., GenericProvider]) -> None:
        user = asyncio.run(make_provider().user_from_token("held-token"))
        assert user.nickname == "u"

    def test_raw_set_when_mapper_leaves_it_empty(
        self, make_provider: Callable[..., GenericProvider]
    ) -> None:
        provider = make_provider()

        def mapper(raw: dict[str, Any]) -> User:
            return User(id=str(raw["id"]))

        provider.map_user_to_object = mapper  # type: ignore[method-assign]
        user = asyncio.run(user_from_token(provider, "t"))
        assert user.raw == {"id": "7", "login": "u"}
