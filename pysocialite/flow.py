"""Authorization Code flow orchestration.

Ties a provider, the CSRF state token, and the session store together:
``begin_auth`` produces the redirect URL, ``complete_auth`` validates the
callback, exchanges the code, and maps the user. The functions work on
any ``AbstractProvider``; ``AuthFlow`` tracks one attempt's state.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import logging

from collections.abc import Mapping
from typing import TYPE_CHECKING

from .exceptions import (
    AuthenticationError,
    ConfigurationError,
    InvalidStateError,
    MalformedResponseError,
)
from .state import StateToken, validate_state
from .types import AuthFlowState


if TYPE_CHECKING:
    from .providers.base import AbstractProvider
    from .session import SessionStore
    from .types import User


logger = logging.getLogger("pysocialite.flow")


_TERMINAL_STATES = frozenset({AuthFlowState.COMPLETED, AuthFlowState.FAILED})


async def _fetch_user(provider: AbstractProvider, token: str) -> User:
    """Fetch the raw user and map it to a canonical ``User``."""
    raw = await provider.get_user_by_token(token)
    if not isinstance(raw, Mapping):
        msg = "User payload is not a JSON object"
        raise MalformedResponseError(msg, body=repr(raw), driver=provider.name)
    raw = dict(raw)
    user = provider.map_user_to_object(raw)
    if not user.raw:
        user.set_raw(raw)
    return user


class AuthFlow:
    """One authorization attempt against a provider.

    Moves through ``IDLE -> AWAITING_CALLBACK -> VALIDATING -> EXCHANGING
    -> FETCHING_USER -> COMPLETED``; any failure moves it to ``FAILED``.
    Both end states are terminal and nothing is retried: the user starts
    over with a fresh authorization URL, which also issues a fresh state.

    Parameters
    ----------
    provider : AbstractProvider
        The configured provider.
    session : SessionStore, optional
        The browser session store. Required for stateful providers unless
        the stored state is passed to ``complete`` explicitly.
    """

    def __init__(self, provider: AbstractProvider, session: SessionStore | None = None) -> None:
        """Initialize the flow."""
        self.provider = provider
        self.session = session
        self.error: Exception | None = None
        self._state = AuthFlowState.IDLE

    @property
    def state(self) -> AuthFlowState:
        """Current state of the flow."""
        return self._state

    def _transition(self, state: AuthFlowState) -> None:
        logger.debug("%s: flow %s -> %s", self.provider.name, self._state.value, state.value)
        self._state = state

    async def begin(self, redirect_url: str | None = None) -> str:
        """Build the authorization URL, persisting a fresh state if stateful.

        Parameters
        ----------
        redirect_url : str, optional
            Overrides the provider's configured redirect URL.

        Returns
        -------
        str
            The URL the caller should redirect the user to.

        Raises
        ------
        ConfigurationError
            If the provider is stateful and no session store is available.
        """
        if self._state is not AuthFlowState.IDLE:
            msg = f"Flow already started (state={self._state.value})"
            raise AuthenticationError(msg, driver=self.provider.name)

        provider = self.provider
        if redirect_url is not None:
            provider.with_redirect_url(redirect_url)

        state: str | None = None
        if provider.uses_state():
            if self.session is None:
                msg = "A session store is required for stateful providers"
                raise ConfigurationError(msg, driver=provider.name)
            state = await StateToken(self.session).issue()

        url = provider.get_auth_url(state)
        self._transition(AuthFlowState.AWAITING_CALLBACK)
        return url

    async def complete(
        self,
        code: str | None,
        state: str | None,
        *,
        stored_state: str | None = None,
    ) -> User:
        """Handle the provider callback.

        Parameters
        ----------
        code : str or None
            The ``code`` query parameter from the callback.
        state : str or None
            The ``state`` query parameter from the callback.
        stored_state : str, optional
            The state persisted by ``begin``. Read (and cleared) from the
            session store when omitted.

        Returns
        -------
        User
            The mapped user with token fields attached.

        Raises
        ------
        InvalidStateError
            If the provider is stateful and the state does not match.
            No request is sent to the provider in that case.
        TransportError, TokenExchangeError, MalformedResponseError
            If the token exchange or user fetch fails.
        """
        if self._state in _TERMINAL_STATES:
            msg = f"Flow already finished (state={self._state.value})"
            raise AuthenticationError(msg, driver=self.provider.name)

        provider = self.provider
        try:
            self._transition(AuthFlowState.VALIDATING)
            if provider.uses_state():
                token = StateToken(self.session) if self.session is not None else None
                if token is not None and stored_state is None:
                    valid = await token.consume(state)
                else:
                    if token is not None:
                        await token.pop()
                    valid = validate_state(stored_state, state)
                if not valid:
                    raise InvalidStateError(driver=provider.name)  # noqa: TRY301
            if not code:
                msg = "Authorization code missing from callback"
                raise AuthenticationError(msg, driver=provider.name)  # noqa: TRY301

            self._transition(AuthFlowState.EXCHANGING)
            tokens = await provider.get_access_token_response(code)

            self._transition(AuthFlowState.FETCHING_USER)
            user = await _fetch_user(provider, tokens.access_token)
        except Exception as exc:
            self.error = exc
            self._transition(AuthFlowState.FAILED)
            logger.warning("%s: authorization failed: %s", provider.name, exc)
            raise

        user.set_token(tokens.access_token)
        user.set_refresh_token(tokens.refresh_token)
        user.set_expires_in(tokens.expires_in)
        self._transition(AuthFlowState.COMPLETED)
        logger.info("%s: authorization completed for user %s", provider.name, user.id)
        return user


async def begin_auth(
    provider: AbstractProvider,
    session: SessionStore | None = None,
    redirect_url: str | None = None,
) -> str:
    """Build the authorization URL for ``provider``.

    See ``AuthFlow.begin``.
    """
    return await AuthFlow(provider, session=session).begin(redirect_url=redirect_url)


async def complete_auth(
    provider: AbstractProvider,
    code: str | None,
    state: str | None,
    *,
    stored_state: str | None = None,
    session: SessionStore | None = None,
) -> User:
    """Validate a callback and return the authenticated user.

    See ``AuthFlow.complete``.
    """
    flow = AuthFlow(provider, session=session)
    return await flow.complete(code, state, stored_state=stored_state)


async def user_from_token(provider: AbstractProvider, token: str) -> User:
    """Get the user for an access token already held by the caller.

    Skips the code exchange; ``refresh_token`` and ``expires_in`` stay unset.
    """
    user = await _fetch_user(provider, token)
    return user.set_token(token)
