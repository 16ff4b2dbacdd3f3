"""FastAPI routes for the authorization flow.

Mounts a redirect and a callback endpoint per configured driver. The
browser session is identified by a cookie; the state nonce lives in the
session store returned for that cookie value.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import inspect
import logging
import secrets

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from .exceptions import (
    AuthenticationError,
    ConfigurationError,
    InvalidProviderError,
    InvalidStateError,
    MalformedResponseError,
    TokenExchangeError,
    TransportError,
)
from .flow import begin_auth, complete_auth
from .providers.base import AbstractProvider
from .session import MemorySessionRegistry


if TYPE_CHECKING:
    from .manager import SocialiteManager
    from .session import SessionStore
    from .types import User


logger = logging.getLogger("pysocialite.routes")

#: Cookie holding the browser session id.
SESSION_COOKIE = "pysocialite_session"

#: Lifetime of the session cookie in seconds.
SESSION_COOKIE_MAX_AGE = 600

SessionStoreFactory = Callable[[str], "SessionStore"]
LoginHandler = Callable[["User"], Any]


def _error(status_code: int, error: str, description: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "error_description": description},
    )


def _public_profile(user: User) -> dict[str, Any]:
    """User fields safe to return to the browser (no tokens)."""
    return {
        "id": user.id,
        "nickname": user.nickname,
        "name": user.name,
        "email": user.email,
        "avatar": user.avatar,
    }


def create_auth_router(  # noqa: C901
    manager: SocialiteManager,
    *,
    session_store_factory: SessionStoreFactory | None = None,
    prefix: str = "/auth",
    on_login: LoginHandler | None = None,
) -> APIRouter:
    """Create a FastAPI router with the redirect and callback routes.

    Parameters
    ----------
    manager : SocialiteManager
        Resolves the ``{driver}`` path segment to a provider.
    session_store_factory : callable, optional
        Maps a session id to its ``SessionStore``. Defaults to a bounded
        in-memory ``MemorySessionRegistry`` (single process only).
    prefix : str
        Route prefix (default ``"/auth"``).
    on_login : callable, optional
        Called with the authenticated ``User``; may be async. A returned
        ``Response`` is sent as-is, anything else is sent as JSON. When
        omitted the callback returns the user's profile fields.

    Returns
    -------
    APIRouter
        Router with ``{prefix}/{driver}/redirect`` and
        ``{prefix}/{driver}/callback``.
    """
    router = APIRouter(prefix=prefix, tags=["authentication"])
    store_for = (
        session_store_factory if session_store_factory is not None else MemorySessionRegistry()
    )

    def _provider_for(driver: str, request: Request) -> AbstractProvider | None:
        """Request-scoped copy of the driver, with its redirect URL resolved."""
        try:
            provider = manager.driver(driver)
        except (ConfigurationError, InvalidProviderError) as exc:
            logger.warning("Driver %s unavailable: %s", driver, exc)
            return None
        if not isinstance(provider, AbstractProvider):
            logger.warning("Driver %s is not a provider: %r", driver, provider)
            return None

        provider = provider.clone()
        if not provider.redirect_url:
            provider.with_redirect_url(str(request.url_for("socialite_callback", driver=driver)))
        return provider

    @router.get("/{driver}/redirect", name="socialite_redirect")
    async def socialite_redirect(driver: str, request: Request) -> Response:
        """Send the user to the provider's authorization page."""
        provider = _provider_for(driver, request)
        if provider is None:
            return _error(404, "unknown_driver", f"Unknown driver: {driver}")

        session_id = request.cookies.get(SESSION_COOKIE) or secrets.token_urlsafe(32)
        session = store_for(session_id) if provider.uses_state() else None

        url = await begin_auth(provider, session=session)

        response = RedirectResponse(url=url, status_code=302)
        response.set_cookie(
            key=SESSION_COOKIE,
            value=session_id,
            httponly=True,
            secure=request.url.scheme == "https",
            samesite="lax",
            max_age=SESSION_COOKIE_MAX_AGE,
        )
        return response

    @router.get("/{driver}/callback", name="socialite_callback")
    async def socialite_callback(  # noqa: PLR0911
        driver: str,
        request: Request,
        code: str | None = None,
        state: str | None = None,
        error: str | None = None,
        error_description: str | None = None,
    ) -> Response:
        """Complete the flow and return the user (or ``on_login``'s result)."""
        provider = _provider_for(driver, request)
        if provider is None:
            return _error(404, "unknown_driver", f"Unknown driver: {driver}")

        if error:
            logger.info("%s: provider returned error %s", driver, error)
            return _error(400, error, error_description or "Authentication failed")

        session_id = request.cookies.get(SESSION_COOKIE)
        session = store_for(session_id) if session_id else None

        try:
            user = await complete_auth(provider, code, state, session=session)
        except InvalidStateError:
            return _error(400, "invalid_state", "Invalid or expired state parameter")
        except TransportError:
            return _error(502, "provider_unreachable", "The provider could not be reached")
        except (TokenExchangeError, MalformedResponseError) as exc:
            logger.warning("%s: token exchange failed: %s", driver, exc)
            return _error(502, "token_exchange_failed", "An error occurred talking to the provider")
        except AuthenticationError as exc:
            return _error(400, "authentication_failed", exc.message)
        except ConfigurationError as exc:
            logger.error("%s: driver misconfigured: %s", driver, exc)
            return _error(500, "server_error", "The authentication driver is misconfigured")

        if on_login is None:
            return JSONResponse(content=_public_profile(user))

        result = on_login(user)
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, Response):
            return result
        return JSONResponse(content=result)

    return router
