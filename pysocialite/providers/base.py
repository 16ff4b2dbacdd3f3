"""OAuth2 provider abstraction.

Defines the AbstractProvider ABC. A concrete provider supplies its
authorization and token endpoints, fetches the raw user for an access
token, and maps that payload to a canonical ``User``. Everything else
(scopes, query encoding, state, token exchange) lives here.
"""

# pylint: disable=logging-too-many-args,too-many-instance-attributes

from __future__ import annotations

import copy
import dataclasses
import logging

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any, ClassVar
from urllib.parse import quote, quote_plus, urlencode

from ..exceptions import (
    MalformedResponseError,
    TokenExchangeError,
    TransportError,
    UserInfoError,
)
from ..http import HttpClient, HttpOptions
from ..log import redact_sensitive_data
from ..types import QueryEncoding, TokenResponse


if TYPE_CHECKING:
    from ..http import Response
    from ..session import SessionStore
    from ..types import ProviderConfig, User


logger = logging.getLogger("pysocialite.providers")


class AbstractProvider(ABC):
    """Abstract base class for OAuth2 Authorization Code providers.

    Parameters
    ----------
    config : ProviderConfig
        Client credentials and redirect URL.
    name : str, optional
        Driver name, used in logs and error context.
    http : HttpClient, optional
        HTTP client to use. Created lazily from ``http_options`` if omitted.
    http_options : HttpOptions, optional
        Options for the lazily created HTTP client.
    scopes : Iterable[str], optional
        Requested scopes (defaults to ``default_scopes``).
    scope_separator : str, optional
        Separator used to join scopes (defaults to ``","``).
    stateless : bool
        Disable CSRF state handling (default False).
    encoding : QueryEncoding or str
        Query escaping for the authorization URL (default RFC 1738).
    parameters : Mapping[str, str], optional
        Extra authorization URL parameters, merged last.
    """

    #: Scopes requested when none are configured.
    default_scopes: ClassVar[tuple[str, ...]] = ()

    #: Separator used to join scopes in the authorization URL.
    default_scope_separator: ClassVar[str] = ","

    def __init__(
        self,
        config: ProviderConfig,
        *,
        name: str | None = None,
        http: HttpClient | None = None,
        http_options: HttpOptions | None = None,
        scopes: Iterable[str] | None = None,
        scope_separator: str | None = None,
        stateless: bool = False,
        encoding: QueryEncoding | str = QueryEncoding.RFC1738,
        parameters: Mapping[str, str] | None = None,
    ) -> None:
        """Initialize the provider."""
        self.config = config
        self.name = name or type(self).__name__
        self._http = http
        self._http_options = http_options
        self._scopes: list[str] = []
        self.set_scopes(self.default_scopes if scopes is None else scopes)
        self.scope_separator = (
            self.default_scope_separator if scope_separator is None else scope_separator
        )
        self._stateless = stateless
        self.encoding = QueryEncoding(encoding)
        self.parameters: dict[str, str] = dict(parameters or {})

    # ── Provider-specific hooks ──────────────────────────────────────

    @abstractmethod
    def get_auth_url(self, state: str | None) -> str:
        """Get the authorization URL for the provider.

        Implementations normally return
        ``self.build_auth_url_from_base(<authorize endpoint>, state)``.
        """

    @abstractmethod
    def get_token_url(self) -> str:
        """Get the token endpoint URL."""

    @abstractmethod
    async def get_user_by_token(self, token: str) -> dict[str, Any]:
        """Fetch the raw user payload for an access token.

        Parameters
        ----------
        token : str
            A valid access token.

        Returns
        -------
        dict[str, Any]
            The decoded user payload.
        """

    @abstractmethod
    def map_user_to_object(self, user: dict[str, Any]) -> User:
        """Map a raw user payload to a canonical ``User``.

        Must not perform I/O, and must tolerate missing optional fields.
        """

    # ── Authorization URL ────────────────────────────────────────────

    def build_auth_url_from_base(self, url: str, state: str | None) -> str:
        """Build the authorization URL from the endpoint and code fields."""
        quote_via = quote_plus if self.encoding is QueryEncoding.RFC1738 else quote
        return f"{url}?{urlencode(self.get_code_fields(state), quote_via=quote_via)}"

    def get_code_fields(self, state: str | None = None) -> dict[str, str]:
        """Get the query parameters for the authorization request.

        Extra ``parameters`` are merged last and win on key collision.
        """
        fields: dict[str, str] = {
            "response_type": "code",
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_url,
            "scope": self.format_scopes(self._scopes, self.scope_separator),
        }
        if self.uses_state():
            fields["state"] = state or ""
        fields.update(self.parameters)
        return fields

    def format_scopes(self, scopes: Iterable[str], scope_separator: str) -> str:
        """Join scopes with the separator."""
        return scope_separator.join(scopes)

    # ── Token exchange ───────────────────────────────────────────────

    def get_token_fields(self, code: str) -> dict[str, str]:
        """Get the POST fields for the token request."""
        return {
            "code": code,
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "redirect_uri": self.config.redirect_url,
        }

    async def get_access_token_response(self, code: str) -> TokenResponse:
        """Exchange an authorization code for an access token.

        Raises
        ------
        TransportError
            If the token endpoint cannot be reached.
        TokenExchangeError
            On a non-2xx status or a body that is not a JSON object.
        MalformedResponseError
            If the response has no ``access_token``.
        """
        token_url = self.get_token_url()
        resp = await self._send(
            "POST",
            token_url,
            data=self.get_token_fields(code),
            headers={"Accept": "application/json"},
        )

        if not resp.is_success:
            logger.warning("%s: token endpoint returned %s", self.name, resp.status_code)
            msg = f"Token exchange failed with status {resp.status_code}"
            raise TokenExchangeError(
                msg, status_code=resp.status_code, body=resp.body, driver=self.name
            )

        try:
            payload = resp.json()
        except ValueError as exc:
            msg = "Token endpoint returned invalid JSON"
            raise TokenExchangeError(
                msg, status_code=resp.status_code, body=resp.body, driver=self.name
            ) from exc

        if not isinstance(payload, dict):
            msg = "Token endpoint returned a non-object JSON body"
            raise TokenExchangeError(
                msg, status_code=resp.status_code, body=resp.body, driver=self.name
            )

        if not payload.get("access_token"):
            logger.warning(
                "%s: token response without access_token: %s",
                self.name,
                redact_sensitive_data(payload),
            )
            error = payload.get("error_description") or payload.get("error")
            msg = "Token response is missing access_token"
            if error:
                msg = f"{msg}: {error}"
            raise MalformedResponseError(msg, body=resp.body, driver=self.name)

        return TokenResponse.from_payload(payload)

    # ── HTTP helpers ─────────────────────────────────────────────────

    @property
    def http(self) -> HttpClient:
        """The HTTP client, created on first use."""
        if self._http is None:
            self._http = HttpClient(self._http_options)
        return self._http

    def set_http_client(self, http: HttpClient) -> AbstractProvider:
        """Set the HTTP client instance."""
        self._http = http
        return self

    async def _send(self, method: str, url: str, **kwargs: Any) -> Response:
        """Send a request, tagging transport failures with the driver name."""
        try:
            return await self.http.request(method, url, **kwargs)
        except TransportError as exc:
            raise TransportError(exc.message, url=exc.url, driver=self.name) from exc

    async def get_json(
        self,
        url: str,
        *,
        params: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> dict[str, Any]:
        """GET a user-facing endpoint and decode a JSON object.

        Raises
        ------
        UserInfoError
            On a non-2xx status or invalid JSON.
        MalformedResponseError
            If the JSON is not an object.
        """
        resp = await self._send("GET", url, params=params, headers=headers)
        if not resp.is_success:
            msg = f"User endpoint returned status {resp.status_code}"
            raise UserInfoError(msg, status_code=resp.status_code, body=resp.body, driver=self.name)
        try:
            payload = resp.json()
        except ValueError as exc:
            msg = "User endpoint returned invalid JSON"
            raise UserInfoError(
                msg, status_code=resp.status_code, body=resp.body, driver=self.name
            ) from exc
        if not isinstance(payload, dict):
            msg = "User payload is not a JSON object"
            raise MalformedResponseError(msg, body=resp.body, driver=self.name)
        return payload

    async def aclose(self) -> None:
        """Close the HTTP client if one was created."""
        if self._http is not None:
            await self._http.aclose()

    # ── Fluent configuration ─────────────────────────────────────────

    def scopes(self, scopes: Iterable[str]) -> AbstractProvider:
        """Merge scopes into the requested set, keeping insertion order."""
        for scope in scopes:
            if scope not in self._scopes:
                self._scopes.append(scope)
        return self

    def set_scopes(self, scopes: Iterable[str]) -> AbstractProvider:
        """Replace the requested scopes."""
        self._scopes = []
        return self.scopes(scopes)

    def get_scopes(self) -> list[str]:
        """Get the current scopes."""
        return list(self._scopes)

    @property
    def redirect_url(self) -> str:
        """The redirect URL sent to the provider."""
        return self.config.redirect_url

    def with_redirect_url(self, url: str) -> AbstractProvider:
        """Set the redirect URL."""
        self.config = dataclasses.replace(self.config, redirect_url=url)
        return self

    set_redirect_url = with_redirect_url

    def with_parameters(self, parameters: Mapping[str, str]) -> AbstractProvider:
        """Set the custom authorization URL parameters."""
        self.parameters = dict(parameters)
        return self

    def set_encoding(self, encoding: QueryEncoding | str) -> AbstractProvider:
        """Select the query escaping mode."""
        self.encoding = QueryEncoding(encoding)
        return self

    def stateless(self, value: bool = True) -> AbstractProvider:
        """Indicate that the provider should operate without session state."""
        self._stateless = value
        return self

    @property
    def is_stateless(self) -> bool:
        """Whether state checking is disabled."""
        return self._stateless

    def uses_state(self) -> bool:
        """Whether the provider uses session state."""
        return not self._stateless

    def clone(self) -> AbstractProvider:
        """Return a request-scoped copy.

        Scopes and parameters are copied; the HTTP client is shared.
        Use this before applying per-request overrides to a cached driver.
        """
        clone = copy.copy(self)
        clone._scopes = list(self._scopes)
        clone.parameters = dict(self.parameters)
        return clone

    # ── Authorization flow ───────────────────────────────────────────

    async def redirect(
        self,
        redirect_url: str | None = None,
        session: SessionStore | None = None,
    ) -> str:
        """Build the URL to send the user to, persisting state if stateful."""
        from ..flow import begin_auth

        return await begin_auth(self, session=session, redirect_url=redirect_url)

    begin_auth = redirect

    async def user(
        self,
        code: str | None,
        state: str | None = None,
        *,
        stored_state: str | None = None,
        session: SessionStore | None = None,
    ) -> User:
        """Validate the callback and return the authenticated user."""
        from ..flow import complete_auth

        return await complete_auth(
            self, code, state, stored_state=stored_state, session=session
        )

    complete_auth = user

    async def user_from_token(self, token: str) -> User:
        """Get a user for an access token that is already held."""
        from ..flow import user_from_token

        return await user_from_token(self, token)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, client_id={self.config.client_id!r})"
