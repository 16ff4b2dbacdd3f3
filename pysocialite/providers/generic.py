"""Endpoint-configured provider for standard OAuth2 servers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Literal

from ..exceptions import ConfigurationError
from ..types import User
from .base import AbstractProvider


if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from ..types import ProviderConfig


#: Payload keys tried, in order, for each canonical user field.
DEFAULT_USER_FIELDS: dict[str, tuple[str, ...]] = {
    "id": ("id", "sub"),
    "nickname": ("login", "nickname", "preferred_username", "username"),
    "name": ("name",),
    "email": ("email",),
    "avatar": ("avatar_url", "picture", "avatar"),
}


class GenericProvider(AbstractProvider):
    """Provider driven entirely by configured endpoints.

    Parameters
    ----------
    config : ProviderConfig
        Client credentials and redirect URL.
    authorize_url : str
        The authorization endpoint.
    token_url : str
        The token endpoint.
    userinfo_url : str
        The endpoint returning the authenticated user as JSON.
    token_placement : {"header", "query"}
        Send the access token as a Bearer header or as an
        ``access_token`` query parameter (default "header").
    user_fields : Mapping[str, str | Sequence[str]], optional
        Overrides for ``DEFAULT_USER_FIELDS``.
    **kwargs : Any
        Passed to ``AbstractProvider``.
    """

    def __init__(
        self,
        config: ProviderConfig,
        *,
        authorize_url: str = "",
        token_url: str = "",
        userinfo_url: str = "",
        token_placement: Literal["header", "query"] = "header",
        user_fields: Mapping[str, str | Sequence[str]] | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize the generic provider."""
        super().__init__(config, **kwargs)
        missing = [
            key
            for key, value in (
                ("authorize_url", authorize_url),
                ("token_url", token_url),
                ("userinfo_url", userinfo_url),
            )
            if not value
        ]
        if missing:
            msg = f"Generic provider requires {', '.join(missing)}"
            raise ConfigurationError(msg, driver=self.name)
        if token_placement not in ("header", "query"):
            msg = f"Unknown token_placement: {token_placement!r}"
            raise ConfigurationError(msg, driver=self.name)

        self.authorize_url = authorize_url
        self.token_url = token_url
        self.userinfo_url = userinfo_url
        self.token_placement = token_placement

        self.user_fields = dict(DEFAULT_USER_FIELDS)
        for attr, keys in (user_fields or {}).items():
            if attr not in DEFAULT_USER_FIELDS:
                msg = f"Unknown user field: {attr!r}"
                raise ConfigurationError(msg, driver=self.name)
            self.user_fields[attr] = (keys,) if isinstance(keys, str) else tuple(keys)

    def get_auth_url(self, state: str | None) -> str:
        """Build the authorization URL from ``authorize_url``."""
        return self.build_auth_url_from_base(self.authorize_url, state)

    def get_token_url(self) -> str:
        """Return ``token_url``."""
        return self.token_url

    async def get_user_by_token(self, token: str) -> dict[str, Any]:
        """Fetch the user from ``userinfo_url``."""
        headers = {"Accept": "application/json"}
        params: dict[str, str] | None = None
        if self.token_placement == "header":
            headers["Authorization"] = f"Bearer {token}"
        else:
            params = {"access_token": token}
        return await self.get_json(self.userinfo_url, params=params, headers=headers)

    def map_user_to_object(self, user: dict[str, Any]) -> User:
        """Map the payload using ``user_fields``."""
        values: dict[str, str | None] = {}
        for attr, keys in self.user_fields.items():
            values[attr] = next(
                (str(user[key]) for key in keys if user.get(key) not in (None, "")),
                None,
            )
        return User(raw=user, **values)
