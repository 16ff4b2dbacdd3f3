"""Core data types for the authorization flow.

Defines the provider credentials, token response, canonical user record,
and the enums shared by providers and the flow orchestrator.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

from .exceptions import ConfigurationError


class QueryEncoding(str, Enum):
    """Query-string escaping mode for authorization URLs.

    ``RFC1738`` encodes spaces as ``+`` (form encoding), ``RFC3986``
    encodes them as ``%20``.
    """

    RFC1738 = "rfc1738"
    RFC3986 = "rfc3986"


class AuthFlowState(str, Enum):
    """State of a single authorization attempt."""

    IDLE = "idle"
    AWAITING_CALLBACK = "awaiting_callback"
    VALIDATING = "validating"
    EXCHANGING = "exchanging"
    FETCHING_USER = "fetching_user"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ProviderConfig:
    """Client credentials for one OAuth2 provider.

    Attributes
    ----------
    client_id : str
        The OAuth2 client ID.
    client_secret : str
        The OAuth2 client secret.
    redirect_url : str
        The callback URL registered with the provider.
    """

    client_id: str
    client_secret: str
    redirect_url: str = ""

    def __post_init__(self) -> None:
        """Reject empty credentials."""
        if not self.client_id:
            msg = "client_id must not be empty"
            raise ConfigurationError(msg)
        if not self.client_secret:
            msg = "client_secret must not be empty"
            raise ConfigurationError(msg)


@dataclass
class TokenResponse:
    """Decoded token endpoint response.

    Attributes
    ----------
    access_token : str
        The access token for API requests.
    refresh_token : str or None
        Optional refresh token.
    expires_in : int or None
        Token lifetime in seconds.
    raw : dict[str, Any]
        The full decoded response, including provider-specific fields.
    """

    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> TokenResponse:
        """Build a token response from a decoded JSON object.

        The caller is responsible for checking that ``access_token`` is present.
        """
        expires_in = payload.get("expires_in")
        if isinstance(expires_in, str) and expires_in.strip().isdigit():
            expires_in = int(expires_in)
        elif not isinstance(expires_in, int) or isinstance(expires_in, bool):
            expires_in = None
        return cls(
            access_token=str(payload["access_token"]),
            refresh_token=payload.get("refresh_token") or None,
            expires_in=expires_in,
            raw=dict(payload),
        )


@dataclass
class User:
    """Canonical user record produced by every provider.

    Provider-specific mapping fills the profile fields and ``raw``; the
    token fields are attached afterwards by the authorization flow.
    """

    id: str | None = None
    nickname: str | None = None
    name: str | None = None
    email: str | None = None
    avatar: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)
    token: str | None = None
    refresh_token: str | None = None
    expires_in: int | None = None

    def __getitem__(self, key: str) -> Any:
        """Return a field by name, e.g. ``user["nickname"]``."""
        if key not in self.__dataclass_fields__:
            raise KeyError(key)
        return getattr(self, key)

    def set_raw(self, raw: dict[str, Any]) -> User:
        """Set the raw provider payload."""
        self.raw = raw
        return self

    def set_token(self, token: str | None) -> User:
        """Set the access token."""
        self.token = token
        return self

    def set_refresh_token(self, refresh_token: str | None) -> User:
        """Set the refresh token."""
        self.refresh_token = refresh_token
        return self

    def set_expires_in(self, expires_in: int | None) -> User:
        """Set the access token lifetime in seconds."""
        self.expires_in = expires_in
        return self

    def to_dict(self) -> dict[str, Any]:
        """Serialize the user, including ``raw``."""
        return asdict(self)
