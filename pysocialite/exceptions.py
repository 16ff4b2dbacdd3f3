"""pysocialite exception hierarchy.

All pysocialite-specific exceptions inherit from SocialiteException, enabling
catch-all handling while supporting specific error types.
"""

from __future__ import annotations

from typing import Any


#: Maximum number of characters of a raw response body kept on an exception.
BODY_SNIPPET_LIMIT = 500


def _snippet(body: str | None) -> str | None:
    """Truncate a raw response body for diagnostics."""
    if body is None:
        return None
    if len(body) > BODY_SNIPPET_LIMIT:
        return body[:BODY_SNIPPET_LIMIT] + "..."
    return body


class SocialiteException(Exception):
    """Base exception for all pysocialite errors."""

    def __init__(self, message: str, **context: Any) -> None:
        """Initialize pysocialite exception.

        Parameters
        ----------
        message : str
            Human-readable error message.
        **context : Any
            Additional context (driver, status_code, url, etc.).
        """
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        """Format exception with context."""
        if self.context:
            ctx = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx})"
        return self.message


class ConfigurationError(SocialiteException):
    """Driver configuration is missing or invalid.

    Raised when a driver is requested that has no credentials configured,
    or whose configuration lacks a required field.
    """

    def __init__(self, message: str, driver: str | None = None, **context: Any) -> None:
        """Initialize configuration error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        driver : str, optional
            The driver name whose configuration is invalid.
        **context : Any
            Additional context.
        """
        super().__init__(message, driver=driver, **context)
        self.driver = driver


class InvalidProviderError(SocialiteException):
    """Configured provider class cannot be used.

    Raised at driver-resolution time when the provider identifier does not
    resolve to a class, or the class is not an ``AbstractProvider``.
    """

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        driver: str | None = None,
        **context: Any,
    ) -> None:
        """Initialize invalid provider error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        provider : str, optional
            The provider identifier that failed to resolve.
        driver : str, optional
            The driver name being built.
        **context : Any
            Additional context.
        """
        super().__init__(message, provider=provider, driver=driver, **context)
        self.provider = provider
        self.driver = driver


class AuthenticationError(SocialiteException):
    """Base exception for all authorization flow failures."""

    def __init__(self, message: str, driver: str | None = None, **context: Any) -> None:
        """Initialize authentication error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        driver : str, optional
            The driver name of the provider involved.
        **context : Any
            Additional context.
        """
        super().__init__(message, driver=driver, **context)
        self.driver = driver


class InvalidStateError(AuthenticationError):
    """The callback ``state`` does not match the stored one.

    The flow aborts before any network call is made. The message is
    generic and safe to show to an end user.
    """

    def __init__(
        self,
        message: str = "Invalid state, please retry login",
        driver: str | None = None,
        **context: Any,
    ) -> None:
        """Initialize invalid state error."""
        super().__init__(message, driver=driver, **context)


class TransportError(AuthenticationError):
    """Network failure or timeout while talking to the provider."""

    def __init__(
        self,
        message: str,
        url: str | None = None,
        driver: str | None = None,
        **context: Any,
    ) -> None:
        """Initialize transport error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        url : str, optional
            The URL of the request that failed.
        driver : str, optional
            The driver name of the provider involved.
        **context : Any
            Additional context.
        """
        super().__init__(message, driver=driver, url=url, **context)
        self.url = url


class TokenExchangeError(AuthenticationError):
    """The token endpoint returned something unusable.

    Raised on a non-2xx status or a body that is not a JSON object.
    The raw body is kept for operator diagnostics only.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
        driver: str | None = None,
        **context: Any,
    ) -> None:
        """Initialize token exchange error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        status_code : int, optional
            The HTTP status code returned by the provider.
        body : str, optional
            The raw response body (truncated).
        driver : str, optional
            The driver name of the provider involved.
        **context : Any
            Additional context.
        """
        body = _snippet(body)
        super().__init__(message, driver=driver, status_code=status_code, **context)
        self.status_code = status_code
        self.body = body


class UserInfoError(TokenExchangeError):
    """The user endpoint returned a non-2xx status or undecodable body."""


class MalformedResponseError(AuthenticationError):
    """A decoded provider payload lacks required structure.

    Raised when a token response has no ``access_token`` or a user payload
    is not a JSON object.
    """

    def __init__(
        self,
        message: str,
        body: str | None = None,
        driver: str | None = None,
        **context: Any,
    ) -> None:
        """Initialize malformed response error."""
        super().__init__(message, driver=driver, **context)
        self.body = _snippet(body)
