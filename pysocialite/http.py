"""HTTP transport used by providers.

Thin async wrapper around ``httpx.AsyncClient`` that returns a plain
``Response`` value and surfaces network failures as ``TransportError``,
distinct from HTTP-level error statuses which callers inspect themselves.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import json
import logging

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

import httpx

from .exceptions import TransportError


if TYPE_CHECKING:
    from collections.abc import Mapping

    from .config import HttpSettings


logger = logging.getLogger("pysocialite.http")

DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class HttpOptions:
    """Immutable client options threaded through construction.

    Attributes
    ----------
    timeout : float
        Default per-request timeout in seconds.
    headers : Mapping[str, str]
        Headers sent with every request.
    verify : bool
        Whether to verify TLS certificates.
    follow_redirects : bool
        Whether to follow HTTP redirects.
    proxy : str or None
        Optional proxy URL.
    """

    timeout: float = DEFAULT_TIMEOUT
    headers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    verify: bool = True
    follow_redirects: bool = False
    proxy: str | None = None

    def __post_init__(self) -> None:
        """Freeze the headers mapping."""
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))

    @classmethod
    def from_settings(cls, settings: HttpSettings) -> HttpOptions:
        """Create options from the ``[http]`` settings section."""
        return cls(
            timeout=settings.timeout,
            headers=dict(settings.headers),
            verify=settings.verify,
            follow_redirects=settings.follow_redirects,
            proxy=settings.proxy or None,
        )


@dataclass(frozen=True)
class Response:
    """An HTTP response with its body fully read.

    Attributes
    ----------
    status_code : int
        The HTTP status code.
    body : str
        The decoded response body.
    headers : Mapping[str, str]
        Response headers.
    """

    status_code: int
    body: str
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        """True for 2xx statuses."""
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        """Decode the body as JSON (see ``parse_json``)."""
        return parse_json(self.body)


def parse_json(body: str | bytes) -> Any:
    """Decode a JSON body.

    Raises
    ------
    ValueError
        If the body is not valid JSON.
    """
    return json.loads(body)


class HttpClient:
    """Async HTTP client for token and user endpoint calls.

    The underlying ``httpx.AsyncClient`` is created lazily and reused.
    Cancelling the awaiting task aborts the request and returns its
    connection to the pool.

    Parameters
    ----------
    options : HttpOptions, optional
        Client options (timeout, default headers, TLS, proxy).
    transport : httpx.AsyncBaseTransport, optional
        Custom transport, e.g. ``httpx.MockTransport`` in tests.
    client : httpx.AsyncClient, optional
        An existing client to use instead of creating one.
    """

    def __init__(
        self,
        options: HttpOptions | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the HTTP client."""
        self.options = options or HttpOptions()
        self._transport = transport
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the shared HTTP client."""
        if self._client is None or self._client.is_closed:
            kwargs: dict[str, Any] = {
                "timeout": self.options.timeout,
                "headers": dict(self.options.headers),
                "verify": self.options.verify,
                "follow_redirects": self.options.follow_redirects,
            }
            if self.options.proxy:
                kwargs["proxy"] = self.options.proxy
            if self._transport is not None:
                kwargs["transport"] = self._transport
            self._client = httpx.AsyncClient(**kwargs)
        return self._client

    async def get(
        self,
        url: str,
        params: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> Response:
        """Send a GET request.

        Parameters
        ----------
        url : str
            The request URL.
        params : Mapping[str, str], optional
            Query parameters.
        headers : Mapping[str, str], optional
            Extra request headers.
        timeout : float, optional
            Overrides the default timeout for this call.

        Returns
        -------
        Response
            The response, whatever its status.

        Raises
        ------
        TransportError
            On network failure or timeout.
        """
        return await self.request("GET", url, params=params, headers=headers, timeout=timeout)

    async def post(
        self,
        url: str,
        data: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
        content: str | bytes | None = None,
        timeout: float | None = None,
    ) -> Response:
        """Send a POST request.

        ``data`` is sent form-encoded; ``content`` is sent as the raw body.

        Raises
        ------
        TransportError
            On network failure or timeout.
        """
        return await self.request(
            "POST", url, data=data, content=content, headers=headers, timeout=timeout
        )

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, str] | None = None,
        data: Mapping[str, str] | None = None,
        content: str | bytes | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> Response:
        """Send a request and read the full body."""
        kwargs: dict[str, Any] = {
            "params": params,
            "headers": headers,
            "timeout": self.options.timeout if timeout is None else timeout,
        }
        if data is not None:
            kwargs["data"] = dict(data)
        if content is not None:
            kwargs["content"] = content

        client = self._get_client()
        try:
            resp = await client.request(method.upper(), url, **kwargs)
        except httpx.TimeoutException as exc:
            msg = f"Request timed out: {method.upper()} {url}"
            raise TransportError(msg, url=url) from exc
        except httpx.HTTPError as exc:
            msg = f"Request failed: {exc}"
            raise TransportError(msg, url=url) from exc

        logger.debug("%s %s -> %s", method.upper(), url, resp.status_code)
        return Response(status_code=resp.status_code, body=resp.text, headers=dict(resp.headers))

    async def aclose(self) -> None:
        """Close the shared HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> HttpClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
