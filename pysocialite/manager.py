"""Driver registry and factory.

``SocialiteManager`` resolves a driver name into a configured provider,
building each one at most once per manager and caching it. Custom
constructors can be registered with ``extend``.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import importlib
import inspect
import logging
import threading

from collections.abc import Callable, Mapping
from typing import Any

from .config import Config, split_scopes
from .exceptions import ConfigurationError, InvalidProviderError
from .http import HttpOptions
from .providers import PROVIDERS, AbstractProvider
from .types import ProviderConfig


logger = logging.getLogger("pysocialite.manager")

#: Driver config keys consumed by the manager itself.
_BASE_KEYS = frozenset(
    {
        "provider",
        "client_id",
        "client_secret",
        "redirect",
        "scopes",
        "scope_separator",
        "stateless",
        "encoding",
        "parameters",
        "with",
    }
)

CustomCreator = Callable[..., Any]


def _resolve_provider_class(identifier: Any, driver: str) -> type[AbstractProvider]:
    """Resolve a class, registered short name, or dotted import path.

    Raises
    ------
    InvalidProviderError
        If the identifier does not resolve to an ``AbstractProvider`` subclass.
    """
    provider_cls: Any = identifier
    if isinstance(identifier, str):
        provider_cls = PROVIDERS.get(identifier)
        if provider_cls is None:
            module_name, sep, attr = identifier.partition(":")
            if not sep:
                module_name, _, attr = identifier.rpartition(".")
            if not module_name or not attr:
                msg = f"Unknown provider: {identifier}"
                raise InvalidProviderError(msg, provider=identifier, driver=driver)
            try:
                module = importlib.import_module(module_name)
                provider_cls = getattr(module, attr)
            except (ImportError, AttributeError) as exc:
                msg = f"Provider {identifier} doesn't exist"
                raise InvalidProviderError(msg, provider=identifier, driver=driver) from exc

    if not (
        inspect.isclass(provider_cls)
        and issubclass(provider_cls, AbstractProvider)
        and not inspect.isabstract(provider_cls)
    ):
        msg = f"{identifier!r} is not a concrete AbstractProvider subclass"
        raise InvalidProviderError(msg, provider=str(identifier), driver=driver)

    return provider_cls


def _scopes_from(value: Any, driver: str | None) -> list[str]:
    """Normalize configured scopes to a list of strings."""
    if isinstance(value, str):
        return split_scopes(value)
    if isinstance(value, (list, tuple)) and all(isinstance(s, str) for s in value):
        return list(value)
    msg = f"Driver [{driver}] scopes must be a string or a list of strings"
    raise ConfigurationError(msg, driver=driver)


class SocialiteManager:
    """Factory and cache of named provider drivers.

    Each manager keeps its own cache: a driver is built once and the same
    instance is returned on every later call. Mutating a returned provider
    (scopes, parameters, redirect URL) mutates the cached instance; use
    ``provider.clone()`` for per-request changes.

    Parameters
    ----------
    config : Config or Mapping
        Driver configuration lookup, keyed by driver name.
    http_options : HttpOptions, optional
        Options for each provider's HTTP client.
    """

    def __init__(
        self,
        config: Config | Mapping[str, Any],
        *,
        http_options: HttpOptions | None = None,
    ) -> None:
        """Initialize the manager."""
        self.config = config if isinstance(config, Config) else Config(dict(config))
        self.http_options = http_options
        self._custom_creators: dict[str, CustomCreator] = {}
        self._drivers: dict[str, Any] = {}
        self._lock = threading.RLock()

    def driver(self, name: str | None = None) -> Any:
        """Get a driver instance, building it on first use.

        Parameters
        ----------
        name : str
            The driver name.

        Returns
        -------
        AbstractProvider
            The cached provider (or whatever a custom creator returned).

        Raises
        ------
        ConfigurationError
            If no name is given or the driver's configuration is missing
            or incomplete.
        InvalidProviderError
            If the configured provider class cannot be used.
        """
        if not name:
            msg = "No Socialite driver was specified"
            raise ConfigurationError(msg)

        driver = self._drivers.get(name)
        if driver is not None:
            return driver

        with self._lock:
            if name not in self._drivers:
                self._drivers[name] = self._create_driver(name)
                logger.debug("Driver %s created", name)
            return self._drivers[name]

    __getitem__ = driver

    def extend(self, name: str, creator: CustomCreator) -> SocialiteManager:
        """Register a custom driver creator.

        ``creator`` is called with this manager if it accepts an argument,
        otherwise with none. Its result is cached as-is.
        """
        with self._lock:
            self._custom_creators[name] = creator
        return self

    def get_drivers(self) -> dict[str, Any]:
        """Get all of the created drivers."""
        with self._lock:
            return dict(self._drivers)

    def forget_drivers(self) -> SocialiteManager:
        """Drop all cached drivers."""
        with self._lock:
            self._drivers.clear()
        return self

    def _create_driver(self, name: str) -> Any:
        if name in self._custom_creators:
            return self._call_custom_creator(name)

        driver_config = self.config.driver(name)
        if not driver_config:
            msg = f"Driver [{name}] credentials are not provided"
            raise ConfigurationError(msg, driver=name)
        if not isinstance(driver_config, Mapping):
            msg = f"Driver [{name}] configuration must be a mapping"
            raise ConfigurationError(msg, driver=name)

        for required in ("client_id", "client_secret"):
            if not driver_config.get(required):
                msg = f"Driver [{name}] is missing {required}"
                raise ConfigurationError(msg, driver=name)

        provider_cls = _resolve_provider_class(driver_config.get("provider", "generic"), name)
        return self.build_provider(provider_cls, driver_config, name=name)

    def _call_custom_creator(self, name: str) -> Any:
        creator = self._custom_creators[name]
        try:
            inspect.signature(creator).bind(self)
        except (TypeError, ValueError):
            return creator()
        return creator(self)

    def build_provider(
        self,
        provider_cls: type[AbstractProvider],
        driver_config: Mapping[str, Any],
        name: str | None = None,
    ) -> AbstractProvider:
        """Build a provider instance from its driver configuration.

        Keys the manager does not consume (e.g. ``authorize_url``) are
        passed to the provider constructor as keyword options.

        Raises
        ------
        ConfigurationError
            If a value is invalid or the provider rejects an option.
        """
        config = ProviderConfig(
            client_id=str(driver_config.get("client_id", "")),
            client_secret=str(driver_config.get("client_secret", "")),
            redirect_url=str(driver_config.get("redirect", "") or ""),
        )

        kwargs: dict[str, Any] = {
            "name": name,
            "http_options": self.http_options,
            "stateless": bool(driver_config.get("stateless", False)),
        }
        if driver_config.get("scopes") is not None:
            kwargs["scopes"] = _scopes_from(driver_config["scopes"], name)
        if driver_config.get("scope_separator") is not None:
            kwargs["scope_separator"] = driver_config["scope_separator"]
        if driver_config.get("encoding"):
            kwargs["encoding"] = driver_config["encoding"]
        parameters = driver_config.get("parameters") or driver_config.get("with")
        if parameters:
            kwargs["parameters"] = dict(parameters)

        options = {k: v for k, v in driver_config.items() if k not in _BASE_KEYS}

        try:
            return provider_cls(config, **kwargs, **options)
        except TypeError as exc:
            msg = f"Driver [{name}] has options {provider_cls.__name__} does not accept"
            raise ConfigurationError(msg, driver=name, options=sorted(options)) from exc
        except ValueError as exc:
            msg = f"Driver [{name}] has an invalid value: {exc}"
            raise ConfigurationError(msg, driver=name) from exc

    async def aclose(self) -> None:
        """Close the HTTP clients of all cached providers."""
        for driver in self.get_drivers().values():
            if isinstance(driver, AbstractProvider):
                await driver.aclose()
