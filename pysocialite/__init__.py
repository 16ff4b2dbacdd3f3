"""pysocialite - pluggable OAuth2 Authorization Code client.

Resolve a configured driver with ``SocialiteManager``, send the user to
``await provider.redirect(session=...)``, then turn the callback into a
canonical ``User`` with ``await provider.user(code, state, session=...)``.

The FastAPI integration lives in ``pysocialite.routes`` and needs the
``fastapi`` extra.
"""

from .config import (
    Config,
    DriverSettings,
    HttpSettings,
    LogSettings,
    SocialiteSettings,
    clear_settings,
    get_settings,
    reload_settings,
)
from .exceptions import (
    AuthenticationError,
    ConfigurationError,
    InvalidProviderError,
    InvalidStateError,
    MalformedResponseError,
    SocialiteException,
    TokenExchangeError,
    TransportError,
    UserInfoError,
)
from .flow import AuthFlow, begin_auth, complete_auth, user_from_token
from .http import HttpClient, HttpOptions, Response
from .log import enable_debug, get_logger, set_level
from .manager import SocialiteManager
from .providers import PROVIDERS, AbstractProvider, GenericProvider
from .session import (
    DictSessionStore,
    MemorySessionRegistry,
    MemorySessionStore,
    RedisSessionStore,
    SessionStore,
)
from .state import StateToken, generate_state, validate_state
from .types import AuthFlowState, ProviderConfig, QueryEncoding, TokenResponse, User


__version__ = "0.1.0"

__all__ = [
    "PROVIDERS",
    "AbstractProvider",
    "AuthFlow",
    "AuthFlowState",
    "AuthenticationError",
    "Config",
    "ConfigurationError",
    "DictSessionStore",
    "DriverSettings",
    "GenericProvider",
    "HttpClient",
    "HttpOptions",
    "HttpSettings",
    "InvalidProviderError",
    "InvalidStateError",
    "LogSettings",
    "MalformedResponseError",
    "MemorySessionRegistry",
    "MemorySessionStore",
    "ProviderConfig",
    "QueryEncoding",
    "RedisSessionStore",
    "Response",
    "SessionStore",
    "SocialiteException",
    "SocialiteManager",
    "SocialiteSettings",
    "StateToken",
    "TokenExchangeError",
    "TokenResponse",
    "TransportError",
    "User",
    "UserInfoError",
    "__version__",
    "begin_auth",
    "clear_settings",
    "complete_auth",
    "enable_debug",
    "generate_state",
    "get_logger",
    "get_settings",
    "reload_settings",
    "set_level",
    "user_from_token",
    "validate_state",
]
