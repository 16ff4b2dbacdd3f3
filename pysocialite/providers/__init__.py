"""OAuth2 provider implementations.

``PROVIDERS`` maps the short names accepted in driver configuration
(``provider = "generic"``) to provider classes.
"""

from __future__ import annotations

from .base import AbstractProvider
from .generic import DEFAULT_USER_FIELDS, GenericProvider


PROVIDERS: dict[str, type[AbstractProvider]] = {
    "generic": GenericProvider,
}


__all__ = [
    "DEFAULT_USER_FIELDS",
    "PROVIDERS",
    "AbstractProvider",
    "GenericProvider",
]
