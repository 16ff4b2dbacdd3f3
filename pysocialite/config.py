"""Configuration system for pysocialite using pydantic-settings.

Supports layered configuration:
1. Built-in defaults (lowest priority)
2. pyproject.toml [tool.pysocialite] section (project-level)
3. ./pysocialite.toml (project-level, explicit)
4. ~/.config/pysocialite/config.toml (user-level, overrides project)
5. The file named by PYSOCIALITE_CONFIG_FILE
6. Environment variables (highest priority)

Environment variables use the PYSOCIALITE__ prefix with nested delimiter __.
Example: PYSOCIALITE__DRIVERS__GITHUB__CLIENT_ID, PYSOCIALITE_HTTP__TIMEOUT

The factory does not read settings itself: it receives a ``Config``
lookup object, which ``Config.from_settings`` builds from these models.
"""

from __future__ import annotations

import copy
import logging
import os
import sys
import tomllib

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    NoDecode,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


logger = logging.getLogger("pysocialite.config")


def _find_config_files() -> list[Path]:
    """Find all configuration files in order of precedence (lowest first)."""
    files = []

    pyproject = Path("pyproject.toml")
    if pyproject.exists():
        files.append(pyproject)

    local_toml = Path("pysocialite.toml")
    if local_toml.exists():
        files.append(local_toml)

    if sys.platform == "win32":
        user_config = Path(os.environ.get("APPDATA", "~")) / "pysocialite" / "config.toml"
    else:
        user_config = Path("~/.config/pysocialite/config.toml")
    user_config = user_config.expanduser()
    if user_config.exists():
        files.append(user_config)

    env_config = os.environ.get("PYSOCIALITE_CONFIG_FILE")
    if env_config:
        env_path = Path(env_config)
        if env_path.exists():
            files.append(env_path)

    return files


def _load_toml_config() -> dict[str, Any]:
    """Load and merge all TOML configuration files."""
    merged: dict[str, Any] = {}

    for config_file in _find_config_files():
        try:
            data = tomllib.loads(config_file.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as exc:
            logger.warning("Ignoring unreadable config file %s: %s", config_file, exc)
            continue

        if config_file.name == "pyproject.toml":
            data = data.get("tool", {}).get("pysocialite", {})

        merged = _deep_merge(merged, data)

    return merged


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def split_scopes(value: str) -> list[str]:
    """Split a comma or space separated scope string."""
    return [s for s in value.replace(",", " ").split() if s]


class LayeredTomlSource(PydanticBaseSettingsSource):
    """Settings source returning the merged TOML configuration files."""

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        return _load_toml_config()


# Field names that contain sensitive data and must be redacted in output.
_SENSITIVE_FIELDS: set[str] = {"client_secret"}

_REDACTED = "********"


class DriverSettings(BaseModel):
    """Credentials and options for one named driver.

    TOML section: [tool.pysocialite.drivers.<name>]
    """

    provider: str = Field(
        default="generic",
        description="Provider short name or dotted import path of an AbstractProvider subclass",
    )
    client_id: str = Field(default="", description="OAuth2 client ID")
    client_secret: str = Field(default="", description="OAuth2 client secret")
    redirect: str = Field(default="", description="Redirect (callback) URL")

    scopes: Annotated[list[str] | None, NoDecode] = Field(
        default=None,
        description="Scopes to request (list, or comma/space-separated string)",
    )
    scope_separator: str | None = Field(
        default=None,
        description="Separator used to join scopes in the authorization URL",
    )
    stateless: bool = Field(default=False, description="Disable CSRF state handling")
    encoding: Literal["rfc1738", "rfc3986"] = Field(
        default="rfc1738",
        description="Query escaping: rfc1738 (spaces as +) or rfc3986 (spaces as %20)",
    )
    parameters: dict[str, str] = Field(
        default_factory=dict,
        description="Extra authorization URL parameters, merged last",
    )

    # GenericProvider endpoints
    authorize_url: str = Field(default="", description="Authorization endpoint URL")
    token_url: str = Field(default="", description="Token endpoint URL")
    userinfo_url: str = Field(default="", description="User info endpoint URL")
    token_placement: Literal["header", "query"] = Field(
        default="header",
        description="How the access token is sent to userinfo_url",
    )

    @field_validator("scopes", mode="before")
    @classmethod
    def _parse_scopes(cls, v: Any) -> list[str] | None:
        """Accept a comma or space separated string (from env var) or a list."""
        if isinstance(v, str):
            return split_scopes(v)
        return v  # type: ignore[no-any-return]


class HttpSettings(BaseSettings):
    """HTTP client settings.

    Environment prefix: PYSOCIALITE_HTTP__
    Example: PYSOCIALITE_HTTP__TIMEOUT=10
    """

    model_config = SettingsConfigDict(
        env_prefix="PYSOCIALITE_HTTP__",
        extra="ignore",
    )

    timeout: float = Field(default=30.0, gt=0, description="Request timeout in seconds")
    verify: bool = Field(default=True, description="Verify TLS certificates")
    follow_redirects: bool = Field(default=False, description="Follow HTTP redirects")
    headers: dict[str, str] = Field(default_factory=dict, description="Default request headers")
    proxy: str = Field(default="", description="Proxy URL")


class LogSettings(BaseSettings):
    """Logging settings.

    Environment prefix: PYSOCIALITE_LOG__
    Example: PYSOCIALITE_LOG__LEVEL=DEBUG
    """

    model_config = SettingsConfigDict(
        env_prefix="PYSOCIALITE_LOG__",
        extra="ignore",
    )

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    format: str = "%(name)s - %(levelname)s - %(message)s"


class SocialiteSettings(BaseSettings):
    """Main settings aggregating all configuration sections.

    Environment prefix: PYSOCIALITE__
    """

    model_config = SettingsConfigDict(
        env_prefix="PYSOCIALITE__",
        env_nested_delimiter="__",
        extra="ignore",
    )

    drivers: dict[str, DriverSettings] = Field(
        default_factory=dict,
        description="Named driver configurations",
    )
    http: HttpSettings = Field(default_factory=HttpSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Keyword data > environment > TOML files
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            LayeredTomlSource(settings_cls),
            file_secret_settings,
        )

    def _redacted_drivers(self) -> dict[str, dict[str, Any]]:
        drivers = self.model_dump(include={"drivers"})["drivers"]
        for driver in drivers.values():
            for name in _SENSITIVE_FIELDS & driver.keys():
                if driver[name]:
                    driver[name] = _REDACTED
        return drivers  # type: ignore[no-any-return]

    def to_toml(self) -> str:
        """Export settings as a TOML string with secrets redacted."""
        lines = ["# pysocialite configuration", "# Generated by: pysocialite config --toml", ""]

        sections: list[tuple[str, dict[str, Any]]] = [
            ("http", self.http.model_dump()),
            ("log", self.log.model_dump()),
        ]
        sections.extend(
            (f"drivers.{name}", values) for name, values in self._redacted_drivers().items()
        )

        for section_name, section_data in sections:
            lines.append(f"[{section_name}]")
            for field_name, field_value in section_data.items():
                if field_value is None:
                    continue
                lines.append(f"{field_name} = {_toml_value(field_value)}")
            lines.append("")

        return "\n".join(lines)

    def show(self) -> str:
        """Format settings as a readable table."""
        lines = ["pysocialite configuration", "=" * 60]

        sections: list[tuple[str, dict[str, Any]]] = [
            ("HTTP", self.http.model_dump()),
            ("Logging", self.log.model_dump()),
        ]
        sections.extend(
            (f"Driver: {name}", values) for name, values in self._redacted_drivers().items()
        )

        for display_name, section_data in sections:
            lines.append(f"\n{display_name}")
            lines.append("-" * 40)
            for field_name, field_value in section_data.items():
                value_str = str(field_value)
                if len(value_str) > 50:
                    value_str = value_str[:47] + "..."
                lines.append(f"  {field_name:20} = {value_str}")

        return "\n".join(lines)


def _toml_value(value: Any) -> str:
    """Render a scalar, list, or flat dict as a TOML value."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, list):
        return "[" + ", ".join(_toml_value(v) for v in value) + "]"
    if isinstance(value, dict):
        return "{ " + ", ".join(f"{k} = {_toml_value(v)}" for k, v in value.items()) + " }"
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


@lru_cache(maxsize=1)
def get_settings() -> SocialiteSettings:
    """Get the global settings instance (cached).

    Call clear_settings() to reload configuration.
    """
    return SocialiteSettings()


def clear_settings() -> None:
    """Clear the cached settings to force reload."""
    get_settings.cache_clear()


def reload_settings() -> SocialiteSettings:
    """Reload settings from all sources."""
    clear_settings()
    return get_settings()


_MISSING = object()


class Config:
    """Driver configuration lookup injected into ``SocialiteManager``.

    Wraps a nested mapping of driver name to options. Keys may be dotted
    to reach into nested mappings: ``config.get("github.client_id")``.

    Parameters
    ----------
    items : Mapping, optional
        Initial configuration. Copied, so later changes to the source
        mapping do not leak in.
    """

    def __init__(self, items: dict[str, Any] | None = None) -> None:
        self._items: dict[str, Any] = copy.deepcopy(dict(items or {}))

    @classmethod
    def from_settings(cls, settings: SocialiteSettings | None = None) -> Config:
        """Build a lookup from loaded settings.

        Only explicitly set fields are kept, minus empty values, so
        defaults do not reach provider constructors.
        """
        settings = settings or get_settings()
        items: dict[str, Any] = {}
        for name, driver in settings.drivers.items():
            values = driver.model_dump(exclude_unset=True)
            items[name] = {
                key: value for key, value in values.items() if value not in ("", None, {})
            }
        return cls(items)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value by (dotted) key."""
        value: Any = self._items
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return default
            value = value[part]
        return value

    def driver(self, name: str) -> Any:
        """Get a driver's options by its literal name (dots are not split)."""
        return self._items.get(name)

    def has(self, key: str) -> bool:
        """Whether a (dotted) key is present."""
        return self.get(key, _MISSING) is not _MISSING

    __contains__ = has

    def set(self, key: str, value: Any) -> None:
        """Set a value by (dotted) key, creating intermediate mappings."""
        parts = key.split(".")
        target = self._items
        for part in parts[:-1]:
            target = target.setdefault(part, {})
        target[parts[-1]] = value

    def all(self) -> dict[str, Any]:
        """Return a copy of the whole configuration."""
        return copy.deepcopy(self._items)
