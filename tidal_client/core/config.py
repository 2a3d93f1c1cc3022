"""
Configuration management for tidal-client.

This module handles loading, validating, and providing access to the
configuration used by the `tidal` command line tool and by
TidalClient.from_config().

Sources, in order of precedence (later wins):
    1. config.yaml (explicit path, or ./config.yaml if present)
    2. A .env file in the current directory (loaded with python-dotenv)
    3. Environment variables:
        TIDAL_CLIENT_ID, TIDAL_CLIENT_SECRET, TIDAL_COUNTRY_CODE,
        TIDAL_LOCALE, TIDAL_CREDENTIALS_FILE, TIDAL_LOG_LEVEL

Example config.yaml:
    tidal:
      client_id: "your_client_id_here"
      client_secret: "your_client_secret_here"
      country_code: null     # Optional: override the account's country
      locale: "en_US"
      device_type: "BROWSER"

    network:
      timeout: 30            # Seconds per request
      requests_per_second: 5 # Throttle for multi-page fetches

    auth:
      credentials_file: "~/.tidal-client/credentials.json"

    logging:
      level: "INFO"
      directory: null       # Optional: write full logs here
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from tidal_client.core.exceptions import ConfigError
from tidal_client.tidal.enums import DeviceType


# Default configuration file name (looked up in current working directory)
CONFIG_FILENAME = "config.yaml"

DEFAULT_CREDENTIALS_FILE = "~/.tidal-client/credentials.json"
DEFAULT_TIMEOUT = 30.0
DEFAULT_REQUESTS_PER_SECOND = 5.0
DEFAULT_LOG_LEVEL = "INFO"
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Environment variable -> (section, field)
ENV_OVERRIDES = {
    "TIDAL_CLIENT_ID": ("tidal", "client_id"),
    "TIDAL_CLIENT_SECRET": ("tidal", "client_secret"),
    "TIDAL_COUNTRY_CODE": ("tidal", "country_code"),
    "TIDAL_LOCALE": ("tidal", "locale"),
    "TIDAL_CREDENTIALS_FILE": ("auth", "credentials_file"),
    "TIDAL_LOG_LEVEL": ("logging", "level"),
}


@dataclass(frozen=True)
class TidalConfig:
    """
    TIDAL application settings.

    Attributes:
        client_id: The TIDAL application client id (required).
        client_secret: The client secret, needed only to complete a device login.
        country_code: Optional override for the account's country.
        locale: Optional locale such as "en_US".
        device_type: Device type reported to TIDAL.
    """
    client_id: str
    client_secret: str | None = None
    country_code: str | None = None
    locale: str | None = None
    device_type: DeviceType | None = None


@dataclass(frozen=True)
class NetworkConfig:
    """
    Network behavior.

    Attributes:
        timeout: Total seconds allowed per HTTP request.
        requests_per_second: Upper bound on requests issued while paging.
    """
    timeout: float = DEFAULT_TIMEOUT
    requests_per_second: float = DEFAULT_REQUESTS_PER_SECOND


@dataclass(frozen=True)
class AuthConfig:
    """
    Credential persistence for the command line tool.

    Attributes:
        credentials_file: Where the `tidal` CLI keeps the current Credential.
    """
    credentials_file: Path


@dataclass(frozen=True)
class LoggingConfig:
    """
    Logging behavior.

    Attributes:
        level: Console log level.
        directory: Optional directory for full log files.
    """
    level: str = DEFAULT_LOG_LEVEL
    directory: Path | None = None


@dataclass(frozen=True)
class Config:
    """
    Complete application configuration, created by load_config().

    Example:
        config = load_config()
        client = TidalClient.from_config(config)
    """
    tidal: TidalConfig
    network: NetworkConfig
    auth: AuthConfig
    logging: LoggingConfig


def load_config(config_path: Path | None = None, use_dotenv: bool = True) -> Config:
    """
    Load and validate configuration from YAML and the environment.

    Args:
        config_path: Optional explicit path to a config file. When None,
                     ./config.yaml is used if it exists; otherwise every
                     value must come from the environment or defaults.
        use_dotenv: Whether to load a .env file before reading variables.

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigError: If an explicit config file is missing, has invalid
                     YAML syntax, or any value is missing or invalid.
    """
    if config_path is not None:
        if not config_path.exists():
            raise ConfigError(
                f"Configuration file not found: {config_path}",
                details={"file_path": str(config_path)}
            )
        raw_config = _read_yaml(config_path)
    else:
        default_path = Path.cwd() / CONFIG_FILENAME
        raw_config = _read_yaml(default_path) if default_path.exists() else {}

    if use_dotenv:
        load_dotenv()

    _apply_environment(raw_config)

    return Config(
        tidal=_parse_tidal_config(raw_config.get("tidal")),
        network=_parse_network_config(raw_config.get("network")),
        auth=_parse_auth_config(raw_config.get("auth")),
        logging=_parse_logging_config(raw_config.get("logging")),
    )


def _read_yaml(path: Path) -> dict[str, Any]:
    """Read a YAML file that must contain a dictionary (or nothing)."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(
            f"Failed to read configuration file: {e}",
            details={"file_path": str(path), "original_error": str(e)}
        ) from e
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML syntax in configuration file: {e}",
            details={"file_path": str(path), "original_error": str(e)}
        ) from e

    if raw_config is None:
        return {}

    if not isinstance(raw_config, dict):
        raise ConfigError(
            "Configuration file must contain a YAML dictionary",
            details={"file_path": str(path)}
        )

    for section, value in raw_config.items():
        if value is not None and not isinstance(value, dict):
            raise ConfigError(
                f"Section '{section}' must be a dictionary",
                details={"section": section}
            )

    return raw_config


def _apply_environment(raw_config: dict[str, Any]) -> None:
    """Overlay non-empty environment variables onto the raw configuration."""
    for env_var, (section, key) in ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value:
            if raw_config.get(section) is None:
                raw_config[section] = {}
            raw_config[section][key] = value


def _optional_string(section: dict[str, Any], key: str, field_name: str) -> str | None:
    value = section.get(key)
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(
            f"'{field_name}' must be a non-empty string or null",
            details={"field": field_name}
        )
    return value.strip()


def _parse_tidal_config(tidal_section: dict[str, Any] | None) -> TidalConfig:
    """
    Parse and validate the 'tidal' section.

    Raises:
        ConfigError: If client_id is missing or any value has the wrong type.
    """
    tidal_section = tidal_section or {}

    client_id = tidal_section.get("client_id", "")
    if not isinstance(client_id, str) or not client_id.strip():
        raise ConfigError(
            "'tidal.client_id' must be a non-empty string (or set TIDAL_CLIENT_ID)",
            details={"field": "tidal.client_id"}
        )

    country_code = _optional_string(tidal_section, "country_code", "tidal.country_code")
    if country_code is not None:
        if len(country_code) != 2 or not country_code.isalpha():
            raise ConfigError(
                "'tidal.country_code' must be a two letter country code",
                details={"field": "tidal.country_code", "value": country_code}
            )
        country_code = country_code.upper()

    device_type = None
    raw_device_type = _optional_string(tidal_section, "device_type", "tidal.device_type")
    if raw_device_type is not None:
        try:
            device_type = DeviceType(raw_device_type.upper())
        except ValueError as e:
            raise ConfigError(
                f"Unknown device type: {raw_device_type}",
                details={"field": "tidal.device_type", "value": raw_device_type}
            ) from e

    return TidalConfig(
        client_id=client_id.strip(),
        client_secret=_optional_string(tidal_section, "client_secret", "tidal.client_secret"),
        country_code=country_code,
        locale=_optional_string(tidal_section, "locale", "tidal.locale"),
        device_type=device_type,
    )


def _parse_network_config(network_section: dict[str, Any] | None) -> NetworkConfig:
    """
    Parse the 'network' section, applying defaults.

    Raises:
        ConfigError: If timeout or requests_per_second is not a positive number.
    """
    network_section = network_section or {}
    values = {}

    for key, default in (
        ("timeout", DEFAULT_TIMEOUT),
        ("requests_per_second", DEFAULT_REQUESTS_PER_SECOND),
    ):
        raw = network_section.get(key)
        if raw is None:
            values[key] = default
            continue
        if isinstance(raw, bool) or not isinstance(raw, (int, float)) or raw <= 0:
            raise ConfigError(
                f"'network.{key}' must be a positive number",
                details={"field": f"network.{key}", "value": raw}
            )
        values[key] = float(raw)

    return NetworkConfig(**values)


def _parse_auth_config(auth_section: dict[str, Any] | None) -> AuthConfig:
    """Parse the 'auth' section; the credentials path is expanded."""
    auth_section = auth_section or {}
    raw_path = _optional_string(auth_section, "credentials_file", "auth.credentials_file")
    path = Path(raw_path or DEFAULT_CREDENTIALS_FILE).expanduser()
    return AuthConfig(credentials_file=path)


def _parse_logging_config(logging_section: dict[str, Any] | None) -> LoggingConfig:
    """
    Parse the 'logging' section.

    Raises:
        ConfigError: If the level is not a known logging level name.
    """
    logging_section = logging_section or {}

    level = str(logging_section.get("level") or DEFAULT_LOG_LEVEL).upper()
    if level not in VALID_LOG_LEVELS:
        raise ConfigError(
            f"'logging.level' must be one of {', '.join(VALID_LOG_LEVELS)}",
            details={"field": "logging.level", "value": level}
        )

    raw_directory = _optional_string(logging_section, "directory", "logging.directory")
    directory = Path(raw_directory).expanduser() if raw_directory else None

    return LoggingConfig(level=level, directory=directory)
