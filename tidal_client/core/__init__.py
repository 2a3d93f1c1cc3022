"""
Core module for tidal-client.

This module provides the foundational components used throughout the client:
    - exceptions: Custom exception classes for error handling
    - credentials: Immutable credentials and the per-client credential store
    - config: Configuration loading and validation
    - logger: Logging setup for applications embedding the client

Usage:
    from tidal_client.core import (
        Config, load_config,
        Credential, CredentialStore,
        setup_logging, get_logger,
        TidalClientError, TidalApiError
    )
"""

from tidal_client.core.config import (
    AuthConfig,
    Config,
    LoggingConfig,
    NetworkConfig,
    TidalConfig,
    load_config,
)
from tidal_client.core.credentials import (
    Credential,
    CredentialStore,
    load_credential,
    save_credential,
)
from tidal_client.core.exceptions import (
    AuthenticationRequiredError,
    ConfigError,
    DecodeError,
    NoAccessTokenError,
    NoAuthzTokenError,
    NoPrimaryUrlError,
    PlaylistTrackNotFoundError,
    StreamInitializationError,
    TidalApiError,
    TidalClientError,
    TrackQualityNotAvailableError,
    TransportError,
)
from tidal_client.core.logger import get_logger, setup_logging, shutdown_logging

__all__ = [
    # Config
    "Config",
    "TidalConfig",
    "NetworkConfig",
    "AuthConfig",
    "LoggingConfig",
    "load_config",
    # Credentials
    "Credential",
    "CredentialStore",
    "load_credential",
    "save_credential",
    # Exceptions
    "TidalClientError",
    "ConfigError",
    "TransportError",
    "TidalApiError",
    "DecodeError",
    "NoAuthzTokenError",
    "NoAccessTokenError",
    "AuthenticationRequiredError",
    "NoPrimaryUrlError",
    "StreamInitializationError",
    "TrackQualityNotAvailableError",
    "PlaylistTrackNotFoundError",
    # Logger
    "setup_logging",
    "get_logger",
    "shutdown_logging",
]
