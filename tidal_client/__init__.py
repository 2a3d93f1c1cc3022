"""
tidal-client: Asynchronous client for the TIDAL music streaming API.

This package wraps the TIDAL catalog, favorites, playlist, search and
streaming endpoints behind one async client that refreshes its own
authorization.

Architecture:
    core/       - Configuration, credentials, logging, exceptions
    tidal/      - TIDAL client, request pipeline, refresh coordination,
                  response models and pagination helpers
    cli.py      - Command-line interface (`tidal`)

Authorization:
    Every client holds one immutable Credential at a time. When TIDAL
    reports an expired access token, exactly one refresh is performed no
    matter how many requests were in flight; all of them are retried
    once with the new token. Register a callback with
    TidalClient.on_authz_refresh() to persist refreshed credentials.

Usage:
    Command Line:
        tidal login
        tidal search "daft punk"
        tidal playlist 36ea71a8-445e-41a4-82ab-6628c581535d
        tidal stream 77646168 -o track.flac

    Python API:
        from tidal_client import Credential, TidalClient, AudioQuality

        credential = Credential(access_token, refresh_token, user_id, "US")
        async with TidalClient(client_id, credential=credential) as client:
            track = await client.track(77646168)
            stream = await client.track_stream(track.id, AudioQuality.LOSSLESS)

Dependencies:
    - aiohttp: HTTP client
    - asyncio-throttle: Request rate limiting while paging
    - click: CLI framework
    - pyyaml / python-dotenv: Configuration
    - tqdm / colorama: Progress bars and console colors
"""

__version__ = "0.1.0"
__author__ = "tidal-client"
__license__ = "MIT"

# Convenience imports for common usage
from tidal_client.core import (
    Config,
    ConfigError,
    Credential,
    CredentialStore,
    TidalApiError,
    TidalClientError,
    get_logger,
    load_config,
    setup_logging,
)
from tidal_client.tidal import (
    AudioQuality,
    Page,
    Playlist,
    SearchQuery,
    TidalClient,
    Track,
)

__all__ = [
    # Version
    "__version__",
    # Core
    "Config",
    "load_config",
    "Credential",
    "CredentialStore",
    "setup_logging",
    "get_logger",
    # Exceptions
    "TidalClientError",
    "TidalApiError",
    "ConfigError",
    # Client
    "TidalClient",
    "AudioQuality",
    "SearchQuery",
    "Page",
    "Track",
    "Playlist",
]
