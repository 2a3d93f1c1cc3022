"""
TIDAL API module for tidal-client.

This module provides:
    - TidalClient: Async client wrapping every supported endpoint
    - RefreshCoordinator: Single-flight access token refresh
    - RequestExecutor: Authenticated request pipeline
    - Data models: Track, Album, Artist, Playlist, Page, ...
    - iter_pages / collect_all: Walking paged listings

Usage:
    from tidal_client.tidal import TidalClient, AudioQuality

    async with TidalClient(client_id, credential=credential) as client:
        stream = await client.track_stream(track_id, AudioQuality.LOSSLESS)
"""

from tidal_client.tidal.auth import CredentialObserver, RefreshCoordinator
from tidal_client.tidal.client import TidalClient
from tidal_client.tidal.enums import (
    AlbumType,
    AudioQuality,
    DeviceType,
    Order,
    OrderDirection,
    ResourceType,
)
from tidal_client.tidal.fetcher import collect_all, iter_pages, make_throttler
from tidal_client.tidal.http import RequestExecutor
from tidal_client.tidal.models import (
    Album,
    Artist,
    AuthzToken,
    DeviceAuthorization,
    FavoriteAlbum,
    FavoriteArtist,
    FavoriteTrack,
    Page,
    Playlist,
    Resource,
    SearchQuery,
    SearchResults,
    Track,
    TrackDashPlaybackInfo,
    TrackPlaybackInfo,
    TrackStream,
    User,
)

__all__ = [
    "TidalClient",
    "RefreshCoordinator",
    "CredentialObserver",
    "RequestExecutor",
    # Enums
    "AlbumType",
    "AudioQuality",
    "DeviceType",
    "Order",
    "OrderDirection",
    "ResourceType",
    # Models
    "Album",
    "Artist",
    "AuthzToken",
    "DeviceAuthorization",
    "FavoriteAlbum",
    "FavoriteArtist",
    "FavoriteTrack",
    "Page",
    "Playlist",
    "Resource",
    "SearchQuery",
    "SearchResults",
    "Track",
    "TrackDashPlaybackInfo",
    "TrackPlaybackInfo",
    "TrackStream",
    "User",
    # Fetching
    "iter_pages",
    "collect_all",
    "make_throttler",
]
