"""
Data models for TIDAL entities.

This module defines immutable dataclasses for the objects TIDAL returns:
tracks, albums, artists, playlists, paged listings, stream descriptors
and authorization responses.

Design Decisions:
    - All dataclasses are frozen (immutable)
    - Each model has a from_api() classmethod that decodes the generic
      JSON structure (dicts and lists) produced by the request executor.
      Missing required fields raise KeyError/TypeError/ValueError, which
      the executor reports as a DecodeError
    - Optional wire fields get sensible defaults
    - Collections are tuples for immutability

Usage:
    from tidal_client.tidal.models import Page, Track

    decoder = Page.decoder(Track.from_api)
    page = decoder(payload)
    print(page.total, page.num_left())
"""

import asyncio
import base64
from dataclasses import dataclass, field, replace
from typing import Any, AsyncIterator, Callable, Generic, TypeVar

import aiohttp

from tidal_client.core.credentials import Credential
from tidal_client.core.exceptions import NoPrimaryUrlError, StreamInitializationError
from tidal_client.core.logger import get_logger
from tidal_client.tidal.enums import AlbumType, AudioQuality, ResourceType

logger = get_logger(__name__)

T = TypeVar("T")
U = TypeVar("U")

IMAGE_BASE_URL = "https://resources.tidal.com/images"

# Default read size when streaming audio
STREAM_CHUNK_SIZE = 64 * 1024

# Seconds without receiving any audio before a download is abandoned
STREAM_READ_TIMEOUT = 30.0


def image_url(image_id: str, height: int, width: int) -> str:
    """
    Build a resized image URL from a TIDAL image id.

    Image ids look like "a1b2c3d4-e5f6-...": every dash becomes a path
    separator in the resource URL.

    Example:
        image_url("ab-cd", 320, 320)
        # "https://resources.tidal.com/images/ab/cd/320x320.jpg"
    """
    image_path = image_id.replace("-", "/")
    return f"{IMAGE_BASE_URL}/{image_path}/{height}x{width}.jpg"


def _tuple_of(items: Any, decoder: Callable[[Any], T]) -> tuple[T, ...]:
    """Decode a possibly-null JSON list."""
    return tuple(decoder(item) for item in (items or []))


@dataclass(frozen=True)
class Page(Generic[T]):
    """
    One page of a paged TIDAL listing.

    Attributes:
        items: Items on this page.
        offset: Index of the first item within the whole listing.
        limit: Requested page size.
        total: Total number of items in the listing.
        etag: Concurrency token of the underlying resource, if TIDAL sent one.
              Playlist track listings use it as the precondition for writes.
    """
    items: tuple[T, ...] = ()
    offset: int = 0
    limit: int = 0
    total: int = 0
    etag: str | None = None

    def is_empty(self) -> bool:
        """True when the whole listing is empty."""
        return self.total == 0

    def num_left(self) -> int:
        """
        Number of items left to fetch after this page.

        Computed as total - offset - len(items). Inconsistent metadata
        (offset + len(items) > total) yields 0 rather than a negative count.
        """
        remaining = self.total - self.offset - len(self.items)
        if remaining < 0:
            logger.debug(
                f"Inconsistent page metadata: total={self.total} "
                f"offset={self.offset} items={len(self.items)}"
            )
            return 0
        return remaining

    def map(self, fn: Callable[[T], U]) -> "Page[U]":
        """Return the same page with every item transformed by fn."""
        return Page(
            items=tuple(fn(item) for item in self.items),
            offset=self.offset,
            limit=self.limit,
            total=self.total,
            etag=self.etag,
        )

    @classmethod
    def from_api(cls, data: dict[str, Any], item_decoder: Callable[[Any], T]) -> "Page[T]":
        """
        Decode a paged listing.

        Args:
            data: Listing with 'items', 'offset', 'limit', 'totalNumberOfItems'
                  and an optional (possibly injected) 'etag'.
            item_decoder: Decoder applied to every item.
        """
        return cls(
            items=_tuple_of(data["items"], item_decoder),
            offset=int(data.get("offset") or 0),
            limit=int(data.get("limit") or 0),
            total=int(data["totalNumberOfItems"]),
            etag=data.get("etag"),
        )

    @classmethod
    def decoder(cls, item_decoder: Callable[[Any], T]) -> Callable[[Any], "Page[T]"]:
        """Build a typed decoder for the request executor."""
        return lambda data: cls.from_api(data, item_decoder)


@dataclass(frozen=True)
class MediaMetadata:
    """Media tags such as "LOSSLESS" or "HIRES_LOSSLESS"."""
    tags: tuple[str, ...] = ()

    @classmethod
    def from_api(cls, data: dict[str, Any] | None) -> "MediaMetadata | None":
        if data is None:
            return None
        return cls(tags=tuple(data.get("tags") or ()))


@dataclass(frozen=True)
class ArtistRole:
    """A role an artist can have (e.g. "Artist", "Producer")."""
    category: str
    category_id: int

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "ArtistRole":
        return cls(category=data["category"], category_id=int(data["categoryId"]))


@dataclass(frozen=True)
class ArtistSummary:
    """
    Artist reference embedded in tracks and albums.

    Attributes:
        id: TIDAL artist id.
        name: Artist name.
        picture: Image id of the artist picture, if any.
        artist_type: "MAIN", "FEATURED", ... when reported.
    """
    id: int
    name: str
    picture: str | None = None
    contains_cover: bool = False
    popularity: int | None = None
    artist_type: str | None = None

    def picture_url(self, height: int, width: int) -> str | None:
        if self.picture is None:
            return None
        return image_url(self.picture, height, width)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "ArtistSummary":
        return cls(
            id=int(data["id"]),
            name=data["name"],
            picture=data.get("picture"),
            contains_cover=bool(data.get("containsCover", False)),
            popularity=data.get("popularity"),
            artist_type=data.get("type"),
        )


@dataclass(frozen=True)
class Artist:
    """
    Full TIDAL artist.

    Attributes:
        id: TIDAL artist id.
        name: Artist name.
        picture: Image id of the artist picture, if any.
        url: Web URL of the artist page.
        selected_album_cover_fallback: Album cover used when there is no picture.
        mixes: Mix type -> mix id.
    """
    id: int
    name: str
    picture: str | None = None
    url: str | None = None
    user_id: int | None = None
    popularity: int | None = None
    artist_types: tuple[str, ...] = ()
    artist_roles: tuple[ArtistRole, ...] = ()
    selected_album_cover_fallback: str | None = None
    mixes: dict[str, str] = field(default_factory=dict)
    spotlighted: bool = False

    def picture_url(self, height: int, width: int) -> str | None:
        """Picture URL, falling back to the selected album cover."""
        picture = self.picture or self.selected_album_cover_fallback
        if picture is None:
            return None
        return image_url(picture, height, width)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Artist":
        return cls(
            id=int(data["id"]),
            name=data["name"],
            picture=data.get("picture"),
            url=data.get("url"),
            user_id=data.get("userId"),
            popularity=data.get("popularity"),
            artist_types=tuple(data.get("artistTypes") or ()),
            artist_roles=_tuple_of(data.get("artistRoles"), ArtistRole.from_api),
            selected_album_cover_fallback=data.get("selectedAlbumCoverFallback"),
            mixes=dict(data.get("mixes") or {}),
            spotlighted=bool(data.get("spotlighted", False)),
        )


@dataclass(frozen=True)
class AlbumSummary:
    """Album reference embedded in tracks."""
    id: int
    title: str
    cover: str | None = None
    release_date: str | None = None
    vibrant_color: str | None = None
    video_cover: str | None = None

    def cover_url(self, height: int, width: int) -> str | None:
        if self.cover is None:
            return None
        return image_url(self.cover, height, width)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "AlbumSummary":
        return cls(
            id=int(data["id"]),
            title=data["title"],
            cover=data.get("cover"),
            release_date=data.get("releaseDate"),
            vibrant_color=data.get("vibrantColor"),
            video_cover=data.get("videoCover"),
        )


@dataclass(frozen=True)
class Album:
    """
    Full TIDAL album.

    Attributes:
        id: TIDAL album id.
        title: Album title.
        artists: Credited artists.
        audio_quality: Best quality the album is available in.
        duration: Total duration in seconds.
        album_type: ALBUM, EP, SINGLE, ...
        cover: Image id of the cover art.
    """
    id: int
    title: str
    artists: tuple[ArtistSummary, ...] = ()
    audio_quality: AudioQuality | None = None
    duration: int = 0
    explicit: bool = False
    popularity: int = 0
    media_metadata: MediaMetadata | None = None
    cover: str | None = None
    video_cover: str | None = None
    vibrant_color: str | None = None
    release_date: str | None = None
    stream_start_date: str | None = None
    copyright: str | None = None
    number_of_tracks: int = 0
    number_of_videos: int = 0
    number_of_volumes: int = 0
    upc: str | None = None
    url: str | None = None
    version: str | None = None
    album_type: AlbumType = AlbumType.ALBUM
    allow_streaming: bool = False
    stream_ready: bool = False
    audio_modes: tuple[str, ...] = ()

    def cover_url(self, height: int, width: int) -> str | None:
        if self.cover is None:
            return None
        return image_url(self.cover, height, width)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Album":
        quality = data.get("audioQuality")
        return cls(
            id=int(data["id"]),
            title=data["title"],
            artists=_tuple_of(data.get("artists"), ArtistSummary.from_api),
            audio_quality=AudioQuality(quality) if quality else None,
            duration=int(data.get("duration") or 0),
            explicit=bool(data.get("explicit", False)),
            popularity=int(data.get("popularity") or 0),
            media_metadata=MediaMetadata.from_api(data.get("mediaMetadata")),
            cover=data.get("cover"),
            video_cover=data.get("videoCover"),
            vibrant_color=data.get("vibrantColor"),
            release_date=data.get("releaseDate"),
            stream_start_date=data.get("streamStartDate"),
            copyright=data.get("copyright"),
            number_of_tracks=int(data.get("numberOfTracks") or 0),
            number_of_videos=int(data.get("numberOfVideos") or 0),
            number_of_volumes=int(data.get("numberOfVolumes") or 0),
            upc=data.get("upc"),
            url=data.get("url"),
            version=data.get("version"),
            album_type=AlbumType(data.get("type") or AlbumType.ALBUM.value),
            allow_streaming=bool(data.get("allowStreaming", False)),
            stream_ready=bool(data.get("streamReady", False)),
            audio_modes=tuple(data.get("audioModes") or ()),
        )


@dataclass(frozen=True)
class Track:
    """
    Full TIDAL track.

    Attributes:
        id: TIDAL track id.
        title: Track title.
        track_number: Position on the album.
        artists: Credited artists.
        album: The album this track belongs to.
        audio_quality: Best quality the track is available in.
        duration: Duration in seconds.
        isrc: International Standard Recording Code, if known.
    """
    id: int
    title: str
    track_number: int = 0
    artists: tuple[ArtistSummary, ...] = ()
    album: AlbumSummary | None = None
    audio_quality: AudioQuality | None = None
    duration: int = 0
    explicit: bool = False
    isrc: str | None = None
    popularity: int = 0
    version: str | None = None
    media_metadata: MediaMetadata | None = None
    copyright: str | None = None
    url: str | None = None
    bpm: int | None = None
    upload: bool | None = None

    @property
    def artist_name(self) -> str:
        """Name of the first credited artist."""
        return self.artists[0].name if self.artists else "Unknown Artist"

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Track":
        quality = data.get("audioQuality")
        album = data.get("album")
        return cls(
            id=int(data["id"]),
            title=data["title"],
            track_number=int(data.get("trackNumber") or 0),
            artists=_tuple_of(data.get("artists"), ArtistSummary.from_api),
            album=AlbumSummary.from_api(album) if album else None,
            audio_quality=AudioQuality(quality) if quality else None,
            duration=int(data.get("duration") or 0),
            explicit=bool(data.get("explicit", False)),
            isrc=data.get("isrc"),
            popularity=int(data.get("popularity") or 0),
            version=data.get("version"),
            media_metadata=MediaMetadata.from_api(data.get("mediaMetadata")),
            copyright=data.get("copyright"),
            url=data.get("url"),
            bpm=data.get("bpm"),
            upload=data.get("upload"),
        )


@dataclass(frozen=True)
class PlaylistCreator:
    """Owner of a playlist; id is absent for editorial playlists."""
    id: int | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any] | None) -> "PlaylistCreator":
        return cls(id=(data or {}).get("id"))


@dataclass(frozen=True)
class Playlist:
    """
    TIDAL playlist.

    Attributes:
        uuid: Playlist identifier.
        title: Playlist title.
        number_of_tracks: Current track count.
        etag: Concurrency token required as precondition for edits.
              Filled from the ETag response header when the body lacks it.
    """
    uuid: str
    title: str
    url: str | None = None
    creator: PlaylistCreator = field(default_factory=PlaylistCreator)
    description: str = ""
    number_of_tracks: int = 0
    number_of_videos: int = 0
    duration: int = 0
    popularity: int = 0
    last_updated: str | None = None
    created: str | None = None
    last_item_added_at: str | None = None
    playlist_type: str | None = None
    public_playlist: bool = False
    image: str | None = None
    square_image: str | None = None
    custom_image_url: str | None = None
    promoted_artists: tuple[ArtistSummary, ...] = ()
    etag: str | None = None

    def image_url(self, height: int, width: int) -> str | None:
        if self.image is None:
            return None
        return image_url(self.image, height, width)

    def square_image_url(self, size: int) -> str | None:
        if self.square_image is None:
            return None
        return image_url(self.square_image, size, size)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Playlist":
        return cls(
            uuid=data["uuid"],
            title=data["title"],
            url=data.get("url"),
            creator=PlaylistCreator.from_api(data.get("creator")),
            description=data.get("description") or "",
            number_of_tracks=int(data.get("numberOfTracks") or 0),
            number_of_videos=int(data.get("numberOfVideos") or 0),
            duration=int(data.get("duration") or 0),
            popularity=int(data.get("popularity") or 0),
            last_updated=data.get("lastUpdated"),
            created=data.get("created"),
            last_item_added_at=data.get("lastItemAddedAt"),
            playlist_type=data.get("type"),
            public_playlist=bool(data.get("publicPlaylist", False)),
            image=data.get("image"),
            square_image=data.get("squareImage"),
            custom_image_url=data.get("customImageUrl"),
            promoted_artists=_tuple_of(data.get("promotedArtists"), ArtistSummary.from_api),
            etag=data.get("etag"),
        )


@dataclass(frozen=True)
class FavoriteTrack:
    """A favorited track and when it was added."""
    created: str
    item: Track

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "FavoriteTrack":
        return cls(created=data["created"], item=Track.from_api(data["item"]))


@dataclass(frozen=True)
class FavoriteAlbum:
    """A favorited album and when it was added."""
    created: str
    item: Album

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "FavoriteAlbum":
        return cls(created=data["created"], item=Album.from_api(data["item"]))


@dataclass(frozen=True)
class FavoriteArtist:
    """A favorited artist and when it was added."""
    created: str
    item: Artist

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "FavoriteArtist":
        return cls(created=data["created"], item=Artist.from_api(data["item"]))


def decode_recommendation_item(data: dict[str, Any]) -> Track:
    """Unwrap a playlist recommendation {"item": ..., "type": ...} to its track."""
    return Track.from_api(data["item"])


def decode_suggested_track(data: dict[str, Any]) -> Track:
    """Unwrap a track recommendation {"track": ..., "sources": [...]} to its track."""
    return Track.from_api(data["track"])


@dataclass(frozen=True)
class Resource:
    """
    One search top hit.

    TIDAL tags each hit: {"type": "TRACKS", "value": {...}}. Artists,
    albums, tracks and playlists are decoded; videos and user profiles
    are kept as plain dictionaries.
    """
    type: ResourceType
    value: Artist | Album | Track | Playlist | dict[str, Any]

    @property
    def id(self) -> str:
        if isinstance(self.value, Playlist):
            return self.value.uuid
        if isinstance(self.value, dict):
            return str(self.value.get("id"))
        return str(self.value.id)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Resource":
        resource_type = ResourceType.parse(data["type"])
        decoders = {
            ResourceType.ARTIST: Artist.from_api,
            ResourceType.ALBUM: Album.from_api,
            ResourceType.TRACK: Track.from_api,
            ResourceType.PLAYLIST: Playlist.from_api,
        }
        decoder = decoders.get(resource_type, dict)
        return cls(type=resource_type, value=decoder(data["value"]))


DEFAULT_SEARCH_TYPES = (
    ResourceType.ARTIST,
    ResourceType.ALBUM,
    ResourceType.TRACK,
    ResourceType.PLAYLIST,
)


@dataclass(frozen=True)
class SearchQuery:
    """
    Parameters of a top-hits search.

    Only query is required; None fields are not sent.

    Example:
        query = SearchQuery("daft punk", limit=10, types=(ResourceType.ARTIST,))
    """
    query: str
    offset: int | None = None
    limit: int | None = None
    include_contributions: bool | None = None
    include_did_you_mean: bool | None = None
    include_user_playlists: bool | None = None
    supports_user_data: bool | None = None
    types: tuple[ResourceType, ...] | None = None

    def to_params(self) -> dict[str, Any]:
        """Search specific request parameters (without client context)."""
        types = self.types or DEFAULT_SEARCH_TYPES
        return {
            "query": self.query,
            "types": ",".join(t.plural for t in types),
            "offset": self.offset,
            "limit": self.limit,
            "includeContributions": self.include_contributions,
            "includeDidYouMean": self.include_did_you_mean,
            "includeUserPlaylists": self.include_user_playlists,
            "supportsUserData": self.supports_user_data,
        }


@dataclass(frozen=True)
class SearchResults:
    """
    Results of a top-hits search.

    Sections that TIDAL leaves out (because the type was not requested)
    are empty pages.
    """
    albums: Page[Album] = field(default_factory=Page)
    artists: Page[Artist] = field(default_factory=Page)
    tracks: Page[Track] = field(default_factory=Page)
    playlists: Page[Playlist] = field(default_factory=Page)
    user_profiles: Page[dict] = field(default_factory=Page)
    videos: Page[dict] = field(default_factory=Page)
    top_hits: tuple[Resource, ...] = ()

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "SearchResults":
        def section(key: str, decoder: Callable[[Any], Any]) -> Page:
            raw = data.get(key)
            return Page.from_api(raw, decoder) if raw else Page()

        return cls(
            albums=section("albums", Album.from_api),
            artists=section("artists", Artist.from_api),
            tracks=section("tracks", Track.from_api),
            playlists=section("playlists", Playlist.from_api),
            user_profiles=section("userProfiles", dict) if "userProfiles" in data
            else section("user_profiles", dict),
            videos=section("videos", dict),
            top_hits=_tuple_of(data.get("topHits"), Resource.from_api),
        )


@dataclass(frozen=True)
class TrackStream:
    """
    Time-limited signed URLs for streaming one track.

    Attributes:
        track_id: The track these URLs play.
        audio_quality: Quality actually served.
        codec: Audio codec, e.g. "FLAC" or "AAC".
        urls: Signed URLs, the first one is the primary.
    """
    track_id: int
    audio_quality: AudioQuality
    asset_presentation: str = "FULL"
    audio_mode: str = "STEREO"
    codec: str = ""
    security_token: str | None = None
    security_type: str | None = None
    streaming_session_id: str | None = None
    urls: tuple[str, ...] = ()

    def primary_url(self) -> str | None:
        """First signed URL, or None when TIDAL returned none."""
        return self.urls[0] if self.urls else None

    async def stream(
        self,
        session: aiohttp.ClientSession,
        chunk_size: int = STREAM_CHUNK_SIZE,
        read_timeout: float | None = STREAM_READ_TIMEOUT
    ) -> AsyncIterator[bytes]:
        """
        Stream the audio behind the primary URL.

        Args:
            session: HTTP session used for the download. Signed URLs need
                     no authorization header.
            chunk_size: Maximum bytes per yielded chunk.
            read_timeout: Seconds the connection may stay silent before the
                          download is abandoned. The session's total request
                          timeout does not apply to the transfer.

        Yields:
            Raw audio bytes as they arrive.

        Raises:
            NoPrimaryUrlError: If there is no URL to stream.
            StreamInitializationError: If the download cannot be opened,
                                       the transfer breaks off or stalls.

        Example:
            stream = await client.track_stream(track_id, AudioQuality.LOSSLESS)
            async for chunk in stream.stream(session):
                sink.write(chunk)
        """
        url = self.primary_url()
        if url is None:
            raise NoPrimaryUrlError(details={"track_id": self.track_id})

        logger.debug(f"Opening stream for track {self.track_id}")

        timeout = aiohttp.ClientTimeout(
            total=None, sock_connect=read_timeout, sock_read=read_timeout
        )

        try:
            async with session.get(url, timeout=timeout) as response:
                if response.status >= 400:
                    raise StreamInitializationError(
                        f"HTTP {response.status}",
                        details={"track_id": self.track_id, "http_status": response.status}
                    )
                async for chunk in response.content.iter_chunked(chunk_size):
                    yield chunk
        except asyncio.TimeoutError as e:
            raise StreamInitializationError(
                f"no data received for {read_timeout} seconds",
                details={"track_id": self.track_id, "read_timeout": read_timeout}
            ) from e
        except aiohttp.ClientError as e:
            raise StreamInitializationError(
                str(e) or type(e).__name__,
                details={"track_id": self.track_id, "original_error": str(e)}
            ) from e

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "TrackStream":
        return cls(
            track_id=int(data["trackId"]),
            audio_quality=AudioQuality(data["audioQuality"]),
            asset_presentation=data.get("assetPresentation", "FULL"),
            audio_mode=data.get("audioMode", "STEREO"),
            codec=data.get("codec", ""),
            security_token=data.get("securityToken"),
            security_type=data.get("securityType"),
            streaming_session_id=data.get("streamingSessionId"),
            urls=tuple(data.get("urls") or ()),
        )


@dataclass(frozen=True)
class TrackPlaybackInfo:
    """
    Playback information with a base64 encoded manifest.

    The audio_quality string is kept as sent; the DASH variant below
    parses it into AudioQuality.
    """
    track_id: int
    audio_quality: str
    manifest: str
    manifest_mime_type: str
    manifest_hash: str = ""
    asset_presentation: str = "FULL"
    audio_mode: str = "STEREO"
    bit_depth: int | None = None
    sample_rate: int | None = None
    album_peak_amplitude: float = 0.0
    album_replay_gain: float = 0.0
    track_peak_amplitude: float = 0.0
    track_replay_gain: float = 0.0

    def unpack_manifest(self) -> str:
        """
        Decode the base64 manifest.

        Raises:
            binascii.Error: If the manifest is not valid base64.
            UnicodeDecodeError: If the decoded manifest is not UTF-8 text.
        """
        return base64.b64decode(self.manifest.encode("ascii")).decode("utf-8")

    @classmethod
    def _fields_from_api(cls, data: dict[str, Any]) -> dict[str, Any]:
        return dict(
            track_id=int(data["trackId"]),
            audio_quality=data["audioQuality"],
            manifest=data["manifest"],
            manifest_mime_type=data["manifestMimeType"],
            manifest_hash=data.get("manifestHash", ""),
            asset_presentation=data.get("assetPresentation", "FULL"),
            audio_mode=data.get("audioMode", "STEREO"),
            bit_depth=data.get("bitDepth"),
            sample_rate=data.get("sampleRate"),
            album_peak_amplitude=float(data.get("albumPeakAmplitude") or 0.0),
            album_replay_gain=float(data.get("albumReplayGain") or 0.0),
            track_peak_amplitude=float(data.get("trackPeakAmplitude") or 0.0),
            track_replay_gain=float(data.get("trackReplayGain") or 0.0),
        )

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "TrackPlaybackInfo":
        return cls(**cls._fields_from_api(data))


@dataclass(frozen=True)
class TrackDashPlaybackInfo(TrackPlaybackInfo):
    """Post-paywall playback information; audio_quality is an AudioQuality."""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "TrackDashPlaybackInfo":
        fields = cls._fields_from_api(data)
        fields["audio_quality"] = AudioQuality(fields["audio_quality"])
        return cls(**fields)


@dataclass(frozen=True)
class DeviceAuthorization:
    """
    Start of a device login.

    Attributes:
        url: Page the user visits to approve the login (https:// included).
        device_code: Code the client exchanges for tokens.
        user_code: Code the user types on the approval page.
        expires_in: Seconds until device_code expires.
        interval: Suggested seconds between token polls.
    """
    url: str
    device_code: str
    user_code: str
    expires_in: int
    interval: int = 5

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "DeviceAuthorization":
        return cls(
            url=data["verificationUriComplete"],
            device_code=data["deviceCode"],
            user_code=data["userCode"],
            expires_in=int(data["expiresIn"]),
            interval=int(data.get("interval") or 5),
        )

    def with_scheme(self) -> "DeviceAuthorization":
        """Return a copy whose url carries the https:// scheme."""
        if self.url.startswith(("http://", "https://")):
            return self
        return replace(self, url=f"https://{self.url}")


@dataclass(frozen=True)
class User:
    """TIDAL account profile returned with tokens."""
    user_id: int
    username: str = ""
    email: str = ""
    country_code: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    full_name: str | None = None
    nickname: str | None = None
    email_verified: bool = False
    new_user: bool = False

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "User":
        return cls(
            user_id=int(data["userId"]),
            username=data.get("username") or "",
            email=data.get("email") or "",
            country_code=data.get("countryCode"),
            first_name=data.get("firstName"),
            last_name=data.get("lastName"),
            full_name=data.get("fullName"),
            nickname=data.get("nickname"),
            email_verified=bool(data.get("emailVerified", False)),
            new_user=bool(data.get("newUser", False)),
        )


@dataclass(frozen=True)
class AuthzToken:
    """
    Token endpoint response.

    Attributes:
        access_token: New bearer token.
        refresh_token: Present after a device login; optional on refresh.
        expires_in: Access token lifetime in seconds.
        user: Profile of the authorized user.
        user_id: Same as user.user_id.
    """
    access_token: str
    expires_in: int
    user: User
    user_id: int
    refresh_token: str | None = None
    token_type: str = "Bearer"
    scope: str = ""
    client_name: str = ""

    def credential(self) -> Credential | None:
        """Credential for this response, or None without a refresh token."""
        if self.refresh_token is None:
            return None
        return Credential(
            access_token=self.access_token,
            refresh_token=self.refresh_token,
            user_id=self.user.user_id,
            country_code=self.user.country_code,
        )

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "AuthzToken":
        user = User.from_api(data["user"])
        return cls(
            access_token=data["access_token"],
            expires_in=int(data["expires_in"]),
            user=user,
            user_id=int(data.get("user_id", user.user_id)),
            refresh_token=data.get("refresh_token"),
            token_type=data.get("token_type", "Bearer"),
            scope=data.get("scope", ""),
            client_name=data.get("clientName", ""),
        )
