"""
TIDAL API client for tidal-client.

TidalClient wraps every supported TIDAL endpoint. Each wrapper resolves
the request context (country, locale, device type, user id), builds the
request parameters and hands the request to the RequestExecutor, which
takes care of authorization, expired-token refresh and decoding.

Context resolution:
    country code: explicit setting > credential's country > "US"
    locale:       explicit setting > "en_US"
    device type:  explicit setting > DeviceType.BROWSER
    user id:      from the current credential

User-scoped endpoints (favorites, user playlists, playlist creation)
raise AuthenticationRequiredError before sending anything when no user
is known. Streaming endpoints raise NoAccessTokenError when there is no
credential at all.

Usage:
    from tidal_client import Credential, TidalClient

    async with TidalClient(client_id, credential=credential) as client:
        client.on_authz_refresh(lambda cred: save_credential(path, cred))

        track = await client.track(123456789)
        page = await client.playlist_tracks(playlist_uuid, limit=50)
        for item in page.items:
            print(item.title)
"""

from typing import TYPE_CHECKING, Any, Callable, TypeVar

import aiohttp

from tidal_client.core.credentials import Credential, CredentialStore
from tidal_client.core.exceptions import (
    AuthenticationRequiredError,
    NoAccessTokenError,
    PlaylistTrackNotFoundError,
    TrackQualityNotAvailableError,
)
from tidal_client.core.logger import get_logger
from tidal_client.tidal.auth import AUTH_BASE_URL, RefreshCallback, RefreshCoordinator
from tidal_client.tidal.enums import (
    AlbumType,
    AudioQuality,
    DeviceType,
    Order,
    OrderDirection,
)
from tidal_client.tidal.http import DEFAULT_TIMEOUT, RequestExecutor
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
    SearchQuery,
    SearchResults,
    Track,
    TrackDashPlaybackInfo,
    TrackPlaybackInfo,
    TrackStream,
    decode_recommendation_item,
    decode_suggested_track,
)

if TYPE_CHECKING:
    from tidal_client.core.config import Config

logger = get_logger(__name__)

T = TypeVar("T")

API_BASE_URL = "https://api.tidal.com/v1"

DEFAULT_COUNTRY_CODE = "US"
DEFAULT_LOCALE = "en_US"
DEFAULT_DEVICE_TYPE = DeviceType.BROWSER

DEFAULT_PAGE_SIZE = 100
TRACK_RECOMMENDATIONS_LIMIT = 5
PLAYLIST_RECOMMENDATIONS_LIMIT = 50


class TidalClient:
    """
    Asynchronous TIDAL API client.

    One client holds one CredentialStore; a refresh triggered by any
    request replaces the credential for every other request too.

    Attributes:
        client_id: TIDAL application client id.
        api_base_url: Base URL of the catalog API.

    Example:
        client = (
            TidalClient(client_id)
            .with_credential(credential)
            .with_locale("de_DE")
            .with_authz_refresh_callback(persist)
        )
        try:
            album = await client.album(17927863)
        finally:
            await client.close()
    """

    def __init__(
        self,
        client_id: str,
        *,
        credential: Credential | None = None,
        country_code: str | None = None,
        locale: str | None = None,
        device_type: DeviceType | None = None,
        session: aiohttp.ClientSession | None = None,
        on_authz_refresh: RefreshCallback | None = None,
        auth_base_url: str = AUTH_BASE_URL,
        api_base_url: str = API_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT
    ) -> None:
        self.client_id = client_id
        self.api_base_url = api_base_url.rstrip("/")
        self._country_code = country_code
        self._locale = locale
        self._device_type = device_type

        self._store = CredentialStore(credential)
        self._executor = RequestExecutor(self._store, session=session, timeout=timeout)
        self._auth = RefreshCoordinator(
            self._store,
            self._executor,
            client_id,
            auth_base_url=auth_base_url,
            on_refresh=on_authz_refresh,
        )
        self._executor.set_refresher(self._auth.ensure_fresh)

    @classmethod
    def from_config(
        cls,
        config: "Config",
        credential: Credential | None = None,
        session: aiohttp.ClientSession | None = None
    ) -> "TidalClient":
        """
        Create a client from a loaded Config.

        Args:
            config: Result of load_config().
            credential: Optional starting credential.
            session: Optional caller-owned HTTP session.
        """
        return cls(
            config.tidal.client_id,
            credential=credential,
            country_code=config.tidal.country_code,
            locale=config.tidal.locale,
            device_type=config.tidal.device_type,
            session=session,
            timeout=config.network.timeout,
        )

    async def __aenter__(self) -> "TidalClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP session if the client created it."""
        await self._executor.close()

    @property
    def session(self) -> aiohttp.ClientSession:
        """HTTP session used for API calls (and usable for stream downloads)."""
        return self._executor.session

    # =========================================================================
    # Configuration
    # =========================================================================

    def with_credential(self, credential: Credential) -> "TidalClient":
        self.set_credential(credential)
        return self

    def with_country_code(self, country_code: str) -> "TidalClient":
        self.set_country_code(country_code)
        return self

    def with_locale(self, locale: str) -> "TidalClient":
        self.set_locale(locale)
        return self

    def with_device_type(self, device_type: DeviceType) -> "TidalClient":
        self.set_device_type(device_type)
        return self

    def with_authz_refresh_callback(self, callback: RefreshCallback) -> "TidalClient":
        self.on_authz_refresh(callback)
        return self

    def with_session(self, session: aiohttp.ClientSession) -> "TidalClient":
        self._executor.set_session(session)
        return self

    def set_credential(self, credential: Credential) -> None:
        """Replace the stored credential."""
        self._store.set(credential)

    def set_country_code(self, country_code: str | None) -> None:
        self._country_code = country_code

    def set_locale(self, locale: str | None) -> None:
        self._locale = locale

    def set_device_type(self, device_type: DeviceType | None) -> None:
        self._device_type = device_type

    def on_authz_refresh(self, callback: RefreshCallback | None) -> None:
        """
        Register the observer called after every successful token refresh.

        The observer receives the new Credential. It runs after the new
        credential is already in place; exceptions it raises are logged
        and otherwise ignored.
        """
        self._auth.on_refresh = callback

    def logout(self) -> None:
        """Forget the stored credential."""
        self._store.clear()

    # =========================================================================
    # Context Resolution
    # =========================================================================

    def get_authz(self) -> Credential | None:
        """Snapshot of the current credential."""
        return self._store.get()

    def get_user_id(self) -> int | None:
        credential = self._store.get()
        return credential.user_id if credential is not None else None

    def get_country_code(self) -> str:
        """Explicit country code, else the credential's, else "US"."""
        if self._country_code:
            return self._country_code
        credential = self._store.get()
        if credential is not None and credential.country_code:
            return credential.country_code
        return DEFAULT_COUNTRY_CODE

    def get_locale(self) -> str:
        return self._locale or DEFAULT_LOCALE

    def get_device_type(self) -> DeviceType:
        return self._device_type or DEFAULT_DEVICE_TYPE

    def _require_user_id(self) -> int:
        user_id = self.get_user_id()
        if user_id is None:
            raise AuthenticationRequiredError()
        return user_id

    def _require_access_token(self) -> Credential:
        credential = self._store.get()
        if credential is None:
            raise NoAccessTokenError()
        return credential

    def _context(self, **params: Any) -> dict[str, Any]:
        """Request parameters plus countryCode, locale and deviceType."""
        return {
            **params,
            "countryCode": self.get_country_code(),
            "locale": self.get_locale(),
            "deviceType": self.get_device_type(),
        }

    def _url(self, path: str) -> str:
        return f"{self.api_base_url}/{path}"

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        etag: str | None = None,
        decoder: Callable[[Any], T] | None = None
    ) -> T | Any:
        return await self._executor.execute(
            method, self._url(path), params=params, etag=etag, decoder=decoder
        )

    # =========================================================================
    # Authorization
    # =========================================================================

    async def device_authorization(self) -> DeviceAuthorization:
        """Start a device login; show DeviceAuthorization.url to the user."""
        return await self._auth.device_authorization()

    async def authorize(self, device_code: str, client_secret: str | None) -> AuthzToken:
        """
        Complete a device login and store the resulting credential.

        An explicitly configured country code takes precedence over the
        country from the user's profile.
        """
        return await self._auth.authorize(device_code, client_secret, self._country_code)

    async def wait_for_authorization(
        self,
        device: DeviceAuthorization,
        client_secret: str | None,
        interval: float | None = None
    ) -> AuthzToken:
        """Poll until the user approved the device login (see authorize())."""
        return await self._auth.wait_for_authorization(
            device, client_secret, self._country_code, interval
        )

    async def refresh_authz(self) -> None:
        """Refresh the access token now (single-flight, see RefreshCoordinator)."""
        await self._auth.ensure_fresh()

    # =========================================================================
    # Track Operations
    # =========================================================================

    async def track(self, track_id: int) -> Track:
        """
        Get a single track.

        Raises:
            TidalApiError: 404 if the track does not exist in this country.
        """
        return await self._request("GET", f"tracks/{track_id}", self._context(), decoder=Track.from_api)

    async def track_recommendations(
        self,
        track_id: int,
        offset: int = 0,
        limit: int = TRACK_RECOMMENDATIONS_LIMIT
    ) -> Page[Track]:
        """Tracks similar to the given one, unwrapped from their recommendation sources."""
        return await self._request(
            "GET",
            f"tracks/{track_id}/recommendations",
            self._context(offset=offset, limit=limit),
            decoder=Page.decoder(decode_suggested_track)
        )

    async def track_stream(
        self,
        track_id: int,
        audio_quality: AudioQuality,
        strict: bool = False
    ) -> TrackStream:
        """
        Get signed streaming URLs for a track.

        Args:
            track_id: The track to stream.
            audio_quality: Requested quality.
            strict: Raise instead of accepting a lower quality than requested.

        Returns:
            TrackStream with at least the quality actually served.

        Raises:
            NoAccessTokenError: If no credential is stored.
            TrackQualityNotAvailableError: With strict=True, when TIDAL
                                           serves a lower quality.
        """
        self._require_access_token()
        stream = await self._request(
            "GET",
            f"tracks/{track_id}/urlpostpaywall",
            {
                "audioquality": audio_quality,
                "urlusagemode": "STREAM",
                "assetpresentation": "FULL",
            },
            decoder=TrackStream.from_api
        )

        if strict and stream.audio_quality.rank < audio_quality.rank:
            raise TrackQualityNotAvailableError(details={
                "track_id": track_id,
                "requested": audio_quality.value,
                "served": stream.audio_quality.value,
            })

        if stream.audio_quality != audio_quality:
            logger.debug(
                f"Track {track_id}: requested {audio_quality.value}, "
                f"got {stream.audio_quality.value}"
            )
        return stream

    async def track_playback_info(
        self,
        track_id: int,
        audio_quality: AudioQuality
    ) -> TrackPlaybackInfo:
        """
        Get playback information with an encoded manifest.

        Raises:
            NoAccessTokenError: If no credential is stored.
        """
        self._require_access_token()
        return await self._request(
            "GET",
            f"tracks/{track_id}/playbackinfo",
            {
                "audioquality": audio_quality,
                "playbackmode": "STREAM",
                "assetpresentation": "FULL",
            },
            decoder=TrackPlaybackInfo.from_api
        )

    async def track_dash_playback_info(
        self,
        track_id: int,
        audio_quality: AudioQuality
    ) -> TrackDashPlaybackInfo:
        """
        Get post-paywall (DASH) playback information.

        Raises:
            NoAccessTokenError: If no credential is stored.
        """
        self._require_access_token()
        return await self._request(
            "GET",
            f"tracks/{track_id}/playbackinfopostpaywall",
            {
                "audioquality": audio_quality,
                "playbackmode": "STREAM",
                "assetpresentation": "FULL",
                "countryCode": self.get_country_code(),
            },
            decoder=TrackDashPlaybackInfo.from_api
        )

    async def favorite_tracks(
        self,
        offset: int = 0,
        limit: int = DEFAULT_PAGE_SIZE,
        order: Order = Order.DATE,
        order_direction: OrderDirection = OrderDirection.DESC
    ) -> Page[FavoriteTrack]:
        user_id = self._require_user_id()
        return await self._request(
            "GET",
            f"users/{user_id}/favorites/tracks",
            self._context(offset=offset, limit=limit, order=order, orderDirection=order_direction),
            decoder=Page.decoder(FavoriteTrack.from_api)
        )

    async def add_favorite_track(self, track_id: int) -> None:
        user_id = self._require_user_id()
        await self._request("POST", f"users/{user_id}/favorites/tracks", self._context(trackId=track_id))

    async def remove_favorite_track(self, track_id: int) -> None:
        user_id = self._require_user_id()
        await self._request("DELETE", f"users/{user_id}/favorites/tracks/{track_id}", self._context())

    # =========================================================================
    # Album Operations
    # =========================================================================

    async def album(self, album_id: int) -> Album:
        return await self._request("GET", f"albums/{album_id}", self._context(), decoder=Album.from_api)

    async def album_tracks(
        self,
        album_id: int,
        offset: int = 0,
        limit: int = DEFAULT_PAGE_SIZE
    ) -> Page[Track]:
        return await self._request(
            "GET",
            f"albums/{album_id}/tracks",
            self._context(offset=offset, limit=limit),
            decoder=Page.decoder(Track.from_api)
        )

    async def favorite_albums(
        self,
        offset: int = 0,
        limit: int = DEFAULT_PAGE_SIZE,
        order: Order = Order.DATE,
        order_direction: OrderDirection = OrderDirection.DESC
    ) -> Page[FavoriteAlbum]:
        user_id = self._require_user_id()
        return await self._request(
            "GET",
            f"users/{user_id}/favorites/albums",
            self._context(offset=offset, limit=limit, order=order, orderDirection=order_direction),
            decoder=Page.decoder(FavoriteAlbum.from_api)
        )

    async def add_favorite_album(self, album_id: int) -> None:
        user_id = self._require_user_id()
        await self._request("POST", f"users/{user_id}/favorites/albums", self._context(albumId=album_id))

    async def remove_favorite_album(self, album_id: int) -> None:
        user_id = self._require_user_id()
        await self._request("DELETE", f"users/{user_id}/favorites/albums/{album_id}", self._context())

    # =========================================================================
    # Artist Operations
    # =========================================================================

    async def artist(self, artist_id: int) -> Artist:
        return await self._request("GET", f"artists/{artist_id}", self._context(), decoder=Artist.from_api)

    async def artist_albums(
        self,
        artist_id: int,
        album_type: AlbumType | None = None,
        offset: int = 0,
        limit: int = DEFAULT_PAGE_SIZE
    ) -> Page[Album]:
        """
        Albums by an artist.

        Args:
            album_type: Optional release type sent as the 'filter' parameter
                        (e.g. AlbumType.EPS_AND_SINGLES).
        """
        return await self._request(
            "GET",
            f"artists/{artist_id}/albums",
            self._context(offset=offset, limit=limit, filter=album_type),
            decoder=Page.decoder(Album.from_api)
        )

    async def favorite_artists(
        self,
        offset: int = 0,
        limit: int = DEFAULT_PAGE_SIZE,
        order: Order = Order.DATE,
        order_direction: OrderDirection = OrderDirection.DESC
    ) -> Page[FavoriteArtist]:
        user_id = self._require_user_id()
        return await self._request(
            "GET",
            f"users/{user_id}/favorites/artists",
            self._context(offset=offset, limit=limit, order=order, orderDirection=order_direction),
            decoder=Page.decoder(FavoriteArtist.from_api)
        )

    async def add_favorite_artist(self, artist_id: int) -> None:
        user_id = self._require_user_id()
        await self._request("POST", f"users/{user_id}/favorites/artists", self._context(artistId=artist_id))

    async def remove_favorite_artist(self, artist_id: int) -> None:
        user_id = self._require_user_id()
        await self._request("DELETE", f"users/{user_id}/favorites/artists/{artist_id}", self._context())

    # =========================================================================
    # Playlist Operations
    # =========================================================================

    async def playlist(self, playlist_id: str) -> Playlist:
        """
        Get playlist metadata.

        The returned Playlist carries the etag needed by the edit methods.
        """
        return await self._request(
            "GET", f"playlists/{playlist_id}", self._context(), decoder=Playlist.from_api
        )

    async def playlist_tracks(
        self,
        playlist_id: str,
        offset: int = 0,
        limit: int = DEFAULT_PAGE_SIZE
    ) -> Page[Track]:
        return await self._request(
            "GET",
            f"playlists/{playlist_id}/tracks",
            self._context(offset=offset, limit=limit),
            decoder=Page.decoder(Track.from_api)
        )

    async def create_playlist(self, title: str, description: str = "") -> Playlist:
        """
        Create a playlist owned by the current user.

        Raises:
            AuthenticationRequiredError: If no user is logged in.
        """
        user_id = self._require_user_id()
        playlist = await self._request(
            "POST",
            f"users/{user_id}/playlists",
            self._context(title=title, description=description),
            decoder=Playlist.from_api
        )
        logger.info(f"Created playlist '{playlist.title}' ({playlist.uuid})")
        return playlist

    async def add_tracks_to_playlist(
        self,
        playlist_id: str,
        etag: str,
        track_ids: list[int],
        add_dupes: bool = False
    ) -> None:
        """
        Append tracks to a playlist.

        Args:
            playlist_id: Playlist UUID.
            etag: Current playlist etag (see playlist()).
            track_ids: Tracks to add, in order.
            add_dupes: Add tracks already on the playlist instead of failing.

        Raises:
            TidalApiError: 412 if the etag is stale, 409 for duplicates.
        """
        await self._request(
            "POST",
            f"playlists/{playlist_id}/items",
            self._context(
                trackIds=",".join(str(track_id) for track_id in track_ids),
                onDupes="ADD" if add_dupes else "FAIL",
            ),
            etag=etag
        )

    async def remove_track_from_playlist_by_index(
        self,
        playlist_id: str,
        etag: str,
        index: int
    ) -> None:
        """Remove the item at a zero-based playlist position."""
        await self._request("DELETE", f"playlists/{playlist_id}/items/{index}", etag=etag)

    async def remove_track_from_playlist(
        self,
        playlist_id: str,
        etag: str,
        track_id: int
    ) -> int:
        """
        Remove the first occurrence of a track from a playlist.

        Pages through the playlist until the track is found or no items
        are left, then removes it by position.

        Returns:
            The zero-based playlist position the track was removed from.

        Raises:
            PlaylistTrackNotFoundError: If the track is not on the playlist.
        """
        offset = 0
        while True:
            page = await self.playlist_tracks(playlist_id, offset=offset, limit=DEFAULT_PAGE_SIZE)

            for position, track in enumerate(page.items):
                if track.id == track_id:
                    index = offset + position
                    logger.debug(f"Removing track {track_id} at index {index} of {playlist_id}")
                    await self.remove_track_from_playlist_by_index(playlist_id, etag, index)
                    return index

            if not page.items or page.num_left() == 0:
                raise PlaylistTrackNotFoundError(playlist_id, track_id)
            offset += len(page.items)

    async def user_playlists(
        self,
        offset: int = 0,
        limit: int = DEFAULT_PAGE_SIZE
    ) -> Page[Playlist]:
        user_id = self._require_user_id()
        return await self._request(
            "GET",
            f"users/{user_id}/playlists",
            self._context(offset=offset, limit=limit),
            decoder=Page.decoder(Playlist.from_api)
        )

    async def playlist_recommendations(
        self,
        playlist_id: str,
        offset: int = 0,
        limit: int = PLAYLIST_RECOMMENDATIONS_LIMIT
    ) -> Page[Track]:
        """Tracks recommended for a playlist."""
        return await self._request(
            "GET",
            f"playlists/{playlist_id}/recommendations/items",
            self._context(offset=offset, limit=limit),
            decoder=Page.decoder(decode_recommendation_item)
        )

    # =========================================================================
    # Search
    # =========================================================================

    async def search(self, query: SearchQuery | str) -> SearchResults:
        """
        Search the catalog.

        Args:
            query: A SearchQuery, or a plain string for the default search
                   over artists, albums, tracks and playlists.

        Example:
            results = await client.search(SearchQuery("radiohead", limit=5))
            for artist in results.artists.items:
                print(artist.name)
        """
        if isinstance(query, str):
            query = SearchQuery(query)
        return await self._request(
            "GET",
            "search/top-hits",
            self._context(**query.to_params()),
            decoder=SearchResults.from_api
        )
