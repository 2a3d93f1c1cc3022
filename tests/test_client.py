"""Test TidalClient context resolution and endpoint wrappers"""

import asyncio

import aiohttp
import pytest
from aiohttp import web

from tidal_client.core.config import AuthConfig, Config, LoggingConfig, NetworkConfig, TidalConfig
from tidal_client.core.credentials import Credential
from tidal_client.core.exceptions import (
    AuthenticationRequiredError,
    NoAccessTokenError,
    NoPrimaryUrlError,
    PlaylistTrackNotFoundError,
    StreamInitializationError,
    TidalApiError,
    TrackQualityNotAvailableError,
)
from tidal_client.tidal.client import TidalClient
from tidal_client.tidal.enums import AlbumType, AudioQuality, DeviceType, OrderDirection, ResourceType
from tidal_client.tidal.models import SearchQuery, TrackStream

PLAYLIST_ID = "36ea71a8-445e-41a4-82ab-6628c581535d"


def stream_payload(track_id: int, quality: str, urls: list[str]) -> dict:
    return {
        "trackId": track_id,
        "audioQuality": quality,
        "assetPresentation": "FULL",
        "audioMode": "STEREO",
        "codec": "FLAC",
        "urls": urls,
    }


class TestContextResolution:
    """Test country, locale, device type and user id"""

    def test_country_code_precedence(self, credential):
        """Test explicit > credential > default"""
        client = TidalClient("id")
        assert client.get_country_code() == "US"

        client.set_credential(credential)
        assert client.get_country_code() == "SE"

        client.set_country_code("GB")
        assert client.get_country_code() == "GB"

    def test_credential_without_country(self):
        """Test a credential without country falls back to US"""
        client = TidalClient("id", credential=Credential("a", "r", 1))
        assert client.get_country_code() == "US"

    def test_defaults(self):
        """Test default locale and device type"""
        client = TidalClient("id")
        assert client.get_locale() == "en_US"
        assert client.get_device_type() == DeviceType.BROWSER
        assert client.get_user_id() is None
        assert client.get_authz() is None

    def test_builders(self, credential):
        """Test the fluent configuration methods"""
        client = (
            TidalClient("id")
            .with_credential(credential)
            .with_locale("de_DE")
            .with_country_code("DE")
            .with_device_type(DeviceType.BROWSER)
        )
        assert client.get_user_id() == 12345
        assert client.get_locale() == "de_DE"
        assert client.get_country_code() == "DE"

    @pytest.mark.asyncio
    async def test_from_config(self, tmp_path, credential):
        """Test building a client from loaded configuration"""
        config = Config(
            tidal=TidalConfig(client_id="abc", country_code="NO", locale="nb_NO"),
            network=NetworkConfig(timeout=12.0),
            auth=AuthConfig(credentials_file=tmp_path / "credentials.json"),
            logging=LoggingConfig(),
        )

        async with TidalClient.from_config(config, credential=credential) as client:
            assert client.client_id == "abc"
            assert client.get_country_code() == "NO"
            assert client.get_locale() == "nb_NO"
            assert client.get_user_id() == 12345

    def test_logout(self, credential):
        """Test forgetting the credential"""
        client = TidalClient("id", credential=credential)
        client.logout()
        assert client.get_authz() is None


class TestPreconditions:
    """Test local failures that never reach the network"""

    @pytest.mark.asyncio
    async def test_user_endpoints_need_user(self, fake_tidal):
        """Test AuthenticationRequiredError without a credential"""
        client = TidalClient("id", api_base_url=fake_tidal.api_url)
        try:
            with pytest.raises(AuthenticationRequiredError):
                await client.favorite_tracks()
            with pytest.raises(AuthenticationRequiredError):
                await client.create_playlist("Mix")
            with pytest.raises(AuthenticationRequiredError):
                await client.add_favorite_album(1)
        finally:
            await client.close()

        assert fake_tidal.requests == []

    @pytest.mark.asyncio
    async def test_streaming_needs_access_token(self, fake_tidal):
        """Test NoAccessTokenError without a credential"""
        client = TidalClient("id", api_base_url=fake_tidal.api_url)
        try:
            with pytest.raises(NoAccessTokenError):
                await client.track_stream(1, AudioQuality.LOSSLESS)
            with pytest.raises(NoAccessTokenError):
                await client.track_playback_info(1, AudioQuality.LOSSLESS)
            with pytest.raises(NoAccessTokenError):
                await client.track_dash_playback_info(1, AudioQuality.LOSSLESS)
        finally:
            await client.close()

        assert fake_tidal.requests == []


class TestTrackEndpoints:
    """Test track operations"""

    @pytest.mark.asyncio
    async def test_track_sends_context(self, fake_tidal, client, make_track):
        """Test every catalog call carries the request context"""
        fake_tidal.json("GET", "/v1/tracks/5", make_track(5))

        track = await client.track(5)

        assert track.id == 5
        assert fake_tidal.requests[0].query == {
            "countryCode": "SE",
            "locale": "en_US",
            "deviceType": "BROWSER",
        }

    @pytest.mark.asyncio
    async def test_track_recommendations(self, fake_tidal, client, make_track, make_page):
        """Test recommendations are unwrapped to tracks"""
        fake_tidal.json("GET", "/v1/tracks/5/recommendations", make_page(
            [{"track": make_track(6), "sources": ["SUGGESTED_TRACKS"]}], limit=5
        ))

        page = await client.track_recommendations(5)

        assert [t.id for t in page.items] == [6]
        assert fake_tidal.requests[0].query["limit"] == "5"

    @pytest.mark.asyncio
    async def test_track_stream(self, fake_tidal, client):
        """Test the stream endpoint parameters"""
        fake_tidal.json(
            "GET", "/v1/tracks/5/urlpostpaywall",
            stream_payload(5, "HI_RES_LOSSLESS", ["https://a"])
        )

        stream = await client.track_stream(5, AudioQuality.HI_RES_LOSSLESS)

        assert stream.primary_url() == "https://a"
        assert fake_tidal.requests[0].query == {
            "audioquality": "HI_RES_LOSSLESS",
            "urlusagemode": "STREAM",
            "assetpresentation": "FULL",
        }

    @pytest.mark.asyncio
    async def test_track_stream_lower_quality(self, fake_tidal, client):
        """Test a downgraded stream is accepted unless strict"""
        fake_tidal.json("GET", "/v1/tracks/5/urlpostpaywall", stream_payload(5, "HIGH", ["https://a"]))

        stream = await client.track_stream(5, AudioQuality.LOSSLESS)
        assert stream.audio_quality == AudioQuality.HIGH

        with pytest.raises(TrackQualityNotAvailableError):
            await client.track_stream(5, AudioQuality.LOSSLESS, strict=True)

    @pytest.mark.asyncio
    async def test_dash_playback_info_sends_country(self, fake_tidal, client):
        """Test the post-paywall variant adds the country code"""
        fake_tidal.json("GET", "/v1/tracks/5/playbackinfopostpaywall", {
            "trackId": 5,
            "audioQuality": "LOSSLESS",
            "manifest": "",
            "manifestMimeType": "application/dash+xml",
        })

        await client.track_dash_playback_info(5, AudioQuality.LOSSLESS)

        query = fake_tidal.requests[0].query
        assert query["countryCode"] == "SE"
        assert query["playbackmode"] == "STREAM"

    @pytest.mark.asyncio
    async def test_favorite_tracks_defaults(self, fake_tidal, client, make_track, make_page):
        """Test favorites ordering defaults"""
        fake_tidal.json("GET", "/v1/users/12345/favorites/tracks", make_page(
            [{"created": "2024-01-01T00:00:00.000+0000", "item": make_track(1)}]
        ))

        page = await client.favorite_tracks()

        assert page.items[0].item.id == 1
        query = fake_tidal.requests[0].query
        assert (query["order"], query["orderDirection"]) == ("DATE", "DESC")
        assert (query["offset"], query["limit"]) == ("0", "100")

    @pytest.mark.asyncio
    async def test_favorite_tracks_ascending(self, fake_tidal, client, make_page):
        """Test explicit order direction"""
        fake_tidal.json("GET", "/v1/users/12345/favorites/tracks", make_page([]))

        await client.favorite_tracks(order_direction=OrderDirection.ASC)

        assert fake_tidal.requests[0].query["orderDirection"] == "ASC"

    @pytest.mark.asyncio
    async def test_add_and_remove_favorite_track(self, fake_tidal, client):
        """Test favorite track mutations"""
        fake_tidal.route("POST", "/v1/users/12345/favorites/tracks", lambda r: web.Response(status=200))
        fake_tidal.route("DELETE", "/v1/users/12345/favorites/tracks/9", lambda r: web.Response(status=204))

        await client.add_favorite_track(9)
        await client.remove_favorite_track(9)

        add, remove = fake_tidal.requests
        assert add.form["trackId"] == "9"
        assert remove.query["countryCode"] == "SE"


class TestAlbumAndArtistEndpoints:
    """Test album and artist operations"""

    @pytest.mark.asyncio
    async def test_album_tracks(self, fake_tidal, client, make_track, make_page):
        """Test album track listing"""
        fake_tidal.json("GET", "/v1/albums/3/tracks", make_page([make_track(1), make_track(2)], total=2))

        page = await client.album_tracks(3, limit=2)

        assert len(page.items) == 2
        assert page.num_left() == 0

    @pytest.mark.asyncio
    async def test_artist_albums_filter(self, fake_tidal, client, make_page):
        """Test the album type filter is only sent when given"""
        fake_tidal.json("GET", "/v1/artists/8/albums", make_page([{"id": 1, "title": "EP", "type": "EP"}]))

        await client.artist_albums(8)
        page = await client.artist_albums(8, album_type=AlbumType.EPS_AND_SINGLES)

        first, second = fake_tidal.requests
        assert "filter" not in first.query
        assert second.query["filter"] == "EPSANDSINGLES"
        assert page.items[0].album_type == AlbumType.EP

    @pytest.mark.asyncio
    async def test_favorite_artist_mutations(self, fake_tidal, client):
        """Test favorite artist mutations"""
        fake_tidal.route("POST", "/v1/users/12345/favorites/artists", lambda r: web.Response(status=200))
        fake_tidal.route("DELETE", "/v1/users/12345/favorites/artists/8", lambda r: web.Response(status=204))

        await client.add_favorite_artist(8)
        await client.remove_favorite_artist(8)

        assert fake_tidal.requests[0].form["artistId"] == "8"
        assert len(fake_tidal.requests) == 2


class TestPlaylistEndpoints:
    """Test playlist operations"""

    @pytest.mark.asyncio
    async def test_playlist_etag(self, fake_tidal, client):
        """Test the playlist carries the header ETag"""
        fake_tidal.json(
            "GET", f"/v1/playlists/{PLAYLIST_ID}",
            {"uuid": PLAYLIST_ID, "title": "Mix", "numberOfTracks": 2},
            headers={"ETag": '"1700000000000"'}
        )

        playlist = await client.playlist(PLAYLIST_ID)

        assert playlist.etag == "1700000000000"

    @pytest.mark.asyncio
    async def test_create_playlist(self, fake_tidal, client):
        """Test playlist creation"""
        fake_tidal.json("POST", "/v1/users/12345/playlists", {"uuid": "new", "title": "Mix"})

        playlist = await client.create_playlist("Mix", "Songs")

        assert playlist.uuid == "new"
        form = fake_tidal.requests[0].form
        assert (form["title"], form["description"]) == ("Mix", "Songs")

    @pytest.mark.asyncio
    async def test_add_tracks(self, fake_tidal, client):
        """Test adding tracks with the precondition"""
        fake_tidal.route("POST", f"/v1/playlists/{PLAYLIST_ID}/items", lambda r: web.Response(status=200))

        await client.add_tracks_to_playlist(PLAYLIST_ID, "etag-1", [1, 2, 3])
        await client.add_tracks_to_playlist(PLAYLIST_ID, "etag-2", [4], add_dupes=True)

        first, second = fake_tidal.requests
        assert first.form["trackIds"] == "1,2,3"
        assert first.form["onDupes"] == "FAIL"
        assert first.headers["If-None-Match"] == "etag-1"
        assert second.form["onDupes"] == "ADD"

    @pytest.mark.asyncio
    async def test_remove_by_index(self, fake_tidal, client):
        """Test removal by position sends no parameters"""
        fake_tidal.route("DELETE", f"/v1/playlists/{PLAYLIST_ID}/items/4", lambda r: web.Response(status=200))

        await client.remove_track_from_playlist_by_index(PLAYLIST_ID, "etag-1", 4)

        request = fake_tidal.requests[0]
        assert request.query == {}
        assert request.headers["If-None-Match"] == "etag-1"

    @pytest.mark.asyncio
    async def test_remove_track_by_id(self, fake_tidal, client, make_track, make_page):
        """Test removal by id finds the track position"""
        fake_tidal.json("GET", f"/v1/playlists/{PLAYLIST_ID}/tracks", make_page(
            [make_track(10), make_track(20), make_track(30)]
        ))
        fake_tidal.route("DELETE", f"/v1/playlists/{PLAYLIST_ID}/items/1", lambda r: web.Response(status=200))

        index = await client.remove_track_from_playlist(PLAYLIST_ID, "etag-1", 20)

        assert index == 1
        assert len(fake_tidal.calls("DELETE", f"/v1/playlists/{PLAYLIST_ID}/items/1")) == 1

    @pytest.mark.asyncio
    async def test_remove_track_by_id_on_later_page(self, fake_tidal, client, make_track, make_page):
        """Test the removed index is the absolute playlist position"""

        def pages(request):
            offset = int(request.query["offset"])
            ids = list(range(offset, min(offset + 100, 150)))
            return web.json_response(make_page([make_track(i) for i in ids], offset=offset, total=150))

        fake_tidal.route("GET", f"/v1/playlists/{PLAYLIST_ID}/tracks", pages)
        fake_tidal.route("DELETE", f"/v1/playlists/{PLAYLIST_ID}/items/120", lambda r: web.Response(status=200))

        index = await client.remove_track_from_playlist(PLAYLIST_ID, "etag-1", 120)

        assert index == 120
        offsets = [r.query["offset"] for r in fake_tidal.calls("GET", f"/v1/playlists/{PLAYLIST_ID}/tracks")]
        assert offsets == ["0", "100"]

    @pytest.mark.asyncio
    async def test_remove_missing_track(self, fake_tidal, client, make_track, make_page):
        """Test a track that is on no page"""

        def pages(request):
            offset = int(request.query["offset"])
            ids = list(range(offset, min(offset + 100, 250)))
            return web.json_response(make_page([make_track(i + 1000) for i in ids], offset=offset, total=250))

        fake_tidal.route("GET", f"/v1/playlists/{PLAYLIST_ID}/tracks", pages)

        with pytest.raises(PlaylistTrackNotFoundError) as exc_info:
            await client.remove_track_from_playlist(PLAYLIST_ID, "etag-1", 42)

        assert exc_info.value.track_id == 42
        assert exc_info.value.playlist_id == PLAYLIST_ID
        assert len(fake_tidal.calls("GET", f"/v1/playlists/{PLAYLIST_ID}/tracks")) == 3
        assert fake_tidal.calls("DELETE", f"/v1/playlists/{PLAYLIST_ID}/items/0") == []

    @pytest.mark.asyncio
    async def test_playlist_recommendations(self, fake_tidal, client, make_track, make_page):
        """Test playlist recommendations are unwrapped"""
        fake_tidal.json("GET", f"/v1/playlists/{PLAYLIST_ID}/recommendations/items", make_page(
            [{"item": make_track(5), "type": "track"}], limit=50
        ))

        page = await client.playlist_recommendations(PLAYLIST_ID)

        assert page.items[0].id == 5
        assert fake_tidal.requests[0].query["limit"] == "50"

    @pytest.mark.asyncio
    async def test_user_playlists(self, fake_tidal, client, make_page):
        """Test the user's playlists"""
        fake_tidal.json("GET", "/v1/users/12345/playlists", make_page([{"uuid": "a", "title": "A"}]))

        page = await client.user_playlists()

        assert page.items[0].uuid == "a"


class TestSearch:
    """Test search"""

    @pytest.mark.asyncio
    async def test_search_defaults(self, fake_tidal, client):
        """Test a plain string search"""
        fake_tidal.json("GET", "/v1/search/top-hits", {})

        results = await client.search("daft punk")

        assert results.tracks.is_empty()
        query = fake_tidal.requests[0].query
        assert query["query"] == "daft punk"
        assert query["types"] == "ARTISTS,ALBUMS,TRACKS,PLAYLISTS"
        assert "limit" not in query

    @pytest.mark.asyncio
    async def test_search_options(self, fake_tidal, client, make_track, make_page):
        """Test optional search parameters"""
        fake_tidal.json("GET", "/v1/search/top-hits", {"tracks": make_page([make_track(1)])})

        results = await client.search(SearchQuery(
            "x", limit=3, offset=6, include_did_you_mean=True,
            include_user_playlists=False, types=(ResourceType.TRACK,)
        ))

        assert results.tracks.items[0].id == 1
        query = fake_tidal.requests[0].query
        assert query["types"] == "TRACKS"
        assert (query["limit"], query["offset"]) == ("3", "6")
        assert query["includeDidYouMean"] == "true"
        assert query["includeUserPlaylists"] == "false"
        assert "includeContributions" not in query


class TestAuthorizationRefresh:
    """Test refresh through the client"""

    @pytest.mark.asyncio
    async def test_concurrent_expired_requests_refresh_once(self, fake_tidal, client, make_track, make_token, make_error):
        """Test simultaneous expiries cause exactly one refresh"""
        refreshed = []
        client.on_authz_refresh(refreshed.append)

        def track(request):
            if request.headers["Authorization"] == "Bearer old-access":
                return web.json_response(make_error(401, 11003, "expired"), status=401)
            return web.json_response(make_track(1))

        async def token(request):
            await asyncio.sleep(0.05)
            return web.json_response(make_token("new-access"))

        fake_tidal.route("GET", "/v1/tracks/1", track)
        fake_tidal.route("POST", "/auth/v1/oauth2/token", token)

        tracks = await asyncio.gather(*(client.track(1) for _ in range(6)))

        assert all(t.id == 1 for t in tracks)
        assert len(fake_tidal.calls("POST", "/auth/v1/oauth2/token")) == 1
        assert [c.access_token for c in refreshed] == ["new-access"]
        assert client.get_authz().access_token == "new-access"

    @pytest.mark.asyncio
    async def test_refresh_failure_leaves_credential(self, fake_tidal, client, credential, make_error):
        """Test a rejected refresh token"""
        fake_tidal.json("GET", "/v1/tracks/1", make_error(401, 11003), status=401)
        fake_tidal.json("POST", "/auth/v1/oauth2/token", make_error(400, 11101, "invalid"), status=400)

        with pytest.raises(TidalApiError) as exc_info:
            await client.track(1)

        assert exc_info.value.status == 400
        assert client.get_authz() is credential


class TestStreaming:
    """Test downloading the audio behind a stream descriptor"""

    @pytest.mark.asyncio
    async def test_stream_bytes(self, fake_tidal, client):
        """Test streaming the primary URL"""
        audio = b"fLaC" + bytes(200_000)
        fake_tidal.route("GET", "/audio/5.flac", lambda r: web.Response(body=audio))
        fake_tidal.json(
            "GET", "/v1/tracks/5/urlpostpaywall",
            stream_payload(5, "LOSSLESS", [fake_tidal.url("/audio/5.flac")])
        )

        stream = await client.track_stream(5, AudioQuality.LOSSLESS)
        chunks = [chunk async for chunk in stream.stream(client.session, chunk_size=65536)]

        assert b"".join(chunks) == audio

    @pytest.mark.asyncio
    async def test_stream_without_url(self, fake_tidal, client):
        """Test a descriptor without URLs"""
        fake_tidal.json("GET", "/v1/tracks/5/urlpostpaywall", stream_payload(5, "LOSSLESS", []))

        stream = await client.track_stream(5, AudioQuality.LOSSLESS)

        with pytest.raises(NoPrimaryUrlError):
            async for _ in stream.stream(client.session):
                pass

    @pytest.mark.asyncio
    async def test_stream_http_error(self, fake_tidal, client):
        """Test an expired signed URL"""
        fake_tidal.route("GET", "/audio/5.flac", lambda r: web.Response(status=403))
        fake_tidal.json(
            "GET", "/v1/tracks/5/urlpostpaywall",
            stream_payload(5, "LOSSLESS", [fake_tidal.url("/audio/5.flac")])
        )

        stream = await client.track_stream(5, AudioQuality.LOSSLESS)

        with pytest.raises(StreamInitializationError):
            async for _ in stream.stream(client.session):
                pass

    @pytest.mark.asyncio
    async def test_stalled_transfer(self, fake_tidal):
        """Test a download that stops sending data fails with a typed error"""

        async def stalling(request):
            response = web.StreamResponse()
            await response.prepare(request.raw)
            await response.write(b"fLaC")
            await asyncio.sleep(0.5)
            await response.write(b"late")
            return response

        fake_tidal.route("GET", "/audio/slow.flac", stalling)
        stream = TrackStream(5, AudioQuality.LOSSLESS, urls=(fake_tidal.url("/audio/slow.flac"),))

        async with aiohttp.ClientSession() as session:
            with pytest.raises(StreamInitializationError) as exc_info:
                async for _ in stream.stream(session, read_timeout=0.1):
                    pass

        assert exc_info.value.details["read_timeout"] == 0.1

    @pytest.mark.asyncio
    async def test_transfer_outlives_session_timeout(self, fake_tidal):
        """Test a steady download may take longer than the API request timeout"""

        async def trickling(request):
            response = web.StreamResponse()
            await response.prepare(request.raw)
            for _ in range(5):
                await response.write(b"x" * 1024)
                await asyncio.sleep(0.1)
            return response

        fake_tidal.route("GET", "/audio/long.flac", trickling)
        stream = TrackStream(5, AudioQuality.LOSSLESS, urls=(fake_tidal.url("/audio/long.flac"),))

        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=0.2)) as session:
            chunks = [chunk async for chunk in stream.stream(session, read_timeout=5.0)]

        assert len(b"".join(chunks)) == 5 * 1024
