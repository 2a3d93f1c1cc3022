"""
Command-line interface for tidal-client.

This module implements the `tidal` command using Click. Every command
loads the configuration, sets up logging, restores the saved credential
and runs one async operation against a TidalClient. Credentials that the
client refreshes along the way are written back to the credentials file.

Commands:
    tidal login                         Device login, saves credentials
    tidal logout                        Delete saved credentials
    tidal whoami                        Show the logged in user
    tidal search <query>                Search the catalog
    tidal playlist <uuid>               List every track of a playlist
    tidal favorites                     List favorite tracks/albums/artists
    tidal stream <track-id> -o <file>   Download a track's audio stream

Options:
    --config <path>                     Explicit config.yaml
    --log-level <level>                 Override the configured console level

Exit Codes:
    0 success, 1 configuration/usage error, 3 TIDAL API error,
    4 other client error, 130 interrupted
"""

import asyncio
import sys
from functools import partial
from pathlib import Path
from typing import Awaitable, Callable

import click
from tqdm import tqdm

from tidal_client import __version__
from tidal_client.core import (
    Config,
    ConfigError,
    Credential,
    TidalApiError,
    TidalClientError,
    get_logger,
    load_config,
    load_credential,
    save_credential,
    setup_logging,
    shutdown_logging,
)
from tidal_client.tidal import (
    AudioQuality,
    ResourceType,
    SearchQuery,
    TidalClient,
    Track,
    collect_all,
    make_throttler,
)

logger = get_logger(__name__)

ClientAction = Callable[[TidalClient, Config], Awaitable[None]]


class CredentialFileWriter:
    """Refresh observer that persists every refreshed credential."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def on_credential_refreshed(self, credential: Credential) -> None:
        save_credential(self.path, credential)
        logger.debug(f"Persisted refreshed credentials to {self.path}")


def _format_track(track: Track) -> str:
    minutes, seconds = divmod(track.duration, 60)
    return f"{track.artist_name} - {track.title} ({minutes}:{seconds:02d}) [{track.id}]"


@click.group()
@click.option(
    "--config", "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    metavar="<config.yaml>",
    help="Configuration file (default: ./config.yaml)"
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Console log level"
)
@click.version_option(__version__, prog_name="tidal-client")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, log_level: str | None) -> None:
    """
    tidal: Command line access to the TIDAL API.

    \b
    FIRST RUN:
        tidal login                 # Approve this device in the browser
    \b
    EXAMPLES:
        tidal search "daft punk" --type tracks
        tidal playlist 36ea71a8-445e-41a4-82ab-6628c581535d
        tidal stream 77646168 -o track.flac --quality LOSSLESS
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["log_level"] = log_level


def _run(options: dict, action: ClientAction, require_login: bool = True) -> None:
    """
    Load configuration and credentials, then run one client action.

    Raises:
        SystemExit: On fatal errors (with appropriate exit code).
    """
    try:
        config = load_config(options["config_path"])
        setup_logging(options["log_level"] or config.logging.level, config.logging.directory)

        credential = load_credential(config.auth.credentials_file)
        if require_login and credential is None:
            click.echo("Not logged in. Run `tidal login` first.", err=True)
            sys.exit(1)

        asyncio.run(_with_client(config, credential, action))

    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)

    except TidalApiError as e:
        click.echo(f"TIDAL error: {e.message}", err=True)
        if e.status == 401:
            click.echo("Your session may have ended, run `tidal login` again", err=True)
        logger.debug(f"TIDAL error details: {e.details}")
        sys.exit(3)

    except TidalClientError as e:
        click.echo(f"Error: {e.message}", err=True)
        logger.error(f"Error: {e.message}", exc_info=True)
        sys.exit(4)

    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        sys.exit(130)

    finally:
        shutdown_logging()


async def _with_client(
    config: Config,
    credential: Credential | None,
    action: ClientAction
) -> None:
    async with TidalClient.from_config(config, credential=credential) as client:
        client.on_authz_refresh(CredentialFileWriter(config.auth.credentials_file))
        await action(client, config)


# =============================================================================
# Account Commands
# =============================================================================

@cli.command()
@click.pass_obj
def login(options: dict) -> None:
    """Log in with a TIDAL account (device authorization)."""

    async def action(client: TidalClient, config: Config) -> None:
        device = await client.device_authorization()
        click.echo(f"Open {device.url} and approve the login.")
        click.echo(f"Code: {device.user_code} (expires in {device.expires_in // 60} minutes)")

        token = await client.wait_for_authorization(device, config.tidal.client_secret)
        save_credential(config.auth.credentials_file, client.get_authz())
        click.echo(f"Logged in as {token.user.username or token.user.email or token.user_id}")

    _run(options, action, require_login=False)


@cli.command()
@click.pass_obj
def logout(options: dict) -> None:
    """Delete the saved credentials."""
    try:
        config = load_config(options["config_path"])
    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)

    path = config.auth.credentials_file
    if path.exists():
        path.unlink()
        click.echo(f"Removed {path}")
    else:
        click.echo("Not logged in.")


@cli.command()
@click.pass_obj
def whoami(options: dict) -> None:
    """Show the logged in user."""

    async def action(client: TidalClient, config: Config) -> None:
        click.echo(f"User id:  {client.get_user_id()}")
        click.echo(f"Country:  {client.get_country_code()}")
        click.echo(f"Locale:   {client.get_locale()}")

    _run(options, action)


# =============================================================================
# Catalog Commands
# =============================================================================

@cli.command()
@click.argument("query")
@click.option("--limit", type=click.IntRange(1, 300), default=10, show_default=True)
@click.option(
    "--type", "types",
    type=click.Choice(["artists", "albums", "tracks", "playlists"], case_sensitive=False),
    multiple=True,
    help="Restrict the search (repeatable)"
)
@click.pass_obj
def search(options: dict, query: str, limit: int, types: tuple[str, ...]) -> None:
    """Search artists, albums, tracks and playlists."""
    search_query = SearchQuery(
        query,
        limit=limit,
        types=tuple(ResourceType.parse(t) for t in types) or None,
    )

    async def action(client: TidalClient, config: Config) -> None:
        results = await client.search(search_query)

        if results.artists.items:
            click.echo("Artists:")
            for artist in results.artists.items:
                click.echo(f"  {artist.name} [{artist.id}]")
        if results.albums.items:
            click.echo("Albums:")
            for album in results.albums.items:
                artist = album.artists[0].name if album.artists else "Unknown Artist"
                click.echo(f"  {artist} - {album.title} [{album.id}]")
        if results.tracks.items:
            click.echo("Tracks:")
            for track in results.tracks.items:
                click.echo(f"  {_format_track(track)}")
        if results.playlists.items:
            click.echo("Playlists:")
            for playlist in results.playlists.items:
                click.echo(f"  {playlist.title} ({playlist.number_of_tracks} tracks) [{playlist.uuid}]")

    _run(options, action)


@cli.command()
@click.argument("playlist_id", metavar="UUID")
@click.pass_obj
def playlist(options: dict, playlist_id: str) -> None:
    """List every track of a playlist."""

    async def action(client: TidalClient, config: Config) -> None:
        info = await client.playlist(playlist_id)
        click.echo(f"{info.title} ({info.number_of_tracks} tracks)")

        tracks = await collect_all(
            partial(client.playlist_tracks, playlist_id),
            throttler=make_throttler(config.network.requests_per_second)
        )
        for number, track in enumerate(tracks, start=1):
            click.echo(f"{number:4d}. {_format_track(track)}")

    _run(options, action)


@cli.command()
@click.option(
    "--kind",
    type=click.Choice(["tracks", "albums", "artists"], case_sensitive=False),
    default="tracks",
    show_default=True
)
@click.option("--limit", type=click.IntRange(1, 1000), default=50, show_default=True)
@click.pass_obj
def favorites(options: dict, kind: str, limit: int) -> None:
    """List the user's favorites, newest first."""

    async def action(client: TidalClient, config: Config) -> None:
        kind_lower = kind.lower()
        if kind_lower == "tracks":
            page = await client.favorite_tracks(limit=limit)
            lines = [_format_track(fav.item) for fav in page.items]
        elif kind_lower == "albums":
            page = await client.favorite_albums(limit=limit)
            lines = [f"{fav.item.title} [{fav.item.id}]" for fav in page.items]
        else:
            page = await client.favorite_artists(limit=limit)
            lines = [f"{fav.item.name} [{fav.item.id}]" for fav in page.items]

        click.echo(f"{page.total} favorite {kind_lower}")
        for line in lines:
            click.echo(f"  {line}")

    _run(options, action)


@cli.command()
@click.argument("track_id", type=int)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, writable=True, path_type=Path),
    required=True,
    help="Destination file"
)
@click.option(
    "--quality",
    type=click.Choice([q.value for q in AudioQuality], case_sensitive=False),
    default=AudioQuality.LOSSLESS.value,
    show_default=True
)
@click.option("--strict", is_flag=True, help="Fail instead of accepting a lower quality")
@click.pass_obj
def stream(options: dict, track_id: int, output: Path, quality: str, strict: bool) -> None:
    """Download the audio stream of a track."""

    async def action(client: TidalClient, config: Config) -> None:
        track_stream = await client.track_stream(track_id, AudioQuality(quality.upper()), strict=strict)
        logger.info(f"Streaming track {track_id} as {track_stream.audio_quality.value} ({track_stream.codec})")

        output.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(output, "wb") as f, tqdm(
                unit="B", unit_scale=True, desc=output.name
            ) as progress:
                async for chunk in track_stream.stream(client.session):
                    f.write(chunk)
                    progress.update(len(chunk))
        except BaseException:
            # Never leave a truncated audio file behind
            output.unlink(missing_ok=True)
            raise

        click.echo(f"Saved {output}")

    _run(options, action)


def main() -> None:
    """
    Entry point for the CLI.

    This function is called when running `tidal` from the command line.
    """
    cli()


if __name__ == "__main__":
    main()
