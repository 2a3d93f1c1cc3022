"""
Authenticated request pipeline for the TIDAL API.

RequestExecutor is the single choke point every endpoint goes through:
it builds the request, attaches the current bearer token, classifies the
response and decodes it. When TIDAL reports an expired access token
(401 with sub-status 11003) it asks the refresh coordinator for fresh
credentials and re-issues the identical request exactly once.

Request building:
    - Only GET, DELETE and POST are supported
    - GET/DELETE parameters go to the query string, POST parameters
      are sent as a form body
    - An optional concurrency token is sent as the If-None-Match header
    - A fixed browser User-Agent is sent with every request

Response handling:
    - 2xx with empty body -> None
    - 2xx with JSON body -> the ETag response header is injected under
      "etag" into mappings that lack that key, then the typed decoder runs
    - non-2xx -> TidalApiError (or DecodeError if the error body is garbage)
    - connection failures and timeouts -> TransportError, never retried

Usage:
    executor = RequestExecutor(store, timeout=30.0)
    executor.set_refresher(coordinator.ensure_fresh)

    track = await executor.execute(
        "GET",
        "https://api.tidal.com/v1/tracks/123",
        params={"countryCode": "US"},
        decoder=Track.from_api
    )
"""

import asyncio
import json
from enum import Enum
from typing import Any, Awaitable, Callable, TypeVar

import aiohttp

from tidal_client.core.credentials import Credential, CredentialStore
from tidal_client.core.exceptions import DecodeError, TidalApiError, TransportError
from tidal_client.core.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

SUPPORTED_METHODS = ("GET", "DELETE", "POST")

USER_AGENT = (
    "Mozilla/5.0 (Linux; Android 12; wv) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Version/4.0 Chrome/91.0.4472.114 Safari/537.36"
)

DEFAULT_TIMEOUT = 30.0


def encode_params(params: dict[str, Any] | None) -> dict[str, str]:
    """
    Turn request parameters into the strings TIDAL expects.

    None values are dropped, booleans become "true"/"false" and enum
    members are sent by value.
    """
    encoded = {}
    for key, value in (params or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            encoded[key] = "true" if value else "false"
        elif isinstance(value, Enum):
            encoded[key] = str(value.value)
        else:
            encoded[key] = str(value)
    return encoded


def normalize_etag(value: str | None) -> str | None:
    """
    Strip JSON quoting from an ETag header.

    TIDAL sends '"1700000000000"'; callers work with the bare token.
    Values that are not a JSON string are returned unchanged.
    """
    if not value:
        return None
    if value.startswith('"') and value.endswith('"'):
        try:
            unquoted = json.loads(value)
        except ValueError:
            return value
        if isinstance(unquoted, str):
            return unquoted
    return value


def _pretty(payload: Any) -> str:
    try:
        return json.dumps(payload, indent=2, ensure_ascii=False)
    except (TypeError, ValueError):
        return repr(payload)


class RequestExecutor:
    """
    Executes authenticated TIDAL requests.

    Attributes:
        store: Credential source for the Authorization header.
        timeout: Total seconds per request for a self-created session.

    The session is either injected (and then never closed here) or
    created on first use and closed by close().
    """

    def __init__(
        self,
        store: CredentialStore,
        session: aiohttp.ClientSession | None = None,
        timeout: float = DEFAULT_TIMEOUT
    ) -> None:
        self.store = store
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None
        self._refresher: Callable[[], Awaitable[None]] | None = None

    def set_refresher(self, refresher: Callable[[], Awaitable[None]] | None) -> None:
        """Register the coroutine function called when the access token expired."""
        self._refresher = refresher

    @property
    def session(self) -> aiohttp.ClientSession:
        """The HTTP session, created on first access if none was injected."""
        if self._session is None or (self._owns_session and self._session.closed):
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
            self._owns_session = True
        return self._session

    def set_session(self, session: aiohttp.ClientSession) -> None:
        """
        Use a caller-owned session from now on.

        Raises:
            RuntimeError: If the executor still holds an open session it
                          created itself; close() it first.
        """
        if self._owns_session and self._session is not None and not self._session.closed:
            raise RuntimeError("Close the executor before replacing its own session")
        self._session = session
        self._owns_session = False

    async def close(self) -> None:
        """Close the session if this executor created it."""
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        if self._owns_session:
            self._session = None

    async def execute(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        etag: str | None = None,
        decoder: Callable[[Any], T] | None = None
    ) -> T | Any:
        """
        Execute a request, refreshing authorization once on token expiry.

        Args:
            method: "GET", "DELETE" or "POST".
            url: Absolute request URL.
            params: Query (GET/DELETE) or form (POST) parameters.
            etag: Concurrency token sent as If-None-Match.
            decoder: Typed decoder applied to the parsed body.

        Returns:
            The decoded body; None for an empty body.

        Raises:
            ValueError: For an unsupported HTTP method.
            TidalApiError: For a non-2xx response, including a second
                           expired-token failure after the refresh.
            DecodeError: If a body cannot be parsed or decoded.
            TransportError: If no response was received.
            NoAuthzTokenError: If a refresh was needed without credentials.

        Behavior:
            The loop runs at most twice. A failure after the single retry
            propagates unchanged.
        """
        retried = False
        while True:
            credential = self.store.get()
            try:
                return await self._send(method, url, params, etag, decoder, credential)
            except TidalApiError as e:
                if retried or not e.is_token_expired or self._refresher is None:
                    raise
                retried = True

                # Another request may already have swapped in a new token
                current = self.store.get()
                if current is None or credential is None or \
                        current.access_token == credential.access_token:
                    logger.debug("Access token expired, refreshing authorization")
                    await self._refresher()
                logger.debug(f"Retrying {method} {url} with refreshed authorization")

    async def execute_once(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        etag: str | None = None,
        decoder: Callable[[Any], T] | None = None
    ) -> T | Any:
        """Execute a request without the expired-token retry (token endpoint calls)."""
        return await self._send(method, url, params, etag, decoder, self.store.get())

    async def _send(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None,
        etag: str | None,
        decoder: Callable[[Any], T] | None,
        credential: Credential | None
    ) -> T | Any:
        method = method.upper()
        if method not in SUPPORTED_METHODS:
            raise ValueError(f"Unsupported HTTP method: {method}")

        headers = {"User-Agent": USER_AGENT}
        if credential is not None:
            headers["Authorization"] = f"Bearer {credential.access_token}"
        if etag is not None:
            headers["If-None-Match"] = etag

        encoded = encode_params(params)
        if method == "POST":
            request_kwargs = {"data": encoded}
        else:
            request_kwargs = {"params": encoded}

        logger.debug(f"{method} {url}")

        try:
            async with self.session.request(
                method, url, headers=headers, **request_kwargs
            ) as response:
                status = response.status
                response_etag = normalize_etag(response.headers.get("ETag"))
                raw = await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(
                f"Request failed: {method} {url}: {e or type(e).__name__}",
                details={"url": url, "method": method, "original_error": repr(e)}
            ) from e

        try:
            body = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(
                "Response body is not valid UTF-8",
                payload=raw,
                details={"url": url, "http_status": status}
            ) from e

        if 200 <= status < 300:
            return self._decode_success(body, response_etag, decoder, url)

        raise self._decode_failure(status, body, url)

    def _decode_success(
        self,
        body: str,
        response_etag: str | None,
        decoder: Callable[[Any], T] | None,
        url: str
    ) -> T | Any:
        if not body.strip():
            return None

        try:
            data = json.loads(body)
        except ValueError as e:
            logger.debug(f"Undecodable response from {url}:\n{body}")
            raise DecodeError(
                f"Response is not valid JSON: {e}",
                payload=body,
                details={"url": url}
            ) from e

        if response_etag is not None and isinstance(data, dict) and "etag" not in data:
            data["etag"] = response_etag

        if decoder is None:
            return data

        try:
            return decoder(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.debug(f"Unexpected response shape from {url}:\n{_pretty(data)}")
            raise DecodeError(
                f"Unexpected response shape: {type(e).__name__}: {e}",
                payload=data,
                details={"url": url}
            ) from e

    def _decode_failure(self, status: int, body: str, url: str) -> Exception:
        """Build the exception for a non-2xx response."""
        try:
            data = json.loads(body)
            error = TidalApiError.from_api(data, details={"url": url})
        except (KeyError, TypeError, ValueError) as e:
            logger.debug(f"Undecodable error response ({status}) from {url}:\n{body}")
            decode_error = DecodeError(
                f"Could not decode error response (HTTP {status})",
                payload=body,
                details={"url": url, "http_status": status}
            )
            decode_error.__cause__ = e
            return decode_error

        logger.debug(f"TIDAL error response from {url}:\n{_pretty(data)}")
        return error
