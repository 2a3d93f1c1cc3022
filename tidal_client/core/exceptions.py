"""
Exception classes for tidal-client.

This module defines all custom exceptions raised by the client. Each
exception maps to one distinct failure mode so that callers can react to
exactly the condition they care about.

Exception Hierarchy:
    TidalClientError (base)
        ConfigError - Configuration file issues
        TransportError - Network/timeout failures talking to TIDAL
        TidalApiError - TIDAL answered with a non-2xx response
        DecodeError - Response body had an unexpected shape
        NoAuthzTokenError - Refresh attempted without stored credentials
        NoAccessTokenError - Operation needs an access token
        AuthenticationRequiredError - User-scoped call without a user id
        NoPrimaryUrlError - Stream descriptor without URLs
        StreamInitializationError - Stream download could not be opened
        TrackQualityNotAvailableError - Requested quality not served
        PlaylistTrackNotFoundError - Track id absent from a playlist
"""

from typing import Any


# TIDAL sub-status reported with a 401 when the access token has expired
TOKEN_EXPIRED_SUB_STATUS = 11003

# TIDAL sub-status reported while a device authorization is still pending
AUTHORIZATION_PENDING_SUB_STATUS = 1002


class TidalClientError(Exception):
    """
    Base exception for all tidal-client errors.

    All custom exceptions in this project inherit from this class,
    allowing callers to catch every client error with a single
    except clause if desired.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (e.g., URLs, ids).

    Example:
        try:
            track = await client.track(123)
        except TidalClientError as e:
            logger.error(f"Request failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description.
            details: Optional dictionary containing additional context about the error.
                     Common keys include:
                     - 'url': URL of the request that failed
                     - 'original_error': The underlying exception text
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(TidalClientError):
    """
    Raised when there's an issue with the configuration file.

    Common causes:
        - config.yaml has invalid YAML syntax
        - Required fields missing (client_id)
        - Invalid field values (e.g., negative timeout)

    Example:
        raise ConfigError(
            "Missing required field 'client_id' in config.yaml",
            details={'file_path': '/path/to/config.yaml', 'missing_field': 'client_id'}
        )
    """
    pass


class TransportError(TidalClientError):
    """
    Raised when a request never produced an HTTP response.

    Connection refused, DNS failures, TLS errors and timeouts all land
    here. Transport errors are never retried by the client.
    """
    pass


class TidalApiError(TidalClientError):
    """
    Raised when TIDAL answers a request with a non-2xx status.

    The vendor error body carries an HTTP status, a finer grained
    sub-status and a user facing message.

    Attributes:
        status: HTTP status code.
        sub_status: TIDAL specific sub-status code (0 when absent).
        user_message: Human readable message from TIDAL ("" when absent).

    Example:
        except TidalApiError as e:
            if e.status == 404:
                logger.warning("Track not found")
    """

    def __init__(
        self,
        status: int,
        sub_status: int,
        user_message: str = "",
        details: dict | None = None
    ) -> None:
        super().__init__(
            f"Tidal API error: {status} {sub_status} {user_message}".rstrip(),
            details
        )
        self.status = status
        self.sub_status = sub_status
        self.user_message = user_message

    @property
    def is_token_expired(self) -> bool:
        """True for the 401 that TIDAL sends when the access token expired."""
        return self.status == 401 and self.sub_status == TOKEN_EXPIRED_SUB_STATUS

    @property
    def is_authorization_pending(self) -> bool:
        """True while a device authorization has not been completed by the user."""
        return self.status == 400 and self.sub_status == AUTHORIZATION_PENDING_SUB_STATUS

    @classmethod
    def from_api(cls, data: Any, details: dict | None = None) -> "TidalApiError":
        """
        Build an error from a parsed TIDAL error body.

        Both snake_case and camelCase spellings of the sub-status and
        message fields are accepted. A missing message becomes "".

        Raises:
            KeyError: If the body has no 'status' field.
            TypeError: If the body is not a mapping.
            ValueError: If status or sub-status are not integers.
        """
        if not isinstance(data, dict):
            raise TypeError(f"expected an error object, got {type(data).__name__}")

        sub_status = data.get("sub_status", data.get("subStatus"))
        user_message = data.get("userMessage", data.get("user_message"))

        return cls(
            status=int(data["status"]),
            sub_status=int(sub_status) if sub_status is not None else 0,
            user_message=user_message or "",
            details=details,
        )


class DecodeError(TidalClientError):
    """
    Raised when a response body cannot be decoded into the expected shape.

    The raw payload is kept so that the offending response can be
    logged or inspected.

    Attributes:
        payload: The raw body (text, or the parsed value when JSON parsing worked).
    """

    def __init__(
        self,
        message: str,
        payload: Any = None,
        details: dict | None = None
    ) -> None:
        super().__init__(message, details)
        self.payload = payload


class NoAuthzTokenError(TidalClientError):
    """Raised when a token refresh is attempted with no stored credential."""

    def __init__(self, details: dict | None = None) -> None:
        super().__init__(
            "No authz token available to refresh client authorization",
            details
        )


class NoAccessTokenError(TidalClientError):
    """Raised when an operation needs an access token and none is stored."""

    def __init__(self, details: dict | None = None) -> None:
        super().__init__(
            "No access token available - have you authorized the client?",
            details
        )


class AuthenticationRequiredError(TidalClientError):
    """
    Raised when a user-scoped endpoint is called without a known user id.

    This is a local precondition failure: no request is sent.
    """

    def __init__(self, details: dict | None = None) -> None:
        super().__init__("User authentication required - please login first", details)


class NoPrimaryUrlError(TidalClientError):
    """Raised when a track stream descriptor carries no URLs."""

    def __init__(self, details: dict | None = None) -> None:
        super().__init__("No primary streaming URL available", details)


class StreamInitializationError(TidalClientError):
    """Raised when the audio stream behind a signed URL cannot be opened."""

    def __init__(self, reason: str, details: dict | None = None) -> None:
        super().__init__(f"Stream initialization error: {reason}", details)
        self.reason = reason


class TrackQualityNotAvailableError(TidalClientError):
    """Raised when TIDAL serves a track below the strictly requested quality."""

    def __init__(self, details: dict | None = None) -> None:
        super().__init__(
            "Track at this playback quality not available, try a lower quality",
            details
        )


class PlaylistTrackNotFoundError(TidalClientError):
    """
    Raised when a track id is not present anywhere in a playlist.

    Attributes:
        playlist_id: UUID of the playlist that was searched.
        track_id: The track id that was not found.
    """

    def __init__(self, playlist_id: str, track_id: int) -> None:
        super().__init__(
            f"Track {track_id} not found on playlist {playlist_id}",
            details={"playlist_id": playlist_id, "track_id": track_id}
        )
        self.playlist_id = playlist_id
        self.track_id = track_id
