"""
Credentials for tidal-client.

A Credential is the access/refresh token pair plus the user id and
country of one authenticated TIDAL session. Credentials are immutable:
a token refresh produces a brand new Credential which replaces the old
one in the client's CredentialStore in a single step.

Persistence:
    The client never writes credentials anywhere. Applications that want
    to survive restarts register a refresh callback and store the four
    fields themselves; load_credential() and save_credential() implement
    the JSON layout used by the command line tool.

Example credentials.json:
    {
      "access_token": "eyJraWQiOi...",
      "refresh_token": "eyJraWQiOi...",
      "user_id": 12345,
      "country_code": "US"
    }
"""

import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from tidal_client.core.exceptions import ConfigError
from tidal_client.core.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Credential:
    """
    Immutable authorization for one TIDAL user session.

    Attributes:
        access_token: Bearer token sent with every authenticated request.
        refresh_token: Token exchanged for a new access token on expiry.
        user_id: TIDAL user id the tokens belong to.
        country_code: User's country (affects catalog availability), if known.
    """
    access_token: str
    refresh_token: str
    user_id: int
    country_code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return the four persisted fields as a plain dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Credential":
        """
        Rebuild a Credential from its persisted dictionary form.

        Raises:
            KeyError: If a required field is missing.
            ValueError: If user_id is not an integer.
        """
        return cls(
            access_token=data["access_token"],
            refresh_token=data["refresh_token"],
            user_id=int(data["user_id"]),
            country_code=data.get("country_code"),
        )

    def __repr__(self) -> str:
        # Never leak tokens into logs
        return (
            f"Credential(user_id={self.user_id}, "
            f"country_code={self.country_code!r})"
        )


class CredentialStore:
    """
    Holder of the current Credential for one client instance.

    The slot holds a reference to an immutable Credential (or None).
    Replacing it is a single reference assignment, so a reader always
    gets a complete snapshot: either the old Credential or the new one,
    never old tokens mixed with a new user id. Reads take no lock.

    Example:
        store = CredentialStore()
        store.set(Credential("access", "refresh", 12345, "US"))
        current = store.get()
    """

    def __init__(self, credential: Credential | None = None) -> None:
        self._current = credential

    def get(self) -> Credential | None:
        """Return the current Credential snapshot, or None."""
        return self._current

    def set(self, credential: Credential) -> None:
        """Atomically replace the current Credential."""
        self._current = credential

    def clear(self) -> None:
        """Forget the current Credential."""
        self._current = None


def load_credential(path: Path) -> Credential | None:
    """
    Load a persisted Credential from a JSON file.

    Args:
        path: Location of the credentials file.

    Returns:
        The stored Credential, or None if the file does not exist.

    Raises:
        ConfigError: If the file exists but is unreadable or malformed.
    """
    if not path.exists():
        return None

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return Credential.from_dict(data)
    except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        raise ConfigError(
            f"Invalid credentials file: {path}",
            details={"file_path": str(path), "original_error": str(e)}
        ) from e


def save_credential(path: Path, credential: Credential) -> None:
    """
    Write a Credential to a JSON file readable only by its owner.

    Args:
        path: Destination file. Parent directories are created.
        credential: The Credential to persist.

    Raises:
        ConfigError: If the file cannot be written.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(credential.to_dict(), f, indent=2)
    except OSError as e:
        raise ConfigError(
            f"Failed to save credentials: {path}",
            details={"file_path": str(path), "original_error": str(e)}
        ) from e

    try:
        path.chmod(0o600)
    except OSError:
        # Windows doesn't support chmod
        logger.debug(f"Could not restrict permissions on {path}")

    logger.debug(f"Saved credentials for user {credential.user_id} to {path}")
