"""
Authorization for tidal-client: token refresh and device login.

Refresh coordination:
    Many requests can discover an expired access token at the same time.
    RefreshCoordinator makes sure that only ONE of them talks to the
    token endpoint; the others wait for that refresh and then retry with
    the new credential.

    State machine:
        Idle --(try-acquire permit succeeds)--> Refreshing
        Refreshing --(store swapped / failure)--> Idle

    The permit is an asyncio.Lock with capacity one. Callers never queue
    on it: whoever finds it taken waits for the outcome of the in-flight
    refresh instead. If that refresh fails, every waiter raises the same
    error.

Device login:
    1. device_authorization() -> show the user the verification URL
    2. authorize() (or wait_for_authorization() to poll) exchanges the
       device code for tokens once the user approved the login.

Usage:
    coordinator = RefreshCoordinator(store, executor, client_id)
    executor.set_refresher(coordinator.ensure_fresh)
"""

import asyncio
import time
from dataclasses import replace
from typing import Callable, Protocol, Union, runtime_checkable

from tidal_client.core.credentials import Credential, CredentialStore
from tidal_client.core.exceptions import DecodeError, NoAuthzTokenError, TidalApiError
from tidal_client.core.logger import get_logger
from tidal_client.tidal.http import RequestExecutor
from tidal_client.tidal.models import AuthzToken, DeviceAuthorization

logger = get_logger(__name__)

AUTH_BASE_URL = "https://auth.tidal.com/v1"

SCOPE = "r_usr w_usr w_sub"
REFRESH_GRANT = "refresh_token"
DEVICE_CODE_GRANT = "urn:ietf:params:oauth:grant-type:device_code"


@runtime_checkable
class CredentialObserver(Protocol):
    """Receives every Credential produced by a successful refresh."""

    def on_credential_refreshed(self, credential: Credential) -> None:
        ...


RefreshCallback = Union[CredentialObserver, Callable[[Credential], None]]


class RefreshCoordinator:
    """
    Single-flight refresh of the stored Credential.

    Attributes:
        store: The CredentialStore that is read and swapped.
        client_id: TIDAL application client id.
        auth_base_url: Base of the token endpoints.
        on_refresh: Optional observer notified after each successful refresh.
    """

    def __init__(
        self,
        store: CredentialStore,
        executor: RequestExecutor,
        client_id: str,
        auth_base_url: str = AUTH_BASE_URL,
        on_refresh: RefreshCallback | None = None
    ) -> None:
        self.store = store
        self.client_id = client_id
        self.auth_base_url = auth_base_url.rstrip("/")
        self.on_refresh = on_refresh
        self._executor = executor
        self._permit = asyncio.Lock()
        self._in_flight: asyncio.Future | None = None

    @property
    def token_url(self) -> str:
        return f"{self.auth_base_url}/oauth2/token"

    @property
    def is_refreshing(self) -> bool:
        """True while a refresh holds the permit."""
        return self._permit.locked()

    async def ensure_fresh(self) -> None:
        """
        Make sure the stored credential has been refreshed.

        The first caller performs the refresh; concurrent callers wait for
        it and return (or raise) with the same outcome. If the refreshing
        task is cancelled, waiters simply return and their retry runs with
        whatever credential is stored.

        Raises:
            NoAuthzTokenError: If there is no stored credential.
            TidalApiError: If the token endpoint rejected the refresh token.
            TransportError: If the token endpoint could not be reached.
            DecodeError: If the token response had an unexpected shape.
        """
        if self._permit.locked():
            in_flight = self._in_flight
            logger.debug("Refresh already in progress, waiting for it")
            if in_flight is not None:
                await asyncio.shield(in_flight)
            return

        # Acquiring an unlocked permit never suspends
        async with self._permit:
            in_flight = asyncio.get_running_loop().create_future()
            self._in_flight = in_flight
            try:
                credential = await self._refresh()
            except asyncio.CancelledError:
                # Only the refreshing task was cancelled, release the waiters
                logger.debug("Refresh cancelled, releasing waiters")
                in_flight.set_result(None)
                raise
            except Exception as e:
                in_flight.set_exception(e)
                # Waiters re-raise it; mark it retrieved for the no-waiter case
                in_flight.exception()
                raise
            else:
                in_flight.set_result(None)
            finally:
                self._in_flight = None

        self._notify(credential)

    async def _refresh(self) -> Credential:
        current = self.store.get()
        if current is None:
            raise NoAuthzTokenError()

        logger.debug(f"Refreshing authorization for user {current.user_id}")

        token = await self._executor.execute_once(
            "POST",
            self.token_url,
            params={
                "client_id": self.client_id,
                "refresh_token": current.refresh_token,
                "grant_type": REFRESH_GRANT,
                "scope": SCOPE,
            },
            decoder=AuthzToken.from_api
        )
        if token is None:
            raise DecodeError("Empty response from token endpoint", details={"url": self.token_url})

        credential = Credential(
            access_token=token.access_token,
            refresh_token=token.refresh_token or current.refresh_token,
            user_id=token.user.user_id,
            country_code=current.country_code or token.user.country_code,
        )
        self.store.set(credential)

        logger.info(f"Refreshed authorization for user {credential.user_id}")
        return credential

    def _notify(self, credential: Credential) -> None:
        observer = self.on_refresh
        if observer is None:
            return

        try:
            if isinstance(observer, CredentialObserver):
                observer.on_credential_refreshed(credential)
            else:
                observer(credential)
        except Exception as e:
            # The new credential is already in place
            logger.error(f"Credential refresh callback failed: {e}", exc_info=True)

    # =========================================================================
    # Device Login
    # =========================================================================

    async def device_authorization(self) -> DeviceAuthorization:
        """
        Start a device login.

        Returns:
            DeviceAuthorization whose url includes the https:// scheme.
        """
        device = await self._executor.execute_once(
            "POST",
            f"{self.auth_base_url}/oauth2/device_authorization",
            params={"client_id": self.client_id, "scope": SCOPE},
            decoder=DeviceAuthorization.from_api
        )
        if device is None:
            raise DecodeError("Empty response from device authorization endpoint")
        return device.with_scheme()

    async def authorize(
        self,
        device_code: str,
        client_secret: str | None,
        country_code: str | None = None
    ) -> AuthzToken:
        """
        Exchange an approved device code for tokens and store the credential.

        Args:
            device_code: Code from device_authorization().
            client_secret: The application's client secret.
            country_code: Explicit country; the profile's country is used otherwise.

        Returns:
            The raw token response.

        Raises:
            TidalApiError: 400/1002 while the user has not approved yet,
                           other statuses for an invalid or expired code.
            NoAuthzTokenError: If the response carries no refresh token.
        """
        token = await self._executor.execute_once(
            "POST",
            self.token_url,
            params={
                "client_id": self.client_id,
                "client_secret": client_secret,
                "device_code": device_code,
                "grant_type": DEVICE_CODE_GRANT,
                "scope": SCOPE,
            },
            decoder=AuthzToken.from_api
        )
        if token is None:
            raise DecodeError("Empty response from token endpoint", details={"url": self.token_url})

        credential = token.credential()
        if credential is None:
            raise NoAuthzTokenError(details={"user_id": token.user_id})

        if country_code is not None:
            credential = replace(credential, country_code=country_code)

        self.store.set(credential)
        logger.info(f"Authorized user {credential.user_id}")
        return token

    async def wait_for_authorization(
        self,
        device: DeviceAuthorization,
        client_secret: str | None,
        country_code: str | None = None,
        interval: float | None = None
    ) -> AuthzToken:
        """
        Poll the token endpoint until the user approves the device login.

        Raises:
            TidalApiError: Any failure other than "authorization pending",
                           or the last pending error once the code expired.
        """
        poll_interval = device.interval if interval is None else interval
        deadline = time.monotonic() + device.expires_in

        while True:
            try:
                return await self.authorize(device.device_code, client_secret, country_code)
            except TidalApiError as e:
                if not e.is_authorization_pending or time.monotonic() >= deadline:
                    raise
                logger.debug("Authorization pending, polling again")
            await asyncio.sleep(poll_interval)
