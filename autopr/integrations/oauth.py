"""
GitHub OAuth Device Flow

Obtains a user access token for an OAuth app without a browser redirect: the
user enters a short code at github.com/login/device while the CLI polls.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable

import requests

from ..utils.logger import get_logger

logger = get_logger(__name__)

DEVICE_CODE_URL = "https://github.com/login/device/code"
ACCESS_TOKEN_URL = "https://github.com/login/oauth/access_token"
DEVICE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"
DEFAULT_SCOPE = "repo read:user user:email"
SLOW_DOWN_STEP = 5


class OAuthError(Exception):
    """Device flow authorization failed."""
    pass


class DeviceCodeExpiredError(OAuthError):
    """The user did not authorize before the device code expired."""
    pass


@dataclass
class DeviceCode:
    device_code: str
    user_code: str
    verification_uri: str
    expires_in: int
    interval: int


class DeviceFlow:
    """Device authorization grant against github.com."""

    def __init__(
        self,
        client_id: str,
        session: requests.Session | None = None,
        timeout: float = 30,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client_id = client_id
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        self.timeout = timeout
        self._sleep = sleep
        self._clock = clock

    def _post(self, url: str, data: dict[str, str]) -> Any:
        response = self.session.post(url, data=data, timeout=self.timeout)
        if response.status_code >= 400:
            raise OAuthError(f"GitHub rejected the request with {response.status_code}: {response.text[:200]}")
        try:
            return response.json()
        except ValueError as e:
            raise OAuthError(f"GitHub returned invalid JSON: {e}")

    def request_device_code(self, scope: str = DEFAULT_SCOPE) -> DeviceCode:
        """Start the flow and return the code the user must enter.

        Raises:
            OAuthError: If GitHub cannot be reached or refuses the client
        """
        try:
            data = self._post(DEVICE_CODE_URL, {"client_id": self.client_id, "scope": scope})
        except requests.RequestException as e:
            raise OAuthError(f"Failed to request a device code: {e}")

        if "error" in data:
            raise OAuthError(data.get("error_description") or data["error"])
        try:
            return DeviceCode(
                device_code=data["device_code"],
                user_code=data["user_code"],
                verification_uri=data["verification_uri"],
                expires_in=int(data["expires_in"]),
                interval=int(data.get("interval", 5)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise OAuthError(f"Unexpected device code response: {e}")

    def poll_for_token(self, code: DeviceCode) -> str:
        """
        Poll until the user authorizes, then return the access token.

        ``authorization_pending`` keeps waiting, ``slow_down`` widens the
        interval by five seconds, and network failures are retried until the
        code expires.

        Raises:
            DeviceCodeExpiredError: If the code expires first
            OAuthError: If the user denies access or GitHub reports an error
        """
        deadline = self._clock() + code.expires_in
        interval = code.interval
        payload = {
            "client_id": self.client_id,
            "device_code": code.device_code,
            "grant_type": DEVICE_GRANT_TYPE,
        }

        while self._clock() < deadline:
            self._sleep(interval)
            try:
                data = self._post(ACCESS_TOKEN_URL, payload)
            except requests.RequestException as e:
                logger.warning(f"Token poll failed, retrying: {e}")
                continue

            error = data.get("error")
            if error == "authorization_pending":
                continue
            if error == "slow_down":
                interval = int(data.get("interval", interval + SLOW_DOWN_STEP))
                logger.debug(f"GitHub asked to slow down, polling every {interval}s")
                continue
            if error == "expired_token":
                raise DeviceCodeExpiredError("The device code expired. Run `autopr auth login` again.")
            if error:
                raise OAuthError(data.get("error_description") or error)

            token = data.get("access_token")
            if not token:
                raise OAuthError("GitHub response did not include an access token")
            logger.info("Device flow authorization complete")
            return token

        raise DeviceCodeExpiredError("The device code expired. Run `autopr auth login` again.")
