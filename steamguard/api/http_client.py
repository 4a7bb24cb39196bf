"""
Blocking HTTP client for the Steam Web API and steamcommunity.com.

Translates transport failures, HTTP status codes and the `X-eresult`
header into the steamguard exception hierarchy.
"""

from typing import Any

import httpx
import structlog

from steamguard.config import SteamGuardConfig
from steamguard.exceptions import (
    APIError,
    CaptchaRequiredError,
    InvalidCredentialsError,
    NetworkError,
    ProtocolError,
    RateLimitError,
    SessionExpiredError,
    TwoFactorInvalidError,
)
from steamguard.models.account import Session
from steamguard.models.auth import EResult

logger = structlog.get_logger(__name__)

ERESULT_HEADER = "x-eresult"

SENSITIVE_KEYS = frozenset(
    {
        "access_token",
        "refresh_token",
        "encrypted_password",
        "password",
        "shared_secret",
        "identity_secret",
        "secret_1",
        "revocation_code",
        "uri",
        "code",
        "activation_code",
        "authenticator_code",
        "k",
        "ck",
        "ck[]",
        "steamLoginSecure",
        "sessionid",
    }
)


def sanitize_for_log(data: dict[str, Any]) -> dict[str, Any]:
    """
    Remove sensitive fields from a dict before logging.

    Recursively sanitizes nested dictionaries and lists.

    Args:
        data: Dictionary that may contain sensitive values.

    Returns:
        Copy with sensitive values replaced by "***".
    """
    result = {}
    for key, value in data.items():
        if key in SENSITIVE_KEYS:
            result[key] = "***"
        elif isinstance(value, dict):
            result[key] = sanitize_for_log(value)
        elif isinstance(value, list):
            result[key] = [
                sanitize_for_log(item) if isinstance(item, dict) else item for item in value
            ]
        else:
            result[key] = value
    return result


class HttpClient:
    """Blocking HTTP client shared by all endpoint modules."""

    def __init__(
        self,
        config: SteamGuardConfig,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """
        Args:
            config: Client configuration.
            transport: Optional transport for testing (mock transport).
        """
        self._config = config
        self._transport = transport
        self._client: httpx.Client | None = None

    def __enter__(self) -> "HttpClient":
        self._ensure_client()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    @property
    def config(self) -> SteamGuardConfig:
        return self._config

    def _ensure_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                timeout=self._config.timeout,
                transport=self._transport,
                headers={
                    "Accept": "application/json, text/plain, */*",
                    "User-Agent": self._config.user_agent,
                },
            )
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def api_url(self, interface: str, method: str, version: int = 1) -> str:
        """URL of a Steam Web API method, e.g. ITwoFactorService/QueryTime/v1."""
        return f"{self._config.api_url}/{interface}/{method}/v{version}"

    def community_url(self, path: str) -> str:
        return f"{self._config.community_url}/{path.lstrip('/')}"

    def request(
        self,
        method: str,
        url: str,
        *,
        data: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        session: Session | None = None,
    ) -> dict[str, Any]:
        """
        Make a request and return the decoded JSON body.

        Args:
            method: HTTP method (GET, POST).
            url: Absolute URL.
            data: Form body.
            params: Query parameters.
            session: Session whose cookies authenticate the request.

        Returns:
            Response JSON object.

        Raises:
            NetworkError: On connection failures, timeouts, undecodable responses and 5xx responses.
            SessionExpiredError: On 401/403 responses.
            RateLimitError: On 429 responses or a rate limit result code.
            AuthenticationError: On login related result codes.
            APIError: On any other failure result code.
            ProtocolError: If the body is not a JSON object.
        """
        client = self._ensure_client()

        headers = {}
        if session is not None:
            headers["Cookie"] = "; ".join(f"{k}={v}" for k, v in session.cookies().items())

        logger.debug(
            "Steam request",
            method=method,
            url=url,
            params=sanitize_for_log(params or {}),
            data=sanitize_for_log(data or {}),
        )

        try:
            response = client.request(method, url, data=data, params=params, headers=headers)
        except httpx.TimeoutException as e:
            msg = "Request to Steam timed out"
            raise NetworkError(msg, url=url) from e
        except httpx.TransportError as e:
            msg = "Could not reach Steam"
            raise NetworkError(msg, url=url) from e
        except httpx.RequestError as e:
            msg = "Request to Steam failed"
            raise NetworkError(msg, url=url) from e

        self._raise_for_status(response, url)
        self._raise_for_eresult(response, url)

        try:
            body = response.json()
        except ValueError as e:
            msg = "Invalid JSON response from Steam"
            raise ProtocolError(msg, status=response.status_code, url=url) from e

        if not isinstance(body, dict):
            msg = "Unexpected JSON payload from Steam"
            raise ProtocolError(msg, url=url)
        return body

    @staticmethod
    def _raise_for_status(response: httpx.Response, url: str) -> None:
        status = response.status_code
        if status in (httpx.codes.UNAUTHORIZED, httpx.codes.FORBIDDEN):
            msg = "Steam rejected the session"
            raise SessionExpiredError(msg, status=status)
        if status == httpx.codes.TOO_MANY_REQUESTS:
            raise RateLimitError(code=status)
        if status >= httpx.codes.INTERNAL_SERVER_ERROR:
            msg = "Steam server error"
            raise NetworkError(msg, status=status, url=url)
        if status >= httpx.codes.BAD_REQUEST:
            msg = f"Unexpected HTTP status {status}"
            raise APIError(msg, code=status, endpoint=url)

    @staticmethod
    def _raise_for_eresult(response: httpx.Response, url: str) -> None:
        raw = response.headers.get(ERESULT_HEADER)
        if raw is None:
            return
        try:
            code = int(raw)
        except ValueError as e:
            msg = "Malformed result header"
            raise ProtocolError(msg, value=raw) from e

        if code == EResult.OK:
            return

        message = response.headers.get("x-error_message") or f"Steam returned result {code}"

        if code == EResult.INVALID_PASSWORD:
            raise InvalidCredentialsError(message)
        if code in (EResult.RATE_LIMIT_EXCEEDED, EResult.ACCOUNT_LOGIN_DENIED_THROTTLE):
            raise RateLimitError(message, code=code)
        if code == EResult.NEED_CAPTCHA:
            raise CaptchaRequiredError(message)
        if code in (
            EResult.INVALID_LOGIN_AUTH_CODE,
            EResult.EXPIRED_LOGIN_AUTH_CODE,
            EResult.TWO_FACTOR_CODE_MISMATCH,
        ):
            raise TwoFactorInvalidError(message)

        raise APIError(message, code=code, endpoint=url)
