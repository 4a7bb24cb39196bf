"""
Session management for Steam accounts.

Handles credential login with RSA password encryption, Steam Guard code
submission, QR login, and access token refresh.
"""

import threading
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Any, TypeVar

import structlog

from steamguard.api.endpoints.auth import (
    begin_auth_session_via_credentials,
    begin_auth_session_via_qr,
    generate_access_token_for_app,
    get_password_rsa_public_key,
    poll_auth_session_status,
    update_auth_session_with_steam_guard_code,
)
from steamguard.api.http_client import HttpClient
from steamguard.config import SteamGuardConfig
from steamguard.core.clock import Clock, SystemClock
from steamguard.crypto.codes import generate_login_code, generate_session_id
from steamguard.crypto.rsa import encrypt_password, parse_rsa_key
from steamguard.exceptions import (
    APIError,
    AuthenticationError,
    InvalidCredentialsError,
    ProtocolError,
    SessionExpiredError,
    TwoFactorAttemptsExceededError,
    TwoFactorInvalidError,
)
from steamguard.models.account import Account, Session, decode_jwt_payload
from steamguard.models.auth import (
    AuthSession,
    EResult,
    GuardType,
    LoginState,
    QrChallenge,
    QrStatus,
)
from steamguard.services.time_sync import TimeSync

logger = structlog.get_logger(__name__)

T = TypeVar("T")

_QR_DENIED_RESULTS = frozenset({EResult.FILE_NOT_FOUND, EResult.ACCESS_DENIED})


@dataclass(kw_only=True)
class _PendingLogin:
    """A credential login waiting for a guard code."""

    session: AuthSession
    guard: GuardType
    attempts: int = 0


class AuthService:
    """
    Drives each account through its login states.

    LOGGED_OUT -> AWAITING_TWO_FACTOR | AWAITING_EMAIL_CODE -> LOGGED_IN,
    LOGGED_IN -> EXPIRED when the access token lapses, and EXPIRED -> LOGGED_IN
    (refresh) or LOGGED_OUT (refresh token gone).

    Pending logins are kept per account name. Sessions live on the Account
    itself so they are persisted with the manifest.

    Concurrency:
    - Pending login bookkeeping is protected by an internal lock. Two threads
      logging in the same account at once will overwrite each other's attempt.
    """

    def __init__(
        self,
        http: HttpClient,
        time_sync: TimeSync,
        config: SteamGuardConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        """
        Args:
            http: HTTP client for Steam requests.
            time_sync: Steam clock used for codes and token expiry.
            config: Client configuration. Defaults to the HTTP client's.
            clock: Local clock used for polling waits and QR deadlines.
        """
        self._http = http
        self._time_sync = time_sync
        self._config = config or http.config
        self._clock = clock or SystemClock()

        self._pending: dict[str, _PendingLogin] = {}
        self._lock = threading.Lock()

    def state(self, account: Account) -> LoginState:
        """Current login state of an account."""
        with self._lock:
            pending = self._pending.get(account.account_name)
        if pending is not None:
            if pending.guard == GuardType.EMAIL_CODE:
                return LoginState.AWAITING_EMAIL_CODE
            return LoginState.AWAITING_TWO_FACTOR

        session = account.session
        if session is None:
            return LoginState.LOGGED_OUT
        if session.is_access_token_expired(self._time_sync.now()):
            if not session.refresh_token:
                return LoginState.LOGGED_OUT
            return LoginState.EXPIRED
        return LoginState.LOGGED_IN

    def begin_login(self, account: Account, password: str) -> LoginState:
        """
        Start a credential login.

        A fresh RSA key is fetched for every attempt; keys are never reused.

        Args:
            account: Account to log in.
            password: Account password. Only its RSA ciphertext leaves the process.

        Returns:
            LOGGED_IN when Steam requires no guard, otherwise the awaiting state.

        Raises:
            InvalidCredentialsError: If the password is empty or rejected.
            RateLimitError: If Steam throttles login attempts.
            CaptchaRequiredError: If Steam demands a CAPTCHA.
            AuthenticationError: If Steam only offers unsupported guard types.
        """
        if not password:
            msg = "Password required"
            raise InvalidCredentialsError(msg)

        self._drop_pending(account)
        logger.info("Starting login", account_name=account.account_name)

        rsa_key = parse_rsa_key(get_password_rsa_public_key(self._http, account.account_name))
        response = begin_auth_session_via_credentials(
            self._http,
            account.account_name,
            encrypt_password(password, rsa_key),
            rsa_key.timestamp,
        )
        auth_session = _parse_auth_session(response)

        if auth_session.steam_id and auth_session.steam_id != account.steam_id:
            logger.warning(
                "Login session belongs to a different steam id",
                account_name=account.account_name,
            )

        guards = auth_session.guard_types
        if GuardType.DEVICE_CODE in guards:
            guard = GuardType.DEVICE_CODE
        elif GuardType.EMAIL_CODE in guards:
            guard = GuardType.EMAIL_CODE
        elif not guards or GuardType.NONE in guards:
            self._complete_login(account, auth_session)
            return LoginState.LOGGED_IN
        else:
            msg = "Steam offered no supported guard type"
            raise AuthenticationError(msg, guard_types=sorted(int(g) for g in guards))

        with self._lock:
            self._pending[account.account_name] = _PendingLogin(session=auth_session, guard=guard)

        logger.info("Login awaiting guard code", account_name=account.account_name, guard=guard.name)
        return self.state(account)

    def submit_code(self, account: Account, code: str | None = None) -> LoginState:
        """
        Submit a Steam Guard code for a pending login.

        Args:
            account: Account with a login in progress.
            code: Guard code. For device codes it defaults to the code generated
                from the account's shared secret at Steam time.

        Returns:
            LOGGED_IN.

        Raises:
            TwoFactorInvalidError: If Steam rejected the code; the login stays pending.
            TwoFactorAttemptsExceededError: If the rejection used up the last attempt;
                the login is abandoned and the account is logged out.
            AuthenticationError: If no login is pending.
        """
        with self._lock:
            pending = self._pending.get(account.account_name)
        if pending is None:
            msg = "No login in progress"
            raise AuthenticationError(msg, account_name=account.account_name)

        generated = code is None
        if code is None:
            if pending.guard != GuardType.DEVICE_CODE:
                msg = "Email code required"
                raise AuthenticationError(msg, account_name=account.account_name)
            code = generate_login_code(account.shared_secret, self._time_sync.now())

        try:
            update_auth_session_with_steam_guard_code(
                self._http,
                pending.session.client_id,
                pending.session.steam_id or account.steam_id,
                code,
                pending.guard,
            )
        except TwoFactorInvalidError as e:
            if generated:
                # A rejected generated code usually means the clock drifted.
                self._time_sync.refresh()
            self._reject_code(account, pending, e)

        self._complete_login(account, pending.session)
        self._drop_pending(account)
        return LoginState.LOGGED_IN

    def begin_qr_login(self) -> QrChallenge:
        """Start a login that is approved by scanning a QR code with the Steam app."""
        response = begin_auth_session_via_qr(self._http)
        try:
            challenge_url = str(response["challenge_url"])
        except KeyError as e:
            msg = "QR login response missing challenge URL"
            raise ProtocolError(msg) from e

        logger.info("QR login started")
        return QrChallenge(
            session=_parse_auth_session(response),
            challenge_url=challenge_url,
            started_at=self._clock.time(),
        )

    def poll_qr_login(self, challenge: QrChallenge) -> tuple[QrStatus, Session | None]:
        """
        Poll a QR login once.

        Steam may rotate the client id and challenge URL; the challenge is
        updated in place when it does.

        Returns:
            Status and, when APPROVED, the new session.
        """
        if self._clock.time() - challenge.started_at >= self._config.qr_login_timeout:
            return QrStatus.EXPIRED, None

        try:
            response = poll_auth_session_status(
                self._http,
                challenge.session.client_id,
                challenge.session.request_id,
            )
        except APIError as e:
            if e.code == EResult.EXPIRED:
                return QrStatus.EXPIRED, None
            if e.code in _QR_DENIED_RESULTS:
                return QrStatus.DENIED, None
            raise

        if new_client_id := response.get("new_client_id"):
            challenge.session = replace(challenge.session, client_id=str(new_client_id))
        if new_url := response.get("new_challenge_url"):
            challenge.challenge_url = str(new_url)
            logger.debug("QR challenge rotated")

        if not response.get("refresh_token"):
            return QrStatus.PENDING, None
        return QrStatus.APPROVED, self._build_session(response, challenge.session.steam_id)

    def wait_for_qr_login(
        self,
        challenge: QrChallenge,
        account: Account,
        *,
        should_continue: Callable[[], bool] | None = None,
        on_challenge: Callable[[QrChallenge], None] | None = None,
    ) -> QrStatus:
        """
        Poll a QR login until it settles.

        Polls at the interval Steam suggested and gives up after
        `config.qr_login_timeout` seconds.

        Args:
            challenge: Challenge from `begin_qr_login`.
            account: Account that receives the session on approval.
            should_continue: Checked before every poll; returning False cancels.
            on_challenge: Called with the challenge whenever its URL rotates.

        Returns:
            APPROVED, DENIED, EXPIRED or CANCELLED.

        Raises:
            AuthenticationError: If the login was approved for another account.
        """
        current_url = challenge.challenge_url
        while True:
            if should_continue is not None and not should_continue():
                logger.info("QR login cancelled")
                return QrStatus.CANCELLED

            status, session = self.poll_qr_login(challenge)

            if challenge.challenge_url != current_url:
                current_url = challenge.challenge_url
                if on_challenge is not None:
                    on_challenge(challenge)

            if status == QrStatus.APPROVED and session is not None:
                if account.steam_id and session.steam_id and session.steam_id != account.steam_id:
                    msg = "QR login was approved by a different account"
                    raise AuthenticationError(msg, account_name=account.account_name)
                account.session = session
                logger.info("QR login approved", account_name=account.account_name)
                return status

            if status != QrStatus.PENDING:
                logger.info("QR login finished", status=status.value)
                return status

            self._clock.sleep(challenge.session.interval)

    def refresh(self, account: Account) -> Session:
        """
        Mint a new access token from the stored refresh token.

        Returns:
            The refreshed session, also stored on the account.

        Raises:
            SessionExpiredError: If there is no session, or the refresh token is
                expired or rejected. The account is logged out in that case.
        """
        session = account.session
        if session is None:
            msg = "Not logged in"
            raise SessionExpiredError(msg, account_name=account.account_name)

        if session.is_refresh_token_expired(self._time_sync.now()):
            account.session = None
            msg = "Refresh token expired, login required"
            raise SessionExpiredError(msg, account_name=account.account_name)

        logger.info("Refreshing access token", account_name=account.account_name)
        try:
            response = generate_access_token_for_app(self._http, session.refresh_token, session.steam_id)
        except (SessionExpiredError, APIError) as e:
            account.session = None
            msg = "Refresh token rejected, login required"
            raise SessionExpiredError(msg, account_name=account.account_name) from e

        access_token = response.get("access_token")
        if not access_token:
            account.session = None
            msg = "Refresh returned no access token, login required"
            raise SessionExpiredError(msg, account_name=account.account_name)

        refreshed = session.with_access_token(access_token, response.get("refresh_token"))
        account.session = refreshed
        return refreshed

    def ensure_session(self, account: Account) -> Session:
        """
        Return a usable session, refreshing it first if the access token expired.

        Raises:
            SessionExpiredError: If the account is not logged in or refresh failed.
        """
        state = self.state(account)
        if state == LoginState.EXPIRED:
            return self.refresh(account)
        if state != LoginState.LOGGED_IN or account.session is None:
            msg = "Not logged in"
            raise SessionExpiredError(msg, account_name=account.account_name, state=state.value)
        return account.session

    def call_with_session(self, account: Account, fn: Callable[[Session], T]) -> T:
        """
        Run an authenticated call, refreshing the session once if Steam rejects it.

        Args:
            account: Account whose session authenticates the call.
            fn: Callable performing the request with the given session.

        Raises:
            SessionExpiredError: If the call is rejected again after one refresh.
        """
        session = self.ensure_session(account)
        try:
            return fn(session)
        except SessionExpiredError:
            logger.info("Session rejected, refreshing once", account_name=account.account_name)

        return fn(self.refresh(account))

    def logout(self, account: Account) -> None:
        """Forget the session and any pending login for the account."""
        logger.info("Logging out", account_name=account.account_name)
        self._drop_pending(account)
        account.session = None

    def _drop_pending(self, account: Account) -> None:
        with self._lock:
            self._pending.pop(account.account_name, None)

    def _reject_code(self, account: Account, pending: _PendingLogin, error: TwoFactorInvalidError) -> None:
        with self._lock:
            pending.attempts += 1
            remaining = self._config.max_code_attempts - pending.attempts
            if remaining <= 0:
                self._pending.pop(account.account_name, None)

        if remaining <= 0:
            logger.warning("Guard code attempts exhausted", account_name=account.account_name)
            msg = "Too many rejected guard codes, login abandoned"
            raise TwoFactorAttemptsExceededError(msg, account_name=account.account_name) from error

        logger.info("Guard code rejected", account_name=account.account_name, attempts_remaining=remaining)
        msg = "Guard code rejected"
        raise TwoFactorInvalidError(msg, attempts_remaining=remaining) from error

    def _complete_login(self, account: Account, auth_session: AuthSession) -> None:
        """Poll until Steam issues tokens for an accepted login."""
        for attempt in range(self._config.login_poll_attempts):
            if attempt > 0:
                self._clock.sleep(auth_session.interval)
            response = poll_auth_session_status(self._http, auth_session.client_id, auth_session.request_id)
            if response.get("refresh_token"):
                account.session = self._build_session(response, auth_session.steam_id or account.steam_id)
                logger.info("Login successful", account_name=account.account_name)
                return

        msg = "Steam did not issue tokens for the login"
        raise AuthenticationError(msg, account_name=account.account_name)

    def _build_session(self, response: dict[str, Any], steam_id: int) -> Session:
        refresh_token = str(response["refresh_token"])
        if not steam_id:
            steam_id = int(decode_jwt_payload(refresh_token).get("sub") or 0)

        access_token = response.get("access_token")
        if not access_token:
            minted = generate_access_token_for_app(self._http, refresh_token, steam_id)
            access_token = minted.get("access_token")
            if not access_token:
                msg = "Steam issued no access token"
                raise ProtocolError(msg)

        return Session(
            steam_id=steam_id,
            access_token=str(access_token),
            refresh_token=refresh_token,
            session_id=generate_session_id(),
        )


def _parse_auth_session(response: dict[str, Any]) -> AuthSession:
    try:
        allowed = response.get("allowed_confirmations") or []
        return AuthSession(
            client_id=str(response["client_id"]),
            request_id=str(response["request_id"]),
            steam_id=int(response.get("steamid") or 0),
            interval=float(response.get("interval") or 5.0),
            guard_types=frozenset(GuardType.from_raw(int(c["confirmation_type"])) for c in allowed),
        )
    except (KeyError, TypeError, ValueError) as e:
        msg = "Malformed login session response"
        raise ProtocolError(msg) from e
