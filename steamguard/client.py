"""
Steam Guard client facade.

This is the main entry point for users of the library. It wires the HTTP
client, time sync, session manager, confirmation engine and manifest store
together behind one blocking API.
"""

import threading
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Self

import httpx
import structlog

from steamguard.api.http_client import HttpClient
from steamguard.config import SteamGuardConfig
from steamguard.core.clock import Clock, SystemClock
from steamguard.crypto.codes import generate_login_code
from steamguard.crypto.secure_bytes import SecureBytes
from steamguard.exceptions import InvalidCredentialsError
from steamguard.models.account import Account, Session
from steamguard.models.auth import LoginState, QrChallenge, QrStatus
from steamguard.models.confirmation import Confirmation, ConfirmationDecision
from steamguard.services.auth_service import AuthService
from steamguard.services.confirmation_service import ConfirmationService
from steamguard.services.enrollment_service import EnrollmentService
from steamguard.services.manifest_store import ManifestStore
from steamguard.services.time_sync import TimeSync

logger = structlog.get_logger(__name__)


class SteamGuardClient:
    """
    Blocking client for the Steam mobile authenticator.

    Example:
        ```python
        with SteamGuardClient() as client:
            client.open_manifest("manifest.json", passphrase)
            account = client.get_account("alice")

            print(client.get_code(account))

            client.login(account, password)
            for confirmation in client.list_confirmations(account):
                client.answer_confirmation(account, confirmation, ConfirmationDecision.ACCEPT)

            client.save_manifest()
        ```

    Args:
        config: Client configuration. Uses defaults if not provided.
        transport: Optional httpx transport for testing (mock transport).
        clock: Optional clock for testing.
    """

    def __init__(
        self,
        config: SteamGuardConfig | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._config = config or SteamGuardConfig()
        self._transport = transport
        self._clock = clock or SystemClock()

        self._http: HttpClient | None = None
        self._time_sync: TimeSync | None = None
        self._auth_service: AuthService | None = None
        self._confirmation_service: ConfirmationService | None = None
        self._enrollment_service: EnrollmentService | None = None
        self._store: ManifestStore | None = None

        self._initialized = False
        self._init_lock = threading.Lock()

    def __enter__(self) -> Self:
        self._ensure_initialized()
        return self

    def __exit__(self, exc_type: type | None, exc_val: BaseException | None, exc_tb: object) -> None:
        self.close()

    def _ensure_initialized(self) -> None:
        with self._init_lock:
            if self._initialized:
                return

            self._http = HttpClient(self._config, transport=self._transport)
            self._time_sync = TimeSync(self._http, self._clock)
            self._auth_service = AuthService(self._http, self._time_sync, self._config, self._clock)
            self._confirmation_service = ConfirmationService(
                self._http,
                self._auth_service,
                self._time_sync,
                self._config,
            )
            self._enrollment_service = EnrollmentService(self._http, self._auth_service, self._time_sync)

            self._initialized = True
            logger.debug("Client initialized")

    def close(self) -> None:
        """Close the client, wipe the manifest passphrase and release resources."""
        with self._init_lock:
            if self._store is not None:
                self._store.close()
                self._store = None

            if self._http is not None:
                self._http.close()
                self._http = None

            self._time_sync = None
            self._auth_service = None
            self._confirmation_service = None
            self._enrollment_service = None
            self._initialized = False
            logger.debug("Client closed")

    @property
    def manifest(self) -> ManifestStore:
        """The open manifest store."""
        if self._store is None:
            msg = "No manifest open. Call open_manifest() or create_manifest() first."
            raise RuntimeError(msg)
        return self._store

    def open_manifest(self, path: Path | str, passphrase: str | SecureBytes | None = None) -> ManifestStore:
        """
        Open an existing manifest, replacing any manifest already open.

        Raises:
            ManifestIOError: If the file cannot be read.
            ManifestDecryptionError: Wrong passphrase or corrupted manifest.
        """
        store = ManifestStore.open(path, passphrase, kdf_iterations=self._config.kdf_iterations)
        self._replace_store(store)
        return store

    def create_manifest(self, path: Path | str, passphrase: str | SecureBytes | None = None) -> ManifestStore:
        """
        Create an empty manifest on disk and open it.

        Raises:
            ManifestIOError: If the file exists or cannot be written.
        """
        store = ManifestStore.create(path, passphrase, kdf_iterations=self._config.kdf_iterations)
        self._replace_store(store)
        return store

    def save_manifest(self) -> None:
        """Write the open manifest, including refreshed sessions, back to disk."""
        self.manifest.save()

    def get_account(self, account_name: str) -> Account:
        """
        Raises:
            AccountNotFoundError: If the manifest has no such account.
        """
        return self.manifest.get_account(account_name)

    def sync_time(self) -> int:
        """Query Steam's clock now and return its offset from local time in seconds."""
        return self._sync.refresh()

    def get_code(self, account: Account | str) -> str:
        """Current login code of an account, computed at Steam time."""
        account = self._resolve(account)
        return generate_login_code(account.shared_secret, self._sync.now())

    def login_state(self, account: Account | str) -> LoginState:
        return self._auth.state(self._resolve(account))

    def login(
        self,
        account: Account | str,
        password: str | None = None,
        code: str | None = None,
    ) -> LoginState:
        """
        Log an account in, as far as possible without further input.

        With a password a new credential login is started. Device guard codes
        are generated automatically; an email code must be passed as `code`
        (call again with only the code if it arrives later). Without a
        password an expired session is refreshed.

        Returns:
            LOGGED_IN, or AWAITING_EMAIL_CODE when Steam sent a code by email.

        Raises:
            InvalidCredentialsError: If a password is needed but was not given.
            TwoFactorInvalidError: If Steam rejected the guard code.
            TwoFactorAttemptsExceededError: If too many codes were rejected.
            SessionExpiredError: If refreshing without a password failed.
        """
        account = self._resolve(account)
        auth = self._auth

        state = auth.begin_login(account, password) if password else auth.state(account)

        if state == LoginState.AWAITING_TWO_FACTOR:
            return auth.submit_code(account, code)
        if state == LoginState.AWAITING_EMAIL_CODE:
            return auth.submit_code(account, code) if code else state
        if state == LoginState.EXPIRED:
            auth.refresh(account)
            return LoginState.LOGGED_IN
        if state == LoginState.LOGGED_OUT:
            msg = "Password required"
            raise InvalidCredentialsError(msg)
        return state

    def refresh_session(self, account: Account | str) -> Session:
        return self._auth.refresh(self._resolve(account))

    def logout(self, account: Account | str) -> None:
        self._auth.logout(self._resolve(account))

    def begin_qr_login(self) -> QrChallenge:
        """Start a QR login; render `challenge_url` for the Steam app to scan."""
        return self._auth.begin_qr_login()

    def wait_for_qr_login(
        self,
        challenge: QrChallenge,
        account: Account | str,
        *,
        should_continue: Callable[[], bool] | None = None,
        on_challenge: Callable[[QrChallenge], None] | None = None,
    ) -> QrStatus:
        return self._auth.wait_for_qr_login(
            challenge,
            self._resolve(account),
            should_continue=should_continue,
            on_challenge=on_challenge,
        )

    def list_confirmations(self, account: Account | str) -> list[Confirmation]:
        """
        Fetch pending confirmations.

        Raises:
            SessionExpiredError: If the session could not be refreshed.
        """
        return self._confirmations.list_confirmations(self._resolve(account))

    def answer_confirmation(
        self,
        account: Account | str,
        confirmation: Confirmation,
        decision: ConfirmationDecision,
    ) -> None:
        """
        Accept or cancel a confirmation from the latest listing.

        Raises:
            StaleConfirmationError: If it was listed too long ago.
            SignatureMismatchError: If Steam rejected the answer.
        """
        self._confirmations.answer_confirmation(self._resolve(account), confirmation, decision)

    def answer_confirmations(
        self,
        account: Account | str,
        confirmations: Sequence[Confirmation],
        decision: ConfirmationDecision,
    ) -> None:
        self._confirmations.answer_confirmations(self._resolve(account), confirmations, decision)

    def add_authenticator(self, account_name: str, session: Session) -> Account:
        """
        Link a new authenticator and add its account to the open manifest.

        The manifest is saved right away, so the revocation code is never lost.
        """
        account = self._enrollment.add_authenticator(account_name, session)
        self.manifest.add_account(account)
        self.manifest.save()
        return account

    def finalize_authenticator(self, account: Account | str, activation_code: str) -> None:
        self._enrollment.finalize_authenticator(self._resolve(account), activation_code)

    def remove_authenticator(self, account: Account | str, revocation_code: str | None = None) -> None:
        self._enrollment.remove_authenticator(self._resolve(account), revocation_code)

    def _replace_store(self, store: ManifestStore) -> None:
        if self._store is not None and self._store is not store:
            self._store.close()
        self._store = store

    def _resolve(self, account: Account | str) -> Account:
        if isinstance(account, Account):
            return account
        return self.get_account(account)

    @property
    def _sync(self) -> TimeSync:
        self._ensure_initialized()
        if self._time_sync is None:
            raise RuntimeError("Client not initialized")
        return self._time_sync

    @property
    def _auth(self) -> AuthService:
        self._ensure_initialized()
        if self._auth_service is None:
            raise RuntimeError("Client not initialized")
        return self._auth_service

    @property
    def _confirmations(self) -> ConfirmationService:
        self._ensure_initialized()
        if self._confirmation_service is None:
            raise RuntimeError("Client not initialized")
        return self._confirmation_service

    @property
    def _enrollment(self) -> EnrollmentService:
        self._ensure_initialized()
        if self._enrollment_service is None:
            raise RuntimeError("Client not initialized")
        return self._enrollment_service
