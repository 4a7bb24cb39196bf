"""
Steam Guard mobile authenticator for Python.

Generates login codes, keeps Steam sessions alive, and answers trade and
market confirmations for accounts stored in an encrypted manifest.

Example:
    ```python
    from steamguard import ConfirmationDecision, SteamGuardClient

    with SteamGuardClient() as client:
        client.open_manifest("manifest.json", "passphrase")
        account = client.get_account("alice")

        print(client.get_code(account))

        client.login(account, "password")
        for confirmation in client.list_confirmations(account):
            client.answer_confirmation(account, confirmation, ConfirmationDecision.ACCEPT)

        client.save_manifest()
    ```
"""

from steamguard.client import SteamGuardClient
from steamguard.config import SteamGuardConfig
from steamguard.exceptions import (
    AccountNotFoundError,
    APIError,
    AuthenticationError,
    AuthenticatorError,
    CaptchaRequiredError,
    CryptoError,
    DuplicateAccountError,
    InvalidCredentialsError,
    ManifestDecryptionError,
    ManifestIOError,
    NetworkError,
    ProtocolError,
    RateLimitError,
    SessionExpiredError,
    SignatureMismatchError,
    StaleConfirmationError,
    SteamGuardError,
    TwoFactorAttemptsExceededError,
    TwoFactorInvalidError,
)
from steamguard.models.account import Account, Session
from steamguard.models.auth import LoginState, QrChallenge, QrStatus
from steamguard.models.confirmation import Confirmation, ConfirmationDecision, ConfirmationKind

__version__ = "0.1.0"

__all__ = [
    # Main client
    "SteamGuardClient",
    "SteamGuardConfig",
    # Models
    "Account",
    "Session",
    "LoginState",
    "QrChallenge",
    "QrStatus",
    "Confirmation",
    "ConfirmationDecision",
    "ConfirmationKind",
    # Exceptions
    "SteamGuardError",
    "NetworkError",
    "AuthenticationError",
    "InvalidCredentialsError",
    "TwoFactorInvalidError",
    "TwoFactorAttemptsExceededError",
    "RateLimitError",
    "CaptchaRequiredError",
    "AuthenticatorError",
    "SessionExpiredError",
    "CryptoError",
    "ManifestDecryptionError",
    "SignatureMismatchError",
    "ProtocolError",
    "APIError",
    "StaleConfirmationError",
    "ManifestIOError",
    "AccountNotFoundError",
    "DuplicateAccountError",
]
