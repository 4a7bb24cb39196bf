"""
Steam Guard exception hierarchy.

All exceptions inherit from SteamGuardError for easy catching.
"""

from typing import Any


class SteamGuardError(Exception):
    """Base exception for all steamguard errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        if self.context:
            ctx = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx})"
        return self.message


class NetworkError(SteamGuardError):
    """Network-level error (connection failed, timeout, server unavailable)."""


class AuthenticationError(SteamGuardError):
    """Authentication failed."""


class InvalidCredentialsError(AuthenticationError):
    """Invalid account name or password."""


class TwoFactorInvalidError(AuthenticationError):
    """Steam rejected the provided guard code."""

    def __init__(self, message: str, *, attempts_remaining: int | None = None) -> None:
        super().__init__(message, attempts_remaining=attempts_remaining)
        self.attempts_remaining = attempts_remaining


class TwoFactorAttemptsExceededError(AuthenticationError):
    """Too many guard codes were rejected; the login attempt was abandoned."""


class RateLimitError(AuthenticationError):
    """Rate limited by Steam."""

    def __init__(self, message: str = "Rate limit exceeded", *, code: int | None = None) -> None:
        super().__init__(message, code=code)
        self.code = code


class CaptchaRequiredError(AuthenticationError):
    """Steam demands a CAPTCHA; it is never solved automatically."""


class AuthenticatorError(AuthenticationError):
    """Adding, finalizing or removing a mobile authenticator failed."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message, status=status)
        self.status = status


class SessionExpiredError(SteamGuardError):
    """Session has expired and could not be refreshed."""


class CryptoError(SteamGuardError):
    """Cryptographic operation failed."""


class ManifestDecryptionError(CryptoError):
    """Manifest or account blob could not be decrypted."""

    def __init__(self, message: str = "Wrong passphrase or corrupted manifest") -> None:
        super().__init__(message)


class SignatureMismatchError(CryptoError):
    """A confirmation signature was bound to the wrong operation or rejected by Steam."""


class ProtocolError(SteamGuardError):
    """Steam returned a response that could not be understood."""


class APIError(ProtocolError):
    """Steam reported a failure result code."""

    def __init__(self, message: str, *, code: int, endpoint: str | None = None) -> None:
        super().__init__(message, code=code, endpoint=endpoint)
        self.code = code
        self.endpoint = endpoint


class StaleConfirmationError(SteamGuardError):
    """The confirmation was fetched too long ago to be answered safely."""

    def __init__(self, message: str, *, confirmation_id: int, age: float) -> None:
        super().__init__(message, confirmation_id=confirmation_id, age=age)
        self.confirmation_id = confirmation_id
        self.age = age


class ManifestIOError(SteamGuardError):
    """Manifest file could not be read or written."""

    def __init__(self, message: str, *, path: str) -> None:
        super().__init__(message, path=path)
        self.path = path


class AccountNotFoundError(SteamGuardError):
    """No account with the given name exists in the manifest."""

    def __init__(self, account_name: str) -> None:
        super().__init__("Account not found", account_name=account_name)
        self.account_name = account_name


class DuplicateAccountError(SteamGuardError):
    """An account with the same name is already in the manifest."""

    def __init__(self, account_name: str) -> None:
        super().__init__("Account already exists", account_name=account_name)
        self.account_name = account_name
