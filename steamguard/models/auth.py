"""
Authentication-related domain models.
"""

from dataclasses import dataclass, field
from enum import IntEnum, StrEnum


class LoginState(StrEnum):
    """Login state of one account."""

    LOGGED_OUT = "logged_out"
    AWAITING_TWO_FACTOR = "awaiting_two_factor"
    AWAITING_EMAIL_CODE = "awaiting_email_code"
    LOGGED_IN = "logged_in"
    EXPIRED = "expired"


class GuardType(IntEnum):
    """Steam `EAuthSessionGuardType` values."""

    UNKNOWN = 0
    NONE = 1
    EMAIL_CODE = 2
    DEVICE_CODE = 3
    DEVICE_CONFIRMATION = 4
    EMAIL_CONFIRMATION = 5
    MACHINE_TOKEN = 6

    @classmethod
    def from_raw(cls, value: int) -> "GuardType":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class EResult(IntEnum):
    """Subset of Steam `EResult` codes the library reacts to."""

    OK = 1
    FAIL = 2
    INVALID_PASSWORD = 5
    INVALID_PARAM = 8
    FILE_NOT_FOUND = 9
    ACCESS_DENIED = 15
    EXPIRED = 27
    DUPLICATE_REQUEST = 29
    INVALID_LOGIN_AUTH_CODE = 65
    EXPIRED_LOGIN_AUTH_CODE = 71
    RATE_LIMIT_EXCEEDED = 84
    ACCOUNT_LOGIN_DENIED_THROTTLE = 87
    TWO_FACTOR_CODE_MISMATCH = 88
    TWO_FACTOR_ACTIVATION_CODE_MISMATCH = 89
    NEED_CAPTCHA = 101


class QrStatus(StrEnum):
    """Outcome of polling a QR login session."""

    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


@dataclass(frozen=True, kw_only=True)
class RsaKey:
    """
    Login public key, valid for a single credential submission.

    Attributes:
        modulus: RSA modulus.
        exponent: RSA public exponent.
        timestamp: Key timestamp echoed back as `encryption_timestamp`.
    """

    modulus: int
    exponent: int
    timestamp: int


@dataclass(frozen=True, kw_only=True)
class AuthSession:
    """
    A login session started on Steam, pending guard input or approval.

    Attributes:
        client_id: Steam login client id.
        request_id: Opaque request id used when polling.
        steam_id: Account steam id (0 for QR sessions until approved).
        interval: Poll interval suggested by Steam, in seconds.
        guard_types: Guard confirmations Steam accepts for this session.
    """

    client_id: str
    request_id: str
    steam_id: int = 0
    interval: float = 5.0
    guard_types: frozenset[GuardType] = field(default_factory=frozenset)


@dataclass(kw_only=True)
class QrChallenge:
    """
    A QR login in progress.

    The challenge URL is what the external collaborator renders as a QR code;
    Steam may rotate it while polling.
    """

    session: AuthSession
    challenge_url: str
    started_at: float
