"""
Domain models for steamguard.
"""

from steamguard.models.account import Account, Session, decode_jwt_payload
from steamguard.models.auth import (
    AuthSession,
    EResult,
    GuardType,
    LoginState,
    QrChallenge,
    QrStatus,
    RsaKey,
)
from steamguard.models.confirmation import (
    Confirmation,
    ConfirmationDecision,
    ConfirmationKind,
)
from steamguard.models.manifest import EncryptionParams, Manifest

__all__ = [
    # Accounts
    "Account",
    "Session",
    "decode_jwt_payload",
    # Auth
    "AuthSession",
    "EResult",
    "GuardType",
    "LoginState",
    "QrChallenge",
    "QrStatus",
    "RsaKey",
    # Confirmations
    "Confirmation",
    "ConfirmationDecision",
    "ConfirmationKind",
    # Manifest
    "EncryptionParams",
    "Manifest",
]
