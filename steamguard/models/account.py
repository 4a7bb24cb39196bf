"""
Account and session domain models.

Accounts serialize to the key layout of Steam Desktop Authenticator
`.maFile` documents so existing files can be imported unchanged.
"""

import base64
import binascii
import json
from dataclasses import dataclass, field
from typing import Any

from steamguard.crypto.codes import generate_device_id

_IMMUTABLE_SECRETS = frozenset({"shared_secret", "identity_secret"})
_MOBILE_CLIENT_VERSION = "777777 3.6.1"


def decode_jwt_payload(token: str) -> dict[str, Any]:
    """
    Decode the payload of a Steam JWT without verifying its signature.

    Returns:
        Payload claims, or an empty dict if the token is not a JWT.
    """
    parts = token.split(".")
    if len(parts) != 3:
        return {}
    try:
        raw = base64.urlsafe_b64decode(parts[1] + "=" * (-len(parts[1]) % 4))
        payload = json.loads(raw)
    except (binascii.Error, ValueError):
        return {}
    return payload if isinstance(payload, dict) else {}


@dataclass(frozen=True, kw_only=True)
class Session:
    """
    Authenticated state of one account.

    A Session never references the Account that owns it; callers pass the
    account explicitly wherever the owner matters.

    Attributes:
        steam_id: Steam id64 the tokens were issued for.
        access_token: JWT sent in the steamLoginSecure cookie.
        refresh_token: JWT used to mint new access tokens.
        session_id: Value of the `sessionid` cookie.
    """

    steam_id: int
    access_token: str = field(repr=False)
    refresh_token: str = field(repr=False)
    session_id: str = field(repr=False)

    @property
    def access_token_expires_at(self) -> int | None:
        return decode_jwt_payload(self.access_token).get("exp")

    @property
    def refresh_token_expires_at(self) -> int | None:
        return decode_jwt_payload(self.refresh_token).get("exp")

    def is_access_token_expired(self, now: int) -> bool:
        """A missing token is expired; one without a readable expiry is left for the server to judge."""
        if not self.access_token:
            return True
        exp = self.access_token_expires_at
        return exp is not None and exp <= now

    def is_refresh_token_expired(self, now: int) -> bool:
        if not self.refresh_token:
            return True
        exp = self.refresh_token_expires_at
        return exp is not None and exp <= now

    def with_access_token(self, access_token: str, refresh_token: str | None = None) -> "Session":
        return Session(
            steam_id=self.steam_id,
            access_token=access_token,
            refresh_token=refresh_token or self.refresh_token,
            session_id=self.session_id,
        )

    def cookies(self) -> dict[str, str]:
        """Cookies steamcommunity.com expects from the mobile app."""
        return {
            "steamLoginSecure": f"{self.steam_id}%7C%7C{self.access_token}",
            "sessionid": self.session_id,
            "mobileClient": "android",
            "mobileClientVersion": _MOBILE_CLIENT_VERSION,
            "Steam_Language": "english",
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "SteamID": self.steam_id,
            "AccessToken": self.access_token,
            "RefreshToken": self.refresh_token,
            "SessionID": self.session_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Session":
        return cls(
            steam_id=int(data["SteamID"]),
            access_token=data.get("AccessToken") or "",
            refresh_token=data.get("RefreshToken") or "",
            session_id=data.get("SessionID") or "",
        )


@dataclass(kw_only=True)
class Account:
    """
    One enrolled Steam identity.

    `shared_secret` and `identity_secret` can only be set once; a
    re-enrolled authenticator is a new Account.

    Attributes:
        account_name: Steam login name, unique within a manifest.
        steam_id: Steam id64.
        shared_secret: Key for login codes.
        identity_secret: Key for confirmation signatures.
        device_id: Identifier sent with every confirmation request.
        revocation_code: Code that removes the authenticator from the account.
        uri: otpauth URI returned at enrollment.
        serial_number: Authenticator serial number.
        token_gid: Authenticator token gid.
        secret_1: Additional enrollment secret.
        server_time: Server time at enrollment.
        fully_enrolled: Whether enrollment was finalized.
        session: Current session, None when logged out.
    """

    account_name: str
    steam_id: int
    shared_secret: bytes = field(repr=False)
    identity_secret: bytes = field(repr=False)
    device_id: str = ""
    revocation_code: str = field(default="", repr=False)
    uri: str = field(default="", repr=False)
    serial_number: str = ""
    token_gid: str = ""
    secret_1: bytes = field(default=b"", repr=False)
    server_time: int = 0
    fully_enrolled: bool = True
    session: Session | None = None

    def __post_init__(self) -> None:
        if not self.device_id:
            self.device_id = generate_device_id(self.steam_id)

    def __setattr__(self, name: str, value: Any) -> None:
        if name in _IMMUTABLE_SECRETS and name in self.__dict__:
            msg = f"{name} cannot be changed once set"
            raise AttributeError(msg)
        super().__setattr__(name, value)

    def to_dict(self) -> dict[str, Any]:
        return {
            "account_name": self.account_name,
            "steam_id": self.steam_id,
            "shared_secret": _b64(self.shared_secret),
            "identity_secret": _b64(self.identity_secret),
            "device_id": self.device_id,
            "revocation_code": self.revocation_code,
            "uri": self.uri,
            "serial_number": self.serial_number,
            "token_gid": self.token_gid,
            "secret_1": _b64(self.secret_1),
            "server_time": self.server_time,
            "fully_enrolled": self.fully_enrolled,
            "Session": self.session.to_dict() if self.session is not None else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Account":
        """
        Build an Account from its serialized form or from a legacy maFile.

        Raises:
            KeyError: If a required field is missing.
            ValueError: If a field is malformed.
        """
        session_data = data.get("Session")
        session = Session.from_dict(session_data) if session_data else None

        steam_id = data.get("steam_id")
        if steam_id is None:
            if session is None:
                msg = "steam_id missing and no session to recover it from"
                raise KeyError(msg)
            steam_id = session.steam_id

        return cls(
            account_name=data["account_name"],
            steam_id=int(steam_id),
            shared_secret=_unb64(data["shared_secret"]),
            identity_secret=_unb64(data.get("identity_secret") or ""),
            device_id=data.get("device_id") or "",
            revocation_code=data.get("revocation_code") or "",
            uri=data.get("uri") or "",
            serial_number=str(data.get("serial_number") or ""),
            token_gid=data.get("token_gid") or "",
            secret_1=_unb64(data.get("secret_1") or ""),
            server_time=int(data.get("server_time") or 0),
            fully_enrolled=bool(data.get("fully_enrolled", True)),
            session=session,
        )


def _b64(value: bytes) -> str:
    return base64.b64encode(value).decode("ascii")


def _unb64(value: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except binascii.Error as e:
        msg = "Invalid base64 secret"
        raise ValueError(msg) from e
