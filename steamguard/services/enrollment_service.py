"""
Linking and unlinking the mobile authenticator.
"""

from typing import Any

import structlog

from steamguard.api.endpoints.two_factor import (
    add_authenticator,
    finalize_add_authenticator,
    remove_authenticator,
)
from steamguard.api.http_client import HttpClient
from steamguard.crypto.codes import TIME_STEP, generate_device_id, generate_login_code
from steamguard.exceptions import AuthenticatorError, ProtocolError, RateLimitError
from steamguard.models.account import Account, Session
from steamguard.models.auth import EResult
from steamguard.services.auth_service import AuthService
from steamguard.services.time_sync import TimeSync

logger = structlog.get_logger(__name__)

# Steam asks for codes from consecutive time steps until it is satisfied.
MAX_FINALIZE_ATTEMPTS = 30


class EnrollmentService:
    """
    Adds, finalizes and removes the mobile authenticator of an account.

    Adding returns an Account that is not yet fully enrolled; persist it
    before finalizing, since its revocation code is the only way back.
    """

    def __init__(self, http: HttpClient, auth: AuthService, time_sync: TimeSync) -> None:
        self._http = http
        self._auth = auth
        self._time_sync = time_sync

    def add_authenticator(
        self,
        account_name: str,
        session: Session,
        device_id: str | None = None,
    ) -> Account:
        """
        Ask Steam to generate authenticator secrets for a logged in account.

        Args:
            account_name: Steam login name.
            session: Session of the account, typically from an email-guarded login.
            device_id: Device identifier; derived from the steam id by default.

        Returns:
            New Account holding the secrets, with `fully_enrolled` False.

        Raises:
            AuthenticatorError: If the account already has an authenticator or
                Steam refused for another reason.
            RateLimitError: If Steam throttles enrollment.
        """
        device_id = device_id or generate_device_id(session.steam_id)
        response = add_authenticator(self._http, session, device_id)
        status = _status(response)

        if status == EResult.DUPLICATE_REQUEST:
            msg = "Account already has an authenticator linked"
            raise AuthenticatorError(msg, status=status)
        if status == EResult.RATE_LIMIT_EXCEEDED:
            raise RateLimitError(code=status)
        if status != EResult.OK:
            msg = "Steam refused to add an authenticator"
            raise AuthenticatorError(msg, status=status)

        try:
            account = Account.from_dict(
                {
                    **response,
                    "account_name": response.get("account_name") or account_name,
                    "steam_id": session.steam_id,
                    "device_id": device_id,
                    "fully_enrolled": False,
                }
            )
        except (KeyError, TypeError, ValueError) as e:
            msg = "Malformed authenticator response"
            raise ProtocolError(msg) from e

        account.session = session
        logger.info("Authenticator added, awaiting finalization", account_name=account.account_name)
        return account

    def finalize_authenticator(self, account: Account, activation_code: str) -> None:
        """
        Confirm a new authenticator with the code Steam sent by SMS or email.

        Raises:
            AuthenticatorError: If the activation code is wrong or Steam never
                accepted the generated codes.
        """
        session = self._auth.ensure_session(account)
        server_time = self._time_sync.now()

        for _ in range(MAX_FINALIZE_ATTEMPTS):
            response = finalize_add_authenticator(
                self._http,
                session,
                activation_code,
                generate_login_code(account.shared_secret, server_time),
                server_time,
            )
            status = _status(response)

            if status == EResult.TWO_FACTOR_ACTIVATION_CODE_MISMATCH:
                msg = "Activation code rejected"
                raise AuthenticatorError(msg, status=status)
            if response.get("want_more") or status == EResult.TWO_FACTOR_CODE_MISMATCH:
                server_time += TIME_STEP
                continue
            if response.get("success"):
                account.fully_enrolled = True
                logger.info("Authenticator finalized", account_name=account.account_name)
                return

            msg = "Steam refused to finalize the authenticator"
            raise AuthenticatorError(msg, status=status)

        msg = "Steam did not accept the generated codes"
        raise AuthenticatorError(msg, status=EResult.TWO_FACTOR_CODE_MISMATCH)

    def remove_authenticator(self, account: Account, revocation_code: str | None = None) -> None:
        """
        Unlink the authenticator from the Steam account.

        The Account is left in the manifest; removing it is up to the caller.

        Raises:
            AuthenticatorError: If no revocation code is known or Steam rejected it.
        """
        code = revocation_code or account.revocation_code
        if not code:
            msg = "Revocation code required"
            raise AuthenticatorError(msg)

        response = self._auth.call_with_session(
            account,
            lambda session: remove_authenticator(self._http, session, code),
        )
        if not response.get("success"):
            remaining = response.get("revocation_attempts_remaining")
            msg = f"Revocation code rejected, {remaining} attempts remaining"
            raise AuthenticatorError(msg)

        account.fully_enrolled = False
        logger.info("Authenticator removed", account_name=account.account_name)


def _status(response: dict[str, Any]) -> int:
    try:
        return int(response.get("status") or 0)
    except (TypeError, ValueError) as e:
        msg = "Malformed authenticator status"
        raise ProtocolError(msg) from e
