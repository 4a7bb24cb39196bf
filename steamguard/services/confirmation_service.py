"""
Mobile confirmation engine.

Lists pending trade and market confirmations and answers them with
signatures derived from the account's identity secret.
"""

from collections.abc import Sequence
from typing import Any

import structlog

from steamguard.api.endpoints.mobileconf import (
    get_confirmations,
    send_confirmation,
    send_multiple_confirmations,
)
from steamguard.api.http_client import HttpClient
from steamguard.config import SteamGuardConfig
from steamguard.crypto.codes import generate_confirmation_key
from steamguard.exceptions import (
    APIError,
    ProtocolError,
    SessionExpiredError,
    SignatureMismatchError,
    StaleConfirmationError,
)
from steamguard.models.account import Account, Session
from steamguard.models.auth import EResult
from steamguard.models.confirmation import Confirmation, ConfirmationDecision
from steamguard.services.auth_service import AuthService
from steamguard.services.time_sync import TimeSync

logger = structlog.get_logger(__name__)

LIST_TAG = "conf"
_MOBILE_PLATFORM = "react"


class ConfirmationService:
    """
    Lists and answers mobile confirmations.

    Answers are only sent while the confirmation is fresh: once
    `config.confirmation_ttl` seconds of Steam time have passed since the poll
    that returned it, it must be listed again.
    """

    def __init__(
        self,
        http: HttpClient,
        auth: AuthService,
        time_sync: TimeSync,
        config: SteamGuardConfig | None = None,
    ) -> None:
        """
        Args:
            http: HTTP client for steamcommunity.com requests.
            auth: Session manager used to authenticate and refresh.
            time_sync: Steam clock used for signatures and freshness.
            config: Client configuration. Defaults to the HTTP client's.
        """
        self._http = http
        self._auth = auth
        self._time_sync = time_sync
        self._config = config or http.config

    def sign(self, account: Account, tag: str, server_time: int) -> dict[str, Any]:
        """
        Build the signed query parameters for a mobileconf request.

        Args:
            account: Account whose identity secret signs the request.
            tag: Operation the signature is bound to.
            server_time: Steam time included in the signature.
        """
        return {
            "p": account.device_id,
            "a": account.steam_id,
            "k": generate_confirmation_key(account.identity_secret, tag, server_time),
            "t": server_time,
            "m": _MOBILE_PLATFORM,
            "tag": tag,
        }

    def list_confirmations(self, account: Account) -> list[Confirmation]:
        """
        Fetch the account's pending confirmations.

        Raises:
            SessionExpiredError: If Steam asks for a new login and refresh failed.
            APIError: If Steam reports a failure.
        """

        def fetch(session: Session) -> tuple[int, dict[str, Any]]:
            now = self._time_sync.now()
            body = get_confirmations(self._http, session, self.sign(account, LIST_TAG, now))
            _raise_if_needauth(body)
            return now, body

        fetched_at, body = self._auth.call_with_session(account, fetch)

        if not body.get("success"):
            msg = body.get("message") or "Failed to list confirmations"
            raise APIError(msg, code=EResult.FAIL, endpoint="mobileconf/getlist")

        try:
            confirmations = [
                Confirmation.from_api(item, fetched_at=fetched_at) for item in body.get("conf") or []
            ]
        except (AttributeError, KeyError, TypeError, ValueError, OverflowError, OSError) as e:
            msg = "Malformed confirmation list"
            raise ProtocolError(msg) from e

        logger.info(
            "Confirmations listed",
            account_name=account.account_name,
            count=len(confirmations),
        )
        return confirmations

    def answer_confirmation(
        self,
        account: Account,
        confirmation: Confirmation,
        decision: ConfirmationDecision,
    ) -> None:
        """
        Accept or cancel one confirmation.

        Raises:
            StaleConfirmationError: If the confirmation is too old to answer.
            SignatureMismatchError: If Steam rejected the answer.
        """
        self.answer_confirmations(account, [confirmation], decision)

    def answer_confirmations(
        self,
        account: Account,
        confirmations: Sequence[Confirmation],
        decision: ConfirmationDecision,
    ) -> None:
        """
        Accept or cancel several confirmations with a single request.

        Raises:
            StaleConfirmationError: If any confirmation is too old to answer.
                Nothing is sent in that case.
            SignatureMismatchError: If Steam rejected the answer.
        """
        if not confirmations:
            return

        decision = ConfirmationDecision(decision)
        now = self._time_sync.now()
        self._check_fresh(confirmations, now)
        self.send_signed(account, confirmations, decision, self.sign(account, decision.value, now))

    def send_signed(
        self,
        account: Account,
        confirmations: Sequence[Confirmation],
        decision: ConfirmationDecision,
        signed: dict[str, Any],
    ) -> None:
        """
        Send an answer with parameters signed by the caller.

        The signature tag must equal the operation; Steam would reject it
        anyway, so a mismatch is refused before anything is sent.

        Raises:
            SignatureMismatchError: If the tag does not match the decision, or
                Steam rejected the signature.
            StaleConfirmationError: If Steam rejected the answer after the
                confirmations went stale.
        """
        op = ConfirmationDecision(decision).value
        if signed.get("tag") != op:
            msg = "Signature tag does not match the operation"
            raise SignatureMismatchError(msg, tag=signed.get("tag"), op=op)

        def send(session: Session) -> dict[str, Any]:
            if len(confirmations) == 1:
                body = send_confirmation(
                    self._http,
                    session,
                    signed,
                    op,
                    confirmations[0].id,
                    confirmations[0].key,
                )
            else:
                body = send_multiple_confirmations(
                    self._http,
                    session,
                    signed,
                    op,
                    [(c.id, c.key) for c in confirmations],
                )
            _raise_if_needauth(body)
            return body

        body = self._auth.call_with_session(account, send)

        if not body.get("success"):
            self._check_fresh(confirmations, self._time_sync.now())
            msg = body.get("message") or "Steam rejected the confirmation signature"
            raise SignatureMismatchError(msg, op=op, count=len(confirmations))

        logger.info(
            "Confirmations answered",
            account_name=account.account_name,
            op=op,
            count=len(confirmations),
        )

    def _check_fresh(self, confirmations: Sequence[Confirmation], now: int) -> None:
        for confirmation in confirmations:
            age = now - confirmation.fetched_at
            if age > self._config.confirmation_ttl:
                msg = "Confirmation is stale, list confirmations again"
                raise StaleConfirmationError(msg, confirmation_id=confirmation.id, age=float(age))


def _raise_if_needauth(body: dict[str, Any]) -> None:
    if body.get("needauth"):
        msg = "Steam community session expired"
        raise SessionExpiredError(msg)
