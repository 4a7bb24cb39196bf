"""steamcommunity.com mobile confirmation endpoints."""

from typing import Any

from steamguard.api.http_client import HttpClient
from steamguard.models.account import Session


def get_confirmations(http: HttpClient, session: Session, signed: dict[str, Any]) -> dict[str, Any]:
    """
    List pending confirmations.

    Args:
        http: Configured HTTP client.
        session: Session of the account.
        signed: Signed query parameters (p, a, k, t, m, tag).

    Returns:
        Body with success, needauth and conf.
    """
    return http.request(
        "GET",
        http.community_url("mobileconf/getlist"),
        params=signed,
        session=session,
    )


def send_confirmation(
    http: HttpClient,
    session: Session,
    signed: dict[str, Any],
    op: str,
    confirmation_id: int,
    confirmation_key: str,
) -> dict[str, Any]:
    """Answer one confirmation. Returns body with success and optional message."""
    return http.request(
        "GET",
        http.community_url("mobileconf/ajaxop"),
        params={**signed, "op": op, "cid": confirmation_id, "ck": confirmation_key},
        session=session,
    )


def send_multiple_confirmations(
    http: HttpClient,
    session: Session,
    signed: dict[str, Any],
    op: str,
    confirmations: list[tuple[int, str]],
) -> dict[str, Any]:
    """Answer several confirmations with one request. Returns body with success."""
    return http.request(
        "POST",
        http.community_url("mobileconf/multiajaxop"),
        data={
            **signed,
            "op": op,
            "cid[]": [cid for cid, _ in confirmations],
            "ck[]": [ck for _, ck in confirmations],
        },
        session=session,
    )
