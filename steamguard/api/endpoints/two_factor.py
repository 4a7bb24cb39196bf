"""ITwoFactorService endpoints."""

from typing import Any

from steamguard.api.http_client import HttpClient
from steamguard.models.account import Session

_SERVICE = "ITwoFactorService"
AUTHENTICATOR_TYPE_MOBILE = 1
STEAMGUARD_SCHEME_EMAIL = 2


def query_time(http: HttpClient) -> dict[str, Any]:
    """
    Query Steam's clock.

    Returns:
        Response with server_time and skew_tolerance_seconds (both may be strings).
    """
    body = http.request("POST", http.api_url(_SERVICE, "QueryTime"), data={"steamid": "0"})
    return body.get("response", {})


def add_authenticator(http: HttpClient, session: Session, device_id: str) -> dict[str, Any]:
    """
    Start linking a mobile authenticator.

    Returns:
        Response with status, shared_secret, identity_secret, revocation_code and friends.
    """
    body = http.request(
        "POST",
        http.api_url(_SERVICE, "AddAuthenticator"),
        params={"access_token": session.access_token},
        data={
            "steamid": session.steam_id,
            "authenticator_type": AUTHENTICATOR_TYPE_MOBILE,
            "device_identifier": device_id,
            "sms_phone_id": "1",
        },
    )
    return body.get("response", {})


def finalize_add_authenticator(
    http: HttpClient,
    session: Session,
    activation_code: str,
    authenticator_code: str,
    authenticator_time: int,
) -> dict[str, Any]:
    """
    Confirm a pending authenticator with the SMS or email activation code.

    Returns:
        Response with success, want_more and status.
    """
    body = http.request(
        "POST",
        http.api_url(_SERVICE, "FinalizeAddAuthenticator"),
        params={"access_token": session.access_token},
        data={
            "steamid": session.steam_id,
            "activation_code": activation_code,
            "authenticator_code": authenticator_code,
            "authenticator_time": authenticator_time,
        },
    )
    return body.get("response", {})


def remove_authenticator(http: HttpClient, session: Session, revocation_code: str) -> dict[str, Any]:
    """
    Remove the mobile authenticator from the account.

    Returns:
        Response with success and revocation_attempts_remaining.
    """
    body = http.request(
        "POST",
        http.api_url(_SERVICE, "RemoveAuthenticator"),
        params={"access_token": session.access_token},
        data={
            "steamid": session.steam_id,
            "revocation_code": revocation_code,
            "steamguard_scheme": STEAMGUARD_SCHEME_EMAIL,
        },
    )
    return body.get("response", {})
