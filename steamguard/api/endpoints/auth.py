"""IAuthenticationService endpoints."""

from typing import Any

from steamguard.api.http_client import HttpClient
from steamguard.models.auth import GuardType

_SERVICE = "IAuthenticationService"
PLATFORM_MOBILE_APP = 3
PERSISTENCE_PERSISTENT = 1


def get_password_rsa_public_key(http: HttpClient, account_name: str) -> dict[str, Any]:
    """
    Fetch the RSA key the next credential submission must be encrypted with.

    Returns:
        Response with publickey_mod, publickey_exp and timestamp.
    """
    body = http.request(
        "GET",
        http.api_url(_SERVICE, "GetPasswordRSAPublicKey"),
        params={"account_name": account_name},
    )
    return body.get("response", {})


def _device_details(http: HttpClient) -> dict[str, Any]:
    return {
        "device_friendly_name": http.config.device_friendly_name,
        "platform_type": PLATFORM_MOBILE_APP,
    }


def begin_auth_session_via_credentials(
    http: HttpClient,
    account_name: str,
    encrypted_password: str,
    encryption_timestamp: int,
) -> dict[str, Any]:
    """
    Submit RSA encrypted credentials.

    Returns:
        Response with client_id, request_id, steamid, interval and allowed_confirmations.
    """
    body = http.request(
        "POST",
        http.api_url(_SERVICE, "BeginAuthSessionViaCredentials"),
        data={
            "account_name": account_name,
            "encrypted_password": encrypted_password,
            "encryption_timestamp": encryption_timestamp,
            "remember_login": "true",
            "persistence": PERSISTENCE_PERSISTENT,
            "website_id": http.config.website_id,
            **_device_details(http),
        },
    )
    return body.get("response", {})


def begin_auth_session_via_qr(http: HttpClient) -> dict[str, Any]:
    """
    Register a QR login session.

    Returns:
        Response with client_id, request_id, challenge_url and interval.
    """
    body = http.request(
        "POST",
        http.api_url(_SERVICE, "BeginAuthSessionViaQR"),
        data={
            "website_id": http.config.website_id,
            **_device_details(http),
        },
    )
    return body.get("response", {})


def update_auth_session_with_steam_guard_code(
    http: HttpClient,
    client_id: str,
    steam_id: int,
    code: str,
    code_type: GuardType,
) -> None:
    """Submit a device or email guard code for a pending login session."""
    http.request(
        "POST",
        http.api_url(_SERVICE, "UpdateAuthSessionWithSteamGuardCode"),
        data={
            "client_id": client_id,
            "steamid": steam_id,
            "code": code,
            "code_type": int(code_type),
        },
    )


def poll_auth_session_status(http: HttpClient, client_id: str, request_id: str) -> dict[str, Any]:
    """
    Poll a pending login session.

    Returns:
        Response with access_token and refresh_token once approved, and
        possibly new_client_id / new_challenge_url for QR sessions.
    """
    body = http.request(
        "POST",
        http.api_url(_SERVICE, "PollAuthSessionStatus"),
        data={"client_id": client_id, "request_id": request_id},
    )
    return body.get("response", {})


def generate_access_token_for_app(
    http: HttpClient,
    refresh_token: str,
    steam_id: int,
) -> dict[str, Any]:
    """
    Mint a new access token from a refresh token.

    Returns:
        Response with access_token and, when Steam rotates it, refresh_token.
    """
    body = http.request(
        "POST",
        http.api_url(_SERVICE, "GenerateAccessTokenForApp"),
        data={"refresh_token": refresh_token, "steamid": steam_id},
    )
    return body.get("response", {})
