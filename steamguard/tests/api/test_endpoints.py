from collections.abc import Callable

from steamguard.api.endpoints.auth import (
    begin_auth_session_via_credentials,
    begin_auth_session_via_qr,
    generate_access_token_for_app,
    get_password_rsa_public_key,
    poll_auth_session_status,
    update_auth_session_with_steam_guard_code,
)
from steamguard.api.endpoints.mobileconf import (
    get_confirmations,
    send_confirmation,
    send_multiple_confirmations,
)
from steamguard.api.endpoints.two_factor import (
    add_authenticator,
    finalize_add_authenticator,
    query_time,
    remove_authenticator,
)
from steamguard.api.http_client import HttpClient
from steamguard.models.account import Session
from steamguard.models.auth import GuardType
from steamguard.tests.fakes import STEAM_ID, MockTransport, form_data

SIGNED = {"p": "android:x", "a": STEAM_ID, "k": "sig=", "t": 1700000000, "m": "react", "tag": "allow"}


def test_query_time_posts_steamid_zero(http: HttpClient, mock_transport: MockTransport) -> None:
    mock_transport.add_response("/QueryTime", {"response": {"server_time": "1700000000"}})

    response = query_time(http)

    request = mock_transport.requests[0]
    assert request.method == "POST"
    assert request.url.path == "/ITwoFactorService/QueryTime/v1"
    assert form_data(request) == {"steamid": ["0"]}
    assert response == {"server_time": "1700000000"}


def test_get_password_rsa_public_key_sends_account_name(http: HttpClient, mock_transport: MockTransport) -> None:
    mock_transport.add_response("/GetPasswordRSAPublicKey", {"response": {"timestamp": "1"}})

    response = get_password_rsa_public_key(http, "gabe_test")

    request = mock_transport.requests[0]
    assert request.method == "GET"
    assert request.url.params["account_name"] == "gabe_test"
    assert response == {"timestamp": "1"}


def test_begin_auth_session_via_credentials_sends_mobile_device_details(
    http: HttpClient,
    mock_transport: MockTransport,
) -> None:
    mock_transport.add_response("/BeginAuthSessionViaCredentials", {"response": {"client_id": "1"}})

    begin_auth_session_via_credentials(http, "gabe_test", "ZW5j", 437000000)

    body = form_data(mock_transport.requests[0])
    assert body["account_name"] == ["gabe_test"]
    assert body["encrypted_password"] == ["ZW5j"]
    assert body["encryption_timestamp"] == ["437000000"]
    assert body["persistence"] == ["1"]
    assert body["platform_type"] == ["3"]
    assert body["website_id"] == ["Mobile"]
    assert body["device_friendly_name"] == ["steamguard-python"]


def test_begin_auth_session_via_qr(http: HttpClient, mock_transport: MockTransport) -> None:
    mock_transport.add_response("/BeginAuthSessionViaQR", {"response": {"challenge_url": "https://s.team/q/1/2"}})

    assert begin_auth_session_via_qr(http) == {"challenge_url": "https://s.team/q/1/2"}


def test_update_auth_session_with_steam_guard_code(http: HttpClient, mock_transport: MockTransport) -> None:
    mock_transport.add_response("/UpdateAuthSessionWithSteamGuardCode", {"response": {}})

    update_auth_session_with_steam_guard_code(http, "123", STEAM_ID, "2F9J5", GuardType.DEVICE_CODE)

    body = form_data(mock_transport.requests[0])
    assert body == {
        "client_id": ["123"],
        "steamid": [str(STEAM_ID)],
        "code": ["2F9J5"],
        "code_type": ["3"],
    }


def test_poll_auth_session_status(http: HttpClient, mock_transport: MockTransport) -> None:
    mock_transport.add_response("/PollAuthSessionStatus", {"response": {"refresh_token": "r"}})

    response = poll_auth_session_status(http, "123", "req")

    assert form_data(mock_transport.requests[0]) == {"client_id": ["123"], "request_id": ["req"]}
    assert response == {"refresh_token": "r"}


def test_generate_access_token_for_app(http: HttpClient, mock_transport: MockTransport) -> None:
    mock_transport.add_response("/GenerateAccessTokenForApp", {"response": {"access_token": "a"}})

    response = generate_access_token_for_app(http, "refresh", STEAM_ID)

    assert form_data(mock_transport.requests[0]) == {"refresh_token": ["refresh"], "steamid": [str(STEAM_ID)]}
    assert response == {"access_token": "a"}


def test_missing_response_wrapper_yields_empty_dict(http: HttpClient, mock_transport: MockTransport) -> None:
    mock_transport.add_response("/QueryTime", {})

    assert query_time(http) == {}


def test_authenticator_endpoints_pass_access_token_as_query(
    http: HttpClient,
    mock_transport: MockTransport,
    make_session: Callable[..., Session],
) -> None:
    session = make_session()
    mock_transport.add_response("/AddAuthenticator", {"response": {"status": 1}})
    mock_transport.add_response("/FinalizeAddAuthenticator", {"response": {"success": True}})
    mock_transport.add_response("/RemoveAuthenticator", {"response": {"success": True}})

    add_authenticator(http, session, "android:device")
    finalize_add_authenticator(http, session, "ABCDE", "2F9J5", 1700000000)
    remove_authenticator(http, session, "R12345")

    add, finalize, remove = mock_transport.requests
    for request in (add, finalize, remove):
        assert request.url.params["access_token"] == session.access_token

    assert form_data(add)["device_identifier"] == ["android:device"]
    assert form_data(add)["authenticator_type"] == ["1"]
    assert form_data(finalize)["authenticator_code"] == ["2F9J5"]
    assert form_data(finalize)["authenticator_time"] == ["1700000000"]
    assert form_data(remove)["revocation_code"] == ["R12345"]
    assert form_data(remove)["steamguard_scheme"] == ["2"]


def test_get_confirmations_sends_signed_query_and_cookies(
    http: HttpClient,
    mock_transport: MockTransport,
    make_session: Callable[..., Session],
) -> None:
    mock_transport.add_response("/mobileconf/getlist", {"success": True, "conf": []})

    body = get_confirmations(http, make_session(), {**SIGNED, "tag": "conf"})

    request = mock_transport.requests[0]
    assert request.method == "GET"
    assert request.url.params["tag"] == "conf"
    assert request.url.params["p"] == "android:x"
    assert "steamLoginSecure=" in request.headers["cookie"]
    assert body == {"success": True, "conf": []}


def test_send_confirmation_includes_id_and_nonce(
    http: HttpClient,
    mock_transport: MockTransport,
    make_session: Callable[..., Session],
) -> None:
    mock_transport.add_response("/mobileconf/ajaxop", {"success": True})

    send_confirmation(http, make_session(), SIGNED, "allow", 13146515234, "6732180981034516386")

    params = mock_transport.requests[0].url.params
    assert params["op"] == "allow"
    assert params["cid"] == "13146515234"
    assert params["ck"] == "6732180981034516386"
    assert params["k"] == "sig="


def test_send_multiple_confirmations_repeats_ids(
    http: HttpClient,
    mock_transport: MockTransport,
    make_session: Callable[..., Session],
) -> None:
    mock_transport.add_response("/mobileconf/multiajaxop", {"success": True})

    send_multiple_confirmations(http, make_session(), SIGNED, "allow", [(1, "a"), (2, "b")])

    request = mock_transport.requests[0]
    body = form_data(request)
    assert request.method == "POST"
    assert body["cid[]"] == ["1", "2"]
    assert body["ck[]"] == ["a", "b"]
    assert body["op"] == ["allow"]
