from collections.abc import Callable

import pytest

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
from steamguard.models.confirmation import Confirmation, ConfirmationDecision, ConfirmationKind
from steamguard.services.auth_service import AuthService
from steamguard.services.confirmation_service import ConfirmationService
from steamguard.services.time_sync import TimeSync
from steamguard.tests.fakes import (
    IDENTITY_SECRET,
    NOW,
    STEAM_ID,
    FakeClock,
    MockTransport,
    form_data,
    make_jwt,
)

LIST_ROUTE = "/mobileconf/getlist"
SINGLE_ROUTE = "/mobileconf/ajaxop"
MULTI_ROUTE = "/mobileconf/multiajaxop"
TOKEN_ROUTE = "/GenerateAccessTokenForApp"

CONFIRMATION_LIST = {
    "success": True,
    "conf": [
        {
            "type": 2,
            "type_name": "Trade Offer",
            "id": "13001",
            "creator_id": "5001",
            "nonce": "8842118741",
            "creation_time": 1699999000,
            "headline": "trade_partner",
            "summary": ["You will give up 1 item"],
        },
        {
            "type": 3,
            "type_name": "Market Listing",
            "id": "13002",
            "creator_id": "5002",
            "nonce": "8842118742",
            "creation_time": 1699999100,
            "headline": "Sell item",
            "summary": [],
        },
    ],
}


@pytest.fixture
def auth(http: HttpClient, time_sync: TimeSync, config: SteamGuardConfig, clock: FakeClock) -> AuthService:
    return AuthService(http, time_sync, config, clock)


@pytest.fixture
def service(
    http: HttpClient,
    auth: AuthService,
    time_sync: TimeSync,
    config: SteamGuardConfig,
) -> ConfirmationService:
    return ConfirmationService(http, auth, time_sync, config)


@pytest.fixture
def account(make_account: Callable[..., Account], make_session: Callable[..., Session]) -> Account:
    return make_account(session=make_session())


def make_confirmation(confirmation_id: int = 13001, fetched_at: int = NOW) -> Confirmation:
    return Confirmation.from_api(
        {"type": 2, "id": confirmation_id, "nonce": f"nonce{confirmation_id}"},
        fetched_at=fetched_at,
    )


def test_sign_binds_key_to_tag_and_time(service: ConfirmationService, account: Account) -> None:
    signed = service.sign(account, "allow", NOW)

    assert signed == {
        "p": account.device_id,
        "a": STEAM_ID,
        "k": generate_confirmation_key(IDENTITY_SECRET, "allow", NOW),
        "t": NOW,
        "m": "react",
        "tag": "allow",
    }


def test_list_confirmations(service: ConfirmationService, account: Account, mock_transport: MockTransport) -> None:
    mock_transport.add_response(LIST_ROUTE, CONFIRMATION_LIST)

    confirmations = service.list_confirmations(account)

    assert [c.id for c in confirmations] == [13001, 13002]
    assert [c.kind for c in confirmations] == [ConfirmationKind.TRADE, ConfirmationKind.MARKET_LISTING]
    assert confirmations[0].key == "8842118741"
    assert confirmations[0].description == "trade_partner: You will give up 1 item"
    assert all(c.fetched_at == NOW for c in confirmations)

    request = mock_transport.requests_to(LIST_ROUTE)[0]
    assert request.url.params["tag"] == "conf"
    assert request.url.params["t"] == str(NOW)
    assert request.url.params["k"] == generate_confirmation_key(IDENTITY_SECRET, "conf", NOW)
    assert request.url.params["p"] == account.device_id
    assert request.url.params["a"] == str(STEAM_ID)
    assert f"steamLoginSecure={STEAM_ID}%7C%7C" in request.headers["cookie"]


def test_empty_list(service: ConfirmationService, account: Account, mock_transport: MockTransport) -> None:
    mock_transport.add_response(LIST_ROUTE, {"success": True, "conf": []})

    assert service.list_confirmations(account) == []


def test_list_refreshes_session_on_needauth(
    service: ConfirmationService,
    account: Account,
    mock_transport: MockTransport,
) -> None:
    new_access = make_jwt(NOW + 7200)
    mock_transport.add_response(LIST_ROUTE, {"success": False, "needauth": True})
    mock_transport.add_response(LIST_ROUTE, CONFIRMATION_LIST)
    mock_transport.add_response(TOKEN_ROUTE, {"response": {"access_token": new_access}})

    confirmations = service.list_confirmations(account)

    assert len(confirmations) == 2
    assert len(mock_transport.requests_to(LIST_ROUTE)) == 2
    assert len(mock_transport.requests_to(TOKEN_ROUTE)) == 1
    assert account.session is not None
    assert account.session.access_token == new_access
    assert new_access in mock_transport.requests_to(LIST_ROUTE)[1].headers["cookie"]


def test_list_needauth_after_refresh_raises(
    service: ConfirmationService,
    account: Account,
    mock_transport: MockTransport,
) -> None:
    mock_transport.add_response(LIST_ROUTE, {"success": False, "needauth": True})
    mock_transport.add_response(TOKEN_ROUTE, {"response": {"access_token": make_jwt(NOW + 7200)}})

    with pytest.raises(SessionExpiredError):
        service.list_confirmations(account)

    assert len(mock_transport.requests_to(LIST_ROUTE)) == 2


def test_list_refreshes_expired_session_first(
    service: ConfirmationService,
    make_account: Callable[..., Account],
    make_session: Callable[..., Session],
    mock_transport: MockTransport,
) -> None:
    account = make_account(session=make_session(access_exp=NOW - 1))
    mock_transport.add_response(TOKEN_ROUTE, {"response": {"access_token": make_jwt(NOW + 3600)}})
    mock_transport.add_response(LIST_ROUTE, {"success": True, "conf": []})

    service.list_confirmations(account)

    assert [r.url.path for r in mock_transport.requests] == [
        "/IAuthenticationService/GenerateAccessTokenForApp/v1",
        "/mobileconf/getlist",
    ]


def test_list_without_session_raises(
    service: ConfirmationService,
    make_account: Callable[..., Account],
    mock_transport: MockTransport,
) -> None:
    with pytest.raises(SessionExpiredError):
        service.list_confirmations(make_account())

    assert mock_transport.requests == []


def test_list_failure_raises_api_error(
    service: ConfirmationService,
    account: Account,
    mock_transport: MockTransport,
) -> None:
    mock_transport.add_response(LIST_ROUTE, {"success": False, "message": "Oh nooooo!"})

    with pytest.raises(APIError, match="Oh nooooo!"):
        service.list_confirmations(account)


def test_malformed_list_raises_protocol_error(
    service: ConfirmationService,
    account: Account,
    mock_transport: MockTransport,
) -> None:
    mock_transport.add_response(LIST_ROUTE, {"success": True, "conf": [{"id": "13001"}]})

    with pytest.raises(ProtocolError):
        service.list_confirmations(account)


def test_out_of_range_creation_time_raises_protocol_error(
    service: ConfirmationService,
    account: Account,
    mock_transport: MockTransport,
) -> None:
    mock_transport.add_response(
        LIST_ROUTE,
        {"success": True, "conf": [{"type": 2, "id": "13001", "nonce": "1", "creation_time": 10**20}]},
    )

    with pytest.raises(ProtocolError):
        service.list_confirmations(account)


def test_accept_single_confirmation(
    service: ConfirmationService,
    account: Account,
    mock_transport: MockTransport,
) -> None:
    mock_transport.add_response(SINGLE_ROUTE, {"success": True})

    service.answer_confirmation(account, make_confirmation(), ConfirmationDecision.ACCEPT)

    params = mock_transport.requests_to(SINGLE_ROUTE)[0].url.params
    assert params["op"] == "allow"
    assert params["tag"] == "allow"
    assert params["cid"] == "13001"
    assert params["ck"] == "nonce13001"
    assert params["k"] == generate_confirmation_key(IDENTITY_SECRET, "allow", NOW)


def test_cancel_many_confirmations_in_one_request(
    service: ConfirmationService,
    account: Account,
    mock_transport: MockTransport,
) -> None:
    mock_transport.add_response(MULTI_ROUTE, {"success": True})
    confirmations = [make_confirmation(13001), make_confirmation(13002)]

    service.answer_confirmations(account, confirmations, ConfirmationDecision.CANCEL)

    requests = mock_transport.requests_to(MULTI_ROUTE)
    assert len(requests) == 1
    form = form_data(requests[0])
    assert form["op"] == ["cancel"]
    assert form["tag"] == ["cancel"]
    assert form["cid[]"] == ["13001", "13002"]
    assert form["ck[]"] == ["nonce13001", "nonce13002"]
    assert form["k"] == [generate_confirmation_key(IDENTITY_SECRET, "cancel", NOW)]


def test_decision_accepts_raw_op(service: ConfirmationService, account: Account, mock_transport: MockTransport) -> None:
    mock_transport.add_response(SINGLE_ROUTE, {"success": True})

    service.answer_confirmation(account, make_confirmation(), "cancel")  # type: ignore[arg-type]

    assert mock_transport.requests_to(SINGLE_ROUTE)[0].url.params["op"] == "cancel"


def test_answer_nothing_sends_nothing(
    service: ConfirmationService,
    account: Account,
    mock_transport: MockTransport,
) -> None:
    service.answer_confirmations(account, [], ConfirmationDecision.ACCEPT)

    assert mock_transport.requests == []


def test_answer_at_ttl_boundary_is_sent(
    service: ConfirmationService,
    account: Account,
    mock_transport: MockTransport,
    config: SteamGuardConfig,
    clock: FakeClock,
) -> None:
    mock_transport.add_response(SINGLE_ROUTE, {"success": True})
    clock.now += config.confirmation_ttl

    service.answer_confirmation(account, make_confirmation(), ConfirmationDecision.ACCEPT)

    assert len(mock_transport.requests_to(SINGLE_ROUTE)) == 1


def test_stale_confirmation_is_not_sent(
    service: ConfirmationService,
    account: Account,
    mock_transport: MockTransport,
    config: SteamGuardConfig,
    clock: FakeClock,
) -> None:
    clock.now += config.confirmation_ttl + 1

    with pytest.raises(StaleConfirmationError) as exc_info:
        service.answer_confirmations(
            account,
            [make_confirmation(13001, fetched_at=NOW + 30), make_confirmation(13002)],
            ConfirmationDecision.ACCEPT,
        )

    assert exc_info.value.confirmation_id == 13002
    assert exc_info.value.age == config.confirmation_ttl + 1
    assert mock_transport.requests == []


def test_signature_for_other_operation_is_refused(
    service: ConfirmationService,
    account: Account,
    mock_transport: MockTransport,
) -> None:
    signed = service.sign(account, "allow", NOW)

    with pytest.raises(SignatureMismatchError):
        service.send_signed(account, [make_confirmation()], ConfirmationDecision.CANCEL, signed)

    assert mock_transport.requests == []


def test_rejected_answer_raises_signature_mismatch(
    service: ConfirmationService,
    account: Account,
    mock_transport: MockTransport,
) -> None:
    mock_transport.add_response(SINGLE_ROUTE, {"success": False})

    with pytest.raises(SignatureMismatchError):
        service.answer_confirmation(account, make_confirmation(), ConfirmationDecision.ACCEPT)


def test_rejected_stale_answer_raises_stale(
    service: ConfirmationService,
    account: Account,
    mock_transport: MockTransport,
) -> None:
    mock_transport.add_response(SINGLE_ROUTE, {"success": False})
    old = make_confirmation(fetched_at=NOW - 120)

    with pytest.raises(StaleConfirmationError):
        service.send_signed(account, [old], ConfirmationDecision.ACCEPT, service.sign(account, "allow", NOW))

    assert len(mock_transport.requests_to(SINGLE_ROUTE)) == 1


def test_answer_refreshes_session_on_needauth(
    service: ConfirmationService,
    account: Account,
    mock_transport: MockTransport,
) -> None:
    mock_transport.add_response(SINGLE_ROUTE, {"success": False, "needauth": True})
    mock_transport.add_response(SINGLE_ROUTE, {"success": True})
    mock_transport.add_response(TOKEN_ROUTE, {"response": {"access_token": make_jwt(NOW + 7200)}})

    service.answer_confirmation(account, make_confirmation(), ConfirmationDecision.ACCEPT)

    assert len(mock_transport.requests_to(SINGLE_ROUTE)) == 2
