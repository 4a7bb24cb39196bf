from collections.abc import Callable, Iterator

import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

from steamguard.api.http_client import HttpClient
from steamguard.config import SteamGuardConfig
from steamguard.models.account import Account, Session
from steamguard.services.time_sync import TimeSync
from steamguard.tests.fakes import (
    ACCOUNT_NAME,
    IDENTITY_SECRET,
    NOW,
    SHARED_SECRET,
    STEAM_ID,
    FakeClock,
    MockTransport,
    make_jwt,
)


@pytest.fixture
def config() -> SteamGuardConfig:
    return SteamGuardConfig()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mock_transport() -> MockTransport:
    return MockTransport()


@pytest.fixture
def http(config: SteamGuardConfig, mock_transport: MockTransport) -> Iterator[HttpClient]:
    client = HttpClient(config, transport=mock_transport)
    yield client
    client.close()


@pytest.fixture
def time_sync(http: HttpClient, clock: FakeClock) -> TimeSync:
    """Time sync pinned to the fake clock (zero offset)."""
    sync = TimeSync(http, clock)
    sync.set_offset(0)
    return sync


@pytest.fixture
def make_session() -> Callable[..., Session]:
    def _make(
        access_exp: int = NOW + 3600,
        refresh_exp: int = NOW + 86400 * 30,
        steam_id: int = STEAM_ID,
    ) -> Session:
        return Session(
            steam_id=steam_id,
            access_token=make_jwt(access_exp, steam_id),
            refresh_token=make_jwt(refresh_exp, steam_id),
            session_id="0123456789abcdef01234567",
        )

    return _make


@pytest.fixture
def make_account() -> Callable[..., Account]:
    def _make(
        account_name: str = ACCOUNT_NAME,
        steam_id: int = STEAM_ID,
        session: Session | None = None,
    ) -> Account:
        return Account(
            account_name=account_name,
            steam_id=steam_id,
            shared_secret=SHARED_SECRET,
            identity_secret=IDENTITY_SECRET,
            revocation_code="R12345",
            serial_number="1234567890",
            session=session,
        )

    return _make


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def rsa_key_response(rsa_private_key: rsa.RSAPrivateKey) -> dict[str, str]:
    """GetPasswordRSAPublicKey body for the test key."""
    numbers = rsa_private_key.public_key().public_numbers()
    return {
        "publickey_mod": format(numbers.n, "x"),
        "publickey_exp": format(numbers.e, "x"),
        "timestamp": "437000000",
    }
