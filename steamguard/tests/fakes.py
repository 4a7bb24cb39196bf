import base64
import json
from typing import Any
from urllib.parse import parse_qs

import httpx

# Reference pair: this secret at REFERENCE_TIME produces REFERENCE_CODE.
SHARED_SECRET_B64 = "zvIayp3JPvtvX/QGHqsqKBk/44s="
SHARED_SECRET = base64.b64decode(SHARED_SECRET_B64)
IDENTITY_SECRET = base64.b64decode("UGbsJaCsy1uO7zsl/OoRVmfGJlQ=")
REFERENCE_TIME = 1616374841
REFERENCE_CODE = "2F9J5"

STEAM_ID = 76561198000000001
ACCOUNT_NAME = "gabe_test"
NOW = 1_700_000_000

# Steam Desktop Authenticator maFile with a pre-JWT session.
LEGACY_MAFILE = {
    "shared_secret": SHARED_SECRET_B64,
    "serial_number": "3288880447391231455",
    "revocation_code": "R98765",
    "uri": "otpauth://totp/Steam:gabe_test?secret=ABCDEFGH&issuer=Steam",
    "server_time": 1616374000,
    "account_name": ACCOUNT_NAME,
    "token_gid": "2c5d3e8e6f1a8b0e",
    "identity_secret": "UGbsJaCsy1uO7zsl/OoRVmfGJlQ=",
    "secret_1": "c2VjcmV0XzE=",
    "status": 1,
    "device_id": "android:00000000-1111-2222-3333-444444444444",
    "fully_enrolled": True,
    "Session": {
        "SessionID": "abcdef",
        "SteamLogin": "76561198000000001%7C%7Cdeadbeef",
        "SteamID": STEAM_ID,
    },
}


class FakeClock:
    """Clock whose sleeps advance time instantly."""

    def __init__(self, now: float = NOW) -> None:
        self.now = now
        self.sleeps: list[float] = []

    def time(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class MockTransport(httpx.BaseTransport):
    """
    Mock transport routing requests by URL path fragment.

    Responses for a route are returned in order; the last one repeats.
    Unrouted requests get a 500.
    """

    def __init__(self) -> None:
        self._routes: dict[str, list[dict[str, Any]]] = {}
        self.requests: list[httpx.Request] = []

    def add_response(
        self,
        route: str,
        json_data: Any = None,
        *,
        status_code: int = httpx.codes.OK,
        headers: dict[str, str] | None = None,
        content: bytes | None = None,
    ) -> None:
        """Queue a response for requests whose path contains `route`."""
        if content is None:
            content = json.dumps(json_data if json_data is not None else {}).encode()
        self._routes.setdefault(route, []).append(
            {"status_code": status_code, "headers": headers or {}, "content": content}
        )

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for route, responses in self._routes.items():
            if route in request.url.path:
                resp_data = responses.pop(0) if len(responses) > 1 else responses[0]
                return httpx.Response(
                    resp_data["status_code"],
                    headers=resp_data["headers"],
                    content=resp_data["content"],
                )
        return httpx.Response(
            httpx.codes.INTERNAL_SERVER_ERROR,
            content=b'{"error": "No mock response"}',
        )

    def requests_to(self, route: str) -> list[httpx.Request]:
        return [r for r in self.requests if route in r.url.path]


def make_jwt(exp: int, sub: int = STEAM_ID) -> str:
    """Unsigned JWT carrying only the claims the library reads."""

    def encode(part: dict[str, Any]) -> str:
        return base64.urlsafe_b64encode(json.dumps(part).encode()).rstrip(b"=").decode()

    header = encode({"alg": "EdDSA", "typ": "JWT"})
    payload = encode({"sub": str(sub), "exp": exp})
    return f"{header}.{payload}.c2lnbmF0dXJl"


def form_data(request: httpx.Request) -> dict[str, list[str]]:
    """Decode an urlencoded request body."""
    return parse_qs(request.content.decode())


def login_session_response(*guard_types: int, steam_id: int = STEAM_ID) -> dict[str, Any]:
    """BeginAuthSessionViaCredentials body offering the given guard types."""
    return {
        "response": {
            "client_id": "1111111111",
            "request_id": "cmVxdWVzdA==",
            "steamid": str(steam_id),
            "interval": 5,
            "allowed_confirmations": [{"confirmation_type": g} for g in guard_types],
        }
    }


def token_response(
    access_exp: int = NOW + 3600,
    refresh_exp: int = NOW + 86400 * 30,
    steam_id: int = STEAM_ID,
) -> dict[str, Any]:
    """PollAuthSessionStatus body of an approved login."""
    return {
        "response": {
            "access_token": make_jwt(access_exp, steam_id),
            "refresh_token": make_jwt(refresh_exp, steam_id),
            "account_name": ACCOUNT_NAME,
        }
    }
