"""
Steam Guard client configuration.
"""

from dataclasses import dataclass


@dataclass(frozen=True, kw_only=True)
class SteamGuardConfig:
    """
    Attributes:
        api_url: Base URL for the Steam Web API.
        community_url: Base URL for steamcommunity.com (mobile confirmations).
        timeout: Request timeout in seconds, applied to every network call.
        user_agent: User-Agent header value.
        website_id: Website identifier sent when starting a login session.
        device_friendly_name: Device name shown in the Steam "authorized devices" list.
        max_code_attempts: Guard codes that may be rejected before a login attempt is abandoned.
        login_poll_attempts: Status polls after an accepted guard code before giving up.
        qr_login_timeout: Maximum wall-clock duration of QR login polling in seconds.
        confirmation_ttl: Seconds after a confirmation poll during which answers are sent.
        kdf_iterations: PBKDF2 iterations used for newly written manifests.
    """

    api_url: str = "https://api.steampowered.com"
    community_url: str = "https://steamcommunity.com"
    timeout: float = 30.0
    user_agent: str = "okhttp/3.12.12"
    website_id: str = "Mobile"
    device_friendly_name: str = "steamguard-python"
    max_code_attempts: int = 3
    login_poll_attempts: int = 10
    qr_login_timeout: float = 120.0
    confirmation_ttl: float = 60.0
    kdf_iterations: int = 50_000

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            msg = "timeout must be positive"
            raise ValueError(msg)
        if self.max_code_attempts <= 0:
            msg = "max_code_attempts must be positive"
            raise ValueError(msg)
        if self.login_poll_attempts <= 0:
            msg = "login_poll_attempts must be positive"
            raise ValueError(msg)
        if self.qr_login_timeout <= 0:
            msg = "qr_login_timeout must be positive"
            raise ValueError(msg)
        if self.confirmation_ttl <= 0:
            msg = "confirmation_ttl must be positive"
            raise ValueError(msg)
        if self.kdf_iterations <= 0:
            msg = "kdf_iterations must be positive"
            raise ValueError(msg)
