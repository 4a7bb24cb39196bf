"""
Steam Guard code derivation.

Login codes are an HOTP variant over 30 second time steps rendered in
Steam's own 26 character alphabet. Confirmation keys are a plain
HMAC-SHA1 over the time and an operation tag.
"""

import base64
import hashlib
import hmac
import secrets
import struct

STEAM_CODE_ALPHABET = "23456789BCDFGHJKMNPQRTVWXY"
CODE_LENGTH = 5
TIME_STEP = 30


def generate_login_code(shared_secret: bytes, server_time: int) -> str:
    """
    Generate the 5 character code typed at login.

    Args:
        shared_secret: Raw shared secret bytes of the account.
        server_time: Steam server time in seconds since the Unix epoch.

    Returns:
        Code drawn from `STEAM_CODE_ALPHABET`.

    Raises:
        ValueError: If the secret is empty.
    """
    if len(shared_secret) == 0:
        msg = "shared_secret must not be empty"
        raise ValueError(msg)

    time_buffer = struct.pack(">Q", int(server_time) // TIME_STEP)
    digest = hmac.new(shared_secret, time_buffer, hashlib.sha1).digest()

    offset = digest[19] & 0x0F
    value = struct.unpack(">I", digest[offset : offset + 4])[0] & 0x7FFFFFFF

    chars = []
    for _ in range(CODE_LENGTH):
        value, index = divmod(value, len(STEAM_CODE_ALPHABET))
        chars.append(STEAM_CODE_ALPHABET[index])
    return "".join(chars)


def generate_confirmation_key(identity_secret: bytes, tag: str, server_time: int) -> str:
    """
    Sign a mobile confirmation request.

    Args:
        identity_secret: Raw identity secret bytes of the account.
        tag: Operation the signature is bound to ("conf", "allow", "cancel", ...).
        server_time: Steam server time in seconds since the Unix epoch.

    Returns:
        Base64 encoded HMAC-SHA1 digest.

    Raises:
        ValueError: If the secret is empty or the tag is not ASCII.
    """
    if len(identity_secret) == 0:
        msg = "identity_secret must not be empty"
        raise ValueError(msg)

    buffer = struct.pack(">Q", int(server_time)) + tag.encode("ascii")
    digest = hmac.new(identity_secret, buffer, hashlib.sha1).digest()
    return base64.b64encode(digest).decode("ascii")


def generate_device_id(steam_id: int) -> str:
    """Derive a stable android-style device id from the steam id."""
    hexed = hashlib.sha1(str(steam_id).encode("ascii")).hexdigest()
    return "android:" + "-".join(
        [hexed[:8], hexed[8:12], hexed[12:16], hexed[16:20], hexed[20:32]]
    )


def generate_session_id() -> str:
    """Random value for the `sessionid` cookie."""
    return secrets.token_hex(12)
