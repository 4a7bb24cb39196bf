"""RSA password encryption for credential logins."""

import base64

from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicNumbers

from steamguard.exceptions import CryptoError, ProtocolError
from steamguard.models.auth import RsaKey


def parse_rsa_key(response: dict) -> RsaKey:
    """
    Build an RsaKey from a GetPasswordRSAPublicKey response body.

    Raises:
        ProtocolError: If the modulus, exponent or timestamp are missing or malformed.
    """
    try:
        return RsaKey(
            modulus=int(response["publickey_mod"], 16),
            exponent=int(response["publickey_exp"], 16),
            timestamp=int(response["timestamp"]),
        )
    except (KeyError, TypeError, ValueError) as e:
        msg = "Malformed RSA public key response"
        raise ProtocolError(msg) from e


def encrypt_password(password: str, key: RsaKey) -> str:
    """
    Encrypt a password with Steam's login key.

    Args:
        password: Plaintext account password.
        key: Public key fetched for this login attempt.

    Returns:
        Base64 encoded PKCS#1 v1.5 ciphertext.

    Raises:
        CryptoError: If the key is unusable or the password does not fit.
    """
    try:
        public_key = RSAPublicNumbers(key.exponent, key.modulus).public_key()
        ciphertext = public_key.encrypt(password.encode("utf-8"), padding.PKCS1v15())
    except ValueError as e:
        msg = "Failed to encrypt password with the login key"
        raise CryptoError(msg) from e
    return base64.b64encode(ciphertext).decode("ascii")
