"""
Passphrase based AES encryption for data at rest.

The parameters match the Steam Desktop Authenticator manifest format:
PBKDF2-HMAC-SHA1 with an 8 byte salt derives a 32 byte key, and data is
encrypted with AES-256-CBC, a 16 byte IV and PKCS7 padding. Changing any of
them breaks existing manifests and requires a new manifest version.
"""

import os

from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from steamguard.crypto.secure_bytes import SecureBytes
from steamguard.exceptions import ManifestDecryptionError

PBKDF2_ITERATIONS = 50_000
SALT_SIZE = 8
KEY_SIZE = 32
IV_SIZE = 16
_BLOCK_BITS = 128


def generate_salt() -> bytes:
    return os.urandom(SALT_SIZE)


def generate_iv() -> bytes:
    return os.urandom(IV_SIZE)


def derive_key(
    passphrase: str | SecureBytes,
    salt: bytes,
    iterations: int = PBKDF2_ITERATIONS,
) -> SecureBytes:
    """
    Derive the AES key for a passphrase.

    Args:
        passphrase: User supplied passphrase.
        salt: Per-ciphertext random salt.
        iterations: PBKDF2 iteration count.

    Returns:
        32 byte key wrapped in SecureBytes.
    """
    if isinstance(passphrase, SecureBytes):
        secret = bytes(passphrase)
    else:
        secret = passphrase.encode("utf-8")

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA1(),
        length=KEY_SIZE,
        salt=salt,
        iterations=iterations,
    )
    return SecureBytes(kdf.derive(secret))


def encrypt_cbc(plaintext: bytes, key: SecureBytes, iv: bytes) -> bytes:
    """Pad with PKCS7 and encrypt with AES-256-CBC."""
    padder = padding.PKCS7(_BLOCK_BITS).padder()
    padded = padder.update(plaintext) + padder.finalize()

    encryptor = Cipher(algorithms.AES(bytes(key)), modes.CBC(iv)).encryptor()
    return encryptor.update(padded) + encryptor.finalize()


def decrypt_cbc(ciphertext: bytes, key: SecureBytes, iv: bytes) -> bytes:
    """
    Decrypt AES-256-CBC data and strip PKCS7 padding.

    Raises:
        ManifestDecryptionError: On any failure. Padding errors are deliberately
            indistinguishable from other failures.
    """
    if len(iv) != IV_SIZE or len(ciphertext) == 0 or len(ciphertext) % IV_SIZE != 0:
        raise ManifestDecryptionError()

    try:
        decryptor = Cipher(algorithms.AES(bytes(key)), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()

        unpadder = padding.PKCS7(_BLOCK_BITS).unpadder()
        return unpadder.update(padded) + unpadder.finalize()
    except ValueError:
        raise ManifestDecryptionError() from None
