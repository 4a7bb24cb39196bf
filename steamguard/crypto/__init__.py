"""
Cryptographic operations for steamguard.

This module provides:
- Login code and confirmation key derivation
- RSA password encryption for credential logins
- PBKDF2 + AES-CBC encryption of secrets at rest
- Secure memory handling
"""

from steamguard.crypto.aes import decrypt_cbc, derive_key, encrypt_cbc
from steamguard.crypto.codes import (
    STEAM_CODE_ALPHABET,
    generate_confirmation_key,
    generate_device_id,
    generate_login_code,
    generate_session_id,
)
from steamguard.crypto.rsa import encrypt_password, parse_rsa_key
from steamguard.crypto.secure_bytes import SecureBytes

__all__ = [
    "STEAM_CODE_ALPHABET",
    "SecureBytes",
    "decrypt_cbc",
    "derive_key",
    "encrypt_cbc",
    "encrypt_password",
    "generate_confirmation_key",
    "generate_device_id",
    "generate_login_code",
    "generate_session_id",
    "parse_rsa_key",
]
