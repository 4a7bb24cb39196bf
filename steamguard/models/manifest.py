"""
Manifest domain models.
"""

from dataclasses import dataclass, field

from steamguard.models.account import Account

MANIFEST_VERSION = 1
KDF_NAME = "pbkdf2-sha1"


@dataclass(frozen=True, kw_only=True)
class EncryptionParams:
    """
    Cleartext parameters stored next to a ciphertext.

    Attributes:
        salt: PBKDF2 salt.
        iv: AES-CBC initialization vector.
        iterations: PBKDF2 iteration count.
    """

    salt: bytes
    iv: bytes
    iterations: int


@dataclass(kw_only=True)
class Manifest:
    """
    All enrolled accounts plus store metadata.

    Attributes:
        version: Manifest format version.
        accounts: Accounts in insertion order.
        encryption: Parameters of the last encryption, None for plaintext manifests.
    """

    version: int = MANIFEST_VERSION
    accounts: list[Account] = field(default_factory=list)
    encryption: EncryptionParams | None = None
