"""
Encrypted storage of enrolled accounts.

A manifest is a single JSON document. Encryption parameters are kept in
cleartext next to the ciphertext so any holder of the passphrase can open it:

    {"version": 1,
     "encryption": {"kdf": "pbkdf2-sha1", "iterations": 50000, "salt": "...", "iv": "..."},
     "ciphertext": "..."}

Unencrypted manifests carry `"encryption": null` and the accounts inline.
"""

import base64
import binascii
import contextlib
import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Self

import structlog

from steamguard.crypto.aes import (
    PBKDF2_ITERATIONS,
    decrypt_cbc,
    derive_key,
    encrypt_cbc,
    generate_iv,
    generate_salt,
)
from steamguard.crypto.secure_bytes import SecureBytes
from steamguard.exceptions import (
    AccountNotFoundError,
    DuplicateAccountError,
    ManifestDecryptionError,
    ManifestIOError,
)
from steamguard.models.account import Account, Session
from steamguard.models.manifest import KDF_NAME, MANIFEST_VERSION, EncryptionParams, Manifest

logger = structlog.get_logger(__name__)

Passphrase = str | SecureBytes


def encrypt_manifest(manifest: Manifest, passphrase: Passphrase | None) -> bytes:
    """
    Serialize a manifest, encrypting it when a passphrase is given.

    The salt and IV recorded in `manifest.encryption` are reused when present,
    so decrypting and re-encrypting reproduces the input byte for byte. Fresh
    parameters are generated otherwise.
    """
    payload = {"accounts": [account.to_dict() for account in manifest.accounts]}
    if passphrase is None:
        return _dump({"version": manifest.version, "encryption": None, **payload})

    params = manifest.encryption or EncryptionParams(
        salt=generate_salt(),
        iv=generate_iv(),
        iterations=PBKDF2_ITERATIONS,
    )
    return _seal(payload, passphrase, params, version=manifest.version)


def decrypt_manifest(data: bytes, passphrase: Passphrase | None) -> Manifest:
    """
    Parse and decrypt a manifest document.

    Raises:
        ManifestDecryptionError: For a wrong passphrase and for any kind of
            corruption. The two cases are not distinguished.
    """
    envelope = _load(data)
    if envelope.get("encryption") is None:
        payload = envelope
        params = None
    else:
        if passphrase is None:
            msg = "Manifest is encrypted, a passphrase is required"
            raise ManifestDecryptionError(msg)
        payload, params = _unseal(envelope, passphrase)

    try:
        accounts = [Account.from_dict(item) for item in payload["accounts"]]
    except (AttributeError, KeyError, TypeError, ValueError):
        raise ManifestDecryptionError() from None

    return Manifest(version=envelope["version"], accounts=accounts, encryption=params)


def encrypt_account(account: Account, passphrase: Passphrase) -> bytes:
    """Encrypt a single account for transfer, with its own salt and IV."""
    params = EncryptionParams(salt=generate_salt(), iv=generate_iv(), iterations=PBKDF2_ITERATIONS)
    return _seal({"account": account.to_dict()}, passphrase, params, version=MANIFEST_VERSION)


def decrypt_account(blob: bytes, passphrase: Passphrase) -> Account:
    """
    Decrypt a blob produced by `encrypt_account`.

    Raises:
        ManifestDecryptionError: Wrong passphrase or corrupted blob.
    """
    envelope = _load(blob)
    if envelope.get("encryption") is None:
        raise ManifestDecryptionError()
    payload, _ = _unseal(envelope, passphrase)
    try:
        return Account.from_dict(payload["account"])
    except (AttributeError, KeyError, TypeError, ValueError):
        raise ManifestDecryptionError() from None


def _dump(document: dict[str, Any]) -> bytes:
    return json.dumps(document, separators=(",", ":")).encode("utf-8")


def _load(data: bytes) -> dict[str, Any]:
    try:
        envelope = json.loads(data)
    except (UnicodeDecodeError, ValueError):
        raise ManifestDecryptionError() from None
    if not isinstance(envelope, dict) or envelope.get("version") != MANIFEST_VERSION:
        raise ManifestDecryptionError()
    return envelope


def _seal(
    payload: dict[str, Any],
    passphrase: Passphrase,
    params: EncryptionParams,
    *,
    version: int,
) -> bytes:
    with derive_key(passphrase, params.salt, params.iterations) as key:
        ciphertext = encrypt_cbc(_dump(payload), key, params.iv)
    return _dump(
        {
            "version": version,
            "encryption": {
                "kdf": KDF_NAME,
                "iterations": params.iterations,
                "salt": base64.b64encode(params.salt).decode("ascii"),
                "iv": base64.b64encode(params.iv).decode("ascii"),
            },
            "ciphertext": base64.b64encode(ciphertext).decode("ascii"),
        }
    )


def _unseal(envelope: dict[str, Any], passphrase: Passphrase) -> tuple[dict[str, Any], EncryptionParams]:
    try:
        encryption = envelope["encryption"]
        if encryption["kdf"] != KDF_NAME:
            raise ManifestDecryptionError()
        params = EncryptionParams(
            salt=base64.b64decode(encryption["salt"], validate=True),
            iv=base64.b64decode(encryption["iv"], validate=True),
            iterations=int(encryption["iterations"]),
        )
        ciphertext = base64.b64decode(envelope["ciphertext"], validate=True)
    except (KeyError, TypeError, ValueError, binascii.Error):
        raise ManifestDecryptionError() from None

    if params.iterations <= 0:
        raise ManifestDecryptionError()

    with derive_key(passphrase, params.salt, params.iterations) as key:
        plaintext = decrypt_cbc(ciphertext, key, params.iv)

    try:
        payload = json.loads(plaintext)
    except (UnicodeDecodeError, ValueError):
        raise ManifestDecryptionError() from None
    if not isinstance(payload, dict):
        raise ManifestDecryptionError()
    return payload, params


def _atomic_write(path: Path, data: bytes) -> None:
    """Write to a temporary sibling, fsync, then rename over the target."""
    tmp_name: str | None = None
    try:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name is not None:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
        msg = "Failed to write manifest"
        raise ManifestIOError(msg, path=str(path)) from e


def _as_secure(passphrase: Passphrase | None) -> SecureBytes | None:
    if passphrase is None or isinstance(passphrase, SecureBytes):
        return passphrase
    return SecureBytes.from_string(passphrase, lock=True)


class ManifestStore:
    """
    A manifest file and the accounts loaded from it.

    Changes stay in memory until `save()` writes the whole manifest back.
    Every save re-encrypts with a new salt and IV and replaces the file in a
    single rename, so a crash leaves either the old or the new manifest.

    Concurrency:
    - Mutations and saves are serialized by an internal lock. Account objects
      returned by the store are shared, not copied.
    """

    def __init__(
        self,
        path: Path,
        manifest: Manifest,
        passphrase: Passphrase | None,
        *,
        kdf_iterations: int = PBKDF2_ITERATIONS,
    ) -> None:
        """
        Args:
            path: Location of the manifest file.
            manifest: Already loaded manifest.
            passphrase: Encryption passphrase, None for a plaintext manifest.
            kdf_iterations: PBKDF2 iterations used when saving.
        """
        self._path = Path(path)
        self._manifest = manifest
        self._passphrase = _as_secure(passphrase)
        self._kdf_iterations = kdf_iterations
        self._lock = threading.RLock()

    @classmethod
    def create(
        cls,
        path: Path | str,
        passphrase: Passphrase | None = None,
        *,
        kdf_iterations: int = PBKDF2_ITERATIONS,
    ) -> Self:
        """
        Create and save an empty manifest.

        Raises:
            ManifestIOError: If the file already exists or cannot be written.
        """
        path = Path(path)
        if path.exists():
            msg = "Manifest already exists"
            raise ManifestIOError(msg, path=str(path))

        store = cls(path, Manifest(), passphrase, kdf_iterations=kdf_iterations)
        store.save()
        logger.info("Manifest created", path=str(path), encrypted=store.is_encrypted)
        return store

    @classmethod
    def open(
        cls,
        path: Path | str,
        passphrase: Passphrase | None = None,
        *,
        kdf_iterations: int = PBKDF2_ITERATIONS,
    ) -> Self:
        """
        Load a manifest from disk.

        Opening a plaintext manifest with a passphrase encrypts it on the next save.

        Raises:
            ManifestIOError: If the file cannot be read.
            ManifestDecryptionError: Wrong passphrase or corrupted manifest.
        """
        path = Path(path)
        try:
            data = path.read_bytes()
        except OSError as e:
            msg = "Failed to read manifest"
            raise ManifestIOError(msg, path=str(path)) from e

        manifest = decrypt_manifest(data, passphrase)
        logger.info("Manifest opened", path=str(path), accounts=len(manifest.accounts))
        return cls(path, manifest, passphrase, kdf_iterations=kdf_iterations)

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    def close(self) -> None:
        """Wipe the passphrase from memory. Unsaved changes are discarded."""
        if self._passphrase is not None:
            self._passphrase.clear()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def is_encrypted(self) -> bool:
        return self._passphrase is not None

    @property
    def manifest(self) -> Manifest:
        return self._manifest

    @property
    def accounts(self) -> list[Account]:
        with self._lock:
            return list(self._manifest.accounts)

    @property
    def account_names(self) -> list[str]:
        with self._lock:
            return [account.account_name for account in self._manifest.accounts]

    def get_account(self, account_name: str) -> Account:
        """
        Raises:
            AccountNotFoundError: If no account has this name.
        """
        with self._lock:
            for account in self._manifest.accounts:
                if account.account_name == account_name:
                    return account
        raise AccountNotFoundError(account_name)

    def add_account(self, account: Account) -> None:
        """
        Raises:
            DuplicateAccountError: If an account with the same name exists.
        """
        with self._lock:
            if any(a.account_name == account.account_name for a in self._manifest.accounts):
                raise DuplicateAccountError(account.account_name)
            self._manifest.accounts.append(account)
        logger.info("Account added", account_name=account.account_name)

    def remove_account(self, account_name: str) -> Account:
        with self._lock:
            account = self.get_account(account_name)
            self._manifest.accounts.remove(account)
        logger.info("Account removed", account_name=account_name)
        return account

    def update_session(self, account_name: str, session: Session | None) -> None:
        with self._lock:
            self.get_account(account_name).session = session

    def import_mafile(self, path: Path | str) -> Account:
        """
        Add an account from an unencrypted Steam Desktop Authenticator `.maFile`.

        Raises:
            ManifestIOError: If the file cannot be read or is not a valid maFile.
            DuplicateAccountError: If the account is already in the manifest.
        """
        path = Path(path)
        try:
            account = Account.from_dict(json.loads(path.read_bytes()))
        except OSError as e:
            msg = "Failed to read maFile"
            raise ManifestIOError(msg, path=str(path)) from e
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            msg = "Invalid maFile"
            raise ManifestIOError(msg, path=str(path)) from e

        self.add_account(account)
        return account

    def export_account(self, account_name: str, passphrase: Passphrase) -> bytes:
        """Encrypt one account for transfer to another manifest."""
        return encrypt_account(self.get_account(account_name), passphrase)

    def import_account(self, blob: bytes, passphrase: Passphrase) -> Account:
        """
        Decrypt an exported account and add it to the manifest.

        Raises:
            ManifestDecryptionError: Wrong passphrase or corrupted blob.
            DuplicateAccountError: If the account is already in the manifest.
        """
        account = decrypt_account(blob, passphrase)
        self.add_account(account)
        return account

    def change_passphrase(self, new_passphrase: Passphrase | None) -> None:
        """
        Re-encrypt the manifest with a new passphrase and save it.

        Passing None stores the manifest unencrypted. If saving fails the old
        passphrase stays in effect.
        """
        with self._lock:
            previous = self._passphrase
            self._passphrase = _as_secure(new_passphrase)
            try:
                self.save()
            except ManifestIOError:
                if self._passphrase is not None:
                    self._passphrase.clear()
                self._passphrase = previous
                raise

            if previous is not None:
                previous.clear()
        logger.info("Manifest passphrase changed", encrypted=self.is_encrypted)

    def save(self) -> None:
        """
        Write the manifest to disk.

        Raises:
            ManifestIOError: If the file cannot be written. The previous file is untouched.
        """
        with self._lock:
            params = None
            if self._passphrase is not None:
                params = EncryptionParams(
                    salt=generate_salt(),
                    iv=generate_iv(),
                    iterations=self._kdf_iterations,
                )

            snapshot = Manifest(
                version=self._manifest.version,
                accounts=self._manifest.accounts,
                encryption=params,
            )
            _atomic_write(self._path, encrypt_manifest(snapshot, self._passphrase))
            self._manifest.encryption = params

        logger.debug("Manifest saved", path=str(self._path), accounts=len(snapshot.accounts))
