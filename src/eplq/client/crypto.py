"""
Symmetric encryption of POI records using Fernet.
"""
import base64
import hashlib
import json
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Optional, Union

from cryptography.fernet import Fernet, InvalidToken

from eplq.config import Settings
from eplq.shared.audit import AuditEmitter
from eplq.shared.errors import DecryptionError, EncryptionError, ValidationError
from eplq.shared.protocol import POI


Key = Union[str, bytes]


def key_from_passphrase(passphrase: str) -> bytes:
    """
    Derive a Fernet key from a passphrase.

    SHA-256 of the UTF-8 passphrase, urlsafe-base64 encoded (44 bytes).
    """
    digest = hashlib.sha256(passphrase.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


def derive_key(identity: str, secret: str) -> bytes:
    """
    Derive a per-user key from credentials.

    Hash of ``identity:secret``; deterministic and one-way.
    """
    return key_from_passphrase(f"{identity}:{secret}")


class CryptoCodec:
    """
    Record encryption for the proximity engine.

    Responsible for:
    - Serializing records to canonical JSON
    - Encrypting/decrypting them under a per-call key or the default key
    - POI-specific wrappers that stamp and check the record schema
    """

    def __init__(self, default_key: Key, audit: Optional[AuditEmitter] = None):
        """
        Initialize the codec.

        Args:
            default_key: Fernet key used when a call does not pass its own
            audit: Emitter for success/failure events
        """
        self._default = self._fernet(default_key)
        self.audit = audit or AuditEmitter()

    @classmethod
    def from_passphrase(
        cls,
        passphrase: str,
        audit: Optional[AuditEmitter] = None,
    ) -> "CryptoCodec":
        """Create a codec whose default key is derived from `passphrase`."""
        return cls(key_from_passphrase(passphrase), audit=audit)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        audit: Optional[AuditEmitter] = None,
    ) -> "CryptoCodec":
        """Create a codec from the configured default passphrase."""
        return cls.from_passphrase(settings.crypto.default_passphrase, audit=audit)

    @staticmethod
    def _fernet(key: Key) -> Fernet:
        return Fernet(key)

    def _cipher(self, key: Optional[Key]) -> Fernet:
        if key is None:
            return self._default
        return self._fernet(key)

    def encrypt(self, record: Any, key: Optional[Key] = None) -> str:
        """
        Encrypt a JSON-serializable record.

        Args:
            record: Record to serialize and encrypt
            key: Optional Fernet key overriding the default

        Returns:
            Fernet token as text

        Raises:
            EncryptionError: if the record cannot be serialized or the key is unusable
        """
        try:
            payload = json.dumps(
                record, sort_keys=True, separators=(",", ":"), allow_nan=False
            )
            token = self._cipher(key).encrypt(payload.encode("utf-8")).decode("ascii")
        except (TypeError, ValueError) as exc:
            self.audit.error("Encryption failed", error=str(exc))
            raise EncryptionError(f"Encryption failed: {exc}") from exc

        self.audit.info(
            "Data encrypted successfully",
            dataSize=len(payload),
            encryptedSize=len(token),
        )
        return token

    def decrypt(self, ciphertext: Union[str, bytes], key: Optional[Key] = None) -> dict:
        """
        Decrypt a token produced by `encrypt`.

        Args:
            ciphertext: Fernet token (text or bytes)
            key: Optional Fernet key overriding the default

        Returns:
            The decrypted record

        Raises:
            DecryptionError: wrong key, tampered or malformed token, or a
                payload that is not a JSON object
        """
        try:
            record = self._decrypt(ciphertext, key)
        except DecryptionError as exc:
            self.audit.error("Decryption failed", error=str(exc), reason=exc.reason)
            raise

        self.audit.info("Data decrypted successfully")
        return record

    def _decrypt(self, ciphertext: Union[str, bytes], key: Optional[Key]) -> dict:
        try:
            cipher = self._cipher(key)
        except (TypeError, ValueError) as exc:
            raise DecryptionError(f"Decryption failed - unusable key: {exc}") from exc

        try:
            token = ciphertext.encode("ascii") if isinstance(ciphertext, str) else ciphertext
            plaintext = cipher.decrypt(token)
        except (InvalidToken, TypeError, ValueError) as exc:
            raise DecryptionError(
                "Decryption failed - invalid key or corrupted data"
            ) from exc

        try:
            record = json.loads(plaintext.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise DecryptionError(
                f"Decryption failed - payload is not valid JSON: {exc}",
                reason=DecryptionError.MALFORMED_PAYLOAD,
            ) from exc

        if not isinstance(record, dict):
            raise DecryptionError(
                "Decryption failed - payload is not a record",
                reason=DecryptionError.MALFORMED_PAYLOAD,
            )
        return record

    def encrypt_poi(self, poi: POI, key: Optional[Key] = None) -> str:
        """Encrypt a POI, stamping its creation time into the record."""
        stamped = replace(poi, timestamp=datetime.now(timezone.utc).isoformat())
        return self.encrypt(stamped.to_record(), key=key)

    def decrypt_poi(self, ciphertext: Union[str, bytes], key: Optional[Key] = None) -> POI:
        """
        Decrypt a POI token.

        Raises:
            DecryptionError: as `decrypt`, or when the record is not a valid POI
        """
        record = self.decrypt(ciphertext, key=key)
        try:
            return POI.from_record(record)
        except ValidationError as exc:
            self.audit.error("Decryption failed", error=str(exc), reason="invalid_record")
            raise DecryptionError(
                f"Decryption failed - not a valid POI: {exc}",
                reason=DecryptionError.INVALID_RECORD,
            ) from exc
