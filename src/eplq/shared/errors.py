"""
Error taxonomy for the proximity query engine.

Validation errors are caller-fixable and reported verbatim. Crypto errors
cover key mismatch and corruption. Storage errors wrap collaborator failures.
DimensionMismatchError signals predicate misuse and always propagates.
"""
from typing import Optional


class EplqError(Exception):
    """Base class for all engine errors."""


class ValidationError(EplqError):
    """Bad coordinates, radius or name."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class InvalidQueryError(ValidationError):
    """A search query failed validation."""


class InvalidPOIError(ValidationError):
    """A point of interest failed validation."""


class CryptoError(EplqError):
    """Base class for codec failures."""


class EncryptionError(CryptoError):
    """Record could not be serialized or encrypted."""


class DecryptionError(CryptoError):
    """
    Ciphertext could not be turned back into a record.

    `reason` tells a wrong key / tampered token ("invalid_token") apart from
    a payload that decrypted but is not a usable record ("malformed_payload",
    "invalid_record").
    """

    INVALID_TOKEN = "invalid_token"
    MALFORMED_PAYLOAD = "malformed_payload"
    INVALID_RECORD = "invalid_record"

    def __init__(self, message: str, reason: str = INVALID_TOKEN):
        super().__init__(message)
        self.reason = reason


class StorageError(EplqError):
    """The document store failed."""


class RecordNotFoundError(StorageError):
    """No record with the requested id."""

    def __init__(self, record_id: str):
        super().__init__(f"Record {record_id} not found")
        self.record_id = record_id


class DimensionMismatchError(EplqError, ValueError):
    """Predicate vectors have different lengths."""
