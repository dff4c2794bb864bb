"""
Document store holding encrypted POI records.

The store only ever sees ciphertext plus the 0.1 degree approximate region.
"""
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Dict, List, Optional

from eplq.shared.errors import RecordNotFoundError, StorageError
from eplq.shared.protocol import BoundingBox, EncryptedRecord, Region


class DocumentStore(ABC):
    """
    Abstract collection-oriented store.

    Implementations own retries; a call either returns a complete snapshot
    or raises StorageError.
    """

    @abstractmethod
    def fetch_all(self, collection: str) -> List[EncryptedRecord]:
        """All records of a collection, in insertion order."""
        pass

    @abstractmethod
    def fetch_in_region(self, collection: str, box: BoundingBox) -> List[EncryptedRecord]:
        """Records whose approximate region lies inside `box`."""
        pass

    @abstractmethod
    def get(self, collection: str, record_id: str) -> Optional[EncryptedRecord]:
        """A single record, or None."""
        pass

    @abstractmethod
    def insert(self, collection: str, record: EncryptedRecord) -> str:
        """Store a new record and return its id."""
        pass

    @abstractmethod
    def update(
        self,
        collection: str,
        record_id: str,
        encrypted_data: str,
        approximate_region: Region,
        updated_at: str,
    ) -> None:
        """Replace the ciphertext and region of an existing record."""
        pass

    @abstractmethod
    def delete(self, collection: str, record_id: str) -> None:
        """Remove a record."""
        pass

    def count(self, collection: str) -> int:
        return len(self.fetch_all(collection))


class InMemoryDocumentStore(DocumentStore):
    """
    Process-local store.

    Records are copied in and out so callers never share mutable state
    with the store.
    """

    def __init__(self):
        self._collections: Dict[str, Dict[str, EncryptedRecord]] = {}
        self._lock = threading.Lock()

    def _collection(self, collection: str) -> Dict[str, EncryptedRecord]:
        if not collection:
            raise StorageError("Collection name is required")
        return self._collections.setdefault(collection, {})

    def fetch_all(self, collection: str) -> List[EncryptedRecord]:
        with self._lock:
            return [replace(r) for r in self._collection(collection).values()]

    def fetch_in_region(self, collection: str, box: BoundingBox) -> List[EncryptedRecord]:
        with self._lock:
            return [
                replace(r)
                for r in self._collection(collection).values()
                if box.contains(r.approximate_region.lat, r.approximate_region.lng)
            ]

    def get(self, collection: str, record_id: str) -> Optional[EncryptedRecord]:
        with self._lock:
            record = self._collection(collection).get(record_id)
            return replace(record) if record is not None else None

    def insert(self, collection: str, record: EncryptedRecord) -> str:
        record_id = uuid.uuid4().hex
        with self._lock:
            self._collection(collection)[record_id] = replace(record, id=record_id)
        return record_id

    def update(
        self,
        collection: str,
        record_id: str,
        encrypted_data: str,
        approximate_region: Region,
        updated_at: str,
    ) -> None:
        with self._lock:
            records = self._collection(collection)
            if record_id not in records:
                raise RecordNotFoundError(record_id)
            records[record_id] = replace(
                records[record_id],
                encrypted_data=encrypted_data,
                approximate_region=approximate_region,
                updated_at=updated_at,
            )

    def delete(self, collection: str, record_id: str) -> None:
        with self._lock:
            records = self._collection(collection)
            if record_id not in records:
                raise RecordNotFoundError(record_id)
            del records[record_id]

    def count(self, collection: str) -> int:
        with self._lock:
            return len(self._collection(collection))
