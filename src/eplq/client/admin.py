"""
POI administration: upload, update and delete encrypted records.

Every operation validates before encrypting and reports an OperationResult
instead of raising.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional

from eplq.client.crypto import CryptoCodec
from eplq.client.search import DEFAULT_COLLECTION
from eplq.config import Settings
from eplq.server.store import DocumentStore
from eplq.shared.audit import AuditEmitter
from eplq.shared.errors import EncryptionError, StorageError, ValidationError
from eplq.shared.geo import approximate_region
from eplq.shared.protocol import POI, EncryptedRecord, Identity, OperationResult

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def build_poi(fields: Mapping[str, Any]) -> POI:
    """
    Build a validated POI from loosely typed fields.

    Raises:
        InvalidPOIError: naming the offending field
    """
    return POI(
        name=fields.get("name"),
        latitude=fields.get("latitude"),
        longitude=fields.get("longitude"),
        description=fields.get("description") or "",
    )


class PoiAdmin:
    """
    Write side of the POI collection.

    Plaintext never reaches the store: each POI is encrypted by the codec
    and stored next to its 0.1 degree approximate region.
    """

    def __init__(
        self,
        codec: CryptoCodec,
        store: DocumentStore,
        collection: str = DEFAULT_COLLECTION,
        audit: Optional[AuditEmitter] = None,
    ):
        self.codec = codec
        self.store = store
        self.collection = collection
        self.audit = audit or AuditEmitter()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        codec: CryptoCodec,
        store: DocumentStore,
        audit: Optional[AuditEmitter] = None,
    ) -> "PoiAdmin":
        return cls(codec, store, collection=settings.search.collection, audit=audit)

    def _seal(self, fields: Mapping[str, Any]):
        poi = build_poi(fields)
        encrypted = self.codec.encrypt_poi(poi)
        return poi, encrypted, approximate_region(poi.latitude, poi.longitude)

    def upload_poi(self, fields: Mapping[str, Any], identity: Identity) -> OperationResult:
        """
        Validate, encrypt and store one POI.

        Returns:
            OperationResult whose `data` is the new record id
        """
        try:
            poi, encrypted, region = self._seal(fields)
            record_id = self.store.insert(self.collection, EncryptedRecord(
                encrypted_data=encrypted,
                approximate_region=region,
                uploaded_by=identity.user_id,
                uploaded_by_email=identity.email,
                uploaded_at=_now(),
            ))
        except (ValidationError, EncryptionError, StorageError) as exc:
            logger.warning("POI upload failed: %s", exc)
            self.audit.error("POI upload failed", error=str(exc), userId=identity.user_id)
            return OperationResult(
                success=False,
                message=f"Failed to upload POI: {exc}",
                error=str(exc),
            )

        self.audit.success(
            "POI uploaded successfully",
            poiId=record_id,
            name=poi.name,
            userId=identity.user_id,
        )
        return OperationResult(
            success=True,
            message="POI uploaded successfully!",
            data=record_id,
        )

    def upload_many(
        self,
        rows: Iterable[Mapping[str, Any]],
        identity: Identity,
    ) -> OperationResult:
        """
        Upload already-parsed rows one by one.

        A bad row is counted and reported; it does not stop the batch.

        Returns:
            OperationResult whose `data` holds `success`, `failed`, `ids`
            and per-row `errors`
        """
        summary = {"success": 0, "failed": 0, "ids": [], "errors": []}

        for index, row in enumerate(rows):
            result = self.upload_poi(row, identity)
            if result.success:
                summary["success"] += 1
                summary["ids"].append(result.data)
            else:
                summary["failed"] += 1
                summary["errors"].append({
                    "row": index,
                    "poi": row.get("name"),
                    "error": result.error,
                })

        self.audit.success(
            "Bulk POI upload completed",
            success=summary["success"],
            failed=summary["failed"],
            userId=identity.user_id,
        )
        return OperationResult(
            success=True,
            message=(
                f"Uploaded {summary['success']} POIs successfully. "
                f"{summary['failed']} failed."
            ),
            data=summary,
        )

    def update_poi(
        self,
        record_id: str,
        fields: Mapping[str, Any],
        identity: Identity,
    ) -> OperationResult:
        """Re-encrypt and replace a stored POI. Last write wins."""
        try:
            poi, encrypted, region = self._seal(fields)
            self.store.update(
                self.collection,
                record_id,
                encrypted_data=encrypted,
                approximate_region=region,
                updated_at=_now(),
            )
        except (ValidationError, EncryptionError, StorageError) as exc:
            logger.warning("POI update failed for %s: %s", record_id, exc)
            self.audit.error(
                "POI update failed",
                poiId=record_id,
                error=str(exc),
                userId=identity.user_id,
            )
            return OperationResult(
                success=False,
                message="Failed to update POI",
                error=str(exc),
            )

        self.audit.success(
            "POI updated successfully",
            poiId=record_id,
            name=poi.name,
            userId=identity.user_id,
        )
        return OperationResult(success=True, message="POI updated successfully!", data=record_id)

    def delete_poi(self, record_id: str, identity: Identity) -> OperationResult:
        try:
            self.store.delete(self.collection, record_id)
        except StorageError as exc:
            logger.warning("POI deletion failed for %s: %s", record_id, exc)
            self.audit.error(
                "POI deletion failed",
                poiId=record_id,
                error=str(exc),
                userId=identity.user_id,
            )
            return OperationResult(
                success=False,
                message="Failed to delete POI",
                error=str(exc),
            )

        self.audit.success("POI deleted successfully", poiId=record_id, userId=identity.user_id)
        return OperationResult(success=True, message="POI deleted successfully!", data=record_id)

    def list_uploads(self, identity: Identity) -> OperationResult:
        """Encrypted records uploaded by `identity`, newest first."""
        try:
            records = self.store.fetch_all(self.collection)
        except StorageError as exc:
            self.audit.error("Failed to retrieve POIs", error=str(exc), userId=identity.user_id)
            return OperationResult(
                success=False,
                message="Failed to retrieve POIs",
                error=str(exc),
                data=[],
            )

        mine: List[EncryptedRecord] = [r for r in records if r.uploaded_by == identity.user_id]
        mine.sort(key=lambda r: r.uploaded_at, reverse=True)
        return OperationResult(success=True, message=f"{len(mine)} POI(s)", data=mine)
