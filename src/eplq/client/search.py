"""
Proximity search over encrypted POIs.

Coordinates the full search flow:
1. Validate the query
2. Fetch candidate records from the store
3. Decrypt candidates, partitioned into decrypted and failed
4. Apply the range predicate
5. Rank by distance and report counters
"""
import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from eplq.client.crypto import CryptoCodec
from eplq.client.predicate import within_range
from eplq.config import Settings
from eplq.server.store import DocumentStore
from eplq.shared.audit import AuditEmitter
from eplq.shared.errors import DecryptionError, StorageError, ValidationError, InvalidQueryError
from eplq.shared.geo import (
    EARTH_RADIUS_KM,
    REGION_CELL_DEGREES,
    bounding_box,
    haversine_distance_km,
)
from eplq.shared.protocol import (
    LATITUDE_RANGE,
    LONGITUDE_RANGE,
    POI,
    BoundingBox,
    EncryptedRecord,
    Identity,
    OperationResult,
    ScanMode,
    SearchQuery,
    SearchResponse,
    SearchResult,
    SearchStats,
    coerce_coordinate,
)
from eplq.shared.utils import Timer, rank_by_distance

logger = logging.getLogger(__name__)

DEFAULT_COLLECTION = "encrypted_pois"


@dataclass
class DecryptPartition:
    """Candidates split by decrypt outcome. The two lists are disjoint."""
    decrypted: List[Tuple[EncryptedRecord, POI]] = field(default_factory=list)
    failed: List[Tuple[EncryptedRecord, DecryptionError]] = field(default_factory=list)


def validate_query(latitude: Any, longitude: Any, radius_km: Any) -> SearchQuery:
    """
    Check a search request and build a SearchQuery.

    Raises:
        InvalidQueryError: naming the offending field
    """
    lat = coerce_coordinate(latitude, "latitude", LATITUDE_RANGE, InvalidQueryError)
    lon = coerce_coordinate(longitude, "longitude", LONGITUDE_RANGE, InvalidQueryError)

    if radius_km is None or isinstance(radius_km, bool):
        raise InvalidQueryError("Invalid radius. Must be a number", field="radius_km")
    try:
        radius = float(radius_km)
    except (TypeError, ValueError, OverflowError):
        raise InvalidQueryError("Invalid radius. Must be a number", field="radius_km") from None
    if not math.isfinite(radius) or radius <= 0:
        raise InvalidQueryError("Invalid radius. Must be greater than 0", field="radius_km")

    return SearchQuery(latitude=lat, longitude=lon, radius_km=radius)


def region_candidate_box(query: SearchQuery) -> Optional[BoundingBox]:
    """
    Box of approximate regions that can hold a match.

    Covers the advisory bounding box, the exact angular extent of the search
    circle and half a grid cell of rounding on every side. Returns None when
    the circle reaches a pole or the box crosses the antimeridian; callers
    then scan the whole collection.
    """
    advisory = bounding_box(query.latitude, query.longitude, query.radius_km)
    angular = query.radius_km / EARTH_RADIUS_KM
    cos_lat = math.cos(math.radians(query.latitude))

    if angular >= math.pi / 2 or math.sin(angular) >= cos_lat:
        return None

    lat_span = max(math.degrees(angular), advisory.max_lat - query.latitude)
    lng_span = max(
        math.degrees(math.asin(math.sin(angular) / cos_lat)),
        advisory.max_lng - query.longitude,
    )
    margin = REGION_CELL_DEGREES / 2 + 1e-9

    box = BoundingBox(
        min_lat=query.latitude - lat_span - margin,
        max_lat=query.latitude + lat_span + margin,
        min_lng=query.longitude - lng_span - margin,
        max_lng=query.longitude + lng_span + margin,
    )
    if box.crosses_pole or box.crosses_antimeridian:
        return None
    return box


class ProximityQueryEngine:
    """
    Radius search over encrypted POI records.

    Stateless between calls. Only query validation can fail a search;
    records that do not decrypt are counted and skipped.
    """

    def __init__(
        self,
        codec: CryptoCodec,
        store: DocumentStore,
        collection: str = DEFAULT_COLLECTION,
        scan_mode: ScanMode = ScanMode.FULL,
        max_workers: int = 1,
        audit: Optional[AuditEmitter] = None,
    ):
        """
        Initialize the engine.

        Args:
            codec: Codec used to decrypt records
            store: Document store holding the encrypted collection
            collection: Collection name
            scan_mode: Default candidate selection mode
            max_workers: Decrypt threads; 1 keeps decryption sequential
            audit: Emitter for search events
        """
        self.codec = codec
        self.store = store
        self.collection = collection
        self.scan_mode = scan_mode
        self.max_workers = max(1, max_workers)
        self.audit = audit or AuditEmitter()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        codec: CryptoCodec,
        store: DocumentStore,
        audit: Optional[AuditEmitter] = None,
    ) -> "ProximityQueryEngine":
        return cls(
            codec=codec,
            store=store,
            collection=settings.search.collection,
            scan_mode=settings.search.scan_mode,
            max_workers=settings.search.max_workers,
            audit=audit,
        )

    def fetch_candidates(self, query: SearchQuery, mode: ScanMode) -> List[EncryptedRecord]:
        """
        Read the candidate set for `query`.

        FULL reads the whole collection. REGION asks the store for records
        whose approximate region falls in `region_candidate_box`, falling
        back to FULL where that box is undefined.
        """
        if mode is ScanMode.REGION:
            box = region_candidate_box(query)
            if box is not None:
                return self.store.fetch_in_region(self.collection, box)
            logger.info("Region box undefined near pole or antimeridian, scanning all records")
        return self.store.fetch_all(self.collection)

    def _decrypt_one(
        self, record: EncryptedRecord
    ) -> Tuple[EncryptedRecord, Union[POI, DecryptionError]]:
        try:
            return record, self.codec.decrypt_poi(record.encrypted_data)
        except DecryptionError as exc:
            logger.warning("Failed to decrypt POI %s: %s", record.id, exc)
            return record, exc

    def partition_records(self, records: List[EncryptedRecord]) -> DecryptPartition:
        """
        Decrypt every record, splitting successes from failures.

        With max_workers > 1 decryption runs on a thread pool; output order
        follows input order either way.
        """
        if self.max_workers > 1 and len(records) > 1:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(records))) as executor:
                outcomes = list(executor.map(self._decrypt_one, records))
        else:
            outcomes = [self._decrypt_one(record) for record in records]

        partition = DecryptPartition()
        for record, outcome in outcomes:
            if isinstance(outcome, DecryptionError):
                partition.failed.append((record, outcome))
            else:
                partition.decrypted.append((record, outcome))
        return partition

    @staticmethod
    def filter_in_range(
        query: SearchQuery,
        decrypted: List[Tuple[EncryptedRecord, POI]],
    ) -> List[SearchResult]:
        """Keep decrypted POIs within the radius, with their exact distance."""
        results = []
        for record, poi in decrypted:
            if not within_range(
                query.latitude, query.longitude,
                poi.latitude, poi.longitude,
                query.radius_km,
            ):
                continue
            distance = haversine_distance_km(
                query.latitude, query.longitude, poi.latitude, poi.longitude
            )
            results.append(SearchResult(
                record_id=record.id,
                name=poi.name,
                latitude=poi.latitude,
                longitude=poi.longitude,
                description=poi.description,
                timestamp=poi.timestamp,
                distance_km=distance,
                uploaded_by=record.uploaded_by_email,
                uploaded_at=record.uploaded_at,
            ))
        return results

    @staticmethod
    def rank(results: List[SearchResult]) -> List[SearchResult]:
        """Stable ascending sort by distance."""
        order = rank_by_distance([r.distance_km for r in results])
        return [results[i] for i in order]

    def run(self, query: SearchQuery, mode: Optional[ScanMode] = None) -> SearchResponse:
        """
        Execute a validated query.

        Raises:
            StorageError: if the candidate fetch fails
        """
        mode = mode or self.scan_mode
        stats = SearchStats(scan_mode=mode.value)

        with Timer() as total:
            with Timer() as t:
                records = self.fetch_candidates(query, mode)
            stats.fetch_ms = t.elapsed_ms
            stats.total_scanned = len(records)

            with Timer() as t:
                partition = self.partition_records(records)
            stats.decrypt_ms = t.elapsed_ms
            stats.decrypted = len(partition.decrypted)
            stats.failed = len(partition.failed)

            with Timer() as t:
                results = self.rank(self.filter_in_range(query, partition.decrypted))
            stats.filter_ms = t.elapsed_ms
            stats.within_range = len(results)

        stats.total_ms = total.elapsed_ms

        return SearchResponse(
            success=True,
            results=results,
            stats=stats,
            message=f"Found {stats.within_range} POI(s) within {query.radius_km:g}km",
        )

    def search(
        self,
        latitude: Any,
        longitude: Any,
        radius_km: Any,
        mode: Optional[ScanMode] = None,
        identity: Optional[Identity] = None,
    ) -> SearchResponse:
        """
        Search POIs within `radius_km` of a center.

        Never raises: validation and storage failures come back as
        unsuccessful responses.
        """
        identity = identity or Identity.anonymous()
        request = {
            "latitude": latitude,
            "longitude": longitude,
            "radius": radius_km,
            "userId": identity.user_id,
        }

        try:
            query = validate_query(latitude, longitude, radius_km)
        except ValidationError as exc:
            self.audit.error("POI search failed", error=str(exc), **request)
            return SearchResponse(
                success=False,
                message=str(exc),
                error=str(exc),
                error_kind=SearchResponse.ERROR_VALIDATION,
            )

        self.audit.info("POI search initiated", **request)

        try:
            response = self.run(query, mode=mode)
        except StorageError as exc:
            logger.error("POI search failed: %s", exc)
            self.audit.error("POI search failed", error=str(exc), **request)
            return SearchResponse(
                success=False,
                message=f"Search failed: {exc}",
                error=repr(exc),
                error_kind=SearchResponse.ERROR_STORAGE,
            )

        self.audit.success(
            "POI search completed",
            totalScanned=response.stats.total_scanned,
            decrypted=response.stats.decrypted,
            withinRange=response.stats.within_range,
            **request,
        )
        return response

    def get_poi_details(
        self,
        record_id: str,
        identity: Optional[Identity] = None,
    ) -> OperationResult:
        """
        Fetch and decrypt a single record.

        Unlike bulk search, a decrypt failure here is reported to the caller.
        """
        identity = identity or Identity.anonymous()
        try:
            record = self.store.get(self.collection, record_id)
            if record is None:
                return OperationResult(
                    success=False,
                    message="Failed to retrieve POI details",
                    error="POI not found",
                )
            poi = self.codec.decrypt_poi(record.encrypted_data)
        except (DecryptionError, StorageError) as exc:
            self.audit.error(
                "Failed to get POI details",
                poiId=record_id,
                error=str(exc),
                userId=identity.user_id,
            )
            return OperationResult(
                success=False,
                message="Failed to retrieve POI details",
                error=str(exc),
            )

        return OperationResult(
            success=True,
            message="POI retrieved",
            data=poi_details(record, poi),
        )


def poi_details(record: EncryptedRecord, poi: POI) -> Dict[str, Any]:
    """Decrypted POI fields plus attribution."""
    details = {"id": record.id}
    details.update(poi.to_record())
    details["uploaded_by"] = record.uploaded_by_email
    details["uploaded_at"] = record.uploaded_at
    details["updated_at"] = record.updated_at
    return details
