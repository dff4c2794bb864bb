"""Shared protocol, geometry, audit and error definitions."""
from eplq.shared.audit import (
    AuditEmitter,
    AuditEvent,
    AuditLevel,
    AuditSink,
    InMemoryAuditSink,
    LoggingAuditSink,
)
from eplq.shared.errors import (
    DecryptionError,
    DimensionMismatchError,
    EncryptionError,
    EplqError,
    InvalidPOIError,
    InvalidQueryError,
    RecordNotFoundError,
    StorageError,
    ValidationError,
)
from eplq.shared.geo import (
    approximate_region,
    bounding_box,
    format_distance,
    haversine_distance_km,
)
from eplq.shared.protocol import (
    POI,
    BoundingBox,
    EncryptedRecord,
    Identity,
    OperationResult,
    Region,
    ScanMode,
    SearchQuery,
    SearchResponse,
    SearchResult,
    SearchStats,
)
from eplq.shared.utils import Timer, generate_random_points, rank_by_distance

__all__ = [
    "AuditEmitter",
    "AuditEvent",
    "AuditLevel",
    "AuditSink",
    "BoundingBox",
    "DecryptionError",
    "DimensionMismatchError",
    "EncryptedRecord",
    "EncryptionError",
    "EplqError",
    "Identity",
    "InMemoryAuditSink",
    "InvalidPOIError",
    "InvalidQueryError",
    "LoggingAuditSink",
    "OperationResult",
    "POI",
    "RecordNotFoundError",
    "Region",
    "ScanMode",
    "SearchQuery",
    "SearchResponse",
    "SearchResult",
    "SearchStats",
    "StorageError",
    "Timer",
    "ValidationError",
    "approximate_region",
    "bounding_box",
    "format_distance",
    "generate_random_points",
    "haversine_distance_km",
    "rank_by_distance",
]
