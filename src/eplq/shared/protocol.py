"""
Record shapes exchanged between the codec, the engine and the store.
"""
import math
from dataclasses import dataclass, field, asdict
from typing import List, Optional, Any, ClassVar, NamedTuple, Type
from enum import Enum

from eplq.shared.errors import InvalidPOIError, ValidationError


LATITUDE_RANGE = (-90.0, 90.0)
LONGITUDE_RANGE = (-180.0, 180.0)


class ScanMode(Enum):
    """How the engine builds its candidate set."""
    FULL = "full"        # whole collection, reference behavior
    REGION = "region"    # approximate-region pre-filter in the store


def coerce_coordinate(
    value: Any,
    name: str,
    bounds: tuple,
    error_cls: Type[ValidationError] = InvalidPOIError,
) -> float:
    """
    Convert `value` to a finite float inside `bounds`.

    Raises:
        error_cls: naming `name` when the value is missing, non-numeric,
            not finite or out of range
    """
    if value is None or isinstance(value, bool):
        raise error_cls(f"Invalid {name}. Must be a number", field=name)
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        raise error_cls(f"Invalid {name}. Must be a number", field=name) from None

    low, high = bounds
    if not math.isfinite(number) or number < low or number > high:
        raise error_cls(
            f"Invalid {name}. Must be between {low:g} and {high:g}", field=name
        )
    return number


class Region(NamedTuple):
    """Coordinates rounded to the 0.1 degree grid."""
    lat: float
    lng: float


@dataclass(frozen=True)
class BoundingBox:
    """Degree box around a search center."""
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def contains(self, lat: float, lng: float) -> bool:
        return (
            self.min_lat <= lat <= self.max_lat
            and self.min_lng <= lng <= self.max_lng
        )

    @property
    def crosses_pole(self) -> bool:
        return self.min_lat < LATITUDE_RANGE[0] or self.max_lat > LATITUDE_RANGE[1]

    @property
    def crosses_antimeridian(self) -> bool:
        return self.min_lng < LONGITUDE_RANGE[0] or self.max_lng > LONGITUDE_RANGE[1]


@dataclass
class POI:
    """
    Plaintext point of interest.

    Coordinates are validated (and numeric strings coerced) on construction,
    so a POI instance is always safe to encrypt.
    """
    name: str
    latitude: float
    longitude: float
    description: str = ""
    timestamp: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name.strip():
            raise InvalidPOIError("POI name is required", field="name")
        self.latitude = coerce_coordinate(self.latitude, "latitude", LATITUDE_RANGE)
        self.longitude = coerce_coordinate(self.longitude, "longitude", LONGITUDE_RANGE)
        if self.description is None:
            self.description = ""
        elif not isinstance(self.description, str):
            raise InvalidPOIError("POI description must be text", field="description")

    def to_record(self) -> dict:
        """Plaintext record schema used inside the ciphertext."""
        return asdict(self)

    @classmethod
    def from_record(cls, record: dict) -> "POI":
        return cls(
            name=record.get("name"),
            latitude=record.get("latitude"),
            longitude=record.get("longitude"),
            description=record.get("description", ""),
            timestamp=record.get("timestamp"),
        )


@dataclass
class EncryptedRecord:
    """
    Persisted form of a POI.

    Only `approximate_region` carries location in the clear.
    """
    encrypted_data: str
    approximate_region: Region
    uploaded_by: str
    uploaded_by_email: str
    uploaded_at: str
    id: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass(frozen=True)
class SearchQuery:
    """Center and radius of a proximity search."""
    latitude: float
    longitude: float
    radius_km: float


@dataclass
class SearchResult:
    """One decrypted match; built per search and never persisted."""
    record_id: Optional[str]
    name: str
    latitude: float
    longitude: float
    description: str
    timestamp: Optional[str]
    distance_km: float
    uploaded_by: str
    uploaded_at: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SearchStats:
    """Counters and timings of a single search."""
    total_scanned: int = 0
    decrypted: int = 0
    failed: int = 0
    within_range: int = 0
    scan_mode: str = ScanMode.FULL.value
    fetch_ms: float = 0.0
    decrypt_ms: float = 0.0
    filter_ms: float = 0.0
    total_ms: float = 0.0

    def __str__(self) -> str:
        return (
            f"Search ({self.scan_mode})\n"
            f"  Scanned:      {self.total_scanned}\n"
            f"  Decrypted:    {self.decrypted}\n"
            f"  Failed:       {self.failed}\n"
            f"  Within range: {self.within_range}\n"
            f"  Total time:   {self.total_ms:.2f}ms"
        )


@dataclass
class SearchResponse:
    """
    Outcome of a search call.

    `error_kind` is set on failure: ERROR_VALIDATION for a rejected query,
    ERROR_STORAGE when the candidate fetch failed.
    """
    ERROR_VALIDATION: ClassVar[str] = "validation"
    ERROR_STORAGE: ClassVar[str] = "storage"

    success: bool
    results: List[SearchResult] = field(default_factory=list)
    stats: SearchStats = field(default_factory=SearchStats)
    message: str = ""
    error: Optional[str] = None
    error_kind: Optional[str] = None


@dataclass
class OperationResult:
    """Outcome of an administrative operation."""
    success: bool
    message: str
    error: Optional[str] = None
    data: Any = None


@dataclass(frozen=True)
class Identity:
    """Caller attribution, used for audit and ownership only."""
    user_id: str
    email: str

    @classmethod
    def anonymous(cls) -> "Identity":
        return cls(user_id="anonymous", email="anonymous")
