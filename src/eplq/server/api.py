"""
FastAPI server for encrypted POI upload and proximity search.

Endpoints:
- GET /health - Liveness and collection size
- POST /pois - Upload one POI
- POST /pois/bulk - Upload parsed rows
- GET /pois - Encrypted records uploaded by the caller
- GET /pois/{poi_id} - Decrypted details of one POI
- PUT /pois/{poi_id} - Replace a POI
- DELETE /pois/{poi_id} - Delete a POI
- POST /search - Radius search
- GET /search/history - Caller's recent searches

The caller is identified by the X-User-Id / X-User-Email headers; identity
is used for attribution only.
"""
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, Header, HTTPException
from pydantic import BaseModel, Field

from eplq.client.admin import PoiAdmin
from eplq.client.crypto import CryptoCodec
from eplq.client.search import ProximityQueryEngine
from eplq.config import Settings, get_settings
from eplq.server.store import DocumentStore, InMemoryDocumentStore
from eplq.shared.audit import AuditEmitter, AuditSink, InMemoryAuditSink
from eplq.shared.protocol import Identity, ScanMode, SearchResponse

logger = logging.getLogger(__name__)


# Pydantic models for API
class PoiRequest(BaseModel):
    """POI fields as submitted by an uploader; validated by the engine."""
    name: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    description: str = ""


class BulkUploadRequest(BaseModel):
    pois: List[PoiRequest]


class SearchRequest(BaseModel):
    """Radius search request."""
    latitude: float
    longitude: float
    radius_km: float = Field(..., description="Search radius in kilometers")
    mode: Optional[ScanMode] = Field(None, description="Override the configured scan mode")


class SearchResultModel(BaseModel):
    record_id: Optional[str]
    name: str
    latitude: float
    longitude: float
    description: str
    timestamp: Optional[str]
    distance_km: float
    uploaded_by: str
    uploaded_at: Optional[str]


class SearchStatsModel(BaseModel):
    total_scanned: int
    decrypted: int
    failed: int
    within_range: int
    scan_mode: str
    total_ms: float


class SearchResponseModel(BaseModel):
    """Search results and counters."""
    results: List[SearchResultModel]
    stats: SearchStatsModel
    message: str


class RegionModel(BaseModel):
    lat: float
    lng: float


class EncryptedRecordModel(BaseModel):
    """Stored form of a POI as the store sees it."""
    id: Optional[str]
    encrypted_data: str
    approximate_region: RegionModel
    uploaded_by: str
    uploaded_by_email: str
    uploaded_at: str
    updated_at: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    num_records: int
    scan_mode: str


# Server state
class ServerState:
    """Server state container."""
    def __init__(self):
        self.settings: Optional[Settings] = None
        self.store: Optional[DocumentStore] = None
        self.audit_sink: Optional[AuditSink] = None
        self.engine: Optional[ProximityQueryEngine] = None
        self.admin: Optional[PoiAdmin] = None

    @property
    def ready(self) -> bool:
        return self.engine is not None and self.admin is not None


state = ServerState()


def configure_state(
    settings: Optional[Settings] = None,
    store: Optional[DocumentStore] = None,
    audit_sink: Optional[AuditSink] = None,
) -> ServerState:
    """Wire codec, engine and admin service into the server state."""
    settings = settings or get_settings()
    store = store if store is not None else InMemoryDocumentStore()
    audit_sink = audit_sink if audit_sink is not None else InMemoryAuditSink()
    audit = AuditEmitter(audit_sink)

    codec = CryptoCodec.from_settings(settings, audit=audit)
    state.settings = settings
    state.store = store
    state.audit_sink = audit_sink
    state.engine = ProximityQueryEngine.from_settings(settings, codec, store, audit=audit)
    state.admin = PoiAdmin.from_settings(settings, codec, store, audit=audit)
    return state


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize server on startup."""
    if not state.ready:
        configure_state()
    logger.info(
        "Server ready: collection=%s, scan_mode=%s",
        state.engine.collection,
        state.engine.scan_mode.value,
    )
    yield
    logger.info("Server shutting down")


app = FastAPI(
    title="EPLQ",
    description="Privacy-preserving proximity search over encrypted POIs",
    version="0.1.0",
    lifespan=lifespan,
)


def get_identity(x_user_id: str, x_user_email: str) -> Identity:
    return Identity(user_id=x_user_id, email=x_user_email)


def _require_ready() -> None:
    if not state.ready:
        raise HTTPException(status_code=500, detail="Server not initialized")


def _record_model(record) -> EncryptedRecordModel:
    return EncryptedRecordModel(
        id=record.id,
        encrypted_data=record.encrypted_data,
        approximate_region=RegionModel(
            lat=record.approximate_region.lat,
            lng=record.approximate_region.lng,
        ),
        uploaded_by=record.uploaded_by,
        uploaded_by_email=record.uploaded_by_email,
        uploaded_at=record.uploaded_at,
        updated_at=record.updated_at,
    )


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    _require_ready()
    return HealthResponse(
        status="healthy",
        num_records=state.store.count(state.engine.collection),
        scan_mode=state.engine.scan_mode.value,
    )


@app.post("/pois", status_code=201)
async def upload_poi(
    request: PoiRequest,
    x_user_id: str = Header("anonymous"),
    x_user_email: str = Header("anonymous"),
):
    """Encrypt and store one POI."""
    _require_ready()
    result = state.admin.upload_poi(request.model_dump(), get_identity(x_user_id, x_user_email))
    if not result.success:
        raise HTTPException(status_code=400, detail=result.message)
    return {"id": result.data, "message": result.message}


@app.post("/pois/bulk")
async def upload_pois(
    request: BulkUploadRequest,
    x_user_id: str = Header("anonymous"),
    x_user_email: str = Header("anonymous"),
):
    """Upload many POIs; bad rows are reported, not fatal."""
    _require_ready()
    result = state.admin.upload_many(
        [poi.model_dump() for poi in request.pois],
        get_identity(x_user_id, x_user_email),
    )
    return {"message": result.message, **result.data}


@app.get("/pois", response_model=List[EncryptedRecordModel])
async def list_pois(
    x_user_id: str = Header("anonymous"),
    x_user_email: str = Header("anonymous"),
):
    """Encrypted records uploaded by the caller, newest first."""
    _require_ready()
    result = state.admin.list_uploads(get_identity(x_user_id, x_user_email))
    if not result.success:
        raise HTTPException(status_code=503, detail=result.message)
    return [_record_model(r) for r in result.data]


@app.get("/pois/{poi_id}")
async def get_poi(
    poi_id: str,
    x_user_id: str = Header("anonymous"),
    x_user_email: str = Header("anonymous"),
):
    """Decrypted details of a single POI."""
    _require_ready()
    result = state.engine.get_poi_details(poi_id, get_identity(x_user_id, x_user_email))
    if not result.success:
        status = 404 if result.error == "POI not found" else 422
        raise HTTPException(status_code=status, detail=result.error)
    return result.data


@app.put("/pois/{poi_id}")
async def update_poi(
    poi_id: str,
    request: PoiRequest,
    x_user_id: str = Header("anonymous"),
    x_user_email: str = Header("anonymous"),
):
    """Re-encrypt and replace a POI."""
    _require_ready()
    if state.store.get(state.engine.collection, poi_id) is None:
        raise HTTPException(status_code=404, detail="POI not found")
    result = state.admin.update_poi(
        poi_id, request.model_dump(), get_identity(x_user_id, x_user_email)
    )
    if not result.success:
        raise HTTPException(status_code=400, detail=result.error)
    return {"id": poi_id, "message": result.message}


@app.delete("/pois/{poi_id}")
async def delete_poi(
    poi_id: str,
    x_user_id: str = Header("anonymous"),
    x_user_email: str = Header("anonymous"),
):
    """Delete a POI."""
    _require_ready()
    result = state.admin.delete_poi(poi_id, get_identity(x_user_id, x_user_email))
    if not result.success:
        raise HTTPException(status_code=404, detail=result.error)
    return {"id": poi_id, "message": result.message}


@app.post("/search", response_model=SearchResponseModel)
async def search(
    request: SearchRequest,
    x_user_id: str = Header("anonymous"),
    x_user_email: str = Header("anonymous"),
):
    """
    Radius search.

    Every stored record is decrypted server-side with the configured key;
    records that do not decrypt are skipped and counted.
    """
    _require_ready()
    response = state.engine.search(
        request.latitude,
        request.longitude,
        request.radius_km,
        mode=request.mode,
        identity=get_identity(x_user_id, x_user_email),
    )
    if not response.success:
        status = 400 if response.error_kind == SearchResponse.ERROR_VALIDATION else 503
        raise HTTPException(status_code=status, detail=response.message)

    stats = response.stats
    return SearchResponseModel(
        results=[SearchResultModel(**r.to_dict()) for r in response.results],
        stats=SearchStatsModel(
            total_scanned=stats.total_scanned,
            decrypted=stats.decrypted,
            failed=stats.failed,
            within_range=stats.within_range,
            scan_mode=stats.scan_mode,
            total_ms=stats.total_ms,
        ),
        message=response.message,
    )


@app.get("/search/history")
async def search_history(
    limit: int = 10,
    x_user_id: str = Header("anonymous"),
):
    """Recent searches of the caller, from the in-memory audit sink."""
    _require_ready()
    if not isinstance(state.audit_sink, InMemoryAuditSink):
        raise HTTPException(status_code=501, detail="Audit sink does not keep history")
    events = state.audit_sink.search_history(x_user_id, limit=limit)
    return {
        "history": [
            {
                "action": e.action,
                "level": e.level.value,
                "timestamp": e.timestamp,
                "metadata": e.metadata,
            }
            for e in events
        ]
    }


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[DocumentStore] = None,
    audit_sink: Optional[AuditSink] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI app.

    For programmatic use in tests and demos.
    """
    configure_state(settings, store, audit_sink)
    return app


def run_server(host: Optional[str] = None, port: Optional[int] = None):
    """Run the server directly."""
    import uvicorn
    from eplq.logger import configure_logging

    configure_logging()
    settings = get_settings()
    uvicorn.run(
        app,
        host=host or settings.server.host,
        port=port or settings.server.port,
    )


if __name__ == "__main__":
    run_server()
