"""
CrowdShield - REST API

FastAPI application acting as the hosted backend: report store with realtime
push, audio storage, the classification proxy, and the organizer dashboard.

Run with: uvicorn crowdshield.api.main:app --reload
"""

import asyncio
import contextlib
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, List, Dict, Any
from zoneinfo import ZoneInfo

from fastapi import (
    FastAPI, HTTPException, Query, File, UploadFile, Header, Depends,
    WebSocket, WebSocketDisconnect,
)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from pydantic import BaseModel, Field

from crowdshield import __version__
from crowdshield.ai.analyzer import IncidentAnalyzer
from crowdshield.core.config import settings
from crowdshield.core.constants import ZONES, CATEGORY_IDS, CATEGORY_LABELS
from crowdshield.core.exceptions import (
    BlobStorageError,
    ReportNotFoundError,
    ReportStoreError,
    ReportValidationError,
)
from crowdshield.core.logging import get_logger
from crowdshield.crowdsource.report import Report
from crowdshield.dashboard.analytics import compute_analytics
from crowdshield.dashboard.feed import ReportFeed
from crowdshield.dashboard.zone_status import compute_zone_statuses
from crowdshield.database.connection import DatabaseConnection, init_db
from crowdshield.database.store import ReportStore
from crowdshield.storage.blob_store import LocalBlobStorage, extension_for

logger = get_logger(__name__)

# FastAPI app
app = FastAPI(
    title="CrowdShield",
    description="Event safety incident reporting: attendee danger reports and a live organizer dashboard",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Pydantic Models
# ============================================================================

class HealthResponse(BaseModel):
    """API health check response."""
    status: str
    version: str
    timestamp: str
    modules: dict


class ReportCreateRequest(BaseModel):
    """Report submitted by an attendee device."""
    zone: str = Field(..., description="One of the event zones")
    category: str = Field(..., description="Reporter-chosen category")
    device_id: str = Field(..., min_length=1, max_length=64)
    text: Optional[str] = Field(default=None, max_length=settings.report_text_max_length)
    audio_url: Optional[str] = None
    transcript: Optional[str] = None
    urgency: Optional[str] = Field(default=None, pattern="^(low|medium|high)$")
    ai_category: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)


class ReportUpdateRequest(BaseModel):
    """Organizer correction."""
    text: Optional[str] = Field(default=None, max_length=settings.report_text_max_length)
    created_at: Optional[datetime] = None


class ReportResponse(BaseModel):
    """Stored report."""
    id: str
    zone: str
    category: str
    text: Optional[str]
    device_id: str
    created_at: str
    audio_url: Optional[str]
    transcript: Optional[str]
    urgency: Optional[str]
    ai_category: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]


class ReportListResponse(BaseModel):
    """List of reports, newest first."""
    count: int
    reports: List[ReportResponse]


class FeedEntryResponse(BaseModel):
    """Incident feed line."""
    id: str
    zone: str
    category: str
    category_label: str
    description: Optional[str]
    urgency: Optional[str]
    ai_category: Optional[str]
    device_label: str
    created_at: str


class FeedResponse(BaseModel):
    count: int
    entries: List[FeedEntryResponse]


class AnalyzeRequest(BaseModel):
    """Classification request."""
    text: Optional[str] = None
    audio_url: Optional[str] = None


class AnalyzeResponse(BaseModel):
    urgency: str
    ai_category: str
    transcript: str


class AudioUploadResponse(BaseModel):
    key: str
    url: str


class ZoneStatusResponse(BaseModel):
    zone: str
    level: str
    device_count: int
    report_count: int
    top_category: Optional[str]
    top_category_count: int


class ZoneListResponse(BaseModel):
    window_seconds: int
    zones: List[ZoneStatusResponse]


class HourlyBucketResponse(BaseModel):
    label: str
    start: str
    count: int


class AnalyticsResponse(BaseModel):
    total_today: int
    top_category: Optional[str]
    top_category_count: int
    top_zone: Optional[str]
    top_zone_count: int
    hourly: List[HourlyBucketResponse]


# ============================================================================
# Services
# ============================================================================

_db: Optional[DatabaseConnection] = None
_store: Optional[ReportStore] = None
_feed: Optional[ReportFeed] = None
_blobs: Optional[LocalBlobStorage] = None
_analyzer: Optional[IncidentAnalyzer] = None


def configure(
    database_url: Optional[str] = None,
    storage_dir: Optional[str] = None
) -> None:
    """
    (Re)build the global services.

    Args:
        database_url: Override of the configured database
        storage_dir: Override of the configured audio directory
    """
    global _db, _store, _feed, _blobs, _analyzer

    if _feed is not None:
        _feed.detach()

    _db = init_db(database_url or settings.database_url)
    _store = ReportStore(_db, text_max_length=settings.report_text_max_length)
    _feed = ReportFeed(lookback_hours=settings.feed_lookback_hours)
    _feed.attach(_store)
    _blobs = LocalBlobStorage(
        storage_dir or settings.storage_dir,
        public_base_url=settings.public_base_url,
    )
    _analyzer = IncidentAnalyzer(
        api_key=settings.ai_gateway_api_key,
        gateway_url=settings.ai_gateway_url,
        model=settings.ai_model,
        timeout=settings.classification_timeout_seconds,
    )


configure()


def require_organizer(x_organizer_key: Optional[str] = Header(default=None)) -> None:
    """Check the organizer key when one is configured."""
    if settings.organizer_api_key and x_organizer_key != settings.organizer_api_key:
        raise HTTPException(status_code=401, detail="Organizer key required")


def dashboard_now() -> datetime:
    return datetime.now(ZoneInfo(settings.dashboard_timezone))


def to_response(report: Report) -> ReportResponse:
    return ReportResponse(**report.to_dict())


async def cancel_task(task: "asyncio.Task") -> None:
    """Cancel a background task and consume its outcome, including a failure."""
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError, Exception):
        await task
    if not task.cancelled() and task.exception() is not None:
        logger.warning(f"Background task failed: {task.exception()}")


# ============================================================================
# System Routes
# ============================================================================

@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check():
    """Check API health status and module availability."""
    modules = {
        "database": _db.check_connection(),
        "ai_gateway": bool(settings.ai_gateway_api_key),
        "organizer_auth": bool(settings.organizer_api_key),
    }

    return HealthResponse(
        status="healthy" if modules["database"] else "degraded",
        version=__version__,
        timestamp=datetime.now(timezone.utc).isoformat(),
        modules=modules,
    )


@app.get("/api/v1/meta", tags=["System"])
async def get_metadata():
    """Zones and categories offered on the report page."""
    return {
        "zones": list(ZONES),
        "categories": [
            {"id": cat_id, **CATEGORY_LABELS[cat_id]} for cat_id in CATEGORY_IDS
        ],
        "text_max_length": settings.report_text_max_length,
        "rate_limit_seconds": settings.rate_limit_seconds,
    }


# ============================================================================
# Report Routes
# ============================================================================

@app.post("/api/v1/reports", response_model=ReportResponse, status_code=201, tags=["Reports"])
async def create_report(request: ReportCreateRequest):
    """
    Store a danger report.

    Realtime subscribers are notified once the insert is committed.
    """
    try:
        report = _store.insert(request.model_dump())
    except ReportValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except ReportStoreError as e:
        logger.error(f"Report insert failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to store report")

    return to_response(report)


@app.get("/api/v1/reports", response_model=ReportListResponse, tags=["Reports"])
async def list_reports(
    hours: int = Query(default=24, ge=1, le=168, description="Look back this many hours"),
    limit: int = Query(default=200, ge=1, le=1000),
    _: None = Depends(require_organizer),
):
    """List reports newest first."""
    since = datetime.now(timezone.utc) - timedelta(hours=hours)
    try:
        reports = _store.query(since, limit=limit)
    except ReportStoreError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return ReportListResponse(
        count=len(reports),
        reports=[to_response(r) for r in reports],
    )


@app.get("/api/v1/reports/{report_id}", response_model=ReportResponse, tags=["Reports"])
async def get_report(report_id: str, _: None = Depends(require_organizer)):
    """Get a specific report by ID."""
    report = _store.get(report_id)

    if not report:
        raise HTTPException(status_code=404, detail="Report not found")

    return to_response(report)


@app.patch("/api/v1/reports/{report_id}", response_model=ReportResponse, tags=["Reports"])
async def update_report(
    report_id: str,
    request: ReportUpdateRequest,
    _: None = Depends(require_organizer),
):
    """Organizer correction of a report's text or timestamp."""
    patch = request.model_dump(exclude_unset=True)
    if patch.get("created_at") is None:
        patch.pop("created_at", None)

    try:
        report = _store.update(report_id, **patch)
    except ReportNotFoundError:
        raise HTTPException(status_code=404, detail="Report not found")
    except ReportValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except ReportStoreError as e:
        raise HTTPException(status_code=500, detail=str(e))

    _feed.apply_update(report)
    return to_response(report)


@app.websocket("/api/v1/reports/stream")
async def stream_reports(websocket: WebSocket):
    """Push every new report to the connected dashboard."""
    loop = asyncio.get_running_loop()
    queue: "asyncio.Queue[Report]" = asyncio.Queue()

    # Subscribed before accept so the client never misses an insert
    unsubscribe = _store.subscribe(
        lambda report: loop.call_soon_threadsafe(queue.put_nowait, report)
    )

    async def forward():
        while True:
            report = await queue.get()
            await websocket.send_json({"event": "INSERT", "report": report.to_dict()})

    sender = None
    try:
        await websocket.accept()
        sender = asyncio.create_task(forward())
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("Report stream client disconnected")
    finally:
        if sender is not None:
            await cancel_task(sender)
        unsubscribe()


# ============================================================================
# Audio Routes
# ============================================================================

@app.post("/api/v1/audio", response_model=AudioUploadResponse, status_code=201, tags=["Audio"])
async def upload_audio(
    audio: UploadFile = File(...),
    device_id: Optional[str] = Query(default=None, max_length=64),
):
    """Store a recording and return its public URL."""
    max_bytes = settings.max_audio_upload_bytes
    data = await audio.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise HTTPException(status_code=413, detail=f"Audio exceeds {max_bytes} bytes")
    if not data:
        raise HTTPException(status_code=422, detail="Empty audio upload")

    content_type = audio.content_type or "application/octet-stream"
    prefix = re.sub(r"[^A-Za-z0-9_-]", "", device_id or "")[:64] or "anonymous"
    key = f"{prefix}-{uuid.uuid4().hex[:12]}.{extension_for(content_type)}"

    try:
        _blobs.upload(key, data, content_type)
        url = _blobs.get_public_url(key)
    except BlobStorageError as e:
        logger.error(f"Audio upload failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to store audio")

    return AudioUploadResponse(key=key, url=url)


@app.get("/api/v1/audio/{key}", tags=["Audio"])
async def get_audio(key: str):
    """Serve a stored recording."""
    try:
        path = _blobs.open_path(key)
    except BlobStorageError:
        raise HTTPException(status_code=404, detail="Audio not found")

    if path is None:
        raise HTTPException(status_code=404, detail="Audio not found")

    return FileResponse(path)


# ============================================================================
# Classification Routes
# ============================================================================

@app.post("/api/v1/analyze", response_model=AnalyzeResponse, tags=["Classification"])
async def analyze_report(request: AnalyzeRequest):
    """
    Classify report text.

    Always answers 200; gateway problems yield low / other / echoed text.
    """
    result = await asyncio.to_thread(_analyzer.analyze, request.text)
    return AnalyzeResponse(**result)


# ============================================================================
# Dashboard Routes
# ============================================================================

@app.get("/api/v1/dashboard/zones", response_model=ZoneListResponse, tags=["Dashboard"])
async def get_zone_statuses(_: None = Depends(require_organizer)):
    """Danger level per zone from distinct devices in the trailing window."""
    statuses = compute_zone_statuses(
        _feed.reports,
        now=datetime.now(timezone.utc),
        window_seconds=settings.zone_window_seconds,
    )
    return ZoneListResponse(
        window_seconds=settings.zone_window_seconds,
        zones=[ZoneStatusResponse(**s.to_dict()) for s in statuses],
    )


@app.get("/api/v1/dashboard/feed", response_model=FeedResponse, tags=["Dashboard"])
async def get_feed(
    limit: int = Query(default=settings.feed_limit, ge=1, le=200),
    _: None = Depends(require_organizer),
):
    """Most recent incidents."""
    entries = [
        FeedEntryResponse(
            id=r.id,
            zone=r.zone,
            category=r.category,
            category_label=CATEGORY_LABELS.get(r.category, {}).get("label", r.category),
            description=r.description,
            urgency=r.urgency,
            ai_category=r.ai_category,
            device_label=r.device_label,
            created_at=r.created_at.isoformat(),
        )
        for r in _feed.recent(limit)
    ]
    return FeedResponse(count=len(entries), entries=entries)


@app.get("/api/v1/dashboard/analytics", response_model=AnalyticsResponse, tags=["Dashboard"])
async def get_analytics(_: None = Depends(require_organizer)):
    """Today's totals, top category and zone, and hourly histogram."""
    summary = compute_analytics(_feed.reports, now=dashboard_now())
    data: Dict[str, Any] = summary.to_dict()
    return AnalyticsResponse(**data)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
