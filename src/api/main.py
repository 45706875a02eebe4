"""
Scale Backend API

FastAPI server exposing the derived computations (scores, graph layout,
popup placement, table sort), debounced rating writes for async clients
and the rating maintenance jobs.
"""
import asyncio
import logging
from typing import Optional, List, Dict, Any, Tuple
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from src.scale.exceptions import (
    ClaimError,
    NotFoundError,
    PermissionDeniedError,
    ScaleError,
    UpstreamError,
    ValidationError,
)
from src.scale.factory import ScaleApp, create_scale_app
from src.scale.graph.layout import layout_positions
from src.scale.graph.popup import PopupPlacement, Rect, Size, place_popup
from src.scale.models import AggregatedScore, Group, GroupObject, Rating
from src.scale.scoring.aggregation import compute_scores
from src.scale.services.debounce import RatingDebouncer
from src.scale.services.integrity_service import FixReport, MigrationReport, RatingDiagnosis
from src.scale.table.table_view import SortDirection, sort_objects
from src.utils.config import get_settings
from src.utils.logging import setup_logging

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

# Lazily created so importing the module never touches the database
_scale_app: Optional[ScaleApp] = None


def get_scale_app() -> ScaleApp:
    """Lazy load the application container when first needed."""
    global _scale_app
    if _scale_app is None:
        try:
            _scale_app = create_scale_app()
            logger.info("Scale services loaded successfully")
        except Exception as e:
            logger.error(f"Failed to load Scale services: {e}")
            raise
    return _scale_app


# Debounced slider writes, one debouncer per (group, rater)
_debouncers: Dict[Tuple[str, str], RatingDebouncer] = {}


def get_debouncer(scale_app: ScaleApp, group_id: str, rater_id: str) -> RatingDebouncer:
    key = (group_id, rater_id)
    debouncer = _debouncers.get(key)
    if debouncer is None:
        def write(object_id: str, metric_id: str, value: float):
            return asyncio.to_thread(
                scale_app.ratings.submit_rating, group_id, metric_id, rater_id, object_id, value
            )
        debouncer = RatingDebouncer(write, delay=scale_app.settings.rating_debounce_seconds)
        _debouncers[key] = debouncer
    return debouncer


async def flush_all_debouncers() -> None:
    """Write every pending rating and forget the debouncers."""
    for debouncer in list(_debouncers.values()):
        await debouncer.flush()
    _debouncers.clear()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_file)
    logger.info("Scale API starting up...")
    yield
    await flush_all_debouncers()
    logger.info("Scale API shutting down...")


# Create FastAPI app
app = FastAPI(
    title="Scale API",
    description="Peer-rating groups: scores, graph layout and maintenance",
    version=API_VERSION,
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Error mapping
# ============================================================================

ERROR_STATUS = [
    (ValidationError, 422),
    (NotFoundError, 404),
    (ClaimError, 409),
    (PermissionDeniedError, 403),
    (UpstreamError, 502),
]


@app.exception_handler(ScaleError)
async def scale_error_handler(request: Request, exc: ScaleError):
    status_code = 500
    for error_type, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            status_code = code
            break
    if status_code >= 500:
        logger.error(f"{request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


# ============================================================================
# Request/Response Models
# ============================================================================

class HealthResponse(BaseModel):
    status: str
    version: str


class ScoresRequest(BaseModel):
    group: Group
    objects: List[GroupObject] = Field(default_factory=list)
    ratings: List[Rating] = Field(default_factory=list)
    honor_captain_mode: bool = Field(default=True, description="Use only captain ratings for captain-mode items")


class ScoresResponse(BaseModel):
    scores: List[AggregatedScore]


class LayoutRequest(BaseModel):
    group: Group
    objects: List[GroupObject] = Field(default_factory=list)
    scores: List[AggregatedScore] = Field(default_factory=list)
    x_metric_id: Optional[str] = Field(default=None, description="Metric on the X axis, or none")
    y_metric_id: Optional[str] = Field(default=None, description="Metric on the Y axis, or none")


class PositionResponse(BaseModel):
    object_id: str
    x: float
    y: float


class LayoutResponse(BaseModel):
    positions: List[PositionResponse]


class RectModel(BaseModel):
    x: float
    y: float
    width: float
    height: float

    def to_rect(self) -> Rect:
        return Rect(self.x, self.y, self.width, self.height)


class PopupRequest(BaseModel):
    anchor: RectModel
    container: RectModel
    width: float = Field(..., gt=0)
    height: float = Field(..., gt=0)
    pinned: bool = False
    padding: Optional[float] = Field(default=None, ge=0)


class PopupResponse(BaseModel):
    x: float
    y: float
    arrow_side: str
    pinned: bool


class SortRequest(BaseModel):
    objects: List[GroupObject] = Field(default_factory=list)
    scores: List[AggregatedScore] = Field(default_factory=list)
    column: Optional[str] = Field(default=None, description="'name', a metric id, or null")
    direction: SortDirection = 'desc'


class SortResponse(BaseModel):
    object_ids: List[str]


class MigrateRequest(BaseModel):
    dry_run: bool = False


class RatingRequest(BaseModel):
    group_id: str
    metric_id: str
    rater_id: str
    object_id: str
    value: float


class RatingFlushRequest(BaseModel):
    group_id: str
    rater_id: str


class RatingQueueResponse(BaseModel):
    status: str
    pending: int


# ============================================================================
# API Endpoints
# ============================================================================

@app.get("/", response_model=HealthResponse)
async def root():
    """Root endpoint - health check."""
    return HealthResponse(status="healthy", version=API_VERSION)


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(status="healthy", version=API_VERSION)


@app.post("/api/v1/scores", response_model=ScoresResponse)
async def calculate_scores(request: ScoresRequest):
    """Aggregate ratings into one score per (item, metric)."""
    captain_id = request.group.captain_id if request.honor_captain_mode else None
    scores = compute_scores(request.objects, request.group.ordered_metrics, request.ratings, captain_id=captain_id)
    return ScoresResponse(scores=scores)


def _resolve_metric(group: Group, metric_id: Optional[str]):
    if not metric_id:
        return None
    metric = group.get_metric(metric_id)
    if metric is None:
        raise NotFoundError("metric", metric_id)
    return metric


@app.post("/api/v1/layout", response_model=LayoutResponse)
async def calculate_layout(request: LayoutRequest):
    """Place visible items on the [0, 100] plot square."""
    x_metric = _resolve_metric(request.group, request.x_metric_id)
    y_metric = _resolve_metric(request.group, request.y_metric_id)
    positions = layout_positions(request.objects, request.scores, x_metric, y_metric)
    return LayoutResponse(positions=[
        PositionResponse(object_id=p.object_id, x=p.x, y=p.y) for p in positions
    ])


@app.post("/api/v1/popup", response_model=PopupResponse)
async def calculate_popup(request: PopupRequest):
    """Place a detail popup beside its anchor inside the container."""
    kwargs: Dict[str, Any] = {"pinned": request.pinned}
    if request.padding is not None:
        kwargs["padding"] = request.padding
    placement: PopupPlacement = place_popup(
        request.anchor.to_rect(),
        request.container.to_rect(),
        Size(request.width, request.height),
        **kwargs
    )
    return PopupResponse(
        x=placement.x,
        y=placement.y,
        arrow_side=placement.arrow_side,
        pinned=placement.pinned,
    )


@app.post("/api/v1/table/sort", response_model=SortResponse)
async def sort_table(request: SortRequest):
    """Order item ids by name or by a metric's average."""
    ordered = sort_objects(request.objects, request.scores, request.column, request.direction)
    return SortResponse(object_ids=ordered)


# ============================================================================
# Rating Endpoints
# ============================================================================

@app.post("/api/v1/ratings", response_model=RatingQueueResponse, status_code=202)
async def schedule_rating(request: RatingRequest, scale_app: ScaleApp = Depends(get_scale_app)):
    """
    Accept a slider change and save it once the slider settles.

    The rating is validated now; the write happens after the debounce delay,
    and a newer value for the same cell replaces the pending one.
    """
    _, value = scale_app.ratings.check_rating(
        request.group_id, request.metric_id, request.rater_id, request.object_id, request.value
    )
    debouncer = get_debouncer(scale_app, request.group_id, request.rater_id)
    debouncer.schedule(request.object_id, request.metric_id, value)
    return RatingQueueResponse(status="scheduled", pending=len(debouncer.pending))


@app.post("/api/v1/ratings/flush", response_model=RatingQueueResponse)
async def flush_ratings(request: RatingFlushRequest):
    """Write a rater's pending ratings now (e.g. when leaving the page)."""
    debouncer = _debouncers.get((request.group_id, request.rater_id))
    if debouncer is not None:
        await debouncer.flush()
    return RatingQueueResponse(status="flushed", pending=0)


# ============================================================================
# Maintenance Endpoints
# ============================================================================

@app.get("/api/v1/maintenance/diagnose-ratings", response_model=RatingDiagnosis)
def diagnose_ratings(group_id: Optional[str] = None, scale_app: ScaleApp = Depends(get_scale_app)):
    """Report ratings that point at missing items or placeholder members."""
    return scale_app.integrity.diagnose_ratings(group_id)


@app.post("/api/v1/maintenance/fix-ratings", response_model=FixReport)
def fix_ratings(scale_app: ScaleApp = Depends(get_scale_app)):
    """Re-point orphaned ratings to the same-named item in their group."""
    report = scale_app.integrity.fix_ratings()
    logger.info(f"Fixed {report.fixed_count} ratings ({report.unfixable_count} unfixable)")
    return report


@app.post("/api/v1/maintenance/migrate-objects", response_model=MigrationReport)
def migrate_objects(request: Optional[MigrateRequest] = None, scale_app: ScaleApp = Depends(get_scale_app)):
    """Convert placeholder members into items and re-point their ratings."""
    dry_run = request.dry_run if request else False
    return scale_app.integrity.migrate_placeholder_members(dry_run=dry_run)


@app.get("/api/v1/status")
def get_status(scale_app: ScaleApp = Depends(get_scale_app)):
    """Get API status and configuration."""
    settings = scale_app.settings
    return {
        "status": "running",
        "database_configured": settings.has_database,
        "store": type(scale_app.store).__name__,
    }
