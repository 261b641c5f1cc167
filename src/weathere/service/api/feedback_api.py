"""API service for forecast feedback and the synthetic activity controls.

Provides REST API endpoints for:
- Submitting hourly forecast feedback
- Reading hourly stats, comments and the accuracy summary
- Controlling the synthetic activity scheduler
- Demo seeding and health checks

Authentication lives in front of this service; the caller's identity arrives
in the ``X-User-Id`` / ``X-User-Name`` headers.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from weathere import __version__
from weathere.config.models import AppConfig
from weathere.config.schemas import AggregatedStats, TickOutcome
from weathere.data_pipeline.scheduler import SyntheticActivityScheduler
from weathere.data_pipeline.seeding import seed_demo_bots
from weathere.data_pipeline.storage.database import FeedbackDatabase, validate_comment
from weathere.errors import UnavailableError, ValidationError
from weathere.service.summarizer import Summarizer, build_summarizer
from weathere.service.summary_service import FeedbackSummaryService, SummaryPolicy
from weathere.utils.datetime import parse_iso_timestamp, utc_now
from weathere.utils.logging import get_logger

logger = get_logger(__name__)


# Pydantic models for API requests and responses
class FeedbackRequest(BaseModel):
    """Body of a feedback submission. Required fields are checked by the handler."""
    locationName: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    timezone: Optional[str] = None
    forecastTime: Optional[str] = None
    rating: Optional[Any] = None
    commentText: Optional[str] = None


class FeedbackResponse(BaseModel):
    ok: bool
    feedbackId: int


class StatsResponse(BaseModel):
    likes: int
    dislikes: int
    totalFeedback: int
    uniqueUsers: int


class CommentResponse(BaseModel):
    id: int
    userId: str
    userDisplayName: str
    commentText: str
    rating: str
    createdAt: str


class SummaryResponse(BaseModel):
    stats: StatsResponse
    comments: List[CommentResponse]
    aiSummary: Optional[str]


class BotControlRequest(BaseModel):
    action: Optional[str] = None
    frequency: Optional[float] = None


class BotControlResponse(BaseModel):
    success: bool
    active: bool
    frequency: float
    message: str


class BotStatusResponse(BaseModel):
    active: bool
    frequency: float
    frequencyMs: int
    nextRun: Optional[str]
    totalComments: int
    botUsers: int
    lastTickAt: Optional[str]
    lastOutcome: Optional[str]


class CommentNowResponse(BaseModel):
    success: bool
    outcome: str
    message: str


class HealthResponse(BaseModel):
    ok: bool
    databaseConnected: bool
    aiConfigured: bool
    schedulerRunning: bool
    timestamp: str


def _parse_forecast_time(value: str) -> datetime:
    try:
        return parse_iso_timestamp(value)
    except (TypeError, ValueError):
        raise ValidationError(f"forecastTime is not a valid ISO timestamp: {value}") from None


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def create_app(
    config: Optional[AppConfig] = None,
    database: Optional[FeedbackDatabase] = None,
    summarizer: Optional[Summarizer] = None,
    scheduler: Optional[SyntheticActivityScheduler] = None,
) -> FastAPI:
    """Build the API with its collaborators.

    Anything not passed in is constructed from ``config``.
    """
    config = config or AppConfig.from_env()
    database = database or FeedbackDatabase(config.database_path)
    if summarizer is None:
        summarizer = build_summarizer(
            config.openai_api_key, config.openai_model, config.summary_timeout_seconds
        )
    scheduler = scheduler or SyntheticActivityScheduler(
        database,
        frequency_seconds=config.bot_frequency_seconds,
        active=config.enable_demo_bots,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan."""
        logger.info("Starting feedback API service...")
        logger.info(f"AI configured: {summarizer is not None}")
        scheduler.start()
        yield
        scheduler.stop()
        logger.info("Shutting down feedback API service...")

    app = FastAPI(
        title="Weathere Feedback API",
        description="Hourly forecast-accuracy feedback, summaries and demo activity controls",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.database = database
    app.state.summary_service = FeedbackSummaryService(
        database,
        summarizer,
        policy=SummaryPolicy(max_output_tokens=config.summary_max_output_tokens),
    )
    app.state.scheduler = scheduler
    app.state.ai_configured = summarizer is not None

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return _error(400, str(exc))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        messages = []
        for err in exc.errors():
            field = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
            messages.append(f"{field}: {err.get('msg')}")
        return _error(400, f"Invalid request: {'; '.join(messages)}")

    @app.exception_handler(UnavailableError)
    async def unavailable_error_handler(request: Request, exc: UnavailableError):
        logger.error(f"Store unavailable for {request.url.path}: {exc}")
        return _error(503, "Service temporarily unavailable - database connection issue")

    _register_routes(app)
    return app


def get_db(request: Request) -> FeedbackDatabase:
    """Dependency to get the feedback database."""
    return request.app.state.database


def get_summary_service(request: Request) -> FeedbackSummaryService:
    return request.app.state.summary_service


def get_bot_scheduler(request: Request) -> SyntheticActivityScheduler:
    return request.app.state.scheduler


def get_current_user(
    x_user_id: Optional[str] = Header(default=None),
    x_user_name: Optional[str] = Header(default=None),
    db: FeedbackDatabase = Depends(get_db),
):
    """Resolve the authenticated caller forwarded by the auth layer."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    user, _ = db.get_or_create_user(x_user_id, x_user_name or "User")
    return user


def _register_routes(app: FastAPI) -> None:

    @app.get("/api/health", response_model=HealthResponse)
    def health_check(
        request: Request,
        db: FeedbackDatabase = Depends(get_db),
        scheduler: SyntheticActivityScheduler = Depends(get_bot_scheduler),
    ):
        """Health check endpoint."""
        return HealthResponse(
            ok=True,
            databaseConnected=db.ping(),
            aiConfigured=request.app.state.ai_configured,
            schedulerRunning=scheduler.scheduler.running,
            timestamp=utc_now().isoformat(),
        )

    @app.post("/api/feedback", response_model=FeedbackResponse)
    def submit_feedback(
        body: FeedbackRequest,
        user=Depends(get_current_user),
        db: FeedbackDatabase = Depends(get_db),
    ):
        """Create or replace the caller's feedback for one location and hour."""
        validate_comment(body.commentText)
        if not body.locationName or body.forecastTime is None or not body.rating:
            raise ValidationError("locationName, forecastTime, and rating are required")

        forecast_time = _parse_forecast_time(body.forecastTime)
        location = db.get_or_create_location(
            body.locationName, body.latitude, body.longitude, body.timezone
        )
        record = db.upsert_feedback(
            user.id, location.id, forecast_time, body.rating, body.commentText
        )

        return FeedbackResponse(ok=True, feedbackId=record.id)

    @app.get("/api/feedback/summary", response_model=SummaryResponse)
    def get_feedback_summary(
        locationName: Optional[str] = None,
        forecastTime: Optional[str] = None,
        service: FeedbackSummaryService = Depends(get_summary_service),
    ):
        """Stats, comments and accuracy summary for one location and hour."""
        if not locationName or not forecastTime:
            raise ValidationError("locationName and forecastTime are required")
        forecast_time = _parse_forecast_time(forecastTime)

        try:
            view = service.get_summary_view(locationName, forecast_time)
        except UnavailableError as e:
            logger.error(f"summary error: {e}")
            return _error(
                503,
                "Service temporarily unavailable - database connection issue",
                stats=AggregatedStats().to_dict(),
                comments=[],
                aiSummary="Service unavailable - please try again later",
            )

        logger.debug(f"Summary for {locationName} at {forecast_time}: {view.outcome.value}")
        return view.to_dict()

    @app.api_route("/api/scripts/seed-bots", methods=["GET", "POST"])
    def seed_bots(db: FeedbackDatabase = Depends(get_db)) -> Dict[str, Any]:
        """Create the simulation location and bot users if missing."""
        return seed_demo_bots(db)

    @app.get("/api/bots/status", response_model=BotStatusResponse)
    def bot_status(scheduler: SyntheticActivityScheduler = Depends(get_bot_scheduler)):
        status = scheduler.status()
        return BotStatusResponse(
            active=status["active"],
            frequency=status["frequency"],
            frequencyMs=status["intervalMillis"],
            nextRun=status["nextScheduledAt"],
            totalComments=status["totalSyntheticComments"],
            botUsers=status["actorPoolSize"],
            lastTickAt=status["lastTickAt"],
            lastOutcome=status["lastOutcome"],
        )

    @app.post("/api/bots/control", response_model=BotControlResponse)
    def bot_control(
        body: BotControlRequest,
        scheduler: SyntheticActivityScheduler = Depends(get_bot_scheduler),
    ):
        """Activate/deactivate the scheduler and optionally change its frequency."""
        if body.action not in (None, "activate", "deactivate"):
            raise ValidationError("action must be 'activate' or 'deactivate'")

        if body.action == "activate":
            scheduler.activate()
        elif body.action == "deactivate":
            scheduler.deactivate()

        if body.frequency is not None:
            scheduler.set_frequency(body.frequency)

        return BotControlResponse(
            success=True,
            active=scheduler.active,
            frequency=scheduler.interval_ms / 1000,
            message=f"Bot scheduler {'activated' if scheduler.active else 'deactivated'}",
        )

    @app.post("/api/bots/comment-now", response_model=CommentNowResponse)
    def bot_comment_now(scheduler: SyntheticActivityScheduler = Depends(get_bot_scheduler)):
        """Run one synthetic tick right away."""
        result = scheduler.trigger_now()
        return CommentNowResponse(
            success=result.outcome is not TickOutcome.ERROR,
            outcome=result.outcome.value,
            message=result.message,
        )
