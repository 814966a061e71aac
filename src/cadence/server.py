import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

from fastapi import FastAPI, HTTPException, Query, Request
from pydantic import BaseModel, Field

from cadence.application.config import AppConfig, resolve_config
from cadence.application.factory import Services, build_services
from cadence.consts import VERSION
from cadence.domain.errors import (
    CadenceError,
    ConcurrentUpdateError,
    InvalidTransitionError,
    NotFoundError,
)
from cadence.domain.models import StudyMode, UserTier

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("cadence.server")

REPORT_DEFAULT_DAYS = 30


def _http_error(e: CadenceError) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (InvalidTransitionError, ConcurrentUpdateError)):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


def _as_utc(value: datetime) -> datetime:
    # Query timestamps without an offset are UTC.
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _services(request: Request) -> Services:
    return request.app.state.services


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float
    active_sessions: int


class CreateSessionRequest(BaseModel):
    user_id: str = Field(min_length=1)
    mode: StudyMode = StudyMode.STANDARD
    # Tier or role name; falls back to the configured default tier.
    tier: str | None = None


class ReviewRequest(BaseModel):
    card_id: str
    rating: int = Field(ge=0, le=5)
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)


def create_app(config: AppConfig | None = None, services: Services | None = None) -> FastAPI:
    """
    Build the HTTP app.

    Services are built on startup from `config` (resolved from env/TOML if
    not provided) unless prebuilt ones are passed in.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cfg = config or resolve_config()
        app.state.config = cfg
        app.state.services = services or build_services(cfg)
        app.state.start_time = time.time()
        logger.info(f"Cadence Server v{VERSION} starting up...")
        yield
        logger.info("Cadence Server shutting down...")
        await app.state.services.manager.shutdown()

    app = FastAPI(
        title="Cadence Server",
        description="Spaced-repetition scheduling and study sessions.",
        version=VERSION,
        lifespan=lifespan,
    )

    @app.get("/health", response_model=HealthResponse)
    async def health_check(request: Request):
        """
        Simple health check to verify server is reachable.
        """
        return HealthResponse(
            status="ok",
            version=VERSION,
            uptime_seconds=time.time() - request.app.state.start_time,
            active_sessions=len(_services(request).manager.active_session_ids()),
        )

    @app.get("/version")
    async def get_version():
        return {"version": VERSION}

    # ---------- Sessions ----------

    @app.post("/sessions", status_code=201)
    async def create_session(req: CreateSessionRequest, request: Request):
        tier = UserTier.parse(req.tier) if req.tier else request.app.state.config.default_tier
        try:
            manager = _services(request).manager
            return await manager.create_session(req.user_id, req.mode, tier=tier)
        except CadenceError as e:
            raise _http_error(e) from e

    @app.get("/sessions/{session_id}")
    async def get_session(session_id: str, request: Request):
        try:
            return await _services(request).manager.get_session_state(session_id)
        except CadenceError as e:
            raise _http_error(e) from e

    @app.post("/sessions/{session_id}/reviews")
    async def review_card(session_id: str, req: ReviewRequest, request: Request):
        """Record a card review in an active session."""
        try:
            return await _services(request).manager.process_card_review(
                session_id, req.card_id, req.rating, req.confidence
            )
        except CadenceError as e:
            logger.warning(f"Review rejected for session {session_id}: {e}")
            raise _http_error(e) from e

    @app.post("/sessions/{session_id}/pause")
    async def pause_session(session_id: str, request: Request):
        try:
            return await _services(request).manager.pause_session(session_id)
        except CadenceError as e:
            raise _http_error(e) from e

    @app.post("/sessions/{session_id}/resume")
    async def resume_session(session_id: str, request: Request):
        try:
            return await _services(request).manager.resume_session(session_id)
        except CadenceError as e:
            raise _http_error(e) from e

    @app.post("/sessions/{session_id}/complete")
    async def complete_session(session_id: str, request: Request):
        """Complete a session and archive it in the session history."""
        services = _services(request)
        try:
            result = await services.manager.complete_session(session_id)
        except CadenceError as e:
            raise _http_error(e) from e
        await services.history.save_session(result)
        return result

    # ---------- Users ----------

    @app.get("/users/{user_id}/due")
    async def due_cards(
        user_id: str,
        request: Request,
        mode: StudyMode = StudyMode.STANDARD,
        limit: int | None = Query(default=None, ge=0),
    ):
        selector = _services(request).selector
        if limit is None:
            limit = await selector.optimal_batch_size(user_id, mode)
        cards = await selector.select_due(user_id, mode, limit)
        return {"user_id": user_id, "mode": mode, "cards": cards}

    @app.get("/users/{user_id}/batch-size")
    async def batch_size(user_id: str, request: Request, mode: StudyMode = StudyMode.STANDARD):
        size = await _services(request).selector.optimal_batch_size(user_id, mode)
        return {"user_id": user_id, "mode": mode, "batch_size": size}

    @app.get("/users/{user_id}/streak")
    async def study_streak(user_id: str, request: Request):
        return await _services(request).analyzer.analyze_study_streak(user_id)

    @app.get("/users/{user_id}/report")
    async def performance_report(
        user_id: str,
        request: Request,
        start: datetime | None = None,
        end: datetime | None = None,
    ):
        """
        Performance report over [start, end]; defaults to the last 30 days.
        """
        end = _as_utc(end) if end else datetime.now(timezone.utc)
        start = _as_utc(start) if start else end - timedelta(days=REPORT_DEFAULT_DAYS)
        if start > end:
            raise HTTPException(status_code=422, detail="start must not be after end")
        return await _services(request).analyzer.generate_performance_report(user_id, start, end)

    return app


app = create_app()
