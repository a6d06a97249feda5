"""Tree Rater API: upload + critique, leaderboard, health, and the HTML front page."""

import logging
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable

from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session, sessionmaker
from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from src.ai.critic_base import BaseTreeCritic
from src.ai.factory import get_tree_critic
from src.ai.schema import TreeRating
from src.core.config import Settings, get_config
from src.core.errors import (
    InferenceError,
    PayloadTooLargeError,
    RateLimitError,
    RecordStoreError,
    TreeRaterError,
    ValidationError,
)
from src.core.rate_limiter import SlidingWindowRateLimiter
from src.core.storage import MEDIA_MOUNT, LocalBlobStore
from src.repository.rating_repo import RatingRepository
from src.services.rating_service import LeaderboardEntry, TreeRatingService

_log = logging.getLogger(__name__)

UPLOAD_PATH = "/api/upload"
# Multipart boundaries and part headers on top of the file itself.
MULTIPART_OVERHEAD_BYTES = 64 * 1024
RATE_LIMIT_MESSAGE = "Too many uploads from this IP, please try again after 15 minutes"
FRONT_PAGE_TREES = 5


@lru_cache(maxsize=1)
def _get_session_factory() -> Callable[[], Session]:
    from sqlalchemy import create_engine

    cfg = get_config()
    engine = create_engine(cfg.database_url, pool_pre_ping=True)
    return sessionmaker(engine, autocommit=False, autoflush=False, expire_on_commit=False)


@lru_cache(maxsize=1)
def _get_rating_repo() -> RatingRepository:
    return RatingRepository(_get_session_factory())


@lru_cache(maxsize=1)
def _get_blob_store() -> LocalBlobStore:
    cfg = get_config()
    return LocalBlobStore(cfg.data_dir, cfg.public_base_url)


@lru_cache(maxsize=1)
def _get_critic() -> BaseTreeCritic:
    cfg = get_config()
    return get_tree_critic(cfg.critic, cfg)


@lru_cache(maxsize=1)
def _get_rating_service() -> TreeRatingService:
    return TreeRatingService(
        blob_store=_get_blob_store(),
        critic=_get_critic(),
        rating_repo=_get_rating_repo(),
        max_upload_bytes=get_config().max_upload_bytes,
    )


def _get_settings() -> Settings:
    return get_config()


_cfg = get_config()

app = FastAPI(title="Tree Rater")
app.state.rate_limiter = SlidingWindowRateLimiter(
    max_requests=_cfg.rate_limit_max_requests,
    window_seconds=_cfg.rate_limit_window_seconds,
)

templates_dir = Path(__file__).resolve().parent / "templates"
templates = Jinja2Templates(directory=str(templates_dir))

_data_dir = Path(_cfg.data_dir).resolve()
if _data_dir == Path("/") or _data_dir == Path.cwd().resolve():
    raise RuntimeError(
        "Unsafe data_dir configuration. Cannot mount root or current working directory."
    )

app.mount(
    MEDIA_MOUNT,
    StaticFiles(directory=str(_data_dir), check_dir=False),
    name="media",
)


# --- Response models ---


class HealthOut(BaseModel):
    status: str
    timestamp: str


class UploadOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    image_url: str = Field(alias="imageUrl")
    rating: TreeRating


class TreeOut(BaseModel):
    id: int
    user: int
    image_url: str
    aesthetics_score: float
    originality_score: float
    score: float  # aesthetics_score + originality_score
    created_at: str | None = None


class TopTreesOut(BaseModel):
    trees: list[TreeOut]


class TreeDetailOut(TreeOut):
    aesthetics_explanation: str = ""
    originality_explanation: str = ""
    great_features: str = ""
    improvements: list[str] = []


def _tree_out(entry: LeaderboardEntry) -> TreeOut:
    return TreeOut(
        id=entry.id,
        user=entry.id,
        image_url=entry.image_url,
        aesthetics_score=entry.aesthetics_score,
        originality_score=entry.originality_score,
        score=entry.score,
        created_at=entry.created_at.isoformat() if entry.created_at else None,
    )


# --- Error mapping ---


def error_payload(exc: TreeRaterError, cfg: Settings) -> tuple[int, dict[str, Any]]:
    """Map a pipeline error to (status, JSON body). Production hides internal detail."""
    if isinstance(exc, RateLimitError):
        return exc.status_code, {"error": str(exc)}
    if isinstance(exc, ValidationError):
        return exc.status_code, {"error": str(exc)}
    if isinstance(exc, InferenceError):
        return exc.status_code, {
            "error": "AI service temporarily unavailable",
            "details": "Please try again in a few minutes",
        }
    return 500, {
        "error": "Internal server error",
        "details": "Something went wrong" if cfg.is_production else str(exc),
    }


@app.exception_handler(TreeRaterError)
async def tree_rater_error_handler(request: Request, exc: TreeRaterError) -> JSONResponse:
    if isinstance(exc, ValidationError):
        _log.warning("%s %s rejected: %s", request.method, request.url.path, exc)
    else:
        _log.error("%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc)
    status, body = error_payload(exc, get_config())
    headers = {"Retry-After": str(exc.retry_after)} if isinstance(exc, RateLimitError) else None
    return JSONResponse(status_code=status, content=body, headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # image is the only field validated on the upload route.
    if request.method == "POST" and request.url.path == UPLOAD_PATH:
        return await tree_rater_error_handler(request, ValidationError("No image file provided"))
    return await request_validation_exception_handler(request, exc)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    _log.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    cfg = get_config()
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "details": "Something went wrong" if cfg.is_production else str(exc),
        },
    )


def client_identifier(request: Request, trust_forwarded_for: bool = False) -> str:
    """Rate-limit key: socket peer address, or the first X-Forwarded-For hop when trusted."""
    if trust_forwarded_for:
        forwarded_for = request.headers.get("x-forwarded-for", "").strip()
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


class UploadBodyLimit:
    """
    ASGI middleware enforcing the transport-level size limit on uploads.

    A declared Content-Length over the limit is refused before any body is read.
    Bodies without one (chunked transfer) are counted as they stream in and cut
    off at the first message past the limit; whatever response the app produced
    for the truncated body is replaced by the 413.
    """

    def __init__(self, app: ASGIApp, path: str = UPLOAD_PATH) -> None:
        self.app = app
        self.path = path

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["method"] != "POST" or scope["path"] != self.path:
            await self.app(scope, receive, send)
            return

        cfg = get_config()
        limit = cfg.max_upload_bytes + MULTIPART_OVERHEAD_BYTES
        too_large = PayloadTooLargeError(cfg.max_upload_bytes)
        status, body = error_payload(too_large, cfg)

        content_length = Headers(scope=scope).get("content-length")
        if content_length is not None and content_length.isdigit() and int(content_length) > limit:
            _log.warning("Upload rejected: Content-Length %s", content_length)
            await JSONResponse(status_code=status, content=body)(scope, receive, send)
            return

        received = 0
        exceeded = False
        response_started = False

        async def counting_receive() -> Message:
            nonlocal received, exceeded
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > limit:
                    exceeded = True
                    raise too_large
            return message

        async def guarded_send(message: Message) -> None:
            nonlocal response_started
            if exceeded:
                return
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, counting_receive, guarded_send)
        except PayloadTooLargeError:
            if not exceeded:
                raise
        if exceeded and not response_started:
            _log.warning("Upload rejected: streamed body passed %s bytes", limit)
            await JSONResponse(status_code=status, content=body)(scope, receive, send)


# Innermost of the three layers: upload_guard counts the attempt first.
app.add_middleware(UploadBodyLimit)


@app.middleware("http")
async def upload_guard(request: Request, call_next):
    """Rate limit uploads per client before the body is read."""
    if request.method != "POST" or request.url.path != UPLOAD_PATH:
        return await call_next(request)

    cfg = get_config()
    limiter: SlidingWindowRateLimiter = request.app.state.rate_limiter
    client_id = client_identifier(request, cfg.trust_forwarded_for)
    decision = limiter.hit(client_id)
    if not decision.allowed:
        _log.warning("Upload rate limit exceeded for %s", client_id)
        exc = RateLimitError(RATE_LIMIT_MESSAGE, retry_after=decision.retry_after)
        status, body = error_payload(exc, cfg)
        return JSONResponse(
            status_code=status,
            content=body,
            headers={"Retry-After": str(decision.retry_after)},
        )
    return await call_next(request)


# Registered after upload_guard so CORS stays the outermost layer.
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cfg.cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


# --- Routes ---


@app.get("/health", response_model=HealthOut)
def health() -> HealthOut:
    return HealthOut(status="ok", timestamp=datetime.now(timezone.utc).isoformat())


@app.post(UPLOAD_PATH, response_model=UploadOut)
async def api_upload(
    image: UploadFile | None = File(default=None),
    service: TreeRatingService = Depends(_get_rating_service),
) -> UploadOut:
    """Store the photo, have the critic rate it, persist the rating, and return it."""
    _log.info("Upload request received")
    if image is None:
        raise ValidationError("No image file provided")
    # One byte past the limit is enough for the service to reject it.
    data = await image.read(service.max_upload_bytes + 1)
    result = await run_in_threadpool(service.submit, data, image.content_type, image.filename)
    return UploadOut(image_url=result.image_url, rating=result.rating)


@app.get("/api/top-trees", response_model=TopTreesOut)
def api_top_trees(
    service: TreeRatingService = Depends(_get_rating_service),
    cfg: Settings = Depends(_get_settings),
):
    """Top 10 trees by aesthetics score. Store failures become a 500 body, never an exception."""
    try:
        entries = service.top_trees()
    except RecordStoreError as e:
        _log.error("Database error fetching top trees: %s", e, exc_info=True)
        body: dict[str, Any] = {"error": "Database error", "message": str(e)}
        if not cfg.is_production:
            body["details"] = repr(e.__cause__ or e)
        return JSONResponse(status_code=500, content=body)
    except Exception as e:
        _log.error("Unexpected error in /api/top-trees: %s", e, exc_info=True)
        body = {"error": "Server error", "message": "An unexpected error occurred"}
        if not cfg.is_production:
            body["details"] = str(e)
        return JSONResponse(status_code=500, content=body)
    return TopTreesOut(trees=[_tree_out(e) for e in entries])


@app.get("/api/trees/{tree_id}", response_model=TreeDetailOut)
def api_tree_detail(
    tree_id: int,
    service: TreeRatingService = Depends(_get_rating_service),
) -> TreeDetailOut:
    """Full rating for one tree (used by the detail modal)."""
    record = service.get_tree(tree_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Tree not found")
    entry = LeaderboardEntry.from_record(record)
    return TreeDetailOut(
        **_tree_out(entry).model_dump(),
        aesthetics_explanation=record.aesthetics_explanation,
        originality_explanation=record.originality_explanation,
        great_features=record.great_features,
        improvements=[str(i) for i in (record.improvements or [])],
    )


@app.get("/", response_class=HTMLResponse)
def index(
    request: Request,
    service: TreeRatingService = Depends(_get_rating_service),
    cfg: Settings = Depends(_get_settings),
) -> HTMLResponse:
    """Render the upload page with the current leaderboard."""
    leaderboard_error: str | None = None
    trees: list[TreeOut] = []
    try:
        trees = [_tree_out(e) for e in service.top_trees()[:FRONT_PAGE_TREES]]
    except RecordStoreError as e:
        _log.error("Leaderboard unavailable for front page: %s", e)
        leaderboard_error = "Database error"
    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "trees": [t.model_dump() for t in trees],
            "leaderboard_error": leaderboard_error,
            "max_upload_bytes": cfg.max_upload_bytes,
            "max_upload_mb": cfg.max_upload_mb,
            "front_page_trees": FRONT_PAGE_TREES,
        },
    )
