"""
FastAPI application for the SlopWatch vote API.

Anonymous users toggle a "slop" vote per post and read aggregate counts,
their own engagement statistics and global totals.
"""
import logging
import math
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, Response
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from slopwatch import __version__
from slopwatch.shared.models import validate_tweet_id_format
from .config import settings
from .models import (
    VoteRequest,
    VoteStatus,
    BatchVotesResponse,
    UserStatsResponse,
    GlobalStatsResponse,
    HealthResponse,
    ErrorResponse,
)
from .pages import PRIVACY_POLICY_HTML
from .persistence import SnapshotStore, load_vote_store
from .rate_limiter import FixedWindowRateLimiter, RateLimitError
from .store import VoteStore

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Prometheus metrics
vote_errors = Counter(
    "slopwatch_vote_errors_total",
    "Total number of vote submission errors",
    ["error_type"]
)
request_duration = Histogram(
    "slopwatch_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status"]
)

# Per-address limiter in front of the vote endpoint (settings.IP_RATE_LIMIT)
limiter = Limiter(key_func=get_remote_address)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load the vote store on startup and keep it on the app state."""
    logger.info(f"Starting {settings.SERVICE_NAME} service...")

    rate_limiter = FixedWindowRateLimiter(
        limit=settings.RATE_LIMIT_REQUESTS,
        window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS
    )
    app.state.vote_store = load_vote_store(
        SnapshotStore(settings.DATA_FILE),
        threshold=settings.ACCURACY_THRESHOLD,
        rate_limiter=rate_limiter
    )
    logger.info(f"{settings.SERVICE_NAME} started successfully")

    yield

    logger.info(f"Shutting down {settings.SERVICE_NAME} service...")


# Create FastAPI app
app = FastAPI(
    title="SlopWatch Vote API",
    description="API for toggling slop votes and reading vote statistics",
    version=__version__,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


def get_vote_store(request: Request) -> VoteStore:
    """Vote store created by the lifespan handler."""
    return request.app.state.vote_store


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Answer malformed requests with 400 and a single readable message."""
    errors = exc.errors()
    missing = [
        str(err["loc"][-1]) for err in errors
        if err.get("type") == "missing" and len(err.get("loc", ())) > 1
    ]

    if missing:
        detail = "Missing " + " or ".join(missing)
    elif any(err.get("type") == "missing" for err in errors):
        detail = "Missing request body"
    elif errors:
        detail = str(errors[0].get("msg", "Invalid request")).removeprefix("Value error, ")
    else:
        detail = "Invalid request"

    vote_errors.labels(error_type="validation_error").inc()
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": detail}
    )


@app.middleware("http")
async def prometheus_middleware(request: Request, call_next):
    """Middleware to track request duration."""
    started = time.perf_counter()
    response = await call_next(request)

    route = request.scope.get("route")
    request_duration.labels(
        method=request.method,
        endpoint=getattr(route, "path", request.url.path),
        status=response.status_code
    ).observe(time.perf_counter() - started)

    return response


@app.post(
    "/vote",
    response_model=VoteStatus,
    responses={
        400: {"model": ErrorResponse, "description": "Missing or invalid identifier"},
        429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
        500: {"model": ErrorResponse, "description": "Internal server error"}
    }
)
@limiter.limit(lambda: settings.IP_RATE_LIMIT)
async def submit_vote(
    request: Request,
    vote: VoteRequest,
    store: VoteStore = Depends(get_vote_store)
) -> VoteStatus:
    """
    Toggle the user's slop vote on a post.

    - **tweetId**: Public numeric post ID (at most 25 digits)
    - **userId**: Anonymous user ID (32 lowercase hex characters)

    Returns the new vote count and whether the user now has a vote on it.
    """
    try:
        result = await store.submit_vote(vote.tweetId, vote.userId)

        logger.debug(
            f"Vote toggled: tweet_id={vote.tweetId}, user_id={vote.userId}, "
            f"count={result.count}, voted={result.voted}"
        )

        return VoteStatus(count=result.count, voted=result.voted)

    except RateLimitError as e:
        vote_errors.labels(error_type="rate_limited").inc()
        logger.warning(f"Rate limit exceeded: user_id={vote.userId}")
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded",
            headers={"Retry-After": str(math.ceil(e.retry_after))}
        )
    except HTTPException:
        raise
    except Exception as e:
        vote_errors.labels(error_type="internal_error").inc()
        logger.error(f"Error submitting vote: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error"
        )


@app.get(
    "/votes",
    response_model=BatchVotesResponse,
    responses={400: {"model": ErrorResponse, "description": "Missing ids parameter"}}
)
async def get_votes(
    ids: Optional[str] = Query(None, description="Comma separated post IDs"),
    user_id: Optional[str] = Query(None, alias="userId"),
    store: VoteStore = Depends(get_vote_store)
) -> BatchVotesResponse:
    """
    Get vote counts for up to 100 posts at once.

    Malformed IDs are skipped. ``voted`` is false when no userId is given.
    """
    if not ids:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing ids parameter"
        )

    tweet_ids = [
        tweet_id for tweet_id in ids.split(",")[:settings.MAX_BATCH_IDS]
        if validate_tweet_id_format(tweet_id)
    ]
    results = store.get_votes(tweet_ids, user_id)

    return BatchVotesResponse(votes={
        tweet_id: VoteStatus(count=result.count, voted=result.voted)
        for tweet_id, result in results.items()
    })


@app.get(
    "/status/{tweet_id}/{user_id}",
    response_model=VoteStatus,
    responses={400: {"model": ErrorResponse, "description": "Invalid tweetId"}}
)
async def get_status(
    tweet_id: str,
    user_id: str,
    store: VoteStore = Depends(get_vote_store)
) -> VoteStatus:
    """Get the vote count of one post and whether the user voted on it."""
    if not validate_tweet_id_format(tweet_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid tweetId"
        )

    result = store.get_status(tweet_id, user_id)
    return VoteStatus(count=result.count, voted=result.voted)


@app.get("/stats/user/{user_id}", response_model=UserStatsResponse)
async def get_user_stats(
    user_id: str,
    store: VoteStore = Depends(get_vote_store)
) -> UserStatsResponse:
    """
    Get a user's vote totals, accuracy and streaks.

    Unknown users get zeroed statistics.
    """
    return UserStatsResponse(**store.get_user_stats(user_id))


@app.get("/stats/global", response_model=GlobalStatsResponse)
async def get_global_stats(store: VoteStore = Depends(get_vote_store)) -> GlobalStatsResponse:
    """Get total votes, posts, confirmed slop and users."""
    return GlobalStatsResponse(**store.get_global_stats())


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Liveness check."""
    return HealthResponse(status="ok")


@app.get("/privacy-policy", response_class=HTMLResponse)
async def privacy_policy() -> HTMLResponse:
    """Privacy policy shown on the extension store listing."""
    return HTMLResponse(content=PRIVACY_POLICY_HTML)


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "service": settings.SERVICE_NAME,
        "version": __version__,
        "status": "running",
        "endpoints": {
            "vote": "/vote",
            "votes": "/votes?ids={ids}&userId={userId}",
            "status": "/status/{tweetId}/{userId}",
            "user_stats": "/stats/user/{userId}",
            "global_stats": "/stats/global",
            "health": "/health",
            "privacy_policy": "/privacy-policy",
            "metrics": "/metrics"
        }
    }


def run():
    """Run the API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "slopwatch.api.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )


if __name__ == "__main__":
    run()
