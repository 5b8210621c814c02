"""FastAPI application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from applydesk.api.errors import ApiError, error_response
from applydesk.api.limiter import limiter
from applydesk.config import settings
from applydesk.db.base import init_db

logger = logging.getLogger(__name__)

ALLOWED_ORIGINS = [origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    try:
        init_db()
    except ValueError:
        logger.warning("DATABASE_URL not configured, skipping table creation")
    yield


app = FastAPI(
    title="ApplyDesk API",
    description="Job search, matching and application tracking",
    version="0.1.0",
    lifespan=lifespan,
)

app.state.limiter = limiter


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    return error_response(exc.status_code, exc.message, exc.code, exc.details)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return error_response(400, "Invalid request", "VALIDATION_ERROR", jsonable_encoder(exc.errors()))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return error_response(exc.status_code, str(exc.detail), "HTTP_ERROR")


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    """Return 429 with a clear message when rate limit is exceeded."""
    return error_response(429, f"Rate limit exceeded: {exc.detail}", "RATE_LIMITED")


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return error_response(500, "Internal server error", "INTERNAL_ERROR")


app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization", "X-User-ID"],
)


# Import and include routers
from applydesk.api.routes import (  # noqa: E402
    ai,
    applications,
    auth,
    auto_apply,
    cron,
    interview,
    jobs,
    notifications,
    plans,
    profile,
    resume,
    reviews,
    users,
)

app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
app.include_router(profile.router, prefix="/api/profile", tags=["Profile"])
app.include_router(resume.router, prefix="/api/resume", tags=["Resume"])
app.include_router(jobs.router, prefix="/api/jobs", tags=["Jobs"])
app.include_router(auto_apply.router, prefix="/api/auto-apply", tags=["Auto-apply"])
app.include_router(ai.router, prefix="/api/ai", tags=["AI"])
app.include_router(applications.router, prefix="/api/applications", tags=["Applications"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])
app.include_router(reviews.router, prefix="/api/reviews", tags=["Reviews"])
app.include_router(interview.router, prefix="/api/interview", tags=["Interview"])
app.include_router(plans.router, prefix="/api/plans", tags=["Plans"])
app.include_router(cron.router, prefix="/api/cron", tags=["Cron"])


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
