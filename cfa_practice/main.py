"""
Main FastAPI application entry point.
"""
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from prometheus_fastapi_instrumentator import Instrumentator

from cfa_practice.core.config import settings
from cfa_practice.core.database import init_db
from cfa_practice.core.errors import DomainError
from cfa_practice.services.error_log import record_error, record_exception
from cfa_practice.api.auth import router as auth_router
from cfa_practice.api.account import router as account_router
from cfa_practice.api.users import router as users_router
from cfa_practice.api.topics import router as topics_router
from cfa_practice.api.chapters import router as chapters_router
from cfa_practice.api.questions import router as questions_router, topic_questions_router
from cfa_practice.api.practice_sets import router as practice_sets_router
from cfa_practice.api.progress import router as progress_router
from cfa_practice.api.subscription import router as subscription_router
from cfa_practice.api.errors import router as errors_router

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Initialize Sentry if configured
if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
    )

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME} ({settings.ENVIRONMENT})...")
    init_db()
    yield
    logger.info("Shutdown complete")

app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    docs_url=None if settings.is_production() else "/docs",
    redoc_url=None if settings.is_production() else "/redoc",
    lifespan=lifespan,
)

def _session_user_id(request: Request):
    return (request.scope.get("session") or {}).get("user_id")

# Registered before the session middleware so it runs inside it and can see the session.
@app.middleware("http")
async def error_log_middleware(request: Request, call_next):
    response = await call_next(request)
    if 400 <= response.status_code < 500:
        await run_in_threadpool(
            record_error,
            f"HTTP {response.status_code} on {request.method} {request.url.path}",
            user_id=_session_user_id(request),
            metadata={"status": response.status_code, "query": str(request.url.query) or None},
            route=request.url.path,
            method=request.method,
        )
    return response

app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SECRET_KEY.get_secret_value(),
    session_cookie=settings.SESSION_COOKIE,
    max_age=settings.SESSION_TTL,
    same_site="lax",
    https_only=settings.is_production(),
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

if settings.PROMETHEUS_ENABLED:
    Instrumentator().instrument(app).expose(app, endpoint="/metrics")

# Exception handlers
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions; dict details are merged into the error body."""
    error = {"message": exc.detail, "type": "http_error", "status_code": exc.status_code}
    if isinstance(exc.detail, dict):
        error.update(exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"error": error}, headers=getattr(exc, "headers", None))

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": {
                "message": "Validation error",
                "type": "validation_error",
                "details": jsonable_encoder(exc.errors()),
            }
        }
    )

@app.exception_handler(DomainError)
async def domain_exception_handler(request: Request, exc: DomainError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"message": exc.message, "type": exc.error_type, "status_code": exc.status_code}},
    )

@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
    await run_in_threadpool(record_exception, exc, user_id=_session_user_id(request),
                            route=request.url.path, method=request.method)

    if settings.is_production():
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": {"message": "An internal error occurred", "type": "internal_error"}}
        )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": {"message": str(exc), "type": "internal_error", "debug": True}}
    )

@app.get("/health", tags=["Health"])
def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT
    }

# Include API routers
api = settings.API_PREFIX
app.include_router(auth_router, prefix=api, tags=["auth"])
app.include_router(account_router, prefix=api, tags=["account"])
app.include_router(users_router, prefix=f"{api}/users", tags=["users"])
app.include_router(topics_router, prefix=f"{api}/topics", tags=["content"])
app.include_router(chapters_router, prefix=f"{api}/chapters", tags=["content"])
app.include_router(questions_router, prefix=f"{api}/questions", tags=["content"])
app.include_router(topic_questions_router, prefix=f"{api}/topic-questions", tags=["content"])
app.include_router(practice_sets_router, prefix=f"{api}/practice-sets", tags=["content"])
app.include_router(progress_router, prefix=api, tags=["progress"])
app.include_router(subscription_router, prefix=api, tags=["subscription"])
app.include_router(errors_router, prefix=api, tags=["errors"])
