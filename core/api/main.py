"""
FastAPI app assembly: logging, middleware, error handlers and router wiring.
"""
import logging
import os

from fastapi import FastAPI, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

# Configure logging
LOG_LEVEL_NAME = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL = getattr(logging, LOG_LEVEL_NAME, logging.INFO)
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)
logger.setLevel(LOG_LEVEL)
logger.info("app_startup: log_level=%s", LOG_LEVEL_NAME)


from core.api.audit_logs import router as audit_logs_router
from core.api.auth import router as auth_router
from core.api.dashboard import router as dashboard_router
from core.api.knowledge import router as knowledge_router
from core.api.patients import router as patients_router
from core.api.treatment_plans import router as treatment_plans_router
from core.db.schemas import first_error_message
from core.utils.feature_flags import get_feature_flags
from core.utils.runtime import dev_mode_active

# Database schema is managed by Alembic migrations.

app = FastAPI(
    title="HealyAI Service",
    description="API for doctors managing patients, AI-assisted treatment plans and compliance audit logs.",
    version="1.0.0",
)

# Avoid implicit trailing-slash redirects for predictable URLs
app.router.redirect_slashes = False

origins = [
    "http://localhost",
    "http://localhost:3000",
    "http://localhost:8000",
]
extra_origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins + extra_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

PROTECTED_PREFIXES = (
    "/api/patients",
    "/api/treatment-plans",
    "/api/audit-logs",
    "/api/dashboard",
    "/api/knowledge",
)


# Middleware: reject protected requests that carry no bearer token
@app.middleware("http")
async def require_session_for_protected_routes(request: Request, call_next):
    path = request.url.path or ""
    if request.method != "OPTIONS" and path.startswith(PROTECTED_PREFIXES):
        try:
            is_dev_mode = dev_mode_active()
        except RuntimeError as exc:
            logger.error("DEV_MODE misconfiguration detected: %s", exc)
            return JSONResponse(
                {"detail": "DEV_MODE misconfigured"},
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        authorization = request.headers.get("authorization") or ""
        if not is_dev_mode and not authorization.lower().startswith("bearer "):
            return JSONResponse(
                {"detail": "Authentication required"},
                status_code=status.HTTP_401_UNAUTHORIZED,
            )
    return await call_next(request)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        {"detail": first_error_message(exc.errors())},
        status_code=status.HTTP_400_BAD_REQUEST,
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
    return JSONResponse(
        {"detail": "Internal server error"},
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


app.include_router(auth_router)
app.include_router(patients_router)
app.include_router(treatment_plans_router)
app.include_router(audit_logs_router)
app.include_router(dashboard_router)
app.include_router(knowledge_router)


@app.get("/health")
def health_check():
    return {"status": "ok", "service": "healyai-service"}


@app.get("/api/features")
def feature_flags():
    return get_feature_flags().to_api()
