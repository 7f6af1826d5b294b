from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware

import config
from account_service import AccountService
from database import SessionLocal, init_db
from dependencies import limiter
from errors import TaskTrackerError, ValidationError
from logging_setup import get_logger, setup_logging
from models import utc_now
from user_repository import UserRepository

# Routers
from routers.admin import router as admin_router
from routers.auth import router as auth_router
from routers.tasks import router as tasks_router

setup_logging(config.LOG_LEVEL)
logger = get_logger(__name__)


def ensure_admin_user() -> None:
    if not (config.ADMIN_EMAIL and config.ADMIN_PASSWORD):
        return
    db = SessionLocal()
    try:
        AccountService(UserRepository(db)).ensure_admin(
            config.ADMIN_EMAIL, config.ADMIN_PASSWORD, config.ADMIN_NAME
        )
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    ensure_admin_user()
    logger.info("Task tracker API ready")
    yield


app = FastAPI(title="Task Tracker API", lifespan=lifespan)

# Rate Limiter Setup (Globally available via app.state.limiter)
app.state.limiter = limiter


def custom_rate_limit_handler(request: Request, exc: RateLimitExceeded):
    limit_info = getattr(exc, "detail", None) or "einigen"
    return JSONResponse(
        status_code=429,
        content={
            "kind": "rate_limited",
            "detail": f"Zu viele Anfragen. Limit überschritten ({limit_info}). Bitte warten Sie kurz.",
        },
    )


app.add_exception_handler(RateLimitExceeded, custom_rate_limit_handler)


@app.exception_handler(TaskTrackerError)
async def task_tracker_error_handler(request: Request, exc: TaskTrackerError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


def _describe_validation_errors(errors) -> str:
    parts = []
    for err in errors:
        # erstes loc-Element ist body/query/path
        field = ".".join(str(p) for p in err.get("loc", ())[1:])
        parts.append(f"{field}: {err.get('msg')}" if field else str(err.get("msg")))
    return "; ".join(parts)


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    error = ValidationError(_describe_validation_errors(exc.errors()))
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


# Custom Middleware for Security Headers
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["Content-Security-Policy"] = "default-src 'self'; style-src 'self' 'unsafe-inline';"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response


app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(
    CORSMiddleware,
    # Strict CORS: nur konfigurierte Origins
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=config.ALLOWED_HOSTS,
)

# Include Routers
app.include_router(auth_router)
app.include_router(tasks_router)
app.include_router(admin_router)


@app.get("/health")
def health():
    return {"status": "healthy", "timestamp": utc_now().isoformat()}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
