import logging
import logging.config
from datetime import datetime, timezone

from fastapi import FastAPI, Request, Depends
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
import uvicorn

# ------------------------------------------------------------
# 1. CONFIG & LOGGING
# ------------------------------------------------------------
from app.core.config import settings
from app.core.errors import ServiceError
from app.core.firebase import get_db

LOG_LEVEL = "INFO" if settings.ENVIRONMENT == "production" else "DEBUG"

logging_config = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
        },
    },
    "loggers": {
        "uvicorn": {"handlers": ["console"], "level": LOG_LEVEL},
        "uvicorn.error": {"handlers": ["console"], "level": LOG_LEVEL},
        "uvicorn.access": {"handlers": ["console"], "level": LOG_LEVEL},
        "airrands": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
    },
}

logging.config.dictConfig(logging_config)
logger = logging.getLogger("airrands")


class CustomProxyHeadersMiddleware(BaseHTTPMiddleware):
    """
    Honour X-Forwarded-For / X-Forwarded-Proto from the load balancer so
    webhook logs show the real sender.
    """
    async def dispatch(self, request, call_next):
        x_forwarded_for = request.headers.get("x-forwarded-for")
        if x_forwarded_for:
            request.scope["client"] = (x_forwarded_for.split(",")[0].strip(), 0)

        x_forwarded_proto = request.headers.get("x-forwarded-proto")
        if x_forwarded_proto:
            request.scope["scheme"] = x_forwarded_proto

        return await call_next(request)


# ------------------------------------------------------------
# 2. FASTAPI APP
# ------------------------------------------------------------
app = FastAPI(
    title="Airrands API",
    description="Payments, admin review and notifications for the Airrands errand marketplace.",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)

# ------------------------------------------------------------
# 3. MIDDLEWARE
# ------------------------------------------------------------
app.add_middleware(CustomProxyHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ------------------------------------------------------------
# 4. ROUTERS (API ROUTES)
# ------------------------------------------------------------
from app.routers import (
    dashboard_router,
    notifications_router,
    payment_router,
    webhooks,
)

app.include_router(webhooks.router, prefix="/api", tags=["Webhooks"])
app.include_router(payment_router.router, prefix="/api", tags=["Payments"])
app.include_router(dashboard_router.router, prefix="/api", tags=["Admin"])
app.include_router(notifications_router.router, prefix="/api", tags=["Notifications"])


# ------------------------------------------------------------
# 5. SYSTEM ROUTES
# ------------------------------------------------------------
@app.get("/health", tags=["System"])
async def health_check(db=Depends(get_db)):
    try:
        db.collection("system").document("healthcheck").set({"ping": datetime.now(timezone.utc)}, merge=True)
        return {"status": "healthy", "db": "connected"}
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "unhealthy", "error": str(e)})


# ------------------------------------------------------------
# 6. EXCEPTION HANDLERS
# ------------------------------------------------------------
@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    log = logger.error if exc.status_code >= 500 else logger.info
    log(f"{request.method} {request.url.path} → {exc.status_code} {exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"success": False, "code": "invalid-argument", "message": "Invalid request", "errors": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "code": "internal",
            "message": "Something went wrong. We're on it.",
            "request_id": request.headers.get("X-Request-ID"),
        },
    )


# ------------------------------------------------------------
# 7. STARTUP / SHUTDOWN
# ------------------------------------------------------------
@app.on_event("startup")
async def startup_event():
    logger.info(f"Airrands API started | Env: {settings.ENVIRONMENT} | Debug: {settings.DEBUG}")
    app.state.trigger_subscriptions = []
    if settings.ENABLE_TRIGGER_WATCHERS:
        from app.tasks.trigger_watchers import start_trigger_watchers
        app.state.trigger_subscriptions = start_trigger_watchers(get_db())


@app.on_event("shutdown")
async def shutdown_event():
    for subscription in getattr(app.state, "trigger_subscriptions", []):
        subscription.close()
    logger.info("Airrands API stopped")


# ------------------------------------------------------------
# 8. REQUEST LOGGING MIDDLEWARE
# ------------------------------------------------------------
@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(f"➡️ {request.client.host if request.client else '-'} {request.method} {request.url.path}")
    try:
        response = await call_next(request)
    except Exception as e:
        logger.exception(f"Exception during {request.method} {request.url.path}: {e}")
        raise
    logger.info(f"⬅️ {request.method} {request.url.path} → {response.status_code}")
    return response


# ------------------------------------------------------------
# 9. RUN LOCALLY
# ------------------------------------------------------------
if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info",
        access_log=True
    )
