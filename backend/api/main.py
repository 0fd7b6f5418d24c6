# backend/api/main.py
from fastapi import FastAPI, APIRouter, Body, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from pydantic import ValidationError as PydanticValidationError
import logging
from typing import Any, Dict, Iterable, Optional
from datetime import datetime, timezone

from config.settings import Settings, get_settings
from services.errors import FallbackExhausted, StoreUnavailable, ValidationError
from services.health_probe import HealthProbe
from services.log_models import LogFilter
from services.log_service import LogService
from services.runtime import Runtime, build_runtime


settings = get_settings()

# Setup logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

router = APIRouter()


def _now() -> str:
    return datetime.now(tz=timezone.utc).isoformat()


def _describe(errors: Iterable[Dict[str, Any]]):
    for err in errors:
        yield f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"

# ============================================
# DEPENDENCIES
# ============================================

def get_log_service(request: Request) -> LogService:
    return request.app.state.runtime.log_service


def get_health_probe(request: Request) -> HealthProbe:
    return request.app.state.runtime.health_probe

# ============================================
# ENDPOINTS
# ============================================

@router.get("/")
async def root(request: Request):
    log_service: LogService = request.app.state.runtime.log_service
    return {
        "service": request.app.title,
        "version": request.app.version,
        "status": "running",
        "durable_store_configured": log_service.durable_configured,
        "memory_store": log_service.memory_store.get_stats()
    }


@router.post("/api/log")
async def record_log(
    payload: Dict[str, Any] = Body(...),
    log_service: LogService = Depends(get_log_service)
):
    """Record an activity log entry - never fails because of storage"""
    user_email = payload.get("userEmail", payload.get("user_email"))

    try:
        result = await log_service.record(
            level=payload.get("level"),
            message=payload.get("message"),
            source=payload.get("source"),
            user_email=user_email,
            details=payload.get("details"),
        )
    except FallbackExhausted as e:
        logger.error(f"❌ Log kept in console only: {e}")
        return {
            "success": True,
            "fallback": True,
            "message": "Log stored in console only"
        }

    response = {
        "success": True,
        "data": result.entry.to_payload()
    }
    if result.fallback:
        response["fallback"] = True
    return response


@router.get("/api/logs/status")
async def logs_status(log_service: LogService = Depends(get_log_service)):
    """Counts per level, known sources and total"""
    status = await log_service.status()

    return {
        "success": True,
        "data": {
            "counts": status.counts,
            "sources": status.sources,
            "total": status.total,
            "store": status.store,
            "fallback": status.fallback
        },
        "timestamp": status.timestamp.isoformat()
    }


@router.get("/api/logs")
async def query_logs(
    level: Optional[str] = None,
    source: Optional[str] = None,
    search: Optional[str] = None,
    time_range: Optional[str] = None,
    limit: Optional[int] = None,
    offset: int = 0,
    log_service: LogService = Depends(get_log_service)
):
    """Query log entries, newest first"""
    try:
        log_filter = LogFilter(level=level, source=source, search=search, time_range=time_range)
    except PydanticValidationError as e:
        raise ValidationError(_describe(e.errors())) from e

    result = await log_service.query(log_filter, limit=limit, offset=offset)

    return {
        "success": True,
        "data": [entry.to_payload() for entry in result.entries],
        "store": result.store,
        "fallback": result.fallback
    }


@router.get("/api/service-status")
async def service_status(health_probe: HealthProbe = Depends(get_health_probe)):
    """Reachability of Redis and the relational store"""
    status = await health_probe.check()
    return status.model_dump(mode="json", by_alias=True)

# ============================================
# ERROR HANDLERS
# ============================================

async def handle_validation_error(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": str(exc), "errors": exc.errors}
    )


async def handle_request_validation_error(request: Request, exc: RequestValidationError):
    """Malformed query params or body, rejected by FastAPI before the route runs"""
    return await handle_validation_error(request, ValidationError(_describe(exc.errors())))


async def handle_store_unavailable(request: Request, exc: StoreUnavailable):
    logger.error(f"❌ {request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=503,
        content={"success": False, "error": str(exc), "timestamp": _now()}
    )

# ============================================
# APP FACTORY
# ============================================

def create_app(runtime: Optional[Runtime] = None, app_settings: Optional[Settings] = None) -> FastAPI:
    """Build the API. A prebuilt runtime is used as-is and left open on shutdown."""
    app_settings = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown events"""
        logger.info(f"🚀 Starting {app_settings.APP_NAME}...")

        owned = runtime is None
        app.state.runtime = runtime if runtime is not None else build_runtime(app_settings)
        logger.info("✅ All services initialized")

        yield

        logger.info("🔌 Shutting down...")
        if owned:
            await app.state.runtime.close()

    app = FastAPI(
        title=app_settings.APP_NAME,
        version=app_settings.VERSION,
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ValidationError, handle_validation_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(StoreUnavailable, handle_store_unavailable)
    app.include_router(router)
    return app


app = create_app()
