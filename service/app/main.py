import time

import structlog
from fastapi import FastAPI, Request
from prometheus_fastapi_instrumentator import Instrumentator

from app.config import MatchingConfig
from app.logging_config import setup_logging
from app.reconciliation.router import router as matching_router
from app.schemas.health import ComponentHealth, HealthResponse

VERSION = "0.5.0"

setup_logging()
logger = structlog.get_logger()

app = FastAPI(
    title="Payment Matching Service",
    version=VERSION,
)

# Prometheus metrics: auto-instruments all endpoints
Instrumentator().instrument(app).expose(app, endpoint="/metrics")

app.include_router(matching_router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every request with structlog context."""
    start = time.monotonic()
    response = await call_next(request)
    elapsed_ms = (time.monotonic() - start) * 1000
    logger.info(
        "request",
        method=request.method,
        path=request.url.path,
        status=response.status_code,
        duration_ms=round(elapsed_ms, 2),
    )
    return response


def _load_config() -> tuple[ComponentHealth, MatchingConfig | None]:
    start = time.monotonic()
    try:
        config = MatchingConfig.from_env()
    except ValueError as exc:
        return ComponentHealth(status="degraded", detail=str(exc)), None
    elapsed_ms = round((time.monotonic() - start) * 1000, 2)
    return ComponentHealth(status="ok", latency_ms=elapsed_ms), config


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Health check with matching configuration readiness."""
    config_health, config = _load_config()
    checks = {
        "self": ComponentHealth(status="ok"),
        "config": config_health,
    }
    thresholds = {}
    if config:
        thresholds = {"high": config.high_threshold, "medium": config.medium_threshold}
    all_ok = all(c.status == "ok" for c in checks.values())
    return HealthResponse(
        status="ok" if all_ok else "degraded",
        version=VERSION,
        checks=checks,
        thresholds=thresholds,
    )
