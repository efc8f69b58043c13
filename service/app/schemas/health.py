from pydantic import BaseModel


class ComponentHealth(BaseModel):
    """Readiness of one part of the service."""
    status: str
    latency_ms: float | None = None
    detail: str | None = None


class HealthResponse(BaseModel):
    status: str
    version: str
    checks: dict[str, ComponentHealth] = {}
    thresholds: dict[str, float] = {}
