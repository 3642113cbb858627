"""Health check and monitoring endpoints."""
from fastapi import APIRouter
from typing import Dict, Any
import time

from storefront_assistant.utils.config import settings
from storefront_assistant.database.db import SessionLocal
from sqlalchemy import text

router = APIRouter(prefix="/api", tags=["health"])


def _check_database() -> Dict[str, Any]:
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        return {"status": "healthy", "message": "Database connection successful"}
    except Exception as e:
        return {"status": "unhealthy", "message": f"Database connection failed: {type(e).__name__}"}
    finally:
        db.close()


def _check_llm_provider() -> Dict[str, Any]:
    provider = settings.llm_provider.lower()
    if provider not in ("anthropic", "openai"):
        return {"status": "degraded", "provider": provider, "message": f"Unknown provider: {provider}"}

    has_key = bool(settings.provider_api_key)
    return {
        "status": "healthy" if has_key else "degraded",
        "provider": provider,
        "model": settings.llm_model,
        "configured": has_key,
        "message": f"{provider} configured" if has_key else f"{provider} API key missing",
    }


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """Database and LLM provider health."""
    checks = {
        "database": _check_database(),
        "llm_provider": _check_llm_provider(),
    }

    statuses = [check["status"] for check in checks.values()]
    if "unhealthy" in statuses:
        status = "unhealthy"
    elif "degraded" in statuses:
        status = "degraded"
    else:
        status = "healthy"

    return {"status": status, "timestamp": time.time(), "checks": checks}


@router.get("/health/liveness")
async def liveness() -> Dict[str, str]:
    """Simple liveness probe for Kubernetes/Docker."""
    return {"status": "alive"}


@router.get("/health/readiness")
async def readiness() -> Dict[str, Any]:
    """Readiness probe - checks if service can accept traffic."""
    database = _check_database()
    ready = database["status"] == "healthy"
    return {
        "status": "ready" if ready else "not_ready",
        "checks": {"database": "ready" if ready else f"not_ready: {database['message']}"},
    }
