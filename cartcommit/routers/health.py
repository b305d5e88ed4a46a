import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.orm import Session

from cartcommit.dependencies import get_db, get_security_manager
from cartcommit.domain.security.manager import SecurityManager

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health/live")
async def liveness():
    """Liveness probe: Service is running."""
    return {"status": "ok", "checks": {"api": "ok"}}


@router.get("/health/ready")
async def readiness(
    db: Session = Depends(get_db),
    security: SecurityManager = Depends(get_security_manager),
):
    """Readiness probe: Dependencies connected."""
    health = {"status": "ok", "checks": {}}

    try:
        db.execute(text("SELECT 1"))
        health["checks"]["database"] = "ok"
    except Exception as e:
        logger.error(f"Health check failed (database): {e}")
        health["checks"]["database"] = "failed"
        health["status"] = "failed"

    if security.self_test():
        health["checks"]["security"] = "ok"
    else:
        health["checks"]["security"] = "failed"
        health["status"] = "failed"

    if health["status"] == "failed":
        raise HTTPException(status_code=503, detail=health)

    return health
