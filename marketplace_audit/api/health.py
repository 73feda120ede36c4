"""
Health check and status endpoints
"""
from fastapi import APIRouter, Depends
from datetime import datetime
from sqlalchemy import text
from sqlalchemy.orm import Session

from marketplace_audit.config import get_settings
from marketplace_audit.models.base import get_db
from marketplace_audit.utils.logger import log
from marketplace_audit import __version__

settings = get_settings()

router = APIRouter()


@router.get("/health")
async def health_check(db: Session = Depends(get_db)):
    """Liveness plus a database round trip"""
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except Exception as e:
        log.error(f"Health check database error: {str(e)}")
        database = "error"

    return {
        "status": "healthy" if database == "ok" else "degraded",
        "database": database,
        "timestamp": datetime.utcnow().isoformat(),
        "version": __version__
    }


@router.get("/status")
async def get_status():
    """Scheduler jobs and the sync limits in effect"""
    from marketplace_audit.scheduler import get_scheduled_jobs

    return {
        "app_name": settings.app_name,
        "version": __version__,
        "environment": settings.environment,
        "scheduler": {
            "enabled": settings.enable_scheduler,
            "jobs": get_scheduled_jobs(),
        },
        "limits": {
            "batch_size": settings.bol_batch_size,
            "max_campaigns_per_sync": settings.max_campaigns_per_sync,
            "max_ad_groups_per_sync": settings.max_ad_groups_per_sync,
            "extended_max_products": settings.extended_max_products,
            "export_job_max_attempts": settings.export_job_max_attempts,
        },
        "timestamp": datetime.utcnow().isoformat()
    }
