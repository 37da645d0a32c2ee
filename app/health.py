"""
Health check endpoints
Used by the hosting platform + ops

- GET /health           liveness
- GET /health/db        database reachability
- GET /health/webhook   sync state of the active webhook configuration
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db import get_db, test_db_connection
from app.webhooks import get_config_provider

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
def health_check():
    return {"status": "healthy"}


@router.get("/db")
def db_health_check():
    try:
        test_db_connection()
        return {"database": "healthy"}
    except Exception as e:
        return {"database": "unhealthy", "error": str(e)}


@router.get("/webhook")
def webhook_health_check(
    db: Session = Depends(get_db),
    config_provider=Depends(get_config_provider),
):
    config = config_provider.get_active(db)
    if config is None:
        return {"webhook": "not_configured", "provider": config_provider.provider}

    return {
        "webhook": config.sync_status,
        "provider": config.provider,
        "last_sync": config.last_sync,
        "error_message": config.error_message,
    }
