"""
File: app/admin/webhook_settings.py

Project: CRM Inbox backend

Purpose:
Webhook configuration screen.

Endpoints:
- GET  /admin/webhook-config
- PUT  /admin/webhook-config
- POST /admin/webhook-config/active
- GET  /admin/webhook-logs
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.db import get_db, settings
from app.models import WebhookConfig
from app.services import webhook_config_service

router = APIRouter(prefix="/admin", tags=["admin"])


class WebhookConfigIn(BaseModel):
    webhook_url: str = Field(min_length=1)
    webhook_token: Optional[str] = None
    verify_token: Optional[str] = None
    is_active: Optional[bool] = None


class ActiveIn(BaseModel):
    is_active: bool


def _config_out(c: WebhookConfig) -> dict:
    # Tokens are write-only from this screen
    return {
        "id": c.id,
        "provider": c.provider,
        "webhook_url": c.webhook_url,
        "has_webhook_token": bool(c.webhook_token),
        "has_verify_token": bool(c.verify_token),
        "is_active": c.is_active,
        "last_sync": c.last_sync,
        "sync_status": c.sync_status,
        "error_message": c.error_message,
        "updated_at": c.updated_at,
    }


@router.get("/webhook-config")
def get_webhook_config(db: Session = Depends(get_db)):
    config = webhook_config_service.get_config(db, provider=settings.webhook_provider)
    return _config_out(config) if config else None


@router.put("/webhook-config")
def save_webhook_config(body: WebhookConfigIn, db: Session = Depends(get_db)):
    config = webhook_config_service.save_config(
        db,
        provider=settings.webhook_provider,
        webhook_url=body.webhook_url.strip(),
        webhook_token=body.webhook_token,
        verify_token=body.verify_token,
        is_active=body.is_active,
    )
    return _config_out(config)


@router.post("/webhook-config/active")
def toggle_webhook_config(body: ActiveIn, db: Session = Depends(get_db)):
    try:
        config = webhook_config_service.set_active(
            db, provider=settings.webhook_provider, is_active=body.is_active
        )
    except webhook_config_service.WebhookConfigNotFoundError:
        raise HTTPException(status_code=404, detail="No configuration found")
    return _config_out(config)


@router.get("/webhook-logs")
def list_webhook_logs(
    limit: int = Query(webhook_config_service.DEFAULT_LOG_LIMIT, ge=1, le=500),
    db: Session = Depends(get_db),
):
    return [
        {
            "id": log.id,
            "webhook_config_id": log.webhook_config_id,
            "event_type": log.event_type,
            "status_code": log.status_code,
            "response_time_ms": log.response_time_ms,
            "error_message": log.error_message,
            "payload": log.payload,
            "created_at": log.created_at,
        }
        for log in webhook_config_service.list_logs(db, limit=limit)
    ]
