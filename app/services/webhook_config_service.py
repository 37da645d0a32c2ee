"""
File: app/services/webhook_config_service.py
Project: CRM Inbox backend

Purpose:
Operator-side management of the webhook configuration and read access to
the delivery audit log.

Design rules:
- One configuration row per provider is maintained here
  (save = update when present, insert otherwise)
- Health fields (last_sync / sync_status / error_message) are written by
  the DeliveryAuditor only
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from app.models import WebhookConfig, WebhookLog

DEFAULT_LOG_LIMIT = 50


class WebhookConfigNotFoundError(LookupError):
    pass


def get_config(db: Session, *, provider: str) -> WebhookConfig | None:
    return (
        db.query(WebhookConfig)
        .filter(WebhookConfig.provider == provider)
        .order_by(WebhookConfig.updated_at.desc(), WebhookConfig.created_at.desc())
        .first()
    )


def save_config(
    db: Session,
    *,
    provider: str,
    webhook_url: str,
    webhook_token: str | None = None,
    verify_token: str | None = None,
    is_active: bool | None = None,
) -> WebhookConfig:
    config = get_config(db, provider=provider)

    if config is None:
        config = WebhookConfig(
            provider=provider,
            webhook_url=webhook_url,
            webhook_token=webhook_token,
            verify_token=verify_token,
            is_active=bool(is_active),
            sync_status="pending",
        )
        db.add(config)
    else:
        config.webhook_url = webhook_url
        config.webhook_token = webhook_token
        config.verify_token = verify_token
        if is_active is not None:
            config.is_active = is_active

    db.commit()
    db.refresh(config)
    return config


def set_active(db: Session, *, provider: str, is_active: bool) -> WebhookConfig:
    config = get_config(db, provider=provider)
    if config is None:
        raise WebhookConfigNotFoundError(f"No webhook configuration for {provider}")

    config.is_active = is_active
    db.commit()
    db.refresh(config)
    return config


def list_logs(db: Session, *, limit: int = DEFAULT_LOG_LIMIT) -> list[WebhookLog]:
    return (
        db.query(WebhookLog)
        .order_by(WebhookLog.created_at.desc())
        .limit(limit)
        .all()
    )
