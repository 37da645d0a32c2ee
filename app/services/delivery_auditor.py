"""
File: app/services/delivery_auditor.py

Project: CRM Inbox backend

Purpose:
Best-effort audit of inbound webhook deliveries.

Responsibilities:
- Resolve the active webhook configuration for the provider
- Append an immutable WebhookLog row per delivery (success or error)
- Keep the configuration's health fields (last_sync / sync_status /
  error_message) in step with the latest delivery

IMPORTANT:
- Auditing never fails the primary request: every error is logged and
  swallowed here
- No active configuration -> silent no-op
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.db import SessionLocal
from app.models import WebhookConfig, WebhookLog

logger = logging.getLogger("delivery_auditor")

EVENT_MESSAGE_RECEIVED = "message_received"
EVENT_STATUS_UPDATE = "status_update"
EVENT_ERROR = "error"


class ActiveWebhookConfigProvider:
    """
    Selects "the" active configuration for a provider.

    Several active rows for one provider are tolerated: the most recently
    updated one wins, then the most recently created.
    """

    def __init__(self, provider: str) -> None:
        self.provider = provider

    def get_active(self, db: Session) -> WebhookConfig | None:
        return (
            db.query(WebhookConfig)
            .filter(
                WebhookConfig.provider == self.provider,
                WebhookConfig.is_active.is_(True),
            )
            .order_by(
                WebhookConfig.updated_at.desc(),
                WebhookConfig.created_at.desc(),
            )
            .first()
        )


class DeliveryAuditor:
    def __init__(
        self,
        config_provider: ActiveWebhookConfigProvider,
        db: Session | None = None,
    ) -> None:
        self._config_provider = config_provider
        self._db = db

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------
    def record_success(
        self,
        *,
        response_time_ms: int,
        payload: Optional[Dict[str, Any]] = None,
        status_code: int = 200,
    ) -> None:
        self.record(
            event_type=EVENT_MESSAGE_RECEIVED,
            status_code=status_code,
            response_time_ms=response_time_ms,
            payload=payload,
        )

    def record_failure(
        self,
        *,
        response_time_ms: int,
        error_message: str,
        status_code: int = 500,
    ) -> None:
        self.record(
            event_type=EVENT_ERROR,
            status_code=status_code,
            response_time_ms=response_time_ms,
            error_message=error_message,
        )

    def record(
        self,
        *,
        event_type: str,
        response_time_ms: int,
        status_code: int | None = None,
        error_message: str | None = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        session = self._db or SessionLocal()
        try:
            config = self._config_provider.get_active(session)
            if config is None:
                logger.debug("No active %s webhook config, audit skipped", self._config_provider.provider)
                return

            self._insert_log(
                session,
                config=config,
                event_type=event_type,
                status_code=status_code,
                response_time_ms=response_time_ms,
                error_message=error_message,
                payload=payload,
            )
            self._update_config_health(
                config,
                failed=event_type == EVENT_ERROR,
                error_message=error_message,
            )
            session.commit()
        except Exception:
            session.rollback()
            logger.exception("Webhook audit failed (event_type=%s)", event_type)
        finally:
            if self._db is None:
                session.close()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------
    def _insert_log(
        self,
        session: Session,
        *,
        config: WebhookConfig,
        event_type: str,
        status_code: int | None,
        response_time_ms: int,
        error_message: str | None,
        payload: Optional[Dict[str, Any]],
    ) -> None:
        session.add(
            WebhookLog(
                webhook_config_id=config.id,
                event_type=event_type,
                payload=payload,
                status_code=status_code,
                response_time_ms=response_time_ms,
                error_message=error_message,
                created_at=datetime.now(timezone.utc),
            )
        )
        session.flush()

    def _update_config_health(
        self,
        config: WebhookConfig,
        *,
        failed: bool,
        error_message: str | None,
    ) -> None:
        if failed:
            config.sync_status = "error"
            config.error_message = error_message
            return

        config.last_sync = datetime.now(timezone.utc)
        config.sync_status = "success"
        config.error_message = None
