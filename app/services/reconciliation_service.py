"""
File: app/services/reconciliation_service.py

Project: CRM Inbox backend

Purpose:
Recount job for conversations.message_count.

Appends keep the counter exact on their own; this pass repairs rows
written by anything else (imports, manual SQL, older deployments).
Manual / scheduled, never called from the webhook path.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models import Conversation, Message

logger = logging.getLogger("reconciliation")


@dataclass
class ReconcileReport:
    checked: int = 0
    corrected: list[dict] = field(default_factory=list)


def reconcile_message_counts(db: Session) -> ReconcileReport:
    actual_counts = dict(
        db.query(Message.conversation_id, func.count(Message.id))
        .group_by(Message.conversation_id)
        .all()
    )

    report = ReconcileReport()
    for conversation in db.query(Conversation).all():
        report.checked += 1
        actual = actual_counts.get(conversation.id, 0)
        if conversation.message_count == actual:
            continue

        report.corrected.append(
            {
                "conversation_id": conversation.id,
                "stored": conversation.message_count,
                "actual": actual,
            }
        )
        conversation.message_count = actual

    if report.corrected:
        db.commit()
        logger.warning("Corrected message_count on %d conversation(s)", len(report.corrected))

    return report
