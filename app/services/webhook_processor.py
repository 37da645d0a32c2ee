"""
CRM Inbox backend
WebhookProcessor

Responsibilities:
- Validate a parsed inbound WhatsApp payload
- Resolve contact + conversation, then append the inbound message
- Never deal with HTTP, FastAPI, or responses

Pipeline for one call:
    RECEIVED -> RESOLVING(contact) -> RESOLVING(conversation)
             -> APPENDING(message) -> done (auditing is the caller's step)
Any failure propagates unchanged.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional
from uuid import UUID

from app.services.contact_resolver import ContactResolver
from app.services.message_service import MessageService

logger = logging.getLogger("webhook_processor")

MESSAGE_SOURCE = "whatsapp"


class InboundValidationError(ValueError):
    pass


@dataclass(frozen=True)
class InboundMessage:
    phone: str
    text: str
    from_name: Optional[str] = None
    timestamp_ms: Optional[int] = None

    @property
    def display_name(self) -> str:
        return self.from_name or self.phone


@dataclass(frozen=True)
class IngestResult:
    contact_id: UUID
    conversation_id: UUID
    message_id: UUID
    is_new_contact: bool
    is_new_conversation: bool


def _as_text(value: Any) -> str:
    if value is None or isinstance(value, (dict, list, bool)):
        return ""
    return str(value)


def parse_inbound_payload(payload: Any) -> InboundMessage:
    """
    Accepts {from, fromName?, message, timestamp?}.
    `from` and `message` are required; everything else is optional.
    """
    if not isinstance(payload, dict):
        raise InboundValidationError("Invalid payload: expected a JSON object")

    phone = _as_text(payload.get("from")).strip()
    text = _as_text(payload.get("message"))
    if not phone or not text:
        raise InboundValidationError("Missing required fields: from and message")

    timestamp = payload.get("timestamp")
    if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
        timestamp = None

    return InboundMessage(
        phone=phone,
        text=text,
        from_name=_as_text(payload.get("fromName")).strip() or None,
        timestamp_ms=int(timestamp) if timestamp is not None else None,
    )


class WebhookProcessor:
    def __init__(
        self,
        resolver: ContactResolver,
        message_service: MessageService,
    ) -> None:
        self._resolver = resolver
        self._message_service = message_service

    def process_inbound_message(self, inbound: InboundMessage) -> IngestResult:
        resolution = self._resolver.resolve(
            phone=inbound.phone,
            display_name=inbound.from_name,
        )

        message = self._message_service.append(
            conversation_id=resolution.conversation_id,
            content=inbound.text,
            sender_type="contact",
            sender_name=inbound.display_name,
            metadata={
                "timestamp": inbound.timestamp_ms or int(time.time() * 1000),
                "source": MESSAGE_SOURCE,
            },
        )

        logger.info(
            "Inbound message %s stored (contact=%s new=%s, conversation=%s new=%s)",
            message.id,
            resolution.contact_id,
            resolution.is_new_contact,
            resolution.conversation_id,
            resolution.is_new_conversation,
        )

        return IngestResult(
            contact_id=resolution.contact_id,
            conversation_id=resolution.conversation_id,
            message_id=message.id,
            is_new_contact=resolution.is_new_contact,
            is_new_conversation=resolution.is_new_conversation,
        )
