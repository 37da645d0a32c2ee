"""
File: app/services/message_service.py
Path: app/services/message_service.py

Project: CRM Inbox backend

Purpose:
Authoritative service responsible for:
- Appending messages to a conversation (inbound and agent-authored)
- Keeping conversations.message_count in step with the message rows
- Inbox reads (message list, mark-as-read)
- Counting template usage on agent replies

Design rules:
- Message insert, counter increment, conversation freshness and the
  contact's last_contact touch are ONE commit
- Counters (message_count, usage_count) are incremented store-side,
  never read-modify-write in Python
- Store errors propagate; the caller decides the HTTP outcome
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.models import Contact, Conversation, Message, MessageTemplate, SENDER_TYPES
from app.services.templates_service import get_usable_template

logger = logging.getLogger("message_service")


class ConversationNotFoundError(LookupError):
    pass


class MessageService:
    def __init__(self, db: Session):
        self._db = db

    def append(
        self,
        *,
        conversation_id,
        content: str,
        sender_type: str,
        sender_name: str | None = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Message:
        message, conversation = self._build(
            conversation_id=conversation_id,
            content=content,
            sender_type=sender_type,
            sender_name=sender_name,
            metadata=metadata,
        )
        return self._commit(message, conversation)

    # ---------------------------------------------------------
    # Inbox
    # ---------------------------------------------------------
    def send_agent_message(
        self,
        *,
        conversation_id,
        content: str,
        sender_name: str | None = None,
        template_id=None,
    ) -> Message:
        """
        Stores an agent reply. When the reply was picked from a template,
        the template's usage_count is bumped in the same commit.
        """
        template = None
        if template_id is not None:
            template = get_usable_template(self._db, template_id=template_id)

        message, conversation = self._build(
            conversation_id=conversation_id,
            content=content,
            sender_type="agent",
            sender_name=sender_name,
            metadata={"template_id": str(template.id)} if template else None,
        )

        def bump_usage():
            self._db.execute(
                update(MessageTemplate)
                .where(MessageTemplate.id == template.id)
                .values(usage_count=MessageTemplate.usage_count + 1)
            )

        message = self._commit(message, conversation, also=bump_usage if template else None)
        logger.info("Agent message %s stored in %s", message.id, conversation_id)
        return message

    def list_messages(self, conversation_id) -> list[Message]:
        self._require_conversation(conversation_id)
        return (
            self._db.query(Message)
            .filter(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.asc())
            .all()
        )

    def mark_conversation_read(self, conversation_id) -> int:
        self._require_conversation(conversation_id)
        result = self._db.execute(
            update(Message)
            .where(
                Message.conversation_id == conversation_id,
                Message.read.is_(False),
            )
            .values(read=True)
        )
        self._db.commit()
        return result.rowcount or 0

    # ---------------------------------------------------------
    # Internals
    # ---------------------------------------------------------
    def _build(self, *, conversation_id, content, sender_type, sender_name, metadata):
        if sender_type not in SENDER_TYPES:
            raise ValueError(f"Unknown sender_type: {sender_type}")

        conversation = self._require_conversation(conversation_id)

        message = Message(
            conversation_id=conversation.id,
            content=content,
            sender_type=sender_type,
            sender_name=sender_name,
            read=sender_type != "contact",
            meta=metadata,
            created_at=datetime.now(timezone.utc),
        )
        return message, conversation

    def _commit(self, message: Message, conversation: Conversation, also=None) -> Message:
        now = message.created_at
        try:
            self._db.add(message)
            self._db.execute(
                update(Conversation)
                .where(Conversation.id == conversation.id)
                .values(message_count=Conversation.message_count + 1, updated_at=now)
            )
            if message.sender_type == "contact":
                self._db.execute(
                    update(Contact)
                    .where(Contact.id == conversation.contact_id)
                    .values(last_contact=now)
                )
            if also is not None:
                also()
            self._db.commit()
        except Exception:
            self._db.rollback()
            raise

        self._db.refresh(message)
        return message

    def _require_conversation(self, conversation_id) -> Conversation:
        conversation = self._db.get(Conversation, conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(f"Conversation not found: {conversation_id}")
        return conversation
