"""
File: app/services/contact_resolver.py
Project: CRM Inbox backend

Purpose:
Idempotent resolution of an inbound phone number into its owning
Contact and Conversation.

Rules:
- Same phone -> same contact_id and conversation_id, across repeated calls
- Unseen phone -> one new contact (stage=lead) and one new conversation
  (message_count=0)
- Concurrent first-contact callbacks are settled by the store's unique
  constraints: the loser rolls back and re-reads the winner's row
- Store errors propagate to the caller
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models import Contact, Conversation

logger = logging.getLogger("contact_resolver")


@dataclass(frozen=True)
class Resolution:
    contact_id: UUID
    conversation_id: UUID
    is_new_contact: bool
    is_new_conversation: bool


class ContactResolver:
    def __init__(self, db: Session) -> None:
        self._db = db

    def resolve(self, *, phone: str, display_name: str | None = None) -> Resolution:
        contact, is_new_contact = self._find_or_create_contact(phone, display_name)
        conversation, is_new_conversation = self._find_or_create_conversation(contact)

        return Resolution(
            contact_id=contact.id,
            conversation_id=conversation.id,
            is_new_contact=is_new_contact,
            is_new_conversation=is_new_conversation,
        )

    # -------------------------------------------------
    # Contact
    # -------------------------------------------------
    def _find_contact(self, phone: str) -> Contact | None:
        return (
            self._db.query(Contact)
            .filter(Contact.phone == phone)
            .one_or_none()
        )

    def _find_or_create_contact(
        self, phone: str, display_name: str | None
    ) -> tuple[Contact, bool]:
        existing = self._find_contact(phone)
        if existing:
            existing.last_contact = datetime.now(timezone.utc)
            self._db.commit()
            return existing, False

        contact = Contact(
            name=display_name or phone,
            phone=phone,
            stage="lead",
            user_id=None,
            last_contact=datetime.now(timezone.utc),
        )
        try:
            self._db.add(contact)
            self._db.commit()
        except IntegrityError:
            # Another callback created the same phone first.
            self._db.rollback()
            winner = self._find_contact(phone)
            if winner is None:
                raise
            logger.info("Contact for %s created concurrently, reusing %s", phone, winner.id)
            return winner, False

        self._db.refresh(contact)
        logger.info("New contact created: %s", contact.id)
        return contact, True

    # -------------------------------------------------
    # Conversation
    # -------------------------------------------------
    def _find_conversation(self, contact_id) -> Conversation | None:
        return (
            self._db.query(Conversation)
            .filter(Conversation.contact_id == contact_id)
            .one_or_none()
        )

    def _find_or_create_conversation(self, contact: Contact) -> tuple[Conversation, bool]:
        existing = self._find_conversation(contact.id)
        if existing:
            return existing, False

        conversation = Conversation(
            contact_id=contact.id,
            message_count=0,
            user_id=contact.user_id,
        )
        try:
            self._db.add(conversation)
            self._db.commit()
        except IntegrityError:
            self._db.rollback()
            winner = self._find_conversation(contact.id)
            if winner is None:
                raise
            logger.info(
                "Conversation for contact %s created concurrently, reusing %s",
                contact.id,
                winner.id,
            )
            return winner, False

        self._db.refresh(conversation)
        logger.info("New conversation created: %s", conversation.id)
        return conversation, True
