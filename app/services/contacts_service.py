"""
File: app/services/contacts_service.py
Project: CRM Inbox backend

Purpose:
Shared contact service (kanban side).

This is the ONLY place allowed to:
- add a contact manually
- move a contact between stages
- delete a contact (with its conversation, messages, tag links and
  appointments)
- tag a contact

Design rules:
- Phone is the contact's identity: duplicates are rejected
- Cascade delete is one transaction, children first
- No messaging
- DB is source of truth
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models import (
    CONTACT_STAGES,
    Appointment,
    Contact,
    ContactTag,
    Conversation,
    Message,
    Tag,
)

logger = logging.getLogger("contacts_service")


class ContactNotFoundError(LookupError):
    pass


class TagNotFoundError(LookupError):
    pass


class DuplicatePhoneError(ValueError):
    pass


# -------------------------------------------------
# Queries
# -------------------------------------------------

def get_contact(db: Session, *, contact_id) -> Contact:
    contact = db.get(Contact, contact_id)
    if contact is None:
        raise ContactNotFoundError(f"Contact not found: {contact_id}")
    return contact


def list_contacts(db: Session, *, stage: str | None = None) -> list[dict]:
    """
    Kanban listing, most recently active first.
    Each row carries the conversation's message_count and the tag names.
    """
    query = (
        db.query(Contact, Conversation.message_count)
        .outerjoin(Conversation, Conversation.contact_id == Contact.id)
        .order_by(Contact.last_contact.desc())
    )
    if stage:
        query = query.filter(Contact.stage == stage)
    rows = query.all()

    tags_by_contact: dict = {}
    if rows:
        tag_rows = (
            db.query(ContactTag.contact_id, Tag.name, Tag.color)
            .join(Tag, Tag.id == ContactTag.tag_id)
            .filter(ContactTag.contact_id.in_([c.id for c, _ in rows]))
            .all()
        )
        for contact_id, name, color in tag_rows:
            tags_by_contact.setdefault(contact_id, []).append({"name": name, "color": color})

    return [
        {
            "id": c.id,
            "name": c.name,
            "phone": c.phone,
            "stage": c.stage,
            "last_contact": c.last_contact,
            "user_id": c.user_id,
            "created_at": c.created_at,
            "message_count": message_count or 0,
            "tags": tags_by_contact.get(c.id, []),
        }
        for c, message_count in rows
    ]


# -------------------------------------------------
# Commands
# -------------------------------------------------

def create_contact(
    db: Session,
    *,
    name: str,
    phone: str,
    stage: str = "lead",
    user_id=None,
) -> Contact:
    _check_stage(stage)

    contact = Contact(
        name=name,
        phone=phone,
        stage=stage,
        user_id=user_id,
        last_contact=datetime.now(timezone.utc),
    )
    try:
        db.add(contact)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicatePhoneError(f"Contact with phone {phone} already exists") from exc

    db.refresh(contact)
    logger.info("Contact %s added manually", contact.id)
    return contact


def change_stage(db: Session, *, contact_id, stage: str) -> Contact:
    """
    Kanban drag: moves the contact and counts as contact activity.
    """
    _check_stage(stage)
    contact = get_contact(db, contact_id=contact_id)

    contact.stage = stage
    contact.last_contact = datetime.now(timezone.utc)
    db.commit()
    db.refresh(contact)
    return contact


def delete_contact(db: Session, *, contact_id) -> None:
    """
    Deletes, in dependency order and in one transaction:
    messages -> conversations -> tag links -> appointments -> contact.
    """
    get_contact(db, contact_id=contact_id)

    conversation_ids = select(Conversation.id).where(Conversation.contact_id == contact_id)
    try:
        db.execute(
            delete(Message)
            .where(Message.conversation_id.in_(conversation_ids))
            .execution_options(synchronize_session=False)
        )
        db.execute(
            delete(Conversation)
            .where(Conversation.contact_id == contact_id)
            .execution_options(synchronize_session=False)
        )
        db.execute(
            delete(ContactTag)
            .where(ContactTag.contact_id == contact_id)
            .execution_options(synchronize_session=False)
        )
        db.execute(
            delete(Appointment)
            .where(Appointment.contact_id == contact_id)
            .execution_options(synchronize_session=False)
        )
        db.execute(
            delete(Contact)
            .where(Contact.id == contact_id)
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.expire_all()
    logger.info("Contact %s deleted with its conversation history", contact_id)


def create_tag(db: Session, *, name: str, color: str | None = None) -> Tag:
    tag = Tag(name=name)
    if color:
        tag.color = color
    db.add(tag)
    db.commit()
    db.refresh(tag)
    return tag


def tag_contact(db: Session, *, contact_id, tag_id) -> ContactTag:
    """
    Links a tag to a contact. An existing link is returned as-is.
    """
    get_contact(db, contact_id=contact_id)
    if db.get(Tag, tag_id) is None:
        raise TagNotFoundError(f"Tag not found: {tag_id}")

    existing = (
        db.query(ContactTag)
        .filter(ContactTag.contact_id == contact_id, ContactTag.tag_id == tag_id)
        .one_or_none()
    )
    if existing:
        return existing

    link = ContactTag(contact_id=contact_id, tag_id=tag_id)
    try:
        db.add(link)
        db.commit()
    except IntegrityError:
        db.rollback()
        return (
            db.query(ContactTag)
            .filter(ContactTag.contact_id == contact_id, ContactTag.tag_id == tag_id)
            .one()
        )

    db.refresh(link)
    return link


def _check_stage(stage: str) -> None:
    if stage not in CONTACT_STAGES:
        raise ValueError(f"Unknown stage: {stage}")
