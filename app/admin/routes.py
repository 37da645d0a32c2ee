"""
File: app/admin/routes.py

Project: CRM Inbox backend

Purpose:
Operator endpoints behind the CRM screens (kanban, inbox, maintenance).

Endpoints:
- GET    /admin/contacts
- POST   /admin/contacts
- PATCH  /admin/contacts/{contact_id}/stage
- DELETE /admin/contacts/{contact_id}
- POST   /admin/tags
- POST   /admin/contacts/{contact_id}/tags
- GET    /admin/conversations
- GET    /admin/conversations/{conversation_id}/messages
- POST   /admin/conversations/{conversation_id}/messages
- POST   /admin/conversations/{conversation_id}/read
- POST   /admin/maintenance/reconcile-message-counts

Design rules:
- No business logic here: every write goes through a service
- Service lookups failing map to 404
"""

from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.db import get_db
from app.models import Contact, Conversation, Message
from app.services import contacts_service
from app.services.message_service import ConversationNotFoundError, MessageService
from app.services.reconciliation_service import reconcile_message_counts
from app.services.templates_service import TemplateNotFoundError

router = APIRouter(prefix="/admin", tags=["admin"])

Stage = Literal["lead", "qualified", "negotiation", "client", "inactive"]


class ContactIn(BaseModel):
    name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    stage: Stage = "lead"
    user_id: Optional[UUID] = None


class StageIn(BaseModel):
    stage: Stage


class TagIn(BaseModel):
    name: str = Field(min_length=1)
    color: Optional[str] = None


class ContactTagIn(BaseModel):
    tag_id: UUID


class AgentMessageIn(BaseModel):
    content: str = Field(min_length=1)
    sender_name: Optional[str] = None
    template_id: Optional[UUID] = None


def _contact_out(c: Contact) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "phone": c.phone,
        "stage": c.stage,
        "last_contact": c.last_contact,
        "user_id": c.user_id,
        "created_at": c.created_at,
    }


def _message_out(m: Message) -> dict:
    return {
        "id": m.id,
        "conversation_id": m.conversation_id,
        "content": m.content,
        "sender_type": m.sender_type,
        "sender_name": m.sender_name,
        "read": m.read,
        "metadata": m.meta,
        "created_at": m.created_at,
    }


# -------------------------------------------------------------------
# Contacts (kanban)
# -------------------------------------------------------------------
@router.get("/contacts")
def list_contacts(stage: Optional[Stage] = None, db: Session = Depends(get_db)):
    return contacts_service.list_contacts(db, stage=stage)


@router.post("/contacts", status_code=201)
def create_contact(body: ContactIn, db: Session = Depends(get_db)):
    try:
        contact = contacts_service.create_contact(
            db,
            name=body.name.strip(),
            phone=body.phone.strip(),
            stage=body.stage,
            user_id=body.user_id,
        )
    except contacts_service.DuplicatePhoneError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _contact_out(contact)


@router.patch("/contacts/{contact_id}/stage")
def change_contact_stage(
    contact_id: UUID,
    body: StageIn,
    db: Session = Depends(get_db),
):
    try:
        contact = contacts_service.change_stage(db, contact_id=contact_id, stage=body.stage)
    except contacts_service.ContactNotFoundError:
        raise HTTPException(status_code=404, detail="Contact not found")
    return _contact_out(contact)


@router.delete("/contacts/{contact_id}", status_code=204)
def delete_contact(contact_id: UUID, db: Session = Depends(get_db)):
    try:
        contacts_service.delete_contact(db, contact_id=contact_id)
    except contacts_service.ContactNotFoundError:
        raise HTTPException(status_code=404, detail="Contact not found")


@router.post("/tags", status_code=201)
def create_tag(body: TagIn, db: Session = Depends(get_db)):
    tag = contacts_service.create_tag(db, name=body.name.strip(), color=body.color)
    return {"id": tag.id, "name": tag.name, "color": tag.color}


@router.post("/contacts/{contact_id}/tags", status_code=201)
def tag_contact(
    contact_id: UUID,
    body: ContactTagIn,
    db: Session = Depends(get_db),
):
    try:
        link = contacts_service.tag_contact(db, contact_id=contact_id, tag_id=body.tag_id)
    except contacts_service.ContactNotFoundError:
        raise HTTPException(status_code=404, detail="Contact not found")
    except contacts_service.TagNotFoundError:
        raise HTTPException(status_code=404, detail="Tag not found")
    return {"id": link.id, "contact_id": link.contact_id, "tag_id": link.tag_id}


# -------------------------------------------------------------------
# Conversations (inbox)
# -------------------------------------------------------------------
@router.get("/conversations")
def list_conversations(stage: Optional[Stage] = None, db: Session = Depends(get_db)):
    unread = (
        db.query(
            Message.conversation_id.label("conversation_id"),
            func.count(Message.id).label("unread_count"),
        )
        .filter(Message.read.is_(False), Message.sender_type == "contact")
        .group_by(Message.conversation_id)
        .subquery()
    )

    query = (
        db.query(
            Conversation.id,
            Conversation.contact_id,
            Conversation.message_count,
            Conversation.updated_at,
            Contact.name,
            Contact.phone,
            Contact.stage,
            unread.c.unread_count,
        )
        .join(Contact, Contact.id == Conversation.contact_id)
        .outerjoin(unread, unread.c.conversation_id == Conversation.id)
        .order_by(Conversation.updated_at.desc())
    )
    if stage:
        query = query.filter(Contact.stage == stage)

    return [
        {
            "id": r.id,
            "contact_id": r.contact_id,
            "message_count": r.message_count,
            "updated_at": r.updated_at,
            "contact": {"name": r.name, "phone": r.phone, "stage": r.stage},
            "unread_count": r.unread_count or 0,
        }
        for r in query.limit(100).all()
    ]


@router.get("/conversations/{conversation_id}/messages")
def list_conversation_messages(
    conversation_id: UUID,
    db: Session = Depends(get_db),
):
    try:
        messages = MessageService(db).list_messages(conversation_id)
    except ConversationNotFoundError:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return [_message_out(m) for m in messages]


@router.post("/conversations/{conversation_id}/messages", status_code=201)
def send_agent_message(
    conversation_id: UUID,
    body: AgentMessageIn,
    db: Session = Depends(get_db),
):
    try:
        message = MessageService(db).send_agent_message(
            conversation_id=conversation_id,
            content=body.content,
            sender_name=body.sender_name,
            template_id=body.template_id,
        )
    except ConversationNotFoundError:
        raise HTTPException(status_code=404, detail="Conversation not found")
    except TemplateNotFoundError:
        raise HTTPException(status_code=404, detail="Template not found")
    return _message_out(message)


@router.post("/conversations/{conversation_id}/read")
def mark_conversation_read(
    conversation_id: UUID,
    db: Session = Depends(get_db),
):
    try:
        updated = MessageService(db).mark_conversation_read(conversation_id)
    except ConversationNotFoundError:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return {"conversation_id": conversation_id, "marked_read": updated}


# -------------------------------------------------------------------
# Maintenance (controlled write)
# -------------------------------------------------------------------
@router.post("/maintenance/reconcile-message-counts")
def reconcile_counts(db: Session = Depends(get_db)):
    report = reconcile_message_counts(db)
    return {"checked": report.checked, "corrected": report.corrected}
