"""
File: app/models.py

Project: CRM Inbox backend

Purpose:
SQLAlchemy ORM models for the CRM inbox: contacts (kanban), their single
conversation thread, messages, tags, appointments, reply templates, and the
webhook configuration / audit log used by the inbound WhatsApp pipeline.

Design principles:
- Tables map 1:1 with the CRM collections
- No business logic in models
- Identity rules are enforced by the store:
  - one contact per phone
  - one conversation per contact
- All writes are controlled by the services, not model side-effects
- Deleting a contact removes its history, tag links and appointments
  (contacts_service.delete_contact)
"""

import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

JSONType = JSON().with_variant(JSONB(), "postgresql")

CONTACT_STAGES = ("lead", "qualified", "negotiation", "client", "inactive")
SENDER_TYPES = ("contact", "agent", "system")
SYNC_STATUSES = ("pending", "success", "error")
LOG_EVENT_TYPES = ("message_received", "status_update", "error")
APPOINTMENT_STATUSES = ("scheduled", "completed", "cancelled", "rescheduled")


def _in_check(column: str, values: tuple[str, ...]) -> str:
    allowed = ", ".join(f"'{v}'" for v in values)
    return f"{column} IN ({allowed})"


# ---------------------------------------------------------------------
# Contact
# ---------------------------------------------------------------------
class Contact(Base):
    __tablename__ = "contacts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    phone = Column(Text, nullable=False)
    stage = Column(Text, nullable=False, server_default="lead")
    last_contact = Column(DateTime(timezone=True), server_default=func.now())
    user_id = Column(Uuid, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        UniqueConstraint("phone", name="uq_contacts_phone"),
        CheckConstraint(_in_check("stage", CONTACT_STAGES), name="ck_contacts_stage"),
    )

    conversation = relationship("Conversation", back_populates="contact", uselist=False)


# ---------------------------------------------------------------------
# Conversation (one per contact)
# ---------------------------------------------------------------------
class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    contact_id = Column(Uuid, ForeignKey("contacts.id"), nullable=False)
    message_count = Column(Integer, nullable=False, server_default="0", default=0)
    user_id = Column(Uuid, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("contact_id", name="uq_conversations_contact"),
        CheckConstraint("message_count >= 0", name="ck_conversations_message_count"),
    )

    contact = relationship("Contact", back_populates="conversation")


# ---------------------------------------------------------------------
# Message (immutable except for `read`)
# ---------------------------------------------------------------------
class Message(Base):
    __tablename__ = "messages"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    conversation_id = Column(Uuid, ForeignKey("conversations.id"), nullable=False)
    content = Column(Text, nullable=False)
    sender_type = Column(Text, nullable=False)
    sender_name = Column(Text, nullable=True)
    read = Column(Boolean, nullable=False, server_default="false", default=False)
    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JSONType, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint(
            _in_check("sender_type", SENDER_TYPES), name="ck_messages_sender_type"
        ),
    )

    conversation = relationship("Conversation")


# ---------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------
class Tag(Base):
    __tablename__ = "tags"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    color = Column(Text, nullable=False, server_default="#6366f1")
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class ContactTag(Base):
    __tablename__ = "contact_tags"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    contact_id = Column(Uuid, ForeignKey("contacts.id"), nullable=False)
    tag_id = Column(Uuid, ForeignKey("tags.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("contact_id", "tag_id", name="uq_contact_tags_pair"),
    )

    tag = relationship("Tag")


# ---------------------------------------------------------------------
# Webhook configuration
# ---------------------------------------------------------------------
class WebhookConfig(Base):
    __tablename__ = "webhook_configs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=True)
    provider = Column(Text, nullable=False)
    webhook_url = Column(Text, nullable=False)
    webhook_token = Column(Text, nullable=True)
    verify_token = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, server_default="false", default=False)
    last_sync = Column(DateTime(timezone=True), nullable=True)
    sync_status = Column(Text, nullable=False, server_default="pending", default="pending")
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        CheckConstraint(
            _in_check("sync_status", SYNC_STATUSES), name="ck_webhook_configs_sync_status"
        ),
    )


# ---------------------------------------------------------------------
# Webhook log (append-only audit)
# ---------------------------------------------------------------------
class WebhookLog(Base):
    __tablename__ = "webhook_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    webhook_config_id = Column(Uuid, ForeignKey("webhook_configs.id"), nullable=False)
    event_type = Column(Text, nullable=False)
    payload = Column(JSONType, nullable=True)
    status_code = Column(Integer, nullable=True)
    response_time_ms = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint(
            _in_check("event_type", LOG_EVENT_TYPES), name="ck_webhook_logs_event_type"
        ),
    )


# ---------------------------------------------------------------------
# Appointment (call scheduled with a contact)
# ---------------------------------------------------------------------
class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    contact_id = Column(Uuid, ForeignKey("contacts.id"), nullable=False)
    agent_name = Column(Text, nullable=False)
    title = Column(Text, nullable=False)
    scheduled_at = Column(DateTime(timezone=True), nullable=False)
    duration = Column(Integer, nullable=False, server_default="30", default=30)
    notes = Column(Text, nullable=True)
    status = Column(Text, nullable=False, server_default="scheduled", default="scheduled")
    user_id = Column(Uuid, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        CheckConstraint(
            _in_check("status", APPOINTMENT_STATUSES), name="ck_appointments_status"
        ),
        CheckConstraint("duration > 0", name="ck_appointments_duration"),
    )

    contact = relationship("Contact")


# ---------------------------------------------------------------------
# Message template (canned agent replies)
# ---------------------------------------------------------------------
class MessageTemplate(Base):
    __tablename__ = "message_templates"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=True)
    name = Column(Text, nullable=False)
    content = Column(Text, nullable=False)
    category = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, server_default="true", default=True)
    usage_count = Column(Integer, nullable=False, server_default="0", default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        CheckConstraint("usage_count >= 0", name="ck_message_templates_usage_count"),
    )
