"""
File: app/services/templates_service.py
Project: CRM Inbox backend

Purpose:
Canned replies agents pick from when answering in the inbox.

Design rules:
- usage_count is only bumped by MessageService.send_agent_message, in the
  same commit as the agent message
- Inactive templates stay listed for the settings screen but cannot be used
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from app.models import MessageTemplate


class TemplateNotFoundError(LookupError):
    pass


def get_template(db: Session, *, template_id) -> MessageTemplate:
    template = db.get(MessageTemplate, template_id)
    if template is None:
        raise TemplateNotFoundError(f"Template not found: {template_id}")
    return template


def get_usable_template(db: Session, *, template_id) -> MessageTemplate:
    template = get_template(db, template_id=template_id)
    if not template.is_active:
        raise TemplateNotFoundError(f"Template is inactive: {template_id}")
    return template


def list_templates(db: Session, *, active_only: bool = False) -> list[MessageTemplate]:
    query = db.query(MessageTemplate).order_by(MessageTemplate.created_at.desc())
    if active_only:
        query = query.filter(MessageTemplate.is_active.is_(True))
    return query.all()


def create_template(
    db: Session,
    *,
    name: str,
    content: str,
    category: str | None = None,
    is_active: bool = True,
    user_id=None,
) -> MessageTemplate:
    template = MessageTemplate(
        name=name,
        content=content,
        category=category or None,
        is_active=is_active,
        usage_count=0,
        user_id=user_id,
    )
    db.add(template)
    db.commit()
    db.refresh(template)
    return template


def update_template(db: Session, *, template_id, **changes) -> MessageTemplate:
    """
    Applies the given name / content / category / is_active changes.
    None values are ignored.
    """
    template = get_template(db, template_id=template_id)
    for field in ("name", "content", "category", "is_active"):
        value = changes.get(field)
        if value is not None:
            setattr(template, field, value)

    db.commit()
    db.refresh(template)
    return template


def delete_template(db: Session, *, template_id) -> None:
    template = get_template(db, template_id=template_id)
    db.delete(template)
    db.commit()
