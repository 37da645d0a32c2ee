"""
File: app/admin/templates.py

Project: CRM Inbox backend

Purpose:
Reply templates screen.

Endpoints:
- GET    /admin/message-templates
- POST   /admin/message-templates
- PATCH  /admin/message-templates/{template_id}
- DELETE /admin/message-templates/{template_id}

Usage is counted when an agent reply names the template
(POST /admin/conversations/{conversation_id}/messages).
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.db import get_db
from app.models import MessageTemplate
from app.services import templates_service

router = APIRouter(prefix="/admin/message-templates", tags=["admin"])


class TemplateIn(BaseModel):
    name: str = Field(min_length=1)
    content: str = Field(min_length=1)
    category: Optional[str] = None
    is_active: bool = True


class TemplatePatch(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    content: Optional[str] = Field(default=None, min_length=1)
    category: Optional[str] = None
    is_active: Optional[bool] = None


def _template_out(t: MessageTemplate) -> dict:
    return {
        "id": t.id,
        "name": t.name,
        "content": t.content,
        "category": t.category,
        "is_active": t.is_active,
        "usage_count": t.usage_count,
        "created_at": t.created_at,
        "updated_at": t.updated_at,
    }


@router.get("")
def list_templates(active: bool = False, db: Session = Depends(get_db)):
    return [_template_out(t) for t in templates_service.list_templates(db, active_only=active)]


@router.post("", status_code=201)
def create_template(body: TemplateIn, db: Session = Depends(get_db)):
    template = templates_service.create_template(
        db,
        name=body.name.strip(),
        content=body.content,
        category=body.category,
        is_active=body.is_active,
    )
    return _template_out(template)


@router.patch("/{template_id}")
def update_template(
    template_id: UUID,
    body: TemplatePatch,
    db: Session = Depends(get_db),
):
    try:
        template = templates_service.update_template(
            db,
            template_id=template_id,
            name=body.name,
            content=body.content,
            category=body.category,
            is_active=body.is_active,
        )
    except templates_service.TemplateNotFoundError:
        raise HTTPException(status_code=404, detail="Template not found")
    return _template_out(template)


@router.delete("/{template_id}", status_code=204)
def delete_template(template_id: UUID, db: Session = Depends(get_db)):
    try:
        templates_service.delete_template(db, template_id=template_id)
    except templates_service.TemplateNotFoundError:
        raise HTTPException(status_code=404, detail="Template not found")
