"""
File: app/admin/agenda.py

Project: CRM Inbox backend

Purpose:
Agenda screen: calls scheduled with contacts.

Endpoints:
- GET    /admin/appointments
- POST   /admin/appointments
- PATCH  /admin/appointments/{appointment_id}/status
- DELETE /admin/appointments/{appointment_id}
"""

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.db import get_db
from app.models import Appointment
from app.services import appointments_service
from app.services.contacts_service import ContactNotFoundError

router = APIRouter(prefix="/admin/appointments", tags=["admin"])

Status = Literal["scheduled", "completed", "cancelled", "rescheduled"]


class AppointmentIn(BaseModel):
    contact_id: UUID
    agent_name: str = Field(min_length=1)
    title: str = Field(min_length=1)
    scheduled_at: datetime
    duration: int = Field(default=appointments_service.DEFAULT_DURATION_MINUTES, gt=0)
    notes: Optional[str] = None


class StatusIn(BaseModel):
    status: Status


def _appointment_out(a: Appointment) -> dict:
    return {
        "id": a.id,
        "contact_id": a.contact_id,
        "agent_name": a.agent_name,
        "title": a.title,
        "scheduled_at": a.scheduled_at,
        "duration": a.duration,
        "notes": a.notes,
        "status": a.status,
    }


@router.get("")
def list_appointments(
    starts_after: Optional[datetime] = None,
    starts_before: Optional[datetime] = None,
    db: Session = Depends(get_db),
):
    return appointments_service.list_appointments(
        db, starts_after=starts_after, starts_before=starts_before
    )


@router.post("", status_code=201)
def create_appointment(body: AppointmentIn, db: Session = Depends(get_db)):
    try:
        appointment = appointments_service.create_appointment(
            db,
            contact_id=body.contact_id,
            agent_name=body.agent_name.strip(),
            title=body.title.strip(),
            scheduled_at=body.scheduled_at,
            duration=body.duration,
            notes=body.notes,
        )
    except ContactNotFoundError:
        raise HTTPException(status_code=404, detail="Contact not found")
    return _appointment_out(appointment)


@router.patch("/{appointment_id}/status")
def change_appointment_status(
    appointment_id: UUID,
    body: StatusIn,
    db: Session = Depends(get_db),
):
    try:
        appointment = appointments_service.change_status(
            db, appointment_id=appointment_id, status=body.status
        )
    except appointments_service.AppointmentNotFoundError:
        raise HTTPException(status_code=404, detail="Appointment not found")
    return _appointment_out(appointment)


@router.delete("/{appointment_id}", status_code=204)
def delete_appointment(appointment_id: UUID, db: Session = Depends(get_db)):
    try:
        appointments_service.delete_appointment(db, appointment_id=appointment_id)
    except appointments_service.AppointmentNotFoundError:
        raise HTTPException(status_code=404, detail="Appointment not found")
