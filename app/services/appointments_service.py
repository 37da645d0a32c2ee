"""
File: app/services/appointments_service.py
Project: CRM Inbox backend

Purpose:
Calls scheduled with contacts (agenda screen).

Design rules:
- An appointment always points at an existing contact
- New appointments start as `scheduled`
- Appointments are removed with their contact (contacts_service.delete_contact)
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from app.models import APPOINTMENT_STATUSES, Appointment, Contact
from app.services.contacts_service import get_contact

logger = logging.getLogger("appointments_service")

DEFAULT_DURATION_MINUTES = 30


class AppointmentNotFoundError(LookupError):
    pass


def get_appointment(db: Session, *, appointment_id) -> Appointment:
    appointment = db.get(Appointment, appointment_id)
    if appointment is None:
        raise AppointmentNotFoundError(f"Appointment not found: {appointment_id}")
    return appointment


def list_appointments(
    db: Session,
    *,
    starts_after: datetime | None = None,
    starts_before: datetime | None = None,
) -> list[dict]:
    """
    Agenda listing, soonest first, each row joined with the contact's name
    and phone.
    """
    query = (
        db.query(Appointment, Contact.name, Contact.phone)
        .join(Contact, Contact.id == Appointment.contact_id)
        .order_by(Appointment.scheduled_at.asc())
    )
    if starts_after is not None:
        query = query.filter(Appointment.scheduled_at >= starts_after)
    if starts_before is not None:
        query = query.filter(Appointment.scheduled_at < starts_before)

    return [
        {
            "id": a.id,
            "contact_id": a.contact_id,
            "contact": {"name": name, "phone": phone},
            "agent_name": a.agent_name,
            "title": a.title,
            "scheduled_at": a.scheduled_at,
            "duration": a.duration,
            "notes": a.notes,
            "status": a.status,
        }
        for a, name, phone in query.all()
    ]


def create_appointment(
    db: Session,
    *,
    contact_id,
    agent_name: str,
    title: str,
    scheduled_at: datetime,
    duration: int = DEFAULT_DURATION_MINUTES,
    notes: str | None = None,
    user_id=None,
) -> Appointment:
    get_contact(db, contact_id=contact_id)
    if duration <= 0:
        raise ValueError("Duration must be positive")

    appointment = Appointment(
        contact_id=contact_id,
        agent_name=agent_name,
        title=title,
        scheduled_at=scheduled_at,
        duration=duration,
        notes=notes or None,
        status="scheduled",
        user_id=user_id,
    )
    db.add(appointment)
    db.commit()
    db.refresh(appointment)

    logger.info("Appointment %s scheduled with contact %s", appointment.id, contact_id)
    return appointment


def change_status(db: Session, *, appointment_id, status: str) -> Appointment:
    if status not in APPOINTMENT_STATUSES:
        raise ValueError(f"Unknown appointment status: {status}")

    appointment = get_appointment(db, appointment_id=appointment_id)
    appointment.status = status
    db.commit()
    db.refresh(appointment)
    return appointment


def delete_appointment(db: Session, *, appointment_id) -> None:
    appointment = get_appointment(db, appointment_id=appointment_id)
    db.delete(appointment)
    db.commit()
