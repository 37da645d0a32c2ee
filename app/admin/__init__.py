"""
File: app/admin/__init__.py

Project: CRM Inbox backend

Purpose:
Admin package: operator endpoints for contacts, inbox, maintenance, the
webhook configuration screens, reply templates and the agenda.

Design rules:
- Routes are thin; writes go through app.services
"""

from .routes import router as admin_router
from .webhook_settings import router as webhook_settings_router
from .templates import router as templates_router
from .agenda import router as agenda_router
