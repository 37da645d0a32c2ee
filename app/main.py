"""
File: app/main.py

Project: CRM Inbox backend

Purpose:
Application entry point.
Responsible only for:
- Logging bootstrap
- Creating missing tables on startup
- FastAPI app creation
- Router registration

Design principles:
- No business logic in this file
- No queries beyond table bootstrap
- All inbound WhatsApp processing is delegated to app.webhooks
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.admin import (
    admin_router,
    agenda_router,
    templates_router,
    webhook_settings_router,
)
from app.db import engine, settings
from app.health import router as health_router
from app.models import Base
from app.webhooks import router as webhooks_router

logging.basicConfig(level=settings.log_level)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(title="CRM Inbox", lifespan=lifespan)

# -------------------------------------------------------------------
# Webhook routes (/webhook-whatsapp, /test-webhook-connection)
# -------------------------------------------------------------------
app.include_router(webhooks_router)

# -------------------------------------------------------------------
# Operator endpoints
# -------------------------------------------------------------------
app.include_router(admin_router)
app.include_router(webhook_settings_router)
app.include_router(templates_router)
app.include_router(agenda_router)

# -------------------------------------------------------------------
# Health
# -------------------------------------------------------------------
app.include_router(health_router)
