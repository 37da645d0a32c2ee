"""
File: app/webhooks.py
Path: app/webhooks.py

Project: CRM Inbox backend

Purpose:
Inbound WhatsApp webhook and the operator connection test.

Endpoints:
- POST    /webhook-whatsapp          inbound message ingestion
- GET     /webhook-whatsapp          provider verification handshake
- POST    /test-webhook-connection   connectivity probe
- OPTIONS on both paths              CORS pre-flight

Notes:
- Validation failures are answered before any DB access and are not audited
- Store failures roll back, are audited as `error` events and answered with
  500 so the provider retries
- Audit problems never change the response
- Store work runs in the threadpool; only the body read is awaited
"""

import logging
import time

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.db import get_db, settings
from app.outbound.connection_tester import ConnectionTester
from app.services.contact_resolver import ContactResolver
from app.services.delivery_auditor import ActiveWebhookConfigProvider, DeliveryAuditor
from app.services.message_service import MessageService
from app.services.webhook_processor import (
    InboundValidationError,
    WebhookProcessor,
    parse_inbound_payload,
)

router = APIRouter(tags=["webhooks"])
logger = logging.getLogger("webhooks")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}


def get_config_provider() -> ActiveWebhookConfigProvider:
    return ActiveWebhookConfigProvider(provider=settings.webhook_provider)


# Reused across requests (one requests.Session)
_connection_tester: ConnectionTester | None = None


def get_connection_tester() -> ConnectionTester:
    global _connection_tester
    if _connection_tester is None:
        _connection_tester = ConnectionTester(timeout=settings.connection_test_timeout)
    return _connection_tester


def _json(body: dict, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    return JSONResponse(content=body, status_code=status_code, headers=CORS_HEADERS)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


async def _read_json(request: Request):
    try:
        return await request.json()
    except ValueError:
        return None


# -------------------------------------------------------------------
# Pre-flight
# -------------------------------------------------------------------
@router.options("/webhook-whatsapp")
@router.options("/test-webhook-connection")
def preflight():
    return Response(status_code=status.HTTP_200_OK, headers=CORS_HEADERS)


# -------------------------------------------------------------------
# Provider verification (GET)
# -------------------------------------------------------------------
@router.get("/webhook-whatsapp", response_class=PlainTextResponse)
def verify_webhook(
    request: Request,
    db: Session = Depends(get_db),
    config_provider: ActiveWebhookConfigProvider = Depends(get_config_provider),
):
    params = request.query_params

    mode = params.get("hub.mode")
    token = params.get("hub.verify_token")
    challenge = params.get("hub.challenge")

    config = config_provider.get_active(db)
    expected = config.verify_token if config else None

    if mode == "subscribe" and expected and token == expected and challenge:
        return PlainTextResponse(challenge, headers=CORS_HEADERS)

    logger.warning("Webhook verification failed (mode=%s)", mode)
    return PlainTextResponse(
        "Webhook verification failed",
        status_code=status.HTTP_403_FORBIDDEN,
        headers=CORS_HEADERS,
    )


# -------------------------------------------------------------------
# Inbound message (POST)
# -------------------------------------------------------------------
@router.post("/webhook-whatsapp")
async def whatsapp_webhook(
    request: Request,
    db: Session = Depends(get_db),
    config_provider: ActiveWebhookConfigProvider = Depends(get_config_provider),
):
    started = time.monotonic()
    payload = await _read_json(request)
    logger.info("Webhook received: %s", payload)

    return await run_in_threadpool(_ingest, payload, started, db, config_provider)


def _ingest(
    payload,
    started: float,
    db: Session,
    config_provider: ActiveWebhookConfigProvider,
) -> JSONResponse:
    # ---- Parse + validate (no DB access) ----
    try:
        inbound = parse_inbound_payload(payload)
    except InboundValidationError as exc:
        logger.warning("Webhook rejected: %s", exc)
        return _json(
            {"success": False, "error": str(exc)},
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    auditor = DeliveryAuditor(config_provider=config_provider, db=db)
    processor = WebhookProcessor(
        resolver=ContactResolver(db),
        message_service=MessageService(db),
    )

    # ---- Resolve + append ----
    try:
        result = processor.process_inbound_message(inbound)
    except Exception as exc:
        db.rollback()
        logger.exception("Webhook error")
        error_message = str(exc) or "Unknown error"
        auditor.record_failure(
            response_time_ms=_elapsed_ms(started),
            error_message=error_message,
        )
        return _json(
            {"success": False, "error": error_message},
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    # ---- Audit (best-effort) ----
    auditor.record_success(
        response_time_ms=_elapsed_ms(started),
        payload=payload,
    )

    logger.info("Message processed successfully")
    return _json(
        {
            "success": True,
            "message": "Message received and processed",
            "contact_id": str(result.contact_id),
            "conversation_id": str(result.conversation_id),
        }
    )


# -------------------------------------------------------------------
# Connection test (POST)
# -------------------------------------------------------------------
@router.post("/test-webhook-connection")
async def test_webhook_connection(
    request: Request,
    tester: ConnectionTester = Depends(get_connection_tester),
):
    body = await _read_json(request)
    webhook_url = body.get("webhook_url") if isinstance(body, dict) else None

    if not isinstance(webhook_url, str) or not webhook_url.strip():
        return _json(
            {"success": False, "message": "webhook_url is required"},
            status.HTTP_400_BAD_REQUEST,
        )

    result = await run_in_threadpool(tester.test, webhook_url.strip())
    return _json(result.to_dict())
