import pytest

from app.models import Message
from app.services.contact_resolver import ContactResolver
from app.services.message_service import MessageService
from app.services.webhook_processor import (
    InboundValidationError,
    WebhookProcessor,
    parse_inbound_payload,
)


@pytest.mark.parametrize(
    "payload",
    [
        None,
        [],
        "5511999999999",
        {"from": "5511999999999"},
        {"message": "Oi"},
        {"from": "", "message": "Oi"},
        {"from": {"id": 1}, "message": "Oi"},
    ],
)
def test_invalid_payloads_are_rejected(payload):
    with pytest.raises(InboundValidationError):
        parse_inbound_payload(payload)


def test_numeric_sender_is_accepted_as_text():
    inbound = parse_inbound_payload({"from": 5511999999999, "message": "Oi"})
    assert inbound.phone == "5511999999999"
    assert inbound.display_name == "5511999999999"


def test_optional_fields():
    inbound = parse_inbound_payload(
        {"from": "1", "fromName": " Ana ", "message": "Oi", "timestamp": 1700000000000.0}
    )
    assert inbound.from_name == "Ana"
    assert inbound.timestamp_ms == 1700000000000

    inbound = parse_inbound_payload({"from": "1", "message": "Oi", "timestamp": "yesterday"})
    assert inbound.timestamp_ms is None


def test_processor_reports_creation_flags(db):
    processor = WebhookProcessor(resolver=ContactResolver(db), message_service=MessageService(db))
    inbound = parse_inbound_payload({"from": "5511999999999", "fromName": "Ana", "message": "Oi"})

    first = processor.process_inbound_message(inbound)
    second = processor.process_inbound_message(inbound)

    assert (first.is_new_contact, first.is_new_conversation) == (True, True)
    assert (second.is_new_contact, second.is_new_conversation) == (False, False)
    assert first.message_id != second.message_id
    assert db.query(Message).count() == 2


def test_whitespace_message_is_kept_verbatim():
    inbound = parse_inbound_payload({"from": "5511999999999", "message": "   "})
    assert inbound.text == "   "
