import uuid

import pytest
from sqlalchemy.exc import SQLAlchemyError

from app.models import Conversation, Message, MessageTemplate
from app.services import templates_service
from app.services.contact_resolver import ContactResolver
from app.services.message_service import MessageService


@pytest.fixture
def conversation_id(db):
    return ContactResolver(db).resolve(phone="5511999999999", display_name="Ana").conversation_id


def test_agent_reply_from_template_bumps_usage(db, conversation_id):
    template = templates_service.create_template(db, name="Saudação", content="Olá! Como posso ajudar?")
    service = MessageService(db)

    service.send_agent_message(conversation_id=conversation_id, content=template.content, template_id=template.id)
    message = service.send_agent_message(
        conversation_id=conversation_id, content="Olá Ana! Como posso ajudar?", template_id=template.id
    )

    db.expire_all()
    assert db.get(MessageTemplate, template.id).usage_count == 2
    assert db.get(Conversation, conversation_id).message_count == 2
    assert message.meta == {"template_id": str(template.id)}


def test_plain_agent_reply_leaves_templates_alone(db, conversation_id):
    template = templates_service.create_template(db, name="Saudação", content="Olá!")

    MessageService(db).send_agent_message(conversation_id=conversation_id, content="Oi")

    db.expire_all()
    assert db.get(MessageTemplate, template.id).usage_count == 0


def test_inactive_or_unknown_template_is_refused_before_writing(db, conversation_id):
    template = templates_service.create_template(db, name="Old", content="...", is_active=False)
    service = MessageService(db)

    for template_id in (template.id, uuid.uuid4()):
        with pytest.raises(templates_service.TemplateNotFoundError):
            service.send_agent_message(conversation_id=conversation_id, content="x", template_id=template_id)

    assert db.query(Message).count() == 0


def test_usage_bump_rolls_back_with_the_message(db, conversation_id, monkeypatch):
    template = templates_service.create_template(db, name="Saudação", content="Olá!")
    real_execute = db.execute

    def execute_failing_on_templates(statement, *args, **kwargs):
        if getattr(statement, "is_update", False) and statement.table.name == "message_templates":
            raise SQLAlchemyError("connection lost")
        return real_execute(statement, *args, **kwargs)

    monkeypatch.setattr(db, "execute", execute_failing_on_templates)

    with pytest.raises(SQLAlchemyError):
        MessageService(db).send_agent_message(
            conversation_id=conversation_id, content="Olá!", template_id=template.id
        )

    monkeypatch.undo()
    db.expire_all()
    assert db.query(Message).count() == 0
    assert db.get(Conversation, conversation_id).message_count == 0
    assert db.get(MessageTemplate, template.id).usage_count == 0


def test_update_ignores_missing_fields(db):
    template = templates_service.create_template(db, name="Saudação", content="Olá!", category="boas-vindas")

    updated = templates_service.update_template(db, template_id=template.id, is_active=False, content=None)

    assert updated.is_active is False
    assert updated.content == "Olá!"
    assert updated.category == "boas-vindas"


# -------------------------------------------------------------------
# HTTP
# -------------------------------------------------------------------
def test_template_routes(client):
    r = client.post("/admin/message-templates", json={"name": "Saudação", "content": "Olá!"})
    assert r.status_code == 201
    template = r.json()
    assert template["usage_count"] == 0
    assert template["is_active"] is True

    client.post("/admin/message-templates", json={"name": "Old", "content": "...", "is_active": False})
    assert len(client.get("/admin/message-templates").json()) == 2
    assert [t["name"] for t in client.get("/admin/message-templates", params={"active": True}).json()] == ["Saudação"]

    r = client.patch(f"/admin/message-templates/{template['id']}", json={"category": "vendas"})
    assert r.json()["category"] == "vendas"

    assert client.delete(f"/admin/message-templates/{template['id']}").status_code == 204
    assert client.delete(f"/admin/message-templates/{template['id']}").status_code == 404
    assert client.patch(f"/admin/message-templates/{uuid.uuid4()}", json={"name": "x"}).status_code == 404


def test_agent_send_with_template_over_http(client):
    ids = client.post("/webhook-whatsapp", json={"from": "5511999999999", "message": "Oi"}).json()
    template = client.post("/admin/message-templates", json={"name": "Saudação", "content": "Olá!"}).json()

    r = client.post(
        f"/admin/conversations/{ids['conversation_id']}/messages",
        json={"content": "Olá!", "template_id": template["id"]},
    )
    assert r.status_code == 201

    listed = client.get("/admin/message-templates").json()
    assert listed[0]["usage_count"] == 1

    r = client.post(
        f"/admin/conversations/{ids['conversation_id']}/messages",
        json={"content": "Olá!", "template_id": str(uuid.uuid4())},
    )
    assert r.status_code == 404
