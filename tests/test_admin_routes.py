import uuid

from sqlalchemy import update

from app.models import Contact, ContactTag, Conversation, Message, WebhookConfig


def _ingest(client, phone="5511999999999", text="Oi", name="Ana"):
    return client.post("/webhook-whatsapp", json={"from": phone, "fromName": name, "message": text}).json()


# -------------------------------------------------------------------
# Contacts
# -------------------------------------------------------------------
def test_create_and_list_contacts(client):
    r = client.post("/admin/contacts", json={"name": "Bia", "phone": "5521000000000", "stage": "qualified"})
    assert r.status_code == 201
    assert r.json()["stage"] == "qualified"

    _ingest(client)

    rows = client.get("/admin/contacts").json()
    assert {row["phone"] for row in rows} == {"5521000000000", "5511999999999"}

    qualified = client.get("/admin/contacts", params={"stage": "qualified"}).json()
    assert [row["name"] for row in qualified] == ["Bia"]


def test_create_contact_duplicate_phone_conflicts(client):
    _ingest(client)
    r = client.post("/admin/contacts", json={"name": "Other", "phone": "5511999999999"})
    assert r.status_code == 409


def test_change_stage(client):
    contact_id = _ingest(client)["contact_id"]

    r = client.patch(f"/admin/contacts/{contact_id}/stage", json={"stage": "client"})

    assert r.status_code == 200
    assert r.json()["stage"] == "client"


def test_change_stage_validation(client):
    contact_id = _ingest(client)["contact_id"]

    assert client.patch(f"/admin/contacts/{contact_id}/stage", json={"stage": "won"}).status_code == 422
    assert client.patch(f"/admin/contacts/{uuid.uuid4()}/stage", json={"stage": "client"}).status_code == 404


def test_delete_contact_cascades(client, fresh_session):
    first = _ingest(client, text="um")
    _ingest(client, text="dois")
    _ingest(client, text="três")
    tag_id = client.post("/admin/tags", json={"name": "vip"}).json()["id"]
    assert client.post(f"/admin/contacts/{first['contact_id']}/tags", json={"tag_id": tag_id}).status_code == 201

    r = client.delete(f"/admin/contacts/{first['contact_id']}")

    assert r.status_code == 204
    s = fresh_session()
    assert s.query(Message).count() == 0
    assert s.query(Conversation).count() == 0
    assert s.query(ContactTag).count() == 0
    assert s.query(Contact).count() == 0

    assert client.delete(f"/admin/contacts/{first['contact_id']}").status_code == 404


def test_tag_contact_unknown_tag(client):
    contact_id = _ingest(client)["contact_id"]
    r = client.post(f"/admin/contacts/{contact_id}/tags", json={"tag_id": str(uuid.uuid4())})
    assert r.status_code == 404


# -------------------------------------------------------------------
# Inbox
# -------------------------------------------------------------------
def test_inbox_flow(client):
    ids = _ingest(client)
    _ingest(client, text="Tudo bem?")
    conversation_id = ids["conversation_id"]

    listed = client.get("/admin/conversations").json()
    assert len(listed) == 1
    assert listed[0]["contact"]["name"] == "Ana"
    assert listed[0]["message_count"] == 2
    assert listed[0]["unread_count"] == 2

    r = client.post(
        f"/admin/conversations/{conversation_id}/messages",
        json={"content": "Olá, Ana!", "sender_name": "Agent Smith"},
    )
    assert r.status_code == 201
    assert r.json()["sender_type"] == "agent"
    assert r.json()["read"] is True

    messages = client.get(f"/admin/conversations/{conversation_id}/messages").json()
    assert [m["content"] for m in messages] == ["Oi", "Tudo bem?", "Olá, Ana!"]

    r = client.post(f"/admin/conversations/{conversation_id}/read")
    assert r.json()["marked_read"] == 2

    listed = client.get("/admin/conversations").json()
    assert listed[0]["message_count"] == 3
    assert listed[0]["unread_count"] == 0


def test_inbox_unknown_conversation(client):
    missing = uuid.uuid4()
    assert client.get(f"/admin/conversations/{missing}/messages").status_code == 404
    assert client.post(f"/admin/conversations/{missing}/read").status_code == 404
    assert client.post(f"/admin/conversations/{missing}/messages", json={"content": "x"}).status_code == 404


def test_conversation_stage_filter(client):
    ids = _ingest(client)
    _ingest(client, phone="5521000000000", name="Bia")
    client.patch(f"/admin/contacts/{ids['contact_id']}/stage", json={"stage": "negotiation"})

    listed = client.get("/admin/conversations", params={"stage": "negotiation"}).json()
    assert [c["id"] for c in listed] == [ids["conversation_id"]]


# -------------------------------------------------------------------
# Maintenance
# -------------------------------------------------------------------
def test_reconcile_message_counts(client, fresh_session):
    ids = _ingest(client)
    _ingest(client, text="again")
    conversation_id = uuid.UUID(ids["conversation_id"])

    s = fresh_session()
    s.execute(update(Conversation).where(Conversation.id == conversation_id).values(message_count=7))
    s.commit()

    report = client.post("/admin/maintenance/reconcile-message-counts").json()

    assert report["checked"] == 1
    assert report["corrected"] == [
        {"conversation_id": str(conversation_id), "stored": 7, "actual": 2}
    ]
    s.expire_all()
    assert s.get(Conversation, conversation_id).message_count == 2

    again = client.post("/admin/maintenance/reconcile-message-counts").json()
    assert again["corrected"] == []


# -------------------------------------------------------------------
# Webhook configuration
# -------------------------------------------------------------------
def test_webhook_config_save_toggle_and_logs(client, fresh_session):
    assert client.get("/admin/webhook-config").json() is None
    assert client.post("/admin/webhook-config/active", json={"is_active": True}).status_code == 404

    r = client.put(
        "/admin/webhook-config",
        json={"webhook_url": "https://hook.test/in", "verify_token": "secret"},
    )
    assert r.status_code == 200
    saved = r.json()
    assert saved["provider"] == "whatsapp"
    assert saved["is_active"] is False
    assert saved["sync_status"] == "pending"
    assert saved["has_verify_token"] is True
    assert "verify_token" not in saved

    r = client.put("/admin/webhook-config", json={"webhook_url": "https://hook.test/v2"})
    assert r.json()["id"] == saved["id"]
    assert r.json()["webhook_url"] == "https://hook.test/v2"
    assert fresh_session().query(WebhookConfig).count() == 1

    r = client.post("/admin/webhook-config/active", json={"is_active": True})
    assert r.json()["is_active"] is True

    _ingest(client)
    client.post("/webhook-whatsapp", json={"from": "5511999999999"})  # rejected, not audited

    logs = client.get("/admin/webhook-logs").json()
    assert len(logs) == 1
    assert logs[0]["event_type"] == "message_received"

    config = client.get("/admin/webhook-config").json()
    assert config["sync_status"] == "success"
    assert config["last_sync"] is not None


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_webhook_health_follows_last_delivery(client, active_config):
    assert client.get("/health/webhook").json()["webhook"] == "pending"

    _ingest(client)

    body = client.get("/health/webhook").json()
    assert body["webhook"] == "success"
    assert body["provider"] == "whatsapp"
    assert body["last_sync"] is not None


def test_webhook_health_without_config(client):
    assert client.get("/health/webhook").json() == {"webhook": "not_configured", "provider": "whatsapp"}
