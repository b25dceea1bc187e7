from app.database import async_session_factory
from app.models.message import Message
from app.realtime.manager import manager


async def _message(sender, receiver, content, read=False):
    async with async_session_factory() as db:
        db.add(Message(sender_id=sender.id, receiver_id=receiver.id, content=content, read=read))
        await db.commit()


async def test_partner_contacts_are_consultant_and_admins(client, world):
    response = await client.get("/api/chat/contacts", headers=world.headers.partner_a)
    assert response.status_code == 200
    assert {c["name"] for c in response.json()} == {"Carla Consultora", "Ada Admin"}


async def test_consultor_contacts_are_own_partners_and_admins(client, world):
    response = await client.get("/api/chat/contacts", headers=world.headers.consultor)
    assert {c["name"] for c in response.json()} == {"Paula Parceira", "Ada Admin"}


async def test_admin_contacts_are_everyone_else(client, world):
    response = await client.get("/api/chat/contacts", headers=world.headers.admin)
    names = {c["name"] for c in response.json()}
    assert names == {"Carla Consultora", "Otto Consultor", "Paula Parceira", "Bruno Parceiro"}


async def test_contacts_carry_unread_count_last_message_and_presence(client, world):
    await _message(world.consultor, world.user_a, "Hi Paula")
    await _message(world.consultor, world.user_a, "Any news?")
    manager.presence.connect(world.consultor.id, "test-connection")

    response = await client.get("/api/chat/contacts", headers=world.headers.partner_a)
    contacts = response.json()
    # Most recent conversation first
    assert contacts[0]["name"] == "Carla Consultora"
    assert contacts[0]["unreadCount"] == 2
    assert contacts[0]["lastMessage"] == "Any news?"
    assert contacts[0]["online"] is True
    assert contacts[1]["online"] is False

    online = await client.get("/api/chat/online", headers=world.headers.partner_a)
    assert online.json()["userIds"] == [str(world.consultor.id)]


async def test_reading_conversation_marks_incoming_as_read(client, world):
    await _message(world.consultor, world.user_a, "Hi Paula")
    await _message(world.user_a, world.consultor, "Hello!")

    response = await client.get(f"/api/chat/messages/{world.consultor.id}", headers=world.headers.partner_a)
    assert [m["content"] for m in response.json()] == ["Hi Paula", "Hello!"]

    contacts = await client.get("/api/chat/contacts", headers=world.headers.partner_a)
    carla = next(c for c in contacts.json() if c["name"] == "Carla Consultora")
    assert carla["unreadCount"] == 0

    # Only the reader's incoming messages are marked
    other_side = await client.get("/api/chat/contacts", headers=world.headers.consultor)
    paula = next(c for c in other_side.json() if c["name"] == "Paula Parceira")
    assert paula["unreadCount"] == 1
