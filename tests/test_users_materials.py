

async def test_admin_manages_users(client, world):
    created = await client.post("/api/users", headers=world.headers.admin, json={
        "name": "Novo Admin", "email": "novo@tirvu.test", "password": "secret123",
    })
    assert created.status_code == 201
    user = created.json()
    assert user["role"] == "admin"
    assert "passwordHash" not in user

    duplicate = await client.post("/api/users", headers=world.headers.admin, json={
        "name": "Novo Admin", "email": "novo@tirvu.test", "password": "secret123",
    })
    assert duplicate.status_code == 400

    updated = await client.put(f"/api/users/{user['id']}", headers=world.headers.admin, json={
        "role": "consultor", "isActive": False,
    })
    assert updated.json()["role"] == "consultor"
    assert updated.json()["isActive"] is False

    consultors = await client.get("/api/users", params={"role": "consultor"}, headers=world.headers.admin)
    assert "novo@tirvu.test" in {u["email"] for u in consultors.json()}

    deleted = await client.delete(f"/api/users/{user['id']}", headers=world.headers.admin)
    assert deleted.status_code == 200
    assert deleted.json() == {"message": "User deleted successfully"}


async def test_admin_cannot_delete_itself(client, world):
    response = await client.delete(f"/api/users/{world.admin.id}", headers=world.headers.admin)
    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot delete your own account"


async def test_user_admin_is_admin_only(client, world):
    assert (await client.get("/api/users", headers=world.headers.consultor)).status_code == 403
    assert (await client.get("/api/users", headers=world.headers.partner_a)).status_code == 403


async def test_materials(client, world):
    created = await client.post("/api/materials", headers=world.headers.consultor, json={
        "title": "Sales deck", "type": "document", "url": "https://cdn.tirvu.test/deck.pdf",
    })
    assert created.status_code == 201
    material_id = created.json()["id"]

    forbidden = await client.post("/api/materials", headers=world.headers.partner_a, json={
        "title": "Nope", "type": "text",
    })
    assert forbidden.status_code == 403

    listed = await client.get("/api/materials", headers=world.headers.partner_a)
    assert [m["title"] for m in listed.json()] == ["Sales deck"]

    updated = await client.put(f"/api/materials/{material_id}", headers=world.headers.admin, json={
        "description": "2024 edition",
    })
    assert updated.json()["description"] == "2024 edition"
    assert updated.json()["title"] == "Sales deck"

    deleted = await client.delete(f"/api/materials/{material_id}", headers=world.headers.admin)
    assert deleted.json() == {"message": "Material deleted successfully"}
    missing = await client.delete(f"/api/materials/{material_id}", headers=world.headers.admin)
    assert missing.status_code == 404
