"""Chat endpoint tests: visibility, messages and the chat's workflow."""

from uuid import UUID

from httpx import AsyncClient

from app.models.user import User


async def _seed_user(db_session, tenant: UUID, user: UUID, email: str) -> None:
    db_session.add(
        User(id=user, tenant_id=tenant, email=email, hashed_password="x", full_name=email)
    )
    await db_session.commit()


async def test_create_and_get_chat(client: AsyncClient, mock_auth, seed_user_a, user_id: UUID):
    response = await client.post("/api/v1/chats", json={"title": "Quarterly numbers"})
    assert response.status_code == 201
    chat = response.json()
    assert chat["visibility"] == "private"
    assert chat["user_id"] == str(user_id)

    fetched = await client.get(f"/api/v1/chats/{chat['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["title"] == "Quarterly numbers"


async def test_create_chat_validates_title(client: AsyncClient, mock_auth, seed_user_a):
    assert (await client.post("/api/v1/chats", json={"title": ""})).status_code == 422
    assert (
        await client.post("/api/v1/chats", json={"title": "x", "visibility": "team"})
    ).status_code == 422


async def test_list_shows_own_and_public_chats(
    client: AsyncClient,
    db_session,
    mock_auth,
    seed_user_a,
    switch_user,
    tenant_id: UUID,
    user_id: UUID,
    user_id_a2: UUID,
):
    await _seed_user(db_session, tenant_id, user_id_a2, "a2@test.com")
    await client.post("/api/v1/chats", json={"title": "Mine"})

    switch_user(tenant_id, user_id_a2)
    await client.post("/api/v1/chats", json={"title": "Their private"})
    await client.post("/api/v1/chats", json={"title": "Their public", "visibility": "public"})

    switch_user(tenant_id, user_id)
    listed = (await client.get("/api/v1/chats")).json()
    assert listed["total"] == 2
    assert {c["title"] for c in listed["items"]} == {"Mine", "Their public"}


async def test_private_chat_of_other_user_is_forbidden(
    client: AsyncClient,
    mock_auth,
    seed_user_a,
    switch_user,
    tenant_id: UUID,
    user_id_a2: UUID,
):
    chat_id = (await client.post("/api/v1/chats", json={"title": "Secret"})).json()["id"]

    switch_user(tenant_id, user_id_a2)
    assert (await client.get(f"/api/v1/chats/{chat_id}")).status_code == 403
    assert (await client.get(f"/api/v1/chats/{chat_id}/messages")).status_code == 403


async def test_public_chat_is_read_only_for_others(
    client: AsyncClient,
    mock_auth,
    seed_user_a,
    switch_user,
    tenant_id: UUID,
    user_id_a2: UUID,
):
    chat_id = (
        await client.post("/api/v1/chats", json={"title": "Shared", "visibility": "public"})
    ).json()["id"]

    switch_user(tenant_id, user_id_a2)
    assert (await client.get(f"/api/v1/chats/{chat_id}")).status_code == 200
    append = await client.post(
        f"/api/v1/chats/{chat_id}/messages", json={"role": "user", "parts": []}
    )
    assert append.status_code == 403
    assert (await client.delete(f"/api/v1/chats/{chat_id}")).status_code == 403


async def test_chat_of_other_tenant_is_not_found(
    client: AsyncClient,
    mock_auth,
    seed_user_a,
    seed_user_b,
    switch_user,
    tenant_id_b: UUID,
    user_id_b: UUID,
):
    chat_id = (
        await client.post("/api/v1/chats", json={"title": "A's", "visibility": "public"})
    ).json()["id"]

    switch_user(tenant_id_b, user_id_b)
    assert (await client.get(f"/api/v1/chats/{chat_id}")).status_code == 404


async def test_messages_keep_payload(client: AsyncClient, mock_auth, seed_user_a):
    chat_id = (await client.post("/api/v1/chats", json={"title": "Talk"})).json()["id"]
    parts = [{"type": "text", "text": "Load sales.csv"}]

    first = await client.post(
        f"/api/v1/chats/{chat_id}/messages", json={"role": "user", "parts": parts}
    )
    assert first.status_code == 201
    await client.post(
        f"/api/v1/chats/{chat_id}/messages",
        json={"role": "assistant", "parts": [{"type": "text", "text": "Done"}]},
    )

    messages = (await client.get(f"/api/v1/chats/{chat_id}/messages")).json()
    assert sorted(m["role"] for m in messages) == ["assistant", "user"]
    user_message = next(m for m in messages if m["role"] == "user")
    assert user_message["parts"] == parts
    assert user_message["attachments"] == []


async def test_message_role_is_validated(client: AsyncClient, mock_auth, seed_user_a):
    chat_id = (await client.post("/api/v1/chats", json={"title": "Talk"})).json()["id"]
    response = await client.post(
        f"/api/v1/chats/{chat_id}/messages", json={"role": "robot", "parts": []}
    )
    assert response.status_code == 422


async def test_chat_workflow_upsert(client: AsyncClient, mock_auth, seed_user_a):
    chat_id = (await client.post("/api/v1/chats", json={"title": "Sales"})).json()["id"]
    url = f"/api/v1/chats/{chat_id}/workflow"

    assert (await client.get(url)).status_code == 404

    graph = {"nodes": [{"id": "n1", "data": {"factoryId": "table-creator"}}], "edges": []}
    created = await client.put(url, json={"graph_json": graph})
    assert created.status_code == 200
    workflow = created.json()
    assert workflow["name"] == "Sales Workflow"
    assert workflow["chat_id"] == chat_id

    replaced = await client.put(url, json={"graph_json": {"nodes": [], "edges": []}})
    assert replaced.json()["id"] == workflow["id"]
    assert replaced.json()["graph_json"] == {"nodes": [], "edges": []}
    assert replaced.json()["name"] == "Sales Workflow"

    fetched = await client.get(url)
    assert fetched.json()["id"] == workflow["id"]


async def test_delete_chat(client: AsyncClient, mock_auth, seed_user_a):
    chat_id = (await client.post("/api/v1/chats", json={"title": "Temp"})).json()["id"]
    assert (await client.delete(f"/api/v1/chats/{chat_id}")).status_code == 204
    assert (await client.get(f"/api/v1/chats/{chat_id}")).status_code == 404
