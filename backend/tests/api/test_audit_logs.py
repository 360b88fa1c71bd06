"""Audit trail endpoints."""

import uuid

from httpx import AsyncClient


async def _create_workflow(client: AsyncClient) -> dict:
    response = await client.post(
        "/api/v1/workflows", json={"name": "Audited", "graph_json": {"nodes": [], "edges": []}}
    )
    return response.json()


async def test_writes_are_audited(client: AsyncClient, mock_auth, seed_user_a, user_id):
    workflow = await _create_workflow(client)
    await client.patch(f"/api/v1/workflows/{workflow['id']}", json={"name": "Renamed"})

    response = await client.get("/api/v1/audit-logs", params={"resource_type": "workflow"})
    assert response.status_code == 200
    body = response.json()
    assert sorted(e["action"] for e in body["items"]) == ["created", "updated"]
    assert all(e["user_id"] == str(user_id) for e in body["items"])


async def test_resource_history(client: AsyncClient, mock_auth, seed_user_a):
    first = await _create_workflow(client)
    await _create_workflow(client)

    history = (await client.get(f"/api/v1/audit-logs/workflow/{first['id']}")).json()
    assert history["total"] == 1
    assert history["items"][0]["metadata"]["name"] == "Audited"


async def test_filters(client: AsyncClient, mock_auth, seed_user_a):
    await _create_workflow(client)

    by_other_user = await client.get(
        "/api/v1/audit-logs", params={"user_id": str(uuid.uuid4())}
    )
    assert by_other_user.json()["total"] == 0

    deleted = await client.get("/api/v1/audit-logs", params={"action": "deleted"})
    assert deleted.json()["total"] == 0


async def test_unknown_filter_values_rejected(client: AsyncClient, mock_auth):
    assert (await client.get("/api/v1/audit-logs", params={"action": "revoked"})).status_code == 422
    assert (await client.get("/api/v1/audit-logs/widget/abc")).status_code == 422


async def test_other_tenant_sees_nothing(
    client: AsyncClient, mock_auth, seed_user_a, switch_user, tenant_id_b, user_id_b
):
    await _create_workflow(client)
    switch_user(tenant_id_b, user_id_b)
    assert (await client.get("/api/v1/audit-logs")).json()["total"] == 0
