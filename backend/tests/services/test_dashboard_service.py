"""Dashboard item compaction and upsert."""

import json
import uuid

import pytest
from sqlalchemy import func, select

from app.models.chat import Chat
from app.engine.dashboard_manager import DashboardManager
from app.models.dashboard_item import DashboardItem, DashboardItemType
from app.services.dashboard_service import TITLE_MAX_LENGTH, DashboardService, compact_item_data


def _table_item(key: str = "n1-port-0", rows: int = 8) -> dict:
    return {
        "id": key,
        "type": "table",
        "title": "Sorted Output",
        "columns": [{"name": "v", "type": "number"}],
        "rows": [{"v": i} for i in range(rows)],
        "statistics": [{"column": "v", "min": 0}],
        "metadata": {"totalRows": rows},
    }


class TestCompactItemData:
    def test_table_keeps_preview_rows(self):
        data = compact_item_data(_table_item(), preview_rows=3)
        assert data["rows"] == [{"v": 0}, {"v": 1}, {"v": 2}]
        assert data["totalRows"] == 8
        assert data["statistics"] == [{"column": "v", "min": 0}]

    def test_table_default_preview_from_settings(self):
        assert len(compact_item_data(_table_item())["rows"]) == 5

    def test_chart_series_become_snapshot(self):
        item = {
            "type": "chart",
            "chartType": "bar",
            "config": {"title": "Sales"},
            "data": [{"city": "a", "sales": 1}],
            "metadata": {"totalRows": 1},
        }
        data = compact_item_data(item)
        assert data["chartType"] == "bar"
        assert json.loads(data["dataSnapshot"]) == [{"city": "a", "sales": 1}]
        assert "data" not in data

    def test_statistics(self):
        data = compact_item_data({"type": "statistics", "summary": "ok"})
        assert data == {"summary": "ok", "metrics": {}, "details": {}}

    def test_unknown_type(self):
        with pytest.raises(ValueError, match="Unsupported dashboard item type: gauge"):
            compact_item_data({"type": "gauge"})


@pytest.fixture
async def chat(db_session, seed_user_a, tenant_id, user_id):
    chat = Chat(tenant_id=tenant_id, user_id=user_id, title="Dashboard")
    db_session.add(chat)
    await db_session.commit()
    return chat


async def test_save_item_upserts_on_item_key(db_session, chat, tenant_id):
    service = DashboardService(db_session)

    first = await service.save_item(tenant_id, chat.id, "n1", _table_item(rows=8))
    second = await service.save_item(tenant_id, chat.id, "n1", _table_item(rows=2))
    await db_session.commit()

    assert first.id == second.id
    count = (await db_session.execute(select(func.count(DashboardItem.id)))).scalar_one()
    assert count == 1
    assert second.type == DashboardItemType.TABLE
    assert second.data["totalRows"] == 2
    assert second.title == "Sorted Output"


async def test_items_are_scoped_to_tenant(db_session, chat, tenant_id):
    service = DashboardService(db_session)
    item = await service.save_item(tenant_id, chat.id, "n1", _table_item())
    await db_session.commit()

    assert [i.item_key for i in await service.list_items(tenant_id, chat.id)] == ["n1-port-0"]
    assert await service.list_items(uuid.uuid4(), chat.id) == []
    assert await service.get_item(tenant_id, item.id) is not None
    assert await service.get_item(uuid.uuid4(), item.id) is None


async def test_save_item_requires_key(db_session, chat, tenant_id):
    service = DashboardService(db_session)
    with pytest.raises(ValueError, match="missing an id"):
        await service.save_item(tenant_id, chat.id, "n1", {"type": "table"})


async def test_long_titles_are_truncated(db_session, chat, tenant_id):
    service = DashboardService(db_session)
    item = {**_table_item(), "title": "x" * 300}

    row = await service.save_item(tenant_id, chat.id, "n1", item)
    await db_session.commit()

    assert len(row.title) == TITLE_MAX_LENGTH


async def test_rejected_item_does_not_block_later_items(db_session, chat, tenant_id, tenant_id_b):
    service = DashboardService(db_session)
    # Same (chat_id, item_key) under another tenant makes the first insert violate the unique key
    await service.save_item(tenant_id_b, chat.id, "n1", _table_item("n1-port-0"))
    await db_session.commit()

    result = await DashboardManager().persist_items(
        service,
        tenant_id,
        chat.id,
        "n1",
        [_table_item("n1-port-0"), _table_item("n1-port-1")],
    )
    await db_session.commit()

    assert result["saved_count"] == 1
    assert result["success"] is False
    assert len(result["errors"]) == 1
    assert result["errors"][0].startswith("n1-port-0:")
    assert [i.item_key for i in await service.list_items(tenant_id, chat.id)] == ["n1-port-1"]
