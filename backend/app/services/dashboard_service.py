"""Persistence for dashboard items produced by workflow executions.

Engine items carry full node output. Before they are stored the payload is
compacted per item type so that a chat's dashboard stays small:

- table: column specs, the first few rows, total row count, column statistics
- statistics: summary, metrics and details
- chart: chart type, config, the series serialized to a JSON snapshot, metadata
"""

import json
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.metrics import dashboard_items_persisted_total
from app.models.dashboard_item import DashboardItem, DashboardItemType

logger = structlog.stdlib.get_logger(__name__)

TITLE_MAX_LENGTH = 255


def compact_item_data(item: dict, preview_rows: int | None = None) -> dict:
    """Storage payload for an engine dashboard item; raises ValueError for unknown types."""
    item_type = item.get("type")
    metadata = item.get("metadata") or {}

    if item_type == DashboardItemType.TABLE:
        rows = item.get("rows") or []
        limit = settings.engine.dashboard_preview_rows if preview_rows is None else preview_rows
        return {
            "columns": item.get("columns") or [],
            "rows": rows[:limit],
            "totalRows": metadata.get("totalRows", len(rows)),
            "statistics": item.get("statistics") or [],
        }

    if item_type == DashboardItemType.STATISTICS:
        return {
            "summary": item.get("summary") or "",
            "metrics": item.get("metrics") or {},
            "details": item.get("details") or {},
        }

    if item_type == DashboardItemType.CHART:
        return {
            "chartType": item.get("chartType"),
            "config": item.get("config") or {},
            "dataSnapshot": json.dumps(item.get("data") or [], default=str),
            "metadata": metadata,
        }

    raise ValueError(f"Unsupported dashboard item type: {item_type}")


class DashboardService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def save_item(
        self,
        tenant_id: UUID,
        chat_id: UUID,
        node_id: str,
        item: dict,
    ) -> DashboardItem:
        """Insert or overwrite the item stored under (chat_id, item["id"])."""
        item_key = item.get("id")
        if not item_key:
            raise ValueError("Dashboard item is missing an id")
        data = compact_item_data(item)
        item_type = DashboardItemType(item["type"])

        result = await self.db.execute(
            select(DashboardItem).where(
                DashboardItem.tenant_id == tenant_id,
                DashboardItem.chat_id == chat_id,
                DashboardItem.item_key == item_key,
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            row = DashboardItem(
                tenant_id=tenant_id,
                chat_id=chat_id,
                item_key=item_key,
            )
            self.db.add(row)

        row.node_id = node_id
        row.type = item_type
        row.title = (item.get("title") or item_key)[:TITLE_MAX_LENGTH]
        row.description = item.get("description")
        row.data = data
        await self.db.flush()

        dashboard_items_persisted_total.labels(item_type=item_type.value).inc()
        logger.debug("dashboard_item_saved", chat_id=str(chat_id), item_key=item_key)
        return row

    async def list_items(self, tenant_id: UUID, chat_id: UUID) -> list[DashboardItem]:
        result = await self.db.execute(
            select(DashboardItem)
            .where(DashboardItem.tenant_id == tenant_id, DashboardItem.chat_id == chat_id)
            .order_by(DashboardItem.created_at, DashboardItem.item_key)
        )
        return list(result.scalars().all())

    async def get_item(self, tenant_id: UUID, item_id: UUID) -> DashboardItem | None:
        result = await self.db.execute(
            select(DashboardItem).where(
                DashboardItem.id == item_id,
                DashboardItem.tenant_id == tenant_id,
            )
        )
        return result.scalar_one_or_none()
