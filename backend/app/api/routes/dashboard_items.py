"""Dashboard item endpoints.

Items are stored per chat and keyed by the engine's item id, so saving an
item with a key that already exists overwrites it.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import (
    get_current_tenant_id,
    get_current_user_id,
    get_dashboard_manager,
    get_dashboard_service,
    get_db,
    load_chat,
    require_role,
)
from app.engine.dashboard_manager import DashboardManager
from app.models.audit_log import AuditAction, AuditResourceType
from app.models.dashboard_item import DashboardItem
from app.schemas.dashboard_item import (
    DashboardItemCreate,
    DashboardItemListResponse,
    DashboardItemResponse,
)
from app.services.audit_service import AuditService
from app.services.dashboard_service import DashboardService

router = APIRouter()


async def _get_item(
    service: DashboardService, item_id: UUID, tenant_id: UUID, user_id: UUID, owner: bool = False
) -> DashboardItem:
    item = await service.get_item(tenant_id, item_id)
    if not item:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Dashboard item not found"
        )
    await load_chat(service.db, item.chat_id, tenant_id, user_id, owner=owner)
    return item


@router.get("", response_model=DashboardItemListResponse)
async def list_dashboard_items(
    chat_id: UUID = Query(...),
    tenant_id: UUID = Depends(get_current_tenant_id),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    service: DashboardService = Depends(get_dashboard_service),
):
    await load_chat(db, chat_id, tenant_id, user_id)
    items = await service.list_items(tenant_id, chat_id)
    return DashboardItemListResponse(
        items=[DashboardItemResponse.model_validate(i) for i in items],
        total=len(items),
    )


@router.post("", response_model=DashboardItemResponse, status_code=status.HTTP_201_CREATED)
async def save_dashboard_item(
    body: DashboardItemCreate,
    tenant_id: UUID = Depends(get_current_tenant_id),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    service: DashboardService = Depends(get_dashboard_service),
    _: dict = Depends(require_role("admin", "analyst")),
):
    await load_chat(db, body.chat_id, tenant_id, user_id, owner=True)
    try:
        item = await service.save_item(tenant_id, body.chat_id, body.node_id, body.item)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    audit = AuditService(db)
    await audit.log(
        tenant_id=tenant_id,
        user_id=user_id,
        action=AuditAction.UPDATED,
        resource_type=AuditResourceType.DASHBOARD_ITEM,
        resource_id=item.id,
        metadata={"chat_id": str(body.chat_id), "item_key": item.item_key},
    )

    await db.commit()
    await db.refresh(item)
    return DashboardItemResponse.model_validate(item)


@router.get("/{item_id}", response_model=DashboardItemResponse)
async def get_dashboard_item(
    item_id: UUID,
    tenant_id: UUID = Depends(get_current_tenant_id),
    user_id: UUID = Depends(get_current_user_id),
    service: DashboardService = Depends(get_dashboard_service),
):
    return DashboardItemResponse.model_validate(
        await _get_item(service, item_id, tenant_id, user_id)
    )


@router.get("/{item_id}/export")
async def export_dashboard_item(
    item_id: UUID,
    tenant_id: UUID = Depends(get_current_tenant_id),
    user_id: UUID = Depends(get_current_user_id),
    service: DashboardService = Depends(get_dashboard_service),
    manager: DashboardManager = Depends(get_dashboard_manager),
):
    """Download the stored item as CSV."""
    item = await _get_item(service, item_id, tenant_id, user_id)
    csv_text = manager.export_item_to_csv({"type": item.type.value, "data": item.data})
    filename = f"{item.item_key}.csv".replace('"', "")
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_dashboard_item(
    item_id: UUID,
    tenant_id: UUID = Depends(get_current_tenant_id),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    service: DashboardService = Depends(get_dashboard_service),
    _: dict = Depends(require_role("admin", "analyst")),
):
    item = await _get_item(service, item_id, tenant_id, user_id, owner=True)

    audit = AuditService(db)
    await audit.log(
        tenant_id=tenant_id,
        user_id=user_id,
        action=AuditAction.DELETED,
        resource_type=AuditResourceType.DASHBOARD_ITEM,
        resource_id=item.id,
        metadata={"item_key": item.item_key},
    )

    await service.db.delete(item)
    await db.commit()
