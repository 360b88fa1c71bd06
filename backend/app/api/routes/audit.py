"""Audit trail endpoints (admin only).

Every write in the API records who did what to which chat, workflow,
dashboard item, report or template. The trail is read-only here.
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_audit_service, get_current_tenant_id, require_role
from app.models.audit_log import AuditAction, AuditLog, AuditResourceType
from app.schemas.audit import AuditLogListResponse, AuditLogResponse
from app.services.audit_service import AuditService

router = APIRouter()


def _to_response(entry: AuditLog) -> AuditLogResponse:
    return AuditLogResponse(
        id=entry.id,
        tenant_id=entry.tenant_id,
        user_id=entry.user_id,
        action=entry.action.value,
        resource_type=entry.resource_type.value,
        resource_id=entry.resource_id,
        metadata=entry.metadata_,
        created_at=entry.created_at,
    )


@router.get("", response_model=AuditLogListResponse)
async def list_audit_logs(
    resource_type: AuditResourceType | None = Query(None),
    resource_id: str | None = Query(None, max_length=64),
    action: AuditAction | None = Query(None),
    user_id: UUID | None = Query(None),
    since: datetime | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    tenant_id: UUID = Depends(get_current_tenant_id),
    service: AuditService = Depends(get_audit_service),
    _: dict = Depends(require_role("admin")),
):
    """Newest first; unknown enum values are rejected with 422."""
    result = await service.list_events(
        tenant_id=tenant_id,
        resource_type=resource_type,
        resource_id=resource_id,
        action=action,
        user_id=user_id,
        since=since,
        limit=limit,
        offset=offset,
    )
    return AuditLogListResponse(
        items=[_to_response(e) for e in result["items"]],
        total=result["total"],
        offset=result["offset"],
        limit=result["limit"],
    )


@router.get("/{resource_type}/{resource_id}", response_model=AuditLogListResponse)
async def resource_history(
    resource_type: AuditResourceType,
    resource_id: str,
    limit: int = Query(50, ge=1, le=200),
    tenant_id: UUID = Depends(get_current_tenant_id),
    service: AuditService = Depends(get_audit_service),
    _: dict = Depends(require_role("admin")),
):
    """Everything that happened to one resource, e.g. /workflow/{id}."""
    result = await service.list_events(
        tenant_id=tenant_id,
        resource_type=resource_type,
        resource_id=resource_id,
        limit=limit,
    )
    return AuditLogListResponse(
        items=[_to_response(e) for e in result["items"]],
        total=result["total"],
        offset=result["offset"],
        limit=result["limit"],
    )
