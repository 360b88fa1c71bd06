"""Audit trail writes and tenant-scoped queries."""

from datetime import datetime
from uuid import UUID

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit_log import AuditAction, AuditLog, AuditResourceType

logger = structlog.stdlib.get_logger(__name__)


class AuditService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def log(
        self,
        tenant_id: UUID,
        user_id: UUID,
        action: AuditAction,
        resource_type: AuditResourceType,
        resource_id: UUID | str,
        metadata: dict | None = None,
    ) -> None:
        """Add an audit record to the session. Failures are logged, never raised."""
        try:
            self.db.add(
                AuditLog(
                    tenant_id=tenant_id,
                    user_id=user_id,
                    action=action,
                    resource_type=resource_type,
                    resource_id=str(resource_id),
                    metadata_=metadata,
                )
            )
            await self.db.flush()
        except Exception:
            logger.exception(
                "audit_log_failed",
                action=action.value,
                resource_type=resource_type.value,
                resource_id=str(resource_id),
            )

    async def list_events(
        self,
        tenant_id: UUID,
        resource_type: AuditResourceType | None = None,
        resource_id: str | None = None,
        action: AuditAction | None = None,
        user_id: UUID | None = None,
        since: datetime | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> dict:
        conditions = [AuditLog.tenant_id == tenant_id]
        if resource_type is not None:
            conditions.append(AuditLog.resource_type == resource_type)
        if resource_id is not None:
            conditions.append(AuditLog.resource_id == resource_id)
        if action is not None:
            conditions.append(AuditLog.action == action)
        if user_id is not None:
            conditions.append(AuditLog.user_id == user_id)
        if since is not None:
            conditions.append(AuditLog.created_at >= since)

        total = (
            await self.db.execute(select(func.count(AuditLog.id)).where(*conditions))
        ).scalar_one()
        result = await self.db.execute(
            select(AuditLog)
            .where(*conditions)
            .order_by(AuditLog.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return {
            "items": result.scalars().all(),
            "total": total,
            "offset": offset,
            "limit": limit,
        }
