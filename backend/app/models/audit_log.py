"""Audit log model.

Records all significant actions for compliance and debugging.
Indexed by (tenant_id, created_at) for efficient tenant-scoped queries.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, Index, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, JSONType, TenantMixin, UUIDPrimaryKeyMixin


class AuditAction(str, enum.Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    EXECUTED = "executed"
    CANCELLED = "cancelled"
    EXPORTED = "exported"
    IMPORTED = "imported"


class AuditResourceType(str, enum.Enum):
    CHAT = "chat"
    WORKFLOW = "workflow"
    DASHBOARD_ITEM = "dashboard_item"
    REPORT = "report"
    TEMPLATE = "template"


class AuditLog(Base, UUIDPrimaryKeyMixin, TenantMixin):
    __tablename__ = "audit_logs"
    __table_args__ = (Index("ix_audit_logs_tenant_created", "tenant_id", "created_at"),)

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    action: Mapped[AuditAction] = mapped_column(
        Enum(AuditAction, name="audit_action"), nullable=False
    )
    resource_type: Mapped[AuditResourceType] = mapped_column(
        Enum(AuditResourceType, name="audit_resource_type"), nullable=False
    )
    # Templates use string ids, everything else a UUID rendered as text
    resource_id: Mapped[str] = mapped_column(String(64), nullable=False)
    metadata_: Mapped[dict | None] = mapped_column(
        "metadata", JSONType, default=None, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
