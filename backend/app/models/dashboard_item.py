"""DashboardItem and Report models.

Dashboard items are compacted snapshots of node outputs (tables keep a row
preview, charts a JSON data snapshot). item_key is the engine's item id and
is unique within a chat, so re-running a node overwrites its items.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, JSONType, TenantMixin, TimestampMixin, UUIDPrimaryKeyMixin


class DashboardItemType(enum.StrEnum):
    TABLE = "table"
    CHART = "chart"
    STATISTICS = "statistics"


class DashboardItem(Base, UUIDPrimaryKeyMixin, TenantMixin, TimestampMixin):
    __tablename__ = "dashboard_items"
    __table_args__ = (
        UniqueConstraint("chat_id", "item_key", name="uq_dashboard_item_chat_key"),
    )

    chat_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("chats.id", ondelete="CASCADE"), index=True
    )
    node_id: Mapped[str] = mapped_column(String(255))
    item_key: Mapped[str] = mapped_column(String(255))
    type: Mapped[DashboardItemType] = mapped_column(
        Enum(DashboardItemType, name="dashboard_item_type")
    )
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text)
    data: Mapped[dict] = mapped_column(JSONType, default=dict)

    # Relationships
    chat: Mapped["Chat"] = relationship(back_populates="dashboard_items")  # noqa: F821


class ReportUserType(enum.StrEnum):
    BUSINESS = "business"
    TECHNICAL = "technical"


class Report(Base, UUIDPrimaryKeyMixin, TenantMixin):
    __tablename__ = "reports"

    chat_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("chats.id", ondelete="CASCADE"), index=True
    )
    title: Mapped[str] = mapped_column(String(255))
    content: Mapped[str] = mapped_column(Text)
    user_type: Mapped[ReportUserType] = mapped_column(
        Enum(ReportUserType, name="report_user_type"), default=ReportUserType.BUSINESS
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # Relationships
    chat: Mapped["Chat"] = relationship(back_populates="reports")  # noqa: F821
