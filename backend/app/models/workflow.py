"""Workflow model.

Stores the node graph as JSON. graph_json holds the serialized canvas:
nodes (with factoryId and settings), edges and metadata. A chat owns at
most one workflow; standalone workflows have no chat_id.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, JSONType, TenantMixin, TimestampMixin, UUIDPrimaryKeyMixin


class Workflow(Base, UUIDPrimaryKeyMixin, TenantMixin, TimestampMixin):
    __tablename__ = "workflows"

    chat_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("chats.id", ondelete="CASCADE"), unique=True, nullable=True
    )
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text)
    graph_json: Mapped[dict] = mapped_column(JSONType, default=dict)
    shared: Mapped[bool] = mapped_column(default=False)
    shared_id: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    created_by: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"))

    # Relationships
    created_by_user: Mapped["User"] = relationship(back_populates="workflows")  # noqa: F821
    chat: Mapped["Chat | None"] = relationship(back_populates="workflow")  # noqa: F821
    versions: Mapped[list["WorkflowVersion"]] = relationship(
        back_populates="workflow",
        cascade="all, delete-orphan",
        order_by="WorkflowVersion.version_number.desc()",
    )


class WorkflowVersion(Base, UUIDPrimaryKeyMixin):
    __tablename__ = "workflow_versions"
    __table_args__ = (
        UniqueConstraint(
            "workflow_id", "version_number", name="uq_workflow_version_number"
        ),
    )

    workflow_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("workflows.id", ondelete="CASCADE")
    )
    version_number: Mapped[int] = mapped_column(Integer)
    graph_json: Mapped[dict] = mapped_column(JSONType)
    created_by: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # Relationships
    workflow: Mapped["Workflow"] = relationship(back_populates="versions")
