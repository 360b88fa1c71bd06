"""Workflow template models.

System categories and templates are seeded from code (see
services/template_registry.py) and have no owner. User templates carry the
creating user and tenant; public ones are visible to everyone.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, JSONType, TimestampMixin


def _template_id() -> str:
    return str(uuid.uuid4())


class TemplateCategory(Base):
    __tablename__ = "template_categories"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text)
    display_order: Mapped[int] = mapped_column(Integer, default=0)
    is_system: Mapped[bool] = mapped_column(default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    templates: Mapped[list["WorkflowTemplate"]] = relationship(back_populates="category")


class WorkflowTemplate(Base, TimestampMixin):
    __tablename__ = "workflow_templates"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_template_id)
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[str] = mapped_column(Text)
    use_case: Mapped[str | None] = mapped_column(Text)
    category_id: Mapped[str] = mapped_column(ForeignKey("template_categories.id"), index=True)
    data: Mapped[dict] = mapped_column(JSONType)
    tags: Mapped[list] = mapped_column(JSONType, default=list)
    is_public: Mapped[bool] = mapped_column(default=False)
    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    tenant_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), nullable=True, index=True
    )
    usage_count: Mapped[int] = mapped_column(Integer, default=0)

    category: Mapped["TemplateCategory"] = relationship(back_populates="templates")
