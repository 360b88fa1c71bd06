"""Chat and Message models.

A chat is the conversation a workflow, its dashboard items and its reports
hang off. Message parts and attachments are stored as opaque JSON.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, JSONType, TenantMixin, UUIDPrimaryKeyMixin


class ChatVisibility(enum.StrEnum):
    PUBLIC = "public"
    PRIVATE = "private"


class Chat(Base, UUIDPrimaryKeyMixin, TenantMixin):
    __tablename__ = "chats"
    __table_args__ = (Index("ix_chats_tenant_user", "tenant_id", "user_id"),)

    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"))
    title: Mapped[str] = mapped_column(String(255))
    visibility: Mapped[ChatVisibility] = mapped_column(
        Enum(ChatVisibility, name="chat_visibility"), default=ChatVisibility.PRIVATE
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # Relationships
    user: Mapped["User"] = relationship(back_populates="chats")  # noqa: F821
    messages: Mapped[list["Message"]] = relationship(
        back_populates="chat",
        cascade="all, delete-orphan",
        order_by="Message.created_at",
    )
    workflow: Mapped["Workflow | None"] = relationship(  # noqa: F821
        back_populates="chat", cascade="all, delete-orphan", passive_deletes=True
    )
    dashboard_items: Mapped[list["DashboardItem"]] = relationship(  # noqa: F821
        back_populates="chat", cascade="all, delete-orphan", passive_deletes=True
    )
    reports: Mapped[list["Report"]] = relationship(  # noqa: F821
        back_populates="chat", cascade="all, delete-orphan", passive_deletes=True
    )


class Message(Base, UUIDPrimaryKeyMixin):
    __tablename__ = "messages"

    chat_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("chats.id", ondelete="CASCADE"), index=True
    )
    role: Mapped[str] = mapped_column(String(32))
    parts: Mapped[list] = mapped_column(JSONType, default=list)
    attachments: Mapped[list] = mapped_column(JSONType, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # Relationships
    chat: Mapped["Chat"] = relationship(back_populates="messages")
