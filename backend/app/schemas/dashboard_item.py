"""Pydantic schemas for dashboard item and report endpoints."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field


class DashboardItemCreate(BaseModel):
    """An engine dashboard item to persist under a chat.

    item must carry "id" (the item key) and "type"; the rest is compacted on save.
    """

    chat_id: UUID
    node_id: str
    item: dict


class DashboardItemResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    chat_id: UUID
    node_id: str
    item_key: str
    type: str
    title: str
    description: str | None = None
    data: dict
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class DashboardItemListResponse(BaseModel):
    items: list[DashboardItemResponse]
    total: int


class ReportCreate(BaseModel):
    chat_id: UUID
    title: str = Field(min_length=1, max_length=255)
    content: str
    user_type: Literal["business", "technical"] = "business"


class ReportResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    chat_id: UUID
    title: str
    content: str
    user_type: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ReportListResponse(BaseModel):
    items: list[ReportResponse]
    total: int
