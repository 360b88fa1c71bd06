"""Pydantic schemas for chat and message endpoints."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field


class ChatCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    visibility: Literal["public", "private"] = "private"


class ChatResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    user_id: UUID
    title: str
    visibility: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ChatListResponse(BaseModel):
    items: list[ChatResponse]
    total: int
    page: int
    page_size: int


class MessageCreate(BaseModel):
    role: Literal["user", "assistant", "system", "tool"]
    parts: list = []
    attachments: list = []


class MessageResponse(BaseModel):
    id: UUID
    chat_id: UUID
    role: str
    parts: list
    attachments: list
    created_at: datetime

    model_config = {"from_attributes": True}


class ChatWorkflowUpsert(BaseModel):
    """Graph to store as the chat's workflow; the name defaults to "<chat title> Workflow"."""

    graph_json: dict
    name: str | None = None
    description: str | None = None
