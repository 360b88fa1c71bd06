"""Pydantic schemas for template endpoints."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


def _check_graph(value: dict) -> dict:
    if not isinstance(value.get("nodes"), list) or not isinstance(value.get("edges"), list):
        raise ValueError("Template data must contain nodes and edges arrays")
    return value


class TemplateCategoryResponse(BaseModel):
    id: str
    name: str
    description: str | None = None
    display_order: int
    is_system: bool

    model_config = {"from_attributes": True}


class TemplateCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1)
    category_id: str
    data: dict
    use_case: str | None = None
    tags: list[str] = []
    is_public: bool = False

    @field_validator("data")
    @classmethod
    def _validate_data(cls, v: dict) -> dict:
        return _check_graph(v)


class TemplateUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    category_id: str | None = None
    data: dict | None = None
    use_case: str | None = None
    tags: list[str] | None = None
    is_public: bool | None = None

    @field_validator("data")
    @classmethod
    def _validate_data(cls, v: dict | None) -> dict | None:
        return v if v is None else _check_graph(v)


class TemplateResponse(BaseModel):
    id: str
    name: str
    description: str
    use_case: str | None = None
    category_id: str
    data: dict
    tags: list[str]
    is_public: bool
    user_id: UUID | None = None
    usage_count: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TemplateListResponse(BaseModel):
    items: list[TemplateResponse]
    total: int
    page: int
    page_size: int


class TemplateInstantiateRequest(BaseModel):
    name: str | None = None
    chat_id: UUID | None = None
